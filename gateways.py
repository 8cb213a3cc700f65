"""Persistence gateways for occurrences and the read-only directories.

``SqlGateway`` talks to any SQLAlchemy async database (the shared multi-device
store); ``LocalGateway`` keeps everything in one JSON document on this device.
Both return ``OccurrenceOut`` records and raise the same errors, so callers
never branch on which one is active.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import Settings, get_settings
from database import Base, create_engine, make_sessionmaker, session_scope
from models import Account, Category, Occurrence, new_id
from months import month_index
from schemas import (
    AccountIn,
    AccountOut,
    CategoryIn,
    CategoryOut,
    OccurrenceIn,
    OccurrenceOut,
)

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "description",
        "planned_amount",
        "actual_amount",
        "account_id",
        "category_id",
        "status",
    }
)


class StorageError(Exception):
    """Base exception for gateway operations."""


class NotFoundError(StorageError):
    """Target occurrence id is not in the store."""

    def __init__(self, occurrence_id: str) -> None:
        super().__init__(f"Occurrence not found: {occurrence_id}")
        self.occurrence_id = occurrence_id


@dataclass(frozen=True)
class BatchOp:
    occurrence_id: str
    # None deletes the record
    delta: Optional[dict[str, Any]] = None

    @property
    def is_delete(self) -> bool:
        return self.delta is None


def check_delta(delta: dict[str, Any]) -> None:
    unknown = set(delta) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")


def merge_delta(record: OccurrenceOut, delta: dict[str, Any]) -> OccurrenceOut:
    check_delta(delta)
    data = record.model_dump()
    data.update(delta)
    return OccurrenceOut.model_validate(data)


def sort_occurrences(records: Iterable[OccurrenceOut]) -> list[OccurrenceOut]:
    return sorted(records, key=lambda r: (month_index(r.competence_month), r.id))


class PersistenceGateway(ABC):
    supports_atomic_batch: bool = False

    async def prepare(self) -> None:
        """Make the store ready for use (schema, files)."""

    @abstractmethod
    async def create(self, occurrence: OccurrenceIn) -> str:
        """Persist a new occurrence and return its id."""

    async def create_many(self, occurrences: Sequence[OccurrenceIn]) -> list[str]:
        return [await self.create(occurrence) for occurrence in occurrences]

    @abstractmethod
    async def get(self, occurrence_id: str) -> OccurrenceOut:
        ...

    @abstractmethod
    async def update(self, occurrence_id: str, delta: dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def delete(self, occurrence_id: str) -> None:
        ...

    @abstractmethod
    async def query_by_series(self, series_id: str) -> list[OccurrenceOut]:
        ...

    @abstractmethod
    async def query_by_owner(
        self, owner_id: str, month: Optional[str] = None
    ) -> list[OccurrenceOut]:
        ...

    async def apply_batch(self, ops: Sequence[BatchOp]) -> None:
        """All-or-nothing batch; only stores with ``supports_atomic_batch``."""
        raise NotImplementedError(f"{type(self).__name__} has no atomic batches")

    @abstractmethod
    async def list_accounts(self, owner_id: str) -> list[AccountOut]:
        ...

    @abstractmethod
    async def list_categories(self, owner_id: str) -> list[CategoryOut]:
        ...

    @abstractmethod
    async def create_account(self, data: AccountIn) -> AccountOut:
        ...

    @abstractmethod
    async def create_category(self, data: CategoryIn) -> CategoryOut:
        ...


class SqlGateway(PersistenceGateway):
    supports_atomic_batch = True

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def prepare(self) -> None:
        async with session_scope(self.session_factory) as session:
            await session.run_sync(
                lambda sync_session: Base.metadata.create_all(sync_session.connection())
            )

    async def _get_row(self, session: AsyncSession, occurrence_id: str) -> Occurrence:
        row = await session.get(Occurrence, occurrence_id)
        if row is None:
            raise NotFoundError(occurrence_id)
        return row

    @staticmethod
    def _apply(row: Occurrence, delta: dict[str, Any]) -> None:
        merged = merge_delta(OccurrenceOut.model_validate(row), delta)
        for key in delta:
            setattr(row, key, getattr(merged, key))

    async def create(self, occurrence: OccurrenceIn) -> str:
        ids = await self.create_many([occurrence])
        return ids[0]

    async def create_many(self, occurrences: Sequence[OccurrenceIn]) -> list[str]:
        async with session_scope(self.session_factory) as session:
            rows = [Occurrence(id=new_id(), **occ.model_dump()) for occ in occurrences]
            session.add_all(rows)
            await session.flush()
            return [row.id for row in rows]

    async def get(self, occurrence_id: str) -> OccurrenceOut:
        async with session_scope(self.session_factory) as session:
            row = await self._get_row(session, occurrence_id)
            return OccurrenceOut.model_validate(row)

    async def update(self, occurrence_id: str, delta: dict[str, Any]) -> None:
        async with session_scope(self.session_factory) as session:
            row = await self._get_row(session, occurrence_id)
            self._apply(row, delta)

    async def delete(self, occurrence_id: str) -> None:
        async with session_scope(self.session_factory) as session:
            row = await self._get_row(session, occurrence_id)
            await session.delete(row)

    async def apply_batch(self, ops: Sequence[BatchOp]) -> None:
        async with session_scope(self.session_factory) as session:
            for op in ops:
                row = await self._get_row(session, op.occurrence_id)
                if op.is_delete:
                    await session.delete(row)
                else:
                    self._apply(row, op.delta or {})

    async def query_by_series(self, series_id: str) -> list[OccurrenceOut]:
        stmt = select(Occurrence).where(Occurrence.series_id == series_id)
        async with session_scope(self.session_factory) as session:
            rows = (await session.scalars(stmt)).all()
            return sort_occurrences(OccurrenceOut.model_validate(r) for r in rows)

    async def query_by_owner(
        self, owner_id: str, month: Optional[str] = None
    ) -> list[OccurrenceOut]:
        stmt = select(Occurrence).where(Occurrence.owner_id == owner_id)
        if month:
            stmt = stmt.where(Occurrence.competence_month == month)
        async with session_scope(self.session_factory) as session:
            rows = (await session.scalars(stmt)).all()
            return sort_occurrences(OccurrenceOut.model_validate(r) for r in rows)

    async def list_accounts(self, owner_id: str) -> list[AccountOut]:
        stmt = (
            select(Account)
            .where(Account.owner_id == owner_id, Account.active.is_(True))
            .order_by(Account.name)
        )
        async with session_scope(self.session_factory) as session:
            rows = (await session.scalars(stmt)).all()
            return [AccountOut.model_validate(r) for r in rows]

    async def list_categories(self, owner_id: str) -> list[CategoryOut]:
        stmt = (
            select(Category)
            .where(Category.owner_id == owner_id)
            .order_by(Category.direction, Category.name)
        )
        async with session_scope(self.session_factory) as session:
            rows = (await session.scalars(stmt)).all()
            return [CategoryOut.model_validate(r) for r in rows]

    async def create_account(self, data: AccountIn) -> AccountOut:
        async with session_scope(self.session_factory) as session:
            row = Account(id=new_id(), **data.model_dump())
            session.add(row)
            await session.flush()
            return AccountOut.model_validate(row)

    async def create_category(self, data: CategoryIn) -> CategoryOut:
        async with session_scope(self.session_factory) as session:
            existing = await session.scalar(
                select(Category).where(
                    Category.owner_id == data.owner_id,
                    Category.direction == data.direction,
                    func.lower(Category.name) == data.name.lower(),
                )
            )
            if existing:
                raise ValueError("Category with this name already exists")
            row = Category(id=new_id(), **data.model_dump())
            session.add(row)
            await session.flush()
            return CategoryOut.model_validate(row)


class LocalGateway(PersistenceGateway):
    """Single-device store backed by one JSON document.

    Every write rewrites the whole document through a temp file, so a crash
    leaves either the old or the new state. A batch is applied to one loaded
    copy and saved once, which makes it all-or-nothing.
    """

    supports_atomic_batch = True

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, dict[str, Any]]:
        empty: dict[str, dict[str, Any]] = {
            "occurrences": {},
            "accounts": {},
            "categories": {},
        }
        if not self.path.exists():
            return empty
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise StorageError(f"Local store is corrupt: {self.path}") from exc
        for key in empty:
            data.setdefault(key, {})
        return data

    def _write(self, data: dict[str, dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self.path)

    async def _load(self) -> dict[str, dict[str, Any]]:
        return await asyncio.to_thread(self._read)

    async def _save(self, data: dict[str, dict[str, Any]]) -> None:
        await asyncio.to_thread(self._write, data)

    @staticmethod
    def _record(data: dict[str, dict[str, Any]], occurrence_id: str) -> OccurrenceOut:
        raw = data["occurrences"].get(occurrence_id)
        if raw is None:
            raise NotFoundError(occurrence_id)
        return OccurrenceOut.model_validate(raw)

    async def create(self, occurrence: OccurrenceIn) -> str:
        ids = await self.create_many([occurrence])
        return ids[0]

    async def create_many(self, occurrences: Sequence[OccurrenceIn]) -> list[str]:
        now = datetime.utcnow()
        async with self._lock:
            data = await self._load()
            ids: list[str] = []
            for occurrence in occurrences:
                record = OccurrenceOut(
                    id=new_id(),
                    created_at=now,
                    updated_at=now,
                    **occurrence.model_dump(),
                )
                data["occurrences"][record.id] = record.model_dump(mode="json")
                ids.append(record.id)
            await self._save(data)
        return ids

    async def get(self, occurrence_id: str) -> OccurrenceOut:
        data = await self._load()
        return self._record(data, occurrence_id)

    async def update(self, occurrence_id: str, delta: dict[str, Any]) -> None:
        async with self._lock:
            data = await self._load()
            merged = merge_delta(self._record(data, occurrence_id), delta)
            merged.updated_at = datetime.utcnow()
            data["occurrences"][occurrence_id] = merged.model_dump(mode="json")
            await self._save(data)

    async def delete(self, occurrence_id: str) -> None:
        async with self._lock:
            data = await self._load()
            if data["occurrences"].pop(occurrence_id, None) is None:
                raise NotFoundError(occurrence_id)
            await self._save(data)

    async def apply_batch(self, ops: Sequence[BatchOp]) -> None:
        now = datetime.utcnow()
        async with self._lock:
            data = await self._load()
            for op in ops:
                record = self._record(data, op.occurrence_id)
                if op.is_delete:
                    del data["occurrences"][op.occurrence_id]
                    continue
                merged = merge_delta(record, op.delta or {})
                merged.updated_at = now
                data["occurrences"][op.occurrence_id] = merged.model_dump(mode="json")
            await self._save(data)

    async def _all(self) -> list[OccurrenceOut]:
        data = await self._load()
        return [OccurrenceOut.model_validate(raw) for raw in data["occurrences"].values()]

    async def query_by_series(self, series_id: str) -> list[OccurrenceOut]:
        records = await self._all()
        return sort_occurrences(r for r in records if r.series_id == series_id)

    async def query_by_owner(
        self, owner_id: str, month: Optional[str] = None
    ) -> list[OccurrenceOut]:
        records = await self._all()
        return sort_occurrences(
            r
            for r in records
            if r.owner_id == owner_id and (not month or r.competence_month == month)
        )

    async def list_accounts(self, owner_id: str) -> list[AccountOut]:
        data = await self._load()
        accounts = [AccountOut.model_validate(raw) for raw in data["accounts"].values()]
        return sorted(
            (a for a in accounts if a.owner_id == owner_id and a.active),
            key=lambda a: a.name,
        )

    async def list_categories(self, owner_id: str) -> list[CategoryOut]:
        data = await self._load()
        categories = [
            CategoryOut.model_validate(raw) for raw in data["categories"].values()
        ]
        return sorted(
            (c for c in categories if c.owner_id == owner_id),
            key=lambda c: (c.direction.value, c.name),
        )

    async def create_account(self, data: AccountIn) -> AccountOut:
        account = AccountOut(id=new_id(), **data.model_dump())
        async with self._lock:
            store = await self._load()
            store["accounts"][account.id] = account.model_dump(mode="json")
            await self._save(store)
        return account

    async def create_category(self, data: CategoryIn) -> CategoryOut:
        async with self._lock:
            store = await self._load()
            for raw in store["categories"].values():
                if (
                    raw["owner_id"] == data.owner_id
                    and raw["direction"] == data.direction.value
                    and raw["name"].lower() == data.name.lower()
                ):
                    raise ValueError("Category with this name already exists")
            category = CategoryOut(id=new_id(), **data.model_dump())
            store["categories"][category.id] = category.model_dump(mode="json")
            await self._save(store)
        return category


def build_gateway(settings: Optional[Settings] = None) -> PersistenceGateway:
    settings = settings or get_settings()
    if settings.backend == "local":
        logger.info(f"gateway_selected: backend=local path={settings.local_store_path}")
        return LocalGateway(settings.local_store_path)
    logger.info("gateway_selected: backend=sql")
    return SqlGateway(make_sessionmaker(create_engine(settings.database_url)))
