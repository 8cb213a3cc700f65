from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import Settings, get_settings
from gateways import NotFoundError, PersistenceGateway
from matching import match_planned, suggested_defaults
from models import CategoryDirection, Direction, OccurrenceStatus
from months import current_month, month_index, validate_month
from projection import MonthlyReport, project
from propagation import PropagationEngine
from recurrence import expand_series_in
from schemas import (
    AccountIn,
    AccountOut,
    CategoryIn,
    CategoryOut,
    MatchCandidate,
    MatchSuggestion,
    OccurrenceEdit,
    OccurrenceIn,
    OccurrenceOut,
    PropagationMode,
    RealizedEntryIn,
    Scope,
    SeriesIn,
    SettleResult,
)

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES: list[tuple[str, CategoryDirection]] = [
    ("Food", CategoryDirection.debit),
    ("Subscriptions", CategoryDirection.debit),
    ("Fuel", CategoryDirection.debit),
    ("Transport", CategoryDirection.debit),
    ("Education", CategoryDirection.debit),
    ("Freelance", CategoryDirection.credit),
    ("Housing", CategoryDirection.debit),
    ("Taxes and Fees", CategoryDirection.debit),
    ("Investments", CategoryDirection.both),
    ("Leisure", CategoryDirection.debit),
    ("Groceries", CategoryDirection.debit),
    ("Other", CategoryDirection.both),
    ("Refund", CategoryDirection.credit),
    ("Salary", CategoryDirection.credit),
    ("Health", CategoryDirection.debit),
    ("Insurance", CategoryDirection.debit),
    ("Utilities", CategoryDirection.debit),
    ("Phone and Internet", CategoryDirection.debit),
    ("Travel", CategoryDirection.debit),
]


def get_current_owner_id() -> str:
    return get_settings().owner_id


def local_today(settings: Optional[Settings] = None) -> date:
    settings = settings or get_settings()
    return datetime.now(ZoneInfo(settings.timezone)).date()


class DirectoryService:
    def __init__(
        self, gateway: PersistenceGateway, owner_id: Optional[str] = None
    ) -> None:
        self.gateway = gateway
        self.owner_id = owner_id or get_current_owner_id()

    async def accounts(self) -> list[AccountOut]:
        return await self.gateway.list_accounts(self.owner_id)

    async def categories(self) -> list[CategoryOut]:
        categories = await self.gateway.list_categories(self.owner_id)
        if categories:
            return categories
        for name, direction in DEFAULT_CATEGORIES:
            await self.gateway.create_category(
                CategoryIn(owner_id=self.owner_id, name=name, direction=direction)
            )
        logger.info(
            f"default_categories_seeded: owner_id={self.owner_id} "
            f"count={len(DEFAULT_CATEGORIES)}"
        )
        return await self.gateway.list_categories(self.owner_id)

    async def create_account(self, name: str, **fields) -> AccountOut:
        return await self.gateway.create_account(
            AccountIn(owner_id=self.owner_id, name=name.strip(), **fields)
        )

    async def create_category(
        self, name: str, direction: CategoryDirection
    ) -> CategoryOut:
        return await self.gateway.create_category(
            CategoryIn(owner_id=self.owner_id, name=name.strip(), direction=direction)
        )

    async def check_references(
        self,
        direction: Direction,
        account_id: Optional[str],
        category_id: Optional[str],
    ) -> None:
        if account_id is not None:
            accounts = await self.gateway.list_accounts(self.owner_id)
            if account_id not in {a.id for a in accounts}:
                raise ValueError("Account not found")
        if category_id is not None:
            categories = await self.gateway.list_categories(self.owner_id)
            category = next((c for c in categories if c.id == category_id), None)
            if category is None:
                raise ValueError("Category not found")
            if category.direction not in (
                CategoryDirection.both,
                CategoryDirection(direction.value),
            ):
                raise ValueError("Category type mismatch")


class SeriesService:
    def __init__(
        self,
        gateway: PersistenceGateway,
        owner_id: Optional[str] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.gateway = gateway
        self.owner_id = owner_id or get_current_owner_id()
        self.settings = settings or get_settings()

    async def create(self, data: SeriesIn) -> list[str]:
        if data.owner_id != self.owner_id:
            raise ValueError("Series owner mismatch")
        await DirectoryService(self.gateway, self.owner_id).check_references(
            data.direction, data.account_id, data.category_id
        )
        occurrences = expand_series_in(
            data,
            horizon=self.settings.horizon_month,
            max_occurrences=self.settings.max_occurrences,
        )
        ids = await self.gateway.create_many(occurrences)
        logger.info(
            f"series_created: series_id={occurrences[0].series_id} "
            f"start={data.series_start_month} "
            f"last={occurrences[-1].competence_month} occurrences={len(ids)}"
        )
        return ids

    async def occurrences(self, series_id: str) -> list[OccurrenceOut]:
        records = await self.gateway.query_by_series(series_id)
        return [r for r in records if r.owner_id == self.owner_id]


class EntryService:
    """Realized entries, settled against a planned occurrence when one matches."""

    def __init__(
        self, gateway: PersistenceGateway, owner_id: Optional[str] = None
    ) -> None:
        self.gateway = gateway
        self.owner_id = owner_id or get_current_owner_id()

    async def find_match(self, candidate: MatchCandidate) -> Optional[OccurrenceOut]:
        pool = await self.gateway.query_by_owner(
            self.owner_id, candidate.competence_month
        )
        # An overdue occurrence is still unsettled.
        pool = [
            occ.model_copy(update={"status": OccurrenceStatus.planned})
            if occ.status == OccurrenceStatus.late
            else occ
            for occ in pool
        ]
        return match_planned(candidate, pool)

    async def suggest(self, candidate: MatchCandidate) -> Optional[MatchSuggestion]:
        match = await self.find_match(candidate)
        if match is None:
            return None
        return suggested_defaults(match)

    async def commit(self, entry: RealizedEntryIn) -> SettleResult:
        if entry.owner_id != self.owner_id:
            raise ValueError("Entry owner mismatch")
        await DirectoryService(self.gateway, self.owner_id).check_references(
            entry.direction, entry.account_id, entry.category_id
        )

        match = await self.find_match(entry)
        if match is not None:
            delta: dict[str, object] = {
                "status": OccurrenceStatus.done,
                "actual_amount": entry.actual_amount,
            }
            if entry.account_id is not None:
                delta["account_id"] = entry.account_id
            if entry.category_id is not None:
                delta["category_id"] = entry.category_id
            await self.gateway.update(match.id, delta)
            logger.info(
                f"entry_settled: occurrence_id={match.id} "
                f"month={entry.competence_month} series_id={match.series_id}"
            )
            return SettleResult(occurrence_id=match.id, settled=True)

        series_id = str(uuid.uuid4()) if entry.is_recurring else None
        occurrence_id = await self.gateway.create(
            OccurrenceIn(
                owner_id=self.owner_id,
                direction=entry.direction,
                description=entry.description.strip(),
                account_id=entry.account_id,
                category_id=entry.category_id,
                planned_amount=0.0,
                actual_amount=entry.actual_amount,
                competence_month=entry.competence_month,
                status=OccurrenceStatus.done,
                is_recurring=entry.is_recurring,
                series_id=series_id,
                series_start_month=entry.competence_month if series_id else None,
            )
        )
        logger.info(
            f"entry_created: occurrence_id={occurrence_id} "
            f"month={entry.competence_month} recurring={entry.is_recurring}"
        )
        return SettleResult(occurrence_id=occurrence_id, settled=False)


class OccurrenceService:
    def __init__(
        self, gateway: PersistenceGateway, owner_id: Optional[str] = None
    ) -> None:
        self.gateway = gateway
        self.owner_id = owner_id or get_current_owner_id()

    async def get(self, occurrence_id: str) -> OccurrenceOut:
        occurrence = await self.gateway.get(occurrence_id)
        if occurrence.owner_id != self.owner_id:
            raise NotFoundError(occurrence_id)
        return occurrence

    async def list(self, month: Optional[str] = None) -> list[OccurrenceOut]:
        if month:
            validate_month(month)
        return await self.gateway.query_by_owner(self.owner_id, month)

    async def edit(
        self,
        occurrence_id: str,
        edits: OccurrenceEdit,
        scope: Scope = Scope.single,
        *,
        month_from: Optional[str] = None,
        month_to: Optional[str] = None,
    ) -> list[str]:
        seed = await self.get(occurrence_id)
        return await PropagationEngine(self.gateway).propagate(
            seed,
            edits,
            scope,
            PropagationMode.update,
            month_from=month_from,
            month_to=month_to,
        )

    async def remove(
        self,
        occurrence_id: str,
        scope: Scope = Scope.single,
        *,
        month_from: Optional[str] = None,
        month_to: Optional[str] = None,
    ) -> list[str]:
        seed = await self.get(occurrence_id)
        return await PropagationEngine(self.gateway).propagate(
            seed,
            None,
            scope,
            PropagationMode.delete,
            month_from=month_from,
            month_to=month_to,
        )


class ProjectionService:
    def __init__(
        self, gateway: PersistenceGateway, owner_id: Optional[str] = None
    ) -> None:
        self.gateway = gateway
        self.owner_id = owner_id or get_current_owner_id()

    async def project(self, year: int) -> list[MonthlyReport]:
        if not 1 <= year <= 9999:
            raise ValueError("Year out of range")
        occurrences = await self.gateway.query_by_owner(self.owner_id)
        categories = await self.gateway.list_categories(self.owner_id)
        names = {c.id: c.name for c in categories}
        return project(occurrences, year, names)


class LateStatusService:
    """Flags planned occurrences of past months as late."""

    def __init__(
        self, gateway: PersistenceGateway, owner_id: Optional[str] = None
    ) -> None:
        self.gateway = gateway
        self.owner_id = owner_id or get_current_owner_id()

    async def mark_overdue(self, today: Optional[date] = None) -> int:
        cutoff = month_index(current_month(today or local_today()))
        occurrences = await self.gateway.query_by_owner(self.owner_id)
        count = 0
        for occ in occurrences:
            if occ.status != OccurrenceStatus.planned:
                continue
            if month_index(occ.competence_month) >= cutoff:
                continue
            try:
                await self.gateway.update(occ.id, {"status": OccurrenceStatus.late})
            except NotFoundError:
                logger.info(f"late_marking_skipped: occurrence_id={occ.id}")
                continue
            count += 1
        return count
