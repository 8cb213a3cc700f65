import asyncio
import logging
from typing import Optional, Sequence, Union

from gateways import BatchOp, PersistenceGateway
from months import compare, month_index
from schemas import OccurrenceEdit, OccurrenceOut, PropagationMode, Scope

logger = logging.getLogger(__name__)


class PartialPropagationFailure(Exception):
    """Some writes of a multi-record propagation failed; the rest were applied."""

    def __init__(
        self,
        scope: Scope,
        mode: PropagationMode,
        applied_ids: Sequence[str],
        failed_ids: Sequence[str],
        errors: Optional[dict[str, Exception]] = None,
    ) -> None:
        self.scope = scope
        self.mode = mode
        self.applied_ids = list(applied_ids)
        self.failed_ids = list(failed_ids)
        self.errors = dict(errors or {})
        super().__init__(
            f"{mode.value} with scope={scope.value} partially applied: "
            f"{len(self.applied_ids)} applied, {len(self.failed_ids)} failed"
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "scope": self.scope.value,
            "mode": self.mode.value,
            "applied_ids": self.applied_ids,
            "failed_ids": self.failed_ids,
            "errors": {key: str(exc) for key, exc in self.errors.items()},
        }


def select_targets(
    seed: OccurrenceOut,
    series: Sequence[OccurrenceOut],
    scope: Scope,
    *,
    month_from: Optional[str] = None,
    month_to: Optional[str] = None,
) -> list[OccurrenceOut]:
    """Occurrences of ``seed``'s series that ``scope`` reaches.

    Month comparisons go through ``competence_month`` only.
    """
    if seed.series_id is None or scope == Scope.single:
        return [seed]

    members = [occ for occ in series if occ.series_id == seed.series_id]
    if scope == Scope.range:
        return [
            occ
            for occ in members
            if (not month_from or compare(occ.competence_month, month_from) >= 0)
            and (not month_to or compare(occ.competence_month, month_to) <= 0)
        ]

    if seed.id not in {occ.id for occ in members}:
        members.append(seed)
    if scope == Scope.future:
        members = [
            occ
            for occ in members
            if compare(occ.competence_month, seed.competence_month) >= 0
        ]
    return sorted(members, key=lambda occ: (month_index(occ.competence_month), occ.id))


class PropagationEngine:
    def __init__(self, gateway: PersistenceGateway) -> None:
        self.gateway = gateway

    async def _apply_one(self, op: BatchOp) -> None:
        if op.is_delete:
            await self.gateway.delete(op.occurrence_id)
        else:
            await self.gateway.update(op.occurrence_id, op.delta or {})

    async def _apply_concurrently(
        self, scope: Scope, mode: PropagationMode, ops: list[BatchOp]
    ) -> None:
        results = await asyncio.gather(
            *(self._apply_one(op) for op in ops), return_exceptions=True
        )
        applied: list[str] = []
        errors: dict[str, Exception] = {}
        for op, result in zip(ops, results):
            if isinstance(result, Exception):
                errors[op.occurrence_id] = result
            elif isinstance(result, BaseException):
                raise result
            else:
                applied.append(op.occurrence_id)
        if errors:
            logger.warning(
                f"propagation_partial: scope={scope.value} mode={mode.value} "
                f"applied={len(applied)} failed={len(errors)}"
            )
            raise PartialPropagationFailure(
                scope, mode, applied, list(errors), errors=errors
            )

    async def propagate(
        self,
        seed: OccurrenceOut,
        edits: Optional[OccurrenceEdit] = None,
        scope: Union[Scope, str] = Scope.single,
        mode: Union[PropagationMode, str] = PropagationMode.update,
        *,
        month_from: Optional[str] = None,
        month_to: Optional[str] = None,
    ) -> list[str]:
        scope = Scope(scope)
        mode = PropagationMode(mode)
        delta = edits.delta() if edits is not None else {}
        if mode == PropagationMode.update and not delta:
            raise ValueError("No fields to update")
        if scope == Scope.range and not (month_from or month_to):
            raise ValueError("Range scope requires month_from or month_to")

        if seed.series_id is None or scope == Scope.single:
            targets = [seed]
        else:
            series = await self.gateway.query_by_series(seed.series_id)
            targets = select_targets(
                seed, series, scope, month_from=month_from, month_to=month_to
            )

        ops = [
            BatchOp(occ.id, None if mode == PropagationMode.delete else dict(delta))
            for occ in targets
        ]
        if len(ops) == 1:
            await self._apply_one(ops[0])
        elif len(ops) > 1 and self.gateway.supports_atomic_batch:
            await self.gateway.apply_batch(ops)
        elif ops:
            await self._apply_concurrently(scope, mode, ops)

        affected = [op.occurrence_id for op in ops]
        logger.info(
            f"propagation_applied: series_id={seed.series_id} scope={scope.value} "
            f"mode={mode.value} affected={len(affected)}"
        )
        return affected
