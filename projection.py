"""Planned-vs-realized monthly projection for one year.

Every call recomputes from the full occurrence set. Amounts are summed as
integer cents and only turned back into money on the report, so totals are
exact and independent of the order the store returns occurrences in.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from models import Direction, OccurrenceStatus
from months import compare, format_month, year_months
from schemas import OccurrenceOut

UNKNOWN_CATEGORY = "Other"

PLANNED = "planned"
REALIZED = "realized"


@dataclass(frozen=True)
class CashFlow:
    total_entry: float
    total_exit: float
    net_result: float
    accumulated: float


@dataclass(frozen=True)
class DescriptionLine:
    description: str
    planned: float
    realized: float


@dataclass(frozen=True)
class CategoryGroup:
    category_id: Optional[str]
    name: str
    planned: float
    realized: float
    lines: list[DescriptionLine] = field(default_factory=list)


@dataclass(frozen=True)
class MonthlyReport:
    month: str
    credit: list[CategoryGroup]
    debit: list[CategoryGroup]
    planned: CashFlow
    realized: CashFlow


@dataclass(frozen=True)
class Carryover:
    planned: float
    realized: float


def series_of(occurrence: OccurrenceOut) -> str:
    return REALIZED if occurrence.status == OccurrenceStatus.done else PLANNED


def amount_for(occurrence: OccurrenceOut) -> float:
    if occurrence.status == OccurrenceStatus.done:
        return occurrence.actual_amount
    return occurrence.planned_amount


def to_cents(amount: float) -> int:
    return int(round(amount * 100))


def from_cents(cents: int) -> float:
    return cents / 100


def _carry_cents(occurrences: Iterable[OccurrenceOut], month: str) -> dict[str, int]:
    buckets: dict[tuple[str, Direction], int] = defaultdict(int)
    for occ in occurrences:
        if compare(occ.competence_month, month) < 0:
            buckets[(series_of(occ), occ.direction)] += to_cents(amount_for(occ))
    return {
        series: buckets[(series, Direction.credit)] - buckets[(series, Direction.debit)]
        for series in (PLANNED, REALIZED)
    }


def carryover_before(occurrences: Iterable[OccurrenceOut], month: str) -> Carryover:
    """Net of everything strictly earlier than ``month``, per series."""
    cents = _carry_cents(occurrences, month)
    return Carryover(
        planned=from_cents(cents[PLANNED]), realized=from_cents(cents[REALIZED])
    )


# (series, month) -> amounts in cents
_Cells = dict[tuple[str, str], list[int]]


def _new_cells() -> _Cells:
    return defaultdict(list)


def _group_year(
    occurrences: Iterable[OccurrenceOut], months: set[str]
) -> dict[Direction, dict[Optional[str], dict[str, _Cells]]]:
    grouped: dict[Direction, dict[Optional[str], dict[str, _Cells]]] = {
        Direction.credit: defaultdict(lambda: defaultdict(_new_cells)),
        Direction.debit: defaultdict(lambda: defaultdict(_new_cells)),
    }
    for occ in occurrences:
        if occ.competence_month not in months:
            continue
        cells = grouped[occ.direction][occ.category_id][occ.description]
        cells[(series_of(occ), occ.competence_month)].append(
            to_cents(amount_for(occ))
        )
    return grouped


def _has_amounts(by_description: dict[str, _Cells]) -> bool:
    return any(
        amount > 0
        for cells in by_description.values()
        for amounts in cells.values()
        for amount in amounts
    )


def _category_groups(
    by_category: dict[Optional[str], dict[str, _Cells]],
    month: str,
    names: Mapping[str, str],
) -> list[CategoryGroup]:
    groups: list[CategoryGroup] = []
    for category_id, by_description in by_category.items():
        if not _has_amounts(by_description):
            continue
        lines: list[DescriptionLine] = []
        planned_raw: list[int] = []
        realized_raw: list[int] = []
        for description in sorted(by_description, key=lambda d: (d.casefold(), d)):
            cells = by_description[description]
            planned = cells.get((PLANNED, month), [])
            realized = cells.get((REALIZED, month), [])
            planned_raw.extend(planned)
            realized_raw.extend(realized)
            lines.append(
                DescriptionLine(
                    description=description,
                    planned=from_cents(sum(planned)),
                    realized=from_cents(sum(realized)),
                )
            )
        name = names.get(category_id or "", UNKNOWN_CATEGORY)
        groups.append(
            CategoryGroup(
                category_id=category_id,
                name=name,
                planned=from_cents(sum(planned_raw)),
                realized=from_cents(sum(realized_raw)),
                lines=lines,
            )
        )
    groups.sort(key=lambda g: (g.name.casefold(), g.category_id or ""))
    return groups


def _direction_total(
    by_category: dict[Optional[str], dict[str, _Cells]], series: str, month: str
) -> int:
    return sum(
        amount
        for by_description in by_category.values()
        for cells in by_description.values()
        for amount in cells.get((series, month), [])
    )


def project(
    occurrences: Iterable[OccurrenceOut],
    year: int,
    category_names: Optional[Mapping[str, str]] = None,
) -> list[MonthlyReport]:
    occurrences = list(occurrences)
    names = category_names or {}
    months = year_months(year)
    grouped = _group_year(occurrences, set(months))
    running = _carry_cents(occurrences, format_month(year, 1))
    reports: list[MonthlyReport] = []
    for month in months:
        flows: dict[str, CashFlow] = {}
        for series in (PLANNED, REALIZED):
            entry = _direction_total(grouped[Direction.credit], series, month)
            exit_ = _direction_total(grouped[Direction.debit], series, month)
            net = entry - exit_
            running[series] = running[series] + net
            flows[series] = CashFlow(
                total_entry=from_cents(entry),
                total_exit=from_cents(exit_),
                net_result=from_cents(net),
                accumulated=from_cents(running[series]),
            )
        reports.append(
            MonthlyReport(
                month=month,
                credit=_category_groups(grouped[Direction.credit], month, names),
                debit=_category_groups(grouped[Direction.debit], month, names),
                planned=flows[PLANNED],
                realized=flows[REALIZED],
            )
        )
    return reports
