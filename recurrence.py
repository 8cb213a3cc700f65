import logging
import uuid
from typing import Optional

from models import OccurrenceStatus
from months import add_months, earliest, month_index, next_month
from schemas import DurationMode, OccurrenceIn, SeriesIn, SeriesTemplate

logger = logging.getLogger(__name__)

HORIZON_MONTH = "2060-12"
MAX_OCCURRENCES = 420


def effective_end_month(
    start_month: str,
    duration: DurationMode,
    *,
    fixed_months: Optional[int] = None,
    end_month: Optional[str] = None,
    horizon: str = HORIZON_MONTH,
) -> str:
    if duration == DurationMode.fixed_months:
        count = max(int(fixed_months or 0), 1)
        mode_end = add_months(start_month, count - 1)
    else:
        mode_end = horizon
    bounds = [mode_end, horizon]
    if end_month:
        bounds.append(end_month)
    return min(bounds, key=month_index)


def declared_end_month(
    start_month: str,
    duration: DurationMode,
    *,
    fixed_months: Optional[int] = None,
    end_month: Optional[str] = None,
) -> Optional[str]:
    """End month as the user defined it; ``None`` means open-ended."""
    if duration == DurationMode.fixed_months:
        count = max(int(fixed_months or 0), 1)
        return earliest(add_months(start_month, count - 1), end_month)
    return end_month


def expand_series(
    template: SeriesTemplate,
    duration: DurationMode = DurationMode.infinite,
    *,
    fixed_months: Optional[int] = None,
    end_month: Optional[str] = None,
    horizon: str = HORIZON_MONTH,
    max_occurrences: int = MAX_OCCURRENCES,
    series_id: Optional[str] = None,
) -> list[OccurrenceIn]:
    start = template.series_start_month
    end = effective_end_month(
        start,
        duration,
        fixed_months=fixed_months,
        end_month=end_month,
        horizon=horizon,
    )
    series_id = series_id or str(uuid.uuid4())
    declared_end = declared_end_month(
        start, duration, fixed_months=fixed_months, end_month=end_month
    )

    occurrences: list[OccurrenceIn] = []
    current = start
    max_iterations = max(max_occurrences, 1)
    while len(occurrences) < max_iterations:
        occurrences.append(
            OccurrenceIn(
                owner_id=template.owner_id,
                direction=template.direction,
                description=template.description,
                account_id=template.account_id,
                category_id=template.category_id,
                planned_amount=template.planned_amount,
                actual_amount=0.0,
                competence_month=current,
                status=OccurrenceStatus.planned,
                is_recurring=True,
                series_id=series_id,
                series_start_month=start,
                series_end_month=declared_end,
            )
        )
        if month_index(current) >= month_index(end):
            break
        current = next_month(current)

    if month_index(current) < month_index(end):
        logger.debug(
            f"series_truncated: series_id={series_id} start={start} "
            f"last={current} end={end} cap={max_occurrences}"
        )
    return occurrences


def expand_series_in(
    data: SeriesIn,
    *,
    horizon: str = HORIZON_MONTH,
    max_occurrences: int = MAX_OCCURRENCES,
) -> list[OccurrenceIn]:
    return expand_series(
        data,
        data.duration,
        fixed_months=data.fixed_months,
        end_month=data.series_end_month,
        horizon=horizon,
        max_occurrences=max_occurrences,
    )
