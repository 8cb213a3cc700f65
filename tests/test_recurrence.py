import pytest
from pydantic import ValidationError

from models import Direction, OccurrenceStatus
from months import month_index
from recurrence import (
    HORIZON_MONTH,
    MAX_OCCURRENCES,
    effective_end_month,
    expand_series,
    expand_series_in,
)
from schemas import DurationMode, SeriesIn, SeriesTemplate


def _template(start: str = "2024-01", amount="1.000,00") -> SeriesTemplate:
    return SeriesTemplate(
        owner_id="u1",
        direction=Direction.debit,
        description="Rent",
        planned_amount=amount,
        account_id="acc-1",
        category_id="cat-1",
        series_start_month=start,
    )


def test_fixed_months_yields_exact_months_sharing_one_series():
    occurrences = expand_series(
        _template(), DurationMode.fixed_months, fixed_months=3
    )
    assert [o.competence_month for o in occurrences] == [
        "2024-01",
        "2024-02",
        "2024-03",
    ]
    assert len({o.series_id for o in occurrences}) == 1
    assert occurrences[0].series_id is not None
    for occ in occurrences:
        assert occ.status == OccurrenceStatus.planned
        assert occ.is_recurring is True
        assert occ.planned_amount == 1000.0
        assert occ.actual_amount == 0.0
        assert occ.series_start_month == "2024-01"
        assert occ.series_end_month == "2024-03"


def test_fixed_months_rolls_over_year():
    occurrences = expand_series(
        _template("2024-11"), DurationMode.fixed_months, fixed_months=3
    )
    assert [o.competence_month for o in occurrences] == [
        "2024-11",
        "2024-12",
        "2025-01",
    ]


def test_infinite_series_respects_horizon_and_cap():
    occurrences = expand_series(_template(), DurationMode.infinite)
    assert len(occurrences) <= MAX_OCCURRENCES
    assert len(occurrences) == 420
    assert all(
        month_index(o.competence_month) <= month_index(HORIZON_MONTH)
        for o in occurrences
    )
    assert occurrences[-1].competence_month == "2058-12"
    assert occurrences[0].series_end_month is None


def test_horizon_reached_before_cap():
    occurrences = expand_series(_template("2050-01"), DurationMode.infinite)
    assert occurrences[-1].competence_month == "2060-12"
    assert len(occurrences) == 132


@pytest.mark.parametrize("count", [0, -4])
def test_non_positive_fixed_months_produce_single_occurrence(count):
    occurrences = expand_series(
        _template("2024-05"), DurationMode.fixed_months, fixed_months=count
    )
    assert [o.competence_month for o in occurrences] == ["2024-05"]


@pytest.mark.parametrize("start", ["2060-12", "2061-03", "2099-01"])
def test_start_at_or_past_horizon_produces_single_occurrence(start):
    occurrences = expand_series(_template(start), DurationMode.infinite)
    assert [o.competence_month for o in occurrences] == [start]


def test_explicit_end_takes_precedence_when_earlier_than_horizon():
    occurrences = expand_series(
        _template("2024-10"), DurationMode.infinite, end_month="2025-02"
    )
    assert [o.competence_month for o in occurrences] == [
        "2024-10",
        "2024-11",
        "2024-12",
        "2025-01",
        "2025-02",
    ]
    assert {o.series_end_month for o in occurrences} == {"2025-02"}


def test_explicit_end_also_bounds_fixed_months():
    end = effective_end_month(
        "2024-01", DurationMode.fixed_months, fixed_months=24, end_month="2024-06"
    )
    assert end == "2024-06"


def test_explicit_end_before_start_yields_start_only():
    occurrences = expand_series(
        _template("2024-10"), DurationMode.until_month, end_month="2024-01"
    )
    assert [o.competence_month for o in occurrences] == ["2024-10"]


def test_configurable_horizon_and_cap():
    occurrences = expand_series(
        _template("2024-01"), DurationMode.infinite, horizon="2024-06"
    )
    assert occurrences[-1].competence_month == "2024-06"

    capped = expand_series(_template("2024-01"), DurationMode.infinite, max_occurrences=5)
    assert [o.competence_month for o in capped][-1] == "2024-05"
    assert len(capped) == 5


def test_each_expansion_gets_a_fresh_series_id():
    first = expand_series(_template(), DurationMode.fixed_months, fixed_months=2)
    second = expand_series(_template(), DurationMode.fixed_months, fixed_months=2)
    assert first[0].series_id != second[0].series_id


def test_expand_series_in_uses_payload_duration():
    data = SeriesIn(
        owner_id="u1",
        direction=Direction.credit,
        description="Salary",
        planned_amount="5.000,00",
        series_start_month="2024-01",
        duration=DurationMode.until_month,
        series_end_month="2024-04",
    )
    occurrences = expand_series_in(data)
    assert len(occurrences) == 4
    assert occurrences[0].planned_amount == 5000.0


def test_series_payload_validation():
    with pytest.raises(ValidationError):
        SeriesIn(
            owner_id="u1",
            direction=Direction.debit,
            description="Gym",
            planned_amount=90,
            series_start_month="2024-01",
            duration=DurationMode.fixed_months,
        )
    with pytest.raises(ValidationError):
        SeriesIn(
            owner_id="u1",
            direction=Direction.debit,
            description="Gym",
            planned_amount=90,
            series_start_month="2024-13",
        )
    with pytest.raises(ValidationError):
        SeriesIn(
            owner_id="u1",
            direction=Direction.debit,
            description="Gym",
            planned_amount=90,
            series_start_month="2024-01",
            duration=DurationMode.until_month,
        )


def test_effective_end_month_picks_earliest_bound():
    assert effective_end_month("2024-01", DurationMode.infinite) == HORIZON_MONTH
    assert (
        effective_end_month("2024-01", DurationMode.infinite, horizon="2030-01")
        == "2030-01"
    )
    assert (
        effective_end_month(
            "2060-06", DurationMode.fixed_months, fixed_months=24, end_month="2070-01"
        )
        == HORIZON_MONTH
    )
    assert (
        effective_end_month("2024-01", DurationMode.until_month, end_month="2024-09")
        == "2024-09"
    )
