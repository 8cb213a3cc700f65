import itertools

from models import Direction, OccurrenceStatus
from projection import UNKNOWN_CATEGORY, carryover_before, project
from schemas import OccurrenceOut

_ids = itertools.count(1)


def _occ(month, direction, amount, status=OccurrenceStatus.planned, **extra):
    data = dict(
        id=f"o{next(_ids)}",
        owner_id="u1",
        direction=direction,
        description=extra.pop("description", "Line"),
        category_id=extra.pop("category_id", "cat-1"),
        competence_month=month,
        status=status,
    )
    if status == OccurrenceStatus.done:
        data["actual_amount"] = amount
        data["planned_amount"] = extra.pop("planned_amount", 0)
    else:
        data["planned_amount"] = amount
    data.update(extra)
    return OccurrenceOut(**data)


def test_january_net_and_accumulated_include_history():
    occurrences = [
        _occ("2024-01", Direction.credit, 3000, description="Salary"),
        _occ("2024-01", Direction.debit, 1000, description="Rent"),
        _occ("2023-12", Direction.credit, 700, description="Salary"),
        _occ("2021-05", Direction.debit, 200, description="Rent"),
    ]

    reports = project(occurrences, 2024)

    assert len(reports) == 12
    january = reports[0]
    assert january.month == "2024-01"
    assert january.planned.total_entry == 3000
    assert january.planned.total_exit == 1000
    assert january.planned.net_result == 2000
    assert january.planned.accumulated == 2500
    assert reports[-1].month == "2024-12"
    assert reports[-1].planned.accumulated == 2500


def test_planned_and_realized_are_separate_series():
    occurrences = [
        _occ("2024-02", Direction.debit, 800, description="Rent"),
        _occ(
            "2024-02",
            Direction.debit,
            850,
            status=OccurrenceStatus.done,
            planned_amount=800,
            description="Rent",
        ),
        _occ("2023-06", Direction.credit, 100, status=OccurrenceStatus.done),
    ]

    february = project(occurrences, 2024)[1]

    assert february.planned.total_exit == 800
    assert february.realized.total_exit == 850
    assert february.realized.accumulated == 100 - 850
    assert february.planned.accumulated == -800
    line = february.debit[0].lines[0]
    assert (line.description, line.planned, line.realized) == ("Rent", 800, 850)


def test_late_occurrences_count_as_planned():
    occurrences = [
        _occ("2024-03", Direction.debit, 120, status=OccurrenceStatus.late),
    ]
    march = project(occurrences, 2024)[2]
    assert march.planned.total_exit == 120
    assert march.realized.total_exit == 0


def test_result_does_not_depend_on_input_order():
    occurrences = [
        _occ("2024-01", Direction.credit, 0.1, description="A"),
        _occ("2024-01", Direction.credit, 0.2, description="B"),
        _occ("2024-01", Direction.credit, 0.3, description="C"),
        _occ("2023-11", Direction.debit, 1e16, description="Big"),
        _occ("2023-12", Direction.credit, 1e16, description="Big"),
        _occ("2024-05", Direction.debit, 33.33, category_id="cat-2"),
    ]

    expected = project(occurrences, 2024)
    assert project(list(reversed(occurrences)), 2024) == expected
    assert project(occurrences[3:] + occurrences[:3], 2024) == expected
    assert expected[0].planned.total_entry == 0.6


def test_categories_without_amounts_in_year_are_omitted():
    occurrences = [
        _occ("2024-01", Direction.debit, 50, category_id="cat-food"),
        _occ("2024-01", Direction.debit, 0, category_id="cat-empty"),
        _occ("2025-01", Direction.debit, 75, category_id="cat-next-year"),
    ]
    reports = project(occurrences, 2024)
    assert [g.category_id for g in reports[0].debit] == ["cat-food"]
    # groups are listed for every month of the year
    assert reports[6].debit[0].planned == 0
    assert reports[0].credit == []


def test_category_names_and_fallback():
    occurrences = [
        _occ("2024-04", Direction.debit, 10, category_id="cat-b"),
        _occ("2024-04", Direction.debit, 20, category_id="cat-a"),
        _occ("2024-04", Direction.debit, 30, category_id=None),
    ]
    april = project(
        occurrences, 2024, category_names={"cat-a": "Rent", "cat-b": "Fuel"}
    )[3]
    assert [g.name for g in april.debit] == ["Fuel", UNKNOWN_CATEGORY, "Rent"]
    assert [g.planned for g in april.debit] == [10, 30, 20]


def test_carryover_before_splits_series():
    occurrences = [
        _occ("2023-01", Direction.credit, 500),
        _occ("2023-02", Direction.debit, 40, status=OccurrenceStatus.done),
        _occ("2024-01", Direction.credit, 999),
    ]
    carry = carryover_before(occurrences, "2024-01")
    assert carry.planned == 500
    assert carry.realized == -40


def test_totals_are_exact_in_cents():
    occurrences = [
        _occ("2024-01", Direction.credit, 0.3, description="Cashback"),
        _occ("2024-01", Direction.debit, 0.1, description="Fee"),
        _occ("2023-11", Direction.credit, 0.1, description="Cashback"),
        _occ("2023-12", Direction.credit, 0.2, description="Cashback"),
    ]

    january = project(occurrences, 2024)[0]

    assert january.planned.net_result == 0.2
    assert january.planned.accumulated == 0.5
    assert carryover_before(occurrences, "2024-01").planned == 0.3
