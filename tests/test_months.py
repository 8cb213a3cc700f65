from datetime import date

import pytest

from months import (
    add_months,
    compare,
    current_month,
    earliest,
    month_index,
    next_month,
    validate_month,
    year_months,
)


def test_month_arithmetic_rolls_over_years():
    assert next_month("2024-12") == "2025-01"
    assert add_months("2024-01", -1) == "2023-12"
    assert add_months("2024-11", 14) == "2026-01"
    assert add_months("2024-03", -15) == "2022-12"


def test_compare_uses_calendar_order():
    assert compare("2024-09", "2024-10") == -1
    assert compare("2025-01", "2024-12") == 1
    assert compare("2024-06", "2024-06") == 0
    assert month_index("2024-01") - month_index("2023-12") == 1


@pytest.mark.parametrize("bad", ["2024-13", "2024-00", "2024-1", "24-01", "", "2024/01"])
def test_validate_month_rejects_malformed_keys(bad):
    with pytest.raises(ValueError):
        validate_month(bad)


def test_ranges_and_helpers():
    assert year_months(2024)[0] == "2024-01"
    assert year_months(2024)[-1] == "2024-12"
    assert earliest("2060-12", None, "2030-05") == "2030-05"
    assert earliest(None) is None
    assert current_month(date(2024, 7, 31)) == "2024-07"
