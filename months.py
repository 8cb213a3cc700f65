import re
from datetime import date
from typing import Optional

MONTH_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def parse_month(key: str) -> tuple[int, int]:
    match = MONTH_PATTERN.match(key or "")
    if not match:
        raise ValueError(f"Invalid competence month: {key!r} (expected YYYY-MM)")
    return int(match.group(1)), int(match.group(2))


def validate_month(key: str) -> str:
    parse_month(key)
    return key


def format_month(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def month_index(key: str) -> int:
    """Months elapsed since year 0; ordering and distance use this, not strings."""
    year, month = parse_month(key)
    return year * 12 + (month - 1)


def from_index(index: int) -> str:
    year, month0 = divmod(index, 12)
    return format_month(year, month0 + 1)


def add_months(key: str, count: int) -> str:
    return from_index(month_index(key) + count)


def next_month(key: str) -> str:
    return add_months(key, 1)


def compare(a: str, b: str) -> int:
    diff = month_index(a) - month_index(b)
    return (diff > 0) - (diff < 0)


def earliest(*keys: Optional[str]) -> Optional[str]:
    present = [key for key in keys if key]
    if not present:
        return None
    return min(present, key=month_index)


def year_months(year: int) -> list[str]:
    return [format_month(year, month) for month in range(1, 13)]


def current_month(today: Optional[date] = None) -> str:
    today = today or date.today()
    return format_month(today.year, today.month)
