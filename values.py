import math
import re
from decimal import Decimal
from typing import Optional, Union

_ALLOWED = re.compile(r"[^0-9,.\-]")

AmountInput = Union[int, float, Decimal, str, None]


def _strip_thousands(clean: str) -> str:
    """Drop thousands separators and normalize the decimal mark to ``.``.

    Whichever separator appears last is the decimal mark; every other
    ``.``/``,`` is a thousands separator.
    """
    last_sep = max(clean.rfind("."), clean.rfind(","))
    if last_sep == -1:
        return clean
    integer_part = clean[:last_sep].replace(".", "").replace(",", "")
    fraction = clean[last_sep + 1 :]
    return f"{integer_part}.{fraction}"


def parse_amount(value: AmountInput) -> float:
    """Normalize loosely formatted numeric input into a finite float.

    ``"R$ 1.234,56"`` -> ``1234.56``. Anything unparseable becomes ``0.0``;
    this function never raises.
    """
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        try:
            number = float(value)
        except (OverflowError, ValueError):
            return 0.0
        return number if math.isfinite(number) else 0.0
    if not isinstance(value, str):
        return 0.0

    clean = _ALLOWED.sub("", value)
    if not clean:
        return 0.0
    clean = _strip_thousands(clean)
    try:
        number = float(clean)
    except ValueError:
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def parse_optional_amount(value: AmountInput) -> Optional[float]:
    if value is None:
        return None
    return parse_amount(value)
