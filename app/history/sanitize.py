from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from app.core.config.scoring import get_range
from app.normalize.utils import as_number

# Keeps \t, \n and \r.
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_text(value: Any) -> str:
    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    return _CONTROL_CHARS_RE.sub("", text)


def sanitize_text_list(values: Any) -> list[str]:
    if not isinstance(values, (list, tuple)):
        return []
    cleaned = (sanitize_text(item) for item in values if item is not None)
    return [item for item in cleaned if item.strip()]


def _round_half_up(value: float, places: str = "1") -> Decimal:
    return Decimal(str(value)).quantize(Decimal(places), rounding=ROUND_HALF_UP)


def sanitize_score(value: Any) -> int:
    """Dimension score as an integer in [1, 10].

    Non-numeric input and values above the scale (a sign the provider used a
    different scale) become 1; low values are raised to 1.
    """
    low, high = get_range("dimension")
    number = as_number(value)
    if number is None:
        return int(low)
    if number > high:
        return int(low)
    return max(int(low), int(_round_half_up(number)))


def sanitize_overall_score(value: Any) -> float:
    """Overall score clamped into [1.0, 10.0] with one decimal place."""
    low, high = get_range("overall")
    number = as_number(value)
    if number is None:
        return low
    clamped = min(high, max(low, number))
    return float(_round_half_up(clamped, "0.1"))


def sanitize_ats_score(value: Any) -> int:
    low, high = get_range("ats")
    number = as_number(value)
    if number is None:
        return int(low)
    return int(_round_half_up(min(high, max(low, number))))


def sanitize_years(value: Any) -> int:
    number = as_number(value)
    if number is None or number < 0:
        return 0
    return int(math.floor(number))
