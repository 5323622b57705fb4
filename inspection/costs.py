from __future__ import annotations

import math
import re
from typing import Any

_CURRENCY_CHARS = re.compile(r"[$\s]")


def parse_cost(value: Any) -> float:
    """Parse a repair cost typed by a user.

    Dots are thousands separators and a comma is the decimal mark, so
    ``"$1.250.000"`` is 1250000 and ``"99,5"`` is 99.5. Anything unreadable
    is 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        try:
            num = float(value)
        except OverflowError:
            return 0.0
    else:
        cleaned = _CURRENCY_CHARS.sub('', str(value))
        cleaned = cleaned.replace('.', '').replace(',', '.')
        try:
            num = float(cleaned)
        except ValueError:
            return 0.0
    if math.isnan(num) or math.isinf(num):
        return 0.0
    return num


def format_cost(value: Any, currency: bool = True) -> str:
    num = parse_cost(value)
    if num == 0:
        return '$0' if currency else '0'
    sign = '-' if num < 0 else ''
    grouped = f"{abs(num):,.0f}".replace(',', '.')
    return f"{sign}{'$' if currency else ''}{grouped}"
