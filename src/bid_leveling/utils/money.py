"""Money helpers for deterministic rounding, parsing, and display."""

from __future__ import annotations

import math
import re
from decimal import Decimal, ROUND_HALF_UP


CENT = Decimal("0.01")
_MONEY_NOISE_RE = re.compile(r"[$,\s]")


def to_decimal(value: float | int | str | Decimal | None) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: float | int | str | Decimal | None) -> float:
    return float(to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up, unlike builtin round()."""
    return int(to_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_money(value: str | float | int | None) -> float | None:
    """Parse user-entered money such as ``"$1,250.00"``; blanks and junk give None."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    normalized = _MONEY_NOISE_RE.sub("", value).strip()
    if not normalized:
        return None
    try:
        parsed = float(normalized)
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def format_currency(value: float | None) -> str:
    if value is None or not math.isfinite(value):
        return "--"
    rounded = round_half_up(value)
    sign = "-" if rounded < 0 else ""
    return f"{sign}${abs(rounded):,}"


def format_percent(value: float | None) -> str:
    if value is None or not math.isfinite(value):
        return "--"
    return f"{value:.1f}%"
