"""Result flags shared by the calculation services.

The calculators never raise on degenerate data; they return zeroed figures
tagged with one of these flags so callers can render a placeholder or a
warning instead.
"""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

ZERO = Decimal("0")
HUNDRED = Decimal("100")
PCT_QUANT = Decimal("0.01")


class ResultFlag(str, Enum):
    DEGENERATE_INPUT = "degenerate_input"    # zero quantity / rate >= 100% / no cost
    MISSING_REFERENCE = "missing_reference"  # product or option was deleted
    OVERSOLD = "oversold"                    # sold more than was in stock


def to_krw(value) -> int:
    """Round a KRW amount to whole won for display."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_pct(value) -> float:
    return float(Decimal(str(value)).quantize(PCT_QUANT, rounding=ROUND_HALF_UP))
