"""Fixed-rate currency conversion for purchase costs.

Purchase prices are quoted in CNY (supplier currency) and everything else is
kept in KRW. The rate is a deployment setting, not a live quote.
"""

from decimal import Decimal
from typing import Optional

from app.config import get_settings


class CurrencyConverter:
    """CNY -> KRW converter with an injected rate."""

    def __init__(self, rate: Optional[Decimal] = None):
        if rate is None:
            rate = get_settings().cny_to_krw_rate
        self.rate = Decimal(str(rate))
        if self.rate <= 0:
            raise ValueError(f"Exchange rate must be positive, got {self.rate}")

    def to_local(self, foreign_amount: Decimal) -> Decimal:
        """Convert a CNY amount to KRW. Not rounded."""
        return Decimal(str(foreign_amount)) * self.rate

    def to_foreign(self, local_amount: Decimal) -> Decimal:
        """Convert a KRW amount back to CNY. Not rounded."""
        return Decimal(str(local_amount)) / self.rate

    def __repr__(self) -> str:
        return f"CurrencyConverter(rate={self.rate})"


def get_converter() -> CurrencyConverter:
    """Dependency: converter built from the configured rate."""
    return CurrencyConverter(get_settings().cny_to_krw_rate)
