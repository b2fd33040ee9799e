"""Per-sale profit and margin calculation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Callable, Hashable, Iterable, Optional

from app.config import get_settings
from app.services.results import HUNDRED, ZERO, ResultFlag, to_krw, to_pct


class SalesChannel(str, Enum):
    SMART_STORE = "smart_store"
    COUPANG = "coupang"
    OWN_MALL = "own_mall"
    OTHER = "other"

    @property
    def default_fee_pct(self) -> Decimal:
        fees = get_settings().channel_fees
        return Decimal(str(fees.get(self.value, fees.get("other", 0))))


@dataclass
class SaleInput:
    """Sale fields needed for profit; per-unit costs in KRW."""
    quantity: int
    sale_price_per_item: Decimal
    channel_fee_pct: Decimal = ZERO
    packaging_cost_krw: Decimal = ZERO
    shipping_cost_krw: Decimal = ZERO
    channel: SalesChannel = SalesChannel.OTHER
    date: Optional[date] = None
    product_id: Optional[Hashable] = None
    option_id: Optional[Hashable] = None
    cost_of_goods_at_sale: Optional[Decimal] = None
    id: Optional[Hashable] = None


@dataclass
class SaleProfit:
    """Profit breakdown for one sale."""
    revenue: Decimal
    cost_of_goods_sold: Decimal
    channel_fee: Decimal
    total_packaging: Decimal
    total_shipping: Decimal
    total_cost: Decimal
    profit: Decimal
    margin_rate: Decimal
    net_margin_rate: Decimal
    flags: list[ResultFlag] = field(default_factory=list)

    @property
    def is_profitable(self) -> bool:
        return self.profit > 0

    @property
    def is_missing_reference(self) -> bool:
        return ResultFlag.MISSING_REFERENCE in self.flags

    def to_dict(self) -> dict:
        return {
            "revenue": to_krw(self.revenue),
            "cost_of_goods_sold": to_krw(self.cost_of_goods_sold),
            "channel_fee": to_krw(self.channel_fee),
            "total_packaging": to_krw(self.total_packaging),
            "total_shipping": to_krw(self.total_shipping),
            "total_cost": to_krw(self.total_cost),
            "profit": to_krw(self.profit),
            "margin_rate": to_pct(self.margin_rate),
            "net_margin_rate": to_pct(self.net_margin_rate),
            "flags": [f.value for f in self.flags],
        }


def _dec(value) -> Decimal:
    if value is None:
        return ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


def _zeroed(flag: ResultFlag) -> SaleProfit:
    return SaleProfit(
        revenue=ZERO, cost_of_goods_sold=ZERO, channel_fee=ZERO,
        total_packaging=ZERO, total_shipping=ZERO, total_cost=ZERO,
        profit=ZERO, margin_rate=ZERO, net_margin_rate=ZERO, flags=[flag],
    )


def cost_basis(sale, option) -> Optional[Decimal]:
    """Cost of goods to use for a sale.

    The snapshot stored on the sale wins; rows recorded before snapshots
    existed fall back to the option's current cost. ``None`` when the option
    is gone and there is no snapshot.
    """
    snapshot = getattr(sale, "cost_of_goods_at_sale", None)
    if snapshot is not None:
        return _dec(snapshot)
    if option is None:
        return None
    return _dec(option.cost_of_goods)


class ProfitCalculator:
    """Sale profitability: revenue minus cost of goods, channel fee,
    packaging and shipping."""

    @staticmethod
    def calculate(sale, cost_of_goods: Optional[Decimal]) -> SaleProfit:
        """Calculate profit for a single sale.

        ``cost_of_goods`` is the per-unit cost at the time of sale. ``None``
        means the sold option no longer exists; the result is zeroed.
        """
        if cost_of_goods is None:
            return _zeroed(ResultFlag.MISSING_REFERENCE)

        qty = int(sale.quantity)
        revenue = qty * _dec(sale.sale_price_per_item)
        cogs = qty * _dec(cost_of_goods)
        channel_fee = revenue * (_dec(sale.channel_fee_pct) / HUNDRED)
        packaging = _dec(sale.packaging_cost_krw) * qty
        shipping = _dec(sale.shipping_cost_krw) * qty

        total_cost = cogs + channel_fee + packaging + shipping
        profit = revenue - total_cost

        margin = profit / revenue * HUNDRED if revenue else ZERO
        net_revenue = revenue - channel_fee
        net_margin = profit / net_revenue * HUNDRED if net_revenue else ZERO

        flags = [] if qty > 0 else [ResultFlag.DEGENERATE_INPUT]
        return SaleProfit(
            revenue=revenue,
            cost_of_goods_sold=cogs,
            channel_fee=channel_fee,
            total_packaging=packaging,
            total_shipping=shipping,
            total_cost=total_cost,
            profit=profit,
            margin_rate=margin,
            net_margin_rate=net_margin,
            flags=flags,
        )

    @staticmethod
    def for_sale(sale, option) -> SaleProfit:
        """Profit for a stored sale against its (possibly deleted) option."""
        if option is None:
            return _zeroed(ResultFlag.MISSING_REFERENCE)
        return ProfitCalculator.calculate(sale, cost_basis(sale, option))

    @staticmethod
    def batch_calculate(
        sales: Iterable,
        find_option: Callable[[Hashable, Hashable], Optional[object]],
    ) -> list[SaleProfit]:
        """Calculate profit for many sales, resolving options by id."""
        return [
            ProfitCalculator.for_sale(s, find_option(s.product_id, s.option_id))
            for s in sales
        ]


compute_sale_profit = ProfitCalculator.calculate
