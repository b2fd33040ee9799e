"""Margin calculator: solve a sale price from a target rate, or run a given
price forward to the margin it produces."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

from app.services.currency import CurrencyConverter
from app.services.results import HUNDRED, ZERO, ResultFlag, to_krw, to_pct

ONE = Decimal("1")


class PricingMode(str, Enum):
    MARGIN = "margin"    # target margin rate (revenue based)
    PROFIT = "profit"    # target profit rate (cost based)
    DIRECT = "direct"    # caller-supplied price


@dataclass
class PricingInputs:
    """Calculator inputs. ``base_cost_cny`` is per unit; fees are per batch,
    packaging and domestic shipping per unit (KRW)."""
    base_cost_cny: Decimal = ZERO
    quantity: int = 1
    shipping_cost_krw: Decimal = ZERO
    customs_fee_krw: Decimal = ZERO
    other_fee_krw: Decimal = ZERO
    channel_fee_pct: Decimal = ZERO
    packaging_cost_krw: Decimal = ZERO
    domestic_shipping_krw: Decimal = ZERO
    target_margin_pct: Decimal = Decimal("50")
    target_profit_pct: Decimal = Decimal("30")
    custom_price: Decimal = ZERO


@dataclass
class PriceQuote:
    mode: PricingMode
    base_cost_krw: Decimal
    actual_cost_per_item: Decimal
    total_cost_per_item: Decimal
    recommended_price: Decimal
    channel_fee: Decimal
    net_revenue: Decimal
    net_profit: Decimal
    actual_margin_pct: Decimal
    gross_margin_pct: Decimal
    actual_profit_pct: Decimal
    total_investment: Decimal
    break_even_quantity: Optional[Decimal]
    total_revenue: Decimal
    total_net_profit: Decimal
    roi_pct: Decimal
    flags: list[ResultFlag] = field(default_factory=list)

    @property
    def is_profitable(self) -> bool:
        return self.net_profit > 0

    @property
    def can_recover_investment(self) -> bool:
        """Whether selling the whole batch pays back the investment."""
        return self.break_even_quantity is not None and self.total_net_profit >= 0

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "base_cost_krw": to_krw(self.base_cost_krw),
            "actual_cost_per_item": to_krw(self.actual_cost_per_item),
            "total_cost_per_item": to_krw(self.total_cost_per_item),
            "recommended_price": to_krw(self.recommended_price),
            "channel_fee": to_krw(self.channel_fee),
            "net_revenue": to_krw(self.net_revenue),
            "net_profit": to_krw(self.net_profit),
            "actual_margin_pct": to_pct(self.actual_margin_pct),
            "gross_margin_pct": to_pct(self.gross_margin_pct),
            "actual_profit_pct": to_pct(self.actual_profit_pct),
            "total_investment": to_krw(self.total_investment),
            "break_even_quantity": (
                to_pct(self.break_even_quantity) if self.break_even_quantity is not None else None
            ),
            "total_revenue": to_krw(self.total_revenue),
            "total_net_profit": to_krw(self.total_net_profit),
            "roi_pct": to_pct(self.roi_pct),
            "flags": [f.value for f in self.flags],
        }


class PricingSolver:
    """Price recommendation using the same cost composition as a sale."""

    def __init__(self, converter: Optional[CurrencyConverter] = None):
        self.converter = converter or CurrencyConverter()

    @staticmethod
    def price_for_margin(total_cost_per_item: Decimal, margin_pct: Decimal, fee_pct: Decimal) -> Decimal:
        """Price whose margin on net-of-fee revenue equals ``margin_pct``.

        Both rates must be below 100.
        """
        before_fee = total_cost_per_item / (ONE - margin_pct / HUNDRED)
        return before_fee / (ONE - fee_pct / HUNDRED)

    @staticmethod
    def price_for_profit(total_cost_per_item: Decimal, profit_pct: Decimal, fee_pct: Decimal) -> Decimal:
        """Price whose net profit over total cost equals ``profit_pct``."""
        before_fee = total_cost_per_item * (ONE + profit_pct / HUNDRED)
        return before_fee / (ONE - fee_pct / HUNDRED)

    def solve(self, mode: PricingMode, inputs: PricingInputs) -> PriceQuote:
        mode = PricingMode(mode)
        qty = int(inputs.quantity)
        fee_pct = Decimal(str(inputs.channel_fee_pct))
        flags: list[ResultFlag] = []

        base_cost_krw = self.converter.to_local(inputs.base_cost_cny)
        total_purchase_cost = (
            base_cost_krw * max(qty, 0)
            + Decimal(str(inputs.shipping_cost_krw))
            + Decimal(str(inputs.customs_fee_krw))
            + Decimal(str(inputs.other_fee_krw))
        )
        if qty > 0:
            actual_cost = total_purchase_cost / qty
        else:
            actual_cost = ZERO
            flags.append(ResultFlag.DEGENERATE_INPUT)

        selling_cost = Decimal(str(inputs.packaging_cost_krw)) + Decimal(str(inputs.domestic_shipping_krw))
        total_cost_per_item = actual_cost + selling_cost

        price = ZERO
        if fee_pct >= HUNDRED and mode != PricingMode.DIRECT:
            flags.append(ResultFlag.DEGENERATE_INPUT)
        elif mode == PricingMode.MARGIN:
            margin_pct = Decimal(str(inputs.target_margin_pct))
            if margin_pct >= HUNDRED:
                flags.append(ResultFlag.DEGENERATE_INPUT)
            else:
                price = self.price_for_margin(total_cost_per_item, margin_pct, fee_pct)
        elif mode == PricingMode.PROFIT:
            price = self.price_for_profit(
                total_cost_per_item, Decimal(str(inputs.target_profit_pct)), fee_pct,
            )
        else:
            price = Decimal(str(inputs.custom_price))

        channel_fee = price * (fee_pct / HUNDRED)
        net_revenue = price - channel_fee
        net_profit = net_revenue - total_cost_per_item

        actual_margin = net_profit / net_revenue * HUNDRED if net_revenue else ZERO
        gross_margin = net_profit / price * HUNDRED if price else ZERO
        actual_profit = net_profit / total_cost_per_item * HUNDRED if total_cost_per_item else ZERO

        total_investment = total_purchase_cost
        break_even = total_investment / net_revenue if net_revenue > 0 else None

        batch_qty = max(qty, 0)
        total_revenue = price * batch_qty
        total_fee = total_revenue * (fee_pct / HUNDRED)
        total_selling_cost = selling_cost * batch_qty
        total_net_profit = total_revenue - total_fee - total_purchase_cost - total_selling_cost
        roi = total_net_profit / total_investment * HUNDRED if total_investment else ZERO

        return PriceQuote(
            mode=mode,
            base_cost_krw=base_cost_krw,
            actual_cost_per_item=actual_cost,
            total_cost_per_item=total_cost_per_item,
            recommended_price=price,
            channel_fee=channel_fee,
            net_revenue=net_revenue,
            net_profit=net_profit,
            actual_margin_pct=actual_margin,
            gross_margin_pct=gross_margin,
            actual_profit_pct=actual_profit,
            total_investment=total_investment,
            break_even_quantity=break_even,
            total_revenue=total_revenue,
            total_net_profit=total_net_profit,
            roi_pct=roi,
            flags=flags,
        )

    def estimated_base_cost_cny(self, cost_of_goods_krw: Decimal) -> Decimal:
        """Back out a per-unit CNY cost from an option's landed KRW cost,
        used to pre-fill the calculator for an existing option."""
        return self.converter.to_foreign(cost_of_goods_krw)
