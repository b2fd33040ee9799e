"""Landed-cost allocation and moving-average cost of goods.

A received purchase is reduced to one blended landed cost per unit
(items converted to KRW plus the shared shipping/customs/other fees, divided
by the total quantity). That blended cost is what gets folded into each
option's weighted-average ``cost_of_goods``.

``value_share_breakdown`` spreads the shared fees by each line's value share
instead. It is informational only and never written back to an option.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Hashable, Iterable, Mapping, Optional, Sequence

from app.services.currency import CurrencyConverter
from app.services.results import HUNDRED, ZERO, ResultFlag


def _dec(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass
class PurchaseLine:
    """One purchased option at its CNY unit price."""
    product_id: Hashable
    option_id: Hashable
    quantity: int
    cost_cny_per_item: Decimal = ZERO


@dataclass
class PurchaseInput:
    """Purchase lines plus the order-level fees (KRW)."""
    items: list[PurchaseLine] = field(default_factory=list)
    shipping_cost_krw: Decimal = ZERO
    customs_fee_krw: Decimal = ZERO
    other_fee_krw: Decimal = ZERO
    date: Optional[date] = None
    id: Optional[Hashable] = None


@dataclass
class LandedCost:
    items_foreign_total: Decimal
    items_local_total: Decimal
    additional_total: Decimal
    grand_total: Decimal
    total_quantity: int
    blended_unit_cost: Decimal
    flags: list[ResultFlag] = field(default_factory=list)

    @property
    def mutates_cost(self) -> bool:
        """Whether this purchase may change an option's cost of goods."""
        return self.total_quantity > 0 and self.blended_unit_cost > 0


@dataclass
class ItemCostShare:
    """Display-only allocation of shared fees to one purchase line."""
    product_id: Hashable
    option_id: Hashable
    quantity: int
    item_local_value: Decimal
    share_pct: Decimal
    additional_cost: Decimal
    actual_unit_cost: Decimal


@dataclass(frozen=True)
class OptionState:
    """The mutable pair an option carries between events."""
    stock: int = 0
    cost_of_goods: Decimal = ZERO

    @property
    def inventory_value(self) -> Decimal:
        return self.cost_of_goods * self.stock


@dataclass(frozen=True)
class SaleApplication:
    stock: int
    oversold: bool

    @property
    def flags(self) -> list[ResultFlag]:
        return [ResultFlag.OVERSOLD] if self.oversold else []


# ── Allocation ──────────────────────────────────────────

def additional_costs(purchase) -> Decimal:
    return (
        _dec(purchase.shipping_cost_krw)
        + _dec(purchase.customs_fee_krw)
        + _dec(purchase.other_fee_krw)
    )


def allocate_landed_cost(purchase, converter: CurrencyConverter) -> LandedCost:
    """Order-level blended landed cost for a purchase.

    Every line of the purchase receives the same per-unit cost regardless of
    its own CNY price. A purchase without quantity yields a zero cost and the
    ``degenerate_input`` flag.
    """
    items = list(purchase.items or [])
    foreign_total = sum(
        (_dec(i.cost_cny_per_item) * int(i.quantity) for i in items), ZERO
    )
    local_total = converter.to_local(foreign_total)
    extra = additional_costs(purchase)
    grand_total = local_total + extra
    total_qty = sum(int(i.quantity) for i in items)

    flags = []
    if total_qty > 0:
        blended = grand_total / total_qty
        if blended <= 0:
            flags.append(ResultFlag.DEGENERATE_INPUT)
    else:
        blended = ZERO
        flags.append(ResultFlag.DEGENERATE_INPUT)

    return LandedCost(
        items_foreign_total=foreign_total,
        items_local_total=local_total,
        additional_total=extra,
        grand_total=grand_total,
        total_quantity=total_qty,
        blended_unit_cost=blended,
        flags=flags,
    )


def value_share_breakdown(purchase, converter: CurrencyConverter) -> list[ItemCostShare]:
    """Allocate shared fees to each line proportionally to its KRW value."""
    items = list(purchase.items or [])
    values = [converter.to_local(_dec(i.cost_cny_per_item) * int(i.quantity)) for i in items]
    items_total = sum(values, ZERO)
    extra = additional_costs(purchase)

    rows = []
    for item, value in zip(items, values):
        qty = int(item.quantity)
        share = value / items_total if items_total > 0 else ZERO
        item_extra = extra * share
        unit = (value + item_extra) / qty if qty > 0 else ZERO
        rows.append(ItemCostShare(
            product_id=item.product_id,
            option_id=item.option_id,
            quantity=qty,
            item_local_value=value,
            share_pct=share * HUNDRED,
            additional_cost=item_extra,
            actual_unit_cost=unit,
        ))
    return rows


# ── Weighted average ───────────────────────────────────

def apply_purchase(option: OptionState, received_qty: int, blended_unit_cost: Decimal) -> OptionState:
    """Fold a received batch into an option's stock and average cost.

    A non-positive unit cost only raises stock; the average is left alone so
    a degenerate batch can't drag it toward zero.
    """
    qty = int(received_qty)
    if qty <= 0:
        return option
    unit_cost = _dec(blended_unit_cost)
    new_stock = option.stock + qty
    if unit_cost <= 0:
        return replace(option, stock=new_stock)

    old_value = option.cost_of_goods * option.stock
    new_value = unit_cost * qty
    if new_stock > 0:
        new_cost = (old_value + new_value) / new_stock
    else:
        new_cost = unit_cost
    return OptionState(stock=new_stock, cost_of_goods=new_cost)


def receive_purchase(
    options: Mapping[Hashable, OptionState],
    purchase,
    converter: CurrencyConverter,
) -> tuple[dict[Hashable, OptionState], LandedCost]:
    """Apply a whole purchase to a set of options keyed by option id.

    Lines for the same option are folded one after another. Lines whose
    option is not in ``options`` are skipped.
    """
    landed = allocate_landed_cost(purchase, converter)
    result = dict(options)
    for item in purchase.items or []:
        state = result.get(item.option_id)
        if state is None:
            continue
        result[item.option_id] = apply_purchase(state, item.quantity, landed.blended_unit_cost)
    return result, landed


def apply_sale(option: OptionState, qty: int) -> SaleApplication:
    """Take sold units out of stock. Stock may go negative."""
    qty = int(qty)
    return SaleApplication(stock=option.stock - qty, oversold=qty > option.stock)


def weighted_average(batches: Iterable[tuple[int, Decimal]]) -> Decimal:
    """Plain value-weighted average over ``(quantity, unit_cost)`` batches."""
    total_qty = 0
    total_value = ZERO
    for qty, cost in batches:
        total_qty += int(qty)
        total_value += _dec(cost) * int(qty)
    return total_value / total_qty if total_qty > 0 else ZERO


def lines_from_dicts(rows: Sequence[dict], default_product_id: Optional[str] = None) -> list[PurchaseLine]:
    """Build purchase lines from loose dicts (CLI / JSON import)."""
    return [
        PurchaseLine(
            product_id=r.get("product_id", default_product_id),
            option_id=r.get("option_id", f"line-{n}"),
            quantity=int(r.get("quantity", 0)),
            cost_cny_per_item=_dec(r.get("cost_cny_per_item", r.get("unit_cost", 0))),
        )
        for n, r in enumerate(rows)
    ]
