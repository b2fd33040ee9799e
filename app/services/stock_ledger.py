"""Applies purchase and sale events to option rows.

Each event runs in one transaction and locks the touched option rows with
``SELECT ... FOR UPDATE`` before reading ``stock``/``cost_of_goods``, so two
writers on the same option serialize instead of losing an update to the
weighted average. Options are independent; nothing locks across them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models import Product, ProductOption, Purchase, PurchaseItem, Sale
from app.services.costing import (
    LandedCost, OptionState, SaleApplication, allocate_landed_cost, apply_purchase, apply_sale,
)
from app.services.currency import CurrencyConverter

logger = logging.getLogger(__name__)


class UnknownOptionError(LookupError):
    """Event references a product/option pair that does not exist."""

    def __init__(self, product_id, option_id):
        self.product_id = product_id
        self.option_id = option_id
        super().__init__(f"Option {option_id} of product {product_id} not found")


@dataclass
class OptionChange:
    option_id: UUID
    before: OptionState
    after: OptionState


async def _lock_options(
    db: AsyncSession, pairs: Iterable[tuple[UUID, UUID]],
) -> dict[UUID, ProductOption]:
    pairs = list(pairs)
    ids = {option_id for _, option_id in pairs}
    result = await db.execute(
        select(ProductOption)
        .where(ProductOption.id.in_(ids))
        .order_by(ProductOption.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    options = {o.id: o for o in result.scalars().all()}
    for product_id, option_id in pairs:
        option = options.get(option_id)
        if option is None or option.product_id != product_id:
            raise UnknownOptionError(product_id, option_id)
    return options


async def record_purchase(
    db: AsyncSession,
    purchase: Purchase,
    converter: CurrencyConverter,
) -> tuple[LandedCost, list[OptionChange]]:
    """Persist a purchase and fold its blended landed cost into each option."""
    items = list(purchase.items)
    try:
        options = await _lock_options(db, ((i.product_id, i.option_id) for i in items))
    except UnknownOptionError:
        await db.rollback()
        raise

    landed = allocate_landed_cost(purchase, converter)
    if not landed.mutates_cost:
        logger.warning(
            "Purchase with total quantity %s and blended cost %s leaves cost of goods unchanged",
            landed.total_quantity, landed.blended_unit_cost,
        )

    changes = []
    for item in items:
        option = options[item.option_id]
        before = OptionState(stock=option.stock, cost_of_goods=option.cost_of_goods or Decimal("0"))
        after = apply_purchase(before, item.quantity, landed.blended_unit_cost)
        option.stock = after.stock
        option.cost_of_goods = after.cost_of_goods
        changes.append(OptionChange(option_id=option.id, before=before, after=after))
        logger.info(
            "Option %s received %s units: stock %s -> %s, cost %s -> %s",
            option.id, item.quantity, before.stock, after.stock,
            before.cost_of_goods, after.cost_of_goods,
        )

    db.add(purchase)
    await db.commit()
    await db.refresh(purchase, attribute_names=["items"])
    return landed, changes


async def record_sale(db: AsyncSession, sale: Sale) -> SaleApplication:
    """Persist a sale, snapshot the option's cost onto it and take stock out."""
    try:
        options = await _lock_options(db, [(sale.product_id, sale.option_id)])
    except UnknownOptionError:
        await db.rollback()
        raise
    option = options[sale.option_id]

    sale.cost_of_goods_at_sale = option.cost_of_goods or Decimal("0")
    applied = apply_sale(OptionState(stock=option.stock, cost_of_goods=option.cost_of_goods), sale.quantity)
    if applied.oversold:
        logger.warning(
            "Option %s oversold: %s sold with %s in stock", option.id, sale.quantity, option.stock,
        )
    option.stock = applied.stock

    db.add(sale)
    await db.commit()
    await db.refresh(sale)
    return applied


async def set_recommended_price(
    db: AsyncSession, product_id: UUID, option_id: UUID, price: Optional[Decimal],
) -> ProductOption:
    """Write back a recommended price. Never touches stock or cost."""
    options = await _lock_options(db, [(product_id, option_id)])
    option = options[option_id]
    option.recommended_price = price
    await db.commit()
    await db.refresh(option)
    logger.info("Option %s recommended price set to %s", option_id, price)
    return option


async def load_catalog(db: AsyncSession) -> list[Product]:
    result = await db.execute(
        select(Product).options(selectinload(Product.options)).order_by(Product.created_at)
    )
    return list(result.scalars().all())


async def load_purchases(db: AsyncSession) -> list[Purchase]:
    result = await db.execute(
        select(Purchase)
        .options(selectinload(Purchase.items))
        .order_by(Purchase.date, Purchase.created_at)
    )
    return list(result.scalars().all())


async def load_sales(db: AsyncSession) -> list[Sale]:
    result = await db.execute(select(Sale).order_by(Sale.date, Sale.created_at))
    return list(result.scalars().all())


def build_purchase(data) -> Purchase:
    """ORM purchase from a validated create payload."""
    return Purchase(
        date=data.date,
        shipping_cost_krw=data.shipping_cost_krw,
        customs_fee_krw=data.customs_fee_krw,
        other_fee_krw=data.other_fee_krw,
        items=[
            PurchaseItem(
                position=n,
                product_id=i.product_id,
                option_id=i.option_id,
                quantity=i.quantity,
                cost_cny_per_item=i.cost_cny_per_item,
            )
            for n, i in enumerate(data.items)
        ],
    )
