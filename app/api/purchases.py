"""Purchase intake API.

Recording a purchase folds its blended landed cost into every purchased
option's moving-average cost. Purchases are immutable once recorded.
"""

from enum import Enum
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.database import get_db
from app.models import Purchase
from app.schemas import LandedCostOut, PurchaseCreate, PurchaseItemOut, PurchaseOut
from app.services.catalog import CatalogIndex
from app.services.costing import allocate_landed_cost, value_share_breakdown
from app.services.currency import CurrencyConverter, get_converter
from app.services.results import to_krw, to_pct
from app.services.stock_ledger import (
    UnknownOptionError, build_purchase, load_catalog, load_purchases, record_purchase,
)

router = APIRouter(prefix="/purchases", tags=["purchases"])


class PurchaseSort(str, Enum):
    DATE = "date"      # newest first
    COST = "cost"      # grand total, highest first
    ITEMS = "items"    # total quantity, highest first


def purchase_out(purchase: Purchase, index: CatalogIndex, converter: CurrencyConverter) -> PurchaseOut:
    landed = allocate_landed_cost(purchase, converter)
    shares = value_share_breakdown(purchase, converter)
    return PurchaseOut(
        id=purchase.id,
        date=purchase.date,
        shipping_cost_krw=purchase.shipping_cost_krw,
        customs_fee_krw=purchase.customs_fee_krw,
        other_fee_krw=purchase.other_fee_krw,
        created_at=purchase.created_at,
        items=[
            PurchaseItemOut(
                product_id=item.product_id,
                option_id=item.option_id,
                product_name=index.product_name(item.product_id),
                option_name=index.option_name(item.product_id, item.option_id),
                quantity=item.quantity,
                cost_cny_per_item=item.cost_cny_per_item,
                allocated_unit_cost=to_krw(share.actual_unit_cost),
                share_pct=to_pct(share.share_pct),
            )
            for item, share in zip(purchase.items, shares)
        ],
        landed_cost=LandedCostOut(
            items_foreign_total=landed.items_foreign_total,
            items_local_total=to_krw(landed.items_local_total),
            additional_total=to_krw(landed.additional_total),
            grand_total=to_krw(landed.grand_total),
            total_quantity=landed.total_quantity,
            blended_unit_cost=to_krw(landed.blended_unit_cost),
            flags=[f.value for f in landed.flags],
        ),
    )


@router.get("/", response_model=list[PurchaseOut])
async def list_purchases(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    q: str = "",
    sort: PurchaseSort = PurchaseSort.DATE,
    db: AsyncSession = Depends(get_db),
    converter: CurrencyConverter = Depends(get_converter),
):
    """Purchases, optionally filtered by product/option name.

    Cost and item count are derived, so filtering and sorting happen after
    loading.
    """
    index = CatalogIndex(await load_catalog(db))
    out = [purchase_out(p, index, converter) for p in await load_purchases(db)]
    term = q.strip().lower()
    if term:
        out = [
            p for p in out
            if any(term in i.product_name.lower() or term in i.option_name.lower() for i in p.items)
        ]

    if sort == PurchaseSort.COST:
        out.sort(key=lambda p: p.landed_cost.grand_total, reverse=True)
    elif sort == PurchaseSort.ITEMS:
        out.sort(key=lambda p: p.landed_cost.total_quantity, reverse=True)
    else:
        out.sort(key=lambda p: (p.date, p.created_at), reverse=True)
    return out[skip: skip + limit]


@router.post("/", response_model=PurchaseOut, status_code=201)
async def create_purchase(
    data: PurchaseCreate,
    db: AsyncSession = Depends(get_db),
    converter: CurrencyConverter = Depends(get_converter),
):
    purchase = build_purchase(data)
    try:
        await record_purchase(db, purchase, converter)
    except UnknownOptionError as e:
        raise HTTPException(404, str(e))
    index = CatalogIndex(await load_catalog(db))
    return purchase_out(purchase, index, converter)


@router.get("/{purchase_id}", response_model=PurchaseOut)
async def get_purchase(
    purchase_id: UUID,
    db: AsyncSession = Depends(get_db),
    converter: CurrencyConverter = Depends(get_converter),
):
    result = await db.execute(
        select(Purchase).options(selectinload(Purchase.items)).where(Purchase.id == purchase_id)
    )
    purchase = result.scalar_one_or_none()
    if not purchase:
        raise HTTPException(404, "Purchase not found")
    index = CatalogIndex(await load_catalog(db))
    return purchase_out(purchase, index, converter)
