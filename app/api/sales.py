"""Sales intake API."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.app_settings import load_app_settings
from app.database import get_db
from app.models import Sale
from app.schemas import SaleCreate, SaleOut, SaleProfitOut
from app.services.catalog import CatalogIndex
from app.services.profit_calc import ProfitCalculator, SalesChannel
from app.services.stock_ledger import UnknownOptionError, load_catalog, record_sale

router = APIRouter(prefix="/sales", tags=["sales"])


def sale_out(sale: Sale, index: CatalogIndex, oversold: bool = False) -> SaleOut:
    option = index.option(sale.product_id, sale.option_id)
    profit = ProfitCalculator.for_sale(sale, option)
    return SaleOut(
        id=sale.id,
        date=sale.date,
        product_id=sale.product_id,
        option_id=sale.option_id,
        product_name=index.product_name(sale.product_id),
        option_name=index.option_name(sale.product_id, sale.option_id),
        quantity=sale.quantity,
        sale_price_per_item=sale.sale_price_per_item,
        channel=getattr(sale.channel, "value", sale.channel),
        channel_fee_pct=sale.channel_fee_pct,
        packaging_cost_krw=sale.packaging_cost_krw,
        shipping_cost_krw=sale.shipping_cost_krw,
        cost_of_goods_at_sale=sale.cost_of_goods_at_sale,
        profit=SaleProfitOut(**profit.to_dict()),
        oversold=oversold,
    )


@router.get("/", response_model=list[SaleOut])
async def list_sales(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    channel: SalesChannel | None = None,
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Sale)
    if channel:
        stmt = stmt.where(Sale.channel == channel.value)
    stmt = stmt.order_by(Sale.date.desc(), Sale.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(stmt)
    index = CatalogIndex(await load_catalog(db))
    return [sale_out(s, index) for s in result.scalars().all()]


@router.post("/", response_model=SaleOut, status_code=201)
async def create_sale(data: SaleCreate, db: AsyncSession = Depends(get_db)):
    defaults = await load_app_settings(db)
    fee_pct = data.channel_fee_pct
    if fee_pct is None:
        fee_pct = data.channel.default_fee_pct

    sale = Sale(
        date=data.date,
        product_id=data.product_id,
        option_id=data.option_id,
        quantity=data.quantity,
        sale_price_per_item=data.sale_price_per_item,
        channel=data.channel.value,
        channel_fee_pct=fee_pct,
        packaging_cost_krw=(
            defaults.default_packaging_cost_krw
            if data.packaging_cost_krw is None else data.packaging_cost_krw
        ),
        shipping_cost_krw=(
            defaults.default_shipping_cost_krw
            if data.shipping_cost_krw is None else data.shipping_cost_krw
        ),
    )
    try:
        applied = await record_sale(db, sale)
    except UnknownOptionError as e:
        raise HTTPException(404, str(e))
    index = CatalogIndex(await load_catalog(db))
    return sale_out(sale, index, oversold=applied.oversold)


@router.get("/{sale_id}", response_model=SaleOut)
async def get_sale(sale_id: UUID, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Sale).where(Sale.id == sale_id))
    sale = result.scalar_one_or_none()
    if not sale:
        raise HTTPException(404, "Sale not found")
    index = CatalogIndex(await load_catalog(db))
    return sale_out(sale, index)
