"""Dashboard API."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.analytics import DashboardEngine
from app.services.currency import CurrencyConverter, get_converter
from app.services.stock_ledger import load_catalog, load_purchases, load_sales

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary")
async def get_summary(
    db: AsyncSession = Depends(get_db),
    converter: CurrencyConverter = Depends(get_converter),
):
    """KPIs, monthly and cumulative series, channel mix, top products,
    recent activity and stock alerts."""
    products = await load_catalog(db)
    sales = await load_sales(db)
    purchases = await load_purchases(db)

    engine = DashboardEngine(converter=converter)
    report = engine.aggregate(products, sales, purchases)
    return engine.report_to_dict(report)
