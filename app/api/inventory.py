"""Inventory status API."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.inventory_alert import InventoryAlertService, InventorySort, StockStatus
from app.services.results import to_krw
from app.services.stock_ledger import load_catalog

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("/")
async def list_inventory(
    status: StockStatus | None = None,
    q: str = "",
    sort: InventorySort = InventorySort.NAME,
    db: AsyncSession = Depends(get_db),
):
    """Per-option stock, moving-average cost and valuation.

    ``status=low`` also includes critical rows.
    """
    service = InventoryAlertService()
    products = await load_catalog(db)
    rows = service.report(products, status=status, search=q, sort=sort)
    summary = service.summarize(service.rows(products))
    return {
        "summary": {
            "option_count": summary.option_count,
            "total_units": summary.total_units,
            "total_value": to_krw(summary.total_value),
            "low_stock_count": summary.low_stock_count,
            "out_of_stock_count": summary.out_of_stock_count,
        },
        "items": [r.to_dict() for r in rows],
    }


@router.get("/alerts")
async def stock_alerts(
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    service = InventoryAlertService()
    alerts = service.check_stock_levels(await load_catalog(db))
    return [a.to_dict() for a in alerts[:limit]]
