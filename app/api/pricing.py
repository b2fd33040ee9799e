"""Margin calculator API."""

from decimal import ROUND_HALF_UP, Decimal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models import ProductOption
from app.schemas import ApplyPriceRequest, OptionOut, PriceQuoteOut, PriceQuoteRequest
from app.services.currency import CurrencyConverter, get_converter
from app.services.pricing import PricingInputs, PricingSolver
from app.services.stock_ledger import UnknownOptionError, set_recommended_price

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.post("/quote", response_model=PriceQuoteOut)
async def quote(
    data: PriceQuoteRequest,
    db: AsyncSession = Depends(get_db),
    converter: CurrencyConverter = Depends(get_converter),
):
    """Recommended price for a target margin/profit rate, or the margin a
    given price yields."""
    solver = PricingSolver(converter)
    base_cost_cny = data.base_cost_cny
    if data.option_id is not None:
        result = await db.execute(select(ProductOption).where(ProductOption.id == data.option_id))
        option = result.scalar_one_or_none()
        if not option or (data.product_id and option.product_id != data.product_id):
            raise HTTPException(404, "Option not found")
        base_cost_cny = solver.estimated_base_cost_cny(option.cost_of_goods)

    inputs = PricingInputs(
        **data.model_dump(exclude={"mode", "base_cost_cny", "product_id", "option_id"}),
        base_cost_cny=base_cost_cny,
    )
    return solver.solve(data.mode, inputs).to_dict()


@router.post("/apply", response_model=OptionOut)
async def apply_price(data: ApplyPriceRequest, db: AsyncSession = Depends(get_db)):
    """Store a recommended price (rounded to whole won) on an option."""
    price = data.recommended_price.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    try:
        return await set_recommended_price(db, data.product_id, data.option_id, price)
    except UnknownOptionError as e:
        raise HTTPException(404, str(e))
