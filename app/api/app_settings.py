"""App settings API: sale form defaults."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.database import get_db
from app.models import AppSettingsRow
from app.schemas import AppSettingsOut, AppSettingsUpdate, SaleDefaults
from app.services.profit_calc import SalesChannel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])

SETTINGS_ROW_ID = 1


async def _read_row(db: AsyncSession) -> AppSettingsRow | None:
    result = await db.execute(select(AppSettingsRow).where(AppSettingsRow.id == SETTINGS_ROW_ID))
    return result.scalar_one_or_none()


async def seed_app_settings(db: AsyncSession) -> AppSettingsRow:
    """Insert the settings row from configuration.

    A concurrent writer may insert it first; the primary-key conflict is
    rolled back and the winner's row is returned.
    """
    config = get_settings()
    row = AppSettingsRow(
        id=SETTINGS_ROW_ID,
        default_packaging_cost_krw=config.default_packaging_cost_krw,
        default_shipping_cost_krw=config.default_shipping_cost_krw,
    )
    db.add(row)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info("Settings row already seeded by another writer")
        return (await db.execute(
            select(AppSettingsRow)
            .where(AppSettingsRow.id == SETTINGS_ROW_ID)
            .execution_options(populate_existing=True)
        )).scalar_one()
    return row


async def load_app_settings(db: AsyncSession) -> AppSettingsRow:
    """The settings row, seeded from configuration on first use."""
    row = await _read_row(db)
    if row is None:
        row = await seed_app_settings(db)
    return row


@router.get("/", response_model=AppSettingsOut)
async def get_app_settings(db: AsyncSession = Depends(get_db)):
    return await load_app_settings(db)


@router.put("/", response_model=AppSettingsOut)
async def update_app_settings(data: AppSettingsUpdate, db: AsyncSession = Depends(get_db)):
    row = await load_app_settings(db)
    for key, val in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(row, key, val)
    await db.commit()
    await db.refresh(row)
    return row


@router.get("/sale-defaults", response_model=SaleDefaults)
async def sale_defaults(
    channel: SalesChannel = SalesChannel.SMART_STORE,
    db: AsyncSession = Depends(get_db),
):
    """Values a new sale form opens with for the given channel."""
    row = await load_app_settings(db)
    return SaleDefaults(
        channel=channel,
        channel_fee_pct=channel.default_fee_pct,
        packaging_cost_krw=row.default_packaging_cost_krw,
        shipping_cost_krw=row.default_shipping_cost_krw,
    )
