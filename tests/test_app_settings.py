"""Settings row seeding against the test database."""

from decimal import Decimal

import pytest

from app.api.app_settings import load_app_settings, seed_app_settings


@pytest.mark.asyncio
async def test_first_load_seeds_from_config(db):
    row = await load_app_settings(db)
    assert row.id == 1
    assert row.default_packaging_cost_krw == Decimal("1000")
    assert row.default_shipping_cost_krw == Decimal("3000")

    again = await load_app_settings(db)
    assert again.id == row.id


@pytest.mark.asyncio
async def test_seed_after_another_writer_returns_existing_row(db, session_factory):
    row = await load_app_settings(db)
    row.default_packaging_cost_krw = Decimal("700")
    await db.commit()

    # a second writer that missed the row tries to insert it again
    async with session_factory() as other:
        seeded = await seed_app_settings(other)
        assert seeded.id == 1
        assert seeded.default_packaging_cost_krw == Decimal("700")

    assert (await load_app_settings(db)).default_packaging_cost_krw == Decimal("700")
