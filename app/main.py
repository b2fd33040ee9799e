"""Margin-Ledger: FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.database import async_session, engine, Base
from app.api import products, purchases, sales, inventory
from app.api import dashboard, pricing, app_settings
from app.api.app_settings import load_app_settings

VERSION = "1.0.0"

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables on startup (use Alembic in production)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    # Seed sale form defaults before the first request needs them
    async with async_session() as db:
        await load_app_settings(db)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=VERSION,
    description="Inventory and margin tracker for small import sellers: "
                "moving-average cost, landed-cost allocation, per-sale profit, "
                "dashboard statistics and a pricing calculator",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(products.router, prefix="/api/v1")
app.include_router(purchases.router, prefix="/api/v1")
app.include_router(sales.router, prefix="/api/v1")
app.include_router(inventory.router, prefix="/api/v1")
app.include_router(dashboard.router, prefix="/api/v1")
app.include_router(pricing.router, prefix="/api/v1")
app.include_router(app_settings.router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "ok", "service": settings.app_name, "version": VERSION}
