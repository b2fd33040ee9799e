"""Ledger data models."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Uuid,
)
from sqlalchemy.orm import relationship

from app.database import Base
from app.services.profit_calc import SalesChannel


def utcnow():
    return datetime.now(timezone.utc)


# Unrounded per-unit cost; averaged again on every receipt
COST_NUMERIC = Numeric(18, 6)
MONEY_NUMERIC = Numeric(14, 2)


class Product(Base):
    """Catalog entry owning its options."""
    __tablename__ = "products"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(300), nullable=False)
    image_url = Column(String(1000), default="")
    base_cost_cny = Column(MONEY_NUMERIC, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    options = relationship(
        "ProductOption",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductOption.position",
    )


class ProductOption(Base):
    """Sellable variant (SKU) with its own stock and moving-average cost."""
    __tablename__ = "product_options"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, default=0)
    name = Column(String(200), nullable=False)
    sku = Column(String(100), default="", index=True)
    stock = Column(Integer, default=0, nullable=False)
    cost_of_goods = Column(COST_NUMERIC, default=0, nullable=False)
    recommended_price = Column(MONEY_NUMERIC, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    product = relationship("Product", back_populates="options")


class Purchase(Base):
    """Received purchase order. Immutable once recorded."""
    __tablename__ = "purchases"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    date = Column(Date, nullable=False, index=True)
    shipping_cost_krw = Column(MONEY_NUMERIC, default=0)
    customs_fee_krw = Column(MONEY_NUMERIC, default=0)
    other_fee_krw = Column(MONEY_NUMERIC, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    items = relationship(
        "PurchaseItem",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="PurchaseItem.position",
    )


class PurchaseItem(Base):
    """Purchase line. Product/option are weak references (no FK)."""
    __tablename__ = "purchase_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    purchase_id = Column(Uuid, ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, default=0)
    product_id = Column(Uuid, nullable=False, index=True)
    option_id = Column(Uuid, nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    cost_cny_per_item = Column(MONEY_NUMERIC, nullable=False)

    purchase = relationship("Purchase", back_populates="items")


class Sale(Base):
    """Single-option sale. Immutable once recorded."""
    __tablename__ = "sales"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    date = Column(Date, nullable=False, index=True)
    product_id = Column(Uuid, nullable=False, index=True)
    option_id = Column(Uuid, nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    sale_price_per_item = Column(MONEY_NUMERIC, nullable=False)
    channel = Column(
        Enum(*[c.value for c in SalesChannel], name="sales_channel"),
        nullable=False,
        default=SalesChannel.OTHER.value,
    )
    channel_fee_pct = Column(Numeric(6, 3), default=0)
    packaging_cost_krw = Column(MONEY_NUMERIC, default=0)
    shipping_cost_krw = Column(MONEY_NUMERIC, default=0)
    # Null only for rows recorded before snapshots existed
    cost_of_goods_at_sale = Column(COST_NUMERIC, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class AppSettingsRow(Base):
    """Single-row sale form defaults."""
    __tablename__ = "app_settings"

    id = Column(Integer, primary_key=True, default=1)
    default_packaging_cost_krw = Column(MONEY_NUMERIC, nullable=False)
    default_shipping_cost_krw = Column(MONEY_NUMERIC, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
