"""Pydantic schemas for the ledger API."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.services.pricing import PricingMode
from app.services.profit_calc import SalesChannel


# ── Product ──────────────────────────────────────────────
class OptionCreate(BaseModel):
    name: str
    sku: str = ""


class ProductCreate(BaseModel):
    name: str
    image_url: str = ""
    base_cost_cny: Decimal = Field(Decimal("0"), ge=0)
    options: list[OptionCreate] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    image_url: Optional[str] = None
    base_cost_cny: Optional[Decimal] = Field(None, ge=0)


class OptionUpdate(BaseModel):
    """Catalog fields only; stock and cost move through purchases and sales."""
    name: Optional[str] = None
    sku: Optional[str] = None
    recommended_price: Optional[Decimal] = Field(None, ge=0)


class OptionOut(BaseModel):
    id: UUID
    name: str
    sku: str
    stock: int
    cost_of_goods: Decimal
    recommended_price: Optional[Decimal]

    model_config = {"from_attributes": True}


class ProductOut(BaseModel):
    id: UUID
    name: str
    image_url: str
    base_cost_cny: Decimal
    options: list[OptionOut]
    created_at: datetime

    model_config = {"from_attributes": True}


# ── Purchase ─────────────────────────────────────────────
class PurchaseItemCreate(BaseModel):
    product_id: UUID
    option_id: UUID
    quantity: int = Field(..., gt=0)
    cost_cny_per_item: Decimal = Field(..., ge=0)


class PurchaseCreate(BaseModel):
    date: date
    items: list[PurchaseItemCreate] = Field(..., min_length=1)
    shipping_cost_krw: Decimal = Field(Decimal("0"), ge=0)
    customs_fee_krw: Decimal = Field(Decimal("0"), ge=0)
    other_fee_krw: Decimal = Field(Decimal("0"), ge=0)


class PurchaseItemOut(BaseModel):
    product_id: UUID
    option_id: UUID
    product_name: str
    option_name: str
    quantity: int
    cost_cny_per_item: Decimal
    # value-share allocation, display only
    allocated_unit_cost: int
    share_pct: float


class LandedCostOut(BaseModel):
    items_foreign_total: Decimal
    items_local_total: int
    additional_total: int
    grand_total: int
    total_quantity: int
    blended_unit_cost: int
    flags: list[str]


class PurchaseOut(BaseModel):
    id: UUID
    date: date
    shipping_cost_krw: Decimal
    customs_fee_krw: Decimal
    other_fee_krw: Decimal
    items: list[PurchaseItemOut]
    landed_cost: LandedCostOut
    created_at: datetime


# ── Sale ─────────────────────────────────────────────────
class SaleCreate(BaseModel):
    date: date
    product_id: UUID
    option_id: UUID
    quantity: int = Field(..., gt=0)
    sale_price_per_item: Decimal = Field(..., ge=0)
    channel: SalesChannel = SalesChannel.SMART_STORE
    # None -> channel default
    channel_fee_pct: Optional[Decimal] = Field(None, ge=0, lt=100)
    # None -> app settings default
    packaging_cost_krw: Optional[Decimal] = Field(None, ge=0)
    shipping_cost_krw: Optional[Decimal] = Field(None, ge=0)


class SaleProfitOut(BaseModel):
    revenue: int
    cost_of_goods_sold: int
    channel_fee: int
    total_packaging: int
    total_shipping: int
    total_cost: int
    profit: int
    margin_rate: float
    net_margin_rate: float
    flags: list[str]


class SaleOut(BaseModel):
    id: UUID
    date: date
    product_id: UUID
    option_id: UUID
    product_name: str
    option_name: str
    quantity: int
    sale_price_per_item: Decimal
    channel: str
    channel_fee_pct: Decimal
    packaging_cost_krw: Decimal
    shipping_cost_krw: Decimal
    cost_of_goods_at_sale: Optional[Decimal]
    profit: SaleProfitOut
    oversold: bool = False


# ── Pricing ──────────────────────────────────────────────
class PriceQuoteRequest(BaseModel):
    mode: PricingMode = PricingMode.MARGIN
    base_cost_cny: Decimal = Field(Decimal("0"), ge=0)
    quantity: int = Field(1, gt=0)
    shipping_cost_krw: Decimal = Field(Decimal("0"), ge=0)
    customs_fee_krw: Decimal = Field(Decimal("0"), ge=0)
    other_fee_krw: Decimal = Field(Decimal("0"), ge=0)
    channel_fee_pct: Decimal = Field(Decimal("0"), ge=0, lt=100)
    packaging_cost_krw: Decimal = Field(Decimal("0"), ge=0)
    domestic_shipping_krw: Decimal = Field(Decimal("0"), ge=0)
    target_margin_pct: Decimal = Field(Decimal("50"), ge=0, lt=100)
    target_profit_pct: Decimal = Field(Decimal("30"), ge=0)
    custom_price: Decimal = Field(Decimal("0"), ge=0)
    # Pre-fill base cost from an existing option's landed cost
    product_id: Optional[UUID] = None
    option_id: Optional[UUID] = None


class PriceQuoteOut(BaseModel):
    mode: str
    base_cost_krw: int
    actual_cost_per_item: int
    total_cost_per_item: int
    recommended_price: int
    channel_fee: int
    net_revenue: int
    net_profit: int
    actual_margin_pct: float
    gross_margin_pct: float
    actual_profit_pct: float
    total_investment: int
    break_even_quantity: Optional[float]
    total_revenue: int
    total_net_profit: int
    roi_pct: float
    flags: list[str]


class ApplyPriceRequest(BaseModel):
    product_id: UUID
    option_id: UUID
    recommended_price: Decimal = Field(..., gt=0)


# ── Settings ─────────────────────────────────────────────
class AppSettingsOut(BaseModel):
    default_packaging_cost_krw: Decimal
    default_shipping_cost_krw: Decimal

    model_config = {"from_attributes": True}


class AppSettingsUpdate(BaseModel):
    default_packaging_cost_krw: Optional[Decimal] = Field(None, ge=0)
    default_shipping_cost_krw: Optional[Decimal] = Field(None, ge=0)


class SaleDefaults(BaseModel):
    """Pre-filled values for a new sale form."""
    channel: SalesChannel
    channel_fee_pct: Decimal
    packaging_cost_krw: Decimal
    shipping_cost_krw: Decimal
