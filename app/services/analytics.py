"""Dashboard analytics over the full sales and purchase history.

Provides monthly and cumulative series, channel breakdown, top-products
ranking, mark-to-average inventory valuation and the recent activity feed.

Everything here is a pure fold over its inputs: no clock, no I/O. Calling
``aggregate`` twice with the same collections gives equal reports.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from app.config import get_settings
from app.services.catalog import DELETED_ITEM_LABEL, CatalogIndex
from app.services.costing import allocate_landed_cost
from app.services.currency import CurrencyConverter
from app.services.inventory_alert import InventoryAlertService, StockAlert
from app.services.profit_calc import ProfitCalculator, SaleProfit
from app.services.results import HUNDRED, ZERO, to_krw, to_pct


@dataclass
class MonthlyPoint:
    month: str  # YYYY-MM
    revenue: Decimal = ZERO
    profit: Decimal = ZERO
    purchase_cost: Decimal = ZERO
    purchase_quantity: int = 0
    sale_count: int = 0


@dataclass
class CumulativePoint:
    month: str
    revenue: Decimal
    profit: Decimal
    purchase_cost: Decimal
    cumulative_revenue: Decimal
    cumulative_profit: Decimal
    cumulative_investment: Decimal
    recovery_rate_pct: Decimal


@dataclass
class ChannelShare:
    channel: str
    sale_count: int
    revenue: Decimal
    share_pct: Decimal


@dataclass
class TopProduct:
    product_id: object
    name: str
    quantity: int
    revenue: Decimal


@dataclass
class ActivityEntry:
    kind: str  # "sale" | "purchase"
    date: object
    description: str
    amount: Decimal  # sales positive, purchases negative
    created_at: object = None


@dataclass
class PurchaseSummary:
    purchase_count: int
    total_cost: Decimal
    total_items: int
    avg_cost_per_purchase: Decimal


@dataclass
class DashboardReport:
    """Complete dashboard."""
    total_revenue: Decimal
    total_profit: Decimal
    total_sales_count: int
    total_purchase_cost: Decimal
    total_purchase_count: int
    inventory_value: Decimal
    margin_rate_pct: Decimal
    recovery_rate_pct: Decimal
    monthly: list[MonthlyPoint] = field(default_factory=list)
    cumulative: list[CumulativePoint] = field(default_factory=list)
    channel_breakdown: list[ChannelShare] = field(default_factory=list)
    top_products: list[TopProduct] = field(default_factory=list)
    recent_activity: list[ActivityEntry] = field(default_factory=list)
    purchase_summary: Optional[PurchaseSummary] = None
    stock_alerts: list[StockAlert] = field(default_factory=list)


def month_key(value) -> str:
    """Calendar month of an ISO date/datetime or string, as ``YYYY-MM``."""
    if isinstance(value, (date, datetime)):
        return value.isoformat()[:7]
    return str(value)[:7]


def _date_sort_key(value) -> str:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value or "")


def _recency_key(record) -> tuple[str, str]:
    return _date_sort_key(record.date), _date_sort_key(getattr(record, "created_at", None))


def _newest_first(records: Sequence) -> list:
    """Newest first by date, then recording time. Same-day records without a
    recording time keep input order reversed, so the last recorded leads."""
    return sorted(reversed(list(records)), key=_recency_key, reverse=True)


def _ratio_pct(numerator: Decimal, denominator: Decimal) -> Decimal:
    return numerator / denominator * HUNDRED if denominator else ZERO


def _channel_name(channel) -> str:
    return str(getattr(channel, "value", channel))


class DashboardEngine:
    """Aggregates products, sales and purchases into dashboard statistics.

    Works with ORM rows or the plain dataclasses from ``catalog``,
    ``costing`` and ``profit_calc`` alike.
    """

    def __init__(
        self,
        converter: Optional[CurrencyConverter] = None,
        top_n: Optional[int] = None,
        recent_per_type: Optional[int] = None,
        activity_limit: Optional[int] = None,
        alerts: Optional[InventoryAlertService] = None,
    ):
        settings = get_settings()
        self.converter = converter or CurrencyConverter()
        self.top_n = settings.top_products_limit if top_n is None else top_n
        self.recent_per_type = settings.recent_per_type if recent_per_type is None else recent_per_type
        self.activity_limit = settings.recent_activity_limit if activity_limit is None else activity_limit
        self.alerts = alerts or InventoryAlertService()

    # ── Building blocks ─────────────────────────────────

    def purchase_cost(self, purchase) -> Decimal:
        """Grand total of a purchase in KRW (items plus fees)."""
        return allocate_landed_cost(purchase, self.converter).grand_total

    def sale_profits(
        self, index: CatalogIndex, sales: Iterable,
    ) -> list[tuple[object, SaleProfit]]:
        """Profit per sale, skipping sales whose product or option is gone."""
        result = []
        for sale in sales:
            if index.product(sale.product_id) is None:
                continue
            profit = ProfitCalculator.for_sale(sale, index.option(sale.product_id, sale.option_id))
            if profit.is_missing_reference:
                continue
            result.append((sale, profit))
        return result

    # ── Series ──────────────────────────────────────────

    def monthly_series(
        self,
        priced_sales: Sequence[tuple[object, SaleProfit]],
        purchases: Iterable,
    ) -> list[MonthlyPoint]:
        buckets: dict[str, MonthlyPoint] = {}

        def bucket(key: str) -> MonthlyPoint:
            if key not in buckets:
                buckets[key] = MonthlyPoint(month=key)
            return buckets[key]

        for sale, profit in priced_sales:
            b = bucket(month_key(sale.date))
            b.revenue += profit.revenue
            b.profit += profit.profit
            b.sale_count += 1

        for purchase in purchases:
            landed = allocate_landed_cost(purchase, self.converter)
            b = bucket(month_key(purchase.date))
            b.purchase_cost += landed.grand_total
            b.purchase_quantity += landed.total_quantity

        return [buckets[k] for k in sorted(buckets)]

    @staticmethod
    def cumulative_series(monthly: Sequence[MonthlyPoint]) -> list[CumulativePoint]:
        """Running totals and investment recovery rate per month."""
        revenue = profit = investment = ZERO
        points = []
        for m in monthly:
            revenue += m.revenue
            profit += m.profit
            investment += m.purchase_cost
            points.append(CumulativePoint(
                month=m.month,
                revenue=m.revenue,
                profit=m.profit,
                purchase_cost=m.purchase_cost,
                cumulative_revenue=revenue,
                cumulative_profit=profit,
                cumulative_investment=investment,
                recovery_rate_pct=_ratio_pct(revenue, investment),
            ))
        return points

    # ── Breakdowns ──────────────────────────────────────

    @staticmethod
    def channel_breakdown(priced_sales: Sequence[tuple[object, SaleProfit]]) -> list[ChannelShare]:
        channels: dict[str, dict] = defaultdict(lambda: {"count": 0, "revenue": ZERO})
        total = ZERO
        for sale, profit in priced_sales:
            c = channels[_channel_name(sale.channel)]
            c["count"] += 1
            c["revenue"] += profit.revenue
            total += profit.revenue

        ranked = sorted(channels.items(), key=lambda x: x[1]["revenue"], reverse=True)
        return [
            ChannelShare(
                channel=name,
                sale_count=data["count"],
                revenue=data["revenue"],
                share_pct=_ratio_pct(data["revenue"], total),
            )
            for name, data in ranked
        ]

    def top_products(
        self,
        index: CatalogIndex,
        priced_sales: Sequence[tuple[object, SaleProfit]],
        limit: Optional[int] = None,
    ) -> list[TopProduct]:
        """Rank products by revenue; ties keep first-sold order."""
        products: dict[object, dict] = {}
        for sale, profit in priced_sales:
            p = products.setdefault(sale.product_id, {"quantity": 0, "revenue": ZERO})
            p["quantity"] += int(sale.quantity)
            p["revenue"] += profit.revenue

        # sorted() is stable, also with reverse=True
        ranked = sorted(products.items(), key=lambda x: x[1]["revenue"], reverse=True)
        return [
            TopProduct(
                product_id=pid,
                name=index.product_name(pid),
                quantity=data["quantity"],
                revenue=data["revenue"],
            )
            for pid, data in ranked[: self.top_n if limit is None else limit]
        ]

    @staticmethod
    def inventory_value(index: CatalogIndex) -> Decimal:
        """Stock valued at current moving-average cost."""
        return sum(
            ((o.cost_of_goods or ZERO) * o.stock for _, o in index.iter_options()),
            ZERO,
        )

    def purchase_summary(self, purchases: Sequence) -> PurchaseSummary:
        total_cost = ZERO
        total_items = 0
        for purchase in purchases:
            landed = allocate_landed_cost(purchase, self.converter)
            total_cost += landed.grand_total
            total_items += landed.total_quantity
        count = len(purchases)
        return PurchaseSummary(
            purchase_count=count,
            total_cost=total_cost,
            total_items=total_items,
            avg_cost_per_purchase=total_cost / count if count else ZERO,
        )

    def recent_activity(
        self,
        index: CatalogIndex,
        sales: Sequence,
        purchases: Sequence,
    ) -> list[ActivityEntry]:
        """Latest sales and purchases merged, newest first."""
        n = self.recent_per_type
        latest_sales = _newest_first(sales)[:n]
        latest_purchases = _newest_first(purchases)[:n]

        entries = []
        for sale in latest_sales:
            name = index.product_name(sale.product_id)
            option = index.option(sale.product_id, sale.option_id)
            profit = ProfitCalculator.for_sale(sale, option)
            if name != DELETED_ITEM_LABEL and option is not None:
                name = f"{name} / {option.name}"
            entries.append(ActivityEntry(
                kind="sale",
                date=sale.date,
                description=f"{name}: {sale.quantity} sold",
                amount=profit.revenue,
                created_at=getattr(sale, "created_at", None),
            ))
        for purchase in latest_purchases:
            items = list(purchase.items or [])
            entries.append(ActivityEntry(
                kind="purchase",
                date=purchase.date,
                description=f"{len(items)} item(s) purchased",
                amount=-self.purchase_cost(purchase),
                created_at=getattr(purchase, "created_at", None),
            ))

        # each kind is already newest first; the stable sort keeps that on ties
        entries.sort(key=_recency_key, reverse=True)
        return entries[: self.activity_limit]

    # ── Full report ─────────────────────────────────────

    def aggregate(
        self,
        products: Iterable,
        sales: Iterable,
        purchases: Iterable,
    ) -> DashboardReport:
        """Generate the complete dashboard report."""
        index = CatalogIndex(products)
        sales = list(sales)
        purchases = list(purchases)

        priced = self.sale_profits(index, sales)
        monthly = self.monthly_series(priced, purchases)
        purchase_stats = self.purchase_summary(purchases)

        total_revenue = sum((p.revenue for _, p in priced), ZERO)
        total_profit = sum((p.profit for _, p in priced), ZERO)

        return DashboardReport(
            total_revenue=total_revenue,
            total_profit=total_profit,
            total_sales_count=len(sales),
            total_purchase_cost=purchase_stats.total_cost,
            total_purchase_count=purchase_stats.purchase_count,
            inventory_value=self.inventory_value(index),
            margin_rate_pct=_ratio_pct(total_profit, total_revenue),
            recovery_rate_pct=_ratio_pct(total_revenue, purchase_stats.total_cost),
            monthly=monthly,
            cumulative=self.cumulative_series(monthly),
            channel_breakdown=self.channel_breakdown(priced),
            top_products=self.top_products(index, priced),
            recent_activity=self.recent_activity(index, sales, purchases),
            purchase_summary=purchase_stats,
            stock_alerts=self.alerts.check_stock_levels(index),
        )

    # ── Export ──────────────────────────────────────────

    @staticmethod
    def report_to_dict(report: DashboardReport) -> dict:
        """Convert report to a JSON-serializable dict, rounded for display."""
        ps = report.purchase_summary
        return {
            "summary": {
                "total_revenue": to_krw(report.total_revenue),
                "total_profit": to_krw(report.total_profit),
                "total_sales_count": report.total_sales_count,
                "total_purchase_cost": to_krw(report.total_purchase_cost),
                "total_purchase_count": report.total_purchase_count,
                "inventory_value": to_krw(report.inventory_value),
                "margin_rate_pct": to_pct(report.margin_rate_pct),
                "recovery_rate_pct": to_pct(report.recovery_rate_pct),
            },
            "monthly": [
                {
                    "month": m.month,
                    "revenue": to_krw(m.revenue),
                    "profit": to_krw(m.profit),
                    "purchase_cost": to_krw(m.purchase_cost),
                    "purchase_quantity": m.purchase_quantity,
                    "sale_count": m.sale_count,
                }
                for m in report.monthly
            ],
            "cumulative": [
                {
                    "month": c.month,
                    "cumulative_revenue": to_krw(c.cumulative_revenue),
                    "cumulative_profit": to_krw(c.cumulative_profit),
                    "cumulative_investment": to_krw(c.cumulative_investment),
                    "recovery_rate_pct": to_pct(c.recovery_rate_pct),
                }
                for c in report.cumulative
            ],
            "channel_breakdown": [
                {
                    "channel": c.channel,
                    "sale_count": c.sale_count,
                    "revenue": to_krw(c.revenue),
                    "share_pct": to_pct(c.share_pct),
                }
                for c in report.channel_breakdown
            ],
            "top_products": [
                {
                    "product_id": str(t.product_id),
                    "name": t.name,
                    "quantity": t.quantity,
                    "revenue": to_krw(t.revenue),
                }
                for t in report.top_products
            ],
            "recent_activity": [
                {
                    "type": a.kind,
                    "date": a.date.isoformat() if isinstance(a.date, (date, datetime)) else str(a.date),
                    "description": a.description,
                    "amount": to_krw(a.amount),
                }
                for a in report.recent_activity
            ],
            "purchase_summary": {
                "purchase_count": ps.purchase_count,
                "total_cost": to_krw(ps.total_cost),
                "total_items": ps.total_items,
                "avg_cost_per_purchase": to_krw(ps.avg_cost_per_purchase),
            } if ps else None,
            "stock_alerts": [a.to_dict() for a in report.stock_alerts],
        }
