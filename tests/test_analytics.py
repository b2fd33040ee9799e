"""Tests for the dashboard engine."""

import pytest
from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

from app.services.analytics import DashboardEngine, month_key
from app.services.catalog import DELETED_ITEM_LABEL, CatalogIndex, CatalogOption, CatalogProduct
from app.services.costing import PurchaseInput, PurchaseLine
from app.services.currency import CurrencyConverter
from app.services.profit_calc import SaleInput, SalesChannel


# ── Fixtures ────────────────────────────────────────────

@pytest.fixture
def engine():
    return DashboardEngine(
        converter=CurrencyConverter(Decimal("200")),
        top_n=5,
        recent_per_type=5,
        activity_limit=8,
    )


@pytest.fixture
def products():
    return [
        CatalogProduct(id="p1", name="Tumbler", options=[
            CatalogOption(id="p1-a", name="White", sku="TB-W", stock=20, cost_of_goods=Decimal("1500")),
            CatalogOption(id="p1-b", name="Black", sku="TB-B", stock=3, cost_of_goods=Decimal("1600")),
        ]),
        CatalogProduct(id="p2", name="Coaster", options=[
            CatalogOption(id="p2-a", name="Set", sku="CS-1", stock=0, cost_of_goods=Decimal("500")),
        ]),
    ]


def _sale(day, pid, oid, qty, price, channel=SalesChannel.SMART_STORE, cost=None):
    return SaleInput(
        date=day,
        product_id=pid,
        option_id=oid,
        quantity=qty,
        sale_price_per_item=Decimal(price),
        channel=channel,
        cost_of_goods_at_sale=cost,
    )


@pytest.fixture
def sales():
    return [
        _sale(date(2026, 1, 10), "p1", "p1-a", 2, "5000", cost=Decimal("1500")),
        _sale(date(2026, 1, 20), "p2", "p2-a", 4, "1000", SalesChannel.COUPANG),
        _sale(date(2026, 2, 3), "p1", "p1-b", 1, "7000", SalesChannel.COUPANG),
        # product deleted since
        _sale(date(2026, 2, 5), "gone", "gone-a", 3, "9000", cost=Decimal("100")),
    ]


@pytest.fixture
def purchases():
    return [
        PurchaseInput(
            date=date(2026, 1, 2),
            items=[PurchaseLine("p1", "p1-a", 10, Decimal("5"))],
            shipping_cost_krw=Decimal("5000"),
        ),
        PurchaseInput(
            date=date(2026, 3, 1),
            items=[PurchaseLine("p2", "p2-a", 4, Decimal("2"))],
        ),
    ]


# ── Building blocks ─────────────────────────────────────

class TestMonthKey:
    def test_date(self):
        assert month_key(date(2026, 1, 31)) == "2026-01"

    def test_string(self):
        assert month_key("2026-02-14") == "2026-02"


class TestSaleProfits:
    def test_skips_missing_references(self, engine, products, sales):
        priced = engine.sale_profits(CatalogIndex(products), sales)
        assert len(priced) == 3
        assert all(s.product_id != "gone" for s, _ in priced)


class TestMonthlySeries:
    def test_buckets(self, engine, products, sales, purchases):
        priced = engine.sale_profits(CatalogIndex(products), sales)
        monthly = engine.monthly_series(priced, purchases)
        assert [m.month for m in monthly] == ["2026-01", "2026-02", "2026-03"]
        jan, feb, mar = monthly
        assert jan.revenue == Decimal("14000")
        assert jan.sale_count == 2
        # 10 x 5 CNY x 200 + 5000
        assert jan.purchase_cost == Decimal("15000")
        assert jan.purchase_quantity == 10
        assert feb.revenue == Decimal("7000")
        assert mar.revenue == 0
        assert mar.purchase_cost == Decimal("1600")

    def test_profit_per_month(self, engine, products, sales, purchases):
        priced = engine.sale_profits(CatalogIndex(products), sales)
        jan = engine.monthly_series(priced, purchases)[0]
        # (10000 - 3000) + (4000 - 2000)
        assert jan.profit == Decimal("9000")


class TestCumulativeSeries:
    def test_running_totals(self, engine, products, sales, purchases):
        priced = engine.sale_profits(CatalogIndex(products), sales)
        cumulative = engine.cumulative_series(engine.monthly_series(priced, purchases))
        assert [c.cumulative_revenue for c in cumulative] == [
            Decimal("14000"), Decimal("21000"), Decimal("21000"),
        ]
        assert cumulative[-1].cumulative_investment == Decimal("16600")
        assert float(cumulative[0].recovery_rate_pct) == pytest.approx(14000 / 15000 * 100)

    def test_empty(self, engine):
        assert engine.cumulative_series([]) == []


class TestChannelBreakdown:
    def test_sorted_by_revenue(self, engine, products, sales):
        priced = engine.sale_profits(CatalogIndex(products), sales)
        channels = engine.channel_breakdown(priced)
        assert [c.channel for c in channels] == ["coupang", "smart_store"]
        assert channels[0].sale_count == 2
        assert channels[0].revenue == Decimal("11000")
        assert float(sum(c.share_pct for c in channels)) == pytest.approx(100)


class TestTopProducts:
    def test_ranking(self, engine, products, sales):
        index = CatalogIndex(products)
        top = engine.top_products(index, engine.sale_profits(index, sales))
        assert [t.product_id for t in top] == ["p1", "p2"]
        assert top[0].name == "Tumbler"
        assert top[0].quantity == 3
        assert top[0].revenue == Decimal("17000")

    def test_ties_keep_first_sold_order(self, engine):
        products = [
            CatalogProduct(id=f"p{n}", name=f"P{n}", options=[CatalogOption(id=f"o{n}", name="-")])
            for n in range(7)
        ]
        sales = [_sale(date(2026, 1, 1), f"p{n}", f"o{n}", 1, "1000") for n in range(7)]
        index = CatalogIndex(products)
        top = engine.top_products(index, engine.sale_profits(index, sales))
        assert [t.product_id for t in top] == ["p0", "p1", "p2", "p3", "p4"]


class TestInventoryValue:
    def test_marked_to_average_cost(self, engine, products):
        assert engine.inventory_value(CatalogIndex(products)) == Decimal("34800")

    def test_oversold_option_counts_negative(self, engine):
        products = [CatalogProduct(id="p", name="P", options=[
            CatalogOption(id="o", name="-", stock=-2, cost_of_goods=Decimal("100")),
        ])]
        assert engine.inventory_value(CatalogIndex(products)) == Decimal("-200")


class TestRecentActivity:
    def test_merged_newest_first(self, engine, products, sales, purchases):
        feed = engine.recent_activity(CatalogIndex(products), sales, purchases)
        assert [e.date for e in feed] == sorted((e.date for e in feed), reverse=True)
        assert feed[0].kind == "purchase"
        assert feed[0].amount == Decimal("-1600")

    def test_deleted_item_label(self, engine, products, sales, purchases):
        feed = engine.recent_activity(CatalogIndex(products), sales, purchases)
        deleted = [e for e in feed if DELETED_ITEM_LABEL in e.description]
        assert len(deleted) == 1
        assert deleted[0].amount == 0

    def test_limits(self, products):
        eng = DashboardEngine(converter=CurrencyConverter(Decimal("200")), recent_per_type=2, activity_limit=3)
        sales = [_sale(date(2026, 1, d), "p1", "p1-a", 1, "1000") for d in range(1, 6)]
        feed = eng.recent_activity(CatalogIndex(products), sales, [])
        assert len(feed) == 2
        assert feed[0].date == date(2026, 1, 5)

    def test_same_day_keeps_last_recorded(self, engine, products):
        sales = [_sale(date(2026, 5, 1), "p1", "p1-a", 1, str(n)) for n in range(1, 8)]
        feed = engine.recent_activity(CatalogIndex(products), sales, [])
        assert [e.amount for e in feed] == [7, 6, 5, 4, 3]

    def test_same_day_ordered_by_recording_time(self, products):
        eng = DashboardEngine(converter=CurrencyConverter(Decimal("200")), recent_per_type=1)
        early = SimpleNamespace(
            **vars(_sale(date(2026, 5, 1), "p1", "p1-a", 1, "100")),
            created_at=datetime(2026, 5, 1, 9, 0),
        )
        late = SimpleNamespace(
            **vars(_sale(date(2026, 5, 1), "p1", "p1-a", 1, "200")),
            created_at=datetime(2026, 5, 1, 18, 0),
        )
        feed = eng.recent_activity(CatalogIndex(products), [late, early], [])
        assert [e.amount for e in feed] == [200]

    def test_same_day_purchases_keep_last_recorded(self, engine, products):
        purchases = [
            PurchaseInput(date=date(2026, 5, 1), items=[PurchaseLine("p1", "p1-a", 1, Decimal(n))])
            for n in range(1, 8)
        ]
        feed = engine.recent_activity(CatalogIndex(products), [], purchases)
        # 1 CNY = 200 KRW
        assert [e.amount for e in feed] == [-1400, -1200, -1000, -800, -600]


class TestAggregate:
    def test_summary(self, engine, products, sales, purchases):
        report = engine.aggregate(products, sales, purchases)
        assert report.total_revenue == Decimal("21000")
        assert report.total_profit == Decimal("14400")
        assert report.total_sales_count == 4
        assert report.total_purchase_cost == Decimal("16600")
        assert report.total_purchase_count == 2
        assert report.inventory_value == Decimal("34800")
        assert float(report.margin_rate_pct) == pytest.approx(14400 / 21000 * 100)
        assert len(report.stock_alerts) == 2

    def test_empty_history(self, engine):
        report = engine.aggregate([], [], [])
        assert report.total_revenue == 0
        assert report.margin_rate_pct == 0
        assert report.recovery_rate_pct == 0
        assert report.monthly == []
        assert report.purchase_summary.avg_cost_per_purchase == 0

    def test_idempotent(self, engine, products, sales, purchases):
        first = engine.report_to_dict(engine.aggregate(products, sales, purchases))
        second = engine.report_to_dict(engine.aggregate(products, sales, purchases))
        assert first == second

    def test_report_to_dict(self, engine, products, sales, purchases):
        data = engine.report_to_dict(engine.aggregate(products, sales, purchases))
        assert data["summary"]["total_revenue"] == 21000
        assert data["summary"]["margin_rate_pct"] == 68.57
        assert data["monthly"][0]["month"] == "2026-01"
        assert data["top_products"][0]["product_id"] == "p1"
        assert data["recent_activity"][0]["date"] == "2026-03-01"
        assert data["purchase_summary"]["purchase_count"] == 2
