"""Margin-Ledger CLI tool.

Usage:
    python -m cli profit sale --price 25000 --qty 2 --cost 8000 --channel coupang
    python -m cli price quote --base-cost 40 --qty 100 --shipping 50000 --margin 40
    python -m cli price quote --base-cost 40 --mode direct --price 19900
    python -m cli purchase landed-cost --item 10:30 --item 5:50 --shipping 20000
    python -m cli dashboard report ledger.json
"""

from __future__ import annotations

import argparse
import json
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path

from app.services.analytics import DashboardEngine
from app.services.catalog import CatalogOption, CatalogProduct
from app.services.costing import (
    PurchaseInput, PurchaseLine, allocate_landed_cost, lines_from_dicts, value_share_breakdown,
)
from app.services.currency import CurrencyConverter
from app.services.pricing import PricingInputs, PricingMode, PricingSolver
from app.services.profit_calc import ProfitCalculator, SaleInput, SalesChannel
from app.services.results import to_krw, to_pct


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}")


def _item(value: str) -> tuple[int, Decimal]:
    """``QTY:CNY_UNIT_COST`` -> (quantity, unit cost)."""
    qty, sep, cost = value.partition(":")
    if not sep:
        raise argparse.ArgumentTypeError(f"expected QTY:COST, got {value!r}")
    try:
        return int(qty), Decimal(cost)
    except (ValueError, InvalidOperation):
        raise argparse.ArgumentTypeError(f"expected QTY:COST, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ledger-cli",
        description="Margin-Ledger CLI",
    )
    sub = parser.add_subparsers(dest="command", help="Top-level command")

    # ── Profit ───────────────────────────────────────────
    profit_parser = sub.add_parser("profit", help="Per-sale profit")
    profit_sub = profit_parser.add_subparsers(dest="action")

    sale = profit_sub.add_parser("sale", help="Profit of one sale")
    sale.add_argument("--price", type=_decimal, required=True, help="Sale price per item (KRW)")
    sale.add_argument("--qty", type=int, default=1, help="Quantity sold")
    sale.add_argument("--cost", type=_decimal, required=True, help="Cost of goods per item (KRW)")
    sale.add_argument("--channel", choices=[c.value for c in SalesChannel], default="smart_store")
    sale.add_argument("--fee", type=_decimal, help="Channel fee %% (default: channel default)")
    sale.add_argument("--packaging", type=_decimal, default=Decimal("0"), help="Packaging per item (KRW)")
    sale.add_argument("--shipping", type=_decimal, default=Decimal("0"), help="Shipping per item (KRW)")

    # ── Pricing ──────────────────────────────────────────
    price_parser = sub.add_parser("price", help="Pricing calculator")
    price_sub = price_parser.add_subparsers(dest="action")

    quote = price_sub.add_parser("quote", help="Recommend a sale price")
    quote.add_argument("--mode", choices=[m.value for m in PricingMode], default="margin")
    quote.add_argument("--base-cost", type=_decimal, required=True, help="Unit cost (CNY)")
    quote.add_argument("--qty", type=int, default=1, help="Batch quantity")
    quote.add_argument("--shipping", type=_decimal, default=Decimal("0"), help="Batch shipping (KRW)")
    quote.add_argument("--customs", type=_decimal, default=Decimal("0"), help="Batch customs (KRW)")
    quote.add_argument("--other", type=_decimal, default=Decimal("0"), help="Batch other fees (KRW)")
    quote.add_argument("--fee", type=_decimal, default=Decimal("0"), help="Channel fee %%")
    quote.add_argument("--packaging", type=_decimal, default=Decimal("0"), help="Packaging per item (KRW)")
    quote.add_argument("--delivery", type=_decimal, default=Decimal("0"), help="Domestic shipping per item (KRW)")
    quote.add_argument("--margin", type=_decimal, default=Decimal("50"), help="Target margin %%")
    quote.add_argument("--profit", type=_decimal, default=Decimal("30"), help="Target profit %%")
    quote.add_argument("--price", type=_decimal, default=Decimal("0"), help="Price for direct mode (KRW)")
    quote.add_argument("--rate", type=_decimal, help="CNY->KRW rate override")

    # ── Purchase ─────────────────────────────────────────
    purchase_parser = sub.add_parser("purchase", help="Purchase costing")
    purchase_sub = purchase_parser.add_subparsers(dest="action")

    landed = purchase_sub.add_parser("landed-cost", help="Landed cost of a purchase")
    landed.add_argument("--item", type=_item, action="append", default=[],
                        help="QTY:CNY_UNIT_COST, repeatable")
    landed.add_argument("--shipping", type=_decimal, default=Decimal("0"), help="Shipping (KRW)")
    landed.add_argument("--customs", type=_decimal, default=Decimal("0"), help="Customs (KRW)")
    landed.add_argument("--other", type=_decimal, default=Decimal("0"), help="Other fees (KRW)")
    landed.add_argument("--rate", type=_decimal, help="CNY->KRW rate override")

    # ── Dashboard ────────────────────────────────────────
    dash_parser = sub.add_parser("dashboard", help="Dashboard statistics")
    dash_sub = dash_parser.add_subparsers(dest="action")

    report = dash_sub.add_parser("report", help="Dashboard report from a JSON export")
    report.add_argument("file", help="JSON with products, sales and purchases")
    report.add_argument("--rate", type=_decimal, help="CNY->KRW rate override")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    handlers = {
        "profit": handle_profit,
        "price": handle_price,
        "purchase": handle_purchase,
        "dashboard": handle_dashboard,
    }
    handler = handlers.get(args.command)
    if handler:
        handler(args)
    else:
        parser.print_help()


# ── Command Handlers ────────────────────────────────────

def handle_profit(args):
    if args.action == "sale":
        channel = SalesChannel(args.channel)
        fee = args.fee if args.fee is not None else channel.default_fee_pct
        sale = SaleInput(
            quantity=args.qty,
            sale_price_per_item=args.price,
            channel_fee_pct=fee,
            packaging_cost_krw=args.packaging,
            shipping_cost_krw=args.shipping,
            channel=channel,
        )
        result = ProfitCalculator.calculate(sale, args.cost)

        symbol = "✅" if result.is_profitable else "❌"
        print(f"{symbol} Sale profit on {channel.value} (fee {fee}%)")
        print(f"  Revenue:         ₩{to_krw(result.revenue):,}")
        print(f"  Cost of goods:   ₩{to_krw(result.cost_of_goods_sold):,}")
        print(f"  Channel fee:     ₩{to_krw(result.channel_fee):,}")
        print(f"  Packaging:       ₩{to_krw(result.total_packaging):,}")
        print(f"  Shipping:        ₩{to_krw(result.total_shipping):,}")
        print(f"  Profit:          ₩{to_krw(result.profit):,}")
        print(f"  Margin:          {to_pct(result.margin_rate)}%")
        print(f"  Net margin:      {to_pct(result.net_margin_rate)}%")
    else:
        print("Usage: ledger-cli profit sale --price 25000 --cost 8000")


def handle_price(args):
    if args.action == "quote":
        solver = PricingSolver(CurrencyConverter(args.rate))
        inputs = PricingInputs(
            base_cost_cny=args.base_cost,
            quantity=args.qty,
            shipping_cost_krw=args.shipping,
            customs_fee_krw=args.customs,
            other_fee_krw=args.other,
            channel_fee_pct=args.fee,
            packaging_cost_krw=args.packaging,
            domestic_shipping_krw=args.delivery,
            target_margin_pct=args.margin,
            target_profit_pct=args.profit,
            custom_price=args.price,
        )
        quote = solver.solve(PricingMode(args.mode), inputs)
        print(json.dumps(quote.to_dict(), indent=2, ensure_ascii=False))
    else:
        print("Usage: ledger-cli price quote --base-cost 40 --margin 40")


def handle_purchase(args):
    if args.action == "landed-cost":
        if not args.item:
            print("At least one --item QTY:COST is required.")
            sys.exit(1)
        converter = CurrencyConverter(args.rate)
        items = [
            PurchaseLine(product_id=None, option_id=f"line-{n}", quantity=qty, cost_cny_per_item=cost)
            for n, (qty, cost) in enumerate(args.item)
        ]
        purchase = PurchaseInput(
            items=items,
            shipping_cost_krw=args.shipping,
            customs_fee_krw=args.customs,
            other_fee_krw=args.other,
        )
        landed = allocate_landed_cost(purchase, converter)
        shares = value_share_breakdown(purchase, converter)

        print(f"Items (CNY):       ¥{landed.items_foreign_total}")
        print(f"Items (KRW):       ₩{to_krw(landed.items_local_total):,}")
        print(f"Additional fees:   ₩{to_krw(landed.additional_total):,}")
        print(f"Grand total:       ₩{to_krw(landed.grand_total):,}")
        print(f"Units:             {landed.total_quantity}")
        print(f"Blended unit cost: ₩{to_krw(landed.blended_unit_cost):,}")
        if landed.flags:
            print(f"Flags:             {', '.join(f.value for f in landed.flags)}")
        print()
        print(f"{'Line':<8} {'Qty':>6} {'Share %':>9} {'Unit cost':>12}")
        print("-" * 38)
        for n, share in enumerate(shares, 1):
            print(f"{n:<8} {share.quantity:>6} {to_pct(share.share_pct):>9} "
                  f"{to_krw(share.actual_unit_cost):>12,}")
    else:
        print("Usage: ledger-cli purchase landed-cost --item 10:30")


def load_ledger(data: dict):
    """Products, sales and purchases from a JSON export."""
    products = [
        CatalogProduct(
            id=p["id"],
            name=p.get("name", ""),
            options=[
                CatalogOption(
                    id=o["id"],
                    name=o.get("name", ""),
                    sku=o.get("sku", ""),
                    stock=int(o.get("stock", 0)),
                    cost_of_goods=Decimal(str(o.get("cost_of_goods", 0))),
                )
                for o in p.get("options", [])
            ],
        )
        for p in data.get("products", [])
    ]
    sales = [
        SaleInput(
            id=s.get("id"),
            date=s.get("date"),
            product_id=s.get("product_id"),
            option_id=s.get("option_id"),
            quantity=int(s.get("quantity", 0)),
            sale_price_per_item=Decimal(str(s.get("sale_price_per_item", 0))),
            channel=s.get("channel", SalesChannel.OTHER.value),
            channel_fee_pct=Decimal(str(s.get("channel_fee_pct", 0))),
            packaging_cost_krw=Decimal(str(s.get("packaging_cost_krw", 0))),
            shipping_cost_krw=Decimal(str(s.get("shipping_cost_krw", 0))),
            cost_of_goods_at_sale=(
                Decimal(str(s["cost_of_goods_at_sale"]))
                if s.get("cost_of_goods_at_sale") is not None else None
            ),
        )
        for s in data.get("sales", [])
    ]
    purchases = [
        PurchaseInput(
            id=p.get("id"),
            date=p.get("date"),
            items=lines_from_dicts(p.get("items", [])),
            shipping_cost_krw=Decimal(str(p.get("shipping_cost_krw", 0))),
            customs_fee_krw=Decimal(str(p.get("customs_fee_krw", 0))),
            other_fee_krw=Decimal(str(p.get("other_fee_krw", 0))),
        )
        for p in data.get("purchases", [])
    ]
    return products, sales, purchases


def handle_dashboard(args):
    if args.action == "report":
        path = Path(args.file)
        if not path.exists():
            print(f"File not found: {args.file}")
            sys.exit(1)

        products, sales, purchases = load_ledger(json.loads(path.read_text(encoding="utf-8")))
        engine = DashboardEngine(converter=CurrencyConverter(args.rate))
        report = engine.aggregate(products, sales, purchases)
        print(json.dumps(engine.report_to_dict(report), indent=2, ensure_ascii=False))
    else:
        print("Usage: ledger-cli dashboard report ledger.json")


if __name__ == "__main__":
    main()
