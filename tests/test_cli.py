"""CLI tests."""

import json

import pytest

from cli import main


def test_profit_sale(capsys):
    main(["profit", "sale", "--price", "3000", "--qty", "5", "--cost", "1500",
          "--fee", "10", "--packaging", "100", "--shipping", "200"])
    out = capsys.readouterr().out
    assert "₩4,500" in out
    assert "30.0%" in out


def test_price_quote(capsys):
    main(["price", "quote", "--base-cost", "25", "--fee", "10", "--margin", "50", "--rate", "200"])
    data = json.loads(capsys.readouterr().out)
    assert data["recommended_price"] == 11111
    assert data["actual_margin_pct"] == 50.0


def test_landed_cost(capsys):
    main(["purchase", "landed-cost", "--item", "10:50", "--item", "5:80",
          "--shipping", "10000", "--customs", "5000", "--rate", "190"])
    out = capsys.readouterr().out
    assert "₩186,000" in out
    assert "₩12,400" in out


def test_landed_cost_bad_item():
    with pytest.raises(SystemExit):
        main(["purchase", "landed-cost", "--item", "ten"])


def test_dashboard_report(tmp_path, capsys):
    ledger = {
        "products": [{"id": "p1", "name": "Tumbler", "options": [
            {"id": "o1", "name": "White", "sku": "TB-W", "stock": 8, "cost_of_goods": 1500},
        ]}],
        "sales": [{
            "date": "2026-01-10", "product_id": "p1", "option_id": "o1", "quantity": 2,
            "sale_price_per_item": 5000, "channel": "coupang", "channel_fee_pct": 8,
        }],
        "purchases": [{
            "date": "2026-01-02",
            "items": [{"option_id": "o1", "quantity": 10, "cost_cny_per_item": 5}],
            "shipping_cost_krw": 5000,
        }],
    }
    path = tmp_path / "ledger.json"
    path.write_text(json.dumps(ledger))
    main(["dashboard", "report", str(path), "--rate", "200"])
    data = json.loads(capsys.readouterr().out)
    assert data["summary"]["total_revenue"] == 10000
    # 10000 - 3000 cost - 800 fee
    assert data["summary"]["total_profit"] == 6200
    assert data["summary"]["total_purchase_cost"] == 15000
    assert data["monthly"][0]["month"] == "2026-01"


def test_missing_file():
    with pytest.raises(SystemExit):
        main(["dashboard", "report", "/nonexistent/ledger.json"])
