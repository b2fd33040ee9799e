"""Landed-cost allocation and moving-average cost tests."""

import random
from decimal import Decimal

import pytest

from app.services.costing import (
    OptionState, PurchaseInput, PurchaseLine, additional_costs, allocate_landed_cost,
    apply_purchase, apply_sale, lines_from_dicts, receive_purchase, value_share_breakdown,
    weighted_average,
)
from app.services.currency import CurrencyConverter
from app.services.results import ResultFlag


@pytest.fixture
def converter():
    return CurrencyConverter(Decimal("190"))


@pytest.fixture
def mixed_purchase():
    return PurchaseInput(
        items=[
            PurchaseLine("p1", "o1", 10, Decimal("50")),
            PurchaseLine("p1", "o2", 5, Decimal("80")),
        ],
        shipping_cost_krw=Decimal("10000"),
        customs_fee_krw=Decimal("5000"),
    )


class TestLandedCost:
    def test_blended_cost(self, mixed_purchase, converter):
        landed = allocate_landed_cost(mixed_purchase, converter)
        assert landed.items_foreign_total == Decimal("900")
        assert landed.items_local_total == Decimal("171000")
        assert landed.additional_total == Decimal("15000")
        assert landed.grand_total == Decimal("186000")
        assert landed.total_quantity == 15
        assert landed.blended_unit_cost == Decimal("12400")
        assert landed.flags == []
        assert landed.mutates_cost

    def test_additional_costs(self):
        purchase = PurchaseInput(
            shipping_cost_krw=Decimal("100"), customs_fee_krw=Decimal("20"), other_fee_krw=Decimal("3"),
        )
        assert additional_costs(purchase) == Decimal("123")

    def test_no_quantity_is_degenerate(self, converter):
        purchase = PurchaseInput(items=[], shipping_cost_krw=Decimal("5000"))
        landed = allocate_landed_cost(purchase, converter)
        assert landed.blended_unit_cost == 0
        assert landed.total_quantity == 0
        assert ResultFlag.DEGENERATE_INPUT in landed.flags
        assert not landed.mutates_cost

    def test_free_goods_are_degenerate(self, converter):
        purchase = PurchaseInput(items=[PurchaseLine("p", "o", 3, Decimal("0"))])
        landed = allocate_landed_cost(purchase, converter)
        assert landed.blended_unit_cost == 0
        assert ResultFlag.DEGENERATE_INPUT in landed.flags


class TestValueShare:
    def test_shares_sum_to_hundred(self, mixed_purchase, converter):
        shares = value_share_breakdown(mixed_purchase, converter)
        assert float(sum(s.share_pct for s in shares)) == pytest.approx(100)

    def test_line_costs(self, mixed_purchase, converter):
        first, second = value_share_breakdown(mixed_purchase, converter)
        # 95000 / 171000 of the 15000 fees
        assert float(first.additional_cost) == pytest.approx(8333.33, abs=0.01)
        assert float(first.actual_unit_cost) == pytest.approx(10333.33, abs=0.01)
        assert float(second.actual_unit_cost) == pytest.approx(16533.33, abs=0.01)

    def test_redistributes_grand_total(self, mixed_purchase, converter):
        shares = value_share_breakdown(mixed_purchase, converter)
        total = sum(s.actual_unit_cost * s.quantity for s in shares)
        assert float(total) == pytest.approx(186000)

    def test_zero_value_purchase(self, converter):
        purchase = PurchaseInput(items=[PurchaseLine("p", "o", 2, Decimal("0"))])
        share = value_share_breakdown(purchase, converter)[0]
        assert share.share_pct == 0
        assert share.actual_unit_cost == 0


class TestWeightedAverage:
    def test_two_receipts(self):
        state = OptionState()
        state = apply_purchase(state, 10, Decimal("1000"))
        assert state == OptionState(stock=10, cost_of_goods=Decimal("1000"))
        state = apply_purchase(state, 10, Decimal("2000"))
        assert state.stock == 20
        assert state.cost_of_goods == Decimal("1500")

    def test_invariant_over_many_receipts(self):
        rng = random.Random(20260501)
        state = OptionState()
        total_qty = 0
        total_value = Decimal("0")
        for _ in range(200):
            qty = rng.randint(1, 50)
            cost = Decimal(rng.randint(100, 100000)) / 7
            state = apply_purchase(state, qty, cost)
            total_qty += qty
            total_value += cost * qty
            assert state.stock == total_qty
            assert float(state.cost_of_goods) == pytest.approx(float(total_value / total_qty), rel=1e-6)

    def test_inventory_value_is_additive(self):
        before = OptionState(stock=7, cost_of_goods=Decimal("1234.5"))
        after = apply_purchase(before, 13, Decimal("999"))
        assert float(after.inventory_value) == pytest.approx(
            float(before.inventory_value + 13 * Decimal("999"))
        )

    def test_non_positive_cost_only_adds_stock(self):
        before = OptionState(stock=4, cost_of_goods=Decimal("1500"))
        after = apply_purchase(before, 6, Decimal("0"))
        assert after.stock == 10
        assert after.cost_of_goods == Decimal("1500")

    @pytest.mark.parametrize("qty", [0, -3])
    def test_non_positive_quantity_is_noop(self, qty):
        before = OptionState(stock=4, cost_of_goods=Decimal("1500"))
        assert apply_purchase(before, qty, Decimal("2000")) == before

    def test_receipt_after_oversell(self):
        # -5 units valued at 1000 plus 5 @ 3000 leaves no stock to average over
        before = OptionState(stock=-5, cost_of_goods=Decimal("1000"))
        after = apply_purchase(before, 5, Decimal("3000"))
        assert after.stock == 0
        assert after.cost_of_goods == Decimal("3000")

    def test_weighted_average_helper(self):
        assert weighted_average([(10, Decimal("1000")), (10, Decimal("2000"))]) == Decimal("1500")
        assert weighted_average([]) == 0


class TestReceivePurchase:
    def test_applies_blended_cost_to_each_option(self, mixed_purchase, converter):
        options = {"o1": OptionState(), "o2": OptionState(stock=5, cost_of_goods=Decimal("10000"))}
        result, landed = receive_purchase(options, mixed_purchase, converter)
        assert result["o1"] == OptionState(stock=10, cost_of_goods=Decimal("12400"))
        assert result["o2"].stock == 10
        assert result["o2"].cost_of_goods == Decimal("11200")
        assert landed.blended_unit_cost == Decimal("12400")

    def test_duplicate_lines_fold_sequentially(self, converter):
        purchase = PurchaseInput(items=[
            PurchaseLine("p", "o", 2, Decimal("10")),
            PurchaseLine("p", "o", 2, Decimal("10")),
        ])
        result, _ = receive_purchase({"o": OptionState()}, purchase, converter)
        assert result["o"] == OptionState(stock=4, cost_of_goods=Decimal("1900"))

    def test_unknown_option_skipped(self, mixed_purchase, converter):
        result, _ = receive_purchase({"o1": OptionState()}, mixed_purchase, converter)
        assert set(result) == {"o1"}

    def test_degenerate_purchase_leaves_cost(self, converter):
        purchase = PurchaseInput(items=[PurchaseLine("p", "o", 5, Decimal("0"))])
        start = {"o": OptionState(stock=1, cost_of_goods=Decimal("700"))}
        result, _ = receive_purchase(start, purchase, converter)
        assert result["o"] == OptionState(stock=6, cost_of_goods=Decimal("700"))


class TestApplySale:
    def test_decrements_stock(self):
        applied = apply_sale(OptionState(stock=10, cost_of_goods=Decimal("100")), 3)
        assert applied.stock == 7
        assert not applied.oversold
        assert applied.flags == []

    def test_oversell_goes_negative(self):
        applied = apply_sale(OptionState(stock=2), 5)
        assert applied.stock == -3
        assert applied.oversold
        assert applied.flags == [ResultFlag.OVERSOLD]


class TestLinesFromDicts:
    def test_builds_lines(self):
        lines = lines_from_dicts([
            {"option_id": "a", "quantity": 3, "cost_cny_per_item": "12.5"},
            {"quantity": "2", "unit_cost": 4},
        ], default_product_id="p")
        assert lines[0].option_id == "a"
        assert lines[0].cost_cny_per_item == Decimal("12.5")
        assert lines[1].option_id == "line-1"
        assert lines[1].quantity == 2
        assert lines[1].product_id == "p"
