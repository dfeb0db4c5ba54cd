"""Tests for the pricing calculator."""

from datetime import timedelta
from decimal import Decimal

import pytest

from helpers import utc
from hotelbook.domain.models import SelectedExtra
from hotelbook.domain.pricing import compute_pricing, count_nights, to_cents, to_money


class TestComputePricing:
    def test_three_nights_no_extras(self):
        breakdown = compute_pricing(Decimal("100"), 3)

        assert breakdown.room_total == Decimal("300.00")
        assert breakdown.extras_total == Decimal("0.00")
        assert breakdown.taxes == Decimal("30.00")
        assert breakdown.grand_total == Decimal("330.00")

    def test_extras_are_price_times_quantity(self):
        extras = [
            SelectedExtra(name="Breakfast", price=Decimal("15"), quantity=2),
            SelectedExtra(name="Parking", price=Decimal("10")),
        ]

        breakdown = compute_pricing(Decimal("100"), 3, extras)

        assert breakdown.extras_total == Decimal("40.00")
        assert breakdown.subtotal == Decimal("340.00")
        assert breakdown.taxes == Decimal("34.00")
        assert breakdown.grand_total == Decimal("374.00")

    def test_zero_nights_clamped_to_one(self):
        assert compute_pricing(Decimal("100"), 0).room_total == Decimal("100.00")
        assert compute_pricing(Decimal("100"), -2).room_total == Decimal("100.00")

    def test_taxes_round_half_up_to_cents(self):
        # 33.35 * 0.10 = 3.335 -> 3.34
        breakdown = compute_pricing(Decimal("33.35"), 1)

        assert breakdown.taxes == Decimal("3.34")
        assert breakdown.grand_total == Decimal("36.69")

    def test_custom_tax_rate(self):
        breakdown = compute_pricing(Decimal("200"), 2, tax_rate=Decimal("0.21"))

        assert breakdown.taxes == Decimal("84.00")
        assert breakdown.grand_total == Decimal("484.00")

    def test_grand_total_is_sum_of_parts(self):
        extras = [SelectedExtra(name="Spa", price=Decimal("19.99"), quantity=3)]
        b = compute_pricing(Decimal("87.45"), 4, extras)

        assert b.grand_total == b.room_total + b.extras_total + b.taxes


class TestCountNights:
    def test_whole_days(self):
        assert count_nights(utc(2030, 5, 1, 15), utc(2030, 5, 4, 15)) == 3

    def test_partial_day_rounds_up(self):
        check_in = utc(2030, 5, 1, 15)
        assert count_nights(check_in, check_in + timedelta(days=2, hours=5)) == 3

    def test_same_instant_is_one_night(self):
        check_in = utc(2030, 5, 1, 15)
        assert count_nights(check_in, check_in) == 1


class TestMoneyHelpers:
    @pytest.mark.parametrize(
        "raw,expected",
        [("1.005", "1.01"), ("2.344", "2.34"), (3, "3.00"), ("0.125", "0.13")],
    )
    def test_to_money(self, raw, expected):
        assert to_money(raw) == Decimal(expected)

    def test_to_cents(self):
        assert to_cents(Decimal("330.00")) == 33000
        assert to_cents(Decimal("36.69")) == 3669
