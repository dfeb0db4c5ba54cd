"""Pricing calculator.

The breakdown is computed once at booking time and frozen on the reservation.
Rounding happens at each step (taxes, then grand total) because refunds are
later derived from the exact frozen grand total.
"""

from __future__ import annotations

import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from hotelbook.domain.models import PriceBreakdown, SelectedExtra

CENTS = Decimal("0.01")
_SECONDS_PER_DAY = 86400


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Round a value to cents, half up."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_cents(amount: Decimal) -> int:
    """Convert a money amount to integer minor units."""
    return int((to_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def count_nights(check_in: datetime, check_out: datetime) -> int:
    """Number of billable nights: ceil of the day delta, never less than 1."""
    seconds = abs((check_out - check_in).total_seconds())
    return max(math.ceil(seconds / _SECONDS_PER_DAY), 1)


def compute_pricing(
    rate_per_night: Decimal | int | str,
    nights: int,
    extras: Iterable[SelectedExtra] = (),
    tax_rate: Decimal | str = Decimal("0.10"),
) -> PriceBreakdown:
    """Itemize a booking price.

    Args:
        rate_per_night: Room nightly rate.
        nights: Caller-computed nights; clamped to a minimum of 1.
        extras: Selected extras (price x quantity each).
        tax_rate: Fraction applied to the subtotal (0.1 == 10%).

    Returns:
        PriceBreakdown with room_total, extras_total, taxes, grand_total.
    """
    nights = max(int(nights), 1)
    rate = Decimal(str(rate_per_night))
    tax = Decimal(str(tax_rate))

    room_total = to_money(rate * nights)
    extras_total = to_money(
        sum((Decimal(str(e.price)) * e.quantity for e in extras), Decimal("0"))
    )
    subtotal = room_total + extras_total
    taxes = to_money(subtotal * tax)
    grand_total = to_money(subtotal + taxes)

    return PriceBreakdown(
        room_total=room_total,
        extras_total=extras_total,
        taxes=taxes,
        grand_total=grand_total,
    )
