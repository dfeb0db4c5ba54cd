"""Booking domain model.

Reservations and their embedded records are frozen dataclasses; every state
change produces a new value via ``dataclasses.replace`` so that a store can
keep snapshots for rollback and nothing is mutated behind a lock's back.
"""

from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum


class ReservationStatus(str, Enum):
    """Lifecycle status of a reservation."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked-in"
    CHECKED_OUT = "checked-out"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Status of the payment sub-record."""

    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    PARTIAL_REFUND = "partial-refund"


# Only these statuses consume room capacity
OCCUPYING_STATUSES = (ReservationStatus.CONFIRMED, ReservationStatus.CHECKED_IN)


@dataclass(frozen=True)
class GuestCount:
    adults: int
    children: int = 0

    @property
    def total(self) -> int:
        return self.adults + self.children


@dataclass(frozen=True)
class Capacity:
    adults: int
    children: int = 0

    def fits(self, guests: int) -> bool:
        return self.adults + self.children >= guests


@dataclass(frozen=True)
class CancellationPolicy:
    """Hotel policy governing the refund amount (not cancellation eligibility)."""

    free_cancellation_days: int = 3
    refund_percentage: int = 100


@dataclass(frozen=True)
class Hotel:
    id: str
    name: str
    is_active: bool = True
    cancellation_policy: CancellationPolicy = field(default_factory=CancellationPolicy)


@dataclass(frozen=True)
class Room:
    """A room type with a fixed number of physical instances."""

    id: str
    hotel_id: str
    name: str
    price_per_night: Decimal
    quantity: int
    capacity: Capacity
    room_type: str = "double"
    is_active: bool = True


@dataclass(frozen=True)
class SelectedExtra:
    name: str
    price: Decimal
    quantity: int = 1


@dataclass(frozen=True)
class PriceBreakdown:
    room_total: Decimal
    extras_total: Decimal
    taxes: Decimal
    grand_total: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.room_total + self.extras_total


@dataclass(frozen=True)
class PaymentRecord:
    status: PaymentStatus = PaymentStatus.PENDING
    stripe_payment_id: str | None = None
    paid_at: datetime | None = None
    refund_id: str | None = None


@dataclass(frozen=True)
class CancellationRecord:
    cancelled_at: datetime
    reason: str
    refund_amount: Decimal
    cancelled_by: str | None = None


@dataclass(frozen=True)
class Reservation:
    id: str
    booking_reference: str
    guest_id: str
    hotel_id: str
    room_id: str
    check_in: datetime
    check_out: datetime
    guests: GuestCount
    pricing: PriceBreakdown
    extras: tuple[SelectedExtra, ...] = ()
    status: ReservationStatus = ReservationStatus.PENDING
    payment: PaymentRecord = field(default_factory=PaymentRecord)
    cancellation: CancellationRecord | None = None
    special_requests: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def occupies_capacity(self) -> bool:
        return self.status in OCCUPYING_STATUSES

    def overlaps(self, check_in: datetime, check_out: datetime) -> bool:
        """Half-open interval overlap: [a, b) and [c, d) overlap iff a < d and c < b."""
        return ranges_overlap(self.check_in, self.check_out, check_in, check_out)

    def is_owned_by(self, user_id: str) -> bool:
        return self.guest_id == user_id


@dataclass(frozen=True)
class Actor:
    """Who is acting on a reservation (resolved by the auth layer)."""

    user_id: str
    is_admin: bool = False

    def can_access(self, reservation: Reservation) -> bool:
        return self.is_admin or reservation.is_owned_by(self.user_id)


def ranges_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Back-to-back ranges (a_end == b_start) do not overlap."""
    return a_start < b_end and b_start < a_end


def new_reservation_id() -> str:
    return str(uuid.uuid4())


def new_booking_reference() -> str:
    return f"BK-{secrets.token_hex(4).upper()}"
