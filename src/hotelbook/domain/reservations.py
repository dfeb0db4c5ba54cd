"""Reservation coordinator - transactional booking creation and queries.

Capacity policy: enforcement is deferred to confirmation. A new reservation
is created ``pending`` and does not consume capacity; creation still refuses
dates whose confirmed/checked-in occupancy already fills the room, and the
reconciliation gateway re-checks under the same room lock before confirming.

The overlap count and the insert run in one unit of work with the room row
locked, so no concurrent insert or confirmation for the same room can slip in
between them.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from hotelbook.domain.availability import occupied_count, validate_range
from hotelbook.domain.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    UnavailableError,
    ValidationError,
)
from hotelbook.domain.models import (
    Actor,
    GuestCount,
    Reservation,
    ReservationStatus,
    SelectedExtra,
    new_booking_reference,
    new_reservation_id,
)
from hotelbook.domain.pricing import compute_pricing, count_nights
from hotelbook.infra.store import Page, ReservationFilters, ReservationStore
from hotelbook.infra.time import ensure_aware, utc_now
from hotelbook.observability.redaction import safe_log_context

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

_AMENDABLE_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)


def _validate_guests(guests: GuestCount) -> None:
    if guests.adults < 1:
        raise ValidationError("At least 1 adult guest is required")
    if guests.children < 0:
        raise ValidationError("children cannot be negative")


def _validate_extras(extras: Iterable[SelectedExtra]) -> tuple[SelectedExtra, ...]:
    result = tuple(extras)
    for extra in result:
        if extra.quantity < 1:
            raise ValidationError(f"Extra '{extra.name}' quantity must be at least 1")
        if Decimal(str(extra.price)) < 0:
            raise ValidationError(f"Extra '{extra.name}' price cannot be negative")
    return result


def create_reservation(
    store: ReservationStore,
    *,
    guest_id: str,
    hotel_id: str,
    room_id: str,
    check_in: datetime,
    check_out: datetime,
    guests: GuestCount,
    extras: Iterable[SelectedExtra] = (),
    special_requests: str = "",
    tax_rate: Decimal = Decimal("0.10"),
    now: datetime | None = None,
) -> Reservation:
    """Create a pending reservation with frozen pricing.

    Steps (single unit of work):
    1. Load hotel; lock room row
    2. Validate hotel/room active and guest capacity
    3. Count confirmed/checked-in overlaps; refuse if the room is full
    4. Insert the reservation as pending

    Raises:
        ValidationError: check_out <= check_in, check-in before today,
            adults < 1, invalid extras, or more guests than the room holds.
        NotFoundError: Hotel or room missing, inactive or unrelated.
        UnavailableError: Occupancy already equals room quantity.
    """
    now = now or utc_now()
    check_in = ensure_aware(check_in)
    check_out = ensure_aware(check_out)

    validate_range(check_in, check_out)
    if check_in.date() < now.date():
        raise ValidationError("check_in cannot be in the past")
    _validate_guests(guests)
    selected = _validate_extras(extras)

    with store.unit_of_work() as session:
        hotel = session.get_hotel(hotel_id)
        if hotel is None or not hotel.is_active:
            raise NotFoundError(f"Hotel {hotel_id} not found")

        room = session.lock_room(room_id)
        if room is None or not room.is_active or room.hotel_id != hotel_id:
            raise NotFoundError(f"Room {room_id} not found")

        if not room.capacity.fits(guests.total):
            raise ValidationError(
                f"Room holds {room.capacity.adults + room.capacity.children} guests, "
                f"{guests.total} requested"
            )

        taken = occupied_count(session, room.id, check_in, check_out)
        if taken >= room.quantity:
            logger.info(
                "reservation refused: room full",
                extra={
                    "extra_fields": safe_log_context(
                        room_id=room.id,
                        occupied=taken,
                        quantity=room.quantity,
                    )
                },
            )
            raise UnavailableError("Room not available for selected dates")

        pricing = compute_pricing(
            room.price_per_night,
            count_nights(check_in, check_out),
            selected,
            tax_rate,
        )

        reservation = session.insert_reservation(
            Reservation(
                id=new_reservation_id(),
                booking_reference=new_booking_reference(),
                guest_id=guest_id,
                hotel_id=hotel_id,
                room_id=room.id,
                check_in=check_in,
                check_out=check_out,
                guests=guests,
                extras=selected,
                pricing=pricing,
                special_requests=special_requests or "",
                created_at=now,
                updated_at=now,
            )
        )

    logger.info(
        "reservation created",
        extra={
            "extra_fields": safe_log_context(
                reservation_id=reservation.id,
                booking_reference=reservation.booking_reference,
                room_id=room_id,
                grand_total=reservation.pricing.grand_total,
            )
        },
    )
    return reservation


def get_reservation(store: ReservationStore, reservation_id: str, *, actor: Actor) -> Reservation:
    """Load a reservation visible to the actor.

    Raises:
        NotFoundError: Unknown reservation.
        ForbiddenError: Actor is neither the owner nor an admin.
    """
    with store.unit_of_work() as session:
        reservation = session.get_reservation(reservation_id)
    if reservation is None:
        raise NotFoundError(f"Reservation {reservation_id} not found")
    if not actor.can_access(reservation):
        raise ForbiddenError("Access denied")
    return reservation


def list_reservations(
    store: ReservationStore,
    *,
    status: ReservationStatus | None = None,
    hotel_id: str | None = None,
    guest_id: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> Page:
    """Newest-first page of reservations matching the filters."""
    if page < 1:
        raise ValidationError("page must be >= 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

    filters = ReservationFilters(status=status, hotel_id=hotel_id, guest_id=guest_id)
    with store.unit_of_work() as session:
        return session.list_reservations(filters, page=page, limit=limit)


def amend_reservation(
    store: ReservationStore,
    reservation_id: str,
    *,
    actor: Actor,
    special_requests: str | None = None,
    guests: GuestCount | None = None,
) -> Reservation:
    """Change guest-facing details of a pending or confirmed reservation.

    Pricing stays frozen; guest count must still fit the room.
    """
    if guests is not None:
        _validate_guests(guests)

    with store.unit_of_work() as session:
        reservation = session.get_reservation(reservation_id, for_update=True)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        if not actor.can_access(reservation):
            raise ForbiddenError("Access denied")
        if reservation.status not in _AMENDABLE_STATUSES:
            raise InvalidTransitionError(
                f"Reservation is {reservation.status.value} and can no longer be changed",
                current=reservation.status.value,
            )

        changes: dict = {}
        if special_requests is not None:
            changes["special_requests"] = special_requests
        if guests is not None:
            room = session.get_room(reservation.room_id)
            if room is None or not room.capacity.fits(guests.total):
                raise ValidationError("Guest count exceeds room capacity")
            changes["guests"] = guests
        if not changes:
            return reservation

        return session.update_reservation(replace(reservation, updated_at=utc_now(), **changes))


def get_payment_status(store: ReservationStore, reservation_id: str, *, actor: Actor) -> dict:
    reservation = get_reservation(store, reservation_id, actor=actor)
    return {
        "status": reservation.payment.status.value,
        "paid_at": reservation.payment.paid_at,
    }
