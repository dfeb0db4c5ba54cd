"""Availability engine.

Remaining capacity for a room over [check_in, check_out):

    available = max(quantity - count(overlapping confirmed|checked-in), 0)

Overlap formula:  (new_check_in < existing_check_out) AND (existing_check_in < new_check_out)
Strict inequality lets a checkout and the next check-in share the same instant.

Pending reservations (pre-payment) and cancelled ones never occupy capacity.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from hotelbook.domain.errors import NotFoundError, ValidationError
from hotelbook.domain.models import OCCUPYING_STATUSES, Room
from hotelbook.infra.store import StoreSession
from hotelbook.observability.redaction import safe_log_context

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoomAvailability:
    room: Room
    available: int
    total_quantity: int


def validate_range(check_in: datetime, check_out: datetime) -> None:
    if check_out <= check_in:
        raise ValidationError("check_out must be after check_in")


def occupied_count(
    session: StoreSession,
    room_id: str,
    check_in: datetime,
    check_out: datetime,
    *,
    exclude_reservation_id: str | None = None,
) -> int:
    """Number of capacity-consuming reservations overlapping the range."""
    return len(
        session.find_overlapping(
            room_id,
            check_in,
            check_out,
            OCCUPYING_STATUSES,
            exclude_reservation_id=exclude_reservation_id,
        )
    )


def room_availability(
    session: StoreSession,
    room: Room,
    check_in: datetime,
    check_out: datetime,
    guests: int | None = None,
) -> RoomAvailability:
    """Availability of an already-loaded room; 0 if it cannot host the guests."""
    if guests is not None and not room.capacity.fits(guests):
        return RoomAvailability(room=room, available=0, total_quantity=room.quantity)

    taken = occupied_count(session, room.id, check_in, check_out)
    return RoomAvailability(
        room=room,
        available=max(room.quantity - taken, 0),
        total_quantity=room.quantity,
    )


def check_availability(
    session: StoreSession,
    room_id: str,
    check_in: datetime,
    check_out: datetime,
    guests: int | None = None,
) -> RoomAvailability:
    """Remaining capacity of one room for the range.

    Raises:
        ValidationError: If check_out <= check_in.
        NotFoundError: If the room does not exist or is inactive.
    """
    validate_range(check_in, check_out)
    room = session.get_room(room_id)
    if room is None or not room.is_active:
        raise NotFoundError(f"Room {room_id} not found")
    return room_availability(session, room, check_in, check_out, guests)


def check_hotel_availability(
    session: StoreSession,
    hotel_id: str,
    check_in: datetime,
    check_out: datetime,
    guests: int | None = None,
) -> list[RoomAvailability]:
    """Rooms of a hotel with capacity left that can host the guests.

    Raises:
        ValidationError: If check_out <= check_in.
        NotFoundError: If the hotel does not exist or is inactive.
    """
    validate_range(check_in, check_out)
    hotel = session.get_hotel(hotel_id)
    if hotel is None or not hotel.is_active:
        raise NotFoundError(f"Hotel {hotel_id} not found")

    results = [
        room_availability(session, room, check_in, check_out, guests)
        for room in session.list_rooms(hotel_id)
        if room.is_active
    ]
    available = [r for r in results if r.available > 0]

    logger.debug(
        "hotel availability computed",
        extra={
            "extra_fields": safe_log_context(
                hotel_id=hotel_id,
                rooms_checked=len(results),
                rooms_available=len(available),
            )
        },
    )
    return available
