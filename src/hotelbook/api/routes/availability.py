"""Public availability search."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from hotelbook.api.deps import get_store
from hotelbook.api.errors import to_http_exception
from hotelbook.api.schemas import availability_to_dict
from hotelbook.domain.availability import check_availability, check_hotel_availability
from hotelbook.domain.errors import BookingError
from hotelbook.infra.store import ReservationStore
from hotelbook.infra.time import ensure_aware

router = APIRouter(tags=["availability"])


@router.get("/hotels/{hotel_id}/availability")
def hotel_availability(
    hotel_id: str,
    check_in: datetime = Query(...),
    check_out: datetime = Query(...),
    guests: int | None = Query(None, ge=1),
    store: ReservationStore = Depends(get_store),
) -> dict:
    try:
        with store.unit_of_work() as session:
            rooms = check_hotel_availability(
                session, hotel_id, ensure_aware(check_in), ensure_aware(check_out), guests
            )
    except BookingError as e:
        raise to_http_exception(e)
    return {"hotel_id": hotel_id, "rooms": [availability_to_dict(r) for r in rooms]}


@router.get("/rooms/{room_id}/availability")
def room_availability(
    room_id: str,
    check_in: datetime = Query(...),
    check_out: datetime = Query(...),
    guests: int | None = Query(None, ge=1),
    store: ReservationStore = Depends(get_store),
) -> dict:
    try:
        with store.unit_of_work() as session:
            result = check_availability(
                session, room_id, ensure_aware(check_in), ensure_aware(check_out), guests
            )
    except BookingError as e:
        raise to_http_exception(e)
    return availability_to_dict(result)
