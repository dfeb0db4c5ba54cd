"""Booking lifecycle endpoints.

Guests create, read, amend and cancel their own bookings; staff list all
bookings and drive check-in/check-out.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from hotelbook.api.auth import CurrentUser, get_current_user, require_admin
from hotelbook.api.deps import get_settings, get_state_machine, get_store
from hotelbook.api.errors import to_http_exception
from hotelbook.api.schemas import (
    AmendBookingRequest,
    CancelBookingRequest,
    CreateBookingRequest,
    page_to_dict,
    reservation_to_dict,
)
from hotelbook.config import Settings
from hotelbook.domain import reservations
from hotelbook.domain.errors import BookingError
from hotelbook.domain.models import ReservationStatus
from hotelbook.domain.state_machine import BookingStateMachine
from hotelbook.infra.store import ReservationStore

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _parse_status(status: str | None) -> ReservationStatus | None:
    if status is None:
        return None
    try:
        return ReservationStatus(status)
    except ValueError:
        raise HTTPException(
            status_code=422,
            detail={"code": "validation_error", "message": f"Unknown status: {status}"},
        )


@router.post("", status_code=201)
def create_booking(
    req: CreateBookingRequest,
    user: CurrentUser = Depends(get_current_user),
    store: ReservationStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> dict:
    try:
        reservation = reservations.create_reservation(
            store,
            guest_id=user.id,
            hotel_id=req.hotel_id,
            room_id=req.room_id,
            check_in=req.check_in,
            check_out=req.check_out,
            guests=req.guests.to_domain(),
            extras=[e.to_domain() for e in req.extras],
            special_requests=req.special_requests,
            tax_rate=settings.tax_rate,
        )
    except BookingError as e:
        raise to_http_exception(e)
    return reservation_to_dict(reservation)


@router.get("")
def list_bookings(
    status: str | None = Query(None),
    hotel_id: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=reservations.MAX_PAGE_SIZE),
    _admin: CurrentUser = Depends(require_admin),
    store: ReservationStore = Depends(get_store),
) -> dict:
    try:
        result = reservations.list_reservations(
            store,
            status=_parse_status(status),
            hotel_id=hotel_id,
            page=page,
            limit=limit,
        )
    except BookingError as e:
        raise to_http_exception(e)
    return page_to_dict(result)


@router.get("/mine")
def list_my_bookings(
    status: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=reservations.MAX_PAGE_SIZE),
    user: CurrentUser = Depends(get_current_user),
    store: ReservationStore = Depends(get_store),
) -> dict:
    try:
        result = reservations.list_reservations(
            store,
            status=_parse_status(status),
            guest_id=user.id,
            page=page,
            limit=limit,
        )
    except BookingError as e:
        raise to_http_exception(e)
    return page_to_dict(result)


@router.get("/{booking_id}")
def get_booking(
    booking_id: str,
    user: CurrentUser = Depends(get_current_user),
    store: ReservationStore = Depends(get_store),
) -> dict:
    try:
        reservation = reservations.get_reservation(store, booking_id, actor=user.to_actor())
    except BookingError as e:
        raise to_http_exception(e)
    return reservation_to_dict(reservation)


@router.patch("/{booking_id}")
def amend_booking(
    booking_id: str,
    req: AmendBookingRequest,
    user: CurrentUser = Depends(get_current_user),
    store: ReservationStore = Depends(get_store),
) -> dict:
    try:
        reservation = reservations.amend_reservation(
            store,
            booking_id,
            actor=user.to_actor(),
            special_requests=req.special_requests,
            guests=req.guests.to_domain() if req.guests is not None else None,
        )
    except BookingError as e:
        raise to_http_exception(e)
    return reservation_to_dict(reservation)


@router.post("/{booking_id}/cancel")
def cancel_booking(
    booking_id: str,
    req: CancelBookingRequest | None = None,
    user: CurrentUser = Depends(get_current_user),
    machine: BookingStateMachine = Depends(get_state_machine),
) -> dict:
    reason = req.reason if req is not None else None
    try:
        reservation = machine.cancel(booking_id, reason, actor=user.to_actor())
    except BookingError as e:
        raise to_http_exception(e)

    body = reservation_to_dict(reservation)
    body["refund_amount"] = body["cancellation"]["refund_amount"]
    return body


@router.post("/{booking_id}/check-in")
def check_in_booking(
    booking_id: str,
    admin: CurrentUser = Depends(require_admin),
    machine: BookingStateMachine = Depends(get_state_machine),
) -> dict:
    try:
        reservation = machine.check_in(booking_id, actor=admin.to_actor())
    except BookingError as e:
        raise to_http_exception(e)
    return reservation_to_dict(reservation)


@router.post("/{booking_id}/check-out")
def check_out_booking(
    booking_id: str,
    admin: CurrentUser = Depends(require_admin),
    machine: BookingStateMachine = Depends(get_state_machine),
) -> dict:
    try:
        reservation = machine.check_out(booking_id, actor=admin.to_actor())
    except BookingError as e:
        raise to_http_exception(e)
    return reservation_to_dict(reservation)
