"""Request models and response serializers for the booking API."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from hotelbook.domain.availability import RoomAvailability
from hotelbook.domain.models import GuestCount, Reservation, SelectedExtra
from hotelbook.infra.store import Page


class GuestsIn(BaseModel):
    adults: int = Field(ge=1)
    children: int = Field(default=0, ge=0)

    def to_domain(self) -> GuestCount:
        return GuestCount(adults=self.adults, children=self.children)


class ExtraIn(BaseModel):
    name: str
    price: Decimal = Field(ge=0)
    quantity: int = Field(default=1, ge=1)

    def to_domain(self) -> SelectedExtra:
        return SelectedExtra(name=self.name, price=self.price, quantity=self.quantity)


class CreateBookingRequest(BaseModel):
    hotel_id: str
    room_id: str
    check_in: datetime
    check_out: datetime
    guests: GuestsIn
    extras: list[ExtraIn] = Field(default_factory=list)
    special_requests: str = ""


class AmendBookingRequest(BaseModel):
    special_requests: str | None = None
    guests: GuestsIn | None = None


class CancelBookingRequest(BaseModel):
    reason: str | None = None


class CreateIntentRequest(BaseModel):
    booking_id: str


class VerifyPaymentRequest(BaseModel):
    booking_id: str
    payment_intent_id: str


class SimulatePaymentRequest(BaseModel):
    booking_id: str


def _money(value: Decimal) -> str:
    return f"{value:.2f}"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def reservation_to_dict(reservation: Reservation) -> dict[str, Any]:
    cancellation = None
    if reservation.cancellation is not None:
        cancellation = {
            "cancelled_at": _iso(reservation.cancellation.cancelled_at),
            "reason": reservation.cancellation.reason,
            "refund_amount": _money(reservation.cancellation.refund_amount),
            "cancelled_by": reservation.cancellation.cancelled_by,
        }

    return {
        "id": reservation.id,
        "booking_reference": reservation.booking_reference,
        "guest_id": reservation.guest_id,
        "hotel_id": reservation.hotel_id,
        "room_id": reservation.room_id,
        "check_in": _iso(reservation.check_in),
        "check_out": _iso(reservation.check_out),
        "guests": {"adults": reservation.guests.adults, "children": reservation.guests.children},
        "extras": [
            {"name": e.name, "price": _money(e.price), "quantity": e.quantity}
            for e in reservation.extras
        ],
        "pricing": {
            "room_total": _money(reservation.pricing.room_total),
            "extras_total": _money(reservation.pricing.extras_total),
            "taxes": _money(reservation.pricing.taxes),
            "grand_total": _money(reservation.pricing.grand_total),
        },
        "status": reservation.status.value,
        "payment": {
            "status": reservation.payment.status.value,
            "stripe_payment_id": reservation.payment.stripe_payment_id,
            "paid_at": _iso(reservation.payment.paid_at),
        },
        "cancellation": cancellation,
        "special_requests": reservation.special_requests,
        "created_at": _iso(reservation.created_at),
        "updated_at": _iso(reservation.updated_at),
    }


def page_to_dict(page: Page) -> dict[str, Any]:
    return {
        "items": [reservation_to_dict(r) for r in page.items],
        "pagination": {
            "page": page.page,
            "limit": page.limit,
            "total": page.total,
            "pages": page.pages,
        },
    }


def availability_to_dict(result: RoomAvailability) -> dict[str, Any]:
    room = result.room
    return {
        "room_id": room.id,
        "hotel_id": room.hotel_id,
        "name": room.name,
        "room_type": room.room_type,
        "price_per_night": _money(room.price_per_night),
        "capacity": {"adults": room.capacity.adults, "children": room.capacity.children},
        "available": result.available,
        "total_quantity": result.total_quantity,
    }
