"""Booking notification sinks.

Notifications are fire-and-forget: a sink may raise, but callers go through
``notify_safely`` which logs the failure and never propagates it. E-mail
rendering and delivery live downstream of the outbox.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable, Protocol

from hotelbook.domain.models import Reservation
from hotelbook.infra.db import txn
from hotelbook.infra.repositories.outbox_repository import emit_event
from hotelbook.observability.correlation import get_correlation_id
from hotelbook.observability.redaction import safe_log_context

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def notify_booking_confirmed(self, reservation: Reservation) -> None: ...

    def notify_booking_cancelled(self, reservation: Reservation, refund_amount: Decimal) -> None: ...


class LogNotificationSink:
    """Logs notifications instead of delivering them (development)."""

    def notify_booking_confirmed(self, reservation: Reservation) -> None:
        logger.info(
            "booking confirmed notification",
            extra={
                "extra_fields": safe_log_context(
                    reservation_id=reservation.id,
                    booking_reference=reservation.booking_reference,
                )
            },
        )

    def notify_booking_cancelled(self, reservation: Reservation, refund_amount: Decimal) -> None:
        logger.info(
            "booking cancelled notification",
            extra={
                "extra_fields": safe_log_context(
                    reservation_id=reservation.id,
                    booking_reference=reservation.booking_reference,
                    refund_amount=refund_amount,
                )
            },
        )


class OutboxNotificationSink:
    """Writes notification requests to outbox_events for the mail worker."""

    def notify_booking_confirmed(self, reservation: Reservation) -> None:
        with txn() as cur:
            emit_event(
                cur,
                event_type="BOOKING_CONFIRMED",
                aggregate_type="reservation",
                aggregate_id=reservation.id,
                payload={
                    "booking_reference": reservation.booking_reference,
                    "guest_id": reservation.guest_id,
                    "hotel_id": reservation.hotel_id,
                    "room_id": reservation.room_id,
                    "grand_total": str(reservation.pricing.grand_total),
                },
                correlation_id=get_correlation_id() or None,
            )

    def notify_booking_cancelled(self, reservation: Reservation, refund_amount: Decimal) -> None:
        with txn() as cur:
            emit_event(
                cur,
                event_type="BOOKING_CANCELLED",
                aggregate_type="reservation",
                aggregate_id=reservation.id,
                payload={
                    "booking_reference": reservation.booking_reference,
                    "guest_id": reservation.guest_id,
                    "hotel_id": reservation.hotel_id,
                    "refund_amount": str(refund_amount),
                },
                correlation_id=get_correlation_id() or None,
            )


def notify_safely(send: Callable[..., None], *args, event: str, reservation_id: str) -> bool:
    """Invoke a sink method; log and swallow any failure.

    Returns:
        True if the sink accepted the notification.
    """
    try:
        send(*args)
    except Exception:
        logger.exception(
            "notification failed",
            extra={"extra_fields": safe_log_context(event=event, reservation_id=reservation_id)},
        )
        return False
    return True
