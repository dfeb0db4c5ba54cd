"""Payment intent creation for pending reservations.

The intent carries the reservation id in its metadata; the webhook uses it to
route ``payment_intent.succeeded`` back to the reservation. The idempotency
key is derived from the reservation id, so repeated requests return the same
provider intent instead of creating a new charge.
"""

from __future__ import annotations

import logging

from hotelbook.domain.errors import ForbiddenError, InvalidTransitionError, PaymentProviderError
from hotelbook.domain.models import Actor, PaymentStatus, ReservationStatus
from hotelbook.domain.pricing import to_cents
from hotelbook.domain.reservations import get_reservation
from hotelbook.infra.store import ReservationStore
from hotelbook.observability.redaction import safe_log_context
from hotelbook.stripe.provider import PaymentIntent, PaymentProvider

logger = logging.getLogger(__name__)


def _get_idempotency_key(reservation_id: str) -> str:
    return f"reservation:{reservation_id}:payment_intent"


def create_payment_intent(
    store: ReservationStore,
    provider: PaymentProvider | None,
    reservation_id: str,
    *,
    actor: Actor,
    currency: str = "usd",
) -> PaymentIntent:
    """Create (or reuse) the provider payment intent for a reservation.

    Raises:
        NotFoundError: Unknown reservation.
        ForbiddenError: Actor is not the guest who booked.
        InvalidTransitionError: Reservation is not pending or already paid.
        PaymentProviderError: Provider unavailable or not configured.
    """
    reservation = get_reservation(store, reservation_id, actor=actor)
    if not reservation.is_owned_by(actor.user_id):
        raise ForbiddenError("Only the booking guest can pay for a reservation")
    if (
        reservation.status is not ReservationStatus.PENDING
        or reservation.payment.status is not PaymentStatus.PENDING
    ):
        raise InvalidTransitionError(
            f"Reservation is {reservation.status.value} and cannot be paid",
            current=reservation.status.value,
            target=ReservationStatus.CONFIRMED.value,
        )
    if provider is None:
        raise PaymentProviderError("Payment provider not configured")

    intent = provider.create_intent(
        amount_cents=to_cents(reservation.pricing.grand_total),
        currency=currency,
        metadata={
            "reservation_id": reservation.id,
            "booking_reference": reservation.booking_reference,
        },
        idempotency_key=_get_idempotency_key(reservation.id),
    )

    logger.info(
        "payment intent ready",
        extra={
            "extra_fields": safe_log_context(
                reservation_id=reservation.id,
                payment_intent_id=intent.reference,
            )
        },
    )
    return intent
