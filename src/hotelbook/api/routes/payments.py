"""Guest payment endpoints.

- create-intent: Stripe PaymentIntent for a pending booking
- verify: client reports a completed payment; we ask Stripe before confirming
- simulate: test-mode confirmation without Stripe
- status: payment sub-record of a booking
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from hotelbook.api.auth import CurrentUser, get_current_user
from hotelbook.api.deps import get_gateway, get_payment_provider, get_settings, get_store
from hotelbook.api.errors import to_http_exception
from hotelbook.api.schemas import (
    CreateIntentRequest,
    SimulatePaymentRequest,
    VerifyPaymentRequest,
    reservation_to_dict,
)
from hotelbook.config import Settings
from hotelbook.domain import reservations
from hotelbook.domain.errors import BookingError
from hotelbook.domain.payments import create_payment_intent
from hotelbook.domain.reconciliation import ConfirmOutcome, PaymentReconciliationGateway
from hotelbook.infra.store import ReservationStore
from hotelbook.stripe.provider import PaymentProvider

router = APIRouter(prefix="/payments", tags=["payments"])


def _outcome_body(outcome: ConfirmOutcome) -> dict:
    body: dict = {"status": outcome.status.value}
    if outcome.reservation is not None:
        body["booking"] = reservation_to_dict(outcome.reservation)
    return body


@router.post("/create-intent")
def create_intent(
    req: CreateIntentRequest,
    user: CurrentUser = Depends(get_current_user),
    store: ReservationStore = Depends(get_store),
    provider: PaymentProvider | None = Depends(get_payment_provider),
    settings: Settings = Depends(get_settings),
) -> dict:
    try:
        intent = create_payment_intent(
            store,
            provider,
            req.booking_id,
            actor=user.to_actor(),
            currency=settings.currency,
        )
    except BookingError as e:
        raise to_http_exception(e)
    return {"client_secret": intent.client_secret, "payment_intent_id": intent.reference}


@router.post("/verify")
def verify_payment(
    req: VerifyPaymentRequest,
    user: CurrentUser = Depends(get_current_user),
    gateway: PaymentReconciliationGateway = Depends(get_gateway),
) -> dict:
    try:
        outcome = gateway.verify(req.booking_id, req.payment_intent_id, actor=user.to_actor())
    except BookingError as e:
        raise to_http_exception(e)
    return _outcome_body(outcome)


@router.post("/simulate")
def simulate_payment(
    req: SimulatePaymentRequest,
    user: CurrentUser = Depends(get_current_user),
    gateway: PaymentReconciliationGateway = Depends(get_gateway),
) -> dict:
    try:
        outcome = gateway.simulate(req.booking_id, actor=user.to_actor())
    except BookingError as e:
        raise to_http_exception(e)
    return _outcome_body(outcome)


@router.get("/{booking_id}/status")
def payment_status(
    booking_id: str,
    user: CurrentUser = Depends(get_current_user),
    store: ReservationStore = Depends(get_store),
) -> dict:
    try:
        status = reservations.get_payment_status(store, booking_id, actor=user.to_actor())
    except BookingError as e:
        raise to_http_exception(e)
    paid_at = status["paid_at"]
    return {"status": status["status"], "paid_at": paid_at.isoformat() if paid_at else None}
