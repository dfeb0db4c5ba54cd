"""Tests for payment intent creation."""

from datetime import timedelta

import pytest

from helpers import ADMIN_ID, GUEST_ID, OTHER_GUEST_ID, days_from_now, put_reservation
from hotelbook.domain.errors import ForbiddenError, InvalidTransitionError, NotFoundError, PaymentProviderError
from hotelbook.domain.models import Actor, PaymentStatus, ReservationStatus
from hotelbook.domain.payments import create_payment_intent

RES_ID = "22222222-aaaa-bbbb-cccc-000000000002"


@pytest.fixture
def pending(store):
    check_in = days_from_now(20)
    return put_reservation(store, reservation_id=RES_ID, check_in=check_in, check_out=check_in + timedelta(days=3))


class TestCreatePaymentIntent:
    def test_amount_metadata_and_idempotency_key(self, store, provider, pending):
        intent = create_payment_intent(store, provider, RES_ID, actor=Actor(user_id=GUEST_ID), currency="eur")

        assert intent.client_secret.startswith(intent.reference)
        assert provider.intents == [
            {
                "amount_cents": 33000,
                "currency": "eur",
                "metadata": {"reservation_id": RES_ID, "booking_reference": pending.booking_reference},
                "idempotency_key": f"reservation:{RES_ID}:payment_intent",
            }
        ]

    def test_repeated_requests_reuse_the_key(self, store, provider, pending):
        actor = Actor(user_id=GUEST_ID)
        create_payment_intent(store, provider, RES_ID, actor=actor)
        create_payment_intent(store, provider, RES_ID, actor=actor)

        keys = {call["idempotency_key"] for call in provider.intents}
        assert keys == {f"reservation:{RES_ID}:payment_intent"}

    def test_only_the_booking_guest(self, store, provider, pending):
        with pytest.raises(ForbiddenError):
            create_payment_intent(store, provider, RES_ID, actor=Actor(user_id=OTHER_GUEST_ID))
        with pytest.raises(ForbiddenError):
            create_payment_intent(store, provider, RES_ID, actor=Actor(user_id=ADMIN_ID, is_admin=True))

    def test_confirmed_reservation_cannot_be_paid_again(self, store, provider):
        check_in = days_from_now(20)
        put_reservation(store, reservation_id=RES_ID, check_in=check_in, check_out=check_in + timedelta(days=1),
                        status=ReservationStatus.CONFIRMED, payment_status=PaymentStatus.PAID,
                        stripe_payment_id="pi_1")

        with pytest.raises(InvalidTransitionError):
            create_payment_intent(store, provider, RES_ID, actor=Actor(user_id=GUEST_ID))
        assert provider.intents == []

    def test_unknown_reservation(self, store, provider):
        with pytest.raises(NotFoundError):
            create_payment_intent(store, provider, "missing", actor=Actor(user_id=GUEST_ID))

    def test_provider_not_configured(self, store, pending):
        with pytest.raises(PaymentProviderError):
            create_payment_intent(store, None, RES_ID, actor=Actor(user_id=GUEST_ID))
