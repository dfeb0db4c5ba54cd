"""Shared test helper functions for hotelbook tests.

This module contains helper functions and test doubles that can be imported by
both conftest.py and individual test files. These are NOT fixtures.
"""

from __future__ import annotations

import base64
import threading
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import jwt
from cryptography.hazmat.primitives.asymmetric import rsa

from hotelbook.config import Settings
from hotelbook.domain.errors import PaymentProviderError
from hotelbook.domain.models import (
    CancellationPolicy,
    Capacity,
    GuestCount,
    Hotel,
    PaymentRecord,
    PaymentStatus,
    Reservation,
    ReservationStatus,
    Room,
)
from hotelbook.domain.pricing import compute_pricing, count_nights
from hotelbook.infra.memory_store import InMemoryReservationStore
from hotelbook.stripe.provider import (
    PaymentIntent,
    PaymentStatusResult,
    ProviderEvent,
    RefundResult,
    UnknownPaymentReferenceError,
)

HOTEL_ID = "hotel-1"
ROOM_ID = "room-1"
GUEST_ID = "guest-1"
OTHER_GUEST_ID = "guest-2"
ADMIN_ID = "staff-1"

TEST_ISSUER = "https://auth.example.com"
TEST_AUDIENCE = "hotelbook-api"
TEST_JWKS_URL = "https://auth.example.com/.well-known/jwks.json"


# -- clock ----------------------------------------------------------------


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def days_from_now(days: int, *, hour: int = 15) -> datetime:
    """A check-in style timestamp ``days`` calendar days ahead."""
    base = datetime.now(timezone.utc) + timedelta(days=days)
    return base.replace(hour=hour, minute=0, second=0, microsecond=0)


# -- store seeding --------------------------------------------------------


def make_settings(**overrides) -> Settings:
    values = {"app_env": "test", "storage_backend": "memory"}
    values.update(overrides)
    return Settings(**values)


def seeded_store(*, quantity: int = 1, price: str = "100.00", policy: CancellationPolicy | None = None) -> InMemoryReservationStore:
    """In-memory store with one hotel and one room type."""
    store = InMemoryReservationStore()
    store.add_hotel(
        Hotel(
            id=HOTEL_ID,
            name="Seaside Hotel",
            cancellation_policy=policy or CancellationPolicy(free_cancellation_days=3, refund_percentage=100),
        )
    )
    store.add_room(
        Room(
            id=ROOM_ID,
            hotel_id=HOTEL_ID,
            name="Double Room",
            price_per_night=Decimal(price),
            quantity=quantity,
            capacity=Capacity(adults=2, children=1),
        )
    )
    return store


def put_reservation(
    store: InMemoryReservationStore,
    *,
    reservation_id: str,
    check_in: datetime,
    check_out: datetime,
    status: ReservationStatus = ReservationStatus.PENDING,
    payment_status: PaymentStatus = PaymentStatus.PENDING,
    stripe_payment_id: str | None = None,
    guest_id: str = GUEST_ID,
    room_id: str = ROOM_ID,
    rate: str = "100.00",
    created_at: datetime | None = None,
) -> Reservation:
    """Insert a reservation directly, bypassing the coordinator."""
    pricing = compute_pricing(Decimal(rate), count_nights(check_in, check_out))
    reservation = Reservation(
        id=reservation_id,
        booking_reference=f"BK-{reservation_id[-8:].upper()}",
        guest_id=guest_id,
        hotel_id=HOTEL_ID,
        room_id=room_id,
        check_in=check_in,
        check_out=check_out,
        guests=GuestCount(adults=2),
        pricing=pricing,
        status=status,
        payment=PaymentRecord(
            status=payment_status,
            stripe_payment_id=stripe_payment_id,
            paid_at=created_at if payment_status is PaymentStatus.PAID else None,
        ),
        created_at=created_at or datetime.now(timezone.utc),
        updated_at=created_at or datetime.now(timezone.utc),
    )
    with store.unit_of_work() as session:
        return session.insert_reservation(reservation)


def mark_paid(store: InMemoryReservationStore, reservation_id: str, reference: str) -> Reservation:
    with store.unit_of_work() as session:
        current = session.get_reservation(reservation_id)
        return session.update_reservation(
            replace(
                current,
                status=ReservationStatus.CONFIRMED,
                payment=PaymentRecord(
                    status=PaymentStatus.PAID,
                    stripe_payment_id=reference,
                    paid_at=datetime.now(timezone.utc),
                ),
            )
        )


# -- doubles --------------------------------------------------------------


class FakePaymentProvider:
    """PaymentProvider double with programmable provider state."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.statuses: dict[str, PaymentStatusResult] = {}
        self.events: dict[str, ProviderEvent] = {}
        self.intents: list[dict] = []
        self.refunds: list[dict] = []
        self.status_queries: list[str] = []
        self.fail_refunds = False
        self.fail_status = False

    def set_status(
        self,
        reference: str,
        status: str = "succeeded",
        *,
        reservation_id: str | None = None,
        amount_cents: int | None = None,
    ) -> None:
        metadata = {"reservation_id": reservation_id} if reservation_id else {}
        self.statuses[reference] = PaymentStatusResult(
            reference=reference,
            status=status,
            metadata=metadata,
            amount_cents=amount_cents,
        )

    def create_intent(self, *, amount_cents, currency, metadata, idempotency_key) -> PaymentIntent:
        with self._lock:
            self.intents.append(
                {
                    "amount_cents": amount_cents,
                    "currency": currency,
                    "metadata": dict(metadata),
                    "idempotency_key": idempotency_key,
                }
            )
        reference = f"pi_{metadata['reservation_id'][:8]}"
        return PaymentIntent(reference=reference, client_secret=f"{reference}_secret_abc", status="requires_payment_method")

    def get_status(self, reference: str) -> PaymentStatusResult:
        with self._lock:
            self.status_queries.append(reference)
        if self.fail_status:
            raise PaymentProviderError("provider timeout")
        if reference not in self.statuses:
            raise UnknownPaymentReferenceError(f"Unknown payment reference {reference}")
        return self.statuses[reference]

    def refund(self, reference: str, *, amount_cents=None, idempotency_key=None) -> RefundResult:
        if self.fail_refunds:
            raise PaymentProviderError("refund timeout")
        with self._lock:
            self.refunds.append(
                {
                    "reference": reference,
                    "amount_cents": amount_cents,
                    "idempotency_key": idempotency_key,
                }
            )
            return RefundResult(refund_id=f"re_{len(self.refunds)}", status="succeeded")

    def verify_webhook_signature(self, payload: bytes, signature: str) -> ProviderEvent | None:
        return self.events.get(signature)


class RecordingNotifier:
    """NotificationSink double that records calls and can be told to fail."""

    def __init__(self, *, fail: bool = False) -> None:
        self._lock = threading.Lock()
        self.fail = fail
        self.confirmed: list[Reservation] = []
        self.cancelled: list[tuple[Reservation, Decimal]] = []

    def notify_booking_confirmed(self, reservation: Reservation) -> None:
        if self.fail:
            raise RuntimeError("mail server down")
        with self._lock:
            self.confirmed.append(reservation)

    def notify_booking_cancelled(self, reservation: Reservation, refund_amount: Decimal) -> None:
        if self.fail:
            raise RuntimeError("mail server down")
        with self._lock:
            self.cancelled.append((reservation, refund_amount))


def succeeded_event(event_id: str, reference: str, reservation_id: str | None) -> ProviderEvent:
    return ProviderEvent(
        event_id=event_id,
        event_type="payment_intent.succeeded",
        object_id=reference,
        object_status="succeeded",
        metadata={"reservation_id": reservation_id} if reservation_id else {},
    )


# -- JWT ------------------------------------------------------------------


def _generate_rsa_keypair():
    """Generate RSA key pair for test JWT signing."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048,
    )
    return private_key, private_key.public_key()


def _create_jwks(public_key, kid: str = "test-key-1") -> dict:
    """Create JWKS from public key."""
    public_numbers = public_key.public_numbers()

    def int_to_base64(n: int) -> str:
        byte_length = (n.bit_length() + 7) // 8
        return (
            base64.urlsafe_b64encode(n.to_bytes(byte_length, "big"))
            .rstrip(b"=")
            .decode()
        )

    return {
        "keys": [
            {
                "kty": "RSA",
                "use": "sig",
                "alg": "RS256",
                "kid": kid,
                "n": int_to_base64(public_numbers.n),
                "e": int_to_base64(public_numbers.e),
            }
        ]
    }


def _create_token(
    private_key,
    kid: str = "test-key-1",
    sub: str = GUEST_ID,
    iss: str = TEST_ISSUER,
    aud: str = TEST_AUDIENCE,
    exp: int | None = None,
    role: str | None = None,
) -> str:
    """Create signed JWT for testing."""
    now = int(time.time())
    payload = {
        "sub": sub,
        "iss": iss,
        "aud": aud,
        "exp": exp if exp is not None else now + 3600,
        "iat": now,
    }
    if role:
        payload["role"] = role

    return jwt.encode(payload, private_key, algorithm="RS256", headers={"kid": kid})
