"""FastAPI dependencies wiring the booking core to its collaborators.

Each provider is a plain function so tests can swap it through
``app.dependency_overrides``.
"""

from __future__ import annotations

import threading

from fastapi import Depends

from hotelbook.config import Settings, load_settings
from hotelbook.domain.reconciliation import PaymentReconciliationGateway
from hotelbook.domain.state_machine import BookingStateMachine
from hotelbook.infra.memory_store import InMemoryReservationStore
from hotelbook.infra.postgres_store import PostgresReservationStore
from hotelbook.infra.store import ReservationStore
from hotelbook.notifications import LogNotificationSink, NotificationSink, OutboxNotificationSink
from hotelbook.stripe.client import StripeClient
from hotelbook.stripe.provider import PaymentProvider

_memory_store: InMemoryReservationStore | None = None
_memory_store_lock = threading.Lock()


def get_settings() -> Settings:
    return load_settings()


def get_store(settings: Settings = Depends(get_settings)) -> ReservationStore:
    """Postgres store, or one process-wide in-memory store."""
    global _memory_store

    if settings.storage_backend == "memory":
        with _memory_store_lock:
            if _memory_store is None:
                _memory_store = InMemoryReservationStore()
            return _memory_store
    return PostgresReservationStore()


def get_payment_provider(settings: Settings = Depends(get_settings)) -> PaymentProvider | None:
    """Stripe client, or None when Stripe is not configured."""
    if not settings.stripe_secret_key:
        return None
    return StripeClient(
        settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        timeout_seconds=settings.stripe_timeout_seconds,
    )


def get_notifier(settings: Settings = Depends(get_settings)) -> NotificationSink:
    if settings.storage_backend == "postgres":
        return OutboxNotificationSink()
    return LogNotificationSink()


def get_gateway(
    store: ReservationStore = Depends(get_store),
    provider: PaymentProvider | None = Depends(get_payment_provider),
    notifier: NotificationSink = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> PaymentReconciliationGateway:
    return PaymentReconciliationGateway(store, provider=provider, notifier=notifier, settings=settings)


def get_state_machine(
    store: ReservationStore = Depends(get_store),
    provider: PaymentProvider | None = Depends(get_payment_provider),
    notifier: NotificationSink = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> BookingStateMachine:
    return BookingStateMachine(store, provider=provider, notifier=notifier, settings=settings)
