"""Shared pytest fixtures for hotelbook tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402

from helpers import FakePaymentProvider, RecordingNotifier, make_settings, seeded_store  # noqa: E402
from hotelbook.domain.reconciliation import PaymentReconciliationGateway  # noqa: E402
from hotelbook.domain.state_machine import BookingStateMachine  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_oidc_jwks_cache():
    """Reset global JWKS cache to avoid cross-test contamination."""
    import hotelbook.api.auth as auth_module

    auth_module._jwks_cache = None
    auth_module._jwks_cache_time = 0
    yield
    auth_module._jwks_cache = None
    auth_module._jwks_cache_time = 0


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def store():
    return seeded_store()


@pytest.fixture
def provider():
    return FakePaymentProvider()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def gateway(store, provider, notifier, settings):
    return PaymentReconciliationGateway(store, provider=provider, notifier=notifier, settings=settings)


@pytest.fixture
def machine(store, provider, notifier, settings):
    return BookingStateMachine(store, provider=provider, notifier=notifier, settings=settings)
