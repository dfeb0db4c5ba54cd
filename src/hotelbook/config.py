"""Runtime settings loaded from the environment.

Settings are read on every call to ``load_settings()`` so tests can patch
``os.environ`` without import-order tricks.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Literal

StorageBackend = Literal["postgres", "memory"]

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Service configuration.

    Attributes:
        app_env: development | test | production.
        storage_backend: "postgres" (DATABASE_URL) or "memory".
        tax_rate: Fixed tax percentage applied to every booking subtotal.
        currency: ISO currency code used for payment intents.
        cancellation_cutoff_hours: Hard cutoff before check-in after which
            cancellation is refused.
        stripe_secret_key: Stripe API key (None disables Stripe).
        stripe_webhook_secret: Signing secret for the webhook endpoint.
        stripe_timeout_seconds: Upper bound for any single Stripe call.
        simulate_payments_enabled: Allow the test-mode simulate path.
    """

    app_env: str = "development"
    storage_backend: StorageBackend = "postgres"
    tax_rate: Decimal = Decimal("0.10")
    currency: str = "usd"
    cancellation_cutoff_hours: int = 24
    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None
    stripe_timeout_seconds: float = 10.0
    simulate_payments_enabled: bool = False

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def simulate_allowed(self) -> bool:
        """The simulate path is never available in production."""
        return self.simulate_payments_enabled and not self.is_production


def _env_decimal(name: str, default: str) -> Decimal:
    raw = os.environ.get(name, default)
    try:
        return Decimal(raw)
    except InvalidOperation as exc:
        raise RuntimeError(f"{name} must be a decimal number, got {raw!r}") from exc


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def load_settings() -> Settings:
    """Build Settings from environment variables.

    Raises:
        RuntimeError: If a numeric variable cannot be parsed or the storage
            backend is unknown.
    """
    backend = os.environ.get("STORAGE_BACKEND", "postgres").strip().lower()
    if backend not in ("postgres", "memory"):
        raise RuntimeError(f"Unknown STORAGE_BACKEND: {backend}")

    try:
        cutoff_hours = int(os.environ.get("CANCELLATION_CUTOFF_HOURS", "24"))
        timeout = float(os.environ.get("STRIPE_TIMEOUT_SECONDS", "10"))
    except ValueError as exc:
        raise RuntimeError(f"Invalid numeric setting: {exc}") from exc

    return Settings(
        app_env=os.environ.get("APP_ENV", "development").strip().lower(),
        storage_backend=backend,  # type: ignore[arg-type]
        tax_rate=_env_decimal("TAX_RATE", "0.10"),
        currency=os.environ.get("CURRENCY", "usd").lower(),
        cancellation_cutoff_hours=cutoff_hours,
        stripe_secret_key=os.environ.get("STRIPE_SECRET_KEY") or None,
        stripe_webhook_secret=os.environ.get("STRIPE_WEBHOOK_SECRET") or None,
        stripe_timeout_seconds=timeout,
        simulate_payments_enabled=_env_bool("PAYMENTS_SIMULATE_ENABLED"),
    )
