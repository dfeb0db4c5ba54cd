"""Payment provider contract used by the booking core.

The reconciliation gateway and the cancellation flow depend on this protocol,
never on the Stripe SDK directly, so tests can inject doubles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from hotelbook.domain.errors import PaymentProviderError

SUCCEEDED = "succeeded"


class UnknownPaymentReferenceError(PaymentProviderError):
    """The provider has no payment with this reference."""

    code = "unknown_payment_reference"


@dataclass(frozen=True)
class PaymentIntent:
    reference: str
    client_secret: str | None
    status: str


@dataclass(frozen=True)
class PaymentStatusResult:
    reference: str
    status: str
    metadata: dict[str, str] = field(default_factory=dict)
    amount_cents: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED


@dataclass(frozen=True)
class RefundResult:
    refund_id: str
    status: str


@dataclass(frozen=True)
class ProviderEvent:
    """Minimal data extracted from a verified webhook event."""

    event_id: str
    event_type: str
    object_id: str | None
    object_status: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


class PaymentProvider(Protocol):
    def create_intent(
        self,
        *,
        amount_cents: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> PaymentIntent: ...

    def get_status(self, reference: str) -> PaymentStatusResult: ...

    def refund(
        self,
        reference: str,
        *,
        amount_cents: int | None = None,
        idempotency_key: str | None = None,
    ) -> RefundResult: ...

    def verify_webhook_signature(self, payload: bytes, signature: str) -> ProviderEvent | None:
        """Return the verified event, or None if the signature is not valid."""
        ...
