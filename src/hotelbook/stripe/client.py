"""Thin wrapper around the Stripe SDK implementing PaymentProvider.

Purpose:
- Encapsulate Stripe API calls so domain code never imports stripe.* directly.
- Bound every call with a timeout and no automatic network retries; callers
  decide whether to retry.
- Never log full Stripe payloads (only IDs).
"""

from __future__ import annotations

import logging
import os
from typing import Any

import stripe

from hotelbook.domain.errors import PaymentProviderError
from hotelbook.stripe.provider import (
    PaymentIntent,
    PaymentStatusResult,
    ProviderEvent,
    RefundResult,
    UnknownPaymentReferenceError,
)
from hotelbook.stripe.webhook import (
    InvalidPayloadError,
    InvalidSignatureError,
    verify_and_extract,
)

logger = logging.getLogger(__name__)


def _metadata(obj: Any) -> dict[str, str]:
    raw = getattr(obj, "metadata", None)
    if not raw:
        return {}
    return {str(k): str(v) for k, v in dict(raw).items()}


class StripeClient:
    """PaymentProvider backed by Stripe PaymentIntents.

    Usage:
        client = StripeClient(timeout_seconds=10)  # reads STRIPE_SECRET_KEY
        intent = client.create_intent(
            amount_cents=33000,
            currency="usd",
            metadata={"reservation_id": rid},
            idempotency_key=f"reservation:{rid}:payment_intent",
        )
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        webhook_secret: str | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        """Initialize the Stripe client.

        Raises:
            RuntimeError: If no API key is provided or found in environment.
        """
        self._api_key = api_key or os.environ.get("STRIPE_SECRET_KEY")
        if not self._api_key:
            raise RuntimeError(
                "Stripe API key not provided. "
                "Set STRIPE_SECRET_KEY or pass api_key parameter."
            )
        self._webhook_secret = webhook_secret or os.environ.get("STRIPE_WEBHOOK_SECRET")
        self._client = stripe.StripeClient(
            self._api_key,
            http_client=stripe.RequestsClient(timeout=timeout_seconds),
            max_network_retries=0,
        )

    def create_intent(
        self,
        *,
        amount_cents: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> PaymentIntent:
        try:
            intent = self._client.v1.payment_intents.create(
                params={
                    "amount": amount_cents,
                    "currency": currency.lower(),
                    "metadata": metadata,
                    "automatic_payment_methods": {"enabled": True},
                },
                options={"idempotency_key": idempotency_key},
            )
        except stripe.StripeError as e:
            logger.error("stripe payment intent creation failed", extra={"extra_fields": {"error_type": type(e).__name__}})
            raise PaymentProviderError("Payment intent creation failed") from e

        logger.info("stripe_payment_intent_created", extra={"extra_fields": {"payment_intent_id": intent.id}})
        return PaymentIntent(
            reference=intent.id,
            client_secret=intent.client_secret,
            status=intent.status,
        )

    def get_status(self, reference: str) -> PaymentStatusResult:
        try:
            intent = self._client.v1.payment_intents.retrieve(reference)
        except stripe.InvalidRequestError as e:
            raise UnknownPaymentReferenceError(f"Unknown payment reference {reference}") from e
        except stripe.StripeError as e:
            logger.error("stripe payment intent retrieve failed", extra={"extra_fields": {"error_type": type(e).__name__}})
            raise PaymentProviderError("Payment status query failed") from e

        return PaymentStatusResult(
            reference=intent.id,
            status=intent.status,
            metadata=_metadata(intent),
            amount_cents=getattr(intent, "amount", None),
        )

    def refund(
        self,
        reference: str,
        *,
        amount_cents: int | None = None,
        idempotency_key: str | None = None,
    ) -> RefundResult:
        params: dict[str, Any] = {"payment_intent": reference}
        if amount_cents is not None:
            params["amount"] = amount_cents
        options = {"idempotency_key": idempotency_key} if idempotency_key else {}

        try:
            refund = self._client.v1.refunds.create(params=params, options=options)
        except stripe.StripeError as e:
            logger.error("stripe refund failed", extra={"extra_fields": {"error_type": type(e).__name__}})
            raise PaymentProviderError("Refund failed") from e

        logger.info("stripe_refund_created", extra={"extra_fields": {"refund_id": refund.id}})
        return RefundResult(refund_id=refund.id, status=refund.status)

    def verify_webhook_signature(self, payload: bytes, signature: str) -> ProviderEvent | None:
        if not self._webhook_secret:
            logger.error("stripe webhook secret not configured")
            return None
        try:
            return verify_and_extract(payload, signature, self._webhook_secret)
        except (InvalidSignatureError, InvalidPayloadError):
            return None
