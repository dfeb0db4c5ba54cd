"""Stripe webhook signature validation and payload parsing.

Purpose:
- Validate webhook signature using the Stripe-Signature header.
- Extract only what reconciliation needs (ids, status, metadata).
- Never log payload or signature.
"""

from __future__ import annotations

import logging
from typing import Any

import stripe

from hotelbook.stripe.provider import ProviderEvent

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


class InvalidSignatureError(Exception):
    """Webhook signature validation failed."""


class InvalidPayloadError(Exception):
    """Payload structure is invalid or missing required fields."""


def verify_and_extract(
    payload_bytes: bytes,
    signature_header: str,
    webhook_secret: str,
) -> ProviderEvent:
    """Validate a Stripe webhook signature and extract minimal event data.

    Raises:
        InvalidSignatureError: If signature validation fails.
        InvalidPayloadError: If event structure is invalid.
    """
    try:
        event = stripe.Webhook.construct_event(
            payload_bytes,
            signature_header,
            webhook_secret,
        )
    except stripe.SignatureVerificationError as e:
        logger.warning("stripe webhook signature verification failed")
        raise InvalidSignatureError("Invalid signature") from e
    except ValueError as e:
        logger.warning("stripe webhook payload parsing failed")
        raise InvalidPayloadError("Invalid payload") from e

    event_id = event.get("id")
    event_type = event.get("type")
    if not event_id or not event_type:
        raise InvalidPayloadError("Missing event id or type")

    obj = _extract_object(event)
    return ProviderEvent(
        event_id=event_id,
        event_type=event_type,
        object_id=obj.get("id"),
        object_status=obj.get("status"),
        metadata=_as_str_dict(obj.get("metadata")),
    )


def _extract_object(event: Any) -> Any:
    data = event.get("data") or {}
    return data.get("object") or {}


def _as_str_dict(metadata: Any) -> dict[str, str]:
    if not metadata:
        return {}
    return {str(k): str(v) for k, v in dict(metadata).items()}
