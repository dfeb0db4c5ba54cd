"""Stripe webhook route - public endpoint for Stripe events.

Security rules:
- Signature is validated by the gateway before anything else.
- Never log payload or signature header.
- ACK 2xx for processed, duplicate and ignored events (including bad
  signatures) so Stripe stops redelivering them.
- Return 5xx on transient processing failures so Stripe retries; the event
  is not claimed in that case.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from hotelbook.api.deps import get_gateway
from hotelbook.domain.errors import BookingError
from hotelbook.domain.reconciliation import PaymentReconciliationGateway
from hotelbook.observability.correlation import get_correlation_id
from hotelbook.observability.logging import get_logger
from hotelbook.observability.redaction import safe_log_context

router = APIRouter(tags=["webhooks"])

logger = get_logger(__name__)


@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header("", alias="Stripe-Signature"),
    gateway: PaymentReconciliationGateway = Depends(get_gateway),
) -> Response:
    """Receive Stripe webhook events.

    Returns:
        200 with the reconciliation outcome.
        400 if the body cannot be read.
        500 if processing failed and Stripe should retry.
    """
    correlation_id = get_correlation_id()

    try:
        payload_bytes = await request.body()
    except Exception:
        logger.warning(
            "failed to read request body",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return Response(status_code=400, content="invalid body")

    try:
        # Blocking DB and provider calls run off the event loop
        outcome = await run_in_threadpool(gateway.handle_webhook, payload_bytes, stripe_signature)
    except BookingError as e:
        logger.error(
            "stripe webhook processing failed",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id, error_code=e.code)},
        )
        return Response(status_code=500, content="processing failed")

    return JSONResponse(status_code=200, content={"received": True, "status": outcome.status.value})
