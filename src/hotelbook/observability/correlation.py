"""Correlation ID propagation for request and webhook tracing."""

import uuid
from contextvars import ContextVar, Token

# Carried across sync and async calls within a request
correlation_id_var: ContextVar[str] = ContextVar("hotelbook_correlation_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"


def generate_correlation_id() -> str:
    return uuid.uuid4().hex


def get_correlation_id() -> str:
    """Return the correlation ID bound to the current context ("" if none)."""
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    correlation_id_var.reset(token)
