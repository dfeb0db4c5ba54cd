"""Translation of booking core errors into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException

from hotelbook.domain.errors import (
    BookingError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    PaymentProviderError,
    PolicyViolationError,
    UnavailableError,
    ValidationError,
    VerificationFailedError,
)

# Checked in order; RefundFailedError is a PaymentProviderError
_STATUS_BY_ERROR: tuple[tuple[type[BookingError], int], ...] = (
    (NotFoundError, 404),
    (ValidationError, 422),
    (UnavailableError, 409),
    (InvalidTransitionError, 409),
    (PolicyViolationError, 400),
    (VerificationFailedError, 402),
    (ForbiddenError, 403),
    (PaymentProviderError, 502),
)


def status_for(exc: BookingError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


def to_http_exception(exc: BookingError) -> HTTPException:
    """Map a domain error to an HTTPException with a ``{code, message}`` detail."""
    return HTTPException(
        status_code=status_for(exc),
        detail={"code": exc.code, "message": exc.message},
    )
