"""Booking core error taxonomy.

Every error raised by the domain layer is a ``BookingError`` carrying a stable
``code``. The transport layer maps codes to status codes; nothing here knows
about HTTP.
"""

from __future__ import annotations


class BookingError(Exception):
    """Base class for all booking core errors."""

    code = "booking_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class NotFoundError(BookingError):
    """Entity missing or inactive."""

    code = "not_found"


class ValidationError(BookingError):
    """Malformed or inconsistent input."""

    code = "validation_error"


class UnavailableError(BookingError):
    """Room capacity exhausted for the requested dates."""

    code = "unavailable"


class InvalidTransitionError(BookingError):
    """Illegal state machine move."""

    code = "invalid_transition"

    def __init__(self, message: str = "", *, current: str | None = None, target: str | None = None) -> None:
        super().__init__(message)
        self.current = current
        self.target = target
        if current == "cancelled":
            self.code = "already_cancelled"


class PolicyViolationError(BookingError):
    """Cancellation requested inside the hard cutoff window."""

    code = "policy_violation"


class VerificationFailedError(BookingError):
    """Payment provider does not report the payment as succeeded."""

    code = "verification_failed"

    def __init__(self, message: str = "", *, provider_status: str | None = None) -> None:
        super().__init__(message)
        self.provider_status = provider_status


class ForbiddenError(BookingError):
    """Caller is not allowed to act on this reservation."""

    code = "forbidden"


class PaymentProviderError(BookingError):
    """Payment provider call failed (timeout, 5xx, connection)."""

    code = "provider_error"


class RefundFailedError(PaymentProviderError):
    """Refund issuance failed; the cancellation was not applied."""

    code = "refund_failed"
