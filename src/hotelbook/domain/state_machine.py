"""Booking state machine - staff transitions and cancellation with refunds.

States: pending -> confirmed -> checked-in -> checked-out, and
pending|confirmed -> cancelled (terminal). Anything else is an
InvalidTransitionError.

Cancellation runs in up to three steps so that no lock is held while the
payment provider is called:

1. Lock the reservation, validate, compute the refund. If no provider refund
   is due, apply the cancellation right there.
2. Otherwise release the lock and issue the refund (idempotency key
   ``refund:{reservation_id}``, so a retried cancellation converges on the
   same provider refund).
3. Re-lock, re-validate, and only then mark the reservation cancelled.

A refund failure aborts before anything is written.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import Decimal

from hotelbook.config import Settings
from hotelbook.domain.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    PaymentProviderError,
    PolicyViolationError,
    RefundFailedError,
)
from hotelbook.domain.models import (
    Actor,
    CancellationPolicy,
    CancellationRecord,
    PaymentStatus,
    Reservation,
    ReservationStatus,
)
from hotelbook.domain.pricing import to_cents, to_money
from hotelbook.infra.store import ReservationStore, StoreSession
from hotelbook.infra.time import utc_now
from hotelbook.notifications import NotificationSink, notify_safely
from hotelbook.observability.redaction import safe_log_context
from hotelbook.stripe.provider import PaymentProvider

logger = logging.getLogger(__name__)

TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.PENDING: frozenset({ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED}),
    ReservationStatus.CONFIRMED: frozenset({ReservationStatus.CHECKED_IN, ReservationStatus.CANCELLED}),
    ReservationStatus.CHECKED_IN: frozenset({ReservationStatus.CHECKED_OUT}),
    ReservationStatus.CHECKED_OUT: frozenset(),
    ReservationStatus.CANCELLED: frozenset(),
}

DEFAULT_CANCELLATION_REASON = "User requested cancellation"


def assert_transition(current: ReservationStatus, target: ReservationStatus) -> None:
    if target not in TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Cannot move reservation from {current.value} to {target.value}",
            current=current.value,
            target=target.value,
        )


def cancellation_allowed(check_in: datetime, now: datetime, cutoff_hours: int = 24) -> bool:
    """Hard cutoff: cancellation needs at least ``cutoff_hours`` before check-in."""
    return check_in - now >= timedelta(hours=cutoff_hours)


def refund_for(
    grand_total: Decimal,
    check_in: datetime,
    policy: CancellationPolicy,
    now: datetime,
) -> Decimal:
    """Refund owed under the hotel policy, from the frozen grand total.

    Full policy percentage if cancelled at least ``free_cancellation_days``
    before check-in, nothing otherwise.
    """
    if check_in - now >= timedelta(days=policy.free_cancellation_days):
        return to_money(grand_total * Decimal(policy.refund_percentage) / Decimal(100))
    return Decimal("0.00")


def payment_status_after_refund(current: PaymentStatus, refund: Decimal, grand_total: Decimal) -> PaymentStatus:
    if refund <= 0:
        return current
    if refund >= grand_total:
        return PaymentStatus.REFUNDED
    return PaymentStatus.PARTIAL_REFUND


class BookingStateMachine:
    """Applies staff and guest transitions to stored reservations."""

    def __init__(
        self,
        store: ReservationStore,
        *,
        provider: PaymentProvider | None,
        notifier: NotificationSink,
        settings: Settings,
    ) -> None:
        self._store = store
        self._provider = provider
        self._notifier = notifier
        self._settings = settings

    # -- staff transitions ------------------------------------------------

    def check_in(self, reservation_id: str, *, actor: Actor) -> Reservation:
        return self._staff_transition(reservation_id, ReservationStatus.CHECKED_IN, actor)

    def check_out(self, reservation_id: str, *, actor: Actor) -> Reservation:
        return self._staff_transition(reservation_id, ReservationStatus.CHECKED_OUT, actor)

    def _staff_transition(self, reservation_id: str, target: ReservationStatus, actor: Actor) -> Reservation:
        if not actor.is_admin:
            raise ForbiddenError("Staff access required")

        with self._store.unit_of_work() as session:
            reservation = self._load_locked(session, reservation_id)
            assert_transition(reservation.status, target)
            updated = session.update_reservation(
                replace(reservation, status=target, updated_at=utc_now())
            )

        logger.info(
            "reservation status changed",
            extra={
                "extra_fields": safe_log_context(
                    reservation_id=reservation_id,
                    from_status=reservation.status,
                    to_status=target,
                    actor_id=actor.user_id,
                )
            },
        )
        return updated

    # -- cancellation -----------------------------------------------------

    def cancel(
        self,
        reservation_id: str,
        reason: str | None = None,
        *,
        actor: Actor,
        now: datetime | None = None,
    ) -> Reservation:
        """Cancel a pending or confirmed reservation.

        The refund is computed from the hotel policy only when a payment was
        collected. An unpaid reservation is cancelled with a recorded refund of
        0 and its payment status left as is, so payment status only ever moves
        pending -> paid -> refunded.

        Raises:
            NotFoundError: Unknown reservation.
            ForbiddenError: Actor is neither owner nor admin.
            InvalidTransitionError: Already cancelled, checked in or checked out.
            PolicyViolationError: Inside the cutoff window before check-in.
            RefundFailedError: Provider refund failed; nothing was changed.
        """
        now = now or utc_now()
        reason = reason or DEFAULT_CANCELLATION_REASON

        # Step 1: decide under lock
        with self._store.unit_of_work() as session:
            reservation = self._load_locked(session, reservation_id)
            if not actor.can_access(reservation):
                raise ForbiddenError("Access denied")
            self._assert_cancellable(reservation, now)

            refund = self._refund_due(session, reservation, now)
            if refund == 0:
                cancelled = session.update_reservation(
                    self._cancelled(reservation, reason, refund, actor, now, refund_id=None)
                )

        if refund == 0:
            self._after_cancel(cancelled, refund)
            return cancelled

        # Step 2: provider refund, no lock held
        refund_id = self._issue_refund(reservation, refund)

        # Step 3: re-validate and commit
        with self._store.unit_of_work() as session:
            current = self._load_locked(session, reservation_id)
            if (
                current.status not in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)
                or current.payment.stripe_payment_id != reservation.payment.stripe_payment_id
            ):
                logger.error(
                    "refund issued but reservation changed before cancellation",
                    extra={
                        "extra_fields": safe_log_context(
                            reservation_id=reservation_id,
                            status=current.status,
                            refund_id=refund_id,
                        )
                    },
                )
                assert_transition(current.status, ReservationStatus.CANCELLED)
            cancelled = session.update_reservation(
                self._cancelled(current, reason, refund, actor, now, refund_id=refund_id)
            )

        self._after_cancel(cancelled, refund)
        return cancelled

    def _assert_cancellable(self, reservation: Reservation, now: datetime) -> None:
        assert_transition(reservation.status, ReservationStatus.CANCELLED)
        cutoff = self._settings.cancellation_cutoff_hours
        if not cancellation_allowed(reservation.check_in, now, cutoff):
            raise PolicyViolationError(
                f"Cancellations must be made at least {cutoff} hours before check-in"
            )

    def _refund_due(self, session: StoreSession, reservation: Reservation, now: datetime) -> Decimal:
        # Nothing to give back if nothing was collected
        if reservation.payment.status is not PaymentStatus.PAID or not reservation.payment.stripe_payment_id:
            return Decimal("0.00")
        hotel = session.get_hotel(reservation.hotel_id)
        policy = hotel.cancellation_policy if hotel is not None else CancellationPolicy()
        return refund_for(reservation.pricing.grand_total, reservation.check_in, policy, now)

    def _issue_refund(self, reservation: Reservation, refund: Decimal) -> str:
        if self._provider is None:
            raise RefundFailedError("Payment provider not configured; refund not issued")
        try:
            result = self._provider.refund(
                reservation.payment.stripe_payment_id,
                amount_cents=to_cents(refund),
                idempotency_key=f"refund:{reservation.id}",
            )
        except PaymentProviderError as exc:
            logger.warning(
                "refund failed; cancellation not applied",
                extra={
                    "extra_fields": safe_log_context(
                        reservation_id=reservation.id,
                        refund_amount=refund,
                        error_type=type(exc).__name__,
                    )
                },
            )
            raise RefundFailedError("Refund processing failed; reservation was not cancelled") from exc
        return result.refund_id

    @staticmethod
    def _cancelled(
        reservation: Reservation,
        reason: str,
        refund: Decimal,
        actor: Actor,
        now: datetime,
        *,
        refund_id: str | None,
    ) -> Reservation:
        payment = replace(
            reservation.payment,
            status=payment_status_after_refund(
                reservation.payment.status, refund, reservation.pricing.grand_total
            ),
            refund_id=refund_id or reservation.payment.refund_id,
        )
        return replace(
            reservation,
            status=ReservationStatus.CANCELLED,
            payment=payment,
            cancellation=CancellationRecord(
                cancelled_at=now,
                reason=reason,
                refund_amount=refund,
                cancelled_by=actor.user_id,
            ),
            updated_at=now,
        )

    def _after_cancel(self, reservation: Reservation, refund: Decimal) -> None:
        logger.info(
            "reservation cancelled",
            extra={
                "extra_fields": safe_log_context(
                    reservation_id=reservation.id,
                    refund_amount=refund,
                    payment_status=reservation.payment.status,
                )
            },
        )
        notify_safely(
            self._notifier.notify_booking_cancelled,
            reservation,
            refund,
            event="booking_cancelled",
            reservation_id=reservation.id,
        )

    @staticmethod
    def _load_locked(session: StoreSession, reservation_id: str) -> Reservation:
        reservation = session.get_reservation(reservation_id, for_update=True)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return reservation
