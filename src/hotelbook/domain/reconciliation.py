"""Payment reconciliation gateway.

Three paths can report that a reservation has been paid:

- the provider webhook (``payment_intent.succeeded``),
- client-driven verification (the client asks us to query the provider),
- test-mode simulation.

All of them end in ``confirm()``, which is idempotent: the first caller moves
the reservation pending -> confirmed and marks the payment paid; every later
caller with the same reference observes ``already_confirmed`` and changes
nothing. Only the first caller triggers the confirmation notification.

Confirmation is where room capacity is enforced. Under the room lock the
overlapping confirmed/checked-in count is re-checked; if the room filled up
while the guest was paying, the payment is refunded in full (outside the lock)
and the reservation is cancelled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from hotelbook.config import Settings
from hotelbook.domain.availability import occupied_count
from hotelbook.domain.errors import (
    ForbiddenError,
    NotFoundError,
    PaymentProviderError,
    UnavailableError,
    VerificationFailedError,
)
from hotelbook.domain.models import (
    Actor,
    CancellationRecord,
    PaymentRecord,
    PaymentStatus,
    Reservation,
    ReservationStatus,
)
from hotelbook.domain.pricing import to_cents
from hotelbook.infra.store import ReservationStore, StoreSession
from hotelbook.infra.time import utc_now
from hotelbook.notifications import NotificationSink, notify_safely
from hotelbook.observability.redaction import safe_log_context
from hotelbook.stripe.provider import PaymentProvider, UnknownPaymentReferenceError
from hotelbook.stripe.webhook import PAYMENT_FAILED, PAYMENT_SUCCEEDED

logger = logging.getLogger(__name__)

SOURCE_WEBHOOK = "webhook"
SOURCE_VERIFY = "verify"
SOURCE_SIMULATE = "simulate"

SIMULATED_REFERENCE_PREFIX = "sim_"
CAPACITY_EXHAUSTED_REASON = "capacity exhausted at confirmation"
EVENT_SOURCE_STRIPE = "stripe"


class ConfirmStatus(str, Enum):
    CONFIRMED = "confirmed"
    ALREADY_CONFIRMED = "already_confirmed"
    REFERENCE_CONFLICT = "reference_conflict"
    IGNORED = "ignored"
    DUPLICATE = "duplicate"
    REFUNDED = "refunded"


@dataclass(frozen=True)
class ConfirmOutcome:
    status: ConfirmStatus
    reservation: Reservation | None = None


class _CapacityExhausted(Exception):
    """Rolls back the deciding unit of work (including any event claim)."""

    def __init__(self, reservation: Reservation) -> None:
        super().__init__(reservation.id)
        self.reservation = reservation


class PaymentReconciliationGateway:
    """Converges webhook, verify and simulate onto one confirmation."""

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

    # -- convergence point ------------------------------------------------

    def confirm(
        self,
        reservation_id: str,
        reference: str,
        *,
        source: str,
        event_id: str | None = None,
        now: datetime | None = None,
    ) -> ConfirmOutcome:
        """Mark a reservation paid and confirmed, exactly once.

        When ``event_id`` is given the provider event is claimed in the same
        unit of work, so a redelivered event is reported as ``duplicate`` and
        a failed attempt leaves the event unclaimed for the next delivery.

        Raises:
            NotFoundError: Unknown reservation.
            UnavailableError: Room filled up before payment arrived; the
                payment was refunded and the reservation cancelled.
            PaymentProviderError: The compensating refund failed; the
                reservation stays pending.
        """
        now = now or utc_now()

        try:
            with self._store.unit_of_work() as session:
                if event_id is not None and not session.claim_event(EVENT_SOURCE_STRIPE, event_id):
                    logger.info(
                        "duplicate payment event skipped",
                        extra={"extra_fields": safe_log_context(event_id=event_id, reservation_id=reservation_id)},
                    )
                    return ConfirmOutcome(ConfirmStatus.DUPLICATE)

                reservation = self._lock(session, reservation_id)
                outcome = self._settled_outcome(reservation, reference, source)
                if outcome is not None:
                    return outcome

                taken = occupied_count(
                    session,
                    reservation.room_id,
                    reservation.check_in,
                    reservation.check_out,
                    exclude_reservation_id=reservation.id,
                )
                room = session.get_room(reservation.room_id)
                quantity = room.quantity if room is not None else 0
                if taken >= quantity:
                    raise _CapacityExhausted(reservation)

                confirmed = session.update_reservation(
                    replace(
                        reservation,
                        status=ReservationStatus.CONFIRMED,
                        payment=PaymentRecord(
                            status=PaymentStatus.PAID,
                            stripe_payment_id=reference,
                            paid_at=now,
                        ),
                        updated_at=now,
                    )
                )
        except _CapacityExhausted as exc:
            return self._compensate(exc.reservation, reference, source=source, event_id=event_id, now=now)

        logger.info(
            "reservation confirmed",
            extra={
                "extra_fields": safe_log_context(
                    reservation_id=reservation_id,
                    source=source,
                    payment_reference=reference,
                )
            },
        )
        notify_safely(
            self._notifier.notify_booking_confirmed,
            confirmed,
            event="booking_confirmed",
            reservation_id=reservation_id,
        )
        return ConfirmOutcome(ConfirmStatus.CONFIRMED, confirmed)

    def _settled_outcome(self, reservation: Reservation, reference: str, source: str) -> ConfirmOutcome | None:
        """Outcome for a reservation that is no longer awaiting payment, else None."""
        if reservation.payment.status is PaymentStatus.PAID:
            if reservation.payment.stripe_payment_id == reference:
                return ConfirmOutcome(ConfirmStatus.ALREADY_CONFIRMED, reservation)
            # Paid under another reference: keep the first one
            logger.error(
                "payment reference conflict",
                extra={
                    "extra_fields": safe_log_context(
                        reservation_id=reservation.id,
                        source=source,
                        recorded_reference=reservation.payment.stripe_payment_id,
                        incoming_reference=reference,
                    )
                },
            )
            return ConfirmOutcome(ConfirmStatus.REFERENCE_CONFLICT, reservation)

        if reservation.status is not ReservationStatus.PENDING:
            logger.error(
                "payment received for reservation not awaiting payment",
                extra={
                    "extra_fields": safe_log_context(
                        reservation_id=reservation.id,
                        status=reservation.status,
                        payment_status=reservation.payment.status,
                        source=source,
                        incoming_reference=reference,
                    )
                },
            )
            return ConfirmOutcome(ConfirmStatus.IGNORED, reservation)

        return None

    def _compensate(
        self,
        reservation: Reservation,
        reference: str,
        *,
        source: str,
        event_id: str | None,
        now: datetime,
    ) -> ConfirmOutcome:
        logger.warning(
            "room full at confirmation; refunding payment",
            extra={
                "extra_fields": safe_log_context(
                    reservation_id=reservation.id,
                    room_id=reservation.room_id,
                    source=source,
                )
            },
        )

        refund_id = None
        if not reference.startswith(SIMULATED_REFERENCE_PREFIX):
            refund_id = self._refund_in_full(reservation, reference)

        cancelled = None
        with self._store.unit_of_work() as session:
            if event_id is not None:
                session.claim_event(EVENT_SOURCE_STRIPE, event_id)
            current = self._lock(session, reservation.id)
            if self._still_backed_by(current, reference):
                cancelled = session.update_reservation(
                    replace(
                        current,
                        status=ReservationStatus.CANCELLED,
                        payment=PaymentRecord(
                            status=PaymentStatus.REFUNDED,
                            stripe_payment_id=reference,
                            paid_at=current.payment.paid_at or now,
                            refund_id=refund_id,
                        ),
                        cancellation=CancellationRecord(
                            cancelled_at=now,
                            reason=CAPACITY_EXHAUSTED_REASON,
                            refund_amount=current.pricing.grand_total,
                        ),
                        updated_at=now,
                    )
                )
            else:
                logger.error(
                    "refund issued but reservation changed before cancellation",
                    extra={
                        "extra_fields": safe_log_context(
                            reservation_id=reservation.id,
                            status=current.status,
                            payment_status=current.payment.status,
                            refund_id=refund_id,
                        )
                    },
                )

        if cancelled is not None and current.status is ReservationStatus.CONFIRMED:
            # Confirmed by another path while the refund was in flight
            logger.error(
                "reservation confirmed during compensating refund; cancelled",
                extra={"extra_fields": safe_log_context(reservation_id=reservation.id, refund_id=refund_id)},
            )
            notify_safely(
                self._notifier.notify_booking_cancelled,
                cancelled,
                cancelled.pricing.grand_total,
                event="booking_cancelled",
                reservation_id=reservation.id,
            )

        raise UnavailableError("Room is no longer available; the payment has been refunded")

    @staticmethod
    def _still_backed_by(reservation: Reservation, reference: str) -> bool:
        """True while the refunded payment is the one the reservation rests on.

        Covers the normal case (still pending) and a confirmation with the same
        reference that slipped in while the refund was in flight.
        """
        if reservation.status is ReservationStatus.PENDING:
            return reservation.payment.status is not PaymentStatus.PAID
        return (
            reservation.status is ReservationStatus.CONFIRMED
            and reservation.payment.status is PaymentStatus.PAID
            and reservation.payment.stripe_payment_id == reference
        )

    def _refund_in_full(self, reservation: Reservation, reference: str) -> str:
        if self._provider is None:
            raise PaymentProviderError("Payment provider not configured; refund not issued")
        try:
            result = self._provider.refund(reference, idempotency_key=f"refund:{reservation.id}")
        except PaymentProviderError:
            logger.error(
                "compensating refund failed; reservation left pending",
                extra={
                    "extra_fields": safe_log_context(
                        reservation_id=reservation.id,
                        payment_reference=reference,
                    )
                },
            )
            raise
        return result.refund_id

    # -- webhook path -----------------------------------------------------

    def handle_webhook(self, payload: bytes, signature: str) -> ConfirmOutcome:
        """Process one provider webhook delivery.

        Invalid signatures and irrelevant events are acknowledged without any
        change so the provider stops retrying them.

        Raises:
            PaymentProviderError: Processing failed transiently; the event
                was not claimed and the provider should redeliver it.
        """
        if self._provider is None:
            logger.error("webhook received but payment provider not configured")
            return ConfirmOutcome(ConfirmStatus.IGNORED)

        event = self._provider.verify_webhook_signature(payload, signature)
        if event is None:
            logger.warning("webhook rejected: invalid signature")
            return ConfirmOutcome(ConfirmStatus.IGNORED)

        if event.event_type == PAYMENT_FAILED:
            logger.warning(
                "payment failed event received",
                extra={
                    "extra_fields": safe_log_context(
                        event_id=event.event_id,
                        reservation_id=event.metadata.get("reservation_id"),
                    )
                },
            )
            return ConfirmOutcome(ConfirmStatus.IGNORED)

        if event.event_type != PAYMENT_SUCCEEDED:
            logger.info(
                "webhook event ignored",
                extra={"extra_fields": safe_log_context(event_id=event.event_id, event_type=event.event_type)},
            )
            return ConfirmOutcome(ConfirmStatus.IGNORED)

        reservation_id = event.metadata.get("reservation_id")
        if not reservation_id or not event.object_id:
            logger.warning(
                "payment event without reservation metadata",
                extra={"extra_fields": safe_log_context(event_id=event.event_id)},
            )
            return ConfirmOutcome(ConfirmStatus.IGNORED)

        try:
            return self.confirm(
                reservation_id,
                event.object_id,
                source=SOURCE_WEBHOOK,
                event_id=event.event_id,
            )
        except NotFoundError:
            logger.warning(
                "payment event for unknown reservation",
                extra={"extra_fields": safe_log_context(event_id=event.event_id, reservation_id=reservation_id)},
            )
            return ConfirmOutcome(ConfirmStatus.IGNORED)
        except UnavailableError:
            return ConfirmOutcome(ConfirmStatus.REFUNDED)

    # -- client-driven paths ----------------------------------------------

    def verify(self, reservation_id: str, reference: str, *, actor: Actor) -> ConfirmOutcome:
        """Confirm from a client-supplied payment reference after asking the provider.

        Raises:
            NotFoundError: Unknown reservation.
            ForbiddenError: Actor is neither owner nor admin.
            VerificationFailedError: Provider does not report the payment as
                succeeded for this reservation and amount.
            PaymentProviderError: Provider unreachable or not configured.
        """
        reservation = self._load_for(reservation_id, actor)
        if self._provider is None:
            raise PaymentProviderError("Payment provider not configured")

        try:
            result = self._provider.get_status(reference)
        except UnknownPaymentReferenceError as exc:
            raise VerificationFailedError("Unknown payment reference") from exc

        if not result.succeeded:
            raise VerificationFailedError(
                f"Payment not completed (status: {result.status})",
                provider_status=result.status,
            )
        if result.metadata.get("reservation_id") != reservation_id:
            logger.warning(
                "payment verification reference mismatch",
                extra={"extra_fields": safe_log_context(reservation_id=reservation_id, payment_reference=reference)},
            )
            raise VerificationFailedError("Payment does not belong to this reservation", provider_status=result.status)
        expected = to_cents(reservation.pricing.grand_total)
        if result.amount_cents is not None and result.amount_cents != expected:
            logger.warning(
                "payment verification amount mismatch",
                extra={
                    "extra_fields": safe_log_context(
                        reservation_id=reservation_id,
                        expected_cents=expected,
                        received_cents=result.amount_cents,
                    )
                },
            )
            raise VerificationFailedError("Payment amount does not match the booking total", provider_status=result.status)

        return self.confirm(reservation_id, reference, source=SOURCE_VERIFY)

    def simulate(self, reservation_id: str, *, actor: Actor) -> ConfirmOutcome:
        """Confirm without a provider (test mode only).

        Raises:
            ForbiddenError: Simulation disabled, or actor lacks access.
            NotFoundError: Unknown reservation.
        """
        if not self._settings.simulate_allowed:
            raise ForbiddenError("Payment simulation is disabled")
        self._load_for(reservation_id, actor)
        return self.confirm(
            reservation_id,
            f"{SIMULATED_REFERENCE_PREFIX}{reservation_id}",
            source=SOURCE_SIMULATE,
        )

    # -- helpers ----------------------------------------------------------

    def _load_for(self, reservation_id: str, actor: Actor) -> Reservation:
        with self._store.unit_of_work() as session:
            reservation = session.get_reservation(reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        if not actor.can_access(reservation):
            raise ForbiddenError("Access denied")
        return reservation

    @staticmethod
    def _lock(session: StoreSession, reservation_id: str) -> Reservation:
        """Room lock first, then the reservation row."""
        snapshot = session.get_reservation(reservation_id)
        if snapshot is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        session.lock_room(snapshot.room_id)
        reservation = session.get_reservation(reservation_id, for_update=True)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return reservation
