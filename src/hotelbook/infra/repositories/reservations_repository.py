"""Reservations repository - persistence for reservation records.

Uses raw SQL with psycopg2 (no ORM). Every function takes a cursor that
belongs to the caller's transaction.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable

from psycopg2.extensions import cursor as PgCursor

from hotelbook.domain.models import (
    CancellationRecord,
    GuestCount,
    PaymentRecord,
    PaymentStatus,
    PriceBreakdown,
    Reservation,
    ReservationStatus,
    SelectedExtra,
)
from hotelbook.infra.store import ReservationFilters

RESERVATION_COLUMNS = """
    id, booking_reference, guest_id, hotel_id, room_id,
    check_in, check_out, adults, children, extras,
    room_total, extras_total, taxes, grand_total,
    status, payment_status, stripe_payment_id, paid_at, refund_id,
    cancelled_at, cancellation_reason, refund_amount, cancelled_by,
    special_requests, created_at, updated_at
"""


def _extras_to_json(extras: Iterable[SelectedExtra]) -> str:
    return json.dumps(
        [{"name": e.name, "price": str(e.price), "quantity": e.quantity} for e in extras]
    )


def _extras_from_json(raw: Any) -> tuple[SelectedExtra, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        raw = json.loads(raw)
    return tuple(
        SelectedExtra(name=e["name"], price=Decimal(str(e["price"])), quantity=int(e["quantity"]))
        for e in raw
    )


def row_to_reservation(row: tuple[Any, ...]) -> Reservation:
    """Map a row selected with RESERVATION_COLUMNS to a Reservation."""
    (
        res_id, booking_reference, guest_id, hotel_id, room_id,
        check_in, check_out, adults, children, extras,
        room_total, extras_total, taxes, grand_total,
        status, payment_status, stripe_payment_id, paid_at, refund_id,
        cancelled_at, cancellation_reason, refund_amount, cancelled_by,
        special_requests, created_at, updated_at,
    ) = row

    cancellation = None
    if cancelled_at is not None:
        cancellation = CancellationRecord(
            cancelled_at=cancelled_at,
            reason=cancellation_reason or "",
            refund_amount=Decimal(refund_amount or 0),
            cancelled_by=cancelled_by,
        )

    return Reservation(
        id=str(res_id),
        booking_reference=booking_reference,
        guest_id=guest_id,
        hotel_id=hotel_id,
        room_id=room_id,
        check_in=check_in,
        check_out=check_out,
        guests=GuestCount(adults=adults, children=children),
        extras=_extras_from_json(extras),
        pricing=PriceBreakdown(
            room_total=Decimal(room_total),
            extras_total=Decimal(extras_total),
            taxes=Decimal(taxes),
            grand_total=Decimal(grand_total),
        ),
        status=ReservationStatus(status),
        payment=PaymentRecord(
            status=PaymentStatus(payment_status),
            stripe_payment_id=stripe_payment_id,
            paid_at=paid_at,
            refund_id=refund_id,
        ),
        cancellation=cancellation,
        special_requests=special_requests or "",
        created_at=created_at,
        updated_at=updated_at,
    )


def insert_reservation(cur: PgCursor, reservation: Reservation) -> Reservation:
    """Insert a new reservation row and return it as stored."""
    cur.execute(
        f"""
        INSERT INTO reservations (
            id, booking_reference, guest_id, hotel_id, room_id,
            check_in, check_out, adults, children, extras,
            room_total, extras_total, taxes, grand_total,
            status, payment_status, special_requests
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s::jsonb,
                %s, %s, %s, %s, %s, %s, %s)
        RETURNING {RESERVATION_COLUMNS}
        """,
        (
            reservation.id,
            reservation.booking_reference,
            reservation.guest_id,
            reservation.hotel_id,
            reservation.room_id,
            reservation.check_in,
            reservation.check_out,
            reservation.guests.adults,
            reservation.guests.children,
            _extras_to_json(reservation.extras),
            reservation.pricing.room_total,
            reservation.pricing.extras_total,
            reservation.pricing.taxes,
            reservation.pricing.grand_total,
            reservation.status.value,
            reservation.payment.status.value,
            reservation.special_requests,
        ),
    )
    return row_to_reservation(cur.fetchone())


def _is_reservation_id(value: str) -> bool:
    try:
        uuid.UUID(value)
    except (ValueError, TypeError, AttributeError):
        return False
    return True


def get_reservation(cur: PgCursor, reservation_id: str, *, for_update: bool = False) -> Reservation | None:
    # The id column is a UUID; anything else can never match
    if not _is_reservation_id(reservation_id):
        return None
    suffix = " FOR UPDATE" if for_update else ""
    cur.execute(
        f"SELECT {RESERVATION_COLUMNS} FROM reservations WHERE id = %s{suffix}",
        (reservation_id,),
    )
    row = cur.fetchone()
    return row_to_reservation(row) if row is not None else None


def update_reservation(cur: PgCursor, reservation: Reservation) -> Reservation:
    """Persist the mutable fields of a reservation.

    Pricing, dates, room and owner are frozen at creation and never written
    here.
    """
    cancellation = reservation.cancellation
    cur.execute(
        f"""
        UPDATE reservations
        SET status = %s,
            payment_status = %s,
            stripe_payment_id = %s,
            paid_at = %s,
            refund_id = %s,
            cancelled_at = %s,
            cancellation_reason = %s,
            refund_amount = %s,
            cancelled_by = %s,
            adults = %s,
            children = %s,
            special_requests = %s,
            updated_at = now()
        WHERE id = %s
        RETURNING {RESERVATION_COLUMNS}
        """,
        (
            reservation.status.value,
            reservation.payment.status.value,
            reservation.payment.stripe_payment_id,
            reservation.payment.paid_at,
            reservation.payment.refund_id,
            cancellation.cancelled_at if cancellation else None,
            cancellation.reason if cancellation else None,
            cancellation.refund_amount if cancellation else None,
            cancellation.cancelled_by if cancellation else None,
            reservation.guests.adults,
            reservation.guests.children,
            reservation.special_requests,
            reservation.id,
        ),
    )
    row = cur.fetchone()
    if row is None:
        raise KeyError(f"Reservation {reservation.id} not found")
    return row_to_reservation(row)


def find_overlapping(
    cur: PgCursor,
    *,
    room_id: str,
    check_in: datetime,
    check_out: datetime,
    statuses: Iterable[ReservationStatus],
    exclude_reservation_id: str | None = None,
) -> list[Reservation]:
    """Reservations of a room whose [check_in, check_out) overlaps the range.

    Overlap formula: existing.check_in < new.check_out AND existing.check_out > new.check_in.
    Touching ranges do not overlap.
    """
    conditions = [
        "room_id = %s",
        "status = ANY(%s::reservation_status[])",
        "check_in < %s",
        "check_out > %s",
    ]
    params: list = [room_id, [s.value for s in statuses], check_out, check_in]

    if exclude_reservation_id is not None:
        conditions.append("id != %s")
        params.append(exclude_reservation_id)

    cur.execute(
        f"""
        SELECT {RESERVATION_COLUMNS}
        FROM reservations
        WHERE {" AND ".join(conditions)}
        ORDER BY check_in
        """,
        params,
    )
    return [row_to_reservation(row) for row in cur.fetchall()]


def list_reservations(
    cur: PgCursor,
    filters: ReservationFilters,
    *,
    page: int,
    limit: int,
) -> tuple[list[Reservation], int]:
    """Page through reservations, newest first. Returns (rows, total)."""
    conditions = ["TRUE"]
    params: list = []

    if filters.status is not None:
        conditions.append("status = %s")
        params.append(filters.status.value)
    if filters.hotel_id is not None:
        conditions.append("hotel_id = %s")
        params.append(filters.hotel_id)
    if filters.guest_id is not None:
        conditions.append("guest_id = %s")
        params.append(filters.guest_id)

    where = " AND ".join(conditions)

    cur.execute(f"SELECT COUNT(*) FROM reservations WHERE {where}", params)
    total = cur.fetchone()[0]

    cur.execute(
        f"""
        SELECT {RESERVATION_COLUMNS}
        FROM reservations
        WHERE {where}
        ORDER BY created_at DESC, id DESC
        LIMIT %s OFFSET %s
        """,
        [*params, limit, (page - 1) * limit],
    )
    return [row_to_reservation(row) for row in cur.fetchall()], total
