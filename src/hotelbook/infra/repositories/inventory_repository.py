"""Hotel and room inventory reads.

Hotels and rooms are managed elsewhere; the booking core only reads them and
locks room rows to serialize capacity checks.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from hotelbook.domain.models import CancellationPolicy, Capacity, Hotel, Room
from hotelbook.infra.db import fetchall, fetchone, for_update

_ROOM_COLUMNS = """
    id, hotel_id, name, room_type, price_per_night, quantity,
    capacity_adults, capacity_children, is_active
"""


def _row_to_room(row: tuple[Any, ...]) -> Room:
    return Room(
        id=row[0],
        hotel_id=row[1],
        name=row[2],
        room_type=row[3],
        price_per_night=Decimal(row[4]),
        quantity=row[5],
        capacity=Capacity(adults=row[6], children=row[7]),
        is_active=row[8],
    )


def get_hotel(cur: PgCursor, hotel_id: str) -> Hotel | None:
    row = fetchone(
        cur,
        """
        SELECT id, name, is_active, free_cancellation_days, refund_percentage
        FROM hotels
        WHERE id = %s
        """,
        (hotel_id,),
    )
    if row is None:
        return None
    return Hotel(
        id=row[0],
        name=row[1],
        is_active=row[2],
        cancellation_policy=CancellationPolicy(
            free_cancellation_days=row[3],
            refund_percentage=row[4],
        ),
    )


def get_room(cur: PgCursor, room_id: str) -> Room | None:
    row = fetchone(cur, f"SELECT {_ROOM_COLUMNS} FROM rooms WHERE id = %s", (room_id,))
    return _row_to_room(row) if row is not None else None


def lock_room(cur: PgCursor, room_id: str) -> Room | None:
    """Lock the room row until the transaction ends.

    Every unit of work that counts overlaps and then writes a reservation for
    this room takes this lock first.
    """
    row = for_update(cur, f"SELECT {_ROOM_COLUMNS} FROM rooms WHERE id = %s", (room_id,))
    return _row_to_room(row) if row is not None else None


def list_active_rooms(cur: PgCursor, hotel_id: str) -> list[Room]:
    rows = fetchall(
        cur,
        f"""
        SELECT {_ROOM_COLUMNS}
        FROM rooms
        WHERE hotel_id = %s AND is_active
        ORDER BY price_per_night, id
        """,
        (hotel_id,),
    )
    return [_row_to_room(row) for row in rows]
