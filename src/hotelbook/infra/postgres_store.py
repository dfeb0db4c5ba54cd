"""PostgreSQL-backed reservation store.

Each unit of work is one ``txn()`` transaction at READ COMMITTED. Capacity
checks are serialized per room by ``SELECT ... FOR UPDATE`` on the room row,
and reservation mutations by ``FOR UPDATE`` on the reservation row.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator

from psycopg2.extensions import cursor as PgCursor

from hotelbook.domain.models import Hotel, Reservation, ReservationStatus, Room
from hotelbook.infra.db import txn
from hotelbook.infra.repositories import inventory_repository, outbox_repository
from hotelbook.infra.repositories import reservations_repository as reservations
from hotelbook.infra.store import Page, ReservationFilters


class PostgresSession:
    """StoreSession bound to one open cursor."""

    def __init__(self, cur: PgCursor) -> None:
        self.cur = cur

    def get_hotel(self, hotel_id: str) -> Hotel | None:
        return inventory_repository.get_hotel(self.cur, hotel_id)

    def get_room(self, room_id: str) -> Room | None:
        return inventory_repository.get_room(self.cur, room_id)

    def list_rooms(self, hotel_id: str) -> list[Room]:
        return inventory_repository.list_active_rooms(self.cur, hotel_id)

    def lock_room(self, room_id: str) -> Room | None:
        return inventory_repository.lock_room(self.cur, room_id)

    def find_overlapping(
        self,
        room_id: str,
        check_in: datetime,
        check_out: datetime,
        statuses: Iterable[ReservationStatus],
        *,
        exclude_reservation_id: str | None = None,
    ) -> list[Reservation]:
        return reservations.find_overlapping(
            self.cur,
            room_id=room_id,
            check_in=check_in,
            check_out=check_out,
            statuses=statuses,
            exclude_reservation_id=exclude_reservation_id,
        )

    def insert_reservation(self, reservation: Reservation) -> Reservation:
        return reservations.insert_reservation(self.cur, reservation)

    def get_reservation(self, reservation_id: str, *, for_update: bool = False) -> Reservation | None:
        return reservations.get_reservation(self.cur, reservation_id, for_update=for_update)

    def update_reservation(self, reservation: Reservation) -> Reservation:
        return reservations.update_reservation(self.cur, reservation)

    def list_reservations(self, filters: ReservationFilters, *, page: int, limit: int) -> Page:
        items, total = reservations.list_reservations(self.cur, filters, page=page, limit=limit)
        return Page(items=items, page=page, limit=limit, total=total)

    def claim_event(self, source: str, external_id: str) -> bool:
        return outbox_repository.claim_processed_event(self.cur, source=source, external_id=external_id)


class PostgresReservationStore:
    """ReservationStore over DATABASE_URL."""

    @contextmanager
    def unit_of_work(self) -> Iterator[PostgresSession]:
        with txn() as cur:
            yield PostgresSession(cur)
