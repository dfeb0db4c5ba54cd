"""In-process reservation store for development and tests.

A single re-entrant lock is held for the whole unit of work, which makes
every unit of work serializable (room and reservation locks are implied).
Reservations are immutable values, so a shallow copy of the maps is enough to
roll back a failed unit of work.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator

from hotelbook.domain.models import Hotel, Reservation, ReservationStatus, Room
from hotelbook.infra.store import Page, ReservationFilters


class InMemorySession:
    """StoreSession over the dictionaries of an InMemoryReservationStore."""

    def __init__(self, store: InMemoryReservationStore) -> None:
        self._store = store

    def get_hotel(self, hotel_id: str) -> Hotel | None:
        return self._store._hotels.get(hotel_id)

    def get_room(self, room_id: str) -> Room | None:
        return self._store._rooms.get(room_id)

    def list_rooms(self, hotel_id: str) -> list[Room]:
        return [r for r in self._store._rooms.values() if r.hotel_id == hotel_id and r.is_active]

    def lock_room(self, room_id: str) -> Room | None:
        # The unit-of-work lock already serializes everything
        return self.get_room(room_id)

    def find_overlapping(
        self,
        room_id: str,
        check_in: datetime,
        check_out: datetime,
        statuses: Iterable[ReservationStatus],
        *,
        exclude_reservation_id: str | None = None,
    ) -> list[Reservation]:
        wanted = set(statuses)
        return sorted(
            (
                r
                for r in self._store._reservations.values()
                if r.room_id == room_id
                and r.status in wanted
                and r.id != exclude_reservation_id
                and r.overlaps(check_in, check_out)
            ),
            key=lambda r: r.check_in,
        )

    def insert_reservation(self, reservation: Reservation) -> Reservation:
        if reservation.id in self._store._reservations:
            raise KeyError(f"Reservation {reservation.id} already exists")
        self._store._reservations[reservation.id] = reservation
        return reservation

    def get_reservation(self, reservation_id: str, *, for_update: bool = False) -> Reservation | None:
        return self._store._reservations.get(reservation_id)

    def update_reservation(self, reservation: Reservation) -> Reservation:
        if reservation.id not in self._store._reservations:
            raise KeyError(f"Reservation {reservation.id} not found")
        self._store._reservations[reservation.id] = reservation
        return reservation

    def list_reservations(self, filters: ReservationFilters, *, page: int, limit: int) -> Page:
        rows = [
            r
            for r in self._store._reservations.values()
            if (filters.status is None or r.status == filters.status)
            and (filters.hotel_id is None or r.hotel_id == filters.hotel_id)
            and (filters.guest_id is None or r.guest_id == filters.guest_id)
        ]
        rows.sort(key=lambda r: (r.created_at or datetime.min, r.id), reverse=True)
        offset = (page - 1) * limit
        return Page(items=rows[offset : offset + limit], page=page, limit=limit, total=len(rows))

    def claim_event(self, source: str, external_id: str) -> bool:
        key = (source, external_id)
        if key in self._store._events:
            return False
        self._store._events.add(key)
        return True


class InMemoryReservationStore:
    """ReservationStore kept in process memory."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._hotels: dict[str, Hotel] = {}
        self._rooms: dict[str, Room] = {}
        self._reservations: dict[str, Reservation] = {}
        self._events: set[tuple[str, str]] = set()

    def add_hotel(self, hotel: Hotel) -> Hotel:
        with self._lock:
            self._hotels[hotel.id] = hotel
        return hotel

    def add_room(self, room: Room) -> Room:
        with self._lock:
            self._rooms[room.id] = room
        return room

    def all_reservations(self) -> list[Reservation]:
        with self._lock:
            return list(self._reservations.values())

    @contextmanager
    def unit_of_work(self) -> Iterator[InMemorySession]:
        with self._lock:
            reservations = dict(self._reservations)
            events = set(self._events)
            try:
                yield InMemorySession(self)
            except BaseException:
                self._reservations = reservations
                self._events = events
                raise
