"""Reservation store contract.

All reads and writes of the booking core go through a ``StoreSession`` opened
by ``ReservationStore.unit_of_work()``. A unit of work is one transaction:
it commits on clean exit and rolls back on exception.

Serialization guarantees a backend must provide inside a unit of work:

- ``lock_room(room_id)`` blocks every other unit of work that locks the same
  room until this one ends. Creation and confirmation count overlaps and
  write under this lock, so the count-then-write pair is atomic per room.
- ``get_reservation(id, for_update=True)`` blocks other ``for_update`` reads of
  the same reservation until this one ends.
- Lock order is always room, then reservation.

Units of work must stay short: no payment-provider call is ever made while one
is open.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Protocol

from hotelbook.domain.models import Hotel, Reservation, ReservationStatus, Room


@dataclass(frozen=True)
class ReservationFilters:
    status: ReservationStatus | None = None
    hotel_id: str | None = None
    guest_id: str | None = None


@dataclass(frozen=True)
class Page:
    items: list[Reservation]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        if self.limit <= 0:
            return 0
        return -(-self.total // self.limit)


class StoreSession(Protocol):
    """Operations available inside a unit of work."""

    def get_hotel(self, hotel_id: str) -> Hotel | None: ...

    def get_room(self, room_id: str) -> Room | None: ...

    def list_rooms(self, hotel_id: str) -> list[Room]: ...

    def lock_room(self, room_id: str) -> Room | None: ...

    def find_overlapping(
        self,
        room_id: str,
        check_in: datetime,
        check_out: datetime,
        statuses: Iterable[ReservationStatus],
        *,
        exclude_reservation_id: str | None = None,
    ) -> list[Reservation]: ...

    def insert_reservation(self, reservation: Reservation) -> Reservation: ...

    def get_reservation(self, reservation_id: str, *, for_update: bool = False) -> Reservation | None: ...

    def update_reservation(self, reservation: Reservation) -> Reservation: ...

    def list_reservations(self, filters: ReservationFilters, *, page: int, limit: int) -> Page: ...

    def claim_event(self, source: str, external_id: str) -> bool:
        """Record an external event id; False if it was already recorded."""
        ...


class ReservationStore(Protocol):
    def unit_of_work(self) -> AbstractContextManager[StoreSession]: ...
