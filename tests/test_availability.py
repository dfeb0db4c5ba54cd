"""Tests for the availability engine (in-memory store)."""

from datetime import timedelta
from decimal import Decimal

import pytest

from helpers import HOTEL_ID, ROOM_ID, put_reservation, seeded_store, utc
from hotelbook.domain.availability import check_availability, check_hotel_availability
from hotelbook.domain.errors import NotFoundError, ValidationError
from hotelbook.domain.models import Capacity, PaymentStatus, ReservationStatus, Room, ranges_overlap

CHECK_IN = utc(2030, 6, 10, 15)
CHECK_OUT = utc(2030, 6, 13, 11)


class TestRangesOverlap:
    def test_back_to_back_does_not_overlap(self):
        assert not ranges_overlap(utc(2030, 1, 1), utc(2030, 1, 3), utc(2030, 1, 3), utc(2030, 1, 5))
        assert not ranges_overlap(utc(2030, 1, 3), utc(2030, 1, 5), utc(2030, 1, 1), utc(2030, 1, 3))

    def test_partial_overlap(self):
        assert ranges_overlap(utc(2030, 1, 1), utc(2030, 1, 4), utc(2030, 1, 3), utc(2030, 1, 5))

    def test_containment(self):
        assert ranges_overlap(utc(2030, 1, 1), utc(2030, 1, 10), utc(2030, 1, 3), utc(2030, 1, 4))

    def test_disjoint(self):
        assert not ranges_overlap(utc(2030, 1, 1), utc(2030, 1, 2), utc(2030, 1, 5), utc(2030, 1, 6))


class TestCheckAvailability:
    def test_empty_room_has_full_quantity(self):
        store = seeded_store(quantity=3)
        with store.unit_of_work() as session:
            result = check_availability(session, ROOM_ID, CHECK_IN, CHECK_OUT)

        assert result.available == 3
        assert result.total_quantity == 3

    def test_confirmed_and_checked_in_occupy(self):
        store = seeded_store(quantity=3)
        put_reservation(store, reservation_id="r-confirmed", check_in=CHECK_IN, check_out=CHECK_OUT,
                        status=ReservationStatus.CONFIRMED, payment_status=PaymentStatus.PAID,
                        stripe_payment_id="pi_1")
        put_reservation(store, reservation_id="r-in-house", check_in=CHECK_IN - timedelta(days=1),
                        check_out=CHECK_IN + timedelta(days=1), status=ReservationStatus.CHECKED_IN,
                        payment_status=PaymentStatus.PAID, stripe_payment_id="pi_2")

        with store.unit_of_work() as session:
            result = check_availability(session, ROOM_ID, CHECK_IN, CHECK_OUT)

        assert result.available == 1

    @pytest.mark.parametrize(
        "status",
        [ReservationStatus.PENDING, ReservationStatus.CANCELLED, ReservationStatus.CHECKED_OUT],
    )
    def test_non_occupying_statuses_are_ignored(self, status):
        store = seeded_store(quantity=1)
        put_reservation(store, reservation_id="r-1", check_in=CHECK_IN, check_out=CHECK_OUT, status=status)

        with store.unit_of_work() as session:
            result = check_availability(session, ROOM_ID, CHECK_IN, CHECK_OUT)

        assert result.available == 1

    def test_back_to_back_stay_does_not_consume(self):
        store = seeded_store(quantity=1)
        put_reservation(store, reservation_id="r-before", check_in=CHECK_IN - timedelta(days=2),
                        check_out=CHECK_IN, status=ReservationStatus.CONFIRMED,
                        payment_status=PaymentStatus.PAID, stripe_payment_id="pi_1")

        with store.unit_of_work() as session:
            result = check_availability(session, ROOM_ID, CHECK_IN, CHECK_OUT)

        assert result.available == 1

    def test_never_negative(self):
        store = seeded_store(quantity=1)
        for i in range(3):
            put_reservation(store, reservation_id=f"r-{i}", check_in=CHECK_IN, check_out=CHECK_OUT,
                            status=ReservationStatus.CONFIRMED, payment_status=PaymentStatus.PAID,
                            stripe_payment_id=f"pi_{i}")

        with store.unit_of_work() as session:
            result = check_availability(session, ROOM_ID, CHECK_IN, CHECK_OUT)

        assert result.available == 0

    def test_guest_capacity_filter_reports_zero(self):
        store = seeded_store(quantity=2)
        with store.unit_of_work() as session:
            result = check_availability(session, ROOM_ID, CHECK_IN, CHECK_OUT, guests=4)

        assert result.available == 0

    def test_invalid_range(self):
        store = seeded_store()
        with store.unit_of_work() as session:
            with pytest.raises(ValidationError):
                check_availability(session, ROOM_ID, CHECK_OUT, CHECK_IN)
            with pytest.raises(ValidationError):
                check_availability(session, ROOM_ID, CHECK_IN, CHECK_IN)

    def test_unknown_room(self):
        store = seeded_store()
        with store.unit_of_work() as session:
            with pytest.raises(NotFoundError):
                check_availability(session, "no-such-room", CHECK_IN, CHECK_OUT)


class TestCheckHotelAvailability:
    def test_lists_only_rooms_with_capacity_left(self):
        store = seeded_store(quantity=1)
        store.add_room(
            Room(id="suite", hotel_id=HOTEL_ID, name="Suite", price_per_night=Decimal("250"),
                 quantity=2, capacity=Capacity(adults=4, children=2))
        )
        put_reservation(store, reservation_id="r-1", check_in=CHECK_IN, check_out=CHECK_OUT,
                        status=ReservationStatus.CONFIRMED, payment_status=PaymentStatus.PAID,
                        stripe_payment_id="pi_1")

        with store.unit_of_work() as session:
            rooms = check_hotel_availability(session, HOTEL_ID, CHECK_IN, CHECK_OUT)

        assert [r.room.id for r in rooms] == ["suite"]
        assert rooms[0].available == 2

    def test_guest_filter_omits_small_rooms(self):
        store = seeded_store(quantity=5)
        with store.unit_of_work() as session:
            rooms = check_hotel_availability(session, HOTEL_ID, CHECK_IN, CHECK_OUT, guests=5)

        assert rooms == []

    def test_unknown_hotel(self):
        store = seeded_store()
        with store.unit_of_work() as session:
            with pytest.raises(NotFoundError):
                check_hotel_availability(session, "nope", CHECK_IN, CHECK_OUT)
