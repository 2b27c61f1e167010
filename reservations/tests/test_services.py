from datetime import date
from decimal import Decimal
from unittest import mock

from django.core.exceptions import PermissionDenied, ValidationError
from django.test import TestCase

from reservations import catalog, conflicts
from reservations.exceptions import (
    ConflictError,
    InvalidTransition,
    NotFound,
    PastReservationError,
    ResourceUnavailable,
    TransientFailure,
)
from reservations.intervals import Interval
from reservations.models import Allocation, Reservation, Resource
from reservations.queries import list_busy_dates
from reservations.services import (
    Requester,
    cancel_reservation,
    check_availability,
    create_reservation,
    create_walk_in,
    set_payment_status,
    set_status,
)

from .factories import booking, clock_at, local, make_room, make_staff, make_user, make_vehicle, requester


class CreateReservationTest(TestCase):
    def setUp(self):
        self.clock = clock_at()
        self.room = make_room(rate="1000")
        self.guest = make_user("maria")

    def test_creates_pending_unpaid_reservation_with_stamped_pricing(self):
        reservation = create_reservation(
            requester=requester(self.guest),
            data=booking(self.room, date(2027, 10, 10), date(2027, 10, 13), special_requests="Late check-in"),
            clock=self.clock,
        )

        self.assertEqual(reservation.status, Reservation.Status.PENDING)
        self.assertEqual(reservation.payment_status, Reservation.PaymentStatus.UNPAID)
        self.assertEqual(reservation.source, Reservation.Source.ONLINE)
        self.assertEqual(reservation.units, 3)
        self.assertEqual(reservation.subtotal, Decimal("3000.00"))
        self.assertEqual(reservation.reservation_fee, Decimal("360.00"))
        self.assertEqual(reservation.total_amount, Decimal("3360.00"))
        self.assertEqual(reservation.special_requests, "Late check-in")
        self.assertEqual(reservation.user, self.guest)
        self.assertTrue(reservation.reference.startswith("BK"))
        self.assertEqual(reservation.allocation.resource_id, self.room.pk)

    def test_vehicle_rental_carries_deposit(self):
        scooter = make_vehicle(rate="500", vehicle_type=Resource.VehicleType.MOTORCYCLE, seats=2)
        reservation = create_reservation(
            requester=requester(self.guest),
            data=booking(scooter, date(2027, 10, 10), date(2027, 10, 13)),
            clock=self.clock,
        )

        self.assertTrue(reservation.reference.startswith("VR"))
        self.assertEqual(reservation.subtotal, Decimal("1500.00"))
        self.assertEqual(reservation.security_deposit, Decimal("5000.00"))
        self.assertEqual(reservation.total_amount, Decimal("6500.00"))

    def test_overlapping_request_gets_conflicting_dates_and_creates_nothing(self):
        create_reservation(
            requester=requester(self.guest),
            data=booking(self.room, date(2027, 10, 10), date(2027, 10, 12)),
            clock=self.clock,
        )

        with self.assertRaises(ConflictError) as ctx:
            create_reservation(
                requester=requester(),
                data=booking(self.room, date(2027, 10, 11), date(2027, 10, 13)),
                clock=self.clock,
            )

        self.assertEqual(ctx.exception.conflicting_dates, [date(2027, 10, 11)])
        self.assertEqual(Reservation.objects.count(), 1)
        self.assertEqual(Allocation.objects.count(), 1)

    def test_anonymous_user_is_not_recorded(self):
        anonymous = mock.Mock(is_authenticated=False)
        reservation = create_reservation(
            requester=requester(anonymous, name="Jose Reyes"),
            data=booking(self.room, date(2027, 10, 10), date(2027, 10, 11)),
            clock=self.clock,
        )
        self.assertIsNone(reservation.user)
        self.assertEqual(reservation.requester_display, "Jose Reyes")

    def test_rejects_ranges_in_the_past(self):
        with self.assertRaises(PastReservationError):
            create_reservation(
                requester=requester(),
                data=booking(self.room, date(2027, 9, 1), date(2027, 9, 3)),
                clock=self.clock,
            )

    def test_disabled_resource_refuses_new_reservations_only(self):
        existing = create_reservation(
            requester=requester(),
            data=booking(self.room, date(2027, 10, 10), date(2027, 10, 12)),
            clock=self.clock,
        )
        Resource.objects.filter(pk=self.room.pk).update(is_available=False)

        with self.assertRaises(ResourceUnavailable):
            create_reservation(
                requester=requester(),
                data=booking(self.room, date(2027, 10, 20), date(2027, 10, 22)),
                clock=self.clock,
            )
        self.assertTrue(Allocation.objects.filter(reservation=existing).exists())

    def test_party_size_is_checked_against_capacity(self):
        with self.assertRaises(ValidationError):
            create_reservation(
                requester=requester(),
                data=booking(self.room, date(2027, 10, 10), date(2027, 10, 12), adults=3),
                clock=self.clock,
            )
        with self.assertRaises(ValidationError):
            create_reservation(
                requester=requester(),
                data=booking(self.room, date(2027, 10, 10), date(2027, 10, 12), children=2),
                clock=self.clock,
            )

        van = make_vehicle(seats=7)
        with self.assertRaises(ValidationError):
            create_reservation(
                requester=requester(),
                data=booking(van, date(2027, 10, 10), date(2027, 10, 12), adults=6, children=2),
                clock=self.clock,
            )
        self.assertFalse(Reservation.objects.exists())

    def test_unknown_resource(self):
        with self.assertRaises(NotFound):
            create_reservation(
                requester=requester(),
                data=booking(Resource(pk=999999), date(2027, 10, 10), date(2027, 10, 12)),
                clock=self.clock,
            )

    def test_rate_changes_do_not_reprice_existing_reservations(self):
        reservation = create_reservation(
            requester=requester(),
            data=booking(self.room, date(2027, 10, 10), date(2027, 10, 12)),
            clock=self.clock,
        )
        catalog.update_resource(user=make_staff(), resource_id=self.room.pk, rate=Decimal("1500"))

        reservation.refresh_from_db()
        self.assertEqual(reservation.subtotal, Decimal("2000.00"))

        later = create_reservation(
            requester=requester(),
            data=booking(self.room, date(2027, 10, 20), date(2027, 10, 22)),
            clock=self.clock,
        )
        self.assertEqual(later.subtotal, Decimal("3000.00"))

    def test_check_availability(self):
        create_reservation(
            requester=requester(),
            data=booking(self.room, date(2027, 10, 10), date(2027, 10, 12)),
            clock=self.clock,
        )

        busy = check_availability(self.room.pk, Interval.from_dates(date(2027, 10, 11), date(2027, 10, 13)))
        free = check_availability(self.room.pk, Interval.from_dates(date(2027, 10, 12), date(2027, 10, 13)))

        self.assertFalse(busy.free)
        self.assertEqual(busy.conflicting_dates, [date(2027, 10, 11)])
        self.assertTrue(free.free)
        self.assertEqual(free.conflicts, [])


class RetryTest(TestCase):
    def setUp(self):
        self.clock = clock_at()
        self.room = make_room()

    def test_gives_up_after_repeated_lost_races(self):
        with mock.patch.object(conflicts, "try_reserve", side_effect=conflicts.StaleAllocation("moved")) as patched:
            with self.assertRaises(TransientFailure):
                create_reservation(
                    requester=requester(),
                    data=booking(self.room, date(2027, 10, 10), date(2027, 10, 12)),
                    clock=self.clock,
                )

        self.assertEqual(patched.call_count, 3)
        self.assertFalse(Reservation.objects.exists())

    def test_retries_after_a_lost_race(self):
        real_try_reserve = conflicts.try_reserve
        calls = []

        def flaky(resource_id, interval, **kwargs):
            calls.append(resource_id)
            if len(calls) == 1:
                raise conflicts.StaleAllocation("moved")
            return real_try_reserve(resource_id, interval, **kwargs)

        with mock.patch.object(conflicts, "try_reserve", side_effect=flaky):
            reservation = create_reservation(
                requester=requester(),
                data=booking(self.room, date(2027, 10, 10), date(2027, 10, 12)),
                clock=self.clock,
            )

        self.assertEqual(len(calls), 2)
        self.assertEqual(reservation.status, Reservation.Status.PENDING)


    def test_retries_after_a_reference_collision(self):
        first = create_reservation(
            requester=requester(),
            data=booking(self.room, date(2027, 10, 10), date(2027, 10, 12)),
            clock=self.clock,
        )

        with mock.patch.object(
            Reservation, "generate_reference", side_effect=[first.reference, "BK00000000000A"]
        ) as patched:
            second = create_reservation(
                requester=requester(),
                data=booking(self.room, date(2027, 10, 14), date(2027, 10, 15)),
                clock=self.clock,
            )

        self.assertEqual(patched.call_count, 2)
        self.assertEqual(second.reference, "BK00000000000A")
        self.assertEqual(Allocation.objects.filter(resource=self.room).count(), 2)
        self.assertEqual(
            list_busy_dates(self.room.pk),
            [date(2027, 10, 10), date(2027, 10, 11), date(2027, 10, 14)],
        )


class WalkInTest(TestCase):
    def setUp(self):
        self.clock = clock_at()
        self.room = make_room()
        self.staff = make_staff()

    def test_walk_in_occupies_the_range_like_an_online_booking(self):
        walk_in = create_walk_in(
            user=self.staff,
            data=booking(self.room, date(2027, 10, 20), date(2027, 10, 21)),
            clock=self.clock,
        )

        self.assertEqual(walk_in.source, Reservation.Source.WALK_IN)
        self.assertEqual(walk_in.status, Reservation.Status.CONFIRMED)
        self.assertEqual(walk_in.guest_name, "Walk-in Guest")
        self.assertIsNone(walk_in.user)
        self.assertEqual(walk_in.subtotal, Decimal("1000.00"))
        self.assertEqual(list_busy_dates(self.room.pk), [date(2027, 10, 20)])

        with self.assertRaises(ConflictError) as ctx:
            create_reservation(
                requester=requester(),
                data=booking(self.room, date(2027, 10, 20), date(2027, 10, 21)),
                clock=self.clock,
            )
        self.assertEqual(ctx.exception.conflicting_dates, [date(2027, 10, 20)])

    def test_walk_in_keeps_given_guest_details(self):
        walk_in = create_walk_in(
            user=self.staff,
            data=booking(self.room, date(2027, 10, 20), date(2027, 10, 21)),
            guest_name="Pedro Santos",
            guest_phone="0918",
            notes="Paid cash at desk",
            clock=self.clock,
        )
        self.assertEqual(walk_in.guest_name, "Pedro Santos")
        self.assertEqual(walk_in.notes, "Paid cash at desk")

    def test_only_staff_can_create_walk_ins(self):
        with self.assertRaises(PermissionDenied):
            create_walk_in(
                user=make_user("maria"),
                data=booking(self.room, date(2027, 10, 20), date(2027, 10, 21)),
                clock=self.clock,
            )
        self.assertFalse(Reservation.objects.exists())


class CancelReservationTest(TestCase):
    def setUp(self):
        self.clock = clock_at()
        self.room = make_room()
        self.owner = make_user("maria")
        self.reservation = create_reservation(
            requester=requester(self.owner),
            data=booking(self.room, date(2027, 10, 10), date(2027, 10, 12)),
            clock=self.clock,
        )

    def test_create_then_cancel_frees_the_dates(self):
        cancelled = cancel_reservation(
            user=self.owner,
            reservation_id=self.reservation.pk,
            reason="Change of plans",
            clock=self.clock,
        )

        self.assertEqual(cancelled.status, Reservation.Status.CANCELLED)
        self.assertEqual(cancelled.cancelled_at, self.clock.now())
        self.assertEqual(cancelled.cancellation_reason, "Change of plans")
        self.assertEqual(list_busy_dates(self.room.pk), [])

        again = create_reservation(
            requester=requester(),
            data=booking(self.room, date(2027, 10, 10), date(2027, 10, 12)),
            clock=self.clock,
        )
        self.assertEqual(again.status, Reservation.Status.PENDING)

    def test_failed_release_rolls_the_cancellation_back(self):
        with mock.patch.object(conflicts, "release", side_effect=RuntimeError("index down")):
            with self.assertRaises(RuntimeError):
                cancel_reservation(user=self.owner, reservation_id=self.reservation.pk, clock=self.clock)

        self.reservation.refresh_from_db()
        self.assertEqual(self.reservation.status, Reservation.Status.PENDING)
        self.assertIsNone(self.reservation.cancelled_at)
        self.assertEqual(list_busy_dates(self.room.pk), [date(2027, 10, 10), date(2027, 10, 11)])

    def test_strangers_cannot_cancel(self):
        with self.assertRaises(PermissionDenied):
            cancel_reservation(user=make_user("stranger"), reservation_id=self.reservation.pk, clock=self.clock)
        self.assertEqual(list_busy_dates(self.room.pk), [date(2027, 10, 10), date(2027, 10, 11)])

    def test_staff_can_cancel(self):
        cancel_reservation(user=make_staff(), reservation_id=self.reservation.pk, clock=self.clock)
        self.reservation.refresh_from_db()
        self.assertEqual(self.reservation.status, Reservation.Status.CANCELLED)

    def test_cancelling_twice_is_rejected(self):
        cancel_reservation(user=self.owner, reservation_id=self.reservation.pk, clock=self.clock)
        with self.assertRaises(InvalidTransition):
            cancel_reservation(user=self.owner, reservation_id=self.reservation.pk, clock=self.clock)

    def test_unknown_reservation(self):
        with self.assertRaises(NotFound):
            cancel_reservation(user=self.owner, reservation_id=999999, clock=self.clock)


class SetStatusTest(TestCase):
    def setUp(self):
        self.clock = clock_at()
        self.staff = make_staff()
        self.room = make_room()
        self.reservation = create_reservation(
            requester=requester(),
            data=booking(self.room, date(2027, 10, 10), date(2027, 10, 12)),
            clock=self.clock,
        )

    def _move(self, *statuses):
        for status in statuses:
            set_status(user=self.staff, reservation_id=self.reservation.pk, status=status, clock=self.clock)

    def test_checked_in_cannot_be_cancelled(self):
        self._move(Reservation.Status.CONFIRMED, Reservation.Status.CHECKED_IN)

        with self.assertRaises(InvalidTransition) as ctx:
            self._move(Reservation.Status.CANCELLED)

        self.assertEqual(ctx.exception.allowed, ["checked-out"])
        self.reservation.refresh_from_db()
        self.assertEqual(self.reservation.status, Reservation.Status.CHECKED_IN)
        self.assertTrue(Allocation.objects.filter(reservation=self.reservation).exists())

    def test_finished_stays_keep_their_dates(self):
        self._move(Reservation.Status.CONFIRMED, Reservation.Status.CHECKED_IN, Reservation.Status.CHECKED_OUT)
        self.assertEqual(list_busy_dates(self.room.pk), [date(2027, 10, 10), date(2027, 10, 11)])

    def test_staff_cancellation_releases_dates(self):
        self._move(Reservation.Status.CONFIRMED, Reservation.Status.CANCELLED)

        self.reservation.refresh_from_db()
        self.assertEqual(self.reservation.status, Reservation.Status.CANCELLED)
        self.assertIsNotNone(self.reservation.cancelled_at)
        self.assertEqual(list_busy_dates(self.room.pk), [])

    def test_vehicle_flow(self):
        car = make_vehicle()
        rental = create_reservation(
            requester=requester(),
            data=booking(car, date(2027, 10, 10), date(2027, 10, 12)),
            clock=self.clock,
        )
        for status in (Reservation.Status.CONFIRMED, Reservation.Status.ACTIVE, Reservation.Status.COMPLETED):
            rental = set_status(user=self.staff, reservation_id=rental.pk, status=status, clock=self.clock)
        self.assertEqual(rental.status, Reservation.Status.COMPLETED)

    def test_only_staff(self):
        with self.assertRaises(PermissionDenied):
            set_status(user=make_user("maria"), reservation_id=self.reservation.pk, status="confirmed")

    def test_unknown_status(self):
        with self.assertRaises(ValidationError):
            set_status(user=self.staff, reservation_id=self.reservation.pk, status="teleported")


    def test_notes_can_be_updated_with_the_status(self):
        reservation = set_status(
            user=self.staff,
            reservation_id=self.reservation.pk,
            status=Reservation.Status.CONFIRMED,
            notes="Late arrival, around 22:00",
            clock=self.clock,
        )

        reservation.refresh_from_db()
        self.assertEqual(reservation.status, Reservation.Status.CONFIRMED)
        self.assertEqual(reservation.notes, "Late arrival, around 22:00")
        self.assertIsNone(reservation.actual_pickup_at)

    def test_rooms_have_no_handover_record(self):
        with self.assertRaises(ValidationError):
            set_status(
                user=self.staff,
                reservation_id=self.reservation.pk,
                status=Reservation.Status.CONFIRMED,
                damage_report="Scratched door",
            )
        self.reservation.refresh_from_db()
        self.assertEqual(self.reservation.status, Reservation.Status.PENDING)


class VehicleHandoverTest(TestCase):
    def setUp(self):
        self.clock = clock_at()
        self.staff = make_staff()
        self.car = make_vehicle()
        self.rental = create_reservation(
            requester=Requester(
                name="Jose Reyes",
                phone="09998887777",
                address="12 Rizal St, Cebu City",
                license_number="N01-23-456789",
                emergency_contact="Lina Reyes",
                emergency_phone="09171112222",
            ),
            data=booking(self.car, date(2027, 10, 10), date(2027, 10, 12), return_location="Mactan Airport"),
            clock=self.clock,
        )

    def _move(self, status, **handover):
        return set_status(user=self.staff, reservation_id=self.rental.pk, status=status, clock=self.clock, **handover)

    def test_rental_keeps_renter_details_and_locations(self):
        self.assertEqual(self.rental.license_number, "N01-23-456789")
        self.assertEqual(self.rental.guest_address, "12 Rizal St, Cebu City")
        self.assertEqual(self.rental.emergency_contact, "Lina Reyes")
        self.assertEqual(self.rental.emergency_phone, "09171112222")
        self.assertEqual(self.rental.pickup_location, "Tumamak Lodge")
        self.assertEqual(self.rental.return_location, "Mactan Airport")

    def test_room_bookings_ignore_rental_details(self):
        stay = create_reservation(
            requester=Requester(name="Ana Cruz", phone="0917", license_number="N01-23-456789"),
            data=booking(make_room(), date(2027, 10, 10), date(2027, 10, 12)),
            clock=self.clock,
        )
        self.assertEqual(stay.license_number, "")
        self.assertEqual(stay.pickup_location, "")

    def test_pickup_and_return_are_stamped(self):
        self._move(Reservation.Status.CONFIRMED)

        picked_up = self._move(Reservation.Status.ACTIVE, fuel_level="full")
        self.assertEqual(picked_up.actual_pickup_at, self.clock.now())
        self.assertEqual(picked_up.fuel_level_pickup, "full")
        self.assertIsNone(picked_up.actual_return_at)

        returned_at = local(2027, 10, 12, 8, 30)
        returned = self._move(
            Reservation.Status.COMPLETED,
            fuel_level="half",
            damage_report="Scratch on the rear bumper",
            notes="Charged for refuel",
            handover_at=returned_at,
        )

        returned.refresh_from_db()
        self.assertEqual(returned.status, Reservation.Status.COMPLETED)
        self.assertEqual(returned.actual_pickup_at, self.clock.now())
        self.assertEqual(returned.actual_return_at, returned_at)
        self.assertEqual(returned.fuel_level_pickup, "full")
        self.assertEqual(returned.fuel_level_return, "half")
        self.assertEqual(returned.damage_report, "Scratch on the rear bumper")
        self.assertEqual(returned.notes, "Charged for refuel")

    def test_damage_is_reported_on_return_only(self):
        self._move(Reservation.Status.CONFIRMED)
        with self.assertRaises(ValidationError):
            self._move(Reservation.Status.ACTIVE, damage_report="Dent")
        with self.assertRaises(ValidationError):
            self._move(Reservation.Status.CANCELLED, fuel_level="full")

        self.rental.refresh_from_db()
        self.assertEqual(self.rental.status, Reservation.Status.CONFIRMED)
        self.assertEqual(self.rental.damage_report, "")

    def test_notes_survive_a_staff_cancellation(self):
        cancelled = self._move(Reservation.Status.CANCELLED, notes="Renter never showed up")

        cancelled.refresh_from_db()
        self.assertEqual(cancelled.status, Reservation.Status.CANCELLED)
        self.assertEqual(cancelled.notes, "Renter never showed up")
        self.assertEqual(list_busy_dates(self.car.pk), [])


class SetPaymentStatusTest(TestCase):
    def setUp(self):
        self.clock = clock_at()
        self.staff = make_staff()
        self.car = make_vehicle()
        self.rental = create_reservation(
            requester=requester(),
            data=booking(self.car, date(2027, 10, 10), date(2027, 10, 12)),
            clock=self.clock,
        )

    def _pay(self, **kwargs):
        return set_payment_status(user=self.staff, reservation_id=self.rental.pk, **kwargs)

    def test_payment_moves_independently_of_status(self):
        rental = self._pay(payment_status=Reservation.PaymentStatus.PARTIAL)
        self.assertEqual(rental.payment_status, Reservation.PaymentStatus.PARTIAL)
        self.assertEqual(rental.status, Reservation.Status.PENDING)

    def test_deposit_returns_only_after_payment(self):
        with self.assertRaises(InvalidTransition):
            self._pay(deposit_returned=True)

        rental = self._pay(payment_status=Reservation.PaymentStatus.PAID, deposit_returned=True)
        self.assertTrue(rental.deposit_returned)
        self.assertEqual(rental.payment_status, Reservation.PaymentStatus.PAID)

    def test_refunded_is_final(self):
        self._pay(payment_status=Reservation.PaymentStatus.REFUNDED)
        with self.assertRaises(InvalidTransition):
            self._pay(payment_status=Reservation.PaymentStatus.PAID)

    def test_room_payment_ladder(self):
        room = make_room()
        booked = create_reservation(
            requester=requester(),
            data=booking(room, date(2027, 10, 10), date(2027, 10, 12)),
            clock=self.clock,
        )
        booked = set_payment_status(
            user=self.staff,
            reservation_id=booked.pk,
            payment_status=Reservation.PaymentStatus.RESERVATION_PAID,
        )
        self.assertEqual(booked.payment_status, Reservation.PaymentStatus.RESERVATION_PAID)
        with self.assertRaises(InvalidTransition):
            set_payment_status(user=self.staff, reservation_id=booked.pk, deposit_returned=True)

    def test_only_staff(self):
        with self.assertRaises(PermissionDenied):
            set_payment_status(
                user=make_user("maria"),
                reservation_id=self.rental.pk,
                payment_status=Reservation.PaymentStatus.PAID,
            )
