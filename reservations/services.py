from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date as date_type
from datetime import datetime

from django.conf import settings
from django.core.exceptions import PermissionDenied, ValidationError
from django.db import IntegrityError, OperationalError, transaction

from accounts.roles import is_staff_member, require_staff

from . import conflicts
from .clock import resolve_clock
from .exceptions import (
    ConflictError,
    NotFound,
    PastReservationError,
    ResourceUnavailable,
    TransientFailure,
)
from .intervals import Interval
from .lifecycle import check_deposit_return, check_payment_transition, check_status_transition
from .models import Reservation, Resource
from .pricing import quote_for


logger = logging.getLogger(__name__)

DEFAULT_RESERVE_MAX_ATTEMPTS = 3
DEFAULT_RESERVE_RETRY_BACKOFF = 0.05
WALK_IN_GUEST_NAME = "Walk-in Guest"
DEFAULT_RENTAL_LOCATION = "Tumamak Lodge"


@dataclass(frozen=True)
class ReservationInput:
    resource_id: int
    start: date_type | datetime
    end: date_type | datetime
    adults: int = 1
    children: int = 0
    special_requests: str = ""
    pickup_location: str = ""
    return_location: str = ""

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)


@dataclass(frozen=True)
class Requester:
    """
    Who asked for the reservation: a registered user, free-text contact
    details, or both.
    """

    user: object = None
    name: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""
    license_number: str = ""
    emergency_contact: str = ""
    emergency_phone: str = ""


@dataclass(frozen=True)
class Availability:
    free: bool
    conflicts: list = field(default_factory=list)
    conflicting_dates: list = field(default_factory=list)


def _validate_not_past(interval: Interval, clock) -> None:
    """
    Prevent reserving ranges that already ended.
    """
    if interval.end <= clock.now():
        raise PastReservationError("You cannot reserve dates that have already passed.")


def _get_resource(resource_id) -> Resource:
    try:
        return Resource.objects.get(pk=resource_id)
    except Resource.DoesNotExist:
        raise NotFound(f"Resource {resource_id} not found.") from None


def _get_reservation_for_update(reservation_id) -> Reservation:
    try:
        return (
            Reservation.objects.select_for_update(of=("self",))
            .select_related("resource")
            .get(pk=reservation_id)
        )
    except Reservation.DoesNotExist:
        raise NotFound(f"Reservation {reservation_id} not found.") from None


def _validate_guests(resource: Resource, data: ReservationInput) -> None:
    if data.adults < 1:
        raise ValidationError({"adults": "At least one adult is required."})
    if data.children < 0:
        raise ValidationError({"children": "Children cannot be negative."})

    if resource.is_room:
        if data.adults > resource.capacity_adults:
            raise ValidationError({"adults": f"This room sleeps at most {resource.capacity_adults} adults."})
        if data.children > resource.capacity_children:
            raise ValidationError(
                {"children": f"This room allows at most {resource.capacity_children} children."}
            )
    elif data.adults + data.children > resource.seats:
        raise ValidationError({"adults": f"This vehicle seats at most {resource.seats} people."})


def _reserve(resource: Resource, interval: Interval, build) -> Reservation:
    """
    Claim the interval and persist the reservation in one transaction.

    Lock errors, lost version races and reference collisions are retried a
    bounded number of times; every attempt re-runs the full overlap check.
    """
    attempts = int(getattr(settings, "RESERVE_MAX_ATTEMPTS", DEFAULT_RESERVE_MAX_ATTEMPTS))
    backoff = float(getattr(settings, "RESERVE_RETRY_BACKOFF", DEFAULT_RESERVE_RETRY_BACKOFF))

    for attempt in range(1, attempts + 1):
        try:
            with transaction.atomic():
                allocation = conflicts.try_reserve(resource.pk, interval)
                reservation = build(allocation.resource)
                reservation.save()
                allocation.reservation = reservation
                allocation.save(update_fields=["reservation"])
                return reservation
        except ConflictError as exc:
            logger.info("Conflict on %s for %s: %s", resource.code, interval, exc.conflicting_dates)
            raise
        except (conflicts.StaleAllocation, OperationalError, IntegrityError) as exc:
            logger.warning(
                "Reserve attempt %s/%s on %s failed: %s", attempt, attempts, resource.code, exc
            )
            if attempt < attempts:
                time.sleep(backoff * attempt)

    raise TransientFailure(f"{resource.name} could not be reserved right now. Please try again.")


def _create(
    *,
    requester: Requester,
    data: ReservationInput,
    source: str,
    status: str,
    notes: str = "",
    clock=None,
) -> Reservation:
    clock = resolve_clock(clock)
    interval = data.interval
    _validate_not_past(interval, clock)

    resource = _get_resource(data.resource_id)
    if not resource.is_available:
        raise ResourceUnavailable(f"{resource.name} is not available for booking.")
    _validate_guests(resource, data)

    user = requester.user
    if user is not None and not user.is_authenticated:
        user = None

    rental = {}
    if not resource.is_room:
        default_location = getattr(settings, "RENTAL_DEFAULT_LOCATION", DEFAULT_RENTAL_LOCATION)
        rental = {
            "guest_address": requester.address,
            "license_number": requester.license_number,
            "emergency_contact": requester.emergency_contact,
            "emergency_phone": requester.emergency_phone,
            "pickup_location": data.pickup_location or default_location,
            "return_location": data.return_location or default_location,
        }

    def build(locked: Resource) -> Reservation:
        # Priced against the locked row so a concurrent rate edit is either
        # fully before or fully after this reservation.
        quote = quote_for(locked, interval)
        return Reservation(
            resource=locked,
            user=user,
            guest_name=requester.name,
            guest_phone=requester.phone,
            guest_email=requester.email,
            start=interval.start,
            end=interval.end,
            adults=data.adults,
            children=data.children,
            status=status,
            payment_status=Reservation.PaymentStatus.UNPAID,
            source=source,
            rate=quote.rate,
            units=quote.units,
            subtotal=quote.subtotal,
            reservation_fee=quote.reservation_fee,
            security_deposit=quote.security_deposit,
            total_amount=quote.total_amount,
            special_requests=data.special_requests,
            notes=notes,
            **rental,
        )

    reservation = _reserve(resource, interval, build)
    logger.info(
        "Reservation %s created on %s (%s, %s)", reservation.reference, resource.code, source, interval
    )
    return reservation


def check_availability(resource_id, interval: Interval) -> Availability:
    """
    Scheduling check only; the administrative ``is_available`` switch is
    reported separately by the catalog.
    """
    _get_resource(resource_id)
    found = conflicts.find_conflicts(resource_id, interval)
    return Availability(
        free=not found,
        conflicts=found,
        conflicting_dates=conflicts.conflicting_dates(found),
    )


def create_reservation(
    *,
    requester: Requester,
    data: ReservationInput,
    source: str = Reservation.Source.ONLINE,
    clock=None,
) -> Reservation:
    """
    Create a reservation safely:
    - Validates the range, the resource switch and the party size up front.
    - Claims the range through the conflict index (row lock + version check).
    - Stamps pricing and persists the reservation as pending/unpaid.
    """
    return _create(
        requester=requester,
        data=data,
        source=source,
        status=Reservation.Status.PENDING,
        clock=clock,
    )


def create_walk_in(
    *,
    user,
    data: ReservationInput,
    guest_name: str = WALK_IN_GUEST_NAME,
    guest_phone: str = "",
    notes: str = "",
    clock=None,
) -> Reservation:
    """
    Front-desk booking. Occupies the range exactly like an online booking
    but has no registered requester and starts out confirmed.
    """
    require_staff(user, "create walk-in bookings")
    return _create(
        requester=Requester(name=guest_name or WALK_IN_GUEST_NAME, phone=guest_phone),
        data=data,
        source=Reservation.Source.WALK_IN,
        status=Reservation.Status.CONFIRMED,
        notes=notes,
        clock=clock,
    )


def _cancel(reservation: Reservation, reason: str, clock, extra_fields=()) -> Reservation:
    check_status_transition(reservation.kind, reservation.status, Reservation.Status.CANCELLED)

    reservation.status = Reservation.Status.CANCELLED
    reservation.cancelled_at = clock.now()
    reservation.cancellation_reason = reason or ""
    reservation.save(
        update_fields=["status", "cancelled_at", "cancellation_reason", *extra_fields, "updated_at"]
    )

    # Same transaction: if the release fails the cancellation rolls back too.
    conflicts.release(reservation.resource_id, reservation.pk)
    logger.info("Reservation %s cancelled", reservation.reference)
    return reservation


def cancel_reservation(*, user, reservation_id: int, reason: str = "", clock=None) -> Reservation:
    """
    Cancel a reservation (owner or staff) and free its dates.
    """
    clock = resolve_clock(clock)
    with transaction.atomic():
        reservation = _get_reservation_for_update(reservation_id)

        is_owner = (
            user is not None
            and user.is_authenticated
            and reservation.user_id is not None
            and reservation.user_id == user.pk
        )
        if not (is_owner or is_staff_member(user)):
            raise PermissionDenied("You do not have permission to cancel this reservation.")

        return _cancel(reservation, reason, clock)


def _validate_handover(reservation: Reservation, status: str, damage_report, fuel_level) -> None:
    if reservation.resource.is_room:
        if damage_report is not None:
            raise ValidationError({"damage_report": "Damage reports apply to vehicle rentals only."})
        if fuel_level is not None:
            raise ValidationError({"fuel_level": "Fuel levels apply to vehicle rentals only."})
        return

    if fuel_level is not None and status not in (Reservation.Status.ACTIVE, Reservation.Status.COMPLETED):
        raise ValidationError({"fuel_level": "Fuel level is recorded at pickup or return."})
    if damage_report is not None and status != Reservation.Status.COMPLETED:
        raise ValidationError({"damage_report": "Damage is reported when the vehicle is returned."})


def set_status(
    *,
    user,
    reservation_id: int,
    status: str,
    notes: str | None = None,
    damage_report: str | None = None,
    fuel_level: str | None = None,
    handover_at: datetime | None = None,
    clock=None,
) -> Reservation:
    """
    Staff override of the reservation status. Moving to ``cancelled`` goes
    through the cancellation path so the dates are released.

    Vehicle rentals record the handover on the way: ``active`` stamps the
    actual pickup time and pickup fuel level, ``completed`` stamps the actual
    return time, the return fuel level and any damage. ``handover_at``
    overrides the clock for either stamp. ``notes`` replaces the staff notes
    for any kind.
    """
    require_staff(user, "change reservation status")
    if status not in Reservation.Status.values:
        raise ValidationError({"status": f"Unknown status: {status}."})

    clock = resolve_clock(clock)
    with transaction.atomic():
        reservation = _get_reservation_for_update(reservation_id)
        _validate_handover(reservation, status, damage_report, fuel_level)

        update_fields = []
        if notes is not None:
            reservation.notes = notes
            update_fields.append("notes")

        if status == Reservation.Status.CANCELLED:
            return _cancel(reservation, "", clock, extra_fields=update_fields)

        check_status_transition(reservation.kind, reservation.status, status)
        previous = reservation.status
        reservation.status = status
        update_fields.append("status")

        if status == Reservation.Status.ACTIVE:
            reservation.actual_pickup_at = handover_at or clock.now()
            update_fields.append("actual_pickup_at")
            if fuel_level is not None:
                reservation.fuel_level_pickup = fuel_level
                update_fields.append("fuel_level_pickup")
        elif status == Reservation.Status.COMPLETED:
            reservation.actual_return_at = handover_at or clock.now()
            update_fields.append("actual_return_at")
            if fuel_level is not None:
                reservation.fuel_level_return = fuel_level
                update_fields.append("fuel_level_return")
            if damage_report is not None:
                reservation.damage_report = damage_report
                update_fields.append("damage_report")

        reservation.save(update_fields=update_fields + ["updated_at"])

    logger.info("Reservation %s moved from %s to %s", reservation.reference, previous, status)
    return reservation


def set_payment_status(
    *,
    user,
    reservation_id: int,
    payment_status: str | None = None,
    deposit_returned: bool | None = None,
) -> Reservation:
    """
    Staff update of the payment axis. Nothing is charged here; the status
    only records what happened at the front desk.
    """
    require_staff(user, "change payment status")
    if payment_status is not None and payment_status not in Reservation.PaymentStatus.values:
        raise ValidationError({"payment_status": f"Unknown payment status: {payment_status}."})

    with transaction.atomic():
        reservation = _get_reservation_for_update(reservation_id)
        update_fields = []

        if payment_status is not None:
            check_payment_transition(reservation.kind, reservation.payment_status, payment_status)
            if payment_status != reservation.payment_status:
                reservation.payment_status = payment_status
                update_fields.append("payment_status")

        if deposit_returned is not None and deposit_returned != reservation.deposit_returned:
            if deposit_returned:
                check_deposit_return(reservation.kind, reservation.payment_status)
            reservation.deposit_returned = deposit_returned
            update_fields.append("deposit_returned")

        if update_fields:
            reservation.save(update_fields=update_fields + ["updated_at"])

    logger.info(
        "Reservation %s payment is now %s (deposit returned: %s)",
        reservation.reference,
        reservation.payment_status,
        reservation.deposit_returned,
    )
    return reservation
