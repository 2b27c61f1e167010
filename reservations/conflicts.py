"""
Per-resource index of occupied ranges.

Every reservation that has not been cancelled owns one ``Allocation`` row;
finished stays keep theirs so calendars still show them. Reserving a range:
- Locks the resource row (row-level locking where the backend supports it).
- Re-checks overlaps against the allocations of that resource.
- Bumps the resource's ``booking_version`` with a conditional UPDATE, so a
  writer that raced past the lock loses and has to start over.

The reservation table stays the source of truth; ``rebuild`` recreates the
index from it.
"""

from __future__ import annotations

import logging
from itertools import groupby

from django.db import transaction
from django.db.models import F, Q
from django.db.transaction import TransactionManagementError

from .exceptions import ConflictError, NotFound
from .intervals import Interval
from .models import Allocation, Reservation, Resource


logger = logging.getLogger(__name__)


class StaleAllocation(Exception):
    """Raised when the resource version moved under us (lost compare-and-swap)."""


def _require_atomic(operation: str) -> None:
    if not transaction.get_connection().in_atomic_block:
        raise TransactionManagementError(f"{operation}() must run inside transaction.atomic().")


def _lock_resource(resource_id) -> Resource:
    try:
        return Resource.objects.select_for_update().get(pk=resource_id)
    except Resource.DoesNotExist:
        raise NotFound(f"Resource {resource_id} not found.") from None


def _bump_version(resource: Resource) -> None:
    updated = Resource.objects.filter(
        pk=resource.pk,
        booking_version=resource.booking_version,
    ).update(booking_version=F("booking_version") + 1)
    if not updated:
        raise StaleAllocation(f"Resource {resource.pk} changed while reserving.")
    resource.booking_version += 1


def _overlapping(resource_id, interval: Interval, exclude_reservation_id=None):
    qs = Allocation.objects.filter(
        resource_id=resource_id,
        start__lt=interval.end,
        end__gt=interval.start,
    )
    if exclude_reservation_id is not None:
        qs = qs.exclude(reservation_id=exclude_reservation_id)
    return qs.order_by("start")


def find_conflicts(resource_id, interval: Interval, *, exclude_reservation_id=None) -> list[Interval]:
    """
    Overlapping sub-ranges between ``interval`` and the resource's occupied
    ranges. Lock-free; may be slightly stale.
    """
    return [
        interval.intersection(allocation)
        for allocation in _overlapping(resource_id, interval, exclude_reservation_id)
    ]


def conflicting_dates(conflicts) -> list:
    days = set()
    for span in conflicts:
        days.update(span.days())
    return sorted(days)


def try_reserve(resource_id, interval: Interval, *, reservation=None) -> Allocation:
    """
    Atomically claim ``interval`` on the resource or raise ``ConflictError``.

    Must be called inside ``transaction.atomic()``; the claim becomes visible
    to other writers when the surrounding transaction commits.
    """
    _require_atomic("try_reserve")
    resource = _lock_resource(resource_id)

    conflicts = find_conflicts(resource.pk, interval)
    if conflicts:
        raise ConflictError(
            f"{resource.name} is not available for the selected dates.",
            conflicts=conflicts,
            conflicting_dates=conflicting_dates(conflicts),
        )

    _bump_version(resource)
    return Allocation.objects.create(
        resource=resource,
        reservation=reservation,
        start=interval.start,
        end=interval.end,
    )


@transaction.atomic
def release(resource_id, reservation_id) -> bool:
    """
    Free the range held by a reservation. Releasing an unknown or already
    released reservation is a no-op and returns False.
    """
    resource = Resource.objects.select_for_update().filter(pk=resource_id).first()
    if resource is None:
        return False

    deleted, _ = Allocation.objects.filter(resource=resource, reservation_id=reservation_id).delete()
    if not deleted:
        return False

    _bump_version(resource)
    logger.info("Released reservation %s on resource %s", reservation_id, resource_id)
    return True


def busy_dates(resource_id, range_hint: Interval | None = None) -> list:
    qs = Allocation.objects.filter(resource_id=resource_id).only("start", "end")
    if range_hint is not None:
        qs = qs.filter(start__lt=range_hint.end, end__gt=range_hint.start)

    days = set()
    for allocation in qs:
        span = Interval(allocation.start, allocation.end)
        if range_hint is not None:
            span = span.intersection(range_hint)
        days.update(span.days())
    return sorted(days)


@transaction.atomic
def rebuild(resource_id=None) -> int:
    """
    Recreate allocations from the reservations that were not cancelled.
    Returns how many allocations were written.
    """
    resources = Resource.objects.select_for_update().order_by("pk")
    if resource_id is not None:
        resources = resources.filter(pk=resource_id)

    written = 0
    for resource in resources:
        Allocation.objects.filter(resource=resource).delete()
        holding = (
            Reservation.objects.filter(resource=resource)
            .exclude(status=Reservation.Status.CANCELLED)
            .order_by("start")
        )
        rows = Allocation.objects.bulk_create(
            [
                Allocation(resource=resource, reservation=r, start=r.start, end=r.end)
                for r in holding
            ]
        )
        _bump_version(resource)
        written += len(rows)

    logger.info("Rebuilt %s allocations", written)
    return written


def find_overlapping_pairs(resource_id=None) -> list[tuple]:
    """
    Pairs of occupying reservations on the same resource whose ranges
    overlap. Reads the reservation table directly; an empty list means the
    no-double-booking invariant holds.
    """
    qs = Reservation.objects.filter(status__in=Reservation.OCCUPYING_STATUSES).order_by("resource_id", "start")
    if resource_id is not None:
        qs = qs.filter(resource_id=resource_id)

    pairs = []
    for _, reservations in groupby(qs, key=lambda r: r.resource_id):
        open_ = []
        for current in reservations:
            open_ = [r for r in open_ if r.end > current.start]
            pairs.extend((r, current) for r in open_)
            open_.append(current)
    return pairs


def find_drift(resource_id=None) -> tuple[list, list]:
    """
    Live reservations without an allocation, and allocations left behind by
    cancelled (or never bound) reservations.
    """
    reservations = Reservation.objects.filter(allocation__isnull=True).exclude(
        status=Reservation.Status.CANCELLED
    )
    allocations = Allocation.objects.filter(
        Q(reservation__isnull=True) | Q(reservation__status=Reservation.Status.CANCELLED)
    )
    if resource_id is not None:
        reservations = reservations.filter(resource_id=resource_id)
        allocations = allocations.filter(resource_id=resource_id)
    return list(reservations), list(allocations)
