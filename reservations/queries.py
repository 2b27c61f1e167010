"""
Read-only views over reservations for calendars, staff lists and dashboards.
"""

from __future__ import annotations

from django.db.models import Count, Q

from . import conflicts
from .exceptions import NotFound
from .intervals import Interval, as_aware, normalize_to_day
from .models import Reservation, Resource


def list_busy_dates(resource_id, *, start=None, end=None) -> list:
    """
    Calendar days on which the resource is occupied, optionally clipped to
    ``[start, end)``. Either bound may be omitted; an empty window has no
    busy days.
    """
    if not Resource.objects.filter(pk=resource_id).exists():
        raise NotFound(f"Resource {resource_id} not found.")

    if start is None and end is None:
        return conflicts.busy_dates(resource_id)

    if start is not None and end is not None:
        if as_aware(start) == as_aware(end):
            return []
        return conflicts.busy_dates(resource_id, Interval(start, end))

    days = conflicts.busy_dates(resource_id)
    if start is not None:
        return [d for d in days if d >= normalize_to_day(start)]
    return [d for d in days if d < normalize_to_day(end)]


def _base_queryset():
    return Reservation.objects.select_related("resource", "user")


def list_reservations(
    *,
    status: str | None = None,
    payment_status: str | None = None,
    kind: str | None = None,
    source: str | None = None,
    date_range: tuple | None = None,
    search: str | None = None,
):
    """
    Staff listing. ``date_range`` is a ``(first_day, last_day)`` pair applied
    to the start day, both ends inclusive; either end may be None.
    """
    qs = _base_queryset()

    if status:
        qs = qs.filter(status=status)
    if payment_status:
        qs = qs.filter(payment_status=payment_status)
    if kind:
        qs = qs.filter(resource__kind=kind)
    if source:
        qs = qs.filter(source=source)

    if date_range:
        first_day, last_day = date_range
        if first_day:
            qs = qs.filter(start__date__gte=first_day)
        if last_day:
            qs = qs.filter(start__date__lte=last_day)

    search = (search or "").strip()
    if search:
        qs = qs.filter(
            Q(reference__icontains=search)
            | Q(guest_name__icontains=search)
            | Q(guest_phone__icontains=search)
            | Q(guest_email__icontains=search)
            | Q(user__username__icontains=search)
            | Q(user__email__icontains=search)
            | Q(user__first_name__icontains=search)
            | Q(user__last_name__icontains=search)
            | Q(resource__name__icontains=search)
            | Q(resource__code__icontains=search)
        )

    return qs.order_by("-created_at", "-id")


def reservations_for_user(user):
    if user is None or not user.is_authenticated:
        return Reservation.objects.none()
    return _base_queryset().filter(user=user).order_by("-start", "-id")


def reservation_counts() -> dict:
    by_status = dict(
        Reservation.objects.order_by().values("status").annotate(n=Count("id")).values_list("status", "n")
    )
    by_payment = dict(
        Reservation.objects.order_by()
        .values("payment_status")
        .annotate(n=Count("id"))
        .values_list("payment_status", "n")
    )
    return {
        "total": sum(by_status.values()),
        "by_status": {value: by_status.get(value, 0) for value in Reservation.Status.values},
        "by_payment_status": {value: by_payment.get(value, 0) for value in Reservation.PaymentStatus.values},
    }
