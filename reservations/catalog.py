from __future__ import annotations

import logging

from django.db import transaction

from accounts.roles import require_staff

from .exceptions import NotFound, ResourceInUse
from .models import Reservation, Resource


logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "kind",
    "code",
    "name",
    "description",
    "rate",
    "capacity_adults",
    "capacity_children",
    "seats",
    "vehicle_type",
    "is_available",
    "display_order",
)


def _clean_fields(fields: dict) -> dict:
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise TypeError(f"Unknown resource fields: {', '.join(sorted(unknown))}")
    return fields


def get_resource(resource_id) -> Resource:
    try:
        return Resource.objects.get(pk=resource_id)
    except Resource.DoesNotExist:
        raise NotFound(f"Resource {resource_id} not found.") from None


def list_resources(*, kind: str | None = None, available_only: bool = False):
    qs = Resource.objects.all()
    if kind:
        qs = qs.filter(kind=kind)
    if available_only:
        qs = qs.filter(is_available=True)
    return qs.order_by("kind", "display_order", "name")


def create_resource(*, user, **fields) -> Resource:
    require_staff(user, "add resources")
    resource = Resource(**_clean_fields(fields))
    resource.full_clean()
    resource.save()
    logger.info("Resource %s created by %s", resource.code, user)
    return resource


@transaction.atomic
def update_resource(*, user, resource_id, **fields) -> Resource:
    """
    Edit catalog data. Reservations keep the amounts stamped when they were
    made, so a new rate only affects later bookings.
    """
    require_staff(user, "edit resources")
    fields = _clean_fields(fields)

    try:
        resource = Resource.objects.select_for_update().get(pk=resource_id)
    except Resource.DoesNotExist:
        raise NotFound(f"Resource {resource_id} not found.") from None

    if "kind" in fields and fields["kind"] != resource.kind and resource.reservations.exists():
        raise ResourceInUse(f"{resource.name} already has reservations; its kind cannot change.")

    for name, value in fields.items():
        setattr(resource, name, value)
    resource.full_clean()
    resource.save()
    logger.info("Resource %s updated by %s: %s", resource.code, user, sorted(fields))
    return resource


@transaction.atomic
def delete_resource(*, user, resource_id) -> None:
    require_staff(user, "delete resources")
    resource = get_resource(resource_id)

    referenced = resource.reservations.count()
    if referenced:
        active = resource.reservations.filter(status__in=Reservation.OCCUPYING_STATUSES).count()
        raise ResourceInUse(
            f"{resource.name} is referenced by {referenced} reservation(s), "
            f"{active} still active. Disable it instead."
        )

    code = resource.code
    resource.delete()
    logger.info("Resource %s deleted by %s", code, user)


def set_availability(*, user, resource_id, is_available: bool) -> Resource:
    """
    Flip the administrative switch. Existing reservations are untouched;
    a disabled resource only refuses new ones.
    """
    require_staff(user, "change resource availability")
    resource = get_resource(resource_id)
    if resource.is_available != is_available:
        resource.is_available = is_available
        resource.save(update_fields=["is_available", "updated_at"])
        logger.info("Resource %s availability set to %s by %s", resource.code, is_available, user)
    return resource
