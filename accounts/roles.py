from __future__ import annotations

from django.core.exceptions import PermissionDenied
from django.db import models


STAFF_GROUP = "staff"


class Role(models.TextChoices):
    GUEST = "guest", "Guest"
    STAFF = "staff", "Staff"
    CUSTOMER = "customer", "Customer"


def role_for(user) -> str:
    """
    Role of a requester: anonymous callers are guests, staff accounts (or
    members of the "staff" group) are staff, everyone else is a customer.
    """
    if user is None or not user.is_authenticated:
        return Role.GUEST
    if user.is_staff or user.groups.filter(name=STAFF_GROUP).exists():
        return Role.STAFF
    return Role.CUSTOMER


def is_staff_member(user) -> bool:
    return role_for(user) == Role.STAFF


def require_staff(user, action: str) -> None:
    if not is_staff_member(user):
        raise PermissionDenied(f"Only staff can {action}.")
