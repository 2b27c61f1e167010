import secrets

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models

from .intervals import Interval


class Resource(models.Model):
    class Kind(models.TextChoices):
        ROOM = "room", "Room"
        VEHICLE = "vehicle", "Vehicle"

    class VehicleType(models.TextChoices):
        CAR = "Car", "Car"
        VAN = "Van", "Van"
        SUV = "SUV", "SUV"
        MOTORCYCLE = "Motorcycle", "Motorcycle"
        BICYCLE = "Bicycle", "Bicycle"
        OTHER = "Other", "Other"

    TWO_WHEELED = (VehicleType.MOTORCYCLE, VehicleType.BICYCLE)

    kind = models.CharField(max_length=10, choices=Kind.choices)
    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=80)
    description = models.TextField(blank=True)
    rate = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Price per 12-hour period for rooms, per day for vehicles.",
    )
    capacity_adults = models.PositiveSmallIntegerField(default=0)
    capacity_children = models.PositiveSmallIntegerField(default=0)
    seats = models.PositiveSmallIntegerField(default=0)
    vehicle_type = models.CharField(max_length=20, choices=VehicleType.choices, blank=True)
    is_available = models.BooleanField(default=True)
    booking_version = models.PositiveIntegerField(default=0, editable=False)
    display_order = models.PositiveSmallIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["kind", "display_order", "name"]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.name} ({self.code})"

    @property
    def is_room(self) -> bool:
        return self.kind == self.Kind.ROOM

    @property
    def deposit_tier(self) -> str:
        """
        Security deposit tier for vehicles; rooms carry no deposit.
        """
        if self.is_room:
            return ""
        if self.vehicle_type in self.TWO_WHEELED:
            return "two-wheeled"
        return "four-wheeled"

    def clean(self) -> None:
        super().clean()
        errors = {}
        if self.rate is not None and self.rate < 0:
            errors["rate"] = "Rate cannot be negative."
        if self.kind == self.Kind.ROOM and not self.capacity_adults:
            errors["capacity_adults"] = "A room must sleep at least one adult."
        if self.kind == self.Kind.VEHICLE:
            if not self.vehicle_type:
                errors["vehicle_type"] = "Vehicle type is required."
            if not self.seats:
                errors["seats"] = "A vehicle must have at least one seat."
        if errors:
            raise ValidationError(errors)


class Reservation(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        CONFIRMED = "confirmed", "Confirmed"
        CHECKED_IN = "checked-in", "Checked in"
        CHECKED_OUT = "checked-out", "Checked out"
        ACTIVE = "active", "Active"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"

    class PaymentStatus(models.TextChoices):
        UNPAID = "unpaid", "Unpaid"
        RESERVATION_PAID = "reservation-paid", "Reservation fee paid"
        FULLY_PAID = "fully-paid", "Fully paid"
        PARTIAL = "partial", "Partially paid"
        PAID = "paid", "Paid"
        REFUNDED = "refunded", "Refunded"

    class Source(models.TextChoices):
        ONLINE = "online", "Online"
        WALK_IN = "walk-in", "Walk-in"

    OCCUPYING_STATUSES = (Status.PENDING, Status.CONFIRMED, Status.CHECKED_IN, Status.ACTIVE)

    reference = models.CharField(max_length=16, unique=True, editable=False)
    resource = models.ForeignKey(Resource, on_delete=models.PROTECT, related_name="reservations")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="lodge_reservations",
    )
    guest_name = models.CharField(max_length=120, blank=True)
    guest_phone = models.CharField(max_length=40, blank=True)
    guest_email = models.EmailField(blank=True)
    start = models.DateTimeField()
    end = models.DateTimeField()
    adults = models.PositiveSmallIntegerField(default=1)
    children = models.PositiveSmallIntegerField(default=0)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.UNPAID,
    )
    source = models.CharField(max_length=10, choices=Source.choices, default=Source.ONLINE)
    rate = models.DecimalField(max_digits=10, decimal_places=2)
    units = models.PositiveSmallIntegerField(default=1)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    reservation_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    security_deposit = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    deposit_returned = models.BooleanField(default=False)
    special_requests = models.TextField(blank=True)
    notes = models.TextField(blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=255, blank=True)
    # Vehicle rentals only: renter details and the handover record.
    guest_address = models.CharField(max_length=255, blank=True)
    license_number = models.CharField(max_length=40, blank=True)
    emergency_contact = models.CharField(max_length=120, blank=True)
    emergency_phone = models.CharField(max_length=40, blank=True)
    pickup_location = models.CharField(max_length=120, blank=True)
    return_location = models.CharField(max_length=120, blank=True)
    actual_pickup_at = models.DateTimeField(null=True, blank=True)
    actual_return_at = models.DateTimeField(null=True, blank=True)
    fuel_level_pickup = models.CharField(max_length=20, blank=True)
    fuel_level_return = models.CharField(max_length=20, blank=True)
    damage_report = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end__gt=models.F("start")),
                name="reservation_end_after_start",
            )
        ]
        indexes = [
            models.Index(fields=["resource", "start", "end"], name="idx_res_resource_range"),
            models.Index(fields=["status"], name="idx_res_status"),
            models.Index(fields=["user", "start"], name="idx_res_user_start"),
        ]
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.reference} · {self.resource} · {self.interval}"

    def save(self, *args, **kwargs):
        if not self.reference:
            self.reference = self.generate_reference(self.resource.kind)
        super().save(*args, **kwargs)

    @staticmethod
    def generate_reference(kind: str) -> str:
        prefix = "BK" if kind == Resource.Kind.ROOM else "VR"
        return f"{prefix}{secrets.token_hex(6).upper()}"

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)

    @property
    def kind(self) -> str:
        return self.resource.kind

    @property
    def requester_display(self) -> str:
        if self.guest_name:
            return self.guest_name
        if self.user_id:
            return self.user.get_full_name() or self.user.get_username()
        return ""


class Allocation(models.Model):
    """
    Occupied range of a resource. One row per reservation that is not
    cancelled; derived from the reservation table and rebuildable from it.
    """

    resource = models.ForeignKey(Resource, on_delete=models.CASCADE, related_name="allocations")
    reservation = models.OneToOneField(
        Reservation,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="allocation",
    )
    start = models.DateTimeField()
    end = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end__gt=models.F("start")),
                name="allocation_end_after_start",
            )
        ]
        indexes = [
            models.Index(fields=["resource", "start", "end"], name="idx_alloc_resource_range"),
        ]
        ordering = ["start"]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.resource_id} · {self.start.isoformat()} – {self.end.isoformat()}"
