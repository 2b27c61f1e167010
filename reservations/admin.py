from django.contrib import admin, messages
from django.core.exceptions import PermissionDenied
from django.utils import timezone
from django.utils.html import format_html

from . import catalog
from .exceptions import ReservationError
from .models import Allocation, Reservation, Resource
from .services import cancel_reservation


admin.site.site_header = "Lodge Reservations Admin"
admin.site.site_title = "Lodge Reservations Admin"
admin.site.index_title = "Rooms, rentals and bookings"


STATUS_COLORS = {
    Reservation.Status.PENDING: "#c9b26b",
    Reservation.Status.CONFIRMED: "#4f8a5b",
    Reservation.Status.CHECKED_IN: "#3b6ea8",
    Reservation.Status.ACTIVE: "#3b6ea8",
    Reservation.Status.CHECKED_OUT: "#7e8571",
    Reservation.Status.COMPLETED: "#7e8571",
    Reservation.Status.CANCELLED: "#a84b3b",
}


class TimingFilter(admin.SimpleListFilter):
    title = "timing"
    parameter_name = "timing"

    def lookups(self, request, model_admin):
        return (("upcoming", "Upcoming"), ("ongoing", "Ongoing"), ("past", "Past"))

    def queryset(self, request, queryset):
        value = self.value()
        if not value:
            return queryset

        now = timezone.now()
        if value == "upcoming":
            return queryset.filter(start__gt=now)
        if value == "ongoing":
            return queryset.filter(start__lte=now, end__gt=now)
        if value == "past":
            return queryset.filter(end__lte=now)
        return queryset


@admin.register(Resource)
class ResourceAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "kind", "rate", "capacity", "is_available", "display_order")
    list_filter = ("kind", "vehicle_type", "is_available")
    search_fields = ("code", "name")
    ordering = ("kind", "display_order", "name")
    readonly_fields = ("booking_version", "created_at", "updated_at")
    actions = ("enable_resources", "disable_resources")

    @admin.display(description="Capacity")
    def capacity(self, obj: Resource) -> str:
        if obj.is_room:
            return f"{obj.capacity_adults} adults, {obj.capacity_children} children"
        return f"{obj.seats} seats"

    def _set_availability(self, request, queryset, is_available: bool) -> None:
        changed = 0
        for resource in queryset:
            try:
                catalog.set_availability(user=request.user, resource_id=resource.pk, is_available=is_available)
            except PermissionDenied as exc:
                self.message_user(request, str(exc), level=messages.ERROR)
                return
            changed += 1
        self.message_user(request, f"{changed} resource(s) updated.")

    @admin.action(description="Enable selected resources")
    def enable_resources(self, request, queryset):
        self._set_availability(request, queryset, True)

    @admin.action(description="Disable selected resources")
    def disable_resources(self, request, queryset):
        self._set_availability(request, queryset, False)

    def get_readonly_fields(self, request, obj=None):
        readonly = list(super().get_readonly_fields(request, obj))
        # Same rule as catalog.update_resource: a booked resource keeps its kind.
        if obj and obj.reservations.exists():
            readonly.append("kind")
        return readonly

    def has_delete_permission(self, request, obj=None):
        if obj and obj.reservations.exists():
            return False
        return super().has_delete_permission(request, obj)


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = (
        "reference",
        "requester",
        "resource",
        "start",
        "end",
        "status_badge",
        "payment_status",
        "source",
        "total_amount",
        "created_at",
    )
    list_filter = ("status", "payment_status", "source", "resource__kind", TimingFilter)
    search_fields = (
        "reference",
        "guest_name",
        "guest_phone",
        "guest_email",
        "user__email",
        "user__username",
        "resource__name",
        "resource__code",
    )
    ordering = ("-created_at",)
    list_select_related = ("user", "resource")
    actions = ("cancel_selected",)
    fields = (
        "reference",
        "resource",
        "user",
        "guest_name",
        "guest_phone",
        "guest_email",
        "start",
        "end",
        "adults",
        "children",
        "status",
        "payment_status",
        "source",
        "rate",
        "units",
        "subtotal",
        "reservation_fee",
        "security_deposit",
        "total_amount",
        "deposit_returned",
        "special_requests",
        "notes",
        "cancelled_at",
        "cancellation_reason",
        "guest_address",
        "license_number",
        "emergency_contact",
        "emergency_phone",
        "pickup_location",
        "return_location",
        "actual_pickup_at",
        "actual_return_at",
        "fuel_level_pickup",
        "fuel_level_return",
        "damage_report",
        "created_at",
        "updated_at",
    )

    def get_readonly_fields(self, request, obj=None):
        # Everything but staff notes goes through the service layer.
        return [f for f in self.fields if f != "notes"]

    @admin.display(description="Requester")
    def requester(self, obj: Reservation) -> str:
        return obj.requester_display or "—"

    @admin.display(description="Status", ordering="status")
    def status_badge(self, obj: Reservation) -> str:
        return format_html(
            '<span style="padding:3px 8px;border-radius:999px;'
            "border: 1px solid {};"
            "color: {};"
            'font-weight: 600; font-size: 11px;">{}</span>',
            STATUS_COLORS.get(obj.status, "#7e8571"),
            STATUS_COLORS.get(obj.status, "#7e8571"),
            obj.get_status_display(),
        )

    @admin.action(description="Cancel selected reservations")
    def cancel_selected(self, request, queryset):
        cancelled = 0
        for reservation in queryset:
            try:
                cancel_reservation(user=request.user, reservation_id=reservation.pk, reason="Cancelled by staff")
            except (ReservationError, PermissionDenied) as exc:
                self.message_user(request, f"{reservation.reference}: {exc}", level=messages.WARNING)
                continue
            cancelled += 1
        self.message_user(request, f"{cancelled} reservation(s) cancelled.")

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Allocation)
class AllocationAdmin(admin.ModelAdmin):
    list_display = ("resource", "reservation", "start", "end", "created_at")
    list_filter = ("resource__kind",)
    search_fields = ("resource__code", "reservation__reference")
    list_select_related = ("resource", "reservation")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
