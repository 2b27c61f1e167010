from django.urls import path

from .api import (
    availability_api,
    busy_dates_api,
    cancel_reservation_api,
    delete_resource_api,
    my_reservations_api,
    reservations_api,
    resources_api,
    set_payment_api,
    set_status_api,
    summary_api,
    toggle_resource_api,
    update_resource_api,
    walk_in_api,
)


app_name = "reservations"

urlpatterns = [
    path("api/resources/", resources_api, name="resources_api"),
    path("api/resources/<int:resource_id>/update/", update_resource_api, name="update_resource_api"),
    path("api/resources/<int:resource_id>/delete/", delete_resource_api, name="delete_resource_api"),
    path("api/resources/<int:resource_id>/toggle/", toggle_resource_api, name="toggle_resource_api"),
    path("api/resources/<int:resource_id>/availability/", availability_api, name="availability_api"),
    path("api/resources/<int:resource_id>/busy-dates/", busy_dates_api, name="busy_dates_api"),
    path("api/reservations/", reservations_api, name="reservations_api"),
    path("api/reservations/mine/", my_reservations_api, name="my_reservations_api"),
    path("api/reservations/walk-in/", walk_in_api, name="walk_in_api"),
    path("api/reservations/summary/", summary_api, name="summary_api"),
    path(
        "api/reservations/<int:reservation_id>/cancel/",
        cancel_reservation_api,
        name="cancel_reservation_api",
    ),
    path("api/reservations/<int:reservation_id>/status/", set_status_api, name="set_status_api"),
    path("api/reservations/<int:reservation_id>/payment/", set_payment_api, name="set_payment_api"),
]
