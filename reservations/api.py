from __future__ import annotations

import json

from django.core.exceptions import PermissionDenied
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.views.decorators.http import require_GET
from django.views.decorators.http import require_http_methods
from django.views.decorators.http import require_POST

from accounts.roles import is_staff_member

from . import catalog, queries
from .exceptions import (
    ConflictError,
    InvalidInterval,
    InvalidTransition,
    NotFound,
    ReservationError,
    ResourceInUse,
    ResourceUnavailable,
    TransientFailure,
)
from .forms import (
    BusyDatesQueryForm,
    IntervalQueryForm,
    ReservationFilterForm,
    ReservationRequestForm,
    StatusChangeForm,
    WalkInForm,
)
from .services import (
    Requester,
    cancel_reservation,
    check_availability,
    create_reservation,
    create_walk_in,
    set_payment_status,
    set_status,
)


def _read_json(request) -> dict:
    payload = json.loads(request.body.decode("utf-8") or "{}")
    if not isinstance(payload, dict):
        raise ValueError("Expected a JSON object.")
    return payload


def _invalid_json():
    return JsonResponse({"error": "Invalid JSON payload."}, status=400)


def _login_required():
    return JsonResponse({"error": "Authentication required."}, status=401)


def _form_error(form):
    return JsonResponse({"error": "Validation error.", "details": form.errors.get_json_data()}, status=400)


def _error_response(exc: Exception) -> JsonResponse:
    """
    Map a domain or Django error to its JSON response.
    """
    if isinstance(exc, PermissionDenied):
        return JsonResponse({"error": str(exc) or "Permission denied."}, status=403)
    if isinstance(exc, ValidationError):
        details = exc.message_dict if hasattr(exc, "error_dict") else {"__all__": exc.messages}
        return JsonResponse({"error": "Validation error.", "details": details}, status=400)
    if isinstance(exc, NotFound):
        return JsonResponse({"error": str(exc)}, status=404)
    if isinstance(exc, ConflictError):
        return JsonResponse(
            {
                "error": str(exc),
                "conflicting_dates": [d.isoformat() for d in exc.conflicting_dates],
            },
            status=409,
        )
    if isinstance(exc, InvalidTransition):
        return JsonResponse(
            {
                "error": str(exc),
                "current": exc.current,
                "requested": exc.requested,
                "allowed": exc.allowed,
            },
            status=400,
        )
    if isinstance(exc, InvalidInterval):
        return JsonResponse({"error": str(exc)}, status=400)
    if isinstance(exc, ResourceInUse):
        return JsonResponse({"error": str(exc)}, status=409)
    if isinstance(exc, ResourceUnavailable):
        return JsonResponse({"error": str(exc)}, status=423)
    if isinstance(exc, TransientFailure):
        return JsonResponse({"error": str(exc)}, status=503)
    return JsonResponse({"error": str(exc)}, status=400)


def _resource_payload(resource) -> dict:
    return {
        "id": resource.id,
        "kind": resource.kind,
        "code": resource.code,
        "name": resource.name,
        "description": resource.description,
        "rate": str(resource.rate),
        "capacity_adults": resource.capacity_adults,
        "capacity_children": resource.capacity_children,
        "seats": resource.seats,
        "vehicle_type": resource.vehicle_type,
        "is_available": resource.is_available,
        "display_order": resource.display_order,
    }


def _reservation_payload(reservation) -> dict:
    payload = {
        "id": reservation.id,
        "reference": reservation.reference,
        "resource_id": reservation.resource_id,
        "resource_name": reservation.resource.name,
        "kind": reservation.kind,
        "requester": reservation.requester_display,
        "start": reservation.start.isoformat(),
        "end": reservation.end.isoformat(),
        "adults": reservation.adults,
        "children": reservation.children,
        "status": reservation.status,
        "payment_status": reservation.payment_status,
        "source": reservation.source,
        "rate": str(reservation.rate),
        "units": reservation.units,
        "subtotal": str(reservation.subtotal),
        "reservation_fee": str(reservation.reservation_fee),
        "security_deposit": str(reservation.security_deposit),
        "total_amount": str(reservation.total_amount),
        "deposit_returned": reservation.deposit_returned,
        "special_requests": reservation.special_requests,
        "notes": reservation.notes,
        "created_at": reservation.created_at.isoformat(),
    }
    if not reservation.resource.is_room:
        payload["rental"] = _rental_payload(reservation)
    return payload


def _isoformat(value):
    return value.isoformat() if value else None


def _rental_payload(reservation) -> dict:
    return {
        "address": reservation.guest_address,
        "license_number": reservation.license_number,
        "emergency_contact": reservation.emergency_contact,
        "emergency_phone": reservation.emergency_phone,
        "pickup_location": reservation.pickup_location,
        "return_location": reservation.return_location,
        "actual_pickup_at": _isoformat(reservation.actual_pickup_at),
        "actual_return_at": _isoformat(reservation.actual_return_at),
        "fuel_level": {"pickup": reservation.fuel_level_pickup, "return": reservation.fuel_level_return},
        "damage_report": reservation.damage_report,
    }


def _resource_fields(payload: dict) -> dict:
    return {k: v for k, v in payload.items() if k in catalog.EDITABLE_FIELDS}


@require_http_methods(["GET", "POST"])
def resources_api(request):
    """
    GET  /api/resources/?kind=room|vehicle&available=1
    POST /api/resources/  (staff) JSON body with resource fields.
    """
    if request.method == "GET":
        resources = catalog.list_resources(
            kind=request.GET.get("kind", "").strip() or None,
            available_only=request.GET.get("available", "").strip() in ("1", "true", "yes"),
        )
        return JsonResponse({"resources": [_resource_payload(r) for r in resources]})

    if not request.user.is_authenticated:
        return _login_required()
    try:
        payload = _read_json(request)
    except ValueError:
        return _invalid_json()

    try:
        resource = catalog.create_resource(user=request.user, **_resource_fields(payload))
    except (ReservationError, PermissionDenied, ValidationError) as exc:
        return _error_response(exc)

    return JsonResponse({"success": True, "resource": _resource_payload(resource)}, status=201)


@require_POST
def update_resource_api(request, resource_id: int):
    if not request.user.is_authenticated:
        return _login_required()
    try:
        payload = _read_json(request)
    except ValueError:
        return _invalid_json()

    try:
        resource = catalog.update_resource(user=request.user, resource_id=resource_id, **_resource_fields(payload))
    except (ReservationError, PermissionDenied, ValidationError) as exc:
        return _error_response(exc)

    return JsonResponse({"success": True, "resource": _resource_payload(resource)})


@require_POST
def delete_resource_api(request, resource_id: int):
    if not request.user.is_authenticated:
        return _login_required()

    try:
        catalog.delete_resource(user=request.user, resource_id=resource_id)
    except (ReservationError, PermissionDenied) as exc:
        return _error_response(exc)

    return JsonResponse({"success": True, "message": "Resource deleted."})


@require_POST
def toggle_resource_api(request, resource_id: int):
    """
    POST /api/resources/<id>/toggle/
    Payload (JSON): {"is_available": bool}; omitted flips the current value.
    """
    if not request.user.is_authenticated:
        return _login_required()
    try:
        payload = _read_json(request)
    except ValueError:
        return _invalid_json()

    is_available = payload.get("is_available")
    if is_available is not None and not isinstance(is_available, bool):
        return JsonResponse({"error": "is_available must be a boolean."}, status=400)

    try:
        if is_available is None:
            is_available = not catalog.get_resource(resource_id).is_available
        resource = catalog.set_availability(user=request.user, resource_id=resource_id, is_available=is_available)
    except (ReservationError, PermissionDenied) as exc:
        return _error_response(exc)

    return JsonResponse({"success": True, "resource": _resource_payload(resource)})


@require_GET
def availability_api(request, resource_id: int):
    """
    GET /api/resources/<id>/availability/?start=...&end=...

    ``free`` reflects scheduling only; ``is_available`` is the
    administrative switch.
    """
    form = IntervalQueryForm(request.GET)
    if not form.is_valid():
        return _form_error(form)

    try:
        resource = catalog.get_resource(resource_id)
        availability = check_availability(resource.id, form.to_interval())
    except ReservationError as exc:
        return _error_response(exc)

    return JsonResponse(
        {
            "resource_id": resource.id,
            "is_available": resource.is_available,
            "free": availability.free,
            "conflicts": [{"start": c.start.isoformat(), "end": c.end.isoformat()} for c in availability.conflicts],
            "conflicting_dates": [d.isoformat() for d in availability.conflicting_dates],
        }
    )


@require_GET
def busy_dates_api(request, resource_id: int):
    """
    GET /api/resources/<id>/busy-dates/?from=YYYY-MM-DD&to=YYYY-MM-DD
    """
    form = BusyDatesQueryForm({"start": request.GET.get("from", ""), "end": request.GET.get("to", "")})
    if not form.is_valid():
        return _form_error(form)

    try:
        days = queries.list_busy_dates(
            resource_id,
            start=form.cleaned_data.get("start"),
            end=form.cleaned_data.get("end"),
        )
    except ReservationError as exc:
        return _error_response(exc)

    return JsonResponse({"resource_id": resource_id, "busy_dates": [d.isoformat() for d in days]})


def _list_reservations(request):
    if not request.user.is_authenticated:
        return _login_required()
    if not is_staff_member(request.user):
        return JsonResponse({"error": "Only staff can list reservations."}, status=403)

    form = ReservationFilterForm(request.GET)
    if not form.is_valid():
        return _form_error(form)

    reservations = queries.list_reservations(**form.filters())
    return JsonResponse({"reservations": [_reservation_payload(r) for r in reservations]})


def _create_reservation(request):
    try:
        payload = _read_json(request)
    except ValueError:
        return _invalid_json()

    form = ReservationRequestForm(payload)
    if not form.is_valid():
        return _form_error(form)

    user = request.user if request.user.is_authenticated else None
    guest_name = form.cleaned_data.get("guest_name") or ""
    guest_phone = form.cleaned_data.get("guest_phone") or ""
    guest_email = form.cleaned_data.get("guest_email") or ""
    if user is None and not (guest_name and (guest_phone or guest_email)):
        return _login_required()

    try:
        reservation = create_reservation(
            requester=Requester(
                user=user,
                name=guest_name,
                phone=guest_phone,
                email=guest_email,
                address=form.cleaned_data.get("guest_address") or "",
                license_number=form.cleaned_data.get("license_number") or "",
                emergency_contact=form.cleaned_data.get("emergency_contact") or "",
                emergency_phone=form.cleaned_data.get("emergency_phone") or "",
            ),
            data=form.to_input(),
        )
    except (ReservationError, PermissionDenied, ValidationError) as exc:
        return _error_response(exc)

    return JsonResponse(
        {
            "success": True,
            "reservation": _reservation_payload(reservation),
            "message": "Reservation created successfully.",
        },
        status=201,
    )


@require_http_methods(["GET", "POST"])
def reservations_api(request):
    """
    GET  /api/reservations/  (staff) filters: status, payment_status, kind,
         source, date_from, date_to, q.
    POST /api/reservations/  JSON: resource_id, start, end, adults,
         children, special_requests; anonymous callers must also send
         guest_name plus guest_phone or guest_email.
    """
    if request.method == "GET":
        return _list_reservations(request)
    return _create_reservation(request)


@require_GET
def my_reservations_api(request):
    if not request.user.is_authenticated:
        return _login_required()
    reservations = queries.reservations_for_user(request.user)
    return JsonResponse({"reservations": [_reservation_payload(r) for r in reservations]})


@require_POST
def walk_in_api(request):
    """
    POST /api/reservations/walk-in/  (staff)
    """
    if not request.user.is_authenticated:
        return _login_required()
    try:
        payload = _read_json(request)
    except ValueError:
        return _invalid_json()

    form = WalkInForm(payload)
    if not form.is_valid():
        return _form_error(form)

    try:
        reservation = create_walk_in(
            user=request.user,
            data=form.to_input(),
            guest_name=form.cleaned_data.get("guest_name") or "",
            guest_phone=form.cleaned_data.get("guest_phone") or "",
            notes=form.cleaned_data.get("notes") or "",
        )
    except (ReservationError, PermissionDenied, ValidationError) as exc:
        return _error_response(exc)

    return JsonResponse({"success": True, "reservation": _reservation_payload(reservation)}, status=201)


@require_POST
def cancel_reservation_api(request, reservation_id: int):
    """
    POST /api/reservations/<id>/cancel/
    Payload (JSON, optional): {"reason": str}
    """
    if not request.user.is_authenticated:
        return _login_required()
    try:
        payload = _read_json(request)
    except ValueError:
        return _invalid_json()

    try:
        reservation = cancel_reservation(
            user=request.user,
            reservation_id=reservation_id,
            reason=str(payload.get("reason") or "")[:255],
        )
    except (ReservationError, PermissionDenied) as exc:
        return _error_response(exc)

    return JsonResponse(
        {
            "success": True,
            "reservation": _reservation_payload(reservation),
            "message": "Reservation cancelled.",
        }
    )


@require_POST
def set_status_api(request, reservation_id: int):
    """
    POST /api/reservations/<id>/status/
    Payload (JSON): {"status": str, "notes": str, "fuel_level": str,
    "damage_report": str, "handover_at": ISO datetime}; only status is required.
    """
    if not request.user.is_authenticated:
        return _login_required()
    try:
        payload = _read_json(request)
    except ValueError:
        return _invalid_json()

    status = payload.get("status")
    if not isinstance(status, str) or not status:
        return JsonResponse({"error": "status is required."}, status=400)

    form = StatusChangeForm(payload)
    if not form.is_valid():
        return _form_error(form)

    try:
        reservation = set_status(
            user=request.user,
            reservation_id=reservation_id,
            status=form.cleaned_data["status"],
            **form.changes(),
        )
    except (ReservationError, PermissionDenied, ValidationError) as exc:
        return _error_response(exc)

    return JsonResponse({"success": True, "reservation": _reservation_payload(reservation)})


@require_POST
def set_payment_api(request, reservation_id: int):
    """
    POST /api/reservations/<id>/payment/
    Payload (JSON): {"payment_status": str, "deposit_returned": bool}, both optional.
    """
    if not request.user.is_authenticated:
        return _login_required()
    try:
        payload = _read_json(request)
    except ValueError:
        return _invalid_json()

    payment_status = payload.get("payment_status")
    deposit_returned = payload.get("deposit_returned")
    if payment_status is not None and not isinstance(payment_status, str):
        return JsonResponse({"error": "payment_status must be a string."}, status=400)
    if deposit_returned is not None and not isinstance(deposit_returned, bool):
        return JsonResponse({"error": "deposit_returned must be a boolean."}, status=400)
    if payment_status is None and deposit_returned is None:
        return JsonResponse({"error": "Nothing to update."}, status=400)

    try:
        reservation = set_payment_status(
            user=request.user,
            reservation_id=reservation_id,
            payment_status=payment_status,
            deposit_returned=deposit_returned,
        )
    except (ReservationError, PermissionDenied, ValidationError) as exc:
        return _error_response(exc)

    return JsonResponse({"success": True, "reservation": _reservation_payload(reservation)})


@require_GET
def summary_api(request):
    if not request.user.is_authenticated:
        return _login_required()
    if not is_staff_member(request.user):
        return JsonResponse({"error": "Only staff can view the summary."}, status=403)
    return JsonResponse(queries.reservation_counts())
