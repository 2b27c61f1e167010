from __future__ import annotations

from django import forms

from .intervals import Interval
from .models import Reservation, Resource
from .services import ReservationInput


class ReservationRequestForm(forms.Form):
    """
    Validates a reservation payload. ``start``/``end`` accept either a date
    (local midnight) or a full ISO datetime.
    """

    resource_id = forms.IntegerField(min_value=1)
    start = forms.DateTimeField()
    end = forms.DateTimeField()
    adults = forms.IntegerField(min_value=1, required=False)
    children = forms.IntegerField(min_value=0, required=False)
    special_requests = forms.CharField(required=False, max_length=2000)
    guest_name = forms.CharField(required=False, max_length=120)
    guest_phone = forms.CharField(required=False, max_length=40)
    guest_email = forms.EmailField(required=False)
    guest_address = forms.CharField(required=False, max_length=255)
    license_number = forms.CharField(required=False, max_length=40)
    emergency_contact = forms.CharField(required=False, max_length=120)
    emergency_phone = forms.CharField(required=False, max_length=40)
    pickup_location = forms.CharField(required=False, max_length=120)
    return_location = forms.CharField(required=False, max_length=120)

    def clean(self):
        cleaned = super().clean()
        start = cleaned.get("start")
        end = cleaned.get("end")
        if start and end and start >= end:
            self.add_error("end", "End must be after start.")
        return cleaned

    def to_input(self) -> ReservationInput:
        data = self.cleaned_data
        return ReservationInput(
            resource_id=data["resource_id"],
            start=data["start"],
            end=data["end"],
            adults=data.get("adults") or 1,
            children=data.get("children") or 0,
            special_requests=data.get("special_requests") or "",
            pickup_location=data.get("pickup_location") or "",
            return_location=data.get("return_location") or "",
        )


class WalkInForm(ReservationRequestForm):
    notes = forms.CharField(required=False, max_length=2000)


class StatusChangeForm(forms.Form):
    """
    Staff status change. Only the keys present in the payload reach the
    service; an absent key leaves the stored value alone.
    """

    status = forms.ChoiceField(choices=Reservation.Status.choices)
    notes = forms.CharField(required=False, max_length=2000)
    damage_report = forms.CharField(required=False, max_length=4000)
    fuel_level = forms.CharField(required=False, max_length=20)
    handover_at = forms.DateTimeField(required=False)

    def changes(self) -> dict:
        return {name: value for name, value in self.cleaned_data.items() if name in self.data and name != "status"}


class IntervalQueryForm(forms.Form):
    start = forms.DateTimeField()
    end = forms.DateTimeField()

    def clean(self):
        cleaned = super().clean()
        start = cleaned.get("start")
        end = cleaned.get("end")
        if start and end and start >= end:
            self.add_error("end", "End must be after start.")
        return cleaned

    def to_interval(self) -> Interval:
        return Interval(self.cleaned_data["start"], self.cleaned_data["end"])


class BusyDatesQueryForm(forms.Form):
    start = forms.DateField(required=False)
    end = forms.DateField(required=False)


class ReservationFilterForm(forms.Form):
    status = forms.ChoiceField(choices=[("", "All")] + Reservation.Status.choices, required=False)
    payment_status = forms.ChoiceField(
        choices=[("", "All")] + Reservation.PaymentStatus.choices,
        required=False,
    )
    kind = forms.ChoiceField(choices=[("", "All")] + Resource.Kind.choices, required=False)
    source = forms.ChoiceField(choices=[("", "All")] + Reservation.Source.choices, required=False)
    date_from = forms.DateField(required=False)
    date_to = forms.DateField(required=False)
    q = forms.CharField(required=False, max_length=100)

    def filters(self) -> dict:
        data = self.cleaned_data
        date_range = None
        if data.get("date_from") or data.get("date_to"):
            date_range = (data.get("date_from"), data.get("date_to"))
        return {
            "status": data.get("status") or None,
            "payment_status": data.get("payment_status") or None,
            "kind": data.get("kind") or None,
            "source": data.get("source") or None,
            "date_range": date_range,
            "search": data.get("q") or None,
        }
