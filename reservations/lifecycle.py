"""
Status and payment-status state machines for room bookings and vehicle rentals.

The two axes are independent: a status move never implies a payment move and
vice versa. Only ``cancelled`` has a side effect (the occupied range is
released), which the service layer takes care of.
"""

from __future__ import annotations

from .exceptions import InvalidTransition
from .models import Reservation, Resource


Status = Reservation.Status
PaymentStatus = Reservation.PaymentStatus


STATUS_TRANSITIONS = {
    Resource.Kind.ROOM: {
        Status.PENDING: (Status.CONFIRMED, Status.CANCELLED),
        Status.CONFIRMED: (Status.CHECKED_IN, Status.CANCELLED),
        Status.CHECKED_IN: (Status.CHECKED_OUT,),
        Status.CHECKED_OUT: (),
        Status.CANCELLED: (),
    },
    Resource.Kind.VEHICLE: {
        Status.PENDING: (Status.CONFIRMED, Status.CANCELLED),
        Status.CONFIRMED: (Status.ACTIVE,),
        Status.ACTIVE: (Status.COMPLETED,),
        Status.COMPLETED: (),
        Status.CANCELLED: (),
    },
}

# Forward-only ladders; any later rung may be reached directly.
PAYMENT_FLOWS = {
    Resource.Kind.ROOM: (PaymentStatus.UNPAID, PaymentStatus.RESERVATION_PAID, PaymentStatus.FULLY_PAID),
    Resource.Kind.VEHICLE: (PaymentStatus.UNPAID, PaymentStatus.PARTIAL, PaymentStatus.PAID),
}

DEPOSIT_RETURNABLE = (PaymentStatus.PAID, PaymentStatus.REFUNDED)

LABELS = {
    Resource.Kind.ROOM: "room booking",
    Resource.Kind.VEHICLE: "vehicle rental",
}


def allowed_statuses(kind: str, current: str) -> tuple:
    return tuple(STATUS_TRANSITIONS[kind].get(current, ()))


def allowed_payment_statuses(kind: str, current: str) -> tuple:
    if current == PaymentStatus.REFUNDED:
        return ()
    flow = PAYMENT_FLOWS[kind]
    if current not in flow:
        return (PaymentStatus.REFUNDED,)
    return flow[flow.index(current) + 1 :] + (PaymentStatus.REFUNDED,)


def check_status_transition(kind: str, current: str, requested: str) -> None:
    allowed = allowed_statuses(kind, current)
    if requested not in allowed:
        raise InvalidTransition(
            f"Cannot move a {LABELS[kind]} from {current} to {requested}.",
            current=current,
            requested=requested,
            allowed=[str(s) for s in allowed],
        )


def check_payment_transition(kind: str, current: str, requested: str) -> None:
    """
    Re-sending the current payment status is accepted so that extra fields
    (the deposit flag) can be updated on their own.
    """
    if requested == current:
        return
    allowed = allowed_payment_statuses(kind, current)
    if requested not in allowed:
        raise InvalidTransition(
            f"Cannot move the payment of a {LABELS[kind]} from {current} to {requested}.",
            current=current,
            requested=requested,
            allowed=[str(s) for s in allowed],
        )


def check_deposit_return(kind: str, payment_status: str) -> None:
    if kind != Resource.Kind.VEHICLE:
        raise InvalidTransition(
            "Only vehicle rentals carry a security deposit.",
            current=payment_status,
            requested="deposit-returned",
        )
    if payment_status not in DEPOSIT_RETURNABLE:
        raise InvalidTransition(
            "The deposit can only be returned once the rental is paid or refunded.",
            current=payment_status,
            requested="deposit-returned",
            allowed=[str(s) for s in allowed_payment_statuses(kind, payment_status) if s in DEPOSIT_RETURNABLE],
        )
