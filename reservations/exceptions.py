from __future__ import annotations

from datetime import date as date_type


class ReservationError(Exception):
    """Base error type for reservation domain errors."""


class InvalidInterval(ReservationError):
    """Raised when a date/time range is malformed or inverted."""


class PastReservationError(InvalidInterval):
    """Raised when attempting to reserve a range that already ended."""


class ConflictError(ReservationError):
    """
    Raised when the requested range overlaps an active reservation.

    Carries the overlapping sub-ranges and the calendar days they cover so
    callers can paint busy dates and suggest alternatives.
    """

    def __init__(self, message: str, *, conflicts=(), conflicting_dates=()):
        super().__init__(message)
        self.conflicts = list(conflicts)
        self.conflicting_dates: list[date_type] = sorted(set(conflicting_dates))


class InvalidTransition(ReservationError):
    """Raised on an illegal status or payment-status jump."""

    def __init__(self, message: str, *, current: str, requested: str, allowed=()):
        super().__init__(message)
        self.current = current
        self.requested = requested
        self.allowed = list(allowed)


class ResourceUnavailable(ReservationError):
    """Raised when a resource is administratively switched off."""


class ResourceInUse(ReservationError):
    """Raised when deleting a resource that reservations still reference."""


class NotFound(ReservationError):
    """Raised for an unknown resource or reservation."""


class TransientFailure(ReservationError):
    """Raised when the atomic reserve keeps losing races with other writers."""
