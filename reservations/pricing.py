"""
Interval-length pricing.

Rooms are billed per 12-hour period, counted as calendar days between the
check-in day and the check-out day (a same-day stay is one period), plus a
reservation fee. Vehicles are billed per started day plus a refundable
security deposit that depends on the vehicle tier.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings

from .intervals import ONE_DAY, Interval, normalize_to_day


DEFAULT_RESERVATION_FEE_RATE = Decimal("0.12")
DEFAULT_SECURITY_DEPOSITS = {
    "two-wheeled": Decimal("5000"),
    "four-wheeled": Decimal("10000"),
}

CENTS = Decimal("0.01")
WHOLE = Decimal("1")


@dataclass(frozen=True)
class Quote:
    units: int
    rate: Decimal
    subtotal: Decimal
    reservation_fee: Decimal = Decimal("0.00")
    security_deposit: Decimal = Decimal("0.00")

    @property
    def total_amount(self) -> Decimal:
        return self.subtotal + self.reservation_fee + self.security_deposit


def _money(value) -> Decimal:
    return Decimal(value).quantize(CENTS)


def reservation_fee_rate() -> Decimal:
    return Decimal(str(getattr(settings, "RESERVATION_FEE_RATE", DEFAULT_RESERVATION_FEE_RATE)))


def security_deposit_for(tier: str) -> Decimal:
    deposits = getattr(settings, "SECURITY_DEPOSITS", DEFAULT_SECURITY_DEPOSITS)
    try:
        return _money(str(deposits[tier]))
    except KeyError:
        raise ValueError(f"Unknown security deposit tier: {tier!r}") from None


def room_periods(interval: Interval) -> int:
    days = (normalize_to_day(interval.end) - normalize_to_day(interval.start)).days
    return max(1, days)


def rental_days(interval: Interval) -> int:
    whole_days, remainder = divmod(interval.duration, ONE_DAY)
    return max(1, whole_days + (1 if remainder else 0))


def quote_room(rate, interval: Interval) -> Quote:
    periods = room_periods(interval)
    subtotal = _money(Decimal(rate) * periods)
    fee = (subtotal * reservation_fee_rate()).quantize(WHOLE, rounding=ROUND_HALF_UP)
    return Quote(units=periods, rate=_money(rate), subtotal=subtotal, reservation_fee=_money(fee))


def quote_vehicle(rate, tier: str, interval: Interval) -> Quote:
    days = rental_days(interval)
    return Quote(
        units=days,
        rate=_money(rate),
        subtotal=_money(Decimal(rate) * days),
        security_deposit=security_deposit_for(tier),
    )


def quote_for(resource, interval: Interval) -> Quote:
    """
    Price an interval against the resource's current rate. The result is
    stamped on the reservation and never recomputed afterwards.
    """
    if resource.is_room:
        return quote_room(resource.rate, interval)
    return quote_vehicle(resource.rate, resource.deposit_tier, interval)
