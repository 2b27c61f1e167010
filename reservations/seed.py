from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from django.db import transaction

from .models import Resource


@dataclass(frozen=True)
class ResourceSeed:
    kind: str
    code: str
    name: str
    rate: Decimal
    display_order: int
    description: str = ""
    capacity_adults: int = 0
    capacity_children: int = 0
    seats: int = 0
    vehicle_type: str = ""


GROUND_FLOOR_RATES = (500, 500, 500, 500, 500, 700, 800, 1600)
UPSTAIRS_RATES = (2200, 1600, 1600, 1300, 1300, 1300, 1800, 1700)

# Adults per room; everything not listed sleeps two.
ROOM_ADULTS = {"G08": 4, "U02": 3, "U03": 3, "U07": 3}


def _rooms() -> list[ResourceSeed]:
    rooms = []
    for i, rate in enumerate(GROUND_FLOOR_RATES, start=1):
        code = f"G{i:02d}"
        rooms.append(
            ResourceSeed(
                kind=Resource.Kind.ROOM,
                code=code,
                name=f"Room {i}",
                rate=Decimal(rate),
                display_order=i,
                description="Comfortable and cozy ground floor room with modern amenities.",
                capacity_adults=ROOM_ADULTS.get(code, 2),
                capacity_children=1,
            )
        )
    for i, rate in enumerate(UPSTAIRS_RATES, start=1):
        code = f"U{i:02d}"
        rooms.append(
            ResourceSeed(
                kind=Resource.Kind.ROOM,
                code=code,
                name=f"Room {i + 8}",
                rate=Decimal(rate),
                display_order=i + 8,
                description="Spacious upstairs room with views and premium amenities.",
                capacity_adults=ROOM_ADULTS.get(code, 2),
                capacity_children=2,
            )
        )
    return rooms


def _vehicle(order: int, code: str, name: str, vehicle_type: str, rate: int, seats: int, description: str):
    return ResourceSeed(
        kind=Resource.Kind.VEHICLE,
        code=code,
        name=name,
        rate=Decimal(rate),
        display_order=order,
        description=description,
        seats=seats,
        vehicle_type=vehicle_type,
    )


MOTORCYCLE = Resource.VehicleType.MOTORCYCLE

DEFAULT_VEHICLES: list[ResourceSeed] = [
    _vehicle(1, "MC-01", "Honda Beat", MOTORCYCLE, 350, 2, "125cc scooter with 2 helmets. Easy city riding."),
    _vehicle(2, "MC-02", "Yamaha Mio Gear", MOTORCYCLE, 350, 2, "125cc scooter with 2 helmets. Sporty design."),
    _vehicle(3, "MC-03", "Honda Click", MOTORCYCLE, 450, 2, "125cc scooter with 2 helmets. Comfortable daily rides."),
    _vehicle(4, "MC-04", "Yamaha Fazzio", MOTORCYCLE, 550, 2, "125cc scooter with 2 helmets. Modern design."),
    _vehicle(5, "MC-05", "Yamaha NMAX", MOTORCYCLE, 700, 2, "155cc scooter with 2 helmets. Premium comfort."),
    _vehicle(6, "MC-06", "Yamaha Aerox", MOTORCYCLE, 700, 2, "155cc scooter with 2 helmets. Sporty performance."),
    _vehicle(7, "CAR-01", "Stingray Wagon R", Resource.VehicleType.CAR, 1400, 7, "Compact, fuel-efficient family wagon."),
    _vehicle(8, "SUV-01", "Suzuki S-Presso", Resource.VehicleType.SUV, 1800, 5, "Mini SUV with great fuel economy."),
    _vehicle(9, "VAN-01", "Mitsubishi Xpander", Resource.VehicleType.VAN, 2500, 7, "Spacious MPV for families."),
]

DEFAULT_ROOMS: list[ResourceSeed] = _rooms()


def seed_catalog(*, update_existing: bool = False, kinds=None) -> dict[str, int]:
    """
    Idempotently seed the lodge rooms and rental vehicles, keyed by code.

    - If update_existing is False: creates missing resources only (does not overwrite edits).
    - If update_existing is True: updates existing resources to match defaults.
    """
    created = 0
    updated = 0
    skipped = 0

    seeds = DEFAULT_ROOMS + DEFAULT_VEHICLES
    if kinds:
        seeds = [s for s in seeds if s.kind in kinds]

    with transaction.atomic():
        for seed in seeds:
            defaults = {
                "kind": seed.kind,
                "name": seed.name,
                "rate": seed.rate,
                "display_order": seed.display_order,
                "description": seed.description,
                "capacity_adults": seed.capacity_adults,
                "capacity_children": seed.capacity_children,
                "seats": seed.seats,
                "vehicle_type": seed.vehicle_type,
            }

            if update_existing:
                _, was_created = Resource.objects.update_or_create(code=seed.code, defaults=defaults)
                if was_created:
                    created += 1
                else:
                    updated += 1
            else:
                _, was_created = Resource.objects.get_or_create(code=seed.code, defaults=defaults)
                if was_created:
                    created += 1
                else:
                    skipped += 1

    return {"created": created, "updated": updated, "skipped": skipped}
