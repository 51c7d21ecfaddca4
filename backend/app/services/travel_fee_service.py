"""Travel fee and travel time calculation for house-call bookings."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field

EARTH_RADIUS_KM = 6371.0
FALLBACK_TRAVEL_FEE = Decimal("50")
MONEY_PLACES = Decimal("0.01")


class Coordinates(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class ServiceAddress(BaseModel):
    """Customer address for a house call; coordinates arrive pre-geocoded."""

    line1: str
    line2: str | None = None
    city: str | None = None
    postal_code: str | None = None
    country: str | None = None
    coordinates: Coordinates | None = None


class TravelZone(BaseModel):
    name: str
    postal_codes: list[str] = Field(default_factory=list)
    cities: list[str] = Field(default_factory=list)
    fee: Decimal
    travel_time_minutes: int = 30


class DistanceTier(BaseModel):
    max_distance_km: float
    fee: Decimal
    minutes_per_km: float = 2.0


class TravelFeeRules(BaseModel):
    """Provider-configured travel pricing, stored as JSON on the provider."""

    strategy: Literal["flat", "zone", "distance", "tiered"] = "tiered"
    flat_fee: Decimal | None = None
    zones: list[TravelZone] = Field(default_factory=list)
    per_km_rate: Decimal | None = None
    minimum_fee: Decimal | None = None
    maximum_fee: Decimal | None = None
    tiers: list[DistanceTier] = Field(default_factory=list)
    max_radius_km: float | None = None
    free_radius_km: float | None = None
    base_travel_time_minutes: int | None = None
    default_minutes_per_km: float | None = None


DEFAULT_TRAVEL_FEE_RULES = TravelFeeRules(
    strategy="tiered",
    maximum_fee=Decimal("500"),
    max_radius_km=50,
    free_radius_km=5,
    base_travel_time_minutes=15,
    default_minutes_per_km=2,
    tiers=[
        DistanceTier(max_distance_km=5, fee=Decimal("0"), minutes_per_km=2),
        DistanceTier(max_distance_km=10, fee=Decimal("50"), minutes_per_km=2),
        DistanceTier(max_distance_km=20, fee=Decimal("100"), minutes_per_km=2.5),
        DistanceTier(max_distance_km=30, fee=Decimal("150"), minutes_per_km=3),
        DistanceTier(max_distance_km=50, fee=Decimal("250"), minutes_per_km=3),
    ],
)


@dataclass(slots=True)
class TravelFeeResult:
    fee: Decimal
    travel_time_minutes: int
    within_service_area: bool = True
    outside_reason: str | None = None
    distance_km: float | None = None
    zone_name: str | None = None
    tier_index: int | None = None
    breakdown: list[tuple[str, Decimal]] = field(default_factory=list)

    @property
    def total_travel_time_minutes(self) -> int:
        return self.travel_time_minutes * 2

    def to_dict(self) -> dict[str, Any]:
        return {
            "fee": f"{self.fee:.2f}",
            "travel_time_minutes": self.travel_time_minutes,
            "total_travel_time_minutes": self.total_travel_time_minutes,
            "within_service_area": self.within_service_area,
            "outside_reason": self.outside_reason,
            "distance_km": (
                round(self.distance_km, 2) if self.distance_km is not None else None
            ),
            "zone_name": self.zone_name,
            "tier_index": self.tier_index,
            "breakdown": [
                {"label": label, "amount": f"{amount:.2f}"}
                for label, amount in self.breakdown
            ],
        }


def load_rules(raw: dict[str, Any] | None) -> TravelFeeRules:
    """Parse a provider's stored rules, falling back to the platform defaults."""
    if not raw:
        return DEFAULT_TRAVEL_FEE_RULES
    return TravelFeeRules.model_validate(raw)


def haversine_km(origin: Coordinates, destination: Coordinates) -> float:
    """Great-circle distance between two points in kilometres."""
    d_lat = math.radians(destination.latitude - origin.latitude)
    d_lon = math.radians(destination.longitude - origin.longitude)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(origin.latitude))
        * math.cos(math.radians(destination.latitude))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def find_zone(address: ServiceAddress, zones: list[TravelZone]) -> TravelZone | None:
    """Match by postal code first, then by city name."""
    if address.postal_code:
        postal = "".join(address.postal_code.split())
        for zone in zones:
            if any("".join(code.split()) == postal for code in zone.postal_codes):
                return zone
    if address.city:
        city = address.city.strip().lower()
        for zone in zones:
            if any(candidate.strip().lower() == city for candidate in zone.cities):
                return zone
    return None


def find_tier(
    distance_km: float, tiers: list[DistanceTier]
) -> tuple[int, DistanceTier] | None:
    for index, tier in enumerate(sorted(tiers, key=lambda t: t.max_distance_km)):
        if distance_km <= tier.max_distance_km:
            return index, tier
    return None


def _cap(fee: Decimal, rules: TravelFeeRules) -> Decimal:
    if rules.maximum_fee is not None:
        fee = min(fee, rules.maximum_fee)
    return Decimal(fee).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def _travel_minutes(
    distance_km: float, rules: TravelFeeRules, minutes_per_km: float | None = None
) -> int:
    per_km = minutes_per_km or rules.default_minutes_per_km or 2
    return round(max(rules.base_travel_time_minutes or 15, distance_km * per_km))


def compute_travel_fee(
    base: Coordinates | None,
    address: ServiceAddress,
    rules: TravelFeeRules | None = None,
) -> TravelFeeResult:
    """Price the trip from the provider's base to the customer's address."""

    rules = rules or DEFAULT_TRAVEL_FEE_RULES
    default_minutes = rules.base_travel_time_minutes or 30

    if rules.strategy == "flat":
        fee = rules.flat_fee or Decimal("0")
        return TravelFeeResult(
            fee=_cap(fee, rules),
            travel_time_minutes=default_minutes,
            breakdown=[("Flat travel fee", fee)],
        )

    if rules.strategy == "zone":
        zone = find_zone(address, rules.zones)
        if zone is None:
            return TravelFeeResult(
                fee=Decimal("0.00"),
                travel_time_minutes=0,
                within_service_area=False,
                outside_reason="Address not within any service zone",
            )
        return TravelFeeResult(
            fee=_cap(zone.fee, rules),
            travel_time_minutes=zone.travel_time_minutes,
            zone_name=zone.name,
            breakdown=[(f"{zone.name} zone fee", zone.fee)],
        )

    if base is None or address.coordinates is None:
        fallback = rules.minimum_fee or rules.flat_fee or FALLBACK_TRAVEL_FEE
        return TravelFeeResult(
            fee=_cap(fallback, rules),
            travel_time_minutes=default_minutes,
            breakdown=[("Estimated travel fee (no coordinates)", fallback)],
        )

    distance_km = haversine_km(base, address.coordinates)
    if rules.max_radius_km and distance_km > rules.max_radius_km:
        return TravelFeeResult(
            fee=Decimal("0.00"),
            travel_time_minutes=0,
            within_service_area=False,
            outside_reason=(
                f"Address is {distance_km:.1f}km away, max service radius is "
                f"{rules.max_radius_km:g}km"
            ),
            distance_km=distance_km,
        )

    if rules.free_radius_km and distance_km <= rules.free_radius_km:
        return TravelFeeResult(
            fee=Decimal("0.00"),
            travel_time_minutes=_travel_minutes(distance_km, rules),
            distance_km=distance_km,
            breakdown=[
                (f"Within free {rules.free_radius_km:g}km radius", Decimal("0"))
            ],
        )

    if rules.strategy == "distance":
        per_km = rules.per_km_rate or Decimal("5")
        minimum = rules.minimum_fee or Decimal("0")
        chargeable = distance_km - (rules.free_radius_km or 0)
        distance_fee = Decimal(str(chargeable)) * per_km
        total = Decimal(round(minimum + distance_fee))
        return TravelFeeResult(
            fee=_cap(total, rules),
            travel_time_minutes=_travel_minutes(distance_km, rules),
            distance_km=distance_km,
            breakdown=[
                ("Base fee", minimum),
                (f"Distance fee ({distance_km:.1f}km)", distance_fee),
            ],
        )

    if rules.strategy == "tiered" and rules.tiers:
        found = find_tier(distance_km, rules.tiers)
        if found is None:
            return TravelFeeResult(
                fee=Decimal("0.00"),
                travel_time_minutes=0,
                within_service_area=False,
                outside_reason=(
                    f"Address is {distance_km:.1f}km away, beyond max service tier"
                ),
                distance_km=distance_km,
            )
        index, tier = found
        return TravelFeeResult(
            fee=_cap(tier.fee, rules),
            travel_time_minutes=_travel_minutes(distance_km, rules, tier.minutes_per_km),
            distance_km=distance_km,
            tier_index=index,
            breakdown=[
                (f"Tier {index + 1} fee (up to {tier.max_distance_km:g}km)", tier.fee)
            ],
        )

    fee = rules.minimum_fee or Decimal("0")
    return TravelFeeResult(
        fee=_cap(fee, rules),
        travel_time_minutes=default_minutes,
        breakdown=[("Default fee", fee)],
    )


def compute_travel_time(
    base: Coordinates | None,
    address: ServiceAddress | None,
    rules: TravelFeeRules | None = None,
) -> int:
    """One-way travel minutes used to pad mobile appointments."""

    base_minutes = 30
    minutes_per_km = 2.0
    if rules is not None:
        base_minutes = rules.base_travel_time_minutes or base_minutes
        minutes_per_km = rules.default_minutes_per_km or minutes_per_km
    if base is None or address is None or address.coordinates is None:
        return base_minutes
    distance_km = haversine_km(base, address.coordinates)
    return max(base_minutes, round(distance_km * minutes_per_km))
