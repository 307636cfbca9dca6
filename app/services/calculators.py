"""Pure calculators composed by the pricing engine."""
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Tuple

from app.core.enums import InsuranceLevel
from app.core.exceptions import InvalidPricingInputError
from app.schemas.quote import BreakdownLine
from app.services.rates import (
    DemandTables,
    DistanceRates,
    DurationRates,
    ExtraService,
    FloorCharges,
    RateConfig,
    VehicleClass,
)
from app.utils.rounding import round_half_up

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class VehicleRecommendation:
    vehicle: VehicleClass
    trips: int

    @property
    def multiplier(self) -> float:
        return self.vehicle.multiplier * self.trips

    @property
    def label(self) -> str:
        if self.trips > 1:
            return f"{self.vehicle.label} ×{self.trips}"
        return self.vehicle.label


def calculate_distance_cost(distance_miles: float, rates: DistanceRates) -> float:
    if distance_miles < 0:
        raise InvalidPricingInputError(f"distance must not be negative, got {distance_miles}")

    cost = 0.0
    remaining = distance_miles
    previous_limit = 0.0
    for tier in rates.tiers:
        if remaining <= 0:
            break
        band = min(remaining, tier.up_to_miles - previous_limit)
        cost += band * tier.rate_per_mile
        remaining -= band
        previous_limit = tier.up_to_miles

    cost *= rates.round_trip_multiplier
    return max(cost, rates.minimum_charge)


def recommend_vehicle(
    total_volume_m3: float,
    total_weight_kg: float,
    vehicles: List[VehicleClass],
) -> VehicleRecommendation:
    if total_volume_m3 < 0 or total_weight_kg < 0:
        raise InvalidPricingInputError("volume and weight must not be negative")

    for vehicle in vehicles:
        if total_volume_m3 <= vehicle.volume_m3 and total_weight_kg <= vehicle.weight_kg:
            return VehicleRecommendation(vehicle=vehicle, trips=1)

    largest = vehicles[-1]
    by_volume = math.ceil(total_volume_m3 / largest.volume_m3)
    by_weight = math.ceil(total_weight_kg / largest.weight_kg)
    return VehicleRecommendation(vehicle=largest, trips=max(by_volume, by_weight, 1))


def _location_floor_cost(floor: int, has_lift: bool, charges: FloorCharges) -> float:
    if floor < 0:
        raise InvalidPricingInputError(f"floor must not be negative, got {floor}")
    if floor == 0 or has_lift:
        return 0.0
    return min(floor * charges.per_floor, charges.max_per_location)


def calculate_floor_cost(
    pickup_floor: int,
    pickup_has_lift: bool,
    delivery_floor: int,
    delivery_has_lift: bool,
    charges: FloorCharges,
) -> float:
    return (
        _location_floor_cost(pickup_floor, pickup_has_lift, charges)
        + _location_floor_cost(delivery_floor, delivery_has_lift, charges)
    )


def as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def lead_time_days(preferred_date: datetime, requested_at: datetime) -> float:
    delta = as_naive_utc(preferred_date) - as_naive_utc(requested_at)
    return delta.total_seconds() / SECONDS_PER_DAY


def urgency_factor(lead_days: float, tables: DemandTables) -> float:
    urgency = tables.urgency
    if lead_days < 1:
        return urgency.same_day
    if lead_days < 2:
        return urgency.next_day
    if lead_days < 4:
        return urgency.within_3_days
    if lead_days < 8:
        return urgency.within_7_days
    return urgency.standard


def calculate_demand_multiplier(
    preferred_date: datetime,
    requested_at: datetime,
    tables: DemandTables,
) -> float:
    scheduled = as_naive_utc(preferred_date)
    day = tables.day_of_week.get(scheduled.weekday(), 1.0)
    month = tables.month.get(scheduled.month, 1.0)
    urgency = urgency_factor(lead_time_days(preferred_date, requested_at), tables)
    return day * month * urgency


def _service_cost(service: ExtraService, total_items: int) -> float:
    return service.base + service.per_item * total_items


def calculate_extra_services(
    config: RateConfig,
    total_items: int,
    requires_packaging: bool = False,
    requires_assembly: bool = False,
    requires_disassembly: bool = False,
    requires_cleaning: bool = False,
    insurance_level: InsuranceLevel = InsuranceLevel.BASIC,
) -> Tuple[float, List[BreakdownLine]]:
    if total_items < 0:
        raise InvalidPricingInputError("item count must not be negative")

    selected = [
        (requires_packaging, config.packaging),
        (requires_assembly, config.assembly),
        (requires_disassembly, config.disassembly),
        (requires_cleaning, config.cleaning),
    ]

    cost = 0.0
    lines: List[BreakdownLine] = []
    for enabled, service in selected:
        if not enabled:
            continue
        amount = _service_cost(service, total_items)
        cost += amount
        lines.append(BreakdownLine(label=service.label, amount=amount))

    try:
        insurance = config.insurance[InsuranceLevel(insurance_level)]
    except (ValueError, KeyError):
        raise InvalidPricingInputError(f"unknown insurance level {insurance_level!r}")
    if insurance.base > 0:
        cost += insurance.base
        lines.append(BreakdownLine(label=insurance.label, amount=insurance.base))

    return cost, lines


def estimate_duration(
    total_items: int,
    pickup_floor: int,
    delivery_floor: int,
    distance_miles: float,
    rates: DurationRates,
) -> float:
    loading = max(total_items * rates.loading_minutes_per_item, rates.minimum_loading_minutes)
    unloading = max(total_items * rates.unloading_minutes_per_item, rates.minimum_unloading_minutes)
    floors = (pickup_floor + delivery_floor) * rates.minutes_per_floor
    driving = distance_miles / rates.average_speed_mph * 60
    hours = (loading + unloading + floors + driving) / 60
    return round_half_up(hours, 1)
