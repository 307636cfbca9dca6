import math
import pytest
from datetime import datetime, timedelta, timezone

from app.core.enums import InsuranceLevel, RateProfile
from app.core.exceptions import InvalidPricingInputError
from app.schemas.quote import PricingInput, PricingItem
from app.services.calculators import (
    calculate_demand_multiplier,
    calculate_distance_cost,
    calculate_extra_services,
    calculate_floor_cost,
    estimate_duration,
    recommend_vehicle,
)
from app.services.pricing import PricingEngine, calculate_price
from app.services.rates import (
    COMPETITIVE_DISTANCE_RATES,
    DEMAND,
    FLOOR_CHARGES,
    STANDARD_DISTANCE_RATES,
    VEHICLES,
    get_rate_config,
)

# Wednesday in April, booked well in advance: demand multiplier 1.0
MOVE_DATE = datetime(2026, 4, 15, 9, 0)
REQUESTED_AT = datetime(2026, 3, 1, 12, 0)


def make_input(**overrides) -> PricingInput:
    data = {
        "job_type": "man_and_van",
        "distance_miles": 10.0,
        "items": [PricingItem(name="Single bed", quantity=2, weight_kg=30, volume_m3=0.8)],
        "pickup_floor": 2,
        "pickup_has_lift": False,
        "preferred_date": MOVE_DATE,
        "requested_at": REQUESTED_AT,
    }
    data.update(overrides)
    return PricingInput(**data)


def assert_consistent(result):
    assert result.total_price == pytest.approx(result.subtotal + result.vat_amount, abs=0.01)
    assert sum(line.amount for line in result.breakdown) == pytest.approx(result.total_price, abs=0.02)


class TestWorkedExample:
    """Man & Van, 10 miles, two single beds, 2nd floor walk-up, standard rates"""

    def test_standard_profile_totals(self):
        result = calculate_price(make_input(), profile=RateProfile.STANDARD)

        assert result.base_price == 45.0
        assert result.distance_cost == 49.84
        assert result.floor_cost == 30.0
        assert result.extra_services == 0.0
        assert result.vehicle_multiplier == 1.0
        assert result.demand_multiplier == 1.0
        assert result.subtotal == 124.84
        assert result.vat_amount == 24.97
        assert result.total_price == 149.81
        assert (result.price_min, result.price_max) == (125.0, 170.0)
        assert result.recommended_vehicle == "Small Van (SWB)"
        assert result.number_of_vehicles == 1
        assert result.estimated_duration_hours == 1.1
        assert result.total_weight_kg == 60.0
        assert result.total_volume_m3 == 1.6
        assert result.rate_version == "2025.1-standard"

    def test_standard_profile_breakdown(self):
        result = calculate_price(make_input(), profile=RateProfile.STANDARD)

        assert [(line.label, line.amount) for line in result.breakdown] == [
            ("Base price (Man & Van)", 45.0),
            ("Distance (10.0 miles)", 49.84),
            ("Floor access surcharge", 30.0),
            ("VAT (20%)", 24.97),
        ]

    def test_competitive_profile(self):
        result = calculate_price(make_input(), profile=RateProfile.COMPETITIVE)

        assert result.distance_cost == 24.8
        assert result.subtotal == 99.8
        assert result.vat_amount == 19.96
        assert result.total_price == 119.76
        assert (result.price_min, result.price_max) == (100.0, 140.0)

    def test_without_vat(self):
        engine = PricingEngine(get_rate_config(RateProfile.STANDARD), include_vat=False)
        result = engine.calculate(make_input())

        assert result.vat_rate == 0.0
        assert result.vat_amount == 0.0
        assert result.total_price == result.subtotal == 124.84
        assert not any(line.label.startswith("VAT") for line in result.breakdown)

    def test_calculation_is_pure(self):
        engine = PricingEngine(get_rate_config(RateProfile.STANDARD))
        data = make_input()
        assert engine.calculate(data) == engine.calculate(data)


class TestPricingInvariants:

    @pytest.mark.parametrize("overrides", [
        {},
        {"distance_miles": 0},
        {"distance_miles": 137.3},
        {"items": []},
        {"pickup_floor": 10, "delivery_floor": 4},
        {"requires_packaging": True, "requires_assembly": True, "insurance_level": InsuranceLevel.PREMIUM},
        {"requires_disassembly": True, "requires_cleaning": True},
        {"preferred_date": datetime(2026, 7, 4, 9, 0)},
        {"preferred_date": REQUESTED_AT + timedelta(hours=5)},
        {"items": [PricingItem(name="Crate", quantity=30, weight_kg=133.3, volume_m3=0.77)]},
        {"job_type": "office_large", "distance_miles": 412.5},
    ])
    @pytest.mark.parametrize("profile", list(RateProfile))
    def test_totals_and_breakdown_agree(self, overrides, profile):
        result = calculate_price(make_input(**overrides), profile=profile)
        assert_consistent(result)

    def test_vat_line_is_last(self):
        result = calculate_price(make_input(requires_packaging=True, preferred_date=datetime(2026, 7, 4)))
        assert result.breakdown[-1].label == "VAT (20%)"
        assert result.breakdown[-1].amount == result.vat_amount

    def test_unknown_job_type_uses_default_base(self):
        result = calculate_price(make_input(job_type="hovercraft_delivery"))
        assert result.base_price == 45.0
        assert result.breakdown[0].label == "Base price (hovercraft_delivery)"

    def test_empty_items_prices_smallest_van(self):
        result = calculate_price(make_input(items=[]))
        assert result.recommended_vehicle == "Small Van (SWB)"
        assert result.total_weight_kg == 0.0
        assert_consistent(result)

    def test_negative_distance_rejected(self):
        with pytest.raises(InvalidPricingInputError):
            calculate_distance_cost(-1, STANDARD_DISTANCE_RATES)

    def test_schema_rejects_negative_values(self):
        with pytest.raises(ValueError):
            make_input(distance_miles=-5)
        with pytest.raises(ValueError):
            PricingItem(name="Box", quantity=0, weight_kg=1, volume_m3=0.1)


class TestDistanceCost:

    def test_tiered_bands(self):
        assert calculate_distance_cost(10, COMPETITIVE_DISTANCE_RATES) == pytest.approx(24.8)
        # 6*4 + 4*2.9 = 35.6, round trip ×1.4
        assert calculate_distance_cost(10, STANDARD_DISTANCE_RATES) == pytest.approx(49.84)

    def test_minimum_charge(self):
        assert calculate_distance_cost(0, STANDARD_DISTANCE_RATES) == 15
        assert calculate_distance_cost(0.5, COMPETITIVE_DISTANCE_RATES) == 10

    @pytest.mark.parametrize("rates", [STANDARD_DISTANCE_RATES, COMPETITIVE_DISTANCE_RATES])
    def test_monotonic_in_distance(self, rates):
        previous = 0.0
        for tenth in range(0, 3000, 7):
            cost = calculate_distance_cost(tenth / 10, rates)
            assert cost >= previous
            assert cost >= rates.minimum_charge
            previous = cost


class TestVehicleRecommendation:

    def test_smallest_vehicle_that_fits(self):
        assert recommend_vehicle(1.6, 60, VEHICLES).vehicle.key == "small_van"
        assert recommend_vehicle(6, 400, VEHICLES).vehicle.key == "medium_van"
        assert recommend_vehicle(4, 1300, VEHICLES).vehicle.key == "luton_van"

    def test_volume_overflow_needs_two_trips(self):
        rec = recommend_vehicle(25, 500, VEHICLES)
        assert rec.vehicle.label == "Luton Van with Tail Lift"
        assert rec.trips == 2
        assert rec.multiplier == pytest.approx(3.3)
        assert rec.label == "Luton Van with Tail Lift ×2"

    def test_weight_overflow(self):
        assert recommend_vehicle(10, 4000, VEHICLES).trips == 3

    @pytest.mark.parametrize("volume,weight", [(0, 0), (22, 1800), (22.1, 10), (47, 1900), (130, 9000)])
    def test_trip_count_never_below_capacity_ceiling(self, volume, weight):
        rec = recommend_vehicle(volume, weight, VEHICLES)
        assert rec.trips >= math.ceil(volume / rec.vehicle.volume_m3)
        assert rec.trips >= math.ceil(weight / rec.vehicle.weight_kg)
        assert rec.trips >= 1


class TestFloorCost:

    def test_lift_waives_charge(self):
        assert calculate_floor_cost(5, True, 0, False, FLOOR_CHARGES) == 0

    def test_per_floor_charge(self):
        assert calculate_floor_cost(2, False, 3, False, FLOOR_CHARGES) == 75

    def test_ten_floor_walk_up_is_capped(self):
        assert calculate_floor_cost(10, False, 0, False, FLOOR_CHARGES) == 75

    def test_negative_floor_rejected(self):
        with pytest.raises(InvalidPricingInputError):
            calculate_floor_cost(-1, False, 0, False, FLOOR_CHARGES)


class TestDemandMultiplier:

    def test_neutral_midweek(self):
        assert calculate_demand_multiplier(MOVE_DATE, REQUESTED_AT, DEMAND) == 1.0

    def test_saturday_in_july(self):
        saturday = datetime(2026, 7, 4, 9, 0)
        assert calculate_demand_multiplier(saturday, REQUESTED_AT, DEMAND) == pytest.approx(1.2 * 1.15)

    @pytest.mark.parametrize("lead,expected", [
        (timedelta(hours=6), 1.5),
        (timedelta(hours=30), 1.3),
        (timedelta(days=3), 1.15),
        (timedelta(days=6), 1.05),
        (timedelta(days=9), 1.0),
    ])
    def test_urgency(self, lead, expected):
        requested = MOVE_DATE - lead
        assert calculate_demand_multiplier(MOVE_DATE, requested, DEMAND) == pytest.approx(expected)

    def test_same_inputs_same_multiplier(self):
        requested = MOVE_DATE - timedelta(days=2, hours=3)
        first = calculate_demand_multiplier(MOVE_DATE, requested, DEMAND)
        assert all(calculate_demand_multiplier(MOVE_DATE, requested, DEMAND) == first for _ in range(5))

    def test_aware_and_naive_dates_agree(self):
        aware = MOVE_DATE.replace(tzinfo=timezone.utc)
        assert calculate_demand_multiplier(aware, REQUESTED_AT, DEMAND) == \
            calculate_demand_multiplier(MOVE_DATE, REQUESTED_AT.replace(tzinfo=timezone.utc), DEMAND)


class TestExtraServices:

    def test_selected_services(self):
        config = get_rate_config(RateProfile.STANDARD)
        cost, lines = calculate_extra_services(
            config, 10, requires_packaging=True, requires_assembly=True,
            insurance_level=InsuranceLevel.STANDARD,
        )
        # packing 30 + 1.5*10, assembly 25 + 5*10, insurance 15
        assert cost == pytest.approx(135)
        assert [line.label for line in lines] == [
            "Professional Packing", "Furniture Assembly", "Standard Cover (£10k)"
        ]

    def test_basic_insurance_adds_no_line(self):
        cost, lines = calculate_extra_services(get_rate_config(), 3)
        assert cost == 0
        assert lines == []

    def test_unknown_insurance_rejected(self):
        with pytest.raises(InvalidPricingInputError):
            calculate_extra_services(get_rate_config(), 3, insurance_level="platinum")


class TestDuration:

    def test_minimums_and_travel(self):
        config = get_rate_config()
        # 20 + 15 loading/unloading minimums, 6 floor minutes, 24 driving
        assert estimate_duration(2, 2, 0, 10, config.duration) == 1.1

    def test_scales_with_items(self):
        config = get_rate_config()
        assert estimate_duration(40, 0, 0, 0, config.duration) == 6.0
