"""
Rate tables for the removal pricing engine.

All prices are in GBP, distances in miles. A ``RateConfig`` is immutable and
carries a version string so a stored breakdown can always be traced back to
the tables that produced it.
"""
import math
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.core.enums import InsuranceLevel, RateProfile

RATES_VERSION = "2025.1"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class DistanceTier(_Frozen):
    up_to_miles: float = Field(gt=0)
    rate_per_mile: float = Field(ge=0)


class DistanceRates(_Frozen):
    tiers: List[DistanceTier]
    minimum_charge: float = Field(ge=0)
    round_trip_multiplier: float = Field(gt=0)

    @model_validator(mode="after")
    def _check_tiers(self):
        if not self.tiers:
            raise ValueError("at least one distance tier is required")
        previous = 0.0
        for tier in self.tiers:
            if tier.up_to_miles <= previous:
                raise ValueError("distance tiers must be strictly increasing")
            previous = tier.up_to_miles
        if not math.isinf(self.tiers[-1].up_to_miles):
            raise ValueError("the last distance tier must be unbounded")
        return self


class VehicleClass(_Frozen):
    key: str
    label: str
    volume_m3: float = Field(gt=0)
    weight_kg: float = Field(gt=0)
    multiplier: float = Field(gt=0)


class FloorCharges(_Frozen):
    per_floor: float = Field(ge=0)
    max_per_location: float = Field(ge=0)


class ExtraService(_Frozen):
    label: str
    base: float = Field(default=0.0, ge=0)
    per_item: float = Field(default=0.0, ge=0)


class UrgencyFactors(_Frozen):
    same_day: float
    next_day: float
    within_3_days: float
    within_7_days: float
    standard: float


class DemandTables(_Frozen):
    # keyed by datetime.weekday(): Monday == 0
    day_of_week: Dict[int, float]
    month: Dict[int, float]
    urgency: UrgencyFactors


class DurationRates(_Frozen):
    loading_minutes_per_item: float = 5
    minimum_loading_minutes: float = 20
    unloading_minutes_per_item: float = 4
    minimum_unloading_minutes: float = 15
    minutes_per_floor: float = 3
    average_speed_mph: float = 25


class StandardItem(_Frozen):
    weight_kg: float
    volume_m3: float
    category: str


class RateConfig(_Frozen):
    version: str
    profile: RateProfile
    base_prices: Dict[str, float]
    job_type_labels: Dict[str, str]
    default_job_type: str
    distance: DistanceRates
    vehicles: List[VehicleClass]
    floors: FloorCharges
    packaging: ExtraService
    assembly: ExtraService
    disassembly: ExtraService
    cleaning: ExtraService
    insurance: Dict[InsuranceLevel, ExtraService]
    demand: DemandTables
    duration: DurationRates = DurationRates()
    vat_rate: float = Field(ge=0, lt=1)
    platform_fee_rate: float = Field(default=0.0, ge=0, lt=1)
    range_spread: float = Field(default=0.15, ge=0, lt=1)
    range_step: float = Field(default=5.0, gt=0)
    fallback_distance_miles: float = Field(default=10.0, ge=0)
    standard_items: Dict[str, StandardItem] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_tables(self):
        if self.default_job_type not in self.base_prices:
            raise ValueError(f"default job type {self.default_job_type!r} has no base price")
        if not self.vehicles:
            raise ValueError("at least one vehicle class is required")
        for smaller, larger in zip(self.vehicles, self.vehicles[1:]):
            if larger.volume_m3 < smaller.volume_m3 or larger.weight_kg < smaller.weight_kg:
                raise ValueError("vehicle classes must be ordered smallest to largest")
        missing = set(InsuranceLevel) - set(self.insurance)
        if missing:
            raise ValueError(f"missing insurance tiers: {sorted(str(m) for m in missing)}")
        return self

    def base_price_for(self, job_type: str) -> float:
        return self.base_prices.get(job_type, self.base_prices[self.default_job_type])

    def label_for(self, job_type: str) -> str:
        return self.job_type_labels.get(job_type, job_type)

    def standard_item(self, name: str) -> Optional[StandardItem]:
        return self.standard_items.get(name)


BASE_PRICES = {
    "man_and_van": 45,
    "furniture": 55,
    "home_removal_studio": 180,
    "home_removal_1bed": 250,
    "home_removal_2bed": 350,
    "home_removal_3bed": 480,
    "home_removal_4bed": 650,
    "home_removal_5bed": 850,
    "piano_upright": 120,
    "piano_grand": 250,
    "student_move": 80,
    "office_small": 300,
    "office_medium": 550,
    "office_large": 900,
    "international_europe": 1200,
    "storage_monthly": 60,
    "single_item": 40,
    "house_move": 280,
    "office_move": 400,
    "packing": 80,
    "piano_specialist": 150,
    "storage": 100,
}

JOB_TYPE_LABELS = {
    "man_and_van": "Man & Van",
    "furniture": "Furniture Delivery",
    "home_removal_studio": "Studio Flat Removal",
    "home_removal_1bed": "1-Bed Removal",
    "home_removal_2bed": "2-Bed Removal",
    "home_removal_3bed": "3-Bed Removal",
    "home_removal_4bed": "4-Bed Removal",
    "home_removal_5bed": "5-Bed Removal",
    "piano_upright": "Upright Piano Move",
    "piano_grand": "Grand Piano Move",
    "student_move": "Student Move",
    "office_small": "Small Office Move",
    "office_medium": "Medium Office Move",
    "office_large": "Large Office Move",
    "international_europe": "International (Europe)",
    "storage_monthly": "Monthly Storage",
    "single_item": "Single Item Delivery",
    "house_move": "House Move",
    "office_move": "Office Move",
    "packing": "Packing Service",
    "piano_specialist": "Specialist Item Move",
    "storage": "Storage & Collection",
}

STANDARD_DISTANCE_RATES = DistanceRates(
    tiers=[
        DistanceTier(up_to_miles=6, rate_per_mile=4.00),
        DistanceTier(up_to_miles=31, rate_per_mile=2.90),
        DistanceTier(up_to_miles=62, rate_per_mile=2.25),
        DistanceTier(up_to_miles=186, rate_per_mile=1.75),
        DistanceTier(up_to_miles=math.inf, rate_per_mile=1.45),
    ],
    minimum_charge=15,
    round_trip_multiplier=1.4,  # driver returns partially loaded or empty
)

# marketplace-aligned, roughly 30% below standard, one-way only
COMPETITIVE_DISTANCE_RATES = DistanceRates(
    tiers=[
        DistanceTier(up_to_miles=6, rate_per_mile=2.80),
        DistanceTier(up_to_miles=31, rate_per_mile=2.00),
        DistanceTier(up_to_miles=62, rate_per_mile=1.50),
        DistanceTier(up_to_miles=186, rate_per_mile=1.20),
        DistanceTier(up_to_miles=math.inf, rate_per_mile=1.00),
    ],
    minimum_charge=10,
    round_trip_multiplier=1.0,
)

VEHICLES = [
    VehicleClass(key="small_van", label="Small Van (SWB)", volume_m3=5, weight_kg=500, multiplier=1.0),
    VehicleClass(key="medium_van", label="Medium Van (MWB)", volume_m3=9, weight_kg=900, multiplier=1.15),
    VehicleClass(key="lwb_van", label="Large Van (LWB)", volume_m3=14, weight_kg=1200, multiplier=1.3),
    VehicleClass(key="luton_van", label="Luton Van", volume_m3=20, weight_kg=1500, multiplier=1.5),
    VehicleClass(
        key="luton_tail_lift",
        label="Luton Van with Tail Lift",
        volume_m3=22,
        weight_kg=1800,
        multiplier=1.65,
    ),
]

FLOOR_CHARGES = FloorCharges(per_floor=15, max_per_location=75)

INSURANCE = {
    InsuranceLevel.BASIC: ExtraService(label="Basic Cover (included)", base=0),
    InsuranceLevel.STANDARD: ExtraService(label="Standard Cover (£10k)", base=15),
    InsuranceLevel.PREMIUM: ExtraService(label="Premium Cover (£25k)", base=35),
}

DEMAND = DemandTables(
    day_of_week={
        0: 0.95,  # Monday
        1: 0.95,
        2: 1.0,
        3: 1.0,
        4: 1.1,
        5: 1.2,  # Saturday
        6: 1.15,
    },
    month={
        1: 0.9,
        2: 0.9,
        3: 0.95,
        4: 1.0,
        5: 1.05,
        6: 1.1,
        7: 1.15,
        8: 1.15,
        9: 1.1,  # student season
        10: 1.0,
        11: 0.95,
        12: 0.9,
    },
    urgency=UrgencyFactors(
        same_day=1.5,
        next_day=1.3,
        within_3_days=1.15,
        within_7_days=1.05,
        standard=1.0,
    ),
)

STANDARD_ITEMS = {
    "Single bed": StandardItem(weight_kg=30, volume_m3=0.8, category="Bedroom"),
    "Double bed": StandardItem(weight_kg=50, volume_m3=1.2, category="Bedroom"),
    "King bed": StandardItem(weight_kg=65, volume_m3=1.5, category="Bedroom"),
    "Wardrobe": StandardItem(weight_kg=60, volume_m3=1.4, category="Bedroom"),
    "Chest of drawers": StandardItem(weight_kg=35, volume_m3=0.5, category="Bedroom"),
    "Bedside table": StandardItem(weight_kg=10, volume_m3=0.1, category="Bedroom"),
    "Dressing table": StandardItem(weight_kg=30, volume_m3=0.4, category="Bedroom"),
    "2-seater sofa": StandardItem(weight_kg=45, volume_m3=1.2, category="Living Room"),
    "3-seater sofa": StandardItem(weight_kg=65, volume_m3=1.8, category="Living Room"),
    "Corner sofa": StandardItem(weight_kg=80, volume_m3=2.5, category="Living Room"),
    "Armchair": StandardItem(weight_kg=30, volume_m3=0.7, category="Living Room"),
    "Coffee table": StandardItem(weight_kg=15, volume_m3=0.3, category="Living Room"),
    "TV stand": StandardItem(weight_kg=20, volume_m3=0.3, category="Living Room"),
    "Bookcase": StandardItem(weight_kg=30, volume_m3=0.6, category="Living Room"),
    "Dining table (4-seater)": StandardItem(weight_kg=30, volume_m3=0.6, category="Dining Room"),
    "Dining table (6-seater)": StandardItem(weight_kg=45, volume_m3=0.9, category="Dining Room"),
    "Dining chair": StandardItem(weight_kg=6, volume_m3=0.15, category="Dining Room"),
    "Sideboard": StandardItem(weight_kg=40, volume_m3=0.5, category="Dining Room"),
    "Washing machine": StandardItem(weight_kg=70, volume_m3=0.35, category="Appliances"),
    "Fridge freezer": StandardItem(weight_kg=65, volume_m3=0.5, category="Appliances"),
    "Dishwasher": StandardItem(weight_kg=45, volume_m3=0.3, category="Appliances"),
    "Tumble dryer": StandardItem(weight_kg=35, volume_m3=0.3, category="Appliances"),
    "Microwave": StandardItem(weight_kg=12, volume_m3=0.05, category="Appliances"),
    "Office desk": StandardItem(weight_kg=30, volume_m3=0.6, category="Office"),
    "Office chair": StandardItem(weight_kg=12, volume_m3=0.3, category="Office"),
    "Filing cabinet": StandardItem(weight_kg=25, volume_m3=0.2, category="Office"),
    "Upright piano": StandardItem(weight_kg=200, volume_m3=0.8, category="Specialist"),
    "Grand piano": StandardItem(weight_kg=350, volume_m3=2.5, category="Specialist"),
    "Treadmill": StandardItem(weight_kg=80, volume_m3=0.5, category="Gym Equipment"),
    "Exercise bike": StandardItem(weight_kg=30, volume_m3=0.3, category="Gym Equipment"),
    "Moving box (small)": StandardItem(weight_kg=8, volume_m3=0.03, category="Boxes"),
    "Moving box (medium)": StandardItem(weight_kg=15, volume_m3=0.06, category="Boxes"),
    "Moving box (large)": StandardItem(weight_kg=20, volume_m3=0.1, category="Boxes"),
}

VAT_RATE = 0.2

# used when an item has no stored measurements and no catalogue entry
DEFAULT_ITEM_WEIGHT_KG = 5.0
DEFAULT_ITEM_VOLUME_M3 = 0.1

# zero-commission mode: drivers keep 100%
PLATFORM_FEE_RATE = 0.0


def _build_config(profile: RateProfile, distance: DistanceRates) -> RateConfig:
    return RateConfig(
        version=f"{RATES_VERSION}-{profile.value}",
        profile=profile,
        base_prices=BASE_PRICES,
        job_type_labels=JOB_TYPE_LABELS,
        default_job_type="man_and_van",
        distance=distance,
        vehicles=VEHICLES,
        floors=FLOOR_CHARGES,
        packaging=ExtraService(label="Professional Packing", base=30, per_item=1.5),
        assembly=ExtraService(label="Furniture Assembly", base=25, per_item=5),
        disassembly=ExtraService(label="Furniture Disassembly", base=20, per_item=5),
        cleaning=ExtraService(label="End-of-Tenancy Cleaning", base=80),
        insurance=INSURANCE,
        demand=DEMAND,
        vat_rate=VAT_RATE,
        platform_fee_rate=PLATFORM_FEE_RATE,
        standard_items=STANDARD_ITEMS,
    )


RATE_CONFIGS = {
    RateProfile.STANDARD: _build_config(RateProfile.STANDARD, STANDARD_DISTANCE_RATES),
    RateProfile.COMPETITIVE: _build_config(RateProfile.COMPETITIVE, COMPETITIVE_DISTANCE_RATES),
}


def get_rate_config(profile=RateProfile.COMPETITIVE) -> RateConfig:
    return RATE_CONFIGS[RateProfile(profile)]
