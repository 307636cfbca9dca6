from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import InsuranceLevel


class PricingItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    quantity: int = Field(default=1, ge=1)
    weight_kg: float = Field(ge=0)
    volume_m3: float = Field(ge=0)


class PricingInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_type: str
    distance_miles: float = Field(ge=0)
    items: List[PricingItem] = Field(default_factory=list)
    pickup_floor: int = Field(default=0, ge=0)
    pickup_has_lift: bool = False
    delivery_floor: int = Field(default=0, ge=0)
    delivery_has_lift: bool = False
    requires_packaging: bool = False
    requires_assembly: bool = False
    requires_disassembly: bool = False
    requires_cleaning: bool = False
    insurance_level: InsuranceLevel = InsuranceLevel.BASIC
    preferred_date: datetime
    requested_at: datetime


class BreakdownLine(BaseModel):
    label: str
    amount: float


class PricingResult(BaseModel):
    base_price: float
    distance_cost: float
    floor_cost: float
    extra_services: float
    vehicle_multiplier: float
    demand_multiplier: float
    subtotal: float
    vat_rate: float
    vat_amount: float
    total_price: float
    platform_fee: float
    recommended_vehicle: str
    number_of_vehicles: int
    total_volume_m3: float
    total_weight_kg: float
    estimated_duration_hours: float
    price_min: float
    price_max: float
    range_spread: float
    range_step: float
    rate_version: str
    breakdown: List[BreakdownLine]


class QuoteItemIn(BaseModel):
    name: str = "Item"
    quantity: int = Field(default=1, ge=1)
    weight_kg: Optional[float] = Field(default=None, ge=0)
    volume_m3: Optional[float] = Field(default=None, ge=0)


class QuoteRequest(BaseModel):
    job_type: str
    distance_miles: float = Field(ge=0)
    items: List[QuoteItemIn] = Field(default_factory=list)
    pickup_floor: int = Field(default=0, ge=0)
    pickup_has_lift: bool = False
    delivery_floor: int = Field(default=0, ge=0)
    delivery_has_lift: bool = False
    requires_packaging: bool = False
    requires_assembly: bool = False
    requires_disassembly: bool = False
    requires_cleaning: bool = False
    insurance_level: InsuranceLevel = InsuranceLevel.BASIC
    preferred_date: datetime
    requested_at: Optional[datetime] = None
    area_hint: Optional[str] = None


class QuoteResponse(BaseModel):
    pricing: PricingResult
    ai_confidence: Optional[float] = None
    ai_warnings: List[str] = Field(default_factory=list)
    ai_explanation: Optional[str] = None
    ai_adjusted: bool = False


class QuickEstimateRequest(BaseModel):
    job_type: str
    distance_miles: float = Field(ge=0)
    item_count: int = Field(ge=0)
    total_weight_kg: float = Field(ge=0)


class QuickEstimate(BaseModel):
    min: float = Field(ge=0)
    max: float = Field(ge=0)
    explanation: str = ""


class QuickEstimateResponse(BaseModel):
    estimate: Optional[QuickEstimate] = None
