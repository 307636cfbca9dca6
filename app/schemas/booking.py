from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.enums import AuditAction, BookingStatus, InsuranceLevel
from app.schemas.quote import PricingResult


class RepricePreview(BaseModel):
    booking_id: int
    old_price: float
    new_price: float
    breakdown: PricingResult
    version: int


class RepriceCommitIn(BaseModel):
    confirm: bool = False
    expected_version: int = Field(ge=1)
    note: Optional[str] = Field(default=None, max_length=500)


class RepriceCommitOut(RepricePreview):
    audit_log_id: int


class BookingItemIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    category: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    weight_kg: Optional[float] = Field(default=None, ge=0)
    volume_m3: Optional[float] = Field(default=None, ge=0)
    requires_dismantling: bool = False
    fragile: bool = False
    notes: Optional[str] = None


class BookingUpdate(BaseModel):
    expected_version: Optional[int] = Field(default=None, ge=1)

    pickup_address: Optional[str] = None
    delivery_address: Optional[str] = None
    move_date: Optional[datetime] = None
    job_type: Optional[str] = None
    preferred_time_window: Optional[str] = None
    pickup_floor: Optional[int] = Field(default=None, ge=0)
    pickup_has_lift: Optional[bool] = None
    delivery_floor: Optional[int] = Field(default=None, ge=0)
    delivery_has_lift: Optional[bool] = None
    needs_packing: Optional[bool] = None
    needs_assembly: Optional[bool] = None
    needs_disassembly: Optional[bool] = None
    needs_cleaning: Optional[bool] = None
    insurance_level: Optional[InsuranceLevel] = None
    description: Optional[str] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None

    items: Optional[List[BookingItemIn]] = None

    @field_validator(
        "move_date",
        "job_type",
        "pickup_floor",
        "pickup_has_lift",
        "delivery_floor",
        "delivery_has_lift",
        "needs_packing",
        "needs_assembly",
        "needs_disassembly",
        "needs_cleaning",
        "insurance_level",
    )
    @classmethod
    def not_null(cls, v: Any) -> Any:
        # omit a field to leave it unchanged; these columns have no empty value
        if v is None:
            raise ValueError("cannot be null")
        return v

    @field_validator("move_date")
    @classmethod
    def naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # stored timestamps are naive UTC
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v


class JobItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    category: Optional[str] = None
    quantity: int
    weight_kg: Optional[float] = None
    volume_m3: Optional[float] = None
    requires_dismantling: bool
    fragile: bool


class JobOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_type: str
    pickup_address: Optional[str] = None
    delivery_address: Optional[str] = None
    distance_miles: Optional[float] = None
    pickup_floor: int
    pickup_has_lift: bool
    delivery_floor: int
    delivery_has_lift: bool
    needs_packing: bool
    needs_assembly: bool
    needs_disassembly: bool
    needs_cleaning: bool
    insurance_level: InsuranceLevel
    move_date: datetime
    preferred_time_window: Optional[str] = None
    estimated_price: Optional[float] = None
    items: List[JobItemOut] = Field(default_factory=list)


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    status: BookingStatus
    final_price: float
    version: int
    repriced_at: Optional[datetime] = None
    repriced_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_reason: Optional[str] = None
    job: JobOut


class CancelIn(BaseModel):
    reason: str = Field(max_length=500)


class CancelOut(BaseModel):
    booking_id: int
    status: BookingStatus
    cancelled_at: datetime
    cancelled_reason: str
    version: int


class AuditLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    booking_id: int
    admin_user_id: str
    action: AuditAction
    diff_json: Dict[str, Any]
    note: Optional[str] = None
    created_at: datetime
