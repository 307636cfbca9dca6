from sqlalchemy import Boolean, Column, DateTime, Enum, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.core.enums import InsuranceLevel, JobStatus
from app.models.base import BaseModel


class Job(BaseModel):
    __tablename__ = "jobs"

    job_type = Column(String(64), nullable=False)
    status = Column(Enum(JobStatus), default=JobStatus.BOOKED, nullable=False)

    pickup_address = Column(String(255), nullable=True)
    delivery_address = Column(String(255), nullable=True)
    # one-way route distance resolved by the routing collaborator
    distance_miles = Column(Float, nullable=True)

    pickup_floor = Column(Integer, default=0, nullable=False)
    pickup_has_lift = Column(Boolean, default=False, nullable=False)
    delivery_floor = Column(Integer, default=0, nullable=False)
    delivery_has_lift = Column(Boolean, default=False, nullable=False)

    needs_packing = Column(Boolean, default=False, nullable=False)
    needs_assembly = Column(Boolean, default=False, nullable=False)
    needs_disassembly = Column(Boolean, default=False, nullable=False)
    needs_cleaning = Column(Boolean, default=False, nullable=False)
    insurance_level = Column(Enum(InsuranceLevel), default=InsuranceLevel.BASIC, nullable=False)

    move_date = Column(DateTime, nullable=False)
    preferred_time_window = Column(String(64), nullable=True)
    description = Column(String, nullable=True)
    contact_name = Column(String(120), nullable=True)
    contact_phone = Column(String(40), nullable=True)

    estimated_price = Column(Float, nullable=True)

    items = relationship(
        "JobItem",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="JobItem.id",
    )


class JobItem(BaseModel):
    __tablename__ = "job_items"

    job_id = Column(ForeignKey("jobs.id"), nullable=False, index=True)
    job = relationship("Job", back_populates="items")

    name = Column(String(120), nullable=False)
    category = Column(String(64), nullable=True)
    quantity = Column(Integer, default=1, nullable=False)
    weight_kg = Column(Float, nullable=True)
    volume_m3 = Column(Float, nullable=True)
    requires_dismantling = Column(Boolean, default=False, nullable=False)
    fragile = Column(Boolean, default=False, nullable=False)
    notes = Column(String, nullable=True)
