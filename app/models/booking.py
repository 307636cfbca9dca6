from sqlalchemy import JSON, Column, DateTime, Enum, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.core.enums import BookingStatus
from app.models.base import BaseModel


class Booking(BaseModel):
    __tablename__ = "bookings"

    job_id = Column(ForeignKey("jobs.id"), nullable=False, index=True)
    job = relationship("Job", backref="bookings")

    status = Column(Enum(BookingStatus), default=BookingStatus.CONFIRMED, nullable=False)
    final_price = Column(Float, nullable=False)
    price_breakdown = Column(JSON, nullable=True)

    repriced_at = Column(DateTime, nullable=True)
    repriced_by = Column(String(64), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_reason = Column(String, nullable=True)

    # bumped on every committed admin action; stale writers fail on flush
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
