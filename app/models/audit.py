from sqlalchemy import JSON, Column, Enum, ForeignKey, String, event
from sqlalchemy.orm import relationship

from app.core.enums import AuditAction
from app.core.exceptions import AuditLogImmutableError
from app.models.base import BaseModel


class AdminAuditLog(BaseModel):
    __tablename__ = "admin_audit_logs"

    booking_id = Column(ForeignKey("bookings.id"), nullable=False, index=True)
    booking = relationship("Booking", backref="audit_logs")

    admin_user_id = Column(String(64), nullable=False)
    action = Column(Enum(AuditAction), nullable=False)
    diff_json = Column(JSON, nullable=False)
    note = Column(String, nullable=True)


@event.listens_for(AdminAuditLog, "before_update")
def _reject_update(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit log entry {target.id} is append-only")


@event.listens_for(AdminAuditLog, "before_delete")
def _reject_delete(mapper, connection, target):
    raise AuditLogImmutableError(f"Audit log entry {target.id} cannot be deleted")
