"""Append-only audit trail for administrative booking actions"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.enums import AuditAction
from app.core.exceptions import AuditWriteError, VersionConflictError
from app.models.audit import AdminAuditLog

logger = logging.getLogger(__name__)


async def append_audit_entry(
    db: AsyncSession,
    booking_id: int,
    admin_id: str,
    action: AuditAction,
    diff: Dict[str, Any],
    note: Optional[str] = None,
) -> AdminAuditLog:
    """
    Stage an audit entry in the caller's transaction and flush it together
    with the pending state change.

    Unlike a best-effort log, a failed write rolls the transaction back and
    raises, so a change is never committed without its entry.
    """
    entry = AdminAuditLog(
        booking_id=booking_id,
        admin_user_id=str(admin_id),
        action=action,
        diff_json=diff,
        note=note,
    )
    db.add(entry)
    try:
        await db.flush()
    except StaleDataError as e:
        await db.rollback()
        raise VersionConflictError(
            f"Booking {booking_id} was modified by a concurrent action", booking_id
        ) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Audit logging failed for {action} on booking {booking_id}: {e}", exc_info=True)
        raise AuditWriteError(f"Could not record {action} for booking {booking_id}") from e
    return entry
