"""
Administrative reprice, edit and cancel actions on committed bookings.

``recompute`` is read-only and reproducible from stored job facts. Every
mutating action writes its state change and its audit entry in the same
transaction; if either fails, both are rolled back.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.core.audit_log import append_audit_entry
from app.core.enums import AuditAction, BookingStatus, JobStatus
from app.core.exceptions import (
    AuditWriteError,
    BookingCancelledError,
    BookingNotFoundError,
    InvalidCancellationReasonError,
    LinkedJobNotFoundError,
    NoChangesError,
    VersionConflictError,
)
from app.core.metrics import audit_logs_created, booking_admin_actions
from app.models.audit import AdminAuditLog
from app.models.base import utcnow
from app.models.booking import Booking
from app.models.job import Job, JobItem
from app.schemas.booking import BookingUpdate, RepriceCommitOut, RepricePreview
from app.schemas.quote import PricingInput, PricingResult
from app.services.learning import LearningHooks, NeutralLearningHooks, QuoteOutcome, apply_learning
from app.services.pricing import PricingEngine
from app.services.quotes import resolve_item

logger = logging.getLogger(__name__)

MIN_CANCEL_REASON_LENGTH = 3

JOB_FIELDS = [
    "pickup_address",
    "delivery_address",
    "move_date",
    "job_type",
    "preferred_time_window",
    "pickup_floor",
    "pickup_has_lift",
    "delivery_floor",
    "delivery_has_lift",
    "needs_packing",
    "needs_assembly",
    "needs_disassembly",
    "needs_cleaning",
    "insurance_level",
    "description",
    "contact_name",
    "contact_phone",
]

ITEM_FIELDS = [
    "name",
    "category",
    "quantity",
    "weight_kg",
    "volume_m3",
    "requires_dismantling",
    "fragile",
    "notes",
]


def _jsonable(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "value"):
        return value.value
    return value


def _item_summary(name: str, quantity: int, category: Optional[str]) -> Dict[str, Any]:
    return {"name": name, "quantity": quantity, "category": category}


def breakdown_summary(result: PricingResult) -> Dict[str, Any]:
    return {
        "base_price": result.base_price,
        "distance_cost": result.distance_cost,
        "floor_cost": result.floor_cost,
        "extra_services": result.extra_services,
        "demand_multiplier": result.demand_multiplier,
        "vehicle_multiplier": result.vehicle_multiplier,
        "subtotal": result.subtotal,
        "vat_amount": result.vat_amount,
        "total_price": result.total_price,
        "recommended_vehicle": result.recommended_vehicle,
        "rate_version": result.rate_version,
    }


class RepriceService:

    def __init__(self, engine: PricingEngine, hooks: Optional[LearningHooks] = None):
        self.engine = engine
        self.hooks = hooks or NeutralLearningHooks()

    async def _load_booking(self, db: AsyncSession, booking_id: int, for_update: bool = False) -> Booking:
        q = (
            select(Booking)
            .where(Booking.id == booking_id)
            .options(selectinload(Booking.job).selectinload(Job.items))
        )
        if for_update:
            # refresh any identity-mapped copy with the locked row
            q = q.with_for_update().execution_options(populate_existing=True)
        res = await db.execute(q)
        booking = res.scalars().first()
        if booking is None:
            raise BookingNotFoundError(booking_id)
        if booking.job is None:
            raise LinkedJobNotFoundError(booking_id)
        return booking

    @staticmethod
    def _ensure_active(booking: Booking, action: str) -> None:
        if booking.status == BookingStatus.CANCELLED:
            raise BookingCancelledError(f"Cannot {action} a cancelled booking", booking.id)

    @staticmethod
    def _ensure_version(booking: Booking, expected_version: Optional[int]) -> None:
        if expected_version is not None and booking.version != expected_version:
            raise VersionConflictError(
                f"Booking {booking.id} changed since it was reviewed "
                f"(version {booking.version}, expected {expected_version})",
                booking.id,
            )

    def pricing_input_for(self, job: Job) -> PricingInput:
        """Rebuild the engine input from stored job facts only."""
        config = self.engine.config
        distance = job.distance_miles
        if not distance or distance <= 0:
            distance = config.fallback_distance_miles

        items = [
            resolve_item(config, item.name, item.quantity, item.weight_kg, item.volume_m3)
            for item in job.items
        ]
        return PricingInput(
            job_type=job.job_type,
            distance_miles=distance,
            items=items,
            pickup_floor=job.pickup_floor or 0,
            pickup_has_lift=bool(job.pickup_has_lift),
            delivery_floor=job.delivery_floor or 0,
            delivery_has_lift=bool(job.delivery_has_lift),
            requires_packaging=bool(job.needs_packing),
            requires_assembly=bool(job.needs_assembly),
            requires_disassembly=bool(job.needs_disassembly)
            or any(item.requires_dismantling for item in job.items),
            requires_cleaning=bool(job.needs_cleaning),
            insurance_level=job.insurance_level,
            preferred_date=job.move_date,
            requested_at=job.created_at,
        )

    def price_job(self, job: Job) -> PricingResult:
        data = self.pricing_input_for(job)
        config = self.engine.config
        return apply_learning(
            self.engine.calculate(data),
            self.hooks,
            data,
            spread=config.range_spread,
            step=config.range_step,
        )

    async def recompute(self, db: AsyncSession, booking_id: int) -> RepricePreview:
        booking = await self._load_booking(db, booking_id)
        self._ensure_active(booking, "reprice")

        result = self.price_job(booking.job)
        return RepricePreview(
            booking_id=booking.id,
            old_price=booking.final_price,
            new_price=result.total_price,
            breakdown=result,
            version=booking.version,
        )

    async def _commit(self, db: AsyncSession, booking_id: int, action: AuditAction) -> None:
        try:
            await db.commit()
        except StaleDataError as e:
            await db.rollback()
            raise VersionConflictError(
                f"Booking {booking_id} was modified by a concurrent action", booking_id
            ) from e
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"{action} for booking {booking_id} rolled back: {e}")
            raise AuditWriteError(f"Could not record {action} for booking {booking_id}") from e
        booking_admin_actions.labels(action=str(action)).inc()
        audit_logs_created.labels(action=str(action)).inc()

    async def commit_reprice(
        self,
        db: AsyncSession,
        booking_id: int,
        admin_id: str,
        expected_version: int,
        note: Optional[str] = None,
    ) -> RepriceCommitOut:
        booking = await self._load_booking(db, booking_id, for_update=True)
        self._ensure_active(booking, "reprice")
        self._ensure_version(booking, expected_version)

        result = self.price_job(booking.job)
        old_price = booking.final_price
        new_price = result.total_price
        now = utcnow()

        booking.final_price = new_price
        booking.price_breakdown = result.model_dump(mode="json")
        booking.repriced_at = now
        booking.repriced_by = str(admin_id)
        booking.job.estimated_price = new_price

        entry = await append_audit_entry(
            db,
            booking.id,
            admin_id,
            AuditAction.REPRICE,
            {
                "final_price": {"old": old_price, "new": new_price},
                "breakdown": breakdown_summary(result),
            },
            note=note,
        )
        await self._commit(db, booking_id, AuditAction.REPRICE)
        logger.info(f"Booking {booking_id} repriced by {admin_id}: {old_price} -> {new_price}")

        return RepriceCommitOut(
            booking_id=booking.id,
            old_price=old_price,
            new_price=new_price,
            breakdown=result,
            version=booking.version,
            audit_log_id=entry.id,
        )

    async def edit_booking(
        self,
        db: AsyncSession,
        booking_id: int,
        admin_id: str,
        changes: BookingUpdate,
    ) -> Booking:
        booking = await self._load_booking(db, booking_id, for_update=True)
        self._ensure_active(booking, "edit")
        self._ensure_version(booking, changes.expected_version)

        updates = changes.model_dump(exclude_unset=True, exclude={"items", "expected_version"})
        if not updates and changes.items is None:
            raise NoChangesError("No fields to update")

        job = booking.job
        diff: Dict[str, Dict[str, Any]] = {}
        for field in JOB_FIELDS:
            if field not in updates:
                continue
            new_value = updates[field]
            old_value = getattr(job, field)
            if old_value == new_value:
                continue
            diff[field] = {"old": _jsonable(old_value), "new": _jsonable(new_value)}
            setattr(job, field, new_value)

        if changes.items is not None:
            submitted = [item.model_dump() for item in changes.items]
            stored = [{field: getattr(i, field) for field in ITEM_FIELDS} for i in job.items]
            if stored != submitted:
                diff["items"] = {
                    "old": [_item_summary(i["name"], i["quantity"], i["category"]) for i in stored],
                    "new": [_item_summary(i["name"], i["quantity"], i["category"]) for i in submitted],
                }
                # replace strategy: the old rows are deleted as orphans
                job.items = [JobItem(**item) for item in submitted]

        if not diff:
            raise NoChangesError("Submitted values match the stored booking")

        # the booking row carries the version even when only job fields change
        booking.updated_at = utcnow()
        await append_audit_entry(db, booking.id, admin_id, AuditAction.EDIT, diff)
        await self._commit(db, booking_id, AuditAction.EDIT)
        logger.info(f"Booking {booking_id} edited by {admin_id}: {sorted(diff)}")
        return booking

    async def cancel_booking(
        self,
        db: AsyncSession,
        booking_id: int,
        admin_id: str,
        reason: str,
    ) -> Booking:
        reason = (reason or "").strip()
        if len(reason) < MIN_CANCEL_REASON_LENGTH:
            raise InvalidCancellationReasonError(
                f"A cancellation reason is required (minimum {MIN_CANCEL_REASON_LENGTH} characters)"
            )

        booking = await self._load_booking(db, booking_id, for_update=True)
        if booking.status == BookingStatus.CANCELLED:
            raise BookingCancelledError("Booking is already cancelled", booking.id)

        old_status = booking.status
        now = utcnow()
        booking.status = BookingStatus.CANCELLED
        booking.cancelled_at = now
        booking.cancelled_reason = reason
        booking.job.status = JobStatus.CANCELLED

        await append_audit_entry(
            db,
            booking.id,
            admin_id,
            AuditAction.CANCEL,
            {"status": {"old": _jsonable(old_status), "new": BookingStatus.CANCELLED.value}},
            note=reason,
        )
        await self._commit(db, booking_id, AuditAction.CANCEL)
        logger.info(f"Booking {booking_id} cancelled by {admin_id}")

        self.hooks.record_outcome(QuoteOutcome(
            job_id=booking.job_id,
            quoted_price=booking.final_price,
            accepted=True,
            completed=False,
        ))
        return booking

    async def list_audit_entries(self, db: AsyncSession, booking_id: int) -> List[AdminAuditLog]:
        res = await db.execute(select(Booking.id).where(Booking.id == booking_id))
        if res.scalar() is None:
            raise BookingNotFoundError(booking_id)

        res = await db.execute(
            select(AdminAuditLog)
            .where(AdminAuditLog.booking_id == booking_id)
            .order_by(AdminAuditLog.created_at, AdminAuditLog.id)
        )
        return list(res.scalars().all())
