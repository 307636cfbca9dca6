"""Administrative reprice, edit and cancel endpoints for committed bookings"""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.core.config import settings
from app.core.exceptions import (
    AuditWriteError,
    BookingNotFoundError,
    InvalidCancellationReasonError,
    LinkedJobNotFoundError,
    NoChangesError,
    PricingServiceError,
    RepriceConflictError,
)
from app.core.security import AdminPrincipal, require_admin
from app.schemas.booking import (
    AuditLogOut,
    BookingOut,
    BookingUpdate,
    CancelIn,
    CancelOut,
    RepriceCommitIn,
    RepriceCommitOut,
    RepricePreview,
)
from app.services.pricing import PricingEngine
from app.services.rates import get_rate_config
from app.services.reprice import RepriceService
from app.services.tasks import BOOKING_CANCELLED, PRICE_CHANGED, enqueue_booking_event

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin/bookings", tags=["admin-bookings"])


def get_reprice_service() -> RepriceService:
    engine = PricingEngine(get_rate_config(settings.PRICING_PROFILE), include_vat=settings.ENABLE_VAT)
    return RepriceService(engine)


def _conflict(e: RepriceConflictError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(e), "code": e.code},
    )


def _to_http(e: PricingServiceError) -> HTTPException:
    if isinstance(e, (BookingNotFoundError, LinkedJobNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (InvalidCancellationReasonError, NoChangesError)):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, AuditWriteError):
        return HTTPException(status_code=500, detail="Could not record the change, nothing was saved")
    logger.error(f"Unmapped pricing service error: {e}")
    return HTTPException(status_code=500, detail="Internal error")


@router.get("/{booking_id}/reprice", response_model=RepricePreview)
async def preview_reprice(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    admin: AdminPrincipal = Depends(require_admin),
    service: RepriceService = Depends(get_reprice_service),
):
    try:
        return await service.recompute(db, booking_id)
    except RepriceConflictError as e:
        return _conflict(e)
    except PricingServiceError as e:
        raise _to_http(e)


@router.post("/{booking_id}/reprice", response_model=RepriceCommitOut)
async def commit_reprice(
    booking_id: int,
    body: RepriceCommitIn,
    db: AsyncSession = Depends(get_db),
    admin: AdminPrincipal = Depends(require_admin),
    service: RepriceService = Depends(get_reprice_service),
):
    if not body.confirm:
        raise HTTPException(status_code=400, detail="Reprice must be confirmed (confirm=true)")

    try:
        result = await service.commit_reprice(
            db, booking_id, admin.user_id, body.expected_version, note=body.note
        )
    except RepriceConflictError as e:
        return _conflict(e)
    except PricingServiceError as e:
        raise _to_http(e)

    if result.old_price != result.new_price:
        enqueue_booking_event(
            PRICE_CHANGED, booking_id,
            old_price=result.old_price, new_price=result.new_price, version=result.version,
        )
    return result


@router.patch("/{booking_id}", response_model=BookingOut)
async def edit_booking(
    booking_id: int,
    body: BookingUpdate,
    db: AsyncSession = Depends(get_db),
    admin: AdminPrincipal = Depends(require_admin),
    service: RepriceService = Depends(get_reprice_service),
):
    try:
        booking = await service.edit_booking(db, booking_id, admin.user_id, body)
    except RepriceConflictError as e:
        return _conflict(e)
    except PricingServiceError as e:
        raise _to_http(e)
    return BookingOut.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=CancelOut)
async def cancel_booking(
    booking_id: int,
    body: CancelIn,
    db: AsyncSession = Depends(get_db),
    admin: AdminPrincipal = Depends(require_admin),
    service: RepriceService = Depends(get_reprice_service),
):
    try:
        booking = await service.cancel_booking(db, booking_id, admin.user_id, body.reason)
    except RepriceConflictError as e:
        return _conflict(e)
    except PricingServiceError as e:
        raise _to_http(e)

    enqueue_booking_event(BOOKING_CANCELLED, booking_id, reason=booking.cancelled_reason)
    return CancelOut(
        booking_id=booking.id,
        status=booking.status,
        cancelled_at=booking.cancelled_at,
        cancelled_reason=booking.cancelled_reason,
        version=booking.version,
    )


@router.get("/{booking_id}/audit", response_model=List[AuditLogOut])
async def list_audit(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    admin: AdminPrincipal = Depends(require_admin),
    service: RepriceService = Depends(get_reprice_service),
):
    try:
        return await service.list_audit_entries(db, booking_id)
    except PricingServiceError as e:
        raise _to_http(e)
