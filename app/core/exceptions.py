"""Error taxonomy for the pricing core and the admin booking actions"""
from typing import Optional


class PricingServiceError(Exception):
    pass


class InvalidPricingInputError(PricingServiceError, ValueError):
    pass


class BookingNotFoundError(PricingServiceError):

    def __init__(self, booking_id: int):
        self.booking_id = booking_id
        super().__init__(f"Booking with id {booking_id} not found")


class LinkedJobNotFoundError(PricingServiceError):

    def __init__(self, booking_id: int):
        self.booking_id = booking_id
        super().__init__(f"Linked job for booking {booking_id} not found")


class RepriceConflictError(PricingServiceError):
    """Admin action refused because of the booking's current state."""

    code = "conflict"

    def __init__(self, message: str, booking_id: Optional[int] = None):
        self.booking_id = booking_id
        super().__init__(message)


class BookingCancelledError(RepriceConflictError):
    code = "booking_cancelled"


class VersionConflictError(RepriceConflictError):
    code = "version_conflict"


class InvalidCancellationReasonError(PricingServiceError):
    pass


class NoChangesError(PricingServiceError):
    pass


class AuditWriteError(PricingServiceError):
    pass


class AuditLogImmutableError(PricingServiceError):
    pass
