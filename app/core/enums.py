from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    AGENT = "agent"

    def __str__(self):
        return self.value


class RateProfile(str, Enum):
    STANDARD = "standard"
    COMPETITIVE = "competitive"

    def __str__(self):
        return self.value


class InsuranceLevel(str, Enum):
    BASIC = "basic"
    STANDARD = "standard"
    PREMIUM = "premium"

    def __str__(self):
        return self.value


class JobStatus(str, Enum):
    DRAFT = "draft"
    QUOTED = "quoted"
    BOOKED = "booked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self):
        return self.value


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self):
        return self.value


class AuditAction(str, Enum):
    EDIT = "EDIT"
    REPRICE = "REPRICE"
    CANCEL = "CANCEL"

    def __str__(self):
        return self.value


class ValidationOutcome(str, Enum):
    DISABLED = "disabled"
    OK = "ok"
    INVALID = "invalid"
    HTTP_ERROR = "http_error"
    TIMEOUT = "timeout"
    ERROR = "error"

    def __str__(self):
        return self.value
