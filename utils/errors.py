class BookingError(Exception):
    """Base class for every business or storage outcome the engine reports."""

    status_code = 400
    code = "BOOKING_ERROR"

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self):
        out = {"error": self.message, "code": self.code}
        if self.details:
            out["details"] = self.details
        return out


class ValidationError(BookingError):
    status_code = 400
    code = "VALIDATION"


class NotFound(BookingError):
    status_code = 404
    code = "NOT_FOUND"


class Conflict(BookingError):
    status_code = 409
    code = "CONFLICT"


class InvalidTransition(BookingError):
    status_code = 409
    code = "INVALID_TRANSITION"


class StorageFailure(BookingError):
    """Transaction could not commit. Safe to retry the whole operation."""

    status_code = 503
    code = "STORAGE_FAILURE"


class ConstraintViolation(BookingError):
    status_code = 422
    code = "CONSTRAINT_VIOLATION"
