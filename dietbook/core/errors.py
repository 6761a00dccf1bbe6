"""Error types raised by the scheduling core.

Every failure the core surfaces is one of the classes below. Callers map
them to transport responses through ``ERROR_STATUS_CODES`` rather than by
inspecting messages.
"""


class SchedulingError(Exception):
    """Base class for all scheduling failures."""

    code = 'scheduling_error'

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {'error': self.message, 'code': self.code}


class ValidationError(SchedulingError):
    """Malformed or logically inconsistent input."""

    code = 'validation_error'


class InvalidTimezone(ValidationError):
    code = 'invalid_timezone'


class InvalidDate(ValidationError):
    code = 'invalid_date'


class NotFoundError(SchedulingError):
    code = 'not_found'


class ForbiddenError(SchedulingError):
    code = 'forbidden'


class InvalidTransition(SchedulingError):
    """The requested status change is not allowed from the stored status."""

    code = 'invalid_transition'

    def __init__(self, message: str, current_status: str | None = None) -> None:
        super().__init__(message)
        self.current_status = current_status

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload['currentStatus'] = self.current_status
        return payload


class SlotNoLongerAvailable(SchedulingError):
    """Approval lost the slot to a booking committed after generation."""

    code = 'slot_no_longer_available'


class TransientStorageError(SchedulingError):
    """Storage was unreachable or timed out. Safe to retry."""

    code = 'storage_unavailable'


ERROR_STATUS_CODES: dict[type[SchedulingError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    ForbiddenError: 403,
    InvalidTransition: 409,
    SlotNoLongerAvailable: 409,
    TransientStorageError: 503,
}


def status_code_for(exc: SchedulingError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_type]
    return 500
