"""
Booking domain errors.

Every rule violation in the tray engine raises one of these. They subclass
ValueError so callers that only care about "the request was rejected" can
keep catching ValueError, while callers that need to react differently
(e.g. re-run allocation on TrayConflict) can catch the specific class.
"""


class BookingError(ValueError):
    """Base class for booking rule violations."""

    code = 'booking_error'
    status = 400

    def __init__(self, message: str = None, **details):
        super().__init__(message or self.__class__.__doc__)
        self.details = details

    def to_dict(self) -> dict:
        payload = {'code': self.code, 'error': str(self)}
        if self.details:
            payload['details'] = self.details
        return payload


class DateClosed(BookingError):
    """Orders are not accepted on this date."""

    code = 'date_closed'


class BelowMinimumThreshold(BookingError):
    """Minimum tray requirement for this day is not met."""

    code = 'below_minimum_threshold'


class InsufficientCapacity(BookingError):
    """Not enough free trays on this date."""

    code = 'insufficient_capacity'
    status = 409


class InvalidSelection(BookingError):
    """Selected trays are not available."""

    code = 'invalid_selection'


class TrayLimitExceeded(BookingError):
    """Too many trays requested for a single booking."""

    code = 'tray_limit_exceeded'


class TrayConflict(BookingError):
    """Trays were claimed by another booking."""

    code = 'tray_conflict'
    status = 409


class InvalidTransition(BookingError):
    """Reservation status change is not allowed."""

    code = 'invalid_transition'
    status = 409


class NotFound(BookingError):
    """Record not found."""

    code = 'not_found'
    status = 404


class Unauthorized(BookingError):
    """Reservation belongs to another customer."""

    code = 'unauthorized'
    status = 403


class StorageUnavailable(Exception):
    """Database stayed locked after all retry attempts."""

    code = 'storage_unavailable'
    status = 503
