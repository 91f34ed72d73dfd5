"""Error taxonomy shared by pricing and the booking lifecycle.

Every error carries a stable ``code`` and, where one input is to blame, the ``field``
that caused it, so callers can point at quantity / coupon / reason instead of showing a
generic failure.
"""


class BookingError(Exception):
    code = "booking_error"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        return {"code": self.code, "detail": self.message, "field": self.field}


class ValidationError(BookingError):
    """Bad input shape or range. Never retried automatically."""

    code = "validation_error"


class CapacityError(BookingError):
    """Requested quantity exceeds the offering's last known slot count; re-quote."""

    code = "slot_exceeded"


class InvalidTransition(BookingError):
    """State machine guard failed. Recoverable: refresh and retry the intended action."""

    code = "invalid_transition"


class UnresolvableReference(ValidationError):
    """A referenced coupon or catalog item does not exist."""

    code = "unresolvable_reference"


class NotAuthorized(BookingError):
    code = "not_authorized"


class NotFound(BookingError):
    code = "not_found"


class BookingNumberUnavailable(BookingError):
    """No free booking number after the retry budget. Transient: retry the create."""

    code = "booking_number_unavailable"
