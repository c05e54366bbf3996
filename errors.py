class BookingError(Exception):
    """
    Base class for every error the booking core raises on purpose.
    status_code is the HTTP status the API layer answers with, code is a
    stable machine-readable identifier.
    """

    status_code = 400
    code = "booking_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code


class ValidationError(BookingError):
    status_code = 422
    code = "validation_error"


class Unauthenticated(BookingError):
    status_code = 401
    code = "unauthenticated"


class Forbidden(BookingError):
    status_code = 403
    code = "forbidden"


class NotFound(BookingError):
    status_code = 404
    code = "not_found"


class BookingNotFound(NotFound):
    code = "booking_not_found"


class PaymentNotFound(NotFound):
    code = "payment_not_found"


class ItemNotFound(NotFound):
    code = "item_not_found"


class ItemUnavailable(BookingError):
    code = "item_unavailable"


class InvalidTransition(BookingError):
    status_code = 409
    code = "invalid_transition"

    def __init__(self, current: str, target: str, message: str = ""):
        super().__init__(message or f"Invalid booking status transition: {current} -> {target}")
        self.current = current
        self.target = target


class InvalidSignature(BookingError):
    code = "invalid_signature"


class MalformedPayload(BookingError):
    code = "malformed_payload"


class GatewayRejected(BookingError):
    """Provider refused the request (4xx). Not retryable without changing input."""

    code = "gateway_rejected"


class GatewayUnavailable(BookingError):
    """Network error, timeout or provider 5xx. Safe for the caller to retry."""

    status_code = 503
    code = "gateway_unavailable"


class StoreError(BookingError):
    status_code = 500
    code = "store_error"


class ReferenceCollision(StoreError):
    """A candidate booking reference hit the store's uniqueness constraint."""

    code = "reference_collision"

    def __init__(self, reference: str):
        super().__init__(f"Booking reference {reference} already exists")
        self.reference = reference


class ReferenceExhausted(BookingError):
    status_code = 500
    code = "reference_exhausted"
