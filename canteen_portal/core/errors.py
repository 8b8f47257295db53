"""
Canteen Portal — Error taxonomy

Every business-rule failure raised below the API layer is one of these.
The handlers registered in main.py turn them into {"message": ...} bodies.
"""


class CanteenError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ── Base classes (HTTP mapping) ───────────────────────────────────────────────

class ValidationError(CanteenError):
    status_code = 400
    default_message = "Invalid request"


class AuthError(CanteenError):
    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(CanteenError):
    status_code = 403
    default_message = "Access denied. Insufficient permissions."


class NotFoundError(CanteenError):
    status_code = 404
    default_message = "Not found"


class ConflictError(CanteenError):
    status_code = 400
    default_message = "Request conflicts with current state"


class GatewayError(CanteenError):
    status_code = 502
    default_message = "Payment gateway error"


class GatewayTimeout(GatewayError):
    status_code = 504
    default_message = "Payment gateway did not respond in time"


class GatewayUnavailable(GatewayError):
    status_code = 503
    default_message = "Payment gateway unreachable"


class InternalError(CanteenError):
    pass


# ── Orders ────────────────────────────────────────────────────────────────────

class NotAvailable(ConflictError):
    pass


class InsufficientStock(ConflictError):
    pass


class InvalidTransition(ConflictError):
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f'Cannot change status from "{current}" to "{requested}"')


class ConcurrentModification(ConflictError):
    default_message = "Record was modified by another request. Please retry."


class CannotCancel(ConflictError):
    pass


class OrderNotFound(NotFoundError):
    default_message = "Order not found"


# ── Payments ──────────────────────────────────────────────────────────────────

class AlreadyProcessed(ConflictError):
    default_message = "Order is already paid or cancelled"


class InvalidSignature(ValidationError):
    default_message = "Invalid payment signature"


# ── Pickup verification ───────────────────────────────────────────────────────

class MalformedQR(ValidationError):
    default_message = "Invalid QR code format"


class QRVerificationFailed(ValidationError):
    default_message = "QR code verification failed"


class NotPaid(ConflictError):
    default_message = "Order is not paid"


class AlreadyServed(ConflictError):
    default_message = "Order is already served"
