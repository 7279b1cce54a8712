"""Error types raised by the ordering context.

Domain rule violations reuse Protean's ``ValidationError`` so they carry
field-level messages; the subclasses here only add a machine-readable code
that the API layer surfaces alongside the HTTP status.
"""

from protean.exceptions import ValidationError


class InvalidTransitionError(ValidationError):
    code = "INVALID_TRANSITION"


class InsufficientStockError(ValidationError):
    code = "INSUFFICIENT_STOCK"


class ConflictError(Exception):
    code = "CONFLICT"


class UnauthorizedError(Exception):
    code = "UNAUTHORIZED"


class ForbiddenError(Exception):
    code = "FORBIDDEN"


class PaymentGatewayError(Exception):
    """The payment processor call failed or returned an unusable answer."""

    code = "PAYMENT_GATEWAY_ERROR"
    status_code = 502

    def __init__(self, message: str, processor_code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.processor_code = processor_code


class PaymentDeclinedError(PaymentGatewayError):
    code = "PAYMENT_DECLINED"
    status_code = 402


class InvalidSignatureError(Exception):
    code = "INVALID_SIGNATURE"
