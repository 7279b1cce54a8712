"""Exception handlers rendering the error envelope.

    {"success": false, "message": "...",
     "error": {"code": "...", "message": "...", "details": {...}, "stack": "..."}}

``stack`` is only present when the service runs with ``DEBUG`` enabled.
"""

import traceback

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError

from ordering.config import get_settings
from ordering.errors import (
    ConflictError,
    ForbiddenError,
    InvalidSignatureError,
    PaymentGatewayError,
    UnauthorizedError,
)

logger = structlog.get_logger(__name__)


def _first_message(messages) -> str | None:
    if isinstance(messages, dict):
        for field, value in messages.items():
            first = value[0] if isinstance(value, list | tuple) and value else value
            return f"{field}: {first}"
    if isinstance(messages, list | tuple) and messages:
        return str(messages[0])
    if messages:
        return str(messages)
    return None


def error_response(status_code: int, code: str, message: str, details=None, exc: Exception | None = None):
    error = {"code": code, "message": message}
    if details:
        error["details"] = details
    if exc is not None and get_settings().debug:
        error["stack"] = "".join(traceback.format_exception(exc))
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, "error": error})


async def _validation_error(request: Request, exc: ValidationError):
    messages = getattr(exc, "messages", None)
    code = getattr(exc, "code", "VALIDATION_ERROR")
    return error_response(400, code, _first_message(messages) or "Validation failed", details=messages, exc=exc)


async def _request_validation_error(request: Request, exc: RequestValidationError):
    details = {".".join(str(part) for part in err["loc"]): [err["msg"]] for err in exc.errors()}
    return error_response(400, "VALIDATION_ERROR", _first_message(details) or "Invalid request", details=details)


async def _not_found(request: Request, exc: ObjectNotFoundError):
    messages = getattr(exc, "messages", None)
    return error_response(404, "NOT_FOUND", _first_message(messages) or str(exc) or "Resource not found", exc=exc)


async def _invalid_operation(request: Request, exc: InvalidOperationError):
    messages = getattr(exc, "messages", None)
    return error_response(400, "BAD_REQUEST", _first_message(messages) or str(exc), exc=exc)


async def _conflict(request: Request, exc: ConflictError):
    return error_response(409, exc.code, str(exc), exc=exc)


async def _unauthorized(request: Request, exc: UnauthorizedError):
    return error_response(401, exc.code, str(exc))


async def _forbidden(request: Request, exc: ForbiddenError):
    return error_response(403, exc.code, str(exc))


async def _payment_gateway(request: Request, exc: PaymentGatewayError):
    logger.warning("Payment processor error", code=exc.code, processor_code=exc.processor_code, error=exc.message)
    details = {"processor_code": exc.processor_code} if exc.processor_code else None
    return error_response(exc.status_code, exc.code, exc.message, details=details, exc=exc)


async def _invalid_signature(request: Request, exc: InvalidSignatureError):
    logger.warning("Rejected webhook delivery", path=request.url.path, error=str(exc))
    return error_response(400, exc.code, str(exc))


async def _unhandled(request: Request, exc: Exception):
    logger.exception("Unhandled error", path=request.url.path)
    return error_response(500, "INTERNAL_SERVER_ERROR", "Internal server error", exc=exc)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(RequestValidationError, _request_validation_error)
    app.add_exception_handler(ObjectNotFoundError, _not_found)
    app.add_exception_handler(InvalidOperationError, _invalid_operation)
    app.add_exception_handler(ConflictError, _conflict)
    app.add_exception_handler(UnauthorizedError, _unauthorized)
    app.add_exception_handler(ForbiddenError, _forbidden)
    app.add_exception_handler(PaymentGatewayError, _payment_gateway)
    app.add_exception_handler(InvalidSignatureError, _invalid_signature)
    app.add_exception_handler(Exception, _unhandled)
