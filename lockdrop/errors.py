"""
Error taxonomy for the drop API.

Every failure the access controller can report is a ``DropError`` carrying
an HTTP status and a stable machine-readable ``error`` code. The handlers at
the bottom turn them into JSON responses; internal failures are logged and
collapsed to a generic message.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from .ratelimit import rate_limit_exceeded_handler

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error."


class DropError(Exception):
    """Base exception for drop-specific errors."""

    status_code = 500
    error_code = "internal_error"
    default_message = INTERNAL_ERROR_MESSAGE

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(DropError):
    status_code = 400
    error_code = "validation_error"
    default_message = "Invalid input."


class StorageRejected(DropError):
    """Upload refused: disallowed extension or over the size ceiling."""
    status_code = 400
    error_code = "storage_rejected"
    default_message = "File rejected."


class NotFound(DropError):
    status_code = 404
    error_code = "not_found"
    default_message = "Short URL not found."


class NoFileAttached(DropError):
    status_code = 404
    error_code = "no_file_attached"
    default_message = "No file attached to this URL."


class WrongPassword(DropError):
    status_code = 401
    error_code = "wrong_password"
    default_message = "Incorrect password."


class InvalidCredentials(DropError):
    status_code = 401
    error_code = "invalid_credentials"
    default_message = "Invalid credentials."


class Unauthorized(DropError):
    status_code = 401
    error_code = "unauthorized"
    default_message = "Authentication required."


class PersistenceError(DropError):
    """Store or disk failure. The message is logged, never sent to clients."""
    status_code = 500
    error_code = "internal_error"


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

async def drop_error_handler(request: Request, exc: DropError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.error_code, request.method, request.url.path, exc.message,
                     exc_info=exc)
        detail = INTERNAL_ERROR_MESSAGE
    else:
        detail = exc.message
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error_code, "detail": detail},
        headers=headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and query strings are reported like any other validation failure."""
    errors = exc.errors()
    message = "Invalid input."
    if errors:
        field = ".".join(str(part) for part in errors[0].get("loc", ())[1:])
        message = f"Invalid value for '{field}'." if field else message
    return JSONResponse(status_code=400, content={"error": "validation_error", "detail": message})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "internal_error", "detail": INTERNAL_ERROR_MESSAGE})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DropError, drop_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
