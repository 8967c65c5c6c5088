"""
Error handling and sanitization

- Domain errors (NexusMartError) → their HTTP status with {success: false, message, code}
- HTTPException and request validation (422) → same envelope, so the storefront only parses one shape
- Database errors / stack traces → logged only, generic 500 returned to client
"""
import logging
import traceback
from typing import Union

from fastapi import Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.exceptions import NexusMartError

logger = logging.getLogger(__name__)

# Patterns that indicate internal/sensitive error information
SENSITIVE_PATTERNS = [
    "password",
    "secret",
    "token",
    "key",
    "credential",
    "sqlalchemy",
    "asyncpg",
    "aiosqlite",
    "postgresql",
    "sqlite",
    "traceback",
    "file \"",
    "line ",
    "/app/",
    "\\app\\",
]

GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


def is_sensitive_error(message: str) -> bool:
    """Check if error message contains sensitive information."""
    message_lower = message.lower()
    return any(pattern in message_lower for pattern in SENSITIVE_PATTERNS)


def sanitize_error_message(error: Union[str, Exception]) -> str:
    """
    Sanitize an error message for safe client exposure.

    Args:
        error: The error string or exception

    Returns:
        Sanitized error message safe for client
    """
    message = error if isinstance(error, str) else str(error)

    # In debug mode, return full message
    if settings.DEBUG:
        return message

    if is_sensitive_error(message):
        return "An internal error occurred. Please try again later."

    # Truncate very long messages
    if len(message) > 200:
        return message[:200] + "..."

    return message


def error_response(status_code: int, message: str, code: str, headers=None, errors=None) -> JSONResponse:
    content = {"success": False, "message": message, "code": code}
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def domain_error_handler(request: Request, exc: NexusMartError) -> JSONResponse:
    """Translate domain errors into the API error envelope."""
    log = logger.warning if exc.status_code >= 500 else logger.info
    log(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return error_response(exc.status_code, exc.message, exc.code)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render HTTPException (auth failures, admin checks) in the same envelope."""
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
    # Client errors carry messages written for the client
    if exc.status_code >= 500:
        detail = sanitize_error_message(detail)
    return error_response(
        exc.status_code,
        detail,
        f"HTTP_{exc.status_code}",
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation failures in the envelope, naming the first bad field."""
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    if errors and errors[0]["field"]:
        message = f"{errors[0]['field']}: {errors[0]['message']}"
    elif errors:
        message = errors[0]["message"]
    else:
        message = "Invalid request"
    logger.info(f"VALIDATION_ERROR on {request.method} {request.url.path}: {message}")
    return error_response(422, message, "VALIDATION_ERROR", errors=errors)


class ErrorSanitizationMiddleware(BaseHTTPMiddleware):
    """
    Middleware to catch unhandled exceptions and sanitize error responses.

    - In production: Returns generic error, logs full details
    - In development: Returns full error for debugging
    """

    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except HTTPException:
            # Let FastAPI handle HTTPExceptions normally
            raise
        except Exception as e:
            error_id = f"{request.client.host if request.client else 'unknown'}-{id(e)}"
            logger.error(
                f"Unhandled exception [{error_id}]: {type(e).__name__}: {str(e)}\n"
                f"Path: {request.url.path}\n"
                f"Method: {request.method}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )

            content = {
                "success": False,
                "message": GENERIC_ERROR_MESSAGE,
                "code": "INTERNAL_ERROR",
                "error_id": error_id,
            }
            if settings.DEBUG:
                content["message"] = str(e)
                content["type"] = type(e).__name__
            return JSONResponse(status_code=500, content=content)
