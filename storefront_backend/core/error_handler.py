"""
Error handling and sanitization

- Shipping errors that escape a route → structured JSON with a fitting status
- Unhandled exceptions → generic 500, full details logged (and returned only in DEBUG)
- Partner payloads and credentials never reach the client
"""
import logging
import traceback
from typing import Union

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from storefront_backend.core.config import settings
from storefront_backend.core.exceptions import (
    InvalidInputError,
    PartnerConfigurationError,
    PartnerTimeoutError,
    ShippingError,
)

logger = logging.getLogger(__name__)

# Patterns that indicate internal/sensitive error information
SENSITIVE_PATTERNS = [
    "password",
    "secret",
    "token",
    "authorization",
    "credential",
    "traceback",
    "file \"",
    "line ",
    "/storefront_backend/",
]

GENERIC_MESSAGE = "An internal error occurred. Please try again later."


def is_sensitive_error(message: str) -> bool:
    """Check if error message contains sensitive information."""
    message_lower = message.lower()
    return any(pattern in message_lower for pattern in SENSITIVE_PATTERNS)


def sanitize_error_message(error: Union[str, Exception]) -> str:
    """
    Sanitize an error message for safe client exposure.

    Returns the message unchanged in DEBUG, a generic message when it looks
    sensitive, and a truncated message when it is very long.
    """
    message = error if isinstance(error, str) else str(error)

    if settings.DEBUG:
        return message

    if is_sensitive_error(message):
        return GENERIC_MESSAGE

    if len(message) > 200:
        return message[:200] + "..."

    return message


def status_for_shipping_error(exc: ShippingError) -> int:
    if isinstance(exc, InvalidInputError):
        return 400
    if isinstance(exc, PartnerConfigurationError):
        return 503
    if isinstance(exc, PartnerTimeoutError):
        return 504
    return 502


async def shipping_error_handler(request: Request, exc: ShippingError) -> JSONResponse:
    """Exception handler for ShippingError raised by the delivery routes."""
    status_code = status_for_shipping_error(exc)
    log = logger.warning if status_code < 500 else logger.error
    log(f"[API] {request.method} {request.url.path} -> {status_code} {exc.code}: {exc.message}")

    content = {
        "success": False,
        "error": sanitize_error_message(exc.message),
        "code": exc.code,
        "retryable": exc.retryable,
    }
    if isinstance(exc, InvalidInputError) and exc.field:
        content["field"] = exc.field
    if settings.DEBUG:
        content["details"] = exc.details

    return JSONResponse(status_code=status_code, content=content)


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

            if settings.DEBUG:
                return JSONResponse(
                    status_code=500,
                    content={
                        "success": False,
                        "error": "internal_error",
                        "message": str(e),
                        "type": type(e).__name__,
                        "error_id": error_id,
                    }
                )
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": "internal_error",
                    "message": "An unexpected error occurred. Please try again later.",
                    "error_id": error_id,
                }
            )
