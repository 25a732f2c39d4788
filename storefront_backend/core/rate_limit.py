"""
Rate Limiting

SlowAPI, in-memory (single instance). Every delivery and shipment endpoint
spends the same partner API quota, so they draw from one shared per-client
budget (RATE_LIMIT_DELIVERY) instead of a limit per route.
"""
import logging
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse

from storefront_backend.core.config import settings

logger = logging.getLogger(__name__)

PARTNER_QUOTA_SCOPE = "delivery-partner"
DEFAULT_RETRY_AFTER_SECONDS = 60


def get_client_ip(request: Request) -> str:
    """Client IP behind the storefront proxy (leftmost X-Forwarded-For, then X-Real-IP)."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_ip,
    enabled=settings.RATE_LIMIT_ENABLED,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
)


def partner_quota():
    """Decorator for routes that call the delivery partner."""
    return limiter.shared_limit(settings.RATE_LIMIT_DELIVERY, scope=PARTNER_QUOTA_SCOPE)


def _retry_after_seconds(exc: RateLimitExceeded) -> int:
    item = getattr(getattr(exc, "limit", None), "limit", None)
    if item is None:
        return DEFAULT_RETRY_AFTER_SECONDS
    return int(item.get_expiry())


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the same {success, error} shape as the delivery endpoints."""
    retry_after = _retry_after_seconds(exc)
    logger.warning(f"[RATE_LIMIT] {get_client_ip(request)} on {request.url.path}: {exc.detail}")

    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error": "rate_limit_exceeded",
            "message": f"Too many delivery requests. Please try again in {retry_after} seconds.",
            "retry_after": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )
