"""
Rate limiting for the subscription service.
Per-user limits on state-changing routes via slowapi, keyed by the authenticated
user and falling back to the client address.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from ..config.settings import get_settings
from .exceptions import RateLimitError

logger = logging.getLogger(__name__)


def rate_limit_key(request: Request) -> str:
    """Authenticated user id, or the client address for anonymous calls."""
    user_id = getattr(request.state, "user_id", None)
    return f"user:{user_id}" if user_id else get_remote_address(request)


def mutation_limit() -> str:
    return get_settings().RATE_LIMIT_MUTATIONS


def payment_retry_limit() -> str:
    return get_settings().RATE_LIMIT_PAYMENT_RETRY


def _build_limiter() -> Limiter:
    settings = get_settings()
    return Limiter(
        key_func=rate_limit_key,
        enabled=settings.RATE_LIMIT_ENABLED,
        storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    )


limiter = _build_limiter()


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Render slowapi's rejection in the standard error envelope."""
    logger.warning(f"Rate limit exceeded for {rate_limit_key(request)} on {request.url.path}: {exc.detail}")
    error = RateLimitError(
        "Too many requests, please slow down",
        limit=str(exc.detail),
    )
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_dict(getattr(request.state, "request_id", None)),
        headers={"Retry-After": "60"},
    )
