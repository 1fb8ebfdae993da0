"""
Rate limiting using slowapi.

Public endpoints (link validation, session start, submission) are the
ones reachable without a token, so they carry their own tighter limits.
"""
import logging
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from secure_upload.config import settings
from secure_upload.core.logging_utils import get_request_id, sanitize_log_message

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """
    Get client IP address from request.
    Handles X-Forwarded-For header for proxied requests.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # First entry is the original client
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    enabled=settings.RATE_LIMIT_ENABLED
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(
        sanitize_log_message(
            "Rate limit exceeded",
            RequestID=get_request_id(request),
            Path=request.url.path,
            IP=get_client_ip(request),
            Limit=str(exc.detail),
        )
    )
    return JSONResponse(
        status_code=429,
        content={"success": False, "error": f"Rate limit exceeded: {exc.detail}"},
    )


def setup_rate_limiting(app: FastAPI) -> None:
    """
    Configure rate limiting for the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    # Decorated endpoints look the limiter up on app.state even when disabled
    app.state.limiter = limiter

    if not settings.RATE_LIMIT_ENABLED:
        logger.info("Rate limiting is disabled")
        return

    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    logger.info(
        f"Rate limiting enabled: default={settings.RATE_LIMIT_DEFAULT}, "
        f"public={settings.RATE_LIMIT_PUBLIC}, submit={settings.RATE_LIMIT_SUBMIT}"
    )


def rate_limit_public():
    """Rate limit decorator for unauthenticated link and session endpoints."""
    return limiter.limit(settings.RATE_LIMIT_PUBLIC)


def rate_limit_submit():
    """Rate limit decorator for submissions."""
    return limiter.limit(settings.RATE_LIMIT_SUBMIT)
