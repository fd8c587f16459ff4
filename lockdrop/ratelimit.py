"""
Rate limiting for the drop API.

Fixed-window counters keyed by client address, kept in process memory
(reset on restart). Limits are shared scopes rather than per-route
counters: every endpoint draws from the same per-address ``general``
budget, and creation, password verification and admin login also draw from
one ``sensitive`` budget. Routes opt in with ``limit_general`` or
``limit_sensitive``; anything undecorated (the health check) is unlimited.
"""

import logging
import math
import os
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .utils import parse_time

logger = logging.getLogger(__name__)

GENERAL_RATE_LIMIT = int(os.getenv("GENERAL_RATE_LIMIT", "100"))
SENSITIVE_RATE_LIMIT = int(os.getenv("SENSITIVE_RATE_LIMIT", "10"))
RATE_LIMIT_WINDOW = parse_time(os.getenv("RATE_LIMIT_WINDOW", "15m"))

RATE_GENERAL = f"{GENERAL_RATE_LIMIT}/{RATE_LIMIT_WINDOW} seconds"
RATE_SENSITIVE = f"{SENSITIVE_RATE_LIMIT}/{RATE_LIMIT_WINDOW} seconds"

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    strategy="fixed-window",
)

general_limit = limiter.shared_limit(RATE_GENERAL, scope="general")
sensitive_limit = limiter.shared_limit(RATE_SENSITIVE, scope="sensitive")

_clock = time.time


def limit_general(func):
    """Count an endpoint against the per-address general budget (it must take ``request``)."""
    return general_limit(func)


def limit_sensitive(func):
    """Apply the brute-force budget on top of the general one."""
    return general_limit(sensitive_limit(func))


def seconds_until_reset(request: Request) -> int:
    """Time left in the window of the limit that was hit."""
    current = getattr(request.state, "view_rate_limit", None)
    if not current:
        return RATE_LIMIT_WINDOW
    item, args = current
    reset_time, _ = limiter.limiter.get_window_stats(item, *args)
    return max(1, math.ceil(reset_time - _clock()))


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Uniform throttling response with retry guidance."""
    retry_after = seconds_until_reset(request)
    logger.warning(
        "Rate limit exceeded: %s on %s %s (%s)",
        get_remote_address(request),
        request.method,
        request.url.path,
        exc.detail,
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limited",
            "detail": "Too many attempts. Please try again later.",
            "retry_after": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )
