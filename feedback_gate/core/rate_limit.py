"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on a dependency function only.
- Explicit ownership: the limiter is built once by the app factory and kept
  on ``app.state``, so tests can swap in one driven by a fake clock.
- Swap-friendly: storage backend can be replaced behind an abstract interface.

Rate limiting strategy:
- Fixed-window limit per client, keyed by the first X-Forwarded-For address.
- Requests without that header share a single "unknown" bucket.
"""

from __future__ import annotations

import hashlib
import logging

from fastapi import HTTPException, Request, Response, status

from feedback_gate.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitDecision,
)
from feedback_gate.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from feedback_gate.core.config import AppSettings, settings

logger = logging.getLogger(__name__)

FORWARDED_FOR_HEADER = "x-forwarded-for"
UNKNOWN_CLIENT = "unknown"
RATE_LIMIT_KEY_PREFIX = "ratelimit:"


def build_rate_limiter(app_settings: AppSettings | None = None) -> InMemoryFixedWindowRateLimiter:
    """Create the process-wide limiter from settings."""

    cfg = app_settings or settings.app
    return InMemoryFixedWindowRateLimiter(
        default_config=RateLimitConfig(
            max_requests=cfg.rate_limit_max_requests,
            window_ms=cfg.rate_limit_window_ms,
        )
    )


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """Return the limiter owned by the running application."""

    return request.app.state.rate_limiter


def get_rate_limit_key(request: Request) -> str:
    """Derive the limiter key from the client's forwarded address.

    Only the first (client-most) address of X-Forwarded-For is used. When the
    header is absent or empty every such client shares the "unknown" bucket.

    Args:
        request: Incoming request.

    Returns:
        str: Namespaced key, e.g. ``ratelimit:203.0.113.7``.
    """

    forwarded = request.headers.get(FORWARDED_FOR_HEADER)
    client_ip = forwarded.split(",")[0].strip() if forwarded else ""
    return f"{RATE_LIMIT_KEY_PREFIX}{client_ip or UNKNOWN_CLIENT}"


def _hash_limiter_key(key: str) -> str:
    """Hash the rate limit key for logging without exposing client addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def rate_limit_headers(decision: RateLimitDecision) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_time),
    }


async def enforce_rate_limit(request: Request, response: Response) -> RateLimitDecision | None:
    """FastAPI dependency enforcing the submission rate limit.

    When enabled, counts the request against the caller's window. Allowed
    requests get X-RateLimit-* headers on the response; blocked ones get
    HTTP 429 with Retry-After guidance.

    Args:
        request: FastAPI request.
        response: Response whose headers receive the rate limit state.

    Returns:
        The decision, or None when rate limiting is disabled.

    Raises:
        HTTPException: 429 Too Many Requests when the window is exhausted.
    """

    if not settings.app.rate_limit_enabled:
        return None

    limiter = get_rate_limiter(request)
    key = get_rate_limit_key(request)
    key_hash = _hash_limiter_key(key)
    decision = limiter.check_rate_limit(key)
    include_headers = settings.app.rate_limit_include_headers

    if decision.allowed:
        logger.info(
            "rate_limit.allowed",
            extra={
                "key_hash": key_hash,
                "limit": decision.limit,
                "remaining": decision.remaining,
            },
        )
        if include_headers:
            response.headers.update(rate_limit_headers(decision))
        return decision

    retry_after = decision.retry_after_seconds(limiter.now_ms())
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": key_hash,
            "limit": decision.limit,
            "reset_time": decision.reset_time,
            "retry_after_s": retry_after,
        },
    )

    headers: dict[str, str] = {}
    if include_headers:
        headers["Retry-After"] = str(retry_after)
        headers.update(rate_limit_headers(decision))

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail={
            "error": "Too many submissions. Please wait before submitting again.",
            "retryAfter": retry_after,
        },
        headers=headers or None,
    )
