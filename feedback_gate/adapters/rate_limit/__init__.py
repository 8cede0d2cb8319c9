"""Rate limiting adapters.

An in-memory fixed-window limiter behind a small interface, so a shared store
can replace it without changing the API layer.
"""

from feedback_gate.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitDecision,
    RateLimitEntry,
)
from feedback_gate.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemoryFixedWindowRateLimiter",
    "RateLimitConfig",
    "RateLimitDecision",
    "RateLimitEntry",
]
