"""Rate limiter interfaces.

The API depends on this abstraction (not the concrete implementation) so the
in-memory table can later be replaced by a shared store such as Redis.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitConfig:
    """Fixed-window limits applied to one identifier.

    Attributes:
        max_requests: Hard cap of requests per window.
        window_ms: Window length in milliseconds.
    """

    max_requests: int = 5
    window_ms: int = 60_000

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")


@dataclass
class RateLimitEntry:
    """Per-identifier counter for the current window.

    Attributes:
        count: Requests seen in the current window.
        reset_time: UNIX epoch milliseconds at which the window ends.
    """

    count: int
    reset_time: int


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request may proceed.
        remaining: Requests left in the current window (0 when blocked).
        reset_time: UNIX epoch milliseconds when the current window resets.
        limit: Max requests per window that produced this decision.
    """

    allowed: bool
    remaining: int
    reset_time: int
    limit: int

    def retry_after_seconds(self, now_ms: int) -> int:
        """Whole seconds until the window resets, never negative."""
        return max(0, int(math.ceil((self.reset_time - now_ms) / 1000)))


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check_rate_limit(
        self, identifier: str, config: RateLimitConfig | None = None
    ) -> RateLimitDecision:
        """Count one request for identifier and decide whether it is allowed.

        Args:
            identifier: Opaque client key (e.g., ``ratelimit:<ip>``).
            config: Limits to apply; the limiter's default when omitted.

        Returns:
            RateLimitDecision for this request.
        """
        raise NotImplementedError

    @abstractmethod
    def sweep_expired(self) -> int:
        """Drop entries whose window has ended.

        Returns:
            Number of entries removed.
        """
        raise NotImplementedError

    @abstractmethod
    def now_ms(self) -> int:
        """Current time in UNIX epoch milliseconds, per the limiter's clock."""
        raise NotImplementedError
