"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: checks and sweeps share one lock around the entry table.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from feedback_gate.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitConfig,
    RateLimitDecision,
    RateLimitEntry,
)

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL_SECONDS = 5 * 60


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests per identifier in a fixed window.

    A window opens on the first request from an identifier and lasts
    ``window_ms``; once its reset time has passed, the next request opens a
    fresh window. Expired entries are dropped by :meth:`sweep_expired`,
    either on demand or from the background sweeper thread.

    Important:
        This limiter is per-process only. If the API runs with multiple
        workers, each worker enforces its own independent limits.
    """

    def __init__(
        self,
        *,
        default_config: RateLimitConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            default_config: Limits used when a check passes no config.
            clock: Time source function returning UNIX time in seconds.
        """
        self._default_config = default_config or RateLimitConfig()
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, RateLimitEntry] = {}
        self._sweeper: threading.Thread | None = None
        self._stop_sweeper = threading.Event()

    @property
    def default_config(self) -> RateLimitConfig:
        return self._default_config

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def check_rate_limit(
        self, identifier: str, config: RateLimitConfig | None = None
    ) -> RateLimitDecision:
        """Count one request for identifier within its current window.

        Args:
            identifier: Opaque client key.
            config: Limits to apply; the limiter's default when omitted.

        Returns:
            RateLimitDecision with allowance, remaining budget and reset time.
        """
        cfg = config or self._default_config
        now = self.now_ms()

        with self._lock:
            entry = self._entries.get(identifier)

            if entry is None or entry.reset_time < now:
                entry = RateLimitEntry(count=1, reset_time=now + cfg.window_ms)
                self._entries[identifier] = entry
                return RateLimitDecision(
                    allowed=True,
                    remaining=cfg.max_requests - 1,
                    reset_time=entry.reset_time,
                    limit=cfg.max_requests,
                )

            if entry.count >= cfg.max_requests:
                return RateLimitDecision(
                    allowed=False,
                    remaining=0,
                    reset_time=entry.reset_time,
                    limit=cfg.max_requests,
                )

            entry.count += 1
            return RateLimitDecision(
                allowed=True,
                remaining=cfg.max_requests - entry.count,
                reset_time=entry.reset_time,
                limit=cfg.max_requests,
            )

    def sweep_expired(self) -> int:
        now = self.now_ms()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.reset_time < now]
            for key in expired:
                del self._entries[key]
            remaining = len(self._entries)

        if expired:
            logger.debug(
                "rate_limit.swept",
                extra={"removed": len(expired), "entries": remaining},
            )
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def start_sweeper(self, interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS) -> None:
        """Start a daemon thread that sweeps expired entries periodically.

        Calling this while a sweeper is already running does nothing.

        Args:
            interval_seconds: Delay between sweeps.

        Raises:
            ValueError: If interval_seconds is not positive.
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        if self.sweeper_running:
            return

        self._stop_sweeper.clear()
        self._sweeper = threading.Thread(
            target=self._run_sweeper,
            args=(interval_seconds,),
            name="rate-limit-sweeper",
            daemon=True,
        )
        self._sweeper.start()
        logger.info("rate_limit.sweeper_started", extra={"interval_s": interval_seconds})

    def stop_sweeper(self, timeout: float | None = 5.0) -> None:
        """Signal the sweeper thread to exit and wait for it."""
        sweeper = self._sweeper
        if sweeper is None:
            return
        self._stop_sweeper.set()
        sweeper.join(timeout)
        self._sweeper = None
        logger.info("rate_limit.sweeper_stopped")

    def _run_sweeper(self, interval_seconds: float) -> None:
        while not self._stop_sweeper.wait(interval_seconds):
            try:
                self.sweep_expired()
            except Exception:
                logger.exception("rate_limit.sweep_failed")
