# src/mmkrate/shared/rate_limiter.py
"""
Rate Limiter - Fixed-Window Request Counter

Protects the bot (and the document store behind it) from users flooding
chat commands. Each identifier gets a counter per fixed time window; once
the counter reaches the limit, requests are refused until the window rolls.

Files that USE this module:
- mmkrate.adapters.telegram.handlers (uses rate_limiter and RATE_LIMITS for all commands)
- tests.test_rate_limiter (unit tests)

Files that this module USES:
- None (pure utility implementation)
"""
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for rate limiting."""
    max_requests: int
    time_window: int  # in seconds


class RateLimiter:
    """In-memory fixed-window rate limiter."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        # identifier -> (window start, request count)
        self._windows: Dict[str, Tuple[float, int]] = {}

    def _window_start(self, now: float, config: RateLimitConfig) -> float:
        return now - (now % config.time_window)

    def _current(self, identifier: str, config: RateLimitConfig) -> Tuple[float, int]:
        start = self._window_start(self._clock(), config)
        window = self._windows.get(identifier)
        if window is None or window[0] != start:
            return start, 0
        return window

    def is_allowed(self, identifier: str, config: RateLimitConfig) -> bool:
        """
        Count a request and tell whether it is allowed.

        Args:
            identifier: Unique identifier (e.g., "user:123")
            config: Rate limit configuration

        Returns:
            True if request is allowed, False if rate limited
        """
        start, count = self._current(identifier, config)
        if count >= config.max_requests:
            self._windows[identifier] = (start, count)
            return False
        self._windows[identifier] = (start, count + 1)
        return True

    def get_remaining_requests(self, identifier: str, config: RateLimitConfig) -> int:
        """Requests left in the current window (0 or positive)."""
        _, count = self._current(identifier, config)
        return max(0, config.max_requests - count)

    def get_reset_time(self, identifier: str, config: RateLimitConfig) -> Optional[float]:
        """
        Unix timestamp at which the current window ends.

        Returns:
            Reset time, or None if the identifier made no request this window
        """
        start, count = self._current(identifier, config)
        if count == 0:
            return None
        return start + config.time_window


# Global rate limiter instance
rate_limiter = RateLimiter()

# Predefined rate limit configurations
RATE_LIMITS = {
    "user_command": RateLimitConfig(max_requests=20, time_window=60),  # 20 requests per minute
    "admin_command": RateLimitConfig(max_requests=30, time_window=60),
}
