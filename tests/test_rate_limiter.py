# tests/test_rate_limiter.py
"""
Rate Limiter Tests - Unit Tests for the Fixed-Window Limiter

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- mmkrate.shared.rate_limiter (RateLimiter, RateLimitConfig)
"""
from mmkrate.shared.rate_limiter import RATE_LIMITS, RateLimitConfig, RateLimiter


class FakeClock:
    def __init__(self, now=1_000_020.0):
        self.now = now

    def __call__(self):
        return self.now


CONFIG = RateLimitConfig(max_requests=3, time_window=60)


class TestRateLimiter:
    def test_allows_up_to_limit(self):
        limiter = RateLimiter(clock=FakeClock())
        assert [limiter.is_allowed("user:1", CONFIG) for _ in range(4)] == [True, True, True, False]

    def test_identifiers_are_independent(self):
        limiter = RateLimiter(clock=FakeClock())
        for _ in range(3):
            limiter.is_allowed("user:1", CONFIG)
        assert limiter.is_allowed("user:2", CONFIG)

    def test_window_rolls_over(self):
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        for _ in range(3):
            limiter.is_allowed("user:1", CONFIG)
        assert not limiter.is_allowed("user:1", CONFIG)

        clock.now += 60
        assert limiter.is_allowed("user:1", CONFIG)

    def test_remaining_and_reset_time(self):
        clock = FakeClock(1_000_020.0)
        limiter = RateLimiter(clock=clock)

        assert limiter.get_remaining_requests("user:1", CONFIG) == 3
        assert limiter.get_reset_time("user:1", CONFIG) is None

        limiter.is_allowed("user:1", CONFIG)

        assert limiter.get_remaining_requests("user:1", CONFIG) == 2
        # 1_000_020 is a multiple of 60, so the window starts right there
        assert limiter.get_reset_time("user:1", CONFIG) == 1_000_080.0

    def test_predefined_limits(self):
        assert RATE_LIMITS["user_command"].max_requests == 20
        assert RATE_LIMITS["admin_command"].time_window == 60
