# tests/test_trends.py
"""
Trend Tests - Unit Tests for the Rate Trend Projection

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- mmkrate.application.trends (analyze_trend, classify_trend)
- mmkrate.domain.models (RateDocument for test data)
- pytest (testing framework)
"""
import math
from datetime import datetime, timedelta, timezone

import pytest

from mmkrate.application.trends import (
    DOWN,
    STABLE,
    STRONG_DOWN,
    STRONG_UP,
    UP,
    analyze_trend,
    classify_trend,
)
from mmkrate.domain.models import RateDocument

T0 = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _records(rates):
    """Daily CBM records, oldest first in `rates`, returned newest first like the store."""
    docs = []
    for age, rate in enumerate(reversed(rates)):
        ts = T0 - timedelta(days=age)
        docs.append(RateDocument(id=f"CBM_USD_{age}", source="CBM", currency="USD",
                                 rate=rate, timestamp=ts, created_at=ts))
    return docs


class TestClassifyTrend:
    @pytest.mark.parametrize("percent,expected", [
        (0.0, STABLE),
        (0.49, STABLE),
        (-0.49, STABLE),
        (1.0, UP),
        (2.5, STRONG_UP),
        (-1.0, DOWN),
        (-2.5, STRONG_DOWN),
    ])
    def test_buckets(self, percent, expected):
        assert classify_trend(percent) == expected


class TestAnalyzeTrend:
    def test_two_weeks_of_rising_rates(self):
        forecast = analyze_trend("usd", _records([2000.0] * 7 + [2100.0] * 7), days=7)

        assert forecast.currency == "USD"
        assert forecast.current_rate == 2100.0
        assert forecast.recent_average == pytest.approx(2100.0)
        assert forecast.weekly_change == pytest.approx(100.0)
        assert forecast.weekly_change_percent == pytest.approx(5.0)
        assert forecast.direction == STRONG_UP
        assert forecast.projected_rate == pytest.approx(2200.0)
        assert forecast.projected_high == pytest.approx(2200.0)
        assert forecast.projected_low == pytest.approx(2200.0)

    def test_range_widens_with_volatility(self):
        recent = [2090.0, 2110.0] * 3 + [2100.0]
        forecast = analyze_trend("USD", _records([2100.0] * 7 + recent), days=4)
        spread = math.sqrt(600 / 7) * 2

        assert forecast.direction == STABLE
        assert forecast.volatility_percent == pytest.approx(math.sqrt(600 / 7) / 2100 * 100)
        assert forecast.projected_rate == pytest.approx(2100.0)
        assert forecast.projected_high == pytest.approx(2100.0 + spread)
        assert forecast.projected_low == pytest.approx(2100.0 - spread)

    def test_single_week_has_no_change(self):
        forecast = analyze_trend("USD", _records([2000.0, 2010.0, 2020.0, 2030.0, 2040.0, 2050.0, 2060.0]), days=1)

        assert forecast.weekly_change == 0
        assert forecast.direction == STABLE
        assert forecast.current_rate == 2060.0
        assert forecast.projected_rate == pytest.approx(2060.0)

    def test_not_enough_records(self):
        with pytest.raises(ValueError, match="Not enough data: 6 records, need 7"):
            analyze_trend("USD", _records([2100.0] * 6), days=7)

    @pytest.mark.parametrize("days", [0, 31])
    def test_days_out_of_range(self, days):
        with pytest.raises(ValueError, match="Days must be between 1 and 30"):
            analyze_trend("USD", _records([2100.0] * 14), days=days)
