# tests/test_formatter.py
"""
Formatter Tests - Unit Tests for Message Formatting Functions

This module contains unit tests for the message formatting functions:
latest rates grouping and ordering, history statistics, collection
summaries, the health report, currency comparison and trend projections.

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- mmkrate.adapters.formatting.formatter (all formatter functions for testing)
- mmkrate.application.trends (TrendForecast for test data)
- mmkrate.domain.models (ExchangeRate, RateDocument for test data)
- pytest (testing framework)
"""
from datetime import datetime, timedelta, timezone

from mmkrate.adapters.formatting.formatter import (
    format_collection_summary,
    format_comparison,
    format_forecast,
    format_health_report,
    format_history,
    format_number,
    format_rates,
    format_time,
)
from mmkrate.application.health import CollectorHealth
from mmkrate.application.trends import STRONG_DOWN, UP, TrendForecast
from mmkrate.domain.models import (
    CollectionStatus,
    CollectionSummary,
    CollectorResult,
    ExchangeRate,
    RateDocument,
)

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _rate(source, currency, rate, buy=None, sell=None, timestamp=T0):
    return ExchangeRate(currency, rate, timestamp, source, "https://example.com", timestamp, buy, sell)


def _doc(source, rate, hours_ago):
    ts = T0 - timedelta(hours=hours_ago)
    return RateDocument(id=f"{source}_USD_{hours_ago}", source=source, currency="USD",
                        rate=rate, timestamp=ts, created_at=ts)


class TestHelpers:
    def test_format_number(self):
        assert format_number(4510.5) == "4,510.50"
        assert format_number(0.92, decimals=4) == "0.9200"

    def test_format_time(self):
        assert format_time(T0) == "2024-05-01 12:00 UTC"
        assert format_time(None) == "Never"


class TestFormatRates:
    def test_empty(self):
        assert format_rates([]).startswith("❌ No exchange rates available")

    def test_usd_first_and_cbm_leads(self):
        text = format_rates([
            _rate("KBZ", "EUR", 2275, buy=2270, sell=2280),
            _rate("KBZ", "USD", 2095, buy=2090, sell=2100),
            _rate("CBM", "USD", 2100),
        ])
        lines = text.splitlines()

        assert lines[0] == "💱 Current Exchange Rates"
        assert lines[2] == "USD/MMK"
        assert lines[3] == "🏛️ CBM: 2,100.00"
        assert lines[4] == "🏦 KBZ: Buy 2,090.00 | Sell 2,100.00"
        assert text.index("USD/MMK") < text.index("EUR/MMK")
        assert lines[-1] == "Last updated: 2024-05-01 12:00 UTC"

    def test_special_rates_listed_separately(self):
        text = format_rates([
            _rate("Yoma", "USD", 2097),
            _rate("Yoma", "USD_REMITTANCE", 2150),
        ])

        assert "USD_REMITTANCE/MMK" not in text
        assert "Special Rates" in text
        assert "💸 Worker Remittance (Yoma): 1 USD = 2,150.00 MMK" in text


class TestFormatHistory:
    def test_empty(self):
        assert format_history("usd", [], 7) == "❌ No USD history for the last 7 days."

    def test_statistics_per_source(self):
        text = format_history("USD", [
            _doc("KBZ", 2095, 1),
            _doc("CBM", 2110, 1),
            _doc("CBM", 2100, 25),
        ], 3)

        lines = text.splitlines()
        assert lines[0] == "📈 USD/MMK - last 3 days (3 records)"
        assert lines[2] == "🏛️ CBM: min 2,100.00 | max 2,110.00 | avg 2,105.00"
        assert "🏦 KBZ: min 2,095.00 | max 2,095.00 | avg 2,095.00" in lines


class TestFormatCollectionSummary:
    def test_success_failure_and_storage_lines(self):
        summary = CollectionSummary(success_count=1, failure_count=1, total_rates=2, duration_ms=850)
        summary.results = {
            "CBM": CollectorResult(
                success=True,
                rates=[_rate("CBM", "USD", 2100), _rate("CBM", "EUR", 2280)],
                metadata={"method": "api"},
            ),
            "KBZ": CollectorResult(success=False, error="KBZ request failed"),
        }
        summary.errors = {"KBZ": "KBZ request failed"}
        summary.storage_errors = {"CBM": "disk full"}

        text = format_collection_summary(summary)

        assert "✅ 1 succeeded | ❌ 1 failed | 2 rates in 850ms" in text
        assert "✅ CBM: 2 rates via api" in text
        assert "   ⚠️ not stored: disk full" in text
        assert "❌ KBZ: KBZ request failed" in text


class TestFormatHealthReport:
    def test_empty(self):
        assert format_health_report({}) == "No collectors configured."

    def test_health_with_status(self):
        report = {
            "CBM": CollectorHealth(name="CBM", status="healthy", success_rate=1.0,
                                   record_count=24, last_success=T0),
            "KBZ": CollectorHealth(name="KBZ", status="down", success_rate=0.0),
        }
        statuses = [
            CollectionStatus(source="KBZ", last_run=T0, consecutive_failures=3, last_error="timeout"),
        ]

        text = format_health_report(report, statuses)

        assert "✅ CBM: healthy (24 updates, 100% of expected)" in text
        assert "❌ KBZ: down (0 updates, 0% of expected)" in text
        assert "   Last rate: Never" in text
        assert "   Failures in a row: 3 (timeout)" in text


class TestFormatComparison:
    def test_sources_side_by_side(self):
        text = format_comparison(["USD", "EUR"], [
            _rate("KBZ", "USD", 2095, buy=2090, sell=2100),
            _rate("CBM", "EUR", 2280),
            _rate("CBM", "USD", 2100),
        ])
        lines = text.splitlines()

        assert lines[0] == "📊 Currency Comparison (USD, EUR)"
        assert lines[2] == "🏛️ CBM: USD 2,100.00 | EUR 2,280.00"
        assert lines[3] == "🏦 KBZ: USD 2,090.00 | EUR N/A"
        assert lines[5] == "Difference from CBM rate"
        assert lines[6] == "KBZ: USD -0.48%"
        assert lines[-1] == "Last updated: 2024-05-01 12:00 UTC"

    def test_missing_currency_left_out_of_header(self):
        text = format_comparison(["USD", "XYZ"], [_rate("CBM", "USD", 2100)])
        assert text.splitlines()[0] == "📊 Currency Comparison (USD)"
        assert "Difference from CBM rate" not in text

    def test_no_rates(self):
        assert format_comparison(["USD", "EUR"], []) == "❌ No rates found for currencies: USD, EUR"


class TestFormatForecast:
    def _forecast(self, **overrides):
        values = dict(
            currency="USD", days=7, current_rate=2110.0, recent_average=2105.0,
            weekly_change=35.0, weekly_change_percent=1.69, volatility_percent=0.5,
            projected_rate=2145.0, projected_high=2160.0, projected_low=2130.0, direction=UP,
        )
        values.update(overrides)
        return TrendForecast(**values)

    def test_projection(self):
        text = format_forecast(self._forecast())
        lines = text.splitlines()

        assert lines[0] == "🔮 USD/MMK 7-Day Projection"
        assert "Trend: 📈 Uptrend" in lines
        assert "Weekly Change: +35.00 (+1.69%)" in lines
        assert "Volatility: 0.50% ✅ Normal" in lines
        assert "Projected Rate: 2,145.00 MMK" in lines
        assert "📊 The USD is showing slight appreciation against MMK." in lines
        assert "High volatility detected" not in text
        assert lines[-1].startswith("⚠️ Simple trend projection")

    def test_high_volatility(self):
        text = format_forecast(self._forecast(
            weekly_change=-80.0, weekly_change_percent=-3.7, volatility_percent=3.5, direction=STRONG_DOWN,
        ))

        assert "Volatility: 3.50% ⚠️ High" in text
        assert "Weekly Change: -80.00 (-3.70%)" in text
        assert "⚠️ High volatility detected. Projections may be less reliable." in text
        assert "Trend: 📉 Strong Downtrend" in text
