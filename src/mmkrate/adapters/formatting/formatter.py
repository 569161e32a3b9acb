# src/mmkrate/adapters/formatting/formatter.py
"""
Message Formatter - Text Formatting and Presentation

This module handles all text formatting for Telegram messages: latest rates
grouped by currency, currency comparisons, trend projections, rate
history, collection run summaries and the collector health report.
Messages are plain text.

Files that USE this module:
- mmkrate.adapters.telegram.handlers (command replies)
- mmkrate.adapters.telegram.jobs (admin alerts)
- tests.test_formatter (unit tests)

Files that this module USES:
- mmkrate.domain.models (ExchangeRate, RateDocument, CollectionSummary, CollectionStatus)
- mmkrate.application.health (CollectorHealth)
- mmkrate.application.trends (TrendForecast)
"""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Sequence

from mmkrate.application.health import CollectorHealth
from mmkrate.application.trends import (
    DOWN,
    STABLE,
    STRONG_DOWN,
    STRONG_UP,
    UP,
    TrendForecast,
)
from mmkrate.domain.models import CollectionStatus, CollectionSummary, ExchangeRate, RateDocument

REMITTANCE_CURRENCY = "USD_REMITTANCE"

SOURCE_EMOJI = {
    "CBM": "🏛️",
    "KBZ": "🏦",
    "AYA": "🏦",
    "Yoma": "🏦",
    "CB Bank": "🏦",
    "Binance P2P": "💹",
}

STATUS_EMOJI = {"healthy": "✅", "degraded": "⚠️", "down": "❌"}


def format_number(value: float, decimals: int = 2) -> str:
    """
    Format a rate with thousands separators.

    Args:
        value: Number to format
        decimals: Decimal places (default: 2)

    Returns:
        String such as "4,510.50"
    """
    return f"{value:,.{decimals}f}"


def format_time(ts: Optional[datetime]) -> str:
    if ts is None:
        return "Never"
    return ts.strftime("%Y-%m-%d %H:%M UTC")


def _source_key(source: str):
    # Official rate first, then alphabetical
    return (source != "CBM", source)


def _currency_key(currency: str):
    return (currency != "USD", currency)


def format_rates(rates: Sequence[ExchangeRate]) -> str:
    """
    Format latest rates grouped by currency.

    USD comes first, the official CBM rate leads each group and special rates
    (codes containing "_", such as USD_REMITTANCE) are listed separately.
    """
    if not rates:
        return "❌ No exchange rates available at the moment. Please try again later."

    by_currency: Dict[str, List[ExchangeRate]] = {}
    special: List[ExchangeRate] = []
    for rate in rates:
        if "_" in rate.currency:
            special.append(rate)
        else:
            by_currency.setdefault(rate.currency, []).append(rate)

    lines = ["💱 Current Exchange Rates", ""]
    for currency in sorted(by_currency, key=_currency_key):
        lines.append(f"{currency}/MMK")
        for rate in sorted(by_currency[currency], key=lambda r: _source_key(r.source)):
            emoji = SOURCE_EMOJI.get(rate.source, "🏦")
            if rate.buy_rate and rate.sell_rate:
                lines.append(
                    f"{emoji} {rate.source}: Buy {format_number(rate.buy_rate)} | Sell {format_number(rate.sell_rate)}"
                )
            else:
                lines.append(f"{emoji} {rate.source}: {format_number(rate.rate)}")
        lines.append("")

    if special:
        lines.append("Special Rates")
        for rate in special:
            if rate.currency == REMITTANCE_CURRENCY:
                lines.append(f"💸 Worker Remittance ({rate.source}): 1 USD = {format_number(rate.rate)} MMK")
            else:
                lines.append(f"• {rate.currency} ({rate.source}): {format_number(rate.rate)}")
        lines.append("")

    latest = max(rate.timestamp for rate in rates)
    lines.append(f"Last updated: {format_time(latest)}")
    return "\n".join(lines)


def format_history(currency: str, docs: Sequence[RateDocument], days: int) -> str:
    """
    Format historical rate records, newest first, with a min/max/avg line per source.
    """
    currency = currency.upper()
    if not docs:
        return f"❌ No {currency} history for the last {days} days."

    by_source: Dict[str, List[RateDocument]] = {}
    for doc in docs:
        by_source.setdefault(doc.source, []).append(doc)

    lines = [f"📈 {currency}/MMK - last {days} days ({len(docs)} records)", ""]
    for source in sorted(by_source, key=_source_key):
        entries = by_source[source]
        values = [d.rate for d in entries]
        lines.append(
            f"{SOURCE_EMOJI.get(source, '🏦')} {source}: "
            f"min {format_number(min(values))} | max {format_number(max(values))} | "
            f"avg {format_number(sum(values) / len(values))}"
        )
        for doc in entries[:5]:
            lines.append(f"  {format_time(doc.timestamp)}  {format_number(doc.rate)}")
        lines.append("")
    return "\n".join(lines).rstrip()


def format_collection_summary(summary: CollectionSummary) -> str:
    """Format a collection run for the admin who triggered it."""
    lines = [
        "🔄 Collection finished",
        f"✅ {summary.success_count} succeeded | ❌ {summary.failure_count} failed | "
        f"{summary.total_rates} rates in {summary.duration_ms}ms",
        "",
    ]
    for source in sorted(summary.results, key=_source_key):
        result = summary.results[source]
        if result.success:
            method = result.metadata.get("method", "?")
            lines.append(f"✅ {source}: {len(result.rates)} rates via {method}")
        else:
            lines.append(f"❌ {source}: {summary.errors.get(source, result.error)}")
        if source in summary.storage_errors:
            lines.append(f"   ⚠️ not stored: {summary.storage_errors[source]}")
    return "\n".join(lines)


def format_health_report(
    report: Dict[str, CollectorHealth],
    statuses: Sequence[CollectionStatus] = (),
) -> str:
    """
    Format the collector health report, with the last run status of each source.
    """
    if not report:
        return "No collectors configured."

    status_by_source = {status.source: status for status in statuses}
    lines = ["🩺 Collector Health", ""]
    for name, health in report.items():
        emoji = STATUS_EMOJI.get(health.status, "❓")
        lines.append(
            f"{emoji} {name}: {health.status} "
            f"({health.record_count} updates, {health.success_rate:.0%} of expected)"
        )
        lines.append(f"   Last rate: {format_time(health.last_success)}")
        status = status_by_source.get(name)
        if status is not None:
            lines.append(f"   Last run: {format_time(status.last_run)}")
            if status.consecutive_failures:
                lines.append(
                    f"   Failures in a row: {status.consecutive_failures} ({status.last_error})"
                )
    return "\n".join(lines)


def _display_rate(rate: ExchangeRate) -> float:
    return rate.buy_rate if rate.buy_rate else rate.rate


def format_comparison(currencies: Sequence[str], rates: Sequence[ExchangeRate]) -> str:
    """
    Format the requested currencies side by side, one line per source.

    The buy rate is shown when a source publishes one. Sources are listed
    CBM first and compared with the official CBM rate as a percentage.
    """
    by_source: Dict[str, Dict[str, ExchangeRate]] = {}
    found: List[str] = []
    for currency in currencies:
        for rate in rates:
            if rate.currency != currency:
                continue
            by_source.setdefault(rate.source, {})[currency] = rate
            if currency not in found:
                found.append(currency)

    if not found:
        return f"❌ No rates found for currencies: {', '.join(currencies)}"

    sources = sorted(by_source, key=_source_key)
    lines = [f"📊 Currency Comparison ({', '.join(found)})", ""]
    for source in sources:
        cells = []
        for currency in found:
            rate = by_source[source].get(currency)
            cells.append(f"{currency} {format_number(_display_rate(rate)) if rate else 'N/A'}")
        lines.append(f"{SOURCE_EMOJI.get(source, '🏦')} {source}: {' | '.join(cells)}")

    official = by_source.get("CBM", {})
    diff_lines = []
    for source in sources:
        if source == "CBM":
            continue
        diffs = []
        for currency in found:
            rate = by_source[source].get(currency)
            cbm = official.get(currency)
            if rate and cbm:
                percent = (_display_rate(rate) - cbm.rate) / cbm.rate * 100
                diffs.append(f"{currency} {percent:+.2f}%")
        if diffs:
            diff_lines.append(f"{source}: {' | '.join(diffs)}")
    if diff_lines:
        lines.extend(["", "Difference from CBM rate"])
        lines.extend(diff_lines)

    latest = max(rate.timestamp for per_source in by_source.values() for rate in per_source.values())
    lines.extend(["", f"Last updated: {format_time(latest)}"])
    return "\n".join(lines)


TREND_LABELS = {
    STABLE: "➡️ Stable",
    UP: "📈 Uptrend",
    STRONG_UP: "📈 Strong Uptrend",
    DOWN: "📉 Downtrend",
    STRONG_DOWN: "📉 Strong Downtrend",
}

TREND_OUTLOOK = {
    STABLE: "is relatively stable against MMK",
    UP: "is showing slight appreciation against MMK",
    STRONG_UP: "is showing strong appreciation against MMK",
    DOWN: "is showing slight depreciation against MMK",
    STRONG_DOWN: "is showing depreciation against MMK",
}


def format_forecast(forecast: TrendForecast) -> str:
    """Format a trend analysis and its projection."""
    f = forecast
    lines = [
        f"🔮 {f.currency}/MMK {f.days}-Day Projection",
        "",
        f"Current Rate: {format_number(f.current_rate)} MMK",
        f"7-Day Average: {format_number(f.recent_average)} MMK",
        f"Trend: {TREND_LABELS[f.direction]}",
        f"Weekly Change: {f.weekly_change:+,.2f} ({f.weekly_change_percent:+.2f}%)",
        f"Volatility: {f.volatility_percent:.2f}% {'⚠️ High' if f.volatility_percent > 2 else '✅ Normal'}",
        "",
        f"Projected Rate: {format_number(f.projected_rate)} MMK",
        f"📈 High: {format_number(f.projected_high)} MMK",
        f"📉 Low: {format_number(f.projected_low)} MMK",
        "",
    ]
    if f.volatility_percent > 3:
        lines.append("⚠️ High volatility detected. Projections may be less reliable.")
    lines.append(f"📊 The {f.currency} {TREND_OUTLOOK[f.direction]}.")
    lines.append("")
    lines.append("⚠️ Simple trend projection from official CBM rates, not financial advice.")
    return "\n".join(lines)
