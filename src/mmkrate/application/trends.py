# src/mmkrate/application/trends.py
"""
Trends - Simple Rate Trend and Projection

This module turns a series of official rate records into a short trend
analysis for the /predict command:
- compares the average of the latest 7 records with the 7 before them
- projects the latest rate forward by the average daily change
- gives a range of one standard deviation per sqrt(day) around the projection

It is a plain moving-average comparison, not a forecasting model.

Files that USE this module:
- mmkrate.adapters.telegram.handlers (/predict command)
- mmkrate.adapters.formatting.formatter (renders TrendForecast)
- tests.test_trends (unit tests)

Files that this module USES:
- mmkrate.domain.models (RateDocument)
"""
from __future__ import annotations

import math
import statistics
from dataclasses import dataclass
from typing import List, Sequence

from mmkrate.domain.models import RateDocument

WINDOW = 7  # records per averaging window
MIN_RECORDS = 7
MAX_DAYS = 30

STABLE = "stable"
UP = "up"
STRONG_UP = "strong_up"
DOWN = "down"
STRONG_DOWN = "strong_down"


@dataclass(frozen=True)
class TrendForecast:
    """Result of analyze_trend; rates are MMK per unit of currency."""
    currency: str
    days: int
    current_rate: float
    recent_average: float
    weekly_change: float
    weekly_change_percent: float
    volatility_percent: float
    projected_rate: float
    projected_high: float
    projected_low: float
    direction: str


def classify_trend(change_percent: float) -> str:
    """Bucket a weekly change: within ±0.5% is stable, beyond ±2% is strong."""
    if abs(change_percent) < 0.5:
        return STABLE
    if change_percent > 2:
        return STRONG_UP
    if change_percent > 0:
        return UP
    if change_percent < -2:
        return STRONG_DOWN
    return DOWN


def analyze_trend(currency: str, records: Sequence[RateDocument], days: int) -> TrendForecast:
    """
    Analyze rate records (any order) and project them `days` ahead.

    With fewer than 14 records the older window is shorter; when it is
    empty the weekly change is taken as zero.

    Raises:
        ValueError: If there are fewer than MIN_RECORDS records or days is out of range
    """
    if days < 1 or days > MAX_DAYS:
        raise ValueError(f"Days must be between 1 and {MAX_DAYS}")
    if len(records) < MIN_RECORDS:
        raise ValueError(f"Not enough data: {len(records)} records, need {MIN_RECORDS}")

    ordered: List[float] = [r.rate for r in sorted(records, key=lambda r: r.timestamp)]
    recent = ordered[-WINDOW:]
    older = ordered[-2 * WINDOW:-WINDOW]

    recent_average = statistics.fmean(recent)
    older_average = statistics.fmean(older) if older else recent_average
    weekly_change = recent_average - older_average
    weekly_change_percent = weekly_change / older_average * 100
    daily_change = weekly_change / WINDOW

    deviation = statistics.pstdev(recent)
    current = recent[-1]
    projected = current + daily_change * days
    spread = deviation * math.sqrt(days)

    return TrendForecast(
        currency=currency.upper(),
        days=days,
        current_rate=current,
        recent_average=recent_average,
        weekly_change=weekly_change,
        weekly_change_percent=weekly_change_percent,
        volatility_percent=deviation / recent_average * 100,
        projected_rate=projected,
        projected_high=projected + spread,
        projected_low=projected - spread,
        direction=classify_trend(weekly_change_percent),
    )
