# src/mmkrate/domain/models.py
"""
Domain Models - Pure Business Objects

This module contains domain models representing core business concepts:
- Exchange rates produced by collectors
- Rate documents persisted in the rate log
- Collector results and collection run summaries
- Per-source collection status

Persisted documents use camelCase field names (rate, buyRate, sellRate,
sourceUrl, lastUpdated, createdAt, ...). Those names are read by other
subsystems and must not change.

Files that USE this module:
- mmkrate.adapters.collectors.* (collectors build ExchangeRate and CollectorResult)
- mmkrate.application.orchestrator (stores rates, builds CollectionSummary)
- mmkrate.application.health (reads rate documents)
- mmkrate.adapters.formatting.formatter (renders rates and summaries)
- tests.* (tests use domain models for test data)

Files that this module USES:
- None (pure domain layer, no external dependencies)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

from dataclasses import dataclass, field  # Decorators for creating data classes
from datetime import datetime, timezone  # Date/time utilities for timestamps
from enum import Enum  # Collector priority levels
from typing import Any, Dict, List, Optional  # Type hints

COLLECTOR_VERSION = "1.0.0"


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def timestamp_ms(ts: datetime) -> int:
    """Milliseconds since the epoch, used in rate document ids."""
    return int(ts.timestamp() * 1000)


class CollectorPriority(str, Enum):
    """Display ranking of a source: official first, banks next, markets last."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 0, "medium": 1, "low": 2}[self.value]


@dataclass(frozen=True)
class ExchangeRate:
    """
    A single rate observation produced by a collector.

    Attributes:
        currency: ISO code (USD) or synthetic code (USD_REMITTANCE), uppercase
        rate: MMK per unit of foreign currency
        timestamp: Source-reported time, or fetch time when the source has none
        source: Stable source identity (CBM, KBZ, ...)
        source_url: URL the value was read from
        last_updated: When this object was built
        buy_rate: Optional buying rate
        sell_rate: Optional selling rate
    """
    currency: str
    rate: float
    timestamp: datetime
    source: str
    source_url: str
    last_updated: datetime
    buy_rate: Optional[float] = None
    sell_rate: Optional[float] = None

    @property
    def document_id(self) -> str:
        """Rate log id; identical for re-collections at the same instant."""
        return f"{self.source}_{self.currency}_{timestamp_ms(self.timestamp)}"

    @property
    def latest_id(self) -> str:
        """Latest-rate document id, one per source and currency."""
        return f"{self.source}_{self.currency}"

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the persisted camelCase field layout."""
        return {
            "currency": self.currency,
            "rate": self.rate,
            "buyRate": self.buy_rate,
            "sellRate": self.sell_rate,
            "timestamp": self.timestamp,
            "source": self.source,
            "sourceUrl": self.source_url,
            "lastUpdated": self.last_updated,
        }

    @staticmethod
    def from_document(data: Dict[str, Any]) -> "ExchangeRate":
        """Build an ExchangeRate from a latestRates document."""
        timestamp = data["timestamp"]
        return ExchangeRate(
            currency=data["currency"],
            rate=float(data["rate"]),
            timestamp=timestamp,
            source=data["source"],
            source_url=data.get("sourceUrl") or "",
            last_updated=data.get("lastUpdated") or timestamp,
            buy_rate=data.get("buyRate"),
            sell_rate=data.get("sellRate"),
        )


@dataclass(frozen=True)
class RateDocument:
    """
    Append-only rate log entry.

    Attributes:
        id: "{source}_{currency}_{timestamp_ms}"
        created_at: Persistence time
        source_url: Provenance URL, stored under metadata.sourceUrl
        collector_version: Stored under metadata.collectorVersion
    """
    id: str
    source: str
    currency: str
    rate: float
    timestamp: datetime
    created_at: datetime
    buy_rate: Optional[float] = None
    sell_rate: Optional[float] = None
    source_url: str = ""
    collector_version: str = COLLECTOR_VERSION

    @staticmethod
    def from_rate(rate: ExchangeRate, created_at: Optional[datetime] = None) -> "RateDocument":
        return RateDocument(
            id=rate.document_id,
            source=rate.source,
            currency=rate.currency,
            rate=rate.rate,
            timestamp=rate.timestamp,
            created_at=created_at or utc_now(),
            buy_rate=rate.buy_rate,
            sell_rate=rate.sell_rate,
            source_url=rate.source_url,
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "currency": self.currency,
            "rate": self.rate,
            "buyRate": self.buy_rate,
            "sellRate": self.sell_rate,
            "timestamp": self.timestamp,
            "createdAt": self.created_at,
            "metadata": {
                "sourceUrl": self.source_url,
                "collectorVersion": self.collector_version,
            },
        }

    @staticmethod
    def from_document(data: Dict[str, Any]) -> "RateDocument":
        metadata = data.get("metadata") or {}
        return RateDocument(
            id=data["id"],
            source=data["source"],
            currency=data["currency"],
            rate=float(data["rate"]),
            timestamp=data["timestamp"],
            created_at=data.get("createdAt") or data["timestamp"],
            buy_rate=data.get("buyRate"),
            sell_rate=data.get("sellRate"),
            source_url=metadata.get("sourceUrl", ""),
            collector_version=metadata.get("collectorVersion", COLLECTOR_VERSION),
        )


@dataclass
class CollectorResult:
    """
    Outcome of one collector invocation.

    metadata always carries collection_time_ms and rate_count; collectors add
    method ("api" or "webscrape"), warnings, html_excerpt and source-specific
    diagnostics.
    """
    success: bool
    rates: List[ExchangeRate] = field(default_factory=list)
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CollectionStatus:
    """Per-source status document, updated once per collection run."""
    source: str
    last_run: Optional[datetime] = None
    last_success: Optional[datetime] = None
    consecutive_failures: int = 0
    last_error: Optional[str] = None
    is_active: bool = True

    @staticmethod
    def from_document(data: Dict[str, Any]) -> "CollectionStatus":
        return CollectionStatus(
            source=data["source"],
            last_run=data.get("lastRun"),
            last_success=data.get("lastSuccess"),
            consecutive_failures=int(data.get("consecutiveFailures") or 0),
            last_error=data.get("lastError"),
            is_active=bool(data.get("isActive", True)),
        )


@dataclass
class CollectionSummary:
    """
    Aggregate result of one collection run.

    results has exactly one entry per collector that was run, keyed by
    source; errors only holds the failed ones.
    """
    success_count: int = 0
    failure_count: int = 0
    total_rates: int = 0
    results: Dict[str, CollectorResult] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    storage_errors: Dict[str, str] = field(default_factory=dict)
    duration_ms: int = 0
