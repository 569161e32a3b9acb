# src/mmkrate/application/health.py
"""
Health Tracker - Collector Health from the Rate Log

This module classifies every source as healthy, degraded or down by looking
at the rate records it produced recently. It only reads the rate log; the
health document written by record_report() is the single exception, used by
the scheduled health monitor.

Classification per source (defaults in parentheses):
- down: no records in the window (24h), or the newest is older than 6h
- degraded: the newest is older than 2h, or fewer updates than expected
  (update ratio = min(records / 24, 1) below 0.8)
- healthy: otherwise

Files that USE this module:
- mmkrate.adapters.telegram.handlers (/health command)
- mmkrate.adapters.telegram.jobs (health_monitor_job)
- mmkrate.app (builds the tracker)
- tests.test_health (unit tests)

Files that this module USES:
- mmkrate.adapters.persistence.document_store (DocumentStore)
- mmkrate.config (thresholds)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence

from mmkrate.adapters.persistence.document_store import DocumentStore
from mmkrate.config import settings
from mmkrate.domain.models import timestamp_ms, utc_now

logger = logging.getLogger(__name__)

HEALTHY = "healthy"
DEGRADED = "degraded"
DOWN = "down"

RATES = "rates"
SYSTEM_HEALTH = "systemHealth"
CURRENT = "current"


def _default(value, fallback):
    """Use the explicit value, even a falsy one such as 0.0, unless it is None."""
    return fallback if value is None else value


@dataclass
class CollectorHealth:
    """Health of one source."""
    name: str
    status: str
    success_rate: float
    record_count: int = 0
    last_success: Optional[datetime] = None
    last_error: Optional[datetime] = None
    hours_since_update: Optional[float] = None

    @property
    def is_healthy(self) -> bool:
        return self.status == HEALTHY

    def to_document(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "lastSuccess": self.last_success,
            "lastError": self.last_error,
            "successRate": self.success_rate,
            "recordCount": self.record_count,
        }


class HealthTracker:
    """Computes collector health from stored rate records."""

    def __init__(
        self,
        store: DocumentStore,
        sources: Sequence[str],
        window_hours: Optional[int] = None,
        expected_updates: Optional[int] = None,
        degraded_after_hours: Optional[float] = None,
        down_after_hours: Optional[float] = None,
        min_update_ratio: Optional[float] = None,
        sample_limit: Optional[int] = None,
        max_alerts: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.sources = list(sources)
        self.window_hours = _default(window_hours, settings.health_window_hours)
        self.expected_updates = _default(expected_updates, settings.health_expected_updates)
        self.degraded_after_hours = _default(degraded_after_hours, settings.health_degraded_after_hours)
        self.down_after_hours = _default(down_after_hours, settings.health_down_after_hours)
        self.min_update_ratio = _default(min_update_ratio, settings.health_min_update_ratio)
        self.sample_limit = _default(sample_limit, settings.health_sample_limit)
        self.max_alerts = _default(max_alerts, settings.max_health_alerts)
        self._clock = clock

    def check_source(self, source: str) -> CollectorHealth:
        """
        Classify one source (blocking store read).

        A failing store read marks the source down; it is logged, not raised.
        """
        now = self._clock()
        since = now - timedelta(hours=self.window_hours)
        try:
            records = self.store.query(
                RATES,
                [("source", "==", source), ("timestamp", ">", since)],
                order_by="timestamp",
                descending=True,
                limit=self.sample_limit,
            )
        except Exception as e:
            logger.error("Failed to get health for %s: %s", source, e)
            return CollectorHealth(name=source, status=DOWN, success_rate=0.0, last_error=now)

        if not records:
            return CollectorHealth(name=source, status=DOWN, success_rate=0.0)

        last_success = records[0]["timestamp"]
        success_rate = min(len(records) / self.expected_updates, 1.0)
        hours_since = (now - last_success).total_seconds() / 3600

        if hours_since > self.down_after_hours:
            status = DOWN
        elif hours_since > self.degraded_after_hours or success_rate < self.min_update_ratio:
            status = DEGRADED
        else:
            status = HEALTHY

        return CollectorHealth(
            name=source,
            status=status,
            success_rate=success_rate,
            record_count=len(records),
            last_success=last_success,
            hours_since_update=hours_since,
        )

    async def get_report(self) -> Dict[str, CollectorHealth]:
        """Health of every tracked source, in source order."""
        checks = await asyncio.gather(
            *(asyncio.to_thread(self.check_source, source) for source in self.sources)
        )
        return {health.name: health for health in checks}

    @staticmethod
    def down_sources(report: Dict[str, CollectorHealth]) -> List[str]:
        return [name for name, health in report.items() if health.status == DOWN]

    def _write_report(self, report: Dict[str, CollectorHealth]) -> List[Dict[str, Any]]:
        now = self._clock()
        current = self.store.get(SYSTEM_HEALTH, CURRENT) or {}
        alerts = list(current.get("alerts") or [])

        down = self.down_sources(report)
        if down:
            alerts.append({
                "id": str(timestamp_ms(now)),
                "severity": "error",
                "component": "collectors",
                "message": f"Collectors down: {', '.join(down)}",
                "timestamp": now,
                "resolved": False,
            })
        # Keep the newest alerts only
        alerts = alerts[-self.max_alerts:] if self.max_alerts > 0 else []

        self.store.batch().set(
            SYSTEM_HEALTH,
            CURRENT,
            {
                "collectorStatus": {name: health.to_document() for name, health in report.items()},
                "alerts": alerts,
                "timestamp": now,
            },
            merge=True,
        ).commit()
        return alerts

    async def record_report(self, report: Dict[str, CollectorHealth]) -> List[Dict[str, Any]]:
        """
        Store the report in the health document and raise an alert for down sources.

        Returns:
            The alert list as stored (at most max_alerts entries)

        Raises:
            PersistenceError: If the health document cannot be written
        """
        return await asyncio.to_thread(self._write_report, report)
