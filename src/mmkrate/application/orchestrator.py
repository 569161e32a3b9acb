# src/mmkrate/application/orchestrator.py
"""
Collection Orchestrator - Runs Collectors and Persists Their Rates

This module coordinates one collection run over every configured collector:
- Runs all collectors concurrently, each under its own timeout and on a
  dedicated thread pool with one worker per collector
- Isolates failures so one broken source never affects the others
- Persists each source's rates as one atomic batch (rate log + latest rates)
- Writes one per-source CollectionStatus record per run
- Serves latest and historical rate queries from the store

The orchestrator receives its collectors and store through the constructor;
the application builds one instance and shares it through bot_data.

Files that USE this module:
- mmkrate.adapters.telegram.handlers (/rates, /history, /collect)
- mmkrate.adapters.telegram.jobs (scheduled collection)
- mmkrate.app (builds the orchestrator)
- tests.test_orchestrator (unit tests)

Files that this module USES:
- mmkrate.adapters.persistence.document_store (DocumentStore)
- mmkrate.domain.models (ExchangeRate, RateDocument, CollectorResult, CollectionSummary)
- mmkrate.domain.errors (CollectionError, PersistenceError)
- mmkrate.config (default timeout and query limits)
"""
from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from mmkrate.adapters.collectors.base import BaseCollector
from mmkrate.adapters.persistence.document_store import DocumentStore
from mmkrate.config import settings
from mmkrate.domain.errors import CollectionError, PersistenceError
from mmkrate.domain.models import (
    CollectionStatus,
    CollectionSummary,
    CollectorResult,
    ExchangeRate,
    RateDocument,
    utc_now,
)

log = logging.getLogger(__name__)

RATES = "rates"
LATEST_RATES = "latestRates"
COLLECTION_STATUS = "collectionStatus"


class CollectionOrchestrator:
    """
    Runs collectors and owns every read and write of rate data.

    Collectors are kept sorted by priority (official source, banks, P2P
    market). The order only affects display and tie-breaks; all collectors
    run at the same time.
    """

    def __init__(
        self,
        collectors: Sequence[BaseCollector],
        store: DocumentStore,
        collector_timeout: Optional[float] = None,
        latest_limit: Optional[int] = None,
        historical_limit: Optional[int] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            collectors: Collectors to run
            store: Document store for rates and status
            collector_timeout: Seconds each collector may take (defaults to settings)
            latest_limit: Cap on get_latest_rates results (defaults to settings)
            historical_limit: Cap on get_historical_rates results (defaults to settings)
        """
        self.collectors: List[BaseCollector] = sorted(collectors, key=lambda c: c.priority.rank)
        self.store = store
        self.collector_timeout = (
            collector_timeout if collector_timeout is not None else settings.collector_timeout_seconds
        )
        self.latest_limit = latest_limit if latest_limit is not None else settings.latest_rates_limit
        self.historical_limit = (
            historical_limit if historical_limit is not None else settings.historical_rates_limit
        )

    @property
    def sources(self) -> List[str]:
        """Source ids of the configured collectors, in priority order."""
        return [c.source for c in self.collectors]

    async def collect_all(self) -> CollectionSummary:
        """
        Run every collector once and persist what they found.

        Returns:
            CollectionSummary with one result per collector

        Raises:
            CollectionError: If no collectors are configured
            PersistenceError: If the collection status batch cannot be written
        """
        return await self._run(self.collectors)

    async def collect_source(self, source: str) -> CollectionSummary:
        """
        Run a single collector, selected by source id (case-insensitive).

        Raises:
            CollectionError: If no collector has that source id
        """
        wanted = source.strip().lower()
        selected = [c for c in self.collectors if c.source.lower() == wanted]
        if not selected:
            raise CollectionError(f"Unknown source: {source}")
        return await self._run(selected)

    async def _run(self, collectors: Sequence[BaseCollector]) -> CollectionSummary:
        if not collectors:
            raise CollectionError("No collectors configured")

        log.info("Starting collection from %d sources...", len(collectors))
        started = time.perf_counter()

        # One worker per collector, fresh each run; a thread abandoned on timeout
        # never holds a slot another collector needs
        executor = ThreadPoolExecutor(max_workers=len(collectors), thread_name_prefix="collector")
        try:
            outcomes = await asyncio.gather(
                *(self._collect_with_timeout(c, executor) for c in collectors),
                return_exceptions=True,
            )
        finally:
            executor.shutdown(wait=False)

        summary = CollectionSummary()
        for collector, outcome in zip(collectors, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                log.error("Collector %s raised: %s", collector.name, outcome, exc_info=outcome)
                outcome = CollectorResult(success=False, error=str(outcome) or "Collection failed")

            summary.results[collector.source] = outcome
            if outcome.success:
                summary.success_count += 1
                summary.total_rates += len(outcome.rates)
                try:
                    await self.store_rates(outcome.rates)
                except PersistenceError as e:
                    log.error("Failed to store rates from %s", collector.name, exc_info=True)
                    summary.storage_errors[collector.source] = str(e)
            else:
                summary.failure_count += 1
                summary.errors[collector.source] = outcome.error or "Unknown error"

        summary.duration_ms = int((time.perf_counter() - started) * 1000)
        log.info(
            "Collection completed in %dms: %d success, %d failures, %d total rates",
            summary.duration_ms,
            summary.success_count,
            summary.failure_count,
            summary.total_rates,
        )

        await self._update_collection_status(summary.results)
        return summary

    async def _collect_with_timeout(self, collector: BaseCollector, executor: ThreadPoolExecutor) -> CollectorResult:
        """Await one collector, turning a timeout into a failed result."""
        try:
            return await asyncio.wait_for(collector.collect(executor), timeout=self.collector_timeout)
        except asyncio.TimeoutError:
            timeout_ms = int(self.collector_timeout * 1000)
            error = f"Collector {collector.name} timed out after {timeout_ms}ms"
            log.warning(error)
            return CollectorResult(
                success=False,
                error=error,
                metadata={"collection_time_ms": timeout_ms, "rate_count": 0, "timed_out": True},
            )

    async def store_rates(self, rates: Sequence[ExchangeRate]) -> None:
        """
        Persist rates as one atomic batch.

        Every rate is appended to the rate log under its deterministic id and
        merged into the latest-rates collection.

        Raises:
            PersistenceError: If the batch cannot be committed
        """
        if not rates:
            return
        now = utc_now()
        batch = self.store.batch()
        for rate in rates:
            doc = RateDocument.from_rate(rate, created_at=now)
            batch.set(RATES, doc.id, doc.to_document())
        for rate in rates:
            batch.set(LATEST_RATES, rate.latest_id, {**rate.to_document(), "updatedAt": now}, merge=True)
        await asyncio.to_thread(batch.commit)
        log.debug("Stored %d rates from %s", len(rates), rates[0].source)

    async def _update_collection_status(self, results: Dict[str, CollectorResult]) -> None:
        """Write one status record per source in a single batch."""
        now = utc_now()
        batch = self.store.batch()
        for source, result in results.items():
            update = {"source": source, "lastRun": now, "isActive": True}
            if result.success:
                update.update({"lastSuccess": now, "consecutiveFailures": 0, "lastError": None})
            else:
                current = await asyncio.to_thread(self.store.get, COLLECTION_STATUS, source) or {}
                update.update({
                    "consecutiveFailures": int(current.get("consecutiveFailures") or 0) + 1,
                    "lastError": result.error or "Unknown error",
                })
            batch.set(COLLECTION_STATUS, source, update, merge=True)
        await asyncio.to_thread(batch.commit)

    async def get_latest_rates(self, currency: Optional[str] = None) -> List[ExchangeRate]:
        """
        Latest rate per source and currency, newest first.

        Args:
            currency: Optional currency filter (case-insensitive)
        """
        filters = [("currency", "==", currency.upper())] if currency else []
        docs = await asyncio.to_thread(
            self.store.query,
            LATEST_RATES,
            filters,
            order_by="timestamp",
            descending=True,
            limit=self.latest_limit,
        )
        return [ExchangeRate.from_document(doc) for doc in docs]

    async def get_historical_rates(
        self,
        currency: str,
        start: datetime,
        end: datetime,
        source: Optional[str] = None,
    ) -> List[RateDocument]:
        """
        Rate log entries for a currency in [start, end], newest first.

        Args:
            currency: Currency code (case-insensitive)
            start: Inclusive lower bound on the rate timestamp
            end: Inclusive upper bound on the rate timestamp
            source: Optional source id filter
        """
        filters = [
            ("currency", "==", currency.upper()),
            ("timestamp", ">=", start),
            ("timestamp", "<=", end),
        ]
        if source:
            filters.append(("source", "==", source))
        docs = await asyncio.to_thread(
            self.store.query,
            RATES,
            filters,
            order_by="timestamp",
            descending=True,
            limit=self.historical_limit,
        )
        return [RateDocument.from_document(doc) for doc in docs]

    async def get_collection_status(self) -> List[CollectionStatus]:
        """Status record of every source that has run at least once."""
        docs = await asyncio.to_thread(self.store.query, COLLECTION_STATUS, order_by="source")
        return [CollectionStatus.from_document(doc) for doc in docs]
