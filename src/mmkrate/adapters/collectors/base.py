# src/mmkrate/adapters/collectors/base.py
"""
Base Collector - Shared HTTP, Parsing and Result Handling

This module provides the base class every source collector extends. A
collector exposes ``name``, ``source``, ``priority`` and an async
``collect()`` that never raises: every failure becomes a CollectorResult
with ``success=False``.

Concrete collectors implement ``_collect()``, a blocking method that either
returns a successful CollectorResult or raises a CollectorError. ``collect()``
runs it in a worker thread so several collectors can wait on the network at
the same time without blocking the event loop. The orchestrator passes its
own executor so collectors never compete with store I/O for threads.

Files that USE this module:
- mmkrate.adapters.collectors.cbm (CBMCollector extends BaseCollector)
- mmkrate.adapters.collectors.kbz (KBZCollector extends BaseCollector)
- mmkrate.adapters.collectors.aya (AYACollector extends BaseCollector)
- mmkrate.adapters.collectors.yoma (YomaCollector extends BaseCollector)
- mmkrate.adapters.collectors.cb_bank (CBBankCollector extends BaseCollector)
- mmkrate.adapters.collectors.binance_p2p (BinanceP2PCollector extends BaseCollector)

Files that this module USES:
- mmkrate.config (settings for timeout, user agent and rate bound)
- mmkrate.domain.models (ExchangeRate, CollectorResult, CollectorPriority)
- mmkrate.domain.errors (collector error taxonomy)
- mmkrate.shared.validators (RateValidator)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

import asyncio  # Run blocking HTTP work off the event loop
import logging  # Standard library for logging messages
import re  # Regular expressions for number extraction
import time  # Monotonic timer for collection timing
from abc import ABC, abstractmethod  # Abstract base classes for defining interfaces
from concurrent.futures import Executor  # Worker pool supplied by the orchestrator
from datetime import datetime, timezone  # Date/time utilities for timestamps
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Type, TypeVar

import requests  # HTTP library for making web requests
from bs4 import BeautifulSoup  # HTML parsing library for extracting data from web pages
from pydantic import BaseModel, ValidationError  # Response schema validation

from mmkrate.config import settings
from mmkrate.domain.errors import (
    CollectorError,
    MalformedResponseError,
    NoRatesFoundError,
    SourceUnavailableError,
)
from mmkrate.domain.models import CollectorPriority, CollectorResult, ExchangeRate, utc_now
from mmkrate.shared.validators import RateValidator

log = logging.getLogger(__name__)  # Create logger for this module

SchemaT = TypeVar("SchemaT", bound=BaseModel)

HTML_EXCERPT_LENGTH = 500
_NUMBER_PATTERN = re.compile(r"-?\d+(?:\.\d+)?")

# (label, heuristic) pairs tried in order until one yields a rate
Heuristic = Tuple[str, Callable[[], List[ExchangeRate]]]


def parse_number(text: Any) -> float:
    """
    Parse a rate from text such as "4,510.50 MMK".

    Removes thousands separators and whitespace and reads the first number.

    Args:
        text: Text (or number) containing the value

    Returns:
        The parsed value, or 0.0 if no number is present
    """
    if text is None:
        return 0.0
    if isinstance(text, (int, float)) and not isinstance(text, bool):
        return float(text)
    cleaned = re.sub(r"[,\s]", "", str(text))
    match = _NUMBER_PATTERN.search(cleaned)
    if not match:
        return 0.0
    try:
        return float(match.group(0))
    except ValueError:
        return 0.0


def midpoint(buy: float, sell: float) -> float:
    """Mid rate of a buy/sell quote."""
    return (buy + sell) / 2


class BaseCollector(ABC):
    """
    Base class for rate collectors.

    Holds only configuration (timeout, user agent, validator); no state is
    shared between collection runs.
    """

    name: str = ""
    source: str = ""
    priority: CollectorPriority = CollectorPriority.MEDIUM

    def __init__(
        self,
        timeout: Optional[int] = None,
        user_agent: Optional[str] = None,
        validator: Optional[RateValidator] = None,
    ):
        """
        Initialize base collector.

        Args:
            timeout: HTTP request timeout in seconds (defaults to settings.http_timeout_seconds)
            user_agent: User-Agent header (defaults to settings.http_user_agent)
            validator: RateValidator (defaults to one built from settings)
        """
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.user_agent = user_agent if user_agent is not None else settings.http_user_agent
        self.validator = validator if validator is not None else RateValidator(
            max_rate=settings.max_rate,
            asset_codes=settings.asset_codes,
        )

    async def collect(self, executor: Optional[Executor] = None) -> CollectorResult:
        """
        Collect rates from the source.

        Args:
            executor: Thread pool that runs the blocking collection
                (defaults to the event loop's default executor)

        Returns:
            CollectorResult; failures are reported, never raised.
            metadata["collection_time_ms"] holds the elapsed time.
        """
        started = time.perf_counter()
        try:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(executor, self._collect)
        except CollectorError as e:
            log.warning("%s collection failed: %s", self.name, e)
            result = self._error_result(str(e), **e.metadata)
        except Exception as e:
            log.exception("%s collector raised an unexpected error", self.name)
            result = self._error_result(f"Unexpected error: {e}")
        result.metadata["collection_time_ms"] = int((time.perf_counter() - started) * 1000)
        if result.success:
            log.info("%s collected %d rates via %s", self.name, len(result.rates), result.metadata.get("method"))
        return result

    @abstractmethod
    def _collect(self) -> CollectorResult:
        """
        Run the collection strategies (blocking).

        Returns:
            Successful CollectorResult with at least one rate

        Raises:
            CollectorError: If every strategy failed
        """
        raise NotImplementedError

    # --- HTTP ---

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {"User-Agent": self.user_agent}
        if extra:
            headers.update(extra)
        return headers

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Perform an HTTP request.

        Raises:
            SourceUnavailableError: On timeout, connection error or HTTP error status
        """
        try:
            log.debug("%s %s %s", self.source, method.upper(), url)
            if method == "post":
                resp = requests.post(url, timeout=self.timeout, **kwargs)
            else:
                resp = requests.get(url, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
            return resp
        except requests.exceptions.Timeout:
            raise SourceUnavailableError(f"{self.source} request timeout after {self.timeout}s for {url}")
        except requests.exceptions.RequestException as e:
            raise SourceUnavailableError(f"{self.source} request failed for {url}: {e}")

    def _fetch_html(self, url: str) -> str:
        """
        Fetch HTML content from a URL.

        Returns:
            HTML content as string

        Raises:
            SourceUnavailableError: If request fails or times out
        """
        return self._request("get", url, headers=self._headers()).text

    def _decode_json(self, resp: requests.Response, url: str, schema: Type[SchemaT]) -> SchemaT:
        try:
            data = resp.json()
        except ValueError as e:
            raise MalformedResponseError(f"{self.source} API returned invalid JSON from {url}: {e}")
        try:
            return schema.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(
                f"{self.source} API response from {url} has unexpected structure ({e.error_count()} errors)"
            )

    def _fetch_json(self, url: str, schema: Type[SchemaT]) -> SchemaT:
        """
        GET a JSON document and validate it against a response schema.

        Raises:
            SourceUnavailableError: If request fails or times out
            MalformedResponseError: If the body is not JSON or does not match the schema
        """
        resp = self._request("get", url, headers=self._headers({"Accept": "application/json"}))
        return self._decode_json(resp, url, schema)

    def _post_json(self, url: str, payload: Dict[str, Any], schema: Type[SchemaT]) -> SchemaT:
        """POST a JSON body and validate the JSON answer against a schema."""
        resp = self._request(
            "post",
            url,
            json=payload,
            headers=self._headers({"Content-Type": "application/json", "Accept": "application/json"}),
        )
        return self._decode_json(resp, url, schema)

    # --- Parsing helpers ---

    @staticmethod
    def _soup(html: str) -> BeautifulSoup:
        return BeautifulSoup(html, "html.parser")

    @staticmethod
    def _cell_texts(row) -> List[str]:
        """Stripped text of the <td> cells of a table row."""
        return [cell.get_text(" ", strip=True) for cell in row.find_all("td")]

    def _build_rate(
        self,
        currency: str,
        rate: float,
        source_url: str,
        timestamp: Optional[datetime] = None,
        buy_rate: Optional[float] = None,
        sell_rate: Optional[float] = None,
    ) -> ExchangeRate:
        now = utc_now()
        return ExchangeRate(
            currency=currency.upper(),
            rate=rate,
            timestamp=timestamp or now,
            source=self.source,
            source_url=source_url,
            last_updated=now,
            buy_rate=buy_rate,
            sell_rate=sell_rate,
        )

    def _keep_valid(self, candidates: Iterable[Optional[ExchangeRate]]) -> List[ExchangeRate]:
        """Drop missing and invalid records, keeping the order."""
        kept = []
        for rate in candidates:
            if rate is None:
                continue
            if self.validator.validate(rate):
                kept.append(rate)
            else:
                log.debug("%s dropped invalid rate %s=%s", self.source, rate.currency, rate.rate)
        return kept

    def _scan_rows(
        self,
        soup: BeautifulSoup,
        selector: str,
        parse_row: Callable[[List[str]], Optional[ExchangeRate]],
    ) -> List[ExchangeRate]:
        """Run parse_row on the <td> texts of every row matched by selector."""
        return self._keep_valid(parse_row(self._cell_texts(row)) for row in soup.select(selector))

    def _buy_sell_parser(
        self,
        resolve: Callable[[str], Optional[str]],
        source_url: str,
        timestamp: datetime,
    ) -> Callable[[List[str]], Optional[ExchangeRate]]:
        """
        Row parser for "Currency | Buy | Sell" tables.

        The stored rate is the buy/sell midpoint.
        """
        def parse(cells: List[str]) -> Optional[ExchangeRate]:
            if len(cells) < 3:
                return None
            currency = resolve(cells[0])
            if not currency:
                return None
            buy = parse_number(cells[1])
            sell = parse_number(cells[2])
            rate = midpoint(buy, sell)
            if rate <= 0:
                return None
            return self._build_rate(currency, rate, source_url, timestamp, buy_rate=buy, sell_rate=sell)
        return parse

    def _scan_cards(
        self,
        soup: BeautifulSoup,
        card_selector: str,
        currency_selector: str,
        buy_selector: str,
        sell_selector: str,
        resolve: Callable[[str], Optional[str]],
        source_url: str,
        timestamp: datetime,
    ) -> List[ExchangeRate]:
        """Read rate cards (one element per currency with buy/sell children)."""
        parse = self._buy_sell_parser(resolve, source_url, timestamp)

        def texts(card) -> List[str]:
            return [
                " ".join(el.get_text(" ", strip=True) for el in card.select(selector)).strip()
                for selector in (currency_selector, buy_selector, sell_selector)
            ]

        return self._keep_valid(parse(texts(card)) for card in soup.select(card_selector))

    def _first_yielding(self, heuristics: Sequence[Heuristic]) -> Tuple[Optional[str], List[ExchangeRate]]:
        """
        Try selector heuristics in order.

        Returns:
            (label, rates) of the first heuristic with at least one valid rate,
            or (None, []) when none yields anything
        """
        for label, heuristic in heuristics:
            rates = heuristic()
            if rates:
                return label, rates
            log.debug("%s heuristic %r found no rates", self.source, label)
        return None, []

    @staticmethod
    def _parse_source_timestamp(value: Any, fallback: datetime) -> datetime:
        """
        Read a source-reported time (epoch seconds, epoch milliseconds or ISO text).

        Returns fallback when the value is missing or unreadable.
        """
        if value is None or value == "":
            return fallback
        try:
            if isinstance(value, (int, float)) or str(value).strip().isdigit():
                epoch = float(value)
                if epoch > 1e11:
                    epoch /= 1000
                return datetime.fromtimestamp(epoch, tz=timezone.utc)
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        except (ValueError, OverflowError, OSError):
            log.debug("Unreadable source timestamp %r", value)
            return fallback

    # --- Results ---

    def _success_result(self, rates: List[ExchangeRate], **metadata) -> CollectorResult:
        return CollectorResult(
            success=True,
            rates=rates,
            metadata={"collection_time_ms": 0, "rate_count": len(rates), **metadata},
        )

    def _error_result(self, error: str, **metadata) -> CollectorResult:
        return CollectorResult(
            success=False,
            rates=[],
            error=error,
            metadata={"collection_time_ms": 0, "rate_count": 0, **metadata},
        )

    def _no_rates(self, message: str, html: Optional[str] = None, **metadata) -> NoRatesFoundError:
        """Build the zero-results error, with an HTML excerpt for debugging."""
        if html is not None:
            metadata["html_excerpt"] = html[:HTML_EXCERPT_LENGTH]
        return NoRatesFoundError(message, metadata)

    def _run_strategies(self, strategies: Sequence[Callable[[], CollectorResult]]) -> CollectorResult:
        """
        Run strategies strictly in order and return the first success.

        Each strategy returns a successful CollectorResult or raises a
        CollectorError; the next one is only tried after the previous failed.

        Raises:
            CollectorError: The last strategy's error, with every attempt listed
                in metadata["attempts"]
        """
        attempts: List[str] = []
        last_error: Optional[CollectorError] = None
        for strategy in strategies:
            try:
                result = strategy()
                if attempts:
                    result.metadata.setdefault("warnings", []).extend(attempts)
                return result
            except CollectorError as e:
                log.warning("%s strategy failed, trying next: %s", self.name, e)
                attempts.append(str(e))
                last_error = e
        if last_error is None:
            raise CollectorError(f"{self.name} has no collection strategy")
        last_error.metadata["attempts"] = attempts
        raise last_error
