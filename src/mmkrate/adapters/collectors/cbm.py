# src/mmkrate/adapters/collectors/cbm.py
"""
Central Bank of Myanmar Collector

Collects the official CBM reference rates. The JSON API is tried first;
when it fails or is malformed, the public rate page is scraped with two
table strategies.

Files that USE this module:
- mmkrate.adapters.collectors (default_collectors registers CBMCollector)

Files that this module USES:
- mmkrate.adapters.collectors.base (BaseCollector base class)
- mmkrate.adapters.collectors.currency (extract_code)
- mmkrate.adapters.collectors.schemas (CbmApiResponse)
"""

from __future__ import annotations

import logging
from typing import List, Optional

from mmkrate.adapters.collectors.base import BaseCollector, parse_number
from mmkrate.adapters.collectors.currency import extract_code
from mmkrate.adapters.collectors.schemas import CbmApiResponse
from mmkrate.domain.models import CollectorPriority, CollectorResult, ExchangeRate, utc_now

log = logging.getLogger(__name__)

CBM_API_URL = "https://forex.cbm.gov.mm/api/latest"
CBM_URL = "https://forex.cbm.gov.mm/index.php/fxrate"


class CBMCollector(BaseCollector):
    """Collector for the Central Bank of Myanmar reference rates."""

    name = "Central Bank of Myanmar"
    source = "CBM"
    priority = CollectorPriority.HIGH

    def __init__(self, api_url: str = CBM_API_URL, page_url: str = CBM_URL, **kwargs):
        super().__init__(**kwargs)
        self.api_url = api_url
        self.page_url = page_url

    def _collect(self) -> CollectorResult:
        return self._run_strategies([self._collect_from_api, self._collect_from_website])

    def _collect_from_api(self) -> CollectorResult:
        """
        Read rates from the CBM JSON API.

        Raises:
            SourceUnavailableError: If the API cannot be reached
            MalformedResponseError: If the response has no rates mapping
            NoRatesFoundError: If no rate in the response passes validation
        """
        data = self._fetch_json(self.api_url, CbmApiResponse)
        timestamp = self._parse_source_timestamp(data.timestamp, utc_now())

        candidates = []
        for currency, value in data.rates.items():
            rate = parse_number(value)
            if rate > 0:
                candidates.append(self._build_rate(currency, rate, self.api_url, timestamp))
        rates = self._keep_valid(candidates)

        if not rates:
            raise self._no_rates("No valid rates in CBM API response", method="api")
        return self._success_result(rates, method="api")

    def _collect_from_website(self) -> CollectorResult:
        """
        Scrape the public CBM rate page.

        Strategy 1 reads generic table rows (No, Currency, Rate[, Buy, Sell]);
        strategy 2 reads the dedicated fxrate tables (Label (CODE), Rate).

        Raises:
            SourceUnavailableError: If the page cannot be fetched
            NoRatesFoundError: If neither strategy yields a valid rate
        """
        html = self._fetch_html(self.page_url)
        soup = self._soup(html)
        timestamp = utc_now()

        def from_generic_row(cells: List[str]) -> Optional[ExchangeRate]:
            if len(cells) < 3:
                return None
            currency = cells[1].strip().upper()
            rate = parse_number(cells[2])
            # Buy/sell columns are optional; blank or "-" means not quoted
            buy = parse_number(cells[3]) if len(cells) > 3 else 0.0
            sell = parse_number(cells[4]) if len(cells) > 4 else 0.0
            if not currency or rate <= 0:
                return None
            return self._build_rate(
                currency, rate, self.page_url, timestamp, buy_rate=buy or None, sell_rate=sell or None
            )

        def from_fxrate_row(cells: List[str]) -> Optional[ExchangeRate]:
            if len(cells) < 2:
                return None
            currency = extract_code(cells[0])
            rate = parse_number(cells[1])
            if not currency or rate <= 0:
                return None
            return self._build_rate(currency, rate, self.page_url, timestamp)

        selector, rates = self._first_yielding([
            ("table tr", lambda: self._scan_rows(soup, "table tr", from_generic_row)),
            (
                ".fxrate-table tr",
                lambda: self._scan_rows(
                    soup, ".fxrate-table tr, .exchange-rate-table tr, #fxrate tr", from_fxrate_row
                ),
            ),
        ])

        if not rates:
            raise self._no_rates("No rates found on CBM website", html=html, method="webscrape")
        return self._success_result(rates, method="webscrape", selector=selector)
