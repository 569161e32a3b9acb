# src/mmkrate/adapters/collectors/yoma.py
"""
Yoma Bank Collector

Tries the Yoma exchange-rate API first, then scrapes the rates page
(tables, then rate cards). The rates page also advertises a worker
remittance rate ("1 USD = 2,100 MMK"), stored under the synthetic
currency code USD_REMITTANCE.

Files that USE this module:
- mmkrate.adapters.collectors (default_collectors registers YomaCollector)

Files that this module USES:
- mmkrate.adapters.collectors.base (BaseCollector base class)
- mmkrate.adapters.collectors.currency (resolve_currency, find_any_code)
- mmkrate.adapters.collectors.schemas (YomaApiResponse)
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Optional

from bs4 import BeautifulSoup

from mmkrate.adapters.collectors.base import BaseCollector, midpoint, parse_number
from mmkrate.adapters.collectors.currency import NameTable, find_any_code, resolve_currency
from mmkrate.adapters.collectors.schemas import YomaApiResponse
from mmkrate.domain.models import CollectorPriority, CollectorResult, ExchangeRate, utc_now

log = logging.getLogger(__name__)

YOMA_API = "https://www.yomabank.com/api/exchange-rates"
YOMA_URL = "https://www.yomabank.com/en/rates/"

REMITTANCE_CURRENCY = "USD_REMITTANCE"
REMITTANCE_LABEL = re.compile(r"remittance", re.I)
REMITTANCE_PATTERN = re.compile(r"1\s*USD\s*=\s*([\d,]+(?:\.\d+)?)\s*MMK", re.I)

YOMA_CURRENCY_NAMES: NameTable = (
    (("Singapore",), "SGD"),
    (("Dollar", "USD"), "USD"),
    (("Euro", "EUR"), "EUR"),
    (("Thai", "Baht"), "THB"),
    (("Yuan", "Chinese"), "CNY"),
    (("Pound", "Sterling"), "GBP"),
    (("Yen", "Japanese"), "JPY"),
)


class YomaCollector(BaseCollector):
    """Collector for Yoma Bank exchange and remittance rates."""

    name = "Yoma Bank"
    source = "Yoma"
    priority = CollectorPriority.MEDIUM

    def __init__(self, api_url: str = YOMA_API, page_url: str = YOMA_URL, **kwargs):
        super().__init__(**kwargs)
        self.api_url = api_url
        self.page_url = page_url

    def _collect(self) -> CollectorResult:
        return self._run_strategies([self._collect_from_api, self._collect_from_website])

    def _collect_from_api(self) -> CollectorResult:
        data = self._fetch_json(self.api_url, YomaApiResponse)
        timestamp = utc_now()

        candidates = []
        for item in data.rates:
            if not (item.currency and item.buy and item.sell):
                continue
            buy = parse_number(item.buy)
            sell = parse_number(item.sell)
            candidates.append(
                self._build_rate(item.currency, midpoint(buy, sell), self.api_url, timestamp, buy_rate=buy, sell_rate=sell)
            )
        rates = self._keep_valid(candidates)

        if not rates:
            raise self._no_rates("No valid rates in Yoma API response", method="api")
        return self._success_result(rates, method="api")

    def _collect_from_website(self) -> CollectorResult:
        """
        Scrape the Yoma rates page.

        Raises:
            SourceUnavailableError: If the page cannot be fetched
            NoRatesFoundError: If neither exchange nor remittance rates are found
        """
        html = self._fetch_html(self.page_url)
        soup = self._soup(html)
        timestamp = utc_now()

        row_parser = self._buy_sell_parser(
            lambda text: resolve_currency(text, YOMA_CURRENCY_NAMES), self.page_url, timestamp
        )

        selector, rates = self._first_yielding([
            (
                ".exchange-rate-table tr",
                lambda: self._scan_rows(
                    soup,
                    ".exchange-rate-table tr, .rate-table tr, .forex-rates tr, table.rates tr",
                    row_parser,
                ),
            ),
            (
                ".rate-card",
                lambda: self._scan_cards(
                    soup,
                    ".rate-card, .currency-card, .exchange-rate-item, .rate-box",
                    ".currency-name, .currency-code, .currency",
                    ".buy-rate, .buying-rate, .buy",
                    ".sell-rate, .selling-rate, .sell",
                    find_any_code,
                    self.page_url,
                    timestamp,
                ),
            ),
        ])

        remittance = self._keep_valid([self._remittance_rate(soup, timestamp)])
        rates = rates + remittance

        if not rates:
            raise self._no_rates("No rates found on Yoma website", html=html, method="webscrape")
        return self._success_result(
            rates, method="webscrape", selector=selector, remittance=bool(remittance)
        )

    def _remittance_rate(self, soup: BeautifulSoup, timestamp: datetime) -> Optional[ExchangeRate]:
        """Find "1 USD = N MMK" in the block that mentions remittance."""
        for label in soup.find_all(string=REMITTANCE_LABEL):
            element = label.find_parent()
            # The figure is sometimes in a sibling of the label element
            for block in (element, element.parent if element else None):
                if block is None:
                    continue
                match = REMITTANCE_PATTERN.search(block.get_text(" ", strip=True))
                if match:
                    rate = parse_number(match.group(1))
                    if rate > 0:
                        log.debug("Yoma remittance rate found: %s", rate)
                        return self._build_rate(REMITTANCE_CURRENCY, rate, self.page_url, timestamp)
        return None
