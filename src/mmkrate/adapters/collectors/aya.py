# src/mmkrate/adapters/collectors/aya.py
"""
AYA Bank Collector

Tries the AYA exchange-rate API first, then scrapes the homepage rate
table, then the homepage rate cards.

Files that USE this module:
- mmkrate.adapters.collectors (default_collectors registers AYACollector)

Files that this module USES:
- mmkrate.adapters.collectors.base (BaseCollector base class)
- mmkrate.adapters.collectors.currency (resolve_currency, find_any_code)
- mmkrate.adapters.collectors.schemas (AyaApiResponse)
"""

from __future__ import annotations

from mmkrate.adapters.collectors.base import BaseCollector, midpoint, parse_number
from mmkrate.adapters.collectors.currency import NameTable, find_any_code, resolve_currency
from mmkrate.adapters.collectors.schemas import AyaApiResponse
from mmkrate.domain.models import CollectorPriority, CollectorResult, utc_now

AYA_RATES_API = "https://www.ayabank.com/api/exchange-rates"
AYA_URL = "https://www.ayabank.com/en_US/"

AYA_CURRENCY_NAMES: NameTable = (
    (("Singapore",), "SGD"),
    (("Dollar", "USD"), "USD"),
    (("Euro", "EUR"), "EUR"),
    (("Thai", "Baht"), "THB"),
    (("Yuan", "Renminbi"), "CNY"),
)


class AYACollector(BaseCollector):
    """Collector for AYA Bank exchange rates."""

    name = "AYA Bank"
    source = "AYA"
    priority = CollectorPriority.MEDIUM

    def __init__(self, api_url: str = AYA_RATES_API, page_url: str = AYA_URL, **kwargs):
        super().__init__(**kwargs)
        self.api_url = api_url
        self.page_url = page_url

    def _collect(self) -> CollectorResult:
        return self._run_strategies([self._collect_from_api, self._collect_from_website])

    def _collect_from_api(self) -> CollectorResult:
        data = self._fetch_json(self.api_url, AyaApiResponse)
        timestamp = utc_now()

        candidates = []
        for item in data.rates:
            # Incomplete items are skipped, not treated as a broken response
            if not (item.currency and item.buy_rate and item.sell_rate):
                continue
            buy = parse_number(item.buy_rate)
            sell = parse_number(item.sell_rate)
            candidates.append(
                self._build_rate(item.currency, midpoint(buy, sell), self.api_url, timestamp, buy_rate=buy, sell_rate=sell)
            )
        rates = self._keep_valid(candidates)

        if not rates:
            raise self._no_rates("No valid rates in AYA API response", method="api")
        return self._success_result(rates, method="api")

    def _collect_from_website(self) -> CollectorResult:
        """
        Scrape the AYA homepage: rate tables first, rate cards second.

        Raises:
            SourceUnavailableError: If the page cannot be fetched
            NoRatesFoundError: If no valid rate is found
        """
        html = self._fetch_html(self.page_url)
        soup = self._soup(html)
        timestamp = utc_now()

        row_parser = self._buy_sell_parser(
            lambda text: resolve_currency(text, AYA_CURRENCY_NAMES), self.page_url, timestamp
        )

        selector, rates = self._first_yielding([
            (
                ".exchange-rates table tr",
                lambda: self._scan_rows(
                    soup, ".exchange-rates table tr, .currency-exchange tr, .forex-rates tr", row_parser
                ),
            ),
            (
                ".rate-card",
                lambda: self._scan_cards(
                    soup,
                    ".rate-card, .currency-card, .exchange-rate-item",
                    ".currency-name, .currency-code",
                    ".buy-rate, .buying-rate",
                    ".sell-rate, .selling-rate",
                    find_any_code,
                    self.page_url,
                    timestamp,
                ),
            ),
        ])

        if not rates:
            raise self._no_rates("No rates found on AYA website", html=html, method="webscrape")
        return self._success_result(rates, method="webscrape", selector=selector)
