# src/mmkrate/adapters/collectors/kbz.py
"""
KBZ Bank Collector

KBZ publishes reference rates only on its website (no API). Rows are read
as Currency | Buy | Sell and the stored rate is the buy/sell midpoint.

Files that USE this module:
- mmkrate.adapters.collectors (default_collectors registers KBZCollector)

Files that this module USES:
- mmkrate.adapters.collectors.base (BaseCollector base class)
- mmkrate.adapters.collectors.currency (extract_code, match_name)
"""

from __future__ import annotations

from mmkrate.adapters.collectors.base import BaseCollector
from mmkrate.adapters.collectors.currency import NameTable, extract_code, match_name
from mmkrate.domain.models import CollectorPriority, CollectorResult, utc_now

KBZ_URL = "https://www.kbzbank.com/en/reference-exchange-rate/"

KBZ_CURRENCY_NAMES: NameTable = (
    (("SGD", "Singapore"), "SGD"),
    (("USD", "Dollar"), "USD"),
    (("EUR", "Euro"), "EUR"),
    (("THB", "Thai"), "THB"),
    (("JPY", "Yen"), "JPY"),
    (("CNY", "Yuan"), "CNY"),
    (("GBP", "Pound"), "GBP"),
)


class KBZCollector(BaseCollector):
    """Collector for KBZ Bank reference exchange rates."""

    name = "KBZ Bank"
    source = "KBZ"
    priority = CollectorPriority.MEDIUM

    def __init__(self, page_url: str = KBZ_URL, **kwargs):
        super().__init__(**kwargs)
        self.page_url = page_url

    def _collect(self) -> CollectorResult:
        return self._run_strategies([self._collect_from_website])

    def _collect_from_website(self) -> CollectorResult:
        """
        Scrape the KBZ reference rate page.

        Generic table rows must carry an explicit code ("US Dollar (USD)");
        the dedicated rate tables are matched against currency names.

        Raises:
            SourceUnavailableError: If the page cannot be fetched
            NoRatesFoundError: If no valid rate is found
        """
        html = self._fetch_html(self.page_url)
        soup = self._soup(html)
        timestamp = utc_now()

        by_code = self._buy_sell_parser(extract_code, self.page_url, timestamp)
        by_name = self._buy_sell_parser(
            lambda text: match_name(text, KBZ_CURRENCY_NAMES), self.page_url, timestamp
        )

        selector, rates = self._first_yielding([
            ("table tr", lambda: self._scan_rows(soup, "table tr", by_code)),
            (
                ".exchange-rate-table tr",
                lambda: self._scan_rows(
                    soup, ".exchange-rate-table tr, .rate-table tr, .forex-table tr", by_name
                ),
            ),
        ])

        if not rates:
            raise self._no_rates("No rates found on KBZ website", html=html, method="webscrape")
        return self._success_result(rates, method="webscrape", selector=selector)
