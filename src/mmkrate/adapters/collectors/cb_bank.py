# src/mmkrate/adapters/collectors/cb_bank.py
"""
CB Bank Collector

CB Bank has no documented rate feed, so three tiers are tried in strict
order: the rates API, the dedicated exchange-rate page, and the homepage.
Both pages are parsed the same way: rate tables first, then small rate
widgets containing text such as "USD: 4,480".

Files that USE this module:
- mmkrate.adapters.collectors (default_collectors registers CBBankCollector)

Files that this module USES:
- mmkrate.adapters.collectors.base (BaseCollector base class)
- mmkrate.adapters.collectors.currency (resolve_currency)
- mmkrate.adapters.collectors.schemas (CbBankApiResponse)
"""

from __future__ import annotations

import re
from typing import List, Optional

from mmkrate.adapters.collectors.base import BaseCollector, midpoint, parse_number
from mmkrate.adapters.collectors.currency import NameTable, resolve_currency
from mmkrate.adapters.collectors.schemas import CbBankApiResponse
from mmkrate.domain.models import CollectorPriority, CollectorResult, ExchangeRate, utc_now

CB_API = "https://www.cbbank.com.mm/api/rates"
CB_RATES_URL = "https://www.cbbank.com.mm/en/exchange-rates"
CB_URL = "https://www.cbbank.com.mm/en"

TABLE_SELECTOR = (
    "table.exchange-rates tr, table.rates tr, .exchange-rate-table tr, .currency-exchange tr, table tr"
)
WIDGET_SELECTOR = ".rate-widget, .currency-widget, .exchange-box, .rate-display"
WIDGET_PATTERN = re.compile(r"([A-Z]{3})\s*[:=]\s*([\d,]+(?:\.\d+)?)")

CB_CURRENCY_NAMES: NameTable = (
    (("Australian", "AUD"), "AUD"),
    (("Singapore", "SGD"), "SGD"),
    (("Dollar", "USD"), "USD"),
    (("Euro", "EUR"), "EUR"),
    (("Thai", "Baht", "THB"), "THB"),
    (("Yuan", "Chinese", "CNY"), "CNY"),
    (("Pound", "Sterling", "GBP"), "GBP"),
    (("Yen", "Japanese", "JPY"), "JPY"),
)


class CBBankCollector(BaseCollector):
    """Collector for CB Bank exchange rates."""

    name = "CB Bank"
    source = "CB Bank"
    priority = CollectorPriority.MEDIUM

    def __init__(
        self,
        api_url: str = CB_API,
        rates_url: str = CB_RATES_URL,
        home_url: str = CB_URL,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.api_url = api_url
        self.rates_url = rates_url
        self.home_url = home_url

    def _collect(self) -> CollectorResult:
        return self._run_strategies([
            self._collect_from_api,
            lambda: self._collect_from_page(self.rates_url),
            lambda: self._collect_from_page(self.home_url),
        ])

    def _collect_from_api(self) -> CollectorResult:
        data = self._fetch_json(self.api_url, CbBankApiResponse)
        timestamp = utc_now()

        candidates = []
        for item in data.rates:
            if not item.currency:
                continue
            buy = parse_number(item.buy) if item.buy else None
            sell = parse_number(item.sell) if item.sell else None
            if item.rate:
                rate = parse_number(item.rate)
            elif buy and sell:
                rate = midpoint(buy, sell)
            else:
                continue
            if rate > 0:
                candidates.append(
                    self._build_rate(item.currency, rate, self.api_url, timestamp, buy_rate=buy, sell_rate=sell)
                )
        rates = self._keep_valid(candidates)

        if not rates:
            raise self._no_rates("No valid rates found in CB Bank API response", method="api")
        return self._success_result(rates, method="api")

    def _collect_from_page(self, url: str) -> CollectorResult:
        """
        Scrape one CB Bank page.

        Raises:
            SourceUnavailableError: If the page cannot be fetched
            NoRatesFoundError: If neither tables nor widgets yield a valid rate
        """
        html = self._fetch_html(url)
        soup = self._soup(html)
        timestamp = utc_now()

        def from_row(cells: List[str]) -> Optional[ExchangeRate]:
            if len(cells) < 2:
                return None
            currency = resolve_currency(cells[0], CB_CURRENCY_NAMES)
            if not currency:
                return None
            if len(cells) == 2:
                rate = parse_number(cells[1])
                return self._build_rate(currency, rate, url, timestamp) if rate > 0 else None
            buy = parse_number(cells[1])
            sell = parse_number(cells[2])
            rate = midpoint(buy, sell)
            if rate <= 0:
                return None
            return self._build_rate(currency, rate, url, timestamp, buy_rate=buy, sell_rate=sell)

        def from_widgets() -> List[ExchangeRate]:
            candidates = []
            for widget in soup.select(WIDGET_SELECTOR):
                for code, value in WIDGET_PATTERN.findall(widget.get_text(" ", strip=True)):
                    rate = parse_number(value)
                    if rate > 0:
                        candidates.append(self._build_rate(code, rate, url, timestamp))
            return self._keep_valid(candidates)

        selector, rates = self._first_yielding([
            ("table tr", lambda: self._scan_rows(soup, TABLE_SELECTOR, from_row)),
            (".rate-widget", from_widgets),
        ])

        if not rates:
            raise self._no_rates(
                "No rates found on CB Bank website",
                html=html,
                method="webscrape",
                source_url=url,
                possible_issue="CB Bank may not publish rates publicly or structure has changed",
            )
        return self._success_result(rates, method="webscrape", selector=selector, source_url=url)
