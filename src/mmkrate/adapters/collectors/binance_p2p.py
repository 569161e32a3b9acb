# src/mmkrate/adapters/collectors/binance_p2p.py
"""
Binance P2P Collector

Reads the USDT/MMK peer-to-peer order books (buy and sell side, top 10
offers each) and averages the best 5 prices per side to damp outlier
quotes. The mid rate is stored for USDT and, assuming 1 USDT = 1 USD, as a
market USD rate. The parity is a modelling assumption, not a live peg rate;
results carry ``usd_parity_assumed`` in their metadata so consumers can tell.

Files that USE this module:
- mmkrate.adapters.collectors (default_collectors registers BinanceP2PCollector)

Files that this module USES:
- mmkrate.adapters.collectors.base (BaseCollector base class)
- mmkrate.adapters.collectors.schemas (BinanceP2PResponse)
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from mmkrate.adapters.collectors.base import BaseCollector, midpoint, parse_number
from mmkrate.adapters.collectors.schemas import BinanceP2PResponse
from mmkrate.domain.errors import CollectorError, MalformedResponseError
from mmkrate.domain.models import CollectorPriority, CollectorResult, utc_now

log = logging.getLogger(__name__)

BINANCE_P2P_API = "https://p2p.binance.com/bapi/c2c/v2/friendly/c2c/adv/search"
BINANCE_P2P_URL = "https://p2p.binance.com/trade/all-payments/USDT?fiat=MMK"

ASSET = "USDT"
FIAT = "MMK"
OFFERS_PER_SIDE = 10
OFFERS_AVERAGED = 5
SUCCESS_CODE = "000000"


def average_best(prices: List[float], count: int = OFFERS_AVERAGED) -> float:
    """Average of the first ``count`` prices (the API lists best offers first)."""
    best = prices[:count]
    if not best:
        return 0.0
    return sum(best) / len(best)


class BinanceP2PCollector(BaseCollector):
    """Collector for the Binance P2P USDT/MMK market rate."""

    name = "Binance P2P"
    source = "Binance P2P"
    priority = CollectorPriority.LOW

    def __init__(self, api_url: str = BINANCE_P2P_API, **kwargs):
        super().__init__(**kwargs)
        self.api_url = api_url

    def _collect(self) -> CollectorResult:
        return self._run_strategies([self._collect_from_api])

    def _fetch_side(self, trade_type: str) -> List[float]:
        """
        Fetch one side of the order book.

        Args:
            trade_type: "BUY" or "SELL"

        Returns:
            Positive offer prices, best first

        Raises:
            SourceUnavailableError: If the API cannot be reached
            MalformedResponseError: If the API reports an error or the body is malformed
        """
        payload = {
            "page": 1,
            "rows": OFFERS_PER_SIDE,
            "payTypes": [],
            "countries": [],
            "publisherType": None,
            "asset": ASSET,
            "fiat": FIAT,
            "tradeType": trade_type,
        }
        data = self._post_json(self.api_url, payload, BinanceP2PResponse)
        if data.code != SUCCESS_CODE or data.data is None:
            raise MalformedResponseError(f"Binance P2P API error: {data.message or 'Unknown error'}")

        prices = [parse_number(offer.adv.price) for offer in data.data if offer.adv and offer.adv.price]
        return [price for price in prices if price > 0]

    def _collect_from_api(self) -> CollectorResult:
        sides: Dict[str, List[float]] = {}
        side_errors: Dict[str, str] = {}
        for trade_type in ("BUY", "SELL"):
            try:
                sides[trade_type] = self._fetch_side(trade_type)
            except CollectorError as e:
                log.warning("Binance P2P %s side failed: %s", trade_type, e)
                side_errors[trade_type] = str(e)
                sides[trade_type] = []

        buy_prices, sell_prices = sides["BUY"], sides["SELL"]
        buy_avg = average_best(buy_prices)
        sell_avg = average_best(sell_prices)

        buy_rate: Optional[float] = buy_avg or None
        sell_rate: Optional[float] = sell_avg or None
        if buy_rate and sell_rate:
            rate = midpoint(buy_rate, sell_rate)
        else:
            # One empty side: use the other one rather than halving the rate
            rate = buy_rate or sell_rate or 0.0

        diagnostics = {
            "method": "api",
            "buy_offers_analyzed": len(buy_prices),
            "sell_offers_analyzed": len(sell_prices),
        }
        if rate <= 0:
            if len(side_errors) == 2:
                raise CollectorError(
                    f"Binance P2P collection failed: {side_errors['BUY']}",
                    {**diagnostics, "side_errors": side_errors},
                )
            raise self._no_rates("No valid P2P rates found", **diagnostics)

        timestamp = utc_now()
        rates = self._keep_valid([
            self._build_rate(code, rate, BINANCE_P2P_URL, timestamp, buy_rate=buy_rate, sell_rate=sell_rate)
            for code in (ASSET, "USD")
        ])
        if not rates:
            raise self._no_rates("No valid P2P rates found", **diagnostics)

        warnings = [
            f"{side} side unavailable: {side_errors.get(side, 'no offers')}"
            for side in ("BUY", "SELL")
            if not sides[side]
        ]
        return self._success_result(
            rates,
            platform="Binance P2P",
            top_buy_rates=buy_prices[:3],
            top_sell_rates=sell_prices[:3],
            usd_parity_assumed=True,
            warnings=warnings,
            **diagnostics,
        )
