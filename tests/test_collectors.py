# tests/test_collectors.py
"""
Collector Tests - Unit Tests for the Source Collectors

This module contains unit tests for every collector: API success paths,
fallback to scraping when the API is unreachable or malformed, selector
heuristics, zero-result errors with HTML excerpts, and source specifics
(Yoma remittance, CB Bank tier order, Binance P2P averaging).

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- mmkrate.adapters.collectors (all collectors)
- unittest.mock (Mock and patch for HTTP calls)
- pytest (testing framework)
"""
import asyncio
from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest
import requests

from mmkrate.adapters.collectors import (
    AYACollector,
    BinanceP2PCollector,
    CBBankCollector,
    CBMCollector,
    KBZCollector,
    YomaCollector,
    default_collectors,
)
from mmkrate.adapters.collectors.aya import AYA_RATES_API, AYA_URL
from mmkrate.adapters.collectors.cb_bank import CB_API, CB_RATES_URL, CB_URL
from mmkrate.adapters.collectors.cbm import CBM_API_URL, CBM_URL
from mmkrate.adapters.collectors.kbz import KBZ_URL
from mmkrate.adapters.collectors.yoma import YOMA_API, YOMA_URL
from mmkrate.domain.models import CollectorPriority


def _json_response(payload):
    resp = Mock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


def _html_response(html):
    resp = Mock()
    resp.text = html
    resp.json.side_effect = ValueError("Expecting value")
    resp.raise_for_status.return_value = None
    return resp


def _routes(mapping):
    """requests.get replacement answering by URL; exceptions in the mapping are raised."""
    def fake_get(url, **kwargs):
        outcome = mapping[url]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome
    return fake_get


def _collect(collector):
    return asyncio.run(collector.collect())


def _by_currency(result):
    return {rate.currency: rate for rate in result.rates}


class TestDefaultCollectors:
    def test_all_sources_sorted_by_priority(self):
        collectors = default_collectors()
        assert [c.source for c in collectors] == ["CBM", "KBZ", "AYA", "Yoma", "CB Bank", "Binance P2P"]
        assert collectors[0].priority == CollectorPriority.HIGH
        assert collectors[-1].priority == CollectorPriority.LOW

    def test_kwargs_are_passed_to_every_collector(self):
        collectors = default_collectors(timeout=5, user_agent="test-agent")
        assert all(c.timeout == 5 for c in collectors)
        assert all(c.user_agent == "test-agent" for c in collectors)


class TestCBMCollector:
    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_api_success(self, mock_get):
        mock_get.side_effect = _routes({
            CBM_API_URL: _json_response({
                "timestamp": 1700000000,
                "rates": {"USD": "2,100.0", "EUR": 2280.5, "XYZW": 5, "JPY": None},
            }),
        })

        result = _collect(CBMCollector())

        assert result.success
        assert result.metadata["method"] == "api"
        rates = _by_currency(result)
        assert set(rates) == {"USD", "EUR"}
        assert rates["USD"].rate == 2100.0
        assert rates["USD"].source == "CBM"
        assert rates["USD"].source_url == CBM_API_URL
        assert rates["USD"].timestamp == datetime.fromtimestamp(1700000000, tz=timezone.utc)
        assert "collection_time_ms" in result.metadata

    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_malformed_api_falls_back_to_website(self, mock_get):
        html = """
        <table>
          <tr><th>No</th><th>Currency</th><th>Rate</th></tr>
          <tr><td>1</td><td>USD</td><td>2,100.00</td></tr>
          <tr><td>2</td><td>EUR</td><td>2,280.50</td></tr>
        </table>
        """
        mock_get.side_effect = _routes({
            CBM_API_URL: _json_response({"unexpected": True}),
            CBM_URL: _html_response(html),
        })

        result = _collect(CBMCollector())

        assert result.success
        assert result.metadata["method"] == "webscrape"
        assert result.metadata["selector"] == "table tr"
        assert len(result.metadata["warnings"]) == 1
        assert "unexpected structure" in result.metadata["warnings"][0]
        rates = _by_currency(result)
        assert rates["EUR"].rate == 2280.5
        assert rates["EUR"].source_url == CBM_URL
        assert rates["EUR"].buy_rate is None

    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_fxrate_table_strategy(self, mock_get):
        html = """
        <table class="fxrate-table">
          <tr><td>US Dollar (USD)</td><td>2,100</td></tr>
          <tr><td>Euro (EUR)</td><td>2,280</td></tr>
        </table>
        """
        mock_get.side_effect = _routes({
            CBM_API_URL: requests.exceptions.ConnectionError("connection refused"),
            CBM_URL: _html_response(html),
        })

        result = _collect(CBMCollector())

        assert result.success
        assert result.metadata["selector"] == ".fxrate-table tr"
        assert set(_by_currency(result)) == {"USD", "EUR"}

    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_api_timeout_is_reported_as_warning(self, mock_get):
        html = "<table><tr><td>1</td><td>USD</td><td>2,100</td></tr></table>"
        mock_get.side_effect = _routes({
            CBM_API_URL: requests.exceptions.Timeout("read timed out"),
            CBM_URL: _html_response(html),
        })

        result = _collect(CBMCollector(timeout=7))

        assert result.success
        assert "timeout after 7s" in result.metadata["warnings"][0]

    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_no_rates_anywhere(self, mock_get):
        html = "<html><body>Site under maintenance</body></html>"
        mock_get.side_effect = _routes({
            CBM_API_URL: requests.exceptions.ConnectionError("connection refused"),
            CBM_URL: _html_response(html),
        })

        result = _collect(CBMCollector())

        assert not result.success
        assert result.rates == []
        assert result.error == "No rates found on CBM website"
        assert result.metadata["html_excerpt"] == html[:500]
        assert len(result.metadata["attempts"]) == 2
        assert "CBM request failed" in result.metadata["attempts"][0]

    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_out_of_range_rates_are_dropped(self, mock_get):
        mock_get.side_effect = _routes({
            CBM_API_URL: _json_response({"rates": {"USD": 2100, "VND": 0.09, "IDR": 20000}}),
        })

        result = _collect(CBMCollector())

        assert result.success
        rates = _by_currency(result)
        assert "USD" in rates
        assert "VND" in rates
        assert "IDR" not in rates


class TestKBZCollector:
    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_table_rows_with_codes(self, mock_get):
        html = """
        <table>
          <tr><th>Currency</th><th>Buy</th><th>Sell</th></tr>
          <tr><td>US Dollar (USD)</td><td>2,095</td><td>2,105</td></tr>
          <tr><td>Euro (EUR)</td><td>2,270</td><td>2,290</td></tr>
        </table>
        """
        mock_get.side_effect = _routes({KBZ_URL: _html_response(html)})

        result = _collect(KBZCollector())

        assert result.success
        assert result.metadata["method"] == "webscrape"
        assert result.metadata["selector"] == "table tr"
        usd = _by_currency(result)["USD"]
        assert usd.rate == 2100.0
        assert usd.buy_rate == 2095.0
        assert usd.sell_rate == 2105.0
        assert usd.source == "KBZ"

    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_rate_table_matched_by_name(self, mock_get):
        html = """
        <table class="rate-table">
          <tr><td>US Dollar</td><td>2,095</td><td>2,105</td></tr>
          <tr><td>Singapore Dollar</td><td>1,550</td><td>1,560</td></tr>
        </table>
        """
        mock_get.side_effect = _routes({KBZ_URL: _html_response(html)})

        result = _collect(KBZCollector())

        assert result.success
        assert result.metadata["selector"] == ".exchange-rate-table tr"
        rates = _by_currency(result)
        assert set(rates) == {"USD", "SGD"}
        assert rates["SGD"].rate == 1555.0

    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_http_error(self, mock_get):
        resp = Mock()
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError("500 Server Error")
        mock_get.return_value = resp

        result = _collect(KBZCollector())

        assert not result.success
        assert "KBZ request failed" in result.error
        assert "500 Server Error" in result.error


class TestAYACollector:
    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_api_success_skips_incomplete_items(self, mock_get):
        mock_get.side_effect = _routes({
            AYA_RATES_API: _json_response({
                "rates": [
                    {"currency": "USD", "buy_rate": "2,095", "sell_rate": "2,105"},
                    {"currency": "EUR", "buy_rate": None, "sell_rate": "2,290"},
                ],
            }),
        })

        result = _collect(AYACollector())

        assert result.success
        assert result.metadata["method"] == "api"
        assert list(_by_currency(result)) == ["USD"]
        assert result.rates[0].rate == 2100.0

    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_empty_api_falls_back_to_rate_cards(self, mock_get):
        html = """
        <div class="rate-card">
          <span class="currency-code">USD</span>
          <span class="buy-rate">2,095</span>
          <span class="sell-rate">2,105</span>
        </div>
        """
        mock_get.side_effect = _routes({
            AYA_RATES_API: _json_response({"rates": []}),
            AYA_URL: _html_response(html),
        })

        result = _collect(AYACollector())

        assert result.success
        assert result.metadata["method"] == "webscrape"
        assert result.metadata["selector"] == ".rate-card"
        assert result.metadata["warnings"] == ["No valid rates in AYA API response"]
        assert _by_currency(result)["USD"].rate == 2100.0

    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_table_rows_matched_by_name(self, mock_get):
        html = """
        <div class="exchange-rates"><table>
          <tr><td>Thai Baht</td><td>60</td><td>62</td></tr>
        </table></div>
        """
        mock_get.side_effect = _routes({
            AYA_RATES_API: _html_response("<html>not json</html>"),
            AYA_URL: _html_response(html),
        })

        result = _collect(AYACollector())

        assert result.success
        assert result.metadata["selector"] == ".exchange-rates table tr"
        assert _by_currency(result)["THB"].rate == 61.0
        assert "invalid JSON" in result.metadata["warnings"][0]


class TestYomaCollector:
    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_api_success(self, mock_get):
        mock_get.side_effect = _routes({
            YOMA_API: _json_response({"rates": [{"currency": "usd", "buy": 2095, "sell": 2105}]}),
        })

        result = _collect(YomaCollector())

        assert result.success
        assert result.rates[0].currency == "USD"
        assert result.rates[0].source == "Yoma"

    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_website_with_remittance_rate(self, mock_get):
        html = """
        <table class="rate-table">
          <tr><td>USD</td><td>2,095</td><td>2,105</td></tr>
        </table>
        <div class="remittance">
          <h3>Worker Remittance</h3>
          <p>1 USD = 2,150 MMK</p>
        </div>
        """
        mock_get.side_effect = _routes({
            YOMA_API: requests.exceptions.ConnectionError("connection refused"),
            YOMA_URL: _html_response(html),
        })

        result = _collect(YomaCollector())

        assert result.success
        assert result.metadata["method"] == "webscrape"
        assert result.metadata["remittance"] is True
        rates = _by_currency(result)
        assert rates["USD"].rate == 2100.0
        assert rates["USD_REMITTANCE"].rate == 2150.0

    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_remittance_only(self, mock_get):
        html = "<section><p>Remittance rate: 1 USD = 2,140.5 MMK</p></section>"
        mock_get.side_effect = _routes({
            YOMA_API: _json_response({"rates": []}),
            YOMA_URL: _html_response(html),
        })

        result = _collect(YomaCollector())

        assert result.success
        assert [r.currency for r in result.rates] == ["USD_REMITTANCE"]
        assert result.rates[0].rate == 2140.5
        assert result.metadata["selector"] is None

    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_no_rates(self, mock_get):
        mock_get.side_effect = _routes({
            YOMA_API: _json_response({"rates": []}),
            YOMA_URL: _html_response("<p>Coming soon</p>"),
        })

        result = _collect(YomaCollector())

        assert not result.success
        assert result.error == "No rates found on Yoma website"
        assert result.metadata["html_excerpt"] == "<p>Coming soon</p>"


class TestCBBankCollector:
    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_api_bare_list(self, mock_get):
        mock_get.side_effect = _routes({
            CB_API: _json_response([
                {"currency": "USD", "buy": "2,090", "sell": "2,110"},
                {"currency": "EUR", "rate": "2,280"},
                {"currency": "THB"},
            ]),
        })

        result = _collect(CBBankCollector())

        assert result.success
        assert result.metadata["method"] == "api"
        rates = _by_currency(result)
        assert rates["USD"].rate == 2100.0
        assert rates["EUR"].rate == 2280.0
        assert "THB" not in rates

    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_tiers_run_in_order(self, mock_get):
        mock_get.side_effect = _routes({
            CB_API: _json_response({"data": []}),
            CB_RATES_URL: requests.exceptions.ConnectionError("connection refused"),
            CB_URL: _html_response('<div class="rate-widget">USD: 2,100 EUR = 2,280</div>'),
        })

        result = _collect(CBBankCollector())

        assert result.success
        assert [c.args[0] for c in mock_get.call_args_list] == [CB_API, CB_RATES_URL, CB_URL]
        assert result.metadata["selector"] == ".rate-widget"
        assert result.metadata["source_url"] == CB_URL
        assert len(result.metadata["warnings"]) == 2
        assert set(_by_currency(result)) == {"USD", "EUR"}

    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_rates_page_two_column_rows(self, mock_get):
        html = "<table><tr><td>Australian Dollar</td><td>1,400</td></tr></table>"
        mock_get.side_effect = _routes({
            CB_API: requests.exceptions.ConnectionError("connection refused"),
            CB_RATES_URL: _html_response(html),
        })

        result = _collect(CBBankCollector())

        assert result.success
        assert result.metadata["selector"] == "table tr"
        assert _by_currency(result)["AUD"].rate == 1400.0
        assert mock_get.call_count == 2

    @patch("mmkrate.adapters.collectors.base.requests.get")
    def test_all_tiers_fail(self, mock_get):
        mock_get.side_effect = _routes({
            CB_API: requests.exceptions.ConnectionError("connection refused"),
            CB_RATES_URL: _html_response("<p>No rates</p>"),
            CB_URL: _html_response("<p>Welcome</p>"),
        })

        result = _collect(CBBankCollector())

        assert not result.success
        assert result.error == "No rates found on CB Bank website"
        assert result.metadata["source_url"] == CB_URL
        assert "possible_issue" in result.metadata
        assert len(result.metadata["attempts"]) == 3


def _p2p_response(prices, code="000000", message=None):
    data = [{"adv": {"price": price}} for price in prices]
    return _json_response({"code": code, "message": message, "data": data})


def _p2p_routes(buy, sell):
    def fake_post(url, json=None, **kwargs):
        outcome = buy if json["tradeType"] == "BUY" else sell
        if isinstance(outcome, Exception):
            raise outcome
        return outcome
    return fake_post


class TestBinanceP2PCollector:
    @patch("mmkrate.adapters.collectors.base.requests.post")
    def test_averages_best_five_offers(self, mock_post):
        mock_post.side_effect = _p2p_routes(
            _p2p_response(["4,500", "4510", "4520", "4530", "4540", "4600"]),
            _p2p_response(["4400", "4410", "4420", "4430", "4440"]),
        )

        result = _collect(BinanceP2PCollector())

        assert result.success
        rates = _by_currency(result)
        assert set(rates) == {"USDT", "USD"}
        assert rates["USDT"].rate == 4470.0
        assert rates["USDT"].buy_rate == 4520.0
        assert rates["USDT"].sell_rate == 4420.0
        assert rates["USD"].rate == rates["USDT"].rate
        assert rates["USD"].source == "Binance P2P"
        assert result.metadata["usd_parity_assumed"] is True
        assert result.metadata["buy_offers_analyzed"] == 6
        assert result.metadata["top_buy_rates"] == [4500.0, 4510.0, 4520.0]

        payload = mock_post.call_args_list[0].kwargs["json"]
        assert payload["asset"] == "USDT"
        assert payload["fiat"] == "MMK"
        assert payload["rows"] == 10

    @patch("mmkrate.adapters.collectors.base.requests.post")
    def test_one_empty_side_uses_the_other(self, mock_post):
        mock_post.side_effect = _p2p_routes(
            _p2p_response([]),
            _p2p_response(["4400", "4440"]),
        )

        result = _collect(BinanceP2PCollector())

        assert result.success
        usdt = _by_currency(result)["USDT"]
        assert usdt.rate == 4420.0
        assert usdt.buy_rate is None
        assert result.metadata["warnings"] == ["BUY side unavailable: no offers"]

    @patch("mmkrate.adapters.collectors.base.requests.post")
    def test_api_error_code(self, mock_post):
        error = _json_response({"code": "000002", "message": "Illegal parameter", "data": None})
        mock_post.side_effect = _p2p_routes(error, error)

        result = _collect(BinanceP2PCollector())

        assert not result.success
        assert "Illegal parameter" in result.error
        assert "BUY" in result.metadata["side_errors"]

    @patch("mmkrate.adapters.collectors.base.requests.post")
    def test_no_offers(self, mock_post):
        mock_post.side_effect = _p2p_routes(_p2p_response([]), _p2p_response(["0"]))

        result = _collect(BinanceP2PCollector())

        assert not result.success
        assert result.error == "No valid P2P rates found"


class TestUnexpectedErrors:
    def test_unexpected_exception_becomes_failed_result(self):
        collector = KBZCollector()
        with patch.object(KBZCollector, "_collect", side_effect=KeyError("boom")):
            result = _collect(collector)

        assert not result.success
        assert result.error.startswith("Unexpected error:")
        assert result.metadata["rate_count"] == 0
