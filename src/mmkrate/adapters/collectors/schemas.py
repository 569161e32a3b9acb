# src/mmkrate/adapters/collectors/schemas.py
"""
API Response Schemas

Pydantic models for the JSON endpoints the collectors call. A response that
does not fit its model is reported as MalformedResponseError by
BaseCollector, which makes the collector move on to its scraping fallback.

Rate values are accepted as numbers or as text ("1,370.50"); collectors
run them through parse_number. Items missing a required value are kept
optional here and skipped by the collector, so one incomplete row does not
discard the whole response.

Files that USE this module:
- mmkrate.adapters.collectors.cbm (CbmApiResponse)
- mmkrate.adapters.collectors.aya (AyaApiResponse)
- mmkrate.adapters.collectors.yoma (YomaApiResponse)
- mmkrate.adapters.collectors.cb_bank (CbBankApiResponse)
- mmkrate.adapters.collectors.binance_p2p (BinanceP2PResponse)

Files that this module USES:
- None
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, model_validator

RateValue = Union[float, str]


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CbmApiResponse(_Lenient):
    """forex.cbm.gov.mm/api/latest: {"timestamp": ..., "rates": {"USD": "2,100.0"}}"""
    rates: Dict[str, Optional[RateValue]]
    timestamp: Optional[Union[int, float, str]] = None


class AyaApiRate(_Lenient):
    currency: Optional[str] = None
    buy_rate: Optional[RateValue] = None
    sell_rate: Optional[RateValue] = None


class AyaApiResponse(_Lenient):
    rates: List[AyaApiRate]


class YomaApiRate(_Lenient):
    currency: Optional[str] = None
    buy: Optional[RateValue] = None
    sell: Optional[RateValue] = None


class YomaApiResponse(_Lenient):
    rates: List[YomaApiRate]


class CbBankApiRate(_Lenient):
    currency: Optional[str] = None
    rate: Optional[RateValue] = None
    buy: Optional[RateValue] = None
    sell: Optional[RateValue] = None


class CbBankApiResponse(_Lenient):
    """
    CB Bank has used several envelopes: {"rates": [...]}, {"data": [...]}
    and a bare list. They are normalized into ``rates``.
    """
    rates: List[CbBankApiRate]

    @model_validator(mode="before")
    @classmethod
    def _unwrap(cls, data: Any) -> Any:
        if isinstance(data, list):
            return {"rates": data}
        if isinstance(data, dict):
            for key in ("rates", "data"):
                if isinstance(data.get(key), list):
                    return {"rates": data[key]}
        return data


class BinanceAdv(_Lenient):
    price: Optional[RateValue] = None


class BinanceOffer(_Lenient):
    adv: Optional[BinanceAdv] = None


class BinanceP2PResponse(_Lenient):
    code: str
    message: Optional[str] = None
    data: Optional[List[BinanceOffer]] = None
