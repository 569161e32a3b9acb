# src/mmkrate/adapters/collectors/__init__.py
"""
Collectors - One Adapter per Rate Source

Each collector reads MMK exchange rates from one source and reports a
CollectorResult. default_collectors() builds the standard set, ordered
official source first, banks next, P2P market last.

Files that USE this module:
- mmkrate.app (builds the collector set for the orchestrator)
- tests.test_collectors (collector tests)

Files that this module USES:
- mmkrate.adapters.collectors.* (concrete collectors)
"""

from typing import List

from mmkrate.adapters.collectors.aya import AYACollector
from mmkrate.adapters.collectors.base import BaseCollector, parse_number
from mmkrate.adapters.collectors.binance_p2p import BinanceP2PCollector
from mmkrate.adapters.collectors.cb_bank import CBBankCollector
from mmkrate.adapters.collectors.cbm import CBMCollector
from mmkrate.adapters.collectors.kbz import KBZCollector
from mmkrate.adapters.collectors.yoma import YomaCollector

COLLECTOR_CLASSES = (
    CBMCollector,
    KBZCollector,
    AYACollector,
    YomaCollector,
    CBBankCollector,
    BinanceP2PCollector,
)


def default_collectors(**kwargs) -> List[BaseCollector]:
    """
    Build one instance of every collector.

    Args:
        **kwargs: Passed to every constructor (timeout, user_agent, validator)

    Returns:
        Collectors sorted by priority (HIGH first)
    """
    collectors = [cls(**kwargs) for cls in COLLECTOR_CLASSES]
    return sorted(collectors, key=lambda c: c.priority.rank)


__all__ = [
    "AYACollector",
    "BaseCollector",
    "BinanceP2PCollector",
    "CBBankCollector",
    "CBMCollector",
    "COLLECTOR_CLASSES",
    "KBZCollector",
    "YomaCollector",
    "default_collectors",
    "parse_number",
]
