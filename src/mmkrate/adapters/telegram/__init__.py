# src/mmkrate/adapters/telegram/__init__.py
"""
Telegram Adapters - Bot Interface

This package contains the Telegram command handlers and scheduled jobs.
"""

from mmkrate.adapters.telegram.handlers import build_handlers
from mmkrate.adapters.telegram.jobs import collect_rates_job, health_monitor_job

__all__ = [
    "build_handlers",
    "collect_rates_job",
    "health_monitor_job",
]
