# src/mmkrate/adapters/formatting/__init__.py
"""
Formatting Adapters - Message Formatting

This package contains formatters for Telegram messages.
"""

from mmkrate.adapters.formatting.formatter import (
    format_collection_summary,
    format_comparison,
    format_forecast,
    format_health_report,
    format_history,
    format_number,
    format_rates,
)

__all__ = [
    "format_collection_summary",
    "format_comparison",
    "format_forecast",
    "format_health_report",
    "format_history",
    "format_number",
    "format_rates",
]
