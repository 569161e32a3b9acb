# src/mmkrate/adapters/__init__.py
"""
Adapters Layer - External Interfaces

This package contains all adapters for external systems:
- Collectors (bank websites, APIs, P2P market)
- Persistence (document store)
- Telegram (bot interface)
- Formatting (output)
"""

__all__ = []
