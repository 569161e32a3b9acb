# src/mmkrate/__init__.py
"""
MMKRate - Myanmar Kyat Exchange Rate Telegram Bot

Collects MMK exchange rates from the Central Bank of Myanmar, commercial
bank websites and the Binance P2P market, stores them, and serves latest
rates, history and collector health through Telegram commands.
"""

__version__ = "1.0.0"
