# src/mmkrate/config/__init__.py
"""
Configuration Module

Provides centralized configuration management using Pydantic Settings.
Values come from environment variables and an optional .env file.
"""

from mmkrate.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
