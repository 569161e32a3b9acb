# src/mmkrate/shared/__init__.py
"""
Shared Utilities - Cross-cutting Concerns

This package contains shared utilities used across all layers:
- Validation (rate records, bot token, admin ids)
- Rate limiting
- Logging configuration
"""

from mmkrate.shared.validators import (
    RateValidator,
    parse_admin_ids,
    validate_bot_token,
)
from mmkrate.shared.rate_limiter import rate_limiter, RATE_LIMITS

__all__ = [
    "RateValidator",
    "parse_admin_ids",
    "validate_bot_token",
    "rate_limiter",
    "RATE_LIMITS",
]
