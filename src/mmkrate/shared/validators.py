# src/mmkrate/shared/validators.py
"""
Validation Utilities - Rate Records and Configuration Values

This module provides the RateValidator every collector runs its candidate
records through, and the small validation helpers used by Settings.

Files that USE this module:
- mmkrate.adapters.collectors.base (BaseCollector filters records with RateValidator)
- mmkrate.config.settings (uses validate_bot_token and parse_admin_ids)
- tests.test_parsing (unit tests)

Files that this module USES:
- None (pure utility functions)
"""
import math
import re
from typing import Iterable, List, Optional, Set

DEFAULT_MAX_RATE = 10_000.0
SYNTHETIC_CODE_SEPARATOR = "_"


class RateValidator:
    """
    Accept or reject a candidate exchange rate record.

    Rules (all must hold):
    - currency is exactly 3 characters, unless it contains the synthetic
      separator (USD_REMITTANCE) or is a configured crypto asset code (USDT)
    - 0 < rate <= max_rate
    - buy_rate and sell_rate, when present, satisfy the same bound
    """

    def __init__(
        self,
        max_rate: float = DEFAULT_MAX_RATE,
        asset_codes: Iterable[str] = ("USDT",),
    ):
        """
        Args:
            max_rate: Upper bound for any MMK rate
            asset_codes: Non-ISO codes accepted despite their length
        """
        self.max_rate = max_rate
        self.asset_codes = {code.upper() for code in asset_codes}

    def validate(self, rate) -> bool:
        """
        Check a rate record.

        Args:
            rate: Object with currency, rate, buy_rate and sell_rate attributes

        Returns:
            True if the record may be stored, False otherwise. Never raises.
        """
        currency = getattr(rate, "currency", None)
        if not self._valid_currency(currency):
            return False
        if not self._in_bounds(getattr(rate, "rate", None)):
            return False
        for optional in ("buy_rate", "sell_rate"):
            value = getattr(rate, optional, None)
            if value is not None and not self._in_bounds(value):
                return False
        return True

    def _valid_currency(self, currency) -> bool:
        if not isinstance(currency, str) or not currency:
            return False
        if SYNTHETIC_CODE_SEPARATOR in currency or currency in self.asset_codes:
            return True
        return len(currency) == 3

    def _in_bounds(self, value) -> bool:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if not math.isfinite(value):
            return False
        return 0 < value <= self.max_rate


def validate_bot_token(token: str) -> bool:
    """
    Validate Telegram bot token format.

    Args:
        token: Bot token to validate

    Returns:
        True if valid, False otherwise
    """
    if not token:
        return False

    # Bot tokens should be in format: 123456789:ABCDEFghijklmnopQRSTUVwxyz
    pattern = r'^\d{8,10}:[A-Za-z0-9_-]{35}$'
    return bool(re.match(pattern, token))


def parse_admin_ids(raw: Optional[str]) -> Set[int]:
    """
    Parse a comma-separated list of Telegram user ids.

    Args:
        raw: Value such as "12345, 67890"

    Returns:
        Set of integer ids (empty set for empty input)

    Raises:
        ValueError: If any entry is not an integer
    """
    if not raw:
        return set()
    ids: List[int] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        if not re.match(r"^-?\d+$", part):
            raise ValueError(f"Invalid Telegram user id: {part!r}")
        ids.append(int(part))
    return set(ids)
