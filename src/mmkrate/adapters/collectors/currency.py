# src/mmkrate/adapters/collectors/currency.py
"""
Currency Code Resolution

Bank pages label rows inconsistently ("US Dollar (USD)", "USD", "Thai Baht").
Resolution first looks for an explicit code, either in parentheses or as the
trailing word, and only then falls back to a per-source table of name
substrings. Each site words its labels differently, so every collector
passes its own table; more specific names (Singapore, Australian) must come
before generic ones (Dollar).

Files that USE this module:
- mmkrate.adapters.collectors.cbm, kbz, aya, yoma, cb_bank

Files that this module USES:
- None (pure functions)
"""
import re
from typing import Optional, Sequence, Tuple

# ("needle", ...) -> code; needles are matched case-insensitively
NameTable = Sequence[Tuple[Tuple[str, ...], str]]

CODE_PATTERN = re.compile(r"\(([A-Z]{3})\)|\b([A-Z]{3})$")
ANY_CODE_PATTERN = re.compile(r"\b([A-Z]{3})\b")


def extract_code(text: str) -> Optional[str]:
    """
    Find an explicit currency code in a label.

    Args:
        text: Label such as "Singapore Dollar (SGD)" or "Euro EUR"

    Returns:
        The code, or None if the label has none
    """
    if not text:
        return None
    match = CODE_PATTERN.search(text.strip())
    if not match:
        return None
    return match.group(1) or match.group(2)


def match_name(text: str, table: NameTable) -> Optional[str]:
    """Look a label up in a name-substring table, first match wins."""
    if not text:
        return None
    lowered = text.lower()
    for needles, code in table:
        if any(needle.lower() in lowered for needle in needles):
            return code
    return None


def resolve_currency(text: str, table: NameTable = ()) -> Optional[str]:
    """
    Resolve a row label to a currency code.

    An explicit code always wins over the name table, so
    "Singapore Dollar (SGD)" resolves to SGD even though it contains "Dollar".
    """
    return extract_code(text) or match_name(text, table)


def find_any_code(text: str) -> Optional[str]:
    """First standalone 3-letter uppercase code anywhere in the text (rate cards)."""
    if not text:
        return None
    match = ANY_CODE_PATTERN.search(text)
    return match.group(1) if match else None
