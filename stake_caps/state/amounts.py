"""
Ledger-native amount and key aliases.

Amounts are unsigned 64-bit integers on the ledger; Python ints are unbounded,
so every boundary that accepts an amount checks it against ``U64_MAX``.
"""

from __future__ import annotations

from typing import Any


# Type aliases
PubKey = str  # 32-byte publisher key as 0x-prefixed lowercase hex
Amount = int  # Non-negative integer, u64 domain

U64_MAX: Amount = (1 << 64) - 1


def is_amount(value: Any) -> bool:
    """True for a non-bool int in ``[0, U64_MAX]``."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= U64_MAX
