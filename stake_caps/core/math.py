"""Fixed-point integer arithmetic for cap derivation.

Every function is stateless and operates on plain Python ints.

Rounding is explicit: operands are non-negative, so Python's ``//`` (floor)
is the same as rounding toward zero. Keep it that way; derived caps are
replayed and compared byte-for-byte.
"""

from __future__ import annotations

from ..state.amounts import U64_MAX, is_amount

# Domain constants
BPS_SCALE: int = 10_000
MAX_CURVE_SHAPE_BPS: int = 1_000_000

__all__ = [
    "U64_MAX",
    "BPS_SCALE",
    "MAX_CURVE_SHAPE_BPS",
    "is_amount",
    "saturating_sub",
    "mul_div_floor",
    "bps_of",
    "clamp",
]


def saturating_sub(a: int, b: int) -> int:
    """``max(0, a - b)``."""
    return a - b if a > b else 0


def mul_div_floor(a: int, b: int, denom: int) -> int:
    """``floor(a * b / denom)`` for non-negative operands."""
    if denom <= 0:
        raise ZeroDivisionError("denominator must be positive")
    if a < 0 or b < 0:
        raise ValueError("mul_div_floor operands must be non-negative")
    return (a * b) // denom


def bps_of(amount: int, bps: int) -> int:
    """``amount * bps / 10000`` (floor)."""
    return mul_div_floor(amount, bps, BPS_SCALE)


def clamp(value: int, lo: int, hi: int) -> int:
    if value < lo:
        return lo
    if value > hi:
        return hi
    return value
