"""Checked narrowing conversions between integer widths.

The engine keeps every quantity in a plain Python ``int``; these helpers
are applied at the points where the protocol narrows a value to a fixed
width, so that out-of-range values fail loudly instead of wrapping.
"""

from __future__ import annotations

from clamm.constants import (
    MAX_INT128,
    MAX_INT256,
    MAX_UINT128,
    MAX_UINT160,
    MIN_INT128,
    MIN_INT256,
)
from clamm.errors import SafeCastOverflow


def to_uint160(value: int) -> int:
    """Narrow to uint160 (sqrt prices)."""
    if not 0 <= value <= MAX_UINT160:
        raise SafeCastOverflow(f"Value does not fit uint160: {value}")
    return value


def to_uint128(value: int) -> int:
    """Narrow to uint128 (liquidity)."""
    if not 0 <= value <= MAX_UINT128:
        raise SafeCastOverflow(f"Value does not fit uint128: {value}")
    return value


def to_int128(value: int) -> int:
    """Narrow to int128 (balance deltas, net liquidity)."""
    if not MIN_INT128 <= value <= MAX_INT128:
        raise SafeCastOverflow(f"Value does not fit int128: {value}")
    return value


def to_int256(value: int) -> int:
    """Narrow to int256 (swap amounts)."""
    if not MIN_INT256 <= value <= MAX_INT256:
        raise SafeCastOverflow(f"Value does not fit int256: {value}")
    return value


def wrap_uint256(value: int) -> int:
    """Reduce modulo 2^256, matching unchecked accumulator arithmetic."""
    return value % (1 << 256)


__all__ = ["to_uint160", "to_uint128", "to_int128", "to_int256", "wrap_uint256"]
