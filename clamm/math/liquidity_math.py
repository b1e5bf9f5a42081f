"""Signed liquidity deltas applied to unsigned liquidity."""

from __future__ import annotations

from clamm.constants import MAX_UINT128
from clamm.errors import LiquidityOverflow, LiquidityUnderflow


def add_delta(x: int, y: int) -> int:
    """Add a signed int128 delta to a uint128 liquidity value.

    Raises:
        LiquidityUnderflow: If the result would be negative
        LiquidityOverflow: If the result would exceed 2^128 - 1
    """
    z = x + y
    if z < 0:
        raise LiquidityUnderflow(f"Liquidity underflow: {x} + ({y})")
    if z > MAX_UINT128:
        raise LiquidityOverflow(f"Liquidity overflow: {x} + {y}")
    return z


__all__ = ["add_delta"]
