"""Parameter records for pool operations."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ModifyPositionParams:
    """Range and signed liquidity change for ``modify_position``."""

    tick_lower: int
    tick_upper: int
    liquidity_delta: int


@dataclass(frozen=True)
class SwapParams:
    """Direction, amount and price limit for ``swap``.

    amount_specified > 0 is an exact-input swap, < 0 an exact-output swap.
    """

    zero_for_one: bool
    amount_specified: int
    sqrt_price_limit_x96: int


__all__ = ["ModifyPositionParams", "SwapParams"]
