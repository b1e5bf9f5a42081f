"""Per-tick liquidity and fee-growth bookkeeping.

Ticks are stored sparsely in a ``dict[int, TickInfo]`` owned by the pool
state. A tick record exists only while some position references it.
"""

from __future__ import annotations

from dataclasses import dataclass

from clamm.constants import MAX_TICK, MAX_UINT128, MIN_TICK
from clamm.errors import (
    TickLiquidityOverflow,
    TickLowerOutOfBounds,
    TickUpperOutOfBounds,
    TicksMisordered,
)
from clamm.math.liquidity_math import add_delta
from clamm.math.safe_cast import to_int128, wrap_uint256


@dataclass
class TickInfo:
    """State stored for each initialized tick.

    Attributes:
        liquidity_gross: Total position liquidity referencing this tick
        liquidity_net: Liquidity added when the tick is crossed left to right
        fee_growth_outside0_x128: Fee growth on the other side of the tick (currency0)
        fee_growth_outside1_x128: Fee growth on the other side of the tick (currency1)
    """

    liquidity_gross: int = 0
    liquidity_net: int = 0
    fee_growth_outside0_x128: int = 0
    fee_growth_outside1_x128: int = 0


def tick_spacing_to_max_liquidity_per_tick(tick_spacing: int) -> int:
    """Maximum gross liquidity per tick so total liquidity cannot overflow uint128."""
    # Tick bounds truncate toward zero, as integer division does on-chain
    min_tick = -(-MIN_TICK // tick_spacing) * tick_spacing
    max_tick = (MAX_TICK // tick_spacing) * tick_spacing
    num_ticks = (max_tick - min_tick) // tick_spacing + 1
    return MAX_UINT128 // num_ticks


def check_ticks(tick_lower: int, tick_upper: int) -> None:
    """Validate a position's tick range.

    Raises:
        TicksMisordered: If tick_lower >= tick_upper
        TickLowerOutOfBounds: If tick_lower < MIN_TICK
        TickUpperOutOfBounds: If tick_upper > MAX_TICK
    """
    if tick_lower >= tick_upper:
        raise TicksMisordered(f"tick_lower {tick_lower} >= tick_upper {tick_upper}")
    if tick_lower < MIN_TICK:
        raise TickLowerOutOfBounds(f"tick_lower {tick_lower} < {MIN_TICK}")
    if tick_upper > MAX_TICK:
        raise TickUpperOutOfBounds(f"tick_upper {tick_upper} > {MAX_TICK}")


def get_fee_growth_inside(
    ticks: dict[int, TickInfo],
    tick_lower: int,
    tick_upper: int,
    tick_current: int,
    fee_growth_global0_x128: int,
    fee_growth_global1_x128: int,
) -> tuple[int, int]:
    """Fee growth per unit of liquidity accrued inside [tick_lower, tick_upper).

    All arithmetic wraps modulo 2^256; only differences of these values are
    meaningful.
    """
    lower = ticks.get(tick_lower) or TickInfo()
    upper = ticks.get(tick_upper) or TickInfo()

    if tick_current >= tick_lower:
        below0 = lower.fee_growth_outside0_x128
        below1 = lower.fee_growth_outside1_x128
    else:
        below0 = fee_growth_global0_x128 - lower.fee_growth_outside0_x128
        below1 = fee_growth_global1_x128 - lower.fee_growth_outside1_x128

    if tick_current < tick_upper:
        above0 = upper.fee_growth_outside0_x128
        above1 = upper.fee_growth_outside1_x128
    else:
        above0 = fee_growth_global0_x128 - upper.fee_growth_outside0_x128
        above1 = fee_growth_global1_x128 - upper.fee_growth_outside1_x128

    return (
        wrap_uint256(fee_growth_global0_x128 - below0 - above0),
        wrap_uint256(fee_growth_global1_x128 - below1 - above1),
    )


def update(
    ticks: dict[int, TickInfo],
    tick: int,
    tick_current: int,
    liquidity_delta: int,
    fee_growth_global0_x128: int,
    fee_growth_global1_x128: int,
    upper: bool,
    max_liquidity: int,
) -> bool:
    """Apply a position's liquidity change at one of its boundary ticks.

    Args:
        ticks: The pool's tick map
        tick: Boundary tick being updated
        tick_current: Pool's current tick
        liquidity_delta: Signed liquidity change
        fee_growth_global0_x128: Current global fee growth (currency0)
        fee_growth_global1_x128: Current global fee growth (currency1)
        upper: True for the position's upper tick
        max_liquidity: Per-tick gross liquidity cap

    Returns:
        True if the tick flipped between initialized and uninitialized

    Raises:
        TickLiquidityOverflow: If gross liquidity would exceed max_liquidity
    """
    info = ticks.get(tick)
    if info is None:
        info = TickInfo()

    liquidity_gross_before = info.liquidity_gross
    liquidity_gross_after = add_delta(liquidity_gross_before, liquidity_delta)

    if liquidity_gross_after > max_liquidity:
        raise TickLiquidityOverflow(
            f"Tick {tick} gross liquidity {liquidity_gross_after} exceeds {max_liquidity}"
        )

    flipped = (liquidity_gross_after == 0) != (liquidity_gross_before == 0)

    if liquidity_gross_before == 0 and tick <= tick_current:
        # By convention, all growth before a tick was initialized happened below it
        info.fee_growth_outside0_x128 = fee_growth_global0_x128
        info.fee_growth_outside1_x128 = fee_growth_global1_x128

    info.liquidity_gross = liquidity_gross_after
    # Crossing upward: lower ticks add liquidity, upper ticks remove it
    if upper:
        info.liquidity_net = to_int128(info.liquidity_net - liquidity_delta)
    else:
        info.liquidity_net = to_int128(info.liquidity_net + liquidity_delta)

    ticks[tick] = info
    return flipped


def clear(ticks: dict[int, TickInfo], tick: int) -> None:
    """Drop a tick record once no position references it."""
    ticks.pop(tick, None)


def cross(
    ticks: dict[int, TickInfo],
    tick: int,
    fee_growth_global0_x128: int,
    fee_growth_global1_x128: int,
) -> int:
    """Transition across a tick during a swap.

    The outside fee growth flips to the other side: outside := global - outside.

    Returns:
        liquidity_net of the tick (the caller negates it when moving left)
    """
    info = ticks.get(tick)
    if info is None:
        info = ticks[tick] = TickInfo()
    info.fee_growth_outside0_x128 = wrap_uint256(
        fee_growth_global0_x128 - info.fee_growth_outside0_x128
    )
    info.fee_growth_outside1_x128 = wrap_uint256(
        fee_growth_global1_x128 - info.fee_growth_outside1_x128
    )
    return info.liquidity_net


__all__ = [
    "TickInfo",
    "tick_spacing_to_max_liquidity_per_tick",
    "check_ticks",
    "get_fee_growth_inside",
    "update",
    "clear",
    "cross",
]
