"""Single-pool state: ticks, bitmap, positions and the swap engine."""

from clamm.pool.position import PositionInfo, PositionKey, position_key
from clamm.pool.state import PoolState, SwapResult
from clamm.pool.tick import TickInfo, tick_spacing_to_max_liquidity_per_tick
from clamm.pool.tick_bitmap import TickBitmap

__all__ = [
    "PoolState",
    "SwapResult",
    "TickInfo",
    "TickBitmap",
    "PositionInfo",
    "PositionKey",
    "position_key",
    "tick_spacing_to_max_liquidity_per_tick",
]
