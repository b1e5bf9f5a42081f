"""Fixed-point price math for the pool engine.

This package provides the integer-exact numeric primitives:
- full_math: 512-bit intermediate multiply-divide
- tick_math: tick <-> Q64.96 sqrt price
- sqrt_price_math: price movement and amount deltas at constant liquidity
- swap_math: one swap step within a liquidity range
- liquidity_math / safe_cast: checked width conversions
"""

from clamm.math.full_math import div_rounding_up, mul_div, mul_div_rounding_up
from clamm.math.liquidity_math import add_delta
from clamm.math.safe_cast import to_int128, to_int256, to_uint128, to_uint160, wrap_uint256
from clamm.math.sqrt_price_math import (
    amounts_for_price_move,
    get_amount0_delta,
    get_amount0_delta_signed,
    get_amount1_delta,
    get_amount1_delta_signed,
    get_next_sqrt_price_from_input,
    get_next_sqrt_price_from_output,
)
from clamm.math.swap_math import compute_swap_step, get_sqrt_price_target
from clamm.math.tick_math import get_sqrt_ratio_at_tick, get_tick_at_sqrt_ratio

# Aliases matching the operation names used in the engine's documentation
tick_to_sqrt_price = get_sqrt_ratio_at_tick
sqrt_price_to_tick = get_tick_at_sqrt_ratio

__all__ = [
    # Full math
    "mul_div",
    "mul_div_rounding_up",
    "div_rounding_up",
    # Casting
    "add_delta",
    "to_int128",
    "to_int256",
    "to_uint128",
    "to_uint160",
    "wrap_uint256",
    # Tick math
    "get_sqrt_ratio_at_tick",
    "get_tick_at_sqrt_ratio",
    "tick_to_sqrt_price",
    "sqrt_price_to_tick",
    # Sqrt price math
    "amounts_for_price_move",
    "get_amount0_delta",
    "get_amount1_delta",
    "get_amount0_delta_signed",
    "get_amount1_delta_signed",
    "get_next_sqrt_price_from_input",
    "get_next_sqrt_price_from_output",
    # Swap math
    "compute_swap_step",
    "get_sqrt_price_target",
]
