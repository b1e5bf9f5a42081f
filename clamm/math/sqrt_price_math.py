"""Price movement and token amount math at constant liquidity.

All functions operate on Q64.96 sqrt prices and uint128 liquidity, and
reproduce the protocol's rounding at each call site:

- amounts owed *to* the pool round up, amounts paid *by* the pool round down
- a price computed from an input amount moves no further than exact
- a price computed from an output amount moves at least as far as exact
"""

from __future__ import annotations

from clamm.constants import MAX_UINT160, MAX_UINT256, Q96, RESOLUTION
from clamm.errors import InvalidPriceOrLiquidity, NotEnoughLiquidity, PriceOverflow

from .full_math import div_rounding_up, mul_div, mul_div_rounding_up
from .safe_cast import to_int256, to_uint160


def get_next_sqrt_price_from_amount0_rounding_up(
    sqrt_price_x96: int,
    liquidity: int,
    amount: int,
    add: bool,
) -> int:
    """Next sqrt price after adding/removing ``amount`` of currency0.

    Always rounds up: when adding, the price must not move down further
    than exact; when removing, it must move up at least as far as exact.

    Formula: liquidity * sqrtP / (liquidity +- amount * sqrtP)
    """
    if amount == 0:
        return sqrt_price_x96

    numerator1 = liquidity << RESOLUTION
    product = amount * sqrt_price_x96

    if add:
        if product <= MAX_UINT256:
            denominator = numerator1 + product
            if denominator <= MAX_UINT256:
                return mul_div_rounding_up(numerator1, sqrt_price_x96, denominator)
        # Overflow path: liquidity / (liquidity / sqrtP + amount)
        return div_rounding_up(numerator1, numerator1 // sqrt_price_x96 + amount)

    if product > MAX_UINT256 or numerator1 <= product:
        raise NotEnoughLiquidity(
            f"Cannot remove {amount} of currency0 at price {sqrt_price_x96} "
            f"with liquidity {liquidity}"
        )
    denominator = numerator1 - product
    return to_uint160(mul_div_rounding_up(numerator1, sqrt_price_x96, denominator))


def get_next_sqrt_price_from_amount1_rounding_down(
    sqrt_price_x96: int,
    liquidity: int,
    amount: int,
    add: bool,
) -> int:
    """Next sqrt price after adding/removing ``amount`` of currency1.

    Always rounds down: when adding, the price must not move up further
    than exact; when removing, it must move down at least as far as exact.

    Formula: sqrtP +- amount / liquidity
    """
    if add:
        if amount <= MAX_UINT160:
            quotient = (amount << RESOLUTION) // liquidity
        else:
            quotient = mul_div(amount, Q96, liquidity)
        return to_uint160(sqrt_price_x96 + quotient)

    if amount <= MAX_UINT160:
        quotient = div_rounding_up(amount << RESOLUTION, liquidity)
    else:
        quotient = mul_div_rounding_up(amount, Q96, liquidity)

    if sqrt_price_x96 <= quotient:
        raise PriceOverflow(
            f"Removing {amount} of currency1 exceeds price {sqrt_price_x96}"
        )
    return sqrt_price_x96 - quotient


def get_next_sqrt_price_from_input(
    sqrt_price_x96: int,
    liquidity: int,
    amount_in: int,
    zero_for_one: bool,
) -> int:
    """Next sqrt price given an input amount of currency0 or currency1.

    Raises:
        InvalidPriceOrLiquidity: If price or liquidity is zero
    """
    if sqrt_price_x96 == 0 or liquidity == 0:
        raise InvalidPriceOrLiquidity(f"price={sqrt_price_x96}, liquidity={liquidity}")

    if zero_for_one:
        return get_next_sqrt_price_from_amount0_rounding_up(
            sqrt_price_x96, liquidity, amount_in, add=True
        )
    return get_next_sqrt_price_from_amount1_rounding_down(
        sqrt_price_x96, liquidity, amount_in, add=True
    )


def get_next_sqrt_price_from_output(
    sqrt_price_x96: int,
    liquidity: int,
    amount_out: int,
    zero_for_one: bool,
) -> int:
    """Next sqrt price given an output amount of currency0 or currency1.

    Raises:
        InvalidPriceOrLiquidity: If price or liquidity is zero
    """
    if sqrt_price_x96 == 0 or liquidity == 0:
        raise InvalidPriceOrLiquidity(f"price={sqrt_price_x96}, liquidity={liquidity}")

    if zero_for_one:
        return get_next_sqrt_price_from_amount1_rounding_down(
            sqrt_price_x96, liquidity, amount_out, add=False
        )
    return get_next_sqrt_price_from_amount0_rounding_up(
        sqrt_price_x96, liquidity, amount_out, add=False
    )


def get_amount0_delta(
    sqrt_ratio_a_x96: int,
    sqrt_ratio_b_x96: int,
    liquidity: int,
    round_up: bool,
) -> int:
    """Amount of currency0 between two prices: liquidity / sqrt(lower) - liquidity / sqrt(upper).

    Args:
        sqrt_ratio_a_x96: One price bound
        sqrt_ratio_b_x96: The other price bound
        liquidity: Unsigned liquidity
        round_up: Round the amount up (owed to the pool) or down (paid by it)

    Returns:
        Unsigned currency0 amount
    """
    if sqrt_ratio_a_x96 > sqrt_ratio_b_x96:
        sqrt_ratio_a_x96, sqrt_ratio_b_x96 = sqrt_ratio_b_x96, sqrt_ratio_a_x96

    if sqrt_ratio_a_x96 == 0:
        raise InvalidPriceOrLiquidity("Lower sqrt price bound is zero")

    numerator1 = liquidity << RESOLUTION
    numerator2 = sqrt_ratio_b_x96 - sqrt_ratio_a_x96

    if round_up:
        return div_rounding_up(
            mul_div_rounding_up(numerator1, numerator2, sqrt_ratio_b_x96),
            sqrt_ratio_a_x96,
        )
    return mul_div(numerator1, numerator2, sqrt_ratio_b_x96) // sqrt_ratio_a_x96


def get_amount1_delta(
    sqrt_ratio_a_x96: int,
    sqrt_ratio_b_x96: int,
    liquidity: int,
    round_up: bool,
) -> int:
    """Amount of currency1 between two prices: liquidity * (sqrt(upper) - sqrt(lower))."""
    if sqrt_ratio_a_x96 > sqrt_ratio_b_x96:
        sqrt_ratio_a_x96, sqrt_ratio_b_x96 = sqrt_ratio_b_x96, sqrt_ratio_a_x96

    if round_up:
        return mul_div_rounding_up(liquidity, sqrt_ratio_b_x96 - sqrt_ratio_a_x96, Q96)
    return mul_div(liquidity, sqrt_ratio_b_x96 - sqrt_ratio_a_x96, Q96)


def get_amount0_delta_signed(
    sqrt_ratio_a_x96: int, sqrt_ratio_b_x96: int, liquidity: int
) -> int:
    """Signed currency0 amount for a signed liquidity delta.

    Adding liquidity (positive) rounds up; removing (negative) rounds down
    and yields a negative amount.
    """
    if liquidity < 0:
        return -to_int256(
            get_amount0_delta(sqrt_ratio_a_x96, sqrt_ratio_b_x96, -liquidity, False)
        )
    return to_int256(get_amount0_delta(sqrt_ratio_a_x96, sqrt_ratio_b_x96, liquidity, True))


def get_amount1_delta_signed(
    sqrt_ratio_a_x96: int, sqrt_ratio_b_x96: int, liquidity: int
) -> int:
    """Signed currency1 amount for a signed liquidity delta."""
    if liquidity < 0:
        return -to_int256(
            get_amount1_delta(sqrt_ratio_a_x96, sqrt_ratio_b_x96, -liquidity, False)
        )
    return to_int256(get_amount1_delta(sqrt_ratio_a_x96, sqrt_ratio_b_x96, liquidity, True))


def amounts_for_price_move(
    sqrt_price_start_x96: int,
    sqrt_price_target_x96: int,
    liquidity: int,
    round_up: bool,
) -> tuple[int, int]:
    """Currency amounts exchanged moving price between two points at constant liquidity.

    Args:
        sqrt_price_start_x96: Starting sqrt price
        sqrt_price_target_x96: Target sqrt price
        liquidity: Unsigned liquidity in range
        round_up: True when the amounts are owed to the pool

    Returns:
        (amount0, amount1), both unsigned
    """
    return (
        get_amount0_delta(sqrt_price_start_x96, sqrt_price_target_x96, liquidity, round_up),
        get_amount1_delta(sqrt_price_start_x96, sqrt_price_target_x96, liquidity, round_up),
    )


__all__ = [
    "get_next_sqrt_price_from_amount0_rounding_up",
    "get_next_sqrt_price_from_amount1_rounding_down",
    "get_next_sqrt_price_from_input",
    "get_next_sqrt_price_from_output",
    "get_amount0_delta",
    "get_amount1_delta",
    "get_amount0_delta_signed",
    "get_amount1_delta_signed",
    "amounts_for_price_move",
]
