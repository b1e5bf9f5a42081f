"""Full-precision multiply-divide on unsigned 256-bit integers.

Python integers are arbitrary precision, so the 512-bit intermediate
product of the on-chain FullMath library comes for free. What must be
reproduced exactly is the failure behaviour: a zero denominator or a
quotient that does not fit in 256 bits is an error.
"""

from __future__ import annotations

from clamm.constants import MAX_UINT256
from clamm.errors import DivisionByZero, MathOverflow


def mul_div(a: int, b: int, denominator: int) -> int:
    """Calculate floor(a * b / denominator).

    Args:
        a: Multiplicand (uint256)
        b: Multiplier (uint256)
        denominator: Divisor (uint256)

    Returns:
        The 256-bit result, rounded down

    Raises:
        DivisionByZero: If denominator is zero
        MathOverflow: If the result exceeds 2^256 - 1
    """
    if denominator == 0:
        raise DivisionByZero(f"mul_div by zero: {a} * {b} / 0")
    result = (a * b) // denominator
    if result > MAX_UINT256:
        raise MathOverflow(f"mul_div overflow: {a} * {b} / {denominator}")
    return result


def mul_div_rounding_up(a: int, b: int, denominator: int) -> int:
    """Calculate ceil(a * b / denominator).

    Raises:
        DivisionByZero: If denominator is zero
        MathOverflow: If the rounded result exceeds 2^256 - 1
    """
    result = mul_div(a, b, denominator)
    if (a * b) % denominator:
        if result >= MAX_UINT256:
            raise MathOverflow(f"mul_div_rounding_up overflow: {a} * {b} / {denominator}")
        result += 1
    return result


def div_rounding_up(x: int, y: int) -> int:
    """Calculate ceil(x / y) for unsigned operands."""
    if y == 0:
        raise DivisionByZero(f"div_rounding_up by zero: {x} / 0")
    return -(-x // y)


__all__ = ["mul_div", "mul_div_rounding_up", "div_rounding_up"]
