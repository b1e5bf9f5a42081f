"""Signed per-currency amounts produced by pool operations."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BalanceDelta:
    """Pair of signed currency amounts, from the caller's point of view.

    A negative amount is owed by the caller to the pool; a positive amount
    is owed by the pool to the caller.
    """

    amount0: int = 0
    amount1: int = 0

    def __add__(self, other: BalanceDelta) -> BalanceDelta:
        return BalanceDelta(self.amount0 + other.amount0, self.amount1 + other.amount1)

    def __sub__(self, other: BalanceDelta) -> BalanceDelta:
        return BalanceDelta(self.amount0 - other.amount0, self.amount1 - other.amount1)

    def __neg__(self) -> BalanceDelta:
        return BalanceDelta(-self.amount0, -self.amount1)

    @property
    def is_zero(self) -> bool:
        return self.amount0 == 0 and self.amount1 == 0

    @property
    def amount_in(self) -> int:
        """Amount deposited by the caller (swap input)."""
        return -min(self.amount0, self.amount1, 0)

    @property
    def amount_out(self) -> int:
        """Amount withdrawn by the caller (swap output)."""
        return max(self.amount0, self.amount1, 0)


ZERO_DELTA = BalanceDelta()


__all__ = ["BalanceDelta", "ZERO_DELTA"]
