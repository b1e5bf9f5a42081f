"""Per-owner liquidity positions and accrued fee snapshots."""

from __future__ import annotations

from dataclasses import dataclass

from clamm.constants import Q128
from clamm.errors import CannotUpdateEmptyPosition, InsufficientLiquidity
from clamm.math.full_math import mul_div
from clamm.math.liquidity_math import add_delta
from clamm.math.safe_cast import wrap_uint256
from clamm.models.types import normalize_address

# (owner, tick_lower, tick_upper)
PositionKey = tuple[str, int, int]


@dataclass
class PositionInfo:
    """Liquidity owned in a range and the fee growth inside it at last touch."""

    liquidity: int = 0
    fee_growth_inside0_last_x128: int = 0
    fee_growth_inside1_last_x128: int = 0


def position_key(owner: str, tick_lower: int, tick_upper: int) -> PositionKey:
    return normalize_address(owner), tick_lower, tick_upper


def get(
    positions: dict[PositionKey, PositionInfo],
    owner: str,
    tick_lower: int,
    tick_upper: int,
) -> PositionInfo:
    """Look up a position, returning an empty record if it does not exist."""
    return positions.get(position_key(owner, tick_lower, tick_upper)) or PositionInfo()


def update(
    positions: dict[PositionKey, PositionInfo],
    owner: str,
    tick_lower: int,
    tick_upper: int,
    liquidity_delta: int,
    fee_growth_inside0_x128: int,
    fee_growth_inside1_x128: int,
) -> tuple[int, int]:
    """Credit accrued fees to a position and apply its liquidity change.

    Fees owed = (fee growth inside now - snapshot) * liquidity before the update.

    Returns:
        (fees_owed0, fees_owed1)

    Raises:
        CannotUpdateEmptyPosition: Zero delta on a position with no liquidity
        InsufficientLiquidity: Delta would make the liquidity negative
    """
    key = position_key(owner, tick_lower, tick_upper)
    info = positions.get(key) or PositionInfo()

    if liquidity_delta == 0:
        if info.liquidity == 0:
            raise CannotUpdateEmptyPosition(f"Position {key} holds no liquidity")
        liquidity_next = info.liquidity
    else:
        if info.liquidity + liquidity_delta < 0:
            raise InsufficientLiquidity(
                f"Position {key} has {info.liquidity}, cannot apply {liquidity_delta}"
            )
        liquidity_next = add_delta(info.liquidity, liquidity_delta)

    fees_owed0 = mul_div(
        wrap_uint256(fee_growth_inside0_x128 - info.fee_growth_inside0_last_x128),
        info.liquidity,
        Q128,
    )
    fees_owed1 = mul_div(
        wrap_uint256(fee_growth_inside1_x128 - info.fee_growth_inside1_last_x128),
        info.liquidity,
        Q128,
    )

    info.liquidity = liquidity_next
    info.fee_growth_inside0_last_x128 = fee_growth_inside0_x128
    info.fee_growth_inside1_last_x128 = fee_growth_inside1_x128
    positions[key] = info

    return fees_owed0, fees_owed1


__all__ = ["PositionInfo", "PositionKey", "position_key", "get", "update"]
