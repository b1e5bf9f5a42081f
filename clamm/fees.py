"""Protocol fee packing and the fee-controller collaborator.

A pool's protocol fee is a 24-bit field holding two 12-bit denominators,
one per swap direction. A denominator ``d`` routes ``fee_amount // d`` of
each swap step's fee to the protocol; zero disables the skim. Nonzero
denominators below MIN_PROTOCOL_FEE_DENOMINATOR (i.e. more than 25% of the
swap fee) are rejected.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from clamm.constants import (
    FEE_DENOMINATOR,
    MAX_UINT24,
    MIN_PROTOCOL_FEE_DENOMINATOR,
    PROTOCOL_FEE_BITS,
    PROTOCOL_FEE_MASK,
)
from clamm.errors import FeeTooLarge

if TYPE_CHECKING:
    from clamm.models.pool_key import PoolKey


class ProtocolFeeController(Protocol):
    """Collaborator that decides each pool's protocol fee.

    Implementations expose an ``address`` (allowed to collect fees) and
    return the packed 24-bit protocol fee for a pool.
    """

    address: str

    def protocol_fees_for_pool(self, key: PoolKey) -> int:
        """Packed protocol fee: low 12 bits zero-for-one, high 12 bits one-for-zero."""
        ...


class StaticProtocolFeeController:
    """Fee controller returning configured values, with a per-pool override map."""

    def __init__(
        self,
        address: str,
        default_fee: int = 0,
        overrides: dict[bytes, int] | None = None,
    ):
        self.address = address
        self.default_fee = default_fee
        self.overrides = overrides or {}
        self.calls: list[bytes] = []  # Pool ids queried, in order

    def protocol_fees_for_pool(self, key: PoolKey) -> int:
        pool_id = key.to_id()
        self.calls.append(pool_id)
        return self.overrides.get(pool_id, self.default_fee)


def pack_protocol_fees(zero_for_one: int, one_for_zero: int) -> int:
    """Pack two 12-bit denominators into the 24-bit protocol fee field."""
    return (one_for_zero << PROTOCOL_FEE_BITS) | zero_for_one


def unpack_protocol_fees(protocol_fees: int) -> tuple[int, int]:
    """Split the packed field into (zero_for_one, one_for_zero) denominators."""
    return protocol_fees & PROTOCOL_FEE_MASK, protocol_fees >> PROTOCOL_FEE_BITS


def protocol_fee_for_direction(protocol_fees: int, zero_for_one: bool) -> int:
    """Denominator applied to a swap in the given direction."""
    zero_for_one_fee, one_for_zero_fee = unpack_protocol_fees(protocol_fees)
    return zero_for_one_fee if zero_for_one else one_for_zero_fee


def is_valid_protocol_fee(
    protocol_fees: int, min_denominator: int = MIN_PROTOCOL_FEE_DENOMINATOR
) -> bool:
    """Check the field width and that each denominator is 0 or >= the minimum."""
    if not 0 <= protocol_fees <= MAX_UINT24:
        return False
    return all(
        fee == 0 or fee >= min_denominator
        for fee in unpack_protocol_fees(protocol_fees)
    )


def validate_protocol_fee(
    protocol_fees: int, min_denominator: int = MIN_PROTOCOL_FEE_DENOMINATOR
) -> int:
    """Return the packed fee or raise FeeTooLarge."""
    if not is_valid_protocol_fee(protocol_fees, min_denominator):
        raise FeeTooLarge(f"Invalid protocol fee: {protocol_fees:#x}")
    return protocol_fees


def validate_swap_fee(swap_fee: int) -> int:
    """LP fee must be below 100%.

    Raises:
        FeeTooLarge: If swap_fee >= FEE_DENOMINATOR or negative
    """
    if not 0 <= swap_fee < FEE_DENOMINATOR:
        raise FeeTooLarge(f"Swap fee {swap_fee} must be in [0, {FEE_DENOMINATOR})")
    return swap_fee


__all__ = [
    "ProtocolFeeController",
    "StaticProtocolFeeController",
    "pack_protocol_fees",
    "unpack_protocol_fees",
    "protocol_fee_for_direction",
    "is_valid_protocol_fee",
    "validate_protocol_fee",
    "validate_swap_fee",
]
