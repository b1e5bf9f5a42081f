"""Pool key and pool id derivation."""

from __future__ import annotations

from eth_abi import encode  # type: ignore[attr-defined]
from eth_utils import keccak
from pydantic import BaseModel, ConfigDict, Field, field_validator

from clamm.constants import DYNAMIC_FEE_FLAG, MAX_UINT24, STATIC_FEE_MASK, ZERO_ADDRESS
from clamm.models.types import Address, address_to_bytes, address_to_int, normalize_address

# Pool ids are 32-byte keccak digests
PoolId = bytes


class PoolKey(BaseModel):
    """Identifies a pool: its two currencies, fee, tick spacing and hook.

    Field widths follow the on-chain struct (uint24 fee, int24 tick spacing);
    the protocol-level bounds (static fee < 100%, spacing in [1, 32767],
    currency ordering, hook flags) are enforced by the manager on
    initialization so that they surface as engine errors.
    """

    currency0: Address
    currency1: Address
    fee: int = Field(ge=0, le=MAX_UINT24)
    tick_spacing: int = Field(alias="tickSpacing", ge=-(2**23), le=2**23 - 1)
    hooks: Address = ZERO_ADDRESS

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("currency0", "currency1", "hooks")
    @classmethod
    def _lowercase(cls, value: str) -> str:
        return normalize_address(value)

    @property
    def is_dynamic_fee(self) -> bool:
        """True if the swap fee is supplied by the hook rather than the key."""
        return bool(self.fee & DYNAMIC_FEE_FLAG)

    @property
    def static_fee(self) -> int:
        """LP fee in pips with the flag bits stripped."""
        return self.fee & STATIC_FEE_MASK

    @property
    def currencies_ordered(self) -> bool:
        """True if currency0 sorts strictly below currency1."""
        return address_to_int(self.currency0) < address_to_int(self.currency1)

    def to_id(self) -> PoolId:
        """Derive the pool id: keccak256 of the ABI-encoded key."""
        encoded = encode(
            ["address", "address", "uint24", "int24", "address"],
            [
                address_to_bytes(self.currency0),
                address_to_bytes(self.currency1),
                self.fee,
                self.tick_spacing,
                address_to_bytes(self.hooks),
            ],
        )
        return keccak(encoded)

    def to_id_hex(self) -> str:
        """Pool id as a 0x-prefixed hex string."""
        return "0x" + self.to_id().hex()


def pool_id_to_hex(pool_id: PoolId) -> str:
    """Render a pool id as a 0x-prefixed hex string."""
    return "0x" + pool_id.hex()


def pool_id_from_hex(value: str) -> PoolId:
    """Parse a 0x-prefixed pool id.

    Raises:
        ValueError: If the string is not 32 bytes of hex
    """
    raw = value[2:] if value.startswith("0x") else value
    pool_id = bytes.fromhex(raw)
    if len(pool_id) != 32:
        raise ValueError(f"Pool id must be 32 bytes, got {len(pool_id)}")
    return pool_id


__all__ = ["PoolKey", "PoolId", "pool_id_to_hex", "pool_id_from_hex"]
