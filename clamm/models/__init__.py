"""Data models shared by the engine and its API."""

from clamm.models.balance_delta import ZERO_DELTA, BalanceDelta
from clamm.models.params import ModifyPositionParams, SwapParams
from clamm.models.pool_key import PoolId, PoolKey, pool_id_from_hex, pool_id_to_hex
from clamm.models.types import Address, Int256, Uint256, normalize_address

__all__ = [
    # Types
    "Address",
    "Int256",
    "Uint256",
    "normalize_address",
    # Pool identity
    "PoolKey",
    "PoolId",
    "pool_id_to_hex",
    "pool_id_from_hex",
    # Operation records
    "BalanceDelta",
    "ZERO_DELTA",
    "ModifyPositionParams",
    "SwapParams",
]
