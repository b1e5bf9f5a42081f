"""Request and response bodies for the engine's HTTP API.

Large integers travel as decimal strings (Uint256 / Int256) so that
JSON clients without big-integer support do not lose precision.
"""

from pydantic import BaseModel, Field

from clamm.constants import ZERO_ADDRESS
from clamm.models.balance_delta import BalanceDelta
from clamm.models.pool_key import PoolKey
from clamm.models.types import Address, Int256, Uint256


class ErrorResponse(BaseModel):
    """Body returned for engine errors."""

    code: str = Field(description="Error condition name, e.g. PoolAlreadyInitialized")
    detail: str


class InitializePoolRequest(BaseModel):
    """Create a pool at a starting price."""

    key: PoolKey
    sqrt_price_x96: Uint256 = Field(alias="sqrtPriceX96")
    hook_data: str = Field(default="0x", alias="hookData", pattern=r"^0x([a-fA-F0-9]{2})*$")
    sender: Address = ZERO_ADDRESS

    model_config = {"populate_by_name": True}


class InitializePoolResponse(BaseModel):
    pool_id: str = Field(alias="poolId")
    tick: int

    model_config = {"populate_by_name": True}


class PoolStateResponse(BaseModel):
    """Current state of a pool."""

    pool_id: str = Field(alias="poolId")
    key: PoolKey
    sqrt_price_x96: Uint256 = Field(alias="sqrtPriceX96")
    tick: int
    liquidity: Uint256
    swap_fee: int = Field(alias="swapFee")
    protocol_fees: int = Field(alias="protocolFees")
    fee_growth_global0_x128: Uint256 = Field(alias="feeGrowthGlobal0X128")
    fee_growth_global1_x128: Uint256 = Field(alias="feeGrowthGlobal1X128")

    model_config = {"populate_by_name": True}


class ModifyPositionRequest(BaseModel):
    """Add (positive) or remove (negative) liquidity for ``owner``."""

    owner: Address
    tick_lower: int = Field(alias="tickLower")
    tick_upper: int = Field(alias="tickUpper")
    liquidity_delta: Int256 = Field(alias="liquidityDelta")
    hook_data: str = Field(default="0x", alias="hookData", pattern=r"^0x([a-fA-F0-9]{2})*$")

    model_config = {"populate_by_name": True}


class SwapRequest(BaseModel):
    """Swap on behalf of ``sender``.

    Positive ``amountSpecified`` is exact input, negative exact output.
    When ``sqrtPriceLimitX96`` is omitted the swap may move the price to
    the edge of the valid range.
    """

    sender: Address
    zero_for_one: bool = Field(alias="zeroForOne")
    amount_specified: Int256 = Field(alias="amountSpecified")
    sqrt_price_limit_x96: Uint256 | None = Field(default=None, alias="sqrtPriceLimitX96")
    hook_data: str = Field(default="0x", alias="hookData", pattern=r"^0x([a-fA-F0-9]{2})*$")

    model_config = {"populate_by_name": True}


class DeltaResponse(BaseModel):
    """Caller's settled amounts: negative paid in, positive paid out."""

    amount0: Int256
    amount1: Int256

    @classmethod
    def from_delta(cls, delta: BalanceDelta) -> "DeltaResponse":
        return cls(amount0=str(delta.amount0), amount1=str(delta.amount1))


class SwapResponse(DeltaResponse):
    sqrt_price_x96: Uint256 = Field(alias="sqrtPriceX96")
    tick: int

    model_config = {"populate_by_name": True}


def hook_data_bytes(value: str) -> bytes:
    """Decode a 0x-prefixed hex string."""
    return bytes.fromhex(value[2:])


__all__ = [
    "ErrorResponse",
    "InitializePoolRequest",
    "InitializePoolResponse",
    "PoolStateResponse",
    "ModifyPositionRequest",
    "SwapRequest",
    "DeltaResponse",
    "SwapResponse",
    "hook_data_bytes",
]
