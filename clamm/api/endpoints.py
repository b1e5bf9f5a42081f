"""API endpoints for the pool engine."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException

from clamm.api.schemas import (
    DeltaResponse,
    InitializePoolRequest,
    InitializePoolResponse,
    ModifyPositionRequest,
    PoolStateResponse,
    SwapRequest,
    SwapResponse,
    hook_data_bytes,
)
from clamm.constants import MAX_SQRT_RATIO, MIN_SQRT_RATIO
from clamm.errors import ClammError, PoolNotInitialized
from clamm.manager import PoolManager, get_default_manager
from clamm.models.balance_delta import BalanceDelta
from clamm.models.params import ModifyPositionParams, SwapParams
from clamm.models.pool_key import PoolId, PoolKey, pool_id_from_hex, pool_id_to_hex

logger = structlog.get_logger()

router = APIRouter()


def get_manager() -> PoolManager:
    """Dependency provider for the engine instance.

    Override this in tests to inject a fresh engine:
        app.dependency_overrides[get_manager] = lambda: manager
    """
    return get_default_manager()


def error_status(exc: ClammError) -> int:
    """HTTP status for an engine error: 404 for unknown pools, else 400."""
    if isinstance(exc, PoolNotInitialized):
        return 404
    return 400


def _parse_pool_id(pool_id: str) -> PoolId:
    try:
        return pool_id_from_hex(pool_id)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"Invalid pool id: {e}") from e


def _settle_all(manager: PoolManager, key: PoolKey, delta: BalanceDelta, recipient: str) -> None:
    """Pay what the caller owes, then withdraw what the caller is owed."""
    legs = ((key.currency0, delta.amount0), (key.currency1, delta.amount1))
    for currency, amount in legs:
        if amount < 0:
            manager.settle(currency, -amount)
    for currency, amount in legs:
        if amount > 0:
            manager.take(currency, recipient, amount)


@router.post("/pools", response_model=InitializePoolResponse)
async def initialize_pool(
    request: InitializePoolRequest,
    manager: PoolManager = Depends(get_manager),
) -> InitializePoolResponse:
    """Create a pool at its starting price."""
    tick = manager.initialize(
        request.key,
        int(request.sqrt_price_x96),
        hook_data_bytes(request.hook_data),
        sender=request.sender,
    )
    return InitializePoolResponse(pool_id=request.key.to_id_hex(), tick=tick)


@router.get("/pools/{pool_id}", response_model=PoolStateResponse)
async def get_pool(
    pool_id: str,
    manager: PoolManager = Depends(get_manager),
) -> PoolStateResponse:
    """Return a pool's key, price, liquidity and fee accumulators."""
    pid = _parse_pool_id(pool_id)
    slot0 = manager.get_slot0(pid)
    fee_growth0, fee_growth1 = manager.get_fee_growth_global(pid)
    return PoolStateResponse(
        pool_id=pool_id_to_hex(pid),
        key=manager.get_pool_key(pid),
        sqrt_price_x96=str(slot0.sqrt_price_x96),
        tick=slot0.tick,
        liquidity=str(manager.get_liquidity(pid)),
        swap_fee=slot0.swap_fee,
        protocol_fees=slot0.protocol_fees,
        fee_growth_global0_x128=str(fee_growth0),
        fee_growth_global1_x128=str(fee_growth1),
    )


@router.post("/pools/{pool_id}/positions", response_model=DeltaResponse)
async def modify_position(
    pool_id: str,
    request: ModifyPositionRequest,
    manager: PoolManager = Depends(get_manager),
) -> DeltaResponse:
    """Change a position and settle the resulting amounts in one session."""
    key = manager.get_pool_key(_parse_pool_id(pool_id))
    params = ModifyPositionParams(
        tick_lower=request.tick_lower,
        tick_upper=request.tick_upper,
        liquidity_delta=int(request.liquidity_delta),
    )

    def callback(engine: PoolManager) -> BalanceDelta:
        delta = engine.modify_position(key, params, hook_data_bytes(request.hook_data))
        _settle_all(engine, key, delta, request.owner)
        return delta

    delta = manager.lock(callback, locker=request.owner)
    return DeltaResponse.from_delta(delta)


@router.post("/pools/{pool_id}/swap", response_model=SwapResponse)
async def swap(
    pool_id: str,
    request: SwapRequest,
    manager: PoolManager = Depends(get_manager),
) -> SwapResponse:
    """Swap and settle in one session."""
    pid = _parse_pool_id(pool_id)
    key = manager.get_pool_key(pid)

    if request.sqrt_price_limit_x96 is not None:
        limit = int(request.sqrt_price_limit_x96)
    elif request.zero_for_one:
        limit = MIN_SQRT_RATIO + 1
    else:
        limit = MAX_SQRT_RATIO - 1

    params = SwapParams(
        zero_for_one=request.zero_for_one,
        amount_specified=int(request.amount_specified),
        sqrt_price_limit_x96=limit,
    )

    def callback(engine: PoolManager) -> BalanceDelta:
        delta = engine.swap(key, params, hook_data_bytes(request.hook_data))
        _settle_all(engine, key, delta, request.sender)
        return delta

    delta = manager.lock(callback, locker=request.sender)
    slot0 = manager.get_slot0(pid)
    return SwapResponse(
        amount0=str(delta.amount0),
        amount1=str(delta.amount1),
        sqrt_price_x96=str(slot0.sqrt_price_x96),
        tick=slot0.tick,
    )
