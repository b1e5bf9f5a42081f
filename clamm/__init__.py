"""Concentrated-liquidity AMM engine with a singleton pool manager and hooks."""

from clamm.config import EngineConfig
from clamm.errors import ClammError
from clamm.hooks import BaseHook, HookPermissions, HookRegistry
from clamm.manager import PoolManager, get_default_manager
from clamm.models import BalanceDelta, ModifyPositionParams, PoolKey, SwapParams

__version__ = "0.1.0"
__all__ = [
    "PoolManager",
    "get_default_manager",
    "EngineConfig",
    "ClammError",
    "PoolKey",
    "BalanceDelta",
    "ModifyPositionParams",
    "SwapParams",
    "BaseHook",
    "HookPermissions",
    "HookRegistry",
    "__version__",
]
