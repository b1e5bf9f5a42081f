"""Extension hooks: capability flags, response selectors and dispatch.

A hook is identified by its address. The low 8 bits of that address
declare which callbacks the hook wants:

    bit 7  before_initialize        bit 3  before_swap
    bit 6  after_initialize         bit 2  after_swap
    bit 5  before_modify_position   bit 1  before_donate
    bit 4  after_modify_position    bit 0  after_donate

Only declared callbacks are invoked. Each invoked callback must return the
4-byte selector of its own signature; anything else aborts the operation
with InvalidHookResponse. Hook implementations live in-process and are
resolved through a HookRegistry.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntFlag
from typing import TYPE_CHECKING, Any, Protocol

import structlog
from eth_utils import function_signature_to_4byte_selector

from clamm.constants import DYNAMIC_FEE_FLAG, ZERO_ADDRESS
from clamm.errors import HookAddressNotValid, HookNotRegistered, InvalidHookResponse
from clamm.models.types import address_to_int, normalize_address

if TYPE_CHECKING:
    from clamm.models.balance_delta import BalanceDelta
    from clamm.models.params import ModifyPositionParams, SwapParams
    from clamm.models.pool_key import PoolKey

logger = structlog.get_logger()


class HookFlag(IntFlag):
    """Callback permissions encoded in a hook address."""

    BEFORE_INITIALIZE = 1 << 7
    AFTER_INITIALIZE = 1 << 6
    BEFORE_MODIFY_POSITION = 1 << 5
    AFTER_MODIFY_POSITION = 1 << 4
    BEFORE_SWAP = 1 << 3
    AFTER_SWAP = 1 << 2
    BEFORE_DONATE = 1 << 1
    AFTER_DONATE = 1 << 0


ALL_HOOK_FLAGS = 0xFF

# ABI tuple shapes used in callback signatures
_KEY = "(address,address,uint24,int24,address)"
_MODIFY_PARAMS = "(int24,int24,int256)"
_SWAP_PARAMS = "(bool,int256,uint160)"

HOOK_SIGNATURES: dict[str, str] = {
    "before_initialize": f"beforeInitialize(address,{_KEY},uint160,bytes)",
    "after_initialize": f"afterInitialize(address,{_KEY},uint160,int24,bytes)",
    "before_modify_position": f"beforeModifyPosition(address,{_KEY},{_MODIFY_PARAMS},bytes)",
    "after_modify_position": (
        f"afterModifyPosition(address,{_KEY},{_MODIFY_PARAMS},int256,bytes)"
    ),
    "before_swap": f"beforeSwap(address,{_KEY},{_SWAP_PARAMS},bytes)",
    "after_swap": f"afterSwap(address,{_KEY},{_SWAP_PARAMS},int256,bytes)",
    "before_donate": f"beforeDonate(address,{_KEY},uint256,uint256,bytes)",
    "after_donate": f"afterDonate(address,{_KEY},uint256,uint256,bytes)",
}

HOOK_SELECTORS: dict[str, bytes] = {
    name: function_signature_to_4byte_selector(signature)
    for name, signature in HOOK_SIGNATURES.items()
}

_FLAG_FOR_CALLBACK: dict[str, HookFlag] = {
    "before_initialize": HookFlag.BEFORE_INITIALIZE,
    "after_initialize": HookFlag.AFTER_INITIALIZE,
    "before_modify_position": HookFlag.BEFORE_MODIFY_POSITION,
    "after_modify_position": HookFlag.AFTER_MODIFY_POSITION,
    "before_swap": HookFlag.BEFORE_SWAP,
    "after_swap": HookFlag.AFTER_SWAP,
    "before_donate": HookFlag.BEFORE_DONATE,
    "after_donate": HookFlag.AFTER_DONATE,
}


def selector_for(callback: str) -> bytes:
    """The 4-byte selector a hook must echo from ``callback``."""
    return HOOK_SELECTORS[callback]


def hook_flags(address: str) -> HookFlag:
    """Callback permissions declared by a hook address."""
    return HookFlag(address_to_int(address) & ALL_HOOK_FLAGS)


def has_permission(address: str, flag: HookFlag) -> bool:
    return bool(hook_flags(address) & flag)


def is_valid_hook_address(address: str, fee: int) -> bool:
    """Check that a hook address is acceptable for a pool.

    The zero address is valid only when the fee is static. A nonzero
    address must declare at least one callback, unless the pool uses a
    dynamic fee (the hook then only supplies the fee).
    """
    is_dynamic = bool(fee & DYNAMIC_FEE_FLAG)
    if normalize_address(address) == ZERO_ADDRESS:
        return not is_dynamic
    return address_to_int(address) & ALL_HOOK_FLAGS != 0 or is_dynamic


@dataclass(frozen=True)
class HookPermissions:
    """Which callbacks a hook implementation intends to receive."""

    before_initialize: bool = False
    after_initialize: bool = False
    before_modify_position: bool = False
    after_modify_position: bool = False
    before_swap: bool = False
    after_swap: bool = False
    before_donate: bool = False
    after_donate: bool = False

    def to_flags(self) -> HookFlag:
        flags = HookFlag(0)
        for name, flag in _FLAG_FOR_CALLBACK.items():
            if getattr(self, name):
                flags |= flag
        return flags


def validate_hook_address(address: str, permissions: HookPermissions) -> None:
    """Assert that a hook's address encodes exactly the intended permissions.

    Raises:
        HookAddressNotValid: If any declared bit differs from ``permissions``
    """
    declared = hook_flags(address)
    expected = permissions.to_flags()
    if declared != expected:
        raise HookAddressNotValid(
            f"Hook {address} declares {int(declared):#04x}, expected {int(expected):#04x}"
        )


class Hooks(Protocol):
    """Interface of an in-process hook implementation.

    Every callback receives the ``sender`` (caller of the manager), the
    pool key and the operation's arguments, and returns the selector of
    its own signature.
    """

    def before_initialize(
        self, sender: str, key: PoolKey, sqrt_price_x96: int, hook_data: bytes
    ) -> bytes: ...

    def after_initialize(
        self, sender: str, key: PoolKey, sqrt_price_x96: int, tick: int, hook_data: bytes
    ) -> bytes: ...

    def before_modify_position(
        self, sender: str, key: PoolKey, params: ModifyPositionParams, hook_data: bytes
    ) -> bytes: ...

    def after_modify_position(
        self,
        sender: str,
        key: PoolKey,
        params: ModifyPositionParams,
        delta: BalanceDelta,
        hook_data: bytes,
    ) -> bytes: ...

    def before_swap(
        self, sender: str, key: PoolKey, params: SwapParams, hook_data: bytes
    ) -> bytes: ...

    def after_swap(
        self,
        sender: str,
        key: PoolKey,
        params: SwapParams,
        delta: BalanceDelta,
        hook_data: bytes,
    ) -> bytes: ...

    def before_donate(
        self, sender: str, key: PoolKey, amount0: int, amount1: int, hook_data: bytes
    ) -> bytes: ...

    def after_donate(
        self, sender: str, key: PoolKey, amount0: int, amount1: int, hook_data: bytes
    ) -> bytes: ...


class DynamicFeeHooks(Hooks, Protocol):
    """Hook that also supplies the swap fee for dynamic-fee pools."""

    def get_fee(self, key: PoolKey) -> int: ...


class BaseHook:
    """Convenience base for hook implementations.

    Subclasses declare ``permissions`` and override the callbacks they
    care about. Every default callback returns the correct selector, so a
    subclass only needs to implement its own logic.
    """

    permissions: HookPermissions = HookPermissions()

    def __init__(self, address: str, validate: bool = True):
        self.address = normalize_address(address)
        if validate:
            validate_hook_address(self.address, self.permissions)

    def before_initialize(
        self, sender: str, key: PoolKey, sqrt_price_x96: int, hook_data: bytes
    ) -> bytes:
        return selector_for("before_initialize")

    def after_initialize(
        self, sender: str, key: PoolKey, sqrt_price_x96: int, tick: int, hook_data: bytes
    ) -> bytes:
        return selector_for("after_initialize")

    def before_modify_position(
        self, sender: str, key: PoolKey, params: ModifyPositionParams, hook_data: bytes
    ) -> bytes:
        return selector_for("before_modify_position")

    def after_modify_position(
        self,
        sender: str,
        key: PoolKey,
        params: ModifyPositionParams,
        delta: BalanceDelta,
        hook_data: bytes,
    ) -> bytes:
        return selector_for("after_modify_position")

    def before_swap(
        self, sender: str, key: PoolKey, params: SwapParams, hook_data: bytes
    ) -> bytes:
        return selector_for("before_swap")

    def after_swap(
        self,
        sender: str,
        key: PoolKey,
        params: SwapParams,
        delta: BalanceDelta,
        hook_data: bytes,
    ) -> bytes:
        return selector_for("after_swap")

    def before_donate(
        self, sender: str, key: PoolKey, amount0: int, amount1: int, hook_data: bytes
    ) -> bytes:
        return selector_for("before_donate")

    def after_donate(
        self, sender: str, key: PoolKey, amount0: int, amount1: int, hook_data: bytes
    ) -> bytes:
        return selector_for("after_donate")


class HookRegistry:
    """Maps hook addresses to in-process implementations."""

    def __init__(self) -> None:
        self._hooks: dict[str, Hooks] = {}

    def register(self, address: str, hook: Hooks) -> None:
        address = normalize_address(address)
        self._hooks[address] = hook
        logger.debug("hook_registered", address=address, flags=int(hook_flags(address)))

    def unregister(self, address: str) -> None:
        self._hooks.pop(normalize_address(address), None)

    def get(self, address: str) -> Hooks | None:
        return self._hooks.get(normalize_address(address))

    def resolve(self, address: str) -> Hooks:
        """Return the implementation for ``address``.

        Raises:
            HookNotRegistered: If nothing is registered at the address
        """
        hook = self.get(address)
        if hook is None:
            raise HookNotRegistered(f"No hook registered at {address}")
        return hook

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and normalize_address(address) in self._hooks

    def __len__(self) -> int:
        return len(self._hooks)


def call_hook(
    registry: HookRegistry,
    key: PoolKey,
    callback: str,
    *args: Any,
) -> bool:
    """Invoke ``callback`` on the pool's hook if its address declares it.

    Returns:
        True if the hook was called

    Raises:
        HookNotRegistered: Declared callback but no implementation registered
        InvalidHookResponse: The hook returned something other than its selector
    """
    if not has_permission(key.hooks, _FLAG_FOR_CALLBACK[callback]):
        return False

    hook = registry.resolve(key.hooks)
    response = getattr(hook, callback)(*args)
    expected = selector_for(callback)
    if response != expected:
        logger.warning(
            "invalid_hook_response",
            hook=key.hooks,
            callback=callback,
            expected="0x" + expected.hex(),
            response=response.hex() if isinstance(response, bytes) else repr(response),
        )
        raise InvalidHookResponse(f"Hook {key.hooks} returned a bad selector from {callback}")
    return True


__all__ = [
    "HookFlag",
    "HookPermissions",
    "Hooks",
    "DynamicFeeHooks",
    "BaseHook",
    "HookRegistry",
    "HOOK_SIGNATURES",
    "HOOK_SELECTORS",
    "ALL_HOOK_FLAGS",
    "selector_for",
    "hook_flags",
    "has_permission",
    "is_valid_hook_address",
    "validate_hook_address",
    "call_hook",
]
