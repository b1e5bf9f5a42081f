"""Tests for hook flags, address validation, selectors and dispatch."""

import pytest

from clamm.constants import DYNAMIC_FEE_FLAG, ZERO_ADDRESS
from clamm.errors import HookAddressNotValid, HookNotRegistered, InvalidHookResponse
from clamm.hooks import (
    ALL_HOOK_FLAGS,
    HOOK_SELECTORS,
    BaseHook,
    HookFlag,
    HookPermissions,
    HookRegistry,
    call_hook,
    has_permission,
    hook_flags,
    is_valid_hook_address,
    selector_for,
    validate_hook_address,
)
from tests.conftest import MockHookConfig, RecordingHook
from tests.helpers import SQRT_PRICE_1_1, hook_address, make_key


class SwapOnlyHook(BaseHook):
    permissions = HookPermissions(before_swap=True, after_swap=True)


class TestFlags:
    def test_bit_layout(self) -> None:
        assert HookFlag.BEFORE_INITIALIZE == 0x80
        assert HookFlag.AFTER_INITIALIZE == 0x40
        assert HookFlag.BEFORE_MODIFY_POSITION == 0x20
        assert HookFlag.AFTER_MODIFY_POSITION == 0x10
        assert HookFlag.BEFORE_SWAP == 0x08
        assert HookFlag.AFTER_SWAP == 0x04
        assert HookFlag.BEFORE_DONATE == 0x02
        assert HookFlag.AFTER_DONATE == 0x01

    def test_only_low_byte_counts(self) -> None:
        address = hook_address(HookFlag.BEFORE_SWAP, prefix=0xFFFFFF)
        assert hook_flags(address) == HookFlag.BEFORE_SWAP
        assert has_permission(address, HookFlag.BEFORE_SWAP)
        assert not has_permission(address, HookFlag.AFTER_SWAP)

    def test_permissions_to_flags(self) -> None:
        permissions = HookPermissions(before_initialize=True, after_donate=True)
        assert permissions.to_flags() == HookFlag.BEFORE_INITIALIZE | HookFlag.AFTER_DONATE
        assert HookPermissions().to_flags() == 0


class TestHookAddressValidity:
    def test_zero_address_static_fee(self) -> None:
        assert is_valid_hook_address(ZERO_ADDRESS, 3000)

    def test_zero_address_dynamic_fee(self) -> None:
        assert not is_valid_hook_address(ZERO_ADDRESS, DYNAMIC_FEE_FLAG)

    def test_address_without_flags(self) -> None:
        assert not is_valid_hook_address(hook_address(0), 3000)

    def test_address_without_flags_dynamic_fee(self) -> None:
        assert is_valid_hook_address(hook_address(0), DYNAMIC_FEE_FLAG)

    def test_address_with_flags(self) -> None:
        assert is_valid_hook_address(hook_address(HookFlag.AFTER_SWAP), 3000)

    def test_validate_hook_address_exact_match(self) -> None:
        permissions = HookPermissions(before_swap=True, after_swap=True)
        validate_hook_address(hook_address(0x0C), permissions)
        with pytest.raises(HookAddressNotValid):
            validate_hook_address(hook_address(0x08), permissions)
        with pytest.raises(HookAddressNotValid):
            validate_hook_address(hook_address(0x0D), permissions)

    def test_base_hook_validates_its_address(self) -> None:
        assert SwapOnlyHook(hook_address(0x0C)).address == hook_address(0x0C)
        with pytest.raises(HookAddressNotValid):
            SwapOnlyHook(hook_address(0xFF))


class TestSelectors:
    def test_four_bytes_and_unique(self) -> None:
        assert len(HOOK_SELECTORS) == 8
        assert all(len(selector) == 4 for selector in HOOK_SELECTORS.values())
        assert len(set(HOOK_SELECTORS.values())) == 8

    def test_base_hook_returns_selectors(self) -> None:
        hook = SwapOnlyHook(hook_address(0x0C))
        key = make_key(hooks=hook.address)
        response = hook.before_swap(ZERO_ADDRESS, key, None, b"")  # type: ignore[arg-type]
        assert response == selector_for("before_swap")
        assert hook.after_donate(ZERO_ADDRESS, key, 1, 1, b"") == selector_for("after_donate")


class TestRegistry:
    def test_register_and_resolve(self) -> None:
        registry = HookRegistry()
        hook = RecordingHook(hook_address(ALL_HOOK_FLAGS))
        registry.register(hook.address.upper().replace("0X", "0x"), hook)
        assert hook.address in registry
        assert registry.resolve(hook.address) is hook
        assert len(registry) == 1

    def test_unregister(self) -> None:
        registry = HookRegistry()
        hook = RecordingHook(hook_address(ALL_HOOK_FLAGS))
        registry.register(hook.address, hook)
        registry.unregister(hook.address)
        assert registry.get(hook.address) is None
        assert hook.address not in registry

    def test_resolve_missing(self) -> None:
        with pytest.raises(HookNotRegistered):
            HookRegistry().resolve(hook_address(ALL_HOOK_FLAGS))


class TestCallHook:
    def test_calls_declared_callback(self) -> None:
        registry = HookRegistry()
        hook = RecordingHook(hook_address(HookFlag.BEFORE_INITIALIZE))
        registry.register(hook.address, hook)
        key = make_key(hooks=hook.address)

        called = call_hook(
            registry, key, "before_initialize", ZERO_ADDRESS, key, SQRT_PRICE_1_1, b"\x01"
        )

        assert called
        assert hook.calls == [
            ("before_initialize", (ZERO_ADDRESS, key, SQRT_PRICE_1_1, b"\x01"))
        ]

    def test_skips_undeclared_callback(self) -> None:
        registry = HookRegistry()
        hook = RecordingHook(hook_address(HookFlag.BEFORE_INITIALIZE))
        registry.register(hook.address, hook)
        key = make_key(hooks=hook.address)

        called = call_hook(
            registry, key, "after_initialize", ZERO_ADDRESS, key, SQRT_PRICE_1_1, 0, b""
        )

        assert not called
        assert hook.calls == []

    def test_zero_address_never_calls(self) -> None:
        key = make_key()
        assert not call_hook(HookRegistry(), key, "before_swap", ZERO_ADDRESS, key, None, b"")

    def test_bad_selector(self) -> None:
        registry = HookRegistry()
        hook = RecordingHook(
            hook_address(ALL_HOOK_FLAGS),
            MockHookConfig(bad_responses={"before_donate"}),
        )
        registry.register(hook.address, hook)
        key = make_key(hooks=hook.address)

        with pytest.raises(InvalidHookResponse):
            call_hook(registry, key, "before_donate", ZERO_ADDRESS, key, 1, 2, b"")

    def test_hook_exception_propagates(self) -> None:
        registry = HookRegistry()
        hook = RecordingHook(
            hook_address(ALL_HOOK_FLAGS),
            MockHookConfig(raise_in={"after_donate"}),
        )
        registry.register(hook.address, hook)
        key = make_key(hooks=hook.address)

        with pytest.raises(RuntimeError, match="after_donate"):
            call_hook(registry, key, "after_donate", ZERO_ADDRESS, key, 1, 2, b"")

    def test_declared_but_unregistered(self) -> None:
        key = make_key(hooks=hook_address(HookFlag.BEFORE_SWAP))
        with pytest.raises(HookNotRegistered):
            call_hook(HookRegistry(), key, "before_swap", ZERO_ADDRESS, key, None, b"")
