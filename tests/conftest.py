"""Pytest configuration and fixtures."""

from dataclasses import dataclass, field

import pytest

from clamm.hooks import ALL_HOOK_FLAGS, BaseHook, HookRegistry, selector_for
from clamm.manager import PoolManager
from clamm.models import PoolKey
from clamm.session import InMemoryTokenTransfer
from tests.helpers import SQRT_PRICE_1_1, hook_address, make_key, make_manager

# =============================================================================
# Mock classes for dependency injection
# =============================================================================


@dataclass
class MockHookConfig:
    """Configuration for mock hook behavior."""

    # Callbacks that return a wrong selector
    bad_responses: set[str] = field(default_factory=set)
    # Callbacks that raise RuntimeError
    raise_in: set[str] = field(default_factory=set)
    # Fee returned by get_fee (dynamic-fee pools)
    fee: int = 3000


class RecordingHook(BaseHook):
    """Hook that records every callback it receives.

    The address decides which callbacks the manager will actually invoke;
    the hook itself answers all of them.

    Usage:
        hook = RecordingHook(hook_address(HookFlag.BEFORE_SWAP))
        registry.register(hook.address, hook)
        ...
        assert hook.callbacks == ["before_swap"]
    """

    def __init__(self, address: str, config: MockHookConfig | None = None) -> None:
        super().__init__(address, validate=False)
        self.config = config or MockHookConfig()
        self.calls: list[tuple[str, tuple]] = []  # Track calls for assertions
        self.fee_calls = 0

    @property
    def callbacks(self) -> list[str]:
        return [name for name, _ in self.calls]

    def _respond(self, name: str, *args: object) -> bytes:
        self.calls.append((name, args))
        if name in self.config.raise_in:
            raise RuntimeError(f"hook failure in {name}")
        if name in self.config.bad_responses:
            return b"\x00\x00\x00\x00"
        return selector_for(name)

    def before_initialize(self, sender, key, sqrt_price_x96, hook_data):
        return self._respond("before_initialize", sender, key, sqrt_price_x96, hook_data)

    def after_initialize(self, sender, key, sqrt_price_x96, tick, hook_data):
        return self._respond("after_initialize", sender, key, sqrt_price_x96, tick, hook_data)

    def before_modify_position(self, sender, key, params, hook_data):
        return self._respond("before_modify_position", sender, key, params, hook_data)

    def after_modify_position(self, sender, key, params, delta, hook_data):
        return self._respond("after_modify_position", sender, key, params, delta, hook_data)

    def before_swap(self, sender, key, params, hook_data):
        return self._respond("before_swap", sender, key, params, hook_data)

    def after_swap(self, sender, key, params, delta, hook_data):
        return self._respond("after_swap", sender, key, params, delta, hook_data)

    def before_donate(self, sender, key, amount0, amount1, hook_data):
        return self._respond("before_donate", sender, key, amount0, amount1, hook_data)

    def after_donate(self, sender, key, amount0, amount1, hook_data):
        return self._respond("after_donate", sender, key, amount0, amount1, hook_data)

    def get_fee(self, key: PoolKey) -> int:
        self.fee_calls += 1
        return self.config.fee


class MockFeeController:
    """Protocol fee controller returning a fixed value, or raising.

    Usage:
        controller = MockFeeController(address, protocol_fees=4)
        controller = MockFeeController(address, error=RuntimeError("down"))
    """

    def __init__(
        self,
        address: str,
        protocol_fees: int = 0,
        error: Exception | None = None,
    ) -> None:
        self.address = address
        self.protocol_fees = protocol_fees
        self.error = error
        self.calls: list[PoolKey] = []  # Track calls for assertions

    def protocol_fees_for_pool(self, key: PoolKey) -> int:
        self.calls.append(key)
        if self.error is not None:
            raise self.error
        return self.protocol_fees


class FailingTokenTransfer(InMemoryTokenTransfer):
    """Transfer sink that raises on its ``fail_on``-th payout (1-based)."""

    def __init__(self, fail_on: int = 1) -> None:
        super().__init__()
        self.fail_on = fail_on
        self.attempts = 0

    def transfer(self, currency: str, recipient: str, amount: int) -> None:
        self.attempts += 1
        if self.attempts == self.fail_on:
            raise RuntimeError("transfer rejected")
        super().transfer(currency, recipient, amount)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def transfers() -> InMemoryTokenTransfer:
    """In-memory transfer sink shared with the manager fixture."""
    return InMemoryTokenTransfer()


@pytest.fixture
def registry() -> HookRegistry:
    return HookRegistry()


@pytest.fixture
def manager(registry: HookRegistry, transfers: InMemoryTokenTransfer) -> PoolManager:
    """Fresh manager owned by OWNER."""
    return make_manager(hooks=registry, token_transfer=transfers)


@pytest.fixture
def key() -> PoolKey:
    """DAI/USDC 0.3% pool key, spacing 60, no hooks."""
    return make_key()


@pytest.fixture
def initialized(manager: PoolManager, key: PoolKey) -> PoolKey:
    """Initialize ``key`` at price 1:1 and return it."""
    manager.initialize(key, SQRT_PRICE_1_1)
    return key


@pytest.fixture
def all_flags_hook(registry: HookRegistry) -> RecordingHook:
    """Registered recording hook whose address declares every callback."""
    hook = RecordingHook(hook_address(ALL_HOOK_FLAGS))
    registry.register(hook.address, hook)
    return hook
