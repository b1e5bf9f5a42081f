"""End-to-end pool lifecycle through the PoolManager."""

import pytest

from clamm.config import EngineConfig
from clamm.constants import DYNAMIC_FEE_FLAG, MAX_SQRT_RATIO, MIN_SQRT_RATIO
from clamm.errors import (
    CurrenciesOutOfOrder,
    FeeTooLarge,
    HookAddressNotValid,
    PoolAlreadyInitialized,
    PoolNotInitialized,
    PriceOutOfRange,
    TickSpacingTooLarge,
    TickSpacingTooSmall,
)
from clamm.manager import PoolManager
from clamm.models import PoolKey
from clamm.session import InMemoryTokenTransfer
from tests.helpers import (
    ALICE,
    BOB,
    DAI,
    ONE,
    OWNER,
    SQRT_PRICE_1_1,
    SQRT_PRICE_2_1,
    USDC,
    add_liquidity,
    donate,
    hook_address,
    make_key,
    make_manager,
    remove_liquidity,
    swap,
)


class TestInitialize:
    def test_returns_starting_tick(self, manager: PoolManager, key: PoolKey) -> None:
        assert manager.initialize(key, SQRT_PRICE_2_1) == 6931
        slot0 = manager.get_slot0(key.to_id())
        assert slot0.sqrt_price_x96 == SQRT_PRICE_2_1
        assert slot0.tick == 6931
        assert slot0.swap_fee == 3000
        assert slot0.protocol_fees == 0
        assert manager.get_pool_key(key.to_id()) == key

    def test_does_not_need_a_session(self, manager: PoolManager, key: PoolKey) -> None:
        manager.initialize(key, SQRT_PRICE_1_1)
        assert not manager.session_active

    def test_twice(self, manager: PoolManager, initialized: PoolKey) -> None:
        with pytest.raises(PoolAlreadyInitialized):
            manager.initialize(initialized, SQRT_PRICE_1_1)

    @pytest.mark.parametrize(
        "key,error",
        [
            (make_key(currency0=USDC, currency1=DAI), CurrenciesOutOfOrder),
            (make_key(currency0=DAI, currency1=DAI), CurrenciesOutOfOrder),
            (make_key(tick_spacing=32768), TickSpacingTooLarge),
            (make_key(tick_spacing=0), TickSpacingTooSmall),
            (make_key(tick_spacing=-60), TickSpacingTooSmall),
            (make_key(fee=1_000_000), FeeTooLarge),
            (make_key(hooks=hook_address(0)), HookAddressNotValid),
            (make_key(fee=DYNAMIC_FEE_FLAG), HookAddressNotValid),
        ],
    )
    def test_invalid_keys(self, manager: PoolManager, key: PoolKey, error: type) -> None:
        with pytest.raises(error):
            manager.initialize(key, SQRT_PRICE_1_1)
        assert manager.pool_ids == []

    @pytest.mark.parametrize("price", [MIN_SQRT_RATIO - 1, MAX_SQRT_RATIO, 0])
    def test_price_out_of_range(self, manager: PoolManager, key: PoolKey, price: int) -> None:
        with pytest.raises(PriceOutOfRange):
            manager.initialize(key, price)
        assert manager.pool_ids == []

    def test_configured_spacing_bounds(self) -> None:
        manager = PoolManager(EngineConfig(owner=OWNER, max_tick_spacing=100))
        with pytest.raises(TickSpacingTooLarge):
            manager.initialize(make_key(tick_spacing=200), SQRT_PRICE_1_1)
        manager.initialize(make_key(tick_spacing=100), SQRT_PRICE_1_1)

    def test_distinct_keys_are_distinct_pools(self, manager: PoolManager) -> None:
        manager.initialize(make_key(), SQRT_PRICE_1_1)
        manager.initialize(make_key(fee=500, tick_spacing=10), SQRT_PRICE_2_1)
        assert len(manager.pool_ids) == 2


class TestLiquidity:
    def test_add_pays_in_both_currencies(
        self, manager: PoolManager, initialized: PoolKey
    ) -> None:
        delta = add_liquidity(manager, initialized, -60, 60, ONE)

        assert delta.amount0 < 0
        assert delta.amount1 < 0
        assert manager.reserves_of(DAI) == -delta.amount0
        assert manager.reserves_of(USDC) == -delta.amount1
        pool_id = initialized.to_id()
        assert manager.get_liquidity(pool_id) == ONE
        assert manager.get_liquidity(pool_id, ALICE, -60, 60) == ONE
        assert manager.get_position(pool_id, ALICE, -60, 60).liquidity == ONE

    def test_remove_pays_out_to_owner(
        self,
        manager: PoolManager,
        initialized: PoolKey,
        transfers: InMemoryTokenTransfer,
    ) -> None:
        added = add_liquidity(manager, initialized, -60, 60, ONE)
        removed = remove_liquidity(manager, initialized, -60, 60, ONE)

        assert 0 < removed.amount0 <= -added.amount0
        assert 0 < removed.amount1 <= -added.amount1
        assert transfers.balance_of(DAI, ALICE) == removed.amount0
        assert transfers.balance_of(USDC, ALICE) == removed.amount1
        # Rounding leaves the dust with the engine
        assert manager.reserves_of(DAI) == -added.amount0 - removed.amount0
        assert manager.get_liquidity(initialized.to_id()) == 0

    def test_positions_are_keyed_by_locker(
        self, manager: PoolManager, initialized: PoolKey
    ) -> None:
        add_liquidity(manager, initialized, -60, 60, ONE, owner=ALICE)
        add_liquidity(manager, initialized, -60, 60, 2 * ONE, owner=BOB)
        pool_id = initialized.to_id()
        assert manager.get_liquidity(pool_id, ALICE, -60, 60) == ONE
        assert manager.get_liquidity(pool_id, BOB, -60, 60) == 2 * ONE
        assert manager.get_liquidity(pool_id) == 3 * ONE

    def test_tick_and_bitmap_views(self, manager: PoolManager, initialized: PoolKey) -> None:
        add_liquidity(manager, initialized, -120, 60, ONE)
        pool_id = initialized.to_id()
        assert manager.get_tick_info(pool_id, -120).liquidity_net == ONE
        assert manager.get_tick_info(pool_id, 60).liquidity_net == -ONE
        # -120 / 60 = -2 sits in word -1 at bit 254; 60 / 60 = 1 in word 0 at bit 1
        assert manager.get_tick_bitmap_word(pool_id, -1) == 1 << 254
        assert manager.get_tick_bitmap_word(pool_id, 0) == 1 << 1

    def test_views_return_copies(self, manager: PoolManager, initialized: PoolKey) -> None:
        add_liquidity(manager, initialized, -60, 60, ONE)
        pool_id = initialized.to_id()
        manager.get_position(pool_id, ALICE, -60, 60).liquidity = 0
        manager.get_tick_info(pool_id, -60).liquidity_gross = 0
        assert manager.get_liquidity(pool_id, ALICE, -60, 60) == ONE
        assert manager.get_tick_info(pool_id, -60).liquidity_gross == ONE

    def test_position_lookup_needs_range(
        self, manager: PoolManager, initialized: PoolKey
    ) -> None:
        with pytest.raises(ValueError):
            manager.get_liquidity(initialized.to_id(), ALICE)

    def test_unknown_pool(self, manager: PoolManager, key: PoolKey) -> None:
        pool_id = key.to_id()
        with pytest.raises(PoolNotInitialized):
            manager.get_slot0(pool_id)
        with pytest.raises(PoolNotInitialized):
            manager.get_pool_key(pool_id)
        with pytest.raises(PoolNotInitialized):
            add_liquidity(manager, key, -60, 60, ONE)


class TestSwaps:
    def test_exact_input(
        self,
        manager: PoolManager,
        initialized: PoolKey,
        transfers: InMemoryTokenTransfer,
    ) -> None:
        add_liquidity(manager, initialized, -600, 600, ONE)
        reserves_before = manager.reserves_of(DAI)

        delta = swap(manager, initialized, True, 10**15)

        assert delta.amount0 == -(10**15)
        assert 0 < delta.amount1 < 10**15
        assert transfers.balance_of(USDC, BOB) == delta.amount1
        assert manager.reserves_of(DAI) == reserves_before + 10**15
        assert manager.get_slot0(initialized.to_id()).tick < 0

    def test_exact_output(self, manager: PoolManager, initialized: PoolKey) -> None:
        add_liquidity(manager, initialized, -600, 600, ONE)
        delta = swap(manager, initialized, False, -(10**15))
        assert delta.amount0 == 10**15
        assert delta.amount1 < -(10**15)
        assert manager.get_slot0(initialized.to_id()).tick >= 0

    def test_lp_collects_swap_fees(self, manager: PoolManager, initialized: PoolKey) -> None:
        add_liquidity(manager, initialized, -600, 600, ONE)
        swap(manager, initialized, True, 10**15)

        # A zero liquidity change collects the accrued fees
        collected = add_liquidity(manager, initialized, -600, 600, 0)

        assert 3 * 10**12 - 2 <= collected.amount0 <= 3 * 10**12
        assert collected.amount1 == 0

    def test_fees_split_by_liquidity(self, manager: PoolManager, initialized: PoolKey) -> None:
        add_liquidity(manager, initialized, -600, 600, ONE, owner=ALICE)
        add_liquidity(manager, initialized, -600, 600, 3 * ONE, owner=BOB)
        swap(manager, initialized, False, 10**15)

        alice = add_liquidity(manager, initialized, -600, 600, 0, owner=ALICE).amount1
        bob = add_liquidity(manager, initialized, -600, 600, 0, owner=BOB).amount1

        assert alice > 0
        assert abs(bob - 3 * alice) <= 3

    def test_round_trip_does_not_profit(
        self, manager: PoolManager, initialized: PoolKey
    ) -> None:
        add_liquidity(manager, initialized, -600, 600, ONE)
        out = swap(manager, initialized, True, 10**15).amount1
        back = swap(manager, initialized, False, out).amount0
        assert back < 10**15

    def test_swap_across_ranges(self, manager: PoolManager, initialized: PoolKey) -> None:
        add_liquidity(manager, initialized, -60, 60, ONE)
        add_liquidity(manager, initialized, -600, -60, ONE)
        swap(manager, initialized, True, 10**16)
        slot0 = manager.get_slot0(initialized.to_id())
        assert slot0.tick < -60
        assert manager.get_liquidity(initialized.to_id()) == ONE


class TestDonate:
    def test_in_range_lp_receives_donation(
        self, manager: PoolManager, initialized: PoolKey
    ) -> None:
        add_liquidity(manager, initialized, -60, 60, ONE)
        delta = donate(manager, initialized, 1000, 2000)
        assert (delta.amount0, delta.amount1) == (-1000, -2000)

        collected = add_liquidity(manager, initialized, -60, 60, 0)
        assert (collected.amount0, collected.amount1) == (999, 1999)

    def test_negative_amounts(self, manager: PoolManager, initialized: PoolKey) -> None:
        add_liquidity(manager, initialized, -60, 60, ONE)
        with pytest.raises(ValueError):
            donate(manager, initialized, -1, 0)


def test_fresh_manager_defaults() -> None:
    manager = make_manager()
    assert manager.owner == OWNER
    assert manager.pool_ids == []
    assert not manager.session_active
