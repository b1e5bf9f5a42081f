"""Pool manager: the singleton entry point for all pools.

The manager owns every pool's state, the per-currency reserves and the
accrued protocol fees. It validates pool keys, dispatches hooks around
each operation, routes BalanceDeltas into the open session, and enforces
that every session ends with all currencies settled.

Every call is all-or-nothing: the currency counters are snapshotted on
entry, each pool is copied the first time the call touches it, and all of
it is restored if anything raises (a hook, a fee controller, a payout or
the end-of-session settlement check).

Usage:
    manager = PoolManager(EngineConfig(owner=admin))
    manager.initialize(key, sqrt_price_x96)

    def add_liquidity(manager):
        delta = manager.modify_position(key, ModifyPositionParams(-60, 60, 10**18))
        manager.settle(key.currency0, -delta.amount0)
        manager.settle(key.currency1, -delta.amount1)
        return delta

    manager.lock(add_liquidity, locker=lp)
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, TypeVar

import structlog

from clamm.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from clamm.constants import ZERO_ADDRESS
from clamm.errors import (
    CurrenciesOutOfOrder,
    FeeNotDynamic,
    FeeTooLarge,
    HookAddressNotValid,
    InsufficientReserves,
    InvalidHookResponse,
    NoActiveSession,
    PoolAlreadyInitialized,
    PoolNotInitialized,
    SessionAlreadyActive,
    TickSpacingTooLarge,
    TickSpacingTooSmall,
    Unauthorized,
)
from clamm.fees import (
    ProtocolFeeController,
    is_valid_protocol_fee,
    validate_protocol_fee,
    validate_swap_fee,
)
from clamm.hooks import HookRegistry, call_hook, is_valid_hook_address
from clamm.math.tick_math import get_tick_at_sqrt_ratio
from clamm.models.balance_delta import BalanceDelta
from clamm.models.params import ModifyPositionParams, SwapParams
from clamm.models.pool_key import PoolId, PoolKey, pool_id_to_hex
from clamm.models.types import address_to_int, normalize_address
from clamm.pool.position import PositionInfo
from clamm.pool.state import PoolState
from clamm.pool.tick import TickInfo
from clamm.session import InMemoryTokenTransfer, Session, TokenTransfer

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class Slot0:
    """Price and fee snapshot of a pool."""

    sqrt_price_x96: int
    tick: int
    protocol_fees: int
    swap_fee: int


@dataclass
class EngineState:
    """Everything a failed operation must roll back."""

    pools: dict[PoolId, PoolState] = field(default_factory=dict)
    pool_keys: dict[PoolId, PoolKey] = field(default_factory=dict)
    reserves: dict[str, int] = field(default_factory=dict)
    protocol_fees_accrued: dict[str, int] = field(default_factory=dict)
    session: Session | None = None


@dataclass
class Snapshot:
    """Pre-images restored when an operation fails.

    ``pools`` is filled lazily: a pool is copied the first time the
    operation touches it, and ``None`` marks a pool the operation created.
    """

    reserves: dict[str, int]
    protocol_fees_accrued: dict[str, int]
    session: Session | None
    pools: dict[PoolId, PoolState | None] = field(default_factory=dict)


class PoolManager:
    """Holds all pools and mediates every state-changing operation.

    Args:
        config: Engine settings (owner, tick spacing bounds, fee floor)
        hooks: Registry resolving hook addresses to implementations
        token_transfer: Collaborator that pays out ``take`` and fee collection
        protocol_fee_controller: Optional source of per-pool protocol fees
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        hooks: HookRegistry | None = None,
        token_transfer: TokenTransfer | None = None,
        protocol_fee_controller: ProtocolFeeController | None = None,
    ) -> None:
        self.config = config or DEFAULT_ENGINE_CONFIG
        self.owner = self.config.owner
        self.hooks = hooks if hooks is not None else HookRegistry()
        self.token_transfer: TokenTransfer = (
            token_transfer if token_transfer is not None else InMemoryTokenTransfer()
        )
        self.protocol_fee_controller = protocol_fee_controller
        self._state = EngineState()
        self._snapshots: list[Snapshot] = []

    # -------------------------------------------------------------------------
    # Atomicity and sessions
    # -------------------------------------------------------------------------

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        """Restore everything the enclosed block changed if it raises."""
        snapshot = Snapshot(
            reserves=dict(self._state.reserves),
            protocol_fees_accrued=dict(self._state.protocol_fees_accrued),
            session=copy.deepcopy(self._state.session),
        )
        self._snapshots.append(snapshot)
        try:
            yield
        except BaseException:
            self._restore(snapshot)
            raise
        finally:
            self._snapshots.pop()

    def _restore(self, snapshot: Snapshot) -> None:
        for pool_id, pool in snapshot.pools.items():
            if pool is None:
                self._state.pools.pop(pool_id, None)
                self._state.pool_keys.pop(pool_id, None)
            else:
                self._state.pools[pool_id] = pool
        self._state.reserves = snapshot.reserves
        self._state.protocol_fees_accrued = snapshot.protocol_fees_accrued
        self._state.session = snapshot.session
        logger.debug("state_restored", pools=len(snapshot.pools))

    def _pool_for_update(self, pool_id: PoolId) -> PoolState:
        """Return a pool about to be mutated, copying it into open snapshots."""
        pool = self._pool(pool_id)
        for snapshot in self._snapshots:
            if pool_id not in snapshot.pools:
                snapshot.pools[pool_id] = copy.deepcopy(pool)
        return pool

    def _require_session(self) -> Session:
        session = self._state.session
        if session is None:
            raise NoActiveSession("Operation requires an open session; call lock() first")
        return session

    @property
    def session_active(self) -> bool:
        return self._state.session is not None

    def lock(self, callback: Callable[..., T], *args: Any, locker: str = ZERO_ADDRESS) -> T:
        """Open a session, run ``callback(manager, *args)`` and settle.

        After the callback returns every currency delta must be zero.
        Queued withdrawals are paid out only once that check passes.

        Args:
            callback: Called with this manager followed by ``args``
            locker: Address acting in the session (owner of positions it touches)

        Returns:
            Whatever the callback returns

        Raises:
            SessionAlreadyActive: If called while a session is open
            CurrencyNotSettled: If any delta is nonzero when the callback returns
            Exception: Whatever the token transfer raises; state is rolled back
        """
        if self._state.session is not None:
            raise SessionAlreadyActive("A session is already open")

        locker = normalize_address(locker)
        with self._atomic():
            self._state.session = Session(locker=locker)
            result = callback(self, *args)
            session = self._state.session
            if session is None:
                raise NoActiveSession("Session was closed during its callback")
            session.check_settled()
            transfers = session.pending_transfers
            self._state.session = None

            # A failing payout rolls back the whole session
            for transfer in transfers:
                self.token_transfer.transfer(
                    transfer.currency, transfer.recipient, transfer.amount
                )

        logger.info("session_settled", locker=locker, transfers=len(transfers))
        return result

    def _account_delta(self, currency: str, amount: int) -> None:
        self._require_session().account(currency, amount)

    def _account_pool_delta(self, key: PoolKey, delta: BalanceDelta) -> None:
        self._account_delta(key.currency0, delta.amount0)
        self._account_delta(key.currency1, delta.amount1)

    def settle(self, currency: str, amount: int) -> int:
        """Record a payment of ``amount`` from the session's caller.

        Returns:
            The amount settled
        """
        if amount < 0:
            raise ValueError(f"Settle amount must be non-negative, got {amount}")
        with self._atomic():
            currency = normalize_address(currency)
            self._account_delta(currency, amount)
            self._state.reserves[currency] = self._state.reserves.get(currency, 0) + amount
        logger.debug("currency_settled", currency=currency, amount=amount)
        return amount

    def take(self, currency: str, to: str, amount: int) -> None:
        """Withdraw ``amount`` to ``to``; paid out when the session closes.

        Raises:
            InsufficientReserves: If the engine holds less than ``amount``
        """
        if amount < 0:
            raise ValueError(f"Take amount must be non-negative, got {amount}")
        with self._atomic():
            currency = normalize_address(currency)
            session = self._require_session()
            reserves = self._state.reserves.get(currency, 0)
            if amount > reserves:
                raise InsufficientReserves(
                    f"Cannot take {amount} of {currency}; reserves are {reserves}"
                )
            self._state.reserves[currency] = reserves - amount
            session.account(currency, -amount)
            session.queue_transfer(currency, to, amount)
        logger.debug("currency_taken", currency=currency, to=to, amount=amount)

    def _sender(self, sender: str | None) -> str:
        if sender is not None:
            return normalize_address(sender)
        session = self._state.session
        return session.locker if session is not None else ZERO_ADDRESS

    # -------------------------------------------------------------------------
    # Pool lookup and key validation
    # -------------------------------------------------------------------------

    def _pool(self, pool_id: PoolId) -> PoolState:
        pool = self._state.pools.get(pool_id)
        if pool is None:
            raise PoolNotInitialized(f"Pool {pool_id_to_hex(pool_id)} is not initialized")
        return pool

    def _validate_key(self, key: PoolKey) -> None:
        if address_to_int(key.currency0) >= address_to_int(key.currency1):
            raise CurrenciesOutOfOrder(
                f"currency0 {key.currency0} must sort below currency1 {key.currency1}"
            )
        if key.tick_spacing > self.config.max_tick_spacing:
            raise TickSpacingTooLarge(
                f"Tick spacing {key.tick_spacing} > {self.config.max_tick_spacing}"
            )
        if key.tick_spacing < self.config.min_tick_spacing:
            raise TickSpacingTooSmall(
                f"Tick spacing {key.tick_spacing} < {self.config.min_tick_spacing}"
            )
        validate_swap_fee(key.static_fee)
        if not is_valid_hook_address(key.hooks, key.fee):
            raise HookAddressNotValid(f"Hook address {key.hooks} is not valid for fee {key.fee:#x}")

    def _fetch_protocol_fees(self, key: PoolKey) -> int:
        """Query the controller at pool creation; any failure yields zero."""
        if self.protocol_fee_controller is None:
            return 0
        try:
            protocol_fees = self.protocol_fee_controller.protocol_fees_for_pool(key)
        except Exception as e:
            logger.warning(
                "protocol_fee_controller_failed",
                pool_id=key.to_id_hex(),
                error=str(e),
            )
            return 0
        if not isinstance(protocol_fees, int) or not is_valid_protocol_fee(
            protocol_fees, self.config.min_protocol_fee_denominator
        ):
            logger.warning(
                "protocol_fee_invalid",
                pool_id=key.to_id_hex(),
                protocol_fees=protocol_fees,
            )
            return 0
        return protocol_fees

    def _fetch_dynamic_swap_fee(self, key: PoolKey) -> int:
        hook = self.hooks.resolve(key.hooks)
        get_fee = getattr(hook, "get_fee", None)
        if get_fee is None:
            raise InvalidHookResponse(f"Hook {key.hooks} does not supply a dynamic fee")
        return validate_swap_fee(get_fee(key))

    # -------------------------------------------------------------------------
    # Pool operations
    # -------------------------------------------------------------------------

    def initialize(
        self,
        key: PoolKey,
        sqrt_price_x96: int,
        hook_data: bytes = b"",
        sender: str | None = None,
    ) -> int:
        """Create a pool at the given starting price.

        Does not require a session: no currency changes hands.

        Returns:
            The starting tick

        Raises:
            CurrenciesOutOfOrder, TickSpacingTooLarge, TickSpacingTooSmall,
            FeeTooLarge, HookAddressNotValid: Invalid key
            PriceOutOfRange: Starting price outside the valid band
            PoolAlreadyInitialized: Pool exists
        """
        self._validate_key(key)
        pool_id = key.to_id()
        sender = self._sender(sender)

        with self._atomic():
            if pool_id in self._state.pools:
                raise PoolAlreadyInitialized(f"Pool {pool_id_to_hex(pool_id)} already exists")
            # Reject bad prices before any hook runs
            get_tick_at_sqrt_ratio(sqrt_price_x96)

            call_hook(self.hooks, key, "before_initialize", sender, key, sqrt_price_x96, hook_data)

            swap_fee = self._fetch_dynamic_swap_fee(key) if key.is_dynamic_fee else key.fee
            protocol_fees = self._fetch_protocol_fees(key)

            pool = PoolState(tick_spacing=key.tick_spacing)
            tick = pool.initialize(sqrt_price_x96, protocol_fees, swap_fee)
            # A re-entrant hook or controller may have created the pool meanwhile
            if pool_id in self._state.pools:
                raise PoolAlreadyInitialized(f"Pool {pool_id_to_hex(pool_id)} already exists")
            for snapshot in self._snapshots:
                snapshot.pools.setdefault(pool_id, None)
            self._state.pools[pool_id] = pool
            self._state.pool_keys[pool_id] = key

            call_hook(
                self.hooks, key, "after_initialize", sender, key, sqrt_price_x96, tick, hook_data
            )

        logger.info(
            "pool_initialized",
            pool_id=pool_id_to_hex(pool_id),
            currency0=key.currency0,
            currency1=key.currency1,
            fee=key.fee,
            tick_spacing=key.tick_spacing,
            hooks=key.hooks,
            sqrt_price_x96=sqrt_price_x96,
            tick=tick,
            swap_fee=swap_fee,
            protocol_fees=protocol_fees,
        )
        return tick

    def modify_position(
        self,
        key: PoolKey,
        params: ModifyPositionParams,
        hook_data: bytes = b"",
    ) -> BalanceDelta:
        """Add or remove liquidity for the session's locker.

        Returns:
            Caller's BalanceDelta, including any fees collected

        Raises:
            NoActiveSession: Outside lock()
            PoolNotInitialized: Unknown pool
        """
        with self._atomic():
            session = self._require_session()
            pool_id = key.to_id()
            self._pool(pool_id)

            call_hook(
                self.hooks, key, "before_modify_position", session.locker, key, params, hook_data
            )

            # Re-resolve: a re-entrant hook may have replaced the pool object
            delta = self._pool_for_update(pool_id).modify_position(session.locker, params)
            self._account_pool_delta(key, delta)

            call_hook(
                self.hooks,
                key,
                "after_modify_position",
                session.locker,
                key,
                params,
                delta,
                hook_data,
            )

        logger.info(
            "liquidity_modified",
            pool_id=pool_id_to_hex(pool_id),
            owner=session.locker,
            tick_lower=params.tick_lower,
            tick_upper=params.tick_upper,
            liquidity_delta=params.liquidity_delta,
            amount0=delta.amount0,
            amount1=delta.amount1,
        )
        return delta

    def swap(self, key: PoolKey, params: SwapParams, hook_data: bytes = b"") -> BalanceDelta:
        """Swap against a pool.

        ``params.amount_specified`` > 0 is an exact input amount, < 0 an
        exact output amount.

        Returns:
            Caller's BalanceDelta (input negative, output positive)
        """
        with self._atomic():
            session = self._require_session()
            pool_id = key.to_id()
            self._pool(pool_id)

            call_hook(self.hooks, key, "before_swap", session.locker, key, params, hook_data)

            result = self._pool_for_update(pool_id).swap(params)
            self._account_pool_delta(key, result.delta)

            if result.fee_for_protocol > 0:
                fee_currency = key.currency0 if params.zero_for_one else key.currency1
                accrued = self._state.protocol_fees_accrued
                accrued[fee_currency] = accrued.get(fee_currency, 0) + result.fee_for_protocol

            call_hook(
                self.hooks, key, "after_swap", session.locker, key, params, result.delta, hook_data
            )

        logger.info(
            "swap_executed",
            pool_id=pool_id_to_hex(pool_id),
            zero_for_one=params.zero_for_one,
            amount_specified=params.amount_specified,
            amount0=result.delta.amount0,
            amount1=result.delta.amount1,
            sqrt_price_x96=result.sqrt_price_x96,
            tick=result.tick,
            fee_for_protocol=result.fee_for_protocol,
        )
        return result.delta

    def donate(
        self,
        key: PoolKey,
        amount0: int,
        amount1: int,
        hook_data: bytes = b"",
    ) -> BalanceDelta:
        """Give amounts to in-range liquidity providers.

        Raises:
            NoLiquidityToReceiveFees: If the pool has no active liquidity
        """
        if amount0 < 0 or amount1 < 0:
            raise ValueError(f"Donation amounts must be non-negative, got ({amount0}, {amount1})")
        with self._atomic():
            session = self._require_session()
            pool_id = key.to_id()
            self._pool(pool_id)

            call_hook(
                self.hooks, key, "before_donate", session.locker, key, amount0, amount1, hook_data
            )

            delta = self._pool_for_update(pool_id).donate(amount0, amount1)
            self._account_pool_delta(key, delta)

            call_hook(
                self.hooks, key, "after_donate", session.locker, key, amount0, amount1, hook_data
            )

        logger.info(
            "donated",
            pool_id=pool_id_to_hex(pool_id),
            amount0=amount0,
            amount1=amount1,
        )
        return delta

    # -------------------------------------------------------------------------
    # Fee administration
    # -------------------------------------------------------------------------

    def set_protocol_fee_controller(
        self, controller: ProtocolFeeController | None, caller: str
    ) -> None:
        """Replace the protocol fee controller.

        Raises:
            Unauthorized: If ``caller`` is not the owner
        """
        if normalize_address(caller) != self.owner:
            raise Unauthorized(f"{caller} is not the owner")
        self.protocol_fee_controller = controller
        logger.info(
            "protocol_fee_controller_set",
            controller=getattr(controller, "address", None),
        )

    def set_protocol_fees(self, key: PoolKey) -> int:
        """Re-query the controller and store the pool's protocol fee.

        Returns:
            The new packed protocol fee

        Raises:
            PoolNotInitialized: Unknown pool
            FeeTooLarge: Controller returned an invalid value
        """
        pool_id = key.to_id()
        with self._atomic():
            self._pool(pool_id)
            protocol_fees = 0
            if self.protocol_fee_controller is not None:
                protocol_fees = self.protocol_fee_controller.protocol_fees_for_pool(key)
            if not isinstance(protocol_fees, int):
                raise FeeTooLarge(f"Invalid protocol fee: {protocol_fees!r}")
            validate_protocol_fee(protocol_fees, self.config.min_protocol_fee_denominator)
            self._pool_for_update(pool_id).set_protocol_fees(protocol_fees)

        logger.info(
            "protocol_fees_updated",
            pool_id=pool_id_to_hex(pool_id),
            protocol_fees=protocol_fees,
        )
        return protocol_fees

    def collect_protocol_fees(
        self,
        recipient: str,
        currency: str,
        amount: int,
        caller: str,
    ) -> int:
        """Pay accrued protocol fees to ``recipient``.

        Args:
            recipient: Destination of the payout
            currency: Currency to collect
            amount: Amount to collect; zero collects everything accrued
            caller: Must be the owner or the fee controller's address

        Returns:
            The amount paid out

        Raises:
            Unauthorized: If ``caller`` is neither owner nor controller
            InsufficientReserves: If the engine cannot cover the payout
        """
        caller = normalize_address(caller)
        controller_address = (
            normalize_address(self.protocol_fee_controller.address)
            if self.protocol_fee_controller is not None
            else None
        )
        if caller != self.owner and caller != controller_address:
            raise Unauthorized(f"{caller} may not collect protocol fees")

        currency = normalize_address(currency)
        with self._atomic():
            accrued = self._state.protocol_fees_accrued.get(currency, 0)
            amount_collected = accrued if amount == 0 else amount
            if amount_collected > accrued:
                raise InsufficientReserves(
                    f"Requested {amount_collected} of {currency}; only {accrued} accrued"
                )
            reserves = self._state.reserves.get(currency, 0)
            if amount_collected > reserves:
                raise InsufficientReserves(
                    f"Requested {amount_collected} of {currency}; reserves are {reserves}"
                )
            self._state.protocol_fees_accrued[currency] = accrued - amount_collected
            self._state.reserves[currency] = reserves - amount_collected

            if amount_collected:
                self.token_transfer.transfer(currency, recipient, amount_collected)

        logger.info(
            "protocol_fees_collected",
            currency=currency,
            recipient=normalize_address(recipient),
            amount=amount_collected,
        )
        return amount_collected

    def update_dynamic_swap_fee(self, key: PoolKey) -> int:
        """Refresh a dynamic-fee pool's swap fee from its hook.

        Raises:
            FeeNotDynamic: If the key's fee does not carry the dynamic flag
            PoolNotInitialized: Unknown pool
        """
        if not key.is_dynamic_fee:
            raise FeeNotDynamic(f"Pool fee {key.fee:#x} is not dynamic")
        pool_id = key.to_id()
        with self._atomic():
            self._pool(pool_id)
            swap_fee = self._fetch_dynamic_swap_fee(key)
            self._pool_for_update(pool_id).set_swap_fee(swap_fee)

        logger.info("dynamic_swap_fee_updated", pool_id=pool_id_to_hex(pool_id), swap_fee=swap_fee)
        return swap_fee

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def pool_ids(self) -> list[PoolId]:
        return list(self._state.pools)

    def get_pool_key(self, pool_id: PoolId) -> PoolKey:
        self._pool(pool_id)
        return self._state.pool_keys[pool_id]

    def get_slot0(self, pool_id: PoolId) -> Slot0:
        pool = self._pool(pool_id)
        return Slot0(
            sqrt_price_x96=pool.sqrt_price_x96,
            tick=pool.tick,
            protocol_fees=pool.protocol_fees,
            swap_fee=pool.swap_fee,
        )

    def get_liquidity(
        self,
        pool_id: PoolId,
        owner: str | None = None,
        tick_lower: int | None = None,
        tick_upper: int | None = None,
    ) -> int:
        """Active pool liquidity, or a single position's liquidity when owner is given."""
        pool = self._pool(pool_id)
        if owner is None:
            return pool.liquidity
        if tick_lower is None or tick_upper is None:
            raise ValueError("Position lookup requires tick_lower and tick_upper")
        return pool.get_position(owner, tick_lower, tick_upper).liquidity

    def get_position(
        self, pool_id: PoolId, owner: str, tick_lower: int, tick_upper: int
    ) -> PositionInfo:
        return copy.copy(self._pool(pool_id).get_position(owner, tick_lower, tick_upper))

    def get_tick_info(self, pool_id: PoolId, tick: int) -> TickInfo:
        return copy.copy(self._pool(pool_id).get_tick_info(tick))

    def get_fee_growth_global(self, pool_id: PoolId) -> tuple[int, int]:
        pool = self._pool(pool_id)
        return pool.fee_growth_global0_x128, pool.fee_growth_global1_x128

    def get_fee_growth_inside(
        self, pool_id: PoolId, tick_lower: int, tick_upper: int
    ) -> tuple[int, int]:
        return self._pool(pool_id).get_fee_growth_inside(tick_lower, tick_upper)

    def get_tick_bitmap_word(self, pool_id: PoolId, word_pos: int) -> int:
        return self._pool(pool_id).tick_bitmap.get_word(word_pos)

    def reserves_of(self, currency: str) -> int:
        return self._state.reserves.get(normalize_address(currency), 0)

    def protocol_fees_accrued(self, currency: str) -> int:
        return self._state.protocol_fees_accrued.get(normalize_address(currency), 0)

    def currency_delta(self, currency: str) -> int:
        """Running session delta for ``currency`` (zero outside a session)."""
        session = self._state.session
        return session.delta_of(currency) if session is not None else 0


# Process-wide engine used by the HTTP API, configured from the environment
_default_manager: PoolManager | None = None


def get_default_manager() -> PoolManager:
    """Return the shared PoolManager, creating it on first use."""
    global _default_manager
    if _default_manager is None:
        config = EngineConfig.from_env()
        _default_manager = PoolManager(config)
        logger.info("default_manager_created", owner=config.owner)
    return _default_manager


__all__ = ["PoolManager", "EngineState", "Slot0", "get_default_manager"]
