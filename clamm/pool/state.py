"""Per-pool state machine: initialization, liquidity changes, swaps, donations.

A ``PoolState`` owns one pool's price, active liquidity, fee-growth
accumulators, tick map, tick bitmap and positions. It knows nothing about
hooks, sessions or settlement; the manager wraps these methods with those
concerns. Every method returns a ``BalanceDelta`` from the caller's point
of view (negative = owed to the pool).
"""

from __future__ import annotations

from dataclasses import dataclass, field

import structlog

from clamm.constants import MAX_SQRT_RATIO, MAX_TICK, MIN_SQRT_RATIO, MIN_TICK, Q128
from clamm.errors import (
    CannotUpdateEmptyPosition,
    InsufficientLiquidity,
    NoLiquidityToReceiveFees,
    NoLiquidityToSwap,
    PoolAlreadyInitialized,
    PoolNotInitialized,
    PriceLimitAlreadyExceeded,
    PriceLimitOutOfBounds,
    SwapAmountCannotBeZero,
    TickMisaligned,
)
from clamm.fees import protocol_fee_for_direction
from clamm.math.full_math import mul_div
from clamm.math.liquidity_math import add_delta
from clamm.math.safe_cast import to_int128, to_int256, wrap_uint256
from clamm.math.sqrt_price_math import get_amount0_delta_signed, get_amount1_delta_signed
from clamm.math.swap_math import compute_swap_step, get_sqrt_price_target
from clamm.math.tick_math import get_sqrt_ratio_at_tick, get_tick_at_sqrt_ratio
from clamm.models.balance_delta import BalanceDelta
from clamm.models.params import ModifyPositionParams, SwapParams

from . import position as position_ledger
from . import tick as tick_ledger
from .position import PositionInfo, PositionKey
from .tick import TickInfo
from .tick_bitmap import TickBitmap

logger = structlog.get_logger()


@dataclass
class SwapResult:
    """Outcome of a swap against one pool."""

    delta: BalanceDelta
    fee_for_protocol: int
    sqrt_price_x96: int
    tick: int
    liquidity: int


@dataclass
class PoolState:
    """All mutable state of a single pool.

    Attributes:
        tick_spacing: Distance between usable ticks
        max_liquidity_per_tick: Gross liquidity cap per tick
        sqrt_price_x96: Current sqrt price (Q64.96); zero until initialized
        tick: Current tick
        protocol_fees: Packed 24-bit protocol fee denominators
        swap_fee: LP fee in pips
        liquidity: Active liquidity at the current tick
        fee_growth_global0_x128: Fees per unit of liquidity ever earned (currency0)
        fee_growth_global1_x128: Fees per unit of liquidity ever earned (currency1)
    """

    tick_spacing: int
    max_liquidity_per_tick: int = 0
    sqrt_price_x96: int = 0
    tick: int = 0
    protocol_fees: int = 0
    swap_fee: int = 0
    liquidity: int = 0
    fee_growth_global0_x128: int = 0
    fee_growth_global1_x128: int = 0
    ticks: dict[int, TickInfo] = field(default_factory=dict)
    tick_bitmap: TickBitmap = field(default_factory=TickBitmap)
    positions: dict[PositionKey, PositionInfo] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.max_liquidity_per_tick:
            self.max_liquidity_per_tick = tick_ledger.tick_spacing_to_max_liquidity_per_tick(
                self.tick_spacing
            )

    @property
    def initialized(self) -> bool:
        return self.sqrt_price_x96 != 0

    def _require_initialized(self) -> None:
        if not self.initialized:
            raise PoolNotInitialized("Pool has not been initialized")

    # -------------------------------------------------------------------------
    # Initialization
    # -------------------------------------------------------------------------

    def initialize(self, sqrt_price_x96: int, protocol_fees: int, swap_fee: int) -> int:
        """Set the starting price and fees.

        Returns:
            The tick corresponding to the starting price

        Raises:
            PoolAlreadyInitialized: If the pool already has a price
            PriceOutOfRange: If the price is outside the valid band
        """
        if self.initialized:
            raise PoolAlreadyInitialized("Pool is already initialized")

        tick = get_tick_at_sqrt_ratio(sqrt_price_x96)

        self.sqrt_price_x96 = sqrt_price_x96
        self.tick = tick
        self.protocol_fees = protocol_fees
        self.swap_fee = swap_fee
        return tick

    def set_protocol_fees(self, protocol_fees: int) -> None:
        self._require_initialized()
        self.protocol_fees = protocol_fees

    def set_swap_fee(self, swap_fee: int) -> None:
        self._require_initialized()
        self.swap_fee = swap_fee

    # -------------------------------------------------------------------------
    # Liquidity
    # -------------------------------------------------------------------------

    def modify_position(self, owner: str, params: ModifyPositionParams) -> BalanceDelta:
        """Add or remove liquidity for ``owner`` in a tick range.

        Accrued fees for the position are credited into the returned delta.

        Raises:
            PoolNotInitialized: If the pool has no price yet
            TicksMisordered / TickLowerOutOfBounds / TickUpperOutOfBounds: Bad range
            TickMisaligned: Range bounds not multiples of tick spacing
            InsufficientLiquidity: Removing more than the position holds
            CannotUpdateEmptyPosition: Zero delta on an empty position
            TickLiquidityOverflow: Per-tick liquidity cap exceeded
        """
        self._require_initialized()

        tick_lower = params.tick_lower
        tick_upper = params.tick_upper
        liquidity_delta = to_int128(params.liquidity_delta)

        tick_ledger.check_ticks(tick_lower, tick_upper)
        for boundary in (tick_lower, tick_upper):
            if boundary % self.tick_spacing != 0:
                raise TickMisaligned(
                    f"Tick {boundary} not aligned to spacing {self.tick_spacing}"
                )

        # Reject position-level failures before any tick is touched
        existing = position_ledger.get(self.positions, owner, tick_lower, tick_upper)
        if liquidity_delta == 0 and existing.liquidity == 0:
            raise CannotUpdateEmptyPosition(
                f"Position ({owner}, {tick_lower}, {tick_upper}) holds no liquidity"
            )
        if existing.liquidity + liquidity_delta < 0:
            raise InsufficientLiquidity(
                f"Position holds {existing.liquidity}, cannot remove {-liquidity_delta}"
            )

        flipped_lower = False
        flipped_upper = False
        if liquidity_delta != 0:
            flipped_lower = tick_ledger.update(
                self.ticks,
                tick_lower,
                self.tick,
                liquidity_delta,
                self.fee_growth_global0_x128,
                self.fee_growth_global1_x128,
                upper=False,
                max_liquidity=self.max_liquidity_per_tick,
            )
            flipped_upper = tick_ledger.update(
                self.ticks,
                tick_upper,
                self.tick,
                liquidity_delta,
                self.fee_growth_global0_x128,
                self.fee_growth_global1_x128,
                upper=True,
                max_liquidity=self.max_liquidity_per_tick,
            )
            if flipped_lower:
                self.tick_bitmap.flip_tick(tick_lower, self.tick_spacing)
            if flipped_upper:
                self.tick_bitmap.flip_tick(tick_upper, self.tick_spacing)

        fee_growth_inside0, fee_growth_inside1 = tick_ledger.get_fee_growth_inside(
            self.ticks,
            tick_lower,
            tick_upper,
            self.tick,
            self.fee_growth_global0_x128,
            self.fee_growth_global1_x128,
        )

        fees_owed0, fees_owed1 = position_ledger.update(
            self.positions,
            owner,
            tick_lower,
            tick_upper,
            liquidity_delta,
            fee_growth_inside0,
            fee_growth_inside1,
        )

        # Ticks no longer referenced by any position are dropped
        if liquidity_delta < 0:
            if flipped_lower:
                tick_ledger.clear(self.ticks, tick_lower)
            if flipped_upper:
                tick_ledger.clear(self.ticks, tick_upper)

        # Amounts owed to the pool: round up when adding, down when removing
        amount0 = 0
        amount1 = 0
        if liquidity_delta != 0:
            sqrt_lower = get_sqrt_ratio_at_tick(tick_lower)
            sqrt_upper = get_sqrt_ratio_at_tick(tick_upper)
            if self.tick < tick_lower:
                # Range entirely above price: only currency0
                amount0 = get_amount0_delta_signed(sqrt_lower, sqrt_upper, liquidity_delta)
            elif self.tick < tick_upper:
                # Range straddles price: both currencies, and active liquidity changes
                amount0 = get_amount0_delta_signed(
                    self.sqrt_price_x96, sqrt_upper, liquidity_delta
                )
                amount1 = get_amount1_delta_signed(
                    sqrt_lower, self.sqrt_price_x96, liquidity_delta
                )
                self.liquidity = add_delta(self.liquidity, liquidity_delta)
            else:
                # Range entirely below price: only currency1
                amount1 = get_amount1_delta_signed(sqrt_lower, sqrt_upper, liquidity_delta)

        logger.debug(
            "position_modified",
            owner=owner,
            tick_lower=tick_lower,
            tick_upper=tick_upper,
            liquidity_delta=liquidity_delta,
            fees_owed0=fees_owed0,
            fees_owed1=fees_owed1,
        )

        return BalanceDelta(
            to_int128(fees_owed0 - amount0),
            to_int128(fees_owed1 - amount1),
        )

    # -------------------------------------------------------------------------
    # Swaps
    # -------------------------------------------------------------------------

    def _check_price_limit(self, zero_for_one: bool, sqrt_price_limit_x96: int) -> None:
        if zero_for_one:
            if sqrt_price_limit_x96 >= self.sqrt_price_x96:
                raise PriceLimitAlreadyExceeded(
                    f"Limit {sqrt_price_limit_x96} >= price {self.sqrt_price_x96}"
                )
            if sqrt_price_limit_x96 <= MIN_SQRT_RATIO:
                raise PriceLimitOutOfBounds(f"Limit {sqrt_price_limit_x96} <= MIN_SQRT_RATIO")
        else:
            if sqrt_price_limit_x96 <= self.sqrt_price_x96:
                raise PriceLimitAlreadyExceeded(
                    f"Limit {sqrt_price_limit_x96} <= price {self.sqrt_price_x96}"
                )
            if sqrt_price_limit_x96 >= MAX_SQRT_RATIO:
                raise PriceLimitOutOfBounds(f"Limit {sqrt_price_limit_x96} >= MAX_SQRT_RATIO")

    def _has_liquidity_ahead(self, zero_for_one: bool, sqrt_price_limit_x96: int) -> bool:
        """Whether the price can reach an initialized tick before the limit."""
        limit_tick = get_tick_at_sqrt_ratio(sqrt_price_limit_x96)
        tick_next, initialized = self.tick_bitmap.next_initialized_tick(
            self.tick, self.tick_spacing, lte=zero_for_one, bound=limit_tick
        )
        if not initialized:
            return False
        # limit_tick rounds down, so a tick equal to it may still lie past the limit
        sqrt_price_next_x96 = get_sqrt_ratio_at_tick(tick_next)
        if zero_for_one:
            return sqrt_price_next_x96 >= sqrt_price_limit_x96
        return sqrt_price_next_x96 <= sqrt_price_limit_x96

    def swap(self, params: SwapParams) -> SwapResult:
        """Execute a swap against this pool's liquidity.

        Walks from one initialized tick to the next, executing one
        ``compute_swap_step`` per range, until the specified amount is
        consumed or the price limit is reached.

        Raises:
            PoolNotInitialized: If the pool has no price yet
            SwapAmountCannotBeZero: If amount_specified is zero
            PriceLimitAlreadyExceeded: Limit on the wrong side of the price
            PriceLimitOutOfBounds: Limit outside the protocol price band
            NoLiquidityToSwap: No active liquidity and none before the limit
        """
        self._require_initialized()

        zero_for_one = params.zero_for_one
        amount_specified = to_int256(params.amount_specified)
        sqrt_price_limit_x96 = params.sqrt_price_limit_x96

        if amount_specified == 0:
            raise SwapAmountCannotBeZero("Swap amount must be nonzero")

        self._check_price_limit(zero_for_one, sqrt_price_limit_x96)

        if self.liquidity == 0 and not self._has_liquidity_ahead(
            zero_for_one, sqrt_price_limit_x96
        ):
            raise NoLiquidityToSwap(
                f"No liquidity between tick {self.tick} and limit {sqrt_price_limit_x96}"
            )

        exact_input = amount_specified > 0
        protocol_fee = protocol_fee_for_direction(self.protocol_fees, zero_for_one)

        amount_specified_remaining = amount_specified
        amount_calculated = 0
        sqrt_price_x96 = self.sqrt_price_x96
        tick = self.tick
        liquidity = self.liquidity
        # Only the input currency's accumulator moves during a swap
        fee_growth_global_x128 = (
            self.fee_growth_global0_x128 if zero_for_one else self.fee_growth_global1_x128
        )
        fee_for_protocol = 0
        steps = 0

        while amount_specified_remaining != 0 and sqrt_price_x96 != sqrt_price_limit_x96:
            sqrt_price_start_x96 = sqrt_price_x96

            tick_next, initialized = self.tick_bitmap.next_initialized_tick_within_one_word(
                tick, self.tick_spacing, zero_for_one
            )
            # The bitmap is unaware of the tick bounds
            tick_next = max(MIN_TICK, min(MAX_TICK, tick_next))
            sqrt_price_next_x96 = get_sqrt_ratio_at_tick(tick_next)

            sqrt_price_x96, amount_in, amount_out, fee_amount = compute_swap_step(
                sqrt_price_x96,
                get_sqrt_price_target(zero_for_one, sqrt_price_next_x96, sqrt_price_limit_x96),
                liquidity,
                amount_specified_remaining,
                self.swap_fee,
            )

            if exact_input:
                amount_specified_remaining -= amount_in + fee_amount
                amount_calculated -= amount_out
            else:
                amount_specified_remaining += amount_out
                amount_calculated += amount_in + fee_amount

            # Protocol share is skimmed before fees reach the accumulator
            if protocol_fee > 0:
                protocol_delta = fee_amount // protocol_fee
                fee_amount -= protocol_delta
                fee_for_protocol += protocol_delta

            if liquidity > 0:
                fee_growth_global_x128 = wrap_uint256(
                    fee_growth_global_x128 + mul_div(fee_amount, Q128, liquidity)
                )

            if sqrt_price_x96 == sqrt_price_next_x96:
                if initialized:
                    liquidity_net = tick_ledger.cross(
                        self.ticks,
                        tick_next,
                        fee_growth_global_x128 if zero_for_one else self.fee_growth_global0_x128,
                        self.fee_growth_global1_x128 if zero_for_one else fee_growth_global_x128,
                    )
                    # Moving left, liquidity_net is applied in reverse
                    if zero_for_one:
                        liquidity_net = -liquidity_net
                    liquidity = add_delta(liquidity, liquidity_net)
                # Moving left, the price sits on tick_next's lower boundary
                tick = tick_next - 1 if zero_for_one else tick_next
            elif sqrt_price_x96 != sqrt_price_start_x96:
                tick = get_tick_at_sqrt_ratio(sqrt_price_x96)

            steps += 1
            logger.debug(
                "swap_step",
                step=steps,
                tick=tick,
                sqrt_price_x96=sqrt_price_x96,
                amount_in=amount_in,
                amount_out=amount_out,
                fee_amount=fee_amount,
                liquidity=liquidity,
            )

        self.sqrt_price_x96 = sqrt_price_x96
        self.tick = tick
        self.liquidity = liquidity
        if zero_for_one:
            self.fee_growth_global0_x128 = fee_growth_global_x128
        else:
            self.fee_growth_global1_x128 = fee_growth_global_x128

        # Pool-side amounts (positive = received by the pool)
        if zero_for_one == exact_input:
            pool_amount0 = amount_specified - amount_specified_remaining
            pool_amount1 = amount_calculated
        else:
            pool_amount0 = amount_calculated
            pool_amount1 = amount_specified - amount_specified_remaining

        return SwapResult(
            delta=BalanceDelta(to_int128(-pool_amount0), to_int128(-pool_amount1)),
            fee_for_protocol=fee_for_protocol,
            sqrt_price_x96=sqrt_price_x96,
            tick=tick,
            liquidity=liquidity,
        )

    # -------------------------------------------------------------------------
    # Donations
    # -------------------------------------------------------------------------

    def donate(self, amount0: int, amount1: int) -> BalanceDelta:
        """Distribute amounts to in-range liquidity through the fee accumulators.

        Raises:
            PoolNotInitialized: If the pool has no price yet
            NoLiquidityToReceiveFees: If there is no active liquidity
        """
        self._require_initialized()
        if self.liquidity == 0:
            raise NoLiquidityToReceiveFees("Pool has no active liquidity")

        if amount0 > 0:
            self.fee_growth_global0_x128 = wrap_uint256(
                self.fee_growth_global0_x128 + mul_div(amount0, Q128, self.liquidity)
            )
        if amount1 > 0:
            self.fee_growth_global1_x128 = wrap_uint256(
                self.fee_growth_global1_x128 + mul_div(amount1, Q128, self.liquidity)
            )

        return BalanceDelta(to_int128(-amount0), to_int128(-amount1))

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def get_position(self, owner: str, tick_lower: int, tick_upper: int) -> PositionInfo:
        return position_ledger.get(self.positions, owner, tick_lower, tick_upper)

    def get_tick_info(self, tick: int) -> TickInfo:
        return self.ticks.get(tick) or TickInfo()

    def get_fee_growth_inside(self, tick_lower: int, tick_upper: int) -> tuple[int, int]:
        return tick_ledger.get_fee_growth_inside(
            self.ticks,
            tick_lower,
            tick_upper,
            self.tick,
            self.fee_growth_global0_x128,
            self.fee_growth_global1_x128,
        )


__all__ = ["PoolState", "SwapResult"]
