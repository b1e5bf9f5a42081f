"""Error classes for the pool engine.

Every failure maps to one class; the class name doubles as the stable
condition code exposed through ``ClammError.code``.
"""


class ClammError(Exception):
    """Base error for engine operations."""

    @property
    def code(self) -> str:
        """Stable condition identifier (the class name)."""
        return type(self).__name__


# =============================================================================
# Arithmetic
# =============================================================================


class MathError(ClammError, ArithmeticError):
    """Base class for fixed-width arithmetic failures."""

    pass


class MathOverflow(MathError):
    """Result does not fit in 256 bits."""

    pass


class DivisionByZero(MathError):
    """Division or modulo by zero."""

    pass


class SafeCastOverflow(MathError):
    """Value does not fit the target integer width."""

    pass


class LiquidityOverflow(MathError):
    """Adding a liquidity delta overflowed uint128."""

    pass


class LiquidityUnderflow(MathError):
    """Subtracting a liquidity delta went below zero."""

    pass


class InvalidPriceOrLiquidity(MathError):
    """Price movement requested with zero price or zero liquidity."""

    pass


class NotEnoughLiquidity(MathError):
    """Requested output exceeds what the liquidity can provide."""

    pass


class PriceOverflow(MathError):
    """Price movement would push the sqrt price below zero."""

    pass


# =============================================================================
# Malformed input: rejected before any state mutation
# =============================================================================


class MalformedInputError(ClammError):
    """Base class for invalid arguments or pool keys."""

    pass


class CurrenciesOutOfOrder(MalformedInputError):
    """currency0 must sort strictly below currency1."""

    pass


class FeeTooLarge(MalformedInputError):
    """Fee (static LP fee or protocol fee) exceeds its allowed range."""

    pass


class TickSpacingTooLarge(MalformedInputError):
    """Tick spacing above MAX_TICK_SPACING."""

    pass


class TickSpacingTooSmall(MalformedInputError):
    """Tick spacing below MIN_TICK_SPACING."""

    pass


class HookAddressNotValid(MalformedInputError):
    """Hook address flags are inconsistent with the fee or declared permissions."""

    pass


class TickOutOfRange(MalformedInputError):
    """Tick outside [MIN_TICK, MAX_TICK]."""

    pass


class PriceOutOfRange(MalformedInputError):
    """Sqrt price outside [MIN_SQRT_RATIO, MAX_SQRT_RATIO)."""

    pass


class TicksMisordered(MalformedInputError):
    """tick_lower must be strictly below tick_upper."""

    pass


class TickLowerOutOfBounds(MalformedInputError):
    """tick_lower below MIN_TICK."""

    pass


class TickUpperOutOfBounds(MalformedInputError):
    """tick_upper above MAX_TICK."""

    pass


class TickMisaligned(MalformedInputError):
    """Tick is not a multiple of the pool's tick spacing."""

    pass


class PriceLimitOutOfBounds(MalformedInputError):
    """Swap price limit outside the protocol price band."""

    pass


class SwapAmountCannotBeZero(MalformedInputError):
    """Swaps must specify a nonzero amount."""

    pass


# =============================================================================
# Precondition: valid input, wrong state
# =============================================================================


class PreconditionError(ClammError):
    """Base class for operations invalid in the current engine state."""

    pass


class PoolNotInitialized(PreconditionError):
    """No pool exists for the given key."""

    pass


class PoolAlreadyInitialized(PreconditionError):
    """Pool was already initialized; initialization is one-shot."""

    pass


class NoLiquidityToReceiveFees(PreconditionError):
    """Donations need active liquidity to distribute over."""

    pass


class NoLiquidityToSwap(PreconditionError):
    """No active liquidity and no initialized tick before the price limit."""

    pass


class PriceLimitAlreadyExceeded(PreconditionError):
    """Price limit lies on the wrong side of the current price."""

    pass


class InsufficientLiquidity(PreconditionError):
    """Removing more liquidity than the position holds."""

    pass


class CannotUpdateEmptyPosition(PreconditionError):
    """Zero-delta poke on a position that holds no liquidity."""

    pass


class TickLiquidityOverflow(PreconditionError):
    """Gross liquidity at a tick would exceed the per-tick maximum."""

    pass


class FeeNotDynamic(PreconditionError):
    """Dynamic fee refresh on a pool with a static fee."""

    pass


class NoActiveSession(PreconditionError):
    """Pool operation attempted outside a session."""

    pass


class SessionAlreadyActive(PreconditionError):
    """A session is already open; sessions do not nest."""

    pass


class Unauthorized(PreconditionError):
    """Caller lacks permission for an administrative operation."""

    pass


class InsufficientReserves(PreconditionError):
    """Withdrawal exceeds the engine's reserves of that currency."""

    pass


class HookNotRegistered(PreconditionError):
    """Hook address declares callbacks but no implementation is registered."""

    pass


# =============================================================================
# Hook contract violation
# =============================================================================


class HookError(ClammError):
    """Base class for hook contract violations."""

    pass


class InvalidHookResponse(HookError):
    """Declared hook returned something other than its selector."""

    pass


# =============================================================================
# Settlement violation
# =============================================================================


class SettlementError(ClammError):
    """Base class for session settlement failures."""

    pass


class CurrencyNotSettled(SettlementError):
    """Session ended with a nonzero currency delta."""

    pass
