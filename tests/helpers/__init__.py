"""Test helpers module for shared test utilities.

This module consolidates common test utilities to reduce duplication:
- constants: Currency and account addresses, reference prices
- factories: Pool keys, managers and settled-session operations
"""

from tests.helpers.constants import (
    ALICE,
    BOB,
    DAI,
    FEE_COLLECTOR,
    ONE,
    OWNER,
    SQRT_PRICE_1_1,
    SQRT_PRICE_1_2,
    SQRT_PRICE_2_1,
    USDC,
    WETH,
)
from tests.helpers.factories import (
    add_liquidity,
    donate,
    hook_address,
    make_key,
    make_manager,
    remove_liquidity,
    settle_delta,
    swap,
)

__all__ = [
    # Constants
    "DAI",
    "USDC",
    "WETH",
    "OWNER",
    "ALICE",
    "BOB",
    "FEE_COLLECTOR",
    "ONE",
    "SQRT_PRICE_1_1",
    "SQRT_PRICE_1_2",
    "SQRT_PRICE_2_1",
    # Factories
    "make_key",
    "make_manager",
    "hook_address",
    "settle_delta",
    "add_liquidity",
    "remove_liquidity",
    "swap",
    "donate",
]
