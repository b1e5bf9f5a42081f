"""Protocol constants for the concentrated liquidity engine.

These values are fixed by the protocol and must match bit-for-bit.
"""

# Tick bounds: log base sqrt(1.0001) of 2**128
MIN_TICK = -887272
MAX_TICK = -MIN_TICK

# Sqrt price bounds (Q64.96), equal to get_sqrt_ratio_at_tick(MIN_TICK / MAX_TICK)
MIN_SQRT_RATIO = 4295128739
MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342

# Fixed-point scale factors
Q96 = 2**96
Q128 = 2**128
RESOLUTION = 96

# Integer widths
MAX_UINT24 = 2**24 - 1
MAX_UINT128 = 2**128 - 1
MAX_UINT160 = 2**160 - 1
MAX_UINT256 = 2**256 - 1
MAX_INT128 = 2**127 - 1
MIN_INT128 = -(2**127)
MAX_INT256 = 2**255 - 1
MIN_INT256 = -(2**255)

# Tick spacing bounds (int16 range, positive only)
MIN_TICK_SPACING = 1
MAX_TICK_SPACING = 32767

# Fees are expressed in pips: hundredths of a basis point
# Fee = pips / 1,000,000 (e.g., 3000 = 0.3%)
FEE_DENOMINATOR = 1_000_000

# Top bit of the 24-bit fee field marks a pool whose swap fee is supplied by its hook
DYNAMIC_FEE_FLAG = 0x800000
STATIC_FEE_MASK = 0x0FFFFF

# Protocol fee: two 12-bit denominators packed in 24 bits
# Low 12 bits apply to zero-for-one swaps (currency0 in), high 12 bits to one-for-zero
PROTOCOL_FEE_BITS = 12
PROTOCOL_FEE_MASK = (1 << PROTOCOL_FEE_BITS) - 1
MIN_PROTOCOL_FEE_DENOMINATOR = 4

# Native currency is represented by the zero address
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
NATIVE_CURRENCY = ZERO_ADDRESS

# Common fee tiers and their conventional tick spacing
FEE_LOWEST = 100  # 0.01%
FEE_LOW = 500  # 0.05%
FEE_MEDIUM = 3000  # 0.30%
FEE_HIGH = 10000  # 1.00%

TICK_SPACINGS = {
    FEE_LOWEST: 1,
    FEE_LOW: 10,
    FEE_MEDIUM: 60,
    FEE_HIGH: 200,
}
