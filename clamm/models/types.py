"""Shared type definitions for engine models.

Addresses are handled as lowercase 0x-prefixed hex strings throughout the
engine; the pydantic annotated types below validate them at the API and
pool-key boundary.
"""

from typing import Annotated, Any

from pydantic import BeforeValidator, Field

from clamm.constants import MAX_INT256, MAX_UINT256, MIN_INT256


def validate_uint256(value: Any) -> str:
    """Validate that a value is a valid uint256, returned as a decimal string.

    Raises:
        ValueError: If value is not a non-negative integer within uint256 range
    """
    int_value = _parse_int(value, "Uint256")
    if int_value < 0:
        raise ValueError(f"Uint256 cannot be negative: {value}")
    if int_value > MAX_UINT256:
        raise ValueError(f"Uint256 overflow: {value} > 2^256-1")
    return str(int_value)


def validate_int256(value: Any) -> str:
    """Validate that a value is a valid int256, returned as a decimal string.

    Raises:
        ValueError: If value is not an integer within int256 range
    """
    int_value = _parse_int(value, "Int256")
    if not MIN_INT256 <= int_value <= MAX_INT256:
        raise ValueError(f"Int256 out of range: {value}")
    return str(int_value)


def _parse_int(value: Any, type_name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{type_name} must be string or int, got bool")
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        raise ValueError(f"{type_name} must be string or int, got {type(value).__name__}")
    try:
        return int(value)
    except ValueError as err:
        raise ValueError(f"{type_name} must be a decimal integer string: '{value}'") from err


# Ethereum address (40 hex chars after 0x prefix)
Address = Annotated[str, Field(pattern=r"^0x[a-fA-F0-9]{40}$")]

# 256-bit unsigned integer as decimal string (validated)
Uint256 = Annotated[
    str,
    BeforeValidator(validate_uint256),
    Field(description="256-bit unsigned integer as decimal string"),
]

# 256-bit signed integer as decimal string (validated)
Int256 = Annotated[
    str,
    BeforeValidator(validate_int256),
    Field(description="256-bit signed integer as decimal string"),
]


def normalize_address(address: str, *, validate: bool = False) -> str:
    """Normalize an Ethereum address to lowercase with 0x prefix.

    Raises:
        ValueError: If validate=True and address is not a valid address
    """
    addr = address.lower()
    if not addr.startswith("0x"):
        addr = "0x" + addr

    if validate and not is_valid_address(addr):
        raise ValueError(f"Invalid address: {address}")

    return addr


def is_valid_address(address: str) -> bool:
    """Check if a string is a valid Ethereum address."""
    if not isinstance(address, str):
        return False
    if not address.startswith("0x"):
        return False
    if len(address) != 42:
        return False
    try:
        int(address, 16)
        return True
    except ValueError:
        return False


def address_to_int(address: str) -> int:
    """Interpret an address as a 160-bit unsigned integer (for ordering and flags)."""
    return int(normalize_address(address), 16)


def address_to_bytes(address: str) -> bytes:
    """Convert an address to its 20 raw bytes."""
    return bytes.fromhex(normalize_address(address)[2:])
