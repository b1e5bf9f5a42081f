"""Tests for PoolKey validation and pool id derivation."""

import pytest
from eth_abi import encode  # type: ignore[attr-defined]
from eth_utils import keccak
from pydantic import ValidationError

from clamm.constants import DYNAMIC_FEE_FLAG, ZERO_ADDRESS
from clamm.models import PoolKey
from clamm.models.pool_key import pool_id_from_hex, pool_id_to_hex
from tests.helpers import DAI, USDC, WETH, make_key


class TestPoolId:
    def test_matches_abi_encoded_keccak(self) -> None:
        key = make_key()
        expected = keccak(
            encode(
                ["address", "address", "uint24", "int24", "address"],
                [DAI, USDC, 3000, 60, ZERO_ADDRESS],
            )
        )
        assert key.to_id() == expected
        assert len(key.to_id()) == 32

    def test_negative_tick_spacing_encodes(self) -> None:
        """int24 encoding accepts negative values (rejected later by the manager)."""
        assert len(make_key(tick_spacing=-1).to_id()) == 32

    def test_every_field_changes_the_id(self) -> None:
        base = make_key().to_id()
        assert make_key(fee=500).to_id() != base
        assert make_key(tick_spacing=10).to_id() != base
        assert make_key(currency1=WETH).to_id() != base
        assert make_key(hooks="0x" + "00" * 19 + "01").to_id() != base

    def test_case_insensitive_addresses(self) -> None:
        upper = make_key(currency0=DAI.upper().replace("0X", "0x"))
        assert upper.currency0 == DAI
        assert upper.to_id() == make_key().to_id()

    def test_hex_round_trip(self) -> None:
        key = make_key()
        as_hex = key.to_id_hex()
        assert as_hex.startswith("0x")
        assert len(as_hex) == 66
        assert pool_id_from_hex(as_hex) == key.to_id()
        assert pool_id_to_hex(key.to_id()) == as_hex

    def test_from_hex_rejects_wrong_length(self) -> None:
        with pytest.raises(ValueError, match="32 bytes"):
            pool_id_from_hex("0x1234")


class TestPoolKeyFields:
    def test_camel_case_alias(self) -> None:
        key = PoolKey.model_validate(
            {"currency0": DAI, "currency1": USDC, "fee": 500, "tickSpacing": 10}
        )
        assert key.tick_spacing == 10
        assert key.hooks == ZERO_ADDRESS

    def test_frozen(self) -> None:
        key = make_key()
        with pytest.raises(ValidationError):
            key.fee = 500  # type: ignore[misc]

    def test_hashable(self) -> None:
        assert len({make_key(), make_key()}) == 1

    def test_invalid_address(self) -> None:
        with pytest.raises(ValidationError):
            make_key(currency0="0x1234")

    def test_fee_wider_than_uint24(self) -> None:
        with pytest.raises(ValidationError):
            make_key(fee=1 << 24)

    def test_dynamic_fee_flag(self) -> None:
        key = make_key(fee=DYNAMIC_FEE_FLAG)
        assert key.is_dynamic_fee
        assert key.static_fee == 0
        assert not make_key().is_dynamic_fee
        assert make_key().static_fee == 3000

    def test_currency_ordering(self) -> None:
        assert make_key().currencies_ordered
        assert not make_key(currency0=USDC, currency1=DAI).currencies_ordered
        assert not make_key(currency0=DAI, currency1=DAI).currencies_ordered
