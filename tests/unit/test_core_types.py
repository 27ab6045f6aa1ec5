"""
test_core_types.py - Unit tests for core data structures

Tests:
- Move: creation, validation, immutability
- Unit: rounding, truncation, precision checks
- to_amount: coercion and malformed amounts
- PoolConfig: validation of construction parameters
"""

import pytest
from dataclasses import replace, FrozenInstanceError
from datetime import datetime
from decimal import Decimal

from lendpool import (
    Move, Transaction, TransactionOrigin, OriginType, token, to_amount,
    PoolConfig, InvalidAmount, UNIT_TYPE_TOKEN, POOL_WALLET,
)


def _config(**overrides) -> PoolConfig:
    params = dict(
        owner="treasury",
        base_asset="USDC",
        collateral_asset="WETH",
        collateral_ratio=8000,
        fee_recipient="treasury",
    )
    params.update(overrides)
    return PoolConfig(**params)


class TestMoveCreation:
    """Tests for Move creation and validation."""

    def test_create_valid_move(self):
        move = Move(Decimal("100"), "USDC", "alice", "bob", "tx_001")
        assert move.source == "alice"
        assert move.dest == "bob"
        assert move.quantity == Decimal("100")
        assert move.spender is None
        assert not move.is_pull

    def test_pull_move(self):
        move = Move(Decimal("1"), "USDC", "alice", "pool", "deposit", spender="pool")
        assert move.is_pull

    def test_rejects_float_quantity(self):
        with pytest.raises(ValueError, match="must be Decimal"):
            Move(100.0, "USDC", "alice", "bob", "tx")

    def test_rejects_zero_quantity(self):
        with pytest.raises(ValueError, match="positive"):
            Move(Decimal("0"), "USDC", "alice", "bob", "tx")

    def test_rejects_negative_quantity(self):
        with pytest.raises(ValueError, match="positive"):
            Move(Decimal("-1"), "USDC", "alice", "bob", "tx")

    def test_rejects_nan(self):
        with pytest.raises(ValueError, match="finite"):
            Move(Decimal("NaN"), "USDC", "alice", "bob", "tx")

    def test_rejects_self_transfer(self):
        with pytest.raises(ValueError, match="different"):
            Move(Decimal("1"), "USDC", "alice", "alice", "tx")

    @pytest.mark.parametrize("field_name", ["unit_symbol", "source", "dest", "contract_id"])
    def test_rejects_empty_fields(self, field_name):
        params = dict(quantity=Decimal("1"), unit_symbol="USDC", source="alice", dest="bob", contract_id="tx")
        params[field_name] = "  "
        with pytest.raises(ValueError, match="cannot be empty"):
            Move(**params)

    def test_immutable(self):
        move = Move(Decimal("1"), "USDC", "alice", "bob", "tx")
        with pytest.raises(FrozenInstanceError):
            move.quantity = Decimal("2")

    def test_repr(self):
        assert repr(Move(Decimal("5"), "USDC", "alice", "bob", "tx")) == "Move(5 USDC: alice→bob)"


class TestTransaction:

    def test_requires_moves(self):
        with pytest.raises(ValueError, match="must have moves"):
            Transaction(
                moves=(),
                origin=TransactionOrigin(OriginType.SYSTEM, "test"),
                timestamp=datetime(2025, 1, 1),
                exec_id="exec:1",
                ledger_name="test",
                execution_time=datetime(2025, 1, 1),
                sequence_number=0,
            )

    def test_origin_repr(self):
        origin = TransactionOrigin(OriginType.POOL, "lending_pool", "DEPOSIT", "alice")
        assert repr(origin) == "Origin(pool:lending_pool, event=DEPOSIT, account=alice)"


class TestUnitRounding:

    def test_token_defaults(self):
        unit = token("USDC", "USD Coin")
        assert unit.unit_type == UNIT_TYPE_TOKEN
        assert unit.decimal_places == 0
        assert unit.min_balance == Decimal("0")

    def test_round_down_whole_units(self):
        unit = token("USDC", "USD Coin")
        assert unit.round_down(Decimal("0.96")) == Decimal("0")
        assert unit.round_down(Decimal("64.99")) == Decimal("64")

    def test_round_down_cents(self):
        unit = token("USDC", "USD Coin", decimal_places=2)
        assert unit.round_down(Decimal("0.969")) == Decimal("0.96")

    def test_unrestricted_precision(self):
        unit = token("USDC", "USD Coin", decimal_places=None)
        assert unit.round_down(Decimal("0.123456789")) == Decimal("0.123456789")
        assert unit.is_representable(Decimal("0.123456789"))

    def test_is_representable(self):
        unit = token("USDC", "USD Coin", decimal_places=2)
        assert unit.is_representable(Decimal("1.25"))
        assert not unit.is_representable(Decimal("1.255"))


class TestToAmount:
    """Malformed amounts fail with InvalidAmount."""

    unit = token("USDC", "USD Coin", decimal_places=2)

    @pytest.mark.parametrize("value,expected", [
        (5, Decimal("5")),
        ("2.5", Decimal("2.5")),
        (Decimal("0.01"), Decimal("0.01")),
        (1.25, Decimal("1.25")),
    ])
    def test_accepts(self, value, expected):
        assert to_amount(value, self.unit) == expected

    @pytest.mark.parametrize("value", [
        0, -1, Decimal("0"), "abc", None, True, Decimal("NaN"), Decimal("Infinity"),
        Decimal("0.001"), [1],
    ])
    def test_rejects(self, value):
        with pytest.raises(InvalidAmount):
            to_amount(value, self.unit)


class TestPoolConfig:

    def test_valid(self):
        config = _config()
        assert config.collateral_ratio == 8000
        assert config.pool_wallet == POOL_WALLET
        assert config.protocol_fee_bps == 0

    @pytest.mark.parametrize("ratio", [5000, 7500, 9500])
    def test_ratio_bounds_inclusive(self, ratio):
        assert _config(collateral_ratio=ratio).collateral_ratio == ratio

    @pytest.mark.parametrize("ratio", [4999, 9501, 0, 10000])
    def test_ratio_out_of_range(self, ratio):
        with pytest.raises(ValueError, match="collateral_ratio must be between"):
            _config(collateral_ratio=ratio)

    def test_ratio_must_be_int(self):
        with pytest.raises(ValueError, match="must be an integer"):
            _config(collateral_ratio=8000.0)

    def test_fee_bounds(self):
        with pytest.raises(ValueError, match="protocol_fee_bps"):
            _config(protocol_fee_bps=10001)

    def test_assets_must_differ(self):
        with pytest.raises(ValueError, match="must be different"):
            _config(collateral_asset="USDC")

    def test_empty_owner(self):
        with pytest.raises(ValueError, match="owner cannot be empty"):
            _config(owner="")

    def test_pool_wallet_must_be_dedicated(self):
        with pytest.raises(ValueError, match="dedicated"):
            _config(pool_wallet="treasury")

    def test_replace_revalidates(self):
        with pytest.raises(ValueError, match="fee_recipient cannot be empty"):
            replace(_config(), fee_recipient="")

    def test_immutable(self):
        with pytest.raises(FrozenInstanceError):
            _config().collateral_ratio = 9000
