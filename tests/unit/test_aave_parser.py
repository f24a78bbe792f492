"""Unit tests for Aave parsing functions (pure, no I/O)."""
from __future__ import annotations

import pytest

from position_aggregator.models import (
    BorrowedAsset,
    Network,
    PositionQuery,
    Protocol,
    SourceType,
)
from position_aggregator.protocols.aave.parser import (
    MAX_UINT256,
    AccountSnapshot,
    build_borrowed_asset,
    compute_ltv,
    format_health_factor,
    parse_account_data,
    parse_subgraph_positions,
    parse_subgraph_reserve,
    reserve_debt,
    scale_units,
    to_int,
    to_position,
)


# ---------------------------------------------------------------------------
# Scaling helpers
# ---------------------------------------------------------------------------


class TestScaleUnits:
    def test_six_decimals(self) -> None:
        assert scale_units(1_500_000, 6) == "1.5"

    def test_wad_one(self) -> None:
        assert scale_units(10**18, 18) == "1"

    def test_integer_result_has_no_exponent(self) -> None:
        assert scale_units(100 * 10**8, 8) == "100"

    def test_zero(self) -> None:
        assert scale_units(0, 18) == "0"

    def test_tiny_amount(self) -> None:
        assert scale_units(1, 18) == "0.000000000000000001"

    def test_keeps_full_precision(self) -> None:
        assert scale_units(123456789012345678901234567890, 18) == "123456789012.34567890123456789"

    def test_negative_decimals_rejected(self) -> None:
        with pytest.raises(ValueError):
            scale_units(1, -1)


class TestToInt:
    def test_int_and_string(self) -> None:
        assert to_int(42) == 42
        assert to_int(" 1000 ") == 1000

    def test_rejects_bool(self) -> None:
        with pytest.raises(TypeError):
            to_int(True)

    def test_rejects_float(self) -> None:
        with pytest.raises(TypeError):
            to_int(1.5)

    def test_rejects_non_numeric_string(self) -> None:
        with pytest.raises(ValueError):
            to_int("0x10")


class TestHealthFactor:
    def test_wad_value(self) -> None:
        assert format_health_factor(165 * 10**16) == "1.65"

    def test_max_uint_is_unavailable(self) -> None:
        assert format_health_factor(MAX_UINT256) == "N/A"


class TestComputeLtv:
    def test_half(self) -> None:
        assert compute_ltv(2000, 1000) == "0.5"

    def test_no_debt(self) -> None:
        assert compute_ltv(2000, 0) == "0"

    def test_debt_without_collateral(self) -> None:
        assert compute_ltv(0, 10) == "N/A"

    def test_rounded_to_eight_places(self) -> None:
        assert compute_ltv(3, 1) == "0.33333333"


class TestBuildBorrowedAsset:
    def test_usdc_valued_in_base_currency(self) -> None:
        asset = build_borrowed_asset("USDC", 5000 * 10**6, 6, 10**8, 8)
        assert asset == BorrowedAsset(
            symbol="USDC", amount="5000", value_in_base_currency="5000"
        )

    def test_weth_price(self) -> None:
        asset = build_borrowed_asset("WETH", 5 * 10**17, 18, 2000 * 10**8, 8)
        assert asset.amount == "0.5"
        assert asset.value_in_base_currency == "1000"


# ---------------------------------------------------------------------------
# On-chain payloads
# ---------------------------------------------------------------------------


class TestParseAccountData:
    def test_active_position(self, sample_account_data: list[int]) -> None:
        snapshot = parse_account_data(sample_account_data, 8)
        assert snapshot is not None
        assert snapshot.collateral == "10000"
        assert snapshot.debt == "5000"
        assert snapshot.health_factor == "1.65"
        assert snapshot.liquidation_risk is not None
        assert snapshot.liquidation_risk.threshold == "0.825"
        assert snapshot.liquidation_risk.current_ltv == "0.5"
        assert snapshot.borrowed_assets == ()

    def test_no_position_returns_none(self) -> None:
        assert parse_account_data([0, 0, 0, 0, 0, MAX_UINT256], 8) is None

    def test_collateral_only(self) -> None:
        snapshot = parse_account_data([10**8, 0, 10**8, 8000, 7500, MAX_UINT256], 8)
        assert snapshot is not None
        assert snapshot.debt == "0"
        assert snapshot.health_factor == "N/A"
        assert snapshot.liquidation_risk.current_ltv == "0"

    def test_string_fields(self) -> None:
        snapshot = parse_account_data(["100000000", "0", "0", "8000", "7500", "0"], 8)
        assert snapshot is not None
        assert snapshot.collateral == "1"

    def test_wrong_field_count(self) -> None:
        with pytest.raises(ValueError, match="expected 6"):
            parse_account_data([1, 2, 3], 8)


class TestReserveDebt:
    def test_stable_plus_variable(self) -> None:
        data = [10**6, 2 * 10**6, 3 * 10**6, 0, 0, 0, 0, 0, False]
        assert reserve_debt(data) == 5 * 10**6


# ---------------------------------------------------------------------------
# Subgraph payloads
# ---------------------------------------------------------------------------


class TestParseSubgraph:
    def test_full_response(self, sample_subgraph_data: dict) -> None:
        snapshot = parse_subgraph_positions(sample_subgraph_data)
        assert snapshot is not None
        assert snapshot.collateral == "5"
        assert snapshot.debt == "2.5"
        assert snapshot.health_factor == "1.65"
        assert snapshot.liquidation_risk is None
        assert snapshot.borrowed_assets == (
            BorrowedAsset(symbol="USDC", amount="5000", value_in_base_currency="2.5"),
        )

    def test_one_ether_of_collateral(self) -> None:
        data = {
            "userReserves": [],
            "user": {
                "totalCollateralETH": str(10**18),
                "totalDebtETH": str(5 * 10**17),
                "healthFactor": str(2 * 10**18),
            },
        }
        snapshot = parse_subgraph_positions(data)
        assert snapshot is not None
        assert (snapshot.collateral, snapshot.debt) == ("1", "0.5")
        assert snapshot.health_factor == "2"

    def test_reserve_without_debt_is_skipped(self) -> None:
        entry = {
            "currentStableDebt": "0",
            "currentVariableDebt": "0",
            "reserve": {"symbol": "DAI", "decimals": 18},
        }
        assert parse_subgraph_reserve(entry) is None

    def test_missing_user_keeps_borrowed_assets(self, sample_subgraph_data: dict) -> None:
        data = dict(sample_subgraph_data, user=None)
        snapshot = parse_subgraph_positions(data)
        assert snapshot is not None
        assert snapshot.collateral is None
        assert snapshot.debt is None
        assert snapshot.health_factor == "N/A"
        assert [a.symbol for a in snapshot.borrowed_assets] == ["USDC"]

    def test_empty_account_returns_none(self) -> None:
        assert parse_subgraph_positions({"userReserves": [], "user": None}) is None

    def test_zero_totals_return_none(self) -> None:
        data = {
            "userReserves": [],
            "user": {"healthFactor": "0", "totalCollateralETH": "0", "totalDebtETH": "0"},
        }
        assert parse_subgraph_positions(data) is None

    def test_missing_reserve_field_raises(self) -> None:
        data = {"userReserves": [{"currentVariableDebt": "5"}], "user": None}
        with pytest.raises(KeyError):
            parse_subgraph_positions(data)

    def test_reserves_not_a_list_raises(self) -> None:
        with pytest.raises(TypeError):
            parse_subgraph_positions({"userReserves": {"a": 1}, "user": None})


class TestToPosition:
    def test_carries_query_window_and_source(self) -> None:
        query = PositionQuery(
            protocol=Protocol.AAVE,
            network=Network.ETHEREUM,
            user_address="0xABC",
            from_timestamp=10,
            to_timestamp=20,
        )
        snapshot = AccountSnapshot(collateral="1", debt="0", health_factor="N/A")
        position = to_position(snapshot, query, SourceType.SUBGRAPH, 1700000000)

        assert position.user_address == "0xabc"
        assert position.period_start == 10
        assert position.period_end == 20
        assert position.timestamp == 1700000000
        assert position.source is SourceType.SUBGRAPH
