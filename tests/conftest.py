"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from position_aggregator.cache import ResultCache
from position_aggregator.config import (
    AppConfig,
    DeploymentConfig,
    MonitorConfig,
    NetworkConfig,
    WalletConfig,
)
from position_aggregator.models import (
    BorrowedAsset,
    LiquidationRisk,
    Network,
    Position,
    PositionQuery,
    Protocol,
    SourceType,
)

USER = "0x1111111111111111111111111111111111111111"
POOL = "0x87870Bca3F3fD6335C3F4ce8392D69350B4fA4E2"
DATA_PROVIDER = "0x7B4EB56E7CD4b454BA8ff71E4518426369a138a3"
ORACLE = "0x54586bE62E3c3580375aE3723C145253060Ca0C2"


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_network_config() -> NetworkConfig:
    return NetworkConfig(
        rpc_endpoints=("https://rpc1.example.com", "https://rpc2.example.com"),
        rpc_timeout=10,
    )


@pytest.fixture()
def sample_deployment() -> DeploymentConfig:
    return DeploymentConfig(
        contracts={"pool": POOL, "pool_data_provider": DATA_PROVIDER, "oracle": ORACLE},
        subgraph_url="https://subgraph.example.com/aave",
        base_currency_decimals=8,
    )


@pytest.fixture()
def sample_app_config(
    sample_network_config: NetworkConfig,
    sample_deployment: DeploymentConfig,
) -> AppConfig:
    return AppConfig(
        monitor=MonitorConfig(check_interval_minutes=5, danger_health_factor=1.1),
        wallets=(
            WalletConfig(
                label="test-wallet",
                address=USER,
                network=Network.ETHEREUM,
                protocols=(Protocol.AAVE,),
            ),
        ),
        networks={Network.ETHEREUM: sample_network_config},
        protocols={Protocol.AAVE: {Network.ETHEREUM: sample_deployment}},
    )


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_query() -> PositionQuery:
    return PositionQuery(
        protocol=Protocol.AAVE,
        network=Network.ETHEREUM,
        user_address=USER,
    )


@pytest.fixture()
def sample_position() -> Position:
    return Position(
        protocol=Protocol.AAVE,
        network=Network.ETHEREUM,
        user_address=USER,
        collateral="10000",
        debt="5000",
        health_factor="1.65",
        timestamp=1700000000,
        liquidation_risk=LiquidationRisk(threshold="0.825", current_ltv="0.5"),
        borrowed_assets=(
            BorrowedAsset(symbol="USDC", amount="5000", value_in_base_currency="5000"),
        ),
        source=SourceType.ON_CHAIN,
    )


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(fake_clock: FakeClock) -> ResultCache:
    return ResultCache(default_ttl=300, clock=fake_clock)


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    monitor:
      check_interval_minutes: 5
      danger_health_factor: 1.2
    wallets:
      - label: test-wallet
        network: ethereum
        address: "0xTEST"
        protocols: [AAVE]
    networks:
      ethereum:
        rpc_endpoints: ["https://rpc.example.com", ""]
        rpc_timeout: 10
    protocols:
      AAVE:
        ethereum:
          contracts:
            pool: "0xpool"
            pool_data_provider: "0xprovider"
            oracle: "0xoracle"
          subgraph_url: "https://subgraph.example.com"
          base_currency_decimals: 8
    data_sources:
      - protocol: aave
        network: ethereum
        sources:
          - {type: subgraph, priority: 1}
          - {type: on_chain, priority: 2, enabled: false}
    cache:
      ttl_seconds: 60
    retry:
      max_attempts: 2
      initial_delay: 0.5
      backoff_factor: 3
    fetch:
      timeout_seconds: 15
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


# ---------------------------------------------------------------------------
# Sample on-chain / subgraph data
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_account_data() -> list[int]:
    """getUserAccountData: $10,000 collateral, $5,000 debt, HF 1.65."""
    return [
        10_000 * 10**8,  # totalCollateralBase
        5_000 * 10**8,  # totalDebtBase
        2_500 * 10**8,  # availableBorrowsBase
        8250,  # currentLiquidationThreshold (bps)
        8000,  # ltv (bps)
        165 * 10**16,  # healthFactor (wad)
    ]


@pytest.fixture()
def sample_subgraph_data() -> dict:
    """Subgraph amounts in wei: 5 ETH collateral, 2.5 ETH debt (5,000 USDC at ETH=$2,000)."""
    return {
        "userReserves": [
            {
                "currentATokenBalance": str(5 * 10**18),
                "currentStableDebt": "0",
                "currentVariableDebt": "0",
                "reserve": {
                    "symbol": "WETH",
                    "decimals": 18,
                    "price": {"priceInEth": str(10**18)},
                },
            },
            {
                "currentATokenBalance": "0",
                "currentStableDebt": "0",
                "currentVariableDebt": str(5000 * 10**6),
                "reserve": {
                    "symbol": "USDC",
                    "decimals": 6,
                    "price": {"priceInEth": str(5 * 10**14)},
                },
            },
        ],
        "user": {
            "healthFactor": str(165 * 10**16),
            "totalCollateralETH": str(5 * 10**18),
            "totalDebtETH": str(25 * 10**17),
        },
    }
