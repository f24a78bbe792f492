"""Data models: all frozen (immutable)."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping


class Protocol(str, Enum):
    """Lending protocols the aggregator knows about."""

    AAVE = "AAVE"
    SILO = "SILO"
    ORBIT = "ORBIT"
    IRONCLAD = "IRONCLAD"
    LENDLE = "LENDLE"


class Network(str, Enum):
    """Chains a protocol can be deployed on."""

    ETHEREUM = "ethereum"
    ARBITRUM = "arbitrum"
    BASE = "base"
    OPTIMISM = "optimism"


class SourceType(str, Enum):
    """Alternative ways of fetching the same position data."""

    ON_CHAIN = "on_chain"
    SUBGRAPH = "subgraph"


HEALTH_FACTOR_UNAVAILABLE = "N/A"


@dataclass(frozen=True)
class BorrowedAsset:
    """Single borrowed reserve within a position."""

    symbol: str
    amount: str
    value_in_base_currency: str


@dataclass(frozen=True)
class LiquidationRisk:
    threshold: str
    current_ltv: str


@dataclass(frozen=True)
class Position:
    """Snapshot of a user's exposure to one protocol at one instant.

    ``collateral`` and ``debt`` are ``None`` when the source could not resolve
    account data, which is distinct from a zero balance.
    """

    protocol: Protocol
    network: Network
    user_address: str
    collateral: str | None
    debt: str | None
    health_factor: str = HEALTH_FACTOR_UNAVAILABLE
    timestamp: int = 0
    liquidation_risk: LiquidationRisk | None = None
    borrowed_assets: tuple[BorrowedAsset, ...] = ()
    period_start: int | None = None
    period_end: int | None = None
    source: SourceType | None = None

    def is_at_risk(self, danger_threshold: float | str | Decimal) -> bool:
        """True when the health factor is at or below ``danger_threshold``."""
        try:
            value = Decimal(self.health_factor)
        except InvalidOperation:
            return False
        return value <= Decimal(str(danger_threshold))

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["protocol"] = self.protocol.value
        data["network"] = self.network.value
        data["source"] = self.source.value if self.source else None
        data["borrowed_assets"] = [asdict(a) for a in self.borrowed_assets]
        return data


@dataclass(frozen=True)
class PositionQuery:
    """Parameters of one position fetch."""

    protocol: Protocol
    network: Network
    user_address: str
    from_timestamp: int | None = None
    to_timestamp: int | None = None
    filters: Mapping[str, Any] = field(default_factory=dict)
