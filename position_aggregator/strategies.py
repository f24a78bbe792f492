"""Data-source fallback strategies and their resolver."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from .errors import ConfigurationError
from .models import Network, Protocol, SourceType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceConfig:
    source_type: SourceType
    priority: int  # lower is tried first
    enabled: bool = True


@dataclass(frozen=True)
class SourceStrategy:
    protocol: Protocol
    network: Network
    sources: tuple[SourceConfig, ...] = ()


DEFAULT_STRATEGIES: tuple[SourceStrategy, ...] = (
    SourceStrategy(
        protocol=Protocol.AAVE,
        network=Network.ETHEREUM,
        sources=(
            SourceConfig(SourceType.ON_CHAIN, priority=1),
            SourceConfig(SourceType.SUBGRAPH, priority=2),
        ),
    ),
)


class SourceStrategyResolver:
    """Map a protocol/network pair to the ordered sources to attempt."""

    def __init__(self, strategies: Iterable[SourceStrategy] = DEFAULT_STRATEGIES) -> None:
        self._strategies: dict[tuple[Protocol, Network], SourceStrategy] = {}
        for strategy in strategies:
            key = (strategy.protocol, strategy.network)
            if key in self._strategies:
                logger.debug(
                    "Strategy for %s/%s overridden",
                    strategy.protocol.value,
                    strategy.network.value,
                )
            self._strategies[key] = strategy

    def strategies(self) -> list[SourceStrategy]:
        return list(self._strategies.values())

    def resolve(self, protocol: Protocol, network: Network) -> list[SourceType]:
        """Enabled sources for the pair, ascending priority.

        Ties keep their configuration order.

        Raises:
            ConfigurationError: No strategy is configured for the pair.
        """
        strategy = self._strategies.get((protocol, network))
        if strategy is None:
            raise ConfigurationError(
                f"No data source strategy found for {protocol.value} on {network.value}"
            )

        enabled = [s for s in strategy.sources if s.enabled]
        return [s.source_type for s in sorted(enabled, key=lambda s: s.priority)]
