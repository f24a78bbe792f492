"""Startup wiring: build clients, adapters and services from configuration.

Everything is constructed once here and passed down explicitly.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

from ..cache import ResultCache
from ..chains.evm import EvmClient
from ..config import AppConfig, DeploymentConfig
from ..errors import ConfigurationError
from ..indexers import SubgraphClient
from ..interfaces.chain import ChainClient
from ..interfaces.indexer import IndexerClient
from ..interfaces.source_adapter import SourceAdapter
from ..models import Network, Protocol, SourceType
from ..protocols.aave import AaveOnChainAdapter, AaveSubgraphAdapter
from ..retry import RetryExecutor, RetryPolicy
from ..strategies import SourceStrategyResolver
from .orchestrator import AdapterKey, FetchOrchestrator
from .position_service import PositionService

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[ChainClient, IndexerClient, DeploymentConfig, Network], Any]

# Registry of adapter factories keyed by protocol and source type.
_ADAPTER_FACTORIES: dict[tuple[Protocol, SourceType], AdapterFactory] = {
    (Protocol.AAVE, SourceType.ON_CHAIN): lambda chain, _indexer, cfg, net: AaveOnChainAdapter(
        chain, cfg, network=net
    ),
    (Protocol.AAVE, SourceType.SUBGRAPH): lambda _chain, indexer, cfg, net: AaveSubgraphAdapter(
        indexer, cfg, network=net
    ),
}


def build_adapters(
    config: AppConfig,
    chain_clients: dict[Network, ChainClient] | None = None,
    indexer_client: IndexerClient | None = None,
) -> dict[AdapterKey, SourceAdapter]:
    """Build one adapter per configured (protocol, network, source type)."""
    if chain_clients is None:
        chain_clients = {
            name: EvmClient(net_cfg, network=name) for name, net_cfg in config.networks.items()
        }
    if indexer_client is None:
        indexer_client = SubgraphClient()

    adapters: dict[AdapterKey, SourceAdapter] = {}
    for protocol, deployments in config.protocols.items():
        for network, deployment in deployments.items():
            chain_client = chain_clients.get(network)
            for (factory_protocol, source_type), factory in _ADAPTER_FACTORIES.items():
                if factory_protocol is not protocol:
                    continue
                if source_type is SourceType.ON_CHAIN and chain_client is None:
                    logger.warning(
                        "No RPC configured for %s; %s on-chain source unavailable",
                        network.value,
                        protocol.value,
                    )
                    continue
                if source_type is SourceType.SUBGRAPH and not deployment.subgraph_url:
                    continue
                adapters[(protocol, network, source_type)] = factory(
                    chain_client, indexer_client, deployment, network
                )
    return adapters


def _check_strategies(
    config: AppConfig,
    resolver: SourceStrategyResolver,
    adapters: dict[AdapterKey, SourceAdapter],
) -> None:
    """Every enabled source of a deployed protocol/network pair needs an adapter."""
    for strategy in resolver.strategies():
        if strategy.network not in config.protocols.get(strategy.protocol, {}):
            continue
        for source in strategy.sources:
            key = (strategy.protocol, strategy.network, source.source_type)
            if source.enabled and key not in adapters:
                raise ConfigurationError(
                    f"Strategy for {strategy.protocol.value} on {strategy.network.value} "
                    f"enables {source.source_type.value}, but no adapter is configured"
                )


def build_orchestrator(
    config: AppConfig,
    adapters: dict[AdapterKey, SourceAdapter] | None = None,
    cache: ResultCache | None = None,
) -> FetchOrchestrator:
    resolver = SourceStrategyResolver(config.data_sources)
    if adapters is None:
        adapters = build_adapters(config)
    _check_strategies(config, resolver, adapters)
    if cache is None:
        cache = ResultCache(default_ttl=config.cache.ttl_seconds)

    retry = RetryExecutor(
        RetryPolicy(
            max_attempts=config.retry.max_attempts,
            initial_delay=config.retry.initial_delay,
            backoff_factor=config.retry.backoff_factor,
        )
    )
    return FetchOrchestrator(
        resolver=resolver,
        adapters=adapters,
        cache=cache,
        retry=retry,
        default_timeout=config.fetch.timeout_seconds,
    )


def build_position_service(
    config: AppConfig,
    adapters: dict[AdapterKey, SourceAdapter] | None = None,
) -> PositionService:
    cache = ResultCache(default_ttl=config.cache.ttl_seconds)
    orchestrator = build_orchestrator(config, adapters=adapters, cache=cache)
    return PositionService(orchestrator, cache)
