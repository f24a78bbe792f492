"""Configuration loader: reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .models import Network, Protocol, SourceType
from .strategies import DEFAULT_STRATEGIES, SourceConfig, SourceStrategy

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MonitorConfig:
    check_interval_minutes: int = 15
    danger_health_factor: float = 1.1


@dataclass(frozen=True)
class WalletConfig:
    label: str = ""
    address: str = ""
    network: Network = Network.ETHEREUM
    protocols: tuple[Protocol, ...] = ()


@dataclass(frozen=True)
class NetworkConfig:
    rpc_endpoints: tuple[str, ...] = ()
    rpc_timeout: int = 30
    max_concurrent_calls: int = 8


@dataclass(frozen=True)
class DeploymentConfig:
    """Contract addresses and indexer endpoint of one protocol on one network."""

    contracts: dict[str, str] = field(default_factory=dict)
    subgraph_url: str = ""
    base_currency_decimals: int = 8


@dataclass(frozen=True)
class CacheConfig:
    ttl_seconds: float = 300.0


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff_factor: float = 2.0


@dataclass(frozen=True)
class FetchConfig:
    timeout_seconds: float | None = 60.0


@dataclass(frozen=True)
class AppConfig:
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    wallets: tuple[WalletConfig, ...] = ()
    networks: dict[Network, NetworkConfig] = field(default_factory=dict)
    protocols: dict[Protocol, dict[Network, DeploymentConfig]] = field(default_factory=dict)
    data_sources: tuple[SourceStrategy, ...] = DEFAULT_STRATEGIES
    cache: CacheConfig = field(default_factory=CacheConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _parse_protocol(name: Any) -> Protocol:
    try:
        return Protocol(str(name).upper())
    except ValueError:
        raise ValueError(f"Unknown protocol '{name}'") from None


def _parse_network(name: Any) -> Network:
    try:
        return Network(str(name).lower())
    except ValueError:
        raise ValueError(f"Unknown network '{name}'") from None


def _parse_source_type(name: Any) -> SourceType:
    try:
        return SourceType(str(name).lower())
    except ValueError:
        raise ValueError(f"Unknown data source type '{name}'") from None


def _build_monitor(raw: dict[str, Any]) -> MonitorConfig:
    return MonitorConfig(
        check_interval_minutes=int(raw.get("check_interval_minutes", 15)),
        danger_health_factor=float(raw.get("danger_health_factor", 1.1)),
    )


def _build_wallets(raw: list[dict[str, Any]]) -> tuple[WalletConfig, ...]:
    wallets: list[WalletConfig] = []
    for w in raw:
        wallets.append(
            WalletConfig(
                label=w.get("label", ""),
                address=w.get("address", ""),
                network=_parse_network(w.get("network", Network.ETHEREUM.value)),
                protocols=tuple(_parse_protocol(p) for p in w.get("protocols", [])),
            )
        )
    return tuple(wallets)


def _build_networks(raw: dict[str, Any]) -> dict[Network, NetworkConfig]:
    networks: dict[Network, NetworkConfig] = {}
    for name, cfg in raw.items():
        networks[_parse_network(name)] = NetworkConfig(
            rpc_endpoints=tuple(e for e in cfg.get("rpc_endpoints", []) if e),
            rpc_timeout=int(cfg.get("rpc_timeout", 30)),
            max_concurrent_calls=int(cfg.get("max_concurrent_calls", 8)),
        )
    return networks


def _build_protocols(
    raw: dict[str, Any],
) -> dict[Protocol, dict[Network, DeploymentConfig]]:
    protocols: dict[Protocol, dict[Network, DeploymentConfig]] = {}
    for proto_name, deployments in raw.items():
        protocol = _parse_protocol(proto_name)
        protocols[protocol] = {}
        for network_name, cfg in (deployments or {}).items():
            protocols[protocol][_parse_network(network_name)] = DeploymentConfig(
                contracts=dict(cfg.get("contracts", {})),
                subgraph_url=cfg.get("subgraph_url", ""),
                base_currency_decimals=int(cfg.get("base_currency_decimals", 8)),
            )
    return protocols


def _parse_enabled(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Data source 'enabled' must be true or false, got {value!r}")
    return value


def _build_data_sources(raw: list[dict[str, Any]] | None) -> tuple[SourceStrategy, ...]:
    """Configured strategies layered over the defaults, one per protocol/network pair."""
    merged = {(s.protocol, s.network): s for s in DEFAULT_STRATEGIES}
    for entry in raw or []:
        strategy = SourceStrategy(
            protocol=_parse_protocol(entry.get("protocol", "")),
            network=_parse_network(entry.get("network", "")),
            sources=tuple(
                SourceConfig(
                    source_type=_parse_source_type(s.get("type", "")),
                    priority=int(s.get("priority", 0)),
                    enabled=_parse_enabled(s.get("enabled", True)),
                )
                for s in entry.get("sources", [])
            ),
        )
        merged[(strategy.protocol, strategy.network)] = strategy
    return tuple(merged.values())


def _build_cache(raw: dict[str, Any]) -> CacheConfig:
    return CacheConfig(ttl_seconds=float(raw.get("ttl_seconds", 300.0)))


def _build_retry(raw: dict[str, Any]) -> RetryConfig:
    return RetryConfig(
        max_attempts=int(raw.get("max_attempts", 3)),
        initial_delay=float(raw.get("initial_delay", 1.0)),
        backoff_factor=float(raw.get("backoff_factor", 2.0)),
    )


def _build_fetch(raw: dict[str, Any]) -> FetchConfig:
    timeout = raw.get("timeout_seconds", 60.0)
    return FetchConfig(timeout_seconds=float(timeout) if timeout is not None else None)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        monitor=_build_monitor(raw.get("monitor", {})),
        wallets=_build_wallets(raw.get("wallets", [])),
        networks=_build_networks(raw.get("networks", {})),
        protocols=_build_protocols(raw.get("protocols", {})),
        data_sources=_build_data_sources(raw.get("data_sources")),
        cache=_build_cache(raw.get("cache", {})),
        retry=_build_retry(raw.get("retry", {})),
        fetch=_build_fetch(raw.get("fetch", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    for wallet in cfg.wallets:
        if not wallet.address:
            raise ValueError(f"Wallet '{wallet.label}' has no address")
        if wallet.network not in cfg.networks:
            raise ValueError(
                f"Wallet '{wallet.label}' references unknown network '{wallet.network.value}'"
            )
        for protocol in wallet.protocols:
            if wallet.network not in cfg.protocols.get(protocol, {}):
                raise ValueError(
                    f"Wallet '{wallet.label}' references protocol '{protocol.value}' "
                    f"not configured on '{wallet.network.value}'"
                )

    for name, network in cfg.networks.items():
        if not network.rpc_endpoints:
            raise ValueError(f"Network '{name.value}' has no RPC endpoints")

    if cfg.cache.ttl_seconds <= 0:
        raise ValueError("cache.ttl_seconds must be positive")
    if cfg.retry.max_attempts < 1:
        raise ValueError("retry.max_attempts must be at least 1")
    if cfg.retry.initial_delay < 0:
        raise ValueError("retry.initial_delay must not be negative")
    if cfg.retry.backoff_factor < 1:
        raise ValueError("retry.backoff_factor must be at least 1")
