"""Fallback-aware position fetching across prioritized data sources."""
from __future__ import annotations

import asyncio
import logging
from typing import Mapping

from ..cache import ResultCache, make_cache_key
from ..errors import (
    AllSourcesFailedError,
    ConfigurationError,
    DataFormatError,
    FetchCancelledError,
    SourceError,
    ValidationError,
)
from ..interfaces.source_adapter import SourceAdapter
from ..models import Network, Position, PositionQuery, Protocol, SourceType
from ..retry import RetryExecutor
from ..strategies import SourceStrategyResolver

logger = logging.getLogger(__name__)

FETCH_METHOD = "fetchUserPositions"

AdapterKey = tuple[Protocol, Network, SourceType]

_NON_RETRYABLE = (DataFormatError, ValidationError, ConfigurationError)


def _should_retry(error: BaseException) -> bool:
    return not isinstance(error, _NON_RETRYABLE)


def positions_cache_key(query: PositionQuery) -> str:
    return make_cache_key(query.protocol, query.network, query.user_address, FETCH_METHOD)


def _coerce(enum_type, value, normalize):
    if isinstance(value, str) and not isinstance(value, enum_type):
        value = normalize(value)
    return enum_type(value)


def validate_query(query: PositionQuery) -> PositionQuery:
    """Coerce identifiers to their enums and lower-case the address.

    Raises:
        ValidationError: Missing address or unknown protocol/network.
    """
    address = (query.user_address or "").strip()
    if not address:
        raise ValidationError("User address is required for fetching positions")

    try:
        protocol = _coerce(Protocol, query.protocol, str.upper)
    except ValueError:
        raise ValidationError(f"Unknown protocol: {query.protocol!r}") from None
    try:
        network = _coerce(Network, query.network, str.lower)
    except ValueError:
        raise ValidationError(f"Unknown network: {query.network!r}") from None

    if (
        query.from_timestamp is not None
        and query.to_timestamp is not None
        and query.from_timestamp > query.to_timestamp
    ):
        raise ValidationError("from_timestamp must not be after to_timestamp")

    return PositionQuery(
        protocol=protocol,
        network=network,
        user_address=address.lower(),
        from_timestamp=query.from_timestamp,
        to_timestamp=query.to_timestamp,
        filters=query.filters,
    )


class FetchOrchestrator:
    """Try each enabled source in priority order until one succeeds.

    This is the cache-miss path: results are written through to the cache,
    but the cache is never consulted here.
    """

    def __init__(
        self,
        resolver: SourceStrategyResolver,
        adapters: Mapping[AdapterKey, SourceAdapter],
        cache: ResultCache,
        retry: RetryExecutor | None = None,
        default_timeout: float | None = None,
    ) -> None:
        self._resolver = resolver
        self._adapters = dict(adapters)
        self._cache = cache
        self._retry = retry or RetryExecutor()
        self._default_timeout = default_timeout

    async def fetch_user_positions(
        self, query: PositionQuery, timeout: float | None = None
    ) -> list[Position]:
        """Fetch positions, falling back across sources.

        Args:
            query: Target protocol, network, address and optional time window.
            timeout: Seconds before the whole fetch is abandoned. Defaults to
                the orchestrator's configured timeout; ``None`` means no limit.

        Raises:
            ValidationError: Bad input; no source is attempted.
            ConfigurationError: No strategy or adapter for the pair.
            AllSourcesFailedError: Every enabled source failed.
            FetchCancelledError: The deadline expired mid-flight.
        """
        query = validate_query(query)
        sources = self._resolver.resolve(query.protocol, query.network)
        if not sources:
            raise ConfigurationError(
                f"Every data source is disabled for {query.protocol.value} "
                f"on {query.network.value}"
            )

        timeout = self._default_timeout if timeout is None else timeout
        if timeout is None:
            return await self._fetch_in_order(query, sources, deadline=None)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        try:
            async with asyncio.timeout_at(deadline):
                return await self._fetch_in_order(query, sources, deadline=deadline)
        except TimeoutError:
            if loop.time() >= deadline:
                raise FetchCancelledError(
                    f"Fetching {query.protocol.value} positions for {query.user_address} "
                    f"exceeded {timeout:.1f}s"
                ) from None
            raise

    async def _fetch_in_order(
        self,
        query: PositionQuery,
        sources: list[SourceType],
        deadline: float | None,
    ) -> list[Position]:
        causes: list[tuple[SourceType, BaseException]] = []

        for source_type in sources:
            adapter = self._adapters.get((query.protocol, query.network, source_type))
            if adapter is None:
                raise ConfigurationError(
                    f"No {source_type.value} adapter registered for "
                    f"{query.protocol.value} on {query.network.value}"
                )

            try:
                positions = await self._retry.execute(
                    lambda: adapter.fetch(query),
                    should_retry=_should_retry,
                    deadline=deadline,
                )
            except SourceError as e:
                logger.warning(
                    "Source %s failed for %s/%s %s: %s",
                    source_type.value,
                    query.protocol.value,
                    query.network.value,
                    query.user_address,
                    e,
                )
                causes.append((source_type, e))
                continue

            logger.info(
                "Fetched %d position(s) for %s from %s",
                len(positions),
                query.user_address,
                source_type.value,
            )
            self._write_through(query, positions)
            return positions

        raise AllSourcesFailedError(causes)

    def _write_through(self, query: PositionQuery, positions: list[Position]) -> None:
        key = positions_cache_key(query)
        try:
            self._cache.set(key, positions)
        except Exception as e:
            logger.warning("Cache write failed for %s: %s", key, e)
