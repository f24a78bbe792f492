"""Read-through access to positions: cache first, orchestrator on a miss."""
from __future__ import annotations

import logging

from ..cache import ResultCache
from ..models import Position, PositionQuery
from .orchestrator import FetchOrchestrator, positions_cache_key, validate_query

logger = logging.getLogger(__name__)


class PositionService:
    """Entry point for callers that are happy with recently cached data."""

    def __init__(self, orchestrator: FetchOrchestrator, cache: ResultCache) -> None:
        self._orchestrator = orchestrator
        self._cache = cache

    async def get_positions(
        self,
        query: PositionQuery,
        use_cache: bool = True,
        timeout: float | None = None,
    ) -> list[Position]:
        """Return cached positions when fresh, otherwise fetch them."""
        query = validate_query(query)

        if use_cache:
            cached = self._cache.get(positions_cache_key(query))
            if cached.present:
                logger.debug("Cache hit for %s", query.user_address)
                return list(cached.data)

        return await self._orchestrator.fetch_user_positions(query, timeout=timeout)

    def invalidate(self, query: PositionQuery) -> None:
        self._cache.invalidate(positions_cache_key(validate_query(query)))
