"""Source adapter: one way of producing normalized positions."""
from typing import Protocol

from ..models import Position, PositionQuery, SourceType


class SourceAdapter(Protocol):
    """Abstract interface for fetching positions from a single data source."""

    @property
    def source_type(self) -> SourceType: ...

    async def fetch(self, query: PositionQuery) -> list[Position]: ...
