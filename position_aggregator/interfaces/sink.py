"""Position sink protocol: persistence collaborator."""
from typing import Protocol, Sequence

from ..models import Position


class PositionSink(Protocol):
    async def store(self, positions: Sequence[Position]) -> None: ...
