"""Aave subgraph adapter: reads positions from the indexed query service."""
from __future__ import annotations

import logging
import time
from typing import Callable

from ...config import DeploymentConfig
from ...errors import DataFormatError
from ...interfaces.indexer import IndexerClient
from ...models import Network, Position, PositionQuery, Protocol, SourceType
from . import parser
from .queries import GET_USER_POSITIONS

logger = logging.getLogger(__name__)


class AaveSubgraphAdapter:
    """Fetch Aave positions from a subgraph; may lag the chain head.

    Collateral, debt and borrowed values are reported in ETH.
    """

    def __init__(
        self,
        indexer_client: IndexerClient,
        deployment: DeploymentConfig,
        network: Network = Network.ETHEREUM,
        protocol: Protocol = Protocol.AAVE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = indexer_client
        self._endpoint = deployment.subgraph_url
        self._network = network
        self._protocol = protocol
        self._clock = clock

    @property
    def source_type(self) -> SourceType:
        return SourceType.SUBGRAPH

    async def fetch(self, query: PositionQuery) -> list[Position]:
        user = query.user_address.lower()
        logger.info(
            "Querying %s subgraph on %s for %s", self._protocol.value, self._network.value, user
        )

        data = await self._client.query(
            self._endpoint, GET_USER_POSITIONS, {"userAddress": user}
        )
        try:
            snapshot = parser.parse_subgraph_positions(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise DataFormatError(
                f"Malformed subgraph payload: {e!r}", SourceType.SUBGRAPH
            ) from e

        if snapshot is None:
            logger.info("No %s position for %s", self._protocol.value, user)
            return []

        return [parser.to_position(snapshot, query, self.source_type, int(self._clock()))]
