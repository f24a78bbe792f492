"""Indexer client protocol: pre-indexed query services (subgraphs)."""
from typing import Any, Protocol


class IndexerClient(Protocol):
    """Abstract interface for GraphQL-style indexed queries.

    Same error contract as ``ChainClient``.
    """

    async def query(
        self, endpoint_url: str, document: str, variables: dict[str, Any]
    ) -> dict[str, Any]: ...
