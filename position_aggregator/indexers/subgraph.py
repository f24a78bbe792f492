"""Subgraph (GraphQL) query client."""
from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ..errors import DataFormatError, SourceError, TransientSourceError, is_rate_limit_error
from ..models import SourceType

logger = logging.getLogger(__name__)


class SubgraphClient:
    """POST GraphQL documents to indexed query endpoints."""

    def __init__(self, timeout: int = 30) -> None:
        self.timeout = timeout

    async def query(
        self, endpoint_url: str, document: str, variables: dict[str, Any]
    ) -> dict[str, Any]:
        """Run a query and return its ``data`` object.

        Raises:
            TransientSourceError: Network failure, timeout, HTTP 429 or 5xx.
            DataFormatError: Any other non-200 status, a body that is not JSON,
                GraphQL ``errors``, or a missing ``data`` object.
        """
        if not endpoint_url:
            raise DataFormatError("No subgraph endpoint configured", SourceType.SUBGRAPH)

        payload = {"query": document, "variables": variables}

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.post(
                    endpoint_url,
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status == 429 or response.status >= 500:
                        raise TransientSourceError(
                            f"Subgraph returned HTTP {response.status}",
                            SourceType.SUBGRAPH,
                        )
                    if response.status != 200:
                        raise DataFormatError(
                            f"Subgraph rejected query: HTTP {response.status}",
                            SourceType.SUBGRAPH,
                        )
                    try:
                        body = await response.json(content_type=None)
                    except ValueError as e:
                        raise DataFormatError(
                            f"Subgraph response is not JSON: {e}", SourceType.SUBGRAPH
                        ) from e
        except SourceError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise TransientSourceError(
                f"Subgraph request failed: {e}", SourceType.SUBGRAPH
            ) from e

        if not isinstance(body, dict):
            raise DataFormatError("Subgraph response is not an object", SourceType.SUBGRAPH)

        errors = body.get("errors")
        if errors:
            message = "; ".join(
                str(err.get("message", err)) if isinstance(err, dict) else str(err)
                for err in errors
            )
            if is_rate_limit_error(Exception(message)):
                raise TransientSourceError(
                    f"Subgraph rate limited: {message}", SourceType.SUBGRAPH
                )
            raise DataFormatError(f"Subgraph query errors: {message}", SourceType.SUBGRAPH)

        data = body.get("data")
        if not isinstance(data, dict):
            raise DataFormatError("Subgraph response has no data", SourceType.SUBGRAPH)

        logger.debug("Subgraph query to %s returned keys %s", endpoint_url, sorted(data))
        return data
