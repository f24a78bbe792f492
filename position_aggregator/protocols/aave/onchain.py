"""Aave on-chain adapter: reads positions straight from the Pool contracts."""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from typing import Any, Callable

from ...config import DeploymentConfig
from ...errors import DataFormatError, SourceError
from ...interfaces.chain import ChainClient
from ...models import BorrowedAsset, Network, Position, PositionQuery, Protocol, SourceType
from . import parser
from .abi import ERC20_ABI, ORACLE_ABI, POOL_ABI, POOL_DATA_PROVIDER_ABI

logger = logging.getLogger(__name__)


class AaveOnChainAdapter:
    """Fetch Aave positions through read-only contract calls.

    ``getUserAccountData`` must succeed. Per-reserve detail is best effort:
    a reserve whose lookups fail is left out of ``borrowed_assets``.
    """

    def __init__(
        self,
        chain_client: ChainClient,
        deployment: DeploymentConfig,
        network: Network = Network.ETHEREUM,
        protocol: Protocol = Protocol.AAVE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = chain_client
        self._network = network
        self._protocol = protocol
        self._clock = clock
        self._pool = deployment.contracts.get("pool", "")
        self._data_provider = deployment.contracts.get("pool_data_provider", "")
        self._oracle = deployment.contracts.get("oracle", "")
        self._base_decimals = deployment.base_currency_decimals
        self._token_cache: dict[str, tuple[str, int]] = {}

    @property
    def source_type(self) -> SourceType:
        return SourceType.ON_CHAIN

    async def fetch(self, query: PositionQuery) -> list[Position]:
        user = query.user_address
        logger.info(
            "Reading %s positions on %s for %s", self._protocol.value, self._network.value, user
        )

        account = await self._client.call_read_only(
            self._pool, POOL_ABI, "getUserAccountData", [user]
        )
        try:
            snapshot = parser.parse_account_data(account, self._base_decimals)
        except (TypeError, ValueError) as e:
            raise DataFormatError(
                f"Malformed getUserAccountData result: {e}", SourceType.ON_CHAIN
            ) from e

        if snapshot is None:
            logger.info("No %s position for %s", self._protocol.value, user)
            return []

        if snapshot.debt != "0":
            borrowed = await self._fetch_borrowed_assets(user)
            snapshot = dataclasses.replace(snapshot, borrowed_assets=borrowed)

        return [parser.to_position(snapshot, query, self.source_type, int(self._clock()))]

    async def _fetch_borrowed_assets(self, user: str) -> tuple[BorrowedAsset, ...]:
        try:
            reserves = await self._client.call_read_only(
                self._pool, POOL_ABI, "getReservesList", []
            )
        except SourceError as e:
            logger.warning("Could not list reserves, omitting borrowed assets: %s", e)
            return ()

        results = await asyncio.gather(
            *(self._fetch_reserve_debt(asset, user) for asset in reserves)
        )
        return tuple(asset for asset in results if asset is not None)

    async def _fetch_reserve_debt(self, asset: str, user: str) -> BorrowedAsset | None:
        try:
            reserve_data = await self._client.call_read_only(
                self._data_provider, POOL_DATA_PROVIDER_ABI, "getUserReserveData", [asset, user]
            )
            debt_raw = parser.reserve_debt(reserve_data)
            if debt_raw == 0:
                return None

            symbol, decimals = await self._token_info(asset)
            price_raw = parser.to_int(
                await self._client.call_read_only(
                    self._oracle, ORACLE_ABI, "getAssetPrice", [asset]
                )
            )
        except SourceError as e:
            logger.warning("Skipping reserve %s: %s", asset, e)
            return None
        except (IndexError, TypeError, ValueError) as e:
            logger.warning("Skipping reserve %s: malformed data: %s", asset, e)
            return None

        return parser.build_borrowed_asset(
            symbol, debt_raw, decimals, price_raw, self._base_decimals
        )

    async def _token_info(self, asset: str) -> tuple[str, int]:
        """ERC-20 symbol and decimals (with caching)."""
        if asset in self._token_cache:
            return self._token_cache[asset]

        symbol: Any = await self._client.call_read_only(asset, ERC20_ABI, "symbol", [])
        decimals = parser.to_int(
            await self._client.call_read_only(asset, ERC20_ABI, "decimals", [])
        )
        info = (str(symbol), decimals)
        self._token_cache[asset] = info
        return info
