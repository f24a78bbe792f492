"""EVM RPC client with fallback support."""
from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any, Sequence

import aiohttp
import certifi
from eth_abi.exceptions import DecodingError
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3 import exceptions as web3_exceptions

from ...config import NetworkConfig
from ...errors import DataFormatError, TransientSourceError, is_rate_limit_error
from ...models import Network, SourceType

logger = logging.getLogger(__name__)

# The node answered, but the answer is unusable; another endpoint will not help.
_DECODE_ERRORS = (
    DecodingError,
    web3_exceptions.BadFunctionCallOutput,
    web3_exceptions.ContractLogicError,
    web3_exceptions.MismatchedABI,
    web3_exceptions.Web3ValidationError,
)


class EvmClient:
    """Read-only EVM contract caller with automatic endpoint fallback."""

    def __init__(self, config: NetworkConfig, network: Network = Network.ETHEREUM) -> None:
        self.network = network
        self.endpoints = list(config.rpc_endpoints)
        self.timeout = config.rpc_timeout
        self.current_rpc_index = 0
        self._semaphore = asyncio.Semaphore(max(1, config.max_concurrent_calls))
        self._web3: dict[str, AsyncWeb3] = {}

    @staticmethod
    def _normalize_args(args: Sequence[Any]) -> list[Any]:
        """Checksum address arguments; web3 rejects lower-cased addresses."""
        normalized: list[Any] = []
        for arg in args:
            if isinstance(arg, str) and AsyncWeb3.is_address(arg):
                arg = AsyncWeb3.to_checksum_address(arg)
            normalized.append(arg)
        return normalized

    def _get_web3(self, rpc_url: str) -> AsyncWeb3:
        w3 = self._web3.get(rpc_url)
        if w3 is None:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            provider = AsyncHTTPProvider(
                rpc_url,
                request_kwargs={
                    "timeout": aiohttp.ClientTimeout(total=self.timeout),
                    "ssl": ssl_context,
                },
                exception_retry_configuration=None,
            )
            w3 = AsyncWeb3(provider)
            self._web3[rpc_url] = w3
        return w3

    async def call_read_only(
        self,
        contract_address: str,
        abi: Sequence[dict[str, Any]],
        function_name: str,
        args: Sequence[Any] = (),
    ) -> Any:
        """Call a view function, trying each configured endpoint in turn.

        Raises:
            DataFormatError: The call reverted or its result could not be decoded.
            TransientSourceError: Every endpoint failed at the network layer.
        """
        if not self.endpoints:
            raise TransientSourceError(
                f"No RPC endpoints configured for {self.network.value}",
                SourceType.ON_CHAIN,
            )

        try:
            address = AsyncWeb3.to_checksum_address(contract_address)
        except ValueError as e:
            raise DataFormatError(
                f"Invalid contract address {contract_address!r}", SourceType.ON_CHAIN
            ) from e

        call_args = self._normalize_args(args)

        async with self._semaphore:
            last_error: Exception | None = None
            for attempt in range(len(self.endpoints)):
                rpc_index = (self.current_rpc_index + attempt) % len(self.endpoints)
                rpc_url = self.endpoints[rpc_index]

                try:
                    contract = self._get_web3(rpc_url).eth.contract(address=address, abi=abi)
                    result = await contract.functions[function_name](*call_args).call()
                except _DECODE_ERRORS as e:
                    raise DataFormatError(
                        f"{function_name}() on {contract_address} failed: {e}",
                        SourceType.ON_CHAIN,
                    ) from e
                except Exception as e:
                    last_error = e
                    if is_rate_limit_error(e):
                        logger.warning("RPC endpoint %s rate limited: %s", rpc_url, e)
                    else:
                        logger.warning("RPC endpoint %s failed: %s", rpc_url, e)
                    if attempt < len(self.endpoints) - 1:
                        logger.info("Trying next endpoint...")
                    continue

                if rpc_index != self.current_rpc_index:
                    logger.info("Switched to RPC endpoint: %s", rpc_url)
                    self.current_rpc_index = rpc_index
                return result

        raise TransientSourceError(
            f"All RPC endpoints failed for {function_name}(). Last error: {last_error}",
            SourceType.ON_CHAIN,
        ) from last_error
