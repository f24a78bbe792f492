"""Chain client protocol: read-only contract calls."""
from typing import Any, Protocol, Sequence


class ChainClient(Protocol):
    """Abstract interface for blockchain RPC reads.

    Implementations raise ``TransientSourceError`` for network-layer failures
    and ``DataFormatError`` when a result cannot be decoded.
    """

    async def call_read_only(
        self,
        contract_address: str,
        abi: Sequence[dict[str, Any]],
        function_name: str,
        args: Sequence[Any] = (),
    ) -> Any: ...
