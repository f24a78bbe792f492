"""Protocol interfaces for the lending position aggregator."""
from .chain import ChainClient
from .indexer import IndexerClient
from .sink import PositionSink
from .source_adapter import SourceAdapter

__all__ = ["ChainClient", "IndexerClient", "PositionSink", "SourceAdapter"]
