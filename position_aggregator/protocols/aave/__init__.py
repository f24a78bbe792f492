"""Aave V3 adapters."""
from .onchain import AaveOnChainAdapter
from .subgraph import AaveSubgraphAdapter

__all__ = ["AaveOnChainAdapter", "AaveSubgraphAdapter"]
