"""Indexed query service clients."""
from .subgraph import SubgraphClient

__all__ = ["SubgraphClient"]
