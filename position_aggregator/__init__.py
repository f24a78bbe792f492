"""Multi-source DeFi lending position aggregator."""
