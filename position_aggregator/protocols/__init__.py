"""Per-protocol source adapters."""
