"""Entry point for ``python -m position_aggregator.main``."""
from .cli import main

if __name__ == "__main__":
    main()
