"""Command-line interface for the lending position aggregator."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from .config import AppConfig, load_config
from .errors import PositionFetchError
from .logging_setup import configure_logging
from .models import Network, PositionQuery, Protocol
from .services import Monitor, build_position_service

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="position-aggregator",
        description="Multi-source DeFi lending position aggregator",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    positions_parser = sub.add_parser("positions", help="Fetch positions for one address")
    positions_parser.add_argument("address", help="User wallet address")
    positions_parser.add_argument(
        "--protocol",
        default=Protocol.AAVE.value,
        type=str.upper,
        choices=[p.value for p in Protocol],
        help="Lending protocol (default: AAVE)",
    )
    positions_parser.add_argument(
        "--network",
        default=Network.ETHEREUM.value,
        type=str.lower,
        choices=[n.value for n in Network],
        help="Network (default: ethereum)",
    )
    positions_parser.add_argument(
        "--from", dest="from_timestamp", type=int, default=None,
        help="Start of the requested period (unix seconds)",
    )
    positions_parser.add_argument(
        "--to", dest="to_timestamp", type=int, default=None,
        help="End of the requested period (unix seconds)",
    )
    positions_parser.add_argument(
        "--no-cache", action="store_true",
        help="Bypass cached results and fetch from the sources",
    )

    sub.add_parser("check", help="Single check of every configured wallet")

    monitor_parser = sub.add_parser("monitor", help="Continuous monitoring loop")
    monitor_parser.add_argument(
        "interval",
        nargs="?",
        type=int,
        default=None,
        help="Check interval in minutes (overrides config)",
    )

    return parser


async def _print_positions(config: AppConfig, args: argparse.Namespace) -> None:
    service = build_position_service(config)
    query = PositionQuery(
        protocol=Protocol(args.protocol),
        network=Network(args.network),
        user_address=args.address,
        from_timestamp=args.from_timestamp,
        to_timestamp=args.to_timestamp,
    )
    positions = await service.get_positions(query, use_cache=not args.no_cache)
    print(json.dumps([p.to_dict() for p in positions], indent=2))


async def _run(args: argparse.Namespace) -> None:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)

    if args.command == "positions":
        await _print_positions(config, args)
        return

    monitor = Monitor(config, build_position_service(config))
    if args.command == "check":
        await monitor.check_positions()
    elif args.command == "monitor":
        await monitor.run_continuous(args.interval)
    else:
        build_parser().print_help()
        sys.exit(1)


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        asyncio.run(_run(args))
    except PositionFetchError as e:
        logger.error("%s", e)
        sys.exit(1)
