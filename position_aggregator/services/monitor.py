"""Monitoring loop: iterates configured wallets x protocols."""
from __future__ import annotations

import asyncio
import logging

from ..config import AppConfig, WalletConfig
from ..errors import PositionFetchError
from ..interfaces.sink import PositionSink
from ..models import Position, PositionQuery, Protocol
from .position_service import PositionService

logger = logging.getLogger(__name__)


class Monitor:
    """Aggregates positions for every configured wallet and flags risky ones."""

    def __init__(
        self,
        config: AppConfig,
        position_service: PositionService,
        sink: PositionSink | None = None,
    ) -> None:
        self._config = config
        self._service = position_service
        self._sink = sink
        self._danger = config.monitor.danger_health_factor

    @staticmethod
    def _format_wallet(address: str) -> str:
        if len(address) > 16:
            return f"{address[:10]}...{address[-6:]}"
        return address

    async def _check_wallet(
        self, wallet: WalletConfig, protocol: Protocol
    ) -> list[Position]:
        query = PositionQuery(
            protocol=protocol,
            network=wallet.network,
            user_address=wallet.address,
        )
        positions = await self._service.get_positions(query)

        if not positions:
            logger.info(
                "%s · %s · %s: no active positions",
                wallet.label,
                protocol.value,
                wallet.network.value,
            )
            return positions

        for position in positions:
            logger.info(
                "Position %s · %s · %s  Collateral: %s  Debt: %s  HF: %s  (via %s)",
                wallet.label,
                protocol.value,
                wallet.network.value,
                position.collateral,
                position.debt,
                position.health_factor,
                position.source.value if position.source else "unknown",
            )
            if position.is_at_risk(self._danger):
                logger.warning(
                    "Health factor %s at or below %s for %s (%s) on %s",
                    position.health_factor,
                    self._danger,
                    wallet.label,
                    self._format_wallet(wallet.address),
                    protocol.value,
                )
        return positions

    async def check_positions(self) -> list[Position]:
        """Fetch every wallet x protocol pair once; failures are per pair."""
        collected: list[Position] = []

        for wallet in self._config.wallets:
            for protocol in wallet.protocols:
                try:
                    collected.extend(await self._check_wallet(wallet, protocol))
                except PositionFetchError as e:
                    logger.error(
                        "Failed to fetch %s positions for %s: %s",
                        protocol.value,
                        wallet.label,
                        e,
                    )

        if self._sink is not None and collected:
            try:
                await self._sink.store(collected)
            except Exception as e:
                logger.error("Position sink store failed: %s", e)

        return collected

    async def run_continuous(self, check_interval_minutes: int | None = None) -> None:
        """Run continuous monitoring loop."""
        interval = check_interval_minutes or self._config.monitor.check_interval_minutes
        logger.info(
            "Starting continuous monitoring (checking every %d minutes)", interval
        )

        while True:
            try:
                await self.check_positions()
                await asyncio.sleep(interval * 60)
            except Exception as e:
                logger.error("Error in monitoring loop: %s", e)
                await asyncio.sleep(60)
