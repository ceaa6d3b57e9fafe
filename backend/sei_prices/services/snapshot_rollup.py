"""
Snapshot Rollup

Periodic job that writes one price snapshot per tracked token. The price
comes from the latest raw observation for "<SYMBOL>/USD"; tokens without
one get a random placeholder tagged "mock" so every token keeps a
contiguous series.
"""

import asyncio
import logging
import random
from datetime import datetime
from typing import Optional, Tuple

from sei_prices.constants import (
    DEFAULT_QUOTE_CURRENCY,
    MOCK_PRICE_CEILING,
    SOURCE_MOCK,
    SOURCE_PYTH,
)

logger = logging.getLogger(__name__)


def feed_key_for_symbol(symbol: str, quote: str = DEFAULT_QUOTE_CURRENCY) -> str:
    """Best-effort mapping; several tokens may share a symbol and thus a feed"""
    return f"{symbol}/{quote}"


def mock_price() -> float:
    return random.random() * MOCK_PRICE_CEILING


class SnapshotRollupService:
    """Writes the per-token price snapshots every interval."""

    def __init__(self, store, interval_seconds: float = 5 * 60):
        self.store = store
        self.interval_seconds = interval_seconds
        self._task = None
        self._running = False
        self._last_run: Optional[datetime] = None

    async def start(self):
        if self._running:
            logger.warning("Snapshot rollup already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._rollup_loop())
        logger.info("Price services scheduled successfully")

    async def stop(self):
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Snapshot rollup stopped")

    async def _rollup_loop(self):
        # Initial update runs immediately
        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Failed to update spot prices: {e}", exc_info=True)

            await asyncio.sleep(self.interval_seconds)

    async def resolve_price(self, symbol: str) -> Tuple[float, str]:
        """Return (price, source) for one token symbol"""
        observation = await self.store.latest_for_feed(feed_key_for_symbol(symbol))

        if observation is None:
            price = mock_price()
            logger.info(f"Using mock price for {symbol}: {price}")
            return price, SOURCE_MOCK

        # Rows from before the source column existed carry no tag
        source = observation.source or SOURCE_PYTH
        price = float(observation.real_price)
        logger.info(f"Found {source} price for {symbol}: {price}")
        return price, source

    async def run_once(self) -> int:
        """Write exactly one snapshot per token; returns the number written"""
        logger.info("Updating spot prices...")
        written = 0

        for token in await self.store.list_tokens():
            # Faults are contained to the token being processed
            try:
                price, source = await self.resolve_price(token.symbol)
                snapshot = await self.store.insert_snapshot(token.id, price, source)
            except Exception as e:
                logger.error(f"Failed to update price for {token.symbol}: {e}", exc_info=True)
                continue

            if snapshot is not None:
                written += 1

        self._last_run = datetime.utcnow()
        logger.info(f"Spot prices updated successfully ({written} tokens)")
        return written

    @property
    def status(self) -> dict:
        return {
            "running": self._running,
            "last_run": self._last_run.isoformat() if self._last_run else None,
            "interval_seconds": self.interval_seconds,
        }
