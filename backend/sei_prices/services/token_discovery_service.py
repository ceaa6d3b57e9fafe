"""
Token Discovery

Turns unprocessed rows of the new_tokens_raw queue into tracked tokens.
Metadata is a placeholder until on-chain lookups are wired in.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_DECIMALS = 18


def placeholder_metadata(contract_address: str) -> dict:
    return {
        "name": f"Token {contract_address[:8]}",
        "symbol": f"TKN{contract_address[:4]}",
        "decimals": DEFAULT_DECIMALS,
        "logo": None,
    }


class TokenDiscoveryService:
    """Periodically promotes discovered contract addresses to tokens."""

    def __init__(self, store, interval_seconds: float = 2 * 60 * 60):
        self.store = store
        self.interval_seconds = interval_seconds
        self._task = None
        self._running = False
        self._last_run: Optional[datetime] = None

    async def start(self):
        if self._running:
            logger.warning("Token discovery already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._discovery_loop())
        logger.info("Token discovery service scheduled successfully")

    async def stop(self):
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Token discovery service stopped")

    async def _discovery_loop(self):
        while self._running:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Failed to discover new tokens: {e}", exc_info=True)

    async def run_once(self) -> int:
        """Process the queue once; returns the number of tokens added"""
        logger.info("Discovering new tokens...")
        added = 0

        for new_token in await self.store.list_unprocessed_new_tokens():
            address = new_token.contract_address
            logger.info(f"Processing new token: {address}")

            if not await self.store.token_exists(address):
                await self.store.insert_token(contract_address=address, **placeholder_metadata(address))
                added += 1
                logger.info(f"Added new token: {address}")

            await self.store.mark_new_token_processed(new_token.id)

        self._last_run = datetime.utcnow()
        logger.info(f"Token discovery completed successfully ({added} added)")
        return added
