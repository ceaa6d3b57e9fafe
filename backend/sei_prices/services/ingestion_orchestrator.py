"""
Ingestion Orchestrator

Chooses between the streaming source and the REST polling chain and keeps
ingestion running for the process lifetime.

States:
- SELECTING: probing whether substreams is installed and configured
- STREAMING: the substreams process is running
- POLLING_PRIMARY: the REST chain runs every poll interval
- POLLING_SECONDARY / EXHAUSTED: per-cycle outcome labels only. The
  secondary source rescues a single cycle; an exhausted cycle is retried
  on the next tick.

When the streaming process exits (or cannot be launched) the orchestrator
falls back to polling at once and, concurrently, relaunches the stream after
a fixed delay. A successful relaunch stops polling again.
"""

import asyncio
import logging
import time
from datetime import datetime
from enum import Enum
from typing import Optional

from sei_prices.exceptions import SourceUnavailableError
from sei_prices.price_feeds.fallback_chain import ChainResult, FallbackChain
from sei_prices.services.pipeline_health import PipelineHealth

logger = logging.getLogger(__name__)


class IngestionState(str, Enum):
    SELECTING = "selecting"
    STREAMING = "streaming"
    POLLING_PRIMARY = "polling_primary"
    POLLING_SECONDARY = "polling_secondary"
    EXHAUSTED = "exhausted"


class IngestionOrchestrator:
    """
    Drives the streaming source and the REST fallback chain.

    Usage:
        orchestrator = IngestionOrchestrator(store, streaming, chain, health)
        await orchestrator.start()
        ...
        await orchestrator.stop()
    """

    def __init__(
        self,
        store,
        streaming,
        chain: FallbackChain,
        health: Optional[PipelineHealth] = None,
        poll_interval_seconds: float = 30.0,
        restart_delay_seconds: float = 5.0,
    ):
        self.store = store
        self.streaming = streaming
        self.chain = chain
        self.health = health or PipelineHealth()
        self.poll_interval_seconds = poll_interval_seconds
        self.restart_delay_seconds = restart_delay_seconds

        self._state = IngestionState.SELECTING
        self._last_cycle_outcome: Optional[IngestionState] = None
        self._last_cycle_at: Optional[datetime] = None
        # Monotonic time of the next polling cycle; survives polling restarts
        self._next_poll_at: Optional[float] = None
        self._cycles_run = 0
        self._running = False
        self._streaming_task: Optional[asyncio.Task] = None
        self._polling_task: Optional[asyncio.Task] = None
        self._process = None

    @property
    def state(self) -> IngestionState:
        return self._state

    @property
    def last_cycle_outcome(self) -> Optional[IngestionState]:
        return self._last_cycle_outcome

    @property
    def is_polling(self) -> bool:
        return self._polling_task is not None and not self._polling_task.done()

    async def select_source(self) -> bool:
        """Return True when the streaming source should be used"""
        self._state = IngestionState.SELECTING

        if self.streaming is None:
            available = False
        else:
            available = await self.streaming.is_installed()
            if available and not self.streaming.has_credentials:
                logger.warning("Substreams API token not configured")
                available = False

        self.health.set_streaming_available(available)
        return available

    async def start(self):
        """Select a source and start the matching loop"""
        if self._running:
            logger.warning("Ingestion orchestrator already running")
            return

        self._running = True
        logger.info("Starting Pyth data ingestion process")

        if await self.select_source():
            logger.info("Using Substreams as primary data source")
            self._streaming_task = asyncio.create_task(self._streaming_loop())
        else:
            logger.info("Substreams not available, using Pyth REST API")
            self._start_polling()

    async def stop(self):
        """Cancel both loops and terminate the substreams process"""
        self._running = False

        for task in (self._streaming_task, self._polling_task):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        self._streaming_task = None
        self._polling_task = None

        if self._process is not None and self.streaming is not None:
            await self.streaming.terminate(self._process)
            self._process = None

        logger.info("Ingestion orchestrator stopped")

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def _enter_streaming(self):
        self._state = IngestionState.STREAMING
        if self.is_polling:
            logger.info("Substreams running again, stopping REST polling")
            self._polling_task.cancel()
        self._polling_task = None

    def _fall_back(self):
        logger.info("Falling back to Pyth REST API")
        self._start_polling()

    async def _streaming_loop(self):
        """Run substreams, falling back and relaunching whenever it stops"""
        while self._running:
            try:
                self._process = await self.streaming.launch()
            except SourceUnavailableError as e:
                logger.error(e.message)
                self._fall_back()
            else:
                self._enter_streaming()
                try:
                    exit_code = await self.streaming.consume(self._process, self.store)
                    logger.info(f"Substreams process exited with code {exit_code}")
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"Error processing Substreams data: {e}", exc_info=True)
                    await self.streaming.terminate(self._process)
                self._process = None
                self._fall_back()

            logger.info(f"Restarting Substreams in {self.restart_delay_seconds}s")
            await asyncio.sleep(self.restart_delay_seconds)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _start_polling(self):
        self._state = IngestionState.POLLING_PRIMARY
        if not self.is_polling:
            self._polling_task = asyncio.create_task(self._polling_loop())

    async def _polling_loop(self):
        logger.info(f"Pyth REST API polling started (every {self.poll_interval_seconds}s)")
        while self._running:
            # A loop restarted after a streaming handoff keeps the old schedule
            if self._next_poll_at is not None:
                delay = self._next_poll_at - time.monotonic()
                if delay > 0:
                    await asyncio.sleep(delay)

            self._next_poll_at = time.monotonic() + self.poll_interval_seconds
            try:
                await self.run_polling_cycle()
            except Exception as e:
                logger.error(f"Error in polling loop: {e}", exc_info=True)

    async def run_polling_cycle(self) -> ChainResult:
        """Run the REST chain once and label the cycle outcome"""
        result = await self.chain.run(self.store)
        winner = result.winner

        if winner is None:
            outcome = IngestionState.EXHAUSTED
            logger.error("All price data sources have failed")
        elif winner is result.attempts[0]:
            outcome = IngestionState.POLLING_PRIMARY
        else:
            outcome = IngestionState.POLLING_SECONDARY
            logger.info(f"Cycle rescued by {winner.source} ({winner.written} prices)")

        self._last_cycle_outcome = outcome
        self._last_cycle_at = datetime.utcnow()
        self._cycles_run += 1
        return result

    @property
    def status(self) -> dict:
        return {
            "running": self._running,
            "state": self._state.value,
            "last_cycle_outcome": self._last_cycle_outcome.value if self._last_cycle_outcome else None,
            "last_cycle_at": self._last_cycle_at.isoformat() if self._last_cycle_at else None,
            "cycles_run": self._cycles_run,
            "sources": self.chain.source_names,
            "poll_interval_seconds": self.poll_interval_seconds,
            "restart_delay_seconds": self.restart_delay_seconds,
            "health": self.health.to_dict(),
        }
