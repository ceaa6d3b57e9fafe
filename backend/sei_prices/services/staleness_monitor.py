"""
Staleness Monitor

Background watchdog that reads the latest observation per feed and raises
alerts when a feed, or the whole pipeline, has not been updated within the
staleness threshold. Alerts are log records only; the monitor never touches
ingestion state.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sei_prices.services.pipeline_health import PipelineHealth

logger = logging.getLogger(__name__)

CHECK_INTERVAL = 60  # seconds
STALENESS_THRESHOLD = 5 * 60  # seconds

ALERT_PRICE_STALE = "price_stale"
ALERT_UPDATE_FAILURE = "price_update_failure"


@dataclass
class StalenessAlert:
    kind: str  # ALERT_PRICE_STALE or ALERT_UPDATE_FAILURE
    age_seconds: float
    price_id: Optional[str] = None

    @property
    def age_minutes(self) -> int:
        return int(self.age_seconds // 60)


class StalenessMonitor:
    """Periodically checks feed and pipeline freshness."""

    def __init__(
        self,
        store,
        health: PipelineHealth,
        check_interval_seconds: float = CHECK_INTERVAL,
        threshold_seconds: float = STALENESS_THRESHOLD,
    ):
        self.store = store
        self.health = health
        self.check_interval_seconds = check_interval_seconds
        self.threshold_seconds = threshold_seconds
        self._task = None
        self._running = False
        self._last_check: Optional[datetime] = None
        self._last_alerts: List[StalenessAlert] = []

    async def start(self):
        if self._running:
            logger.warning("Staleness monitor already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._monitor_loop())
        logger.info("Staleness monitor started")

    async def stop(self):
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("Staleness monitor stopped")

    async def _monitor_loop(self):
        while self._running:
            await asyncio.sleep(self.check_interval_seconds)
            try:
                await self.check_once()
            except Exception as e:
                logger.error(f"Error checking price staleness: {e}", exc_info=True)

    async def check_once(self, now: Optional[datetime] = None) -> List[StalenessAlert]:
        """
        Run one staleness check.

        Emits at most one alert per stale feed and at most one system alert.
        """
        now = now or datetime.utcnow()
        alerts: List[StalenessAlert] = []

        for observation in await self.store.latest_per_feed():
            if observation.publish_time is None:
                continue
            age = (now - observation.publish_time).total_seconds()
            if age > self.threshold_seconds:
                alert = StalenessAlert(kind=ALERT_PRICE_STALE, age_seconds=age, price_id=observation.price_id)
                logger.error(
                    f"PRICE ALERT: {observation.price_id} price is stale "
                    f"({alert.age_minutes} minutes old)"
                )
                alerts.append(alert)

        since_write = self.health.seconds_since_last_write(now)
        if since_write > self.threshold_seconds:
            alert = StalenessAlert(kind=ALERT_UPDATE_FAILURE, age_seconds=since_write)
            logger.error(f"SYSTEM ALERT: No price updates received in {alert.age_minutes} minutes")
            alerts.append(alert)

        self._last_check = now
        self._last_alerts = alerts
        return alerts

    @property
    def status(self) -> dict:
        return {
            "running": self._running,
            "last_check": self._last_check.isoformat() if self._last_check else None,
            "active_alerts": len(self._last_alerts),
            "threshold_seconds": self.threshold_seconds,
        }
