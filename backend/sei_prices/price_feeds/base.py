"""
Base Price Source Interface

Defines the normalized observation shape and the abstract interface that all
price sources must follow. A source yields observations; the shared ingest()
loop persists each one through the PriceStore as soon as it is parsed.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from sei_prices.exceptions import AppError, PriceParseError, SourceUnavailableError

logger = logging.getLogger(__name__)


def decode_price(mantissa: int, expo: int) -> Decimal:
    """Actual price = mantissa * 10^expo, computed exactly."""
    return Decimal(mantissa).scaleb(expo)


def from_epoch_seconds(value: Any) -> datetime:
    """Convert epoch seconds (int, float or numeric string) to naive UTC."""
    try:
        seconds = float(value)
        return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
    except (TypeError, ValueError, OverflowError, OSError):
        # NaN, infinity and out-of-range epochs land here too
        raise PriceParseError(f"Invalid publish_time: {value!r}", raw=value)


def to_int(value: Any, field_name: str) -> int:
    """Parse an integer mantissa. Oracles often send int64 values as strings."""
    if isinstance(value, bool) or value is None:
        raise PriceParseError(f"Invalid {field_name}: {value!r}", raw=value)
    if isinstance(value, float) and not value.is_integer():
        raise PriceParseError(f"Non-integral {field_name}: {value!r}", raw=value)
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        raise PriceParseError(f"Invalid {field_name}: {value!r}", raw=value)


@dataclass
class PriceObservation:
    """Raw price observation in mantissa/exponent form"""
    price_id: str
    price: int  # Mantissa
    conf: int  # Confidence, same units as price
    expo: int
    publish_time: datetime
    source: Optional[str] = None

    # Assigned by the store
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def real_price(self) -> Decimal:
        return decode_price(self.price, self.expo)

    @property
    def real_conf(self) -> Decimal:
        return decode_price(self.conf, self.expo)

    @classmethod
    def from_row(cls, row) -> "PriceObservation":
        return cls(
            id=row.id,
            price_id=row.price_id,
            price=int(row.price),
            conf=int(row.conf) if row.conf is not None else 0,
            expo=int(row.expo),
            publish_time=row.publish_time,
            source=row.source,
            created_at=row.created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "price_id": self.price_id,
            "price": self.price,
            "conf": self.conf,
            "expo": self.expo,
            "publish_time": self.publish_time.isoformat() if self.publish_time else None,
            "real_price": str(self.real_price),
            "source": self.source,
        }


@dataclass
class IngestResult:
    """Outcome of one source invocation"""
    source: str
    written: int = 0
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def made_progress(self) -> bool:
        """Zero writes is a valid outcome but does not count as progress"""
        return not self.failed and self.written > 0


class PriceSource(ABC):
    """
    Abstract base class for price sources.

    Each source covers a fixed, source-specific set of feeds and normalizes
    its payload into PriceObservation objects.
    """

    def __init__(self, name: str, health=None):
        """
        Args:
            name: Source name, stored with every row (e.g. "pyth")
            health: Optional PipelineHealth notified on every successful write
        """
        self.name = name
        self.health = health

    @abstractmethod
    def iter_observations(self) -> AsyncIterator[PriceObservation]:
        """
        Yield observations lazily as they are parsed.

        Single malformed records are skipped inside the iterator. Raising
        ends the invocation; observations already yielded stay persisted.
        """

    async def persist(self, store, observation: PriceObservation) -> bool:
        """Insert one observation and record the write on success."""
        inserted = await store.insert_observation(observation)
        if inserted and self.health is not None:
            self.health.record_write()
        return inserted

    async def ingest(self, store) -> IngestResult:
        """
        Fetch and persist one batch of observations.

        Never raises for upstream or persistence faults: they are reported
        through IngestResult.error so callers can fall back.
        """
        result = IngestResult(source=self.name)
        failed_inserts = 0

        try:
            async for observation in self.iter_observations():
                if await self.persist(store, observation):
                    result.written += 1
                else:
                    failed_inserts += 1
        except AppError as e:
            logger.warning(f"{self.name}: invocation failed after {result.written} writes: {e.message}")
            result.error = e.message
            return result
        except Exception as e:
            logger.error(f"{self.name}: unexpected error after {result.written} writes: {e}", exc_info=True)
            result.error = str(e) or e.__class__.__name__
            return result

        if failed_inserts:
            result.error = f"{failed_inserts} insert(s) failed"
            logger.error(f"{self.name}: {result.error}, {result.written} written")
        elif result.written == 0:
            logger.warning(f"No price updates received from {self.name}")

        return result


class HttpPriceSource(PriceSource):
    """Price source backed by a single JSON GET per invocation."""

    def __init__(self, name: str, base_url: str, timeout: float = 10.0, health=None):
        super().__init__(name=name, health=health)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def _get_json(self, endpoint: str, params=None) -> Any:
        """
        GET base_url + endpoint and decode the JSON body.

        Raises:
            SourceUnavailableError: transport error, timeout or non-2xx status
            PriceParseError: body is not JSON
        """
        url = f"{self.base_url}{endpoint}"
        logger.info(f"Fetching from {self.name}: {url}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(url, params=params)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SourceUnavailableError(
                f"{self.name} API error: HTTP {exc.response.status_code}", source=self.name
            )
        except httpx.HTTPError as exc:
            raise SourceUnavailableError(
                f"{self.name} request failed: {exc.__class__.__name__}: {exc}", source=self.name
            )

        try:
            return resp.json()
        except ValueError:
            raise PriceParseError(f"{self.name} returned a non-JSON body", raw=resp.text[:200])
