"""
Pipeline health state shared by the ingestion side and the staleness monitor.

Holds the "last successful write" timestamp and the "streaming available"
flag. Writers go through record_write(); readers use the accessors.
"""

from datetime import datetime
from typing import Optional


class PipelineHealth:
    """Owner of ingestion-wide health fields."""

    def __init__(self, started_at: Optional[datetime] = None):
        self._started_at = started_at or datetime.utcnow()
        self._last_write_at: Optional[datetime] = None
        self._write_count = 0
        self._streaming_available = False

    @property
    def started_at(self) -> datetime:
        return self._started_at

    @property
    def last_write_at(self) -> Optional[datetime]:
        """Time of the most recent successful persist, None before the first one"""
        return self._last_write_at

    @property
    def write_count(self) -> int:
        return self._write_count

    @property
    def streaming_available(self) -> bool:
        return self._streaming_available

    def set_streaming_available(self, available: bool):
        self._streaming_available = available

    def record_write(self, at: Optional[datetime] = None):
        """Called by source adapters after every successful insert"""
        self._last_write_at = at or datetime.utcnow()
        self._write_count += 1

    def seconds_since_last_write(self, now: Optional[datetime] = None) -> float:
        """
        Age of the last successful write.

        Before the first write the age is measured from startup, so a fresh
        process does not report an outage until a full threshold has passed.
        """
        now = now or datetime.utcnow()
        reference = self._last_write_at or self._started_at
        return (now - reference).total_seconds()

    def to_dict(self) -> dict:
        return {
            "started_at": self._started_at.isoformat(),
            "last_write_at": self._last_write_at.isoformat() if self._last_write_at else None,
            "write_count": self._write_count,
            "streaming_available": self._streaming_available,
        }
