"""
Fallback Chain

Runs an ordered list of price sources, stopping at the first one that
reports progress (no error and at least one observation written).
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sei_prices.price_feeds.base import IngestResult, PriceSource

logger = logging.getLogger(__name__)


@dataclass
class ChainResult:
    """Every attempt made in one chain run, in order"""
    attempts: List[IngestResult] = field(default_factory=list)

    @property
    def winner(self) -> Optional[IngestResult]:
        for attempt in self.attempts:
            if attempt.made_progress:
                return attempt
        return None

    @property
    def exhausted(self) -> bool:
        return self.winner is None

    @property
    def written(self) -> int:
        """Rows written across all attempts, including failed ones"""
        return sum(attempt.written for attempt in self.attempts)


class FallbackChain:
    """
    Try sources in order until one makes progress.

    Usage:
        chain = FallbackChain([pyth_feed, coingecko_feed])
        result = await chain.run(store)
        if result.exhausted:
            ...
    """

    def __init__(self, sources: List[PriceSource]):
        if not sources:
            raise ValueError("FallbackChain needs at least one source")
        self.sources = list(sources)

    @property
    def source_names(self) -> List[str]:
        return [source.name for source in self.sources]

    async def run(self, store) -> ChainResult:
        result = ChainResult()

        for index, source in enumerate(self.sources):
            try:
                attempt = await source.ingest(store)
            except Exception as e:
                # ingest() reports faults itself; this only guards misbehaving sources
                logger.error(f"Source {source.name} raised: {e}", exc_info=True)
                attempt = IngestResult(source=source.name, error=str(e) or e.__class__.__name__)

            result.attempts.append(attempt)
            if attempt.made_progress:
                return result

            if index + 1 < len(self.sources):
                next_name = self.sources[index + 1].name
                reason = attempt.error or "no new prices"
                logger.info(f"{source.name} made no progress ({reason}), trying {next_name} as fallback")

        return result
