"""
Tests for FallbackChain: ordered "first source with progress wins".
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from sei_prices.price_feeds.base import IngestResult
from sei_prices.price_feeds.fallback_chain import ChainResult, FallbackChain


def _source(name, written=0, error=None, raises=None):
    source = MagicMock()
    source.name = name
    if raises is not None:
        source.ingest = AsyncMock(side_effect=raises)
    else:
        source.ingest = AsyncMock(return_value=IngestResult(source=name, written=written, error=error))
    return source


class TestFallbackChain:
    def test_requires_sources(self):
        with pytest.raises(ValueError):
            FallbackChain([])

    def test_source_names(self):
        chain = FallbackChain([_source("pyth"), _source("coingecko")])
        assert chain.source_names == ["pyth", "coingecko"]

    @pytest.mark.asyncio
    async def test_primary_progress_skips_secondary(self):
        primary = _source("pyth", written=5)
        secondary = _source("coingecko", written=5)

        result = await FallbackChain([primary, secondary]).run(MagicMock())

        assert result.winner.source == "pyth"
        assert result.exhausted is False
        secondary.ingest.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_zero_writes_falls_through(self):
        primary = _source("pyth", written=0)
        secondary = _source("coingecko", written=3)

        result = await FallbackChain([primary, secondary]).run(MagicMock())

        assert result.winner.source == "coingecko"
        assert [a.source for a in result.attempts] == ["pyth", "coingecko"]

    @pytest.mark.asyncio
    async def test_partial_failure_falls_through_but_counts_rows(self):
        """A source that wrote rows and then failed is not a winner."""
        primary = _source("pyth", written=2, error="connection reset")
        secondary = _source("coingecko", written=3)

        result = await FallbackChain([primary, secondary]).run(MagicMock())

        assert result.winner.source == "coingecko"
        assert result.written == 5

    @pytest.mark.asyncio
    async def test_all_sources_fail(self):
        primary = _source("pyth", error="HTTP 500")
        secondary = _source("coingecko", error="HTTP 429")

        result = await FallbackChain([primary, secondary]).run(MagicMock())

        assert result.exhausted is True
        assert result.winner is None
        assert len(result.attempts) == 2

    @pytest.mark.asyncio
    async def test_raising_source_is_converted(self):
        primary = _source("pyth", raises=RuntimeError("boom"))
        secondary = _source("coingecko", written=1)

        result = await FallbackChain([primary, secondary]).run(MagicMock())

        assert result.attempts[0].failed is True
        assert result.attempts[0].error == "boom"
        assert result.winner.source == "coingecko"

    def test_empty_result_is_exhausted(self):
        assert ChainResult().exhausted is True
        assert ChainResult().written == 0
