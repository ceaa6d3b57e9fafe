"""
Price Feeds Module

Source adapters that normalize upstream oracle payloads into PriceObservation
rows, plus the fallback combinator used by the ingestion orchestrator.

Components:
- PriceSource: Abstract base class for price data sources
- SubstreamsPriceFeed: Streaming source (substreams CLI subprocess)
- PythPriceFeed: Primary REST oracle (Pyth Hermes)
- CoinGeckoPriceFeed: Secondary REST oracle (CoinGecko)
- FallbackChain: Ordered "first source with progress wins" runner
"""

from sei_prices.price_feeds.base import (
    HttpPriceSource,
    IngestResult,
    PriceObservation,
    PriceSource,
    decode_price,
)
from sei_prices.price_feeds.coingecko_feed import CoinGeckoPriceFeed
from sei_prices.price_feeds.fallback_chain import ChainResult, FallbackChain
from sei_prices.price_feeds.pyth_feed import PythPriceFeed
from sei_prices.price_feeds.substreams_feed import SubstreamsPriceFeed

__all__ = [
    "PriceSource",
    "HttpPriceSource",
    "PriceObservation",
    "IngestResult",
    "decode_price",
    "SubstreamsPriceFeed",
    "PythPriceFeed",
    "CoinGeckoPriceFeed",
    "FallbackChain",
    "ChainResult",
]
