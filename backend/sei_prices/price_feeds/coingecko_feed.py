"""
CoinGecko Price Feed

Secondary REST oracle used to rescue a polling cycle when Pyth fails.
CoinGecko quotes plain USD numbers, which are converted to the Pyth-style
mantissa/exponent form so stored rows stay comparable.
"""

import logging
from datetime import datetime
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Any, AsyncIterator, Dict, Optional

from sei_prices.constants import COINGECKO_EXPONENT, COINGECKO_IDS
from sei_prices.exceptions import PriceParseError
from sei_prices.price_feeds.base import HttpPriceSource, PriceObservation, from_epoch_seconds

logger = logging.getLogger(__name__)

SIMPLE_PRICE_ENDPOINT = "/api/v3/simple/price"


def to_mantissa(usd: Any, expo: int = COINGECKO_EXPONENT) -> int:
    """Scale a USD amount by 10^-expo and round to an integer mantissa"""
    if isinstance(usd, bool):
        raise PriceParseError(f"Invalid usd price: {usd!r}", raw=usd)
    try:
        value = Decimal(str(usd))
    except (InvalidOperation, ValueError):
        raise PriceParseError(f"Invalid usd price: {usd!r}", raw=usd)
    if not value.is_finite():
        raise PriceParseError(f"Invalid usd price: {usd!r}", raw=usd)
    return int(value.scaleb(-expo).to_integral_value(rounding=ROUND_HALF_EVEN))


def parse_price_entry(
    feed_key: str,
    entry: Any,
    fetched_at: Optional[datetime] = None,
) -> PriceObservation:
    """Decode one {usd, last_updated_at?} entry for a known feed key"""
    if not isinstance(entry, dict) or "usd" not in entry:
        raise PriceParseError(f"CoinGecko entry for {feed_key} has no usd price", raw=entry)

    mantissa = to_mantissa(entry["usd"])
    updated_at = entry.get("last_updated_at")

    return PriceObservation(
        price_id=feed_key,
        price=mantissa,
        conf=mantissa // 100,  # CoinGecko has no confidence; assume 1%
        expo=COINGECKO_EXPONENT,
        publish_time=(
            from_epoch_seconds(updated_at) if updated_at
            else (fetched_at or datetime.utcnow())
        ),
        source="coingecko",
    )


class CoinGeckoPriceFeed(HttpPriceSource):
    """Price source for the CoinGecko simple price API."""

    def __init__(
        self,
        base_url: str = "https://api.coingecko.com",
        asset_ids: Optional[Dict[str, str]] = None,
        timeout: float = 10.0,
        health=None,
    ):
        super().__init__(name="coingecko", base_url=base_url, timeout=timeout, health=health)
        self.asset_ids = dict(asset_ids or COINGECKO_IDS)

    async def iter_observations(self) -> AsyncIterator[PriceObservation]:
        fetched_at = datetime.utcnow()
        data = await self._get_json(
            SIMPLE_PRICE_ENDPOINT,
            params={
                "ids": ",".join(self.asset_ids),
                "vs_currencies": "usd",
                "include_last_updated_at": "true",
            },
        )

        if not isinstance(data, dict):
            raise PriceParseError(f"CoinGecko returned {type(data).__name__}, expected an object")

        for asset_id, entry in data.items():
            feed_key = self.asset_ids.get(asset_id)
            if feed_key is None:
                continue

            try:
                observation = parse_price_entry(feed_key, entry, fetched_at)
            except PriceParseError as e:
                logger.warning(f"Skipping malformed CoinGecko entry {asset_id}: {e.message}")
                continue

            logger.info(f"Received CoinGecko price for {feed_key}: ${entry['usd']}")
            yield observation
