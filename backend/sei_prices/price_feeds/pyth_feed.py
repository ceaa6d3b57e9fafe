"""
Pyth Price Feed

Primary REST oracle. Reads the latest price feeds from Pyth's Hermes
price service in a single request per invocation.
"""

import logging
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Optional

from sei_prices.constants import PYTH_FEED_IDS, PYTH_UNKNOWN_FEED_PREFIX
from sei_prices.exceptions import PriceParseError
from sei_prices.price_feeds.base import (
    HttpPriceSource,
    PriceObservation,
    from_epoch_seconds,
    to_int,
)

logger = logging.getLogger(__name__)

LATEST_PRICE_FEEDS_ENDPOINT = "/api/latest_price_feeds"


def normalize_feed_id(feed_id: str) -> str:
    """Hermes ids may or may not carry a 0x prefix"""
    feed_id = feed_id.strip().lower()
    return feed_id[2:] if feed_id.startswith("0x") else feed_id


def feed_key_for(feed_id: str, feed_ids: Dict[str, str] = PYTH_FEED_IDS) -> str:
    """Map a Pyth feed id to "BASE/QUOTE", or a PYTH:-prefixed key if unknown"""
    normalized = normalize_feed_id(feed_id)
    if normalized in feed_ids:
        return feed_ids[normalized]
    return f"{PYTH_UNKNOWN_FEED_PREFIX}{normalized[:8]}"


def parse_feed_item(
    item: Any,
    feed_ids: Dict[str, str] = PYTH_FEED_IDS,
    fetched_at: Optional[datetime] = None,
) -> Optional[PriceObservation]:
    """
    Decode one Hermes feed item.

    Returns None for items that carry no price. Raises PriceParseError when
    the item is malformed.
    """
    if not isinstance(item, dict):
        raise PriceParseError(f"Feed item is not an object: {item!r}", raw=item)

    feed_id = item.get("id")
    if not isinstance(feed_id, str) or not feed_id.strip():
        raise PriceParseError("Feed item has no id", raw=item)

    price = item.get("price")
    if not price:
        return None
    if not isinstance(price, dict):
        raise PriceParseError(f"Feed {feed_id} has a malformed price", raw=item)

    publish_time = price.get("publish_time")
    return PriceObservation(
        price_id=feed_key_for(feed_id, feed_ids),
        price=to_int(price.get("price"), "price"),
        conf=to_int(price.get("conf"), "conf"),
        expo=to_int(price.get("expo"), "expo"),
        publish_time=(
            from_epoch_seconds(publish_time) if publish_time is not None
            else (fetched_at or datetime.utcnow())
        ),
        source="pyth",
    )


class PythPriceFeed(HttpPriceSource):
    """
    Price source for the Pyth Hermes REST API.

    Every item in the response is committed as soon as it is parsed, so a
    failure part way through only loses the items not yet processed.
    """

    def __init__(
        self,
        base_url: str = "https://hermes.pyth.network",
        feed_ids: Optional[Dict[str, str]] = None,
        timeout: float = 10.0,
        health=None,
    ):
        super().__init__(name="pyth", base_url=base_url, timeout=timeout, health=health)
        self.feed_ids = dict(feed_ids or PYTH_FEED_IDS)

    async def iter_observations(self) -> AsyncIterator[PriceObservation]:
        fetched_at = datetime.utcnow()
        feeds = await self._get_json(
            LATEST_PRICE_FEEDS_ENDPOINT,
            params={"ids[]": list(self.feed_ids)},
        )

        if not isinstance(feeds, list):
            raise PriceParseError(f"Pyth returned {type(feeds).__name__}, expected a list of feeds")

        for item in feeds:
            try:
                observation = parse_feed_item(item, self.feed_ids, fetched_at)
            except PriceParseError as e:
                logger.warning(f"Skipping malformed Pyth feed item: {e.message}")
                continue

            if observation is None:
                continue

            logger.info(f"Received Pyth price for {observation.price_id}: ${observation.real_price:.4f}")
            yield observation
