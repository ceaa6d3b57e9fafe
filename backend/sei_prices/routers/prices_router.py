"""
Price API routes

Read-only projections over the raw price table:
- Latest observation per feed
- Latest observation for one feed
"""

import logging

from fastapi import APIRouter, Depends

from sei_prices.exceptions import NotFoundError
from sei_prices.routers.dependencies import get_price_store
from sei_prices.services.price_store import PriceStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/prices", tags=["prices"])


@router.get("")
async def list_latest_prices(store: PriceStore = Depends(get_price_store)):
    """Most recent observation for every feed key"""
    observations = await store.latest_per_feed()
    return [observation.to_dict() for observation in observations]


@router.get("/{price_id:path}")
async def get_latest_price(price_id: str, store: PriceStore = Depends(get_price_store)):
    """Most recent observation for one feed key, e.g. /prices/BTC/USD"""
    observation = await store.latest_for_feed(price_id)
    if observation is None:
        raise NotFoundError(f"No prices for {price_id}")
    return observation.to_dict()
