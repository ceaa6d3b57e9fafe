"""
Token API routes

Paged token listing with the latest snapshot price of each token.
"""

import logging
import math
from datetime import datetime

from fastapi import APIRouter, Depends, Query

from sei_prices.routers.dependencies import get_price_store
from sei_prices.services.price_store import PriceStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tokens", tags=["tokens"])


def _token_to_dict(token, snapshot) -> dict:
    return {
        "name": token.name,
        "symbol": token.symbol,
        "decimals": token.decimals,
        "logo": token.logo,
        "contractAddress": token.contract_address,
        "currentPrice": str(snapshot.price) if snapshot else None,
        "priceUpdatedAt": (snapshot.timestamp if snapshot else datetime.utcnow()).isoformat(),
        "last24hVariation": None,
        "info": {
            "sells": 0,
            "buys": 0,
            "bondedAt": None,
        },
    }


@router.get("")
async def list_tokens(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    store: PriceStore = Depends(get_price_store),
):
    tokens = await store.list_tokens()
    snapshots = await store.latest_snapshot_per_token()

    start = (page - 1) * limit
    page_tokens = tokens[start:start + limit]

    return {
        "data": [_token_to_dict(token, snapshots.get(token.id)) for token in page_tokens],
        "meta": {
            "page": page,
            "limit": limit,
            "totalItemsCount": len(tokens),
            "pagesCount": max(1, math.ceil(len(tokens) / limit)),
        },
    }
