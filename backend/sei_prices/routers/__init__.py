"""
API Routers

Read-only HTTP projections over the price store.
"""

from sei_prices.routers import prices_router
from sei_prices.routers import system_router
from sei_prices.routers import tokens_router

__all__ = [
    "prices_router",
    "system_router",
    "tokens_router",
]
