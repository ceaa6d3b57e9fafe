"""
Database Models: domain-organized package.

All model classes are re-exported here:
    from sei_prices.models import PriceRaw, Token, PriceSnapshot, ...
"""

from sei_prices.database import Base  # noqa: F401  re-exported for tests/conftest.py
from sei_prices.models.prices import PriceRaw, PriceSnapshot
from sei_prices.models.tokens import NewTokenRaw, Token

__all__ = [
    "Base",
    # Prices
    "PriceRaw", "PriceSnapshot",
    # Tokens
    "Token", "NewTokenRaw",
]
