"""
Application Constants

Centralized feed tables and bootstrap data.
"""

from typing import Dict, List

# Pyth price feed ids (hex, no 0x prefix) -> feed key
PYTH_FEED_IDS: Dict[str, str] = {
    "e62df6c8b4a85fe1a67db44dc12de5db330f7ac66b72dc658afedf0f4a415b43": "BTC/USD",
    "ff61491a931112ddf1bd8147cd1b641375f79f5825126d665480874634fd0ace": "ETH/USD",
    "cf64512283d61c8d5fce267db286c1f43fbf07abe5709a7e100c1b6ad801e5b8": "SOL/USD",
    "2b89b9dc8fdf9f34709a5b106b472f0f39bb6ca9ce04b0fd7f2e971688e2e53b": "USDT/USD",
    "a0cd63e975ef8c038755022616439c8fc15cb9d6c20ba2e8d9cafdefba7d1def": "SEI/USD",
}

# Prefix for Pyth feeds that are not in PYTH_FEED_IDS
PYTH_UNKNOWN_FEED_PREFIX = "PYTH:"

# CoinGecko asset ids -> feed key
COINGECKO_IDS: Dict[str, str] = {
    "bitcoin": "BTC/USD",
    "ethereum": "ETH/USD",
    "sei-network": "SEI/USD",
    "solana": "SOL/USD",
    "tether": "USDT/USD",
}

# CoinGecko quotes plain USD floats; store them with Pyth's usual exponent
COINGECKO_EXPONENT = -8

# Quote currency used when mapping a token symbol to a feed key
DEFAULT_QUOTE_CURRENCY = "USD"

# Snapshot source tags
SOURCE_PYTH = "pyth"
SOURCE_MOCK = "mock"

# Upper bound (exclusive) for placeholder snapshot prices
MOCK_PRICE_CEILING = 1000

# Tokens seeded into an empty database
DEFAULT_TOKENS: List[Dict] = [
    {
        "name": "Sei",
        "symbol": "SEI",
        "decimals": 18,
        "contract_address": "0x0000000000000000000000000000000000000000",
    },
    {
        "name": "Ethereum",
        "symbol": "ETH",
        "decimals": 18,
        "contract_address": "0x0000000000000000000000000000000000000001",
    },
    {
        "name": "Bitcoin",
        "symbol": "BTC",
        "decimals": 8,
        "contract_address": "0x0000000000000000000000000000000000000002",
    },
]
