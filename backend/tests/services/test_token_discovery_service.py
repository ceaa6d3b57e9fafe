"""
Tests for backend/sei_prices/services/token_discovery_service.py
"""

import pytest

from sei_prices.services.token_discovery_service import (
    TokenDiscoveryService,
    placeholder_metadata,
)


class TestPlaceholderMetadata:
    def test_derived_from_address(self):
        meta = placeholder_metadata("0xabcdef1234")

        assert meta["name"] == "Token 0xabcdef"
        assert meta["symbol"] == "TKN0xab"
        assert meta["decimals"] == 18


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_new_addresses_become_tokens(self, price_store):
        await price_store.record_new_token("0x1111aaaa")
        await price_store.record_new_token("0x2222bbbb")
        discovery = TokenDiscoveryService(price_store)

        assert await discovery.run_once() == 2

        addresses = [t.contract_address for t in await price_store.list_tokens()]
        assert addresses == ["0x1111aaaa", "0x2222bbbb"]
        assert await price_store.list_unprocessed_new_tokens() == []

    @pytest.mark.asyncio
    async def test_known_address_is_marked_processed_only(self, price_store):
        await price_store.insert_token("Sei", "SEI", 18, "0xknown")
        await price_store.record_new_token("0xknown")
        discovery = TokenDiscoveryService(price_store)

        assert await discovery.run_once() == 0

        assert len(await price_store.list_tokens()) == 1
        assert await price_store.list_unprocessed_new_tokens() == []

    @pytest.mark.asyncio
    async def test_duplicate_queue_entries_add_one_token(self, price_store):
        await price_store.record_new_token("0xdup")
        await price_store.record_new_token("0xdup")

        assert await TokenDiscoveryService(price_store).run_once() == 1

    @pytest.mark.asyncio
    async def test_empty_queue(self, price_store):
        assert await TokenDiscoveryService(price_store).run_once() == 0
