from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select

from petsync.models import AffiliateNetwork, AffiliateProduct
from petsync.services.catalogs import NetworkSettingsError
from petsync.services.networks import add_network, affiliate_id_from_url
from petsync.services.product_sync import NetworkProductSync


async def count(session_factory, model):
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


class TestAffiliateId:

    def test_strips_www_and_tld(self):
        assert affiliate_id_from_url("https://www.zooplus.com/shop/cats") == "zooplus"

    def test_keeps_subdomain(self):
        assert affiliate_id_from_url("https://shop.petworld.cy") == "shop"

    def test_invalid_url(self):
        with pytest.raises(ValueError):
            affiliate_id_from_url("not a url")


class TestAddNetwork:

    @pytest.mark.asyncio
    async def test_generic_network_is_created(self, session_factory):
        network, synced = await add_network("Zooplus", "https://www.zooplus.com", session_factory=session_factory)

        assert synced == 0
        assert network.id is not None
        assert network.affiliate_id == "zooplus"
        assert network.settings["network_type"] == "generic"
        assert network.settings["added_manually"] is True
        assert network.settings["source_url"] == "https://www.zooplus.com"

    @pytest.mark.asyncio
    async def test_amazon_network_syncs_immediately(self, session_factory):
        network, synced = await add_network("Amazon EU", "https://www.amazon.de", session_factory=session_factory)

        assert synced == 6
        assert network.settings["network_type"] == "amazon"
        assert await count(session_factory, AffiliateProduct) == 6

    @pytest.mark.asyncio
    async def test_sync_failure_is_not_fatal(self, session_factory):
        product_sync = MagicMock(spec=NetworkProductSync)
        product_sync.sync_network = AsyncMock(side_effect=RuntimeError("catalog down"))

        network, synced = await add_network(
            "Amazon EU", "https://www.amazon.de", session_factory=session_factory, product_sync=product_sync,
        )

        assert synced == 0
        assert await count(session_factory, AffiliateNetwork) == 1

    @pytest.mark.asyncio
    async def test_required_fields(self, session_factory):
        with pytest.raises(ValueError, match="required"):
            await add_network("", "https://www.zooplus.com", session_factory=session_factory)

    @pytest.mark.asyncio
    async def test_invalid_type_is_not_written(self, session_factory):
        with pytest.raises(NetworkSettingsError):
            await add_network("Shop", "https://shop.example.com", network_type="ebay",
                              session_factory=session_factory)

        assert await count(session_factory, AffiliateNetwork) == 0
