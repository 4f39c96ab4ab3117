import random
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from petsync.models import AffiliateNetwork, AffiliatePriceHistory, AffiliateProduct
from petsync.services.price_refresh import PriceRefreshJob

from conftest import add_all


class LowestDrift:
    """Всегда максимальное падение цены"""

    def uniform(self, a, b):
        return a


def product(network, external_id, price, checked_hours_ago=None, **kwargs):
    checked = None
    if checked_hours_ago is not None:
        checked = datetime.now(timezone.utc) - timedelta(hours=checked_hours_ago)
    return AffiliateProduct(
        network=network,
        external_product_id=external_id,
        title=f"Product {external_id}",
        price=price,
        affiliate_link=f"https://shop.example.com/{external_id}",
        last_price_check=checked,
        **kwargs,
    )


@pytest.fixture
def network():
    return AffiliateNetwork(name="Shop", affiliate_id="shop", settings={"network_type": "generic"})


async def load(session_factory, model):
    async with session_factory() as session:
        return (await session.execute(select(model).order_by(model.id))).scalars().all()


class TestNextPrice:

    def test_stays_within_drift(self):
        job = PriceRefreshJob(rng=random.Random(7))

        for _ in range(200):
            assert 90.0 <= job.next_price(100.0) <= 110.0

    def test_never_below_floor(self):
        job = PriceRefreshJob(rng=LowestDrift())

        assert job.next_price(1.0) == 0.99
        assert job.next_price(None) == 0.99

    def test_rounded_to_cents(self):
        job = PriceRefreshJob(rng=LowestDrift())

        assert job.next_price(13.99) == 12.59


class TestPriceRefresh:

    @pytest.mark.asyncio
    async def test_only_stale_products_are_refreshed(self, session_factory, network):
        await add_all(
            session_factory,
            product(network, "stale", 20.0, checked_hours_ago=48),
            product(network, "never", 10.0),
            product(network, "fresh", 30.0, checked_hours_ago=1),
        )

        updated = await PriceRefreshJob(session_factory, rng=LowestDrift()).run()

        assert updated == 2
        stale, never, fresh = await load(session_factory, AffiliateProduct)
        assert stale.price == 18.0
        assert never.price == 9.0
        assert fresh.price == 30.0

    @pytest.mark.asyncio
    async def test_one_history_row_per_update(self, session_factory, network):
        await add_all(session_factory, product(network, "p1", 5.0, original_price=7.5))

        await PriceRefreshJob(session_factory, rng=LowestDrift()).run()

        history = await load(session_factory, AffiliatePriceHistory)
        assert len(history) == 1
        assert history[0].price == 4.5
        assert history[0].original_price == 7.5
        assert history[0].availability_status == "in_stock"

    @pytest.mark.asyncio
    async def test_refreshed_product_is_not_stale_again(self, session_factory, network):
        await add_all(session_factory, product(network, "p1", 5.0))
        job = PriceRefreshJob(session_factory, rng=LowestDrift())

        assert await job.run() == 1
        assert await job.run() == 0
        assert len(await load(session_factory, AffiliatePriceHistory)) == 1

    @pytest.mark.asyncio
    async def test_batch_is_capped(self, session_factory, network):
        await add_all(session_factory, *[product(network, f"p{i}", 10.0) for i in range(12)])

        assert await PriceRefreshJob(session_factory).run() == 10
        assert len(await load(session_factory, AffiliatePriceHistory)) == 10

    @pytest.mark.asyncio
    async def test_inactive_products_skipped(self, session_factory, network):
        await add_all(session_factory, product(network, "off", 10.0, is_active=False))

        assert await PriceRefreshJob(session_factory).run() == 0
