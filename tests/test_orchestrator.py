import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select

from petsync.models import AffiliateNetwork, AutomationLog
from petsync.services.ai_processor import AIProcessor
from petsync.services.content import ContentGenerationJob, ContentRunResult
from petsync.services.orchestrator import Action, FullSyncOrchestrator, SyncReport, run_action

from conftest import add_all


def stub(return_value=None, error=None):
    job = MagicMock()
    job.run = AsyncMock(return_value=return_value, side_effect=error)
    return job


def orchestrator(session_factory, products=3, prices=2, content=ContentRunResult(templated=1), published=1,
                 **overrides):
    stages = {
        "product_sync": stub(products),
        "price_refresh": stub(prices),
        "content_generation": stub(content),
        "publisher": AsyncMock(return_value=published),
    }
    stages.update(overrides)
    return FullSyncOrchestrator(session_factory, **stages), stages


async def logs(session_factory):
    async with session_factory() as session:
        return (await session.execute(select(AutomationLog))).scalars().all()


class TestSyncReport:

    def test_status(self):
        assert SyncReport().status == "success"
        assert SyncReport(errors=["x"], stages_completed=["a"]).status == "partial_success"
        assert SyncReport(errors=["x"]).status == "error"
        assert SyncReport(stages_completed=["a"], aborted=True).status == "error"


class TestFullSync:

    @pytest.mark.asyncio
    async def test_all_stages_succeed(self, session_factory):
        job, _ = orchestrator(session_factory)

        report = await job.run()

        assert (report.products_synced, report.prices_updated, report.content_generated,
                report.content_published) == (3, 2, 1, 1)
        assert report.status == "success"
        log, = await logs(session_factory)
        assert log.task_type == "affiliate_full_sync"
        assert log.status == "success"
        assert log.details["products_synced"] == 3
        assert log.details["errors"] == []

    @pytest.mark.asyncio
    async def test_failed_stage_does_not_stop_later_stages(self, session_factory):
        job, stages = orchestrator(session_factory, price_refresh=stub(error=RuntimeError("db timeout")))

        report = await job.run()

        stages["content_generation"].run.assert_awaited_once()
        stages["publisher"].assert_awaited_once()
        assert report.errors == ["update_prices: db timeout"]
        assert report.stages_completed == ["sync_products", "generate_content", "publish_scheduled"]
        assert report.status == "partial_success"
        log, = await logs(session_factory)
        assert log.status == "partial_success"

    @pytest.mark.asyncio
    async def test_all_stages_fail(self, session_factory):
        boom = RuntimeError("boom")
        job, _ = orchestrator(
            session_factory,
            product_sync=stub(error=boom),
            price_refresh=stub(error=boom),
            content_generation=stub(error=boom),
            publisher=AsyncMock(side_effect=boom),
        )

        report = await job.run()

        assert len(report.errors) == 4
        log, = await logs(session_factory)
        assert log.status == "error"

    @pytest.mark.asyncio
    async def test_cancelled_run_is_still_logged(self, session_factory):
        job, stages = orchestrator(session_factory, price_refresh=stub(error=asyncio.CancelledError()))

        with pytest.raises(asyncio.CancelledError):
            await job.run()

        stages["content_generation"].run.assert_not_awaited()
        log, = await logs(session_factory)
        assert log.status == "error"
        assert log.details["stages_completed"] == ["sync_products"]

    @pytest.mark.asyncio
    async def test_end_to_end_with_amazon_catalog(self, session_factory):
        await add_all(session_factory, AffiliateNetwork(name="Amazon", affiliate_id="petcy-20", settings={}))
        job = FullSyncOrchestrator(
            session_factory,
            content_generation=ContentGenerationJob(session_factory, ai=AIProcessor(api_key="")),
        )

        report = await job.run()

        assert report.status == "success"
        assert report.products_synced == 6
        # Свежесинхронизированные товары еще не устарели
        assert report.prices_updated == 0
        assert report.content_generated == 5
        # Без задержки материалы создаются уже опубликованными
        assert report.content_published == 0


class TestRunAction:

    @pytest.mark.asyncio
    async def test_single_stage(self, session_factory):
        await add_all(session_factory, AffiliateNetwork(name="Amazon", affiliate_id="petcy-20", settings={}))

        assert await run_action(Action.sync_products, session_factory) == {"products_synced": 6}
        assert await run_action(Action.update_prices, session_factory) == {"products_updated": 0}

    @pytest.mark.asyncio
    async def test_scrape_listings_without_sources(self, session_factory):
        result = await run_action(Action.scrape_listings, session_factory)

        assert result == {"scraped_count": 0, "sources_processed": 0, "results": []}

    @pytest.mark.asyncio
    async def test_publish(self, session_factory):
        assert await run_action(Action.publish_scheduled, session_factory) == {"content_published": 0}
