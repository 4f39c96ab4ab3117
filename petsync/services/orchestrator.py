"""
Полная синхронизация партнерского каталога:
товары -> цены -> контент -> публикация, строго последовательно.

Внутренние ошибки по отдельным товарам стадии поглощают сами; здесь ловятся
только исключения, вылетевшие из стадии целиком. Каждый прогон оставляет
ровно одну запись в automation_logs.
"""
import enum
from dataclasses import asdict, dataclass, field

from loguru import logger

from petsync.database import AsyncSessionLocal
from petsync.models import AutomationLog
from petsync.services.content import ContentGenerationJob
from petsync.services.ingestion import ListingIngestionJob
from petsync.services.price_refresh import PriceRefreshJob
from petsync.services.product_sync import NetworkProductSync
from petsync.services.publisher import publish_scheduled

class Action(str, enum.Enum):
    scrape_listings = "scrape_listings"
    sync_products = "sync_products"
    update_prices = "update_prices"
    generate_content = "generate_content"
    publish_scheduled = "publish_scheduled"
    full_sync = "full_sync"

@dataclass
class SyncReport:
    products_synced: int = 0
    prices_updated: int = 0
    content_generated: int = 0
    content_published: int = 0
    errors: list[str] = field(default_factory=list)
    stages_completed: list[str] = field(default_factory=list)
    aborted: bool = False

    @property
    def status(self) -> str:
        if self.aborted:
            return "error"
        if not self.errors:
            return "success"
        return "partial_success" if self.stages_completed else "error"

    def to_dict(self) -> dict:
        return {**asdict(self), "status": self.status}

class FullSyncOrchestrator:
    TASK_TYPE = "affiliate_full_sync"

    def __init__(self, session_factory=AsyncSessionLocal, product_sync=None, price_refresh=None,
                 content_generation=None, publisher=None):
        self.session_factory = session_factory
        self.product_sync = product_sync or NetworkProductSync(session_factory)
        self.price_refresh = price_refresh or PriceRefreshJob(session_factory)
        self.content_generation = content_generation or ContentGenerationJob(session_factory)
        self.publisher = publisher or (lambda: publish_scheduled(session_factory))

    async def run(self) -> SyncReport:
        logger.info("Running full affiliate sync...")
        report = SyncReport()
        try:
            await self._stage(report, "sync_products", self._sync_products)
            await self._stage(report, "update_prices", self._update_prices)
            await self._stage(report, "generate_content", self._generate_content)
            await self._stage(report, "publish_scheduled", self._publish)
        except BaseException as e:
            # Отмена/таймаут всего прогона: аудит все равно пишем
            report.aborted = True
            report.errors.append(f"aborted: {e!r}")
            raise
        finally:
            await self._write_log(report)

        logger.success(f"Full sync finished: {report.status}")
        return report

    async def _stage(self, report: SyncReport, name: str, stage):
        try:
            await stage(report)
        except Exception as e:
            logger.error(f"Stage {name} failed: {e}")
            report.errors.append(f"{name}: {e}")
        else:
            report.stages_completed.append(name)

    async def _sync_products(self, report: SyncReport):
        report.products_synced = await self.product_sync.run()

    async def _update_prices(self, report: SyncReport):
        report.prices_updated = await self.price_refresh.run()

    async def _generate_content(self, report: SyncReport):
        result = await self.content_generation.run()
        report.content_generated = result.created

    async def _publish(self, report: SyncReport):
        report.content_published = await self.publisher()

    async def _write_log(self, report: SyncReport):
        try:
            async with self.session_factory() as session:
                session.add(AutomationLog(
                    task_type=self.TASK_TYPE,
                    status=report.status,
                    details=report.to_dict(),
                ))
                await session.commit()
        except Exception as e:
            logger.error(f"Failed to write automation log: {e}")

async def run_action(action: Action, session_factory=AsyncSessionLocal) -> dict:
    """Единая точка входа: параметр action выбирает стадию или весь конвейер"""
    if action is Action.scrape_listings:
        outcomes = await ListingIngestionJob(session_factory).run()
        return {
            "scraped_count": sum(o.scraped_count for o in outcomes),
            "sources_processed": len(outcomes),
            "results": [o.to_dict() for o in outcomes],
        }
    if action is Action.sync_products:
        return {"products_synced": await NetworkProductSync(session_factory).run()}
    if action is Action.update_prices:
        return {"products_updated": await PriceRefreshJob(session_factory).run()}
    if action is Action.generate_content:
        result = await ContentGenerationJob(session_factory).run()
        return {"content_generated": result.created, "generated": result.generated,
                "templated": result.templated, "failed": result.failed}
    if action is Action.publish_scheduled:
        return {"content_published": await publish_scheduled(session_factory)}
    return (await FullSyncOrchestrator(session_factory).run()).to_dict()
