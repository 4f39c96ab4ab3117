from dataclasses import dataclass, field
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import func, select, update

from petsync.concurrency import KeyedLock, run_bounded
from petsync.config import settings
from petsync.database import AsyncSessionLocal, upsert
from petsync.models import AutomationLog, Category, Listing, ScrapingSource
from petsync.scrapers.classifieds import ClassifiedsScraper, ExtractedFields
from petsync.services.classifier import classify, is_pet_title

MIN_TITLE_LENGTH = 5

@dataclass
class SourceOutcome:
    source: str
    success: bool
    scraped_count: int = 0
    error: str | None = None
    skipped: int = 0
    item_errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        if self.success:
            result = {"source": self.source, "success": True, "scraped_count": self.scraped_count}
            if self.item_errors:
                result["item_errors"] = self.item_errors
            return result
        return {"source": self.source, "success": False, "error": self.error}

class ListingIngestionJob:
    """Обходит активные источники, разбирает карточки и делает upsert по source_url"""

    def __init__(self, session_factory=AsyncSessionLocal, scraper: ClassifiedsScraper | None = None,
                 concurrency: int | None = None):
        self.session_factory = session_factory
        self.scraper = scraper
        self.concurrency = concurrency or settings.WORKER_CONCURRENCY
        self._locks = KeyedLock()

    async def run(self, source_ids: list[int] | None = None) -> list[SourceOutcome]:
        async with self.session_factory() as session:
            query = select(ScrapingSource).where(ScrapingSource.is_active.is_(True))
            if source_ids:
                query = query.where(ScrapingSource.id.in_(source_ids))
            sources = (await session.execute(query.order_by(ScrapingSource.id))).scalars().all()
            categories = {c.slug: c.id for c in (await session.execute(select(Category))).scalars()}

        if not sources:
            logger.info("No active scraping sources")
            return []

        logger.info(f"🚀 Scraping {len(sources)} sources (concurrency {self.concurrency})")

        owns_scraper = self.scraper is None
        scraper = self.scraper or ClassifiedsScraper()
        try:
            outcomes = await run_bounded(
                sources,
                lambda source: self.scrape_source(scraper, source, categories),
                self.concurrency,
            )
        finally:
            if owns_scraper:
                await scraper.close()

        # Отметка ставится всегда: источник, честно вернувший 0 объявлений, не должен "застревать"
        async with self.session_factory() as session:
            await session.execute(
                update(ScrapingSource)
                .where(ScrapingSource.id.in_([s.id for s in sources]))
                .values(last_scraped=datetime.now(timezone.utc))
            )
            await session.commit()

        await self._log_run(outcomes)
        return outcomes

    async def scrape_source(self, scraper: ClassifiedsScraper, source: ScrapingSource,
                            categories: dict[str, int]) -> SourceOutcome:
        outcome = SourceOutcome(source=source.name, success=False)
        try:
            html = await scraper.fetch(source.scraping_url)
            logger.info(f"Fetched {len(html)} chars from {source.name}")
            parsed = scraper.parse_listings(html, source)
        except Exception as e:
            logger.error(f"❌ Error scraping {source.name}: {e}")
            outcome.error = str(e) or type(e).__name__
            return outcome

        logger.info(f"Found {len(parsed)} containers on {source.name}")
        outcome.success = True

        for index, (fields, error) in enumerate(parsed):
            if error:
                logger.warning(f"{source.name}: skipping item {index}: {error}")
                outcome.item_errors.append(f"item {index}: {error}")
                continue
            if not self._is_relevant(fields):
                outcome.skipped += 1
                continue
            try:
                await self._save_listing(source, fields, categories)
                outcome.scraped_count += 1
            except Exception as e:
                logger.error(f"Error saving listing {fields.link}: {e}")
                outcome.item_errors.append(f"item {index}: {e}")

        logger.success(f"✅ {source.name}: {outcome.scraped_count} listings saved, {outcome.skipped} skipped")
        return outcome

    @staticmethod
    def _is_relevant(fields: ExtractedFields) -> bool:
        if not fields.title or len(fields.title) < MIN_TITLE_LENGTH:
            return False
        return is_pet_title(fields.title)

    async def _save_listing(self, source: ScrapingSource, fields: ExtractedFields, categories: dict[str, int]):
        info = classify(fields.title, fields.description, categories=categories)
        values = {
            "title": fields.title,
            "description": fields.description,
            "price": fields.price,
            "currency": settings.DEFAULT_CURRENCY,
            "location": fields.location,
            "images": fields.images,
            "category_id": info.category_id,
            "breed": info.breed,
            "age": info.age,
            "gender": info.gender,
            "source_name": source.name,
            "source_url": fields.link,
            "scraped_at": datetime.now(timezone.utc),
        }

        async with self._locks.hold(fields.link):
            async with self.session_factory() as session:
                stmt = upsert(session, Listing).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["source_url"],
                    set_={
                        **{k: stmt.excluded[k] for k in values if k != "source_url"},
                        "updated_at": func.now(),
                    }
                )
                await session.execute(stmt)
                await session.commit()

    async def _log_run(self, outcomes: list[SourceOutcome]):
        failed = [o for o in outcomes if not o.success]
        if not failed and not any(o.item_errors for o in outcomes):
            status = "success"
        elif len(failed) < len(outcomes):
            status = "partial_success"
        else:
            status = "error"

        try:
            async with self.session_factory() as session:
                session.add(AutomationLog(
                    task_type="listing_ingestion",
                    status=status,
                    details={
                        "scraped_count": sum(o.scraped_count for o in outcomes),
                        "results": [o.to_dict() for o in outcomes],
                    },
                ))
                await session.commit()
        except Exception as e:
            logger.error(f"Failed to write ingestion audit log: {e}")
