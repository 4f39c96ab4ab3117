from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import update

from petsync.database import AsyncSessionLocal
from petsync.models import AffiliateContent

async def publish_scheduled(session_factory=AsyncSessionLocal, now: datetime | None = None) -> int:
    """Публикует материалы, у которых наступило publish_at. Повторный запуск - no-op"""
    now = now or datetime.now(timezone.utc)
    async with session_factory() as session:
        result = await session.execute(
            update(AffiliateContent)
            .where(
                AffiliateContent.is_published.is_(False),
                AffiliateContent.publish_at <= now,
            )
            .values(is_published=True)
            .execution_options(synchronize_session=False)
        )
        await session.commit()

    published = result.rowcount or 0
    logger.info(f"Published {published} scheduled content items")
    return published
