import random
from datetime import datetime, timedelta, timezone

from loguru import logger
from sqlalchemy import or_, select, update

from petsync.concurrency import run_bounded
from petsync.config import settings
from petsync.database import AsyncSessionLocal
from petsync.models import AffiliatePriceHistory, AffiliateProduct

class PriceRefreshJob:
    """
    Обновляет цены товаров, проверенных дольше PRICE_STALE_HOURS назад.

    Пока нет реальной интеграции проверки цен, новая цена - ограниченное
    случайное блуждание (±PRICE_MAX_DRIFT), не ниже MIN_PRICE.
    """

    def __init__(self, session_factory=AsyncSessionLocal, rng: random.Random | None = None,
                 batch_size: int | None = None, concurrency: int | None = None):
        self.session_factory = session_factory
        self.rng = rng or random.Random()
        self.batch_size = batch_size or settings.PRICE_BATCH_SIZE
        self.concurrency = concurrency or settings.WORKER_CONCURRENCY

    def next_price(self, price: float | None) -> float:
        drift = self.rng.uniform(-settings.PRICE_MAX_DRIFT, settings.PRICE_MAX_DRIFT)
        return round(max(settings.MIN_PRICE, (price or 0) * (1 + drift)), 2)

    async def stale_products(self, now: datetime) -> list[AffiliateProduct]:
        cutoff = now - timedelta(hours=settings.PRICE_STALE_HOURS)
        async with self.session_factory() as session:
            result = await session.execute(
                select(AffiliateProduct)
                .where(
                    AffiliateProduct.is_active.is_(True),
                    or_(AffiliateProduct.last_price_check.is_(None), AffiliateProduct.last_price_check < cutoff),
                )
                .order_by(AffiliateProduct.last_price_check.asc(), AffiliateProduct.id)
                .limit(self.batch_size)
            )
            return list(result.scalars().all())

    async def run(self) -> int:
        now = datetime.now(timezone.utc)
        products = await self.stale_products(now)
        logger.info(f"Updating prices for {len(products)} products...")

        results = await run_bounded(products, lambda p: self._refresh(p, now), self.concurrency)
        updated = sum(results)
        logger.success(f"✅ Prices updated: {updated}")
        return updated

    async def _refresh(self, product: AffiliateProduct, now: datetime) -> bool:
        new_price = self.next_price(product.price)
        try:
            # Цена и строка истории пишутся в одной транзакции
            async with self.session_factory() as session:
                await session.execute(
                    update(AffiliateProduct)
                    .where(AffiliateProduct.id == product.id)
                    .values(price=new_price, last_price_check=now)
                )
                session.add(AffiliatePriceHistory(
                    product_id=product.id,
                    price=new_price,
                    original_price=product.original_price,
                    availability_status=product.availability_status,
                    recorded_at=now,
                ))
                await session.commit()
        except Exception as e:
            logger.error(f"Error updating price for product {product.id}: {e}")
            return False

        logger.debug(f"Product {product.id}: {product.price} -> {new_price}")
        return True
