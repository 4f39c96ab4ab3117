from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import select

from petsync.concurrency import KeyedLock, run_bounded
from petsync.config import settings
from petsync.database import AsyncSessionLocal, upsert
from petsync.models import AffiliateNetwork, AffiliateProduct
from petsync.services.aliexpress import AliExpressClient
from petsync.services.catalogs import (
    AliExpressSettings, AmazonSettings, CatalogProduct, GenericSettings,
    amazon_catalog, parse_network_settings,
)

# Поля, которые обновляются при повторной синхронизации существующего товара
MUTABLE_FIELDS = (
    "title", "description", "short_description", "price", "original_price",
    "image_url", "rating", "review_count", "last_price_check",
)

def build_affiliate_link(base_url: str, external_id: str, affiliate_id: str) -> str:
    return f"{base_url.rstrip('/')}/{external_id}?tag={affiliate_id}"

def seo_fields(product: CatalogProduct) -> dict:
    locale = settings.SITE_LOCALE.title()
    summary = product.short_description or product.title
    return {
        "seo_title": f"{product.title} - Best {product.category} for {locale} Pets",
        "seo_description": f"{summary}. Available in {locale} with fast shipping. Price: €{product.price}",
        "tags": [product.category, product.subcategory, product.brand.lower(), settings.SITE_LOCALE, "pets"],
    }

class NetworkProductSync:
    """Синхронизация каталогов партнерских сетей в affiliate_products"""

    def __init__(self, session_factory=AsyncSessionLocal, aliexpress: AliExpressClient | None = None,
                 concurrency: int | None = None):
        self.session_factory = session_factory
        self.aliexpress = aliexpress
        self.concurrency = concurrency or settings.WORKER_CONCURRENCY
        self._locks = KeyedLock()

    async def run(self) -> int:
        async with self.session_factory() as session:
            networks = (await session.execute(
                select(AffiliateNetwork)
                .where(AffiliateNetwork.is_active.is_(True))
                .order_by(AffiliateNetwork.id)
            )).scalars().all()

        logger.info(f"Syncing products for {len(networks)} networks...")
        counts = await run_bounded(networks, self._sync_isolated, self.concurrency)
        total = sum(counts)
        logger.success(f"✅ Products synced: {total}")
        return total

    async def _sync_isolated(self, network: AffiliateNetwork) -> int:
        # Сбой одной сети не должен валить остальные
        try:
            return await self.sync_network(network)
        except Exception as e:
            logger.error(f"Error syncing {network.name}: {e}")
            return 0

    async def sync_network(self, network: AffiliateNetwork) -> int:
        network_settings = parse_network_settings(network)
        catalog = await self.fetch_catalog(network, network_settings)

        synced = 0
        for product in catalog:
            link = product.affiliate_link
            if not link:
                base_url = getattr(network_settings, "base_url", None)
                if not base_url:
                    logger.warning(f"{network.name}: no base_url, skipping {product.external_product_id}")
                    continue
                link = build_affiliate_link(base_url, product.external_product_id, network.affiliate_id)
            try:
                await self._write_product(network, product, link)
                synced += 1
            except Exception as e:
                logger.error(f"Error writing product {product.external_product_id} for {network.name}: {e}")

        logger.info(f"{network.name}: {synced}/{len(catalog)} products written")
        return synced

    async def fetch_catalog(self, network: AffiliateNetwork, network_settings) -> list[CatalogProduct]:
        if isinstance(network_settings, AmazonSettings):
            return list(amazon_catalog(network_settings.catalog_version))
        if isinstance(network_settings, AliExpressSettings):
            owns_client = self.aliexpress is None
            client = self.aliexpress or AliExpressClient()
            try:
                return await client.fetch_catalog(network, network_settings)
            finally:
                if owns_client:
                    await client.close()
        if isinstance(network_settings, GenericSettings):
            return list(network_settings.products)
        return []

    async def _write_product(self, network: AffiliateNetwork, product: CatalogProduct, link: str):
        """Upsert по (network_id, external_product_id): вставка целиком, при конфликте - только изменяемые поля"""
        values = {
            "network_id": network.id,
            "external_product_id": product.external_product_id,
            "title": product.title,
            "description": product.description,
            "short_description": product.short_description,
            "price": product.price,
            "original_price": product.original_price,
            "currency": product.currency,
            "image_url": product.image_url,
            "category": product.category,
            "subcategory": product.subcategory,
            "brand": product.brand,
            "rating": product.rating,
            "review_count": product.review_count,
            "affiliate_link": link,
            "is_featured": (product.rating or 0) >= settings.FEATURED_MIN_RATING,
            "is_active": True,
            "availability_status": "in_stock",
            "last_price_check": datetime.now(timezone.utc),
            **seo_fields(product),
        }

        async with self._locks.hold((network.id, product.external_product_id)):
            async with self.session_factory() as session:
                stmt = upsert(session, AffiliateProduct).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["network_id", "external_product_id"],
                    set_={k: stmt.excluded[k] for k in MUTABLE_FIELDS}
                )
                await session.execute(stmt)
                await session.commit()
