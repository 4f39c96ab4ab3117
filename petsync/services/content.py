import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from loguru import logger
from sqlalchemy import exists, select
from sqlalchemy.orm import selectinload

from petsync.concurrency import KeyedLock, run_bounded
from petsync.config import settings
from petsync.database import AsyncSessionLocal
from petsync.models import AffiliateContent, AffiliateProduct
from petsync.services.ai_processor import AIProcessor, build_review_prompt

@dataclass
class Generated:
    body: str
    model: str
    kind: str = field(default="generated", init=False)

@dataclass
class Templated:
    body: str
    reason: str
    kind: str = field(default="templated", init=False)

ContentDraft = Generated | Templated

TEMPLATE = """# {title} Review - {locale} Pets

{title} is a high-quality {category} product that offers excellent value for pet owners in {locale}.

## Key Features
- Premium quality construction
- Perfect for {locale} pets
- Excellent customer reviews ({rating}/5 stars from {review_count} reviews)

## Product Details
{description}

## Why We Recommend This Product
Based on our research and customer feedback, {title} stands out as a top choice for {locale} pet owners looking for {category} products.

## Price and Availability
Current price: €{price}
{original_price_line}

[View on {network} →]({link})

*This post contains affiliate links. We may earn a commission if you make a purchase through these links at no additional cost to you.*"""

def slugify(text: str) -> str:
    return re.sub(r"-+", "-", re.sub(r"[^a-z0-9]", "-", text.lower())).strip("-")

def render_template(product: AffiliateProduct) -> str:
    network = product.network.name if product.network else "Amazon"
    return TEMPLATE.format(
        title=product.title,
        locale=settings.SITE_LOCALE.title(),
        category=product.category,
        rating=product.rating,
        review_count=product.review_count,
        description=product.description or product.short_description or product.title,
        price=product.price,
        original_price_line=f"~~Original price: €{product.original_price}~~" if product.original_price else "",
        network=network,
        link=product.affiliate_link,
    )

async def draft_review(product: AffiliateProduct, ai: AIProcessor) -> ContentDraft:
    if not ai.available:
        logger.info("OpenAI API key not configured, using template content")
        return Templated(body=render_template(product), reason="service not configured")

    body = await ai.complete(build_review_prompt(product))
    if body is None:
        return Templated(body=render_template(product), reason="service error")
    return Generated(body=body, model=ai.model)

def build_content(product: AffiliateProduct, draft: ContentDraft, slug: str, now: datetime) -> AffiliateContent:
    """Одинаковый набор полей для сгенерированного и шаблонного текста"""
    locale = settings.SITE_LOCALE.title()
    delay = timedelta(hours=settings.CONTENT_PUBLISH_DELAY_HOURS)
    return AffiliateContent(
        product_id=product.id,
        content_type="review",
        title=f"{product.title} Review - {locale} Pets",
        slug=slug,
        content=draft.body,
        excerpt=product.short_description,
        seo_title=f"{product.title} Review {now.year} - Best {product.category} in {locale}",
        seo_description=(
            f"Read our detailed review of {product.title}. Perfect for {locale} pet owners. "
            f"Current price: €{product.price}"
        ),
        tags=list(product.tags or []),
        source=draft.kind,
        is_published=not delay,
        publish_at=now + delay,
    )

@dataclass
class ContentRunResult:
    generated: int = 0
    templated: int = 0
    failed: int = 0

    @property
    def created(self) -> int:
        return self.generated + self.templated

class ContentGenerationJob:
    def __init__(self, session_factory=AsyncSessionLocal, ai: AIProcessor | None = None,
                 batch_size: int | None = None, concurrency: int | None = None):
        self.session_factory = session_factory
        self.ai = ai or AIProcessor()
        self.batch_size = batch_size or settings.CONTENT_BATCH_SIZE
        self.concurrency = concurrency or settings.WORKER_CONCURRENCY
        self._locks = KeyedLock()

    async def products_without_content(self) -> list[AffiliateProduct]:
        async with self.session_factory() as session:
            has_content = exists().where(AffiliateContent.product_id == AffiliateProduct.id)
            result = await session.execute(
                select(AffiliateProduct)
                .options(selectinload(AffiliateProduct.network))
                .where(AffiliateProduct.is_active.is_(True), ~has_content)
                .order_by(AffiliateProduct.id)
                .limit(self.batch_size)
            )
            return list(result.scalars().all())

    async def run(self) -> ContentRunResult:
        products = await self.products_without_content()
        logger.info(f"Generating content for {len(products)} products...")

        drafts = await run_bounded(products, self._generate, self.concurrency)

        summary = ContentRunResult()
        for draft in drafts:
            if draft is None:
                summary.failed += 1
            elif isinstance(draft, Generated):
                summary.generated += 1
            else:
                summary.templated += 1

        logger.success(f"✅ Content created: {summary.generated} generated, {summary.templated} templated")
        return summary

    async def _generate(self, product: AffiliateProduct) -> ContentDraft | None:
        try:
            draft = await draft_review(product, self.ai)
            await self._save(product, draft)
        except Exception as e:
            logger.error(f"Error generating content for product {product.id}: {e}")
            return None

        logger.info(f"Generated {draft.kind} content for {product.title}")
        return draft

    async def _save(self, product: AffiliateProduct, draft: ContentDraft):
        base = slugify(product.title)
        # Одинаковые названия у разных сетей: проверка slug и вставка не должны перемежаться
        async with self._locks.hold(base):
            async with self.session_factory() as session:
                # Повторная проверка перед записью: параллельный прогон мог успеть раньше
                already = await session.scalar(
                    select(AffiliateContent.id).where(AffiliateContent.product_id == product.id)
                )
                if already:
                    raise RuntimeError("content already exists")

                slug = f"{base}-review"
                if await session.scalar(select(AffiliateContent.id).where(AffiliateContent.slug == slug)):
                    slug = f"{base}-{product.id}-review"

                session.add(build_content(product, draft, slug, datetime.now(timezone.utc)))
                await session.commit()
