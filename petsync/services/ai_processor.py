import asyncio
from dataclasses import dataclass, field

from openai import AsyncOpenAI
from loguru import logger

from petsync.config import settings

SYSTEM_PROMPT = (
    "You are a pet product expert writing reviews for {locale} pet owners. "
    "Write engaging, informative reviews that help pet owners make informed decisions."
)

USER_PROMPT = """Write a detailed product review for "{title}" for {locale} pet owners.

Product details:
- Category: {category}
- Price: €{price}
- Rating: {rating}/5 ({review_count} reviews)
- Description: {description}

Write a comprehensive review that includes:
1. Product overview and key features
2. Pros and cons
3. Best use cases for {locale} pet owners
4. Value for money assessment
5. Final recommendation

Keep it informative, engaging, and focused on {locale} pet owners' needs. Include the current price and mention it's available for {locale} delivery."""

@dataclass
class ReviewPrompt:
    system_prompt: str
    user_prompt: str
    model_params: dict = field(default_factory=lambda: {"max_tokens": 2000, "temperature": 0.7})

def build_review_prompt(product) -> ReviewPrompt:
    locale = settings.SITE_LOCALE.title()
    return ReviewPrompt(
        system_prompt=SYSTEM_PROMPT.format(locale=locale),
        user_prompt=USER_PROMPT.format(
            title=product.title,
            locale=locale,
            category=product.category,
            price=product.price,
            rating=product.rating,
            review_count=product.review_count,
            description=product.description,
        ),
    )

class AIProcessor:
    def __init__(self, api_key: str | None = None, model: str | None = None, client: AsyncOpenAI | None = None):
        self.api_key = api_key or settings.OPENAI_API_KEY
        self.model = model or settings.OPENAI_MODEL
        self.client = client
        if self.client is None and self.api_key:
            self.client = AsyncOpenAI(api_key=self.api_key, timeout=settings.AI_TIMEOUT, max_retries=1)

    @property
    def available(self) -> bool:
        return self.client is not None

    async def complete(self, prompt: ReviewPrompt) -> str | None:
        """
        Отправляет промпт в генеративный сервис.
        Любая ошибка (таймаут, API, пустой ответ) -> None, вызывающий подставляет шаблон.
        """
        if not self.available:
            return None

        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": prompt.system_prompt},
                        {"role": "user", "content": prompt.user_prompt}
                    ],
                    **prompt.model_params
                ),
                timeout=settings.AI_TIMEOUT,
            )
            content = response.choices[0].message.content
            if not content or not content.strip():
                logger.warning("OpenAI returned empty content")
                return None

            logger.info(f"✨ AI generated {len(content)} chars")
            return content.strip()
        except Exception as e:
            logger.error(f"❌ OpenAI API Error: {e!r}")
            return None
