import asyncio
from abc import ABC, abstractmethod

from curl_cffi import CurlError
from curl_cffi.requests import AsyncSession
from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from petsync.config import settings

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

class FetchError(Exception):
    """Источник недоступен: не-2xx ответ или сетевая ошибка (status=None)"""

    def __init__(self, url: str, status: int | None = None, reason: str = ""):
        self.url = url
        self.status = status
        message = f"HTTP {status}: {reason}".strip() if status is not None else (reason or "request failed")
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.status is None or self.status == 429 or self.status >= 500

def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, FetchError) and exc.retryable

class BaseScraper(ABC):
    def __init__(
        self,
        session: AsyncSession | None = None,
        attempts: int | None = None,
        backoff: float | None = None,
        timeout: float | None = None,
    ):
        self.attempts = attempts or settings.FETCH_ATTEMPTS
        self.backoff = settings.FETCH_BACKOFF if backoff is None else backoff
        self.timeout = timeout or settings.FETCH_TIMEOUT

        if session is None:
            proxies = {"http": settings.PROXY_URL, "https": settings.PROXY_URL} if settings.PROXY_URL else None
            # Некоторые сайты объявлений режут дефолтные клиентские сигнатуры
            session = AsyncSession(
                impersonate="chrome124",
                proxies=proxies,
                headers={
                    "User-Agent": USER_AGENT,
                    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
                    "Accept-Language": "en-US,en;q=0.9",
                    "Accept-Encoding": "gzip, deflate, br",
                    "Cache-Control": "max-age=0",
                    "Upgrade-Insecure-Requests": "1",
                },
                timeout=self.timeout
            )
        self.session = session

    async def close(self):
        if self.session:
            await self.session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def fetch(self, url: str) -> str:
        """
        GET с ретраями (экспоненциальный backoff) на сетевые ошибки, 429 и 5xx.
        Остальные не-2xx ответы - сразу FetchError.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.backoff, max=30),
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                number = attempt.retry_state.attempt_number
                if number > 1:
                    logger.warning(f"Retrying {url} (attempt {number}/{self.attempts})")
                return await self._get(url)

    async def _get(self, url: str) -> str:
        try:
            response = await asyncio.wait_for(self.session.get(url), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise FetchError(url, reason=f"timeout after {self.timeout}s") from e
        except CurlError as e:
            raise FetchError(url, reason=str(e)) from e

        if not 200 <= response.status_code < 300:
            raise FetchError(url, response.status_code, response.reason or "")

        return response.text

    @abstractmethod
    def parse_listings(self, html: str, source) -> list:
        """Должен вернуть разобранные объявления со страницы источника"""
        pass
