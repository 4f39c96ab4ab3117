from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str
    REDIS_URL: str = "redis://localhost:6379/0"

    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    AI_TIMEOUT: float = 60
    PROXY_URL: str | None = None

    ALIEXPRESS_APP_KEY: str | None = None
    ALIEXPRESS_SECRET: str | None = None

    LOG_LEVEL: str = "INFO"

    # Listing ingestion
    SCRAPE_MAX_LISTINGS: int = 100
    FETCH_TIMEOUT: float = 30
    FETCH_ATTEMPTS: int = 3
    FETCH_BACKOFF: float = 1.0
    DEFAULT_LOCATION: str = "Cyprus"
    DEFAULT_CURRENCY: str = "EUR"

    # Worker pool
    WORKER_CONCURRENCY: int = 4
    JOB_TIMEOUT: float = 600

    # Affiliate catalog
    PRICE_STALE_HOURS: int = 24
    PRICE_BATCH_SIZE: int = 10
    MIN_PRICE: float = 0.99
    PRICE_MAX_DRIFT: float = 0.10
    CONTENT_BATCH_SIZE: int = 5
    CONTENT_PUBLISH_DELAY_HOURS: int = 0
    FEATURED_MIN_RATING: float = 4.5
    SITE_LOCALE: str = "cyprus"

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
