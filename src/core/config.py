"""Application settings loaded from environment variables (and an optional .env).

Access them through the module-level ``settings`` singleton::

    from src.core.config import settings

    settings.PARSE_BATCH_SIZE
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./trustpilot_parser.db"

    # App
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Scrapfly (JS-rendering scraping provider)
    SCRAPFLY_API_KEY: str = ""
    SCRAPFLY_API_URL: str = "https://api.scrapfly.io/scrape"
    SCRAPFLY_ACCOUNT_URL: str = "https://api.scrapfly.io/account"
    SCRAPFLY_PROXY_POOL: str = "public_datacenter_pool"
    SCRAPFLY_COUNTRY: str = "us"
    SCRAPFLY_RENDERING_WAIT_MS: int = 2000
    SCRAPE_REQUEST_TIMEOUT: float = 90.0

    # Batch processing
    PARSE_BATCH_SIZE: int = Field(default=5, ge=1)
    PARSE_BATCH_DELAY_SECONDS: float = Field(default=1.5, ge=0)
    MAX_URLS_PER_JOB: int = Field(default=1000, ge=1)
    STALE_PROCESSING_MINUTES: int = Field(default=15, ge=1)


settings = Settings()
