"""Application configuration loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed settings exposed via dependency injection throughout the app."""

    # Read .env with BOM tolerance; case-sensitive keys
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=True,
    )

    APP_NAME: str = "Ad Marketplace API"
    ENV: str = "dev"  # dev | staging | prod
    DEBUG: bool = False

    # CORS
    CORS_ALLOWED_ORIGINS: list[str] = Field(default_factory=list)

    # Session cookie written by the external auth service ("token.signature")
    SESSION_COOKIE_NAME: str = "better-auth.session_token"

    # DB
    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 3306
    DB_USER: str = "marketplace"
    DB_PASSWORD: str = ""  # set via env/.env
    DB_NAME: str = "marketplace"
    # Full SQLAlchemy URL; takes precedence over the DB_* parts when set.
    DB_URL: str | None = None
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_ISOLATION_LEVEL: str = "READ COMMITTED"
    DB_ECHO: bool = False
    DB_RETRY_ATTEMPTS: int = 4
    DB_RETRY_BASE_DELAY: float = 0.05
    DB_RETRY_JITTER: float = 0.025
    DB_NOWAIT_LOCKS: bool = False

    # Rate limit for the booking endpoint. See marketplace.core.rate_limit.limiter.
    BOOKING_RATE: str = "30/minute"
    # Requests declaring a larger body are rejected with 413.
    MAX_BODY_BYTES: int = 1024 * 1024

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    @property
    def DATABASE_URL(self) -> str:
        if self.DB_URL:
            return self.DB_URL
        return (
            f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4"
        )


settings = Settings()
