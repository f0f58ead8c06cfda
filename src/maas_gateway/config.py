"""Centralized application configuration via environment variables."""

from enum import StrEnum
from functools import lru_cache

from pydantic import SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class RateLimitBackend(StrEnum):
    MEMORY = "memory"
    REDIS = "redis"


DEV_CORS_ORIGINS: tuple[str, ...] = (
    "http://localhost:3000",
    "http://localhost:3001",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:3001",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The JWT signing secret and the database password use SecretStr
    to prevent accidental logging. Database URL is assembled from
    individual components to match the official PostgreSQL Docker
    image environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- App ---
    environment: Environment = Environment.DEVELOPMENT
    log_level: str = "DEBUG"

    # --- Gateway ---
    # Fixed tenant label every request must carry in X-Project-Scope.
    project_scope: str = "lanonasis-maas"
    jwt_secret: SecretStr | None = None
    jwt_algorithm: str = "HS256"
    store_timeout_seconds: float = 5.0

    # --- CORS ---
    cors_allowed_origins: list[str] = [
        "https://dashboard.lanonasis.com",
        "https://docs.lanonasis.com",
        "https://api.lanonasis.com",
    ]
    cors_allowed_methods: list[str] = [
        "GET",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "OPTIONS",
    ]
    cors_allowed_headers: list[str] = [
        "Origin",
        "X-Requested-With",
        "Content-Type",
        "Accept",
        "Authorization",
        "X-API-Key",
        "X-Project-Scope",
        "X-Request-ID",
    ]

    # --- Rate limiting ---
    # Tier sizes live in auth.rate_limiter.PLAN_TIERS; only the counter
    # backend is configurable.
    rate_limit_backend: RateLimitBackend = RateLimitBackend.MEMORY

    # --- PostgreSQL ---
    postgres_user: str = "maas_gateway"
    postgres_password: SecretStr = SecretStr("secret")
    postgres_db: str = "maas_gateway"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    @computed_field  # type: ignore[prop-decorator]
    @property
    def database_url(self) -> str:
        """Assemble database URL from components.

        Uses psycopg v3 driver which supports both sync (create_engine)
        and async (create_async_engine) modes natively.
        """
        password = self.postgres_password.get_secret_value()
        return (
            f"postgresql+psycopg://{self.postgres_user}:{password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # --- Redis ---
    redis_url: str = "redis://localhost:6379/0"

    # --- Convenience properties ---
    @property
    def is_dev(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_prod(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING

    @property
    def effective_cors_origins(self) -> list[str]:
        """Configured origins plus local development origins outside production."""
        origins = list(self.cors_allowed_origins)
        if not self.is_prod:
            origins.extend(o for o in DEV_CORS_ORIGINS if o not in origins)
        return origins


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings singleton.

    Usage::

        from maas_gateway.config import get_settings
        settings = get_settings()
    """
    return Settings()


settings = get_settings()
