"""Application configuration using Pydantic Settings with YAML support.

This module provides centralized configuration management with:
- YAML-based configuration files organized by domain
- Environment-specific overrides (local, test, development, staging, production)
- Environment variable loading for secrets
- Type validation and coercion
- Computed properties for derived values
- Caching for performance
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_source import MultiYamlConfigSettingsSource


if TYPE_CHECKING:
    from pydantic_settings import PydanticBaseSettingsSource


class BudgetFailMode(StrEnum):
    """Behaviour of the daily budget check when Redis cannot be reached.

    - CLOSED: Treat the budget as exhausted (no generation)
    - OPEN: Allow generation and log the failure
    """

    CLOSED = "closed"
    OPEN = "open"


# =============================================================================
# Nested Configuration Models (from YAML)
# =============================================================================


class AppSettings(BaseModel):
    """Application identity settings."""

    name: str = "Library Book Service"
    version: str = "0.1.0"
    debug: bool = False


class ServerSettings(BaseModel):
    """Server configuration settings."""

    host: str = "127.0.0.1"
    port: int = 8000


class ApiSettings(BaseModel):
    """API configuration settings."""

    v1_prefix: str = "/api/v1/library"
    cors_origins: list[str] = []


class RedisSettings(BaseModel):
    """Redis configuration settings."""

    host: str = "localhost"
    port: int = 6379
    user: str | None = None  # Redis ACL username (Redis 6.0+)
    cache_db: int = 0
    rate_limit_db: int = 2
    max_connections: int = 20


class DatabaseSettings(BaseModel):
    """PostgreSQL database configuration settings."""

    host: str = "localhost"
    port: int = 5432
    name: str = "library_database"
    user: str | None = None
    min_pool_size: int = 5
    max_pool_size: int = 20
    command_timeout: float = 30.0
    ssl: bool = False
    create_schema: bool = True  # Apply library DDL on startup


class RateLimitingSettings(BaseModel):
    """HTTP-level rate limiting configuration (slowapi)."""

    enabled: bool = True
    default: str = "100/minute"
    narrative: str = "30/minute"


class LoggingSettings(BaseModel):
    """Logging configuration settings."""

    level: str = "INFO"
    format: str = "json"


class TracingSettings(BaseModel):
    """Tracing configuration settings."""

    enabled: bool = True
    otlp_endpoint: str | None = None


class MetricsSettings(BaseModel):
    """Metrics configuration settings."""

    enabled: bool = True


class ObservabilitySettings(BaseModel):
    """Observability configuration settings."""

    tracing: TracingSettings = TracingSettings()
    metrics: MetricsSettings = MetricsSettings()


class OpenAISettings(BaseModel):
    """OpenAI-compatible chat completions configuration."""

    url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o-mini"
    timeout: float = 60.0
    max_retries: int = 1
    requests_per_minute: float = 120.0


class LLMSettings(BaseModel):
    """LLM configuration settings."""

    enabled: bool = True
    provider: str = "openai"
    openai: OpenAISettings = OpenAISettings()


class EphemerisSettings(BaseModel):
    """External chart math engine configuration."""

    url: str | None = None
    timeout: float = 15.0
    max_retries: int = 1


class ChartEngineSettings(BaseModel):
    """Chart engine configuration tag.

    Changing any field changes every chart book key.
    """

    house_system: str = "placidus"
    zodiac: str = "tropical"
    schema_version: int = 8


class NumerologyEngineSettings(BaseModel):
    """Numerology engine configuration tag."""

    system: str = "pythagorean"
    config_version: int = 1


class LibrarySettings(BaseModel):
    """Book library behaviour."""

    default_language: str = "en"
    narrative_prompt_version: int = 2
    section_prompt_version: int = 1
    numerology_narrative_prompt_version: int = 1
    lock_ttl_seconds: int = 60
    lock_busy_retry_after_seconds: int = 10
    chart_engine: ChartEngineSettings = ChartEngineSettings()
    numerology_engine: NumerologyEngineSettings = NumerologyEngineSettings()


class RequestGateSettings(BaseModel):
    """Per-caller limits applied to narrative generation attempts."""

    burst_limit: int = 10
    burst_window_seconds: int = 10
    cooldown_seconds: int = 10
    sustained_limit: int = 20
    sustained_window_seconds: int = 3600


class BudgetSettings(BaseModel):
    """Daily LLM spend control."""

    daily_budget_usd: float = Field(default=100.0, ge=0)
    fail_mode: BudgetFailMode = BudgetFailMode.CLOSED
    key_ttl_seconds: int = 172800  # 48 hours


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """Application settings with YAML + environment variable support.

    Configuration is loaded from multiple sources with the following priority
    (highest to lowest):
    1. Environment variables
    2. .env file (secrets only)
    3. Environment-specific YAML files (config/environments/{APP_ENV}/)
    4. Base YAML files (config/base/)
    5. Default values in code

    Environment variables can override any setting using the nested delimiter '__'.
    For example: REQUEST_GATE__COOLDOWN_SECONDS=5 overrides request_gate.cooldown_seconds.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
        case_sensitive=False,
        env_nested_delimiter="__",
    )

    # =========================================================================
    # Environment Selection (from .env)
    # =========================================================================
    APP_ENV: str = "development"

    # =========================================================================
    # Nested Configuration Sections (from YAML)
    # =========================================================================
    app: AppSettings = AppSettings()
    server: ServerSettings = ServerSettings()
    api: ApiSettings = ApiSettings()
    redis: RedisSettings = RedisSettings()
    database: DatabaseSettings = DatabaseSettings()
    rate_limiting: RateLimitingSettings = RateLimitingSettings()
    logging: LoggingSettings = LoggingSettings()
    observability: ObservabilitySettings = ObservabilitySettings()
    llm: LLMSettings = LLMSettings()
    ephemeris: EphemerisSettings = EphemerisSettings()
    library: LibrarySettings = LibrarySettings()
    request_gate: RequestGateSettings = RequestGateSettings()
    budget: BudgetSettings = BudgetSettings()

    # =========================================================================
    # Secrets (from .env only - never in YAML)
    # =========================================================================
    REDIS_PASSWORD: str = ""
    DATABASE_PASSWORD: str = ""
    OPENAI_API_KEY: str = ""
    EPHEMERIS_API_KEY: str = ""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings loading order.

        Priority (highest to lowest):
        1. init_settings - Values passed to Settings()
        2. env_settings - Environment variables
        3. dotenv_settings - .env file (secrets)
        4. yaml_settings - YAML files (base + environment)
        5. file_secret_settings - Docker secrets
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            MultiYamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    # =========================================================================
    # Computed Fields
    # =========================================================================

    def _build_redis_url(self, db: int) -> str:
        """Build Redis connection URL with optional authentication.

        URL format: redis://[user:password@]host:port/db

        Args:
            db: Redis database number

        Returns:
            Redis connection URL string
        """
        auth_part = ""
        if self.redis.user and self.REDIS_PASSWORD:
            auth_part = f"{self.redis.user}:{self.REDIS_PASSWORD}@"
        elif self.REDIS_PASSWORD:
            auth_part = f":{self.REDIS_PASSWORD}@"
        elif self.redis.user:
            auth_part = f"{self.redis.user}@"

        return f"redis://{auth_part}{self.redis.host}:{self.redis.port}/{db}"

    @property
    def redis_cache_url(self) -> str:
        """Redis URL for locks and the budget counter."""
        return self._build_redis_url(self.redis.cache_db)

    @property
    def redis_rate_limit_url(self) -> str:
        """Redis URL for the request gate and the HTTP limiter."""
        return self._build_redis_url(self.redis.rate_limit_db)

    @property
    def database_url(self) -> str:
        """Build PostgreSQL connection URL.

        URL format: postgresql://[user:password@]host:port/database
        """
        auth_part = ""
        if self.database.user and self.DATABASE_PASSWORD:
            auth_part = f"{self.database.user}:{self.DATABASE_PASSWORD}@"
        elif self.database.user:
            auth_part = f"{self.database.user}@"

        return (
            f"postgresql://{auth_part}{self.database.host}:"
            f"{self.database.port}/{self.database.name}"
        )

    # =========================================================================
    # Environment Helpers
    # =========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.APP_ENV == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.APP_ENV == "production"

    @property
    def is_non_production(self) -> bool:
        """Check if running in a non-production environment.

        Returns True for local, test, and development environments where
        API documentation and debug logging should be enabled.
        """
        return self.APP_ENV in ("local", "test", "development")

    @property
    def is_testing(self) -> bool:
        """Check if running in test environment."""
        return self.APP_ENV == "test"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Using lru_cache ensures settings are only loaded once,
    improving performance and consistency.
    """
    return Settings()


# Global settings instance for convenient imports
settings = get_settings()
