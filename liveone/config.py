"""
Service configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Both the HTTP API and the polling daemon read the same Settings; vendor
secrets and database URLs only ever come from the environment or a .env file.

CHANGELOG:
- 2026-10-14: Add CORS_ORIGINS and HEALTH_PATH
- 2026-10-12: Initial creation

TODO:
- None
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class Settings(BaseSettings):
    """LiveOne configuration.

    All values are loaded from environment variables. Vendor credentials
    for individual systems live in the database; only application-level
    secrets (OAuth client, API key, cron secret) are configured here.

    Attributes:
        database_url: SQLAlchemy async URL. SQLite (aiosqlite) for local
            development, PostgreSQL (asyncpg) in production.
        redis_url: Redis URL for the latest-reading cache.
        environment: ``production`` or ``development``. Development allows
            unauthenticated cron triggers when no CRON_SECRET is set.
        cron_secret: Bearer secret required by the cron poll endpoint.
        api_tokens: Comma-separated ``token:owner_id`` pairs for read access.
        enphase_api_key: Enphase developer API key (``key`` header).
        enphase_client_id: OAuth client id used for token refresh.
        enphase_client_secret: OAuth client secret used for token refresh.
        enphase_base_url: Enphase API base URL (must be HTTPS).
        selectronic_base_url: Select.Live base URL (must be HTTPS).
        http_timeout_s: Timeout for outbound vendor requests.
        cache_ttl_s: TTL in seconds for cached latest readings.
        health_path: Path of the daemon's JSON health file.
        log_level: Root log level.
        cors_origins: Comma-separated origins allowed by CORS.
    """

    database_url: str = "sqlite+aiosqlite:///./liveone.db"
    redis_url: str = "redis://localhost:6379/0"
    environment: str = "production"
    cron_secret: str = ""
    api_tokens: str = ""
    enphase_api_key: str = ""
    enphase_client_id: str = ""
    enphase_client_secret: str = ""
    enphase_base_url: str = "https://api.enphaseenergy.com"
    selectronic_base_url: str = "https://select.live"
    http_timeout_s: float = 30.0
    cache_ttl_s: int = 60
    health_path: str = "/data/health.json"
    log_level: str = "INFO"
    cors_origins: str = ""

    @property
    def is_development(self) -> bool:
        """True when running in the development environment."""
        return self.environment == "development"

    @property
    def cors_origin_list(self) -> list[str]:
        """CORS origins split into a list, blanks removed."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @field_validator("enphase_base_url", "selectronic_base_url")
    @classmethod
    def vendor_url_must_be_https(cls, v: str) -> str:
        """Vendor APIs carry credentials, so only HTTPS is accepted."""
        if not v.lower().startswith("https://"):
            raise ValueError(f"Vendor base URL must use HTTPS (got: '{v[:30]}...')")
        return v.rstrip("/")

    @field_validator("environment")
    @classmethod
    def environment_must_be_known(cls, v: str) -> str:
        """Validate ENVIRONMENT is production or development."""
        v = v.strip().lower()
        if v not in ("production", "development"):
            raise ValueError("ENVIRONMENT must be 'production' or 'development'")
        return v

    @field_validator("cache_ttl_s")
    @classmethod
    def cache_ttl_must_be_positive(cls, v: int) -> int:
        """Validate the cache TTL is at least one second."""
        if v < 1:
            raise ValueError("CACHE_TTL_S must be >= 1")
        return v

    @field_validator("http_timeout_s")
    @classmethod
    def http_timeout_must_be_positive(cls, v: float) -> float:
        """Validate the outbound HTTP timeout is positive."""
        if v <= 0:
            raise ValueError("HTTP_TIMEOUT_S must be > 0")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate LOG_LEVEL names a standard logging level."""
        v = v.strip().upper()
        if v not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}")
        return v

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings instance."""
    return Settings()
