"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Remote agent platform
    swarmnode_base_url: str = Field(
        default="https://api.swarmnode.ai",
        validation_alias=AliasChoices("swarmnode_base_url", "swarmnode_base"),
    )
    swarmnode_api_key: str | None = None

    # Agent identifiers, one per pipeline stage / sport
    ingest_agent_id: str | None = None
    nfl_ingest_agent_id: str | None = None
    optimizer_agent_id: str | None = None
    learner_agent_id: str | None = None

    # CORS - comma-separated list of allowed origins
    cors_origins: str = "*"

    # Logging
    log_level: str = "INFO"

    # "development" exposes tracebacks in 500 responses
    environment: str = "production"

    # Upstream request timeout in seconds
    http_timeout: float = 30.0

    # Result polling
    chain_max_depth: int = 5
    recent_jobs_limit: int = 10
    learner_poll_attempts: int = 5
    learner_poll_delay: float = 2.0  # seconds between learner polls

    # Cache TTL in seconds for jobs that reached a terminal state
    job_cache_ttl: int = 300

    # Tracked slates kept in memory for the dashboard
    performance_history_size: int = 100

    @field_validator("swarmnode_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
