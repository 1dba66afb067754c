"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_prefix: str = "/api"

    # MongoDB
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "surveypulse"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # JWT Settings
    jwt_secret_key: str = "your-super-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 30

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Rate Limiting
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 60

    # LLM Settings
    llm_provider: str = "gemini"  # "gemini", "openai" or "anthropic"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-haiku-20240307"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    llm_timeout_seconds: float = 20.0
    llm_max_tokens: int = 400

    # Post-response job queue
    queue_name: str = "post-response-processing"
    queue_concurrency: int = 5
    queue_max_attempts: int = 3
    queue_backoff_delay_seconds: float = 5.0
    queue_backoff_base: int = 2
    queue_shutdown_grace_seconds: float = 30.0
    queue_poll_timeout_seconds: int = 1
    embedded_worker: bool = True

    # SLA tables (hours)
    sla_due_hours: dict[str, int] = {
        "high": 4,
        "medium": 24,
        "low": 72,
        "long-term": 24 * 30,
    }
    sla_default_due_hours: int = 48
    sla_reminder_hours: dict[str, int] = {"high": 4, "medium": 24, "low": 48}
    sla_default_reminder_hours: int = 24

    # Background sweeps
    escalation_sweep_minutes: int = 15
    alert_sweep_minutes: int = 60
    alert_window_hours: int = 24
    alert_threshold: int = 3

    # Contact stats
    stats_max_retries: int = 5
    count_anonymous_responses: bool = True

    # Invites
    invite_expiry_days: int = 30
    invite_max_attempts: int = 5

    # IP geolocation
    geo_lookup_url: str = "http://ip-api.com/json/{ip}"
    geo_lookup_timeout_seconds: float = 2.0

    # Segments
    segment_cache_ttl_seconds: int = 300

    # Rule catalog (JSON file replacing the built-in catalog)
    rule_catalog_path: str = ""

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            import json

            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",")]
        return v

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
