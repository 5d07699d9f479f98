"""Settings for the matchmaker backend."""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_field(default, *env_names: str):
    if env_names:
        alias = AliasChoices(*env_names) if len(env_names) > 1 else env_names[0]
        return Field(default=default, validation_alias=alias)
    return Field(default=default)


class Settings(BaseSettings):
    redis_url: str = _env_field("redis://localhost:6379/0", "REDIS_URL")

    # Presence channel shared by every connected client
    presence_channel_name: str = _env_field("global", "PRESENCE_CHANNEL")
    presence_block_ms: int = _env_field(1000, "PRESENCE_BLOCK_MS")
    presence_stream_maxlen: int = 10000
    # Members whose heartbeat is older than the TTL are treated as gone
    presence_ttl_seconds: float = _env_field(30.0, "PRESENCE_TTL_SECONDS")
    presence_keepalive_interval_seconds: float = _env_field(10.0, "PRESENCE_KEEPALIVE_INTERVAL_SECONDS")
    presence_sweeper_interval_seconds: float = 15.0

    # Manual status persistence and change feed
    status_hash_key: str = "user_status"
    status_stream_key: str = "user_status:changes"
    status_feed_block_ms: int = _env_field(5000, "STATUS_FEED_BLOCK_MS")
    # Optimistic writes not confirmed by the feed within this window are re-synced
    status_optimistic_ttl_seconds: float = _env_field(30.0, "STATUS_OPTIMISTIC_TTL_SECONDS")
    status_sweeper_interval_seconds: float = 10.0

    # Score used when either side has not completed the trait test
    match_cold_start_score: int = 50
    match_schedule_threshold: int = 60
    match_schedule_max_bonus: float = 0.025

    environment: str = _env_field("production", "ENV", "APP_ENV", "ENVIRONMENT")
    obs_enabled: bool = _env_field(True, "OBS_ENABLED")
    obs_log_level: str = _env_field("INFO", "LOG_LEVEL")
    obs_log_sampling_rate_info: float = _env_field(1.0, "LOG_SAMPLING_RATE_INFO")
    service_name: str = _env_field("matchmaker-api", "SERVICE_NAME")
    git_commit: str = _env_field("unknown", "GIT_COMMIT", "COMMIT_SHA", "SOURCE_VERSION")

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("obs_log_level", mode="before")
    def _normalise_level(cls, value: Optional[str]):  # type: ignore[override]
        if not value:
            return "INFO"
        return str(value).strip().upper()


settings = Settings()
