"""Runtime settings.

Values come from constructor overrides (the CLI), then ``FLAGSYNC_*``
environment variables, then an optional ``.env`` file. The instance is frozen
and handed explicitly to provider construction and to the runtime.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Provider selection
    service_provider: str = "http"
    sync_provider: str = "filepath"
    evaluator: str = "json"

    # Sync source
    uri: str = ""  # filepath or URL depending on sync_provider
    bearer_token: str = ""
    remote_poll_interval_seconds: float = Field(default=300.0, gt=0)
    file_poll_interval_seconds: float = Field(default=1.0, gt=0)
    file_watch_notifications: bool = True
    http_timeout_seconds: float = Field(default=10.0, gt=0)

    # Service
    host: str = "0.0.0.0"  # nosec B104
    port: int = Field(default=8080, ge=0, le=65535)
    socket_path: Optional[str] = None

    # Runtime
    shutdown_timeout_seconds: float = Field(default=10.0, gt=0)

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    model_config = SettingsConfigDict(
        env_prefix="FLAGSYNC_",
        env_file=".env",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @field_validator("service_provider", "sync_provider", "evaluator")
    @classmethod
    def _strip_provider_name(cls, value: str) -> str:
        return value.strip()

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.strip().upper()
