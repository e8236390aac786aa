"""Application configuration via pydantic-settings."""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from labledger.exceptions import ConfigError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Blob store gateway (JSON-RPC)
    store_url: str = ""
    store_timeout_s: float = 30.0

    # Default signing account for the CLI
    account: str = ""

    # Read retries (reads are free and side-effect-free; writes are never retried)
    read_retries: int = 2
    read_retry_base_delay_s: float = 0.5

    # Transaction status auto-dismiss
    success_display_s: float = 2.0
    error_display_s: float = 3.0
    info_display_s: float = 3.0

    # Identifier generation
    id_collision_retries: int = 3

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    @field_validator(
        "store_timeout_s",
        "read_retries",
        "read_retry_base_delay_s",
        "success_display_s",
        "error_display_s",
        "info_display_s",
        "id_collision_retries",
    )
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ConfigError(f"must be >= 0, got {value}")
        return value

    @property
    def store_configured(self) -> bool:
        return bool(self.store_url)
