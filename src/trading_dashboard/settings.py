from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Server
    database_url: str = Field(
        default="sqlite+aiosqlite:///trading_dashboard.db",
        validation_alias="DATABASE_URL",
    )
    service_prefix: str = Field(default="/api", validation_alias="SERVICE_PREFIX")

    # Deployment key shared by server and clients (not a user secret)
    anon_key: str = Field(default="", validation_alias="DASHBOARD_ANON_KEY")

    # Client
    api_base_url: str = Field(default="http://127.0.0.1:8000/api", validation_alias="DASHBOARD_API_URL")
    request_timeout_seconds: float | None = Field(
        default=None,
        validation_alias="REQUEST_TIMEOUT_SECONDS",
    )

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_file: str = Field(default="", validation_alias="LOG_FILE")

    def normalized_prefix(self) -> str:
        prefix = self.service_prefix.strip().rstrip("/")
        if prefix and not prefix.startswith("/"):
            prefix = f"/{prefix}"
        return prefix
