"""Configuration management using Pydantic Settings."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Fixed policy values, not exposed as settings
CREDENTIAL_LOCKOUT_MS = 24 * 60 * 60 * 1000
LOW_QUOTA_THRESHOLD = 5


class Credential(BaseModel):
    """One authenticated X session (cookie pair plus optional identity)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    auth_token: str = Field(..., alias="authToken", min_length=1)
    ct0: str = Field(..., min_length=1)
    username: str | None = None
    user_id: str | None = Field(default=None, alias="userId")

    @field_validator("auth_token", "ct0", mode="before")
    @classmethod
    def strip_token(cls, v: Any) -> Any:
        """Strip whitespace pasted along with cookie values."""
        return v.strip() if isinstance(v, str) else v

    def masked(self) -> str:
        """Return a short, log-safe label for this credential."""
        if self.username:
            return f"@{self.username}"
        return f"{self.auth_token[:6]}…"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="XFETCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Credentials
    credentials: list[Credential] = Field(default_factory=list)

    # Proxy configuration
    proxy: str | None = None
    proxy_file: Path | None = None
    proxy_max_failures: int = 3
    proxy_cooldown_ms: int = 5 * 60 * 1000

    # Request settings
    request_timeout_ms: int = 30_000
    jitter_ms: int = 200
    page_delay_ms: int = 1000
    page_retries: int = 3
    query_id_ttl_ms: int = 24 * 60 * 60 * 1000

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # "json" or "console"

    # Paths
    config_dir: Path = Path.home() / ".config" / "xfetch"

    @field_validator("credentials", mode="before")
    @classmethod
    def parse_credentials(cls, v: Any) -> list[Credential]:
        """Parse credentials from JSON string or list."""
        if isinstance(v, str):
            if not v.strip() or v == "[]":
                return []
            try:
                parsed = json.loads(v)
            except json.JSONDecodeError:
                return []
            return [Credential.model_validate(c) for c in parsed]
        if isinstance(v, list):
            return [Credential.model_validate(c) if isinstance(c, dict) else c for c in v]
        return []

    @property
    def query_id_cache_path(self) -> Path:
        return self.config_dir / "query-ids.json"

    @property
    def session_path(self) -> Path:
        return self.config_dir / "session.json"

    def ensure_dirs(self) -> None:
        """Create required directories if they don't exist."""
        self.config_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()
    settings.ensure_dirs()
    return settings
