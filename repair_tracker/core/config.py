"""Environment-driven configuration for the repair tracker.

Every tunable the server and the sync client rely on lives here so nobody has
to hunt for magic strings. Values come from the process environment or a
``.env`` file and fall back to defaults that let the app boot in development
without extra setup.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Configuration shared by the HTTP server and the sync client."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Repair Tracker"

    # Where documents are persisted and where browser assets are served from.
    DATA_DIR: Path = Path("./data")
    STATIC_DIR: Path = Path(".")

    HOST: str = "0.0.0.0"
    PORT: int = 3000

    LOG_LEVEL: str = "INFO"

    # Outbound messages buffered per live channel before it is torn down.
    SYNC_QUEUE_SIZE: int = Field(default=256, ge=1)
    DEFAULT_DATA_FILE: str = "repairs.json"

    # Client agent timings (seconds). Both are fixed delays, never grown.
    CLIENT_RECONNECT_DELAY: float = Field(default=3.0, gt=0)
    CLIENT_REQUEST_RETRY_DELAY: float = Field(default=1.0, gt=0)

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, value: object) -> str:
        if value in (None, ""):
            return "INFO"
        return str(value).strip().upper()

    @property
    def resolved_data_dir(self) -> Path:
        return self.DATA_DIR.expanduser().resolve()

    @property
    def resolved_static_dir(self) -> Path:
        return self.STATIC_DIR.expanduser().resolve()


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return AppSettings()


__all__ = ["AppSettings", "get_settings"]
