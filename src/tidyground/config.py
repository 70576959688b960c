"""Configuration management using Pydantic Settings.

Settings are read from environment variables prefixed
with ``TIDYGROUND_``, for example ``TIDYGROUND_DISPLAY_MAX_ROWS=50``.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Library settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TIDYGROUND_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Display
    display_max_rows: int = Field(default=20, ge=1)
    display_max_width: int = Field(default=30, ge=4)

    # Reading files, None lets pyarrow pick the block size.
    csv_block_size: int | None = Field(default=None, gt=0)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    log_format: Literal["json", "console"] = "console"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
