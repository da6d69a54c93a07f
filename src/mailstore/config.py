"""Configuration management for mailstore.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the MAILSTORE_ prefix (e.g., MAILSTORE_TMP_DIR).
    """

    model_config = SettingsConfigDict(
        env_prefix="MAILSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # MIME decoding
    charset_conversion: bool = Field(
        default=False,
        description="Convert text/plain parts with a non UTF-8 charset to UTF-8",
    )
    recovery_skip_lines: int = Field(
        default=2,
        ge=0,
        description="Leading lines discarded when a message fails to parse",
    )
    recovery_scan_limit: int = Field(
        default=1024,
        ge=1,
        description="Maximum bytes scanned while discarding leading lines",
    )

    # Attachment rebuild
    tmp_dir: Path = Field(
        default=Path("/tmp"),
        description="Directory used for temporary files while rebuilding messages",
    )

    # Remote-mail helper process
    proxy_socket_path: Path | None = Field(
        default=None,
        description="Unix socket of the remote-mail helper process",
    )
    proxy_timeout: float = Field(
        default=30.0,
        description="Timeout for a single proxy request in seconds",
    )
    proxy_connect_retries: int = Field(
        default=2,
        description="Connection retries before a proxy request is given up",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode (logs at DEBUG regardless of log_level)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
