"""Application configuration via environment variables.

Provides type-safe settings loading using pydantic-settings.
Environment variables can be loaded from a .env file.
"""

from typing import Optional
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server settings loaded from environment variables.

    All settings have sensible defaults for development.
    The settings object is passed explicitly to the server and the mailbox
    store; nothing reads it as a module global.

    Environment Variables:
        SMTP_HOST: Bind address
        SMTP_PORT: Listen port
        SMTP_ACCEPTED_DOMAIN: Recipient suffix this server stores mail for
        MAILBOX_ROOT: Directory holding one subdirectory per recipient
        SMTP_MAX_CONNECTIONS: Concurrent session cap (0 disables the cap)
        SMTP_IDLE_TIMEOUT: Seconds to wait for a line (0 disables the deadline)
        SMTP_MAX_LINE_LENGTH: Stream buffer limit for one line, in bytes
        SMTP_SHUTDOWN_GRACE: Seconds in-flight sessions get on shutdown
        METRICS_PORT: Serve Prometheus metrics on this port when set
        LOG_LEVEL: Logging level (default INFO)
        LOG_JSON: Emit JSON log lines (default True)
    """

    # SMTP listener
    SMTP_HOST: str = "0.0.0.0"
    SMTP_PORT: int = 2525
    SMTP_ACCEPTED_DOMAIN: str = "@hk.com"

    # Resource policy
    SMTP_MAX_CONNECTIONS: int = 100
    SMTP_IDLE_TIMEOUT: float = 300.0
    SMTP_MAX_LINE_LENGTH: int = 65_536
    SMTP_SHUTDOWN_GRACE: float = 10.0

    # Mailbox storage
    MAILBOX_ROOT: str = "./mailbox"

    # Observability
    METRICS_PORT: Optional[int] = None
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache for singleton behavior.
    Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
