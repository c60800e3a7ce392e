"""
Runtime settings for the credential vault and the Notion client.

Each section is a pydantic model whose defaults are read from the environment
when the model is built, so ``AppConfig()`` reflects the environment at that
moment. ``AppConfig.from_env`` additionally loads a ``.env`` file without
overriding variables that are already set.
"""

import os
from typing import Callable, Optional, TypeVar

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, field_validator

from .constants import CacheTTL, EnvironmentVariable, Limits, LogLevel, NotionApi, Timeouts

T = TypeVar("T")


def _env(variable: EnvironmentVariable, default: T, cast: Callable[[str], T] = str) -> Callable[[], T]:
    """default_factory reading ``variable``, falling back to ``default`` when unset or empty."""

    def factory() -> T:
        value = os.getenv(variable.value)
        return cast(value) if value else default

    return factory


class DatabaseConfig(BaseModel):
    """Where credentials are stored. Pool settings apply to non-SQLite backends."""

    connection_string: str = Field(
        default_factory=_env(EnvironmentVariable.DATABASE_URL, "sqlite:///./notion_vault.db")
    )
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    echo: bool = Field(default=False, description="Echo SQL statements")


class LoggingConfig(BaseModel):
    level: str = Field(default_factory=_env(EnvironmentVariable.LOG_LEVEL, LogLevel.INFO.value))
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @field_validator("level")
    def validate_log_level(cls, v: str) -> str:
        if v.upper() not in LogLevel.__members__:
            raise ValueError(f"Invalid log level: {v}. Must be one of {list(LogLevel.__members__)}")
        return v.upper()


class SecurityConfig(BaseModel):
    encryption_master_key: Optional[SecretStr] = Field(
        default_factory=_env(EnvironmentVariable.ENCRYPTION_MASTER_KEY, None, SecretStr),
        description="Master secret both encryption sub-keys are derived from",
    )


class NotionApiConfig(BaseModel):
    """Notion REST API connection settings."""

    base_url: str = NotionApi.BASE_URL
    api_version: str = Field(
        default_factory=_env(EnvironmentVariable.NOTION_API_VERSION, NotionApi.VERSION),
        description="Value sent in the Notion-Version header",
    )
    timeout_seconds: float = Field(default=Timeouts.EXTERNAL_API_CALL, gt=0)
    user_agent: str = NotionApi.USER_AGENT


class RateLimitConfig(BaseModel):
    """Per app+workspace sliding window."""

    requests_per_minute: int = Field(
        default_factory=_env(
            EnvironmentVariable.NOTION_RATE_LIMIT_PER_MINUTE,
            Limits.RATE_LIMIT_REQUESTS_PER_MINUTE,
            int,
        ),
        gt=0,
    )
    window_seconds: float = Field(default=Limits.RATE_LIMIT_WINDOW_SECONDS, gt=0)
    safety_buffer_seconds: float = Field(
        default=Limits.RATE_LIMIT_SAFETY_BUFFER_SECONDS,
        ge=0,
        description="Extra delay added after the oldest request leaves the window",
    )

    @field_validator("requests_per_minute")
    def validate_below_hard_limit(cls, v: int) -> int:
        if v > NotionApi.HARD_LIMIT_PER_MINUTE:
            raise ValueError(
                f"requests_per_minute must not exceed {NotionApi.HARD_LIMIT_PER_MINUTE}"
            )
        return v


class CacheConfig(BaseModel):
    """Response cache lifetimes in seconds, per call site."""

    database_query_ttl: int = Field(default=CacheTTL.DATABASE_QUERY, ge=0)
    search_ttl: int = Field(default=CacheTTL.SEARCH, ge=0)
    page_ttl: int = Field(default=CacheTTL.PAGE, ge=0)
    page_property_ttl: int = Field(default=CacheTTL.PAGE_PROPERTY, ge=0)
    blocks_ttl: int = Field(default=CacheTTL.BLOCKS, ge=0)


class AppConfig(BaseModel):
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    notion: NotionApiConfig = Field(default_factory=NotionApiConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "AppConfig":
        """Build from the environment after loading ``dotenv_path`` (or a discovered ``.env``)."""
        load_dotenv(dotenv_path, override=False)
        return cls()


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Process-wide configuration, built from the environment on first use."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    global _config
    _config = config


def reset_config() -> None:
    global _config
    _config = None
