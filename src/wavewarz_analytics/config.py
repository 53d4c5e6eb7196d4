"""Environment-driven settings for the WaveWarz analytics core.

Each concern (database, Redis, Solana endpoints, retry policy, scan bounds)
is its own settings group with an env prefix; `get_settings()` returns the
process-wide instance.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Literal, TypeVar

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from solders.pubkey import Pubkey
from sqlalchemy.engine import make_url

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"

DEFAULT_PROGRAM_ID = "9TUfEHvk5fN5vogtQyrefgNqzKy2Bqb4nWVhSFUg2fYo"


class DatabaseSettings(BaseSettings):
    """Battle registry database."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        alias="DATABASE_URL",
        description="PostgreSQL (or local SQLite) connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "sqlite:///", "sqlite+aiosqlite:///")):
            raise ValueError("DATABASE_URL must be a PostgreSQL or SQLite connection string")
        return v


class RedisSettings(BaseSettings):
    """Redis instance used for trader profile caching."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        default="redis://localhost:6379",
        alias="REDIS_URL",
        description="Redis connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must be a redis:// or rediss:// URL")
        return v


class SolanaSettings(BaseSettings):
    """Solana RPC and transaction-history API settings."""

    model_config = SettingsConfigDict(env_prefix="SOLANA_", extra="ignore")

    rpc_url: str = Field(
        default="https://mainnet.helius-rpc.com",
        alias="SOLANA_RPC_URL",
        description="JSON-RPC endpoint used for raw account reads",
    )
    transactions_api_url: str = Field(
        default="https://api-mainnet.helius-rpc.com",
        alias="SOLANA_TRANSACTIONS_API_URL",
        description="Base URL of the enhanced transaction-history API",
    )
    api_key: SecretStr | None = Field(
        default=None,
        alias="SOLANA_API_KEY",
        description="API key appended as ?api-key=... to both endpoints",
    )
    program_id: str = Field(
        default=DEFAULT_PROGRAM_ID,
        alias="SOLANA_PROGRAM_ID",
        description="Battle program id (base58)",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        alias="SOLANA_REQUEST_TIMEOUT_SECONDS",
        gt=0,
        le=300,
        description="Per-request HTTP timeout",
    )
    max_requests_per_second: float = Field(
        default=10.0,
        alias="SOLANA_MAX_REQUESTS_PER_SECOND",
        gt=0,
        le=1000,
        description="Client-side request rate limit",
    )

    @field_validator("rpc_url", "transactions_api_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate endpoint URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Solana endpoints must be HTTP(S) URLs")
        return v.rstrip("/")

    @field_validator("program_id")
    @classmethod
    def validate_program_id(cls, v: str) -> str:
        """Validate the program id is a base58 public key."""
        try:
            Pubkey.from_string(v)
        except Exception as e:
            raise ValueError(f"SOLANA_PROGRAM_ID is not a valid public key: {e}") from e
        return v


class RetrySettings(BaseSettings):
    """Backoff policy shared by every outbound HTTP call."""

    model_config = SettingsConfigDict(env_prefix="RETRY_", extra="ignore")

    max_attempts: int = Field(
        default=6,
        alias="RETRY_MAX_ATTEMPTS",
        ge=1,
        le=20,
        description="Total attempts per request (first try included)",
    )
    base_delay_seconds: float = Field(
        default=2.0,
        alias="RETRY_BASE_DELAY_SECONDS",
        ge=0,
        le=60,
        description="Initial backoff delay, doubled after each failed attempt",
    )


class ScanSettings(BaseSettings):
    """Bounds and cache lifetimes for battle and trader scans."""

    model_config = SettingsConfigDict(env_prefix="SCAN_", extra="ignore")

    snapshot_cache_ttl_seconds: int = Field(
        default=300,
        alias="SCAN_SNAPSHOT_CACHE_TTL_SECONDS",
        ge=1,
        le=24 * 3600,
        description="In-memory battle snapshot TTL (also the summary freshness window)",
    )
    battle_page_size: int = Field(
        default=50,
        alias="SCAN_BATTLE_PAGE_SIZE",
        ge=1,
        le=100,
        description="Transactions per history page when scanning a battle",
    )
    battle_max_transactions: int = Field(
        default=100,
        alias="SCAN_BATTLE_MAX_TRANSACTIONS",
        ge=1,
        le=10_000,
        description="Transaction cap per battle scan (older trades are undercounted)",
    )
    trader_page_size: int = Field(
        default=100,
        alias="SCAN_TRADER_PAGE_SIZE",
        ge=1,
        le=100,
        description="Transactions per history page when scanning a wallet",
    )
    trader_max_pages: int = Field(
        default=10,
        alias="SCAN_TRADER_MAX_PAGES",
        ge=1,
        le=100,
        description="Page cap per wallet scan (longer histories are truncated)",
    )
    leaderboard_max_transactions: int = Field(
        default=50,
        alias="SCAN_LEADERBOARD_MAX_TRANSACTIONS",
        ge=1,
        le=10_000,
        description="Transaction cap per battle when building the trader leaderboard",
    )
    trader_profile_cache_ttl_seconds: int = Field(
        default=300,
        alias="SCAN_TRADER_PROFILE_CACHE_TTL_SECONDS",
        ge=1,
        le=7 * 24 * 3600,
        description="Redis TTL for cached trader profiles",
    )
    rescan_after_hours: int = Field(
        default=24,
        alias="SCAN_RESCAN_AFTER_HOURS",
        ge=0,
        le=24 * 365,
        description="Batch scans skip battles scanned more recently than this",
    )
    batch_limit: int = Field(
        default=50,
        alias="SCAN_BATCH_LIMIT",
        ge=1,
        le=200,
        description="Maximum battles scanned per batch run",
    )


_GroupT = TypeVar("_GroupT", bound=BaseSettings)


def _group(cls: type[_GroupT]) -> Any:
    # Nested groups only see `.env` when it is passed to them explicitly.
    return Field(default_factory=lambda: cls(_env_file=_ENV_FILE, _env_file_encoding=_ENV_FILE_ENCODING))


class Settings(BaseSettings):
    """All settings groups plus the log level.

    Example:
        ```python
        from wavewarz_analytics.config import get_settings

        settings = get_settings()
        print(settings.solana.program_id, settings.scan.battle_max_transactions)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    database: DatabaseSettings = _group(DatabaseSettings)
    redis: RedisSettings = _group(RedisSettings)
    solana: SolanaSettings = _group(SolanaSettings)
    retry: RetrySettings = _group(RetrySettings)
    scan: ScanSettings = _group(ScanSettings)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
    )

    def get_logging_level(self) -> int:
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Settings as strings, safe to log: URL passwords and the API key are masked."""
        return {
            "database_url": _hide_password(self.database.url),
            "redis_url": _hide_password(self.redis.url),
            "solana": {
                "rpc_url": self.solana.rpc_url,
                "transactions_api_url": self.solana.transactions_api_url,
                "api_key": "***" if self.solana.api_key else "(not set)",
                "program_id": self.solana.program_id,
            },
            "retry": {
                "max_attempts": str(self.retry.max_attempts),
                "base_delay_seconds": str(self.retry.base_delay_seconds),
            },
            "scan": {
                "snapshot_cache_ttl_seconds": str(self.scan.snapshot_cache_ttl_seconds),
                "battle_max_transactions": str(self.scan.battle_max_transactions),
                "trader_max_pages": str(self.scan.trader_max_pages),
                "batch_limit": str(self.scan.batch_limit),
            },
            "log_level": self.log_level,
        }


def _hide_password(url: str) -> str:
    return make_url(url).render_as_string(hide_password=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process.

    Raises:
        ValidationError: If DATABASE_URL is missing or a value is invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Forget the loaded settings so the next `get_settings()` re-reads the environment."""
    get_settings.cache_clear()
