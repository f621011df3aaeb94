"""Application settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``SHIELDSYNC_``, nested via ``__``)
2. YAML config file (``SHIELDSYNC_CONFIG_PATH`` env var or ``AppConfig.from_yaml``)
3. Defaults defined here
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Enums for validated choices
# ---------------------------------------------------------------------------


class StorageEngine(enum.StrEnum):
    """Supported durable storage backends."""

    MEMORY = "memory"
    SQL = "sql"
    REDIS = "redis"


class Commitment(enum.StrEnum):
    """Ledger RPC commitment levels."""

    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"


# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class IndexerConfig(BaseSettings):
    """Remote ledger indexer settings."""

    model_config = SettingsConfigDict(
        env_prefix="SHIELDSYNC_INDEXER__",
        case_sensitive=False,
    )

    url: str = "https://api3.privacycash.org"
    timeout: float = 30.0
    page_size: int = Field(default=20_000, gt=0)
    page_delay: float = Field(
        default=0.02,
        ge=0.0,
        description="Pause between page fetches, in seconds",
    )


class LedgerConfig(BaseSettings):
    """Ledger RPC node settings."""

    model_config = SettingsConfigDict(
        env_prefix="SHIELDSYNC_LEDGER__",
        case_sensitive=False,
    )

    rpc_url: str = "https://api.mainnet-beta.solana.com"
    program_id: str = "9fhQBbumKEFuXtMBDw8AaQyAjCorLGJQiS3skWZdQyQD"
    commitment: Commitment = Commitment.CONFIRMED
    timeout: float = 30.0
    max_accounts_per_request: int = Field(default=100, gt=0)


class StorageConfig(BaseSettings):
    """Persistent key-value storage settings."""

    model_config = SettingsConfigDict(
        env_prefix="SHIELDSYNC_STORAGE__",
        case_sensitive=False,
    )

    engine: StorageEngine = Field(
        default=StorageEngine.SQL,
        description="Durable backend: memory, sql or redis",
    )
    dsn: str = Field(
        default="sqlite+aiosqlite:///./shielded_sync.db",
        description="Async database connection string for the sql engine",
    )
    url: str = "redis://localhost:6379/0"
    key_namespace: str = ""
    max_connections: int = 10
    max_idle_connections: int = 5
    debug_sql: bool = False


class RetryConfig(BaseSettings):
    """Retry policy for spent-status checks.

    ``max_attempts = None`` retries forever.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHIELDSYNC_RETRY__",
        case_sensitive=False,
    )

    max_attempts: int | None = Field(default=None, gt=0)
    delay: float = Field(default=3.0, ge=0.0)
    backoff: float = Field(default=1.0, ge=1.0)
    max_delay: float = Field(default=60.0, ge=0.0)


class MetricsConfig(BaseSettings):
    """Prometheus metrics settings."""

    model_config = SettingsConfigDict(
        env_prefix="SHIELDSYNC_METRICS__",
        case_sensitive=False,
    )

    enabled: bool = True


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file and return its contents as a dict.

    Returns an empty dict if the file doesn't exist or is empty.
    """
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


class AppConfig(BaseSettings):
    """Top-level configuration.

    Loads settings from environment variables (``SHIELDSYNC_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHIELDSYNC_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    config_path: str = ""

    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        yaml_data = _load_yaml(config_path)
        # YAML values serve as defaults; env vars (already in *values*) win.
        for key, val in yaml_data.items():
            if key not in values or values[key] is None:
                values[key] = val
            elif isinstance(val, dict) and isinstance(values.get(key), dict):
                merged = {**val, **values[key]}
                values[key] = merged
        return values

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Construct ``AppConfig`` loading defaults from a YAML file.

        Environment variables still override YAML values.
        """
        return cls(config_path=str(path))
