"""Database engine factory — SQLite by default, any async SQLAlchemy DSN.

Provides async SQLAlchemy engine creation with support for:
- SQLite (aiosqlite driver)
- Server databases (e.g. PostgreSQL via asyncpg) with pool settings
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

if TYPE_CHECKING:
    from shielded_sync.config.settings import StorageConfig


def create_engine(config: StorageConfig) -> AsyncEngine:
    """Create an async SQLAlchemy engine from storage configuration.

    Args:
        config: Storage configuration with DSN, pool settings, etc.

    Returns:
        A configured ``AsyncEngine`` ready for use.
    """
    kwargs: dict = {
        "echo": config.debug_sql,
    }

    # SQLite doesn't support pool settings in the same way
    if "sqlite" not in config.dsn:
        kwargs["pool_size"] = config.max_idle_connections
        kwargs["max_overflow"] = max(config.max_connections - config.max_idle_connections, 0)
        kwargs["pool_pre_ping"] = True

    return create_async_engine(config.dsn, **kwargs)
