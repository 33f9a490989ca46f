# ============================================================================
# CONNECTION OPTIONS
# ============================================================================
# STATUS: Core - PostgreSQL connection configuration
# PURPOSE: Resolve conninfo, replicas and sync options from the environment
# CREATED: 14 OCT 2026
# ============================================================================
"""
Connection Options

Resolves the master connection string, optional read replicas and the
per-connection synchronization options.

Connection string priority:
1. Explicit conninfo argument
2. DATABASE_URL environment variable
3. Individual POSTGRES_* components

Usage:
    from core.config.connection import PostgresConnectionOptions

    options = PostgresConnectionOptions.from_env()
    driver = PostgresDriver(options)
"""

import os
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from core.config.defaults import PoolDefaults, SyncDefaults, get_defaults


def get_connection_string() -> str:
    """
    Get database connection string from environment.

    Returns:
        PostgreSQL connection string
    """
    if url := os.environ.get("DATABASE_URL"):
        return url

    host = os.environ.get("POSTGRES_HOST", "localhost")
    port = os.environ.get("POSTGRES_PORT", "5432")
    name = os.environ.get("POSTGRES_DB", "postgres")
    user = os.environ.get("POSTGRES_USER", "postgres")
    password = os.environ.get("POSTGRES_PASSWORD", "")
    sslmode = os.environ.get("POSTGRES_SSLMODE", "require")

    return f"postgresql://{user}:{password}@{host}:{port}/{name}?sslmode={sslmode}"


def mask_conninfo(conninfo: str) -> str:
    """Strip credentials from a connection string for logging."""
    if "@" in conninfo:
        # URL format
        scheme, _, rest = conninfo.partition("://")
        host_part = rest.split("@")[-1]
        return f"{scheme}://***@{host_part}" if scheme and rest else host_part
    if "password=" in conninfo:
        # Key-value format
        parts = []
        for token in conninfo.split():
            if token.startswith("password="):
                parts.append("password=***")
            else:
                parts.append(token)
        return " ".join(parts)
    return conninfo


@dataclass(frozen=True)
class PostgresConnectionOptions:
    """
    Options for one PostgreSQL data source.

    Attributes:
        conninfo: Master connection string
        replicas: Read replica connection strings (slave mode)
        database: Database name; resolved from the server when None
        schema: Target schema; defaults to the server search schema
        pool: Pool sizing applied to every pool
        sync: Synchronization and logging options
    """
    conninfo: str
    replicas: Tuple[str, ...] = ()
    database: Optional[str] = None
    schema: Optional[str] = None
    pool: PoolDefaults = field(default_factory=PoolDefaults)
    sync: SyncDefaults = field(default_factory=SyncDefaults)

    @property
    def is_replicated(self) -> bool:
        return len(self.replicas) > 0

    @property
    def safe_conninfo(self) -> str:
        return mask_conninfo(self.conninfo)

    def with_overrides(self, **changes) -> "PostgresConnectionOptions":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    @classmethod
    def from_env(cls, conninfo: Optional[str] = None) -> "PostgresConnectionOptions":
        """Create from environment variables."""
        defaults = get_defaults()
        replicas = tuple(
            url.strip()
            for url in os.getenv("POSTGRES_REPLICA_URLS", "").split(",")
            if url.strip()
        )
        return cls(
            conninfo=conninfo or get_connection_string(),
            replicas=replicas,
            database=os.getenv("PGSYNC_DATABASE") or None,
            schema=os.getenv("PGSYNC_SCHEMA") or None,
            pool=defaults.pool,
            sync=defaults.sync,
        )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "get_connection_string",
    "mask_conninfo",
    "PostgresConnectionOptions",
]
