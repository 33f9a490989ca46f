# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for pools, query logging and synchronization
# CREATED: 14 OCT 2026
# ============================================================================
"""
Configuration Defaults

Provides defaults for connection pooling and schema synchronization.
These can be overridden via environment variables or explicit options.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Type-safe access
"""

import os
from dataclasses import dataclass, field
from typing import Optional
from enum import Enum


class TransactionMode(str, Enum):
    """How SchemaBuilder.build() wraps its statements."""
    ALL = "all"
    NONE = "none"


class UuidExtension(str, Enum):
    """Extension that provides the uuid default expression."""
    UUID_OSSP = "uuid-ossp"
    PGCRYPTO = "pgcrypto"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class PoolDefaults:
    """
    Defaults for psycopg_pool connection pools.

    Applied to the master pool and to each replica pool.
    """
    min_size: int = 1
    max_size: int = 10
    timeout_seconds: float = 30.0
    application_name: str = "pgsync"

    @classmethod
    def from_env(cls) -> "PoolDefaults":
        """Create from environment variables."""
        return cls(
            min_size=int(os.getenv("PGSYNC_POOL_MIN_SIZE", 1)),
            max_size=int(os.getenv("PGSYNC_POOL_MAX_SIZE", 10)),
            timeout_seconds=float(os.getenv("PGSYNC_POOL_TIMEOUT", 30.0)),
            application_name=os.getenv("PGSYNC_APPLICATION_NAME", "pgsync"),
        )


@dataclass(frozen=True)
class SyncDefaults:
    """
    Defaults for schema synchronization.

    Controls the metadata table, transaction wrapping and query logging.
    """
    metadata_table_name: str = "schema_sync_metadata"
    transaction_mode: str = TransactionMode.ALL.value
    uuid_extension: str = UuidExtension.UUID_OSSP.value
    install_extensions: bool = True

    # Query logging
    log_queries: bool = False
    log_errors: bool = True
    log_schema_build: bool = True
    max_query_execution_time_ms: Optional[int] = None

    # Savepoint names are "{prefix}_{depth}"
    savepoint_prefix: str = "pgsync_savepoint"

    @classmethod
    def from_env(cls) -> "SyncDefaults":
        """Create from environment variables."""
        slow = os.getenv("PGSYNC_MAX_QUERY_EXECUTION_TIME_MS")
        return cls(
            metadata_table_name=os.getenv("PGSYNC_METADATA_TABLE", "schema_sync_metadata"),
            transaction_mode=os.getenv("PGSYNC_TRANSACTION_MODE", TransactionMode.ALL.value),
            uuid_extension=os.getenv("PGSYNC_UUID_EXTENSION", UuidExtension.UUID_OSSP.value),
            install_extensions=_env_bool("PGSYNC_INSTALL_EXTENSIONS", True),
            log_queries=_env_bool("PGSYNC_LOG_QUERIES", False),
            log_errors=_env_bool("PGSYNC_LOG_ERRORS", True),
            log_schema_build=_env_bool("PGSYNC_LOG_SCHEMA_BUILD", True),
            max_query_execution_time_ms=int(slow) if slow else None,
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    pool: PoolDefaults = field(default_factory=PoolDefaults)
    sync: SyncDefaults = field(default_factory=SyncDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            pool=PoolDefaults.from_env(),
            sync=SyncDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "TransactionMode",
    "UuidExtension",
    "PoolDefaults",
    "SyncDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
