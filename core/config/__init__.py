# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 14 OCT 2026
# ============================================================================
"""
Configuration Module

Provides connection options and defaults for schema synchronization.
"""

from core.config.defaults import (
    TransactionMode,
    UuidExtension,
    PoolDefaults,
    SyncDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)
from core.config.connection import (
    PostgresConnectionOptions,
    get_connection_string,
    mask_conninfo,
)

__all__ = [
    "TransactionMode",
    "UuidExtension",
    "PoolDefaults",
    "SyncDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
    "PostgresConnectionOptions",
    "get_connection_string",
    "mask_conninfo",
]
