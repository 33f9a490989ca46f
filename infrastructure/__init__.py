# ============================================================================
# INFRASTRUCTURE MODULE
# ============================================================================
# STATUS: Infrastructure - PostgreSQL driver, query runner, schema builder
# PURPOSE: Everything that talks to the database
# CREATED: 14 OCT 2026
# ============================================================================
"""
Infrastructure module for pgsync.

Provides:
- PostgresDriver: Pools, type normalization, naming
- PostgresQueryRunner: Transactions, introspection, DDL operations
- SchemaBuilder: Declared model to live schema diff
- DatabaseInitializer: Connect, plan, build and verify with step results

Usage:
    from infrastructure import DatabaseInitializer

    initializer = DatabaseInitializer()
    result = await initializer.synchronize([User, Post], dry_run=True)
    print("\\n".join(result.plan))
"""

from infrastructure.broadcaster import Broadcaster, QueryEvent, TransactionEvent
from infrastructure.postgres_driver import PostgresDriver
from infrastructure.postgres_query_runner import PostgresQueryRunner
from infrastructure.schema_builder import SchemaBuilder
from infrastructure.database_initializer import (
    DatabaseInitializer,
    InitializationResult,
    StepResult,
    synchronize_database,
    synchronize_database_async,
)

__all__ = [
    # Driver and runner
    'PostgresDriver',
    'PostgresQueryRunner',
    'Broadcaster',
    'QueryEvent',
    'TransactionEvent',
    # Synchronization
    'SchemaBuilder',
    'DatabaseInitializer',
    'InitializationResult',
    'StepResult',
    'synchronize_database',
    'synchronize_database_async',
]
