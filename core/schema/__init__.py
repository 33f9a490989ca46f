# ============================================================================
# CLAUDE CONTEXT - SCHEMA MODULE
# ============================================================================
# STATUS: Schema model exports
# PURPOSE: Database-side tables, views, constraints and naming
# LAST_REVIEWED: 14 OCT 2026
# ============================================================================
"""
Schema Module - Database-Side Model

Tables and views as they exist in the catalog, plus the statement
primitives and naming strategies used to change them.
"""

from core.schema.column import TableColumn
from core.schema.constraints import (
    TableIndex,
    TableUnique,
    TableCheck,
    TableExclusion,
    TableForeignKey,
)
from core.schema.table import Table
from core.schema.view import View
from core.schema.naming import NamingStrategy, DefaultNamingStrategy, HashedNamingStrategy
from core.schema.ddl_utils import Query, SqlInMemory

__all__ = [
    "TableColumn",
    "TableIndex",
    "TableUnique",
    "TableCheck",
    "TableExclusion",
    "TableForeignKey",
    "Table",
    "View",
    "NamingStrategy",
    "DefaultNamingStrategy",
    "HashedNamingStrategy",
    "Query",
    "SqlInMemory",
]
