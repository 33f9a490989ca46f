# ============================================================================
# CLAUDE CONTEXT - DDL UTILITIES
# ============================================================================
# STATUS: Core - Statement primitives shared by runner and builder
# PURPOSE: Query/SqlInMemory pairs, identifier and literal quoting, type map
# LAST_REVIEWED: 14 OCT 2026
# EXPORTS: Query, SqlInMemory, escape_identifier, quote_literal, escape_comment, TYPE_MAP
# ============================================================================
"""
DDL Utilities - Shared Statement Primitives.

Every schema change is recorded as an (up, down) pair of Query objects.
Up statements run in order; the down statements, replayed in reverse,
restore the previous schema.

Usage:
    from core.schema.ddl_utils import Query, escape_identifier

    up = Query(f'ALTER TABLE {escape_identifier("post")} ADD "body" text')
    down = Query('ALTER TABLE "post" DROP COLUMN "body"')
"""

import datetime
import decimal
import uuid
from dataclasses import dataclass, field
from typing import Any, List, Optional


# ============================================================================
# STATEMENTS
# ============================================================================

@dataclass
class Query:
    """One SQL statement with optional %s parameters."""
    query: str
    parameters: Optional[List[Any]] = None

    def __str__(self) -> str:
        return self.query


@dataclass
class SqlInMemory:
    """
    Statements captured while the runner is in SQL memory mode.

    down_queries are stored pairwise with up_queries; apply them reversed.
    """
    up_queries: List[Query] = field(default_factory=list)
    down_queries: List[Query] = field(default_factory=list)

    def reversed_down_queries(self) -> List[Query]:
        return list(reversed(self.down_queries))

    def to_dict(self) -> dict:
        return {
            "up": [q.query for q in self.up_queries],
            "down": [q.query for q in self.reversed_down_queries()],
        }


# ============================================================================
# QUOTING
# ============================================================================

def escape_identifier(name: str) -> str:
    """Double-quote an identifier, doubling embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: str) -> str:
    """Single-quote a string literal, doubling embedded quotes."""
    return "'" + str(value).replace("'", "''") + "'"


def escape_comment(comment: Optional[str]) -> str:
    """
    Render a comment for COMMENT ON.

    Returns:
        NULL for empty comments, otherwise a quoted literal without NUL bytes
    """
    if not comment:
        return "NULL"
    return "'" + comment.replace("'", "''").replace("\x00", "") + "'"


# ============================================================================
# TYPE MAPPING
# ============================================================================

TYPE_MAP = {
    # Python native types
    str: "character varying",
    int: "integer",
    float: "double precision",
    bool: "boolean",
    bytes: "bytea",
    dict: "jsonb",
    datetime.datetime: "timestamp without time zone",
    datetime.date: "date",
    datetime.time: "time without time zone",
    decimal.Decimal: "numeric",
    uuid.UUID: "uuid",
}


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "Query",
    "SqlInMemory",
    "escape_identifier",
    "quote_literal",
    "escape_comment",
    "TYPE_MAP",
]
