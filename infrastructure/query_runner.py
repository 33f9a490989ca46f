# ============================================================================
# BASE QUERY RUNNER
# ============================================================================
# STATUS: Infrastructure - Dialect-agnostic runner state
# PURPOSE: SQL memory mode, cached table/view arena, metadata table statements
# CREATED: 14 OCT 2026
# ============================================================================
"""
Base Query Runner

A query runner owns one connection and the schema state it has loaded.
Schema operations follow the same shape:

1. Resolve the current table from the cache (loading it if needed)
2. Clone it and build (up, down) statement pairs against the clone
3. execute_queries(up, down) - records both, runs up unless in memory mode
4. replace_cached_table(old, clone) - only after step 3 succeeded

A failed statement therefore leaves the cache describing the database as
it still is.

Dialect runners implement connect, release, query, load_tables and
load_views on top of this class.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from core.errors import NotFoundError
from core.logging import ComponentType, get_logger
from core.schema.ddl_utils import Query, SqlInMemory
from core.schema.table import Table
from core.schema.view import View
from infrastructure.broadcaster import Broadcaster

logger = get_logger(__name__, ComponentType.QUERY_RUNNER)

QueryList = Union[Query, Sequence[Query]]


class MetadataTableType(str, Enum):
    """Row kinds stored in the metadata table."""
    GENERATED_COLUMN = "GENERATED_COLUMN"
    VIEW = "VIEW"
    MATERIALIZED_VIEW = "MATERIALIZED_VIEW"


@dataclass
class QueryResult:
    """
    Structured result of one statement.

    raw is what query() returns when structured=False.
    """
    records: List[Dict[str, Any]]
    affected: Optional[int] = None
    raw: Any = None


class BaseQueryRunner:
    """
    State shared by every dialect runner.

    Args:
        driver: Dialect driver that created this runner
        mode: "master" or "slave"; slave reads go to a replica pool
    """

    def __init__(self, driver, mode: str = "master"):
        self.driver = driver
        self.mode = mode
        self.runner_id = uuid.uuid4().hex[:8]
        self.broadcaster = Broadcaster(driver.subscribers)

        self.is_released = False
        self.is_transaction_active = False
        self.transaction_depth = 0

        self.sql_memory_mode = False
        self.sql_in_memory = SqlInMemory()

        # Keyed by schema-qualified table path
        self.loaded_tables: Dict[str, Table] = {}
        self.loaded_views: Dict[str, View] = {}

        # Arbitrary per-runner data for subscribers
        self.data: Dict[str, Any] = {}

    # =========================================================================
    # ABSTRACT
    # =========================================================================

    async def connect(self):
        raise NotImplementedError

    async def release(self, error: Optional[BaseException] = None) -> None:
        raise NotImplementedError

    async def query(self, query: str, parameters: Optional[Sequence[Any]] = None, structured: bool = False):
        raise NotImplementedError

    async def load_tables(self, table_names: Optional[Sequence[str]] = None) -> List[Table]:
        raise NotImplementedError

    async def load_views(self, view_names: Optional[Sequence[str]] = None) -> List[View]:
        raise NotImplementedError

    # =========================================================================
    # SQL MEMORY
    # =========================================================================

    def enable_sql_memory(self) -> None:
        """Record statements without executing them."""
        self.sql_in_memory = SqlInMemory()
        self.sql_memory_mode = True

    def disable_sql_memory(self) -> None:
        self.sql_in_memory = SqlInMemory()
        self.sql_memory_mode = False

    def clear_sql_memory(self) -> None:
        self.sql_in_memory = SqlInMemory()

    def get_memory_sql(self) -> SqlInMemory:
        return self.sql_in_memory

    async def execute_queries(self, up_queries: QueryList, down_queries: QueryList) -> None:
        """
        Record an (up, down) batch and run the up statements in order.

        In SQL memory mode nothing is executed.
        """
        if isinstance(up_queries, Query):
            up_queries = [up_queries]
        if isinstance(down_queries, Query):
            down_queries = [down_queries]

        self.sql_in_memory.up_queries.extend(up_queries)
        self.sql_in_memory.down_queries.extend(down_queries)

        if self.sql_memory_mode:
            return

        for up in up_queries:
            await self.query(up.query, up.parameters)

    # =========================================================================
    # CACHE
    # =========================================================================

    def get_table_path(self, target) -> str:
        return self.driver.get_table_path(target)

    async def get_table(self, table_path: str) -> Optional[Table]:
        """Load one table, replacing the cache with it."""
        tables = await self.load_tables([table_path])
        self.loaded_tables = {self.get_table_path(t): t for t in tables}
        return tables[0] if tables else None

    async def get_tables(self, table_paths: Optional[Sequence[str]] = None) -> List[Table]:
        """Load tables, replacing the cache with them."""
        tables = await self.load_tables(table_paths)
        self.loaded_tables = {self.get_table_path(t): t for t in tables}
        return tables

    async def get_view(self, view_path: str) -> Optional[View]:
        views = await self.load_views([view_path])
        self.loaded_views = {self.get_table_path(v): v for v in views}
        return views[0] if views else None

    async def get_views(self, view_paths: Optional[Sequence[str]] = None) -> List[View]:
        views = await self.load_views(view_paths)
        self.loaded_views = {self.get_table_path(v): v for v in views}
        return views

    def find_loaded_table(self, target) -> Optional[Table]:
        return self.loaded_tables.get(self.get_table_path(target))

    def find_loaded_view(self, target) -> Optional[View]:
        return self.loaded_views.get(self.get_table_path(target))

    async def get_cached_table(self, table_name: str) -> Table:
        """
        Cached table by name, loading it on a miss.

        Raises:
            NotFoundError: If the table does not exist
        """
        path = self.get_table_path(table_name)
        if path in self.loaded_tables:
            return self.loaded_tables[path]

        found = await self.load_tables([table_name])
        if found:
            found_path = self.get_table_path(found[0])
            return self.loaded_tables.setdefault(found_path, found[0])

        raise NotFoundError(
            f'Table "{table_name}" does not exist.',
            object_type="table",
            object_name=table_name,
        )

    async def get_cached_view(self, view_name: str) -> View:
        path = self.get_table_path(view_name)
        if path in self.loaded_views:
            return self.loaded_views[path]

        found = await self.load_views([view_name])
        if found:
            found_path = self.get_table_path(found[0])
            return self.loaded_views.setdefault(found_path, found[0])

        raise NotFoundError(
            f'View "{view_name}" does not exist.',
            object_type="view",
            object_name=view_name,
        )

    async def resolve_table(self, table_or_name: Union[Table, str]) -> Table:
        """Current cached version of a table; a Table not in the cache is used as given."""
        cached = self.find_loaded_table(table_or_name)
        if cached is not None:
            return cached
        if isinstance(table_or_name, Table):
            return table_or_name
        return await self.get_cached_table(table_or_name)

    async def resolve_view(self, view_or_name: Union[View, str]) -> View:
        cached = self.find_loaded_view(view_or_name)
        if cached is not None:
            return cached
        if isinstance(view_or_name, View):
            return view_or_name
        return await self.get_cached_view(view_or_name)

    def replace_cached_table(self, table: Table, changed_table: Table) -> None:
        """Swap the cache entry for table with changed_table (path may differ)."""
        self.loaded_tables.pop(self.get_table_path(table), None)
        self.loaded_tables[self.get_table_path(changed_table)] = changed_table

    def cache_table(self, table: Table) -> None:
        self.loaded_tables[self.get_table_path(table)] = table

    def evict_table(self, table: Table) -> None:
        self.loaded_tables.pop(self.get_table_path(table), None)

    def replace_cached_view(self, view: View, changed_view: View) -> None:
        self.loaded_views.pop(self.get_table_path(view), None)
        self.loaded_views[self.get_table_path(changed_view)] = changed_view

    def cache_view(self, view: View) -> None:
        self.loaded_views[self.get_table_path(view)] = view

    def evict_view(self, view: View) -> None:
        self.loaded_views.pop(self.get_table_path(view), None)

    # =========================================================================
    # METADATA TABLE
    # =========================================================================

    def get_metadata_table_name(self) -> str:
        options = self.driver.options
        return self.driver.build_table_name(
            options.sync.metadata_table_name, options.schema, options.database
        )

    def _metadata_table_path(self) -> str:
        parts = self.get_metadata_table_name().split(".")
        return ".".join(self.driver.escape(part) for part in parts)

    @staticmethod
    def _metadata_fields(
        type: MetadataTableType,
        name: Optional[str],
        database: Optional[str],
        schema: Optional[str],
        table: Optional[str],
    ) -> Dict[str, Any]:
        fields = {"type": type.value if isinstance(type, Enum) else type}
        if database:
            fields["database"] = database
        if schema:
            fields["schema"] = schema
        if table:
            fields["table"] = table
        if name:
            fields["name"] = name
        return fields

    def insert_metadata_sql(
        self,
        type: MetadataTableType,
        name: Optional[str] = None,
        value: Optional[str] = None,
        database: Optional[str] = None,
        schema: Optional[str] = None,
        table: Optional[str] = None,
    ) -> Query:
        fields = self._metadata_fields(type, name, database, schema, table)
        if value is not None:
            fields["value"] = value
        columns = ", ".join(self.driver.escape(column) for column in fields)
        placeholders = ", ".join(["%s"] * len(fields))
        return Query(
            f"INSERT INTO {self._metadata_table_path()}({columns}) VALUES ({placeholders})",
            list(fields.values()),
        )

    def delete_metadata_sql(
        self,
        type: MetadataTableType,
        name: Optional[str] = None,
        database: Optional[str] = None,
        schema: Optional[str] = None,
        table: Optional[str] = None,
    ) -> Query:
        fields = self._metadata_fields(type, name, database, schema, table)
        conditions = " AND ".join(f"{self.driver.escape(column)} = %s" for column in fields)
        return Query(
            f"DELETE FROM {self._metadata_table_path()} WHERE {conditions}",
            list(fields.values()),
        )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "BaseQueryRunner",
    "MetadataTableType",
    "QueryResult",
]
