# ============================================================================
# POSTGRESQL QUERY RUNNER
# ============================================================================
# STATUS: Infrastructure - Connection, transactions and DDL operations
# PURPOSE: Apply schema changes as reversible (up, down) statement pairs
# CREATED: 14 OCT 2026
# ============================================================================
"""
PostgreSQL Query Runner

One runner owns one pooled connection for its lifetime. It tracks nested
transactions through savepoints, wraps driver errors in QueryFailedError,
and implements every schema operation the schema builder needs.

Each DDL operation:
- validates its targets against the cached table (NotFoundError before any SQL)
- builds up and down statements against a clone of the cached table
- runs the up statements (or only records them in SQL memory mode)
- swaps the clone into the cache

Usage:
    runner = driver.create_query_runner()
    try:
        await runner.start_transaction()
        await runner.add_column("post", TableColumn(name="body", type="text", default="''"))
        await runner.commit_transaction()
    except Exception:
        await runner.rollback_transaction()
        raise
    finally:
        await runner.release()
"""

import asyncio
import re
import time
from typing import Any, List, Optional, Sequence, Tuple, Union

import psycopg

from core.errors import (
    NotFoundError,
    QueryFailedError,
    QueryRunnerAlreadyReleasedError,
    TransactionNotStartedError,
    UnsupportedOperationError,
)
from core.logging import ComponentType, get_logger
from core.schema.column import TableColumn
from core.schema.constraints import (
    TableCheck,
    TableExclusion,
    TableForeignKey,
    TableIndex,
    TableUnique,
)
from core.schema.ddl_utils import Query
from core.schema.table import Table
from core.schema.view import View
from infrastructure.broadcaster import QueryEvent, TransactionEvent
from infrastructure.postgres_ddl import PostgresDDLMixin
from infrastructure.postgres_introspection import PostgresIntrospectionMixin
from infrastructure.query_runner import BaseQueryRunner, MetadataTableType, QueryResult

logger = get_logger(__name__, ComponentType.QUERY_RUNNER)

ISOLATION_LEVELS = ("READ UNCOMMITTED", "READ COMMITTED", "REPEATABLE READ", "SERIALIZABLE")

ColumnPair = Tuple[TableColumn, TableColumn]


def _is_enum(column: TableColumn) -> bool:
    return column.type in ("enum", "simple-enum")


class PostgresQueryRunner(PostgresIntrospectionMixin, PostgresDDLMixin, BaseQueryRunner):
    """Query runner for PostgreSQL over a psycopg async connection."""

    def __init__(self, driver, mode: str = "master"):
        super().__init__(driver, mode)
        self.query_logger = driver.query_logger
        self.database_connection = None
        self._connection_future: Optional[asyncio.Future] = None
        self._release_callback = None

    # =========================================================================
    # CONNECTION
    # =========================================================================

    async def connect(self):
        """
        Obtain the runner's connection, once.

        Concurrent callers share the same in-flight acquisition.
        """
        if self.database_connection is not None:
            return self.database_connection
        if self._connection_future is None:
            self._connection_future = asyncio.ensure_future(self._open_connection())
        return await self._connection_future

    async def _open_connection(self):
        try:
            if self.mode == "slave" and self.driver.is_replicated:
                connection, release = await self.driver.obtain_slave_connection()
            else:
                connection, release = await self.driver.obtain_master_connection()
        except Exception:
            self._connection_future = None
            raise

        self.driver.connected_query_runners.append(self)
        self.database_connection = connection
        self._release_callback = release
        logger.debug(f"runner {self.runner_id} connected ({self.mode})")
        return connection

    async def release(self, error: Optional[BaseException] = None) -> None:
        """
        Return the connection to its pool. Idempotent.

        Args:
            error: Connection-level error; the connection is discarded instead of reused
        """
        if self.is_released:
            return
        self.is_released = True

        callback, self._release_callback = self._release_callback, None
        if callback is not None:
            await callback(error)

        if self in self.driver.connected_query_runners:
            self.driver.connected_query_runners.remove(self)
        self.database_connection = None
        logger.debug(f"runner {self.runner_id} released")

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def _savepoint(self, depth: int) -> str:
        return f"{self.driver.options.sync.savepoint_prefix}_{depth}"

    def _transaction_event(self, isolation_level: Optional[str] = None) -> TransactionEvent:
        return TransactionEvent(depth=self.transaction_depth, isolation_level=isolation_level, query_runner=self)

    async def start_transaction(self, isolation_level: Optional[str] = None) -> None:
        """
        Begin a transaction, or a savepoint when one is already open.

        Args:
            isolation_level: Applied to the outermost transaction only
        """
        if isolation_level is not None and isolation_level.upper() not in ISOLATION_LEVELS:
            raise UnsupportedOperationError(
                f"Unknown isolation level: {isolation_level}", operation="start_transaction"
            )

        self.is_transaction_active = True
        try:
            await self.broadcaster.before_transaction_start(self._transaction_event(isolation_level))
        except Exception:
            self.is_transaction_active = False
            raise

        if self.transaction_depth == 0:
            try:
                await self.query("START TRANSACTION")
                if isolation_level:
                    await self.query(f"SET TRANSACTION ISOLATION LEVEL {isolation_level.upper()}")
            except Exception:
                self.is_transaction_active = False
                raise
        else:
            await self.query(f'SAVEPOINT "{self._savepoint(self.transaction_depth)}"')

        self.transaction_depth += 1
        await self.broadcaster.after_transaction_start(self._transaction_event(isolation_level))

    async def commit_transaction(self) -> None:
        """Commit the innermost level: release its savepoint, or COMMIT at depth 1."""
        if not self.is_transaction_active:
            raise TransactionNotStartedError("commit")

        await self.broadcaster.before_transaction_commit(self._transaction_event())

        if self.transaction_depth > 1:
            await self.query(f'RELEASE SAVEPOINT "{self._savepoint(self.transaction_depth - 1)}"')
        else:
            await self.query("COMMIT")
            self.is_transaction_active = False

        self.transaction_depth -= 1
        await self.broadcaster.after_transaction_commit(self._transaction_event())

    async def rollback_transaction(self) -> None:
        """Roll back the innermost level: to its savepoint, or ROLLBACK at depth 1."""
        if not self.is_transaction_active:
            raise TransactionNotStartedError("rollback")

        await self.broadcaster.before_transaction_rollback(self._transaction_event())

        if self.transaction_depth > 1:
            await self.query(f'ROLLBACK TO SAVEPOINT "{self._savepoint(self.transaction_depth - 1)}"')
        else:
            await self.query("ROLLBACK")
            self.is_transaction_active = False

        self.transaction_depth -= 1
        await self.broadcaster.after_transaction_rollback(self._transaction_event())

    # =========================================================================
    # QUERY
    # =========================================================================

    async def query(self, query: str, parameters: Optional[Sequence[Any]] = None, structured: bool = False):
        """
        Execute one statement.

        Args:
            query: SQL text; %s placeholders when parameters are given
            parameters: Positional parameters
            structured: Return a QueryResult instead of the raw rows

        Returns:
            Rows as dicts; [rows, affected] for DELETE and UPDATE; or QueryResult

        Raises:
            QueryRunnerAlreadyReleasedError: After release()
            QueryFailedError: When the driver rejects the statement
        """
        if self.is_released:
            raise QueryRunnerAlreadyReleasedError()

        connection = await self.connect()

        self.query_logger.log_query(query, parameters)
        await self.broadcaster.before_query(QueryEvent(query=query, parameters=parameters, query_runner=self))

        started = time.monotonic()
        try:
            async with connection.cursor() as cursor:
                await cursor.execute(query, parameters)
                rows = await cursor.fetchall() if cursor.description is not None else []
                rowcount = cursor.rowcount
                status = cursor.statusmessage or ""
        except psycopg.Error as e:
            elapsed_ms = (time.monotonic() - started) * 1000
            self.query_logger.log_query_error(e, query, parameters)
            await self.broadcaster.after_query(QueryEvent(
                query=query,
                parameters=parameters,
                success=False,
                execution_time_ms=elapsed_ms,
                error=e,
                query_runner=self,
            ))
            if connection.broken or connection.closed:
                await self.release(e)
            raise QueryFailedError(query, parameters, e) from e

        elapsed_ms = (time.monotonic() - started) * 1000
        await self.broadcaster.after_query(QueryEvent(
            query=query,
            parameters=parameters,
            success=True,
            execution_time_ms=elapsed_ms,
            raw_results=rows,
            query_runner=self,
        ))

        max_time = self.driver.options.sync.max_query_execution_time_ms
        if max_time and elapsed_ms > max_time:
            self.query_logger.log_query_slow(elapsed_ms, query, parameters)

        affected = rowcount if rowcount is not None and rowcount >= 0 else None
        result = QueryResult(records=rows, affected=affected)
        command = status.split(" ")[0].upper()
        result.raw = [rows, affected] if command in ("DELETE", "UPDATE") else rows

        return result if structured else result.raw

    # =========================================================================
    # CATALOG CHECKS
    # =========================================================================

    async def get_current_database(self) -> str:
        rows = await self.query("SELECT * FROM current_database()")
        return rows[0]["current_database"]

    async def get_current_schema(self) -> str:
        rows = await self.query("SELECT * FROM current_schema()")
        return rows[0]["current_schema"]

    async def get_version(self) -> Optional[str]:
        rows = await self.query("SELECT version()")
        match = re.match(r"^PostgreSQL ([\d.]+)", rows[0]["version"])
        return match.group(1) if match else None

    async def has_database(self, database: str) -> bool:
        rows = await self.query('SELECT * FROM "pg_database" WHERE "datname" = %s', [database])
        return len(rows) > 0

    async def has_schema(self, schema: str) -> bool:
        rows = await self.query(
            'SELECT * FROM "information_schema"."schemata" WHERE "schema_name" = %s', [schema]
        )
        return len(rows) > 0

    async def _schema_and_name(self, target) -> Tuple[str, str]:
        parsed = self.driver.parse_table_name(target)
        schema = parsed["schema"] or await self.get_current_schema()
        return schema, parsed["table_name"]

    async def has_table(self, table_or_name: Union[Table, str]) -> bool:
        schema, name = await self._schema_and_name(table_or_name)
        rows = await self.query(
            'SELECT * FROM "information_schema"."tables" WHERE "table_schema" = %s AND "table_name" = %s',
            [schema, name],
        )
        return len(rows) > 0

    async def has_column(self, table_or_name: Union[Table, str], column_name: str) -> bool:
        schema, name = await self._schema_and_name(table_or_name)
        rows = await self.query(
            'SELECT * FROM "information_schema"."columns" '
            'WHERE "table_schema" = %s AND "table_name" = %s AND "column_name" = %s',
            [schema, name, column_name],
        )
        return len(rows) > 0

    async def has_enum_type(self, table: Table, column: TableColumn) -> bool:
        schema, _ = await self._schema_and_name(table)
        enum_name = self.build_enum_name(table, column, with_schema=False, disable_escape=True)
        rows = await self.query(
            'SELECT "n"."nspname", "t"."typname" FROM "pg_type" "t" '
            'INNER JOIN "pg_namespace" "n" ON "n"."oid" = "t"."typnamespace" '
            'WHERE "n"."nspname" = %s AND "t"."typname" = %s',
            [schema, enum_name],
        )
        return len(rows) > 0

    async def get_user_defined_type_name(self, table: Table, column: TableColumn) -> Tuple[str, str]:
        """
        (schema, name) of the type backing a column.

        Array types are reported as _name; the underscore is stripped.
        """
        schema, name = await self._schema_and_name(table)
        rows = await self.query(
            'SELECT "udt_schema", "udt_name" FROM "information_schema"."columns" '
            'WHERE "table_schema" = %s AND "table_name" = %s AND "column_name" = %s',
            [schema, name, column.name],
        )
        if not rows:
            raise NotFoundError(
                f'Column "{column.name}" was not found in table "{table.name}"',
                object_type="column",
                object_name=column.name,
                table_name=table.name,
            )
        udt_name = rows[0]["udt_name"]
        if udt_name.startswith("_"):
            udt_name = udt_name[1:]
        return rows[0]["udt_schema"], udt_name

    async def has_support_for_partitioned_tables(self) -> bool:
        rows = await self.query(
            'SELECT TRUE FROM "information_schema"."columns" '
            "WHERE \"table_name\" = 'pg_class' AND \"column_name\" = 'relispartition'"
        )
        return len(rows) > 0

    # =========================================================================
    # DATABASES AND SCHEMAS
    # =========================================================================

    async def create_database(self, database: str, if_not_exist: bool = False) -> None:
        if self.is_transaction_active:
            raise UnsupportedOperationError(
                "CREATE DATABASE cannot run inside a transaction block", operation="create_database"
            )
        if if_not_exist and await self.has_database(database):
            return
        await self.execute_queries(
            Query(f'CREATE DATABASE "{database}"'),
            Query(f'DROP DATABASE "{database}"'),
        )

    async def drop_database(self, database: str, if_exist: bool = False) -> None:
        if self.is_transaction_active:
            raise UnsupportedOperationError(
                "DROP DATABASE cannot run inside a transaction block", operation="drop_database"
            )
        if_exist_sql = "IF EXISTS " if if_exist else ""
        await self.execute_queries(
            Query(f'DROP DATABASE {if_exist_sql}"{database}"'),
            Query(f'CREATE DATABASE "{database}"'),
        )

    async def create_schema(self, schema_path: str, if_not_exist: bool = False) -> None:
        schema = schema_path.split(".")[-1]
        if_not_exist_sql = "IF NOT EXISTS " if if_not_exist else ""
        await self.execute_queries(
            Query(f'CREATE SCHEMA {if_not_exist_sql}"{schema}"'),
            Query(f'DROP SCHEMA "{schema}" CASCADE'),
        )

    async def drop_schema(self, schema_path: str, if_exist: bool = False, is_cascade: bool = False) -> None:
        schema = schema_path.split(".")[-1]
        sql = f'DROP SCHEMA {"IF EXISTS " if if_exist else ""}"{schema}"'
        if is_cascade:
            sql += " CASCADE"
        await self.execute_queries(Query(sql), Query(f'CREATE SCHEMA "{schema}"'))

    # =========================================================================
    # METADATA ROWS
    # =========================================================================

    async def _generated_column_queries(self, table: Table, column: TableColumn) -> Tuple[Query, Query]:
        """(insert, delete) statements for a STORED column's expression row."""
        schema, table_name = await self._schema_and_name(table)
        insert = self.insert_metadata_sql(
            MetadataTableType.GENERATED_COLUMN,
            name=column.name,
            value=column.as_expression,
            database=self.driver.database,
            schema=schema,
            table=table_name,
        )
        delete = self.delete_metadata_sql(
            MetadataTableType.GENERATED_COLUMN,
            name=column.name,
            database=self.driver.database,
            schema=schema,
            table=table_name,
        )
        return insert, delete

    async def _view_definition_queries(self, view: View) -> Tuple[Query, Query]:
        """(insert, delete) statements for a view's definition row."""
        schema, name = await self._schema_and_name(view)
        view_type = MetadataTableType.MATERIALIZED_VIEW if view.materialized else MetadataTableType.VIEW
        insert = self.insert_metadata_sql(view_type, name=name, value=view.get_expression(), schema=schema)
        delete = self.delete_metadata_sql(view_type, name=name, schema=schema)
        return insert, delete

    # =========================================================================
    # TABLES
    # =========================================================================

    async def create_table(
        self,
        table: Table,
        if_not_exist: bool = False,
        create_foreign_keys: bool = True,
        create_indices: bool = True,
    ) -> None:
        """
        Create a table with its enum types, constraints, indices and comment.

        The created table is added to the cache.
        """
        if if_not_exist and await self.has_table(table):
            return

        table = table.clone()
        up_queries: List[Query] = []
        down_queries: List[Query] = []

        created_enums = set()
        for column in table.columns:
            if not _is_enum(column):
                continue
            enum_name = self.build_enum_name(table, column)
            if enum_name in created_enums or await self.has_enum_type(table, column):
                continue
            created_enums.add(enum_name)
            up_queries.append(self.create_enum_type_sql(table, column))
            down_queries.append(self.drop_enum_type_sql(table, column))

        for column in table.columns:
            if column.generated_type == "STORED" and column.as_expression:
                insert, delete = await self._generated_column_queries(table, column)
                up_queries.append(insert)
                down_queries.append(delete)

        up_queries.append(self.create_table_sql(table, create_foreign_keys))
        down_queries.append(self.drop_table_sql(table))

        if create_foreign_keys:
            for fk in table.foreign_keys:
                down_queries.append(self.drop_foreign_key_sql(table, fk))
        else:
            table.foreign_keys = []

        if create_indices:
            for index in table.indices:
                index.name = index.name or self.naming_strategy.index_name(table, index.column_names, index.where)
                up_queries.append(self.create_index_sql(table, index))
                down_queries.append(self.drop_index_sql(table, index))
        else:
            table.indices = []

        if table.comment:
            up_queries.append(self.table_comment_sql(table, table.comment))
            down_queries.append(self.table_comment_sql(table, None))

        await self.execute_queries(up_queries, down_queries)
        table.just_created = True
        self.cache_table(table)

    async def drop_table(
        self,
        target: Union[Table, str],
        if_exist: bool = False,
        drop_foreign_keys: bool = True,
        drop_indices: bool = True,
    ) -> None:
        if if_exist and not await self.has_table(target):
            return

        table = (await self.resolve_table(target)).clone()
        up_queries: List[Query] = []
        down_queries: List[Query] = []

        if drop_indices:
            for index in table.indices:
                up_queries.append(self.drop_index_sql(table, index))
                down_queries.append(self.create_index_sql(table, index))

        if drop_foreign_keys:
            for fk in table.foreign_keys:
                up_queries.append(self.drop_foreign_key_sql(table, fk))

        up_queries.append(self.drop_table_sql(table))
        down_queries.append(self.create_table_sql(table.clone(), drop_foreign_keys))

        for column in table.columns:
            if column.generated_type and column.as_expression:
                insert, delete = await self._generated_column_queries(table, column)
                up_queries.append(delete)
                down_queries.append(insert)

        await self.execute_queries(up_queries, down_queries)
        self.evict_table(table)

    async def rename_table(self, old_table_or_name: Union[Table, str], new_table_name: str) -> None:
        """
        Rename a table and every default-named object derived from its name.

        Primary key, sequences, uniques, indices, foreign keys and enum
        types are renamed only when their current name is the one the
        naming strategy gives for the old table.
        """
        old_table = await self.resolve_table(old_table_or_name)
        new_table = old_table.clone()
        parsed = self.driver.parse_table_name(old_table)
        schema, old_table_name = parsed["schema"], parsed["table_name"]
        new_table.name = f"{schema}.{new_table_name}" if schema else new_table_name

        up_queries: List[Query] = []
        down_queries: List[Query] = []
        new_path = self.escape_path(new_table)

        up_queries.append(Query(f'ALTER TABLE {self.escape_path(old_table)} RENAME TO "{new_table_name}"'))
        down_queries.append(Query(f'ALTER TABLE {new_path} RENAME TO "{old_table_name}"'))

        primary_columns = new_table.primary_columns
        if primary_columns and not primary_columns[0].primary_key_constraint_name:
            column_names = [c.name for c in primary_columns]
            old_pk = self.naming_strategy.primary_key_name(old_table, column_names)
            new_pk = self.naming_strategy.primary_key_name(new_table, column_names)
            up_queries.append(Query(f'ALTER TABLE {new_path} RENAME CONSTRAINT "{old_pk}" TO "{new_pk}"'))
            down_queries.append(Query(f'ALTER TABLE {new_path} RENAME CONSTRAINT "{new_pk}" TO "{old_pk}"'))

        for column in new_table.columns:
            if not (column.is_generated and column.generation_strategy == "increment"):
                continue
            sequence_path = self.build_sequence_path(old_table, column.name)
            sequence_name = self.build_sequence_name(old_table, column.name)
            new_sequence_path = self.build_sequence_path(new_table, column.name)
            new_sequence_name = self.build_sequence_name(new_table, column.name)
            up_queries.append(Query(f'ALTER SEQUENCE {self.escape_path(sequence_path)} RENAME TO "{new_sequence_name}"'))
            down_queries.append(Query(f'ALTER SEQUENCE {self.escape_path(new_sequence_path)} RENAME TO "{sequence_name}"'))

        for unique in new_table.uniques:
            if unique.name != self.naming_strategy.unique_constraint_name(old_table, unique.column_names):
                continue
            new_name = self.naming_strategy.unique_constraint_name(new_table, unique.column_names)
            up_queries.append(Query(f'ALTER TABLE {new_path} RENAME CONSTRAINT "{unique.name}" TO "{new_name}"'))
            down_queries.append(Query(f'ALTER TABLE {new_path} RENAME CONSTRAINT "{new_name}" TO "{unique.name}"'))
            unique.name = new_name

        index_schema = self.driver.parse_table_name(new_table)["schema"]
        for index in new_table.indices:
            if index.name != self.naming_strategy.index_name(old_table, index.column_names, index.where):
                continue
            new_name = self.naming_strategy.index_name(new_table, index.column_names, index.where)
            up_queries.append(Query(self._rename_index_sql(index_schema, index.name, new_name)))
            down_queries.append(Query(self._rename_index_sql(index_schema, new_name, index.name)))
            index.name = new_name

        for fk in new_table.foreign_keys:
            fk_path = self.get_table_path(fk)
            if fk.name != self.naming_strategy.foreign_key_name(old_table, fk.column_names, fk_path, fk.referenced_column_names):
                continue
            new_name = self.naming_strategy.foreign_key_name(new_table, fk.column_names, fk_path, fk.referenced_column_names)
            up_queries.append(Query(f'ALTER TABLE {new_path} RENAME CONSTRAINT "{fk.name}" TO "{new_name}"'))
            down_queries.append(Query(f'ALTER TABLE {new_path} RENAME CONSTRAINT "{new_name}" TO "{fk.name}"'))
            fk.name = new_name

        for column in new_table.columns:
            if not _is_enum(column) or column.enum_name:
                continue
            udt_schema, udt_name = await self.get_user_defined_type_name(old_table, column)
            up_queries.append(Query(
                f'ALTER TYPE "{udt_schema}"."{udt_name}" RENAME TO {self.build_enum_name(new_table, column, with_schema=False)}'
            ))
            down_queries.append(Query(
                f'ALTER TYPE {self.build_enum_name(new_table, column)} RENAME TO "{udt_name}"'
            ))

        await self.execute_queries(up_queries, down_queries)
        self.replace_cached_table(old_table, new_table)

    @staticmethod
    def _rename_index_sql(schema: Optional[str], old_name: str, new_name: str) -> str:
        if schema:
            return f'ALTER INDEX "{schema}"."{old_name}" RENAME TO "{new_name}"'
        return f'ALTER INDEX "{old_name}" RENAME TO "{new_name}"'

    async def change_table_comment(self, table_or_name: Union[Table, str], new_comment: Optional[str] = None) -> None:
        table = await self.resolve_table(table_or_name)
        if self.escape_comment(new_comment) == self.escape_comment(table.comment):
            return

        new_table = table.clone()
        new_table.comment = new_comment or None
        await self.execute_queries(
            self.table_comment_sql(new_table, new_comment),
            self.table_comment_sql(table, table.comment),
        )
        self.replace_cached_table(table, new_table)

    # =========================================================================
    # VIEWS
    # =========================================================================

    async def create_view(self, view: View, sync_with_metadata: bool = False) -> None:
        up_queries = [self.create_view_sql(view)]
        down_queries = [self.drop_view_sql(view)]
        if sync_with_metadata:
            insert, delete = await self._view_definition_queries(view)
            up_queries.append(insert)
            down_queries.append(delete)

        await self.execute_queries(up_queries, down_queries)
        self.cache_view(view.clone())

    async def drop_view(self, target: Union[View, str]) -> None:
        view = await self.resolve_view(target)
        insert, delete = await self._view_definition_queries(view)
        await self.execute_queries(
            [delete, self.drop_view_sql(view)],
            [insert, self.create_view_sql(view)],
        )
        self.evict_view(view)

    # =========================================================================
    # COLUMNS
    # =========================================================================

    def _find_column(self, table: Table, column_or_name: Union[TableColumn, str], message: str) -> TableColumn:
        name = column_or_name.name if isinstance(column_or_name, TableColumn) else column_or_name
        column = table.find_column_by_name(name)
        if column is None:
            raise NotFoundError(
                message.format(column=name, table=table.name),
                object_type="column",
                object_name=name,
                table_name=table.name,
            )
        return column

    def _primary_key_queries(self, table: Table, column_names: List[str], constraint_name: Optional[str]) -> Tuple[Query, Query]:
        """(add, drop) statements for a primary key over column_names."""
        return (
            self.create_primary_key_sql(table, column_names, constraint_name),
            self.drop_constraint_sql(table, self.primary_key_name_for(table, column_names, constraint_name)),
        )

    async def add_column(self, table_or_name: Union[Table, str], column: TableColumn) -> None:
        """Add a column with its enum type, primary key membership, index, unique and comment."""
        table = await self.resolve_table(table_or_name)
        cloned = table.clone()
        path = self.escape_path(table)
        up_queries: List[Query] = []
        down_queries: List[Query] = []

        if _is_enum(column) and not await self.has_enum_type(table, column):
            up_queries.append(self.create_enum_type_sql(table, column))
            down_queries.append(self.drop_enum_type_sql(table, column))

        up_queries.append(Query(f"ALTER TABLE {path} ADD {self.build_create_column_sql(table, column)}"))
        down_queries.append(Query(f'ALTER TABLE {path} DROP COLUMN "{column.name}"'))

        if column.is_primary:
            primary_columns = cloned.primary_columns
            if primary_columns:
                constraint = primary_columns[0].primary_key_constraint_name
                add, drop = self._primary_key_queries(cloned, [c.name for c in primary_columns], constraint)
                up_queries.append(drop)
                down_queries.append(add)
            primary_columns = primary_columns + [column]
            constraint = primary_columns[0].primary_key_constraint_name
            add, drop = self._primary_key_queries(cloned, [c.name for c in primary_columns], constraint)
            up_queries.append(add)
            down_queries.append(drop)

        column_index = next(
            (i for i in cloned.indices if i.column_names == [column.name]), None
        )
        if column_index:
            up_queries.append(self.create_index_sql(table, column_index))
            down_queries.append(self.drop_index_sql(table, column_index))

        if column.is_unique:
            unique = TableUnique(
                name=self.naming_strategy.unique_constraint_name(table, [column.name]),
                column_names=[column.name],
            )
            cloned.uniques.append(unique)
            up_queries.append(Query(f'ALTER TABLE {path} ADD CONSTRAINT "{unique.name}" UNIQUE ("{column.name}")'))
            down_queries.append(Query(f'ALTER TABLE {path} DROP CONSTRAINT "{unique.name}"'))

        if column.generated_type == "STORED" and column.as_expression:
            insert, delete = await self._generated_column_queries(table, column)
            up_queries.append(insert)
            down_queries.append(delete)

        if column.comment:
            up_queries.append(self.column_comment_sql(table, column.name, column.comment))
            down_queries.append(self.column_comment_sql(table, column.name, None))

        await self.execute_queries(up_queries, down_queries)

        cloned.add_column(column.clone())
        self.replace_cached_table(table, cloned)

    async def add_columns(self, table_or_name: Union[Table, str], columns: Sequence[TableColumn]) -> None:
        for column in columns:
            await self.add_column(table_or_name, column)

    async def rename_column(
        self,
        table_or_name: Union[Table, str],
        old_column_or_name: Union[TableColumn, str],
        new_column_or_name: Union[TableColumn, str],
    ) -> None:
        table = await self.resolve_table(table_or_name)
        old_column = self._find_column(table, old_column_or_name, 'Column "{column}" was not found in the "{table}" table.')

        if isinstance(new_column_or_name, TableColumn):
            new_column = new_column_or_name
        else:
            new_column = old_column.clone()
            new_column.name = new_column_or_name

        await self.change_column(table, old_column, new_column)

    async def change_column(
        self,
        table_or_name: Union[Table, str],
        old_column_or_name: Union[TableColumn, str],
        new_column: TableColumn,
    ) -> None:
        """
        Alter a column in place, or drop and re-add it when its type changes.

        In-place changes are applied in this order: rename (with dependent
        objects), precision/scale, enum values, nullability, comment,
        primary key, unique, generation, default, spatial type, collation,
        generated expression removal.
        """
        table = await self.resolve_table(table_or_name)
        old_column = self._find_column(table, old_column_or_name, 'Column "{column}" was not found in the "{table}" table.').clone()

        if new_column.generated_type == "VIRTUAL":
            raise UnsupportedOperationError(
                f'Column "{new_column.name}": PostgreSQL supports only STORED generated columns.',
                operation="change_column",
            )

        if (
            old_column.type != new_column.type
            or old_column.length != new_column.length
            or old_column.is_array != new_column.is_array
            or (not old_column.generated_type and new_column.generated_type == "STORED")
            or (old_column.as_expression != new_column.as_expression and new_column.generated_type == "STORED")
        ):
            # Recreate to avoid data conversion
            await self.drop_column(table, old_column)
            await self.add_column(table, new_column)
            return

        cloned = table.clone()
        path = self.escape_path(table)
        up_queries: List[Query] = []
        down_queries: List[Query] = []
        default_value_changed = False

        if old_column.name != new_column.name:
            self._rename_column_queries(table, cloned, old_column, new_column, up_queries, down_queries)
            if _is_enum(old_column):
                udt_schema, udt_name = await self.get_user_defined_type_name(table, old_column)
                up_queries.append(Query(
                    f'ALTER TYPE "{udt_schema}"."{udt_name}" RENAME TO {self.build_enum_name(table, new_column, with_schema=False)}'
                ))
                down_queries.append(Query(f'ALTER TYPE {self.build_enum_name(table, new_column)} RENAME TO "{udt_name}"'))
            cloned.find_column_by_name(old_column.name).name = new_column.name
            old_column.name = new_column.name

        if new_column.precision != old_column.precision or new_column.scale != old_column.scale:
            up_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{new_column.name}" TYPE {self.driver.create_full_type(new_column)}'))
            down_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{new_column.name}" TYPE {self.driver.create_full_type(old_column)}'))

        if (
            _is_enum(new_column) and _is_enum(old_column)
            and (list(new_column.enum or []) != list(old_column.enum or []) or new_column.enum_name != old_column.enum_name)
        ):
            default_value_changed = self._change_enum_queries(table, old_column, new_column, up_queries, down_queries)

        if old_column.is_nullable != new_column.is_nullable:
            up_action, down_action = ("DROP", "SET") if new_column.is_nullable else ("SET", "DROP")
            up_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{old_column.name}" {up_action} NOT NULL'))
            down_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{old_column.name}" {down_action} NOT NULL'))

        if (old_column.comment or None) != (new_column.comment or None):
            up_queries.append(self.column_comment_sql(table, old_column.name, new_column.comment))
            down_queries.append(self.column_comment_sql(table, new_column.name, old_column.comment))

        if new_column.is_primary != old_column.is_primary:
            self._change_primary_queries(cloned, new_column, up_queries, down_queries)

        if new_column.is_unique != old_column.is_unique:
            self._change_unique_queries(table, cloned, new_column, up_queries, down_queries)

        if old_column.is_generated != new_column.is_generated:
            self._change_generation_queries(table, old_column, new_column, up_queries, down_queries)

        if new_column.default != old_column.default and not default_value_changed:
            if new_column.default is not None:
                up_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{new_column.name}" SET DEFAULT {new_column.default}'))
                if old_column.default is not None:
                    down_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{new_column.name}" SET DEFAULT {old_column.default}'))
                else:
                    down_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{new_column.name}" DROP DEFAULT'))
            elif old_column.default is not None:
                up_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{new_column.name}" DROP DEFAULT'))
                down_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{new_column.name}" SET DEFAULT {old_column.default}'))

        if (
            (new_column.spatial_feature_type or "").lower() != (old_column.spatial_feature_type or "").lower()
            or new_column.srid != old_column.srid
        ):
            up_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{new_column.name}" TYPE {self.driver.create_full_type(new_column)}'))
            down_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{new_column.name}" TYPE {self.driver.create_full_type(old_column)}'))

        if new_column.collation != old_column.collation:
            old_collation = f'"{old_column.collation}"' if old_column.collation else 'pg_catalog."default"'
            up_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{new_column.name}" TYPE {new_column.type} COLLATE "{new_column.collation}"'))
            down_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{new_column.name}" TYPE {new_column.type} COLLATE {old_collation}'))

        if new_column.generated_type != old_column.generated_type and not new_column.generated_type:
            # Copy the generated data into a plain column
            insert, delete = await self._generated_column_queries(table, old_column)
            temp_name = f"TEMP_OLD_{old_column.name}"
            up_queries.extend([
                Query(f'ALTER TABLE {path} RENAME COLUMN "{old_column.name}" TO "{temp_name}"'),
                Query(f"ALTER TABLE {path} ADD {self.build_create_column_sql(table, new_column)}"),
                Query(f'UPDATE {path} SET "{new_column.name}" = "{temp_name}"'),
                Query(f'ALTER TABLE {path} DROP COLUMN "{temp_name}"'),
                delete,
            ])
            # The data cannot be copied back; the expression regenerates it
            down_queries.extend([
                insert,
                Query(f"ALTER TABLE {path} ADD {self.build_create_column_sql(table, old_column)}"),
                Query(f'ALTER TABLE {path} DROP COLUMN "{new_column.name}"'),
            ])

        await self.execute_queries(up_queries, down_queries)

        position = next(i for i, c in enumerate(cloned.columns) if c.name == new_column.name)
        cloned.columns[position] = new_column.clone()
        self.replace_cached_table(table, cloned)

    def _rename_column_queries(
        self,
        table: Table,
        cloned: Table,
        old_column: TableColumn,
        new_column: TableColumn,
        up_queries: List[Query],
        down_queries: List[Query],
    ) -> None:
        """RENAME COLUMN plus renames of default-named dependent objects on the clone."""
        path = self.escape_path(table)
        up_queries.append(Query(f'ALTER TABLE {path} RENAME COLUMN "{old_column.name}" TO "{new_column.name}"'))
        down_queries.append(Query(f'ALTER TABLE {path} RENAME COLUMN "{new_column.name}" TO "{old_column.name}"'))

        def replaced(names: List[str]) -> List[str]:
            return [n for n in names if n != old_column.name] + [new_column.name]

        if old_column.is_primary and not old_column.primary_key_constraint_name:
            column_names = [c.name for c in cloned.primary_columns]
            old_pk = self.naming_strategy.primary_key_name(cloned, column_names)
            new_pk = self.naming_strategy.primary_key_name(cloned, replaced(column_names))
            up_queries.append(Query(f'ALTER TABLE {path} RENAME CONSTRAINT "{old_pk}" TO "{new_pk}"'))
            down_queries.append(Query(f'ALTER TABLE {path} RENAME CONSTRAINT "{new_pk}" TO "{old_pk}"'))

        if old_column.is_generated and new_column.generation_strategy == "increment":
            sequence_path = self.build_sequence_path(table, old_column.name)
            sequence_name = self.build_sequence_name(table, old_column.name)
            new_sequence_path = self.build_sequence_path(table, new_column.name)
            new_sequence_name = self.build_sequence_name(table, new_column.name)
            up_queries.append(Query(f'ALTER SEQUENCE {self.escape_path(sequence_path)} RENAME TO "{new_sequence_name}"'))
            down_queries.append(Query(f'ALTER SEQUENCE {self.escape_path(new_sequence_path)} RENAME TO "{sequence_name}"'))

        for unique in cloned.find_column_uniques(old_column):
            if unique.name != self.naming_strategy.unique_constraint_name(cloned, unique.column_names):
                continue
            unique.column_names = replaced(unique.column_names)
            new_name = self.naming_strategy.unique_constraint_name(cloned, unique.column_names)
            up_queries.append(Query(f'ALTER TABLE {path} RENAME CONSTRAINT "{unique.name}" TO "{new_name}"'))
            down_queries.append(Query(f'ALTER TABLE {path} RENAME CONSTRAINT "{new_name}" TO "{unique.name}"'))
            unique.name = new_name

        schema = self.driver.parse_table_name(table)["schema"]
        for index in cloned.find_column_indices(old_column):
            if index.name != self.naming_strategy.index_name(cloned, index.column_names, index.where):
                continue
            index.column_names = replaced(index.column_names)
            new_name = self.naming_strategy.index_name(cloned, index.column_names, index.where)
            up_queries.append(Query(self._rename_index_sql(schema, index.name, new_name)))
            down_queries.append(Query(self._rename_index_sql(schema, new_name, index.name)))
            index.name = new_name

        for fk in cloned.find_column_foreign_keys(old_column):
            fk_path = self.get_table_path(fk)
            if fk.name != self.naming_strategy.foreign_key_name(cloned, fk.column_names, fk_path, fk.referenced_column_names):
                continue
            fk.column_names = replaced(fk.column_names)
            new_name = self.naming_strategy.foreign_key_name(cloned, fk.column_names, fk_path, fk.referenced_column_names)
            up_queries.append(Query(f'ALTER TABLE {path} RENAME CONSTRAINT "{fk.name}" TO "{new_name}"'))
            down_queries.append(Query(f'ALTER TABLE {path} RENAME CONSTRAINT "{new_name}" TO "{fk.name}"'))
            fk.name = new_name

    def _change_enum_queries(
        self,
        table: Table,
        old_column: TableColumn,
        new_column: TableColumn,
        up_queries: List[Query],
        down_queries: List[Query],
    ) -> bool:
        """
        Swap an enum type: rename old to *_old, create new, retype the
        column through text, restore the default, drop *_old.

        Returns:
            True when the column default was handled here
        """
        path = self.escape_path(table)
        array_suffix = "[]" if new_column.is_array else ""
        new_enum = self.build_enum_name(table, new_column)
        old_enum = self.build_enum_name(table, old_column)
        old_enum_bare = self.build_enum_name(table, old_column, with_schema=False)
        old_enum_old = self.build_enum_name(table, old_column, to_old=True)
        old_enum_old_bare = self.build_enum_name(table, old_column, with_schema=False, to_old=True)
        default_changed = False

        up_queries.append(Query(f"ALTER TYPE {old_enum} RENAME TO {old_enum_old_bare}"))
        down_queries.append(Query(f"ALTER TYPE {old_enum_old} RENAME TO {old_enum_bare}"))

        up_queries.append(self.create_enum_type_sql(table, new_column, new_enum))
        down_queries.append(self.drop_enum_type_sql(table, new_column, new_enum))

        if old_column.default is not None:
            default_changed = True
            up_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{old_column.name}" DROP DEFAULT'))
            down_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{old_column.name}" SET DEFAULT {old_column.default}'))

        up_type = f'{new_enum}{array_suffix} USING "{new_column.name}"::"text"::{new_enum}{array_suffix}'
        down_type = f'{old_enum_old}{array_suffix} USING "{new_column.name}"::"text"::{old_enum_old}{array_suffix}'
        up_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{old_column.name}" TYPE {up_type}'))
        down_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{old_column.name}" TYPE {down_type}'))

        if new_column.default is not None:
            up_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{new_column.name}" SET DEFAULT {new_column.default}'))
            down_queries.append(Query(f'ALTER TABLE {path} ALTER COLUMN "{new_column.name}" DROP DEFAULT'))

        up_queries.append(self.drop_enum_type_sql(table, old_column, old_enum_old))
        down_queries.append(self.create_enum_type_sql(table, old_column, old_enum_old))
        return default_changed

    def _change_primary_queries(
        self,
        cloned: Table,
        new_column: TableColumn,
        up_queries: List[Query],
        down_queries: List[Query],
    ) -> None:
        """Drop the current primary key and re-add it with or without new_column."""
        primary_columns = cloned.primary_columns
        if primary_columns:
            constraint = primary_columns[0].primary_key_constraint_name
            add, drop = self._primary_key_queries(cloned, [c.name for c in primary_columns], constraint)
            up_queries.append(drop)
            down_queries.append(add)

        column = cloned.find_column_by_name(new_column.name)
        column.is_primary = new_column.is_primary
        primary_columns = cloned.primary_columns
        if primary_columns:
            constraint = primary_columns[0].primary_key_constraint_name
            add, drop = self._primary_key_queries(cloned, [c.name for c in primary_columns], constraint)
            up_queries.append(add)
            down_queries.append(drop)

    def _change_unique_queries(
        self,
        table: Table,
        cloned: Table,
        new_column: TableColumn,
        up_queries: List[Query],
        down_queries: List[Query],
    ) -> None:
        path = self.escape_path(table)
        if new_column.is_unique:
            unique = TableUnique(
                name=self.naming_strategy.unique_constraint_name(table, [new_column.name]),
                column_names=[new_column.name],
            )
            cloned.uniques.append(unique)
            up_queries.append(Query(f'ALTER TABLE {path} ADD CONSTRAINT "{unique.name}" UNIQUE ("{new_column.name}")'))
            down_queries.append(Query(f'ALTER TABLE {path} DROP CONSTRAINT "{unique.name}"'))
            return

        unique = next((u for u in cloned.uniques if u.column_names == [new_column.name]), None)
        if unique is None:
            return
        cloned.uniques = [u for u in cloned.uniques if u is not unique]
        up_queries.append(Query(f'ALTER TABLE {path} DROP CONSTRAINT "{unique.name}"'))
        down_queries.append(Query(f'ALTER TABLE {path} ADD CONSTRAINT "{unique.name}" UNIQUE ("{new_column.name}")'))

    def _change_generation_queries(
        self,
        table: Table,
        old_column: TableColumn,
        new_column: TableColumn,
        up_queries: List[Query],
        down_queries: List[Query],
    ) -> None:
        """Attach or detach the uuid default, sequence or identity behind a generated column."""
        path = self.escape_path(table)
        alter = f'ALTER TABLE {path} ALTER COLUMN "{new_column.name}"'
        generated = new_column if new_column.is_generated else old_column
        attach = new_column.is_generated
        sequence = self.escape_path(self.build_sequence_path(table, new_column))

        if generated.generation_strategy == "uuid":
            set_default = Query(f"{alter} SET DEFAULT {self.driver.uuid_generator}")
            drop_default = Query(f"{alter} DROP DEFAULT")
            up_queries.append(set_default if attach else drop_default)
            down_queries.append(drop_default if attach else set_default)
        elif generated.generation_strategy == "increment":
            create_sequence = Query(f'CREATE SEQUENCE IF NOT EXISTS {sequence} OWNED BY {path}."{new_column.name}"')
            drop_sequence = Query(f"DROP SEQUENCE {sequence}")
            set_default = Query(f"{alter} SET DEFAULT nextval('{sequence}')")
            drop_default = Query(f"{alter} DROP DEFAULT")
            if attach:
                up_queries.extend([create_sequence, set_default])
                down_queries.extend([drop_sequence, drop_default])
            else:
                up_queries.extend([drop_default, drop_sequence])
                down_queries.extend([set_default, create_sequence])
        elif generated.generation_strategy == "identity":
            identity = generated.generated_identity or "BY DEFAULT"
            add_identity = Query(f"{alter} ADD GENERATED {identity} AS IDENTITY")
            drop_identity = Query(f"{alter} DROP IDENTITY")
            up_queries.append(add_identity if attach else drop_identity)
            down_queries.append(drop_identity if attach else add_identity)

    async def change_columns(self, table_or_name: Union[Table, str], changed_columns: Sequence[ColumnPair]) -> None:
        for old_column, new_column in changed_columns:
            await self.change_column(table_or_name, old_column, new_column)

    async def drop_column(self, table_or_name: Union[Table, str], column_or_name: Union[TableColumn, str]) -> None:
        """Drop a column with its primary key membership, index, check, unique and enum type."""
        table = await self.resolve_table(table_or_name)
        column = self._find_column(table, column_or_name, 'Column "{column}" was not found in table "{table}"')
        cloned = table.clone()
        path = self.escape_path(table)
        up_queries: List[Query] = []
        down_queries: List[Query] = []

        if column.is_primary:
            primary_names = [c.name for c in cloned.primary_columns]
            pk_name = column.primary_key_constraint_name or self.naming_strategy.primary_key_name(cloned, primary_names)
            up_queries.append(self.drop_constraint_sql(cloned, pk_name))
            down_queries.append(self.create_primary_key_sql(cloned, primary_names, pk_name))

            cloned.find_column_by_name(column.name).is_primary = False
            remaining = cloned.primary_columns
            if remaining:
                add, drop = self._primary_key_queries(
                    cloned, [c.name for c in remaining], remaining[0].primary_key_constraint_name
                )
                up_queries.append(add)
                down_queries.append(drop)

        column_index = next((i for i in cloned.indices if i.column_names == [column.name]), None)
        if column_index:
            cloned.remove_index(column_index)
            up_queries.append(self.drop_index_sql(table, column_index))
            down_queries.append(self.create_index_sql(table, column_index))

        column_check = next((c for c in cloned.checks if c.column_names == [column.name]), None)
        if column_check:
            cloned.remove_check_constraint(column_check)
            up_queries.append(self.drop_check_constraint_sql(table, column_check))
            down_queries.append(self.create_check_constraint_sql(table, column_check))

        column_unique = next((u for u in cloned.uniques if u.column_names == [column.name]), None)
        if column_unique:
            cloned.uniques = [u for u in cloned.uniques if u is not column_unique]
            up_queries.append(self.drop_unique_constraint_sql(table, column_unique))
            down_queries.append(self.create_unique_constraint_sql(table, column_unique))

        up_queries.append(Query(f'ALTER TABLE {path} DROP COLUMN "{column.name}"'))
        down_queries.append(Query(f"ALTER TABLE {path} ADD {self.build_create_column_sql(table, column)}"))

        if _is_enum(column) and await self.has_enum_type(table, column):
            udt_schema, udt_name = await self.get_user_defined_type_name(table, column)
            escaped = f'"{udt_schema}"."{udt_name}"'
            up_queries.append(self.drop_enum_type_sql(table, column, escaped))
            down_queries.append(self.create_enum_type_sql(table, column, escaped))

        if column.generated_type == "STORED":
            insert, delete = await self._generated_column_queries(table, column)
            up_queries.append(delete)
            down_queries.append(insert)

        await self.execute_queries(up_queries, down_queries)

        cloned.remove_column(column)
        self.replace_cached_table(table, cloned)

    async def drop_columns(self, table_or_name: Union[Table, str], columns: Sequence[Union[TableColumn, str]]) -> None:
        for column in columns:
            await self.drop_column(table_or_name, column)

    # =========================================================================
    # PRIMARY KEYS
    # =========================================================================

    async def create_primary_key(
        self,
        table_or_name: Union[Table, str],
        column_names: Sequence[str],
        constraint_name: Optional[str] = None,
    ) -> None:
        table = await self.resolve_table(table_or_name)
        for name in column_names:
            self._find_column(table, name, 'Column "{column}" was not found in table "{table}"')

        cloned = table.clone()
        for column in cloned.columns:
            if column.name in column_names:
                column.is_primary = True
                column.primary_key_constraint_name = constraint_name

        await self.execute_queries(
            self.create_primary_key_sql(table, list(column_names), constraint_name),
            self.drop_primary_key_sql(cloned),
        )
        self.replace_cached_table(table, cloned)

    async def update_primary_keys(self, table_or_name: Union[Table, str], columns: Sequence[TableColumn]) -> None:
        """Replace the primary key with one over columns."""
        table = await self.resolve_table(table_or_name)
        cloned = table.clone()
        column_names = [c.name for c in columns]
        up_queries: List[Query] = []
        down_queries: List[Query] = []

        primary_columns = cloned.primary_columns
        constraint = primary_columns[0].primary_key_constraint_name if primary_columns else None
        if primary_columns:
            add, drop = self._primary_key_queries(cloned, [c.name for c in primary_columns], constraint)
            up_queries.append(drop)
            down_queries.append(add)

        for column in cloned.columns:
            column.is_primary = column.name in column_names

        add, drop = self._primary_key_queries(cloned, column_names, constraint)
        up_queries.append(add)
        down_queries.append(drop)

        await self.execute_queries(up_queries, down_queries)
        self.replace_cached_table(table, cloned)

    async def drop_primary_key(self, table_or_name: Union[Table, str], constraint_name: Optional[str] = None) -> None:
        table = await self.resolve_table(table_or_name)
        up = self.drop_primary_key_sql(table)
        primary_columns = table.primary_columns
        down = self.create_primary_key_sql(
            table,
            [c.name for c in primary_columns],
            constraint_name or primary_columns[0].primary_key_constraint_name,
        )
        await self.execute_queries(up, down)

        cloned = table.clone()
        for column in cloned.primary_columns:
            column.is_primary = False
        self.replace_cached_table(table, cloned)

    # =========================================================================
    # UNIQUE CONSTRAINTS
    # =========================================================================

    async def create_unique_constraint(self, table_or_name: Union[Table, str], unique: TableUnique) -> None:
        table = await self.resolve_table(table_or_name)
        unique = unique.clone()
        unique.name = unique.name or self.naming_strategy.unique_constraint_name(table, unique.column_names)

        await self.execute_queries(
            self.create_unique_constraint_sql(table, unique),
            self.drop_unique_constraint_sql(table, unique),
        )
        cloned = table.clone()
        cloned.add_unique_constraint(unique)
        self.replace_cached_table(table, cloned)

    async def create_unique_constraints(self, table_or_name: Union[Table, str], uniques: Sequence[TableUnique]) -> None:
        for unique in uniques:
            await self.create_unique_constraint(table_or_name, unique)

    async def drop_unique_constraint(self, table_or_name: Union[Table, str], unique_or_name: Union[TableUnique, str]) -> None:
        table = await self.resolve_table(table_or_name)
        name = unique_or_name.name if isinstance(unique_or_name, TableUnique) else unique_or_name
        unique = next((u for u in table.uniques if u.name == name), None)
        if unique is None:
            raise NotFoundError(
                f"Supplied unique constraint was not found in table {table.name}",
                object_type="unique", object_name=name, table_name=table.name,
            )

        await self.execute_queries(
            self.drop_unique_constraint_sql(table, unique),
            self.create_unique_constraint_sql(table, unique),
        )
        cloned = table.clone()
        cloned.remove_unique_constraint(unique)
        self.replace_cached_table(table, cloned)

    async def drop_unique_constraints(self, table_or_name: Union[Table, str], uniques: Sequence[TableUnique]) -> None:
        for unique in uniques:
            await self.drop_unique_constraint(table_or_name, unique)

    # =========================================================================
    # CHECK CONSTRAINTS
    # =========================================================================

    async def create_check_constraint(self, table_or_name: Union[Table, str], check: TableCheck) -> None:
        table = await self.resolve_table(table_or_name)
        check = check.clone()
        check.name = check.name or self.naming_strategy.check_constraint_name(table, check.expression)

        await self.execute_queries(
            self.create_check_constraint_sql(table, check),
            self.drop_check_constraint_sql(table, check),
        )
        cloned = table.clone()
        cloned.add_check_constraint(check)
        self.replace_cached_table(table, cloned)

    async def create_check_constraints(self, table_or_name: Union[Table, str], checks: Sequence[TableCheck]) -> None:
        for check in checks:
            await self.create_check_constraint(table_or_name, check)

    async def drop_check_constraint(self, table_or_name: Union[Table, str], check_or_name: Union[TableCheck, str]) -> None:
        table = await self.resolve_table(table_or_name)
        name = check_or_name.name if isinstance(check_or_name, TableCheck) else check_or_name
        check = next((c for c in table.checks if c.name == name), None)
        if check is None:
            raise NotFoundError(
                f"Supplied check constraint was not found in table {table.name}",
                object_type="check", object_name=name, table_name=table.name,
            )

        await self.execute_queries(
            self.drop_check_constraint_sql(table, check),
            self.create_check_constraint_sql(table, check),
        )
        cloned = table.clone()
        cloned.remove_check_constraint(check)
        self.replace_cached_table(table, cloned)

    async def drop_check_constraints(self, table_or_name: Union[Table, str], checks: Sequence[TableCheck]) -> None:
        for check in checks:
            await self.drop_check_constraint(table_or_name, check)

    # =========================================================================
    # EXCLUSION CONSTRAINTS
    # =========================================================================

    async def create_exclusion_constraint(self, table_or_name: Union[Table, str], exclusion: TableExclusion) -> None:
        table = await self.resolve_table(table_or_name)
        exclusion = exclusion.clone()
        exclusion.name = exclusion.name or self.naming_strategy.exclusion_constraint_name(table, exclusion.expression)

        await self.execute_queries(
            self.create_exclusion_constraint_sql(table, exclusion),
            self.drop_exclusion_constraint_sql(table, exclusion),
        )
        cloned = table.clone()
        cloned.add_exclusion_constraint(exclusion)
        self.replace_cached_table(table, cloned)

    async def create_exclusion_constraints(self, table_or_name: Union[Table, str], exclusions: Sequence[TableExclusion]) -> None:
        for exclusion in exclusions:
            await self.create_exclusion_constraint(table_or_name, exclusion)

    async def drop_exclusion_constraint(self, table_or_name: Union[Table, str], exclusion_or_name: Union[TableExclusion, str]) -> None:
        table = await self.resolve_table(table_or_name)
        name = exclusion_or_name.name if isinstance(exclusion_or_name, TableExclusion) else exclusion_or_name
        exclusion = next((e for e in table.exclusions if e.name == name), None)
        if exclusion is None:
            raise NotFoundError(
                f"Supplied exclusion constraint was not found in table {table.name}",
                object_type="exclusion", object_name=name, table_name=table.name,
            )

        await self.execute_queries(
            self.drop_exclusion_constraint_sql(table, exclusion),
            self.create_exclusion_constraint_sql(table, exclusion),
        )
        cloned = table.clone()
        cloned.remove_exclusion_constraint(exclusion)
        self.replace_cached_table(table, cloned)

    async def drop_exclusion_constraints(self, table_or_name: Union[Table, str], exclusions: Sequence[TableExclusion]) -> None:
        for exclusion in exclusions:
            await self.drop_exclusion_constraint(table_or_name, exclusion)

    # =========================================================================
    # FOREIGN KEYS
    # =========================================================================

    async def create_foreign_key(self, table_or_name: Union[Table, str], foreign_key: TableForeignKey) -> None:
        table = await self.resolve_table(table_or_name)
        foreign_key = foreign_key.clone()
        foreign_key.name = foreign_key.name or self.naming_strategy.foreign_key_name(
            table, foreign_key.column_names, self.get_table_path(foreign_key), foreign_key.referenced_column_names
        )

        await self.execute_queries(
            self.create_foreign_key_sql(table, foreign_key),
            self.drop_foreign_key_sql(table, foreign_key),
        )
        cloned = table.clone()
        cloned.add_foreign_key(foreign_key)
        self.replace_cached_table(table, cloned)

    async def create_foreign_keys(self, table_or_name: Union[Table, str], foreign_keys: Sequence[TableForeignKey]) -> None:
        for foreign_key in foreign_keys:
            await self.create_foreign_key(table_or_name, foreign_key)

    async def drop_foreign_key(self, table_or_name: Union[Table, str], foreign_key_or_name: Union[TableForeignKey, str]) -> None:
        table = await self.resolve_table(table_or_name)
        name = foreign_key_or_name.name if isinstance(foreign_key_or_name, TableForeignKey) else foreign_key_or_name
        foreign_key = next((fk for fk in table.foreign_keys if fk.name == name), None)
        if foreign_key is None:
            raise NotFoundError(
                f"Supplied foreign key was not found in table {table.name}",
                object_type="foreign_key", object_name=name, table_name=table.name,
            )

        await self.execute_queries(
            self.drop_foreign_key_sql(table, foreign_key),
            self.create_foreign_key_sql(table, foreign_key),
        )
        cloned = table.clone()
        cloned.remove_foreign_key(foreign_key)
        self.replace_cached_table(table, cloned)

    async def drop_foreign_keys(self, table_or_name: Union[Table, str], foreign_keys: Sequence[TableForeignKey]) -> None:
        for foreign_key in foreign_keys:
            await self.drop_foreign_key(table_or_name, foreign_key)

    # =========================================================================
    # INDICES
    # =========================================================================

    async def create_index(self, table_or_name: Union[Table, str], index: TableIndex) -> None:
        table = await self.resolve_table(table_or_name)
        index = index.clone()
        index.name = index.name or self.naming_strategy.index_name(table, index.column_names, index.where)

        await self.execute_queries(
            self.create_index_sql(table, index),
            self.drop_index_sql(table, index),
        )
        cloned = table.clone()
        cloned.add_index(index)
        self.replace_cached_table(table, cloned)

    async def create_indices(self, table_or_name: Union[Table, str], indices: Sequence[TableIndex]) -> None:
        for index in indices:
            await self.create_index(table_or_name, index)

    async def drop_index(self, table_or_name: Union[Table, str], index_or_name: Union[TableIndex, str]) -> None:
        table = await self.resolve_table(table_or_name)
        name = index_or_name.name if isinstance(index_or_name, TableIndex) else index_or_name
        index = next((i for i in table.indices if i.name == name), None)
        if index is None:
            raise NotFoundError(
                f"Supplied index {name} was not found in table {table.name}",
                object_type="index", object_name=name, table_name=table.name,
            )

        await self.execute_queries(
            self.drop_index_sql(table, index),
            self.create_index_sql(table, index),
        )
        cloned = table.clone()
        cloned.remove_index(index)
        self.replace_cached_table(table, cloned)

    async def drop_indices(self, table_or_name: Union[Table, str], indices: Sequence[TableIndex]) -> None:
        for index in indices:
            await self.drop_index(table_or_name, index)

    async def create_view_index(self, view_or_name: Union[View, str], index: TableIndex) -> None:
        view = await self.resolve_view(view_or_name)
        index = index.clone()
        index.name = index.name or self.naming_strategy.index_name(view.name, index.column_names, index.where)

        await self.execute_queries(
            self.create_view_index_sql(view, index),
            self.drop_index_sql(view, index),
        )
        cloned = view.clone()
        cloned.add_index(index)
        self.replace_cached_view(view, cloned)

    async def create_view_indices(self, view_or_name: Union[View, str], indices: Sequence[TableIndex]) -> None:
        for index in indices:
            await self.create_view_index(view_or_name, index)

    async def drop_view_index(self, view_or_name: Union[View, str], index_or_name: Union[TableIndex, str]) -> None:
        view = await self.resolve_view(view_or_name)
        name = index_or_name.name if isinstance(index_or_name, TableIndex) else index_or_name
        index = next((i for i in view.indices if i.name == name), None)
        if index is None:
            raise NotFoundError(
                f"Supplied index {name} was not found in view {view.name}",
                object_type="index", object_name=name, table_name=view.name,
            )

        await self.execute_queries(
            self.drop_index_sql(view, index),
            self.create_view_index_sql(view, index),
        )
        cloned = view.clone()
        cloned.remove_index(index)
        self.replace_cached_view(view, cloned)

    # =========================================================================
    # DATA
    # =========================================================================

    async def clear_table(self, table_name: str) -> None:
        await self.query(f"TRUNCATE TABLE {self.escape_path(table_name)}")

    async def clear_database(self, schemas: Sequence[str] = ()) -> None:
        """
        Drop every view, materialized view, table and enum type in the
        given schemas plus the configured (or current) schema.

        Runs in its own transaction unless one is already active.
        """
        configured = self.driver.options.schema
        names = list(dict.fromkeys([*schemas, configured] if configured else schemas))
        placeholders = ", ".join(["%s"] * len(names) + ([] if configured else ["current_schema()"]))

        selects = [
            "SELECT 'DROP VIEW IF EXISTS \"' || schemaname || '\".\"' || viewname || '\" CASCADE;' AS \"query\" "
            f'FROM "pg_views" WHERE "schemaname" IN ({placeholders}) '
            "AND \"viewname\" NOT IN ('geography_columns', 'geometry_columns', 'raster_columns', 'raster_overviews')",
            "SELECT 'DROP MATERIALIZED VIEW IF EXISTS \"' || schemaname || '\".\"' || matviewname || '\" CASCADE;' AS \"query\" "
            f'FROM "pg_matviews" WHERE "schemaname" IN ({placeholders})',
            "SELECT 'DROP TABLE IF EXISTS \"' || schemaname || '\".\"' || tablename || '\" CASCADE;' AS \"query\" "
            f'FROM "pg_tables" WHERE "schemaname" IN ({placeholders}) '
            "AND \"tablename\" NOT IN ('spatial_ref_sys')",
            "SELECT 'DROP TYPE IF EXISTS \"' || n.nspname || '\".\"' || t.typname || '\" CASCADE;' AS \"query\" "
            'FROM "pg_type" "t" '
            'INNER JOIN "pg_enum" "e" ON "e"."enumtypid" = "t"."oid" '
            'INNER JOIN "pg_namespace" "n" ON "n"."oid" = "t"."typnamespace" '
            f'WHERE "n"."nspname" IN ({placeholders}) GROUP BY "n"."nspname", "t"."typname"',
        ]

        is_another_transaction_active = self.is_transaction_active
        if not is_another_transaction_active:
            await self.start_transaction()
        try:
            for select in selects:
                drops = await self.query(select, names or None)
                for row in drops:
                    await self.query(row["query"])
            if not is_another_transaction_active:
                await self.commit_transaction()
        except Exception as error:
            if not is_another_transaction_active:
                try:
                    await self.rollback_transaction()
                except Exception as rollback_error:
                    # The original error is the one worth surfacing
                    logger.warning(f"rollback after failed clear_database also failed: {rollback_error}")
            raise error

        self.loaded_tables = {}
        self.loaded_views = {}


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["PostgresQueryRunner", "ISOLATION_LEVELS"]
