# ============================================================================
# POSTGRESQL DDL BUILDERS
# ============================================================================
# STATUS: Infrastructure - DDL statement text
# PURPOSE: Render CREATE/ALTER/DROP statements for tables, views, constraints
# CREATED: 14 OCT 2026
# ============================================================================
"""
PostgreSQL DDL Builders

Pure statement builders used by PostgresQueryRunner. Nothing here talks to
the database; every method returns a Query (or a string fragment) built
from the schema model and the driver's naming strategy.

Identifiers are always double-quoted. The schema is omitted from a path
when it equals the connection's search schema.
"""

from typing import Optional, Sequence, Union

from core.errors import PrimaryKeyNotFoundError, UnsupportedOperationError
from core.schema.column import TableColumn
from core.schema.constraints import (
    TableCheck,
    TableExclusion,
    TableForeignKey,
    TableIndex,
    TableUnique,
)
from core.schema.ddl_utils import Query, escape_comment, quote_literal
from core.schema.table import Table
from core.schema.view import View

IDENTIFIER_LIMIT = 63


class PostgresDDLMixin:
    """Statement builders; expects self.driver and self.get_table_path."""

    # =========================================================================
    # NAMES AND PATHS
    # =========================================================================

    @property
    def naming_strategy(self):
        return self.driver.naming_strategy

    def escape_path(self, target: Union[Table, View, str]) -> str:
        parsed = self.driver.parse_table_name(target)
        schema, table_name = parsed["schema"], parsed["table_name"]
        if schema and schema != self.driver.search_schema:
            return f'"{schema}"."{table_name}"'
        return f'"{table_name}"'

    @staticmethod
    def escape_comment(comment: Optional[str]) -> str:
        return escape_comment(comment)

    @staticmethod
    def quote_columns(column_names: Sequence[str], separator: str = ", ") -> str:
        return separator.join(f'"{name}"' for name in column_names)

    def build_sequence_name(self, table: Table, column_or_name: Union[TableColumn, str]) -> str:
        """{table}_{column}_seq, truncated to fit the identifier limit."""
        table_name = self.driver.parse_table_name(table)["table_name"]
        column_name = column_or_name.name if isinstance(column_or_name, TableColumn) else column_or_name
        sequence_name = f"{table_name}_{column_name}_seq"
        if len(sequence_name) > IDENTIFIER_LIMIT:
            column_part = column_name[:max(29, IDENTIFIER_LIMIT - len(table.name) - 5)]
            sequence_name = f"{table_name[:29]}_{column_part}_seq"
        return sequence_name

    def build_sequence_path(self, table: Table, column_or_name: Union[TableColumn, str]) -> str:
        schema = self.driver.parse_table_name(table)["schema"]
        sequence_name = self.build_sequence_name(table, column_or_name)
        return f"{schema}.{sequence_name}" if schema else sequence_name

    def build_enum_name(
        self,
        table: Table,
        column: TableColumn,
        with_schema: bool = True,
        disable_escape: bool = False,
        to_old: bool = False,
    ) -> str:
        """
        Enum type name for a column.

        Defaults to {table}_{column}_enum unless the column names its type.
        """
        parsed = self.driver.parse_table_name(table)
        schema, table_name = parsed["schema"], parsed["table_name"]
        enum_name = column.enum_name or f"{table_name}_{column.name.lower()}_enum"
        if schema and with_schema:
            enum_name = f"{schema}.{enum_name}"
        if to_old:
            enum_name += "_old"
        return ".".join(part if disable_escape else f'"{part}"' for part in enum_name.split("."))

    def primary_key_name_for(self, table: Table, column_names: Sequence[str], constraint_name: Optional[str] = None) -> str:
        return constraint_name or self.naming_strategy.primary_key_name(table, column_names)

    # =========================================================================
    # COLUMNS
    # =========================================================================

    def build_create_column_sql(self, table: Table, column: TableColumn) -> str:
        """Column definition as used in CREATE TABLE and ADD COLUMN."""
        if column.generated_type == "VIRTUAL":
            raise UnsupportedOperationError(
                f'Column "{column.name}": PostgreSQL supports only STORED generated columns.',
                operation="create_column",
            )

        sql = f'"{column.name}"'
        if column.is_generated and column.generation_strategy != "uuid":
            if column.generation_strategy == "identity":
                sql += f" {column.type} GENERATED {column.generated_identity or 'BY DEFAULT'} AS IDENTITY"
            elif column.type in ("integer", "int", "int4"):
                sql += " SERIAL"
            elif column.type in ("smallint", "int2"):
                sql += " SMALLSERIAL"
            elif column.type in ("bigint", "int8"):
                sql += " BIGSERIAL"

        if column.type in ("enum", "simple-enum"):
            sql += " " + self.build_enum_name(table, column)
            if column.is_array:
                sql += " array"
        elif not column.is_generated or column.type == "uuid":
            sql += " " + self.driver.create_full_type(column)

        if column.generated_type == "STORED" and column.as_expression:
            sql += f" GENERATED ALWAYS AS ({column.as_expression}) STORED"

        if column.charset:
            sql += f' CHARACTER SET "{column.charset}"'
        if column.collation:
            sql += f' COLLATE "{column.collation}"'
        if not column.is_nullable:
            sql += " NOT NULL"
        if column.default is not None:
            sql += f" DEFAULT {column.default}"
        if column.is_generated and column.generation_strategy == "uuid" and not column.default:
            sql += f" DEFAULT {self.driver.uuid_generator}"
        return sql

    def create_enum_type_sql(self, table: Table, column: TableColumn, enum_name: Optional[str] = None) -> Query:
        enum_name = enum_name or self.build_enum_name(table, column)
        values = ", ".join(quote_literal(value) for value in column.enum or [])
        return Query(f"CREATE TYPE {enum_name} AS ENUM({values})")

    def drop_enum_type_sql(self, table: Table, column: TableColumn, enum_name: Optional[str] = None) -> Query:
        enum_name = enum_name or self.build_enum_name(table, column)
        return Query(f"DROP TYPE {enum_name}")

    # =========================================================================
    # TABLES
    # =========================================================================

    def create_table_sql(self, table: Table, create_foreign_keys: bool = True) -> Query:
        """
        CREATE TABLE with inline uniques, checks, exclusions, foreign keys and
        primary key, followed by column comments.

        Unnamed constraints on table are named in place, and columns flagged
        unique get a unique constraint if the table lacks one.
        """
        path = self.escape_path(table)
        column_definitions = ", ".join(self.build_create_column_sql(table, c) for c in table.columns)
        sql = f"CREATE TABLE {path} ({column_definitions}"

        for column in table.columns:
            if not column.is_unique:
                continue
            exists = any(u.column_names == [column.name] for u in table.uniques)
            if not exists:
                table.uniques.append(TableUnique(
                    name=self.naming_strategy.unique_constraint_name(table, [column.name]),
                    column_names=[column.name],
                ))

        for unique in table.uniques:
            unique.name = unique.name or self.naming_strategy.unique_constraint_name(table, unique.column_names)
            sql += f', CONSTRAINT "{unique.name}" UNIQUE ({self.quote_columns(unique.column_names)})'
            if unique.deferrable:
                sql += f" DEFERRABLE {unique.deferrable}"

        for check in table.checks:
            check.name = check.name or self.naming_strategy.check_constraint_name(table, check.expression)
            sql += f', CONSTRAINT "{check.name}" CHECK ({check.expression})'

        for exclusion in table.exclusions:
            exclusion.name = exclusion.name or self.naming_strategy.exclusion_constraint_name(table, exclusion.expression)
            sql += f', CONSTRAINT "{exclusion.name}" EXCLUDE {exclusion.expression}'

        if create_foreign_keys:
            for fk in table.foreign_keys:
                fk.name = fk.name or self.naming_strategy.foreign_key_name(
                    table, fk.column_names, self.get_table_path(fk), fk.referenced_column_names
                )
                sql += (
                    f', CONSTRAINT "{fk.name}" FOREIGN KEY ({self.quote_columns(fk.column_names)}) '
                    f"REFERENCES {self.escape_path(self.get_table_path(fk))} "
                    f"({self.quote_columns(fk.referenced_column_names)})"
                )
                sql += self._referential_clauses(fk)

        primary_columns = table.primary_columns
        if primary_columns:
            pk_name = self.primary_key_name_for(
                table, [c.name for c in primary_columns], primary_columns[0].primary_key_constraint_name
            )
            sql += f', CONSTRAINT "{pk_name}" PRIMARY KEY ({self.quote_columns([c.name for c in primary_columns])})'

        sql += ")"

        for column in table.columns:
            if column.comment:
                sql += f'; COMMENT ON COLUMN {path}."{column.name}" IS {self.escape_comment(column.comment)}'

        return Query(sql)

    def drop_table_sql(self, table_or_path: Union[Table, str]) -> Query:
        return Query(f"DROP TABLE {self.escape_path(table_or_path)}")

    # =========================================================================
    # VIEWS
    # =========================================================================

    def create_view_sql(self, view: View) -> Query:
        materialized = "MATERIALIZED " if view.materialized else ""
        return Query(f"CREATE {materialized}VIEW {self.escape_path(view)} AS {view.get_expression()}")

    def drop_view_sql(self, view: View) -> Query:
        materialized = "MATERIALIZED " if view.materialized else ""
        return Query(f"DROP {materialized}VIEW {self.escape_path(view)}")

    # =========================================================================
    # INDICES
    # =========================================================================

    def create_index_sql(self, table: Union[Table, View], index: TableIndex) -> Query:
        unique = "UNIQUE " if index.is_unique else ""
        concurrent = " CONCURRENTLY" if index.is_concurrent else ""
        spatial = "USING GiST " if index.is_spatial else ""
        sql = (
            f'CREATE {unique}INDEX{concurrent} "{index.name}" ON {self.escape_path(table)} '
            f"{spatial}({self.quote_columns(index.column_names)})"
        )
        if index.where:
            sql += f" WHERE {index.where}"
        return Query(sql)

    def create_view_index_sql(self, view: View, index: TableIndex) -> Query:
        unique = "UNIQUE " if index.is_unique else ""
        sql = f'CREATE {unique}INDEX "{index.name}" ON {self.escape_path(view)} ({self.quote_columns(index.column_names)})'
        if index.where:
            sql += f" WHERE {index.where}"
        return Query(sql)

    def drop_index_sql(self, table: Union[Table, View], index_or_name: Union[TableIndex, str]) -> Query:
        if isinstance(index_or_name, TableIndex):
            index_name, concurrent = index_or_name.name, index_or_name.is_concurrent
        else:
            index_name, concurrent = index_or_name, False
        prefix = "CONCURRENTLY " if concurrent else ""
        schema = self.driver.parse_table_name(table)["schema"]
        if schema:
            return Query(f'DROP INDEX {prefix}"{schema}"."{index_name}"')
        return Query(f'DROP INDEX {prefix}"{index_name}"')

    # =========================================================================
    # CONSTRAINTS
    # =========================================================================

    def create_primary_key_sql(self, table: Table, column_names: Sequence[str], constraint_name: Optional[str] = None) -> Query:
        pk_name = self.primary_key_name_for(table, column_names, constraint_name)
        return Query(
            f'ALTER TABLE {self.escape_path(table)} ADD CONSTRAINT "{pk_name}" '
            f"PRIMARY KEY ({self.quote_columns(column_names)})"
        )

    def drop_primary_key_sql(self, table: Table) -> Query:
        primary_columns = table.primary_columns
        if not primary_columns:
            raise PrimaryKeyNotFoundError(table.name)
        pk_name = self.primary_key_name_for(
            table, [c.name for c in primary_columns], primary_columns[0].primary_key_constraint_name
        )
        return Query(f'ALTER TABLE {self.escape_path(table)} DROP CONSTRAINT "{pk_name}"')

    def create_unique_constraint_sql(self, table: Table, unique: TableUnique) -> Query:
        sql = (
            f'ALTER TABLE {self.escape_path(table)} ADD CONSTRAINT "{unique.name}" '
            f"UNIQUE ({self.quote_columns(unique.column_names)})"
        )
        if unique.deferrable:
            sql += f" DEFERRABLE {unique.deferrable}"
        return Query(sql)

    def drop_constraint_sql(self, table: Table, constraint_name: str) -> Query:
        return Query(f'ALTER TABLE {self.escape_path(table)} DROP CONSTRAINT "{constraint_name}"')

    def drop_unique_constraint_sql(self, table: Table, unique_or_name: Union[TableUnique, str]) -> Query:
        name = unique_or_name.name if isinstance(unique_or_name, TableUnique) else unique_or_name
        return self.drop_constraint_sql(table, name)

    def create_check_constraint_sql(self, table: Table, check: TableCheck) -> Query:
        return Query(f'ALTER TABLE {self.escape_path(table)} ADD CONSTRAINT "{check.name}" CHECK ({check.expression})')

    def drop_check_constraint_sql(self, table: Table, check_or_name: Union[TableCheck, str]) -> Query:
        name = check_or_name.name if isinstance(check_or_name, TableCheck) else check_or_name
        return self.drop_constraint_sql(table, name)

    def create_exclusion_constraint_sql(self, table: Table, exclusion: TableExclusion) -> Query:
        return Query(f'ALTER TABLE {self.escape_path(table)} ADD CONSTRAINT "{exclusion.name}" EXCLUDE {exclusion.expression}')

    def drop_exclusion_constraint_sql(self, table: Table, exclusion_or_name: Union[TableExclusion, str]) -> Query:
        name = exclusion_or_name.name if isinstance(exclusion_or_name, TableExclusion) else exclusion_or_name
        return self.drop_constraint_sql(table, name)

    def create_foreign_key_sql(self, table: Table, fk: TableForeignKey) -> Query:
        sql = (
            f'ALTER TABLE {self.escape_path(table)} ADD CONSTRAINT "{fk.name}" '
            f"FOREIGN KEY ({self.quote_columns(fk.column_names)}) "
            f"REFERENCES {self.escape_path(self.get_table_path(fk))}"
            f"({self.quote_columns(fk.referenced_column_names, ',')})"
        )
        return Query(sql + self._referential_clauses(fk))

    def drop_foreign_key_sql(self, table: Table, fk_or_name: Union[TableForeignKey, str]) -> Query:
        name = fk_or_name.name if isinstance(fk_or_name, TableForeignKey) else fk_or_name
        return self.drop_constraint_sql(table, name)

    @staticmethod
    def _referential_clauses(fk: TableForeignKey) -> str:
        sql = ""
        if fk.on_delete:
            sql += f" ON DELETE {fk.on_delete}"
        if fk.on_update:
            sql += f" ON UPDATE {fk.on_update}"
        if fk.deferrable:
            sql += f" DEFERRABLE {fk.deferrable}"
        return sql

    # =========================================================================
    # COMMENTS
    # =========================================================================

    def table_comment_sql(self, table: Table, comment: Optional[str]) -> Query:
        return Query(f"COMMENT ON TABLE {self.escape_path(table)} IS {self.escape_comment(comment)}")

    def column_comment_sql(self, table: Table, column_name: str, comment: Optional[str]) -> Query:
        return Query(f'COMMENT ON COLUMN {self.escape_path(table)}."{column_name}" IS {self.escape_comment(comment)}')


__all__ = ["PostgresDDLMixin", "IDENTIFIER_LIMIT"]
