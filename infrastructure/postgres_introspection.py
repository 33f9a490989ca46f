# ============================================================================
# POSTGRESQL INTROSPECTION
# ============================================================================
# STATUS: Infrastructure - Catalog loaders
# PURPOSE: Rebuild Table and View models from the live catalog
# CREATED: 14 OCT 2026
# ============================================================================
"""
PostgreSQL Introspection

load_tables() and load_views() reconstruct the schema model from the
catalog in a fixed number of round-trips per batch, whatever the number
of tables:

    tables -> columns -> constraints -> indices -> foreign keys
           -> enum labels, spatial columns, generated expressions (only when needed)

Rows are partitioned per table in memory. Values that merely restate a
type default (varchar length, timestamp precision) are collapsed so the
loaded model compares equal to a declared model that leaves them unset.
"""

import re
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence, Tuple

from core.logging import ComponentType, get_logger
from core.schema.column import TableColumn
from core.schema.constraints import (
    TableCheck,
    TableExclusion,
    TableForeignKey,
    TableIndex,
    TableUnique,
)
from core.schema.table import Table
from core.schema.view import View

logger = get_logger(__name__, ComponentType.QUERY_RUNNER)

Pair = Tuple[str, str]

_NUMERIC_TYPES = ("numeric", "decimal")
_DATETIME_TYPES = (
    "interval",
    "time without time zone",
    "time with time zone",
    "timestamp without time zone",
    "timestamp with time zone",
)
_CAST_SUFFIX = re.compile(r"::[\w\s.\[\]\-\"]+")
_UUID_DEFAULT = re.compile(r"^uuid_generate_v\d\(\)")


def _condition(pairs: Sequence[Pair], schema_column: str, table_column: str) -> Tuple[str, List[str]]:
    """OR-ed (schema, table) filter with positional parameters."""
    clause = " OR ".join(f"({schema_column} = %s AND {table_column} = %s)" for _ in pairs)
    params = [value for pair in pairs for value in pair]
    return clause, params


def _group(rows: List[Dict[str, Any]], *keys: str) -> Dict[tuple, List[Dict[str, Any]]]:
    """Rows grouped by the given keys, preserving row order."""
    grouped: Dict[tuple, List[Dict[str, Any]]] = defaultdict(list)
    for row in rows:
        grouped[tuple(row[key] for key in keys)].append(row)
    return grouped


class PostgresIntrospectionMixin:
    """Catalog loaders; expects query(), the DDL name builders and driver."""

    # =========================================================================
    # NAME RESOLUTION
    # =========================================================================

    def _requested_pairs(self, names: Sequence[str], current_schema: str) -> List[Pair]:
        pairs = []
        for name in names:
            parsed = self.driver.parse_table_name(name)
            pairs.append((parsed["schema"] or current_schema, parsed["table_name"]))
        return list(dict.fromkeys(pairs))

    def _display_name(self, schema: str, name: str, current_schema: str) -> str:
        """Table name as the model stores it; the current schema is left implicit."""
        configured = self.driver.options.schema
        if schema == current_schema and (not configured or configured == current_schema):
            return name
        return self.driver.build_table_name(name, schema)

    # =========================================================================
    # TABLES
    # =========================================================================

    async def load_tables(self, table_names: Optional[Sequence[str]] = None) -> List[Table]:
        """
        Load tables with columns, constraints, indices and foreign keys.

        Args:
            table_names: Table names or schema-qualified paths; None or
                empty loads every table outside the system schemas

        Returns:
            Tables in catalog order; names that do not exist are skipped
        """
        current_database = await self.get_current_database()
        current_schema = await self.get_current_schema()

        tables_sql = (
            'SELECT "table_schema", "table_name", '
            "obj_description(('\"' || \"table_schema\" || '\".\"' || \"table_name\" || '\"')::regclass, 'pg_class') "
            'AS "table_comment" FROM "information_schema"."tables" '
            "WHERE \"table_type\" = 'BASE TABLE'"
        )
        if table_names:
            condition, params = _condition(
                self._requested_pairs(table_names, current_schema), '"table_schema"', '"table_name"'
            )
            db_tables = await self.query(f"{tables_sql} AND ({condition})", params)
        else:
            db_tables = await self.query(
                f"{tables_sql} AND \"table_schema\" NOT IN ('pg_catalog', 'information_schema') "
                "AND \"table_schema\" !~ '^pg_'"
            )

        if not db_tables:
            return []

        pairs = [(row["table_schema"], row["table_name"]) for row in db_tables]
        db_columns = await self._load_columns(pairs)
        db_constraints = await self._load_constraints(pairs)
        db_indices = await self._load_indices(pairs, relkinds="'r', 'p'")
        db_foreign_keys = await self._load_foreign_keys(pairs)

        enum_labels = await self._load_enum_labels(db_columns)
        spatial = await self._load_spatial_columns(pairs, db_columns)
        expressions = await self._load_generated_expressions(pairs, db_columns)

        columns_by_table = _group(db_columns, "table_schema", "table_name")
        constraints_by_table = _group(db_constraints, "table_schema", "table_name")
        indices_by_table = _group(db_indices, "table_schema", "table_name")
        foreign_keys_by_table = _group(db_foreign_keys, "table_schema", "table_name")

        tables = []
        for db_table in db_tables:
            key = (db_table["table_schema"], db_table["table_name"])
            table = Table(
                name=self._display_name(key[0], key[1], current_schema),
                database=current_database,
                schema=key[0],
                comment=db_table["table_comment"] or None,
            )
            constraints = constraints_by_table.get(key, [])
            table.columns = [
                self._build_column(table, row, constraints, enum_labels, spatial, expressions)
                for row in columns_by_table.get(key, [])
            ]
            self._attach_constraints(table, constraints)
            table.foreign_keys = self._build_foreign_keys(foreign_keys_by_table.get(key, []), current_schema)
            table.indices = self._build_indices(indices_by_table.get(key, []))
            tables.append(table)

        logger.debug(f"loaded {len(tables)} tables")
        return tables

    async def _load_columns(self, pairs: Sequence[Pair]) -> List[Dict[str, Any]]:
        condition, params = _condition(pairs, '"columns"."table_schema"', '"columns"."table_name"')
        sql = (
            'SELECT "columns".*, '
            "pg_catalog.col_description(('\"' || \"columns\".\"table_schema\" || '\".\"' || "
            "\"columns\".\"table_name\" || '\"')::regclass::oid, \"columns\".\"ordinal_position\") AS \"description\", "
            "('\"' || \"columns\".\"udt_schema\" || '\".\"' || \"columns\".\"udt_name\" || '\"')::\"regtype\"::text AS \"regtype\", "
            'pg_catalog.format_type("col_attr"."atttypid", "col_attr"."atttypmod") AS "format_type" '
            'FROM "information_schema"."columns" '
            'LEFT JOIN "pg_catalog"."pg_attribute" AS "col_attr" '
            'ON "col_attr"."attname" = "columns"."column_name" '
            'AND "col_attr"."attrelid" = ('
            'SELECT "cls"."oid" FROM "pg_catalog"."pg_class" AS "cls" '
            'LEFT JOIN "pg_catalog"."pg_namespace" AS "ns" ON "ns"."oid" = "cls"."relnamespace" '
            'WHERE "cls"."relname" = "columns"."table_name" AND "ns"."nspname" = "columns"."table_schema") '
            f"WHERE {condition} "
            'ORDER BY "columns"."table_schema", "columns"."table_name", "columns"."ordinal_position"'
        )
        return await self.query(sql, params)

    async def _load_constraints(self, pairs: Sequence[Pair]) -> List[Dict[str, Any]]:
        condition, params = _condition(pairs, '"ns"."nspname"', '"t"."relname"')
        sql = (
            'SELECT "ns"."nspname" AS "table_schema", "t"."relname" AS "table_name", '
            '"cnst"."conname" AS "constraint_name", '
            'pg_get_constraintdef("cnst"."oid") AS "expression", '
            "CASE \"cnst\".\"contype\" WHEN 'p' THEN 'PRIMARY' WHEN 'u' THEN 'UNIQUE' "
            "WHEN 'c' THEN 'CHECK' WHEN 'x' THEN 'EXCLUDE' END AS \"constraint_type\", "
            '"a"."attname" AS "column_name", '
            '"cnst"."condeferrable" AS "deferrable", '
            "CASE WHEN \"cnst\".\"condeferred\" THEN 'INITIALLY DEFERRED' ELSE 'INITIALLY IMMEDIATE' END AS \"deferred\" "
            'FROM "pg_constraint" "cnst" '
            'INNER JOIN "pg_class" "t" ON "t"."oid" = "cnst"."conrelid" '
            'INNER JOIN "pg_namespace" "ns" ON "ns"."oid" = "cnst"."connamespace" '
            'LEFT JOIN "pg_attribute" "a" ON "a"."attrelid" = "cnst"."conrelid" AND "a"."attnum" = ANY ("cnst"."conkey") '
            "WHERE \"t\".\"relkind\" IN ('r', 'p') AND \"cnst\".\"contype\" IN ('p', 'u', 'c', 'x') "
            f"AND ({condition})"
        )
        return await self.query(sql, params)

    async def _load_indices(self, pairs: Sequence[Pair], relkinds: str) -> List[Dict[str, Any]]:
        condition, params = _condition(pairs, '"ns"."nspname"', '"t"."relname"')
        sql = (
            'SELECT "ns"."nspname" AS "table_schema", "t"."relname" AS "table_name", '
            '"i"."relname" AS "constraint_name", "a"."attname" AS "column_name", '
            '"ix"."indisunique" AS "is_unique", '
            'pg_get_expr("ix"."indpred", "ix"."indrelid") AS "condition", '
            '"types"."typname" AS "type_name", "am"."amname" AS "index_type" '
            'FROM "pg_class" "t" '
            'INNER JOIN "pg_index" "ix" ON "ix"."indrelid" = "t"."oid" '
            'INNER JOIN "pg_attribute" "a" ON "a"."attrelid" = "t"."oid" AND "a"."attnum" = ANY ("ix"."indkey") '
            'INNER JOIN "pg_namespace" "ns" ON "ns"."oid" = "t"."relnamespace" '
            'INNER JOIN "pg_class" "i" ON "i"."oid" = "ix"."indexrelid" '
            'INNER JOIN "pg_type" "types" ON "types"."oid" = "a"."atttypid" '
            'INNER JOIN "pg_am" "am" ON "i"."relam" = "am"."oid" '
            'LEFT JOIN "pg_constraint" "cnst" ON "cnst"."conname" = "i"."relname" '
            f'WHERE "t"."relkind" IN ({relkinds}) AND "cnst"."contype" IS NULL AND ({condition})'
        )
        return await self.query(sql, params)

    async def _load_foreign_keys(self, pairs: Sequence[Pair]) -> List[Dict[str, Any]]:
        condition, params = _condition(pairs, '"ns"."nspname"', '"cl"."relname"')
        actions = (
            "WHEN 'a' THEN 'NO ACTION' WHEN 'r' THEN 'RESTRICT' WHEN 'c' THEN 'CASCADE' "
            "WHEN 'n' THEN 'SET NULL' WHEN 'd' THEN 'SET DEFAULT'"
        )
        sql = (
            'SELECT "con"."conname" AS "constraint_name", "con"."nspname" AS "table_schema", '
            '"con"."relname" AS "table_name", "att2"."attname" AS "column_name", '
            '"ns"."nspname" AS "referenced_table_schema", "cl"."relname" AS "referenced_table_name", '
            '"att"."attname" AS "referenced_column_name", "con"."confdeltype" AS "on_delete", '
            '"con"."confupdtype" AS "on_update", "con"."condeferrable" AS "deferrable", '
            '"con"."condeferred" AS "deferred" '
            "FROM ("
            'SELECT UNNEST ("con1"."conkey") AS "parent", UNNEST ("con1"."confkey") AS "child", '
            '"con1"."confrelid", "con1"."conrelid", "con1"."conname", "con1"."contype", '
            '"ns"."nspname", "cl"."relname", "con1"."condeferrable", '
            "CASE WHEN \"con1\".\"condeferred\" THEN 'INITIALLY DEFERRED' ELSE 'INITIALLY IMMEDIATE' END AS \"condeferred\", "
            f'CASE "con1"."confdeltype" {actions} END AS "confdeltype", '
            f'CASE "con1"."confupdtype" {actions} END AS "confupdtype" '
            'FROM "pg_class" "cl" '
            'INNER JOIN "pg_namespace" "ns" ON "cl"."relnamespace" = "ns"."oid" '
            'INNER JOIN "pg_constraint" "con1" ON "con1"."conrelid" = "cl"."oid" '
            f"WHERE \"con1\".\"contype\" = 'f' AND ({condition})"
            ') "con" '
            'INNER JOIN "pg_attribute" "att" ON "att"."attrelid" = "con"."confrelid" AND "att"."attnum" = "con"."child" '
            'INNER JOIN "pg_class" "cl" ON "cl"."oid" = "con"."confrelid" AND "cl"."relispartition" = \'f\' '
            'INNER JOIN "pg_namespace" "ns" ON "cl"."relnamespace" = "ns"."oid" '
            'INNER JOIN "pg_attribute" "att2" ON "att2"."attrelid" = "con"."conrelid" AND "att2"."attnum" = "con"."parent"'
        )
        return await self.query(sql, params)

    async def _load_enum_labels(self, db_columns: List[Dict[str, Any]]) -> Dict[Pair, List[str]]:
        """Labels of every user-defined type referenced by the columns, keyed by (schema, type)."""
        udts = []
        for row in db_columns:
            if row["data_type"] not in ("USER-DEFINED", "ARRAY"):
                continue
            udt_name = row["udt_name"][1:] if row["data_type"] == "ARRAY" else row["udt_name"]
            udts.append((row["udt_schema"], udt_name))
        udts = list(dict.fromkeys(udts))
        if not udts:
            return {}

        condition, params = _condition(udts, '"n"."nspname"', '"t"."typname"')
        rows = await self.query(
            'SELECT "n"."nspname" AS "type_schema", "t"."typname" AS "type_name", "e"."enumlabel" AS "value" '
            'FROM "pg_enum" "e" '
            'INNER JOIN "pg_type" "t" ON "t"."oid" = "e"."enumtypid" '
            'INNER JOIN "pg_namespace" "n" ON "n"."oid" = "t"."typnamespace" '
            f'WHERE {condition} ORDER BY "e"."enumsortorder"',
            params,
        )
        labels: Dict[Pair, List[str]] = defaultdict(list)
        for row in rows:
            labels[(row["type_schema"], row["type_name"])].append(row["value"])
        return dict(labels)

    async def _load_spatial_columns(self, pairs: Sequence[Pair], db_columns: List[Dict[str, Any]]) -> Dict[tuple, Dict[str, Any]]:
        """PostGIS feature type and SRID, keyed by (schema, table, column)."""
        spatial_types = {row["udt_name"] for row in db_columns if row["udt_name"] in self.driver.spatial_types}
        found: Dict[tuple, Dict[str, Any]] = {}
        for spatial_type in sorted(spatial_types):
            catalog = f"{spatial_type}_columns"
            condition, params = _condition(pairs, '"f_table_schema"', '"f_table_name"')
            rows = await self.query(
                f'SELECT "f_table_schema" AS "table_schema", "f_table_name" AS "table_name", '
                f'"f_{spatial_type}_column" AS "column_name", "type", "srid" '
                f'FROM "{catalog}" WHERE {condition}',
                params,
            )
            for row in rows:
                found[(row["table_schema"], row["table_name"], row["column_name"])] = row
        return found

    async def _load_generated_expressions(self, pairs: Sequence[Pair], db_columns: List[Dict[str, Any]]) -> Dict[tuple, str]:
        """
        Declared expressions of STORED columns, keyed by (schema, table, column).

        The catalog reformats generation expressions, so the declared text is
        read back from the metadata table when it exists.
        """
        if not any(row.get("is_generated") == "ALWAYS" for row in db_columns):
            return {}
        if not await self.has_table(self.get_metadata_table_name()):
            return {}

        condition, params = _condition(pairs, '"schema"', '"table"')
        rows = await self.query(
            f'SELECT "schema", "table", "name", "value" FROM {self.escape_path(self.get_metadata_table_name())} '
            f"WHERE \"type\" = 'GENERATED_COLUMN' AND ({condition})",
            params,
        )
        return {(row["schema"], row["table"], row["name"]): row["value"] for row in rows}

    # =========================================================================
    # ROW PARSING
    # =========================================================================

    def _build_column(
        self,
        table: Table,
        row: Dict[str, Any],
        constraints: List[Dict[str, Any]],
        enum_labels: Dict[Pair, List[str]],
        spatial: Dict[tuple, Dict[str, Any]],
        expressions: Dict[tuple, str],
    ) -> TableColumn:
        column = TableColumn(name=row["column_name"], type=(row["regtype"] or row["data_type"]).lower())
        key = (row["table_schema"], row["table_name"], row["column_name"])

        if row["data_type"] in ("USER-DEFINED", "ARRAY"):
            udt_name = row["udt_name"][1:] if row["data_type"] == "ARRAY" else row["udt_name"]
            labels = enum_labels.get((row["udt_schema"], udt_name))
            if labels is not None:
                column.type = "enum"
                column.enum = list(labels)
                default_name = self.build_enum_name(table, column, with_schema=False, disable_escape=True)
                column.enum_name = udt_name if udt_name != default_name else None
            if row["data_type"] == "ARRAY":
                column.is_array = True
                column.type = self.driver.normalize_type(column.type.replace("[]", ""))

        if column.type in _NUMERIC_TYPES:
            precision, scale = row["numeric_precision"], row["numeric_scale"]
            if column.is_array and row["format_type"]:
                match = re.match(r"^numeric\((\d+),(\d+)\)\[\]$", row["format_type"])
                if match:
                    precision, scale = int(match.group(1)), int(match.group(2))
            column.precision = precision
            column.scale = scale

        if column.type in _DATETIME_TYPES:
            column.precision = self.driver.comparable_precision(column.type, row["datetime_precision"])

        if column.type in self.driver.spatial_types:
            found = spatial.get(key)
            if found is not None:
                # An untyped column reports GEOMETRY / SRID 0
                if found["type"] and found["type"].upper() != "GEOMETRY":
                    column.spatial_feature_type = found["type"]
                if found["srid"]:
                    column.srid = found["srid"]

        if column.type in self.driver.with_length_column_types:
            length = None
            if column.is_array and row["format_type"]:
                match = re.search(r"\((\d+)\)", row["format_type"])
                length = match.group(1) if match else None
            elif row["character_maximum_length"]:
                length = str(row["character_maximum_length"])
            if length:
                default = self.driver.data_type_defaults.get(column.type, {}).get("length")
                column.length = "" if default is not None and str(default) == length else length

        column.is_nullable = row["is_nullable"] == "YES"
        self._apply_key_constraints(table, column, row, constraints)
        self._apply_generation(table, column, row)

        if row.get("is_generated") == "ALWAYS" and row.get("generation_expression"):
            column.generated_type = "STORED"
            column.as_expression = expressions.get(key, "")

        column.comment = row["description"] or None
        column.charset = row.get("character_set_name") or None
        column.collation = row.get("collation_name") or None
        return column

    def _apply_key_constraints(self, table: Table, column: TableColumn, row: Dict[str, Any], constraints: List[Dict[str, Any]]) -> None:
        """Primary key membership (with custom name detection) and single-column uniqueness."""
        primary = [c for c in constraints if c["constraint_type"] == "PRIMARY"]
        own_primary = next((c for c in primary if c["column_name"] == column.name), None)
        if own_primary is not None:
            column.is_primary = True
            column_names = [c["column_name"] for c in primary]
            default_name = self.naming_strategy.primary_key_name(table, column_names)
            if own_primary["constraint_name"] != default_name:
                column.primary_key_constraint_name = own_primary["constraint_name"]

        uniques = [c for c in constraints if c["constraint_type"] == "UNIQUE"]
        own_uniques = {c["constraint_name"] for c in uniques if c["column_name"] == column.name}
        single = [
            name for name in own_uniques
            if all(c["column_name"] == column.name for c in uniques if c["constraint_name"] == name)
        ]
        column.is_unique = bool(single)

    def _apply_generation(self, table: Table, column: TableColumn, row: Dict[str, Any]) -> None:
        """Identity, serial and uuid generation, or the plain default."""
        if row.get("is_identity") == "YES":
            column.is_generated = True
            column.generation_strategy = "identity"
            column.generated_identity = row.get("identity_generation")
            return

        column_default = row["column_default"]
        if column_default is None:
            return

        serial_name = f"nextval('{self.build_sequence_name(table, column.name)}'::regclass)"
        serial_path = f"nextval('{self.build_sequence_path(table, column.name)}'::regclass)"
        if column_default.replace('"', "") in (serial_name, serial_path):
            column.is_generated = True
            column.generation_strategy = "increment"
        elif column_default == "gen_random_uuid()" or _UUID_DEFAULT.match(column_default):
            if column.type == "uuid":
                column.is_generated = True
                column.generation_strategy = "uuid"
            else:
                column.default = column_default
        elif column_default == "now()" or "'now'::text" in column_default:
            column.default = column_default
        else:
            default = _CAST_SUFFIX.sub("", column_default)
            column.default = re.sub(r"^(-?\d+(?:\.\d+)?)$", r"'\1'", default)

    def _attach_constraints(self, table: Table, constraints: List[Dict[str, Any]]) -> None:
        """Group unique, check and exclusion rows by constraint name."""
        for (constraint_type, name), rows in _group(constraints, "constraint_type", "constraint_name").items():
            column_names = [r["column_name"] for r in rows if r["column_name"] is not None]
            first = rows[0]
            if constraint_type == "UNIQUE":
                table.uniques.append(TableUnique(
                    name=name,
                    column_names=column_names,
                    deferrable=first["deferred"] if first["deferrable"] else None,
                ))
            elif constraint_type == "CHECK":
                table.checks.append(TableCheck(
                    name=name,
                    column_names=column_names,
                    expression=re.sub(r"^\s*CHECK\s*\((.*)\)\s*$", r"\1", first["expression"], flags=re.IGNORECASE | re.DOTALL),
                ))
            elif constraint_type == "EXCLUDE":
                table.exclusions.append(TableExclusion(
                    name=name,
                    expression=first["expression"][len("EXCLUDE "):],
                ))

    def _build_foreign_keys(self, rows: List[Dict[str, Any]], current_schema: str) -> List[TableForeignKey]:
        foreign_keys = []
        for (name,), fk_rows in _group(rows, "constraint_name").items():
            first = fk_rows[0]
            foreign_keys.append(TableForeignKey(
                name=name,
                column_names=[r["column_name"] for r in fk_rows],
                referenced_schema=first["referenced_table_schema"],
                referenced_table_name=self._display_name(
                    first["referenced_table_schema"], first["referenced_table_name"], current_schema
                ),
                referenced_column_names=[r["referenced_column_name"] for r in fk_rows],
                on_delete=first["on_delete"],
                on_update=first["on_update"],
                deferrable=first["deferred"] if first["deferrable"] else None,
            ))
        return foreign_keys

    @staticmethod
    def _build_indices(rows: List[Dict[str, Any]]) -> List[TableIndex]:
        indices = []
        for (name,), index_rows in _group(rows, "constraint_name").items():
            first = index_rows[0]
            indices.append(TableIndex(
                name=name,
                column_names=[r["column_name"] for r in index_rows],
                is_unique=bool(first["is_unique"]),
                is_spatial=first.get("index_type") == "gist",
                where=first["condition"] or "",
            ))
        return indices

    # =========================================================================
    # VIEWS
    # =========================================================================

    async def load_views(self, view_names: Optional[Sequence[str]] = None) -> List[View]:
        """
        Load views and materialized views recorded in the metadata table.

        View definitions come from the metadata table, not pg_views, so the
        declared text can be compared verbatim. Without the metadata table
        no views are known.
        """
        if not await self.has_table(self.get_metadata_table_name()):
            return []

        current_database = await self.get_current_database()
        current_schema = await self.get_current_schema()

        sql = (
            f'SELECT "t".* FROM {self.escape_path(self.get_metadata_table_name())} "t" '
            'INNER JOIN "pg_catalog"."pg_class" "c" ON "c"."relname" = "t"."name" '
            'INNER JOIN "pg_namespace" "n" ON "n"."oid" = "c"."relnamespace" AND "n"."nspname" = "t"."schema" '
            "WHERE \"t\".\"type\" IN ('VIEW', 'MATERIALIZED_VIEW')"
        )
        params: List[str] = []
        if view_names:
            configured_schema = self.driver.options.schema or current_schema
            condition, params = _condition(
                self._requested_pairs(view_names, configured_schema), '"t"."schema"', '"t"."name"'
            )
            sql += f" AND ({condition})"
        db_views = await self.query(sql, params or None)
        if not db_views:
            return []

        pairs = [(row["schema"], row["name"]) for row in db_views]
        db_indices = await self._load_indices(pairs, relkinds="'m'")
        indices_by_view = _group(db_indices, "table_schema", "table_name")

        views = []
        for db_view in db_views:
            views.append(View(
                name=self._display_name(db_view["schema"], db_view["name"], current_schema),
                database=current_database,
                schema=db_view["schema"],
                expression=db_view["value"],
                materialized=db_view["type"] == "MATERIALIZED_VIEW",
                indices=self._build_indices(indices_by_view.get((db_view["schema"], db_view["name"]), [])),
            ))

        logger.debug(f"loaded {len(views)} views")
        return views


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["PostgresIntrospectionMixin"]
