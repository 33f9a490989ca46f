# ============================================================================
# POSTGRESQL DRIVER
# ============================================================================
# STATUS: Infrastructure - Dialect capability table and connection pools
# PURPOSE: Normalize declared columns, render types, hand out connections
# CREATED: 14 OCT 2026
# ============================================================================
"""
PostgreSQL Driver

Holds everything dialect-specific that is not a statement: which types
take a length, precision or scale, how declared types and defaults are
normalized so they compare equal to introspected ones, and the master and
replica connection pools.

Pools are created with open=False and opened explicitly in connect().
Connections run in autocommit mode; transactions are issued as SQL by the
query runner so nesting through savepoints stays under its control.

Usage:
    from infrastructure.postgres_driver import PostgresDriver

    driver = PostgresDriver(PostgresConnectionOptions.from_env())
    await driver.connect()
    runner = driver.create_query_runner()
"""

import json
import random
import re
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from core.config.connection import PostgresConnectionOptions
from core.config.defaults import UuidExtension
from core.errors import DriverNotConnectedError, QueryFailedError
from core.logging import ComponentType, QueryLogger, get_logger
from core.metadata.entity import ColumnMetadata, EntityMetadata, ForeignKeyMetadata
from core.schema.column import TableColumn
from core.schema.constraints import TableForeignKey
from core.schema.ddl_utils import TYPE_MAP, escape_identifier
from core.schema.naming import DefaultNamingStrategy, NamingStrategy
from core.schema.table import Table
from core.schema.view import View

logger = get_logger(__name__, ComponentType.DRIVER)

ReleaseCallback = Callable[[Optional[BaseException]], Awaitable[None]]
PoolFactory = Callable[[str, PostgresConnectionOptions], Any]


# ============================================================================
# CAPABILITY TABLE
# ============================================================================

SUPPORTED_DATA_TYPES = (
    "int", "int2", "int4", "int8", "smallint", "integer", "bigint",
    "decimal", "numeric", "real", "float", "float4", "float8", "double precision",
    "money", "character varying", "varchar", "character", "char", "text",
    "citext", "hstore", "bytea", "bit", "varbit", "bit varying",
    "timetz", "timestamptz", "timestamp", "timestamp without time zone",
    "timestamp with time zone", "date", "time", "time without time zone",
    "time with time zone", "interval", "bool", "boolean", "enum",
    "point", "line", "lseg", "box", "path", "polygon", "circle",
    "cidr", "inet", "macaddr", "macaddr8", "tsvector", "tsquery", "uuid",
    "xml", "json", "jsonb", "jsonpath", "int4range", "int8range", "numrange",
    "tsrange", "tstzrange", "daterange", "int4multirange", "int8multirange",
    "nummultirange", "tsmultirange", "tstzmultirange", "datemultirange",
    "geometry", "geography", "cube", "ltree",
)

SPATIAL_TYPES = ("geometry", "geography")

WITH_LENGTH_COLUMN_TYPES = (
    "character varying", "varchar", "character", "char", "bit", "varbit", "bit varying",
)

WITH_PRECISION_COLUMN_TYPES = (
    "numeric", "decimal", "interval", "time without time zone", "time with time zone",
    "timestamp without time zone", "timestamp with time zone",
)

WITH_SCALE_COLUMN_TYPES = ("numeric", "decimal")

DATA_TYPE_DEFAULTS: Dict[str, Dict[str, int]] = {
    "character": {"length": 1},
    "bit": {"length": 1},
    "interval": {"precision": 6},
    "time without time zone": {"precision": 6},
    "time with time zone": {"precision": 6},
    "timestamp without time zone": {"precision": 6},
    "timestamp with time zone": {"precision": 6},
}

MAPPED_DATA_TYPES = {
    "metadata_type": "varchar",
    "metadata_database": "varchar",
    "metadata_schema": "varchar",
    "metadata_table": "varchar",
    "metadata_name": "varchar",
    "metadata_value": "text",
    "migration_id": "integer",
    "migration_name": "varchar",
    "migration_timestamp": "int8",
}

TYPE_ALIASES = {
    "int": "integer",
    "int4": "integer",
    "int2": "smallint",
    "int8": "bigint",
    "decimal": "numeric",
    "float8": "double precision",
    "float": "double precision",
    "float4": "real",
    "char": "character",
    "varchar": "character varying",
    "varbit": "bit varying",
    "time": "time without time zone",
    "timetz": "time with time zone",
    "timestamp": "timestamp without time zone",
    "timestamptz": "timestamp with time zone",
    "bool": "boolean",
    "simple-array": "text",
    "simple-json": "text",
    "simple-enum": "enum",
}

SUPPORTED_UPSERT_TYPES = ("on-conflict-do-update", "on-conflict-do-nothing")

# Extensions installed on demand when the declared model needs them
EXTENSION_TYPES = {
    "hstore": "hstore",
    "citext": "citext",
    "ltree": "ltree",
    "cube": "cube",
    "geometry": "postgis",
    "geography": "postgis",
}

_DATETIME_FUNCTIONS = ("CURRENT_TIMESTAMP", "CURRENT_DATE", "CURRENT_TIME", "LOCALTIMESTAMP", "LOCALTIME")


def default_pool_factory(conninfo: str, options: PostgresConnectionOptions) -> AsyncConnectionPool:
    """Closed AsyncConnectionPool; opened by PostgresDriver.connect()."""
    return AsyncConnectionPool(
        conninfo=conninfo,
        min_size=options.pool.min_size,
        max_size=options.pool.max_size,
        timeout=options.pool.timeout_seconds,
        kwargs={
            "autocommit": True,
            "row_factory": dict_row,
            "application_name": options.pool.application_name,
        },
        open=False,  # We'll open it explicitly
    )


class PostgresDriver:
    """
    PostgreSQL dialect: capability table, normalization and pools.

    database, schema and search_schema start from the options and are
    resolved from the server in after_connect() when not given.
    """

    supported_data_types = SUPPORTED_DATA_TYPES
    spatial_types = SPATIAL_TYPES
    with_length_column_types = WITH_LENGTH_COLUMN_TYPES
    with_precision_column_types = WITH_PRECISION_COLUMN_TYPES
    with_scale_column_types = WITH_SCALE_COLUMN_TYPES
    data_type_defaults = DATA_TYPE_DEFAULTS
    mapped_data_types = MAPPED_DATA_TYPES
    supported_upsert_types = SUPPORTED_UPSERT_TYPES
    max_alias_length = 63
    transaction_support = "nested"
    is_returning_sql_supported = True

    def __init__(
        self,
        options: PostgresConnectionOptions,
        naming_strategy: Optional[NamingStrategy] = None,
        subscribers: Optional[List[Any]] = None,
        pool_factory: Optional[PoolFactory] = None,
    ):
        self.options = options
        self.naming_strategy = naming_strategy or DefaultNamingStrategy(self.max_alias_length)
        self.subscribers = list(subscribers or [])
        self.pool_factory = pool_factory or default_pool_factory
        self.query_logger = QueryLogger(
            log_queries=options.sync.log_queries,
            log_errors=options.sync.log_errors,
            log_schema_build=options.sync.log_schema_build,
        )

        self.database: Optional[str] = options.database
        self.schema: Optional[str] = options.schema
        self.search_schema: Optional[str] = None
        self.version: Optional[str] = None

        self.master = None
        self.slaves: List[Any] = []
        self.connected_query_runners: List[Any] = []

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def is_replicated(self) -> bool:
        return self.options.is_replicated

    @property
    def is_connected(self) -> bool:
        return self.master is not None

    async def connect(self) -> None:
        """Create and open the master pool and one pool per replica."""
        if self.master is not None:
            logger.warning("Driver already connected, keeping existing pools")
            return

        logger.info(f"Opening master pool: {self.options.safe_conninfo}")
        master = self.pool_factory(self.options.conninfo, self.options)
        await master.open()
        self.master = master

        for replica in self.options.replicas:
            logger.info(f"Opening replica pool: {PostgresConnectionOptions(conninfo=replica).safe_conninfo}")
            pool = self.pool_factory(replica, self.options)
            await pool.open()
            self.slaves.append(pool)

        logger.info(
            f"Connection pools opened (min={self.options.pool.min_size}, "
            f"max={self.options.pool.max_size}, replicas={len(self.slaves)})"
        )

    async def after_connect(self, entities: Sequence[EntityMetadata] = ()) -> None:
        """
        Resolve server-side defaults and install required extensions.

        Args:
            entities: Declared model, scanned for extension-backed types
        """
        runner = self.create_query_runner("master")
        try:
            if self.options.sync.install_extensions and entities:
                await self._install_extensions(runner, entities)
            if not self.database:
                self.database = await runner.get_current_database()
            if not self.search_schema:
                self.search_schema = await runner.get_current_schema()
            self.version = await runner.get_version()
        finally:
            await runner.release()

        if not self.schema:
            self.schema = self.search_schema

        logger.info(
            f"Connected to {self.database} (schema={self.schema}, "
            f"search_schema={self.search_schema}, version={self.version})"
        )

    async def _install_extensions(self, runner, entities: Sequence[EntityMetadata]) -> None:
        for extension in self.required_extensions(entities):
            try:
                await runner.query(f'CREATE EXTENSION IF NOT EXISTS "{extension}"')
            except QueryFailedError as e:
                logger.warning(
                    f"Extension {extension} is required by the declared model but could not be "
                    f"installed automatically. Install it manually. ({e})"
                )

    def required_extensions(self, entities: Sequence[EntityMetadata]) -> List[str]:
        """Extensions the declared model needs, in a stable order."""
        needed: List[str] = []
        for entity in entities:
            for column in entity.columns:
                column_type = self.normalize_type(column)
                if column.generation_strategy == "uuid":
                    needed.append(self.options.sync.uuid_extension)
                if column_type in EXTENSION_TYPES:
                    needed.append(EXTENSION_TYPES[column_type])
            for exclusion in entity.exclusions:
                if "gist" in exclusion.expression.lower():
                    needed.append("btree_gist")
        return list(dict.fromkeys(needed))

    async def disconnect(self) -> None:
        """Close every pool."""
        if self.master is None:
            return
        for pool in self.slaves:
            await pool.close()
        await self.master.close()
        self.master = None
        self.slaves = []
        logger.info("Connection pools closed")

    def create_query_runner(self, mode: str = "master"):
        from infrastructure.postgres_query_runner import PostgresQueryRunner

        return PostgresQueryRunner(self, mode)

    async def obtain_master_connection(self) -> Tuple[Any, ReleaseCallback]:
        if self.master is None:
            raise DriverNotConnectedError()
        return await self._obtain_connection(self.master)

    async def obtain_slave_connection(self) -> Tuple[Any, ReleaseCallback]:
        if not self.slaves:
            return await self.obtain_master_connection()
        return await self._obtain_connection(random.choice(self.slaves))

    @staticmethod
    async def _obtain_connection(pool) -> Tuple[Any, ReleaseCallback]:
        connection = await pool.getconn()

        async def release(error: Optional[BaseException] = None) -> None:
            # A broken connection is closed so the pool discards it
            if error is not None and not connection.closed:
                await connection.close()
            await pool.putconn(connection)

        return connection, release

    # =========================================================================
    # NAMES
    # =========================================================================

    @staticmethod
    def escape(name: str) -> str:
        return escape_identifier(name)

    @staticmethod
    def build_table_name(table_name: str, schema: Optional[str] = None, database: Optional[str] = None) -> str:
        """Join schema and table; the database is never part of a PostgreSQL path."""
        parts = [table_name]
        if schema:
            parts.insert(0, schema)
        return ".".join(parts)

    def parse_table_name(self, target: Union[str, Table, View, TableForeignKey, EntityMetadata, ForeignKeyMetadata]) -> Dict[str, Optional[str]]:
        """
        Split a table reference into database, schema and table name.

        Missing parts fall back to the driver's database and schema.
        """
        if isinstance(target, (Table, View)):
            parsed = self.parse_table_name(target.name)
            return {
                "database": target.database or parsed["database"] or self.database,
                "schema": target.schema or parsed["schema"] or self.schema,
                "table_name": parsed["table_name"],
            }
        if isinstance(target, TableForeignKey):
            parsed = self.parse_table_name(target.referenced_table_name)
            return {
                "database": target.referenced_database or parsed["database"] or self.database,
                "schema": target.referenced_schema or parsed["schema"] or self.schema,
                "table_name": parsed["table_name"],
            }
        if isinstance(target, ForeignKeyMetadata):
            return {
                "database": target.referenced_database or self.database,
                "schema": target.referenced_schema or self.schema,
                "table_name": target.referenced_table,
            }
        if isinstance(target, EntityMetadata):
            return {
                "database": target.database or self.database,
                "schema": target.schema_name or self.schema,
                "table_name": target.table_name,
            }

        parts = target.split(".")
        return {
            "database": self.database,
            "schema": (parts[0] if len(parts) > 1 else None) or self.schema,
            "table_name": parts[1] if len(parts) > 1 else parts[0],
        }

    def get_table_path(self, target) -> str:
        """Canonical cache key: schema-qualified table name."""
        parsed = self.parse_table_name(target)
        return self.build_table_name(parsed["table_name"], parsed["schema"], parsed["database"])

    @property
    def uuid_generator(self) -> str:
        if self.options.sync.uuid_extension == UuidExtension.PGCRYPTO.value:
            return "gen_random_uuid()"
        return "uuid_generate_v4()"

    # =========================================================================
    # NORMALIZATION
    # =========================================================================

    def normalize_type(self, column: Union[ColumnMetadata, TableColumn, Any]) -> str:
        """
        Canonical type name for a declared column.

        Python types map through TYPE_MAP; aliases map to the names the
        catalog reports (varchar -> character varying).
        """
        column_type = column.type if hasattr(column, "type") else column
        if isinstance(column_type, type):
            if issubclass(column_type, Enum):
                return "enum"
            return TYPE_MAP.get(column_type, "")
        if not column_type:
            return ""
        return TYPE_ALIASES.get(column_type, column_type)

    def normalize_default(self, column: ColumnMetadata) -> Optional[str]:
        """
        Render a declared default as the SQL expression the catalog reports.

        Returns:
            SQL expression, or None when the column has no default
        """
        value = column.default
        if value is None:
            return None

        if isinstance(value, Enum):
            value = value.value

        if column.is_array and isinstance(value, (list, tuple)):
            return "'{" + ",".join(str(v) for v in value) + "}'"

        if self.normalize_type(column) == "enum" and not callable(value):
            return "'" + str(value).replace("'", "''") + "'"

        if isinstance(value, bool):
            return "true" if value else "false"

        if isinstance(value, (int, float, Decimal, str)):
            return "'" + str(value).replace("'", "''") + "'"

        if callable(value):
            return self.normalize_datetime_function(value())

        if isinstance(value, (dict, list, tuple)):
            return "'" + json.dumps(value).replace("'", "''") + "'"

        return str(value)

    @staticmethod
    def normalize_datetime_function(value: str) -> str:
        """Map SQL-standard datetime keywords to the form PostgreSQL stores."""
        upper = value.upper()
        if not any(fn in upper for fn in _DATETIME_FUNCTIONS):
            return value

        match = re.search(r"\(\d+\)", value)
        precision = match.group(0) if match else None

        if "CURRENT_TIMESTAMP" in upper:
            return f"('now'::text)::timestamp{precision} with time zone" if precision else "now()"
        if upper == "CURRENT_DATE":
            return "('now'::text)::date"
        if "CURRENT_TIME" in upper:
            return f"('now'::text)::time{precision} with time zone" if precision else "('now'::text)::time with time zone"
        if "LOCALTIMESTAMP" in upper:
            return f"('now'::text)::timestamp{precision} without time zone" if precision else "('now'::text)::timestamp without time zone"
        if "LOCALTIME" in upper:
            return f"('now'::text)::time{precision} without time zone" if precision else "('now'::text)::time without time zone"
        return value

    @staticmethod
    def lower_default_value_if_necessary(value: Optional[str]) -> Optional[str]:
        """Lower-case everything outside single-quoted literals."""
        if not value:
            return value
        return "'".join(
            part.lower() if i % 2 == 0 else part
            for i, part in enumerate(value.split("'"))
        )

    @staticmethod
    def normalize_is_unique(column: ColumnMetadata, entity: EntityMetadata) -> bool:
        """True when the entity declares a single-column unique on this column."""
        return any(unique.columns == [column.name] for unique in entity.uniques)

    def get_column_length(self, column) -> str:
        if column.length:
            return str(column.length)
        defaults = self.data_type_defaults.get(self.normalize_type(column), {})
        if defaults.get("length"):
            return str(defaults["length"])
        return ""

    def comparable_length(self, column_type: str, length: Optional[str]) -> str:
        """Length with the type default collapsed to ""."""
        if not length:
            return ""
        default = self.data_type_defaults.get(column_type, {}).get("length")
        if default is not None and str(default) == str(length):
            return ""
        return str(length).upper()

    def comparable_precision(self, column_type: str, precision: Optional[int]) -> Optional[int]:
        """Precision with the type default collapsed to None."""
        if precision is None:
            return None
        default = self.data_type_defaults.get(column_type, {}).get("precision")
        if default is not None and default == precision:
            return None
        return precision

    def create_full_type(self, column: TableColumn) -> str:
        """Render type with length, precision/scale, spatial args and array suffix."""
        column_type = column.type
        has_precision = column.precision is not None

        if column.length:
            column_type += f"({column.length})"
        elif has_precision and column.scale is not None:
            column_type += f"({column.precision},{column.scale})"
        elif has_precision:
            column_type += f"({column.precision})"

        precision = f"({column.precision})" if has_precision else ""
        if column.type == "time without time zone":
            column_type = f"TIME{precision}"
        elif column.type == "time with time zone":
            column_type = f"TIME{precision} WITH TIME ZONE"
        elif column.type == "timestamp without time zone":
            column_type = f"TIMESTAMP{precision}"
        elif column.type == "timestamp with time zone":
            column_type = f"TIMESTAMP{precision} WITH TIME ZONE"
        elif column.type in self.spatial_types:
            if column.spatial_feature_type is not None and column.srid is not None:
                column_type = f"{column.type}({column.spatial_feature_type},{column.srid})"
            elif column.spatial_feature_type is not None:
                column_type = f"{column.type}({column.spatial_feature_type})"
            else:
                column_type = column.type

        if column.is_array:
            column_type += " array"

        return column_type

    # =========================================================================
    # DIFF
    # =========================================================================

    def find_changed_columns(self, table_columns: List[TableColumn], entity: EntityMetadata) -> List[ColumnMetadata]:
        """
        Declared columns that exist in the table but differ from it.

        Both sides go through the same normalization so a synchronized
        schema reports no changes.
        """
        changed = []
        for metadata in entity.columns:
            table_column = next((c for c in table_columns if c.name == metadata.name), None)
            if table_column is None:
                continue

            differences = self._column_differences(table_column, metadata, entity)
            if differences:
                logger.debug(f"column {entity.table_name}.{metadata.name} changed: {', '.join(differences)}")
                changed.append(metadata)
        return changed

    def _column_differences(self, table_column: TableColumn, metadata: ColumnMetadata, entity: EntityMetadata) -> List[str]:
        normalized_type = self.normalize_type(metadata)
        diffs = []

        if table_column.name != metadata.name:
            diffs.append("name")
        if not metadata.as_expression and table_column.type != normalized_type:
            diffs.append("type")
        if not metadata.as_expression and (
            self.comparable_length(table_column.type, table_column.length)
            != self.comparable_length(normalized_type, metadata.length)
        ):
            diffs.append("length")
        if table_column.is_array != metadata.is_array:
            diffs.append("is_array")
        if self.comparable_precision(table_column.type, table_column.precision) != self.comparable_precision(normalized_type, metadata.precision):
            diffs.append("precision")
        if metadata.scale is not None and table_column.scale != metadata.scale:
            diffs.append("scale")
        if (table_column.comment or None) != (metadata.comment or None):
            diffs.append("comment")
        if not table_column.is_generated and (
            self.lower_default_value_if_necessary(self.normalize_default(metadata))
            != self.lower_default_value_if_necessary(table_column.default)
        ):
            diffs.append("default")
        if table_column.is_primary != metadata.is_primary:
            diffs.append("is_primary")
        if table_column.is_nullable != metadata.is_nullable:
            diffs.append("is_nullable")
        if table_column.is_unique != self.normalize_is_unique(metadata, entity):
            diffs.append("is_unique")
        if table_column.enum_name != metadata.enum_name:
            diffs.append("enum_name")
        if table_column.enum is not None and metadata.enum is not None and list(table_column.enum) != list(metadata.enum):
            diffs.append("enum")
        if table_column.is_generated != metadata.is_generated:
            diffs.append("is_generated")
        if (table_column.spatial_feature_type or "").lower() != (metadata.spatial_feature_type or "").lower():
            diffs.append("spatial_feature_type")
        if table_column.srid != metadata.srid:
            diffs.append("srid")
        if table_column.generated_type != metadata.generated_type:
            diffs.append("generated_type")
        if (table_column.as_expression or "").strip() != (metadata.as_expression or "").strip():
            diffs.append("as_expression")
        if table_column.collation != metadata.collation:
            diffs.append("collation")
        return diffs


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "PostgresDriver",
    "default_pool_factory",
    "SUPPORTED_DATA_TYPES",
    "SPATIAL_TYPES",
    "WITH_LENGTH_COLUMN_TYPES",
    "WITH_PRECISION_COLUMN_TYPES",
    "WITH_SCALE_COLUMN_TYPES",
    "DATA_TYPE_DEFAULTS",
    "TYPE_ALIASES",
]
