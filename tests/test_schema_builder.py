# ============================================================================
# SCHEMA BUILDER TESTS
# ============================================================================
# STATUS: Tests - end-to-end synchronization against a fake catalog
# PURPOSE: Verify planned DDL, idempotence, rename detection and rollback
# CREATED: 14 OCT 2026
# ============================================================================
"""
Schema Builder Tests

Covers:
1. log() on an empty database plans tables, indices, then foreign keys
2. log() executes no DDL
3. A synchronized catalog produces an empty plan
4. A single renamed column becomes RENAME COLUMN instead of drop + add
5. build() runs in one transaction and rolls back on failure

Run with:
    pytest tests/test_schema_builder.py -v
"""

import asyncio
from typing import Any, Dict

import psycopg
import pytest

from core.errors import QueryFailedError
from core.metadata import ColumnMetadata, EntityMetadata, ForeignKeyMetadata, IndexMetadata
from infrastructure.schema_builder import SchemaBuilder


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def user_entity():
    return EntityMetadata(table_name="user", columns=[
        ColumnMetadata(name="id", type=int, is_primary=True, is_generated=True),
        ColumnMetadata(name="email", type="varchar", length=255, is_unique=True),
    ])


@pytest.fixture
def post_entity():
    return EntityMetadata(
        table_name="post",
        columns=[
            ColumnMetadata(name="id", type=int, is_primary=True, is_generated=True),
            ColumnMetadata(name="title", type="varchar", length=200),
            ColumnMetadata(name="author_id", type=int, is_nullable=True),
        ],
        indices=[IndexMetadata(columns=["title"])],
        foreign_keys=[ForeignKeyMetadata(
            columns=["author_id"], referenced_table="user", referenced_columns=["id"], on_delete="CASCADE",
        )],
    )


EMPTY_DATABASE_PLAN = [
    'CREATE TABLE "user" ("id" SERIAL NOT NULL, "email" character varying(255) NOT NULL, '
    'CONSTRAINT "UQ_user_email" UNIQUE ("email"), CONSTRAINT "PK_user_id" PRIMARY KEY ("id"))',
    'CREATE TABLE "post" ("id" SERIAL NOT NULL, "title" character varying(200) NOT NULL, '
    '"author_id" integer, CONSTRAINT "PK_post_id" PRIMARY KEY ("id"))',
    'CREATE INDEX "IDX_post_title" ON "post" ("title")',
    'ALTER TABLE "post" ADD CONSTRAINT "FK_post_author_id" FOREIGN KEY ("author_id") '
    'REFERENCES "user"("id") ON DELETE CASCADE',
]


# ============================================================================
# HELPERS
# ============================================================================

def column_row(table: str, name: str, data_type: str, **overrides) -> Dict[str, Any]:
    row = {
        "table_schema": "public", "table_name": table, "column_name": name,
        "data_type": data_type, "udt_schema": "pg_catalog", "udt_name": data_type,
        "regtype": data_type, "format_type": data_type,
        "numeric_precision": None, "numeric_scale": None, "datetime_precision": None,
        "character_maximum_length": None, "is_nullable": "NO", "column_default": None,
        "is_identity": "NO", "identity_generation": None,
        "is_generated": "NEVER", "generation_expression": None,
        "description": None, "character_set_name": None, "collation_name": None,
    }
    row.update(overrides)
    return row


def constraint_row(table: str, name: str, constraint_type: str, column: str) -> Dict[str, Any]:
    return {
        "table_schema": "public", "table_name": table, "constraint_name": name,
        "expression": "", "constraint_type": constraint_type, "column_name": column,
        "deferrable": False, "deferred": "INITIALLY IMMEDIATE",
    }


def serial(table: str) -> str:
    return f"nextval('{table}_id_seq'::regclass)"


def script_synchronized_catalog(connection):
    """Catalog rows matching user_entity and post_entity exactly."""
    connection.script("BASE TABLE", rows=[
        {"table_schema": "public", "table_name": "user", "table_comment": None},
        {"table_schema": "public", "table_name": "post", "table_comment": None},
    ])
    connection.script('"columns".*', rows=[
        column_row("user", "id", "integer", column_default=serial("user")),
        column_row("user", "email", "character varying", character_maximum_length=255),
        column_row("post", "id", "integer", column_default=serial("post")),
        column_row("post", "title", "character varying", character_maximum_length=200),
        column_row("post", "author_id", "integer", is_nullable="YES"),
    ])
    connection.script("pg_get_constraintdef", rows=[
        constraint_row("user", "PK_user_id", "PRIMARY", "id"),
        constraint_row("user", "UQ_user_email", "UNIQUE", "email"),
        constraint_row("post", "PK_post_id", "PRIMARY", "id"),
    ])
    connection.script('"pg_index" "ix"', rows=[{
        "table_schema": "public", "table_name": "post", "constraint_name": "IDX_post_title",
        "column_name": "title", "is_unique": False, "condition": None,
        "type_name": "varchar", "index_type": "btree",
    }])
    connection.script('"con1"."contype"', rows=[{
        "constraint_name": "FK_post_author_id", "table_schema": "public", "table_name": "post",
        "column_name": "author_id", "referenced_table_schema": "public",
        "referenced_table_name": "user", "referenced_column_name": "id",
        "on_delete": "CASCADE", "on_update": "NO ACTION",
        "deferrable": False, "deferred": "INITIALLY IMMEDIATE",
    }])


def plan(driver, *entities):
    memory = asyncio.run(SchemaBuilder(driver, list(entities)).log())
    return [query.query for query in memory.up_queries]


# ============================================================================
# LOG
# ============================================================================

class TestLog:
    def test_empty_database_plan(self, driver, user_entity, post_entity):
        assert plan(driver, user_entity, post_entity) == EMPTY_DATABASE_PLAN

    def test_log_executes_no_ddl(self, driver, connection, user_entity, post_entity):
        plan(driver, user_entity, post_entity)
        assert connection.ddl() == []

    def test_log_releases_runner(self, driver, user_entity):
        plan(driver, user_entity)
        assert driver.connected_query_runners == []

    def test_synchronized_database_plans_nothing(self, driver, connection, user_entity, post_entity):
        script_synchronized_catalog(connection)
        assert plan(driver, user_entity, post_entity) == []

    def test_new_column_added(self, driver, connection, user_entity, post_entity):
        script_synchronized_catalog(connection)
        post_entity.columns.append(ColumnMetadata(name="body", type="text", is_nullable=True))
        assert plan(driver, user_entity, post_entity) == ['ALTER TABLE "post" ADD "body" text']

    def test_removed_index_dropped(self, driver, connection, user_entity, post_entity):
        script_synchronized_catalog(connection)
        post_entity.indices.clear()
        assert plan(driver, user_entity, post_entity) == ['DROP INDEX "public"."IDX_post_title"']

    def test_changed_foreign_key_action_recreated(self, driver, connection, user_entity, post_entity):
        script_synchronized_catalog(connection)
        post_entity.foreign_keys[0].on_delete = "SET NULL"
        assert plan(driver, user_entity, post_entity) == [
            'ALTER TABLE "post" DROP CONSTRAINT "FK_post_author_id"',
            'ALTER TABLE "post" ADD CONSTRAINT "FK_post_author_id" FOREIGN KEY ("author_id") '
            'REFERENCES "user"("id") ON DELETE SET NULL',
        ]


class TestRenameDetection:
    def test_single_renamed_column(self, driver, connection, user_entity):
        connection.script("BASE TABLE", rows=[
            {"table_schema": "public", "table_name": "user", "table_comment": None},
        ])
        connection.script('"columns".*', rows=[
            column_row("user", "id", "integer", column_default=serial("user")),
            column_row("user", "mail", "character varying", character_maximum_length=255),
        ])
        connection.script("pg_get_constraintdef", rows=[
            constraint_row("user", "PK_user_id", "PRIMARY", "id"),
            constraint_row("user", "UQ_user_mail", "UNIQUE", "mail"),
        ])

        assert plan(driver, user_entity) == [
            'ALTER TABLE "user" RENAME COLUMN "mail" TO "email"',
            'ALTER TABLE "user" RENAME CONSTRAINT "UQ_user_mail" TO "UQ_user_email"',
        ]


# ============================================================================
# BUILD
# ============================================================================

class TestBuild:
    def test_build_runs_in_one_transaction(self, driver, connection, user_entity, post_entity):
        asyncio.run(SchemaBuilder(driver, [user_entity, post_entity]).build())
        assert connection.ddl() == ["START TRANSACTION", *EMPTY_DATABASE_PLAN, "COMMIT"]

    def test_failure_rolls_back_and_reraises(self, driver, connection, pool, user_entity, post_entity):
        connection.script('CREATE TABLE "post"', error=psycopg.errors.DuplicateTable('relation "post" already exists'))

        with pytest.raises(QueryFailedError) as exc_info:
            asyncio.run(SchemaBuilder(driver, [user_entity, post_entity]).build())

        assert isinstance(exc_info.value.driver_error, psycopg.errors.DuplicateTable)
        assert connection.ddl()[-1] == "ROLLBACK"
        assert "COMMIT" not in connection.ddl()
        assert pool.returned == [connection]

    def test_no_transaction_mode(self, options, pool, connection, user_entity):
        from core.config.defaults import SyncDefaults
        from infrastructure.postgres_driver import PostgresDriver

        options = options.with_overrides(sync=SyncDefaults(transaction_mode="none"))
        driver = PostgresDriver(options, pool_factory=lambda conninfo, opts: pool)
        asyncio.run(driver.connect())
        driver.database, driver.schema, driver.search_schema = "test", "public", "public"

        asyncio.run(SchemaBuilder(driver, [user_entity]).build())

        assert "START TRANSACTION" not in connection.ddl()
        assert connection.ddl()[0].startswith('CREATE TABLE "user"')
