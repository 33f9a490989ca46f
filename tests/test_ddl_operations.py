# ============================================================================
# DDL OPERATION TESTS
# ============================================================================
# STATUS: Tests - reversible schema operations on the query runner
# PURPOSE: Verify exact up/down SQL and cache updates for each operation
# CREATED: 14 OCT 2026
# ============================================================================
"""
DDL Operation Tests

Covers:
1. create_table / drop_table with indices and comments
2. add_column / drop_column with unique, index and primary key fallout
3. change_column: in-place changes, enum swap, recreate on type change
4. rename_table cascading to default-named PK, sequence and uniques
5. Index, foreign key, check, exclusion and unique create/drop
6. Not-found errors leave the database untouched
7. update_primary_keys, metadata rows for STORED columns and views
8. Database create/drop refusal inside transactions, clear_database

Every test runs against a table placed in the runner cache, so the only
statements executed are the DDL under test.

Run with:
    pytest tests/test_ddl_operations.py -v
"""

import asyncio

import psycopg
import pytest

from core.errors import NotFoundError, QueryFailedError, UnsupportedOperationError
from core.schema import (
    Table,
    TableCheck,
    TableColumn,
    TableExclusion,
    TableForeignKey,
    TableIndex,
    TableUnique,
    View,
)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def post_table():
    return Table(
        name="post",
        columns=[
            TableColumn(name="id", type="integer", is_primary=True, is_generated=True, generation_strategy="increment"),
            TableColumn(name="title", type="character varying", length="200"),
            TableColumn(name="status", type="enum", enum=["draft", "published"], default="'draft'"),
            TableColumn(name="author_id", type="integer", is_nullable=True),
        ],
        indices=[TableIndex(name="IDX_post_title", column_names=["title"])],
        foreign_keys=[TableForeignKey(
            name="FK_post_author_id",
            column_names=["author_id"],
            referenced_table_name="user",
            referenced_column_names=["id"],
            on_delete="CASCADE",
        )],
    )


@pytest.fixture
def cached_runner(runner, post_table):
    runner.cache_table(post_table)
    return runner


# ============================================================================
# HELPERS
# ============================================================================

def run(coro):
    return asyncio.run(coro)


def up_sql(runner):
    return [q.query for q in runner.get_memory_sql().up_queries]


def down_sql(runner):
    return [q.query for q in runner.get_memory_sql().down_queries]


def cached(runner, name="post"):
    return runner.loaded_tables[f"public.{name}"]


# ============================================================================
# TABLES
# ============================================================================

class TestCreateTable:
    def test_create_table_with_index(self, connection, runner):
        table = Table(
            name="post",
            columns=[
                TableColumn(name="id", type="integer", is_primary=True, is_generated=True, generation_strategy="increment"),
                TableColumn(name="title", type="character varying", length="200", comment="Headline"),
            ],
            indices=[TableIndex(column_names=["title"])],
        )
        run(runner.create_table(table))

        assert connection.ddl() == [
            'CREATE TABLE "post" ("id" SERIAL NOT NULL, "title" character varying(200) NOT NULL, '
            'CONSTRAINT "PK_post_id" PRIMARY KEY ("id")); '
            "COMMENT ON COLUMN \"post\".\"title\" IS 'Headline'",
            'CREATE INDEX "IDX_post_title" ON "post" ("title")',
        ]
        assert down_sql(runner) == ['DROP TABLE "post"', 'DROP INDEX "public"."IDX_post_title"']
        assert cached(runner).just_created
        assert table.indices[0].name is None

    def test_unique_columns_become_constraints(self, connection, runner):
        table = Table(name="user", columns=[
            TableColumn(name="id", type="uuid", is_primary=True, is_generated=True, generation_strategy="uuid"),
            TableColumn(name="email", type="character varying", length="255", is_unique=True),
        ])
        run(runner.create_table(table))

        assert connection.ddl() == [
            'CREATE TABLE "user" ("id" uuid NOT NULL DEFAULT uuid_generate_v4(), '
            '"email" character varying(255) NOT NULL, '
            'CONSTRAINT "UQ_user_email" UNIQUE ("email"), '
            'CONSTRAINT "PK_user_id" PRIMARY KEY ("id"))',
        ]
        assert [u.name for u in cached(runner, "user").uniques] == ["UQ_user_email"]

    def test_enum_type_created_first(self, connection, runner):
        table = Table(name="post", columns=[TableColumn(name="status", type="enum", enum=["draft", "published"])])
        run(runner.create_table(table))

        assert connection.ddl() == [
            """CREATE TYPE "public"."post_status_enum" AS ENUM('draft', 'published')""",
            'CREATE TABLE "post" ("status" "public"."post_status_enum" NOT NULL)',
        ]

    def test_if_not_exist_skips_existing(self, connection, runner):
        connection.script('"information_schema"."tables" WHERE', rows=[{"table_name": "post"}])
        run(runner.create_table(Table(name="post", columns=[TableColumn(name="id", type="integer")]), if_not_exist=True))
        assert connection.ddl() == []

    def test_foreign_schema_is_qualified(self, connection, runner):
        run(runner.create_table(Table(name="audit.log", columns=[TableColumn(name="id", type="integer")])))
        assert connection.ddl() == ['CREATE TABLE "audit"."log" ("id" integer NOT NULL)']


class TestDropTable:
    def test_drop_table_drops_indices_and_foreign_keys(self, connection, cached_runner):
        run(cached_runner.drop_table("post"))

        assert connection.ddl() == [
            'DROP INDEX "public"."IDX_post_title"',
            'ALTER TABLE "post" DROP CONSTRAINT "FK_post_author_id"',
            'DROP TABLE "post"',
        ]
        assert "public.post" not in cached_runner.loaded_tables


class TestRenameTable:
    def test_rename_cascades_default_names(self, connection, runner):
        runner.cache_table(Table(
            name="user",
            columns=[
                TableColumn(name="id", type="integer", is_primary=True, is_generated=True, generation_strategy="increment"),
                TableColumn(name="email", type="character varying", is_unique=True),
                TableColumn(name="login", type="character varying", is_unique=True),
            ],
            uniques=[
                TableUnique(name="UQ_custom_email", column_names=["email"]),
                TableUnique(name="UQ_user_login", column_names=["login"]),
            ],
        ))

        run(runner.rename_table("user", "account"))

        assert connection.ddl() == [
            'ALTER TABLE "user" RENAME TO "account"',
            'ALTER TABLE "account" RENAME CONSTRAINT "PK_user_id" TO "PK_account_id"',
            'ALTER SEQUENCE "user_id_seq" RENAME TO "account_id_seq"',
            'ALTER TABLE "account" RENAME CONSTRAINT "UQ_user_login" TO "UQ_account_login"',
        ]
        assert "public.user" not in runner.loaded_tables
        renamed = runner.loaded_tables["public.account"]
        assert [u.name for u in renamed.uniques] == ["UQ_custom_email", "UQ_account_login"]

    def test_custom_primary_key_name_kept(self, connection, runner):
        runner.cache_table(Table(name="user", columns=[
            TableColumn(name="id", type="integer", is_primary=True, primary_key_constraint_name="user_pkey"),
        ]))
        run(runner.rename_table("user", "account"))
        assert connection.ddl() == ['ALTER TABLE "user" RENAME TO "account"']


class TestTableComment:
    def test_comment_and_reset(self, connection, cached_runner):
        run(cached_runner.change_table_comment("post", "Blog's posts"))
        assert connection.ddl() == ["""COMMENT ON TABLE "post" IS 'Blog''s posts'"""]
        assert down_sql(cached_runner) == ['COMMENT ON TABLE "post" IS NULL']
        assert cached(cached_runner).comment == "Blog's posts"


# ============================================================================
# COLUMNS
# ============================================================================

class TestAddColumn:
    def test_add_column(self, connection, cached_runner):
        run(cached_runner.add_column("post", TableColumn(name="body", type="text", default="''")))

        assert connection.ddl() == ["""ALTER TABLE "post" ADD "body" text NOT NULL DEFAULT ''"""]
        assert down_sql(cached_runner) == ['ALTER TABLE "post" DROP COLUMN "body"']
        assert cached(cached_runner).find_column_by_name("body") is not None

    def test_add_unique_column(self, connection, cached_runner):
        column = TableColumn(name="slug", type="character varying", length="100", is_unique=True, is_nullable=True)
        run(cached_runner.add_column("post", column))

        assert connection.ddl() == [
            'ALTER TABLE "post" ADD "slug" character varying(100)',
            'ALTER TABLE "post" ADD CONSTRAINT "UQ_post_slug" UNIQUE ("slug")',
        ]
        assert [u.name for u in cached(cached_runner).uniques] == ["UQ_post_slug"]

    def test_add_enum_column_creates_type(self, connection, cached_runner):
        column = TableColumn(name="kind", type="enum", enum=["note", "essay"], is_nullable=True)
        run(cached_runner.add_column("post", column))

        assert connection.ddl() == [
            """CREATE TYPE "public"."post_kind_enum" AS ENUM('note', 'essay')""",
            'ALTER TABLE "post" ADD "kind" "public"."post_kind_enum"',
        ]

    def test_add_primary_column_rebuilds_key(self, connection, cached_runner):
        run(cached_runner.add_column("post", TableColumn(name="tenant_id", type="integer", is_primary=True)))

        assert connection.ddl() == [
            'ALTER TABLE "post" ADD "tenant_id" integer NOT NULL',
            'ALTER TABLE "post" DROP CONSTRAINT "PK_post_id"',
            'ALTER TABLE "post" ADD CONSTRAINT "PK_post_id_tenant_id" PRIMARY KEY ("id", "tenant_id")',
        ]

    def test_virtual_generated_column_rejected(self, connection, cached_runner):
        column = TableColumn(name="slug", type="text", generated_type="VIRTUAL", as_expression="lower(title)")
        with pytest.raises(UnsupportedOperationError):
            run(cached_runner.add_column("post", column))
        assert connection.ddl() == []


class TestDropColumn:
    def test_drop_indexed_column(self, connection, cached_runner):
        run(cached_runner.drop_column("post", "title"))

        assert connection.ddl() == [
            'DROP INDEX "public"."IDX_post_title"',
            'ALTER TABLE "post" DROP COLUMN "title"',
        ]
        table = cached(cached_runner)
        assert table.find_column_by_name("title") is None
        assert table.indices == []

    def test_drop_missing_column(self, connection, cached_runner):
        with pytest.raises(NotFoundError, match='Column "body" was not found in table "post"'):
            run(cached_runner.drop_column("post", "body"))
        assert connection.executed == []


class TestChangeColumn:
    def test_nullable_and_default(self, connection, cached_runner):
        table = cached(cached_runner)
        new_column = table.find_column_by_name("title").clone()
        new_column.is_nullable = True
        new_column.default = "'untitled'"

        run(cached_runner.change_column("post", "title", new_column))

        assert connection.ddl() == [
            'ALTER TABLE "post" ALTER COLUMN "title" DROP NOT NULL',
            """ALTER TABLE "post" ALTER COLUMN "title" SET DEFAULT 'untitled'""",
        ]
        assert down_sql(cached_runner) == [
            'ALTER TABLE "post" ALTER COLUMN "title" SET NOT NULL',
            'ALTER TABLE "post" ALTER COLUMN "title" DROP DEFAULT',
        ]
        assert cached(cached_runner).find_column_by_name("title").is_nullable

    def test_enum_values_swap_type(self, connection, cached_runner):
        new_column = cached(cached_runner).find_column_by_name("status").clone()
        new_column.enum = ["draft", "published", "archived"]

        run(cached_runner.change_column("post", "status", new_column))

        assert connection.ddl() == [
            'ALTER TYPE "public"."post_status_enum" RENAME TO "post_status_enum_old"',
            """CREATE TYPE "public"."post_status_enum" AS ENUM('draft', 'published', 'archived')""",
            'ALTER TABLE "post" ALTER COLUMN "status" DROP DEFAULT',
            'ALTER TABLE "post" ALTER COLUMN "status" TYPE "public"."post_status_enum" '
            'USING "status"::"text"::"public"."post_status_enum"',
            """ALTER TABLE "post" ALTER COLUMN "status" SET DEFAULT 'draft'""",
            'DROP TYPE "public"."post_status_enum_old"',
        ]
        reverted = [q.query for q in cached_runner.get_memory_sql().reversed_down_queries()]
        assert reverted == [
            """CREATE TYPE "public"."post_status_enum_old" AS ENUM('draft', 'published')""",
            'ALTER TABLE "post" ALTER COLUMN "status" DROP DEFAULT',
            'ALTER TABLE "post" ALTER COLUMN "status" TYPE "public"."post_status_enum_old" '
            'USING "status"::"text"::"public"."post_status_enum_old"',
            """ALTER TABLE "post" ALTER COLUMN "status" SET DEFAULT 'draft'""",
            'DROP TYPE "public"."post_status_enum"',
            'ALTER TYPE "public"."post_status_enum_old" RENAME TO "post_status_enum"',
        ]
        assert cached(cached_runner).find_column_by_name("status").enum == ["draft", "published", "archived"]

    def test_type_change_recreates_column(self, connection, cached_runner):
        new_column = TableColumn(name="title", type="text")
        run(cached_runner.change_column("post", "title", new_column))

        assert connection.ddl() == [
            'DROP INDEX "public"."IDX_post_title"',
            'ALTER TABLE "post" DROP COLUMN "title"',
            'ALTER TABLE "post" ADD "title" text NOT NULL',
        ]
        assert cached(cached_runner).find_column_by_name("title").type == "text"

    def test_rename_column_renames_index(self, connection, cached_runner):
        run(cached_runner.rename_column("post", "title", "headline"))

        assert connection.ddl() == [
            'ALTER TABLE "post" RENAME COLUMN "title" TO "headline"',
            'ALTER INDEX "public"."IDX_post_title" RENAME TO "IDX_post_headline"',
        ]
        table = cached(cached_runner)
        assert table.find_column_by_name("headline") is not None
        assert [i.name for i in table.indices] == ["IDX_post_headline"]

    def test_change_missing_column(self, cached_runner):
        with pytest.raises(NotFoundError, match='Column "body" was not found in the "post" table.'):
            run(cached_runner.change_column("post", "body", TableColumn(name="body", type="text")))

    def test_virtual_rejected(self, cached_runner):
        new_column = TableColumn(name="title", type="character varying", length="200",
                                 generated_type="VIRTUAL", as_expression="'x'")
        with pytest.raises(UnsupportedOperationError):
            run(cached_runner.change_column("post", "title", new_column))


# ============================================================================
# INDICES AND CONSTRAINTS
# ============================================================================

class TestIndices:
    def test_create_partial_unique_index(self, connection, cached_runner):
        index = TableIndex(name="IDX_post_live_title", column_names=["title"], is_unique=True, where="status = 'published'")
        run(cached_runner.create_index("post", index))

        assert connection.ddl() == [
            """CREATE UNIQUE INDEX "IDX_post_live_title" ON "post" ("title") WHERE status = 'published'"""
        ]
        assert down_sql(cached_runner) == ['DROP INDEX "public"."IDX_post_live_title"']

    def test_drop_index(self, connection, cached_runner):
        run(cached_runner.drop_index("post", "IDX_post_title"))
        assert connection.ddl() == ['DROP INDEX "public"."IDX_post_title"']
        assert cached(cached_runner).indices == []

    def test_drop_missing_index(self, connection, cached_runner):
        with pytest.raises(NotFoundError, match="Supplied index IDX_missing was not found in table post"):
            run(cached_runner.drop_index("post", "IDX_missing"))
        assert connection.executed == []


class TestForeignKeys:
    def test_create_foreign_key(self, connection, cached_runner):
        fk = TableForeignKey(
            column_names=["editor_id"],
            referenced_table_name="user",
            referenced_column_names=["id"],
            on_delete="SET NULL",
        )
        cached(cached_runner).add_column(TableColumn(name="editor_id", type="integer", is_nullable=True))
        run(cached_runner.create_foreign_key("post", fk))

        assert connection.ddl() == [
            'ALTER TABLE "post" ADD CONSTRAINT "FK_post_editor_id" FOREIGN KEY ("editor_id") '
            'REFERENCES "user"("id") ON DELETE SET NULL'
        ]
        assert [fk.name for fk in cached(cached_runner).foreign_keys] == ["FK_post_author_id", "FK_post_editor_id"]

    def test_drop_foreign_key_down_recreates(self, connection, cached_runner):
        run(cached_runner.drop_foreign_key("post", "FK_post_author_id"))

        assert connection.ddl() == ['ALTER TABLE "post" DROP CONSTRAINT "FK_post_author_id"']
        assert down_sql(cached_runner) == [
            'ALTER TABLE "post" ADD CONSTRAINT "FK_post_author_id" FOREIGN KEY ("author_id") '
            'REFERENCES "user"("id") ON DELETE CASCADE'
        ]
        assert cached(cached_runner).foreign_keys == []

    def test_drop_missing_foreign_key(self, cached_runner):
        with pytest.raises(NotFoundError, match="Supplied foreign key was not found in table post"):
            run(cached_runner.drop_foreign_key("post", "FK_nope"))


class TestConstraints:
    def test_check_constraint_round(self, connection, cached_runner):
        check = TableCheck(name="CHK_post_title", expression="char_length(title) > 0")
        run(cached_runner.create_check_constraint("post", check))
        run(cached_runner.drop_check_constraint("post", "CHK_post_title"))

        assert connection.ddl() == [
            'ALTER TABLE "post" ADD CONSTRAINT "CHK_post_title" CHECK (char_length(title) > 0)',
            'ALTER TABLE "post" DROP CONSTRAINT "CHK_post_title"',
        ]
        assert cached(cached_runner).checks == []

    def test_drop_missing_unique(self, cached_runner):
        with pytest.raises(NotFoundError, match="Supplied unique constraint was not found in table post"):
            run(cached_runner.drop_unique_constraint("post", "UQ_nope"))

    def test_composite_unique_leaves_column_flags(self, connection, cached_runner):
        unique = TableUnique(name="UQ_post_author_id_title", column_names=["author_id", "title"])
        run(cached_runner.create_unique_constraint("post", unique))

        assert connection.ddl() == [
            'ALTER TABLE "post" ADD CONSTRAINT "UQ_post_author_id_title" UNIQUE ("author_id", "title")'
        ]
        assert not cached(cached_runner).find_column_by_name("title").is_unique

    def test_exclusion_constraint_round(self, connection, cached_runner):
        exclusion = TableExclusion(name="XCL_post_author", expression='USING gist ("author_id" WITH =)')
        run(cached_runner.create_exclusion_constraint("post", exclusion))
        assert [e.name for e in cached(cached_runner).exclusions] == ["XCL_post_author"]

        run(cached_runner.drop_exclusion_constraint("post", "XCL_post_author"))

        assert connection.ddl() == [
            'ALTER TABLE "post" ADD CONSTRAINT "XCL_post_author" EXCLUDE USING gist ("author_id" WITH =)',
            'ALTER TABLE "post" DROP CONSTRAINT "XCL_post_author"',
        ]
        assert down_sql(cached_runner) == [
            'ALTER TABLE "post" DROP CONSTRAINT "XCL_post_author"',
            'ALTER TABLE "post" ADD CONSTRAINT "XCL_post_author" EXCLUDE USING gist ("author_id" WITH =)',
        ]
        assert cached(cached_runner).exclusions == []

    def test_drop_missing_exclusion(self, connection, cached_runner):
        with pytest.raises(NotFoundError):
            run(cached_runner.drop_exclusion_constraint("post", "XCL_nope"))
        assert connection.ddl() == []


class TestPrimaryKeys:
    def test_update_primary_keys_replaces_constraint(self, connection, cached_runner):
        table = cached(cached_runner)
        columns = [table.find_column_by_name("id"), table.find_column_by_name("author_id")]

        run(cached_runner.update_primary_keys("post", columns))

        assert connection.ddl() == [
            'ALTER TABLE "post" DROP CONSTRAINT "PK_post_id"',
            'ALTER TABLE "post" ADD CONSTRAINT "PK_post_author_id_id" PRIMARY KEY ("id", "author_id")',
        ]
        assert [q.query for q in cached_runner.get_memory_sql().reversed_down_queries()] == [
            'ALTER TABLE "post" DROP CONSTRAINT "PK_post_author_id_id"',
            'ALTER TABLE "post" ADD CONSTRAINT "PK_post_id" PRIMARY KEY ("id")',
        ]
        assert [c.name for c in cached(cached_runner).primary_columns] == ["id", "author_id"]

    def test_update_primary_keys_resets_other_columns(self, connection, cached_runner):
        author_id = cached(cached_runner).find_column_by_name("author_id")

        run(cached_runner.update_primary_keys("post", [author_id]))

        assert connection.ddl()[-1] == 'ALTER TABLE "post" ADD CONSTRAINT "PK_post_author_id" PRIMARY KEY ("author_id")'
        assert [c.name for c in cached(cached_runner).primary_columns] == ["author_id"]


# ============================================================================
# METADATA TABLE ROWS
# ============================================================================

GENERATED_INSERT = (
    'INSERT INTO "schema_sync_metadata"("type", "database", "schema", "table", "name", "value") '
    "VALUES (%s, %s, %s, %s, %s, %s)"
)
GENERATED_DELETE = (
    'DELETE FROM "schema_sync_metadata" '
    'WHERE "type" = %s AND "database" = %s AND "schema" = %s AND "table" = %s AND "name" = %s'
)
VIEW_INSERT = 'INSERT INTO "schema_sync_metadata"("type", "schema", "name", "value") VALUES (%s, %s, %s, %s)'
VIEW_DELETE = 'DELETE FROM "schema_sync_metadata" WHERE "type" = %s AND "schema" = %s AND "name" = %s'


def statements(queries):
    return [(q.query, q.parameters) for q in queries]


class TestGeneratedColumnMetadata:
    def test_add_stored_column_records_expression(self, connection, cached_runner):
        column = TableColumn(name="slug", type="text", generated_type="STORED", as_expression="lower(title)")

        run(cached_runner.add_column("post", column))

        memory = cached_runner.get_memory_sql()
        assert statements(memory.up_queries) == [
            ('ALTER TABLE "post" ADD "slug" text GENERATED ALWAYS AS (lower(title)) STORED NOT NULL', None),
            (GENERATED_INSERT, ["GENERATED_COLUMN", "test", "public", "post", "slug", "lower(title)"]),
        ]
        assert statements(memory.reversed_down_queries()) == [
            (GENERATED_DELETE, ["GENERATED_COLUMN", "test", "public", "post", "slug"]),
            ('ALTER TABLE "post" DROP COLUMN "slug"', None),
        ]
        assert connection.executed[-1] == (GENERATED_INSERT, ["GENERATED_COLUMN", "test", "public", "post", "slug", "lower(title)"])

    def test_drop_stored_column_removes_expression(self, connection, cached_runner):
        table = cached(cached_runner).clone()
        table.add_column(TableColumn(name="slug", type="text", generated_type="STORED", as_expression="lower(title)"))
        cached_runner.cache_table(table)

        run(cached_runner.drop_column("post", "slug"))

        memory = cached_runner.get_memory_sql()
        assert statements(memory.up_queries) == [
            ('ALTER TABLE "post" DROP COLUMN "slug"', None),
            (GENERATED_DELETE, ["GENERATED_COLUMN", "test", "public", "post", "slug"]),
        ]
        assert statements(memory.reversed_down_queries()) == [
            (GENERATED_INSERT, ["GENERATED_COLUMN", "test", "public", "post", "slug", "lower(title)"]),
            ('ALTER TABLE "post" ADD "slug" text GENERATED ALWAYS AS (lower(title)) STORED NOT NULL', None),
        ]


class TestViewMetadata:
    def test_create_view_records_definition(self, connection, runner):
        view = View(name="post_stats", expression="SELECT count(*) FROM post")

        run(runner.create_view(view, sync_with_metadata=True))

        assert connection.executed == [
            ('CREATE VIEW "post_stats" AS SELECT count(*) FROM post', None),
            (VIEW_INSERT, ["VIEW", "public", "post_stats", "SELECT count(*) FROM post"]),
        ]
        assert statements(runner.get_memory_sql().reversed_down_queries()) == [
            (VIEW_DELETE, ["VIEW", "public", "post_stats"]),
            ('DROP VIEW "post_stats"', None),
        ]
        assert "public.post_stats" in runner.loaded_views

    def test_drop_materialized_view_removes_definition(self, connection, runner):
        runner.cache_view(View(name="post_stats", expression="SELECT count(*) FROM post", materialized=True))

        run(runner.drop_view("post_stats"))

        assert connection.executed == [
            (VIEW_DELETE, ["MATERIALIZED_VIEW", "public", "post_stats"]),
            ('DROP MATERIALIZED VIEW "post_stats"', None),
        ]
        assert statements(runner.get_memory_sql().reversed_down_queries()) == [
            ('CREATE MATERIALIZED VIEW "post_stats" AS SELECT count(*) FROM post', None),
            (VIEW_INSERT, ["MATERIALIZED_VIEW", "public", "post_stats", "SELECT count(*) FROM post"]),
        ]
        assert runner.loaded_views == {}


# ============================================================================
# DATABASES AND DATA
# ============================================================================

class TestDatabases:
    def test_create_database_outside_transaction(self, connection, runner):
        run(runner.create_database("reports"))
        assert connection.ddl() == ['CREATE DATABASE "reports"']
        assert down_sql(runner) == ['DROP DATABASE "reports"']

    @pytest.mark.parametrize("operation", ["create_database", "drop_database"])
    def test_refused_inside_transaction(self, connection, runner, operation):
        run(runner.start_transaction())

        with pytest.raises(UnsupportedOperationError, match="cannot run inside a transaction block"):
            run(getattr(runner, operation)("reports"))

        assert connection.ddl() == ["START TRANSACTION"]


class TestClearDatabase:
    def test_drops_everything_in_own_transaction(self, connection, cached_runner):
        connection.script('"pg_views"', rows=[{"query": 'DROP VIEW IF EXISTS "public"."post_stats" CASCADE;'}])
        connection.script('"pg_tables"', rows=[{"query": 'DROP TABLE IF EXISTS "public"."post" CASCADE;'}])

        run(cached_runner.clear_database())

        assert connection.ddl() == [
            "START TRANSACTION",
            'DROP VIEW IF EXISTS "public"."post_stats" CASCADE;',
            'DROP TABLE IF EXISTS "public"."post" CASCADE;',
            "COMMIT",
        ]
        tables_select = next(sql for sql, _ in connection.executed if '"pg_tables"' in sql)
        assert "'spatial_ref_sys'" in tables_select
        assert cached_runner.loaded_tables == {}

    def test_failed_rollback_keeps_original_error(self, connection, cached_runner):
        connection.script('"pg_tables"', rows=[{"query": 'DROP TABLE IF EXISTS "public"."post" CASCADE;'}])
        connection.script(
            'DROP TABLE IF EXISTS "public"."post"',
            error=psycopg.errors.InsufficientPrivilege("must be owner of table post"),
        )
        connection.script("ROLLBACK", error=psycopg.OperationalError("server closed the connection"))

        with pytest.raises(QueryFailedError) as exc_info:
            run(cached_runner.clear_database())

        assert isinstance(exc_info.value.driver_error, psycopg.errors.InsufficientPrivilege)
        assert connection.ddl()[-1] == "ROLLBACK"
        assert "COMMIT" not in connection.ddl()
        assert "public.post" in cached_runner.loaded_tables
