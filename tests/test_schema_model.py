# ============================================================================
# SCHEMA MODEL TESTS
# ============================================================================
# STATUS: Tests - declared metadata and database-side model
# PURPOSE: Verify entity validation, naming, Table.create and model reading
# CREATED: 14 OCT 2026
# ============================================================================
"""
Schema Model Tests

Covers:
1. ColumnMetadata coercion (length, enum classes, generation defaults)
2. EntityMetadata validation (unknown/duplicate columns, views, FK shape)
3. unique=True lifting and with_names()
4. Table.create() from an entity
5. Table mutators (unique flags, clone independence)
6. entity_from_model() for Pydantic models with __sql_* metadata
7. SqlInMemory ordering

Run with:
    pytest tests/test_schema_model.py -v
"""

from datetime import datetime
from enum import Enum
from typing import ClassVar, Dict, List, Optional

import pytest
from pydantic import BaseModel, Field, ValidationError

from core.metadata import (
    ColumnMetadata,
    EntityMetadata,
    ForeignKeyMetadata,
    IndexMetadata,
    entity_from_model,
)
from core.schema import (
    DefaultNamingStrategy,
    Query,
    SqlInMemory,
    Table,
    TableColumn,
    TableUnique,
)


# ============================================================================
# HELPERS
# ============================================================================

class PostStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


def post_entity(**overrides) -> EntityMetadata:
    fields = dict(
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
    fields.update(overrides)
    return EntityMetadata(**fields)


# ============================================================================
# COLUMN METADATA
# ============================================================================

class TestColumnMetadata:
    def test_length_coerced_to_string(self):
        assert ColumnMetadata(name="title", type="varchar", length=200).length == "200"
        assert ColumnMetadata(name="title", type="varchar", length=None).length == ""

    def test_enum_class_fills_values(self):
        column = ColumnMetadata(name="status", type=PostStatus)
        assert column.enum == ["draft", "published"]

    def test_enum_values_from_members(self):
        column = ColumnMetadata(name="status", type="enum", enum=[PostStatus.DRAFT, "archived"])
        assert column.enum == ["draft", "archived"]

    def test_generated_defaults_to_increment(self):
        assert ColumnMetadata(name="id", type=int, is_generated=True).generation_strategy == "increment"

    def test_identity_defaults_by_default(self):
        column = ColumnMetadata(name="id", type=int, is_generated=True, generation_strategy="identity")
        assert column.generated_identity == "BY DEFAULT"

    def test_unknown_generation_strategy_rejected(self):
        with pytest.raises(ValidationError):
            ColumnMetadata(name="id", type=int, generation_strategy="sequence")


# ============================================================================
# ENTITY METADATA
# ============================================================================

class TestEntityMetadata:
    def test_schema_alias(self):
        entity = EntityMetadata(table_name="log", schema="audit", columns=[ColumnMetadata(name="id", type=int)])
        assert entity.schema_name == "audit"

    def test_duplicate_columns_rejected(self):
        with pytest.raises(ValidationError, match="Duplicate column names"):
            EntityMetadata(table_name="t", columns=[
                ColumnMetadata(name="id", type=int),
                ColumnMetadata(name="id", type=int),
            ])

    def test_unknown_index_column_rejected(self):
        with pytest.raises(ValidationError, match="unknown columns"):
            post_entity(indices=[IndexMetadata(columns=["missing"])])

    def test_foreign_key_column_counts_must_match(self):
        with pytest.raises(ValidationError):
            ForeignKeyMetadata(columns=["a", "b"], referenced_table="user", referenced_columns=["id"])

    def test_view_requires_expression(self):
        with pytest.raises(ValidationError, match="requires an expression"):
            EntityMetadata(table_name="recent_posts", table_type="view")

    def test_view_expression_callable(self):
        view = EntityMetadata(table_name="recent_posts", table_type="view", expression=lambda: "  SELECT 1 ")
        assert view.is_view
        assert view.get_expression() == "SELECT 1"

    def test_unique_columns_lifted(self):
        """unique=True becomes a single-column unique constraint."""
        entity = EntityMetadata(table_name="user", columns=[
            ColumnMetadata(name="id", type=int, is_primary=True),
            ColumnMetadata(name="email", type="varchar", is_unique=True),
        ])
        assert [u.columns for u in entity.uniques] == [["email"]]

    def test_with_names_fills_names(self):
        entity = post_entity()
        named = entity.with_names(DefaultNamingStrategy())
        assert named.indices[0].name == "IDX_post_title"
        assert named.foreign_keys[0].name == "FK_post_author_id"

    def test_with_names_leaves_original(self):
        entity = post_entity()
        entity.with_names(DefaultNamingStrategy())
        assert entity.indices[0].name is None

    def test_with_names_keeps_explicit_names(self):
        entity = post_entity(indices=[IndexMetadata(name="post_title_idx", columns=["title"])])
        assert entity.with_names(DefaultNamingStrategy()).indices[0].name == "post_title_idx"


# ============================================================================
# TABLE
# ============================================================================

class TestTable:
    def test_create_from_entity(self, driver):
        table = Table.create(post_entity().with_names(driver.naming_strategy), driver)
        assert table.name == "post"
        assert [c.type for c in table.columns] == ["integer", "character varying", "integer"]
        assert table.columns[1].length == "200"
        assert [i.name for i in table.indices] == ["IDX_post_title"]
        assert table.foreign_keys == []

    def test_create_skips_unsynchronized_indices(self, driver):
        entity = post_entity(indices=[IndexMetadata(columns=["title"], synchronize=False)])
        assert Table.create(entity, driver).indices == []

    def test_create_keeps_foreign_schema(self, driver):
        entity = EntityMetadata(table_name="log", schema="audit", columns=[ColumnMetadata(name="id", type=int)])
        assert Table.create(entity, driver).name == "audit.log"

    def test_single_column_unique_flags_column(self):
        table = Table(name="user", columns=[TableColumn(name="email", type="text")])
        table.add_unique_constraint(TableUnique(name="UQ_user_email", column_names=["email"]))
        assert table.find_column_by_name("email").is_unique

        table.remove_unique_constraint(TableUnique(name="UQ_user_email"))
        assert not table.find_column_by_name("email").is_unique
        assert table.uniques == []

    def test_clone_is_independent(self):
        table = Table(name="user", columns=[TableColumn(name="id", type="integer")])
        copy = table.clone()
        copy.columns[0].name = "uid"
        assert table.columns[0].name == "id"


# ============================================================================
# PYDANTIC MODEL READER
# ============================================================================

class Post(BaseModel):
    """Blog posts."""
    __sql_table__: ClassVar[str] = "post"
    __sql_primary_key__: ClassVar[str] = "id"
    __sql_serial_columns__: ClassVar[List[str]] = ["id"]
    __sql_foreign_keys__: ClassVar[Dict[str, str]] = {"author_id": "public.user(id)"}
    __sql_indexes__: ClassVar[List] = [("idx_post_title", ["title"])]

    id: int
    title: str = Field(..., max_length=200, description="Headline")
    author_id: Optional[int] = None
    status: PostStatus = PostStatus.DRAFT
    tags: List[str] = Field(default_factory=list)
    created_at: datetime


class TestModelReader:
    def test_entity_shape(self):
        entity = entity_from_model(Post)
        assert entity.table_name == "post"
        assert entity.comment == "Blog posts."
        assert [c.name for c in entity.columns] == ["id", "title", "author_id", "status", "tags", "created_at"]

    def test_columns(self):
        columns = {c.name: c for c in entity_from_model(Post).columns}
        assert columns["id"].is_primary and columns["id"].generation_strategy == "increment"
        assert columns["title"].type == "character varying"
        assert columns["title"].length == "200"
        assert columns["title"].comment == "Headline"
        assert columns["author_id"].is_nullable
        assert columns["status"].type == "enum"
        assert columns["status"].enum == ["draft", "published"]
        assert columns["status"].enum_name == "post_status"
        assert columns["status"].default == "draft"
        assert columns["tags"].type == "jsonb"
        assert columns["created_at"].default() == "now()"

    def test_foreign_keys_and_indices(self):
        entity = entity_from_model(Post)
        fk = entity.foreign_keys[0]
        assert (fk.referenced_schema, fk.referenced_table, fk.referenced_columns) == ("public", "user", ["id"])
        assert fk.on_delete == "CASCADE"
        assert entity.indices[0].name == "idx_post_title"

    def test_schema_override(self):
        assert entity_from_model(Post, schema="blog").schema_name == "blog"

    def test_missing_table_rejected(self):
        class Plain(BaseModel):
            id: int

        with pytest.raises(ValueError, match="missing __sql_table__"):
            entity_from_model(Plain)


# ============================================================================
# SQL IN MEMORY
# ============================================================================

class TestSqlInMemory:
    def test_down_queries_reversed(self):
        memory = SqlInMemory(
            up_queries=[Query("CREATE TABLE a"), Query("CREATE INDEX b")],
            down_queries=[Query("DROP TABLE a"), Query("DROP INDEX b")],
        )
        assert memory.to_dict() == {
            "up": ["CREATE TABLE a", "CREATE INDEX b"],
            "down": ["DROP INDEX b", "DROP TABLE a"],
        }
