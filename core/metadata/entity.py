# ============================================================================
# CLAUDE CONTEXT - ENTITY METADATA
# ============================================================================
# STATUS: Core - Declared model consumed by the schema builder
# PURPOSE: Pydantic description of tables, views, columns and constraints
# LAST_REVIEWED: 14 OCT 2026
# EXPORTS: EntityMetadata, ColumnMetadata, IndexMetadata, UniqueMetadata,
#          CheckMetadata, ExclusionMetadata, ForeignKeyMetadata
# DEPENDENCIES: pydantic
# ============================================================================
"""
Entity Metadata - Declared Schema.

The desired state of the database. The schema builder diffs these models
against the introspected catalog and emits the DDL that closes the gap.
Constraint names may be left empty; they are filled from the naming
strategy before diffing.

Usage:
    post = EntityMetadata(
        table_name="post",
        columns=[
            ColumnMetadata(name="id", type="integer", is_primary=True,
                           is_generated=True, generation_strategy="increment"),
            ColumnMetadata(name="body", type="text", default=""),
        ],
    )
"""

import enum
from typing import Any, Callable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


GenerationStrategy = Literal["uuid", "increment", "rowid", "identity"]
GeneratedType = Literal["VIRTUAL", "STORED"]
GeneratedIdentity = Literal["ALWAYS", "BY DEFAULT"]
ReferentialAction = Literal["RESTRICT", "CASCADE", "SET NULL", "SET DEFAULT", "NO ACTION"]
Deferrable = Literal["INITIALLY IMMEDIATE", "INITIALLY DEFERRED"]


# ============================================================================
# COLUMNS
# ============================================================================

class ColumnMetadata(BaseModel):
    """
    Declared column.

    type accepts a database type name ("varchar", "timestamptz") or a
    Python type (str, int, datetime); the driver normalizes both.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(..., min_length=1)
    type: Any = Field(..., description="Database type name or Python type")
    length: str = Field(default="", description="Empty string means type default")
    is_nullable: bool = False
    is_primary: bool = False
    is_unique: bool = False
    is_array: bool = False
    is_generated: bool = False
    generation_strategy: Optional[GenerationStrategy] = None
    generated_identity: Optional[GeneratedIdentity] = None
    primary_key_constraint_name: Optional[str] = None
    default: Any = None
    on_update: Optional[str] = None
    comment: Optional[str] = None
    charset: Optional[str] = None
    collation: Optional[str] = None
    precision: Optional[int] = Field(default=None, ge=0)
    scale: Optional[int] = Field(default=None, ge=0)
    enum: Optional[List[str]] = None
    enum_name: Optional[str] = None
    as_expression: Optional[str] = None
    generated_type: Optional[GeneratedType] = None
    spatial_feature_type: Optional[str] = None
    srid: Optional[int] = None

    @field_validator("length", mode="before")
    @classmethod
    def _length_to_str(cls, v):
        if v is None:
            return ""
        return str(v)

    @field_validator("enum", mode="before")
    @classmethod
    def _enum_values(cls, v):
        # Enum classes and mixed values become their string values
        if v is None:
            return None
        if isinstance(v, type) and issubclass(v, enum.Enum):
            return [str(member.value) for member in v]
        return [str(item.value) if isinstance(item, enum.Enum) else str(item) for item in v]

    @model_validator(mode="after")
    def _generation_defaults(self) -> "ColumnMetadata":
        if isinstance(self.type, type) and issubclass(self.type, enum.Enum) and self.enum is None:
            self.enum = [str(member.value) for member in self.type]
        if self.is_generated and self.generation_strategy is None:
            self.generation_strategy = "increment"
        if self.generation_strategy == "identity" and self.generated_identity is None:
            self.generated_identity = "BY DEFAULT"
        return self


# ============================================================================
# CONSTRAINTS AND INDICES
# ============================================================================

class IndexMetadata(BaseModel):
    name: Optional[str] = None
    columns: List[str] = Field(..., min_length=1)
    is_unique: bool = False
    is_spatial: bool = False
    is_concurrent: bool = False
    where: Optional[str] = None
    synchronize: bool = True


class UniqueMetadata(BaseModel):
    name: Optional[str] = None
    columns: List[str] = Field(..., min_length=1)
    deferrable: Optional[Deferrable] = None


class CheckMetadata(BaseModel):
    name: Optional[str] = None
    expression: str = Field(..., min_length=1)


class ExclusionMetadata(BaseModel):
    name: Optional[str] = None
    expression: str = Field(..., min_length=1)


class ForeignKeyMetadata(BaseModel):
    """
    Foreign key to another declared table.

    referenced_table is the bare table name; referenced_schema and
    referenced_database locate it when it lives elsewhere.
    """
    name: Optional[str] = None
    columns: List[str] = Field(..., min_length=1)
    referenced_table: str
    referenced_columns: List[str] = Field(..., min_length=1)
    referenced_schema: Optional[str] = None
    referenced_database: Optional[str] = None
    on_delete: Optional[ReferentialAction] = None
    on_update: Optional[ReferentialAction] = None
    deferrable: Optional[Deferrable] = None

    @model_validator(mode="after")
    def _column_counts_match(self) -> "ForeignKeyMetadata":
        if len(self.columns) != len(self.referenced_columns):
            raise ValueError(
                f"Foreign key has {len(self.columns)} columns but references "
                f"{len(self.referenced_columns)}"
            )
        return self


# ============================================================================
# ENTITY
# ============================================================================

class EntityMetadata(BaseModel):
    """
    Declared table or view.

    For table_type="view", expression holds the SELECT (or a callable
    returning it) and materialized selects MATERIALIZED VIEW.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    table_name: str = Field(..., min_length=1)
    schema_name: Optional[str] = Field(default=None, alias="schema")
    database: Optional[str] = None
    table_type: Literal["regular", "view"] = "regular"
    comment: Optional[str] = None
    columns: List[ColumnMetadata] = Field(default_factory=list)
    indices: List[IndexMetadata] = Field(default_factory=list)
    uniques: List[UniqueMetadata] = Field(default_factory=list)
    checks: List[CheckMetadata] = Field(default_factory=list)
    exclusions: List[ExclusionMetadata] = Field(default_factory=list)
    foreign_keys: List[ForeignKeyMetadata] = Field(default_factory=list)
    expression: Optional[Union[str, Callable[[], str]]] = None
    materialized: bool = False

    @model_validator(mode="after")
    def _lift_unique_columns(self) -> "EntityMetadata":
        # unique=True columns are single-column unique constraints
        for column in self.columns:
            if not column.is_unique:
                continue
            exists = any(u.columns == [column.name] for u in self.uniques)
            if not exists:
                self.uniques.append(UniqueMetadata(columns=[column.name]))
        return self

    @model_validator(mode="after")
    def _validate_references(self) -> "EntityMetadata":
        names = {column.name for column in self.columns}
        if len(names) != len(self.columns):
            raise ValueError(f"Duplicate column names in {self.table_name}")
        for group in (self.indices, self.uniques, self.foreign_keys):
            for item in group:
                missing = [c for c in item.columns if c not in names]
                if missing and self.table_type == "regular":
                    raise ValueError(
                        f"{item.__class__.__name__} on {self.table_name} references unknown columns {missing}"
                    )
        if self.table_type == "view" and not self.expression:
            raise ValueError(f"View {self.table_name} requires an expression")
        return self

    @property
    def is_view(self) -> bool:
        return self.table_type == "view"

    @property
    def primary_columns(self) -> List[ColumnMetadata]:
        return [column for column in self.columns if column.is_primary]

    def find_column(self, name: str) -> Optional[ColumnMetadata]:
        return next((column for column in self.columns if column.name == name), None)

    def get_expression(self) -> str:
        expression = self.expression() if callable(self.expression) else (self.expression or "")
        return expression.strip()

    def with_names(self, naming_strategy) -> "EntityMetadata":
        """
        Copy with every unnamed constraint and index named.

        Args:
            naming_strategy: NamingStrategy instance

        Returns:
            New EntityMetadata; self is left untouched
        """
        entity = self.model_copy(deep=True)
        table = entity.table_name
        for index in entity.indices:
            if not index.name:
                index.name = naming_strategy.index_name(table, index.columns, index.where)
        for unique in entity.uniques:
            if not unique.name:
                unique.name = naming_strategy.unique_constraint_name(table, unique.columns)
        for check in entity.checks:
            if not check.name:
                check.name = naming_strategy.check_constraint_name(table, check.expression)
        for exclusion in entity.exclusions:
            if not exclusion.name:
                exclusion.name = naming_strategy.exclusion_constraint_name(table, exclusion.expression)
        for fk in entity.foreign_keys:
            if not fk.name:
                fk.name = naming_strategy.foreign_key_name(
                    table, fk.columns, fk.referenced_table, fk.referenced_columns
                )
        return entity


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ColumnMetadata",
    "IndexMetadata",
    "UniqueMetadata",
    "CheckMetadata",
    "ExclusionMetadata",
    "ForeignKeyMetadata",
    "EntityMetadata",
]
