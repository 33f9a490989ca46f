# ============================================================================
# TABLE CONSTRAINTS AND INDICES
# ============================================================================
# STATUS: Core - Schema model
# PURPOSE: Index, unique, check, exclusion and foreign key descriptions
# CREATED: 14 OCT 2026
# ============================================================================
"""
Table Constraints

Database-side constraint and index descriptions. Each has a create()
classmethod converting the declared metadata counterpart, and clone().
"""

import copy
from dataclasses import dataclass, field
from typing import List, Optional

from core.metadata.entity import (
    CheckMetadata,
    ExclusionMetadata,
    ForeignKeyMetadata,
    IndexMetadata,
    UniqueMetadata,
)


@dataclass
class TableIndex:
    """Index over one or more columns; where holds a partial-index predicate."""
    name: Optional[str] = None
    column_names: List[str] = field(default_factory=list)
    is_unique: bool = False
    is_spatial: bool = False
    is_concurrent: bool = False
    where: str = ""

    def clone(self) -> "TableIndex":
        return copy.deepcopy(self)

    @classmethod
    def create(cls, metadata: IndexMetadata) -> "TableIndex":
        return cls(
            name=metadata.name,
            column_names=list(metadata.columns),
            is_unique=metadata.is_unique,
            is_spatial=metadata.is_spatial,
            is_concurrent=metadata.is_concurrent,
            where=metadata.where or "",
        )


@dataclass
class TableUnique:
    name: Optional[str] = None
    column_names: List[str] = field(default_factory=list)
    deferrable: Optional[str] = None

    def clone(self) -> "TableUnique":
        return copy.deepcopy(self)

    @classmethod
    def create(cls, metadata: UniqueMetadata) -> "TableUnique":
        return cls(
            name=metadata.name,
            column_names=list(metadata.columns),
            deferrable=metadata.deferrable,
        )


@dataclass
class TableCheck:
    name: Optional[str] = None
    column_names: List[str] = field(default_factory=list)
    expression: str = ""

    def clone(self) -> "TableCheck":
        return copy.deepcopy(self)

    @classmethod
    def create(cls, metadata: CheckMetadata) -> "TableCheck":
        return cls(name=metadata.name, expression=metadata.expression)


@dataclass
class TableExclusion:
    name: Optional[str] = None
    expression: str = ""

    def clone(self) -> "TableExclusion":
        return copy.deepcopy(self)

    @classmethod
    def create(cls, metadata: ExclusionMetadata) -> "TableExclusion":
        return cls(name=metadata.name, expression=metadata.expression)


@dataclass
class TableForeignKey:
    """
    Foreign key from column_names to referenced_column_names.

    referenced_table_name is a table path (may include the schema).
    """
    name: Optional[str] = None
    column_names: List[str] = field(default_factory=list)
    referenced_database: Optional[str] = None
    referenced_schema: Optional[str] = None
    referenced_table_name: str = ""
    referenced_column_names: List[str] = field(default_factory=list)
    on_delete: Optional[str] = None
    on_update: Optional[str] = None
    deferrable: Optional[str] = None

    def clone(self) -> "TableForeignKey":
        return copy.deepcopy(self)

    @classmethod
    def create(cls, metadata: ForeignKeyMetadata, driver) -> "TableForeignKey":
        return cls(
            name=metadata.name,
            column_names=list(metadata.columns),
            referenced_database=metadata.referenced_database,
            referenced_schema=metadata.referenced_schema,
            referenced_table_name=driver.build_table_name(
                metadata.referenced_table,
                metadata.referenced_schema,
                metadata.referenced_database,
            ),
            referenced_column_names=list(metadata.referenced_columns),
            on_delete=metadata.on_delete,
            on_update=metadata.on_update,
            deferrable=metadata.deferrable,
        )


__all__ = [
    "TableIndex",
    "TableUnique",
    "TableCheck",
    "TableExclusion",
    "TableForeignKey",
]
