# ============================================================================
# TABLE
# ============================================================================
# STATUS: Core - Schema model
# PURPOSE: Table with columns, indices and constraints
# CREATED: 14 OCT 2026
# ============================================================================
"""
Table

Database-side table description. The query runner keeps the loaded tables
in a cache; operations clone the cached table, mutate the clone, and swap
it into the cache only after the DDL has been applied.

Usage:
    table = Table(name="post", columns=[TableColumn(name="id", type="integer", is_primary=True)])
    cloned = table.clone()
    cloned.add_column(TableColumn(name="body", type="text"))
"""

import copy
from dataclasses import dataclass, field
from typing import List, Optional

from core.metadata.entity import EntityMetadata
from core.schema.column import TableColumn
from core.schema.constraints import (
    TableCheck,
    TableExclusion,
    TableForeignKey,
    TableIndex,
    TableUnique,
)


@dataclass
class Table:
    """
    Table with its columns, indices and constraints.

    name may be a qualified path ("schema.table"); schema and database hold
    the resolved location when known.
    """
    name: str
    columns: List[TableColumn] = field(default_factory=list)
    indices: List[TableIndex] = field(default_factory=list)
    foreign_keys: List[TableForeignKey] = field(default_factory=list)
    uniques: List[TableUnique] = field(default_factory=list)
    checks: List[TableCheck] = field(default_factory=list)
    exclusions: List[TableExclusion] = field(default_factory=list)
    database: Optional[str] = None
    schema: Optional[str] = None
    comment: Optional[str] = None
    just_created: bool = False

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    @property
    def primary_columns(self) -> List[TableColumn]:
        return [column for column in self.columns if column.is_primary]

    def clone(self) -> "Table":
        return copy.deepcopy(self)

    def find_column_by_name(self, name: str) -> Optional[TableColumn]:
        return next((column for column in self.columns if column.name == name), None)

    def find_column_indices(self, column: TableColumn) -> List[TableIndex]:
        return [index for index in self.indices if column.name in index.column_names]

    def find_column_foreign_keys(self, column: TableColumn) -> List[TableForeignKey]:
        return [fk for fk in self.foreign_keys if column.name in fk.column_names]

    def find_column_uniques(self, column: TableColumn) -> List[TableUnique]:
        return [unique for unique in self.uniques if column.name in unique.column_names]

    def find_column_checks(self, column: TableColumn) -> List[TableCheck]:
        return [check for check in self.checks if column.name in check.column_names]

    # =========================================================================
    # MUTATORS
    # =========================================================================

    def add_column(self, column: TableColumn) -> None:
        self.columns.append(column)

    def remove_column(self, column: TableColumn) -> None:
        self.columns = [c for c in self.columns if c.name != column.name]

    def add_unique_constraint(self, unique: TableUnique) -> None:
        """Add a unique; a single-column unique also flags its column."""
        self.uniques.append(unique)
        if len(unique.column_names) == 1:
            column = self.find_column_by_name(unique.column_names[0])
            if column:
                column.is_unique = True

    def remove_unique_constraint(self, unique: TableUnique) -> None:
        found = next((u for u in self.uniques if u.name == unique.name), None)
        if found is None:
            return
        self.uniques = [u for u in self.uniques if u.name != unique.name]
        if len(found.column_names) == 1:
            column = self.find_column_by_name(found.column_names[0])
            if column:
                column.is_unique = False

    def add_check_constraint(self, check: TableCheck) -> None:
        self.checks.append(check)

    def remove_check_constraint(self, check: TableCheck) -> None:
        self.checks = [c for c in self.checks if c.name != check.name]

    def add_exclusion_constraint(self, exclusion: TableExclusion) -> None:
        self.exclusions.append(exclusion)

    def remove_exclusion_constraint(self, exclusion: TableExclusion) -> None:
        self.exclusions = [e for e in self.exclusions if e.name != exclusion.name]

    def add_foreign_key(self, foreign_key: TableForeignKey) -> None:
        self.foreign_keys.append(foreign_key)

    def remove_foreign_key(self, foreign_key: TableForeignKey) -> None:
        self.foreign_keys = [
            fk for fk in self.foreign_keys
            if fk.name != foreign_key.name
        ]

    def add_index(self, index: TableIndex) -> None:
        self.indices.append(index)

    def remove_index(self, index: TableIndex) -> None:
        self.indices = [i for i in self.indices if i.name != index.name]

    # =========================================================================
    # FACTORY
    # =========================================================================

    @classmethod
    def create(cls, entity: EntityMetadata, driver) -> "Table":
        """
        Build a table from declared metadata.

        Only columns, indices and comment are carried; uniques, checks,
        exclusions and foreign keys are created by later sync steps.
        """
        options_schema = driver.options.schema
        schema = None if entity.schema_name == options_schema else entity.schema_name
        database = None if entity.database == driver.database else entity.database

        return cls(
            name=driver.build_table_name(entity.table_name, schema, database),
            database=entity.database,
            schema=entity.schema_name,
            columns=[
                TableColumn.create(column, driver, driver.normalize_is_unique(column, entity))
                for column in entity.columns
            ],
            indices=[
                TableIndex.create(index)
                for index in entity.indices
                if index.synchronize
            ],
            comment=entity.comment,
        )


__all__ = ["Table"]
