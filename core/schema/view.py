# ============================================================================
# VIEW
# ============================================================================
# STATUS: Core - Schema model
# PURPOSE: Plain and materialized view descriptions
# CREATED: 14 OCT 2026
# ============================================================================
"""
View

A view is tracked through the metadata table so its definition can be
compared between runs. Materialized views may carry indices.
"""

import copy
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union

from core.metadata.entity import EntityMetadata
from core.schema.constraints import TableIndex


@dataclass
class View:
    name: str
    expression: Union[str, Callable[[], str]] = ""
    database: Optional[str] = None
    schema: Optional[str] = None
    materialized: bool = False
    indices: List[TableIndex] = field(default_factory=list)

    def clone(self) -> "View":
        return copy.deepcopy(self)

    def get_expression(self) -> str:
        """Definition text; callables are evaluated lazily."""
        expression = self.expression() if callable(self.expression) else self.expression
        return expression.strip()

    def add_index(self, index: TableIndex) -> None:
        self.indices.append(index)

    def remove_index(self, index: TableIndex) -> None:
        self.indices = [i for i in self.indices if i.name != index.name]

    @classmethod
    def create(cls, entity: EntityMetadata, driver) -> "View":
        options_schema = driver.options.schema
        schema = None if entity.schema_name == options_schema else entity.schema_name
        database = None if entity.database == driver.database else entity.database

        return cls(
            name=driver.build_table_name(entity.table_name, schema, database),
            database=entity.database,
            schema=entity.schema_name,
            expression=entity.expression or "",
            materialized=entity.materialized,
            indices=[TableIndex.create(index) for index in entity.indices if index.synchronize],
        )


__all__ = ["View"]
