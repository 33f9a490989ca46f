# ============================================================================
# TABLE COLUMN
# ============================================================================
# STATUS: Core - Schema model
# PURPOSE: Column as it exists (or will exist) in the database
# CREATED: 14 OCT 2026
# ============================================================================
"""
Table Column

Database-side description of one column. Instances are produced by catalog
introspection or converted from declared ColumnMetadata, and are always
cloned before mutation so the cached table stays intact until DDL succeeds.
"""

import copy
from dataclasses import dataclass
from typing import List, Optional

from core.metadata.entity import ColumnMetadata


@dataclass
class TableColumn:
    """
    One column of a table.

    length is a string; "" means the data type default.
    default holds a rendered SQL expression (already normalized).
    """
    name: str
    type: str = ""
    default: Optional[str] = None
    on_update: Optional[str] = None
    is_nullable: bool = False
    is_generated: bool = False
    generation_strategy: Optional[str] = None
    generated_identity: Optional[str] = None
    is_primary: bool = False
    is_unique: bool = False
    is_array: bool = False
    comment: Optional[str] = None
    length: str = ""
    charset: Optional[str] = None
    collation: Optional[str] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    enum: Optional[List[str]] = None
    enum_name: Optional[str] = None
    primary_key_constraint_name: Optional[str] = None
    as_expression: Optional[str] = None
    generated_type: Optional[str] = None
    spatial_feature_type: Optional[str] = None
    srid: Optional[int] = None

    def clone(self) -> "TableColumn":
        return copy.deepcopy(self)

    @classmethod
    def create(cls, metadata: ColumnMetadata, driver, is_unique: Optional[bool] = None) -> "TableColumn":
        """
        Convert a declared column into its database-side form.

        Args:
            metadata: Declared column
            driver: Dialect driver used to normalize type and default
            is_unique: Single-column uniqueness resolved against the entity

        Returns:
            TableColumn
        """
        return cls(
            name=metadata.name,
            type=driver.normalize_type(metadata),
            default=driver.normalize_default(metadata),
            on_update=metadata.on_update,
            is_nullable=metadata.is_nullable,
            is_generated=metadata.is_generated,
            generation_strategy=metadata.generation_strategy,
            generated_identity=metadata.generated_identity,
            is_primary=metadata.is_primary,
            is_unique=metadata.is_unique if is_unique is None else is_unique,
            is_array=metadata.is_array,
            comment=metadata.comment,
            length=metadata.length,
            charset=metadata.charset,
            collation=metadata.collation,
            precision=metadata.precision,
            scale=metadata.scale,
            enum=list(metadata.enum) if metadata.enum is not None else None,
            enum_name=metadata.enum_name,
            primary_key_constraint_name=metadata.primary_key_constraint_name,
            as_expression=metadata.as_expression,
            generated_type=metadata.generated_type,
            spatial_feature_type=metadata.spatial_feature_type,
            srid=metadata.srid,
        )


__all__ = ["TableColumn"]
