# ============================================================================
# CLAUDE CONTEXT - PYDANTIC MODEL READER
# ============================================================================
# STATUS: Core - Declared schema from Pydantic models
# PURPOSE: Convert Pydantic models with __sql_* metadata into EntityMetadata
# LAST_REVIEWED: 14 OCT 2026
# EXPORTS: get_model_metadata, entity_from_model
# DEPENDENCIES: pydantic, annotated_types
# ============================================================================
"""
Pydantic Model Reader.

Lets application models serve as the declared schema. Field annotations
give the column types, Field(max_length=...) gives varchar lengths and
Field(description=...) becomes the column comment.

Model Metadata Convention:
    - __sql_table__: Table name
    - __sql_schema__: Schema name (optional)
    - __sql_primary_key__: Primary key column(s) - string or list
    - __sql_foreign_keys__: Dict of {column: "schema.table(column)"}
    - __sql_indexes__: List of (name, columns[, where]) tuples or dicts
    - __sql_unique__: List of column lists
    - __sql_serial_columns__: Columns generated from a sequence

Usage:
    class Post(BaseModel):
        __sql_table__: ClassVar[str] = "post"
        __sql_primary_key__: ClassVar[str] = "id"
        __sql_serial_columns__: ClassVar[List[str]] = ["id"]

        id: int
        title: str = Field(..., max_length=200)

    entity = entity_from_model(Post)
"""

import datetime
import decimal
import re
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Type, Union, get_args, get_origin

from annotated_types import MaxLen
from pydantic import BaseModel
from pydantic.fields import FieldInfo
from pydantic_core import PydanticUndefined

from core.logging import get_logger
from core.metadata.entity import (
    ColumnMetadata,
    EntityMetadata,
    ForeignKeyMetadata,
    IndexMetadata,
    UniqueMetadata,
)

logger = get_logger(__name__)

_FK_REFERENCE = re.compile(r"^(?:(\w+)\.)?(\w+)\((\w+)\)$")

SCALAR_TYPES = {
    str: "character varying",
    int: "integer",
    float: "double precision",
    bool: "boolean",
    bytes: "bytea",
    datetime.datetime: "timestamp with time zone",
    datetime.date: "date",
    datetime.time: "time without time zone",
    decimal.Decimal: "numeric",
    uuid.UUID: "uuid",
}

TIMESTAMP_FIELDS = ("created_at", "updated_at")


def get_model_metadata(model: Type[BaseModel]) -> Dict[str, Any]:
    """
    Extract SQL metadata from a Pydantic model.

    Looks for __sql_* attributes (which Python mangles to _ClassName__sql_*).

    Args:
        model: Pydantic model class

    Returns:
        Dict with table, schema, primary_key, foreign_keys, indexes, unique, serial_columns
    """
    def get_attr(name: str, default=None):
        mangled = f"_{model.__name__}__{name}"
        return getattr(model, mangled, getattr(model, f"__{name}", default))

    metadata = {
        "table": get_attr("sql_table__"),
        "schema": get_attr("sql_schema__"),
        "primary_key": get_attr("sql_primary_key__", []),
        "foreign_keys": get_attr("sql_foreign_keys__", {}),
        "indexes": get_attr("sql_indexes__", []),
        "unique": get_attr("sql_unique__", []),
        "serial_columns": get_attr("sql_serial_columns__", []),
    }

    if isinstance(metadata["primary_key"], str):
        metadata["primary_key"] = [metadata["primary_key"]]

    return metadata


def _unwrap_optional(annotation: Any):
    """Return (inner type, is_optional)."""
    origin = get_origin(annotation)
    if origin is Union:
        args = [a for a in get_args(annotation) if a is not type(None)]
        is_optional = len(args) < len(get_args(annotation))
        return (args[0] if len(args) == 1 else Any), is_optional
    return annotation, False


def _max_length(field_info: FieldInfo) -> Optional[int]:
    for constraint in field_info.metadata or []:
        if isinstance(constraint, MaxLen):
            return constraint.max_length
    return None


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _column_from_field(
    field_name: str,
    field_info: FieldInfo,
    primary_key: List[str],
    serial_columns: List[str],
) -> ColumnMetadata:
    actual_type, is_optional = _unwrap_optional(field_info.annotation)
    origin = get_origin(actual_type)

    options: Dict[str, Any] = {
        "name": field_name,
        "is_nullable": is_optional and field_name not in primary_key,
        "is_primary": field_name in primary_key,
        "comment": field_info.description,
    }

    if origin in (dict, list) or actual_type in (dict, list):
        options["type"] = "jsonb"
    elif isinstance(actual_type, type) and issubclass(actual_type, Enum):
        options["type"] = "enum"
        options["enum"] = actual_type
        options["enum_name"] = _snake_case(actual_type.__name__)
    elif actual_type in SCALAR_TYPES:
        options["type"] = SCALAR_TYPES[actual_type]
        if actual_type is str and (max_length := _max_length(field_info)):
            options["length"] = str(max_length)
    else:
        options["type"] = "jsonb"

    if field_name in serial_columns:
        options["is_generated"] = True
        options["generation_strategy"] = "increment"

    default = field_info.default
    if default is not PydanticUndefined and default is not None:
        options["default"] = default.value if isinstance(default, Enum) else default
    elif field_name in TIMESTAMP_FIELDS:
        options["default"] = lambda: "now()"
    elif field_info.default_factory is not None and options["type"] == "jsonb":
        options["default"] = field_info.default_factory()

    return ColumnMetadata(**options)


def _index_from_definition(definition) -> IndexMetadata:
    if isinstance(definition, dict):
        return IndexMetadata(
            name=definition.get("name"),
            columns=list(definition["columns"]),
            is_unique=definition.get("unique", False),
            where=definition.get("where") or definition.get("partial_where"),
        )
    name, columns, *rest = definition
    return IndexMetadata(name=name, columns=list(columns), where=rest[0] if rest else None)


def entity_from_model(model: Type[BaseModel], schema: Optional[str] = None) -> EntityMetadata:
    """
    Build EntityMetadata from a Pydantic model with __sql_* metadata.

    Args:
        model: Pydantic model class
        schema: Override for __sql_schema__

    Returns:
        EntityMetadata

    Raises:
        ValueError: If the model has no __sql_table__
    """
    meta = get_model_metadata(model)
    if not meta["table"]:
        raise ValueError(f"Model {model.__name__} missing __sql_table__ attribute")

    logger.debug(f"Reading entity {meta['table']} from {model.__name__}")

    columns = [
        _column_from_field(name, info, meta["primary_key"], meta["serial_columns"])
        for name, info in model.model_fields.items()
    ]

    foreign_keys = []
    for column, reference in meta["foreign_keys"].items():
        match = _FK_REFERENCE.match(reference.strip())
        if not match:
            raise ValueError(f"Invalid foreign key reference on {model.__name__}.{column}: {reference}")
        ref_schema, ref_table, ref_column = match.groups()
        foreign_keys.append(ForeignKeyMetadata(
            columns=[column],
            referenced_table=ref_table,
            referenced_schema=ref_schema,
            referenced_columns=[ref_column],
            on_delete="CASCADE",
        ))

    return EntityMetadata(
        table_name=meta["table"],
        schema=schema or meta["schema"],
        comment=(model.__doc__ or "").strip().split("\n")[0] or None,
        columns=columns,
        indices=[_index_from_definition(d) for d in meta["indexes"]],
        uniques=[UniqueMetadata(columns=list(cols)) for cols in meta["unique"]],
        foreign_keys=foreign_keys,
    )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "get_model_metadata",
    "entity_from_model",
]
