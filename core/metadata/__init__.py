# ============================================================================
# CLAUDE CONTEXT - METADATA MODULE
# ============================================================================
# STATUS: Declared schema exports
# PURPOSE: Central export point for the declared model
# LAST_REVIEWED: 14 OCT 2026
# ============================================================================
"""
Metadata Module - Declared Schema

EntityMetadata graphs describe the desired database state. They can be
written directly or read from Pydantic models with __sql_* metadata.
"""

from core.metadata.entity import (
    ColumnMetadata,
    IndexMetadata,
    UniqueMetadata,
    CheckMetadata,
    ExclusionMetadata,
    ForeignKeyMetadata,
    EntityMetadata,
)
from core.metadata.model_reader import entity_from_model, get_model_metadata

__all__ = [
    "ColumnMetadata",
    "IndexMetadata",
    "UniqueMetadata",
    "CheckMetadata",
    "ExclusionMetadata",
    "ForeignKeyMetadata",
    "EntityMetadata",
    "entity_from_model",
    "get_model_metadata",
]
