# ============================================================================
# CLAUDE CONTEXT - CORE MODULE
# ============================================================================
# STATUS: Core module initialization
# PURPOSE: Export declared-model types, schema model and errors
# LAST_REVIEWED: 14 OCT 2026
# ============================================================================

from core.errors import (
    SchemaSyncError,
    NotFoundError,
    PrimaryKeyNotFoundError,
    QueryRunnerAlreadyReleasedError,
    TransactionNotStartedError,
    QueryFailedError,
    UnsupportedOperationError,
    DriverNotConnectedError,
)
from core.metadata import (
    ColumnMetadata,
    IndexMetadata,
    UniqueMetadata,
    CheckMetadata,
    ExclusionMetadata,
    ForeignKeyMetadata,
    EntityMetadata,
    entity_from_model,
)
from core.schema import (
    Table,
    TableColumn,
    View,
    DefaultNamingStrategy,
    HashedNamingStrategy,
)

__all__ = [
    # Errors
    "SchemaSyncError",
    "NotFoundError",
    "PrimaryKeyNotFoundError",
    "QueryRunnerAlreadyReleasedError",
    "TransactionNotStartedError",
    "QueryFailedError",
    "UnsupportedOperationError",
    "DriverNotConnectedError",
    # Declared model
    "ColumnMetadata",
    "IndexMetadata",
    "UniqueMetadata",
    "CheckMetadata",
    "ExclusionMetadata",
    "ForeignKeyMetadata",
    "EntityMetadata",
    "entity_from_model",
    # Schema model
    "Table",
    "TableColumn",
    "View",
    "DefaultNamingStrategy",
    "HashedNamingStrategy",
]
