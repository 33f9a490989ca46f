# ============================================================================
# SCHEMA SYNC ERRORS
# ============================================================================
# STATUS: Core - Exception taxonomy
# PURPOSE: Typed errors carrying context for every failure the sync can hit
# CREATED: 14 OCT 2026
# ============================================================================
"""
Schema Sync Errors

Every error raised by the driver, query runner or schema builder derives
from SchemaSyncError. Attributes carry the context a caller needs to react
without parsing the message.

Usage:
    from core.errors import NotFoundError

    try:
        await runner.drop_column("post", "body")
    except NotFoundError as e:
        logger.warning(f"{e.object_type} missing: {e.object_name}")
"""

from typing import Any, Optional, Sequence


class SchemaSyncError(Exception):
    """Base exception for schema synchronization."""

    def __init__(self, message: str, operation: Optional[str] = None):
        self.operation = operation
        super().__init__(message)


class NotFoundError(SchemaSyncError):
    """A table, view, column, constraint or index is missing from the cached model."""

    def __init__(
        self,
        message: str,
        object_type: Optional[str] = None,
        object_name: Optional[str] = None,
        table_name: Optional[str] = None,
    ):
        self.object_type = object_type
        self.object_name = object_name
        self.table_name = table_name
        super().__init__(message)


class PrimaryKeyNotFoundError(NotFoundError):
    """Raised when dropping a primary key from a table that has none."""

    def __init__(self, table_name: str):
        super().__init__(
            f"Table {table_name} has no primary keys.",
            object_type="primary_key",
            table_name=table_name,
        )


class QueryRunnerAlreadyReleasedError(SchemaSyncError):
    """Raised on any runner operation after release()."""

    def __init__(self):
        super().__init__("Query runner already released. Cannot run queries anymore.")


class TransactionNotStartedError(SchemaSyncError):
    """Raised by commit/rollback when no transaction is active."""

    def __init__(self, operation: str = "commit"):
        super().__init__("Transaction is not started.", operation=operation)


class QueryFailedError(SchemaSyncError):
    """
    Wraps a driver error together with the statement that caused it.

    The driver error is also chained as __cause__ by the raiser.
    """

    def __init__(
        self,
        query: str,
        parameters: Optional[Sequence[Any]],
        driver_error: BaseException,
    ):
        self.query = query
        self.parameters = list(parameters) if parameters else []
        self.driver_error = driver_error
        # psycopg errors expose the SQLSTATE as .sqlstate
        self.code = getattr(driver_error, "sqlstate", None)
        super().__init__(str(driver_error).strip() or driver_error.__class__.__name__)


class UnsupportedOperationError(SchemaSyncError):
    """The dialect cannot perform the requested operation in the current state."""


class DriverNotConnectedError(SchemaSyncError):
    """Raised when a connection is requested before the driver pools are open."""

    def __init__(self):
        super().__init__("Driver is not connected. Call connect() first.", operation="connect")


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "SchemaSyncError",
    "NotFoundError",
    "PrimaryKeyNotFoundError",
    "QueryRunnerAlreadyReleasedError",
    "TransactionNotStartedError",
    "QueryFailedError",
    "UnsupportedOperationError",
    "DriverNotConnectedError",
]
