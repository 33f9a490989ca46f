# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# STATUS: Core - Structured logging with context
# PURPOSE: Consistent logging for driver, query runner and schema builder
# CREATED: 14 OCT 2026
# ============================================================================
"""
Structured Logging

Provides structured, JSON-formatted or human-readable logging for schema
synchronization.

Features:
- Component-based loggers
- Contextual fields (runner_id, table, operation)
- JSON output for log aggregation
- QueryLogger channels for executed, failed and slow statements

Usage:
    from core.logging import get_logger, log_context

    logger = get_logger("infrastructure.schema_builder")

    with log_context(table="post", operation="add_column"):
        logger.info("Adding column")
"""

import json
import logging
import os
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence, Union
from enum import Enum


class ComponentType(str, Enum):
    """Component types for logging categorization."""
    DRIVER = "driver"
    QUERY_RUNNER = "query_runner"
    SCHEMA_BUILDER = "schema_builder"
    INITIALIZER = "initializer"
    CLI = "cli"


@dataclass
class LogContext:
    """
    Context for structured logging.

    Thread-local storage for contextual fields.
    """
    runner_id: Optional[str] = None
    table: Optional[str] = None
    operation: Optional[str] = None
    correlation_id: Optional[str] = None
    component: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        result = {}
        for key, value in asdict(self).items():
            if value is not None and key != "extra":
                result[key] = value
        if self.extra:
            result.update(self.extra)
        return result


# Thread-local context storage
_context_stack = threading.local()


def _get_context_stack() -> list:
    """Get thread-local context stack."""
    if not hasattr(_context_stack, "stack"):
        _context_stack.stack = []
    return _context_stack.stack


def get_current_context() -> LogContext:
    """Get current logging context."""
    stack = _get_context_stack()
    if stack:
        return stack[-1]
    return LogContext()


@contextmanager
def log_context(**kwargs):
    """
    Context manager for adding logging context.

    Args:
        **kwargs: Context fields to add

    Example:
        with log_context(table="post", operation="rename_column"):
            logger.info("Renaming column")
    """
    parent = get_current_context()
    new_context = LogContext(
        runner_id=kwargs.get("runner_id", parent.runner_id),
        table=kwargs.get("table", parent.table),
        operation=kwargs.get("operation", parent.operation),
        correlation_id=kwargs.get("correlation_id", parent.correlation_id),
        component=kwargs.get("component", parent.component),
        extra={**parent.extra, **kwargs.get("extra", {})},
    )

    stack = _get_context_stack()
    stack.append(new_context)
    try:
        yield new_context
    finally:
        stack.pop()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON for easy parsing by log aggregators.
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        include_context: bool = True,
    ):
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {}

        if self.include_timestamp:
            log_data["timestamp"] = _utc_now().isoformat()

        if self.include_level:
            log_data["level"] = record.levelname

        if self.include_logger:
            log_data["logger"] = record.name

        log_data["message"] = record.getMessage()

        if self.include_context:
            context_dict = get_current_context().to_dict()
            if context_dict:
                log_data["context"] = context_dict

        if hasattr(record, "extra") and record.extra:
            log_data["data"] = record.extra

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data["source"] = {
            "file": record.filename,
            "line": record.lineno,
            "function": record.funcName,
        }

        return json.dumps(log_data, default=str)


class HumanFormatter(logging.Formatter):
    """
    Human-readable formatter for development.

    Includes context fields inline for easy reading.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for human reading."""
        timestamp = _utc_now().strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname.ljust(8)

        context = get_current_context()
        context_parts = []
        if context.runner_id:
            context_parts.append(f"runner={context.runner_id}")
        if context.table:
            context_parts.append(f"table={context.table}")
        if context.operation:
            context_parts.append(f"op={context.operation}")

        context_str = f" [{', '.join(context_parts)}]" if context_parts else ""

        result = f"{timestamp} {level} {record.name}{context_str}: {record.getMessage()}"

        if record.exc_info:
            result += f"\n{self.formatException(record.exc_info)}"

        return result


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that includes context in log records.

    Automatically includes thread-local context in all log messages.
    """

    def process(self, msg, kwargs):
        """Process log record to include context."""
        context = get_current_context()

        extra = dict(kwargs.get("extra", {}))
        if self.extra and self.extra.get("component"):
            extra.setdefault("component", self.extra["component"])
        extra.update(context.to_dict())

        # Stored as one attribute for formatter access
        kwargs["extra"] = {"extra": extra}

        return msg, kwargs


def get_logger(
    name: str,
    component: Optional[ComponentType] = None,
) -> ContextLogger:
    """
    Get a context-aware logger.

    Args:
        name: Logger name (e.g., "infrastructure.schema_builder")
        component: Optional component type for categorization

    Returns:
        ContextLogger instance
    """
    base_logger = logging.getLogger(name)
    value = component.value if isinstance(component, ComponentType) else component
    return ContextLogger(base_logger, {"component": value})


def configure_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Use JSON format (for production)
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if json_output or os.getenv("LOG_FORMAT", "").lower() == "json":
        formatter = StructuredFormatter(include_context=True)
    else:
        formatter = HumanFormatter()

    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root.addHandler(handler)


# ============================================================================
# QUERY LOGGER
# ============================================================================

class QueryLogger:
    """
    Channels for statement-level logging.

    Each channel is gated separately so production deployments can keep
    errors and slow queries while silencing the per-statement stream.

    Args:
        log_queries: Log every executed statement at DEBUG
        log_errors: Log failed statements at ERROR
        log_schema_build: Log schema builder decisions at INFO
        log_slow_queries: Log statements exceeding the slow threshold at WARNING
    """

    def __init__(
        self,
        log_queries: bool = False,
        log_errors: bool = True,
        log_schema_build: bool = True,
        log_slow_queries: bool = True,
        logger: Optional[logging.LoggerAdapter] = None,
    ):
        self.queries_enabled = log_queries
        self.errors_enabled = log_errors
        self.schema_build_enabled = log_schema_build
        self.slow_queries_enabled = log_slow_queries
        self.logger = logger or get_logger("pgsync.query", ComponentType.QUERY_RUNNER)

    @staticmethod
    def _format(query: str, parameters: Optional[Sequence[Any]] = None) -> str:
        text = " ".join(query.split())
        if parameters:
            text += f" -- PARAMETERS: {list(parameters)!r}"
        return text

    def log_query(self, query: str, parameters: Optional[Sequence[Any]] = None) -> None:
        if self.queries_enabled:
            self.logger.debug(f"query: {self._format(query, parameters)}")

    def log_query_error(
        self,
        error: BaseException,
        query: str,
        parameters: Optional[Sequence[Any]] = None,
    ) -> None:
        if self.errors_enabled:
            self.logger.error(f"query failed: {self._format(query, parameters)}")
            self.logger.error(f"error: {error}")

    def log_query_slow(
        self,
        elapsed_ms: float,
        query: str,
        parameters: Optional[Sequence[Any]] = None,
    ) -> None:
        if self.slow_queries_enabled:
            self.logger.warning(
                f"query is slow: {self._format(query, parameters)} -- execution time: {elapsed_ms:.0f}ms"
            )

    def log_schema_build(self, message: str) -> None:
        if self.schema_build_enabled:
            self.logger.info(message)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ComponentType",
    "LogContext",
    "StructuredFormatter",
    "HumanFormatter",
    "ContextLogger",
    "QueryLogger",
    "get_logger",
    "configure_logging",
    "log_context",
    "get_current_context",
]
