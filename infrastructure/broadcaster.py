# ============================================================================
# LIFECYCLE BROADCASTER
# ============================================================================
# STATUS: Infrastructure - Query and transaction lifecycle events
# PURPOSE: Notify subscribers before/after queries and transaction boundaries
# CREATED: 14 OCT 2026
# ============================================================================
"""
Lifecycle Broadcaster

Subscribers are plain objects implementing any subset of the hook methods
below. Hooks may be sync or async; async hooks are awaited in
subscription order. An exception raised by a hook propagates to the
operation that broadcast the event.

Hooks:
    before_query(event: QueryEvent)
    after_query(event: QueryEvent)
    before_transaction_start(event: TransactionEvent)
    after_transaction_start(event: TransactionEvent)
    before_transaction_commit(event: TransactionEvent)
    after_transaction_commit(event: TransactionEvent)
    before_transaction_rollback(event: TransactionEvent)
    after_transaction_rollback(event: TransactionEvent)

Usage:
    class AuditSubscriber:
        async def after_query(self, event):
            if not event.success:
                alert(event.query)

    driver = PostgresDriver(options, subscribers=[AuditSubscriber()])
"""

import inspect
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence


@dataclass
class QueryEvent:
    query: str
    parameters: Optional[Sequence[Any]] = None
    success: Optional[bool] = None
    execution_time_ms: Optional[float] = None
    raw_results: Any = None
    error: Optional[BaseException] = None
    query_runner: Any = None


@dataclass
class TransactionEvent:
    depth: int
    isolation_level: Optional[str] = None
    query_runner: Any = None


class Broadcaster:
    """Dispatches lifecycle events to the driver's subscribers."""

    def __init__(self, subscribers: Optional[List[Any]] = None):
        self.subscribers = subscribers if subscribers is not None else []

    async def broadcast(self, hook: str, event: Any) -> None:
        for subscriber in self.subscribers:
            method = getattr(subscriber, hook, None)
            if method is None:
                continue
            result = method(event)
            if inspect.isawaitable(result):
                await result

    async def before_query(self, event: QueryEvent) -> None:
        await self.broadcast("before_query", event)

    async def after_query(self, event: QueryEvent) -> None:
        await self.broadcast("after_query", event)

    async def before_transaction_start(self, event: TransactionEvent) -> None:
        await self.broadcast("before_transaction_start", event)

    async def after_transaction_start(self, event: TransactionEvent) -> None:
        await self.broadcast("after_transaction_start", event)

    async def before_transaction_commit(self, event: TransactionEvent) -> None:
        await self.broadcast("before_transaction_commit", event)

    async def after_transaction_commit(self, event: TransactionEvent) -> None:
        await self.broadcast("after_transaction_commit", event)

    async def before_transaction_rollback(self, event: TransactionEvent) -> None:
        await self.broadcast("before_transaction_rollback", event)

    async def after_transaction_rollback(self, event: TransactionEvent) -> None:
        await self.broadcast("after_transaction_rollback", event)


__all__ = [
    "Broadcaster",
    "QueryEvent",
    "TransactionEvent",
]
