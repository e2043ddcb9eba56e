"""Document store subsystem.

Public API:
- DocumentStore: Protocol implemented by every backend
- InMemoryDocumentStore: Process-local backend
- SqliteDocumentStore: Persistent backend (SQLAlchemy async)
- create_store: Factory from StoreConfig

Types:
- Document, Query, Snapshot, Timestamp
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from hmytodo.store.memory import InMemoryDocumentStore
from hmytodo.store.sqlite import SqliteDocumentStore
from hmytodo.store.types import (
    Document,
    DocumentStore,
    Query,
    Record,
    Snapshot,
    Subscription,
    Timestamp,
)

if TYPE_CHECKING:
    from hmytodo.config.models import StoreConfig


async def create_store(config: StoreConfig) -> DocumentStore:
    """Create and connect the configured store backend."""
    if config.backend == "memory":
        return InMemoryDocumentStore()
    store = SqliteDocumentStore(database_path=config.database_path)
    await store.connect()
    return store


__all__ = [
    "Document",
    "DocumentStore",
    "InMemoryDocumentStore",
    "Query",
    "Record",
    "Snapshot",
    "SqliteDocumentStore",
    "Subscription",
    "Timestamp",
    "create_store",
]
