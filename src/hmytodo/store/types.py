"""Document store public types.

Public types:
- Timestamp: the store's native point-in-time value
- Query: collection scan with equality filters
- Snapshot: full result set delivered to subscribers
- DocumentStore: protocol every backend implements
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

Record = dict[str, Any]


@dataclass(frozen=True, order=True)
class Timestamp:
    """Seconds and nanoseconds since the Unix epoch, always UTC."""

    seconds: int
    nanos: int = 0

    @classmethod
    def from_datetime(cls, value: datetime) -> Timestamp:
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        delta = value - datetime(1970, 1, 1, tzinfo=UTC)
        seconds = delta.days * 86400 + delta.seconds
        return cls(seconds=seconds, nanos=delta.microseconds * 1000)

    def to_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.seconds, UTC).replace(
            microsecond=self.nanos // 1000
        )


@dataclass(frozen=True)
class Document:
    """A stored record with its id."""

    id: str
    data: Record

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


@dataclass(frozen=True)
class Query:
    """All documents in a collection whose fields equal the given values."""

    collection: str
    where: dict[str, Any] = field(default_factory=dict)

    def where_eq(self, field_name: str, value: Any) -> Query:
        return Query(self.collection, {**self.where, field_name: value})

    def matches(self, data: Record) -> bool:
        return all(data.get(k) == v for k, v in self.where.items())


@dataclass(frozen=True)
class Snapshot:
    """Current result set of a query, in insertion order."""

    query: Query
    documents: tuple[Document, ...]

    def __len__(self) -> int:
        return len(self.documents)

    def __iter__(self):
        return iter(self.documents)


class Subscription(Protocol):
    """Async stream of snapshots; the first one is the current result set."""

    def __aiter__(self) -> AsyncIterator[Snapshot]: ...

    async def __anext__(self) -> Snapshot: ...

    def close(self) -> None: ...

    @property
    def closed(self) -> bool: ...


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for the real-time document store."""

    async def create(self, collection: str, record: Record) -> str:
        """Insert a record and return its generated id."""
        ...

    async def claim(self, collection: str, doc_id: str, record: Record) -> bool:
        """Atomically insert a record under doc_id unless one already exists."""
        ...

    async def get(self, collection: str, doc_id: str) -> Document | None:
        """Fetch one document by id."""
        ...

    async def update(
        self,
        collection: str,
        doc_id: str,
        partial: Record,
        expect: Record | None = None,
    ) -> None:
        """Merge fields into an existing document.

        With `expect`, the write only happens if every listed field still holds
        the given value; otherwise ConflictError is raised and nothing changes.
        """
        ...

    async def delete(self, collection: str, doc_id: str) -> None:
        """Remove a document."""
        ...

    async def query(self, query: Query) -> list[Document]:
        """Return the current result set of a query."""
        ...

    def subscribe(self, query: Query) -> Subscription:
        """Stream snapshots of a query, starting with the current result set."""
        ...

    async def close(self) -> None:
        """Release backend resources and end all subscriptions."""
        ...
