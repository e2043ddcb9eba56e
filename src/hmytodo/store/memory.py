"""In-process document store."""

from __future__ import annotations

import asyncio
import copy
import uuid

from hmytodo.errors import NotFoundError, StoreError
from hmytodo.store.base import QuerySubscription, SubscriptionHub, check_expected
from hmytodo.store.types import Document, Query, Record


class InMemoryDocumentStore:
    """Dict-backed store with real-time subscriptions.

    Collections keep insertion order, which is the order snapshots report.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Record]] = {}
        self._lock = asyncio.Lock()
        self._hub = SubscriptionHub()
        self._closed = False

    @property
    def subscriptions(self) -> SubscriptionHub:
        return self._hub

    async def create(self, collection: str, record: Record) -> str:
        self._check_open()
        doc_id = uuid.uuid4().hex[:12]
        async with self._lock:
            self._collection(collection)[doc_id] = copy.deepcopy(record)
        await self._hub.publish(collection, self.query)
        return doc_id

    async def claim(self, collection: str, doc_id: str, record: Record) -> bool:
        self._check_open()
        async with self._lock:
            docs = self._collection(collection)
            if doc_id in docs:
                return False
            docs[doc_id] = copy.deepcopy(record)
        await self._hub.publish(collection, self.query)
        return True

    async def get(self, collection: str, doc_id: str) -> Document | None:
        self._check_open()
        data = self._collections.get(collection, {}).get(doc_id)
        if data is None:
            return None
        return Document(doc_id, copy.deepcopy(data))

    async def update(
        self,
        collection: str,
        doc_id: str,
        partial: Record,
        expect: Record | None = None,
    ) -> None:
        self._check_open()
        async with self._lock:
            docs = self._collection(collection)
            if doc_id not in docs:
                raise NotFoundError(f"{collection}/{doc_id} not found")
            check_expected(collection, doc_id, docs[doc_id], expect)
            docs[doc_id].update(copy.deepcopy(partial))
        await self._hub.publish(collection, self.query)

    async def delete(self, collection: str, doc_id: str) -> None:
        self._check_open()
        async with self._lock:
            self._collection(collection).pop(doc_id, None)
        await self._hub.publish(collection, self.query)

    async def query(self, query: Query) -> list[Document]:
        docs = self._collections.get(query.collection, {})
        return [
            Document(doc_id, copy.deepcopy(data))
            for doc_id, data in docs.items()
            if query.matches(data)
        ]

    def subscribe(self, query: Query) -> QuerySubscription:
        self._check_open()
        return self._hub.open(query, self.query)

    async def close(self) -> None:
        self._closed = True
        self._hub.close_all()

    def _collection(self, name: str) -> dict[str, Record]:
        return self._collections.setdefault(name, {})

    def _check_open(self) -> None:
        if self._closed:
            raise StoreError("store is closed")
