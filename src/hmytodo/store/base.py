"""Subscription fan-out shared by the store backends.

Backends call SubscriptionHub.publish() after every committed write. Each
subscription keeps only the newest undelivered snapshot, so a slow consumer
always catches up to the latest state instead of replaying history.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Self

from hmytodo.errors import ConflictError
from hmytodo.store.types import Document, Query, Record, Snapshot

logger = logging.getLogger(__name__)

QueryRunner = Callable[[Query], Awaitable[list[Document]]]


class QuerySubscription:
    """Async iterator over snapshots of a single query."""

    def __init__(self, hub: SubscriptionHub, query: Query, runner: QueryRunner):
        self._hub = hub
        self._query = query
        self._runner = runner
        self._primed = False
        self._closed = False
        self._pending: Snapshot | None = None
        self._last: tuple[Document, ...] | None = None
        self._wakeup = asyncio.Event()

    @property
    def query(self) -> Query:
        return self._query

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> Snapshot:
        if not self._primed:
            if self._closed:
                raise StopAsyncIteration
            documents = tuple(await self._runner(self._query))
            self._primed = True
            self._last = documents
            return Snapshot(self._query, documents)

        while self._pending is None:
            if self._closed:
                raise StopAsyncIteration
            await self._wakeup.wait()
            self._wakeup.clear()

        snapshot, self._pending = self._pending, None
        return snapshot

    def offer(self, documents: list[Document]) -> None:
        if self._closed or not self._primed:
            return
        current = tuple(documents)
        if current == self._last:
            return
        self._last = current
        self._pending = Snapshot(self._query, current)
        self._wakeup.set()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._hub.discard(self)
        self._wakeup.set()


class SubscriptionHub:
    """Tracks live subscriptions per collection."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[QuerySubscription]] = {}

    def open(self, query: Query, runner: QueryRunner) -> QuerySubscription:
        subscription = QuerySubscription(self, query, runner)
        self._subscriptions.setdefault(query.collection, []).append(subscription)
        logger.debug(
            "store_subscription_opened",
            extra={"store.collection": query.collection},
        )
        return subscription

    def discard(self, subscription: QuerySubscription) -> None:
        subs = self._subscriptions.get(subscription.query.collection, [])
        if subscription in subs:
            subs.remove(subscription)

    def count(self, collection: str | None = None) -> int:
        if collection is not None:
            return len(self._subscriptions.get(collection, []))
        return sum(len(subs) for subs in self._subscriptions.values())

    async def publish(self, collection: str, runner: QueryRunner) -> None:
        for subscription in list(self._subscriptions.get(collection, [])):
            subscription.offer(await runner(subscription.query))

    def close_all(self) -> None:
        for subs in list(self._subscriptions.values()):
            for subscription in list(subs):
                subscription.close()
        self._subscriptions.clear()


def check_expected(
    collection: str, doc_id: str, data: Record, expect: Record | None
) -> None:
    """Raise ConflictError unless data still holds every expected value."""
    if not expect:
        return
    for key, value in expect.items():
        if data.get(key) != value:
            raise ConflictError(
                f"{collection}/{doc_id} has {key}={data.get(key)!r}, "
                f"expected {value!r}"
            )
