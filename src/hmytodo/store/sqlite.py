"""SQLite-backed document store (async SQLAlchemy + aiosqlite)."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import Integer, String, Text, UniqueConstraint, delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from hmytodo.errors import NotFoundError, StoreError
from hmytodo.store.base import QuerySubscription, SubscriptionHub, check_expected
from hmytodo.store.types import Document, Query, Record, Timestamp

logger = logging.getLogger(__name__)

_TIMESTAMP_KEY = "$timestamp"


class Base(DeclarativeBase):
    """Base class for store tables."""


class DocumentRow(Base):
    """One document. seq preserves insertion order."""

    __tablename__ = "documents"
    __table_args__ = (UniqueConstraint("collection", "doc_id"),)

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collection: Mapped[str] = mapped_column(String, nullable=False, index=True)
    doc_id: Mapped[str] = mapped_column(String, nullable=False)
    data: Mapped[str] = mapped_column(Text, nullable=False)


def encode_record(record: Record) -> str:
    def default(value: Any) -> Any:
        if isinstance(value, Timestamp):
            return {_TIMESTAMP_KEY: [value.seconds, value.nanos]}
        raise TypeError(f"cannot store value of type {type(value).__name__}")

    return json.dumps(record, default=default)


def decode_record(raw: str) -> Record:
    def hook(obj: dict[str, Any]) -> Any:
        if set(obj) == {_TIMESTAMP_KEY}:
            seconds, nanos = obj[_TIMESTAMP_KEY]
            return Timestamp(int(seconds), int(nanos))
        return obj

    return json.loads(raw, object_hook=hook)


class SqliteDocumentStore:
    """Document store persisted in a single SQLite table.

    Subscriptions are served in-process: every write made through this
    instance republishes the affected collection.

    Usage:
        store = SqliteDocumentStore(database_path=Path("hmytodo.db"))
        await store.connect()
    """

    def __init__(
        self, database_url: str | None = None, database_path: Path | None = None
    ):
        if database_url:
            self._url = database_url
        elif database_path:
            database_path.parent.mkdir(parents=True, exist_ok=True)
            self._url = f"sqlite+aiosqlite:///{database_path}"
        else:
            raise ValueError("Either database_url or database_path must be provided")

        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._hub = SubscriptionHub()
        self._lock = asyncio.Lock()

    @property
    def subscriptions(self) -> SubscriptionHub:
        return self._hub

    async def connect(self) -> None:
        """Open the engine and create the documents table if needed."""
        self._engine = create_async_engine(self._url, echo=False)
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StoreError(f"could not open store: {e}") from e
        logger.debug("sqlite_store_connected", extra={"store.url": self._url})

    async def close(self) -> None:
        self._hub.close_all()
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._session_factory is None:
            raise StoreError("store not connected. Call connect() first.")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise
            except SQLAlchemyError as e:
                await session.rollback()
                logger.warning("sqlite_store_error", extra={"error.message": str(e)})
                raise StoreError(str(e)) from e

    async def create(self, collection: str, record: Record) -> str:
        doc_id = uuid.uuid4().hex[:12]
        async with self._lock, self._session() as session:
            session.add(
                DocumentRow(
                    collection=collection, doc_id=doc_id, data=encode_record(record)
                )
            )
        await self._hub.publish(collection, self.query)
        return doc_id

    async def claim(self, collection: str, doc_id: str, record: Record) -> bool:
        try:
            async with self._lock, self._session() as session:
                session.add(
                    DocumentRow(
                        collection=collection,
                        doc_id=doc_id,
                        data=encode_record(record),
                    )
                )
        except IntegrityError:
            return False
        await self._hub.publish(collection, self.query)
        return True

    async def get(self, collection: str, doc_id: str) -> Document | None:
        async with self._session() as session:
            row = await self._fetch_row(session, collection, doc_id)
            if row is None:
                return None
            return Document(row.doc_id, decode_record(row.data))

    async def update(
        self,
        collection: str,
        doc_id: str,
        partial: Record,
        expect: Record | None = None,
    ) -> None:
        async with self._lock, self._session() as session:
            row = await self._fetch_row(session, collection, doc_id)
            if row is None:
                raise NotFoundError(f"{collection}/{doc_id} not found")
            data = decode_record(row.data)
            check_expected(collection, doc_id, data, expect)
            data.update(partial)
            row.data = encode_record(data)
        await self._hub.publish(collection, self.query)

    async def delete(self, collection: str, doc_id: str) -> None:
        async with self._lock, self._session() as session:
            await session.execute(
                delete(DocumentRow).where(
                    DocumentRow.collection == collection,
                    DocumentRow.doc_id == doc_id,
                )
            )
        await self._hub.publish(collection, self.query)

    async def query(self, query: Query) -> list[Document]:
        async with self._session() as session:
            result = await session.execute(
                select(DocumentRow)
                .where(DocumentRow.collection == query.collection)
                .order_by(DocumentRow.seq)
            )
            documents = [
                Document(row.doc_id, decode_record(row.data))
                for row in result.scalars()
            ]
        return [doc for doc in documents if query.matches(doc.data)]

    def subscribe(self, query: Query) -> QuerySubscription:
        return self._hub.open(query, self.query)

    @staticmethod
    async def _fetch_row(
        session: AsyncSession, collection: str, doc_id: str
    ) -> DocumentRow | None:
        result = await session.execute(
            select(DocumentRow).where(
                DocumentRow.collection == collection,
                DocumentRow.doc_id == doc_id,
            )
        )
        return result.scalar_one_or_none()
