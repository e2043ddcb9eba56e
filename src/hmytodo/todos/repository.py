"""Todo persistence with store-side access rules.

Every write goes through TodoRepository so ownership and status transitions
are enforced regardless of which surface issued the call.
"""

from __future__ import annotations

import logging
from datetime import datetime

from hmytodo.auth.types import User
from hmytodo.errors import ConflictError, NotFoundError, PermissionDeniedError
from hmytodo.store.types import DocumentStore, Query, Subscription
from hmytodo.todos.lifecycle import check_transition, is_overdue
from hmytodo.todos.types import TODOS_COLLECTION, Todo, TodoStatus

logger = logging.getLogger(__name__)

_STILL_ACTIVE = {"status": TodoStatus.ACTIVE.value}


def visible_query(user: User) -> Query:
    """Admins see every todo; everyone else only their own."""
    query = Query(TODOS_COLLECTION)
    if user.is_admin:
        return query
    return query.where_eq("owner", user.id)


def is_visible(todo: Todo, user: User) -> bool:
    return user.is_admin or todo.owner == user.id


class TodoRepository:
    """Todo collection access for one store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def add(self, todo: Todo, requester: User) -> Todo:
        if todo.owner != requester.id:
            raise PermissionDeniedError("todos can only be created for yourself")
        if todo.status != TodoStatus.ACTIVE:
            raise PermissionDeniedError("new todos must be active")
        todo_id = await self._store.create(TODOS_COLLECTION, todo.to_record())
        return Todo(
            id=todo_id,
            title=todo.title,
            owner=todo.owner,
            created_at=todo.created_at,
            deadline=todo.deadline,
            status=todo.status,
        )

    async def get(self, todo_id: str) -> Todo | None:
        doc = await self._store.get(TODOS_COLLECTION, todo_id)
        return Todo.from_document(doc) if doc else None

    async def list(self, user: User) -> list[Todo]:
        docs = await self._store.query(visible_query(user))
        return [Todo.from_document(doc) for doc in docs]

    def subscribe(self, user: User) -> Subscription:
        return self._store.subscribe(visible_query(user))

    async def complete(self, todo_id: str, requester: User) -> Todo:
        todo = await self._require(todo_id)
        if todo.owner != requester.id:
            _deny(todo, requester)
        check_transition(todo.status, TodoStatus.COMPLETED)
        try:
            await self._store.update(
                TODOS_COLLECTION,
                todo_id,
                {"status": TodoStatus.COMPLETED.value},
                expect=_STILL_ACTIVE,
            )
        except ConflictError:
            current = await self._require(todo_id)
            check_transition(current.status, TodoStatus.COMPLETED)
            raise
        return todo.with_status(TodoStatus.COMPLETED)

    async def mark_missed(self, todo_id: str, now: datetime) -> bool:
        """Transition to MISSED if the stored record is still overdue.

        The write is conditional on the record still being active, so a
        completion that lands first always wins.
        """
        todo = await self.get(todo_id)
        if todo is None or not is_overdue(todo, now):
            return False
        try:
            await self._store.update(
                TODOS_COLLECTION,
                todo_id,
                {"status": TodoStatus.MISSED.value},
                expect=_STILL_ACTIVE,
            )
        except (ConflictError, NotFoundError):
            logger.debug("todo_missed_skipped", extra={"todo.id": todo_id})
            return False
        return True

    async def delete(self, todo_id: str, requester: User) -> bool:
        todo = await self.get(todo_id)
        if todo is None:
            return False
        _assert_owner(todo, requester)
        await self._store.delete(TODOS_COLLECTION, todo_id)
        return True

    async def _require(self, todo_id: str) -> Todo:
        todo = await self.get(todo_id)
        if todo is None:
            raise NotFoundError(f"todo {todo_id} not found")
        return todo


def _assert_owner(todo: Todo, requester: User) -> None:
    if not is_visible(todo, requester):
        _deny(todo, requester)


def _deny(todo: Todo, requester: User) -> None:
    logger.warning(
        "todo_write_denied",
        extra={"todo.id": todo.id, "user.id": requester.id},
    )
    raise PermissionDeniedError("todo does not belong to you")
