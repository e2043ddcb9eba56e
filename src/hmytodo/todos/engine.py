"""Todo lifecycle engine.

Holds the latest snapshot of the session user's visible todos, applies user
actions (create, complete, delete) and drives the MISSED transition through a
DeadlineWatcher. Every user action recovers from HmyTodoError at the call
site and reports the outcome through the Notifier.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from hmytodo.auth.types import User
from hmytodo.clock import Clock, utc_now
from hmytodo.errors import HmyTodoError, InvalidTransitionError, StoreError
from hmytodo.notifications import Notifier
from hmytodo.store.types import DocumentStore, Snapshot, Subscription
from hmytodo.todos.lifecycle import filter_todos, new_todo, sweep_expired
from hmytodo.todos.repository import TodoRepository, is_visible
from hmytodo.todos.types import Todo, TodoFilter, TodoStatus
from hmytodo.todos.watcher import DeadlineWatcher, SweepMode

logger = logging.getLogger(__name__)


class TodoEngine:
    """Async facade for one user's todo lifecycle."""

    def __init__(
        self,
        *,
        store: DocumentStore,
        user: User,
        clock: Clock = utc_now,
        notifier: Notifier | None = None,
        sweep_mode: SweepMode = "timer",
        poll_interval: float = 60.0,
    ) -> None:
        self._repo = TodoRepository(store)
        self._user = user
        self._clock = clock
        self._notifier = notifier or Notifier()
        self._todos: list[Todo] = []
        self._subscription: Subscription | None = None
        self._feed_task: asyncio.Task | None = None
        self._watcher = DeadlineWatcher(
            self.sweep,
            mode=sweep_mode,
            poll_interval=poll_interval,
            clock=clock,
        )

    @property
    def user(self) -> User:
        return self._user

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    @property
    def watcher(self) -> DeadlineWatcher:
        return self._watcher

    @property
    def repository(self) -> TodoRepository:
        return self._repo

    @property
    def running(self) -> bool:
        return self._feed_task is not None

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to the user's todos and start the deadline watcher.

        Returns once the first snapshot has been applied. Raises StoreError if
        the initial result set cannot be read.
        """
        if self._feed_task is not None:
            return
        subscription = self._repo.subscribe(self._user)
        try:
            first = await anext(subscription)
        except StoreError:
            subscription.close()
            raise
        self._apply_snapshot(first)
        self._subscription = subscription
        self._feed_task = asyncio.create_task(self._consume(subscription))
        await self._watcher.start()
        logger.info("todo_engine_started", extra={"user.id": self._user.id})

    async def stop(self) -> None:
        """Stop the watcher and release the store subscription."""
        await self._watcher.stop()
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        if self._feed_task is not None:
            self._feed_task.cancel()
            try:
                await self._feed_task
            except asyncio.CancelledError:
                pass
            self._feed_task = None
        logger.info("todo_engine_stopped", extra={"user.id": self._user.id})

    async def _consume(self, subscription: Subscription) -> None:
        try:
            async for snapshot in subscription:
                self._apply_snapshot(snapshot)
        except HmyTodoError as e:
            logger.error("todo_feed_failed", extra={"error.message": str(e)})
            self._notifier.error("sync todos", e)

    def _apply_snapshot(self, snapshot: Snapshot) -> None:
        todos: list[Todo] = []
        for doc in snapshot:
            try:
                todos.append(Todo.from_document(doc))
            except (KeyError, ValueError):
                logger.warning("todo_parse_failed", extra={"todo.id": doc.id})
        self._todos = todos
        self._watcher.reschedule(todos)
        logger.debug("todo_snapshot_applied", extra={"todo.count": len(todos)})

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def todos(self) -> list[Todo]:
        """Latest known snapshot, in store order."""
        return list(self._todos)

    def visible_todos(self, criterion: TodoFilter | str = TodoFilter.ALL) -> list[Todo]:
        visible = [t for t in self._todos if is_visible(t, self._user)]
        return filter_todos(visible, criterion)

    def get(self, todo_id: str) -> Todo | None:
        return next((t for t in self._todos if t.id == todo_id), None)

    async def refresh(self) -> list[Todo]:
        """Re-read the visible todos from the store without a subscription."""
        todos = await self._repo.list(self._user)
        self._todos = todos
        self._watcher.reschedule(todos)
        return list(todos)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def create(self, title: str) -> Todo | None:
        """Create an ACTIVE todo due 24h from now. Returns None on failure."""
        try:
            todo = new_todo(title, self._user.id, self._clock())
            created = await self._repo.add(todo, self._user)
        except HmyTodoError as e:
            logger.warning("todo_create_failed", extra={"error.message": str(e)})
            self._notifier.error("add todo", e)
            return None
        self._watcher.track(created)
        logger.info(
            "todo_created",
            extra={"todo.id": created.id, "user.id": self._user.id},
        )
        self._notifier.success("Todo added successfully")
        return created

    async def complete(self, todo_id: str) -> bool:
        """Mark an ACTIVE todo COMPLETED. Non-active todos are left untouched."""
        current = self.get(todo_id)
        if current is not None and current.status != TodoStatus.ACTIVE:
            logger.debug(
                "todo_complete_skipped",
                extra={"todo.id": todo_id, "todo.status": current.status.value},
            )
            return False
        try:
            await self._repo.complete(todo_id, self._user)
        except InvalidTransitionError:
            logger.debug("todo_complete_skipped", extra={"todo.id": todo_id})
            return False
        except HmyTodoError as e:
            logger.warning(
                "todo_complete_failed",
                extra={"todo.id": todo_id, "error.message": str(e)},
            )
            self._notifier.error("complete todo", e)
            return False
        logger.info("todo_completed", extra={"todo.id": todo_id})
        self._notifier.success("Todo completed")
        return True

    async def delete(self, todo_id: str) -> bool:
        try:
            deleted = await self._repo.delete(todo_id, self._user)
        except HmyTodoError as e:
            logger.warning(
                "todo_delete_failed",
                extra={"todo.id": todo_id, "error.message": str(e)},
            )
            self._notifier.error("delete todo", e)
            return False
        if not deleted:
            self._notifier.warning(f"Todo {todo_id} not found")
            return False
        logger.info("todo_deleted", extra={"todo.id": todo_id})
        self._notifier.success("Todo deleted")
        return True

    # ------------------------------------------------------------------
    # Automatic transition
    # ------------------------------------------------------------------

    async def sweep(self) -> int:
        """Mark every overdue ACTIVE todo in the latest snapshot as MISSED.

        Returns the number of todos transitioned. Raises StoreError after
        attempting every todo if any write failed, so the watcher backs off.
        """
        return await self.sweep_todos(self._todos)

    async def sweep_todos(self, todos: Sequence[Todo]) -> int:
        now = self._clock()
        missed = 0
        failures: list[str] = []
        for todo in sweep_expired(now, todos):
            try:
                if await self._repo.mark_missed(todo.id, now):
                    missed += 1
                    logger.info("todo_missed", extra={"todo.id": todo.id})
            except StoreError as e:
                logger.warning(
                    "todo_missed_write_failed",
                    extra={"todo.id": todo.id, "error.message": str(e)},
                )
                failures.append(todo.id)
        if failures:
            raise StoreError(f"could not mark {len(failures)} todo(s) as missed")
        return missed
