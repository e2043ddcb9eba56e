"""Signed-in session lifetime.

A Session follows the auth provider: when a user signs in it starts a
TodoEngine for them, and when they sign out (or the session closes) it stops
the engine, which cancels the deadline timer and closes the store feed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Self

from hmytodo.app import Backend
from hmytodo.auth.types import User
from hmytodo.clock import Clock, utc_now
from hmytodo.errors import HmyTodoError
from hmytodo.notifications import Notifier
from hmytodo.todos.engine import TodoEngine

logger = logging.getLogger(__name__)


class Session:
    """Binds the current user to a running TodoEngine."""

    def __init__(
        self,
        backend: Backend,
        *,
        clock: Clock = utc_now,
        notifier: Notifier | None = None,
    ) -> None:
        self._backend = backend
        self._clock = clock
        self._notifier = notifier or Notifier()
        self._engine: TodoEngine | None = None
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def engine(self) -> TodoEngine | None:
        return self._engine

    @property
    def user(self) -> User | None:
        return self._engine.user if self._engine else None

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    async def start(self) -> None:
        if self._unsubscribe is not None:
            return
        self._unsubscribe = await self._backend.auth.on_auth_change(
            self._on_auth_change
        )

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self._stop_engine()

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _on_auth_change(self, user: User | None) -> None:
        current = self._engine
        if current is not None and (user is None or user.id != current.user.id):
            await self._stop_engine()
        if user is None or self._engine is not None:
            return

        todos_config = self._backend.config.todos
        engine = TodoEngine(
            store=self._backend.store,
            user=user,
            clock=self._clock,
            notifier=self._notifier,
            sweep_mode=todos_config.sweep_mode,
            poll_interval=todos_config.poll_interval,
        )
        try:
            await engine.start()
        except HmyTodoError as e:
            logger.warning("session_start_failed", extra={"error.message": str(e)})
            self._notifier.error("load todos", e)
            return
        self._engine = engine
        self._notifier.info(f"Welcome, {user.label}")

    async def _stop_engine(self) -> None:
        if self._engine is None:
            return
        engine, self._engine = self._engine, None
        await engine.stop()
