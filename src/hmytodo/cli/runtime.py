"""Runtime helpers shared by CLI commands."""

from __future__ import annotations

import asyncio
import json
import logging
import tomllib
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError as PydanticValidationError

from hmytodo.app import Backend, create_backend
from hmytodo.auth.types import User
from hmytodo.cli.console import error, show_notification
from hmytodo.config import ConfigError, load_config_or_default
from hmytodo.config.paths import ensure_hmytodo_home, get_session_path
from hmytodo.errors import HmyTodoError
from hmytodo.todos.engine import TodoEngine

logger = logging.getLogger(__name__)


def run(coro: Coroutine[Any, Any, None]) -> None:
    """Run an async command, turning HmyTodoError into exit code 1."""
    try:
        asyncio.run(coro)
    except HmyTodoError as e:
        error(str(e))
        raise typer.Exit(1) from None


@asynccontextmanager
async def open_backend(config_path: Path | None = None) -> AsyncIterator[Backend]:
    try:
        config = load_config_or_default(config_path)
    except (
        FileNotFoundError,
        tomllib.TOMLDecodeError,
        PydanticValidationError,
    ) as e:
        raise ConfigError(str(e)) from e
    backend = await create_backend(config)
    try:
        yield backend
    finally:
        await backend.close()


def save_session(user: User) -> None:
    ensure_hmytodo_home()
    get_session_path().write_text(json.dumps({"user_id": user.id}))


def clear_session() -> None:
    get_session_path().unlink(missing_ok=True)


def load_session_user_id() -> str | None:
    path = get_session_path()
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text()).get("user_id")
    except (json.JSONDecodeError, OSError):
        logger.warning("session_file_unreadable", extra={"file.path": str(path)})
        return None


async def require_user(backend: Backend) -> User:
    """Restore the signed-in user or exit with an error."""
    user_id = load_session_user_id()
    user = await backend.auth.restore(user_id) if user_id else None
    if user is None:
        error("Not signed in. Run 'hmytodo signin' or 'hmytodo register' first.")
        raise typer.Exit(1)
    return user


async def open_engine(backend: Backend, user: User) -> TodoEngine:
    """Build an engine for a one-shot command and load the current todos."""
    engine = TodoEngine(
        store=backend.store,
        user=user,
        sweep_mode=backend.config.todos.sweep_mode,
        poll_interval=backend.config.todos.poll_interval,
    )
    engine.notifier.subscribe(show_notification)
    await engine.refresh()
    return engine
