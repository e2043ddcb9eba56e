"""Todo management commands."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer

from hmytodo.cli.console import console, create_table, warning
from hmytodo.cli.runtime import open_backend, open_engine, require_user, run
from hmytodo.clock import utc_now
from hmytodo.todos.lifecycle import time_remaining
from hmytodo.todos.types import Todo, TodoFilter, TodoStatus

app = typer.Typer(
    name="todo",
    help="Manage todos.",
    invoke_without_command=True,
)

_STATUS_STYLES = {
    TodoStatus.ACTIVE: "cyan",
    TodoStatus.COMPLETED: "green",
    TodoStatus.MISSED: "red",
}


def register(root: typer.Typer) -> None:
    root.add_typer(app, name="todo")


def _config_path(ctx: typer.Context) -> Path | None:
    return (ctx.find_root().obj or {}).get("config_path")


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


@app.callback()
def _default(ctx: typer.Context) -> None:
    """Manage todos. Run without a subcommand to list all todos."""
    if ctx.invoked_subcommand is None:
        run(_todo_list(_config_path(ctx), TodoFilter.ALL))


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    criterion: Annotated[
        TodoFilter,
        typer.Option("--filter", "-f", help="Which todos to show"),
    ] = TodoFilter.ALL,
) -> None:
    """List todos, marking overdue ones as missed first."""
    run(_todo_list(_config_path(ctx), criterion))


@app.command("add")
def add_cmd(
    ctx: typer.Context,
    title: Annotated[str, typer.Argument(help="Todo title")],
) -> None:
    """Add a todo due in 24 hours."""
    run(_todo_add(_config_path(ctx), title))


@app.command("done")
def done_cmd(
    ctx: typer.Context,
    todo_id: Annotated[str, typer.Option("--id", "-i", help="Todo ID")],
) -> None:
    """Mark an active todo as completed."""
    run(_todo_done(_config_path(ctx), todo_id))


@app.command("delete")
def delete_cmd(
    ctx: typer.Context,
    todo_id: Annotated[str, typer.Option("--id", "-i", help="Todo ID")],
) -> None:
    """Delete a todo."""
    run(_todo_delete(_config_path(ctx), todo_id))


@app.command("sweep")
def sweep_cmd(ctx: typer.Context) -> None:
    """Mark every overdue active todo as missed."""
    run(_todo_sweep(_config_path(ctx)))


# ---------------------------------------------------------------------------
# Async implementations
# ---------------------------------------------------------------------------


async def _todo_list(config_path: Path | None, criterion: TodoFilter) -> None:
    async with open_backend(config_path) as backend:
        user = await require_user(backend)
        engine = await open_engine(backend, user)
        if await engine.sweep():
            await engine.refresh()
        todos = engine.visible_todos(criterion)

    if not todos:
        warning("No todos found")
        return

    columns: list[tuple[str, str | dict]] = [
        ("ID", "dim"),
        ("Title", ""),
        ("Status", {}),
        ("Due", ""),
    ]
    if user.is_admin:
        columns.append(("Owner", "dim"))
    table = create_table("Todos", columns)
    now = utc_now()
    for todo in todos:
        row = [todo.id, todo.title, _status_cell(todo), _due_cell(todo, now)]
        if user.is_admin:
            row.append(todo.owner)
        table.add_row(*row)
    console.print(table)


async def _todo_add(config_path: Path | None, title: str) -> None:
    async with open_backend(config_path) as backend:
        user = await require_user(backend)
        engine = await open_engine(backend, user)
        todo = await engine.create(title)
    if todo is None:
        raise typer.Exit(1)
    console.print(f"[dim]id: {todo.id}  due: {todo.deadline:%Y-%m-%d %H:%M} UTC[/dim]")


async def _todo_done(config_path: Path | None, todo_id: str) -> None:
    async with open_backend(config_path) as backend:
        user = await require_user(backend)
        engine = await open_engine(backend, user)
        todo = engine.get(todo_id)
        completed = await engine.complete(todo_id)
    if not completed:
        if todo is not None and not todo.is_active:
            warning(f"Todo {todo_id} is already {todo.status.value}")
        raise typer.Exit(1)


async def _todo_delete(config_path: Path | None, todo_id: str) -> None:
    async with open_backend(config_path) as backend:
        user = await require_user(backend)
        engine = await open_engine(backend, user)
        deleted = await engine.delete(todo_id)
    if not deleted:
        raise typer.Exit(1)


async def _todo_sweep(config_path: Path | None) -> None:
    async with open_backend(config_path) as backend:
        user = await require_user(backend)
        engine = await open_engine(backend, user)
        missed = await engine.sweep()
    console.print(f"{missed} todo(s) marked as missed")


def _status_cell(todo: Todo) -> str:
    style = _STATUS_STYLES[todo.status]
    return f"[{style}]{todo.status.value}[/{style}]"


def _due_cell(todo: Todo, now: datetime) -> str:
    if not todo.is_active:
        return f"{todo.deadline:%Y-%m-%d %H:%M}"
    return str(time_remaining(todo, now))
