"""Pure todo lifecycle rules.

Everything here is synchronous and side-effect free; the engine applies the
results to the store.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime

from hmytodo.errors import InvalidTransitionError, ValidationError
from hmytodo.todos.types import (
    DEADLINE_WINDOW,
    EXPIRED,
    Expired,
    TimeRemaining,
    Todo,
    TodoFilter,
    TodoStatus,
)

_ALLOWED_TRANSITIONS: dict[TodoStatus, frozenset[TodoStatus]] = {
    TodoStatus.ACTIVE: frozenset({TodoStatus.COMPLETED, TodoStatus.MISSED}),
    TodoStatus.COMPLETED: frozenset(),
    TodoStatus.MISSED: frozenset(),
}


def normalize_title(title: str) -> str:
    """Return the stripped title, rejecting empty input."""
    text = (title or "").strip()
    if not text:
        raise ValidationError("Please enter a todo title")
    return text


def new_todo(title: str, owner: str, now: datetime, todo_id: str = "") -> Todo:
    """Build an ACTIVE todo whose deadline is now + 24h."""
    if not owner:
        raise ValidationError("owner is required")
    return Todo(
        id=todo_id,
        title=normalize_title(title),
        owner=owner,
        created_at=now,
        deadline=now + DEADLINE_WINDOW,
        status=TodoStatus.ACTIVE,
    )


def can_transition(current: TodoStatus, target: TodoStatus) -> bool:
    return target in _ALLOWED_TRANSITIONS[current]


def check_transition(current: TodoStatus, target: TodoStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"cannot change a {current.value} todo to {target.value}"
        )


def is_overdue(todo: Todo, now: datetime) -> bool:
    return todo.is_active and todo.deadline <= now


def sweep_expired(now: datetime, todos: Iterable[Todo]) -> list[Todo]:
    """Return the todos that must become MISSED at ``now``, already transitioned.

    Only ACTIVE todos past their deadline are included, so re-running on the
    result (or on COMPLETED todos) yields nothing.
    """
    return [
        todo.with_status(TodoStatus.MISSED)
        for todo in todos
        if is_overdue(todo, now)
    ]


def filter_todos(todos: Sequence[Todo], criterion: TodoFilter | str) -> list[Todo]:
    """Select todos matching criterion, preserving input order."""
    criterion = TodoFilter(criterion)
    if criterion == TodoFilter.ALL:
        return list(todos)
    status = TodoStatus(criterion.value)
    return [todo for todo in todos if todo.status == status]


def time_remaining(todo: Todo, now: datetime) -> TimeRemaining | Expired:
    """Time left before an active todo's deadline, truncated to whole minutes."""
    if not todo.is_active:
        raise ValidationError(f"a {todo.status.value} todo has no time remaining")
    if now >= todo.deadline:
        return EXPIRED
    total_minutes = int((todo.deadline - now).total_seconds()) // 60
    hours, minutes = divmod(total_minutes, 60)
    return TimeRemaining(hours=hours, minutes=minutes)
