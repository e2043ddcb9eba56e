"""Todo subsystem public API.

Public API:
- TodoEngine: Lifecycle engine for one signed-in user
- TodoRepository: Store access with ownership and transition rules
- DeadlineWatcher: Drives the automatic MISSED transition
- filter_todos, sweep_expired, time_remaining: Pure lifecycle rules

Types:
- Todo, TodoStatus, TodoFilter, TimeRemaining, EXPIRED
"""

from hmytodo.todos.engine import TodoEngine
from hmytodo.todos.lifecycle import (
    filter_todos,
    new_todo,
    sweep_expired,
    time_remaining,
)
from hmytodo.todos.repository import TodoRepository
from hmytodo.todos.types import (
    DEADLINE_WINDOW,
    EXPIRED,
    TimeRemaining,
    Todo,
    TodoFilter,
    TodoStatus,
)
from hmytodo.todos.watcher import DeadlineWatcher

__all__ = [
    "DEADLINE_WINDOW",
    "EXPIRED",
    "DeadlineWatcher",
    "TimeRemaining",
    "Todo",
    "TodoEngine",
    "TodoFilter",
    "TodoRepository",
    "TodoStatus",
    "filter_todos",
    "new_todo",
    "sweep_expired",
    "time_remaining",
]
