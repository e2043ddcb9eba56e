"""CLI command modules."""

from hmytodo.cli.commands import auth, config, todo

__all__ = [
    "auth",
    "config",
    "todo",
]
