"""Error taxonomy.

Every error raised by a user action derives from HmyTodoError so the engine
and the terminal client can recover at the point of the action and surface
a notification instead of crashing.
"""

from __future__ import annotations


class HmyTodoError(Exception):
    """Base class for recoverable, user-facing errors."""

    retryable: bool = False


class ValidationError(HmyTodoError, ValueError):
    """Input rejected by a validation rule (empty title, email policy, ...)."""


class AuthError(HmyTodoError):
    """Bad credentials or an identity provider failure."""


class PermissionDeniedError(HmyTodoError):
    """A write violated an ownership rule."""


class StoreError(HmyTodoError):
    """The document store could not complete a read or write."""

    retryable = True


class NotFoundError(StoreError):
    """The addressed record does not exist."""

    retryable = False


class ConflictError(StoreError):
    """A conditional write found the record in a different state."""

    retryable = False


class InvalidTransitionError(ValidationError):
    """A status change out of a terminal state."""
