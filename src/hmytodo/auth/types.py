"""Auth subsystem public types."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from hmytodo.store.types import Document, Record, Timestamp

USERS_COLLECTION = "users"
META_COLLECTION = "meta"
FIRST_ADMIN_DOC = "first_admin"


class Role(StrEnum):
    ADMIN = "admin"
    USER = "user"


@dataclass(frozen=True)
class User:
    """An authenticated user as exposed to the rest of the app."""

    id: str
    email: str
    display_name: str
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def label(self) -> str:
        return self.display_name or self.email

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role.value,
        }


@dataclass(frozen=True)
class Credentials:
    """Stored user record: profile plus password material."""

    user: User
    password_hash: str | None
    provider: str
    created_at: datetime

    def to_record(self) -> Record:
        return {
            "email": self.user.email,
            "display_name": self.user.display_name,
            "role": self.user.role.value,
            "password_hash": self.password_hash,
            "provider": self.provider,
            "created_at": Timestamp.from_datetime(self.created_at),
        }

    @classmethod
    def from_document(cls, doc: Document) -> Credentials:
        data = doc.data
        created = data.get("created_at")
        return cls(
            user=User(
                id=doc.id,
                email=str(data["email"]),
                display_name=str(data.get("display_name") or ""),
                role=Role(data.get("role", Role.USER.value)),
            ),
            password_hash=data.get("password_hash"),
            provider=str(data.get("provider", "password")),
            created_at=created.to_datetime()
            if isinstance(created, Timestamp)
            else datetime.now(UTC),
        )


@dataclass(frozen=True)
class OAuthIdentity:
    """Verified identity returned by an OAuth identity resolver."""

    provider: str
    email: str
    display_name: str = ""


AuthListener = Callable[[User | None], Awaitable[None] | None]
