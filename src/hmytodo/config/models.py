"""Configuration models using Pydantic."""

import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from hmytodo.config.paths import get_database_path
from hmytodo.errors import HmyTodoError

logger = logging.getLogger(__name__)


class StoreConfig(BaseModel):
    """Configuration for the document store backend."""

    backend: Literal["memory", "sqlite"] = "sqlite"
    database_path: Path = Field(default_factory=get_database_path)


class TodoConfig(BaseModel):
    """Configuration for the deadline watcher.

    "timer" arms a single timer at the nearest deadline. "poll" sweeps on a
    fixed period, leaving up to poll_interval seconds of slack.
    """

    sweep_mode: Literal["timer", "poll"] = "timer"
    poll_interval: float = Field(default=60.0, gt=0)


class AuthConfig(BaseModel):
    """Configuration for registration policy and OAuth."""

    allowed_email_domains: list[str] = ["gmail.com"]
    min_password_length: int = Field(default=6, ge=1)
    oauth_client_id: str | None = None

    @field_validator("allowed_email_domains")
    @classmethod
    def _normalize_domains(cls, value: list[str]) -> list[str]:
        return [d.strip().lower().lstrip("@") for d in value if d.strip()]


class ConfigError(HmyTodoError):
    """Configuration file missing or invalid."""


class HmyTodoConfig(BaseModel):
    """Root configuration model."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    todos: TodoConfig = Field(default_factory=TodoConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
