"""Configuration loading from TOML files and environment variables."""

import os
import tomllib
from pathlib import Path
from typing import Any

from hmytodo.config.models import HmyTodoConfig
from hmytodo.config.paths import get_config_path


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("config.toml"),  # Current directory
        get_config_path(),  # ~/.hmytodo/config.toml (or HMYTODO_HOME)
        Path("/etc/hmytodo/config.toml"),  # System-wide
    ]


def _apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """Fill settings from environment variables where the file leaves them unset."""
    auth = config.setdefault("auth", {})
    if auth.get("oauth_client_id") is None:
        value = os.environ.get("HMYTODO_OAUTH_CLIENT_ID")
        if value:
            auth["oauth_client_id"] = value
    return config


def load_config(path: Path | None = None) -> HmyTodoConfig:
    """Load configuration from TOML file.

    Args:
        path: Explicit path to config file. If None, searches default locations.

    Returns:
        Validated HmyTodoConfig instance.

    Raises:
        FileNotFoundError: If no config file is found.
        ValueError: If config file is invalid.
    """
    config_path: Path | None = None

    default_paths = _get_default_config_paths()

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for default_path in default_paths:
            expanded = default_path.expanduser()
            if expanded.exists():
                config_path = expanded
                break

    if config_path is None:
        raise FileNotFoundError(
            "No config file found. Searched: "
            + ", ".join(str(p) for p in default_paths)
        )

    with config_path.open("rb") as f:
        raw_config = tomllib.load(f)

    raw_config = _apply_env_overrides(raw_config)

    return HmyTodoConfig.model_validate(raw_config)


def load_config_or_default(path: Path | None = None) -> HmyTodoConfig:
    """Load configuration, falling back to defaults when no file exists.

    An explicit path that does not exist is still an error.
    """
    try:
        return load_config(path)
    except FileNotFoundError:
        if path is not None:
            raise
        return get_default_config()


def get_default_config() -> HmyTodoConfig:
    """Get a default configuration for development/testing."""
    return HmyTodoConfig.model_validate(_apply_env_overrides({}))
