"""Centralized path management for hmytodo.

All state (config, database, logs, signed-in session) is stored under a single
base directory, overridable with the HMYTODO_HOME environment variable.

Default locations:
- Linux/macOS: ~/.hmytodo
- Windows: %USERPROFILE%\\.hmytodo
"""

import os
from functools import lru_cache
from pathlib import Path

ENV_VAR = "HMYTODO_HOME"


@lru_cache(maxsize=1)
def get_hmytodo_home() -> Path:
    """Get the base directory for all hmytodo data.

    Resolution order:
    1. HMYTODO_HOME environment variable (if set)
    2. Platform default (~/.hmytodo)
    """
    if env_home := os.environ.get(ENV_VAR):
        return Path(env_home).expanduser().resolve()
    return Path.home() / ".hmytodo"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_hmytodo_home() / "config.toml"


def get_database_path() -> Path:
    """Get the default SQLite store path."""
    return get_hmytodo_home() / "data" / "hmytodo.db"


def get_logs_path() -> Path:
    """Get the default logs directory path."""
    return get_hmytodo_home() / "logs"


def get_session_path() -> Path:
    """Get the file holding the signed-in user for the terminal client."""
    return get_hmytodo_home() / "session.json"


def ensure_hmytodo_home() -> Path:
    """Ensure the hmytodo home directory exists."""
    home = get_hmytodo_home()
    home.mkdir(parents=True, exist_ok=True)
    return home


def get_all_paths() -> dict[str, Path]:
    """Get all standard paths for display."""
    return {
        "home": get_hmytodo_home(),
        "config": get_config_path(),
        "database": get_database_path(),
        "logs": get_logs_path(),
        "session": get_session_path(),
    }
