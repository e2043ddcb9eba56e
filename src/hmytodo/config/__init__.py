"""Configuration module."""

from hmytodo.config.loader import (
    get_default_config,
    load_config,
    load_config_or_default,
)
from hmytodo.config.models import (
    AuthConfig,
    ConfigError,
    HmyTodoConfig,
    StoreConfig,
    TodoConfig,
)
from hmytodo.config.paths import (
    get_config_path,
    get_database_path,
    get_hmytodo_home,
    get_session_path,
)

__all__ = [
    "AuthConfig",
    "ConfigError",
    "HmyTodoConfig",
    "StoreConfig",
    "TodoConfig",
    "get_config_path",
    "get_database_path",
    "get_default_config",
    "get_hmytodo_home",
    "get_session_path",
    "load_config",
    "load_config_or_default",
]
