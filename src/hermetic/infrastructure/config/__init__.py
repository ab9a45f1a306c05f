"""Configuration helpers."""

from .settings_utils import (
    ENV_PREFIX,
    env_flag,
    env_name,
    env_names,
    env_path,
    env_str,
    parse_bool,
    read_env,
)

__all__ = [
    "ENV_PREFIX",
    "env_flag",
    "env_name",
    "env_names",
    "env_path",
    "env_str",
    "parse_bool",
    "read_env",
]
