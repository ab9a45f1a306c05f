"""Readers for the `HERMETIC_*` environment variables behind `Settings`.

Every reader takes the short key (`"TEMP_ROOT"`) and looks up the prefixed
name. A blank value counts as unset, so `HERMETIC_TEMP_ROOT=` in a `.env`
file falls back to the default instead of producing an empty path.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional


ENV_PREFIX = "HERMETIC_"

_BOOL_WORDS = {
    "1": True, "true": True, "yes": True, "on": True,
    "0": False, "false": False, "no": False, "off": False,
}


def env_name(key: str) -> str:
    return key if key.startswith(ENV_PREFIX) else f"{ENV_PREFIX}{key}"


def read_env(key: str) -> Optional[str]:
    """Stripped value of the prefixed variable, None when unset or blank."""
    raw = os.environ.get(env_name(key))
    if raw is None:
        return None
    return raw.strip() or None


def parse_bool(value: object, *, default: bool = False) -> bool:
    """Map the usual on/off spellings to a bool; anything else gives `default`."""
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    return _BOOL_WORDS.get(str(value).strip().lower(), default)


def env_str(key: str, default: str = "") -> str:
    value = read_env(key)
    return default if value is None else value


def env_flag(key: str, default: bool = False) -> bool:
    return parse_bool(read_env(key), default=default)


def env_path(key: str) -> Optional[Path]:
    value = read_env(key)
    return None if value is None else Path(value).expanduser()


def env_names(key: str, default: Iterable[str] = ()) -> list[str]:
    """Comma-separated variable names, deduplicated in first-seen order."""
    value = read_env(key)
    if value is None:
        return list(default)
    names: list[str] = []
    for item in value.split(","):
        item = item.strip()
        if item and item not in names:
            names.append(item)
    return names
