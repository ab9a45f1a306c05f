"""Access to the process-global working directory and environment table.

Every method here mutates or reads state shared by the whole process. Callers
outside a sandbox scope may observe intermediate values while a sandbox is
restoring the environment; nothing in this module synchronises with them.

Values go through `os.environ`, which uses surrogateescape on POSIX, so
non-UTF-8 bytes survive a read/write round trip.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional


class ProcessState:
    """Thin facade over `os.getcwd`, `os.chdir` and `os.environ`."""

    def current_directory(self) -> Path:
        return Path(os.getcwd())

    def change_directory(self, path: Path) -> None:
        os.chdir(path)

    def environment(self) -> dict[str, str]:
        """Return a copy of the full environment table."""
        return dict(os.environ)

    def get_env(self, key: str) -> Optional[str]:
        return os.environ.get(key)

    def set_env(self, key: str, value: str) -> None:
        os.environ[key] = value

    def remove_env(self, key: str) -> None:
        os.environ.pop(key, None)


_default_process_state: Optional[ProcessState] = None


def get_process_state() -> ProcessState:
    """Return the shared `ProcessState` instance."""
    global _default_process_state
    if _default_process_state is None:
        _default_process_state = ProcessState()
    return _default_process_state
