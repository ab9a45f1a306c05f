"""Ephemeral directory provisioning for directory sandboxes."""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Optional

from hermetic.infrastructure.storage.path_guard import (
    ensure_strictly_within_root,
    normalize_path,
)


DEFAULT_PREFIX = "hermetic_"


class TempDirectoryProvider:
    """Creates and removes uniquely named directories under one root.

    Usage:
        provider = TempDirectoryProvider()
        path = provider.create()
        ...
        provider.remove(path)
    """

    def __init__(self, root: Optional[Path] = None, prefix: str = DEFAULT_PREFIX):
        """
        Args:
            root: Parent directory for new directories. Defaults to the
                platform temp directory.
            prefix: Name prefix for created directories.
        """
        self._root = normalize_path(root or tempfile.gettempdir())
        self._prefix = prefix

    @property
    def root(self) -> Path:
        return self._root

    @property
    def prefix(self) -> str:
        return self._prefix

    def create(self) -> Path:
        """Create a new empty directory and return its canonical path.

        Raises:
            OSError: if the directory cannot be created.
        """
        created = tempfile.mkdtemp(prefix=self._prefix, dir=self._root)
        return normalize_path(created)

    def remove(self, path: Path) -> None:
        """Recursively delete `path`.

        Raises:
            InvalidSandboxPathError: if `path` is not strictly inside the root.
            OSError: if deletion fails.
        """
        target = ensure_strictly_within_root(self._root, path)
        shutil.rmtree(target)
