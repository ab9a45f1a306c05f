"""Sandbox error hierarchy."""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class SandboxError(Exception):
    """Base class for sandbox failures.

    Attributes:
        path: Directory the failing step operated on, when there is one.
        suppressed: An earlier error that was superseded by this one, e.g. the
            callback error when the close that followed it failed as well.
    """

    def __init__(self, message: str, *, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path
        self.suppressed: Optional[BaseException] = None


class SandboxIOError(SandboxError):
    """I/O failure; the underlying platform error is chained as `__cause__`."""


class TempDirCreationError(SandboxIOError):
    """The ephemeral directory could not be created."""


class DirectoryChangeError(SandboxIOError):
    """The working directory could not be read or changed."""


class DirectoryDeletionError(SandboxIOError):
    """The ephemeral directory could not be deleted."""


class SandboxClosedError(SandboxError):
    """The sandbox has already been closed."""
