"""Storage infrastructure for sandboxes.

Provides ephemeral directory provisioning and path containment guards.
"""

from .path_guard import (
    InvalidSandboxPathError,
    ensure_strictly_within_root,
    ensure_within_root,
    normalize_path,
)
from .temp_dirs import DEFAULT_PREFIX, TempDirectoryProvider

__all__ = [
    # Path guard
    "InvalidSandboxPathError",
    "ensure_strictly_within_root",
    "ensure_within_root",
    "normalize_path",
    # Temp directories
    "DEFAULT_PREFIX",
    "TempDirectoryProvider",
]
