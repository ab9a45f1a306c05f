"""Path guardrails for ephemeral sandbox directories."""

from __future__ import annotations

import os
from pathlib import Path


class InvalidSandboxPathError(ValueError):
    """Raised when a path is empty or escapes the configured temp root."""


def normalize_path(path: str | Path) -> Path:
    raw = str(path or "").strip()
    if not raw:
        raise InvalidSandboxPathError("path is required")
    expanded = os.path.expandvars(os.path.expanduser(raw))
    return Path(expanded).resolve(strict=False)


def ensure_within_root(root: str | Path, path: str | Path) -> Path:
    """Ensure `path` is under `root` (inclusive)."""
    root_path = normalize_path(root)
    candidate = normalize_path(path)

    try:
        common = os.path.commonpath([str(root_path), str(candidate)])
    except ValueError as exc:
        raise InvalidSandboxPathError(str(exc)) from exc

    if common != str(root_path):
        raise InvalidSandboxPathError(f"path escapes root: {candidate}")
    return candidate


def ensure_strictly_within_root(root: str | Path, path: str | Path) -> Path:
    """Like `ensure_within_root`, but the root itself is rejected."""
    candidate = ensure_within_root(root, path)
    if candidate == normalize_path(root):
        raise InvalidSandboxPathError(f"path is the root itself: {candidate}")
    return candidate
