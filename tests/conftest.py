"""Shared fixtures: keep the real working directory and environment intact."""

import gc
import os
from pathlib import Path
from typing import Optional

import pytest

from hermetic.config import settings
from hermetic.infrastructure.process_state import ProcessState
from hermetic.kernel.sandbox import get_global_lock


class RecordingProcessState(ProcessState):
    """In-memory process state that records every mutation."""

    def __init__(self, cwd: Path, env: Optional[dict] = None):
        self.cwd = cwd
        self.env = dict(env or {})
        self.calls: list[tuple] = []
        self.fail_change_directory = False

    def current_directory(self) -> Path:
        return self.cwd

    def change_directory(self, path: Path) -> None:
        self.calls.append(("change_directory", Path(path)))
        if self.fail_change_directory:
            raise PermissionError(f"denied: {path}")
        self.cwd = Path(path)

    def environment(self) -> dict:
        return dict(self.env)

    def get_env(self, key):
        return self.env.get(key)

    def set_env(self, key, value):
        self.calls.append(("set_env", key, value))
        self.env[key] = value

    def remove_env(self, key):
        self.calls.append(("remove_env", key))
        self.env.pop(key, None)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


@pytest.fixture(autouse=True)
def isolated_process(tmp_path, monkeypatch):
    """Run each test from tmp_path with sandboxes created under it."""
    sandbox_root = tmp_path / "sandboxes"
    sandbox_root.mkdir()
    workdir = tmp_path / "work"
    workdir.mkdir()

    monkeypatch.setattr(settings, "temp_root", sandbox_root.resolve())
    monkeypatch.setattr(settings, "preserved_env", [])
    monkeypatch.chdir(workdir)
    saved_env = dict(os.environ)

    yield workdir.resolve()

    gc.collect()
    lock_leaked = get_global_lock().locked()
    os.environ.clear()
    os.environ.update(saved_env)
    assert not lock_leaked, "a test left the sandbox lock held"


@pytest.fixture
def sandbox_root(isolated_process) -> Path:
    return settings.temp_root


@pytest.fixture
def recording_process(tmp_path):
    return RecordingProcessState(cwd=tmp_path / "work", env={"HOME": "/home/test"})
