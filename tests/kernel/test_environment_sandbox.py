"""Tests for EnvironmentSandbox: snapshot and restore of os.environ."""

import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from hermetic.config import settings
from hermetic.infrastructure.storage.temp_dirs import TempDirectoryProvider
from hermetic.kernel.sandbox import (
    DirectoryDeletionError,
    EnvironmentSandbox,
    SandboxClosedError,
    TempDirCreationError,
    get_global_lock,
)


def _env() -> dict:
    # pytest rewrites this one between setup and call phases.
    return {k: v for k, v in os.environ.items() if k != "PYTEST_CURRENT_TEST"}


@pytest.fixture
def base_env(monkeypatch):
    """Start from a known set of variables on top of the real environment."""
    monkeypatch.setenv("HERMETIC_T_A", "1")
    monkeypatch.setenv("HERMETIC_T_B", "2")
    monkeypatch.delenv("HERMETIC_T_C", raising=False)
    return _env()


class TestEnvironmentRestore:
    """Restore algorithm on the real process environment."""

    def test_round_trip_restores_snapshot_exactly(self, base_env):
        sandbox = EnvironmentSandbox()
        del os.environ["HERMETIC_T_A"]
        os.environ["HERMETIC_T_C"] = "3"
        os.environ["HERMETIC_T_B"] = "changed"

        sandbox.close()

        assert _env() == base_env
        assert os.environ["HERMETIC_T_A"] == "1"
        assert os.environ["HERMETIC_T_B"] == "2"
        assert "HERMETIC_T_C" not in os.environ

    def test_preserved_key_keeps_close_time_value(self, base_env):
        sandbox = EnvironmentSandbox()
        sandbox.set_preserved_env("HERMETIC_T_A")
        os.environ["HERMETIC_T_A"] = "2"
        os.environ["HERMETIC_T_NEW"] = "new"

        sandbox.close()

        assert os.environ["HERMETIC_T_A"] == "2"
        assert "HERMETIC_T_NEW" not in os.environ
        expected = dict(base_env, HERMETIC_T_A="2")
        assert _env() == expected

    def test_preserved_key_unset_stays_unset(self, base_env):
        sandbox = EnvironmentSandbox(preserved_env=["HERMETIC_T_A"])
        del os.environ["HERMETIC_T_A"]

        sandbox.close()

        assert "HERMETIC_T_A" not in os.environ
        assert os.environ["HERMETIC_T_B"] == "2"

    def test_preserved_new_key_survives(self, base_env):
        sandbox = EnvironmentSandbox()
        sandbox.set_preserved_env("HERMETIC_T_C")
        os.environ["HERMETIC_T_C"] = "kept"

        sandbox.close()

        assert os.environ["HERMETIC_T_C"] == "kept"

    def test_marking_preserved_does_not_touch_value(self, base_env):
        sandbox = EnvironmentSandbox()
        try:
            sandbox.set_preserved_env("HERMETIC_T_A")
            sandbox.set_preserved_env("HERMETIC_T_C")

            assert os.environ["HERMETIC_T_A"] == "1"
            assert "HERMETIC_T_C" not in os.environ
            assert sandbox.preserved_env_vars == frozenset({"HERMETIC_T_A", "HERMETIC_T_C"})
        finally:
            sandbox.close()

    def test_remove_preserved_restores_again(self, base_env):
        sandbox = EnvironmentSandbox()
        sandbox.set_preserved_env("HERMETIC_T_A")
        os.environ["HERMETIC_T_A"] = "temporary"
        sandbox.remove_preserved_env("HERMETIC_T_A")

        assert os.environ["HERMETIC_T_A"] == "temporary"
        assert "HERMETIC_T_A" not in sandbox.preserved_env_vars

        sandbox.close()

        assert os.environ["HERMETIC_T_A"] == "1"

    def test_remove_unknown_preserved_key_is_noop(self):
        sandbox = EnvironmentSandbox()
        sandbox.remove_preserved_env("HERMETIC_T_NEVER")
        sandbox.close()

    def test_settings_preserved_env_applies(self, base_env, monkeypatch):
        monkeypatch.setattr(settings, "preserved_env", ["HERMETIC_T_B"])

        sandbox = EnvironmentSandbox()
        os.environ["HERMETIC_T_B"] = "from-settings"
        sandbox.close()

        assert sandbox.preserved_env_vars == frozenset({"HERMETIC_T_B"})
        assert os.environ["HERMETIC_T_B"] == "from-settings"

    def test_snapshot_is_read_only_and_stable(self, base_env):
        sandbox = EnvironmentSandbox()
        try:
            os.environ["HERMETIC_T_A"] = "mutated"

            snapshot = sandbox.original_env_vars
            assert snapshot["HERMETIC_T_A"] == "1"
            assert {k: v for k, v in snapshot.items() if k != "PYTEST_CURRENT_TEST"} == base_env
            with pytest.raises(TypeError):
                snapshot["HERMETIC_T_A"] = "x"
        finally:
            sandbox.close()

    def test_context_manager_restores_without_close(self, base_env, isolated_process):
        with EnvironmentSandbox() as sandbox:
            os.environ["HERMETIC_T_C"] = "3"
            assert Path(os.getcwd()).resolve() == sandbox.directory

        assert _env() == base_env
        assert Path(os.getcwd()).resolve() == isolated_process
        assert get_global_lock().locked() is False

    def test_close_also_restores_directory(self, isolated_process):
        sandbox = EnvironmentSandbox()
        directory = sandbox.directory

        sandbox.close()

        assert sandbox.closed is True
        assert sandbox.original_directory == isolated_process
        assert not directory.exists()

    def test_close_twice_raises(self):
        sandbox = EnvironmentSandbox()
        sandbox.close()

        with pytest.raises(SandboxClosedError):
            sandbox.close()


class TestEnvironmentSandboxCollaborators:
    """Restore bookkeeping observed through a recording process state."""

    @pytest.fixture
    def temp_dirs(self, tmp_path):
        provider = MagicMock(spec=TempDirectoryProvider)
        provider.root = tmp_path
        provider.create.return_value = tmp_path / "ephemeral"
        return provider

    def test_restore_phases(self, temp_dirs, recording_process):
        recording_process.env.update({"A": "1", "B": "2"})
        sandbox = EnvironmentSandbox(temp_dirs=temp_dirs, process=recording_process)
        sandbox.set_preserved_env("B")
        recording_process.env["B"] = "kept"
        recording_process.env["C"] = "3"
        del recording_process.env["A"]
        recording_process.calls.clear()

        sandbox.close()

        assert recording_process.env == {"HOME": "/home/test", "A": "1", "B": "kept"}
        removed = [call[1] for call in recording_process.calls if call[0] == "remove_env"]
        assigned = [call[1] for call in recording_process.calls if call[0] == "set_env"]
        assert sorted(removed) == ["C", "HOME"]
        assert sorted(assigned) == ["A", "HOME"]
        # Every removal happens before the first assignment.
        names = [call[0] for call in recording_process.calls if call[0] != "change_directory"]
        assert names == ["remove_env", "remove_env", "set_env", "set_env"]

    def test_failed_inner_close_restores_environment_once(self, temp_dirs, recording_process):
        temp_dirs.remove.side_effect = OSError("busy")
        sandbox = EnvironmentSandbox(temp_dirs=temp_dirs, process=recording_process)
        recording_process.env["EXTRA"] = "x"

        with pytest.raises(DirectoryDeletionError):
            sandbox.close()

        sets_after_close = recording_process.count("set_env")
        recording_process.env["LATE"] = "y"
        sandbox.teardown()

        assert recording_process.count("set_env") == sets_after_close
        assert recording_process.env["LATE"] == "y"
        assert get_global_lock().locked() is False

    def test_close_retry_after_inner_failure_skips_restore(self, temp_dirs, recording_process):
        temp_dirs.remove.side_effect = [OSError("busy"), None]
        sandbox = EnvironmentSandbox(temp_dirs=temp_dirs, process=recording_process)

        with pytest.raises(DirectoryDeletionError):
            sandbox.close()
        assert sandbox.closed is False
        sets_after_first_close = recording_process.count("set_env")

        sandbox.close()

        assert sandbox.closed is True
        assert recording_process.count("set_env") == sets_after_first_close
        assert temp_dirs.remove.call_count == 2
        assert get_global_lock().locked() is False

    def test_teardown_after_close_is_noop(self, temp_dirs, recording_process):
        sandbox = EnvironmentSandbox(temp_dirs=temp_dirs, process=recording_process)
        sandbox.close()
        calls = list(recording_process.calls)

        sandbox.teardown()

        assert recording_process.calls == calls
        temp_dirs.remove.assert_called_once()

    def test_inner_construction_failure_releases_lock(self, temp_dirs, recording_process):
        temp_dirs.create.side_effect = OSError("read-only")

        with pytest.raises(TempDirCreationError):
            EnvironmentSandbox(temp_dirs=temp_dirs, process=recording_process)

        assert get_global_lock().locked() is False
        assert recording_process.calls == []


class TestEnvironmentSandboxAsync:

    @pytest.mark.asyncio
    async def test_open_async_restores(self, base_env):
        sandbox = await EnvironmentSandbox.open_async(preserved_env=["HERMETIC_T_B"])
        os.environ["HERMETIC_T_B"] = "async"
        os.environ["HERMETIC_T_C"] = "gone"
        sandbox.close()

        assert os.environ["HERMETIC_T_B"] == "async"
        assert "HERMETIC_T_C" not in os.environ

    @pytest.mark.asyncio
    async def test_open_async_bad_arguments_release_lock(self):
        with pytest.raises(TypeError):
            await EnvironmentSandbox.open_async(lock_token=None)
        with pytest.raises(TypeError):
            await EnvironmentSandbox.open_async(unknown_option=True)

        assert get_global_lock().locked() is False
