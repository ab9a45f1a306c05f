"""Environment sandbox - a directory sandbox that also restores `os.environ`.

The full environment table is snapshotted once, right after the process-wide
lock is taken. Closing the sandbox brings every variable back to the snapshot
except the names marked preserved, which keep whatever value they hold at
close time (or stay unset, if unset).

Restoration rewrites the process-global environment. Threads that read
environment variables without going through a sandbox can observe a
half-restored table while it runs; the sandbox lock only orders sandboxes
against each other.
"""

from __future__ import annotations

from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

from hermetic.config import settings
from hermetic.infrastructure.logging_setup import get_logger
from hermetic.infrastructure.process_state import ProcessState, get_process_state
from hermetic.infrastructure.storage.temp_dirs import TempDirectoryProvider
from hermetic.kernel.sandbox.directory_sandbox import DirectorySandbox
from hermetic.kernel.sandbox.errors import SandboxClosedError
from hermetic.kernel.sandbox.global_lock import LockToken, get_global_lock


logger = get_logger()


class EnvironmentSandbox:
    """Working-directory and environment sandbox.

    Usage:
        with EnvironmentSandbox() as sandbox:
            sandbox.set_preserved_env("COVERAGE_FILE")
            os.environ["COVERAGE_FILE"] = "kept-after-close"
            os.environ["SCRATCH"] = "dropped-after-close"
            sandbox.close()
    """

    def __init__(
        self,
        *,
        preserved_env: Iterable[str] = (),
        temp_dirs: Optional[TempDirectoryProvider] = None,
        process: Optional[ProcessState] = None,
        lock_token: Optional[LockToken] = None,
    ):
        """Open the sandbox, blocking until no other sandbox is open.

        Args:
            preserved_env: Names exempt from restoration from the start, in
                addition to `settings.preserved_env`.
            temp_dirs: Ephemeral directory provider for the inner sandbox.
            process: Working-directory and environment collaborator.
            lock_token: An already acquired token; ownership passes to this
                sandbox.

        Raises:
            TempDirCreationError, DirectoryChangeError: from the inner
                directory sandbox.
        """
        self._consumed = True

        token = lock_token if lock_token is not None else get_global_lock().acquire()
        try:
            self._process = process or get_process_state()
            self._original_env: Mapping[str, str] = MappingProxyType(
                self._process.environment()
            )
            self._preserved_keys: set[str] = set(settings.preserved_env)
            self._preserved_keys.update(preserved_env)
        except BaseException:
            token.release()
            raise

        # The inner sandbox owns the token from here on, failure included.
        self._directory_sandbox = DirectorySandbox(
            temp_dirs=temp_dirs,
            process=self._process,
            lock_token=token,
        )
        self._consumed = False
        logger.debug(
            "environment_snapshot_taken",
            variables=len(self._original_env),
            preserved=sorted(self._preserved_keys),
        )

    @classmethod
    async def open_async(cls, **kwargs: Any) -> "EnvironmentSandbox":
        """Open a sandbox, suspending the current task while the lock is busy."""
        token = await get_global_lock().acquire_async()
        try:
            return cls(lock_token=token, **kwargs)
        except BaseException:
            # Covers argument errors raised before __init__ takes ownership.
            token.release()
            raise

    @property
    def directory(self) -> Path:
        return self._directory_sandbox.directory

    @property
    def original_directory(self) -> Path:
        return self._directory_sandbox.original_directory

    @property
    def original_env_vars(self) -> Mapping[str, str]:
        """Read-only snapshot of the environment taken at construction."""
        return self._original_env

    @property
    def preserved_env_vars(self) -> frozenset[str]:
        return frozenset(self._preserved_keys)

    @property
    def closed(self) -> bool:
        return self._consumed and self._directory_sandbox.closed

    def set_preserved_env(self, key: str) -> None:
        """Exempt `key` from restoration. The current value is untouched."""
        self._preserved_keys.add(key)

    def remove_preserved_env(self, key: str) -> None:
        """Subject `key` to restoration again. The current value is untouched."""
        self._preserved_keys.discard(key)

    def close(self) -> None:
        """Restore the environment, then close the directory sandbox.

        The environment is restored once, even if closing the directory
        sandbox fails; a second `close()` or teardown then only retries the
        directory steps.

        Raises:
            SandboxClosedError: if the sandbox was already closed.
            DirectoryChangeError, DirectoryDeletionError: from the inner
                directory sandbox.
        """
        if self.closed:
            raise SandboxClosedError("sandbox is already closed")
        if not self._consumed:
            self._consumed = True
            self._restore_environment()
        self._directory_sandbox.close()

    def _restore_environment(self) -> None:
        preserved = set(self._preserved_keys)
        removed = 0
        for key in list(self._process.environment()):
            if key not in preserved:
                self._process.remove_env(key)
                removed += 1
        for key, value in self._original_env.items():
            if key not in preserved:
                self._process.set_env(key, value)
        logger.debug(
            "environment_restored",
            removed=removed,
            restored=len(self._original_env),
            preserved=sorted(preserved),
        )

    def teardown(self) -> None:
        """Best-effort close that never raises."""
        if not self._consumed:
            self._consumed = True
            try:
                self._restore_environment()
            except Exception as exc:
                logger.warning(
                    "sandbox_teardown_failed",
                    step="restore_environment",
                    error=str(exc),
                )
        sandbox = getattr(self, "_directory_sandbox", None)
        if sandbox is not None:
            sandbox.teardown()

    def __enter__(self) -> "EnvironmentSandbox":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.teardown()

    def __del__(self) -> None:
        try:
            self.teardown()
        except Exception:
            pass

    def __repr__(self) -> str:
        state = "closed" if self._consumed else "open"
        preserved = sorted(getattr(self, "_preserved_keys", ()))
        return f"<EnvironmentSandbox {state} preserved={preserved}>"
