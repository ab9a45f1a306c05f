"""Directory sandbox - run inside a throwaway working directory.

Opening a sandbox takes the process-wide lock, creates an ephemeral directory
and changes the working directory into it. Closing changes back and deletes
the directory. There are two ways to close:

- `close()` surfaces the first failure and stops there. If the working
  directory cannot be restored the ephemeral directory is left on disk for
  inspection and the sandbox stays open.
- implicit teardown (`__exit__`, or `__del__` when the last reference goes
  away) performs the same steps best-effort and never raises.

Usage:
    with DirectorySandbox() as sandbox:
        Path("out.txt").write_text("scratch")
        sandbox.close()
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from hermetic.config import settings
from hermetic.infrastructure.logging_setup import get_logger
from hermetic.infrastructure.process_state import ProcessState, get_process_state
from hermetic.infrastructure.storage.path_guard import InvalidSandboxPathError
from hermetic.infrastructure.storage.temp_dirs import TempDirectoryProvider
from hermetic.kernel.sandbox.errors import (
    DirectoryChangeError,
    DirectoryDeletionError,
    SandboxClosedError,
    TempDirCreationError,
)
from hermetic.kernel.sandbox.global_lock import LockToken, get_global_lock


logger = get_logger()


class DirectorySandbox:
    """Swap the process working directory into an ephemeral directory.

    The lock token is held for the whole lifetime of the instance and is
    released by a successful `close()` or by teardown.
    """

    def __init__(
        self,
        *,
        temp_dirs: Optional[TempDirectoryProvider] = None,
        process: Optional[ProcessState] = None,
        lock_token: Optional[LockToken] = None,
    ):
        """Open the sandbox, blocking until no other sandbox is open.

        Args:
            temp_dirs: Ephemeral directory provider, defaults to one built
                from settings.
            process: Working-directory collaborator.
            lock_token: An already acquired token; ownership passes to this
                sandbox, including on construction failure.

        Raises:
            TempDirCreationError: if the ephemeral directory cannot be created.
            DirectoryChangeError: if the working directory cannot be read or
                changed. The ephemeral directory is removed first.
        """
        # Teardown may run on a half-built instance; start out closed.
        self._closed = True
        self._directory: Optional[Path] = None

        token = lock_token if lock_token is not None else get_global_lock().acquire()
        try:
            self._temp_dirs = temp_dirs or settings.temp_directory_provider()
            self._process = process or get_process_state()
            self._directory, self._original_directory = self._enter()
        except BaseException:
            token.release()
            raise

        self._lock_token = token
        self._closed = False
        logger.debug(
            "sandbox_opened",
            directory=str(self._directory),
            original_directory=str(self._original_directory),
        )

    @classmethod
    async def open_async(cls, **kwargs: Any) -> "DirectorySandbox":
        """Open a sandbox, suspending the current task while the lock is busy."""
        token = await get_global_lock().acquire_async()
        try:
            return cls(lock_token=token, **kwargs)
        except BaseException:
            # Covers argument errors raised before __init__ takes ownership.
            token.release()
            raise

    def _enter(self) -> tuple[Path, Path]:
        try:
            directory = self._temp_dirs.create()
        except OSError as exc:
            raise TempDirCreationError(
                f"could not create sandbox directory under {self._temp_dirs.root}: {exc}",
                path=self._temp_dirs.root,
            ) from exc

        try:
            original = self._process.current_directory()
            self._process.change_directory(directory)
        except OSError as exc:
            self._discard_directory(directory)
            raise DirectoryChangeError(
                f"could not change into sandbox directory {directory}: {exc}",
                path=directory,
            ) from exc
        return directory, original

    def _discard_directory(self, directory: Path) -> None:
        try:
            self._temp_dirs.remove(directory)
        except (OSError, InvalidSandboxPathError) as exc:
            logger.warning(
                "sandbox_directory_rollback_failed",
                directory=str(directory),
                error=str(exc),
            )

    @property
    def directory(self) -> Path:
        """Canonical path of the ephemeral directory."""
        if self._directory is None:
            raise SandboxClosedError("sandbox directory has been removed")
        return self._directory

    @property
    def original_directory(self) -> Path:
        """Working directory at the moment the sandbox was opened."""
        return self._original_directory

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Restore the working directory and delete the ephemeral directory.

        Raises:
            SandboxClosedError: if the sandbox is already closed.
            DirectoryChangeError: if the original directory cannot be
                restored. Nothing is deleted and the sandbox stays open.
            DirectoryDeletionError: if the ephemeral directory cannot be
                deleted.
        """
        if self._closed:
            raise SandboxClosedError("sandbox is already closed")

        try:
            self._process.change_directory(self._original_directory)
        except OSError as exc:
            raise DirectoryChangeError(
                f"could not restore working directory {self._original_directory}: {exc}",
                path=self._original_directory,
            ) from exc

        directory = self._directory
        if directory is not None:
            try:
                self._temp_dirs.remove(directory)
            except (OSError, InvalidSandboxPathError) as exc:
                raise DirectoryDeletionError(
                    f"could not delete sandbox directory {directory}: {exc}",
                    path=directory,
                ) from exc
            self._directory = None

        self._closed = True
        self._lock_token.release()
        logger.debug("sandbox_closed", original_directory=str(self._original_directory))

    def teardown(self) -> None:
        """Best-effort close that never raises. No-op once closed."""
        if self._closed:
            return
        self._closed = True
        try:
            self._best_effort_restore()
        finally:
            self._lock_token.release()

    def _best_effort_restore(self) -> None:
        try:
            self._process.change_directory(self._original_directory)
        except Exception as exc:
            # Leave the directory behind, the process may still be inside it.
            logger.warning(
                "sandbox_teardown_failed",
                step="change_directory",
                directory=str(self._directory),
                error=str(exc),
            )
            return

        directory = self._directory
        if directory is None:
            return
        try:
            self._temp_dirs.remove(directory)
        except Exception as exc:
            logger.warning(
                "sandbox_teardown_failed",
                step="remove_directory",
                directory=str(directory),
                error=str(exc),
            )
            return
        self._directory = None

    def __enter__(self) -> "DirectorySandbox":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.teardown()

    def __del__(self) -> None:
        try:
            self.teardown()
        except Exception:
            pass

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<DirectorySandbox {state} directory={self._directory}>"
