"""Kernel Sandbox - hermetic scopes for the working directory and environment.

One sandbox may be open per process at a time; opening a second one blocks
(or suspends, in async code) until the first is closed or torn down.
"""

from hermetic.kernel.sandbox.directory_sandbox import DirectorySandbox
from hermetic.kernel.sandbox.environment_sandbox import EnvironmentSandbox
from hermetic.kernel.sandbox.errors import (
    DirectoryChangeError,
    DirectoryDeletionError,
    SandboxClosedError,
    SandboxError,
    SandboxIOError,
    TempDirCreationError,
)
from hermetic.kernel.sandbox.global_lock import GlobalLock, LockToken, get_global_lock
from hermetic.kernel.sandbox.sandbox_runner import (
    run_in_sandbox,
    run_in_sandbox_async,
    sandboxed,
)

__all__ = [
    "DirectorySandbox",
    "EnvironmentSandbox",
    "GlobalLock",
    "LockToken",
    "get_global_lock",
    "run_in_sandbox",
    "run_in_sandbox_async",
    "sandboxed",
    "SandboxError",
    "SandboxIOError",
    "TempDirCreationError",
    "DirectoryChangeError",
    "DirectoryDeletionError",
    "SandboxClosedError",
]
