"""hermetic - scoped working-directory and environment sandboxes.

A sandbox moves the process into a throwaway directory and snapshots the
environment; closing it (or leaving its `with` block) puts both back:
- Only one sandbox is open per process at a time
- Explicit `close()` reports cleanup failures, implicit teardown swallows them
- Environment names marked preserved keep their close-time value
"""

__version__ = "0.1.0"

from hermetic.kernel.sandbox import (
    DirectorySandbox,
    EnvironmentSandbox,
    SandboxError,
    run_in_sandbox,
    run_in_sandbox_async,
    sandboxed,
)

__all__ = [
    "DirectorySandbox",
    "EnvironmentSandbox",
    "SandboxError",
    "run_in_sandbox",
    "run_in_sandbox_async",
    "sandboxed",
]
