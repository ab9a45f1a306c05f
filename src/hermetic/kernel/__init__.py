"""Kernel layer - the scoped state-restoration core."""

from .sandbox import DirectorySandbox, EnvironmentSandbox, run_in_sandbox, run_in_sandbox_async

__all__ = ["DirectorySandbox", "EnvironmentSandbox", "run_in_sandbox", "run_in_sandbox_async"]
