"""Scoped runner - open a sandbox, run a callback in it, make sure it is closed.

Outcome of `run_in_sandbox`:

| callback | close  | result                                          |
|----------|--------|-------------------------------------------------|
| ok       | ok     | callback's return value                         |
| ok       | raises | close error                                     |
| raises   | ok     | callback error                                  |
| raises   | raises | close error, callback error on `.suppressed`    |

A callback may close the sandbox itself; the runner then skips its own close.

The async variant keeps the sandbox (and therefore the process-wide lock)
for the full duration of the awaited callback, so every other task that
needs a sandbox waits behind it.
"""

from __future__ import annotations

import functools
import inspect
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from hermetic.infrastructure.logging_setup import get_logger
from hermetic.kernel.sandbox.directory_sandbox import DirectorySandbox
from hermetic.kernel.sandbox.environment_sandbox import EnvironmentSandbox
from hermetic.kernel.sandbox.errors import SandboxError


logger = get_logger()

T = TypeVar("T")
Sandbox = Union[DirectorySandbox, EnvironmentSandbox]
SandboxFactory = Union[type[DirectorySandbox], type[EnvironmentSandbox]]


def _close_after_callback_error(sandbox: Sandbox, callback_error: BaseException) -> None:
    if sandbox.closed:
        return
    try:
        sandbox.close()
    except SandboxError as close_error:
        close_error.suppressed = callback_error
        logger.warning(
            "sandbox_close_failed_after_callback_error",
            close_error=str(close_error),
            callback_error=repr(callback_error),
        )
        raise


def run_in_sandbox(
    callback: Callable[[Sandbox], T],
    *,
    sandbox_factory: SandboxFactory = EnvironmentSandbox,
    **sandbox_kwargs: Any,
) -> T:
    """Run `callback(sandbox)` inside a freshly opened sandbox.

    Args:
        callback: Receives the open sandbox.
        sandbox_factory: `EnvironmentSandbox` (default) or `DirectorySandbox`.
        **sandbox_kwargs: Forwarded to the sandbox constructor.

    Returns:
        Whatever `callback` returns.

    Raises:
        SandboxError: if opening or closing the sandbox fails.
        Exception: whatever `callback` raises, when close succeeds.
    """
    sandbox = sandbox_factory(**sandbox_kwargs)
    with sandbox:
        try:
            result = callback(sandbox)
        except BaseException as exc:
            _close_after_callback_error(sandbox, exc)
            raise
        if not sandbox.closed:
            sandbox.close()
        return result


async def run_in_sandbox_async(
    callback: Callable[[Sandbox], Awaitable[T]],
    *,
    sandbox_factory: SandboxFactory = EnvironmentSandbox,
    **sandbox_kwargs: Any,
) -> T:
    """Async counterpart of `run_in_sandbox`.

    The lock is acquired without blocking the event loop and is held across
    every suspension point of `callback`.
    """
    sandbox = await sandbox_factory.open_async(**sandbox_kwargs)
    with sandbox:
        try:
            result = await callback(sandbox)
        except BaseException as exc:
            _close_after_callback_error(sandbox, exc)
            raise
        if not sandbox.closed:
            sandbox.close()
        return result


def sandboxed(
    func: Optional[Callable[..., Any]] = None,
    *,
    sandbox_factory: SandboxFactory = EnvironmentSandbox,
    **sandbox_kwargs: Any,
) -> Any:
    """Decorator running each call of `func` inside its own sandbox.

    Works for plain and `async def` functions, with or without arguments:

        @sandboxed
        def build(): ...

        @sandboxed(preserved_env=["CI"])
        async def fetch(): ...
    """

    def decorate(target: Callable[..., Any]) -> Callable[..., Any]:
        if inspect.iscoroutinefunction(target):

            @functools.wraps(target)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                return await run_in_sandbox_async(
                    lambda _sandbox: target(*args, **kwargs),
                    sandbox_factory=sandbox_factory,
                    **sandbox_kwargs,
                )

            return async_wrapper

        @functools.wraps(target)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return run_in_sandbox(
                lambda _sandbox: target(*args, **kwargs),
                sandbox_factory=sandbox_factory,
                **sandbox_kwargs,
            )

        return wrapper

    if func is not None:
        return decorate(func)
    return decorate
