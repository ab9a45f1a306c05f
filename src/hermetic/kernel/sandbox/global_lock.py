"""Process-wide lock serialising sandbox lifetimes.

Only one sandbox may be open per process because every sandbox rewrites the
working directory and the environment table. The lock is a plain
`threading.Lock`: it is not reentrant (a holder that opens a second sandbox
deadlocks) and it can be released from a thread other than the acquiring one,
so a sandbox may be closed on a different thread from the one that opened it.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Optional

from hermetic.infrastructure.logging_setup import get_logger


logger = get_logger()


class LockToken:
    """Proof of sole ownership of a `GlobalLock`.

    `release()` is idempotent, so both an explicit close and a later teardown
    may call it.
    """

    __slots__ = ("_lock", "_released", "_guard")

    def __init__(self, lock: "GlobalLock"):
        self._lock = lock
        self._released = False
        self._guard = threading.Lock()

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        with self._guard:
            if self._released:
                return
            self._released = True
        self._lock._release()

    def __repr__(self) -> str:
        state = "released" if self._released else "held"
        return f"<LockToken {state}>"


class GlobalLock:
    """Mutual exclusion token source for sandbox instances.

    Threads wait inside `threading.Lock.acquire`. Tasks never occupy a thread
    while waiting: each parks a future on its own loop, and every release
    wakes all parked futures so their tasks retry a non-blocking acquire.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._waiters_guard = threading.Lock()
        self._waiters: list[tuple[asyncio.AbstractEventLoop, "asyncio.Future[None]"]] = []

    def locked(self) -> bool:
        return self._lock.locked()

    def acquire(self) -> LockToken:
        """Block the calling thread until the lock is free."""
        if self._lock.locked():
            logger.debug("sandbox_lock_waiting")
        self._lock.acquire()
        return LockToken(self)

    async def acquire_async(self) -> LockToken:
        """Suspend the calling task until the lock is free.

        Cancelling the task while it waits leaves the lock untouched.
        """
        loop = asyncio.get_running_loop()
        waited = False
        while not self._lock.acquire(blocking=False):
            if not waited:
                logger.debug("sandbox_lock_waiting", mode="async")
                waited = True
            entry = (loop, loop.create_future())
            with self._waiters_guard:
                self._waiters.append(entry)
            try:
                # A release between the failed attempt and registration woke nobody.
                if self._lock.acquire(blocking=False):
                    break
                await entry[1]
            finally:
                self._discard_waiter(entry)
        return LockToken(self)

    def _discard_waiter(self, entry: tuple[asyncio.AbstractEventLoop, "asyncio.Future[None]"]) -> None:
        with self._waiters_guard:
            if entry in self._waiters:
                self._waiters.remove(entry)

    def _release(self) -> None:
        self._lock.release()
        with self._waiters_guard:
            waiters, self._waiters = self._waiters, []
        for loop, waiter in waiters:
            try:
                loop.call_soon_threadsafe(_wake, waiter)
            except RuntimeError:
                logger.debug("sandbox_lock_waiter_loop_closed")


def _wake(waiter: "asyncio.Future[None]") -> None:
    if not waiter.done():
        waiter.set_result(None)


_global_lock: Optional[GlobalLock] = None
_global_lock_init = threading.Lock()


def get_global_lock() -> GlobalLock:
    """Return the process-wide `GlobalLock`, creating it on first use."""
    global _global_lock
    if _global_lock is None:
        with _global_lock_init:
            if _global_lock is None:
                _global_lock = GlobalLock()
    return _global_lock
