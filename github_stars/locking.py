"""Mutual exclusion for externally triggered operations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .errors import ErrorCode, SyncFailure
from .results import Ok, Result, failure

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class OperationLock:
    """Non-reentrant advisory lock for a single event loop.

    A second caller is rejected with ``Locked`` instead of being queued. With
    a ``timeout`` the caller waits at most that long for the holder to finish;
    the timeout never interrupts the holder.
    """

    def __init__(self) -> None:
        self._held = False
        self._released = asyncio.Event()
        self._released.set()

    @property
    def locked(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        if self._held:
            return False
        self._held = True
        self._released.clear()
        return True

    async def acquire(self, timeout: float | None = None) -> Result[None, SyncFailure]:
        if self.try_acquire():
            return Ok(None)
        if not timeout:
            return failure(ErrorCode.LOCKED)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not self.try_acquire():
            remaining = deadline - loop.time()
            if remaining <= 0:
                return failure(ErrorCode.LOCKED, f"gave up after {timeout:.1f}s")
            try:
                await asyncio.wait_for(self._released.wait(), remaining)
            except asyncio.TimeoutError:
                return failure(ErrorCode.LOCKED, f"gave up after {timeout:.1f}s")
        return Ok(None)

    def release(self) -> None:
        if not self._held:
            raise RuntimeError("Cannot release an unlocked OperationLock")
        self._held = False
        self._released.set()

    async def run(
        self,
        operation: Callable[[], Awaitable[Result[T, SyncFailure]]],
        timeout: float | None = None,
    ) -> Result[T, SyncFailure]:
        """Run ``operation`` while holding the lock, or return ``Err(Locked)``."""

        acquired = await self.acquire(timeout)
        if acquired.is_err():
            LOGGER.warning("Operation rejected: %s", acquired.error)
            return acquired
        try:
            return await operation()
        finally:
            self.release()


__all__ = ["OperationLock"]
