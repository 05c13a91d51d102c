"""Cancellation token and kill switch.

The token is process-wide and thread-safe: the kill switch may fire from a
UI thread or a signal handler while the turn loop runs on an event loop.
Every suspension point of the loop goes through ``CancellationToken.race``.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Awaitable, List, Optional, Tuple, TypeVar

from daemonAgent.utils.error_handler import Cancelled

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def _resolve(future: asyncio.Future) -> None:
    if not future.done():
        future.set_result(None)


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._waiters: List[Tuple[asyncio.AbstractEventLoop, asyncio.Future]] = []

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    def set(self) -> bool:
        """Set the token. Returns False when it was already set."""
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            waiters, self._waiters = self._waiters, []
        for loop, future in waiters:
            try:
                loop.call_soon_threadsafe(_resolve, future)
            except RuntimeError:
                LOGGER.debug("Cancellation waiter's loop is closed")
        return True

    def reset(self) -> None:
        """Clear the token before a new turn starts."""
        with self._lock:
            self._event.clear()

    def raise_if_set(self) -> None:
        if self._event.is_set():
            raise Cancelled()

    async def wait(self) -> None:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        with self._lock:
            if self._event.is_set():
                return
            self._waiters.append((loop, future))
        try:
            await future
        finally:
            with self._lock:
                if (loop, future) in self._waiters:
                    self._waiters.remove((loop, future))

    async def race(self, awaitable: Awaitable[T], grace: float = 0.5) -> T:
        """Await ``awaitable`` unless the token fires first.

        On cancellation the in-flight work is cancelled and given ``grace``
        seconds to unwind, then ``Cancelled`` is raised.
        """
        if self._event.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise Cancelled()

        task = asyncio.ensure_future(awaitable)
        watcher = asyncio.ensure_future(self.wait())
        try:
            await asyncio.wait({task, watcher}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            watcher.cancel()
            raise

        if task.done():
            watcher.cancel()
            return task.result()

        task.cancel()
        await asyncio.wait({task}, timeout=grace)
        if not task.done():
            LOGGER.warning("In-flight work did not stop within %.2fs of cancellation", grace)
        elif not task.cancelled() and task.exception() is not None:
            LOGGER.debug("Cancelled work ended with %r", task.exception())
        raise Cancelled()


class KillSwitch:
    """Single process-wide trigger for the cancellation token."""

    def __init__(self, token: Optional[CancellationToken] = None):
        self.token = token or CancellationToken()

    def trigger(self) -> None:
        if self.token.set():
            LOGGER.warning("Kill switch triggered")

    @property
    def triggered(self) -> bool:
        return self.token.is_set
