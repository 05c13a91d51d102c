"""Foreground lock: mutating UI actions only hit the verified-frontmost app."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from daemonAgent.control.drivers import AppIdentity, ForegroundMonitor
from daemonAgent.utils.error_handler import ForegroundLockFailed

LOGGER = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


class ForegroundLock:
    """Verify, re-activate once, re-verify; otherwise refuse to act."""

    def __init__(self, monitor: ForegroundMonitor, settle_seconds: float = 0.3, sleep: Sleeper = asyncio.sleep):
        self.monitor = monitor
        self.settle_seconds = settle_seconds
        self._sleep = sleep

    async def ensure(self, target: AppIdentity) -> None:
        front = await self.monitor.frontmost()
        if target.matches(front):
            return

        LOGGER.warning(
            "Foreground mismatch: expected %s, frontmost is %s. Re-activating.",
            target.name,
            front.name if front else "nothing",
        )
        await self.monitor.activate(target)
        await self._sleep(self.settle_seconds)

        front = await self.monitor.frontmost()
        if target.matches(front):
            LOGGER.info("Re-activated %s", target.name)
            return

        actual = front.name if front else "nothing"
        raise ForegroundLockFailed(
            f"Foreground lock failed: expected {target.name}, frontmost is {actual}",
            user_message=(
                f"{target.name} is not the frontmost app ({actual} is), so the action was not performed. "
                f"Bring {target.name} to the front or choose another approach."
            ),
        )
