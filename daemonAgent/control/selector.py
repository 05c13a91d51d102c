"""Control-path selection for UI-interaction tool calls."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Sequence, Set, Tuple

from daemonAgent.control.drivers import (
    AccessibilityDriver,
    AppIdentity,
    ForegroundMonitor,
    KeyboardDriver,
    PointerDriver,
    ScreenCapturer,
    VisionLocator,
)
from daemonAgent.control.foreground import ForegroundLock
from daemonAgent.control.intent import IntentKind, UiIntent
from daemonAgent.control.strategies import (
    AccessibilityStrategy,
    ControlStrategy,
    FailureReason,
    ShortcutStrategy,
    StrategyAttempt,
    StrategyFailure,
    VisionStrategy,
)
from daemonAgent.models.enums import ControlPath
from daemonAgent.utils.error_handler import ForegroundLockFailed

if TYPE_CHECKING:
    from daemonAgent.config.settings import ControlSettings

LOGGER = logging.getLogger(__name__)


@dataclass
class ControlPathMemory:
    """What the selector learned during the current Turn."""

    target_app: Optional[AppIdentity] = None
    no_tree: Set[Tuple[str, str]] = field(default_factory=set)

    def _key(self, app: AppIdentity, element_class: str) -> Tuple[str, str]:
        return (app.bundle_id or app.name.casefold(), element_class)

    def mark_no_tree(self, app: AppIdentity, element_class: str) -> None:
        self.no_tree.add(self._key(app, element_class))

    def has_no_tree(self, app: AppIdentity, element_class: str) -> bool:
        return self._key(app, element_class) in self.no_tree


@dataclass(frozen=True)
class ControlPathResult:
    success: bool
    strategy: Optional[ControlPath]
    attempts: Tuple[StrategyAttempt, ...]
    message: str
    target_app: Optional[AppIdentity] = None

    @property
    def failure_reasons(self) -> List[str]:
        return [attempt.describe() for attempt in self.attempts if not attempt.success]


class ControlPathSelector:
    """Try strategies front to back and report which one worked.

    Accessibility is skipped when this Turn already showed the app has no
    usable tree for the element class. Every mutating strategy action goes
    through the foreground lock; a lock failure aborts the selection.
    """

    def __init__(self, strategies: Sequence[ControlStrategy], monitor: ForegroundMonitor, lock: Optional[ForegroundLock] = None):
        paths = [strategy.path for strategy in strategies]
        if paths and paths[0] is ControlPath.VISION:
            raise ValueError("Vision cannot be the first control path")
        self.strategies = tuple(strategies)
        self.monitor = monitor
        self.lock = lock or ForegroundLock(monitor)

    async def resolve_target(self, intent: UiIntent, memory: ControlPathMemory) -> AppIdentity:
        if intent.app:
            if memory.target_app and memory.target_app.name.casefold() == intent.app.casefold():
                return memory.target_app
            app = await self.monitor.lookup(intent.app)
            if app is None:
                raise ForegroundLockFailed(
                    f"App not running: {intent.app}",
                    user_message=f"{intent.app} is not running. Open it first with app_open.",
                )
            return app
        if memory.target_app is not None:
            return memory.target_app
        front = await self.monitor.frontmost()
        if front is None:
            raise ForegroundLockFailed("No frontmost application", user_message="No application is in the foreground.")
        return front

    async def ensure_foreground(self, memory: ControlPathMemory) -> AppIdentity:
        """Foreground lock for direct pointer and keyboard tools."""
        if memory.target_app is None:
            memory.target_app = await self.resolve_target(UiIntent(kind=IntentKind.CLICK, tool="direct"), memory)
        await self.lock.ensure(memory.target_app)
        return memory.target_app

    async def perform(self, intent: UiIntent, memory: ControlPathMemory) -> ControlPathResult:
        target = await self.resolve_target(intent, memory)
        if memory.target_app is None or intent.app or not intent.mutating:
            memory.target_app = target

        async def guard() -> None:
            if intent.mutating:
                await self.lock.ensure(target)

        attempts: List[StrategyAttempt] = []
        for strategy in self.strategies:
            if strategy.path is ControlPath.ACCESSIBILITY and memory.has_no_tree(target, intent.element_class):
                attempts.append(
                    StrategyAttempt(strategy.path, False, FailureReason.NO_ACCESSIBILITY_TREE, "skipped: no usable tree this turn")
                )
                continue
            if not strategy.applicable(intent, target):
                attempts.append(StrategyAttempt(strategy.path, False, FailureReason.NOT_APPLICABLE, "not applicable"))
                continue

            try:
                message = await strategy.attempt(intent, target, guard)
            except StrategyFailure as failure:
                LOGGER.info("%s path failed for %s: %s", strategy.path.value, intent.tool, failure.detail)
                attempts.append(StrategyAttempt(strategy.path, False, failure.reason, failure.detail))
                if failure.reason is FailureReason.NO_ACCESSIBILITY_TREE:
                    memory.mark_no_tree(target, intent.element_class)
                continue

            attempts.append(StrategyAttempt(strategy.path, True))
            LOGGER.info("%s succeeded via %s", intent.tool, strategy.path.value)
            return ControlPathResult(True, strategy.path, tuple(attempts), message, target)

        reasons = "; ".join(attempt.describe() for attempt in attempts)
        return ControlPathResult(
            False,
            None,
            tuple(attempts),
            f"Could not perform '{intent.target or intent.element_ref or intent.kind.value}' in {target.name} ({reasons}).",
            target,
        )


def build_selector(
    accessibility: AccessibilityDriver,
    keyboard: KeyboardDriver,
    pointer: PointerDriver,
    capturer: ScreenCapturer,
    locator: VisionLocator,
    monitor: ForegroundMonitor,
    settings: Optional[ControlSettings] = None,
) -> ControlPathSelector:
    """Standard accessibility -> shortcut -> vision selector."""
    if settings is None:
        from daemonAgent.config.settings import ControlSettings

        settings = ControlSettings()
    strategies = [
        AccessibilityStrategy(accessibility, settings.ui_snapshot_max_depth, settings.ui_snapshot_max_elements),
        ShortcutStrategy(keyboard),
        VisionStrategy(capturer, locator, pointer, keyboard, max_attempts=settings.vision_max_attempts),
    ]
    lock = ForegroundLock(monitor, settle_seconds=settings.foreground_settle_seconds)
    return ControlPathSelector(strategies, monitor, lock)
