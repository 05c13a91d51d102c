"""Execution strategies for UI-interaction intents, cheapest first."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Mapping, Optional, Tuple

from daemonAgent.control.drivers import (
    AccessibilityDriver,
    AppIdentity,
    KeyboardDriver,
    PointerDriver,
    ScreenCapturer,
    VisionLocator,
)
from daemonAgent.control.intent import AX_ACTIONS, IntentKind, UiIntent, extract_target_keywords
from daemonAgent.models.enums import ControlPath

LOGGER = logging.getLogger(__name__)

Guard = Callable[[], Awaitable[None]]


class FailureReason(str, Enum):
    NOT_APPLICABLE = "not_applicable"
    NO_ACCESSIBILITY_TREE = "no_accessibility_tree"
    ELEMENT_NOT_FOUND = "element_not_found"
    ACTION_FAILED = "action_failed"


class StrategyFailure(Exception):
    def __init__(self, reason: FailureReason, detail: str = ""):
        super().__init__(detail or reason.value)
        self.reason = reason
        self.detail = detail or reason.value


@dataclass(frozen=True)
class StrategyAttempt:
    path: ControlPath
    success: bool
    reason: Optional[FailureReason] = None
    detail: str = ""

    def describe(self) -> str:
        if self.success:
            return f"{self.path.value}: ok"
        return f"{self.path.value}: {self.detail}"


class ControlStrategy:
    path: ControlPath

    def applicable(self, intent: UiIntent, target: AppIdentity) -> bool:
        raise NotImplementedError

    async def attempt(self, intent: UiIntent, target: AppIdentity, guard: Guard) -> str:
        """Perform the intent; return a result message or raise StrategyFailure."""
        raise NotImplementedError


class AccessibilityStrategy(ControlStrategy):
    path = ControlPath.ACCESSIBILITY

    def __init__(self, driver: AccessibilityDriver, max_depth: int = 8, max_elements: int = 200):
        self.driver = driver
        self.max_depth = max_depth
        self.max_elements = max_elements

    def applicable(self, intent: UiIntent, target: AppIdentity) -> bool:
        return intent.kind is IntentKind.READ or intent.kind in AX_ACTIONS

    async def attempt(self, intent: UiIntent, target: AppIdentity, guard: Guard) -> str:
        snapshot = await self.driver.snapshot(target, self.max_depth, self.max_elements)
        if snapshot is None or not snapshot.usable:
            raise StrategyFailure(FailureReason.NO_ACCESSIBILITY_TREE, f"{target.name} exposes no usable accessibility tree")

        if intent.kind is IntentKind.READ:
            return f"App: {target.name}\n{snapshot.render()}"

        if intent.element_ref:
            node = snapshot.find_ref(intent.element_ref)
            if node is None:
                raise StrategyFailure(FailureReason.ELEMENT_NOT_FOUND, f"element {intent.element_ref} is not in the current tree")
        elif intent.kind is IntentKind.TYPE:
            node = snapshot.find_editable()
            if node is None:
                raise StrategyFailure(FailureReason.ELEMENT_NOT_FOUND, "no editable element found")
        else:
            node = None
            keywords = extract_target_keywords(intent.target)
            for keyword in keywords:
                node = snapshot.find_by_keyword(keyword)
                if node is not None:
                    break
            if node is None:
                raise StrategyFailure(
                    FailureReason.ELEMENT_NOT_FOUND,
                    f"no element matching {keywords or [intent.target]} in {target.name}",
                )

        action = AX_ACTIONS[intent.kind]
        await guard()
        try:
            await self.driver.perform(node.ref, action, intent.text if intent.kind is IntentKind.TYPE else None)
        except Exception as exc:
            raise StrategyFailure(FailureReason.ACTION_FAILED, f"{action} on {node.ref} failed: {exc}") from exc

        label = f' "{node.title}"' if node.title else ""
        if intent.kind is IntentKind.TYPE:
            return f"Typed {len(intent.text or '')} characters into {node.ref} {node.role}{label} via accessibility."
        return f"Performed {action} on {node.ref} {node.role}{label} via accessibility."


# Global shortcuts; per-app tables override them.
DEFAULT_SHORTCUTS: Dict[str, Dict[str, str]] = {
    "*": {
        "copy": "cmd+c",
        "paste": "cmd+v",
        "cut": "cmd+x",
        "select all": "cmd+a",
        "undo": "cmd+z",
        "redo": "cmd+shift+z",
        "save": "cmd+s",
        "new tab": "cmd+t",
        "close tab": "cmd+w",
        "close window": "cmd+w",
        "new window": "cmd+n",
        "quit": "cmd+q",
        "print": "cmd+p",
        "minimize": "cmd+m",
        "preferences": "cmd+,",
        "settings": "cmd+,",
    },
    "safari": {
        "address bar": "cmd+l",
        "reload": "cmd+r",
        "refresh": "cmd+r",
        "back": "cmd+[",
        "forward": "cmd+]",
    },
    "mail": {
        "compose": "cmd+n",
        "new message": "cmd+n",
        "reply all": "cmd+shift+r",
        "reply": "cmd+r",
        "forward": "cmd+shift+f",
        "send": "cmd+shift+d",
    },
    "finder": {
        "new folder": "cmd+shift+n",
        "go to folder": "cmd+shift+g",
        "get info": "cmd+i",
    },
}


class ShortcutStrategy(ControlStrategy):
    path = ControlPath.SHORTCUT

    def __init__(self, keyboard: KeyboardDriver, shortcuts: Mapping[str, Mapping[str, str]] = DEFAULT_SHORTCUTS):
        self.keyboard = keyboard
        self.shortcuts = {app.casefold(): dict(table) for app, table in shortcuts.items()}

    def lookup(self, app_name: str, description: str) -> Optional[Tuple[str, str]]:
        """Return ``(phrase, shortcut)`` for the longest phrase named in ``description``."""
        lowered = description.lower()
        for table in (self.shortcuts.get(app_name.casefold(), {}), self.shortcuts.get("*", {})):
            for phrase in sorted(table, key=len, reverse=True):
                if re.search(rf"\b{re.escape(phrase)}\b", lowered):
                    return phrase, table[phrase]
        return None

    def applicable(self, intent: UiIntent, target: AppIdentity) -> bool:
        if intent.kind is not IntentKind.CLICK or not intent.target:
            return False
        return self.lookup(target.name, intent.target) is not None

    async def attempt(self, intent: UiIntent, target: AppIdentity, guard: Guard) -> str:
        match = self.lookup(target.name, intent.target)
        if match is None:
            raise StrategyFailure(FailureReason.NOT_APPLICABLE, "no known shortcut")
        phrase, shortcut = match
        await guard()
        try:
            await self.keyboard.press_shortcut(shortcut)
        except Exception as exc:
            raise StrategyFailure(FailureReason.ACTION_FAILED, f"shortcut {shortcut} failed: {exc}") from exc
        return f"Pressed {shortcut} ({phrase}) in {target.name}."


class VisionStrategy(ControlStrategy):
    """Screenshot, ask the vision model where the element is, click there."""

    path = ControlPath.VISION

    def __init__(
        self,
        capturer: ScreenCapturer,
        locator: VisionLocator,
        pointer: PointerDriver,
        keyboard: Optional[KeyboardDriver] = None,
        max_attempts: int = 2,
        focus_delay: float = 0.15,
    ):
        self.capturer = capturer
        self.locator = locator
        self.pointer = pointer
        self.keyboard = keyboard
        self.max_attempts = max(1, max_attempts)
        self.focus_delay = focus_delay

    def applicable(self, intent: UiIntent, target: AppIdentity) -> bool:
        if not intent.target or intent.kind is IntentKind.RAISE:
            return False
        if intent.kind is IntentKind.TYPE:
            return self.keyboard is not None and bool(intent.text)
        return True

    async def attempt(self, intent: UiIntent, target: AppIdentity, guard: Guard) -> str:
        if intent.kind is IntentKind.READ:
            screenshot = await self.capturer.capture()
            description = await self.locator.describe(screenshot, f"Describe the {target.name} window and its controls.")
            return f"App: {target.name}\n{description}"

        screenshot = None
        point = None
        for attempt in range(1, self.max_attempts + 1):
            screenshot = await self.capturer.capture()
            point = await self.locator.locate(screenshot, intent.target)
            if point is not None:
                break
            LOGGER.info("Vision could not locate '%s' (attempt %d/%d)", intent.target, attempt, self.max_attempts)
        if point is None:
            raise StrategyFailure(
                FailureReason.ELEMENT_NOT_FOUND,
                f"vision could not locate '{intent.target}' after {self.max_attempts} attempt(s)",
            )

        x, y = point.to_pixels(screenshot.width, screenshot.height)
        await guard()
        try:
            if intent.kind is IntentKind.DOUBLE_CLICK:
                await self.pointer.click(x, y, "left", 2)
                verb = "Double-clicked"
            elif intent.kind in (IntentKind.RIGHT_CLICK, IntentKind.SHOW_MENU):
                await self.pointer.click(x, y, "right", 1)
                verb = "Right-clicked"
            else:
                await self.pointer.click(x, y, "left", 1)
                verb = "Clicked"
                if intent.kind is IntentKind.TYPE:
                    await asyncio.sleep(self.focus_delay)
        except Exception as exc:
            raise StrategyFailure(FailureReason.ACTION_FAILED, f"pointer action at ({x}, {y}) failed: {exc}") from exc

        if intent.kind is not IntentKind.TYPE:
            return f"{verb} at ({x}, {y})."

        # The click may have raised another window; keystrokes need their own check.
        await guard()
        try:
            await self.keyboard.type_text(intent.text)
        except Exception as exc:
            raise StrategyFailure(FailureReason.ACTION_FAILED, f"typing at ({x}, {y}) failed: {exc}") from exc
        return f"Clicked at ({x}, {y}) and typed {len(intent.text)} characters."
