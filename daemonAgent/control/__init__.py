"""Control-path selection for UI-interaction tools."""

from .drivers import (
    AccessibilityDriver,
    AccessibilitySnapshot,
    AppIdentity,
    AXNode,
    ForegroundMonitor,
    KeyboardDriver,
    PointerDriver,
    ScreenCapturer,
    ScreenPoint,
    Screenshot,
    VisionLocator,
)
from .foreground import ForegroundLock
from .intent import IntentKind, UiIntent, classify_action, extract_target_keywords, intent_from_action
from .selector import ControlPathMemory, ControlPathResult, ControlPathSelector, build_selector
from .strategies import (
    DEFAULT_SHORTCUTS,
    AccessibilityStrategy,
    ControlStrategy,
    FailureReason,
    ShortcutStrategy,
    StrategyAttempt,
    StrategyFailure,
    VisionStrategy,
)

__all__ = [
    "AXNode",
    "AccessibilityDriver",
    "AccessibilitySnapshot",
    "AccessibilityStrategy",
    "AppIdentity",
    "ControlPathMemory",
    "ControlPathResult",
    "ControlPathSelector",
    "ControlStrategy",
    "DEFAULT_SHORTCUTS",
    "FailureReason",
    "ForegroundLock",
    "ForegroundMonitor",
    "IntentKind",
    "KeyboardDriver",
    "PointerDriver",
    "ScreenCapturer",
    "ScreenPoint",
    "Screenshot",
    "ShortcutStrategy",
    "StrategyAttempt",
    "StrategyFailure",
    "UiIntent",
    "VisionLocator",
    "VisionStrategy",
    "build_selector",
    "classify_action",
    "extract_target_keywords",
    "intent_from_action",
]
