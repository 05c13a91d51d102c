"""Turn UI-interaction tool calls into strategy-neutral intents."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Optional


class IntentKind(str, Enum):
    CLICK = "click"
    DOUBLE_CLICK = "double_click"
    RIGHT_CLICK = "right_click"
    TYPE = "type"
    FOCUS = "focus"
    RAISE = "raise"
    SHOW_MENU = "show_menu"
    READ = "read"

    @property
    def mutating(self) -> bool:
        return self is not IntentKind.READ


# Native accessibility action for each kind; kinds absent here have none.
AX_ACTIONS = {
    IntentKind.CLICK: "press",
    IntentKind.TYPE: "set_value",
    IntentKind.FOCUS: "focus",
    IntentKind.RAISE: "raise",
    IntentKind.SHOW_MENU: "show_menu",
}

_AX_ACTION_KINDS = {action: kind for kind, action in AX_ACTIONS.items()}

_TARGET_PREFIXES = (
    "click the ",
    "click on the ",
    "press the ",
    "press on the ",
    "select the ",
    "open the ",
    "close the ",
    "click on ",
    "press on ",
    "click ",
    "press ",
    "select ",
    "open ",
    "close ",
)
_STOPWORDS = frozenset({"button", "menu", "item", "tab", "link", "icon", "in", "on", "at", "from", "of", "the"})
_QUOTED = re.compile(r"'([^']*)'|\"([^\"]*)\"")


@dataclass(frozen=True)
class UiIntent:
    """What a UI-interaction call wants done, independent of how."""

    kind: IntentKind
    tool: str
    target: str = ""  # natural-language description of the element
    element_ref: Optional[str] = None
    text: Optional[str] = None
    app: Optional[str] = None

    @property
    def mutating(self) -> bool:
        return self.kind.mutating

    @property
    def element_class(self) -> str:
        return self.kind.value


def extract_quoted_text(text: str) -> Optional[str]:
    match = _QUOTED.search(text)
    if not match:
        return None
    return match.group(1) if match.group(1) is not None else match.group(2)


def classify_action(action: str) -> IntentKind:
    lowered = action.lower()
    if "double-click" in lowered or "double click" in lowered:
        return IntentKind.DOUBLE_CLICK
    if "right-click" in lowered or "right click" in lowered:
        return IntentKind.RIGHT_CLICK
    if lowered.startswith("type ") or "type '" in lowered or 'type "' in lowered:
        return IntentKind.TYPE
    return IntentKind.CLICK


def extract_typed_text(action: str) -> Optional[str]:
    quoted = extract_quoted_text(action)
    if quoted:
        return quoted
    index = action.lower().find("type ")
    if index < 0:
        return None
    remainder = action[index + len("type "):].strip()
    return remainder or None


def extract_target_keywords(action: str) -> List[str]:
    """Likely element labels named in an action description.

    ``"click the Compose button"`` -> ``["Compose"]``;
    quoted text comes first when present.
    """
    lowered = action.lower()
    keywords: List[str] = []

    quoted = extract_quoted_text(action)
    if quoted:
        keywords.append(quoted)

    for prefix in _TARGET_PREFIXES:
        index = lowered.find(prefix)
        if index < 0:
            continue
        words: List[str] = []
        for word in action[index + len(prefix):].split():
            clean = word.strip(".,;:!?'\"()[]")
            if clean.lower() in _STOPWORDS:
                if words:
                    break
                continue
            if clean:
                words.append(clean)
            if len(words) >= 3:
                break
        if words:
            keywords.append(" ".join(words))
            break

    seen = set()
    unique = []
    for keyword in keywords:
        if keyword.lower() not in seen:
            seen.add(keyword.lower())
            unique.append(keyword)
    return unique


def intent_from_action(tool: str, arguments: Mapping[str, Any]) -> UiIntent:
    """Build the intent for a validated UI-interaction tool call."""
    if tool == "get_ui_state":
        return UiIntent(kind=IntentKind.READ, tool=tool, target="current UI state", app=arguments.get("app"))

    if tool == "ax_action":
        action = arguments["action"]
        kind = _AX_ACTION_KINDS.get(action, IntentKind.CLICK)
        return UiIntent(
            kind=kind,
            tool=tool,
            element_ref=arguments["ref"],
            text=arguments.get("value"),
        )

    if tool == "computer_action":
        description = arguments["action"]
        kind = classify_action(description)
        return UiIntent(
            kind=kind,
            tool=tool,
            target=description,
            text=extract_typed_text(description) if kind is IntentKind.TYPE else None,
            app=arguments.get("app"),
        )

    raise ValueError(f"{tool} is not a UI-interaction tool")
