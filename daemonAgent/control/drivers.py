"""Host-automation collaborators used by the control-path strategies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Optional, Protocol, Tuple

# Roles preferred when several elements match a description.
INTERACTIVE_ROLES = frozenset(
    {
        "AXButton",
        "AXMenuItem",
        "AXMenuBarItem",
        "AXCheckBox",
        "AXRadioButton",
        "AXPopUpButton",
        "AXLink",
        "AXTab",
    }
)
EDITABLE_ROLES = frozenset({"AXTextField", "AXTextArea", "AXSearchField", "AXComboBox"})


@dataclass(frozen=True)
class AppIdentity:
    name: str
    bundle_id: Optional[str] = None
    pid: Optional[int] = None

    def matches(self, other: Optional["AppIdentity"]) -> bool:
        if other is None:
            return False
        if self.bundle_id and other.bundle_id:
            return self.bundle_id == other.bundle_id
        if self.pid is not None and other.pid is not None:
            return self.pid == other.pid
        return self.name.casefold() == other.name.casefold()


@dataclass(frozen=True)
class AXNode:
    """One element of an accessibility-tree snapshot."""

    ref: str
    role: str
    title: str = ""
    value: str = ""
    description: str = ""
    enabled: bool = True
    focused: bool = False
    children: Tuple["AXNode", ...] = ()

    def walk(self) -> Iterator["AXNode"]:
        yield self
        for child in self.children:
            yield from child.walk()

    def label_contains(self, keyword: str) -> bool:
        needle = keyword.casefold()
        return needle in self.title.casefold() or needle in self.description.casefold()

    def render(self, indent: int = 0) -> str:
        """Compact outline, e.g. ``@e6 AXButton "Bold" [focused]``."""
        line = "  " * indent + f"{self.ref} {self.role}"
        if self.title:
            line += f' "{self.title}"'
        if self.value:
            value = self.value if len(self.value) <= 80 else self.value[:80] + "..."
            line += f' value="{value}"'
        if self.description and self.description != self.title:
            line += f' desc="{self.description}"'
        if not self.enabled:
            line += " [disabled]"
        if self.focused:
            line += " [focused]"
        return "\n".join([line] + [child.render(indent + 1) for child in self.children])


@dataclass(frozen=True)
class AccessibilitySnapshot:
    app: AppIdentity
    root: Optional[AXNode] = None

    @property
    def usable(self) -> bool:
        return self.root is not None and bool(self.root.children)

    def nodes(self) -> List[AXNode]:
        return list(self.root.walk()) if self.root else []

    def find_ref(self, ref: str) -> Optional[AXNode]:
        return next((node for node in self.nodes() if node.ref == ref), None)

    def find_by_keyword(self, keyword: str) -> Optional[AXNode]:
        """Enabled interactive elements first, then any enabled element."""
        matches = [node for node in self.nodes() if node.enabled and node.label_contains(keyword)]
        for node in matches:
            if node.role in INTERACTIVE_ROLES:
                return node
        return matches[0] if matches else None

    def find_editable(self) -> Optional[AXNode]:
        nodes = [node for node in self.nodes() if node.enabled and node.role in EDITABLE_ROLES]
        return next((node for node in nodes if node.focused), nodes[0] if nodes else None)

    def render(self) -> str:
        if self.root is None:
            return f"{self.app.name}: no accessibility tree"
        return self.root.render()


@dataclass(frozen=True)
class Screenshot:
    image: bytes
    width: int
    height: int


@dataclass(frozen=True)
class ScreenPoint:
    """Location returned by the vision locator, in percent of the screen."""

    x_pct: float
    y_pct: float

    def to_pixels(self, width: int, height: int) -> Tuple[int, int]:
        x = min(max(self.x_pct, 0.0), 100.0)
        y = min(max(self.y_pct, 0.0), 100.0)
        return round(width * x / 100.0), round(height * y / 100.0)


class AccessibilityDriver(Protocol):
    async def snapshot(self, app: AppIdentity, max_depth: int, max_elements: int) -> Optional[AccessibilitySnapshot]:
        ...

    async def perform(self, ref: str, action: str, value: Optional[str] = None) -> None:
        ...


class KeyboardDriver(Protocol):
    async def press_shortcut(self, shortcut: str) -> None:
        ...

    async def type_text(self, text: str) -> None:
        ...


class PointerDriver(Protocol):
    async def click(self, x: int, y: int, button: str = "left", count: int = 1) -> None:
        ...


class ScreenCapturer(Protocol):
    async def capture(self) -> Screenshot:
        ...


class VisionLocator(Protocol):
    """Vision-capable model client; every call is billed."""

    async def locate(self, screenshot: Screenshot, description: str) -> Optional[ScreenPoint]:
        ...

    async def describe(self, screenshot: Screenshot, prompt: str) -> str:
        ...


class ForegroundMonitor(Protocol):
    async def frontmost(self) -> Optional[AppIdentity]:
        ...

    async def activate(self, app: AppIdentity) -> None:
        ...

    async def lookup(self, name: str) -> Optional[AppIdentity]:
        ...
