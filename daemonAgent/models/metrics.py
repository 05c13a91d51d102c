"""Per-turn instrumentation: timing, tool usage and foreground-lock events."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

from daemonAgent.models.enums import ControlPath

# Tools that are accessibility-first by nature, even when not routed through
# the control-path selector.
ACCESSIBILITY_TOOLS = frozenset({"get_ui_state", "ax_action", "ax_find"})
VISION_TOOLS = frozenset({"screen_capture", "computer_action"})


@dataclass
class TurnMetrics:
    start_time: float = field(default_factory=time.monotonic)
    end_time: Optional[float] = None
    total_tool_calls: int = 0
    accessibility_calls: int = 0
    shortcut_calls: int = 0
    vision_calls: int = 0
    wrong_target_events: int = 0
    success: bool = True

    @property
    def elapsed_seconds(self) -> float:
        end = self.end_time if self.end_time is not None else time.monotonic()
        return end - self.start_time

    def finish(self, success: bool = True) -> None:
        self.end_time = time.monotonic()
        self.success = success

    def record_tool_call(self, tool: str, control_path: Optional[ControlPath] = None) -> None:
        self.total_tool_calls += 1
        if control_path is ControlPath.ACCESSIBILITY:
            self.accessibility_calls += 1
        elif control_path is ControlPath.SHORTCUT:
            self.shortcut_calls += 1
        elif control_path is ControlPath.VISION:
            self.vision_calls += 1
        elif tool in ACCESSIBILITY_TOOLS:
            self.accessibility_calls += 1
        elif tool in VISION_TOOLS:
            self.vision_calls += 1

    def record_wrong_target(self) -> None:
        self.wrong_target_events += 1

    def summary(self) -> str:
        """Compact one-line summary, e.g. ``[3.2s | 4 tools (2 AX, 1 vision) | no wrong-target]``."""
        elapsed = f"{self.elapsed_seconds:.1f}s"
        if self.total_tool_calls == 0:
            tools = "0 tools"
        else:
            tools = f"{self.total_tool_calls} tools ({self.accessibility_calls} AX, {self.vision_calls} vision)"
        target = "no wrong-target" if self.wrong_target_events == 0 else f"{self.wrong_target_events} wrong-target"
        return f"[{elapsed} | {tools} | {target}]"
