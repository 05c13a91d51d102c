"""Runtime: cancellation, round execution and the orchestrator."""

from .cancellation import CancellationToken, KillSwitch
from .actions import ActionRunner
from .orchestrator import Orchestrator, render_reply

__all__ = ["ActionRunner", "CancellationToken", "KillSwitch", "Orchestrator", "render_reply"]
