"""Top-level package exports for daemonAgent."""

from .runtime import CancellationToken, KillSwitch, Orchestrator

__all__ = ["CancellationToken", "KillSwitch", "Orchestrator"]
