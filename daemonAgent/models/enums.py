"""Enumerations shared by the catalog, policy gate and orchestrator."""

from __future__ import annotations

from enum import Enum, IntEnum


class RiskTier(str, Enum):
    """How risky a tool is to run without the user looking."""

    SAFE = "safe"  # read-only or benign
    CAUTION = "caution"  # modifies state, reversible
    DANGEROUS = "dangerous"  # destructive or irreversible


class AutonomyLevel(IntEnum):
    """User-selected autonomy, 0 (confirm everything) to 3."""

    CONFIRM_ALL = 0
    AUTO_SAFE = 1
    SCOPED_AUTO = 2
    FULLY_AUTO = 3

    @classmethod
    def coerce(cls, value: int) -> "AutonomyLevel":
        """Clamp an arbitrary integer into the valid range."""
        return cls(min(max(int(value), cls.CONFIRM_ALL), cls.FULLY_AUTO))


class VerdictKind(str, Enum):
    ALLOW = "allow"
    REQUIRE_CONFIRMATION = "require_confirmation"
    DENY = "deny"


class TurnPhase(str, Enum):
    IDLE = "idle"
    UNDERSTANDING = "understanding"
    PLANNING = "planning"
    EXECUTING = "executing"
    VERIFYING = "verifying"
    RESPONDING = "responding"
    FAILED = "failed"
    STOPPED = "stopped"


class TurnOutcome(str, Enum):
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class ControlPath(str, Enum):
    """Execution strategies for UI-interaction tools, in priority order."""

    ACCESSIBILITY = "accessibility"
    SHORTCUT = "shortcut"
    VISION = "vision"
