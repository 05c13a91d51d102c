"""Turn, round and action records owned by the orchestrator."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from langchain_core.messages import ToolMessage

from daemonAgent.models.enums import (
    AutonomyLevel,
    ControlPath,
    RiskTier,
    TurnOutcome,
    TurnPhase,
    VerdictKind,
)
from daemonAgent.models.metrics import TurnMetrics
from daemonAgent.utils.error_handler import DaemonAgentError, InvalidTransition


_NON_TERMINAL = frozenset(
    {
        TurnPhase.IDLE,
        TurnPhase.UNDERSTANDING,
        TurnPhase.PLANNING,
        TurnPhase.EXECUTING,
        TurnPhase.VERIFYING,
        TurnPhase.RESPONDING,
    }
)

ALLOWED_TRANSITIONS: Dict[TurnPhase, frozenset] = {
    TurnPhase.IDLE: frozenset({TurnPhase.UNDERSTANDING}),
    TurnPhase.UNDERSTANDING: frozenset({TurnPhase.PLANNING}),
    TurnPhase.PLANNING: frozenset({TurnPhase.EXECUTING, TurnPhase.RESPONDING}),
    TurnPhase.EXECUTING: frozenset({TurnPhase.VERIFYING}),
    TurnPhase.VERIFYING: frozenset({TurnPhase.UNDERSTANDING}),
    TurnPhase.RESPONDING: frozenset(),
    TurnPhase.FAILED: frozenset(),
    TurnPhase.STOPPED: frozenset(),
}


def can_transition(current: TurnPhase, target: TurnPhase) -> bool:
    if target in (TurnPhase.FAILED, TurnPhase.STOPPED):
        return current in _NON_TERMINAL
    return target in ALLOWED_TRANSITIONS[current]


@dataclass(frozen=True)
class Scope:
    """A user pre-approval: run ``capability`` tools on targets under ``path``.

    ``path=None`` is a capability-wide grant and only applies to tools that
    have no filesystem target.
    """

    capability: str
    path: Optional[str] = None


@dataclass(frozen=True)
class PolicySnapshot:
    """Autonomy level and scopes frozen at the start of a round."""

    autonomy_level: AutonomyLevel
    scopes: Tuple[Scope, ...] = ()


@dataclass(frozen=True)
class PolicyVerdict:
    kind: VerdictKind
    reason: str = ""
    risk_tier: Optional[RiskTier] = None

    @classmethod
    def allow(cls, risk_tier: Optional[RiskTier] = None) -> "PolicyVerdict":
        return cls(VerdictKind.ALLOW, "", risk_tier)

    @classmethod
    def require_confirmation(cls, reason: str, risk_tier: RiskTier) -> "PolicyVerdict":
        return cls(VerdictKind.REQUIRE_CONFIRMATION, reason, risk_tier)

    @classmethod
    def deny(cls, reason: str) -> "PolicyVerdict":
        return cls(VerdictKind.DENY, reason, None)

    @property
    def is_allow(self) -> bool:
        return self.kind is VerdictKind.ALLOW

    @property
    def needs_confirmation(self) -> bool:
        return self.kind is VerdictKind.REQUIRE_CONFIRMATION

    @property
    def is_deny(self) -> bool:
        return self.kind is VerdictKind.DENY


@dataclass(frozen=True, eq=False)
class ProposedAction:
    """A tool call suggested by the model. Judged, never mutated."""

    id: str
    tool: str
    arguments: Mapping[str, Any]
    round_index: int

    @classmethod
    def create(cls, tool: str, arguments: Mapping[str, Any], round_index: int, id: Optional[str] = None) -> "ProposedAction":
        return cls(
            id=id or f"call_{uuid.uuid4().hex[:12]}",
            tool=tool,
            arguments=MappingProxyType(dict(arguments)),
            round_index=round_index,
        )


@dataclass(frozen=True)
class ActionOutcome:
    """Result of one proposed action, appended to its round and relayed to the model."""

    action_id: str
    tool: str
    success: bool
    payload: Any = None
    error_kind: Optional[str] = None
    error_message: Optional[str] = None
    retryable: bool = False
    control_path: Optional[ControlPath] = None
    duration_seconds: float = 0.0
    side_effect_committed: bool = False

    @classmethod
    def succeeded(
        cls,
        action: ProposedAction,
        payload: Any,
        *,
        duration: float,
        control_path: Optional[ControlPath] = None,
    ) -> "ActionOutcome":
        return cls(
            action_id=action.id,
            tool=action.tool,
            success=True,
            payload=payload,
            control_path=control_path,
            duration_seconds=duration,
            side_effect_committed=True,
        )

    @classmethod
    def failed(
        cls,
        action: ProposedAction,
        error: DaemonAgentError,
        *,
        duration: float = 0.0,
        control_path: Optional[ControlPath] = None,
        committed: bool = False,
    ) -> "ActionOutcome":
        return cls(
            action_id=action.id,
            tool=action.tool,
            success=False,
            error_kind=error.error_kind,
            error_message=error.user_message,
            retryable=bool(getattr(error, "retryable", True)),
            control_path=control_path,
            duration_seconds=duration,
            side_effect_committed=committed,
        )

    def render(self) -> str:
        if self.success:
            return self.payload if isinstance(self.payload, str) else str(self.payload)
        hint = " You may try a different approach." if self.retryable else ""
        return f"Error ({self.error_kind}): {self.error_message}{hint}"

    def to_tool_message(self) -> ToolMessage:
        return ToolMessage(
            content=self.render(),
            tool_call_id=self.action_id,
            name=self.tool,
            status="success" if self.success else "error",
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "action_id": self.action_id,
            "tool": self.tool,
            "success": self.success,
            "payload": self.payload if isinstance(self.payload, (str, int, float, bool, type(None))) else str(self.payload),
            "error_kind": self.error_kind,
            "error_message": self.error_message,
            "retryable": self.retryable,
            "control_path": self.control_path.value if self.control_path else None,
            "duration_seconds": round(self.duration_seconds, 4),
            "side_effect_committed": self.side_effect_committed,
        }


@dataclass(frozen=True)
class RequestSnapshot:
    """What was sent to the model for one round."""

    message_count: int
    tool_names: Tuple[str, ...]
    autonomy_level: AutonomyLevel


@dataclass
class Round:
    index: int
    request: RequestSnapshot
    proposed_actions: List[ProposedAction] = field(default_factory=list)
    outcomes: List[ActionOutcome] = field(default_factory=list)
    text_segments: List[str] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)

    def to_record(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "autonomy_level": int(self.request.autonomy_level),
            "message_count": self.request.message_count,
            "proposed_actions": [
                {"id": action.id, "tool": action.tool, "arguments": dict(action.arguments)}
                for action in self.proposed_actions
            ],
            "outcomes": [outcome.to_record() for outcome in self.outcomes],
            "started_at": self.started_at,
        }


@dataclass
class Turn:
    """One user request cycle. Only the orchestrator writes to it."""

    user_input: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    rounds: List[Round] = field(default_factory=list)
    phase: TurnPhase = TurnPhase.IDLE
    outcome: Optional[TurnOutcome] = None
    failure: Optional[DaemonAgentError] = None
    reply: str = ""
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None
    metrics: TurnMetrics = field(default_factory=TurnMetrics)

    def transition(self, target: TurnPhase) -> TurnPhase:
        """Move to ``target`` and return the phase that was left."""
        if not can_transition(self.phase, target):
            raise InvalidTransition(f"Cannot move turn from {self.phase.value} to {target.value}")
        previous = self.phase
        self.phase = target
        return previous

    @property
    def is_closed(self) -> bool:
        return self.outcome is not None

    @property
    def current_round(self) -> Optional[Round]:
        return self.rounds[-1] if self.rounds else None

    def committed_outcomes(self) -> List[ActionOutcome]:
        """Outcomes whose side effects were applied on the host."""
        return [o for r in self.rounds for o in r.outcomes if o.side_effect_committed]

    def close(self, outcome: TurnOutcome, reply: str, failure: Optional[DaemonAgentError] = None) -> None:
        self.outcome = outcome
        self.reply = reply
        self.failure = failure
        self.finished_at = time.time()
        self.metrics.finish(success=outcome is TurnOutcome.COMPLETED)

    def to_record(self) -> Dict[str, Any]:
        """Read-only snapshot handed to persistence and audit collaborators."""
        return {
            "turn_id": self.id,
            "user_input": self.user_input,
            "phase": self.phase.value,
            "outcome": self.outcome.value if self.outcome else None,
            "failure_kind": self.failure.error_kind if self.failure else None,
            "failure_reason": self.failure.user_message if self.failure else None,
            "reply": self.reply,
            "rounds": [r.to_record() for r in self.rounds],
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "metrics": self.metrics.summary(),
        }
