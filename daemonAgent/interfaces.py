"""Contracts between the orchestrator and its collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from langchain_core.messages import BaseMessage

from daemonAgent.models.enums import AutonomyLevel, RiskTier
from daemonAgent.models.turn import ProposedAction, Scope


@dataclass(frozen=True)
class TurnContext:
    """Everything the model client needs for one request."""

    turn_id: str
    round_index: int
    system_prompt: str
    messages: Tuple[BaseMessage, ...]
    tool_schemas: Tuple[Dict[str, Any], ...] = ()


@dataclass(frozen=True)
class ToolCallRequest:
    name: str
    arguments: Mapping[str, Any]
    id: Optional[str] = None
    # Set when the model emitted arguments that could not be parsed
    parse_error: Optional[str] = None


@dataclass(frozen=True)
class ModelResponse:
    text_segments: Tuple[str, ...] = ()
    tool_calls: Tuple[ToolCallRequest, ...] = ()

    @property
    def is_final(self) -> bool:
        return not self.tool_calls

    @property
    def text(self) -> str:
        return "\n".join(segment for segment in self.text_segments if segment)


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    output: str = ""
    error: Optional[str] = None
    retryable: bool = True
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, output: str, **details: Any) -> "ExecutionResult":
        return cls(True, output, details=details)

    @classmethod
    def failure(cls, error: str, retryable: bool = True) -> "ExecutionResult":
        return cls(False, "", error, retryable)


class ModelClient(Protocol):
    async def send(self, context: TurnContext) -> ModelResponse:
        ...


class ToolExecutor(Protocol):
    async def execute(self, arguments: Mapping[str, Any]) -> ExecutionResult:
        ...


class ConfirmationUI(Protocol):
    async def request(self, action: ProposedAction, reason: str, risk_tier: RiskTier) -> bool:
        ...


class SettingsStore(Protocol):
    def autonomy_level(self) -> AutonomyLevel:
        ...

    def scopes(self) -> Sequence[Scope]:
        ...


class AuditSink(Protocol):
    """Fire-and-forget; failures are logged by the caller, never raised into the loop."""

    def record(self, item: Mapping[str, Any]) -> None:
        ...
