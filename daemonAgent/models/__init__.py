"""Shared data model for turns, rounds, actions and verdicts."""

from .enums import AutonomyLevel, ControlPath, RiskTier, TurnOutcome, TurnPhase, VerdictKind
from .metrics import TurnMetrics
from .turn import (
    ActionOutcome,
    PolicySnapshot,
    PolicyVerdict,
    ProposedAction,
    RequestSnapshot,
    Round,
    Scope,
    Turn,
)

__all__ = [
    "ActionOutcome",
    "AutonomyLevel",
    "ControlPath",
    "PolicySnapshot",
    "PolicyVerdict",
    "ProposedAction",
    "RequestSnapshot",
    "RiskTier",
    "Round",
    "Scope",
    "Turn",
    "TurnMetrics",
    "TurnOutcome",
    "TurnPhase",
    "VerdictKind",
]
