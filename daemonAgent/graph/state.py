"""Shared state definition for the turn-loop graph."""

from __future__ import annotations

from typing import Annotated, List, TypedDict

from langchain_core.messages import BaseMessage
from langgraph.graph import add_messages

from daemonAgent.control.selector import ControlPathMemory
from daemonAgent.models.turn import ActionOutcome, PolicySnapshot, ProposedAction, Turn


class TurnState(TypedDict, total=False):
    """State of one Turn while the graph runs.

    ``turn`` is the orchestrator-owned record; nodes append rounds and
    outcomes to it. Everything else is per-round scratch space.
    """

    # ========== Messages ==========
    messages: Annotated[List[BaseMessage], add_messages]

    # ========== Turn record ==========
    turn: Turn
    memory: ControlPathMemory  # control-path facts learned this turn
    max_rounds: int

    # ========== Current round ==========
    snapshot: PolicySnapshot  # autonomy level and scopes frozen at round start
    proposed_actions: List[ProposedAction]  # schema-valid actions awaiting the policy gate
    rejected_outcomes: List[ActionOutcome]  # actions that failed validation
