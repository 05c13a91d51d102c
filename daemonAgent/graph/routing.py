"""Conditional routing for the turn loop."""

from __future__ import annotations

import logging
from typing import Literal

from daemonAgent.graph.state import TurnState
from daemonAgent.utils.logging_utils import log_routing_decision

LOGGER = logging.getLogger(__name__)


def understand_route(state: TurnState) -> Literal["execute", "respond"]:
    """After a model reply: run proposed actions, or respond when there are none.

    Rejected calls still need tool results, so they count as actions too.
    """
    accepted = len(state.get("proposed_actions") or [])
    rejected = len(state.get("rejected_outcomes") or [])

    if accepted or rejected:
        decision = "execute"
        reason = f"{accepted} proposed action(s), {rejected} rejected by validation"
    else:
        decision = "respond"
        reason = "No proposed actions, model finished"

    log_routing_decision(LOGGER, "understand", decision, reason)
    return decision
