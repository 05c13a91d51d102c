"""Respond node: surface the buffered model text as the turn's reply."""

from __future__ import annotations

import logging

from daemonAgent.graph.state import TurnState
from daemonAgent.models.enums import TurnPhase
from daemonAgent.models.turn import Turn
from daemonAgent.utils.logging_utils import log_agent_response, log_node_entry, log_phase_transition

LOGGER = logging.getLogger(__name__)

EMPTY_REPLY = "Done."


def build_respond_node():
    async def respond_node(state: TurnState) -> TurnState:
        log_node_entry(LOGGER, "respond", state)
        turn: Turn = state["turn"]

        previous = turn.transition(TurnPhase.RESPONDING)
        log_phase_transition(LOGGER, turn.id, previous.value, TurnPhase.RESPONDING.value)

        final_round = turn.current_round
        text = "\n".join(final_round.text_segments).strip() if final_round else ""
        turn.reply = text or EMPTY_REPLY
        log_agent_response(LOGGER, turn.reply)
        return {}

    return respond_node
