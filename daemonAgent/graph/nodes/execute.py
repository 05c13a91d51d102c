"""Execute node: run the round's actions and hand results back to the model."""

from __future__ import annotations

import logging

from daemonAgent.graph.state import TurnState
from daemonAgent.models.enums import TurnPhase
from daemonAgent.models.turn import Turn
from daemonAgent.persistence.audit import AuditTrail
from daemonAgent.runtime.actions import ActionRunner
from daemonAgent.utils.logging_utils import log_node_entry, log_node_exit, log_phase_transition

LOGGER = logging.getLogger(__name__)


def build_execute_node(*, runner: ActionRunner, audit: AuditTrail):
    async def execute_node(state: TurnState) -> TurnState:
        log_node_entry(LOGGER, "execute", state)
        turn: Turn = state["turn"]
        round_ = turn.current_round

        previous = turn.transition(TurnPhase.EXECUTING)
        log_phase_transition(LOGGER, turn.id, previous.value, TurnPhase.EXECUTING.value)

        try:
            outcomes = await runner.run_round(
                turn,
                round_,
                state.get("proposed_actions") or [],
                state["snapshot"],
                state["memory"],
                rejected=state.get("rejected_outcomes") or [],
            )
        finally:
            audit.round(turn.id, round_)

        previous = turn.transition(TurnPhase.VERIFYING)
        log_phase_transition(LOGGER, turn.id, previous.value, TurnPhase.VERIFYING.value)

        failed = sum(1 for outcome in outcomes if not outcome.success)
        LOGGER.info("Round %d resolved: %d ok, %d failed", round_.index, len(outcomes) - failed, failed)

        updates: TurnState = {
            "messages": [outcome.to_tool_message() for outcome in outcomes],
            "proposed_actions": [],
            "rejected_outcomes": [],
        }
        log_node_exit(LOGGER, "execute", updates)
        return updates

    return execute_node
