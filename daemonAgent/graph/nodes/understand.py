"""Understand node: one model request per round, then partition the reply."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Tuple

from langchain_core.messages import AIMessage

from daemonAgent.config.store import snapshot_from
from daemonAgent.graph.prompts import build_system_prompt
from daemonAgent.graph.state import TurnState
from daemonAgent.interfaces import ModelClient, ModelResponse, SettingsStore, TurnContext
from daemonAgent.models.enums import TurnPhase
from daemonAgent.models.turn import ActionOutcome, ProposedAction, RequestSnapshot, Round, Turn
from daemonAgent.runtime.cancellation import CancellationToken
from daemonAgent.tools.catalog import ToolCatalog
from daemonAgent.utils.error_handler import (
    ArgumentValidationError,
    BudgetExceeded,
    Cancelled,
    ModelClientError,
    ModelClientUnavailable,
    classify_model_error,
)
from daemonAgent.utils.logging_utils import log_node_entry, log_node_exit, log_phase_transition

LOGGER = logging.getLogger(__name__)


def _transition(turn: Turn, phase: TurnPhase) -> None:
    previous = turn.transition(phase)
    log_phase_transition(LOGGER, turn.id, previous.value, phase.value)


def build_understand_node(
    *,
    model_client: ModelClient,
    catalog: ToolCatalog,
    settings_store: SettingsStore,
    token: CancellationToken,
    governance,
    system_prompt_builder: Callable = build_system_prompt,
):
    model_timeout = governance.model_timeout_seconds
    model_retries = governance.model_retries
    grace = governance.cancel_grace_seconds
    tool_schemas = tuple(catalog.tool_schemas())

    async def request_model(context: TurnContext) -> ModelResponse:
        """Send one request, retrying retryable failures inside the same round."""
        last_error: Optional[ModelClientError] = None
        for attempt in range(model_retries + 1):
            token.raise_if_set()
            try:
                return await token.race(asyncio.wait_for(model_client.send(context), model_timeout), grace)
            except asyncio.TimeoutError:
                last_error = ModelClientError(
                    f"Model request timed out after {model_timeout:g}s",
                    user_message="The model did not respond in time.",
                )
            except (Cancelled, ModelClientUnavailable):
                raise
            except Exception as exc:
                error = classify_model_error(exc)
                if not isinstance(error, ModelClientError) or not error.retryable:
                    if error is exc:
                        raise
                    raise error from exc
                last_error = error
            LOGGER.warning(
                "Model request failed (attempt %d/%d): %s", attempt + 1, model_retries + 1, last_error
            )
        raise ModelClientUnavailable(
            f"Model unavailable after {model_retries + 1} attempts: {last_error}",
            user_message=f"{last_error.user_message} Gave up after {model_retries + 1} attempts.",
        )

    def partition(response: ModelResponse, round_index: int) -> Tuple[List[ProposedAction], List[ProposedAction], List[ActionOutcome], AIMessage]:
        """Validate tool calls. Returns (all actions in order, accepted, rejected outcomes, AI message)."""
        ordered: List[ProposedAction] = []
        accepted: List[ProposedAction] = []
        rejected: List[ActionOutcome] = []
        calls = []
        for call in response.tool_calls:
            raw = ProposedAction.create(call.name, call.arguments, round_index, id=call.id)
            calls.append({"name": raw.tool, "args": dict(raw.arguments), "id": raw.id, "type": "tool_call"})
            if call.parse_error:
                error = ArgumentValidationError(call.parse_error, user_message=f"Invalid arguments: {call.parse_error}")
                rejected.append(ActionOutcome.failed(raw, error))
                ordered.append(raw)
                continue
            if call.name not in catalog:
                # Judged by the policy gate as dangerous
                accepted.append(raw)
                ordered.append(raw)
                continue
            try:
                validated = catalog.validate(call.name, call.arguments)
            except ArgumentValidationError as exc:
                LOGGER.info("Rejected %s: %s", call.name, exc)
                rejected.append(ActionOutcome.failed(raw, exc))
                ordered.append(raw)
                continue
            action = ProposedAction.create(call.name, validated, round_index, id=raw.id)
            accepted.append(action)
            ordered.append(action)
        message = AIMessage(content=response.text, tool_calls=calls)
        return ordered, accepted, rejected, message

    async def understand_node(state: TurnState) -> TurnState:
        log_node_entry(LOGGER, "understand", state)
        turn: Turn = state["turn"]
        max_rounds = state.get("max_rounds", governance.max_rounds)

        token.raise_if_set()
        _transition(turn, TurnPhase.UNDERSTANDING)

        if len(turn.rounds) >= max_rounds:
            raise BudgetExceeded(
                "rounds",
                f"Round budget of {max_rounds} exhausted",
                user_message=f"Reached the limit of {max_rounds} tool-use rounds without finishing.",
            )

        snapshot = snapshot_from(settings_store)
        messages = tuple(state.get("messages") or [])
        round_ = Round(
            index=len(turn.rounds) + 1,
            request=RequestSnapshot(
                message_count=len(messages),
                tool_names=tuple(catalog.names()),
                autonomy_level=snapshot.autonomy_level,
            ),
        )
        turn.rounds.append(round_)

        context = TurnContext(
            turn_id=turn.id,
            round_index=round_.index,
            system_prompt=system_prompt_builder(snapshot.autonomy_level),
            messages=messages,
            tool_schemas=tool_schemas,
        )
        response = await request_model(context)
        token.raise_if_set()

        _transition(turn, TurnPhase.PLANNING)
        ordered, accepted, rejected, message = partition(response, round_.index)
        round_.text_segments.extend(response.text_segments)
        round_.proposed_actions.extend(ordered)
        LOGGER.info(
            "Round %d: %d text segment(s), %d action(s), %d rejected",
            round_.index,
            len(response.text_segments),
            len(accepted),
            len(rejected),
        )

        updates: TurnState = {
            "messages": [message],
            "snapshot": snapshot,
            "proposed_actions": accepted,
            "rejected_outcomes": rejected,
        }
        log_node_exit(LOGGER, "understand", updates)
        return updates

    return understand_node
