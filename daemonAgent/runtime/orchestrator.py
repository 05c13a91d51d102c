"""Orchestrator: runs one Turn through the graph and closes it with an outcome."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from langchain_core.messages import BaseMessage, HumanMessage

from daemonAgent.control.selector import ControlPathMemory, ControlPathSelector
from daemonAgent.graph.builder import build_turn_graph
from daemonAgent.graph.message_utils import recent_history, sanitize_user_input
from daemonAgent.graph.prompts import build_system_prompt
from daemonAgent.hitl.policy_gate import PolicyGate
from daemonAgent.hitl.scopes import normalize_path
from daemonAgent.interfaces import ConfirmationUI, ModelClient, SettingsStore, ToolExecutor
from daemonAgent.models.enums import TurnOutcome, TurnPhase
from daemonAgent.models.turn import Turn
from daemonAgent.persistence.audit import AuditTrail
from daemonAgent.runtime.actions import ActionRunner
from daemonAgent.runtime.cancellation import CancellationToken, KillSwitch
from daemonAgent.tools.catalog import ToolCatalog
from daemonAgent.utils.error_handler import BudgetExceeded, Cancelled, DaemonAgentError, TurnInProgress
from daemonAgent.utils.logging_utils import log_error, log_phase_transition, log_user_message

LOGGER = logging.getLogger(__name__)


def render_reply(turn: Turn, outcome: TurnOutcome, failure: Optional[DaemonAgentError]) -> str:
    """Final reply text. Completed turns answer with the model's last text."""
    if outcome is TurnOutcome.COMPLETED:
        return turn.reply
    if outcome is TurnOutcome.STOPPED:
        committed = turn.committed_outcomes()
        if not committed:
            return "Stopped. No actions were applied."
        done = ", ".join(o.tool for o in committed)
        return f"Stopped. Already applied and not undone: {done}."
    reason = failure.user_message if failure else "Unknown error."
    if outcome is TurnOutcome.TIMED_OUT:
        return f"Timed out. {reason}"
    return f"Failed: {reason}"


class Orchestrator:
    """Drives the turn loop for one user at a time.

    Owns the cancellation token and the budgets. Collaborators are injected;
    ``from_settings`` wires the default ones.
    """

    def __init__(
        self,
        *,
        model_client: ModelClient,
        catalog: ToolCatalog,
        executors: Mapping[str, ToolExecutor],
        settings_store: SettingsStore,
        governance,
        confirmation: Optional[ConfirmationUI] = None,
        selector: Optional[ControlPathSelector] = None,
        audit: Optional[AuditTrail] = None,
        token: Optional[CancellationToken] = None,
        resolve_path: Callable[[str], str] = normalize_path,
        system_prompt_builder: Callable = build_system_prompt,
        log_args_max_length: int = 300,
    ):
        self.catalog = catalog
        self.settings_store = settings_store
        self.governance = governance
        self.audit = audit or AuditTrail()
        self.token = token or CancellationToken()
        self.kill_switch = KillSwitch(self.token)
        self.gate = PolicyGate(catalog, resolve_path=resolve_path)
        self.runner = ActionRunner(
            catalog=catalog,
            gate=self.gate,
            executors=executors,
            token=self.token,
            audit=self.audit,
            confirmation=confirmation,
            selector=selector,
            max_parallel_tools=governance.max_parallel_tools,
            cancel_grace_seconds=governance.cancel_grace_seconds,
            log_args_max_length=log_args_max_length,
        )
        self.app = build_turn_graph(
            model_client=model_client,
            catalog=catalog,
            settings_store=settings_store,
            runner=self.runner,
            audit=self.audit,
            token=self.token,
            governance=governance,
            system_prompt_builder=system_prompt_builder,
        )
        self._turn_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings,
        *,
        executors: Mapping[str, ToolExecutor],
        model_client: Optional[ModelClient] = None,
        catalog: Optional[ToolCatalog] = None,
        settings_store: Optional[SettingsStore] = None,
        confirmation: Optional[ConfirmationUI] = None,
        selector: Optional[ControlPathSelector] = None,
    ) -> "Orchestrator":
        """Default wiring: ChatOpenAI client, builtin catalog, policy file or static store, JSONL audit."""
        from daemonAgent.config.store import StaticSettingsStore, YamlSettingsStore
        from daemonAgent.models.chat_client import ChatModelClient, build_chat_model
        from daemonAgent.persistence.audit import build_audit_sink
        from daemonAgent.tools.builtin import build_default_catalog

        governance = settings.governance
        if model_client is None:
            model_client = ChatModelClient(build_chat_model(settings.models, timeout=governance.model_timeout_seconds))
        if settings_store is None:
            if governance.policy_file:
                settings_store = YamlSettingsStore(governance.policy_file, governance.default_autonomy_level)
            else:
                settings_store = StaticSettingsStore(governance.default_autonomy_level)

        return cls(
            model_client=model_client,
            catalog=catalog or build_default_catalog(),
            executors=executors,
            settings_store=settings_store,
            governance=governance,
            confirmation=confirmation,
            selector=selector,
            audit=AuditTrail(build_audit_sink(settings.observability.audit_log_path)),
            log_args_max_length=settings.observability.log_args_max_length,
        )

    @property
    def busy(self) -> bool:
        return self._turn_lock.locked()

    def stop(self) -> None:
        """Kill switch. Safe to call from any thread, any number of times."""
        self.kill_switch.trigger()

    def initial_state(self, turn: Turn, user_input: str, history: Sequence[BaseMessage] = ()) -> Dict[str, Any]:
        messages = [*recent_history(history, self.governance.max_message_history), HumanMessage(content=user_input)]
        return {
            "messages": messages,
            "turn": turn,
            "memory": ControlPathMemory(),
            "max_rounds": self.governance.max_rounds,
            "proposed_actions": [],
            "rejected_outcomes": [],
        }

    async def run_turn(self, user_input: str, history: Sequence[BaseMessage] = ()) -> Turn:
        """Run one Turn to a terminal outcome.

        Errors never escape as exceptions, except ``TurnInProgress`` when a
        Turn is already running. The returned Turn is closed and audited.
        """
        if self._turn_lock.locked():
            raise TurnInProgress("A turn is already running", user_message="Still working on the previous request.")

        async with self._turn_lock:
            self.token.reset()
            text = sanitize_user_input(user_input, self.governance.max_input_chars)
            turn = Turn(user_input=text)
            log_user_message(LOGGER, text)
            LOGGER.info("Turn %s started", turn.id)

            state = self.initial_state(turn, text, history)
            config = {"recursion_limit": 2 * self.governance.max_rounds + 5}
            timeout = self.governance.turn_timeout_seconds

            outcome = TurnOutcome.COMPLETED
            failure: Optional[DaemonAgentError] = None
            try:
                await asyncio.wait_for(self.app.ainvoke(state, config=config), timeout)
            except asyncio.TimeoutError:
                outcome = TurnOutcome.TIMED_OUT
                failure = BudgetExceeded(
                    "time",
                    f"Turn exceeded {timeout:g}s",
                    user_message=f"Gave up after {timeout:g} seconds without finishing.",
                )
            except Cancelled as exc:
                outcome, failure = TurnOutcome.STOPPED, exc
            except DaemonAgentError as exc:
                outcome, failure = TurnOutcome.FAILED, exc
            except Exception as exc:
                log_error(LOGGER, exc, context=f"turn {turn.id}")
                outcome = TurnOutcome.FAILED
                failure = DaemonAgentError(str(exc), user_message=f"Unexpected error: {exc}")

            # A kill switch that fired while another error surfaced still wins
            if outcome is not TurnOutcome.COMPLETED and self.token.is_set:
                outcome = TurnOutcome.STOPPED
                if not isinstance(failure, Cancelled):
                    failure = Cancelled()

            self._close(turn, outcome, failure)
            return turn

    def _close(self, turn: Turn, outcome: TurnOutcome, failure: Optional[DaemonAgentError]) -> None:
        if outcome is not TurnOutcome.COMPLETED:
            phase = TurnPhase.STOPPED if outcome is TurnOutcome.STOPPED else TurnPhase.FAILED
            if turn.phase not in (TurnPhase.FAILED, TurnPhase.STOPPED):
                previous = turn.transition(phase)
                log_phase_transition(LOGGER, turn.id, previous.value, phase.value)

        turn.close(outcome, render_reply(turn, outcome, failure), failure)
        LOGGER.info("Turn %s %s %s", turn.id, outcome.value, turn.metrics.summary())
        if failure is not None and outcome is TurnOutcome.FAILED:
            LOGGER.warning("Turn %s failed: %s", turn.id, failure)
        self.audit.turn(turn)
