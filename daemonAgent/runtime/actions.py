"""Round execution: judge every proposed action, then run what may run.

Allowed actions run concurrently up to ``max_parallel_tools``. Actions that
need confirmation wait for the user one dialog at a time, without holding
up their siblings. Denied actions are answered with a failure outcome and
never reach an executor.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, List, Mapping, Optional, Sequence

from daemonAgent.control.intent import intent_from_action
from daemonAgent.control.selector import ControlPathMemory, ControlPathSelector
from daemonAgent.hitl.policy_gate import PolicyGate
from daemonAgent.interfaces import ConfirmationUI, ToolExecutor
from daemonAgent.models.turn import ActionOutcome, PolicySnapshot, PolicyVerdict, ProposedAction, Round, Turn
from daemonAgent.persistence.audit import AuditTrail
from daemonAgent.runtime.cancellation import CancellationToken
from daemonAgent.tools.catalog import ToolCatalog
from daemonAgent.utils.error_handler import (
    Cancelled,
    ConfirmationDenied,
    DaemonAgentError,
    ForegroundLockFailed,
    PolicyDenied,
    ToolExecutionFailed,
)
from daemonAgent.utils.logging_utils import log_policy_verdict, log_tool_call, log_tool_result

LOGGER = logging.getLogger(__name__)


class ActionRunner:
    def __init__(
        self,
        *,
        catalog: ToolCatalog,
        gate: PolicyGate,
        executors: Mapping[str, ToolExecutor],
        token: CancellationToken,
        audit: AuditTrail,
        confirmation: Optional[ConfirmationUI] = None,
        selector: Optional[ControlPathSelector] = None,
        max_parallel_tools: int = 4,
        cancel_grace_seconds: float = 0.5,
        log_args_max_length: int = 300,
    ):
        self.catalog = catalog
        self.gate = gate
        self.executors = dict(executors)
        self.token = token
        self.audit = audit
        self.confirmation = confirmation
        self.selector = selector
        self.max_parallel_tools = max_parallel_tools
        self.grace = cancel_grace_seconds
        self.log_args_max_length = log_args_max_length

    async def run_round(
        self,
        turn: Turn,
        round_: Round,
        actions: Sequence[ProposedAction],
        snapshot: PolicySnapshot,
        memory: ControlPathMemory,
        rejected: Sequence[ActionOutcome] = (),
    ) -> List[ActionOutcome]:
        """Resolve every action of the round; outcomes come back in proposal order.

        Raises:
            Cancelled: If the kill switch fired while the round was running.
                Outcomes that completed before that are already recorded.
        """
        for outcome in rejected:
            self._record(turn, round_, outcome)

        verdicts = self.gate.evaluate_batch(actions, snapshot)
        semaphore = asyncio.Semaphore(self.max_parallel_tools)
        confirm_lock = asyncio.Lock()

        results = await asyncio.gather(
            *(self._resolve(turn, round_, action, verdict, memory, semaphore, confirm_lock) for action, verdict in verdicts),
            return_exceptions=True,
        )
        if self.token.is_set or any(isinstance(r, Cancelled) for r in results):
            raise Cancelled()
        for result in results:
            if isinstance(result, BaseException):
                raise result

        by_id: Dict[str, ActionOutcome] = {o.action_id: o for o in round_.outcomes}
        return [by_id[action.id] for action in round_.proposed_actions if action.id in by_id]

    async def _resolve(
        self,
        turn: Turn,
        round_: Round,
        action: ProposedAction,
        verdict: PolicyVerdict,
        memory: ControlPathMemory,
        semaphore: asyncio.Semaphore,
        confirm_lock: asyncio.Lock,
    ) -> ActionOutcome:
        log_policy_verdict(LOGGER, action.tool, verdict.kind.value, verdict.reason)

        if verdict.is_deny:
            outcome = ActionOutcome.failed(action, PolicyDenied(verdict.reason))
        elif verdict.needs_confirmation and not await self._confirm(action, verdict, confirm_lock):
            outcome = ActionOutcome.failed(
                action,
                ConfirmationDenied(
                    f"User declined {action.tool}",
                    user_message=f"The user declined {action.tool}. Do not retry it.",
                ),
            )
        else:
            async with semaphore:
                self.token.raise_if_set()
                outcome = await self._execute(turn, action, memory)

        self._record(turn, round_, outcome)
        return outcome

    async def _confirm(self, action: ProposedAction, verdict: PolicyVerdict, confirm_lock: asyncio.Lock) -> bool:
        if self.confirmation is None:
            LOGGER.warning("No confirmation UI; treating %s as declined", action.tool)
            return False
        async with confirm_lock:
            self.token.raise_if_set()
            try:
                approved = await self.token.race(
                    self.confirmation.request(action, verdict.reason, verdict.risk_tier), self.grace
                )
            except Cancelled:
                raise
            except Exception as e:
                LOGGER.error("Confirmation UI failed for %s, treating as declined: %s", action.tool, e, exc_info=True)
                return False
        LOGGER.info("Confirmation for %s: %s", action.tool, "approved" if approved else "declined")
        return bool(approved)

    async def _execute(self, turn: Turn, action: ProposedAction, memory: ControlPathMemory) -> ActionOutcome:
        log_tool_call(LOGGER, action.tool, dict(action.arguments), self.log_args_max_length)
        descriptor = self.catalog.get(action.tool)
        started = time.monotonic()

        if descriptor is not None and descriptor.ui_interaction and self.selector is not None:
            return await self._execute_ui(turn, action, memory, started)

        executor = self.executors.get(action.tool)
        if executor is None:
            return ActionOutcome.failed(
                action,
                ToolExecutionFailed(
                    f"No executor registered for {action.tool}",
                    user_message=f"{action.tool} is not available on this computer.",
                    retryable=False,
                ),
            )

        try:
            if descriptor is not None and descriptor.foreground_locked and self.selector is not None:
                await self.token.race(self.selector.ensure_foreground(memory), self.grace)
            result = await self.token.race(executor.execute(dict(action.arguments)), self.grace)
        except Cancelled:
            raise
        except ForegroundLockFailed as exc:
            turn.metrics.record_wrong_target()
            log_tool_result(LOGGER, action.tool, exc.user_message, success=False)
            return ActionOutcome.failed(action, exc, duration=time.monotonic() - started)
        except DaemonAgentError as exc:
            outcome = ActionOutcome.failed(action, exc, duration=time.monotonic() - started)
        except Exception as exc:
            LOGGER.warning("Executor for %s raised: %s", action.tool, exc)
            outcome = ActionOutcome.failed(
                action,
                ToolExecutionFailed(str(exc), user_message=f"{action.tool} failed: {exc}"),
                duration=time.monotonic() - started,
            )
        else:
            duration = time.monotonic() - started
            if result.success:
                outcome = ActionOutcome.succeeded(action, result.output, duration=duration)
            else:
                outcome = ActionOutcome.failed(
                    action,
                    ToolExecutionFailed(result.error or "failed", user_message=result.error, retryable=result.retryable),
                    duration=duration,
                )

        turn.metrics.record_tool_call(action.tool)
        log_tool_result(LOGGER, action.tool, outcome.render(), success=outcome.success)
        return outcome

    async def _execute_ui(
        self, turn: Turn, action: ProposedAction, memory: ControlPathMemory, started: float
    ) -> ActionOutcome:
        intent = intent_from_action(action.tool, action.arguments)
        try:
            result = await self.token.race(self.selector.perform(intent, memory), self.grace)
        except Cancelled:
            raise
        except ForegroundLockFailed as exc:
            turn.metrics.record_wrong_target()
            log_tool_result(LOGGER, action.tool, exc.user_message, success=False)
            return ActionOutcome.failed(action, exc, duration=time.monotonic() - started)
        except Exception as exc:
            LOGGER.warning("Control path for %s raised: %s", action.tool, exc)
            return ActionOutcome.failed(
                action,
                ToolExecutionFailed(str(exc), user_message=f"{action.tool} failed: {exc}"),
                duration=time.monotonic() - started,
            )

        duration = time.monotonic() - started
        turn.metrics.record_tool_call(action.tool, result.strategy)
        if result.success:
            outcome = ActionOutcome.succeeded(action, result.message, duration=duration, control_path=result.strategy)
        else:
            outcome = ActionOutcome.failed(
                action,
                ToolExecutionFailed(result.message, retryable=True),
                duration=duration,
            )
        log_tool_result(
            LOGGER,
            action.tool,
            outcome.render(),
            success=outcome.success,
            control_path=result.strategy.value if result.strategy else None,
        )
        return outcome

    def _record(self, turn: Turn, round_: Round, outcome: ActionOutcome) -> None:
        round_.outcomes.append(outcome)
        self.audit.outcome(turn.id, round_.index, outcome)
