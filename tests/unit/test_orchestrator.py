"""
Unit tests for the turn loop.
The model client, tool executors and confirmation UI are scripted; the policy gate,
graph and action runner are the real ones.
"""

import asyncio
import json

import pytest
from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from fakes import (
    BlockingModelClient,
    ConcurrencyProbe,
    FakeAccessibility,
    FakeCapturer,
    FakeKeyboard,
    FakeLocator,
    FakeMonitor,
    FakePointer,
    RecordingExecutor,
    ScriptedConfirmation,
    ScriptedModelClient,
    ax_tree,
    calls,
    no_sleep,
    reply,
)

from daemonAgent.config.store import StaticSettingsStore
from daemonAgent.control.drivers import AppIdentity, AXNode
from daemonAgent.control.foreground import ForegroundLock
from daemonAgent.control.selector import ControlPathSelector
from daemonAgent.control.strategies import AccessibilityStrategy, ShortcutStrategy, VisionStrategy
from daemonAgent.interfaces import ExecutionResult
from daemonAgent.models.enums import AutonomyLevel, ControlPath, RiskTier, TurnOutcome, TurnPhase
from daemonAgent.models.turn import Scope
from daemonAgent.persistence.audit import JsonlAuditSink, MemoryAuditSink
from daemonAgent.utils.error_handler import (
    BudgetExceeded,
    Cancelled,
    ModelClientError,
    ModelClientUnavailable,
    TurnInProgress,
)


def tool_messages(context):
    return [message for message in context.messages if isinstance(message, ToolMessage)]


class TestCompletedTurns:
    @pytest.mark.asyncio
    async def test_text_only_reply(self, make_orchestrator):
        model = ScriptedModelClient(reply("Hello! How can I help?"))
        orchestrator = make_orchestrator(model)

        turn = await orchestrator.run_turn("hi")

        assert turn.outcome is TurnOutcome.COMPLETED
        assert turn.phase is TurnPhase.RESPONDING
        assert turn.reply == "Hello! How can I help?"
        assert len(turn.rounds) == 1
        assert isinstance(model.contexts[0].messages[-1], HumanMessage)
        assert model.contexts[0].tool_schemas

    @pytest.mark.asyncio
    async def test_scenario_a_safe_tool_runs_without_prompt(self, make_orchestrator):
        model = ScriptedModelClient(calls(("app_open", {"target": "Safari"})), reply("Safari is open."))
        app_open = RecordingExecutor("Opened Safari")
        confirmation = ScriptedConfirmation(True)
        orchestrator = make_orchestrator(model, {"app_open": app_open}, level=1, confirmation=confirmation)

        turn = await orchestrator.run_turn("open safari")

        assert turn.outcome is TurnOutcome.COMPLETED
        assert app_open.calls == [{"target": "Safari"}]
        assert confirmation.requests == []
        outcome = turn.rounds[0].outcomes[0]
        assert outcome.success and outcome.side_effect_committed
        [result] = tool_messages(model.contexts[1])
        assert result.content == "Opened Safari"
        assert result.tool_call_id == "call_0_app_open"
        assert turn.reply == "Safari is open."

    @pytest.mark.asyncio
    async def test_scenario_b_declined_delete_is_fed_back(self, make_orchestrator):
        model = ScriptedModelClient(
            calls(("file_delete", {"path": "~/Documents/report.pdf"})),
            reply("OK, I left the report alone."),
        )
        file_delete = RecordingExecutor()
        confirmation = ScriptedConfirmation(False)
        orchestrator = make_orchestrator(model, {"file_delete": file_delete}, level=1, confirmation=confirmation)

        turn = await orchestrator.run_turn("delete my report")

        assert confirmation.requests[0][0] == "file_delete"
        assert confirmation.requests[0][2] is RiskTier.DANGEROUS
        assert file_delete.calls == []
        outcome = turn.rounds[0].outcomes[0]
        assert not outcome.success
        assert outcome.error_kind == "confirmation_denied"
        [result] = tool_messages(model.contexts[1])
        assert "confirmation_denied" in result.content
        assert turn.outcome is TurnOutcome.COMPLETED
        assert len(turn.rounds) == 2

    @pytest.mark.asyncio
    async def test_approved_dangerous_action_runs(self, make_orchestrator):
        model = ScriptedModelClient(calls(("process_kill", {"target": "Chess"})), reply("Quit Chess."))
        process_kill = RecordingExecutor("killed")
        orchestrator = make_orchestrator(model, {"process_kill": process_kill}, confirmation=ScriptedConfirmation(True))

        turn = await orchestrator.run_turn("quit chess")

        assert process_kill.calls == [{"target": "Chess"}]
        assert turn.rounds[0].outcomes[0].success

    @pytest.mark.asyncio
    async def test_no_confirmation_ui_counts_as_declined(self, make_orchestrator):
        model = ScriptedModelClient(calls(("file_delete", {"path": "/tmp/x"})), reply("Could not delete."))
        file_delete = RecordingExecutor()
        orchestrator = make_orchestrator(model, {"file_delete": file_delete})

        turn = await orchestrator.run_turn("delete /tmp/x")

        assert file_delete.calls == []
        assert turn.rounds[0].outcomes[0].error_kind == "confirmation_denied"

    @pytest.mark.asyncio
    async def test_broken_confirmation_ui_counts_as_declined(self, make_orchestrator):
        class ClosedDialog:
            async def request(self, action, reason, risk_tier):
                raise RuntimeError("dialog window was closed")

        model = ScriptedModelClient(
            calls(("app_open", {"target": "Safari"}), ("file_delete", {"path": "/tmp/x"})),
            reply("Opened Safari; the delete was not confirmed."),
        )
        app_open = RecordingExecutor("Opened Safari")
        file_delete = RecordingExecutor()
        orchestrator = make_orchestrator(
            model, {"app_open": app_open, "file_delete": file_delete}, level=1, confirmation=ClosedDialog()
        )

        turn = await orchestrator.run_turn("open safari and delete /tmp/x")

        assert turn.outcome is TurnOutcome.COMPLETED
        assert app_open.calls == [{"target": "Safari"}]
        assert file_delete.calls == []
        outcomes = {outcome.tool: outcome for outcome in turn.rounds[0].outcomes}
        assert outcomes["app_open"].success
        assert outcomes["file_delete"].error_kind == "confirmation_denied"
        assert turn.reply == "Opened Safari; the delete was not confirmed."

    @pytest.mark.asyncio
    async def test_scenario_c_traversal_denied_and_explained(self, make_orchestrator):
        model = ScriptedModelClient(
            calls(("file_move", {"source": "../../etc/passwd", "destination": "/tmp/p"})),
            reply("That path is not allowed."),
        )
        file_move = RecordingExecutor()
        confirmation = ScriptedConfirmation(True)
        orchestrator = make_orchestrator(model, {"file_move": file_move}, level=3, confirmation=confirmation)

        turn = await orchestrator.run_turn("move passwd")

        assert file_move.calls == []
        assert confirmation.requests == []
        [result] = tool_messages(model.contexts[1])
        assert result.status == "error"
        assert "policy_denied" in result.content
        assert "source" in result.content
        assert turn.outcome is TurnOutcome.COMPLETED

    @pytest.mark.asyncio
    async def test_scoped_caution_tool_runs_at_level_2(self, make_orchestrator):
        model = ScriptedModelClient(
            calls(("file_write", {"path": "/data/notes/a.txt", "content": "hi"})),
            reply("Written."),
        )
        file_write = RecordingExecutor()
        orchestrator = make_orchestrator(
            model,
            {"file_write": file_write},
            level=2,
            scopes=(Scope("files", "/data/notes"),),
            resolve_path=lambda path: path,
        )

        await orchestrator.run_turn("write a note")

        assert file_write.calls == [{"path": "/data/notes/a.txt", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_invalid_arguments_fed_back_without_execution(self, make_orchestrator):
        model = ScriptedModelClient(calls(("app_open", {"target": 42})), reply("Sorry."))
        app_open = RecordingExecutor()
        orchestrator = make_orchestrator(model, {"app_open": app_open})

        turn = await orchestrator.run_turn("open something")

        assert app_open.calls == []
        outcome = turn.rounds[0].outcomes[0]
        assert outcome.error_kind == "invalid_arguments"
        [result] = tool_messages(model.contexts[1])
        assert "Invalid arguments for app_open" in result.content

    @pytest.mark.asyncio
    async def test_unknown_tool_needs_approval_then_has_no_executor(self, make_orchestrator):
        model = ScriptedModelClient(calls(("format_disk", {"volume": "HD"})), reply("Cannot do that."))
        confirmation = ScriptedConfirmation(True)
        orchestrator = make_orchestrator(model, {}, confirmation=confirmation)

        turn = await orchestrator.run_turn("format my disk")

        assert confirmation.requests[0][2] is RiskTier.DANGEROUS
        outcome = turn.rounds[0].outcomes[0]
        assert outcome.error_kind == "tool_execution_failed"
        assert not outcome.retryable
        assert not outcome.side_effect_committed

    @pytest.mark.asyncio
    async def test_executor_errors_become_outcomes(self, make_orchestrator):
        model = ScriptedModelClient(
            calls(("app_open", {"target": "Nope"}), ("system_info", {"target": "battery"})),
            reply("Partly done."),
        )
        executors = {
            "app_open": RecordingExecutor(error=RuntimeError("no such app")),
            "system_info": RecordingExecutor(result=ExecutionResult.failure("no battery", retryable=False)),
        }
        orchestrator = make_orchestrator(model, executors)

        turn = await orchestrator.run_turn("check")

        outcomes = {outcome.tool: outcome for outcome in turn.rounds[0].outcomes}
        assert "no such app" in outcomes["app_open"].error_message
        assert outcomes["app_open"].retryable
        assert outcomes["system_info"].error_message == "no battery"
        assert not outcomes["system_info"].retryable
        assert turn.outcome is TurnOutcome.COMPLETED

    @pytest.mark.asyncio
    async def test_tool_messages_follow_proposal_order(self, make_orchestrator):
        slow = RecordingExecutor("slow", delay=0.05)
        fast = RecordingExecutor("fast")
        model = ScriptedModelClient(
            calls(("file_search", {"query": "a"}), ("app_open", {"target": "Mail"})),
            reply("done"),
        )
        orchestrator = make_orchestrator(model, {"file_search": slow, "app_open": fast})

        await orchestrator.run_turn("go")

        assert [m.content for m in tool_messages(model.contexts[1])] == ["slow", "fast"]

    @pytest.mark.asyncio
    async def test_history_is_trimmed_and_cleaned(self, make_orchestrator):
        history = [
            HumanMessage(content=f"old {i}") for i in range(12)
        ] + [AIMessage(content="", tool_calls=[{"name": "app_open", "args": {}, "id": "dangling"}])]
        model = ScriptedModelClient(reply("ok"))
        orchestrator = make_orchestrator(model, max_message_history=4)

        await orchestrator.run_turn("\x07hello", history=history)

        messages = model.contexts[0].messages
        assert [m.content for m in messages] == ["old 9", "old 10", "old 11", "hello"]

    @pytest.mark.asyncio
    async def test_input_is_capped(self, make_orchestrator):
        model = ScriptedModelClient(reply("ok"))
        orchestrator = make_orchestrator(model)

        turn = await orchestrator.run_turn("x" * 5000)

        assert len(turn.user_input) == 4000
        assert model.contexts[0].messages[-1].content == "x" * 4000


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_allowed_actions_run_concurrently_up_to_limit(self, make_orchestrator):
        probe = ConcurrencyProbe()
        specs = [("file_search", {"query": str(i)}) for i in range(5)]
        model = ScriptedModelClient(calls(*specs), reply("done"))
        orchestrator = make_orchestrator(model, {"file_search": probe.executor()}, max_parallel_tools=2)

        turn = await orchestrator.run_turn("search")

        assert probe.peak == 2
        assert len(turn.rounds[0].outcomes) == 5

    @pytest.mark.asyncio
    async def test_confirmations_are_serialised_but_do_not_block_siblings(self, make_orchestrator):
        confirmation = ScriptedConfirmation(True, delay=0.05)
        app_open = RecordingExecutor()
        model = ScriptedModelClient(
            calls(
                ("file_delete", {"path": "/tmp/a"}),
                ("file_delete", {"path": "/tmp/b"}),
                ("app_open", {"target": "Mail"}),
            ),
            reply("done"),
        )
        orchestrator = make_orchestrator(
            model,
            {"file_delete": RecordingExecutor(), "app_open": app_open},
            confirmation=confirmation,
        )

        turn = await orchestrator.run_turn("clean up")

        assert confirmation.peak == 1
        assert len(confirmation.requests) == 2
        # The allowed sibling finished before the first dialog was answered
        assert turn.rounds[0].outcomes[0].tool == "app_open"

    @pytest.mark.asyncio
    async def test_settings_change_mid_round_does_not_alter_verdicts(self, make_orchestrator):
        store = StaticSettingsStore(AutonomyLevel.AUTO_SAFE)
        lowers_level = RecordingExecutor(on_call=lambda args: store.set_autonomy_level(0))
        sibling = RecordingExecutor(delay=0.02)
        confirmation = ScriptedConfirmation(False)
        model = ScriptedModelClient(
            calls(("app_open", {"target": "Mail"}), ("file_search", {"query": "x"})),
            reply("done"),
        )
        orchestrator = make_orchestrator(
            model,
            {"app_open": lowers_level, "file_search": sibling},
            store=store,
            confirmation=confirmation,
        )

        turn = await orchestrator.run_turn("go")

        assert sibling.calls == [{"query": "x"}]
        assert confirmation.requests == []
        assert turn.rounds[0].request.autonomy_level is AutonomyLevel.AUTO_SAFE
        assert turn.rounds[1].request.autonomy_level is AutonomyLevel.CONFIRM_ALL

    @pytest.mark.asyncio
    async def test_second_turn_while_running_is_refused(self, make_orchestrator):
        model = BlockingModelClient(reply("done"))
        orchestrator = make_orchestrator(model)

        first = asyncio.create_task(orchestrator.run_turn("one"))
        await model.entered.wait()
        assert orchestrator.busy
        with pytest.raises(TurnInProgress):
            await orchestrator.run_turn("two")

        model.release.set()
        turn = await first
        assert turn.outcome is TurnOutcome.COMPLETED
        assert not orchestrator.busy


class TestBudgets:
    @pytest.mark.asyncio
    async def test_round_budget_fails_the_turn(self, make_orchestrator):
        model = ScriptedModelClient(calls(("system_info", {"target": "uptime"})))
        orchestrator = make_orchestrator(model, {"system_info": RecordingExecutor()}, max_rounds=3)

        turn = await orchestrator.run_turn("loop forever")

        assert turn.outcome is TurnOutcome.FAILED
        assert turn.phase is TurnPhase.FAILED
        assert isinstance(turn.failure, BudgetExceeded)
        assert turn.failure.kind == "rounds"
        assert len(turn.rounds) == 3
        assert len(model.contexts) == 3
        assert turn.reply == "Failed: Reached the limit of 3 tool-use rounds without finishing."

    @pytest.mark.asyncio
    async def test_default_round_budget_is_ten(self, make_orchestrator):
        model = ScriptedModelClient(calls(("system_info", {"target": "uptime"})))
        orchestrator = make_orchestrator(model, {"system_info": RecordingExecutor()})

        turn = await orchestrator.run_turn("loop forever")

        assert turn.failure.kind == "rounds"
        assert len(model.contexts) == 10

    @pytest.mark.asyncio
    async def test_turn_timeout(self, make_orchestrator):
        model = ScriptedModelClient(reply("late"), delay=5)
        orchestrator = make_orchestrator(model, turn_timeout_seconds=0.1, model_timeout_seconds=30)

        turn = await orchestrator.run_turn("slow")

        assert turn.outcome is TurnOutcome.TIMED_OUT
        assert turn.phase is TurnPhase.FAILED
        assert turn.failure.kind == "time"
        assert turn.reply.startswith("Timed out.")


class TestModelFailures:
    @pytest.mark.asyncio
    async def test_retryable_error_is_retried_in_the_same_round(self, make_orchestrator):
        model = ScriptedModelClient(RuntimeError("429 rate limit exceeded"), reply("ok"))
        orchestrator = make_orchestrator(model)

        turn = await orchestrator.run_turn("hi")

        assert turn.outcome is TurnOutcome.COMPLETED
        assert len(model.contexts) == 2
        assert len(turn.rounds) == 1

    @pytest.mark.asyncio
    async def test_retries_exhausted_fails_with_unavailable(self, make_orchestrator):
        model = ScriptedModelClient(ModelClientError("overloaded", user_message="The model is busy."))
        orchestrator = make_orchestrator(model, model_retries=2)

        turn = await orchestrator.run_turn("hi")

        assert turn.outcome is TurnOutcome.FAILED
        assert isinstance(turn.failure, ModelClientUnavailable)
        assert len(model.contexts) == 3
        assert turn.reply == "Failed: The model is busy. Gave up after 3 attempts."

    @pytest.mark.asyncio
    async def test_model_timeout_counts_as_retryable(self, make_orchestrator):
        model = ScriptedModelClient(reply("late"), delay=1)
        orchestrator = make_orchestrator(model, model_timeout_seconds=0.05, model_retries=1)

        turn = await orchestrator.run_turn("hi")

        assert isinstance(turn.failure, ModelClientUnavailable)
        assert len(model.contexts) == 2
        assert "did not respond in time" in turn.reply

    @pytest.mark.asyncio
    async def test_auth_error_fails_immediately(self, make_orchestrator):
        model = ScriptedModelClient(RuntimeError("Error code: 401 - invalid_api_key"))
        orchestrator = make_orchestrator(model)

        turn = await orchestrator.run_turn("hi")

        assert turn.outcome is TurnOutcome.FAILED
        assert isinstance(turn.failure, ModelClientUnavailable)
        assert len(model.contexts) == 1
        assert turn.reply == "Failed: The model API key is invalid or missing."

    @pytest.mark.asyncio
    async def test_non_retryable_error_fails_the_turn(self, make_orchestrator):
        model = ScriptedModelClient(RuntimeError("context_length_exceeded"))
        orchestrator = make_orchestrator(model)

        turn = await orchestrator.run_turn("hi")

        assert turn.outcome is TurnOutcome.FAILED
        assert len(model.contexts) == 1
        assert "too long" in turn.reply


class TestCancellation:
    @pytest.mark.asyncio
    async def test_scenario_e_kill_switch_mid_round(self, make_orchestrator):
        sink = MemoryAuditSink()
        fast = RecordingExecutor("Opened Mail")
        slow_search = RecordingExecutor(delay=10)
        slow_info = RecordingExecutor(delay=10)
        model = ScriptedModelClient(
            calls(
                ("app_open", {"target": "Mail"}),
                ("file_search", {"query": "invoice"}),
                ("system_info", {"target": "battery"}),
            ),
            reply("should never be seen"),
        )
        orchestrator = make_orchestrator(
            model,
            {"app_open": fast, "file_search": slow_search, "system_info": slow_info},
            sink=sink,
        )

        async def press_kill_switch():
            await fast.finished.wait()
            await slow_search.started.wait()
            await slow_info.started.wait()
            orchestrator.stop()

        stopper = asyncio.create_task(press_kill_switch())
        started = asyncio.get_running_loop().time()
        turn = await orchestrator.run_turn("find my invoice")
        await stopper

        assert asyncio.get_running_loop().time() - started < 2
        assert turn.outcome is TurnOutcome.STOPPED
        assert turn.phase is TurnPhase.STOPPED
        assert isinstance(turn.failure, Cancelled)
        assert slow_search.cancelled and slow_info.cancelled
        assert len(model.contexts) == 1
        assert turn.reply == "Stopped. Already applied and not undone: app_open."

        [record] = sink.of_type("turn")
        assert record["outcome"] == "stopped"
        assert record["rollback"] == "none"
        assert [item["tool"] for item in record["not_rolled_back"]] == ["app_open"]
        assert [r["tool"] for r in sink.of_type("action_outcome")] == ["app_open"]
        assert len(sink.of_type("round")) == 1

    @pytest.mark.asyncio
    async def test_stop_during_confirmation_starts_nothing(self, make_orchestrator):
        confirmation = ScriptedConfirmation(True, block=True)
        file_delete = RecordingExecutor()
        model = ScriptedModelClient(calls(("file_delete", {"path": "/tmp/x"})), reply("done"))
        orchestrator = make_orchestrator(model, {"file_delete": file_delete}, confirmation=confirmation)

        async def press_kill_switch():
            await confirmation.waiting.wait()
            orchestrator.stop()

        stopper = asyncio.create_task(press_kill_switch())
        turn = await orchestrator.run_turn("delete")
        await stopper

        assert turn.outcome is TurnOutcome.STOPPED
        assert file_delete.calls == []
        assert turn.reply == "Stopped. No actions were applied."

    @pytest.mark.asyncio
    async def test_stop_during_model_request(self, make_orchestrator):
        model = BlockingModelClient(reply("never"))
        orchestrator = make_orchestrator(model)

        async def press_kill_switch():
            await model.entered.wait()
            orchestrator.stop()

        stopper = asyncio.create_task(press_kill_switch())
        turn = await orchestrator.run_turn("hi")
        await stopper

        assert turn.outcome is TurnOutcome.STOPPED
        assert turn.reply == "Stopped. No actions were applied."

    @pytest.mark.asyncio
    async def test_token_resets_for_next_turn(self, make_orchestrator):
        model = ScriptedModelClient(reply("ok"))
        orchestrator = make_orchestrator(model)
        orchestrator.stop()
        orchestrator.stop()

        turn = await orchestrator.run_turn("hi")

        assert turn.outcome is TurnOutcome.COMPLETED


class TestUiTools:
    def build_selector(self, accessibility, monitor):
        keyboard = FakeKeyboard()
        strategies = [
            AccessibilityStrategy(accessibility),
            ShortcutStrategy(keyboard),
            VisionStrategy(FakeCapturer(), FakeLocator(), FakePointer(), keyboard, focus_delay=0),
        ]
        return ControlPathSelector(strategies, monitor, ForegroundLock(monitor, sleep=no_sleep))

    @pytest.mark.asyncio
    async def test_ui_tool_goes_through_selector(self, make_orchestrator):
        mail = AppIdentity("Mail", "com.apple.mail")
        accessibility = FakeAccessibility({"Mail": ax_tree("Mail", AXNode("@e2", "AXButton", "Compose"))})
        selector = self.build_selector(accessibility, FakeMonitor(mail))
        model = ScriptedModelClient(calls(("get_ui_state", {})), reply("Mail has a Compose button."))
        orchestrator = make_orchestrator(model, {}, selector=selector)

        turn = await orchestrator.run_turn("what's on screen?")

        outcome = turn.rounds[0].outcomes[0]
        assert outcome.success
        assert outcome.control_path is ControlPath.ACCESSIBILITY
        assert "@e2 AXButton" in outcome.payload
        assert turn.metrics.accessibility_calls == 1

    @pytest.mark.asyncio
    async def test_foreground_lock_failure_is_retryable_tool_failure(self, make_orchestrator):
        mail = AppIdentity("Mail", "com.apple.mail")
        finder = AppIdentity("Finder", "com.apple.finder")
        accessibility = FakeAccessibility({"Mail": ax_tree("Mail", AXNode("@e2", "AXTextArea", "Body"))})
        selector = self.build_selector(accessibility, FakeMonitor(finder, running=[mail], obey=False))
        keyboard_type = RecordingExecutor()
        model = ScriptedModelClient(
            calls(("get_ui_state", {"app": "Mail"})),
            calls(("keyboard_type", {"text": "Hello"})),
            reply("Mail would not come to the front."),
        )
        orchestrator = make_orchestrator(
            model, {"keyboard_type": keyboard_type}, level=2, scopes=(Scope("ui"),), selector=selector
        )

        turn = await orchestrator.run_turn("type hello in mail")

        assert keyboard_type.calls == []
        outcome = turn.rounds[1].outcomes[0]
        assert outcome.error_kind == "foreground_lock_failed"
        assert outcome.retryable
        assert turn.metrics.wrong_target_events == 1
        assert turn.outcome is TurnOutcome.COMPLETED


class TestAudit:
    @pytest.mark.asyncio
    async def test_jsonl_audit_of_a_turn(self, make_orchestrator, tmp_path):
        path = tmp_path / "audit" / "audit.jsonl"
        model = ScriptedModelClient(calls(("app_open", {"target": "Notes"})), reply("Opened Notes."))
        sink = JsonlAuditSink(path)
        orchestrator = make_orchestrator(model, {"app_open": RecordingExecutor()}, sink=sink)

        turn = await orchestrator.run_turn("open notes")
        sink.close()

        records = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
        assert [r["type"] for r in records] == ["action_outcome", "round", "turn"]
        assert records[-1]["turn_id"] == turn.id
        assert records[-1]["outcome"] == "completed"
        assert records[1]["proposed_actions"][0]["arguments"] == {"target": "Notes"}

    @pytest.mark.asyncio
    async def test_failing_sink_never_breaks_the_turn(self, make_orchestrator):
        class BrokenSink:
            def record(self, item):
                raise OSError("disk full")

        model = ScriptedModelClient(calls(("app_open", {"target": "Notes"})), reply("ok"))
        orchestrator = make_orchestrator(model, {"app_open": RecordingExecutor()}, sink=BrokenSink())

        turn = await orchestrator.run_turn("open notes")

        assert turn.outcome is TurnOutcome.COMPLETED
