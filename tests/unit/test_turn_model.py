"""
Unit tests for turn records, phase transitions, metrics and message preparation.
"""

import pytest
from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from daemonAgent.graph.message_utils import clean_message_history, recent_history, sanitize_user_input
from daemonAgent.graph.prompts import build_system_prompt
from daemonAgent.models.enums import AutonomyLevel, ControlPath, TurnOutcome, TurnPhase
from daemonAgent.models.metrics import TurnMetrics
from daemonAgent.models.turn import ActionOutcome, ProposedAction, RequestSnapshot, Round, Turn, can_transition
from daemonAgent.utils.error_handler import InvalidTransition, PolicyDenied, ToolExecutionFailed


def tool_call(call_id, name="app_open"):
    return {"name": name, "args": {}, "id": call_id}


class TestTurnPhases:
    def test_happy_path(self):
        turn = Turn(user_input="open Safari")
        for phase in (
            TurnPhase.UNDERSTANDING,
            TurnPhase.PLANNING,
            TurnPhase.EXECUTING,
            TurnPhase.VERIFYING,
            TurnPhase.UNDERSTANDING,
            TurnPhase.PLANNING,
            TurnPhase.RESPONDING,
        ):
            turn.transition(phase)
        assert turn.phase is TurnPhase.RESPONDING

    def test_transition_returns_previous_phase(self):
        turn = Turn(user_input="x")
        assert turn.transition(TurnPhase.UNDERSTANDING) is TurnPhase.IDLE

    @pytest.mark.parametrize(
        "current,target",
        [
            (TurnPhase.IDLE, TurnPhase.EXECUTING),
            (TurnPhase.UNDERSTANDING, TurnPhase.RESPONDING),
            (TurnPhase.EXECUTING, TurnPhase.UNDERSTANDING),
            (TurnPhase.FAILED, TurnPhase.STOPPED),
            (TurnPhase.STOPPED, TurnPhase.FAILED),
        ],
    )
    def test_invalid_transitions(self, current, target):
        assert not can_transition(current, target)
        turn = Turn(user_input="x", phase=current)
        with pytest.raises(InvalidTransition):
            turn.transition(target)
        assert turn.phase is current

    @pytest.mark.parametrize("phase", [TurnPhase.IDLE, TurnPhase.PLANNING, TurnPhase.EXECUTING, TurnPhase.VERIFYING])
    def test_any_live_phase_can_stop_or_fail(self, phase):
        assert can_transition(phase, TurnPhase.STOPPED)
        assert can_transition(phase, TurnPhase.FAILED)


class TestTurnRecords:
    def _turn(self):
        turn = Turn(user_input="clean up")
        round_ = Round(index=1, request=RequestSnapshot(2, ("file_write", "file_delete"), AutonomyLevel.AUTO_SAFE))
        write = ProposedAction.create("file_write", {"path": "/tmp/a", "content": "x"}, 1, id="call_w")
        delete = ProposedAction.create("file_delete", {"path": "/tmp/b"}, 1, id="call_d")
        round_.proposed_actions.extend([write, delete])
        round_.outcomes.append(ActionOutcome.succeeded(write, "Wrote 1 byte", duration=0.2))
        round_.outcomes.append(ActionOutcome.failed(delete, PolicyDenied("no", user_message="Denied by policy.")))
        turn.rounds.append(round_)
        return turn

    def test_proposed_action_arguments_are_read_only(self):
        action = ProposedAction.create("app_open", {"target": "Mail"}, 1)
        assert action.id.startswith("call_")
        with pytest.raises(TypeError):
            action.arguments["target"] = "Safari"

    def test_committed_outcomes(self):
        turn = self._turn()
        assert [o.tool for o in turn.committed_outcomes()] == ["file_write"]
        assert turn.current_round.index == 1

    def test_close_and_record(self):
        turn = self._turn()
        assert not turn.is_closed
        turn.close(TurnOutcome.COMPLETED, "Cleaned up.")

        record = turn.to_record()
        assert turn.is_closed
        assert record["outcome"] == "completed"
        assert record["reply"] == "Cleaned up."
        assert record["failure_kind"] is None
        assert record["finished_at"] is not None
        outcomes = record["rounds"][0]["outcomes"]
        assert outcomes[0]["side_effect_committed"] is True
        assert outcomes[1]["error_kind"] == "policy_denied"
        assert record["rounds"][0]["proposed_actions"][1]["arguments"] == {"path": "/tmp/b"}

    def test_failure_is_recorded(self):
        turn = Turn(user_input="x")
        turn.close(TurnOutcome.FAILED, "Failed: boom", ToolExecutionFailed("boom", user_message="It broke."))
        record = turn.to_record()
        assert record["failure_kind"] == "tool_execution_failed"
        assert record["failure_reason"] == "It broke."
        assert not turn.metrics.success


class TestActionOutcome:
    def test_success_renders_payload(self):
        action = ProposedAction.create("app_open", {"target": "Mail"}, 1, id="call_1")
        outcome = ActionOutcome.succeeded(action, "Opened Mail", duration=0.1, control_path=ControlPath.ACCESSIBILITY)
        message = outcome.to_tool_message()
        assert isinstance(message, ToolMessage)
        assert message.content == "Opened Mail"
        assert message.tool_call_id == "call_1"
        assert message.status == "success"
        assert outcome.to_record()["control_path"] == "accessibility"

    def test_retryable_failure_suggests_another_approach(self):
        action = ProposedAction.create("app_open", {"target": "Nope"}, 1, id="call_2")
        outcome = ActionOutcome.failed(action, ToolExecutionFailed("x", user_message="No such app."))
        assert outcome.render() == "Error (tool_execution_failed): No such app. You may try a different approach."
        assert outcome.to_tool_message().status == "error"

    def test_non_retryable_failure(self):
        action = ProposedAction.create("app_open", {}, 1)
        outcome = ActionOutcome.failed(action, ToolExecutionFailed("x", user_message="Gone.", retryable=False))
        assert outcome.render() == "Error (tool_execution_failed): Gone."

    def test_non_scalar_payload_recorded_as_text(self):
        action = ProposedAction.create("system_info", {}, 1)
        outcome = ActionOutcome.succeeded(action, {"battery": 80}, duration=0)
        assert outcome.to_record()["payload"] == "{'battery': 80}"


class TestTurnMetrics:
    def test_counts_by_control_path_and_tool(self):
        metrics = TurnMetrics()
        metrics.record_tool_call("computer_action", ControlPath.ACCESSIBILITY)
        metrics.record_tool_call("computer_action", ControlPath.VISION)
        metrics.record_tool_call("computer_action", ControlPath.SHORTCUT)
        metrics.record_tool_call("get_ui_state")
        metrics.record_tool_call("screen_capture")
        metrics.record_tool_call("app_open")
        metrics.record_wrong_target()
        metrics.finish()

        assert metrics.total_tool_calls == 6
        assert metrics.accessibility_calls == 2
        assert metrics.vision_calls == 2
        assert metrics.shortcut_calls == 1
        assert metrics.summary().endswith("| 6 tools (2 AX, 2 vision) | 1 wrong-target]")

    def test_empty_summary(self):
        metrics = TurnMetrics()
        metrics.finish(success=False)
        assert "0 tools" in metrics.summary()
        assert "no wrong-target" in metrics.summary()
        assert not metrics.success


class TestMessageUtils:
    def test_unanswered_tool_calls_are_dropped(self):
        messages = [
            HumanMessage(content="hi"),
            AIMessage(content="", tool_calls=[tool_call("a"), tool_call("b")]),
            ToolMessage(content="ok", tool_call_id="a"),
            AIMessage(content="answer"),
        ]
        cleaned = clean_message_history(messages)
        assert [type(m).__name__ for m in cleaned] == ["HumanMessage", "AIMessage"]
        assert cleaned[1].content == "answer"

    def test_answered_exchange_is_kept(self):
        messages = [
            AIMessage(content="", tool_calls=[tool_call("a")]),
            ToolMessage(content="ok", tool_call_id="a"),
            ToolMessage(content="stray", tool_call_id="zzz"),
        ]
        cleaned = clean_message_history(messages)
        assert len(cleaned) == 2
        assert cleaned[1].content == "ok"

    def test_recent_history_never_starts_with_tool_result(self):
        messages = [
            HumanMessage(content="one"),
            AIMessage(content="", tool_calls=[tool_call("a")]),
            ToolMessage(content="ok", tool_call_id="a"),
            AIMessage(content="two"),
        ]
        assert [m.content for m in recent_history(messages, 2)] == ["two"]
        assert recent_history(messages, 0) == []
        assert len(recent_history(messages, 10)) == 4

    def test_sanitize_user_input(self):
        assert sanitize_user_input("  open\x1b Safari\x00\n") == "open Safari"
        assert sanitize_user_input("line one\nline\ttwo") == "line one\nline\ttwo"
        assert sanitize_user_input("x" * 500, max_chars=100) == "x" * 100


class TestPrompts:
    @pytest.mark.parametrize("level", list(AutonomyLevel))
    def test_prompt_mentions_autonomy_and_date(self, level):
        prompt = build_system_prompt(level)
        assert "Autonomy:" in prompt
        assert "<current_datetime>" in prompt

    def test_confirm_all_note(self):
        assert "approval" in build_system_prompt(AutonomyLevel.CONFIRM_ALL).split("Autonomy:")[1]

    def test_custom_base_prompt(self):
        assert build_system_prompt(AutonomyLevel.AUTO_SAFE, base_prompt="Be terse.").startswith("Be terse.")
