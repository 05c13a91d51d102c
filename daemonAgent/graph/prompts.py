"""System instructions for the turn loop."""

from datetime import datetime, timezone

from daemonAgent.models.enums import AutonomyLevel

COMPANION_SYSTEM_PROMPT = """You are a desktop companion that controls this computer by calling tools.
Take action instead of describing what the user could do.

Rules:
- Use get_ui_state before interacting with an app's interface, then prefer ax_action with the returned refs.
- Use computer_action only when no ref fits; describe the target element precisely.
- If a tool result starts with "Error", read the reason and try a different approach or explain the problem.
- Some actions need the user's approval. If the user declines, do not retry the same action.
- When the task is done, reply briefly with what you did. Do not call more tools."""

_AUTONOMY_NOTES = {
    AutonomyLevel.CONFIRM_ALL: "Every action will be shown to the user for approval.",
    AutonomyLevel.AUTO_SAFE: "Read-only actions run automatically; anything that changes state needs approval.",
    AutonomyLevel.SCOPED_AUTO: "Actions inside the user's approved scopes run automatically.",
    AutonomyLevel.FULLY_AUTO: "Actions inside the user's approved scopes run automatically.",
}


def get_current_datetime_tag() -> str:
    now = datetime.now(timezone.utc)
    return f"<current_datetime>{now.strftime('%Y-%m-%d %H:%M UTC')}</current_datetime>"


def build_system_prompt(autonomy_level: AutonomyLevel, base_prompt: str = COMPANION_SYSTEM_PROMPT) -> str:
    note = _AUTONOMY_NOTES[AutonomyLevel.coerce(autonomy_level)]
    return f"{base_prompt}\n\nAutonomy: {note}\n\n{get_current_datetime_tag()}"
