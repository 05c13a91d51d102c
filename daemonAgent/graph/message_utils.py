"""Utilities for preparing conversation history and user input."""

from __future__ import annotations

from typing import List, Sequence, Set

from langchain_core.messages import AIMessage, BaseMessage, ToolMessage

from daemonAgent.hitl.sanitizer import has_control_characters


def clean_message_history(messages: Sequence[BaseMessage]) -> List[BaseMessage]:
    """Drop AI messages whose tool calls were never answered, and orphaned tool results.

    Chat APIs reject an AI message with tool_calls that is not followed by
    a ToolMessage for every call id, and a ToolMessage without its call.
    """
    answered: Set[str] = {m.tool_call_id for m in messages if isinstance(m, ToolMessage) and m.tool_call_id}

    cleaned: List[BaseMessage] = []
    issued: Set[str] = set()
    for msg in messages:
        if isinstance(msg, AIMessage) and msg.tool_calls:
            ids = [call.get("id") for call in msg.tool_calls]
            if any(call_id and call_id not in answered for call_id in ids):
                continue
            issued.update(call_id for call_id in ids if call_id)
        elif isinstance(msg, ToolMessage) and msg.tool_call_id not in issued:
            continue
        cleaned.append(msg)
    return cleaned


def recent_history(messages: Sequence[BaseMessage], keep: int) -> List[BaseMessage]:
    """Last ``keep`` messages, never starting in the middle of a tool exchange."""
    if keep <= 0:
        return []
    window = list(messages)[-keep:]
    while window and isinstance(window[0], ToolMessage):
        window.pop(0)
    return clean_message_history(window)


def sanitize_user_input(text: str, max_chars: int = 4000) -> str:
    """Strip control characters (keeping tab and newlines) and cap the length."""
    if has_control_characters(text):
        text = "".join(ch for ch in text if not has_control_characters(ch))
    text = text.strip()
    if len(text) > max_chars:
        text = text[:max_chars]
    return text
