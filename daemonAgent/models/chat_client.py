"""LangChain chat-model adapter for the ModelClient contract."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, SystemMessage
from langchain_openai import ChatOpenAI

from daemonAgent.config.settings import ModelSettings
from daemonAgent.interfaces import ModelResponse, ToolCallRequest, TurnContext
from daemonAgent.utils.error_handler import ModelClientUnavailable, classify_model_error

LOGGER = logging.getLogger(__name__)


def _text_segments(content: Any) -> Tuple[str, ...]:
    if isinstance(content, str):
        return (content,) if content.strip() else ()
    segments: List[str] = []
    for block in content or []:
        if isinstance(block, str) and block.strip():
            segments.append(block)
        elif isinstance(block, dict) and block.get("type") == "text" and str(block.get("text", "")).strip():
            segments.append(block["text"])
    return tuple(segments)


def response_from_message(message: BaseMessage) -> ModelResponse:
    """Split an AIMessage into text segments and tool-call requests."""
    calls: List[ToolCallRequest] = []
    for call in getattr(message, "tool_calls", None) or []:
        calls.append(ToolCallRequest(name=call["name"], arguments=dict(call.get("args") or {}), id=call.get("id")))
    for call in getattr(message, "invalid_tool_calls", None) or []:
        calls.append(
            ToolCallRequest(
                name=call.get("name") or "unknown",
                arguments={},
                id=call.get("id"),
                parse_error=call.get("error") or f"Could not parse arguments: {call.get('args')}",
            )
        )
    return ModelResponse(text_segments=_text_segments(message.content), tool_calls=tuple(calls))


class ChatModelClient:
    """Adapts any LangChain ``BaseChatModel`` with tool calling."""

    def __init__(self, model: BaseChatModel):
        self._model = model
        self._bound: Dict[Tuple[str, ...], Any] = {}

    def _runnable(self, tool_schemas: Tuple[Dict[str, Any], ...]):
        if not tool_schemas:
            return self._model
        key = tuple(schema["function"]["name"] for schema in tool_schemas)
        if key not in self._bound:
            self._bound[key] = self._model.bind_tools(list(tool_schemas))
        return self._bound[key]

    async def send(self, context: TurnContext) -> ModelResponse:
        messages = [SystemMessage(content=context.system_prompt), *context.messages]
        runnable = self._runnable(context.tool_schemas)
        try:
            reply = await runnable.ainvoke(messages)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = classify_model_error(exc)
            LOGGER.warning("Model request failed (round %d): %s", context.round_index, exc)
            raise error from exc
        return response_from_message(reply)


def build_chat_model(settings: ModelSettings, timeout: Optional[float] = None) -> BaseChatModel:
    """ChatOpenAI for any OpenAI-compatible endpoint. Retries are left to the orchestrator."""
    if not settings.api_key:
        raise ModelClientUnavailable(
            f"No API key configured for model {settings.chat_model}",
            user_message="No model API key is configured. Set MODEL_API_KEY in .env.",
        )
    kwargs: Dict[str, object] = {
        "model": settings.chat_model,
        "api_key": settings.api_key,
        "temperature": settings.temperature,
        "max_retries": 0,
    }
    if settings.base_url:
        kwargs["base_url"] = settings.base_url
    if timeout:
        kwargs["timeout"] = timeout
    return ChatOpenAI(**kwargs)
