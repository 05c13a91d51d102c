"""Error taxonomy and model-error classification for the orchestration core."""

from __future__ import annotations

import asyncio
import logging
from typing import Literal, Optional

LOGGER = logging.getLogger(__name__)

BudgetKind = Literal["rounds", "time"]


class DaemonAgentError(Exception):
    """Base exception for daemonAgent errors.

    ``user_message`` is the plain-language text surfaced in tool results and
    final replies; ``message`` keeps the technical detail for logs.
    """

    error_kind = "error"

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        self.user_message = user_message or message


class PolicyDenied(DaemonAgentError):
    """The policy gate refused the action outright."""

    error_kind = "policy_denied"


class ConfirmationDenied(DaemonAgentError):
    """The user declined a confirmation prompt."""

    error_kind = "confirmation_denied"


class ToolExecutionFailed(DaemonAgentError):
    """A tool executor reported or raised a failure."""

    error_kind = "tool_execution_failed"

    def __init__(self, message: str, user_message: Optional[str] = None, *, retryable: bool = True):
        super().__init__(message, user_message)
        self.retryable = retryable


class ForegroundLockFailed(DaemonAgentError):
    """The target application could not be verified as frontmost."""

    error_kind = "foreground_lock_failed"


class ModelClientError(DaemonAgentError):
    """A model request failed in a way that may succeed on retry."""

    error_kind = "model_client_error"

    def __init__(self, message: str, user_message: Optional[str] = None, *, retryable: bool = True):
        super().__init__(message, user_message)
        self.retryable = retryable


class ModelClientUnavailable(DaemonAgentError):
    """Authentication or availability failure of the model client itself."""

    error_kind = "model_client_unavailable"


class BudgetExceeded(DaemonAgentError):
    """Round or wall-clock budget of a turn ran out."""

    error_kind = "budget_exceeded"

    def __init__(self, kind: BudgetKind, message: str, user_message: Optional[str] = None):
        super().__init__(message, user_message)
        self.kind = kind


class Cancelled(DaemonAgentError):
    """The kill switch fired."""

    error_kind = "cancelled"

    def __init__(self, message: str = "Stopped by kill switch.", user_message: Optional[str] = None):
        super().__init__(message, user_message or "Stopped.")


class ArgumentValidationError(DaemonAgentError):
    """Tool arguments do not match the declared schema."""

    error_kind = "invalid_arguments"


class InvalidTransition(DaemonAgentError):
    """A turn was asked to move between phases that are not connected."""

    error_kind = "invalid_transition"


class TurnInProgress(DaemonAgentError):
    """A second turn was started while one is still running."""

    error_kind = "turn_in_progress"


_AUTH_MARKERS = ("invalid_api_key", "authentication", "unauthorized", "401", "403", "permission denied")
_UNAVAILABLE_MARKERS = ("quota", "insufficient", "service unavailable", "503", "connection refused", "not configured")
_RETRYABLE_MARKERS = ("rate_limit", "rate limit", "429", "timeout", "timed out", "overloaded", "529", "502", "temporarily")


def classify_model_error(error: BaseException) -> DaemonAgentError:
    """Convert a raw model-client exception into the error taxonomy.

    Args:
        error: Exception raised by the underlying chat model client

    Returns:
        ModelClientUnavailable for authentication/availability problems,
        otherwise a ModelClientError flagged retryable or not.
    """
    if isinstance(error, DaemonAgentError):
        return error

    error_str = str(error).lower()
    type_name = type(error).__name__.lower()

    if any(marker in error_str for marker in _AUTH_MARKERS) or "authentication" in type_name:
        return ModelClientUnavailable(str(error), user_message="The model API key is invalid or missing.")

    if any(marker in error_str for marker in _UNAVAILABLE_MARKERS):
        return ModelClientUnavailable(str(error), user_message=f"The model service is unavailable: {error}")

    if isinstance(error, (TimeoutError, asyncio.TimeoutError)) or any(marker in error_str for marker in _RETRYABLE_MARKERS):
        return ModelClientError(str(error), user_message="The model is busy or did not respond in time.", retryable=True)

    if "context_length" in error_str or "too many tokens" in error_str:
        return ModelClientError(
            str(error),
            user_message="The conversation is too long for the model. Start a new conversation.",
            retryable=False,
        )

    return ModelClientError(str(error), user_message=f"Model request failed: {error}", retryable=False)
