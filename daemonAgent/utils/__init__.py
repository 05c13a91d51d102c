"""Utility helpers shared across daemonAgent."""

from .error_handler import (
    ArgumentValidationError,
    BudgetExceeded,
    Cancelled,
    ConfirmationDenied,
    DaemonAgentError,
    ForegroundLockFailed,
    InvalidTransition,
    ModelClientError,
    ModelClientUnavailable,
    PolicyDenied,
    ToolExecutionFailed,
    TurnInProgress,
    classify_model_error,
)

__all__ = [
    "ArgumentValidationError",
    "BudgetExceeded",
    "Cancelled",
    "ConfirmationDenied",
    "DaemonAgentError",
    "ForegroundLockFailed",
    "InvalidTransition",
    "ModelClientError",
    "ModelClientUnavailable",
    "PolicyDenied",
    "ToolExecutionFailed",
    "TurnInProgress",
    "classify_model_error",
]
