"""Logging utilities for daemonAgent."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

PACKAGE_LOGGER = "daemonAgent"


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """Setup logging configuration for daemonAgent.

    Args:
        level: Console logging level (default: INFO; file handler always logs DEBUG)
        log_dir: Directory for the session log file (default: ./logs)

    Returns:
        Configured logger instance
    """
    logs_dir = Path(log_dir) if log_dir else Path("logs")
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / f"daemon_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG)  # Children filter through handlers
    logger.propagate = False

    logger.handlers = []

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(max(level, logging.WARNING))
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    logger.info("=" * 80)
    logger.info("daemonAgent session started")
    logger.info(f"Log file: {log_file}")
    logger.info("=" * 80)

    return logger


def _truncate(text: str, max_length: int) -> str:
    if len(text) > max_length:
        return text[:max_length] + "... (truncated)"
    return text


def log_phase_transition(logger: logging.Logger, turn_id: str, from_phase: str, to_phase: str) -> None:
    """Log a turn phase transition.

    Args:
        logger: Logger instance
        turn_id: Turn identifier
        from_phase: Phase being left
        to_phase: Phase being entered
    """
    logger.info(f"Turn {turn_id[:8]}: {from_phase} → {to_phase}")


def log_tool_call(logger: logging.Logger, tool_name: str, args: Dict[str, Any], max_length: int = 500) -> None:
    """Log tool invocation.

    Args:
        logger: Logger instance
        tool_name: Name of the tool being called
        args: Tool arguments
        max_length: Truncation limit for the argument dump
    """
    logger.info(f"Tool call: {tool_name}")
    dumped = json.dumps(args, ensure_ascii=False, indent=2, default=str)
    logger.debug(f"  Arguments: {_truncate(dumped, max_length)}")


def log_tool_result(
    logger: logging.Logger,
    tool_name: str,
    result: Any,
    success: bool = True,
    control_path: Optional[str] = None,
) -> None:
    """Log tool execution result.

    Args:
        logger: Logger instance
        tool_name: Name of the tool
        result: Tool execution result
        success: Whether the tool executed successfully
        control_path: Strategy used for UI-interaction tools
    """
    status = "✓ Success" if success else "✗ Failed"
    suffix = f" via {control_path}" if control_path else ""
    logger.info(f"Tool result: {tool_name} - {status}{suffix}")
    logger.debug(f"  Result: {_truncate(str(result), 500)}")


def log_policy_verdict(logger: logging.Logger, tool_name: str, verdict: str, reason: str = "") -> None:
    """Log a policy gate verdict."""
    logger.info(f"Policy verdict for {tool_name}: {verdict}")
    if reason:
        logger.debug(f"  Reason: {reason}")


def log_routing_decision(logger: logging.Logger, from_node: str, decision: str, reason: str = "") -> None:
    """Log routing decision.

    Args:
        logger: Logger instance
        from_node: Source node making the decision
        decision: Routing destination
        reason: Reason for the routing decision
    """
    logger.info(f"Routing decision from {from_node}: → {decision}")
    if reason:
        logger.info(f"  → Reason: {reason}")


def log_error(logger: logging.Logger, error: BaseException, context: str = "") -> None:
    """Log error with context.

    Args:
        logger: Logger instance
        error: Exception instance
        context: Additional context about where the error occurred
    """
    logger.error(f"Error occurred: {type(error).__name__}: {str(error)}")
    if context:
        logger.error(f"  Context: {context}")
    logger.debug("Full traceback:", exc_info=error)


def log_user_message(logger: logging.Logger, content: str) -> None:
    """Log user input."""
    logger.info(f"User input: {content[:100]}{'...' if len(content) > 100 else ''}")


def log_agent_response(logger: logging.Logger, content: str) -> None:
    """Log agent response."""
    logger.info(f"Agent response: {content[:100]}{'...' if len(content) > 100 else ''}")


def log_node_entry(logger: logging.Logger, node_name: str, state: Dict[str, Any]) -> None:
    """Log node entry with a compact state snapshot.

    Args:
        logger: Logger instance
        node_name: Name of the node being entered
        state: Current graph state
    """
    turn = state.get("turn")
    rounds = len(turn.rounds) if turn is not None else 0
    logger.debug(f"# ENTERING NODE: {node_name}")
    logger.debug(f"  - rounds: {rounds}/{state.get('max_rounds')}")
    logger.debug(f"  - messages: {len(state.get('messages', []))}")
    logger.debug(f"  - pending actions: {len(state.get('proposed_actions', []))}")


def log_node_exit(logger: logging.Logger, node_name: str, updates: Dict[str, Any]) -> None:
    """Log node exit with state updates."""
    logger.debug(f"# EXITING NODE: {node_name}")
    for key, value in updates.items():
        if key == "messages":
            logger.debug(f"  - messages: +{len(value)} new messages")
        elif isinstance(value, list):
            logger.debug(f"  - {key}: {len(value)} item(s)")
        else:
            logger.debug(f"  - {key}: {value}")
