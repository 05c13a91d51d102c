"""Turn-loop graph: state, nodes, routing and assembly."""

from .builder import build_turn_graph
from .message_utils import clean_message_history, recent_history, sanitize_user_input
from .prompts import COMPANION_SYSTEM_PROMPT, build_system_prompt
from .routing import understand_route
from .state import TurnState

__all__ = [
    "COMPANION_SYSTEM_PROMPT",
    "TurnState",
    "build_system_prompt",
    "build_turn_graph",
    "clean_message_history",
    "recent_history",
    "sanitize_user_input",
    "understand_route",
]
