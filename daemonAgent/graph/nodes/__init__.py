"""Graph nodes of the turn loop."""

from .execute import build_execute_node
from .respond import build_respond_node
from .understand import build_understand_node

__all__ = [
    "build_execute_node",
    "build_respond_node",
    "build_understand_node",
]
