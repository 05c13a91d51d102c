"""Policy gate, argument sanitation and scope matching."""

from .policy_gate import PolicyGate
from .sanitizer import SanitationFailure, check_arguments, has_control_characters, has_path_traversal
from .scopes import find_scope, normalize_path, path_within

__all__ = [
    "PolicyGate",
    "SanitationFailure",
    "check_arguments",
    "find_scope",
    "has_control_characters",
    "has_path_traversal",
    "normalize_path",
    "path_within",
]
