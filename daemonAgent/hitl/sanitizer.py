"""Argument sanitation run before any tier logic."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Tuple
from urllib.parse import unquote

_TRAVERSAL = re.compile(r"(^|[\\/])\.\.([\\/]|$)")
_ALLOWED_CONTROL = frozenset("\t\n\r")


@dataclass(frozen=True)
class SanitationFailure:
    """Why an argument was rejected."""

    key: str
    problem: str

    def describe(self) -> str:
        return f"argument '{self.key}' {self.problem}"


def has_control_characters(value: str) -> bool:
    return any((ord(ch) < 32 and ch not in _ALLOWED_CONTROL) or ord(ch) == 127 for ch in value)


def has_path_traversal(value: str) -> bool:
    if _TRAVERSAL.search(value):
        return True
    decoded = unquote(value)
    return decoded != value and bool(_TRAVERSAL.search(decoded))


def _walk(value: Any, key: str) -> Iterator[Tuple[str, str]]:
    if isinstance(value, str):
        yield key, value
    elif isinstance(value, dict):
        for sub_key, sub_value in value.items():
            yield from _walk(sub_value, f"{key}.{sub_key}" if key else str(sub_key))
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield from _walk(item, f"{key}[{index}]")


def check_arguments(arguments: Any) -> Optional[SanitationFailure]:
    """Return the first failing argument, or None when every string is clean."""
    for key, text in _walk(dict(arguments), ""):
        if has_control_characters(text) or has_control_characters(unquote(text)):
            return SanitationFailure(key, "contains control characters")
        if has_path_traversal(text):
            return SanitationFailure(key, "contains a path traversal ('..') segment")
    return None
