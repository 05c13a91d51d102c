"""Scope matching on normalised filesystem paths."""

from __future__ import annotations

import os
from typing import Callable, Iterable, Optional

from daemonAgent.models.turn import Scope

PathResolver = Callable[[str], str]


def normalize_path(path: str) -> str:
    """Expand ``~``, make absolute, collapse ``..`` and resolve symlinks."""
    return os.path.realpath(os.path.expanduser(path))


def path_within(candidate: str, root: str) -> bool:
    """Exact match or prefix followed by a separator. Both sides already normalised."""
    if candidate == root:
        return True
    prefix = root if root.endswith(os.sep) else root + os.sep
    return candidate.startswith(prefix)


def find_scope(
    capability: str,
    target: Optional[str],
    scopes: Iterable[Scope],
    resolve_path: PathResolver = normalize_path,
) -> Optional[Scope]:
    """Return the scope that authorises ``target`` for ``capability``.

    With ``target=None`` only a capability-wide scope (``path=None``)
    matches; a capability-wide scope never covers a path target.
    """
    resolved = resolve_path(target) if target is not None else None
    for scope in scopes:
        if scope.capability != capability:
            continue
        if target is None:
            if scope.path is None:
                return scope
            continue
        if scope.path is None:
            continue
        if path_within(resolved, resolve_path(scope.path)):
            return scope
    return None
