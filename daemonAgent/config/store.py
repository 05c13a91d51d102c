"""Settings stores: where the autonomy level and scopes come from."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple

import yaml

from daemonAgent.models.enums import AutonomyLevel
from daemonAgent.models.turn import PolicySnapshot, Scope

LOGGER = logging.getLogger(__name__)


def snapshot_from(store) -> PolicySnapshot:
    """Freeze a store's current level and scopes for one round."""
    return PolicySnapshot(
        autonomy_level=AutonomyLevel.coerce(store.autonomy_level()),
        scopes=tuple(store.scopes()),
    )


def parse_scopes(raw: Any) -> Tuple[Scope, ...]:
    scopes: List[Scope] = []
    for entry in raw or []:
        if not isinstance(entry, dict) or not entry.get("capability"):
            LOGGER.warning("Ignoring malformed scope entry: %r", entry)
            continue
        path = entry.get("path")
        scopes.append(Scope(capability=str(entry["capability"]), path=str(path) if path else None))
    return tuple(scopes)


class StaticSettingsStore:
    """In-memory store, updated by the UI shell."""

    def __init__(self, autonomy_level: int = AutonomyLevel.AUTO_SAFE, scopes: Iterable[Scope] = ()):
        self._lock = threading.Lock()
        self._level = AutonomyLevel.coerce(autonomy_level)
        self._scopes: Tuple[Scope, ...] = tuple(scopes)

    def autonomy_level(self) -> AutonomyLevel:
        with self._lock:
            return self._level

    def scopes(self) -> Tuple[Scope, ...]:
        with self._lock:
            return self._scopes

    def set_autonomy_level(self, level: int) -> None:
        with self._lock:
            self._level = AutonomyLevel.coerce(level)

    def add_scope(self, scope: Scope) -> None:
        with self._lock:
            if scope not in self._scopes:
                self._scopes = self._scopes + (scope,)

    def remove_scope(self, scope: Scope) -> None:
        with self._lock:
            self._scopes = tuple(s for s in self._scopes if s != scope)


class YamlSettingsStore:
    """Policy file store, re-read when the file changes.

    File format::

        autonomy_level: 2
        scopes:
          - capability: files
            path: ~/Downloads
          - capability: ui
    """

    def __init__(self, path: Path | str, default_level: int = AutonomyLevel.AUTO_SAFE):
        self.path = Path(path).expanduser()
        self._default_level = AutonomyLevel.coerce(default_level)
        self._level = self._default_level
        self._scopes: Tuple[Scope, ...] = ()
        self._mtime: Optional[float] = None
        self._lock = threading.Lock()

    def _refresh(self) -> None:
        try:
            mtime = self.path.stat().st_mtime
        except FileNotFoundError:
            self._level, self._scopes, self._mtime = self._default_level, (), None
            return
        if mtime == self._mtime:
            return

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            LOGGER.warning("Failed to load policy file %s: %s (keeping previous settings)", self.path, e)
            return
        if not isinstance(data, dict):
            LOGGER.warning("Policy file %s is not a mapping; ignoring", self.path)
            return

        try:
            self._level = AutonomyLevel.coerce(data.get("autonomy_level", self._default_level))
        except (TypeError, ValueError):
            LOGGER.warning("Invalid autonomy_level in %s: %r", self.path, data.get("autonomy_level"))
            self._level = self._default_level
        self._scopes = parse_scopes(data.get("scopes"))
        self._mtime = mtime
        LOGGER.info("Loaded policy file %s: level=%d, %d scope(s)", self.path, self._level, len(self._scopes))

    def autonomy_level(self) -> AutonomyLevel:
        with self._lock:
            self._refresh()
            return self._level

    def scopes(self) -> Tuple[Scope, ...]:
        with self._lock:
            self._refresh()
            return self._scopes

    def save(self, level: int, scopes: Iterable[Scope]) -> None:
        payload = {
            "autonomy_level": int(AutonomyLevel.coerce(level)),
            "scopes": [
                {"capability": scope.capability, **({"path": scope.path} if scope.path else {})} for scope in scopes
            ],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(payload, f, sort_keys=False)
        with self._lock:
            self._mtime = None
