"""Audit sinks: append-only records of turns, rounds and action outcomes."""

from __future__ import annotations

import json
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, TextIO

from daemonAgent.models.enums import TurnOutcome

LOGGER = logging.getLogger(__name__)


def _stamp(item: Mapping[str, Any]) -> Dict[str, Any]:
    record = dict(item)
    record.setdefault("recorded_at", time.time())
    return record


class MemoryAuditSink:
    """Keeps records in a list. Used by tests and the UI's live activity view."""

    def __init__(self) -> None:
        self.records: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def record(self, item: Mapping[str, Any]) -> None:
        with self._lock:
            self.records.append(_stamp(item))

    def of_type(self, record_type: str) -> List[Dict[str, Any]]:
        with self._lock:
            return [r for r in self.records if r.get("type") == record_type]


class JsonlAuditSink:
    """One JSON object per line, appended by a single writer thread.

    ``record`` only queues the line, so a slow disk never stalls the event
    loop. The file is opened once and kept open. Write errors are logged,
    never raised.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="audit-writer")
        self._file: Optional[TextIO] = None
        self._failed = False

    def record(self, item: Mapping[str, Any]) -> None:
        line = json.dumps(_stamp(item), ensure_ascii=False, default=str)
        self._writer.submit(self._write, line)

    def _write(self, line: str) -> None:
        try:
            if self._file is None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._file = open(self.path, "a", encoding="utf-8")
            self._file.write(line + "\n")
            self._file.flush()
            self._failed = False
        except OSError as e:
            if not self._failed:
                LOGGER.warning("Audit write to %s failed: %s", self.path, e)
            self._failed = True

    def flush(self) -> None:
        """Block until every queued record has been written."""
        self._writer.submit(lambda: None).result()

    def close(self) -> None:
        self._writer.shutdown(wait=True)
        if self._file is not None:
            self._file.close()
            self._file = None


def build_audit_sink(path: Optional[str]):
    """JSONL sink at ``path``, or an in-memory sink when no path is configured."""
    if path:
        return JsonlAuditSink(path)
    return MemoryAuditSink()


class AuditTrail:
    """Typed records on top of any sink. A failing sink never reaches the caller."""

    def __init__(self, sink=None):
        self.sink = sink

    def _emit(self, item: Dict[str, Any]) -> None:
        if self.sink is None:
            return
        try:
            self.sink.record(item)
        except Exception as e:
            LOGGER.warning("Audit sink %s failed on %s record: %s", type(self.sink).__name__, item.get("type"), e)

    def close(self) -> None:
        """Drain and close the sink, if it holds a file."""
        close = getattr(self.sink, "close", None)
        if close is not None:
            close()

    def outcome(self, turn_id: str, round_index: int, outcome) -> None:
        self._emit({"type": "action_outcome", "turn_id": turn_id, "round": round_index, **outcome.to_record()})

    def round(self, turn_id: str, round_) -> None:
        self._emit({"type": "round", "turn_id": turn_id, **round_.to_record()})

    def turn(self, turn) -> None:
        record = {"type": "turn", **turn.to_record()}
        if turn.outcome is TurnOutcome.STOPPED:
            committed = turn.committed_outcomes()
            record["rollback"] = "none"
            record["not_rolled_back"] = [
                {"action_id": o.action_id, "tool": o.tool, "payload": o.to_record()["payload"]} for o in committed
            ]
        self._emit(record)
