from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Protocol

from sync_loop.adapters.persistence import JsonObj, PathLike, append_jsonl, read_jsonl, rewrite_jsonl
from sync_loop.contracts import HoldRecord, StorageError

logger = logging.getLogger(__name__)

HOLD_RECORD_EVENT = "hold_record"
HOLD_REMOVED_EVENT = "hold_removed"
DEFAULT_COMPACT_THRESHOLD = 64


class HoldStateStore(Protocol):
    """Key-addressed store of hold records; the single source of truth for holds."""

    def put(self, record: HoldRecord) -> None:
        ...

    def get(self, session_id: str) -> HoldRecord | None:
        ...

    def remove(self, session_id: str) -> None:
        ...

    def session_ids(self) -> list[str]:
        """Sessions with a stored record, least recently written first."""
        ...


class InMemoryHoldStore:
    """Non-durable store for tests and fallback-timer mode."""

    def __init__(self) -> None:
        self._records: dict[str, HoldRecord] = {}
        self._lock = threading.Lock()

    def put(self, record: HoldRecord) -> None:
        with self._lock:
            self._records.pop(record.session_id, None)
            self._records[record.session_id] = record

    def get(self, session_id: str) -> HoldRecord | None:
        with self._lock:
            return self._records.get(session_id)

    def remove(self, session_id: str) -> None:
        with self._lock:
            self._records.pop(session_id, None)

    def session_ids(self) -> list[str]:
        with self._lock:
            return list(self._records)


class JsonlHoldStore:
    """
    Durable append-only hold store.

    Every put appends a full record row and every remove appends a tombstone.
    Reads replay the log and the last row per session wins, so a process that
    restarts sees exactly what was last written. Once more than
    `compact_threshold` rows are superseded the log is rewritten to its live
    rows, which keeps replay cost proportional to the live holds.
    """

    def __init__(self, path: PathLike, *, compact_threshold: int = DEFAULT_COMPACT_THRESHOLD) -> None:
        self.path = Path(path)
        self.compact_threshold = compact_threshold
        self._lock = threading.Lock()

    def put(self, record: HoldRecord) -> None:
        self._append({"event_kind": HOLD_RECORD_EVENT, **record.model_dump(mode="json")})

    def get(self, session_id: str) -> HoldRecord | None:
        return self._project().get(session_id)

    def remove(self, session_id: str) -> None:
        if session_id not in self._project():
            return
        self._append({"event_kind": HOLD_REMOVED_EVENT, "session_id": session_id})

    def session_ids(self) -> list[str]:
        return list(self._project())

    def compact(self) -> int:
        """Rewrite the log to one row per live record; returns the number of rows kept."""
        with self._lock:
            live, _ = self._replay()
            return self._rewrite(live)

    def _append(self, row: JsonObj) -> None:
        with self._lock:
            try:
                append_jsonl(self.path, row)
            except OSError as exc:
                logger.error("hold store write failed: %s", exc)
                raise StorageError(f"failed to write {self.path}: {exc}") from exc
            live, rows = self._replay()
            if rows - len(live) > self.compact_threshold:
                self._rewrite(live)

    def _rewrite(self, live: dict[str, HoldRecord]) -> int:
        rows = [{"event_kind": HOLD_RECORD_EVENT, **r.model_dump(mode="json")} for r in live.values()]
        try:
            rewrite_jsonl(self.path, rows)
        except OSError as exc:
            raise StorageError(f"failed to compact {self.path}: {exc}") from exc
        logger.info("compacted hold store %s to %d records", self.path, len(rows))
        return len(rows)

    def _project(self) -> dict[str, HoldRecord]:
        with self._lock:
            return self._replay()[0]

    def _replay(self) -> tuple[dict[str, HoldRecord], int]:
        if not self.path.exists():
            return {}, 0
        records: dict[str, HoldRecord] = {}
        rows = 0
        try:
            for meta, raw in read_jsonl(self.path):
                rows += 1
                kind = raw.pop("event_kind", None)
                if kind == HOLD_REMOVED_EVENT:
                    records.pop(str(raw.get("session_id")), None)
                elif kind == HOLD_RECORD_EVENT:
                    record = HoldRecord.model_validate(raw)
                    # re-insert so ordering follows the latest write
                    records.pop(record.session_id, None)
                    records[record.session_id] = record
                else:
                    raise StorageError(f"unknown event kind {kind!r} at {meta['path']}:{meta['lineno']}")
        except (OSError, ValueError) as exc:
            # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
            logger.error("hold store read failed: %s", exc)
            raise StorageError(f"failed to read {self.path}: {exc}") from exc
        return records, rows


__all__ = [
    "HoldStateStore",
    "InMemoryHoldStore",
    "JsonlHoldStore",
    "HOLD_RECORD_EVENT",
    "HOLD_REMOVED_EVENT",
    "DEFAULT_COMPACT_THRESHOLD",
]
