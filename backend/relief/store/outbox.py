# relief/store/outbox.py
"""
Durable FIFO outbox with bounded retry attempts.

Work that failed to reach its destination (today: audit-log rows the database
refused) is parked here and replayed later by `drain()`.

Entry lifecycle:
    pending --drain ok--> (deleted)
    pending --drain error--> failed (attempts += 1)
    failed  --drain ok--> (deleted)
    failed with attempts >= max_attempts --> skipped until purged

Storage is injectable:
- `MemoryOutboxStorage`: process-local (tests, or when no path is configured)
- `FileOutboxStorage`: a single JSON document written atomically with orjson
"""

from __future__ import annotations

import inspect
import logging
import os
import tempfile
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Union

import orjson

from relief.utils.parsers import utcnow

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_FAILED = "failed"


def _now() -> datetime:
    return utcnow().replace(microsecond=0)


@dataclass
class OutboxEntry:
    """One queued unit of work."""
    id: int
    kind: str
    payload: Dict[str, Any]
    created_at: str
    status: str = STATUS_PENDING
    attempts: int = 0
    error: Optional[str] = None
    last_attempt: Optional[str] = None


@dataclass
class DrainResult:
    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, int]:
        return {"success": self.success, "failed": self.failed, "skipped": self.skipped}


class OutboxStorage(Protocol):
    def load(self) -> List[OutboxEntry]: ...

    def save(self, entries: List[OutboxEntry]) -> None: ...


class MemoryOutboxStorage:
    def __init__(self) -> None:
        self._entries: List[OutboxEntry] = []

    def load(self) -> List[OutboxEntry]:
        return [OutboxEntry(**asdict(e)) for e in self._entries]

    def save(self, entries: List[OutboxEntry]) -> None:
        self._entries = [OutboxEntry(**asdict(e)) for e in entries]


class FileOutboxStorage:
    """
    JSON file storage.

    Writes go to a temp file in the same directory followed by `os.replace`,
    so a crash mid-write never leaves a truncated outbox behind.
    """

    def __init__(self, path: str) -> None:
        self.path = os.path.abspath(path)

    def load(self) -> List[OutboxEntry]:
        if not os.path.exists(self.path):
            return []
        with open(self.path, "rb") as f:
            raw = f.read()
        if not raw.strip():
            return []
        try:
            items = orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.error("Outbox file %s is corrupt; starting empty", self.path)
            return []
        return [OutboxEntry(**item) for item in items]

    def save(self, entries: List[OutboxEntry]) -> None:
        directory = os.path.dirname(self.path)
        os.makedirs(directory, exist_ok=True)
        data = orjson.dumps([asdict(e) for e in entries], option=orjson.OPT_INDENT_2)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".outbox-", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


Handler = Callable[[OutboxEntry], Union[None, Awaitable[None]]]


class Outbox:
    """FIFO retry queue; see module docstring for the entry lifecycle."""

    def __init__(
        self,
        storage: Optional[OutboxStorage] = None,
        *,
        max_attempts: int = 5,
        clock: Callable[[], datetime] = _now,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.storage: OutboxStorage = storage or MemoryOutboxStorage()
        self.max_attempts = max_attempts
        self._clock = clock
        self._lock = threading.RLock()

    def enqueue(self, kind: str, payload: Dict[str, Any]) -> int:
        """Append an entry; returns its id (monotonic within this storage)."""
        with self._lock:
            entries = self.storage.load()
            next_id = max((e.id for e in entries), default=0) + 1
            entries.append(
                OutboxEntry(
                    id=next_id,
                    kind=kind,
                    payload=payload,
                    created_at=self._clock().isoformat(),
                )
            )
            self.storage.save(entries)
        logger.info("Queued %s entry in outbox (ID: %s)", kind, next_id)
        return next_id

    def entries(self) -> List[OutboxEntry]:
        with self._lock:
            return sorted(self.storage.load(), key=lambda e: e.id)

    def pending(self) -> List[OutboxEntry]:
        """Entries still eligible for a drain attempt, oldest first."""
        return [e for e in self.entries() if e.attempts < self.max_attempts]

    def _update(self, entry_id: int, **changes: Any) -> None:
        with self._lock:
            entries = self.storage.load()
            for e in entries:
                if e.id == entry_id:
                    for key, value in changes.items():
                        setattr(e, key, value)
                    break
            self.storage.save(entries)

    def _delete(self, entry_id: int) -> None:
        with self._lock:
            entries = [e for e in self.storage.load() if e.id != entry_id]
            self.storage.save(entries)

    async def drain(self, handler: Handler, *, kind: Optional[str] = None) -> DrainResult:
        """
        Replay entries in insertion order through `handler` (sync or async).

        A handler that returns normally acknowledges the entry (deleted); one
        that raises leaves it `failed` with attempts incremented. Entries that
        have exhausted their attempts are counted as skipped.
        """
        result = DrainResult()
        for entry in self.entries():
            if kind is not None and entry.kind != kind:
                continue
            if entry.attempts >= self.max_attempts:
                logger.info("Skipping outbox entry %s (max attempts reached)", entry.id)
                result.skipped += 1
                continue

            try:
                outcome = handler(entry)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.warning("Outbox entry %s (%s) failed: %s", entry.id, entry.kind, e)
                self._update(
                    entry.id,
                    status=STATUS_FAILED,
                    attempts=entry.attempts + 1,
                    error=str(e),
                    last_attempt=self._clock().isoformat(),
                )
                result.failed += 1
                result.errors.append(str(e))
                continue

            self._delete(entry.id)
            result.success += 1

        if result.success or result.failed:
            logger.info(
                "Outbox drain complete: %d success, %d failed, %d skipped",
                result.success, result.failed, result.skipped,
            )
        return result

    def purge(self, older_than: timedelta) -> int:
        """Drop exhausted entries created before now - `older_than`; returns count removed."""
        cutoff = self._clock() - older_than
        with self._lock:
            entries = self.storage.load()
            keep = [
                e for e in entries
                if e.attempts < self.max_attempts or datetime.fromisoformat(e.created_at) >= cutoff
            ]
            removed = len(entries) - len(keep)
            if removed:
                self.storage.save(keep)
        return removed

    def stats(self) -> Dict[str, Any]:
        entries = self.entries()
        by_kind: Dict[str, int] = {}
        for e in entries:
            by_kind[e.kind] = by_kind.get(e.kind, 0) + 1
        return {
            "total": len(entries),
            "pending": sum(1 for e in entries if e.status == STATUS_PENDING),
            "failed": sum(1 for e in entries if e.status == STATUS_FAILED and e.attempts < self.max_attempts),
            "exhausted": sum(1 for e in entries if e.attempts >= self.max_attempts),
            "by_kind": by_kind,
        }
