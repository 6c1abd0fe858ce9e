"""NDJSON event log for gridcalc.

Every event becomes one sorted-key JSON line in
``<base_dir>/logs/events.ndjson``.  Appends hold an exclusive
``fcntl.flock`` and tail reads hold a shared one, so several processes
recalculating against the same directory interleave whole lines.
Without ``fcntl`` (Windows) the lock is a no-op.
"""

from __future__ import annotations

import json
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from gridcalc.logging.events import GridcalcEvent

try:
    import fcntl
except ImportError:  # pragma: no cover - Windows
    fcntl = None  # type: ignore[assignment]

LOG_FILENAME = "events.ndjson"
DEFAULT_TAIL_BYTES = 2 * 1024 * 1024
MAX_READ_LIMIT = 2000


@contextmanager
def _locked_fd(path: Path, flags: int, *, exclusive: bool) -> Iterator[int]:
    fd = os.open(str(path), flags, 0o644)
    try:
        if fcntl is not None:
            fcntl.flock(fd, fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
        yield fd
    finally:
        if fcntl is not None:
            fcntl.flock(fd, fcntl.LOCK_UN)
        os.close(fd)


class EventSink:
    """Append-only event log rooted at *base_dir*.

    Parameters
    ----------
    base_dir : Path
        Directory that receives a ``logs/`` subdirectory.
    fsync : bool
        Flush every append to disk.
    tail_bytes : int | None
        Upper bound on how much of the file :meth:`read` looks at.
    """

    def __init__(self, base_dir: Path, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
        self.logs_dir = Path(base_dir) / "logs"
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        self._fsync = fsync
        self._tail_bytes = DEFAULT_TAIL_BYTES if tail_bytes is None else tail_bytes

    @property
    def path(self) -> Path:
        return self.logs_dir / LOG_FILENAME

    def write(self, event: GridcalcEvent) -> None:
        payload = json.dumps(event.model_dump(mode="json"), sort_keys=True, default=str)
        with _locked_fd(self.path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, exclusive=True) as fd:
            os.write(fd, (payload + "\n").encode("utf-8"))
            if self._fsync:
                os.fsync(fd)

    def read(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Newest-first events from the tail of the log, optionally filtered."""
        cap = min(limit, MAX_READ_LIMIT)
        matched: list[dict[str, Any]] = []
        if cap <= 0:
            return matched
        for event in reversed(self._tail_events()):
            if level and event.get("level") != level:
                continue
            if event_type and event.get("event_type") != event_type:
                continue
            matched.append(event)
            if len(matched) >= cap:
                break
        return matched

    def _tail_events(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        events: list[dict[str, Any]] = []
        for line in self._tail_text().splitlines():
            if not line.strip():
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return events

    def _tail_text(self) -> str:
        with _locked_fd(self.path, os.O_RDONLY, exclusive=False) as fd:
            size = os.fstat(fd).st_size
            start = max(size - self._tail_bytes, 0)
            os.lseek(fd, start, os.SEEK_SET)
            data = os.read(fd, size - start)
        if start > 0:
            # First line is cut mid-record.
            data = data[data.find(b"\n") + 1:] if b"\n" in data else b""
        return data.decode("utf-8", errors="replace")
