"""Structured events emitted by recalculation, sheet edits and config loading.

Events are pydantic models with a UTC ``...Z`` timestamp.  They go to a
single module-level :class:`~gridcalc.logging.sink.EventSink`; until
:func:`set_log_dir` is called every event is dropped.  Logging must never
break a recalculation, so the ``emit`` helpers swallow sink failures and
report them on stderr at most once a minute.
"""

from __future__ import annotations

import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    recalc_started = "recalc_started"
    recalc_completed = "recalc_completed"
    cell_error = "cell_error"
    cell_circular = "cell_circular"
    sheet_edit = "sheet_edit"
    config_loaded = "config_loaded"


# Machine-readable error codes carried on warning/error events.
CELL_EVAL_ERROR = "cell_eval_error"
CELL_CIRCULAR_REFERENCE = "cell_circular_reference"
CONFIG_INVALID = "config_invalid"

_MAX_VALUE_LEN = 256
_MAX_LIST_LEN = 100


def truncate_context(context: dict[str, Any]) -> dict[str, Any]:
    """Copy of *context* with strings over 256 chars and lists over 100 items cut.

    Formula text and cell lists are unbounded; log lines are not.
    """
    return {key: _clip(value) for key, value in context.items()}


def _clip(value: Any) -> Any:
    if isinstance(value, dict):
        return truncate_context(value)
    if isinstance(value, (list, tuple)):
        kept = [_clip(item) for item in value[:_MAX_LIST_LEN]]
        overflow = len(value) - _MAX_LIST_LEN
        if overflow > 0:
            kept.append(f"...[{overflow} more]")
        return kept
    if isinstance(value, str) and len(value) > _MAX_VALUE_LEN:
        return value[:_MAX_VALUE_LEN] + "...[truncated]"
    return value


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class GridcalcEvent(BaseModel):
    """One log record."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    message: str = ""
    context: dict[str, Any] = Field(default_factory=dict)
    error_code: str | None = None


_sink: Any = None  # EventSink once set_log_dir() runs


def set_log_dir(log_dir: Path | str, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
    """Route events to ``<log_dir>/logs/events.ndjson``."""
    global _sink
    from gridcalc.logging.sink import EventSink

    _sink = EventSink(Path(log_dir), fsync=fsync, tail_bytes=tail_bytes)


def clear_log_dir() -> None:
    """Stop logging; later events are dropped."""
    global _sink
    _sink = None


_last_stderr_ts: float = 0.0
_STDERR_INTERVAL_SECS = 60.0


def _report_failure(detail: str) -> None:
    global _last_stderr_ts
    now = time.monotonic()
    if now - _last_stderr_ts < _STDERR_INTERVAL_SECS:
        return
    _last_stderr_ts = now
    try:
        print(f"[gridcalc] logging failed: {detail}", file=sys.stderr)
    except Exception:
        pass


def emit(event: GridcalcEvent) -> None:
    """Write *event* to the active sink.  Never raises."""
    sink = _sink
    if sink is None:
        return
    try:
        sink.write(event.model_copy(update={"context": truncate_context(event.context)}))
    except Exception:
        _report_failure(traceback.format_exc())


def _emit_at(
    level: EventLevel,
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None,
    error_code: str | None = None,
) -> None:
    if _sink is None:
        return
    try:
        event = GridcalcEvent(
            level=level,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        )
    except Exception:
        _report_failure(traceback.format_exc())
        return
    emit(event)


def emit_info(event_type: EventType, message: str, context: dict[str, Any] | None = None) -> None:
    _emit_at(EventLevel.info, event_type, message, context)


def emit_warning(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    _emit_at(EventLevel.warning, event_type, message, context, error_code)


def emit_error(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    _emit_at(EventLevel.error, event_type, message, context, error_code)
