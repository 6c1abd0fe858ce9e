"""Structured NDJSON event logging for recalculation passes and edits."""

from gridcalc.logging.events import (
    EventLevel,
    EventType,
    GridcalcEvent,
    clear_log_dir,
    emit,
    emit_error,
    emit_info,
    emit_warning,
    set_log_dir,
    truncate_context,
)
from gridcalc.logging.sink import EventSink

__all__ = [
    "EventLevel",
    "EventSink",
    "EventType",
    "GridcalcEvent",
    "clear_log_dir",
    "emit",
    "emit_error",
    "emit_info",
    "emit_warning",
    "set_log_dir",
    "truncate_context",
]
