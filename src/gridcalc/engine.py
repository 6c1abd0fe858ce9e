"""Whole-grid recalculation with dependency ordering and cycle detection.

One pass classifies every cell, rebuilds every formula's dependency set
from scratch, then walks the dependency graph depth-first so each cell is
evaluated after the cells it reads.  The walk is iterative over a flat
integer arena (``index = row * cols + col``) with one state label per
cell, so adversarial reference chains cannot exhaust the Python stack.

Cells on a dependency cycle, and cells that read from one, evaluate to
``#CIRCULAR!``.  Evaluation failures are contained per cell as
``#ERROR!``.  Nothing raised by a formula escapes a pass.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Sequence

from gridcalc.content import CellContent, ContentKind, classify
from gridcalc.dependencies import expand_range_dependencies
from gridcalc.formulas.evaluator import CIRCULAR, ERROR, ROUND_DIGITS, evaluate_detailed
from gridcalc.logging.events import (
    CELL_CIRCULAR_REFERENCE,
    CELL_EVAL_ERROR,
    EventType,
    emit_info,
    emit_warning,
)
from gridcalc.refs import make_addr

# Per-pass node states.
UNVISITED = 0
IN_PROGRESS = 1
DONE = 2

CellKey = tuple[int, int]
EvaluatedGrid = tuple[tuple[Any, ...], ...]

__all__ = [
    "CIRCULAR",
    "ERROR",
    "RecalcResult",
    "normalize_grid",
    "recalc",
    "recalc_all",
]


@dataclass(frozen=True)
class RecalcResult:
    """Outcome of one recalculation pass.

    Attributes:
        values: Evaluated-value snapshot, same shape as the input grid.
        dependencies: Formula cell key -> keys it reads, for this pass only.
        circular: Keys that resolved to ``#CIRCULAR!``.
        errors: Key -> failure message for cells that resolved to ``#ERROR!``.
        elapsed_ms: Wall time of the pass.
    """

    values: EvaluatedGrid
    dependencies: dict[CellKey, frozenset[CellKey]] = field(default_factory=dict)
    circular: frozenset[CellKey] = frozenset()
    errors: dict[CellKey, str] = field(default_factory=dict)
    elapsed_ms: float = 0.0

    @property
    def rows(self) -> int:
        return len(self.values)

    @property
    def cols(self) -> int:
        return len(self.values[0]) if self.values else 0

    def value_at(self, row: int, col: int) -> Any:
        return self.values[row][col]


def normalize_grid(grid: Sequence[Sequence[Any]]) -> list[list[Any]]:
    """Copy *grid* into a rectangular list of lists, padding ragged rows."""
    width = max((len(row) for row in grid), default=0)
    out: list[list[Any]] = []
    for row in grid:
        cells = ["" if v is None else v for v in row]
        cells.extend([""] * (width - len(cells)))
        out.append(cells)
    return out


def recalc(
    grid: Sequence[Sequence[Any]],
    *,
    digits: int = ROUND_DIGITS,
    log: bool = True,
) -> RecalcResult:
    """Run one full recalculation pass over *grid*.

    The input grid is never mutated.

    Args:
        grid: Raw cell contents, row-major.
        digits: Decimal places numeric results are rounded to.
        log: Emit structured recalc events.

    Returns:
        A :class:`RecalcResult`.
    """
    started = time.perf_counter()
    raw = normalize_grid(grid)
    rows = len(raw)
    cols = len(raw[0]) if rows else 0
    size = rows * cols

    if log:
        emit_info(
            EventType.recalc_started,
            f"Recalculating {rows}x{cols} grid",
            {"rows": rows, "cols": cols},
        )

    contents: list[CellContent] = [classify(raw[i // cols][i % cols]) for i in range(size)]

    # Dependency sets are rebuilt from scratch every pass.
    deps: list[list[int]] = [[] for _ in range(size)]
    dep_map: dict[CellKey, frozenset[CellKey]] = {}
    for i, content in enumerate(contents):
        if content.kind is ContentKind.formula:
            keys = expand_range_dependencies(content.raw, rows, cols)
            dep_map[(i // cols, i % cols)] = frozenset(keys)
            deps[i] = sorted(r * cols + c for r, c in keys)

    values: list[list[Any]] = [["" for _ in range(cols)] for _ in range(rows)]
    state = bytearray(size)
    circular = bytearray(size)
    errors: dict[CellKey, str] = {}

    def _finish(i: int) -> None:
        r, c = divmod(i, cols)
        content = contents[i]
        if not content.is_formula:
            values[r][c] = content.raw
        elif circular[i]:
            values[r][c] = CIRCULAR
        else:
            value, message = evaluate_detailed(content.raw, (r, c), values, digits=digits)
            values[r][c] = value
            if message is not None:
                errors[(r, c)] = message
        state[i] = DONE

    for root in range(size):
        if state[root] == DONE:
            continue
        # Stack frames: (cell index, position of next dependency to visit).
        state[root] = IN_PROGRESS
        stack: list[list[int]] = [[root, 0]]
        while stack:
            frame = stack[-1]
            i, pos = frame
            cell_deps = deps[i]
            if pos < len(cell_deps):
                frame[1] = pos + 1
                d = cell_deps[pos]
                if state[d] == IN_PROGRESS:
                    circular[i] = 1
                elif state[d] == UNVISITED:
                    state[d] = IN_PROGRESS
                    stack.append([d, 0])
                elif circular[d]:
                    circular[i] = 1
                continue
            stack.pop()
            _finish(i)
            if stack and circular[i]:
                circular[stack[-1][0]] = 1

    circular_keys = frozenset(divmod(i, cols) for i in range(size) if circular[i])
    snapshot: EvaluatedGrid = tuple(tuple(row) for row in values)
    elapsed_ms = (time.perf_counter() - started) * 1000

    if log:
        _log_pass(rows, cols, circular_keys, errors, elapsed_ms)

    return RecalcResult(
        values=snapshot,
        dependencies=dep_map,
        circular=circular_keys,
        errors=errors,
        elapsed_ms=elapsed_ms,
    )


def recalc_all(grid: Sequence[Sequence[Any]]) -> EvaluatedGrid:
    """Recalculate every cell and return the evaluated-value snapshot."""
    return recalc(grid).values


def _log_pass(
    rows: int,
    cols: int,
    circular: frozenset[CellKey],
    errors: dict[CellKey, str],
    elapsed_ms: float,
) -> None:
    for key, message in sorted(errors.items()):
        emit_warning(
            EventType.cell_error,
            message,
            {"cell": make_addr(*key)},
            error_code=CELL_EVAL_ERROR,
        )
    if circular:
        emit_warning(
            EventType.cell_circular,
            f"{len(circular)} cell(s) on or downstream of a circular reference",
            {"cells": [make_addr(*key) for key in sorted(circular)]},
            error_code=CELL_CIRCULAR_REFERENCE,
        )
    emit_info(
        EventType.recalc_completed,
        f"Recalculated {rows}x{cols} grid",
        {
            "rows": rows,
            "cols": cols,
            "errors": len(errors),
            "circular": len(circular),
            "elapsed_ms": round(elapsed_ms, 3),
        },
    )
