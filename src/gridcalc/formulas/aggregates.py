"""Range aggregate functions: SUM, AVERAGE, MAX, MIN, COUNT.

Each function reads a range token against the evaluated-value grid as it
stands at call time.  Only numeric-coercible values take part; text,
empty cells and error tokens are skipped rather than raising.  Vacuous
ranges return 0 for every function.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Sequence

from gridcalc.content import coerce_number
from gridcalc.ranges import resolve_within

Grid = Sequence[Sequence[Any]]


def _grid_shape(grid: Grid) -> tuple[int, int]:
    rows = len(grid)
    cols = len(grid[0]) if rows else 0
    return rows, cols


def range_numbers(token: str, grid: Grid) -> list[int | float]:
    """Numeric values covered by *token*, in row-major order."""
    rows, cols = _grid_shape(grid)
    numbers: list[int | float] = []
    for r, c in resolve_within(token, rows, cols):
        if c >= len(grid[r]):
            continue
        num = coerce_number(grid[r][c])
        if num is not None:
            numbers.append(num)
    return numbers


def calc_sum(token: str, grid: Grid) -> int | float:
    return sum(range_numbers(token, grid))


def calc_average(token: str, grid: Grid) -> int | float:
    numbers = range_numbers(token, grid)
    if not numbers:
        return 0
    return sum(numbers) / len(numbers)


def calc_max(token: str, grid: Grid) -> int | float:
    numbers = range_numbers(token, grid)
    return max(numbers) if numbers else 0


def calc_min(token: str, grid: Grid) -> int | float:
    numbers = range_numbers(token, grid)
    return min(numbers) if numbers else 0


def calc_count(token: str, grid: Grid) -> int:
    return len(range_numbers(token, grid))


AGGREGATES: dict[str, Callable[[str, Grid], int | float]] = {
    "SUM": calc_sum,
    "AVERAGE": calc_average,
    "MAX": calc_max,
    "MIN": calc_min,
    "COUNT": calc_count,
}

_NAMES = "(?i:" + "|".join(AGGREGATES) + ")"
_RANGE_ARG = r"[A-Z]+\d+(?::[A-Z]+\d+)?"

# Whole-formula aggregate call, e.g. "sum( A1:B3 )".
AGGREGATE_CALL_RE = re.compile(
    rf"^(?P<func>{_NAMES})\(\s*(?P<arg>{_RANGE_ARG})\s*\)$"
)

# The same call embedded inside a larger expression.
EMBEDDED_AGGREGATE_RE = re.compile(
    rf"(?<![A-Za-z0-9_])(?P<func>{_NAMES})\(\s*(?P<arg>{_RANGE_ARG})\s*\)"
)


def match_aggregate(expression: str) -> tuple[str, str] | None:
    """Return ``(FUNC, range_token)`` if *expression* is a bare aggregate call."""
    m = AGGREGATE_CALL_RE.match(expression.strip())
    if m is None:
        return None
    return m.group("func").upper(), m.group("arg")


def apply_aggregate(func: str, token: str, grid: Grid) -> int | float:
    """Dispatch *func* (case-insensitive) over *token*."""
    return AGGREGATES[func.upper()](token, grid)
