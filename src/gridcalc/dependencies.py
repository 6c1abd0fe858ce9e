"""Syntactic dependency scan for formula cells.

Every address-shaped token anywhere in the formula counts, including
range corners inside aggregate calls and text inside string literals.
"""

from __future__ import annotations

import re

from gridcalc.ranges import resolve_within
from gridcalc.refs import address_to_coord, in_bounds

ADDRESS_RE = re.compile(r"[A-Z]+\d+")
RANGE_RE = re.compile(r"[A-Z]+\d+:[A-Z]+\d+")


def is_formula(content: object) -> bool:
    return isinstance(content, str) and content.startswith("=")


def extract_dependencies(formula: object, rows: int, cols: int) -> set[tuple[int, int]]:
    """Return the in-bounds cell keys referenced by *formula*.

    Args:
        formula: Raw cell content.  Non-formula content yields an empty set.
        rows: Current grid row count.
        cols: Current grid column count.

    Returns:
        Set of ``(row, col)`` keys.
    """
    if not is_formula(formula):
        return set()
    deps: set[tuple[int, int]] = set()
    for match in ADDRESS_RE.finditer(formula):
        row, col = address_to_coord(match.group(0))
        if in_bounds(row, col, rows, cols):
            deps.add((row, col))
    return deps


def expand_range_dependencies(formula: object, rows: int, cols: int) -> set[tuple[int, int]]:
    """Like :func:`extract_dependencies` but also fills in range interiors.

    ``=SUM(A1:A3)`` reports ``A1``, ``A2`` and ``A3`` rather than just the
    two corners, so an aggregate never reads a cell that has not been
    evaluated yet in the current pass.
    """
    deps = extract_dependencies(formula, rows, cols)
    if not is_formula(formula):
        return deps
    for match in RANGE_RE.finditer(formula):
        deps.update(resolve_within(match.group(0), rows, cols))
    return deps
