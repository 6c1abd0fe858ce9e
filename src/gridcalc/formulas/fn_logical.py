"""Logical formula functions: AND, OR, NOT.

Arguments arrive after cell substitution, so a referenced cell is a
number, a quoted string or a boolean by the time it gets here.  Numbers
are true when non-zero and the strings ``TRUE``/``FALSE`` read as
booleans in any case.  Any other text, including an upstream
``#ERROR!`` or ``#CIRCULAR!`` value, fails the call.
"""

from __future__ import annotations

from typing import Any

from gridcalc.content import flatten_args
from gridcalc.errors import ERROR_TOKENS, FormulaError, FormulaFunctionError


def truth(name: str, value: Any) -> bool:
    """Boolean reading of one logical argument."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        if value in ERROR_TOKENS:
            raise FormulaError(f"{name} received {value}")
        upper = value.strip().upper()
        if upper in ("TRUE", "FALSE"):
            return upper == "TRUE"
    raise TypeError(f"{name} expects logical values, got {value!r}")


def _fn_and(args: list) -> bool:
    values = flatten_args(args)
    if not values:
        raise FormulaFunctionError("AND", "AND requires at least 1 argument")
    return all([truth("AND", v) for v in values])


def _fn_or(args: list) -> bool:
    values = flatten_args(args)
    if not values:
        raise FormulaFunctionError("OR", "OR requires at least 1 argument")
    return any([truth("OR", v) for v in values])


def _fn_not(args: list) -> bool:
    if len(args) != 1 or isinstance(args[0], list):
        raise FormulaFunctionError("NOT", "NOT requires exactly 1 value")
    return not truth("NOT", args[0])


LOGICAL_FUNCTIONS: dict[str, Any] = {
    "AND": _fn_and,
    "OR": _fn_or,
    "NOT": _fn_not,
}
