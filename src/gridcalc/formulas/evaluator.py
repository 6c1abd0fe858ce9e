"""Formula evaluation against a partially evaluated grid.

A formula is evaluated in three stages:

1. Whole-formula aggregate calls (``=SUM(A1:A3)``) are answered directly
   from the aggregate library without parsing.
2. Otherwise embedded aggregate calls are reduced to numbers, other range
   arguments become a call carrying the range's numbers, then every
   cell address outside a string literal is replaced with its current
   value, rendered as an expression literal.
3. The substituted text is parsed and walked.

Every failure along the way is contained and reported as ``#ERROR!``.
"""

from __future__ import annotations

import math
import re
from typing import Any, Callable, Sequence

from lark import Token, Tree

from gridcalc.content import coerce_number, flatten_args
from gridcalc.errors import (
    CIRCULAR,
    ENGINE_ERRORS,
    ERROR,
    ERROR_TOKENS,
    FormulaError,
    FormulaFunctionError,
)
from gridcalc.formulas.aggregates import (
    EMBEDDED_AGGREGATE_RE,
    apply_aggregate,
    match_aggregate,
    range_numbers,
)
from gridcalc.formulas.fn_logical import LOGICAL_FUNCTIONS, truth
from gridcalc.formulas.fn_text import TEXT_FUNCTIONS, to_text
from gridcalc.formulas.parser import parse_expression
from gridcalc.refs import address_to_coord, in_bounds, make_addr

ROUND_DIGITS = 10

Grid = Sequence[Sequence[Any]]

# Bare A1 refs, not part of an identifier and not a function name (LOG10().
_SUBST_REF_RE = re.compile(r"(?<![A-Za-z_])[A-Z]+\d+(?![A-Za-z0-9_(])")
# Range tokens left after aggregate reduction, e.g. inside SUM(A1:B1, 3).
_SUBST_RANGE_RE = re.compile(r"(?<![A-Za-z_])[A-Z]+\d+:[A-Z]+\d+(?![A-Za-z0-9_(])")
RANGE_FUNCTION = "_RANGE"
# String literal spans, honouring backslash escapes.
_STRING_LIT_RE = re.compile(r'"(?:[^"\\]|\\.)*"')


# ---------------------------------------------------------------------------
# Substitution
# ---------------------------------------------------------------------------


def _find_string_ranges(expression: str) -> list[tuple[int, int]]:
    """Return list of (start, end) index ranges for string literals."""
    return [(m.start(), m.end()) for m in _STRING_LIT_RE.finditer(expression)]


def _in_string(pos: int, string_ranges: list[tuple[int, int]]) -> bool:
    for s, e in string_ranges:
        if s <= pos < e:
            return True
    return False


def _sub_outside_strings(
    pattern: re.Pattern[str],
    expression: str,
    replace: Callable[[re.Match[str]], str],
) -> str:
    string_ranges = _find_string_ranges(expression)

    def _replace(m: re.Match[str]) -> str:
        if _in_string(m.start(), string_ranges):
            return m.group(0)
        return replace(m)

    return pattern.sub(_replace, expression)


def number_literal(value: int | float) -> str:
    """Render a number as an expression literal; negatives are parenthesised."""
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Non-finite value cannot be substituted: {value!r}")
    text = repr(value)
    return f"({text})" if value < 0 else text


def string_literal(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def value_literal(value: Any) -> str:
    """Render an evaluated cell value as an expression operand.

    Empty cells become ``0``; numbers and numeric-looking strings become
    bare numbers; everything else becomes a quoted text literal.
    """
    if value is None or value == "":
        return "0"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    num = coerce_number(value)
    if num is not None:
        return number_literal(num)
    return string_literal(str(value))


def substitute_refs(expression: str, grid: Grid) -> str:
    """Replace cell addresses in *expression* with literals from *grid*.

    Out-of-bounds addresses contribute ``0``.
    """
    rows = len(grid)
    cols = len(grid[0]) if rows else 0

    def _cell(m: re.Match[str]) -> str:
        row, col = address_to_coord(m.group(0))
        if not in_bounds(row, col, rows, cols):
            return "0"
        return value_literal(grid[row][col])

    return _sub_outside_strings(_SUBST_REF_RE, expression, _cell)


def reduce_aggregates(expression: str, grid: Grid) -> str:
    """Replace embedded ``SUM(range)``-style calls with their numeric result."""

    def _aggregate(m: re.Match[str]) -> str:
        return number_literal(apply_aggregate(m.group("func"), m.group("arg"), grid))

    return _sub_outside_strings(EMBEDDED_AGGREGATE_RE, expression, _aggregate)


def expand_ranges(expression: str, grid: Grid) -> str:
    """Replace remaining ``A1:B3`` tokens with a call carrying their numbers.

    ``SUM(A1:B1, 3)`` becomes ``SUM(_RANGE(1, 2), 3)``.  Only numeric
    cells are carried, matching what the range aggregates read.
    """

    def _range(m: re.Match[str]) -> str:
        numbers = ", ".join(number_literal(n) for n in range_numbers(m.group(0), grid))
        return f"{RANGE_FUNCTION}({numbers})"

    return _sub_outside_strings(_SUBST_RANGE_RE, expression, _range)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def round_result(value: Any, digits: int = ROUND_DIGITS) -> Any:
    """Round floats to *digits* places; other values pass through."""
    if isinstance(value, list):
        raise TypeError("A range cannot be a cell value")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Non-finite result: {value!r}")
        rounded = round(value, digits)
        return rounded + 0.0  # normalise -0.0
    return value


def evaluate_detailed(
    formula: Any,
    coordinate: tuple[int, int],
    grid: Grid,
    *,
    digits: int = ROUND_DIGITS,
) -> tuple[Any, str | None]:
    """Evaluate *formula* and also report why it failed, if it did.

    Returns:
        ``(value, error_message)``.  ``error_message`` is ``None`` on success;
        on failure ``value`` is ``#ERROR!``.
    """
    if not isinstance(formula, str) or not formula.startswith("="):
        return formula, None

    expression = formula[1:].strip()
    try:
        aggregate = match_aggregate(expression)
        if aggregate is not None:
            func, token = aggregate
            return round_result(apply_aggregate(func, token, grid), digits), None

        expression = reduce_aggregates(expression, grid)
        expression = expand_ranges(expression, grid)
        expression = substitute_refs(expression, grid)
        tree = parse_expression(expression)
        return round_result(evaluate_tree(tree), digits), None
    except ENGINE_ERRORS as exc:
        where = make_addr(*coordinate) if coordinate[0] >= 0 and coordinate[1] >= 0 else "?"
        return ERROR, f"{where}: {exc}"


def evaluate(formula: Any, coordinate: tuple[int, int], grid: Grid) -> Any:
    """Evaluate one cell's content against the grid evaluated so far.

    Args:
        formula: Raw cell content.  Non-formulas are returned unchanged.
        coordinate: ``(row, col)`` of the cell being evaluated.
        grid: Evaluated values materialised so far in this pass.

    Returns:
        A number, string or boolean, or ``#ERROR!``.
    """
    value, _ = evaluate_detailed(formula, coordinate, grid)
    return value


# ---------------------------------------------------------------------------
# Tree walking
# ---------------------------------------------------------------------------


def evaluate_tree(tree: Tree) -> Any:
    """Evaluate a parse tree from :func:`parse_expression`."""
    return _eval(tree)


def _num(value: Any) -> int | float:
    """Arithmetic operand check: numbers only, booleans count as 0/1."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    raise TypeError(f"Expected a number, got {type(value).__name__} {value!r}")


def _power(base: Any, exponent: Any) -> int | float:
    base, exponent = _num(base), _num(exponent)
    if isinstance(base, int) and isinstance(exponent, int) and 0 <= exponent <= 1024:
        return base ** exponent
    return math.pow(base, exponent)


def _eval(node: Tree | Token) -> Any:
    """Recursively evaluate a tree node."""
    if isinstance(node, Token):
        return _eval_token(node)

    rule = node.data

    if rule == "start":
        return _eval(node.children[0])

    # Arithmetic
    if rule == "add":
        return _num(_eval(node.children[0])) + _num(_eval(node.children[1]))
    if rule == "sub":
        return _num(_eval(node.children[0])) - _num(_eval(node.children[1]))
    if rule == "mul":
        return _num(_eval(node.children[0])) * _num(_eval(node.children[1]))
    if rule == "div":
        left = _num(_eval(node.children[0]))
        right = _num(_eval(node.children[1]))
        if right == 0:
            raise ZeroDivisionError("Division by zero in formula")
        return left / right
    if rule == "neg":
        return -_num(_eval(node.children[0]))
    if rule == "pos":
        return _num(_eval(node.children[0]))
    if rule == "pow":
        return _power(_eval(node.children[0]), _eval(node.children[1]))
    if rule == "percent":
        return _num(_eval(node.children[0])) / 100

    if rule == "join":
        return to_text(_eval(node.children[0])) + to_text(_eval(node.children[1]))

    # Comparison
    if rule == "gt":
        return _eval(node.children[0]) > _eval(node.children[1])
    if rule == "lt":
        return _eval(node.children[0]) < _eval(node.children[1])
    if rule == "gte":
        return _eval(node.children[0]) >= _eval(node.children[1])
    if rule == "lte":
        return _eval(node.children[0]) <= _eval(node.children[1])
    if rule == "eq":
        return _eval(node.children[0]) == _eval(node.children[1])
    if rule == "neq":
        return _eval(node.children[0]) != _eval(node.children[1])

    # Literals
    if rule == "number":
        return _parse_number(node.children[0])
    if rule == "boolean":
        return str(node.children[0]) == "TRUE"
    if rule == "string":
        return _unquote(str(node.children[0]))

    if rule == "name_ref":
        raise FormulaError(f"Unknown name: {str(node.children[0])!r}")

    if rule == "func_call":
        return _eval_func(node)

    if rule == "args":
        return [_eval(child) for child in node.children]

    raise FormulaError(f"Unknown node type: {rule}")


def _eval_token(token: Token) -> Any:
    if token.type == "NUMBER":
        return _parse_number(token)
    if token.type == "BOOL":
        return str(token) == "TRUE"
    if token.type == "ESCAPED_STRING":
        return _unquote(str(token))
    return str(token)


def _unquote(raw: str) -> str:
    return re.sub(r"\\(.)", r"\1", raw[1:-1])


def _parse_number(token: Token) -> int | float:
    s = str(token)
    if "." in s or "e" in s or "E" in s:
        return float(s)
    return int(s)


# ---------- Function dispatch ----------

_LAZY_FUNCTIONS = {"IF", "IFERROR"}


def _eval_func(node: Tree) -> Any:
    """Evaluate a function call node."""
    func_name = str(node.children[0]).upper()
    args_node = node.children[1]
    raw_args = args_node.children if args_node.children else []

    # Lazy functions receive unevaluated AST nodes
    if func_name in _LAZY_FUNCTIONS:
        return _LAZY_TABLE[func_name](raw_args)

    if func_name not in _FUNC_TABLE:
        raise FormulaFunctionError(func_name)

    evaluated_args = [_eval(arg) for arg in raw_args]
    return _FUNC_TABLE[func_name](evaluated_args)


def _numbers(args: list) -> list[int | float]:
    """Scalar aggregate arguments: same coercion rules as range aggregates."""
    return [n for n in (coerce_number(a) for a in flatten_args(args)) if n is not None]


def _fn_sum(args: list) -> int | float:
    return sum(_numbers(args))


def _fn_average(args: list) -> int | float:
    nums = _numbers(args)
    return sum(nums) / len(nums) if nums else 0


def _fn_min(args: list) -> int | float:
    nums = _numbers(args)
    return min(nums) if nums else 0


def _fn_max(args: list) -> int | float:
    nums = _numbers(args)
    return max(nums) if nums else 0


def _fn_count(args: list) -> int:
    return len(_numbers(args))


def _fn_abs(args: list) -> int | float:
    if len(args) != 1:
        raise FormulaFunctionError("ABS", "ABS requires exactly 1 argument")
    return abs(_num(args[0]))


def _fn_round(args: list) -> int | float:
    if len(args) < 1 or len(args) > 2:
        raise FormulaFunctionError("ROUND", "ROUND requires 1-2 arguments")
    digits = int(_num(args[1])) if len(args) == 2 else 0
    return round(_num(args[0]), digits)


def _fn_int(args: list) -> int:
    if len(args) != 1:
        raise FormulaFunctionError("INT", "INT requires exactly 1 argument")
    return math.floor(_num(args[0]))


def _fn_sqrt(args: list) -> float:
    if len(args) != 1:
        raise FormulaFunctionError("SQRT", "SQRT requires exactly 1 argument")
    return math.sqrt(_num(args[0]))


def _fn_power(args: list) -> int | float:
    if len(args) != 2:
        raise FormulaFunctionError("POWER", "POWER requires exactly 2 arguments")
    return _power(args[0], args[1])


def _fn_mod(args: list) -> int | float:
    if len(args) != 2:
        raise FormulaFunctionError("MOD", "MOD requires exactly 2 arguments")
    divisor = _num(args[1])
    if divisor == 0:
        raise ZeroDivisionError("MOD by zero")
    return _num(args[0]) % divisor


def _fn_range(args: list) -> list:
    return list(args)


def _fn_if(raw_args: list) -> Any:
    """IF(condition, then_value [, else_value]): lazy evaluation."""
    if len(raw_args) < 2 or len(raw_args) > 3:
        raise FormulaFunctionError("IF", "IF requires 2-3 arguments")
    if truth("IF", _eval(raw_args[0])):
        return _eval(raw_args[1])
    if len(raw_args) == 3:
        return _eval(raw_args[2])
    return False


def _fn_iferror(raw_args: list) -> Any:
    """IFERROR(value, fallback): catches errors in first arg."""
    if len(raw_args) != 2:
        raise FormulaFunctionError("IFERROR", "IFERROR requires exactly 2 arguments")
    try:
        value = _eval(raw_args[0])
    except ENGINE_ERRORS:
        return _eval(raw_args[1])
    if isinstance(value, str) and value in ERROR_TOKENS:
        return _eval(raw_args[1])
    return value


_LAZY_TABLE: dict[str, Any] = {
    "IF": _fn_if,
    "IFERROR": _fn_iferror,
}

_FUNC_TABLE: dict[str, Any] = {
    "SUM": _fn_sum,
    "AVERAGE": _fn_average,
    "MIN": _fn_min,
    "MAX": _fn_max,
    "COUNT": _fn_count,
    "ABS": _fn_abs,
    "ROUND": _fn_round,
    "INT": _fn_int,
    "SQRT": _fn_sqrt,
    "POWER": _fn_power,
    "MOD": _fn_mod,
    RANGE_FUNCTION: _fn_range,
    **LOGICAL_FUNCTIONS,
    **TEXT_FUNCTIONS,
}

SUPPORTED_FUNCTIONS = frozenset(_FUNC_TABLE) | frozenset(_LAZY_TABLE)
