"""Text formula functions: CONCAT, LEN, UPPER, LOWER, TRIM."""

from __future__ import annotations

from typing import Any

from gridcalc.content import flatten_args
from gridcalc.errors import FormulaFunctionError


def to_text(value: Any) -> str:
    """Render a value the way it appears when joined into text."""
    if isinstance(value, list):
        raise TypeError("A range cannot be used as text")
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _one_arg(name: str, args: list) -> Any:
    if len(args) != 1:
        raise FormulaFunctionError(name, f"{name} requires exactly 1 argument")
    return args[0]


def _fn_concat(args: list) -> str:
    """CONCAT(val1, val2, ...): join all arguments as text."""
    return "".join(to_text(a) for a in flatten_args(args))


def _fn_len(args: list) -> int:
    return len(to_text(_one_arg("LEN", args)))


def _fn_upper(args: list) -> str:
    return to_text(_one_arg("UPPER", args)).upper()


def _fn_lower(args: list) -> str:
    return to_text(_one_arg("LOWER", args)).lower()


def _fn_trim(args: list) -> str:
    """TRIM(text): strip the ends and collapse inner runs of spaces."""
    return " ".join(to_text(_one_arg("TRIM", args)).split())


TEXT_FUNCTIONS: dict[str, Any] = {
    "CONCAT": _fn_concat,
    "LEN": _fn_len,
    "UPPER": _fn_upper,
    "LOWER": _fn_lower,
    "TRIM": _fn_trim,
}
