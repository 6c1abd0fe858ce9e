"""Raw cell content classification and numeric coercion."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ContentKind(str, Enum):
    empty = "empty"
    text = "text"
    number = "number"
    formula = "formula"


@dataclass(frozen=True)
class CellContent:
    """Tagged raw cell content, classified once per recalculation pass.

    Attributes:
        kind: Which variant this is.
        raw: The original value, returned unchanged by pass-through.
    """

    kind: ContentKind
    raw: Any = ""

    @property
    def is_formula(self) -> bool:
        return self.kind is ContentKind.formula

    @property
    def body(self) -> str:
        """Formula text after the leading ``=``, trimmed."""
        if not self.is_formula:
            return ""
        return self.raw[1:].strip()


EMPTY = CellContent(ContentKind.empty, "")

# Leading numeric prefix: optional sign, integer or decimal, optional exponent.
_NUMERIC_PREFIX_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_WHOLE_NUMBER_RE = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?\s*$")


def classify(raw: Any) -> CellContent:
    """Classify raw cell content into a :class:`CellContent` variant."""
    if raw is None or raw == "":
        return EMPTY
    if isinstance(raw, bool):
        return CellContent(ContentKind.text, raw)
    if isinstance(raw, (int, float)):
        return CellContent(ContentKind.number, raw)
    if isinstance(raw, str):
        if raw.startswith("="):
            return CellContent(ContentKind.formula, raw)
        if _WHOLE_NUMBER_RE.match(raw):
            return CellContent(ContentKind.number, raw)
    return CellContent(ContentKind.text, raw)


def coerce_number(value: Any) -> int | float | None:
    """Return the numeric reading of *value*, or ``None`` if it has none.

    Numbers pass through (booleans do not count).  Strings are read from
    their leading numeric prefix, so ``"12abc"`` is 12 and ``"abc"`` is
    ``None``.  Empty values are ``None``.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if value != value:  # NaN
            return None
        return value
    if not isinstance(value, str):
        return None
    m = _NUMERIC_PREFIX_RE.match(value)
    if not m:
        return None
    text = m.group(1)
    if "." in text or "e" in text or "E" in text:
        return float(text)
    return int(text)


def flatten_args(args: list) -> list:
    """Spread range arguments (lists of cell values) into the argument list."""
    flat: list = []
    for arg in args:
        if isinstance(arg, list):
            flat.extend(arg)
        else:
            flat.append(arg)
    return flat
