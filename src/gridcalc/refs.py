"""A1-style cell address helpers.

Columns are base-26, 1-indexed letter runs (A, B, ... Z, AA, AB, ...).
Rows are 1-indexed in text and 0-based everywhere else.
"""

from __future__ import annotations

import re

from gridcalc.errors import InvalidReference

_ADDR_RE = re.compile(r"^([A-Za-z]+)(\d+)$")
_COL_RUN_RE = re.compile(r"[A-Za-z]+")
_ROW_RUN_RE = re.compile(r"\d+")


def column_index_of(letters: str) -> int:
    """Convert column letter(s) to 0-based index.  A=0, B=1, ..., Z=25, AA=26.

    Case-insensitive.

    Raises:
        InvalidReference: If *letters* is empty or not purely alphabetic.
    """
    if not letters or not letters.isascii() or not letters.isalpha():
        raise InvalidReference(letters, f"Invalid column label: {letters!r}")
    idx = 0
    for ch in letters.upper():
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx - 1


def column_label_of(index: int) -> str:
    """Convert 0-based column index to letter(s).  0=A, 25=Z, 26=AA."""
    if index < 0:
        raise ValueError(f"Column index must be >= 0, got {index}")
    result = ""
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        result = chr(65 + rem) + result
    return result


def parse_address(text: str) -> tuple[int, int]:
    """Parse ``'B12'`` -> ``(11, 1)`` as (row_0based, col_0based).

    Raises:
        InvalidReference: If the column run or the row run is missing.
    """
    if not isinstance(text, str):
        raise InvalidReference(repr(text))
    m = _ADDR_RE.match(text.strip())
    if not m:
        raise InvalidReference(text)
    row = int(m.group(2)) - 1
    if row < 0:
        raise InvalidReference(text, f"Row numbers start at 1: {text!r}")
    return row, column_index_of(m.group(1))


def address_to_coord(text: str) -> tuple[int, int]:
    """Lenient address parse used by formula scanning.

    Takes the first letter run and the first digit run found anywhere in
    *text*.  Anything malformed resolves to ``(0, 0)`` instead of raising,
    so a stray token never blocks evaluation of the formula around it.
    """
    if not text or not isinstance(text, str):
        return 0, 0
    col_match = _COL_RUN_RE.search(text)
    row_match = _ROW_RUN_RE.search(text)
    if not col_match or not row_match:
        return 0, 0
    try:
        return parse_address(col_match.group(0) + row_match.group(0))
    except InvalidReference:
        return 0, 0


def make_addr(row: int, col: int) -> str:
    """Build cell address from 0-based row/col."""
    return f"{column_label_of(col)}{row + 1}"


def in_bounds(row: int, col: int, rows: int, cols: int) -> bool:
    return 0 <= row < rows and 0 <= col < cols
