"""In-memory sheet: the raw grid plus the edits a front end performs on it.

A :class:`Sheet` owns the raw cell contents and re-runs a full
recalculation after every mutating operation, so :attr:`Sheet.values`
is always a consistent snapshot of the current raw grid.
"""

from __future__ import annotations

import datetime
from typing import Any, Callable, Sequence

from gridcalc.config import load_config
from gridcalc.content import coerce_number
from gridcalc.engine import RecalcResult, normalize_grid, recalc
from gridcalc.logging.events import EventType, emit_info
from gridcalc.ranges import resolve_within
from gridcalc.refs import make_addr, parse_address

VALIDATION_KINDS = ("any", "number", "date")

TRANSFORMS: dict[str, Callable[[str], str]] = {
    "trim": str.strip,
    "upper": str.upper,
    "lower": str.lower,
}

_DATE_FORMATS = ("%m/%d/%Y", "%b %d %Y", "%B %d %Y", "%b %d, %Y", "%B %d, %Y")


def is_date_text(text: str) -> bool:
    """True if *text* reads as a calendar date."""
    text = text.strip()
    try:
        datetime.datetime.fromisoformat(text)
        return True
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            datetime.datetime.strptime(text, fmt)
            return True
        except ValueError:
            continue
    return False


def _sort_key(value: Any) -> tuple[int, Any]:
    """Numbers first in numeric order, then text case-insensitively."""
    num = coerce_number(value)
    if num is not None:
        return 0, num
    return 1, str(value).casefold()


class Sheet:
    """A rectangular grid of raw cell contents with live evaluated values.

    Usage::

        sheet = Sheet(rows=3, cols=2)
        sheet.set("A1", "5")
        sheet.set("B1", "=A1+3")
        sheet.value("B1")  # 8

    Parameters
    ----------
    rows, cols : int | None
        Initial size.  Defaults come from ``default_rows`` /
        ``default_cols`` in the configuration.
    config : dict | None
        Configuration as returned by :func:`gridcalc.config.load_config`.
    """

    def __init__(
        self,
        rows: int | None = None,
        cols: int | None = None,
        *,
        config: dict[str, Any] | None = None,
    ) -> None:
        self._config = config if config is not None else load_config()
        rows = rows if rows is not None else self._config["default_rows"]
        cols = cols if cols is not None else self._config["default_cols"]
        if rows < 1 or cols < 1:
            raise ValueError(f"Sheet must have at least one row and column, got {rows}x{cols}")
        self._cells: list[list[Any]] = [["" for _ in range(cols)] for _ in range(rows)]
        self._validations: dict[tuple[int, int], str] = {}
        self._result: RecalcResult = self._recalc()

    @classmethod
    def from_rows(
        cls,
        rows: Sequence[Sequence[Any]],
        *,
        config: dict[str, Any] | None = None,
    ) -> Sheet:
        """Build a sheet from raw row data; ragged rows are padded."""
        grid = normalize_grid(rows)
        if not grid or not grid[0]:
            raise ValueError("Sheet data must have at least one row and column")
        sheet = cls(rows=len(grid), cols=len(grid[0]), config=config)
        sheet._cells = grid
        sheet._refresh()
        return sheet

    # ------------------------------------------------------------------
    # Shape and reads
    # ------------------------------------------------------------------

    @property
    def rows(self) -> int:
        return len(self._cells)

    @property
    def cols(self) -> int:
        return len(self._cells[0])

    @property
    def raw(self) -> tuple[tuple[Any, ...], ...]:
        return tuple(tuple(row) for row in self._cells)

    @property
    def values(self) -> tuple[tuple[Any, ...], ...]:
        """Evaluated-value snapshot from the latest recalculation."""
        return self._result.values

    @property
    def result(self) -> RecalcResult:
        return self._result

    def get(self, addr: str) -> Any:
        """Raw content at *addr*."""
        row, col = self._coord(addr)
        return self._cells[row][col]

    def value(self, addr: str) -> Any:
        """Evaluated value at *addr*."""
        row, col = self._coord(addr)
        return self._result.values[row][col]

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def set_cell(self, row: int, col: int, value: Any) -> None:
        """Set raw content at ``(row, col)`` and recalculate."""
        self._check_bounds(row, col)
        self._cells[row][col] = "" if value is None else value
        emit_info(EventType.sheet_edit, "set_cell", {"cell": make_addr(row, col)})
        self._refresh()

    def set(self, addr: str, value: Any) -> None:
        row, col = self._coord(addr)
        self.set_cell(row, col, value)

    def add_row(self) -> None:
        self._cells.append(["" for _ in range(self.cols)])
        self._refresh()

    def delete_row(self) -> None:
        """Drop the last row; a one-row sheet is left unchanged."""
        if self.rows <= 1:
            return
        self._cells.pop()
        self._prune_validations()
        self._refresh()

    def add_column(self) -> None:
        for row in self._cells:
            row.append("")
        self._refresh()

    def delete_column(self) -> None:
        """Drop the last column; a one-column sheet is left unchanged."""
        if self.cols <= 1:
            return
        for row in self._cells:
            row.pop()
        self._prune_validations()
        self._refresh()

    # ------------------------------------------------------------------
    # Range transforms
    # ------------------------------------------------------------------

    def apply_to_range(
        self,
        transform: str | Callable[[str], str],
        cell_range: str | None = None,
        anchor: str = "A1",
    ) -> int:
        """Apply a text transform to every string cell in *cell_range*.

        Without a range only the *anchor* cell is transformed.

        Args:
            transform: ``"trim"``, ``"upper"``, ``"lower"`` or a callable.
            cell_range: e.g. ``"A1:C3"``.
            anchor: Cell used when no range is given.

        Returns:
            Number of cells changed.
        """
        if isinstance(transform, str):
            if transform.lower() not in TRANSFORMS:
                raise ValueError(
                    f"Unknown transform {transform!r}. Available: {sorted(TRANSFORMS)}"
                )
            func = TRANSFORMS[transform.lower()]
        else:
            func = transform

        coords = self._range_coords(cell_range) if cell_range else [self._coord(anchor)]
        changed = 0
        for r, c in coords:
            current = self._cells[r][c]
            if not isinstance(current, str):
                continue
            updated = func(current)
            if updated != current:
                self._cells[r][c] = updated
                changed += 1
        self._refresh()
        return changed

    def remove_duplicates(self, cell_range: str | None = None) -> int:
        """Remove rows whose content repeats an earlier row.

        Without a range whole rows are compared; with a range only each
        row's slice inside the range is compared, but matching rows are
        still removed entirely.  The first occurrence is kept and at
        least one row always remains.

        Returns:
            Number of rows removed.
        """
        if cell_range:
            coords = self._range_coords(cell_range)
            if not coords:
                return 0
            top, bottom = coords[0][0], coords[-1][0]
            left, right = coords[0][1], coords[-1][1]
        else:
            top, bottom, left, right = 0, self.rows - 1, 0, self.cols - 1

        seen: set[tuple[Any, ...]] = set()
        drop: set[int] = set()
        for r in range(top, bottom + 1):
            key = tuple(self._cells[r][left:right + 1])
            if key in seen:
                drop.add(r)
            else:
                seen.add(key)

        if not drop:
            return 0
        self._cells = [row for r, row in enumerate(self._cells) if r not in drop]
        # Surviving rows shift up by the number of dropped rows above them.
        self._validations = {
            (r - sum(1 for d in drop if d < r), c): kind
            for (r, c), kind in self._validations.items()
            if r not in drop
        }
        self._refresh()
        return len(drop)

    def sort(
        self,
        column: int | str,
        direction: str = "asc",
        cell_range: str | None = None,
    ) -> None:
        """Sort rows by one column.

        Numbers come first in numeric order, then text case-insensitively;
        ``desc`` reverses the whole ordering.  A whole-sheet sort keys on
        evaluated values; a range sort keys on raw content and only moves
        cells inside the range.

        Args:
            column: 0-based column index or column letters.
            direction: ``"asc"`` or ``"desc"``.
            cell_range: Optional range to sort in place.

        Raises:
            ValueError: On an unknown direction, or a sort column outside
                *cell_range*.
        """
        if direction not in ("asc", "desc"):
            raise ValueError(f"Sort direction must be 'asc' or 'desc', got {direction!r}")
        col = column if isinstance(column, int) else parse_address(f"{column}1")[1]
        reverse = direction == "desc"

        if cell_range is None:
            self._check_bounds(0, col)
            order = sorted(
                range(self.rows),
                key=lambda r: _sort_key(self._result.values[r][col]),
                reverse=reverse,
            )
            self._cells = [self._cells[r] for r in order]
        else:
            coords = self._range_coords(cell_range)
            if not coords:
                return
            top, bottom = coords[0][0], coords[-1][0]
            left, right = coords[0][1], coords[-1][1]
            if not left <= col <= right:
                raise ValueError("Sort column must be within the selected range")
            block = [self._cells[r][left:right + 1] for r in range(top, bottom + 1)]
            block.sort(key=lambda cells: _sort_key(cells[col - left]), reverse=reverse)
            for offset, cells in enumerate(block):
                self._cells[top + offset][left:right + 1] = cells
        self._refresh()

    # ------------------------------------------------------------------
    # Find / replace
    # ------------------------------------------------------------------

    def find(self, text: str) -> list[tuple[int, int]]:
        """Coordinates of raw string cells containing *text*, row-major."""
        if not text:
            return []
        return [
            (r, c)
            for r, row in enumerate(self._cells)
            for c, cell in enumerate(row)
            if isinstance(cell, str) and text in cell
        ]

    def replace(self, text: str, replacement: str, row: int, col: int) -> bool:
        """Replace the first occurrence of *text* in one cell."""
        self._check_bounds(row, col)
        current = self._cells[row][col]
        if not text or not isinstance(current, str) or text not in current:
            return False
        self._cells[row][col] = current.replace(text, replacement, 1)
        self._refresh()
        return True

    def replace_all(self, text: str, replacement: str) -> int:
        """Replace every occurrence of *text* in every string cell.

        Returns:
            Number of cells changed.
        """
        matches = self.find(text)
        for r, c in matches:
            self._cells[r][c] = self._cells[r][c].replace(text, replacement)
        if matches:
            self._refresh()
        return len(matches)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def set_validation(self, row: int, col: int, kind: str) -> None:
        """Declare the expected content type of a cell."""
        self._check_bounds(row, col)
        if kind not in VALIDATION_KINDS:
            raise ValueError(f"Unknown validation {kind!r}. Available: {list(VALIDATION_KINDS)}")
        if kind == "any":
            self._validations.pop((row, col), None)
        else:
            self._validations[(row, col)] = kind

    def validation_errors(self) -> set[tuple[int, int]]:
        """Cells whose raw content violates their declared type.

        Empty cells and formulas never fail validation.  Flags are
        reported alongside evaluated values and never change them.
        """
        bad: set[tuple[int, int]] = set()
        for (r, c), kind in self._validations.items():
            raw = self._cells[r][c]
            if raw == "" or (isinstance(raw, str) and raw.startswith("=")):
                continue
            if kind == "number" and coerce_number(raw) is None:
                bad.add((r, c))
            elif kind == "date" and not (isinstance(raw, str) and is_date_text(raw)):
                bad.add((r, c))
        return bad

    # ------------------------------------------------------------------
    # Derived data
    # ------------------------------------------------------------------

    def series(self, cell_range: str) -> list[tuple[str, int | float]]:
        """``(address, number)`` pairs for a range; non-numeric reads as 0."""
        out: list[tuple[str, int | float]] = []
        for r, c in self._range_coords(cell_range):
            num = coerce_number(self._result.values[r][c])
            out.append((make_addr(r, c), 0 if num is None else num))
        return out

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _recalc(self) -> RecalcResult:
        return recalc(self._cells, digits=self._config["round_digits"])

    def _refresh(self) -> None:
        self._result = self._recalc()

    def _coord(self, addr: str) -> tuple[int, int]:
        row, col = parse_address(addr)
        self._check_bounds(row, col)
        return row, col

    def _check_bounds(self, row: int, col: int) -> None:
        if not (0 <= row < self.rows and 0 <= col < self.cols):
            raise IndexError(
                f"Cell ({row}, {col}) is outside the {self.rows}x{self.cols} sheet"
            )

    def _range_coords(self, cell_range: str) -> list[tuple[int, int]]:
        return resolve_within(cell_range, self.rows, self.cols)

    def _prune_validations(self) -> None:
        self._validations = {
            (r, c): kind
            for (r, c), kind in self._validations.items()
            if r < self.rows and c < self.cols
        }
