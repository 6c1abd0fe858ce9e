"""Tests for the Sheet collaborator: edits, transforms, sort, find/replace, validation."""

from __future__ import annotations

import pytest

from gridcalc import CIRCULAR, Sheet
from gridcalc.logging.events import clear_log_dir


@pytest.fixture(autouse=True)
def _no_sink():
    clear_log_dir()
    yield
    clear_log_dir()


def _sheet(rows: list[list[str]]) -> Sheet:
    return Sheet.from_rows(rows)


# ────────────────────────────────────────────────────────────────
# Construction and edits
# ────────────────────────────────────────────────────────────────


class TestEdits:
    def test_default_size_from_config(self) -> None:
        sheet = Sheet()
        assert (sheet.rows, sheet.cols) == (20, 10)

    def test_size_override_and_config(self) -> None:
        from gridcalc.config import DEFAULT_CONFIG

        config = dict(DEFAULT_CONFIG, default_rows=3, default_cols=2)
        assert (Sheet(config=config).rows, Sheet(config=config).cols) == (3, 2)
        assert Sheet(5, 4).cols == 4

    def test_invalid_size(self) -> None:
        with pytest.raises(ValueError):
            Sheet(0, 3)

    def test_edit_triggers_recalc(self) -> None:
        sheet = Sheet(2, 2)
        sheet.set("A1", "5")
        sheet.set("B1", "=A1+3")
        assert sheet.value("B1") == 8
        sheet.set("A1", "10")
        assert sheet.value("B1") == 13
        assert sheet.get("B1") == "=A1+3"

    def test_cycle_introduced_and_removed(self) -> None:
        sheet = Sheet(1, 2)
        sheet.set("A1", "=B1")
        sheet.set("B1", "=A1")
        assert sheet.values[0] == (CIRCULAR, CIRCULAR)
        sheet.set("B1", "4")
        assert sheet.values[0] == (4, "4")

    def test_set_out_of_bounds(self) -> None:
        sheet = Sheet(2, 2)
        with pytest.raises(IndexError):
            sheet.set("C1", "1")
        with pytest.raises(IndexError):
            sheet.set_cell(5, 0, "1")

    def test_from_rows_pads(self) -> None:
        sheet = _sheet([["1"], ["2", "=A1+A2"]])
        assert (sheet.rows, sheet.cols) == (2, 2)
        assert sheet.value("B2") == 3

    def test_from_rows_empty(self) -> None:
        with pytest.raises(ValueError):
            Sheet.from_rows([])


class TestResize:
    def test_add_and_delete_row(self) -> None:
        sheet = _sheet([["1"], ["=A1+1"]])
        sheet.add_row()
        assert sheet.rows == 3
        sheet.set("A3", "=A2*10")
        assert sheet.value("A3") == 20
        sheet.delete_row()
        assert sheet.rows == 2

    def test_delete_keeps_one_row_and_column(self) -> None:
        sheet = Sheet(1, 1)
        sheet.delete_row()
        sheet.delete_column()
        assert (sheet.rows, sheet.cols) == (1, 1)

    def test_reference_to_deleted_cell_becomes_zero(self) -> None:
        sheet = _sheet([["=B1+1", "5"]])
        assert sheet.value("A1") == 6
        sheet.delete_column()
        assert sheet.value("A1") == 1

    def test_add_column(self) -> None:
        sheet = Sheet(2, 1)
        sheet.add_column()
        assert sheet.cols == 2
        assert sheet.values[0] == ("", "")


# ────────────────────────────────────────────────────────────────
# Transforms
# ────────────────────────────────────────────────────────────────


class TestTransforms:
    def test_upper_over_range(self) -> None:
        sheet = _sheet([["ab", "cd"], ["ef", "gh"]])
        changed = sheet.apply_to_range("upper", "A1:B1")
        assert changed == 2
        assert sheet.raw == (("AB", "CD"), ("ef", "gh"))

    def test_anchor_only_without_range(self) -> None:
        sheet = _sheet([["  x  ", "  y  "]])
        sheet.apply_to_range("trim", anchor="B1")
        assert sheet.raw == (("  x  ", "y"),)

    def test_callable_transform(self) -> None:
        sheet = _sheet([["a"]])
        sheet.apply_to_range(lambda s: s * 2, "A1")
        assert sheet.get("A1") == "aa"

    def test_transform_feeds_recalc(self) -> None:
        sheet = _sheet([[" 4 ", "=A1*2"]])
        sheet.apply_to_range("trim", "A1")
        assert sheet.value("B1") == 8

    def test_unknown_transform(self) -> None:
        with pytest.raises(ValueError, match="Unknown transform"):
            Sheet(1, 1).apply_to_range("reverse")


class TestRemoveDuplicates:
    def test_whole_rows(self) -> None:
        sheet = _sheet([["a", "1"], ["b", "2"], ["a", "1"], ["a", "2"]])
        assert sheet.remove_duplicates() == 1
        assert sheet.raw == (("a", "1"), ("b", "2"), ("a", "2"))

    def test_within_range(self) -> None:
        sheet = _sheet([["a", "1"], ["b", "2"], ["a", "3"]])
        assert sheet.remove_duplicates("A1:A3") == 1
        assert sheet.raw == (("a", "1"), ("b", "2"))

    def test_no_duplicates(self) -> None:
        sheet = _sheet([["a"], ["b"]])
        assert sheet.remove_duplicates() == 0
        assert sheet.rows == 2

    def test_all_identical_keeps_one(self) -> None:
        sheet = _sheet([[""], [""], [""]])
        assert sheet.remove_duplicates() == 2
        assert sheet.rows == 1

    def test_validations_follow_surviving_rows(self) -> None:
        sheet = _sheet([["5"], ["a"], ["a"], ["y"]])
        for row in (0, 1, 2, 3):
            sheet.set_validation(row, 0, "number")
        assert sheet.remove_duplicates() == 1
        assert sheet.raw == (("5",), ("a",), ("y",))
        # Row 0 keeps its passing flag; the last row moved up from index 3.
        assert sheet.validation_errors() == {(1, 0), (2, 0)}

    def test_validation_on_removed_row_dropped(self) -> None:
        sheet = _sheet([["a"], ["a"], ["7"]])
        sheet.set_validation(1, 0, "date")
        sheet.remove_duplicates()
        assert sheet.validation_errors() == set()


class TestSort:
    def test_whole_sheet_numbers_then_text(self) -> None:
        sheet = _sheet([["b", "x"], ["10", "y"], ["2", "z"], ["A", "w"]])
        sheet.sort(0)
        assert [row[0] for row in sheet.raw] == ["2", "10", "A", "b"]
        assert [row[1] for row in sheet.raw] == ["z", "y", "w", "x"]

    def test_whole_sheet_desc(self) -> None:
        sheet = _sheet([["1"], ["3"], ["x"], ["2"]])
        sheet.sort("A", "desc")
        assert [row[0] for row in sheet.raw] == ["x", "3", "2", "1"]

    def test_whole_sheet_sorts_on_evaluated_values(self) -> None:
        sheet = _sheet([["=5*2"], ["3"]])
        sheet.sort(0)
        assert [row[0] for row in sheet.raw] == ["3", "=5*2"]

    def test_range_sort_moves_only_range(self) -> None:
        sheet = _sheet([["3", "c", "keep1"], ["1", "a", "keep2"], ["2", "b", "keep3"]])
        sheet.sort(0, cell_range="A1:B3")
        assert sheet.raw == (("1", "a", "keep1"), ("2", "b", "keep2"), ("3", "c", "keep3"))

    def test_range_sort_column_outside_range(self) -> None:
        sheet = _sheet([["1", "2", "3"]])
        with pytest.raises(ValueError, match="within the selected range"):
            sheet.sort(2, cell_range="A1:B1")

    def test_bad_direction(self) -> None:
        with pytest.raises(ValueError):
            Sheet(1, 1).sort(0, "up")


# ────────────────────────────────────────────────────────────────
# Find / replace
# ────────────────────────────────────────────────────────────────


class TestFindReplace:
    def test_find(self) -> None:
        sheet = _sheet([["apple", "pear"], ["pineapple", ""]])
        assert sheet.find("apple") == [(0, 0), (1, 0)]
        assert sheet.find("") == []

    def test_replace_first_occurrence_in_one_cell(self) -> None:
        sheet = _sheet([["aa", "a"]])
        assert sheet.replace("a", "b", 0, 0) is True
        assert sheet.raw == (("ba", "a"),)
        assert sheet.replace("z", "b", 0, 1) is False

    def test_replace_all_is_literal(self) -> None:
        sheet = _sheet([["a.b", "a.b.c"], ["abc", ""]])
        assert sheet.replace_all(".", "-") == 2
        assert sheet.raw == (("a-b", "a-b-c"), ("abc", ""))

    def test_replace_in_formula_recalculates(self) -> None:
        sheet = _sheet([["2", "3", "=A1*10"]])
        sheet.replace_all("A1", "B1")
        assert sheet.value("C1") == 30


# ────────────────────────────────────────────────────────────────
# Validation and series
# ────────────────────────────────────────────────────────────────


class TestValidation:
    def test_number_validation(self) -> None:
        sheet = _sheet([["12", "abc", "", "=A1"]])
        for col in range(4):
            sheet.set_validation(0, col, "number")
        assert sheet.validation_errors() == {(0, 1)}

    @pytest.mark.parametrize("text", ["2024-02-29", "03/15/2024", "Mar 15 2024", "2024-03-15T10:00:00"])
    def test_date_validation_accepts(self, text: str) -> None:
        sheet = _sheet([[text]])
        sheet.set_validation(0, 0, "date")
        assert sheet.validation_errors() == set()

    @pytest.mark.parametrize("text", ["2023-02-29", "tomorrow", "15"])
    def test_date_validation_rejects(self, text: str) -> None:
        sheet = _sheet([[text]])
        sheet.set_validation(0, 0, "date")
        assert sheet.validation_errors() == {(0, 0)}

    def test_validation_never_changes_values(self) -> None:
        sheet = _sheet([["abc"]])
        sheet.set_validation(0, 0, "number")
        assert sheet.value("A1") == "abc"

    def test_any_clears(self) -> None:
        sheet = _sheet([["abc"]])
        sheet.set_validation(0, 0, "number")
        sheet.set_validation(0, 0, "any")
        assert sheet.validation_errors() == set()

    def test_unknown_kind(self) -> None:
        with pytest.raises(ValueError):
            Sheet(1, 1).set_validation(0, 0, "email")

    def test_pruned_on_delete(self) -> None:
        sheet = _sheet([["1"], ["x"]])
        sheet.set_validation(1, 0, "number")
        sheet.delete_row()
        assert sheet.validation_errors() == set()


class TestSeries:
    def test_series(self) -> None:
        sheet = _sheet([["1", "=A1*2", "x"]])
        assert sheet.series("A1:C1") == [("A1", 1), ("B1", 2), ("C1", 0)]
