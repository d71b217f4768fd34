"""Tests for the cell/row boundary layer (etlgen/sheet.py)."""

import math

import pytest

from etlgen.sheet import (
    BLANK,
    BOOLEAN,
    NUMBER,
    TEXT,
    Cell,
    SheetRow,
    is_unknown_header,
    labels_from_row,
    normalize_rows,
)


class TestCell:

    @pytest.mark.parametrize("raw", [None, "", "   ", math.nan])
    def test_blank_values(self, raw):
        assert Cell.from_value(raw).kind == BLANK
        assert Cell.from_value(raw).text == ""

    def test_boolean_before_number(self):
        cell = Cell.from_value(True)
        assert cell.kind == BOOLEAN
        assert cell.text == "true"

    def test_integral_number_renders_without_fraction(self):
        cell = Cell.from_value(3.0)
        assert cell.kind == NUMBER
        assert cell.text == "3"

    def test_fractional_number(self):
        assert Cell.from_value(2.5).text == "2.5"

    def test_text_is_trimmed(self):
        cell = Cell.from_value("  CustID ")
        assert cell.kind == TEXT
        assert cell.text == "CustID"

    def test_other_objects_render_as_text(self):
        assert Cell.from_value(["a"]).kind == TEXT

    def test_integer_beyond_float_range_is_text(self):
        cell = Cell.from_value(10**400)
        assert cell.kind == TEXT
        assert cell.text == str(10**400)

    def test_infinity_stays_numeric(self):
        cell = Cell.from_value(float("inf"))
        assert cell.kind == NUMBER
        assert cell.text == "inf"


class TestSheetRow:

    def test_from_mapping_keeps_order(self):
        row = SheetRow.from_raw({"b": "2", "a": "1"})
        assert row.headers == ["b", "a"]

    def test_non_mapping_is_empty(self):
        assert SheetRow.from_raw("not a row").cells == ()

    def test_get_and_text(self):
        row = SheetRow.from_raw({"Source": " Name ", "Target": None})
        assert row.text("Source") == "Name"
        assert row.get("Target").is_blank
        assert row.get("Missing").is_blank
        assert row.get(None).is_blank

    def test_positional_access(self):
        row = SheetRow.from_raw({"a": "x", "b": "y"})
        assert row.at(1).text == "y"
        assert row.at(5).is_blank
        assert row.at(-1).is_blank

    def test_values(self):
        row = SheetRow.from_raw({"a": "x", "b": 1})
        assert [c.text for c in row.values()] == ["x", "1"]

    def test_relabel(self):
        row = SheetRow.from_raw({"column_1": "x", "column_2": "y"})
        relabeled = row.relabel({"column_1": "Source"})
        assert relabeled.headers == ["Source", "column_2"]


class TestNormalizeRows:

    def test_none_and_empty(self):
        assert normalize_rows(None) == []
        assert normalize_rows([]) == []

    def test_non_mapping_rows_become_empty(self):
        rows = normalize_rows([{"a": 1}, "junk"])
        assert len(rows) == 2
        assert rows[1].cells == ()


class TestHeaderLabels:

    @pytest.mark.parametrize("name", ["", "  ", "column_3", "Column 12", "__EMPTY", "__EMPTY_2", "Unnamed: 4", "7"])
    def test_unknown_headers(self, name):
        assert is_unknown_header(name) is True

    @pytest.mark.parametrize("name", ["Source Field", "Column Name", "Target"])
    def test_real_headers(self, name):
        assert is_unknown_header(name) is False

    def test_labels_from_row_skip_blanks(self):
        row = SheetRow.from_raw({"column_1": "Source", "column_2": None, "column_3": "Target"})
        assert labels_from_row(row) == {"column_1": "Source", "column_3": "Target"}

    def test_duplicate_labels_are_suffixed(self):
        row = SheetRow.from_raw({"column_1": "Source", "column_2": "source"})
        assert labels_from_row(row) == {"column_1": "Source", "column_2": "source_2"}
