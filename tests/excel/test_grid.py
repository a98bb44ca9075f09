"""Tests for cell insertion: in place, pushCol and pushRow."""

from xml.etree import ElementTree as ET

import pytest

from services.excel_styles import InsertCellsRule, LayoutConfig, insert_cells
from services.excel_styles.grid import write_value
from services.excel_styles.ooxml import find_child, q
from services.excel_styles.sample import build_export_package
from services.excel_styles.workbook import Worksheet

from conftest import COLUMNS, DATA, cell_text


TITLED = LayoutConfig(title="Staff")


def _text(pkg, ref_col, ref_row):
    cell = pkg.sheet.cell(ref_col, ref_row)
    return None if cell is None else cell_text(cell)


def _dimension(pkg):
    return find_child(pkg.sheet.root, "dimension").get("ref")


def _grid_texts(pkg):
    sheet = pkg.sheet
    return [[_text(pkg, col, row) for col in range(1, sheet.last_column + 1)] for row in range(1, sheet.last_row + 1)]


# =============================================================================
# VALUES
# =============================================================================

class TestWriteValue:
    """Typed cell values."""

    def test_string_is_inline(self):
        cell = ET.Element(q("c"), {"r": "A1", "s": "2", "t": "n"})
        write_value(cell, "Hello")
        assert cell.get("t") == "inlineStr"
        assert cell.get("s") == "2"
        assert cell_text(cell) == "Hello"

    def test_number_and_bool(self):
        cell = ET.Element(q("c"), {"r": "A1"})
        write_value(cell, 12.5)
        assert cell.get("t") is None
        assert cell_text(cell) == "12.5"

        write_value(cell, True)
        assert cell.get("t") == "b"
        assert cell_text(cell) == "1"

    def test_none_clears(self):
        cell = ET.Element(q("c"), {"r": "A1", "t": "inlineStr"})
        write_value(cell, "x")
        write_value(cell, None)
        assert len(cell) == 0
        assert cell.get("t") is None


# =============================================================================
# IN PLACE
# =============================================================================

class TestInsertInPlace:
    """Content written into the selected cells."""

    def test_new_column(self, package):
        assert insert_cells(package, [InsertCellsRule(cells=["D1"], content="Bonus")]) == 1
        assert _text(package, 4, 1) == "Bonus"
        assert package.sheet.column(4) is not None
        assert _dimension(package) == "A1:D5"

    def test_overwrites_and_keeps_style(self, package):
        insert_cells(package, [InsertCellsRule(cells=["A1"], content="Employee")])
        assert _text(package, 1, 1) == "Employee"
        assert package.sheet.cell_style(1, 1) == 1

    def test_list_content_cycles(self, package):
        insert_cells(package, [InsertCellsRule(cells=["D2:D5"], content=["a", "b"])])
        assert [_text(package, 4, row) for row in range(2, 6)] == ["a", "b", "a", "b"]

    def test_callable_content(self, package):
        rule = InsertCellsRule(cells=["D2:D3"], content=lambda ref, col, row, index: f"{ref}:{index}")
        insert_cells(package, [rule])
        assert _text(package, 4, 2) == "D2:1"
        assert _text(package, 4, 3) == "D3:2"

    def test_camel_case_keys(self, package):
        rule = InsertCellsRule.model_validate({"cells": "B2", "content": "x", "pushCol": True})
        assert rule.push_col is True
        insert_cells(package, [rule])
        assert _text(package, 3, 2) == "System Architect"

    def test_invalid_reference_inserts_nothing(self, package):
        assert insert_cells(package, [InsertCellsRule(cells=["A0"], content="x")]) == 0

    def test_style_applied_to_written_cells(self, package):
        insert_cells(package, [InsertCellsRule(cells=["D2"], content="x", style={"font": {"italic": True}})])
        xf = package.styles.xf(package.sheet.cell_style(4, 2))
        font = package.styles.record("font", int(xf.get("fontId")))
        assert find_child(font, "i") is not None
        assert package.sheet.cell_style(3, 2) == 0


class TestColumnWidths:
    """Columns widen to fit inserted text."""

    @pytest.mark.parametrize("length,width", [(20, "27"), (50, "54"), (2, "10")])
    def test_fit(self, package, length, width):
        insert_cells(package, [InsertCellsRule(cells=["A2"], content="x" * length)])
        assert package.sheet.column(1).get("width") == width

    def test_longest_line_counts(self, package):
        insert_cells(package, [InsertCellsRule(cells=["A2"], content="short\n" + "y" * 30)])
        assert package.sheet.column(1).get("width") == "40.5"


# =============================================================================
# PUSH
# =============================================================================

class TestPushCol:
    """Cells right of the target move one column right."""

    def test_shifts_row_and_widens_merge(self, titled_package):
        insert_cells(titled_package, [InsertCellsRule(cells=["B3"], content="X", push_col=True)], TITLED)
        sheet = titled_package.sheet

        assert _text(titled_package, 1, 3) == "Tiger Nixon"
        assert _text(titled_package, 2, 3) == "X"
        assert _text(titled_package, 3, 3) == "System Architect"
        assert _text(titled_package, 4, 3) == "320800"
        # Other rows are untouched
        assert _text(titled_package, 2, 4) == "Accountant"
        assert sheet.cell(4, 4) is None

        assert sheet.column(4) is not None
        assert sheet.merged_ranges()[0].get("ref") == "A1:D1"
        assert _dimension(titled_package) == "A1:D6"

    def test_cells_stay_in_column_order(self, titled_package):
        insert_cells(titled_package, [InsertCellsRule(cells=["B3"], content="X", push_col=True)], TITLED)
        refs = [cell.get("r") for cell in titled_package.sheet.row(3)]
        assert refs == ["A3", "B3", "C3", "D3"]

    def test_columns_renumbered(self, package):
        insert_cells(package, [InsertCellsRule(cells=["A2"], content="#", push_col=True)])
        cols = find_child(package.sheet.root, "cols")
        assert [(col.get("min"), col.get("max")) for col in cols] == [("1", "1"), ("2", "2"), ("3", "3"), ("4", "4")]


class TestPushRow:
    """A new row is inserted above each selected row."""

    def test_single_row(self, package):
        insert_cells(package, [InsertCellsRule(cells=["3"], content="new", push_row=True)])
        assert [_text(package, 1, row) for row in range(1, 7)] == [
            "Name", "Tiger Nixon", "new", "Garrett Winters", "Ashton Cox", "Cedric Kelly",
        ]
        assert [_text(package, col, 3) for col in (1, 2, 3)] == ["new", "new", "new"]
        assert _dimension(package) == "A1:C6"

    def test_each_selected_row(self, package):
        insert_cells(package, [InsertCellsRule(cells=["2:3"], content="new", push_row=True)])
        assert [_text(package, 1, row) for row in range(1, 8)] == [
            "Name", "new", "Tiger Nixon", "new", "Garrett Winters", "Ashton Cox", "Cedric Kelly",
        ]

    def test_rows_stay_in_order(self, package):
        insert_cells(package, [InsertCellsRule(cells=["A3"], content="new", push_row=True)])
        numbers = [int(row.get("r")) for row in package.sheet.sheet_data]
        assert numbers == sorted(numbers) == [1, 2, 3, 4, 5, 6]

    def test_merges_move_down(self, titled_package):
        insert_cells(titled_package, [InsertCellsRule(cells=["A1"], content="Report", push_row=True)], TITLED)
        assert _text(titled_package, 1, 1) == "Report"
        assert _text(titled_package, 1, 2) == "Staff"
        assert titled_package.sheet.merged_ranges()[0].get("ref") == "A2:C2"

    def test_row_list_matches_range(self):
        by_range = build_export_package(COLUMNS, DATA)
        by_list = build_export_package(COLUMNS, DATA)
        insert_cells(by_range, [InsertCellsRule(cells=["2:3"], content="new", push_row=True)])
        insert_cells(by_list, [InsertCellsRule(cells=["2", "3"], content="new", push_row=True)])

        assert _grid_texts(by_list) == _grid_texts(by_range)
        assert [_text(by_list, 1, row) for row in range(1, 5)] == ["Name", "new", "Tiger Nixon", "new"]

    def test_rows_selected_bottom_up(self, package):
        insert_cells(package, [InsertCellsRule(cells=["3", "2"], content="new", push_row=True)])
        assert [_text(package, 1, row) for row in range(1, 6)] == [
            "Name", "new", "Tiger Nixon", "new", "Garrett Winters",
        ]


class TestPushColSelections:
    """Separate references and a range push the same cells."""

    def test_list_matches_range(self):
        by_range = build_export_package(COLUMNS, DATA)
        by_list = build_export_package(COLUMNS, DATA)
        insert_cells(by_range, [InsertCellsRule(cells=["A2:B2"], content="new", push_col=True)])
        insert_cells(by_list, [InsertCellsRule(cells=["A2", "B2"], content="new", push_col=True)])

        assert _grid_texts(by_list) == _grid_texts(by_range)
        assert [_text(by_list, col, 2) for col in range(1, 6)] == [
            "new", "Tiger Nixon", "new", "System Architect", "320800",
        ]


# =============================================================================
# LARGE SHEETS
# =============================================================================

class TestLargeSheet:
    """Inserting into every row keeps the cell index instead of rebuilding it."""

    ROWS = 3000

    @pytest.fixture
    def large_package(self):
        data = [[f"Name {i}", "Position", i] for i in range(self.ROWS)]
        return build_export_package(COLUMNS, data)

    @pytest.fixture
    def index_builds(self, monkeypatch):
        builds = []
        original = Worksheet._build_index

        def counting_build(sheet):
            builds.append(sheet)
            original(sheet)

        monkeypatch.setattr(Worksheet, "_build_index", counting_build)
        return builds

    def test_new_column(self, large_package, index_builds):
        assert insert_cells(large_package, [InsertCellsRule(cells=["D"], content="x")]) == self.ROWS + 1

        assert len(index_builds) == 1
        assert _text(large_package, 4, self.ROWS + 1) == "x"
        assert _dimension(large_package) == f"A1:D{self.ROWS + 1}"

    def test_push_column(self, large_package, index_builds):
        insert_cells(large_package, [InsertCellsRule(cells=["A"], content="#", push_col=True)])

        assert len(index_builds) == 1
        last = self.ROWS + 1
        assert [_text(large_package, col, last) for col in (1, 2, 4)] == ["#", f"Name {self.ROWS - 1}", str(self.ROWS - 1)]
