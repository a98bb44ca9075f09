"""Tests for apply_excel_styles: option coercion and pass order."""

import logging

import pytest

from services.excel_styles import ExcelStylesOptions, InvalidRule, apply_excel_styles
from services.excel_styles.ooxml import find_child

from conftest import cell_text, xf_of


class TestOptions:
    """The options envelope and its rule lists."""

    def test_camel_and_snake_case(self):
        options = ExcelStylesOptions.model_validate(
            {"layout": {"messageTop": "m"}, "excelStyles": {"cells": "A1"}, "page_style": []}
        )
        assert options.layout.message_top == "m"
        assert options.excel_styles == [{"cells": "A1"}]
        assert options.page_style == []

    def test_invalid_envelope(self, package):
        with pytest.raises(InvalidRule):
            apply_excel_styles(package, {"layout": "x"})

    def test_no_options(self, package):
        assert apply_excel_styles(package) is package
        assert package.sheet.cell_style(1, 2) == 0

    def test_invalid_rule_is_skipped(self, package, caplog):
        options = {
            "excelStyles": [
                {"cells": [5], "style": {"font": {"bold": True}}},
                {"cells": "B2", "style": {"fill": {"pattern": {"color": "FF0000"}}}},
            ]
        }
        with caplog.at_level(logging.WARNING):
            apply_excel_styles(package, options)
        assert "Ignoring rule #0" in caplog.text
        assert xf_of(package, 2, 2).get("fillId") == "2"


class TestPassOrder:
    """Insert, then style, then page rules."""

    def test_inserted_cells_are_styled(self, package):
        options = {
            "insertCells": [{"cells": "D1:D5", "content": "x"}],
            "excelStyles": [{"cells": ":", "style": {"font": {"italic": True}}}],
        }
        apply_excel_styles(package, options)
        assert cell_text(package.sheet.cell(4, 3)) == "x"
        font = package.styles.record("font", int(xf_of(package, 4, 3).get("fontId")))
        assert find_child(font, "i") is not None

    def test_page_rules_see_inserted_columns(self, titled_package):
        options = {
            "layout": {"title": "Staff"},
            "insertCells": [{"cells": "D2", "content": "Bonus"}],
            "pageStyle": [{"repeatHeading": True, "repeatCol": ">"}],
        }
        apply_excel_styles(titled_package, options)
        defined_name = find_child(find_child(titled_package.workbook, "definedNames"), "definedName")
        assert defined_name.text == "'Sheet1'!$2:$2,'Sheet1'!$D:$D"
