"""Tests for the style application pass and package round trip.

Covers:
- Shared records for identically styled cells
- Builtin indexes, merge flag, geometry
- Skipped references and missing cells
- Conditional formatting registration
- Serialization keeping the original root tags
"""

import zipfile
from io import BytesIO

import pytest

from services.excel_styles import LayoutConfig, PackageError, StyleRule, XlsxPackage, apply_styles
from services.excel_styles.ooxml import MAIN, find_child, find_children
from services.excel_styles.sample import STYLE_CENTERED, STYLE_MONEY, build_export, build_export_package

from conftest import COLUMNS, DATA, cell_text, child_names, xf_of


RED_FILL = {"fill": {"pattern": {"color": "FF0000"}}}


def _grid_package():
    """10 x 10 data block, no header row."""
    columns = [f"C{i}" for i in range(1, 11)]
    data = [[row * 10 + col for col in range(10)] for row in range(10)]
    return build_export_package(columns, data, header=False)


# =============================================================================
# STYLE PASS
# =============================================================================

class TestApplyStyles:
    """Rules merged into cells and committed."""

    def test_block_shares_one_record(self):
        pkg = _grid_package()
        before = pkg.styles.count("xf")
        apply_styles(pkg, [StyleRule(cells=[":"], style=RED_FILL)], LayoutConfig(header=False))

        assert pkg.styles.count("xf") == before + 1
        styles = {pkg.sheet.cell_style(col, row) for col in range(1, 11) for row in range(1, 11)}
        assert styles == {before}

    def test_overlapping_references_style_a_cell_once(self, monkeypatch):
        from services.excel_styles import apply as apply_module

        calls = []
        original = apply_module.merge_custom

        def counting_merge(catalog, descriptor, current_index):
            calls.append(current_index)
            return original(catalog, descriptor, current_index)

        monkeypatch.setattr(apply_module, "merge_custom", counting_merge)
        pkg = _grid_package()
        apply_styles(pkg, [StyleRule(cells=["A1:B2", "B2:C3"], style=RED_FILL)], LayoutConfig(header=False))

        assert calls == [0]
        assert pkg.sheet.cell_style(2, 2) == pkg.sheet.cell_style(1, 1) == pkg.sheet.cell_style(3, 3)

    def test_distinct_sources_get_distinct_records(self, package):
        apply_styles(package, [StyleRule(cells=["A1:A2"], style=RED_FILL)])
        header, data = xf_of(package, 1, 1), xf_of(package, 1, 2)
        assert header.get("fillId") == data.get("fillId") == "2"
        assert header.get("fontId") == "1"
        assert data.get("fontId") == "0"

    def test_rules_compose(self, package):
        apply_styles(
            package,
            [
                StyleRule(cells=["B2"], style=RED_FILL),
                StyleRule(cells=["B2"], style={"font": {"italic": True}}),
            ],
        )
        xf = xf_of(package, 2, 2)
        assert xf.get("fillId") == "2"
        font = package.styles.record("font", int(xf.get("fontId")))
        assert find_child(font, "i") is not None

    def test_merge_false_starts_from_default(self, package):
        apply_styles(package, [StyleRule(cells=["A1"], style=RED_FILL, merge=False)])
        assert xf_of(package, 1, 1).get("fontId") == "0"

    def test_merge_false_is_idempotent(self, package):
        rule = StyleRule(cells=["A2"], style={"font": {"bold": True}}, merge=False)
        apply_styles(package, [rule])
        first = package.sheet.cell_style(1, 2)
        count = package.styles.count("xf")

        apply_styles(package, [rule])
        assert package.sheet.cell_style(1, 2) == first
        assert package.styles.count("xf") == count

    def test_index_applied_verbatim_to_default_cells(self, package):
        apply_styles(package, [StyleRule(index=STYLE_CENTERED, cells=["A2"])])
        assert package.sheet.cell_style(1, 2) == STYLE_CENTERED

    def test_index_merged_into_styled_cells(self, package):
        apply_styles(package, [StyleRule(index=STYLE_CENTERED, cells=["A1"])])
        xf = xf_of(package, 1, 1)
        assert package.sheet.cell_style(1, 1) not in (1, STYLE_CENTERED)
        assert xf.get("fontId") == "1"
        assert find_child(xf, "alignment").get("horizontal") == "center"

    def test_width_and_height(self, package):
        apply_styles(package, [StyleRule(cells=["B"], width=25), StyleRule(cells=["3"], height=30.5)])
        col = package.sheet.column(2)
        assert col.get("width") == "25"
        assert col.get("customWidth") == "1"
        row = package.sheet.row(3)
        assert row.get("ht") == "30.5"
        assert row.get("customHeight") == "1"
        # Geometry only: no style change
        assert package.sheet.cell_style(2, 3) == 0

    def test_missing_cells_are_not_created(self, titled_package):
        apply_styles(titled_package, [StyleRule(cells=["1"], style=RED_FILL)], LayoutConfig(title="Staff"))
        assert titled_package.sheet.cell(2, 1) is None
        assert xf_of(titled_package, 1, 1).get("fillId") == "2"

    def test_invalid_references_are_skipped(self, package):
        apply_styles(package, [StyleRule(cells=["A0", "sm", "B2"], style=RED_FILL)])
        assert xf_of(package, 2, 2).get("fillId") == "2"
        assert package.sheet.cell_style(1, 2) == 0

    def test_smart_rows(self, titled_package):
        layout = LayoutConfig(title="Staff")
        apply_styles(
            titled_package,
            [
                StyleRule(cells=["sh"], style=RED_FILL),
                StyleRule(cells=["1"], row_ref="smart", style={"font": {"italic": True}}),
            ],
            layout,
        )
        assert xf_of(titled_package, 3, 2).get("fillId") == "2"
        assert titled_package.sheet.cell_style(1, 1) == STYLE_CENTERED
        italic = xf_of(titled_package, 1, 3)
        assert find_child(titled_package.styles.record("font", int(italic.get("fontId"))), "i") is not None
        assert titled_package.sheet.cell_style(1, 4) == 0


# =============================================================================
# CONDITIONAL FORMATTING
# =============================================================================

class TestConditionalFormatting:
    """Rules with a condition become <conditionalFormatting> blocks."""

    def test_block_registered(self, package):
        rule = StyleRule(
            cells=["A2:A5", "C2:C5"],
            style={"fill": {"pattern": {"color": "FFC7CE"}}},
            condition={"type": "cellIs", "operator": "greaterThan", "formula": 200000},
        )
        apply_styles(package, [rule])

        root = package.sheet.root
        blocks = find_children(root, "conditionalFormatting")
        assert len(blocks) == 1
        assert blocks[0].get("sqref") == "A2:A5 C2:C5"
        cf_rule = find_child(blocks[0], "cfRule")
        assert cf_rule.get("type") == "cellIs"
        assert cf_rule.get("operator") == "greaterThan"
        assert cf_rule.get("dxfId") == "0"
        assert cf_rule.get("priority") == "1"
        assert find_child(cf_rule, "formula").text == "200000"

        names = child_names(root)
        assert names.index("sheetData") < names.index("conditionalFormatting")
        assert names.index("conditionalFormatting") < names.index("pageMargins")
        # Cell styles are untouched
        assert package.sheet.cell_style(3, 2) == 0

    def test_priorities_increase(self, package):
        rules = [
            StyleRule(cells=["A2:A5"], style=RED_FILL, condition={"formula": "LEN(A2)>10"}),
            StyleRule(cells=["B2:B5"], style=RED_FILL, condition={"type": "containsText", "text": "Dev"}),
        ]
        apply_styles(package, rules)
        blocks = find_children(package.sheet.root, "conditionalFormatting")
        first, second = (find_child(block, "cfRule") for block in blocks)
        assert first.get("type") == "expression"
        assert (first.get("priority"), second.get("priority")) == ("1", "2")
        assert second.get("text") == "Dev"
        # Equal differential styles are shared
        assert first.get("dxfId") == second.get("dxfId")


# =============================================================================
# PACKAGE
# =============================================================================

class TestPackageRoundTrip:
    """Saving keeps untouched parts and original root tags."""

    def test_untouched_parts_are_byte_identical(self, xlsx_bytes):
        pkg = XlsxPackage.from_bytes(xlsx_bytes)
        apply_styles(pkg, [StyleRule(cells=["A2"], style=RED_FILL)], LayoutConfig(title="Staff"))
        output = pkg.to_bytes()

        with zipfile.ZipFile(BytesIO(xlsx_bytes)) as before, zipfile.ZipFile(BytesIO(output)) as after:
            assert sorted(before.namelist()) == sorted(after.namelist())
            for name in ("[Content_Types].xml", "_rels/.rels", "xl/_rels/workbook.xml.rels"):
                assert before.read(name) == after.read(name)

    def test_root_tag_preserved(self, xlsx_bytes):
        pkg = XlsxPackage.from_bytes(xlsx_bytes)
        apply_styles(pkg, [StyleRule(cells=[":"], style=RED_FILL)], LayoutConfig(title="Staff"))

        with zipfile.ZipFile(BytesIO(pkg.to_bytes())) as zf:
            for name in ("xl/worksheets/sheet1.xml", "xl/styles.xml"):
                xml = zf.read(name).decode("utf-8")
                assert xml.startswith("<?xml")
                assert 'mc:Ignorable="x14ac"' in xml
                assert xml.count(f'xmlns="{MAIN}"') == 1

    def test_reloaded_package_keeps_styles(self, package):
        apply_styles(package, [StyleRule(cells=["C2:C5"], style={"numFmt": "#,##0.0"})])
        reloaded = XlsxPackage.from_bytes(package.to_bytes())

        xf = xf_of(reloaded, 3, 2)
        assert xf.get("numFmtId") == "165"
        assert reloaded.styles.format_code(165) == "#,##0.0"
        assert cell_text(reloaded.sheet.cell(3, 2)) == str(DATA[0][2])
        assert reloaded.styles.count("xf") == package.styles.count("xf")

    def test_rejects_non_zip(self):
        with pytest.raises(PackageError):
            XlsxPackage.from_bytes(b"not a workbook")

    def test_rejects_missing_styles(self):
        buffer = BytesIO()
        with zipfile.ZipFile(BytesIO(build_export(COLUMNS, DATA))) as source, zipfile.ZipFile(buffer, "w") as target:
            for name in source.namelist():
                if name != "xl/styles.xml":
                    target.writestr(name, source.read(name))
        with pytest.raises(PackageError):
            XlsxPackage.from_bytes(buffer.getvalue())

    def test_save_and_load_from_path(self, package, tmp_path):
        apply_styles(package, [StyleRule(cells=["A2"], style=RED_FILL)])
        path = package.save(tmp_path / "out" / "styled.xlsx")

        reloaded = XlsxPackage.from_path(path)
        assert xf_of(reloaded, 1, 2).get("fillId") == "2"
        assert reloaded.sheet_name == "Sheet1"

    def test_builtin_number_format_survives_reload(self, package):
        apply_styles(package, [StyleRule(index=STYLE_MONEY, cells=["C2:C5"])])
        reloaded = XlsxPackage.from_bytes(package.to_bytes())
        assert xf_of(reloaded, 3, 5).get("numFmtId") == "164"
        assert reloaded.styles.format_code(164) == '"$"#,##0.00'
