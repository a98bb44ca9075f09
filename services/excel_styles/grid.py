"""Grid mutator: insert content into selected cells.

Three modes per rule:
- in place (default): the selected cells are created if needed and
  overwritten
- ``pushCol``: the target cell and every cell to its right move one
  column right first
- ``pushRow``: a new row is inserted above each selected row, moving
  that row and everything below it down one

Columns are widened to fit the inserted text and the sheet's column
definitions, merged regions and dimension are kept consistent.
"""

from __future__ import annotations

import logging
from bisect import bisect_right, insort
from typing import Any, Dict, List, Optional
from xml.etree import ElementTree as ET

from services.styles_config import StyleSettings, get_style_settings

from .apply import ApplyContext, apply_styles
from .ooxml import WORKSHEET_ORDER, ensure_child, find_children, q, xml_value
from .references import cell_ref, format_range_ref, parse_range_ref, split_cell_ref
from .schemas import InsertCellsRule, LayoutConfig, StyleRule
from .workbook import Worksheet, XlsxPackage


logger = logging.getLogger(__name__)

XML_SPACE = "{http://www.w3.org/XML/1998/namespace}space"


# =============================================================================
# CELL VALUES
# =============================================================================

def write_value(cell: ET.Element, value: Any) -> None:
    """Replace a cell's value, keeping its style."""
    for child in list(cell):
        cell.remove(child)
    cell.attrib.pop("t", None)
    if value is None:
        return
    if isinstance(value, bool):
        cell.set("t", "b")
        ET.SubElement(cell, q("v")).text = xml_value(value)
    elif isinstance(value, (int, float)):
        ET.SubElement(cell, q("v")).text = xml_value(value)
    else:
        cell.set("t", "inlineStr")
        inline = ET.SubElement(cell, q("is"))
        text = ET.SubElement(inline, q("t"), {XML_SPACE: "preserve"})
        text.text = str(value)


def _content_for(rule: InsertCellsRule, position: int, col: int, row: int, data_top: int) -> Any:
    content = rule.content
    if callable(content):
        return content(cell_ref(col, row), col, row, row - data_top + 1)
    if isinstance(content, (list, tuple)):
        return content[position % len(content)] if content else None
    return content


def _longest_line(value: Any) -> int:
    if value is None:
        return 0
    return max(len(line) for line in str(value).split("\n"))


# =============================================================================
# STRUCTURE
# =============================================================================

def _move_cell(cell: ET.Element, col: int, row: int) -> None:
    cell.set("r", cell_ref(col, row))


def shift_rows_down(sheet: Worksheet, at_row: int) -> None:
    """Move row at_row and every row below it down by one."""
    for row_el in find_children(sheet.sheet_data, "row"):
        row_num = int(row_el.get("r", 0))
        if row_num < at_row:
            continue
        row_el.set("r", str(row_num + 1))
        for cell in find_children(row_el, "c"):
            col, _ = split_cell_ref(cell.get("r"))
            _move_cell(cell, col, row_num + 1)

    for merge in sheet.merged_ranges():
        from_col, from_row, to_col, to_row = parse_range_ref(merge.get("ref"))
        if from_row >= at_row:
            from_row += 1
        if to_row >= at_row:
            to_row += 1
        merge.set("ref", f"{cell_ref(from_col, from_row)}:{cell_ref(to_col, to_row)}")

    sheet.invalidate()


def shift_cells_right(sheet: Worksheet, row: int, at_col: int) -> None:
    """Move the cells of one row from at_col onwards right by one."""
    row_el = sheet.row(row)
    if row_el is None:
        return
    moving = [(split_cell_ref(cell.get("r"))[0], cell) for cell in find_children(row_el, "c")]
    for col, cell in sorted(moving, key=lambda item: item[0], reverse=True):
        if col >= at_col:
            sheet.move_cell(cell, col + 1, row)


def _fit_column(sheet: Worksheet, col: int, length: int, settings: StyleSettings) -> None:
    """Widen (never narrow) a column to fit length characters."""
    if length > settings.max_col_chars:
        width = settings.max_col_width
    else:
        width = max(settings.min_col_width, length * settings.width_expansion)

    col_el = sheet.column(col)
    if col_el is None:
        cols = ensure_child(sheet.root, "cols", WORKSHEET_ORDER)
        col_el = ET.SubElement(cols, q("col"), {"min": str(col), "max": str(col)})
    elif float(col_el.get("width", 0)) >= width:
        return
    col_el.set("width", xml_value(round(width, 2)))
    col_el.set("customWidth", "1")


def ensure_columns(sheet: Worksheet, upto: int) -> None:
    """Give every column up to upto a <col>, copying the last one's settings."""
    cols = ensure_child(sheet.root, "cols", WORKSHEET_ORDER)
    existing = find_children(cols, "col")
    last = max((int(el.get("max", 0)) for el in existing), default=0)
    template = max(existing, key=lambda el: int(el.get("max", 0)), default=None)
    for col in range(last + 1, upto + 1):
        attributes = dict(template.attrib) if template is not None else {}
        attributes.update({"min": str(col), "max": str(col)})
        ET.SubElement(cols, q("col"), attributes)


def renumber_columns(sheet: Worksheet) -> None:
    """Number <col> elements 1..n in column order."""
    cols = ensure_child(sheet.root, "cols", WORKSHEET_ORDER)
    ordered = sorted(find_children(cols, "col"), key=lambda el: int(el.get("min", 0)))
    for col_el in list(cols):
        cols.remove(col_el)
    for number, col_el in enumerate(ordered, start=1):
        col_el.set("min", str(number))
        col_el.set("max", str(number))
        cols.append(col_el)


def widen_merges(sheet: Worksheet, prior_last_col: int, new_last_col: int, insert_col: int) -> None:
    """Stretch merged regions that spanned to the old last column."""
    for merge in sheet.merged_ranges():
        from_col, from_row, to_col, to_row = parse_range_ref(merge.get("ref"))
        if to_col == prior_last_col and from_col <= insert_col:
            merge.set("ref", format_range_ref(from_col, from_row, new_last_col, to_row))


# =============================================================================
# PASS
# =============================================================================

def insert_rule(package: XlsxPackage, rule: InsertCellsRule, layout: LayoutConfig, settings: StyleSettings) -> List[str]:
    """Run one insert rule, returning the references of the written cells."""
    ctx = ApplyContext(package, layout)
    sheet = ctx.sheet
    selections = ctx.selections(rule.cells, rule.smart_row)
    if not selections:
        return []

    prior_last_col = ctx.extent.last_column
    data_top = ctx.row_map.data_top or 1
    widths: Dict[int, int] = {}
    written: List[str] = []

    def put(col: int, row: int) -> None:
        value = _content_for(rule, len(written), col, row, data_top)
        write_value(sheet.ensure_cell(col, row), value)
        widths[col] = max(widths.get(col, 0), _longest_line(value))
        written.append(cell_ref(col, row))

    # Rows and columns are selected against the sheet as it was before the
    # rule ran; each insert moves later targets along by one
    inserted_rows: List[int] = []
    pushed_cols: Dict[int, List[int]] = {}

    for selection in selections:
        if rule.push_row:
            for row in selection.rows():
                target = row + bisect_right(inserted_rows, row)
                shift_rows_down(sheet, target)
                sheet.ensure_row(target)
                insort(inserted_rows, row)
                for col in selection.columns():
                    put(col, target)
        else:
            for row in selection.rows():
                pushed = pushed_cols.setdefault(row, [])
                for col in selection.columns():
                    target = col + bisect_right(pushed, col)
                    if rule.push_col:
                        shift_cells_right(sheet, row, target)
                        insort(pushed, col)
                    put(target, row)

    # Pushed cells may now sit past the last defined column
    ensure_columns(sheet, sheet.max_cell_column())
    for col, length in widths.items():
        _fit_column(sheet, col, length, settings)
    renumber_columns(sheet)

    new_last_col = sheet.last_column
    if new_last_col > prior_last_col and widths:
        widen_merges(sheet, prior_last_col, new_last_col, min(widths))
    sheet.refresh_dimension()

    if rule.style:
        apply_styles(package, [StyleRule(cells=written, style=rule.style)], layout)
    return written


def insert_cells(
    package: XlsxPackage,
    rules: List[InsertCellsRule],
    layout: Optional[LayoutConfig] = None,
) -> int:
    """Run every insert rule in order; returns the number of cells written."""
    layout = layout or LayoutConfig()
    settings = get_style_settings()
    total = 0
    for rule in rules:
        total += len(insert_rule(package, rule, layout, settings))
    logger.info(f"Inserted content into {total} cell(s) from {len(rules)} rule(s)")
    return total
