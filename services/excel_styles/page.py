"""Page layout pass: print titles and worksheet page settings."""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Tuple
from xml.etree import ElementTree as ET

from .apply import ApplyContext
from .merge import SchemaWriter
from .ooxml import WORKBOOK_ORDER, ensure_child, find_children, q
from .references import col_index_to_letters, letters_to_col_index
from .schemas import LayoutConfig, PageStyle
from .style_schema import PAGE_SCHEMA
from .workbook import XlsxPackage


logger = logging.getLogger(__name__)

PRINT_TITLES = "_xlnm.Print_Titles"

_ROW_SPAN = re.compile(r"\$(\d+):\$(\d+)")
_COL_SPAN = re.compile(r"\$([A-Z]{1,3}):\$([A-Z]{1,3})")

Span = Tuple[int, int]

PAGE_WRITER = SchemaWriter(PAGE_SCHEMA)


# =============================================================================
# PRINT TITLES
# =============================================================================

def _union(span: Optional[Span], other: Optional[Span]) -> Optional[Span]:
    if span is None:
        return other
    if other is None:
        return span
    return min(span[0], other[0]), max(span[1], other[1])


def parse_print_titles(text: str) -> Tuple[Optional[Span], Optional[Span]]:
    """Read (rows, columns) spans from a Print_Titles formula."""
    rows: Optional[Span] = None
    cols: Optional[Span] = None
    for part in text.split(","):
        reference = part.rsplit("!", 1)[-1]
        row_match = _ROW_SPAN.fullmatch(reference)
        if row_match:
            rows = _union(rows, (int(row_match.group(1)), int(row_match.group(2))))
            continue
        col_match = _COL_SPAN.fullmatch(reference)
        if col_match:
            span = (letters_to_col_index(col_match.group(1)), letters_to_col_index(col_match.group(2)))
            cols = _union(cols, span)
    return rows, cols


def format_print_titles(sheet_name: str, rows: Optional[Span], cols: Optional[Span]) -> str:
    quoted = "'" + sheet_name.replace("'", "''") + "'"
    parts = []
    if rows is not None:
        parts.append(f"{quoted}!${rows[0]}:${rows[1]}")
    if cols is not None:
        parts.append(f"{quoted}!${col_index_to_letters(cols[0])}:${col_index_to_letters(cols[1])}")
    return ",".join(parts)


def set_print_titles(package: XlsxPackage, rows: Optional[Span], cols: Optional[Span]) -> ET.Element:
    """Union the spans into the sheet's Print_Titles defined name."""
    defined_names = ensure_child(package.workbook, "definedNames", WORKBOOK_ORDER)
    entry = None
    for defined_name in find_children(defined_names, "definedName"):
        if defined_name.get("name") == PRINT_TITLES and defined_name.get("localSheetId") == "0":
            entry = defined_name
            break
    if entry is None:
        entry = ET.SubElement(defined_names, q("definedName"), {"name": PRINT_TITLES, "localSheetId": "0"})
    else:
        existing_rows, existing_cols = parse_print_titles(entry.text or "")
        rows = _union(existing_rows, rows)
        cols = _union(existing_cols, cols)

    entry.text = format_print_titles(package.sheet_name, rows, cols)
    return entry


# =============================================================================
# PASS
# =============================================================================

def apply_page_styles(
    package: XlsxPackage,
    page_styles: List[PageStyle],
    layout: Optional[LayoutConfig] = None,
) -> ApplyContext:
    ctx = ApplyContext(package, layout)
    rows: Optional[Span] = None
    cols: Optional[Span] = None

    for page in page_styles:
        if page.repeat_heading:
            header = ctx.row_map.header
            if header is None:
                logger.debug("repeatHeading ignored: the layout has no header row")
            else:
                rows = _union(rows, (header, header))
        if page.repeat_row:
            selection = ctx.resolve(page.repeat_row, page.smart_row)
            if selection is not None:
                rows = _union(rows, (selection.from_row, selection.to_row))
        if page.repeat_col:
            selection = ctx.resolve(page.repeat_col, page.smart_row)
            if selection is not None:
                cols = _union(cols, (selection.from_col, selection.to_col))
        for key, value in (page.sheet or {}).items():
            PAGE_WRITER.write_child(key, value, ctx.sheet.root)

    if rows is not None or cols is not None:
        entry = set_print_titles(package, rows, cols)
        logger.info(f"Print titles set to {entry.text}")
    return ctx
