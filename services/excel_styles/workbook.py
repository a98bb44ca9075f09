"""XLSX package access for the styles engine.

Loads the zip once, parses only the parts the passes touch (workbook,
first worksheet, styles) and writes everything else back byte-for-byte.
Modified parts keep their original root element tag so that namespace
declarations ElementTree considers unused (e.g. for mc:Ignorable) survive.
"""

from __future__ import annotations

import logging
import re
import zipfile
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
from xml.etree import ElementTree as ET

from .catalog import StyleCatalog
from .errors import PackageError
from .ooxml import MAIN, NS, WORKSHEET_ORDER, ensure_child, find_child, find_children, q, xml_value
from .references import SheetExtent, cell_ref, split_cell_ref


logger = logging.getLogger(__name__)

WORKBOOK_PART = "xl/workbook.xml"
WORKBOOK_RELS_PART = "xl/_rels/workbook.xml.rels"
STYLES_PART = "xl/styles.xml"
DEFAULT_SHEET_PART = "xl/worksheets/sheet1.xml"


# =============================================================================
# SERIALIZATION
# =============================================================================

def _extract_root_tag(xml_bytes: bytes) -> Tuple[bytes, bytes, bytes]:
    """Extract the original root element opening/closing tags from XML.

    Returns:
        (xml_declaration, root_open_tag, root_close_tag)
    """
    xml_str = xml_bytes.decode("utf-8")

    decl_match = re.match(r"(<\?xml[^?]*\?>)\s*", xml_str)
    if decl_match:
        xml_decl = decl_match.group(1).encode("utf-8")
        rest = xml_str[decl_match.end():]
    else:
        xml_decl = b'<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
        rest = xml_str

    root_match = re.match(r"(<[a-zA-Z][^>]*>)", rest)
    if not root_match or root_match.group(1).endswith("/>"):
        raise PackageError("Cannot locate the root element of an XML part")
    root_open = root_match.group(1).encode("utf-8")

    close_match = re.search(r"(</[a-zA-Z][^>]*>)\s*$", xml_str)
    if not close_match:
        raise PackageError("Cannot locate the closing root tag of an XML part")
    root_close = close_match.group(1).encode("utf-8")

    return xml_decl, root_open, root_close


def _serialize_element_inner(element: ET.Element, ns: str) -> bytes:
    """Serialize an element's children without the root tag.

    Redundant default namespace declarations that ElementTree adds to each
    child are stripped; the namespace is declared on the original root.
    """
    buffer = BytesIO()
    for child in element:
        child_str = ET.tostring(child, encoding="unicode")
        child_str = child_str.replace(f' xmlns="{ns}"', "")
        child_str = child_str.replace(f" xmlns='{ns}'", "")
        buffer.write(child_str.encode("utf-8"))
    return buffer.getvalue()


def serialize_part(original: bytes, root: ET.Element) -> bytes:
    """Re-serialize a parsed part, keeping its original root tag."""
    xml_decl, root_open, root_close = _extract_root_tag(original)
    return xml_decl + b"\r\n" + root_open + _serialize_element_inner(root, MAIN) + root_close


# =============================================================================
# WORKSHEET
# =============================================================================

class Worksheet:
    """The first worksheet of the export: rows, columns and cells."""

    def __init__(self, root: ET.Element, name: str = "Sheet1"):
        self.root = root
        self.name = name
        self._rows: Optional[Dict[int, ET.Element]] = None
        self._cells: Optional[Dict[Tuple[int, int], ET.Element]] = None

    # -- indexes -------------------------------------------------------------

    @property
    def sheet_data(self) -> ET.Element:
        return ensure_child(self.root, "sheetData", WORKSHEET_ORDER)

    def invalidate(self) -> None:
        """Drop the row/cell indexes after structural changes."""
        self._rows = None
        self._cells = None

    def _build_index(self) -> None:
        self._rows = {}
        self._cells = {}
        for row_el in find_children(self.sheet_data, "row"):
            row_num = int(row_el.get("r", 0))
            self._rows[row_num] = row_el
            for cell_el in find_children(row_el, "c"):
                ref = cell_el.get("r")
                if not ref:
                    continue
                try:
                    col, row = split_cell_ref(ref)
                except ValueError:
                    continue
                self._cells[(col, row)] = cell_el

    def row(self, row: int) -> Optional[ET.Element]:
        if self._rows is None:
            self._build_index()
        return self._rows.get(row)

    def cell(self, col: int, row: int) -> Optional[ET.Element]:
        if self._cells is None:
            self._build_index()
        return self._cells.get((col, row))

    def cell_style(self, col: int, row: int) -> Optional[int]:
        """The cell's cellXfs index, or None when the cell does not exist."""
        cell_el = self.cell(col, row)
        if cell_el is None:
            return None
        return int(cell_el.get("s", 0))

    # -- extent --------------------------------------------------------------

    @property
    def last_row(self) -> int:
        if self._rows is None:
            self._build_index()
        return max(self._rows, default=0)

    @property
    def last_column(self) -> int:
        cols_el = find_child(self.root, "cols")
        if cols_el is not None:
            maxima = [int(col.get("max", 0)) for col in find_children(cols_el, "col")]
            if maxima:
                return max(maxima)
        return self.max_cell_column()

    def max_cell_column(self) -> int:
        """Right-most column holding a cell, ignoring <cols>."""
        if self._cells is None:
            self._build_index()
        return max((col for col, _ in self._cells), default=0)

    @property
    def extent(self) -> SheetExtent:
        return SheetExtent(last_column=self.last_column, last_row=self.last_row)

    # -- geometry ------------------------------------------------------------

    def column(self, col: int) -> Optional[ET.Element]:
        """The <col> element whose min attribute is this column."""
        cols_el = find_child(self.root, "cols")
        if cols_el is None:
            return None
        for col_el in find_children(cols_el, "col"):
            if int(col_el.get("min", 0)) == col:
                return col_el
        return None

    def set_column_width(self, col: int, width: float) -> bool:
        col_el = self.column(col)
        if col_el is None:
            return False
        col_el.set("width", xml_value(width))
        col_el.set("customWidth", "1")
        return True

    def set_row_height(self, row: int, height: float) -> bool:
        row_el = self.row(row)
        if row_el is None:
            return False
        row_el.set("ht", xml_value(height))
        row_el.set("customHeight", "1")
        return True

    # -- structure -----------------------------------------------------------

    def ensure_row(self, row: int) -> ET.Element:
        """Return the row element, creating it in row order when missing."""
        existing = self.row(row)
        if existing is not None:
            return existing
        row_el = ET.Element(q("row"), {"r": str(row)})
        sheet_data = self.sheet_data
        position = len(sheet_data)
        for i, sibling in enumerate(sheet_data):
            if int(sibling.get("r", 0)) > row:
                position = i
                break
        sheet_data.insert(position, row_el)
        if self._rows is not None:
            self._rows[row] = row_el
        return row_el

    def ensure_cell(self, col: int, row: int) -> ET.Element:
        """Return the cell element, creating it in column order when missing."""
        existing = self.cell(col, row)
        if existing is not None:
            return existing
        row_el = self.ensure_row(row)
        cell_el = ET.Element(q("c"), {"r": cell_ref(col, row)})
        position = len(row_el)
        for i, sibling in enumerate(find_children(row_el, "c")):
            if split_cell_ref(sibling.get("r", "A1"))[0] > col:
                position = list(row_el).index(sibling)
                break
        row_el.insert(position, cell_el)
        if self._cells is not None:
            self._cells[(col, row)] = cell_el
        return cell_el

    def move_cell(self, cell_el: ET.Element, col: int, row: int) -> None:
        """Point a cell at a new coordinate, keeping the cell index current.

        Callers moving several cells must move the far ones first so a
        cell never lands on a key still held by another.
        """
        old = split_cell_ref(cell_el.get("r"))
        cell_el.set("r", cell_ref(col, row))
        if self._cells is not None:
            if self._cells.get(old) is cell_el:
                del self._cells[old]
            self._cells[(col, row)] = cell_el

    def merged_ranges(self) -> List[ET.Element]:
        merge_el = find_child(self.root, "mergeCells")
        return [] if merge_el is None else find_children(merge_el, "mergeCell")

    def refresh_dimension(self) -> None:
        """Rewrite <dimension ref> to the current extent."""
        dimension = find_child(self.root, "dimension")
        if dimension is None:
            return
        extent = self.extent
        if extent.last_row < 1 or extent.last_column < 1:
            return
        dimension.set("ref", f"A1:{cell_ref(extent.last_column, extent.last_row)}")


# =============================================================================
# PACKAGE
# =============================================================================

class XlsxPackage:
    """An in-memory .xlsx: raw parts plus parsed trees for modified parts."""

    def __init__(self, parts: Dict[str, bytes], compression: Optional[Dict[str, int]] = None):
        for required in (WORKBOOK_PART, STYLES_PART):
            if required not in parts:
                raise PackageError(f"Workbook is missing {required}")
        self._parts = parts
        self._compression = compression or {}
        self._trees: Dict[str, ET.Element] = {}
        self._sheet: Optional[Worksheet] = None
        self._styles: Optional[StyleCatalog] = None

    @classmethod
    def from_bytes(cls, data: bytes) -> "XlsxPackage":
        try:
            with zipfile.ZipFile(BytesIO(data), "r") as zf:
                parts = {item.filename: zf.read(item.filename) for item in zf.infolist()}
                compression = {item.filename: item.compress_type for item in zf.infolist()}
        except zipfile.BadZipFile as e:
            raise PackageError(f"Not an XLSX package: {e}") from e
        return cls(parts, compression)

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "XlsxPackage":
        return cls.from_bytes(Path(path).read_bytes())

    # -- parts ---------------------------------------------------------------

    def root(self, part: str) -> ET.Element:
        """Parsed root of a part; the part is re-serialized on save."""
        if part not in self._trees:
            if part not in self._parts:
                raise PackageError(f"Workbook is missing {part}")
            try:
                self._trees[part] = ET.fromstring(self._parts[part])
            except ET.ParseError as e:
                raise PackageError(f"Malformed XML in {part}: {e}") from e
        return self._trees[part]

    @property
    def workbook(self) -> ET.Element:
        return self.root(WORKBOOK_PART)

    @property
    def sheet_part(self) -> str:
        """Path of the first worksheet, resolved through the workbook rels."""
        sheet = self._first_sheet()
        r_id = sheet.get(f"{{{NS['r']}}}id") if sheet is not None else None
        if r_id and WORKBOOK_RELS_PART in self._parts:
            rels = ET.fromstring(self._parts[WORKBOOK_RELS_PART])
            for rel in rels.findall(f"{{{NS['rel']}}}Relationship"):
                if rel.get("Id") == r_id:
                    target = rel.get("Target", "")
                    return target[1:] if target.startswith("/") else f"xl/{target}"
        return DEFAULT_SHEET_PART

    def _first_sheet(self) -> Optional[ET.Element]:
        sheets_el = find_child(self.workbook, "sheets")
        if sheets_el is None:
            return None
        return find_child(sheets_el, "sheet")

    @property
    def sheet_name(self) -> str:
        sheet = self._first_sheet()
        return sheet.get("name", "Sheet1") if sheet is not None else "Sheet1"

    @property
    def sheet(self) -> Worksheet:
        if self._sheet is None:
            self._sheet = Worksheet(self.root(self.sheet_part), self.sheet_name)
        return self._sheet

    @property
    def styles(self) -> StyleCatalog:
        if self._styles is None:
            self._styles = StyleCatalog(self.root(STYLES_PART))
        return self._styles

    # -- output --------------------------------------------------------------

    def to_bytes(self) -> bytes:
        buffer = BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf_out:
            for name, data in self._parts.items():
                if name in self._trees:
                    data = serialize_part(data, self._trees[name])
                zf_out.writestr(name, data, compress_type=self._compression.get(name) or zipfile.ZIP_DEFLATED)
        return buffer.getvalue()

    def save(self, path: Union[str, Path]) -> str:
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(self.to_bytes())
        logger.info(f"Saved styled workbook to {out}")
        return str(out)

    def copy(self) -> "XlsxPackage":
        return XlsxPackage.from_bytes(self.to_bytes())
