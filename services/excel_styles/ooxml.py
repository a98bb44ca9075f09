"""SpreadsheetML helpers shared by the package, catalog and passes."""

from __future__ import annotations

from typing import List, Optional, Sequence
from xml.etree import ElementTree as ET


# =============================================================================
# NAMESPACES
# =============================================================================

NS = {
    "main": "http://schemas.openxmlformats.org/spreadsheetml/2006/main",
    "r": "http://schemas.openxmlformats.org/officeDocument/2006/relationships",
    "mc": "http://schemas.openxmlformats.org/markup-compatibility/2006",
    "x14": "http://schemas.microsoft.com/office/spreadsheetml/2009/9/main",
    "x14ac": "http://schemas.microsoft.com/office/spreadsheetml/2009/9/ac",
    "xr": "http://schemas.microsoft.com/office/spreadsheetml/2014/revision",
    "xr2": "http://schemas.microsoft.com/office/spreadsheetml/2015/revision2",
    "xr3": "http://schemas.microsoft.com/office/spreadsheetml/2016/revision3",
    "x16r2": "http://schemas.microsoft.com/office/spreadsheetml/2015/02/main",
    "rel": "http://schemas.openxmlformats.org/package/2006/relationships",
}

MAIN = NS["main"]

# Register namespaces so ElementTree keeps the original prefixes
for prefix, uri in NS.items():
    ET.register_namespace(prefix if prefix != "main" else "", uri)


# Child order required by CT_Worksheet (elements we may create are listed)
WORKSHEET_ORDER = (
    "sheetPr", "dimension", "sheetViews", "sheetFormatPr", "cols", "sheetData",
    "sheetCalcPr", "sheetProtection", "protectedRanges", "scenarios", "autoFilter",
    "sortState", "dataConsolidate", "customSheetViews", "mergeCells", "phoneticPr",
    "conditionalFormatting", "dataValidations", "hyperlinks", "printOptions",
    "pageMargins", "pageSetup", "headerFooter", "rowBreaks", "colBreaks",
    "customProperties", "cellWatches", "ignoredErrors", "smartTags", "drawing",
    "legacyDrawing", "legacyDrawingHF", "picture", "oleObjects", "controls",
    "webPublishItems", "tableParts", "extLst",
)

# Child order required by CT_Stylesheet
STYLESHEET_ORDER = (
    "numFmts", "fonts", "fills", "borders", "cellStyleXfs", "cellXfs",
    "cellStyles", "dxfs", "tableStyles", "colors", "extLst",
)

# Child order required by CT_Workbook
WORKBOOK_ORDER = (
    "fileVersion", "fileSharing", "workbookPr", "workbookProtection", "bookViews",
    "sheets", "functionGroups", "externalReferences", "definedNames", "calcPr",
    "oleSize", "customWorkbookViews", "pivotCaches", "smartTagPr", "smartTagTypes",
    "webPublishing", "fileRecoveryPr", "webPublishObjects", "extLst",
)


# =============================================================================
# ELEMENT HELPERS
# =============================================================================

def q(tag: str) -> str:
    """Qualify a SpreadsheetML tag name: 'row' -> '{main}row'."""
    return tag if tag.startswith("{") else f"{{{MAIN}}}{tag}"


def local_name(tag: str) -> str:
    return tag.split("}", 1)[1] if tag.startswith("{") else tag


def find_child(parent: ET.Element, tag: str) -> Optional[ET.Element]:
    return parent.find(q(tag))


def find_children(parent: ET.Element, tag: str) -> List[ET.Element]:
    return parent.findall(q(tag))


def insert_in_order(parent: ET.Element, child: ET.Element, order: Sequence[str] = ()) -> ET.Element:
    """Insert child before the first sibling that must come after it.

    Without an order (or for tags not listed) the child is appended.
    """
    name = local_name(child.tag)
    if name in order:
        later = set(order[order.index(name) + 1:])
        for position, sibling in enumerate(list(parent)):
            if local_name(sibling.tag) in later:
                parent.insert(position, child)
                return child
    parent.append(child)
    return child


def ensure_child(parent: ET.Element, tag: str, order: Sequence[str] = ()) -> ET.Element:
    """Return the named child, creating it in schema order when missing."""
    existing = find_child(parent, tag)
    if existing is not None:
        return existing
    return insert_in_order(parent, ET.Element(q(tag)), order)


def set_count(container: ET.Element) -> None:
    """Keep a container's count attribute equal to its number of children."""
    container.set("count", str(len(container)))


def elements_equal(a: ET.Element, b: ET.Element) -> bool:
    """Structural equality: tag, attributes, text and children in order."""
    if a.tag != b.tag or a.attrib != b.attrib:
        return False
    if (a.text or "").strip() != (b.text or "").strip():
        return False
    if len(a) != len(b):
        return False
    return all(elements_equal(x, y) for x, y in zip(a, b))


def xml_value(value: object) -> str:
    """Format a Python value as an XML attribute/text value."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
