"""Access to the shared style catalog (xl/styles.xml).

Records are addressed the way cells address them: fonts, fills, borders,
cellXfs and dxfs by position, number formats by numFmtId. The catalog is
append-only; ``append`` reuses an equal record when one exists and always
leaves the container's ``count`` attribute in step with its children.
"""

from __future__ import annotations

import copy
import logging
from typing import Dict, List, Optional
from xml.etree import ElementTree as ET

from .ooxml import STYLESHEET_ORDER, elements_equal, ensure_child, find_child, find_children, q, set_count


logger = logging.getLogger(__name__)

# First id available to custom number formats (0-163 are reserved)
FIRST_CUSTOM_NUM_FMT_ID = 164

# Format codes of the builtin ids a differential style may need to spell out
BUILTIN_NUM_FMTS: Dict[int, str] = {
    0: "General",
    1: "0",
    2: "0.00",
    3: "#,##0",
    4: "#,##0.00",
    9: "0%",
    10: "0.00%",
    11: "0.00E+00",
    12: "# ?/?",
    13: "# ??/??",
    14: "mm-dd-yy",
    15: "d-mmm-yy",
    16: "d-mmm",
    17: "mmm-yy",
    18: "h:mm AM/PM",
    19: "h:mm:ss AM/PM",
    20: "h:mm",
    21: "h:mm:ss",
    22: "m/d/yy h:mm",
    37: "#,##0 ;(#,##0)",
    38: "#,##0 ;[Red](#,##0)",
    39: "#,##0.00;(#,##0.00)",
    40: "#,##0.00;[Red](#,##0.00)",
    45: "mm:ss",
    46: "[h]:mm:ss",
    47: "mmss.0",
    48: "##0.0E+0",
    49: "@",
}

CONTAINERS: Dict[str, str] = {
    "numFmt": "numFmts",
    "font": "fonts",
    "fill": "fills",
    "border": "borders",
    "xf": "cellXfs",
    "dxf": "dxfs",
}


class StyleCatalog:
    """Wrapper over a parsed styles.xml root."""

    def __init__(self, root: ET.Element):
        self.root = root

    # -- containers ----------------------------------------------------------

    def container(self, kind: str) -> ET.Element:
        """The container for a record kind, created in schema order if missing."""
        return ensure_child(self.root, CONTAINERS[kind], STYLESHEET_ORDER)

    def records(self, kind: str) -> List[ET.Element]:
        container = find_child(self.root, CONTAINERS[kind])
        if container is None:
            return []
        return find_children(container, kind)

    def record(self, kind: str, index: int) -> Optional[ET.Element]:
        records = self.records(kind)
        if 0 <= index < len(records):
            return records[index]
        return None

    def count(self, kind: str) -> int:
        return len(self.records(kind))

    def xf(self, index: int) -> Optional[ET.Element]:
        return self.record("xf", index)

    def clone(self, kind: str, index: Optional[int]) -> ET.Element:
        """Deep copy of a record, or a fresh empty one when it does not exist."""
        source = self.record(kind, index) if index is not None else None
        if source is None:
            return ET.Element(q(kind))
        return copy.deepcopy(source)

    # -- mutation ------------------------------------------------------------

    def append(self, kind: str, element: ET.Element, reuse: bool = True) -> int:
        """Store a record and return its index.

        An existing record that is structurally equal is reused instead of
        appending a duplicate. The container count is refreshed either way.
        """
        container = self.container(kind)
        records = find_children(container, kind)
        if reuse:
            for index, existing in enumerate(records):
                if elements_equal(existing, element):
                    set_count(container)
                    return index
        container.append(element)
        set_count(container)
        logger.debug(f"Appended {kind} #{len(records)} to the style catalog")
        return len(records)

    # -- number formats ------------------------------------------------------

    def num_fmt(self, num_fmt_id: int) -> Optional[ET.Element]:
        for element in self.records("numFmt"):
            if element.get("numFmtId") == str(num_fmt_id):
                return element
        return None

    def num_fmt_for_code(self, format_code: str) -> Optional[int]:
        for element in self.records("numFmt"):
            if element.get("formatCode") == format_code:
                return int(element.get("numFmtId", 0))
        return None

    def format_code(self, num_fmt_id: int) -> Optional[str]:
        element = self.num_fmt(num_fmt_id)
        if element is not None:
            return element.get("formatCode")
        return BUILTIN_NUM_FMTS.get(num_fmt_id)

    def max_num_fmt_id(self) -> int:
        ids = [int(element.get("numFmtId", 0)) for element in self.records("numFmt")]
        return max(ids, default=0)

    def add_num_fmt(self, format_code: str) -> int:
        """Return the id of a number format, allocating one when new."""
        existing = self.num_fmt_for_code(format_code)
        if existing is not None:
            return existing
        num_fmt_id = max(FIRST_CUSTOM_NUM_FMT_ID - 1, self.max_num_fmt_id()) + 1
        element = ET.Element(q("numFmt"), {"numFmtId": str(num_fmt_id), "formatCode": format_code})
        self.append("numFmt", element, reuse=False)
        return num_fmt_id
