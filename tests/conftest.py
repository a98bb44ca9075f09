"""Shared fixtures: DataTables-style exports built in memory."""

import sys
from pathlib import Path
from typing import Optional
from xml.etree import ElementTree as ET

# Add project root to path (tests/ -> project root)
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from services.excel_styles.ooxml import find_child
from services.excel_styles.sample import build_export, build_export_package
from services.styles_config import reload_style_settings


COLUMNS = ["Name", "Position", "Salary"]
DATA = [
    ["Tiger Nixon", "System Architect", 320800],
    ["Garrett Winters", "Accountant", 170750],
    ["Ashton Cox", "Junior Technical Author", 86000],
    ["Cedric Kelly", "Senior Javascript Developer", 433060],
]


@pytest.fixture
def package():
    """Header row + 4 data rows, 3 columns (rows 1-5)."""
    return build_export_package(COLUMNS, DATA)


@pytest.fixture
def titled_package():
    """Title (merged A1:C1), header, 4 data rows (rows 1-6)."""
    return build_export_package(COLUMNS, DATA, title="Staff")


@pytest.fixture
def xlsx_bytes():
    return build_export(COLUMNS, DATA, title="Staff")


@pytest.fixture(autouse=True)
def fresh_style_settings():
    """Settings singleton re-read from the (test) environment."""
    reload_style_settings()
    yield
    reload_style_settings()


def cell_text(cell: ET.Element) -> Optional[str]:
    """Text of an inline string or value cell."""
    inline = find_child(cell, "is")
    if inline is not None:
        return find_child(inline, "t").text
    value = find_child(cell, "v")
    return value.text if value is not None else None


def child_names(element: ET.Element) -> list:
    return [child.tag.split("}", 1)[1] for child in element]


def xf_of(pkg, col: int, row: int) -> ET.Element:
    return pkg.styles.xf(pkg.sheet.cell_style(col, row))


