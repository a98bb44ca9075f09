"""Entry point: run every excelStyles pass over a workbook."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

from .apply import apply_styles
from .grid import insert_cells
from .page import apply_page_styles
from .schemas import ExcelStylesOptions, InsertCellsRule, PageStyle, StyleRule, coerce_rule, coerce_rules
from .templates import expand_templates
from .workbook import XlsxPackage


logger = logging.getLogger(__name__)


def apply_excel_styles(
    package: XlsxPackage,
    options: Optional[Union[ExcelStylesOptions, Dict[str, Any]]] = None,
) -> XlsxPackage:
    """Apply insert-cells, style and page rules to the package, in that order.

    Malformed rules and references are skipped; the package is modified
    in place and returned.
    """
    options = coerce_rule(ExcelStylesOptions, options or {})
    layout = options.layout

    style_rules = coerce_rules(StyleRule, expand_templates(options.excel_styles))
    insert_rules = coerce_rules(InsertCellsRule, options.insert_cells)
    page_rules = coerce_rules(PageStyle, options.page_style)

    if insert_rules:
        insert_cells(package, insert_rules, layout)
    if style_rules:
        apply_styles(package, style_rules, layout)
    if page_rules:
        apply_page_styles(package, page_rules, layout)

    logger.info(
        f"excelStyles done: {len(insert_rules)} insert, {len(style_rules)} style, {len(page_rules)} page rule(s)"
    )
    return package
