"""Excel Styles - excelStyles rules for exported XLSX workbooks.

This module handles:
1. Parsing and resolving the compact cell reference language
2. Merging style rules into the workbook's style catalog (styles.xml)
3. Inserting cell content, conditional formats and page settings
"""

from .errors import (
    ExcelStylesError,
    GrammarMismatch,
    InvalidRule,
    PackageError,
    UnresolvedLogicalRow,
)
from .schemas import (
    ConditionRule,
    ExcelStylesOptions,
    InsertCellsRule,
    LayoutConfig,
    PageStyle,
    StyleRule,
)
from .references import (
    LogicalRowMap,
    RawMatch,
    Selection,
    SheetExtent,
    col_index_to_letters,
    letters_to_col_index,
    normalize,
    parse_reference,
    resolve_logical_rows,
    resolve_reference,
)
from .catalog import StyleCatalog
from .workbook import Worksheet, XlsxPackage
from .merge import build_dxf, merge_builtin, merge_custom
from .apply import ApplyContext, apply_styles
from .grid import insert_cells
from .page import apply_page_styles
from .templates import expand_templates, get_template, list_templates
from .pipeline import apply_excel_styles

__all__ = [
    # Errors
    "ExcelStylesError",
    "GrammarMismatch",
    "InvalidRule",
    "PackageError",
    "UnresolvedLogicalRow",
    # Rule schemas
    "ConditionRule",
    "ExcelStylesOptions",
    "InsertCellsRule",
    "LayoutConfig",
    "PageStyle",
    "StyleRule",
    # References
    "LogicalRowMap",
    "RawMatch",
    "Selection",
    "SheetExtent",
    "col_index_to_letters",
    "letters_to_col_index",
    "normalize",
    "parse_reference",
    "resolve_logical_rows",
    "resolve_reference",
    # Workbook
    "StyleCatalog",
    "Worksheet",
    "XlsxPackage",
    # Passes
    "ApplyContext",
    "apply_styles",
    "apply_page_styles",
    "build_dxf",
    "insert_cells",
    "merge_builtin",
    "merge_custom",
    # Templates
    "expand_templates",
    "get_template",
    "list_templates",
    # Entry point
    "apply_excel_styles",
]
