"""Style application pass.

Resolves each rule's cell references against the sheet, merges the rule
into the style of every selected cell and commits the new style indexes
once all rules have run. A cell's style is merged at most once per
distinct source index per rule, so styling a large block of identically
styled cells creates a single new record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple
from xml.etree import ElementTree as ET

from .catalog import StyleCatalog
from .merge import build_dxf, merge_builtin, merge_custom
from .ooxml import WORKSHEET_ORDER, find_children, insert_in_order, q, xml_value
from .references import LogicalRowMap, Selection, SheetExtent, resolve_logical_rows, resolve_reference
from .schemas import LayoutConfig, StyleRule
from .workbook import Worksheet, XlsxPackage


logger = logging.getLogger(__name__)


# =============================================================================
# PASS STATE
# =============================================================================

@dataclass
class CellStyleState:
    original: int
    current: int


@dataclass
class ApplyPassCache:
    """Per-pass cell style states and the per-rule source -> result remap."""
    cells: Dict[Tuple[int, int], CellStyleState] = field(default_factory=dict)
    remap: Dict[int, int] = field(default_factory=dict)
    # Cells the current rule has already styled
    visited: Set[Tuple[int, int]] = field(default_factory=set)

    def start_rule(self) -> None:
        self.remap = {}
        self.visited = set()

    def state(self, sheet: Worksheet, col: int, row: int) -> Optional[CellStyleState]:
        """Cached style state of a cell; None when the cell does not exist."""
        key = (col, row)
        state = self.cells.get(key)
        if state is None:
            index = sheet.cell_style(col, row)
            if index is None:
                return None
            state = CellStyleState(original=index, current=index)
            self.cells[key] = state
        return state

    def changed(self) -> List[Tuple[Tuple[int, int], CellStyleState]]:
        return [(key, state) for key, state in self.cells.items() if state.current != state.original]


class ApplyContext:
    """Everything one pass over a workbook shares.

    The logical row map is resolved once, up front, against the sheet as
    it stands when the pass starts.
    """

    def __init__(self, package: XlsxPackage, layout: Optional[LayoutConfig] = None):
        self.package = package
        self.sheet = package.sheet
        self.catalog: StyleCatalog = package.styles
        self.layout = layout or LayoutConfig()
        self.extent: SheetExtent = self.sheet.extent
        self.row_map: LogicalRowMap = resolve_logical_rows(self.layout, self.extent.last_row)
        self.cache = ApplyPassCache()

    def resolve(self, expression: str, smart_row: bool = False) -> Optional[Selection]:
        return resolve_reference(expression, self.extent, self.row_map, smart_row)

    def selections(self, expressions: Iterable[str], smart_row: bool = False) -> List[Selection]:
        resolved = []
        for expression in expressions:
            selection = self.resolve(expression, smart_row)
            if selection is not None:
                resolved.append(selection)
        return resolved


# =============================================================================
# CONDITIONAL FORMATTING
# =============================================================================

def _next_priority(sheet: Worksheet) -> int:
    priorities = [
        int(cf_rule.get("priority", 0))
        for block in find_children(sheet.root, "conditionalFormatting")
        for cf_rule in find_children(block, "cfRule")
    ]
    return max(priorities, default=0) + 1


def register_conditional(ctx: ApplyContext, rule: StyleRule, selections: List[Selection]) -> ET.Element:
    """Add one <conditionalFormatting> block for the rule's bounding rectangles."""
    condition = rule.condition
    dxf_id = build_dxf(ctx.catalog, rule.style or {})

    attributes = {"type": condition.type, "dxfId": str(dxf_id)}
    attributes["priority"] = str(condition.priority or _next_priority(ctx.sheet))
    if condition.operator:
        attributes["operator"] = condition.operator
    if condition.stop_if_true:
        attributes["stopIfTrue"] = "1"
    for key, value in condition.extra_attributes().items():
        attributes[key] = xml_value(value)

    block = ET.Element(q("conditionalFormatting"), {"sqref": " ".join(s.bounding_ref() for s in selections)})
    cf_rule = ET.SubElement(block, q("cfRule"), attributes)
    for formula in condition.formula:
        ET.SubElement(cf_rule, q("formula")).text = formula
    insert_in_order(ctx.sheet.root, block, WORKSHEET_ORDER)

    logger.debug(f"Registered {condition.type} conditional format on {block.get('sqref')} (dxf {dxf_id})")
    return block


# =============================================================================
# STYLE PASS
# =============================================================================

def _target_index(ctx: ApplyContext, rule: StyleRule, source: int) -> int:
    if rule.index is not None:
        if source == 0:
            return rule.index
        return merge_builtin(ctx.catalog, rule.index, source if rule.merge else 0)
    return merge_custom(ctx.catalog, rule.style, source if rule.merge else 0)


def _apply_geometry(ctx: ApplyContext, rule: StyleRule, selections: List[Selection]) -> None:
    """Column widths and row heights, once per distinct column/row."""
    if rule.width is not None:
        columns: Set[int] = {col for selection in selections for col in selection.columns()}
        for col in sorted(columns):
            ctx.sheet.set_column_width(col, rule.width)
    if rule.height is not None:
        rows: Set[int] = {row for selection in selections for row in selection.rows()}
        for row in sorted(rows):
            ctx.sheet.set_row_height(row, rule.height)


def apply_rule(ctx: ApplyContext, rule: StyleRule) -> None:
    selections = ctx.selections(rule.cells, rule.smart_row)
    if not selections:
        logger.debug(f"No cells selected by {rule.cells}")
        return

    if rule.condition is not None:
        register_conditional(ctx, rule, selections)
        return

    _apply_geometry(ctx, rule, selections)
    if rule.style is None and rule.index is None:
        return

    ctx.cache.start_rule()
    for selection in selections:
        for col, row in selection.cells():
            if (col, row) in ctx.cache.visited:
                continue
            state = ctx.cache.state(ctx.sheet, col, row)
            if state is None:
                continue
            ctx.cache.visited.add((col, row))
            source = state.current
            target = ctx.cache.remap.get(source)
            if target is None:
                target = _target_index(ctx, rule, source)
                ctx.cache.remap[source] = target
            state.current = target


def commit(ctx: ApplyContext) -> int:
    """Write changed style indexes back to their cells."""
    changed = ctx.cache.changed()
    for (col, row), state in changed:
        ctx.sheet.cell(col, row).set("s", str(state.current))
    return len(changed)


def apply_styles(
    package: XlsxPackage,
    rules: List[StyleRule],
    layout: Optional[LayoutConfig] = None,
) -> ApplyContext:
    """Run the style pass: every rule in order, then one commit."""
    ctx = ApplyContext(package, layout)
    for rule in rules:
        apply_rule(ctx, rule)
    changed = commit(ctx)
    logger.info(f"Applied {len(rules)} style rule(s), {changed} cell(s) restyled")
    return ctx
