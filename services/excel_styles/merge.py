"""Style merge engine.

Produces new cellXfs records from either an existing (builtin) style
index or a style descriptor, always starting from a copy of the cell's
current record so that the aspects a rule does not mention survive.
Every record is stored through ``StyleCatalog.append``; equal records
are shared.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional, Tuple
from xml.etree import ElementTree as ET

from .catalog import StyleCatalog
from .ooxml import find_child, find_children, insert_in_order, local_name, q, xml_value
from .style_schema import (
    BORDER_SIDES,
    CONTAINER_ASPECTS,
    DXF_ORDER,
    DXF_SCHEMA,
    FONT_ORDER,
    LITERAL,
    STYLE_SCHEMA,
    XF_ASPECTS,
    ElementRule,
)


logger = logging.getLogger(__name__)

# Child order of each container record, used when overlaying children
RECORD_ORDER: Dict[str, Tuple[str, ...]] = {
    "font": FONT_ORDER,
    "fill": (),
    "border": BORDER_SIDES,
}


def _apply_flag(aspect: str) -> str:
    """'numFmt' -> 'applyNumberFormat', 'font' -> 'applyFont'."""
    if aspect == "numFmt":
        return "applyNumberFormat"
    return f"apply{aspect[0].upper()}{aspect[1:]}"


# =============================================================================
# SCHEMA WRITER
# =============================================================================

class SchemaWriter:
    """Writes descriptor values into XML following an ElementRule tree."""

    def __init__(self, schema: ElementRule):
        self.schema = schema

    def aspect(self, key: str) -> Tuple[str, ElementRule]:
        name = self.schema.name_for(key)
        return name, self.schema.element(name) or LITERAL

    def write_aspect(self, key: str, values: Any, record: ET.Element) -> None:
        """Write an aspect's values into its record: every key is a child element."""
        _, rule = self.aspect(key)
        if not isinstance(values, dict):
            self.write_attributes(rule, values, record)
            return
        for child_key, item in {**rule.defaults, **values}.items():
            self.write_node(rule, child_key, item, record)

    def write_child(self, key: str, value: Any, parent: ET.Element) -> None:
        """Write a top-level element of the schema (alignment, pageSetup...)."""
        self.write_node(self.schema, key, value, parent)

    def write_node(self, parent_rule: ElementRule, key: str, value: Any, parent: ET.Element) -> None:
        name = parent_rule.name_for(key)
        rule = parent_rule.element(name) or LITERAL

        for sibling in rule.replace:
            for conflicting in find_children(parent, sibling):
                parent.remove(conflicting)

        items = value if isinstance(value, list) else [value]
        for item in items:
            node = find_child(parent, name) if rule.merge else None
            if node is None:
                node = insert_in_order(parent, ET.Element(q(name)), parent_rule.order)
            self.write_attributes(rule, item, node)

    def write_attributes(self, rule: ElementRule, value: Any, node: ET.Element) -> None:
        if isinstance(value, dict):
            for key, item in {**rule.defaults, **value}.items():
                name = rule.name_for(key)
                if rule.element(name) is not None:
                    self.write_node(rule, name, item, node)
                elif item is None:
                    node.attrib.pop(name, None)
                else:
                    node.set(name, self._attribute_value(rule, name, item))
        elif value is None or value == "":
            return
        elif rule.text:
            node.text = xml_value(value)
        else:
            node.set(rule.value_attr, self._attribute_value(rule, rule.value_attr, value))

    @staticmethod
    def _attribute_value(rule: ElementRule, name: str, value: Any) -> str:
        attribute = rule.attribute(name)
        if attribute is not None and attribute.tidy is not None:
            value = attribute.tidy(value)
        return xml_value(value)


STYLE_WRITER = SchemaWriter(STYLE_SCHEMA)
DXF_WRITER = SchemaWriter(DXF_SCHEMA)


# =============================================================================
# BUILTIN MERGE
# =============================================================================

def _overlay_children(target: ET.Element, source: ET.Element, order: Tuple[str, ...]) -> None:
    """Copy every attribute and child of source onto target.

    A child replaces the first same-named child of target; new children
    are placed in record order.
    """
    target.attrib.update(source.attrib)
    for child in source:
        replacement = copy.deepcopy(child)
        existing = target.find(child.tag)
        if existing is not None:
            position = list(target).index(existing)
            target.remove(existing)
            target.insert(position, replacement)
        else:
            insert_in_order(target, replacement, order)


def merge_builtin(catalog: StyleCatalog, builtin_index: int, current_index: int) -> int:
    """Merge an existing cellXfs record into the cell's current one."""
    builtin = catalog.xf(builtin_index)
    if builtin is None:
        logger.debug(f"Style index {builtin_index} does not exist, keeping {current_index}")
        return current_index
    xf = catalog.clone("xf", current_index)

    for kind in ("font", "fill", "border", "numFmt"):
        attr = f"{kind}Id"
        if attr not in builtin.attrib:
            continue
        merge_id = int(builtin.get(attr))
        if attr not in xf.attrib:
            xf.set(attr, str(merge_id))
            xf.set(_apply_flag(kind), "1")
            continue
        type_id = int(xf.get(attr))
        if merge_id == type_id:
            continue

        if kind == "numFmt":
            # Only the id is copied; 0 (General) never overrides a format
            if merge_id > 0:
                xf.set(attr, str(merge_id))
                xf.set(_apply_flag(kind), "1")
            continue

        source = catalog.record(kind, merge_id)
        if source is None:
            continue
        merged = catalog.clone(kind, type_id)
        _overlay_children(merged, source, RECORD_ORDER[kind])
        xf.set(attr, str(catalog.append(kind, merged)))
        xf.set(_apply_flag(kind), "1")

    alignment = find_child(builtin, "alignment")
    if alignment is not None:
        STYLE_WRITER.write_child("alignment", dict(alignment.attrib), xf)
        xf.set(_apply_flag("alignment"), "1")

    return catalog.append("xf", xf)


# =============================================================================
# DESCRIPTOR MERGE
# =============================================================================

def _set_num_fmt(catalog: StyleCatalog, xf: ET.Element, value: Any) -> None:
    if isinstance(value, bool):
        logger.debug(f"Ignoring number format {value!r}")
        return
    if isinstance(value, (int, float)):
        num_fmt_id = int(value)
    else:
        num_fmt_id = catalog.add_num_fmt(str(value))
    xf.set("numFmtId", str(num_fmt_id))
    xf.set(_apply_flag("numFmt"), "1")


def merge_custom(catalog: StyleCatalog, descriptor: Dict[str, Any], current_index: int) -> int:
    """Merge a style descriptor into the cell's current cellXfs record."""
    xf = catalog.clone("xf", current_index)
    deferred: List[Tuple[str, Any]] = []

    for key, value in descriptor.items():
        aspect, _ = STYLE_WRITER.aspect(key)
        if aspect == "numFmt":
            _set_num_fmt(catalog, xf, value)
        elif aspect in CONTAINER_ASPECTS:
            attr = f"{aspect}Id"
            record = catalog.clone(aspect, int(xf.get(attr)) if attr in xf.attrib else None)
            STYLE_WRITER.write_aspect(aspect, value, record)
            xf.set(attr, str(catalog.append(aspect, record)))
            xf.set(_apply_flag(aspect), "1")
        else:
            deferred.append((aspect, value))

    # Attributes of the xf itself go last, once every id is in place
    for aspect, value in deferred:
        STYLE_WRITER.write_child(aspect, value, xf)
        if aspect in XF_ASPECTS:
            xf.set(_apply_flag(aspect), "1")
        else:
            logger.debug(f"Wrote unknown style aspect {aspect!r} literally")

    return catalog.append("xf", xf)


# =============================================================================
# DIFFERENTIAL STYLES
# =============================================================================

def _dxf_num_fmt(catalog: StyleCatalog, value: Any) -> Optional[ET.Element]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        num_fmt_id = int(value)
        format_code = catalog.format_code(num_fmt_id)
        if format_code is None:
            logger.debug(f"No format code known for number format {num_fmt_id}")
            return None
    else:
        format_code = str(value)
        num_fmt_id = catalog.add_num_fmt(format_code)
    return ET.Element(q("numFmt"), {"numFmtId": str(num_fmt_id), "formatCode": format_code})


def build_dxf(catalog: StyleCatalog, descriptor: Dict[str, Any]) -> int:
    """Build a differential style record from a descriptor and store it."""
    dxf = ET.Element(q("dxf"))
    for key, value in descriptor.items():
        aspect, _ = DXF_WRITER.aspect(key)
        if aspect == "numFmt":
            element = _dxf_num_fmt(catalog, value)
            if element is not None:
                insert_in_order(dxf, element, DXF_ORDER)
        elif aspect in CONTAINER_ASPECTS:
            record = insert_in_order(dxf, ET.Element(q(aspect)), DXF_ORDER)
            DXF_WRITER.write_aspect(aspect, value, record)
        else:
            DXF_WRITER.write_child(aspect, value, dxf)
    return catalog.append("dxf", dxf)


def describe_xf(catalog: StyleCatalog, index: int) -> Dict[str, Any]:
    """Summarize a cellXfs record: referenced ids and inline children."""
    xf = catalog.xf(index)
    if xf is None:
        return {}
    summary: Dict[str, Any] = {key: value for key, value in xf.attrib.items()}
    for child in xf:
        summary[local_name(child.tag)] = dict(child.attrib)
    return summary
