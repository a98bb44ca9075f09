"""Declarative translation table from style descriptors to SpreadsheetML.

A style descriptor is the simplified, user-facing form of a style::

    {
        "font": {"bold": True, "size": 12, "color": "FF0000"},
        "fill": {"pattern": {"color": "FFFF00"}},
        "border": {"top": "thin", "bottom": {"style": "thin", "color": "000000"}},
        "numFmt": "#,##0.00",
        "alignment": {"horizontal": "center", "wrap": True},
    }

Each aspect maps to an ``ElementRule`` tree describing how the descriptor
keys become elements and attributes of the native record:

- ``translate`` renames friendly keys (``size`` -> ``sz``)
- ``defaults`` are merged under the given values, in order, so that
  elements the file format wants in a fixed position always exist
- child keys with an ``ElementRule`` become child elements, other keys
  become attributes (``AttributeRule`` adds a value normalizer)
- a scalar given for an element is written to ``value_attr``
  (or as element text when ``text`` is set)
- ``replace`` names the siblings removed before the element is written
- ``merge`` reuses an existing same-named child instead of adding one
- ``order`` positions new children before the siblings that follow them
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple, Union

from .ooxml import WORKSHEET_ORDER


# =============================================================================
# NODES
# =============================================================================

@dataclass(frozen=True)
class AttributeRule:
    """Leaf: an XML attribute, optionally normalized before writing."""
    tidy: Optional[Callable[[Any], Any]] = None


@dataclass(frozen=True)
class ElementRule:
    """Group: an XML element with its own defaults and children."""
    defaults: Dict[str, Any] = field(default_factory=dict)
    translate: Dict[str, str] = field(default_factory=dict)
    value_attr: str = "val"
    text: bool = False
    replace: Tuple[str, ...] = ()
    merge: bool = True
    order: Tuple[str, ...] = ()
    children: Dict[str, "SchemaNode"] = field(default_factory=dict)

    def name_for(self, key: str) -> str:
        return self.translate.get(key, key)

    def element(self, name: str) -> Optional["ElementRule"]:
        node = self.children.get(name)
        return node if isinstance(node, ElementRule) else None

    def attribute(self, name: str) -> Optional[AttributeRule]:
        node = self.children.get(name)
        return node if isinstance(node, AttributeRule) else None


SchemaNode = Union[ElementRule, AttributeRule]

# Element without schema entries: keys are written literally as attributes
LITERAL = ElementRule()


# =============================================================================
# NORMALIZERS
# =============================================================================

def tidy_color(value: Any) -> str:
    """'#ff0000' -> 'FFFF0000'. Six digit RGB gains an opaque alpha."""
    color = str(value).strip().lstrip("#").upper()
    if len(color) == 6:
        return "FF" + color
    return color


COLOR_RGB = {"rgb": AttributeRule(tidy=tidy_color)}


def _color(**kwargs: Any) -> ElementRule:
    return ElementRule(value_attr="rgb", children=COLOR_RGB, **kwargs)


def _border_side() -> ElementRule:
    return ElementRule(value_attr="style", children={"color": _color()})


# =============================================================================
# CELL STYLE SCHEMA
# =============================================================================

FONT_ORDER = (
    "b", "i", "strike", "condense", "extend", "outline", "shadow", "u",
    "vertAlign", "sz", "color", "name", "family", "charset", "scheme",
)

FONT = ElementRule(
    translate={
        "size": "sz",
        "strong": "b",
        "bold": "b",
        "italic": "i",
        "underline": "u",
        "strikethrough": "strike",
    },
    order=FONT_ORDER,
    children={"color": _color()},
)

PATTERN_FILL = ElementRule(
    defaults={"patternType": "solid", "fgColor": "", "bgColor": ""},
    translate={"type": "patternType", "color": "fgColor"},
    replace=("gradientFill",),
    order=("fgColor", "bgColor"),
    children={"fgColor": _color(), "bgColor": _color()},
)

GRADIENT_FILL = ElementRule(
    # A fill holds one pattern or one gradient
    replace=("patternFill", "gradientFill"),
    children={
        "stop": ElementRule(merge=False, children={"color": _color()}),
    },
)

FILL = ElementRule(
    translate={"pattern": "patternFill", "gradient": "gradientFill"},
    children={"patternFill": PATTERN_FILL, "gradientFill": GRADIENT_FILL},
)

BORDER_SIDES = ("start", "end", "left", "right", "top", "bottom", "diagonal", "vertical", "horizontal")

BORDER = ElementRule(
    defaults={side: "" for side in ("left", "right", "top", "bottom", "diagonal", "vertical", "horizontal")},
    order=BORDER_SIDES,
    children={side: _border_side() for side in BORDER_SIDES},
)

ALIGNMENT = ElementRule(
    value_attr="horizontal",
    translate={"wrap": "wrapText", "rotation": "textRotation", "shrink": "shrinkToFit"},
)

PROTECTION = ElementRule(value_attr="locked")

# Aspects stored in their own catalog container, referenced by <kind>Id
CONTAINER_ASPECTS = ("font", "fill", "border")

# Aspects written inside the xf itself, flagged apply<Aspect>="1"
XF_ASPECTS = ("alignment", "protection")

STYLE_SCHEMA = ElementRule(
    translate={"numberFormat": "numFmt"},
    order=("alignment", "protection", "extLst"),
    children={
        "font": FONT,
        "fill": FILL,
        "border": BORDER,
        "alignment": ALIGNMENT,
        "protection": PROTECTION,
    },
)


# =============================================================================
# DIFFERENTIAL STYLE SCHEMA
# =============================================================================

# A dxf solid fill paints with bgColor
DXF_PATTERN_FILL = ElementRule(
    defaults={"bgColor": ""},
    translate={"type": "patternType", "color": "bgColor"},
    replace=("gradientFill",),
    order=("fgColor", "bgColor"),
    children={"fgColor": _color(), "bgColor": _color()},
)

DXF_ORDER = ("font", "numFmt", "fill", "alignment", "protection", "border", "extLst")

DXF_SCHEMA = ElementRule(
    translate={"numberFormat": "numFmt"},
    order=DXF_ORDER,
    children={
        "font": FONT,
        "fill": ElementRule(
            translate={"pattern": "patternFill", "gradient": "gradientFill"},
            children={"patternFill": DXF_PATTERN_FILL, "gradientFill": GRADIENT_FILL},
        ),
        # Only the sides a rule names; a dxf border has no placeholder sides
        "border": ElementRule(order=BORDER_SIDES, children=dict(BORDER.children)),
        "alignment": ALIGNMENT,
        "protection": PROTECTION,
    },
)


# =============================================================================
# PAGE LAYOUT SCHEMA
# =============================================================================

HEADER_FOOTER_ORDER = ("oddHeader", "oddFooter", "evenHeader", "evenFooter", "firstHeader", "firstFooter")

PAGE_SCHEMA = ElementRule(
    order=WORKSHEET_ORDER,
    children={
        "pageSetup": ElementRule(value_attr="orientation"),
        "pageMargins": ElementRule(
            defaults={"left": 0.7, "right": 0.7, "top": 0.75, "bottom": 0.75, "header": 0.3, "footer": 0.3},
        ),
        "printOptions": ElementRule(),
        "headerFooter": ElementRule(
            order=HEADER_FOOTER_ORDER,
            children={name: ElementRule(text=True) for name in HEADER_FOOTER_ORDER},
        ),
    },
)
