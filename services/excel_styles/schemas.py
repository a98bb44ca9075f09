"""Pydantic schemas for excelStyles rule records.

These schemas model the options a host export hands to the styles
engine:
- Layout flags of the export (title, messages, header, footer)
- Cell style rules (``excelStyles``)
- Page layout rules (``pageStyle``)
- Cell insertion rules (``insertCells``)

Every record accepts the camelCase keys used by the JavaScript export
options as well as the snake_case field names.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidRule


logger = logging.getLogger(__name__)

SMART_ROW_REF = "smart"
ALL_CELLS = ":"


def _as_list(value: Any) -> Any:
    """Accept a single item wherever a list is expected."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class _RuleModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", arbitrary_types_allowed=True)


# =============================================================================
# LAYOUT
# =============================================================================

class LayoutConfig(_RuleModel):
    """Which optional rows the export wrote around the data block."""
    title: Optional[str] = None
    message_top: Optional[str] = Field(default=None, validation_alias=AliasChoices("messageTop", "message_top"))
    header: bool = True
    footer: bool = False
    message_bottom: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("messageBottom", "message_bottom")
    )

    @property
    def has_title(self) -> bool:
        return isinstance(self.title, str) and self.title != ""

    @property
    def has_message_top(self) -> bool:
        return bool(self.message_top)

    @property
    def has_header(self) -> bool:
        return self.header is not False

    @property
    def has_footer(self) -> bool:
        return self.footer is True

    @property
    def has_message_bottom(self) -> bool:
        return bool(self.message_bottom)


# =============================================================================
# STYLE RULES
# =============================================================================

class ConditionRule(_RuleModel):
    """Conditional formatting trigger (becomes a <cfRule>).

    Attributes not modelled here (``text``, ``timePeriod``, ``rank`` ...)
    are kept and written onto the rule element as-is.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str = "expression"  # "expression", "cellIs", "containsText", ...
    operator: Optional[str] = None  # "greaterThan", "between", ...
    formula: List[str] = Field(default_factory=list)
    stop_if_true: bool = Field(default=False, validation_alias=AliasChoices("stopIfTrue", "stop_if_true"))
    priority: Optional[int] = None

    @field_validator("formula", mode="before")
    @classmethod
    def _formula_list(cls, value: Any) -> Any:
        return [str(item) for item in _as_list(value)]

    def extra_attributes(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class StyleRule(_RuleModel):
    """One entry of ``excelStyles``."""
    index: Optional[int] = None  # Existing cellXfs index to apply
    cells: List[str] = Field(default_factory=lambda: [ALL_CELLS])
    style: Optional[Dict[str, Any]] = None  # StyleDescriptor
    row_ref: Optional[str] = Field(default=None, validation_alias=AliasChoices("rowRef", "rowref", "row_ref"))
    merge: bool = True  # Merge into the cell's current style vs. start from style 0
    width: Optional[float] = None
    height: Optional[float] = None
    condition: Optional[ConditionRule] = None
    template: Optional[str] = None

    @field_validator("cells", mode="before")
    @classmethod
    def _cells_list(cls, value: Any) -> Any:
        cells = _as_list(value)
        return cells if cells else [ALL_CELLS]

    @property
    def smart_row(self) -> bool:
        return self.row_ref == SMART_ROW_REF


class PageStyle(_RuleModel):
    """One entry of ``pageStyle``: print titles and worksheet page settings."""
    repeat_heading: bool = Field(default=False, validation_alias=AliasChoices("repeatHeading", "repeat_heading"))
    repeat_row: Optional[str] = Field(default=None, validation_alias=AliasChoices("repeatRow", "repeat_row"))
    repeat_col: Optional[str] = Field(default=None, validation_alias=AliasChoices("repeatCol", "repeat_col"))
    row_ref: Optional[str] = Field(default=None, validation_alias=AliasChoices("rowRef", "rowref", "row_ref"))
    sheet: Optional[Dict[str, Any]] = None  # pageSetup, pageMargins, printOptions, headerFooter

    @property
    def smart_row(self) -> bool:
        return self.row_ref == SMART_ROW_REF


class InsertCellsRule(_RuleModel):
    """One entry of ``insertCells``.

    ``content`` is a literal, a list cycled across the selection, or a
    callable ``content(cell_ref, col, row, smart_row_index)``.
    """
    cells: List[str] = Field(default_factory=lambda: [ALL_CELLS])
    content: Any = None
    push_row: bool = Field(default=False, validation_alias=AliasChoices("pushRow", "push_row"))
    push_col: bool = Field(default=False, validation_alias=AliasChoices("pushCol", "push_col"))
    row_ref: Optional[str] = Field(default=None, validation_alias=AliasChoices("rowRef", "rowref", "row_ref"))
    style: Optional[Dict[str, Any]] = None

    @field_validator("cells", mode="before")
    @classmethod
    def _cells_list(cls, value: Any) -> Any:
        cells = _as_list(value)
        return cells if cells else [ALL_CELLS]

    @property
    def smart_row(self) -> bool:
        return self.row_ref == SMART_ROW_REF


# =============================================================================
# OPTIONS ENVELOPE
# =============================================================================

class ExcelStylesOptions(_RuleModel):
    """Everything one styling run needs besides the workbook.

    Rule lists stay loosely typed here so that one malformed rule is
    dropped on its own instead of rejecting the whole envelope.
    """
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    excel_styles: List[Any] = Field(default_factory=list, validation_alias=AliasChoices("excelStyles", "excel_styles"))
    page_style: List[Any] = Field(default_factory=list, validation_alias=AliasChoices("pageStyle", "page_style"))
    insert_cells: List[Any] = Field(default_factory=list, validation_alias=AliasChoices("insertCells", "insert_cells"))

    @field_validator("excel_styles", "page_style", "insert_cells", mode="before")
    @classmethod
    def _rules_list(cls, value: Any) -> Any:
        return _as_list(value)


RuleT = TypeVar("RuleT", bound=BaseModel)


def coerce_rule(model: Type[RuleT], rule: Union[RuleT, Dict[str, Any]]) -> RuleT:
    """Validate a single rule record, raising InvalidRule."""
    if isinstance(rule, model):
        return rule
    try:
        return model.model_validate(rule)
    except ValidationError as e:
        raise InvalidRule(f"Invalid {model.__name__}: {e.error_count()} error(s): {e.errors()[0]['msg']}") from e


def coerce_rules(model: Type[RuleT], rules: Any) -> List[RuleT]:
    """Validate a list of rule records, dropping (and logging) invalid ones."""
    coerced: List[RuleT] = []
    for i, rule in enumerate(_as_list(rules)):
        try:
            coerced.append(coerce_rule(model, rule))
        except InvalidRule as e:
            logger.warning(f"Ignoring rule #{i}: {e}")
    return coerced
