"""Exceptions raised by the Excel styles engine.

``PackageError`` reaches callers of ``apply_excel_styles`` for unreadable
workbooks and ``InvalidRule`` for a malformed options envelope. The
others are raised by the reference resolver and per-rule coercion and
are caught by the passes, which skip the offending reference or rule.
"""

from __future__ import annotations


class ExcelStylesError(Exception):
    """Base class for all engine errors."""


class GrammarMismatch(ExcelStylesError):
    """A reference expression does not match the reference grammar."""

    def __init__(self, expression: str, position: int, reason: str):
        self.expression = expression
        self.position = position
        self.reason = reason
        super().__init__(f"Invalid cell reference {expression!r} at {position}: {reason}")


class UnresolvedLogicalRow(ExcelStylesError):
    """A logical row marker names a layout element absent from the export."""

    def __init__(self, expression: str, marker: str):
        self.expression = expression
        self.marker = marker
        super().__init__(f"Logical row {marker!r} in {expression!r} is not present in this layout")


class InvalidRule(ExcelStylesError):
    """A rule record could not be coerced into its schema."""


class PackageError(ExcelStylesError):
    """The XLSX package is unreadable or misses a required part."""
