"""Cell reference language - parsing and resolution.

A reference expression selects a strided rectangle of cells::

    'A3'          cell A3
    '4'           row 4, all columns
    'D'           column D, all rows
    'B3:D'        columns B to D, from row 3 to the last row
    ':'           everything (also '', '1:', 'A:', ':-0', ':>')
    '>'           the last column, all rows
    '-2>5'        two columns back from the last column, row 5
    'B-3:B-0'     column B, from the third to last row to the last row
    '3:n1,2'      every column, every second row from row 3 on
    ':n2'         every second column

Smart row references (prefix ``s`` or ``rowRef: "smart"``) renumber the
rows so that row 1 is the first data row, and add the logical rows
``t`` (title), ``m`` (top message), ``h`` (header), ``f`` (footer) and
``b`` (bottom message)::

    'sh'          the header row
    's1:-0'       every data row
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from .errors import GrammarMismatch, UnresolvedLogicalRow
from .schemas import LayoutConfig


logger = logging.getLogger(__name__)

_DIGITS = "0123456789"
_LOGICAL_MARKERS = "tmhfb"
_LAST_COLUMN = ">"
_MAX_COLUMN_LETTERS = 3
_CELL_REF_PATTERN = re.compile(r"^\$?([A-Z]{1,3})\$?(\d+)$")


# =============================================================================
# COLUMN LETTERS
# =============================================================================

def letters_to_col_index(letters: str) -> int:
    """Convert column letters to a 1-indexed number. A=1, Z=26, AA=27."""
    if not letters or any(not "A" <= char <= "Z" for char in letters):
        raise ValueError(f"Invalid column letters: {letters!r}")
    result = 0
    for char in letters:
        result = result * 26 + (ord(char) - ord("A") + 1)
    return result


def col_index_to_letters(index: int) -> str:
    """Convert a 1-indexed column number to letters. 1=A, 26=Z, 27=AA."""
    if index < 1:
        raise ValueError("Column index must be positive.")
    result = ""
    while index > 0:
        index -= 1
        result = chr(ord("A") + (index % 26)) + result
        index //= 26
    return result


def cell_ref(col: int, row: int) -> str:
    """Build an A1 reference from 1-indexed column and row numbers."""
    return f"{col_index_to_letters(col)}{row}"


def split_cell_ref(ref: str) -> Tuple[int, int]:
    """Parse 'B3' (or '$B$3') into (col, row)."""
    match = _CELL_REF_PATTERN.match(ref.upper())
    if not match:
        raise ValueError(f"Invalid cell reference: {ref}")
    return letters_to_col_index(match.group(1)), int(match.group(2))


def parse_range_ref(ref: str) -> Tuple[int, int, int, int]:
    """Parse 'B2:F6' (or a single cell) into (from_col, from_row, to_col, to_row)."""
    start, _, end = ref.partition(":")
    from_col, from_row = split_cell_ref(start)
    to_col, to_row = split_cell_ref(end) if end else (from_col, from_row)
    return from_col, from_row, to_col, to_row


def format_range_ref(from_col: int, from_row: int, to_col: int, to_row: int) -> str:
    """Inverse of parse_range_ref; collapses one-cell ranges to a cell ref."""
    start = cell_ref(from_col, from_row)
    end = cell_ref(to_col, to_row)
    return start if start == end else f"{start}:{end}"


# =============================================================================
# PARSER
# =============================================================================

@dataclass(frozen=True)
class RawMatch:
    """The captured parts of a reference expression, before any range math."""
    expression: str
    smart_row: bool = False
    from_col_end_subtract: Optional[int] = None
    from_col: Optional[str] = None  # column letters or '>'
    from_logical_row: Optional[str] = None
    from_row_end_subtract: bool = False
    from_row: Optional[int] = None
    range: bool = False
    to_col_end_subtract: Optional[int] = None
    to_col: Optional[str] = None
    to_logical_row: Optional[str] = None
    to_row_end_subtract: bool = False
    to_row: Optional[int] = None
    nth_col: Optional[int] = None
    nth_row: Optional[int] = None


@dataclass
class _Side:
    col_end_subtract: Optional[int] = None
    col: Optional[str] = None
    logical_row: Optional[str] = None
    row_end_subtract: bool = False
    row: Optional[int] = None


class _ReferenceParser:
    """Recursive descent parser for one reference expression.

    expression := ["s"] side [":" side] [stride]
    side       := [column] [logical] [row]
    column     := "-" digits? ">" | ">" | LETTER{1,3}
    logical    := "t" | "m" | "h" | "f" | "b"
    row        := "-" digits | nonzero-digits
    stride     := "n" digits? ["," digits?]
    """

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def parse(self) -> RawMatch:
        smart_row = self._accept("s")
        from_side = self._side()
        has_range = self._accept(":")
        to_side = self._side() if has_range else _Side()
        nth_col, nth_row = self._stride()
        if self.pos != len(self.text):
            raise self._error(f"unexpected {self._peek()!r}")

        return RawMatch(
            expression=self.text,
            smart_row=smart_row,
            from_col_end_subtract=from_side.col_end_subtract,
            from_col=from_side.col,
            from_logical_row=from_side.logical_row,
            from_row_end_subtract=from_side.row_end_subtract,
            from_row=from_side.row,
            range=has_range,
            to_col_end_subtract=to_side.col_end_subtract,
            to_col=to_side.col,
            to_logical_row=to_side.logical_row,
            to_row_end_subtract=to_side.row_end_subtract,
            to_row=to_side.row,
            nth_col=nth_col,
            nth_row=nth_row,
        )

    # -- grammar rules -------------------------------------------------------

    def _side(self) -> _Side:
        side = _Side()
        self._column(side)
        char = self._peek()
        if char and char in _LOGICAL_MARKERS:
            side.logical_row = char
            self.pos += 1
        self._row(side)
        return side

    def _column(self, side: _Side) -> None:
        char = self._peek()
        if char == "-":
            # '-N>' counts back from the last column; a bare '-N' is a row
            end = self.pos + 1
            while end < len(self.text) and self.text[end] in _DIGITS:
                end += 1
            if self.text[end:end + 1] != _LAST_COLUMN:
                return
            digits = self.text[self.pos + 1:end]
            side.col_end_subtract = int(digits) if digits else None
            side.col = _LAST_COLUMN
            self.pos = end + 1
        elif char == _LAST_COLUMN:
            side.col = _LAST_COLUMN
            self.pos += 1
        else:
            start = self.pos
            while self._peek() and "A" <= self._peek() <= "Z":
                self.pos += 1
            letters = self.text[start:self.pos]
            if len(letters) > _MAX_COLUMN_LETTERS:
                raise self._error(f"column {letters!r} is too long")
            side.col = letters or None

    def _row(self, side: _Side) -> None:
        if self._accept("-"):
            digits = self._digits()
            if not digits:
                raise self._error("expected a row count after '-'")
            side.row_end_subtract = True
            side.row = int(digits)
            return
        digits = self._digits()
        if digits:
            if int(digits) == 0:
                raise self._error("row numbers start at 1")
            side.row = int(digits)

    def _stride(self) -> Tuple[Optional[int], Optional[int]]:
        if not self._accept("n"):
            return None, None
        col_digits = self._digits()
        row_digits = self._digits() if self._accept(",") else ""
        return (
            int(col_digits) if col_digits else None,
            int(row_digits) if row_digits else None,
        )

    # -- tokens --------------------------------------------------------------

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _accept(self, char: str) -> bool:
        if self._peek() == char:
            self.pos += 1
            return True
        return False

    def _digits(self) -> str:
        start = self.pos
        while self._peek() and self._peek() in _DIGITS:
            self.pos += 1
        return self.text[start:self.pos]

    def _error(self, reason: str) -> GrammarMismatch:
        return GrammarMismatch(self.text, self.pos, reason)


def parse_reference(expression: str) -> RawMatch:
    """Parse a reference expression, raising GrammarMismatch when invalid."""
    if not isinstance(expression, str):
        raise GrammarMismatch(str(expression), 0, "reference must be a string")
    return _ReferenceParser(expression).parse()


# =============================================================================
# LOGICAL ROWS
# =============================================================================

@dataclass(frozen=True)
class LogicalRowMap:
    """Physical row numbers of the export's logical rows (None when absent)."""
    title: Optional[int] = None
    top_message: Optional[int] = None
    header: Optional[int] = None
    data_top: Optional[int] = None
    data_bottom: Optional[int] = None
    footer: Optional[int] = None
    bottom_message: Optional[int] = None

    _MARKERS = {
        "t": "title",
        "m": "top_message",
        "h": "header",
        "f": "footer",
        "b": "bottom_message",
    }

    def lookup(self, marker: str) -> Optional[int]:
        return getattr(self, self._MARKERS[marker])


def resolve_logical_rows(layout: LayoutConfig, last_physical_row: int) -> LogicalRowMap:
    """Assign logical rows top-down (title, message, header) and bottom-up
    (bottom message, footer); what lies between is the data block."""
    rows = {}
    current = 1
    for name, present in (
        ("title", layout.has_title),
        ("top_message", layout.has_message_top),
        ("header", layout.has_header),
    ):
        if present:
            rows[name] = current
            current += 1
    data_top = current

    current = last_physical_row
    for name, present in (
        ("bottom_message", layout.has_message_bottom),
        ("footer", layout.has_footer),
    ):
        # never hand out a row the header block already owns
        if present and current >= data_top:
            rows[name] = current
            current -= 1

    return LogicalRowMap(
        data_top=data_top,
        data_bottom=current if current >= data_top else None,
        **rows,
    )


# =============================================================================
# NORMALIZER
# =============================================================================

@dataclass(frozen=True)
class SheetExtent:
    last_column: int
    last_row: int


@dataclass(frozen=True)
class Selection:
    """A resolved, ordered and strided cell rectangle."""
    from_col: int
    to_col: int
    from_row: int
    to_row: int
    col_stride: int = 1
    row_stride: int = 1

    def columns(self) -> range:
        return range(self.from_col, self.to_col + 1, self.col_stride)

    def rows(self) -> range:
        return range(self.from_row, self.to_row + 1, self.row_stride)

    def cells(self) -> Iterator[Tuple[int, int]]:
        """Yield (col, row) pairs, column by column."""
        for col in self.columns():
            for row in self.rows():
                yield col, row

    def bounding_ref(self) -> str:
        return format_range_ref(self.from_col, self.from_row, self.to_col, self.to_row)


def normalize(
    raw: RawMatch,
    extent: SheetExtent,
    row_map: LogicalRowMap,
    smart_row: bool = False,
) -> Selection:
    """Turn a RawMatch into a concrete Selection for this sheet."""
    smart = smart_row or raw.smart_row
    last_col = max(extent.last_column, 1)

    def column(value: str, subtract: Optional[int]) -> int:
        if value == _LAST_COLUMN:
            index = last_col - (subtract or 0)
        else:
            index = letters_to_col_index(value)
        return max(index, 1)

    if raw.to_col is not None:
        to_col = column(raw.to_col, raw.to_col_end_subtract)
    elif raw.range or raw.from_col is None:
        to_col = last_col
    else:
        to_col = column(raw.from_col, raw.from_col_end_subtract)
    from_col = column(raw.from_col, raw.from_col_end_subtract) if raw.from_col is not None else 1

    def last_row() -> int:
        if not smart:
            return max(extent.last_row, 1)
        if row_map.data_bottom is None:
            raise UnresolvedLogicalRow(raw.expression, "data")
        return row_map.data_bottom

    first_row = row_map.data_top if smart and row_map.data_top else 1
    offset = first_row - 1

    def row(logical: Optional[str], subtract: bool, value: Optional[int]) -> int:
        if logical is not None:
            resolved = row_map.lookup(logical)
            if resolved is None:
                raise UnresolvedLogicalRow(raw.expression, logical)
            return resolved
        if subtract:
            return max(last_row() - value, 1)
        return value + offset

    from_given = raw.from_row is not None or raw.from_logical_row is not None
    to_given = raw.to_row is not None or raw.to_logical_row is not None

    if to_given:
        to_row = row(raw.to_logical_row, raw.to_row_end_subtract, raw.to_row)
    elif raw.range or not from_given:
        to_row = last_row()
    else:
        to_row = row(raw.from_logical_row, raw.from_row_end_subtract, raw.from_row)
    if from_given:
        from_row = row(raw.from_logical_row, raw.from_row_end_subtract, raw.from_row)
    else:
        from_row = first_row

    if from_col > to_col:
        from_col, to_col = to_col, from_col
    if from_row > to_row:
        from_row, to_row = to_row, from_row

    return Selection(
        from_col=from_col,
        to_col=to_col,
        from_row=from_row,
        to_row=to_row,
        col_stride=max(raw.nth_col or 1, 1),
        row_stride=max(raw.nth_row or 1, 1),
    )


def resolve_reference(
    expression: str,
    extent: SheetExtent,
    row_map: LogicalRowMap,
    smart_row: bool = False,
) -> Optional[Selection]:
    """Parse and normalize, returning None for references that cannot apply."""
    try:
        return normalize(parse_reference(expression), extent, row_map, smart_row)
    except (GrammarMismatch, UnresolvedLogicalRow) as e:
        logger.debug(f"Skipping cell reference: {e}")
        return None
