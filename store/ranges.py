"""
A1-notation range parsing.

Supported shapes (sheet title is required):

    Sheet!A1          single cell, also used as a write anchor
    Sheet!A2:F        open-ended rows
    Sheet!A:J         whole columns
    Sheet!B5:I5       bounded rectangle

Bounds are converted to zero-based, end-exclusive indices; an open end is
``None``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from store.exceptions import InvalidRange

_CELL_RE = re.compile(r"^([A-Z]+)(\d*)$")


@dataclass(frozen=True)
class GridRange:
    sheet: str
    start_row: int
    end_row: int | None
    start_column: int
    end_column: int | None

    def contains_row(self, row_index: int) -> bool:
        return row_index >= self.start_row and (self.end_row is None or row_index < self.end_row)


def column_index(letters: str) -> int:
    """'A' -> 0, 'J' -> 9, 'AA' -> 26."""
    index = 0
    for ch in letters:
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index - 1


def column_letters(index: int) -> str:
    """Inverse of column_index."""
    letters = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def _parse_cell(ref: str, a1: str) -> tuple[int | None, int]:
    match = _CELL_RE.match(ref.strip().upper())
    if not match:
        raise InvalidRange(f"Invalid cell reference '{ref}' in range '{a1}'.")
    letters, digits = match.groups()
    row = int(digits) - 1 if digits else None
    if row is not None and row < 0:
        raise InvalidRange(f"Row numbers start at 1 in range '{a1}'.")
    return row, column_index(letters)


def parse_a1(a1: str) -> GridRange:
    if "!" not in a1:
        raise InvalidRange(f"Range '{a1}' has no sheet name.")
    sheet, _, cells = a1.rpartition("!")
    if len(sheet) > 1 and sheet[0] == sheet[-1] == "'":
        sheet = sheet[1:-1].replace("''", "'")
    if not sheet or not cells:
        raise InvalidRange(f"Range '{a1}' is incomplete.")

    if ":" in cells:
        start_ref, end_ref = cells.split(":", 1)
        start_row, start_col = _parse_cell(start_ref, a1)
        end_row, end_col = _parse_cell(end_ref, a1)
        return GridRange(
            sheet=sheet,
            start_row=start_row or 0,
            end_row=None if end_row is None else end_row + 1,
            start_column=start_col,
            end_column=end_col + 1,
        )

    row, col = _parse_cell(cells, a1)
    if row is None:
        # "Sheet!C" — a whole single column
        return GridRange(sheet, 0, None, col, col + 1)
    return GridRange(sheet, row, row + 1, col, col + 1)


def a1(sheet: str, cells: str) -> str:
    """Build 'Sheet!cells', quoting titles that need it."""
    if re.fullmatch(r"[A-Za-z0-9_]+", sheet):
        return f"{sheet}!{cells}"
    return "'" + sheet.replace("'", "''") + f"'!{cells}"
