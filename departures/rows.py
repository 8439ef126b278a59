"""
Row vocabulary of the departures sheet.

The sheet is a banded layout, repeated per route:

    Linija 31
    Smer: Zeleni Venac
    Polazak | Vozilo | Poslednji put viđen
    05:10   | P1234  | 10:00:00
    <blank>
    <blank>            (extra blank after the last direction of a route)

classify_row maps one sheet row to a tagged kind; both the parser and the
renderer take their marker text from this module.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

ROUTE_MARKER = "Linija "
DIRECTION_MARKER = "Smer: "
COLUMN_HEADER = ["Polazak", "Vozilo", "Poslednji put viđen"]
# Left in the first cell when the sheet is wiped by the daily rollover.
RESET_MARKERS = ("resetovan", "Reset at")

SHEET_WIDTH = 10  # columns A:J

_TIME_RE = re.compile(r"^\d{1,2}:\d{2}")


class RowKind(enum.Enum):
    ROUTE_HEADER = "route_header"
    DIRECTION_HEADER = "direction_header"
    COLUMN_HEADER = "column_header"
    DATA = "data"
    BLANK = "blank"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ClassifiedRow:
    kind: RowKind
    text: str = ""  # route / direction name for header rows


def classify_row(row: list[str]) -> ClassifiedRow:
    first = row[0] if row else ""
    if not first or any(marker in first for marker in RESET_MARKERS):
        return ClassifiedRow(RowKind.BLANK)
    if first.startswith(ROUTE_MARKER):
        return ClassifiedRow(RowKind.ROUTE_HEADER, first[len(ROUTE_MARKER):].strip())
    if first.startswith(DIRECTION_MARKER):
        return ClassifiedRow(RowKind.DIRECTION_HEADER, first[len(DIRECTION_MARKER):].strip())
    if first == COLUMN_HEADER[0]:
        return ClassifiedRow(RowKind.COLUMN_HEADER)
    if _TIME_RE.match(first):
        return ClassifiedRow(RowKind.DATA)
    return ClassifiedRow(RowKind.UNKNOWN)


def pad_row(cells: list[str], width: int = SHEET_WIDTH) -> list[str]:
    return list(cells) + [""] * (width - len(cells))
