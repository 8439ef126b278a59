"""
DepartureLog → sheet rows plus banding.

Rows are emitted in persistence order (routes by number, directions
alphabetically, departures by time), each padded to the full A:J width.
Row indices are counted as rows are emitted so every format span points at
the exact zero-based row it styles.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from departures.models import DepartureLog, departure_sort_key
from departures.rows import COLUMN_HEADER, DIRECTION_MARKER, ROUTE_MARKER, SHEET_WIDTH, pad_row
from store.base import CellFormatSpan

DARK_BLUE = {"red": 0.12, "green": 0.24, "blue": 0.45}


class StyleKind(enum.Enum):
    ROUTE_HEADER = "route_header"
    DIRECTION_HEADER = "direction_header"
    COLUMN_HEADER = "column_header"


@dataclass(frozen=True)
class StylePreset:
    background_color: dict[str, float]
    text_format: dict
    end_column: int


STYLE_PRESETS: dict[StyleKind, StylePreset] = {
    StyleKind.ROUTE_HEADER: StylePreset(
        background_color=DARK_BLUE,
        text_format={"foregroundColor": {"red": 1, "green": 1, "blue": 1}, "fontSize": 14, "bold": True},
        end_column=SHEET_WIDTH,
    ),
    StyleKind.DIRECTION_HEADER: StylePreset(
        background_color={"red": 0.85, "green": 0.92, "blue": 0.95},
        text_format={"foregroundColor": DARK_BLUE, "fontSize": 12, "bold": True},
        end_column=SHEET_WIDTH,
    ),
    StyleKind.COLUMN_HEADER: StylePreset(
        background_color={"red": 0.95, "green": 0.95, "blue": 0.95},
        text_format={"fontSize": 10, "bold": True},
        end_column=len(COLUMN_HEADER),
    ),
}


@dataclass(frozen=True)
class FormatSpan:
    start_row: int
    end_row: int  # exclusive
    style: StyleKind

    def to_cell_format(self) -> CellFormatSpan:
        preset = STYLE_PRESETS[self.style]
        return CellFormatSpan(
            start_row=self.start_row,
            end_row=self.end_row,
            start_column=0,
            end_column=preset.end_column,
            background_color=preset.background_color,
            text_format=preset.text_format,
        )


@dataclass
class RenderedSheet:
    rows: list[list[str]] = field(default_factory=list)
    spans: list[FormatSpan] = field(default_factory=list)

    def emit(self, cells: list[str], style: StyleKind | None = None) -> None:
        if style is not None:
            index = len(self.rows)
            self.spans.append(FormatSpan(index, index + 1, style))
        self.rows.append(pad_row(cells))

    def cell_formats(self) -> list[CellFormatSpan]:
        return [span.to_cell_format() for span in self.spans]


def render(log: DepartureLog) -> RenderedSheet:
    sheet = RenderedSheet()
    for route in log.sorted_routes():
        sheet.emit([f"{ROUTE_MARKER}{route.name}"], StyleKind.ROUTE_HEADER)
        for direction in route.sorted_directions():
            sheet.emit([f"{DIRECTION_MARKER}{direction.name}"], StyleKind.DIRECTION_HEADER)
            sheet.emit(COLUMN_HEADER, StyleKind.COLUMN_HEADER)
            for departure in sorted(direction.departures, key=departure_sort_key):
                sheet.emit([departure.start_time, departure.vehicle_label, departure.last_seen])
            sheet.emit([])
        sheet.emit([])
    return sheet
