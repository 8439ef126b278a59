"""
The tabular store contract consumed by the rest of the application.

A store is a spreadsheet reached by range: values are always lists of rows,
each row a list of strings.  Ranges are A1 strings that include the sheet
title (see store.ranges).  Reads of a sheet that does not exist raise
SheetNotFound; every other backend failure raises StoreUnavailable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

Rows = list[list[str]]


@dataclass(frozen=True)
class SheetInfo:
    title: str
    sheet_id: int


@dataclass(frozen=True)
class CellFormatSpan:
    """A styled rectangle: zero-based, end-exclusive row and column bounds."""
    start_row: int
    end_row: int
    start_column: int
    end_column: int
    background_color: dict[str, float] = field(default_factory=dict)
    text_format: dict[str, Any] = field(default_factory=dict)

    def user_entered_format(self) -> dict[str, Any]:
        return {"backgroundColor": dict(self.background_color), "textFormat": dict(self.text_format)}


class TabularStore(ABC):
    """Abstract base class for spreadsheet-like stores."""

    @abstractmethod
    def read_range(self, a1_range: str) -> Rows:
        """Return the rows of a range, trailing empty cells and rows trimmed."""

    @abstractmethod
    def write_range(self, a1_range: str, rows: Rows) -> None:
        """Overwrite cells starting at the top-left corner of the range."""

    @abstractmethod
    def append_rows(self, a1_range: str, rows: Rows) -> None:
        """Append rows after the last non-empty row of the range."""

    @abstractmethod
    def clear_range(self, a1_range: str) -> None:
        """Blank every cell in the range (formatting is kept)."""

    @abstractmethod
    def apply_cell_formatting(self, sheet_id: int, spans: list[CellFormatSpan]) -> None:
        """Apply background colour and text style to each span, as one batch."""

    @abstractmethod
    def list_sheets(self) -> list[SheetInfo]:
        ...

    @abstractmethod
    def create_sheet(self, title: str, row_count: int = 1000, column_count: int = 26) -> int:
        """Create a sheet and return its sheet id."""

    # Helpers shared by every backend

    def find_sheet(self, title: str) -> SheetInfo | None:
        return next((s for s in self.list_sheets() if s.title == title), None)

    def ensure_sheet(self, title: str, row_count: int = 1000, column_count: int = 26) -> int:
        """Return the id of sheet *title*, creating it when missing."""
        existing = self.find_sheet(title)
        if existing is not None:
            return existing.sheet_id
        return self.create_sheet(title, row_count=row_count, column_count=column_count)
