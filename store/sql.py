"""
Tabular store backed by the local database (SQLAlchemy).

Used for local development and tests, and as a drop-in replacement when no
Google service account is configured.  Every public call commits, mirroring
the one-request-per-call behaviour of the Sheets API.
"""

import logging
from functools import wraps

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models import CellFormat, Sheet, SheetRow
from store.base import CellFormatSpan, Rows, SheetInfo, TabularStore
from store.exceptions import SheetNotFound, StoreUnavailable
from store.ranges import GridRange, parse_a1

logger = logging.getLogger(__name__)


def _db_errors(func):
    """Translate database failures into StoreUnavailable."""
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except SQLAlchemyError as exc:
            self._session.rollback()
            logger.error("Store %s failed: %s", func.__name__, exc)
            raise StoreUnavailable(str(exc), operation=func.__name__) from exc
    return wrapper


def _trim(values: list[str]) -> list[str]:
    end = len(values)
    while end and values[end - 1] == "":
        end -= 1
    return values[:end]


def _cell(value) -> str:
    return "" if value is None else str(value)


class SqlSheetStore(TabularStore):

    def __init__(self, session: Session):
        self._session = session

    # -- internals ---------------------------------------------------------

    def _sheet(self, title: str) -> Sheet:
        sheet = self._session.query(Sheet).filter_by(title=title).first()
        if sheet is None:
            raise SheetNotFound(title)
        return sheet

    def _row_map(self, sheet: Sheet) -> dict[int, SheetRow]:
        return {row.row_index: row for row in sheet.rows}

    def _put_row(self, sheet: Sheet, rows: dict[int, SheetRow], index: int, values: list[str]) -> None:
        values = _trim(values)
        existing = rows.get(index)
        if not values:
            if existing is not None:
                self._session.delete(existing)
                del rows[index]
            return
        if existing is None:
            existing = SheetRow(sheet_id=sheet.sheet_id, row_index=index)
            self._session.add(existing)
            rows[index] = existing
        existing.values = values

    def _write_at(self, sheet: Sheet, start_row: int, start_column: int, data: Rows) -> None:
        rows = self._row_map(sheet)
        for offset, new_cells in enumerate(data):
            index = start_row + offset
            current = list(rows[index].values) if index in rows else []
            width = start_column + len(new_cells)
            if len(current) < width:
                current.extend([""] * (width - len(current)))
            current[start_column:width] = [_cell(v) for v in new_cells]
            self._put_row(sheet, rows, index, current)
        if start_row + len(data) > sheet.row_count:
            sheet.row_count = start_row + len(data)

    @staticmethod
    def _slice(values: list[str], rng: GridRange) -> list[str]:
        return _trim(list(values[rng.start_column:rng.end_column]))

    # -- TabularStore ------------------------------------------------------

    @_db_errors
    def read_range(self, a1_range: str) -> Rows:
        rng = parse_a1(a1_range)
        rows = self._row_map(self._sheet(rng.sheet))
        if not rows:
            return []
        last = max(rows)
        stop = last + 1 if rng.end_row is None else min(rng.end_row, last + 1)
        result = [
            self._slice(rows[i].values, rng) if i in rows else []
            for i in range(rng.start_row, stop)
        ]
        while result and not result[-1]:
            result.pop()
        return result

    @_db_errors
    def write_range(self, a1_range: str, rows: Rows) -> None:
        rng = parse_a1(a1_range)
        sheet = self._sheet(rng.sheet)
        self._write_at(sheet, rng.start_row, rng.start_column, rows)
        self._session.commit()
        logger.debug("Wrote %d rows to %s", len(rows), a1_range)

    @_db_errors
    def append_rows(self, a1_range: str, rows: Rows) -> None:
        rng = parse_a1(a1_range)
        sheet = self._sheet(rng.sheet)
        occupied = [
            index for index, row in self._row_map(sheet).items()
            if rng.contains_row(index) and self._slice(row.values, rng)
        ]
        start = max(occupied) + 1 if occupied else rng.start_row
        self._write_at(sheet, start, rng.start_column, rows)
        self._session.commit()
        logger.debug("Appended %d rows to %s at row %d", len(rows), a1_range, start + 1)

    @_db_errors
    def clear_range(self, a1_range: str) -> None:
        rng = parse_a1(a1_range)
        sheet = self._sheet(rng.sheet)
        rows = self._row_map(sheet)
        for index in [i for i in rows if rng.contains_row(i)]:
            values = list(rows[index].values)
            stop = len(values) if rng.end_column is None else min(rng.end_column, len(values))
            for col in range(rng.start_column, stop):
                values[col] = ""
            self._put_row(sheet, rows, index, values)
        self._session.commit()

    @_db_errors
    def apply_cell_formatting(self, sheet_id: int, spans: list[CellFormatSpan]) -> None:
        sheet = self._session.get(Sheet, sheet_id)
        if sheet is None:
            raise SheetNotFound(str(sheet_id))
        for span in spans:
            # A new format replaces whatever covered the same cells.
            for old in list(sheet.formats):
                if (old.start_row < span.end_row and span.start_row < old.end_row
                        and old.start_column < span.end_column and span.start_column < old.end_column):
                    sheet.formats.remove(old)
            if not (span.background_color or span.text_format):
                continue
            sheet.formats.append(CellFormat(
                start_row=span.start_row,
                end_row=span.end_row,
                start_column=span.start_column,
                end_column=span.end_column,
                style=span.user_entered_format(),
            ))
        self._session.commit()

    @_db_errors
    def list_sheets(self) -> list[SheetInfo]:
        return [
            SheetInfo(title=s.title, sheet_id=s.sheet_id)
            for s in self._session.query(Sheet).order_by(Sheet.sheet_id).all()
        ]

    @_db_errors
    def create_sheet(self, title: str, row_count: int = 1000, column_count: int = 26) -> int:
        if self._session.query(Sheet).filter_by(title=title).first() is not None:
            raise StoreUnavailable(
                f"A sheet with the name '{title}' already exists.", operation="create_sheet"
            )
        sheet = Sheet(title=title, row_count=row_count, column_count=column_count)
        self._session.add(sheet)
        self._session.commit()
        logger.info("Created sheet '%s' (id=%d).", title, sheet.sheet_id)
        return sheet.sheet_id
