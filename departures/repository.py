"""
Store-facing side of the departure board.

Sheets used:
  sightings  (A:F)  append-only raw observations, one header row
  departures (A:J)  today's banded departure log, rewritten on every run
  yesterday  (A:J)  copy of the departure log taken at local midnight

Every run reloads the log from the store, merges in memory and replaces the
whole target range (clear + rewrite + format).  Runs against the same sheet
are serialized inside the process by a per-sheet lock; across processes the
store offers nothing stronger than last-write-wins.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime

from config import DEPARTURES_SHEET, SIGHTINGS_SHEET, YESTERDAY_SHEET
from departures.clock import format_date, format_timestamp, local_now
from departures.models import DepartureLog
from departures.parser import parse
from departures.reconcile import filter_todays_sightings, reconcile
from departures.render import RenderedSheet, render
from departures.rows import SHEET_WIDTH
from store.base import CellFormatSpan, Rows, TabularStore
from store.exceptions import SheetNotFound
from store.ranges import a1

logger = logging.getLogger(__name__)

SIGHTINGS_HEADER = ["Vozilo", "Linija", "Polazak", "Smer", "Vreme", "Datum"]
LOG_SHEET_ROWS = 60000
# Unstyled A:J, applied before new formats so no earlier band survives.
_PLAIN_FORMAT = CellFormatSpan(0, LOG_SHEET_ROWS, 0, SHEET_WIDTH)

_sheet_locks: dict[str, threading.Lock] = {}
_sheet_locks_guard = threading.Lock()


def sheet_lock(sheet_name: str) -> threading.Lock:
    """Process-wide lock serializing rewrites of *sheet_name*."""
    with _sheet_locks_guard:
        return _sheet_locks.setdefault(sheet_name, threading.Lock())


@dataclass
class ReconcileResult:
    new_departures: int
    updated_departures: int
    total_rows: int
    timestamp: str
    sheet_used: str
    message: str | None = None


class DepartureLogRepository:

    def __init__(
        self,
        store: TabularStore,
        departures_sheet: str = DEPARTURES_SHEET,
        yesterday_sheet: str = YESTERDAY_SHEET,
        sightings_sheet: str = SIGHTINGS_SHEET,
    ):
        self.store = store
        self.departures_sheet = departures_sheet
        self.yesterday_sheet = yesterday_sheet
        self.sightings_sheet = sightings_sheet

    # -- departure log -----------------------------------------------------

    def load_log(self, sheet_name: str | None = None) -> DepartureLog:
        """Parse the log in *sheet_name*; a sheet that does not exist yet is an empty log."""
        sheet_name = sheet_name or self.departures_sheet
        try:
            rows = self.store.read_range(a1(sheet_name, "A1:J"))
        except SheetNotFound:
            logger.info("Sheet '%s' not found, starting from an empty log.", sheet_name)
            return DepartureLog()
        return parse(rows)

    def save_log(self, log: DepartureLog, sheet_name: str | None = None) -> RenderedSheet:
        """Replace the contents of *sheet_name* with the rendered log."""
        sheet_name = sheet_name or self.departures_sheet
        sheet_id = self.store.ensure_sheet(sheet_name, row_count=LOG_SHEET_ROWS, column_count=SHEET_WIDTH)
        rendered = render(log)

        self.store.clear_range(a1(sheet_name, "A:J"))
        if rendered.rows:
            self.store.write_range(a1(sheet_name, "A1"), rendered.rows)
        logger.info("Wrote %d rows to '%s'.", len(rendered.rows), sheet_name)

        self.store.apply_cell_formatting(sheet_id, [_PLAIN_FORMAT, *rendered.cell_formats()])
        if rendered.spans:
            logger.info("Applied %d format rules to '%s'.", len(rendered.spans), sheet_name)
        return rendered

    # -- sightings ---------------------------------------------------------

    def _create_sightings_sheet(self) -> None:
        self.store.ensure_sheet(self.sightings_sheet)
        self.store.write_range(a1(self.sightings_sheet, "A1:F1"), [SIGHTINGS_HEADER])
        logger.info("Created sightings sheet '%s'.", self.sightings_sheet)

    def read_sightings(self) -> Rows:
        """All sightings rows below the header; creates the sheet when missing."""
        try:
            return self.store.read_range(a1(self.sightings_sheet, "A2:F"))
        except SheetNotFound:
            self._create_sightings_sheet()
            return []

    def append_sightings(self, rows: Rows) -> None:
        if not rows:
            return
        if self.store.find_sheet(self.sightings_sheet) is None:
            self._create_sightings_sheet()
        self.store.append_rows(a1(self.sightings_sheet, "A:F"), rows)
        logger.info("Appended %d sightings to '%s'.", len(rows), self.sightings_sheet)

    # -- runs --------------------------------------------------------------

    def reconcile_today(self, now: datetime | None = None) -> ReconcileResult:
        """Merge today's sightings into the departure log and rewrite the sheet."""
        now = now or local_now()
        today = format_date(now)
        timestamp = format_timestamp(now)

        with sheet_lock(self.departures_sheet):
            rows = self.read_sightings()
            if not rows:
                return ReconcileResult(0, 0, 0, timestamp, self.departures_sheet,
                                       message="No data in sightings sheet")
            logger.info("Found %d sightings rows; today is %s.", len(rows), today)

            sightings = filter_todays_sightings(rows, today)
            if not sightings:
                return ReconcileResult(0, 0, 0, timestamp, self.departures_sheet,
                                       message="No vehicles seen today")

            merged, stats = reconcile(self.load_log(), sightings, today)
            rendered = self.save_log(merged)

        return ReconcileResult(
            new_departures=stats.new_count,
            updated_departures=stats.updated_count,
            total_rows=len(rendered.rows),
            timestamp=timestamp,
            sheet_used=self.departures_sheet,
        )

    def roll_over(self, now: datetime | None = None) -> str:
        """
        Daily reset, meant to be called hourly.

        At local hour 0 the departure log is copied to the yesterday sheet and
        the departures sheet is wiped down to a single reset marker row.
        Returns "reset" or "check".
        """
        now = now or local_now()
        if now.hour != 0:
            return "check"

        with sheet_lock(self.departures_sheet):
            log = self.load_log()
            if log.routes:
                self.save_log(log, self.yesterday_sheet)
                logger.info("Copied %d routes to '%s'.", len(log.routes), self.yesterday_sheet)

            sheet_id = self.store.ensure_sheet(
                self.departures_sheet, row_count=LOG_SHEET_ROWS, column_count=SHEET_WIDTH)
            self.store.clear_range(a1(self.departures_sheet, "A:J"))
            self.store.apply_cell_formatting(sheet_id, [_PLAIN_FORMAT])
            self.store.write_range(a1(self.departures_sheet, "A1"), [[f"Reset at {format_timestamp(now)}"]])
        logger.info("Departure log reset at %s.", format_timestamp(now))
        return "reset"
