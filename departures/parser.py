"""
Departures sheet → DepartureLog.

Single pass over the rows with a route cursor and a direction cursor.
Parsing never fails: rows that do not fit the layout are dropped, so a
partially corrupted sheet still yields everything that can be read.
"""

import logging

from departures.models import Departure, DepartureLog, Direction, Route
from departures.rows import RowKind, classify_row

logger = logging.getLogger(__name__)


def _cell(row: list[str], index: int) -> str:
    return row[index] if len(row) > index and row[index] is not None else ""


def parse(rows: list[list[str]]) -> DepartureLog:
    log = DepartureLog()
    route: Route | None = None
    direction: Direction | None = None
    dropped = 0

    for row in rows:
        classified = classify_row(row)

        if classified.kind is RowKind.ROUTE_HEADER:
            route = log.route(classified.text)
            direction = None
        elif classified.kind is RowKind.DIRECTION_HEADER:
            if route is None:
                dropped += 1
                continue
            direction = route.direction(classified.text)
        elif classified.kind is RowKind.DATA:
            if direction is None:
                dropped += 1
                continue
            direction.upsert(Departure(
                start_time=_cell(row, 0),
                vehicle_label=_cell(row, 1),
                last_seen=_cell(row, 2),
            ))
        # Column headers, blanks and unknown rows never close a section.

    if dropped:
        logger.debug("Dropped %d rows outside any route/direction section.", dropped)
    return log
