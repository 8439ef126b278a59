"""
Merge today's raw sightings into the persisted departure log.

Sightings table columns (A:F):
    vehicle | route | departure time | direction | observed at | "date time"

The sightings table is append-only and keeps history, so only rows stamped
with today's date take part.  Each (route, direction, start time, vehicle)
is stored once: a repeat sighting refreshes last_seen, a new one is
appended.  Running the merge twice with the same input adds nothing the
second time.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass

from departures.clock import normalize_date
from departures.models import Departure, DepartureLog, RawSighting, minutes_of_day

logger = logging.getLogger(__name__)


@dataclass
class ReconcileStats:
    new_count: int = 0
    updated_count: int = 0


def _cell(row: list[str], index: int) -> str:
    return str(row[index]).strip() if len(row) > index and row[index] is not None else ""


def sighting_from_row(row: list[str]) -> RawSighting | None:
    """Build a RawSighting from a sightings-table row.

    None when a required field is empty or the departure time is not a clock
    time, since the departures sheet could not read such a row back.
    """
    sighting = RawSighting(
        vehicle_label=_cell(row, 0),
        route_id=_cell(row, 1),
        departure_time=_cell(row, 2),
        direction=_cell(row, 3),
        observed_at=_cell(row, 4),
        date=_cell(row, 5).split(" ")[0],
    )
    if not (sighting.vehicle_label and sighting.route_id
            and sighting.departure_time and sighting.direction):
        return None
    if minutes_of_day(sighting.departure_time) is None:
        return None
    return sighting


def filter_todays_sightings(rows: list[list[str]], today: str) -> list[RawSighting]:
    """Parse sightings rows, keeping complete rows stamped with *today*."""
    today = normalize_date(today)
    kept: list[RawSighting] = []
    for row in rows:
        sighting = sighting_from_row(row)
        if sighting is None or normalize_date(sighting.date) != today:
            continue
        kept.append(sighting)
    logger.debug("Kept %d of %d sightings rows for %s.", len(kept), len(rows), today)
    return kept


def reconcile(
    existing_log: DepartureLog,
    todays_sightings: list[RawSighting],
    today: str,
) -> tuple[DepartureLog, ReconcileStats]:
    """
    Merge *todays_sightings* into *existing_log* (updated in place and returned).

    Sightings dated anything other than *today*, or whose departure time is
    not a clock time, are ignored even if the caller did not pre-filter them.
    """
    today = normalize_date(today)
    grouped: dict[tuple[str, str], list[Departure]] = defaultdict(list)
    for sighting in todays_sightings:
        if normalize_date(sighting.date) != today:
            continue
        if minutes_of_day(sighting.departure_time) is None:
            continue
        grouped[(sighting.route_id, sighting.direction)].append(Departure(
            start_time=sighting.departure_time,
            vehicle_label=sighting.vehicle_label,
            last_seen=sighting.observed_at,
        ))

    stats = ReconcileStats()
    for (route_name, direction_name), candidates in grouped.items():
        direction = existing_log.route(route_name).direction(direction_name)
        for candidate in candidates:
            if direction.upsert(candidate):
                stats.new_count += 1
            else:
                stats.updated_count += 1
        direction.sort()

    logger.info(
        "Reconciled %d sightings into %d route/direction groups: %d new, %d updated.",
        sum(len(c) for c in grouped.values()), len(grouped),
        stats.new_count, stats.updated_count,
    )
    return existing_log, stats
