"""
Turns feed snapshots into rows of the append-only sightings table.

A vehicle becomes a sighting when the feed knows both its trip start time
and, through a trip update, the last stop of its trip.  The last stop is the
direction: its id is replaced by the stop name when STOP_NAMES_PATH points at
a JSON object of {stop_id: name}.
"""

import json
import logging
from datetime import datetime
from functools import lru_cache
from pathlib import Path

from config import STOP_NAMES_PATH
from departures.clock import format_time, format_timestamp, local_now
from departures.repository import DepartureLogRepository
from ingestion.gtfs_realtime import FeedSnapshot, poll_vehicles, route_name

logger = logging.getLogger(__name__)


@lru_cache(maxsize=4)
def load_stop_names(path: str = STOP_NAMES_PATH) -> dict[str, str]:
    file = Path(path)
    if not file.is_file():
        logger.info("No stop names file at %s; directions will use stop ids.", path)
        return {}
    try:
        data = json.loads(file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Could not read stop names from %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Stop names file %s is not a JSON object; ignoring it.", path)
        return {}
    return {str(k): str(v) for k, v in data.items()}


def build_sightings(
    snapshot: FeedSnapshot,
    now: datetime,
    stop_names: dict[str, str] | None = None,
) -> list[list[str]]:
    """Stamp each usable vehicle with *now*, one row per (vehicle, route, start, direction)."""
    stop_names = stop_names or {}
    destinations = {t.vehicleId: t.destination for t in snapshot.trip_updates if t.destination}
    observed_at = format_time(now)
    stamped = format_timestamp(now)

    rows: list[list[str]] = []
    seen: set[tuple[str, str, str, str]] = set()
    for vehicle in snapshot.vehicles:
        destination = destinations.get(vehicle.id)
        if not vehicle.startTime or not destination:
            continue
        row_key = (
            vehicle.label,
            route_name(vehicle.routeId),
            vehicle.startTime[:5],  # HH:MM:SS -> HH:MM
            stop_names.get(destination, destination),
        )
        if row_key in seen:
            continue
        seen.add(row_key)
        rows.append([*row_key, observed_at, stamped])
    return rows


async def ingest_once(repository: DepartureLogRepository, now: datetime | None = None) -> int:
    """Poll the feed once and append the resulting sightings. Returns rows appended."""
    snapshot = await poll_vehicles()
    rows = build_sightings(snapshot, now or local_now(), load_stop_names())
    repository.append_sightings(rows)
    logger.info("Ingested %d sightings from %d vehicles.", len(rows), len(snapshot.vehicles))
    return len(rows)
