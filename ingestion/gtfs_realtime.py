"""
Fetches the live GTFS-Realtime vehicle feed and reshapes it for the map.

The upstream feed is served as JSON (the protobuf FeedMessage rendered with
camelCase keys).  Protobuf responses are decoded with gtfs-realtime-bindings
and converted to the same dict shape, so reshaping only has one input form.

Output shape (GET /vehicles):
    vehicles:    [{id, label, routeId, startTime, lat, lon}]
    tripUpdates: [{vehicleId, destination}]   destination = last stop_id
"""

import json
import logging
import re
import time
from dataclasses import asdict, dataclass
from typing import Any

import httpx
from google.protobuf import json_format
from google.protobuf.message import DecodeError
from google.transit import gtfs_realtime_pb2

from config import FEED_TIMEOUT_SECONDS, FEED_URL

logger = logging.getLogger(__name__)

_LEADING_DIGITS_RE = re.compile(r"^\s*(\d+)")


class FeedUnavailable(Exception):
    """The live feed could not be fetched or decoded."""


@dataclass
class VehiclePosition:
    id: str
    label: str
    routeId: str
    startTime: str
    lat: float
    lon: float


@dataclass
class TripDestination:
    vehicleId: str
    destination: str


@dataclass
class FeedSnapshot:
    vehicles: list[VehiclePosition]
    trip_updates: list[TripDestination]

    def to_dict(self) -> dict[str, Any]:
        return {
            "vehicles": [asdict(v) for v in self.vehicles],
            "tripUpdates": [asdict(t) for t in self.trip_updates],
        }


def normalize_route_id(route_id: str) -> str:
    """Route number used by the `lines` filter: '00031' -> '31', '2A' -> '2'.

    Ids without leading digits are returned stripped.
    """
    match = _LEADING_DIGITS_RE.match(route_id or "")
    return str(int(match.group(1))) if match else (route_id or "").strip()


def route_name(route_id: str) -> str:
    """Route name as stored in the sightings table: '00031' -> '31', '2A' -> '2A'."""
    stripped = (route_id or "").strip()
    if not stripped:
        return ""
    return stripped.lstrip("0") or "0"


def decode_feed(content: bytes, content_type: str = "") -> dict[str, Any]:
    """Decode a feed body into the camelCase dict form."""
    if "protobuf" in content_type or "octet-stream" in content_type:
        feed = gtfs_realtime_pb2.FeedMessage()
        try:
            feed.ParseFromString(content)
        except DecodeError as exc:
            raise FeedUnavailable(f"Invalid GTFS-RT protobuf payload: {exc}") from exc
        return json_format.MessageToDict(feed)
    try:
        return json.loads(content)
    except ValueError as exc:
        raise FeedUnavailable(f"Invalid feed JSON: {exc}") from exc


async def fetch_feed(url: str = FEED_URL) -> dict[str, Any]:
    """GET the live feed, bypassing intermediate caches."""
    if not url:
        raise FeedUnavailable("FEED_URL is not configured.")
    params = {"_": int(time.time() * 1000)}
    headers = {"User-Agent": "Mozilla/5.0", "Cache-Control": "no-cache"}
    try:
        async with httpx.AsyncClient(timeout=FEED_TIMEOUT_SECONDS) as client:
            response = await client.get(url, params=params, headers=headers)
            response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Failed to fetch vehicle feed %s: %s", url, exc)
        raise FeedUnavailable(f"Failed to fetch data: {exc}") from exc
    return decode_feed(response.content, response.headers.get("content-type", ""))


def _is_tracked_label(label: str) -> bool:
    # Short "P…" labels are placeholder ids, not garage numbers.
    return bool(label) and not (label.startswith("P") and len(label) < 6)


def reshape_feed(feed: dict[str, Any], lines: set[str] | None = None) -> FeedSnapshot:
    """Pick vehicle positions and trip destinations out of a decoded feed.

    *lines* filters vehicles by route number (leading zeros ignored).
    """
    vehicles: list[VehiclePosition] = []
    trip_updates: list[TripDestination] = []

    for entity in feed.get("entity") or []:
        vp = entity.get("vehicle") or {}
        position = vp.get("position")
        if position:
            trip = vp.get("trip") or {}
            descriptor = vp.get("vehicle") or {}
            route_id = str(trip.get("routeId", ""))
            label = str(descriptor.get("label") or "")
            if (not lines or normalize_route_id(route_id) in lines) and _is_tracked_label(label):
                try:
                    vehicles.append(VehiclePosition(
                        id=str(descriptor.get("id", "")),
                        label=label,
                        routeId=route_id,
                        startTime=str(trip.get("startTime", "")),
                        lat=float(position.get("latitude", 0)),
                        lon=float(position.get("longitude", 0)),
                    ))
                except (TypeError, ValueError):
                    logger.debug("Skipping vehicle %s with malformed position.", label)

        tu = entity.get("tripUpdate") or {}
        vehicle_id = (tu.get("vehicle") or {}).get("id")
        stop_time_updates = tu.get("stopTimeUpdate") or []
        if vehicle_id and stop_time_updates:
            trip_updates.append(TripDestination(
                vehicleId=str(vehicle_id),
                destination=str(stop_time_updates[-1].get("stopId", "")),
            ))

    logger.debug("Feed reshaped: %d vehicles, %d trip updates.", len(vehicles), len(trip_updates))
    return FeedSnapshot(vehicles=vehicles, trip_updates=trip_updates)


async def poll_vehicles(lines: set[str] | None = None) -> FeedSnapshot:
    """Fetch and reshape in one call."""
    return reshape_feed(await fetch_feed(), lines)
