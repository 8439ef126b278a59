"""
In-memory departure log.

    DepartureLog ─ route name → Route
      Route      ─ direction name → Direction
        Direction ─ [Departure] ordered by start time

A departure's identity inside its direction is (start_time, vehicle_label);
last_seen is the only mutable field.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})")
_DIGITS_RE = re.compile(r"\D")


def minutes_of_day(start_time: str) -> int | None:
    """'05:10' -> 310, '9:05' -> 545; None when the value is not a time."""
    match = _TIME_RE.match(start_time.strip())
    if not match:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def departure_sort_key(departure: "Departure") -> tuple[int, int, str, str]:
    minutes = minutes_of_day(departure.start_time)
    if minutes is None:
        # Unparseable times go last, in plain string order.
        return (1, 0, departure.start_time, departure.vehicle_label)
    return (0, minutes, departure.start_time, departure.vehicle_label)


def route_sort_key(name: str) -> tuple[int, str]:
    """Order by the number formed from a route name's digits ('2A' -> 2, 'N' -> 0)."""
    digits = _DIGITS_RE.sub("", name)
    return (int(digits) if digits else 0, name)


@dataclass(frozen=True)
class RawSighting:
    """One observation of a vehicle, as stored in the sightings table."""
    vehicle_label: str
    route_id: str
    departure_time: str
    direction: str
    observed_at: str
    date: str


@dataclass
class Departure:
    start_time: str
    vehicle_label: str
    last_seen: str = ""

    @property
    def identity(self) -> tuple[str, str]:
        return (self.start_time, self.vehicle_label)

    def to_dict(self) -> dict[str, str]:
        return {
            "startTime": self.start_time,
            "vehicleLabel": self.vehicle_label,
            "timestamp": self.last_seen,
        }


@dataclass
class Direction:
    name: str
    departures: list[Departure] = field(default_factory=list)

    def find(self, start_time: str, vehicle_label: str) -> Departure | None:
        for departure in self.departures:
            if departure.start_time == start_time and departure.vehicle_label == vehicle_label:
                return departure
        return None

    def upsert(self, candidate: Departure) -> bool:
        """Insert *candidate* or refresh the matching departure's last_seen.

        Returns True when a new departure was appended.
        """
        existing = self.find(candidate.start_time, candidate.vehicle_label)
        if existing is not None:
            existing.last_seen = candidate.last_seen
            return False
        self.departures.append(candidate)
        return True

    def sort(self) -> None:
        self.departures.sort(key=departure_sort_key)

    def to_dict(self) -> dict[str, Any]:
        return {
            "directionName": self.name,
            "departures": [d.to_dict() for d in self.departures],
        }


@dataclass
class Route:
    name: str
    directions: dict[str, Direction] = field(default_factory=dict)

    def direction(self, name: str) -> Direction:
        """Return direction *name*, creating it on first use."""
        if name not in self.directions:
            self.directions[name] = Direction(name)
        return self.directions[name]

    def sorted_directions(self) -> list[Direction]:
        return [self.directions[name] for name in sorted(self.directions)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "routeName": self.name,
            "directions": [d.to_dict() for d in self.sorted_directions()],
        }


@dataclass
class DepartureLog:
    routes: dict[str, Route] = field(default_factory=dict)

    def route(self, name: str) -> Route:
        """Return route *name*, creating it on first use."""
        if name not in self.routes:
            self.routes[name] = Route(name)
        return self.routes[name]

    def sorted_routes(self) -> list[Route]:
        return [self.routes[name] for name in sorted(self.routes, key=route_sort_key)]

    def departure_count(self) -> int:
        return sum(
            len(direction.departures)
            for route in self.routes.values()
            for direction in route.directions.values()
        )

    def to_dicts(self) -> list[dict[str, Any]]:
        return [route.to_dict() for route in self.sorted_routes()]
