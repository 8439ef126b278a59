"""
Unit tests for departures.reconcile and the ordering helpers it relies on.

All functions here are pure, so no store is involved.
"""

import copy

import pytest

from departures.models import (
    Departure,
    DepartureLog,
    RawSighting,
    minutes_of_day,
    route_sort_key,
)
from departures.reconcile import filter_todays_sightings, reconcile, sighting_from_row

TODAY = "01.01.2024"


def _sighting(route="31", direction="Zeleni Venac", start="05:10", vehicle="P1234",
              observed="10:00:00", date=TODAY) -> RawSighting:
    return RawSighting(
        vehicle_label=vehicle,
        route_id=route,
        departure_time=start,
        direction=direction,
        observed_at=observed,
        date=date,
    )


def _identities(log: DepartureLog) -> list[tuple[str, str, str, str]]:
    return [
        (route.name, direction.name, d.start_time, d.vehicle_label)
        for route in log.routes.values()
        for direction in route.directions.values()
        for d in direction.departures
    ]


# ---------------------------------------------------------------------------
# Row filtering
# ---------------------------------------------------------------------------

class TestSightingFromRow:
    def test_full_row(self):
        row = ["P1234", "31", "05:10", "Zeleni Venac", "10:00:00", "01.01.2024 10:00:00"]
        assert sighting_from_row(row) == _sighting()

    def test_date_cell_without_time(self):
        row = ["P1234", "31", "05:10", "Zeleni Venac", "10:00:00", "01.01.2024"]
        assert sighting_from_row(row).date == "01.01.2024"

    @pytest.mark.parametrize("missing", [0, 1, 2, 3])
    def test_missing_required_field(self, missing):
        row = ["P1234", "31", "05:10", "Zeleni Venac", "10:00:00", "01.01.2024"]
        row[missing] = ""
        assert sighting_from_row(row) is None

    def test_short_row(self):
        assert sighting_from_row(["P1234", "31"]) is None

    @pytest.mark.parametrize("start", ["soon", "x5:10", "--:--"])
    def test_departure_time_must_be_a_clock_time(self, start):
        row = ["P1234", "31", start, "Zeleni Venac", "10:00:00", "01.01.2024"]
        assert sighting_from_row(row) is None

    def test_observed_at_optional(self):
        row = ["P1234", "31", "05:10", "Zeleni Venac"]
        sighting = sighting_from_row(row)
        assert sighting.observed_at == ""
        assert sighting.date == ""


class TestFilterTodaysSightings:
    def test_keeps_only_today(self):
        rows = [
            ["P1", "31", "05:10", "A", "10:00:00", "01.01.2024 10:00:00"],
            ["P2", "31", "05:20", "A", "10:00:00", "31.12.2023 23:59:00"],
        ]
        kept = filter_todays_sightings(rows, TODAY)
        assert [s.vehicle_label for s in kept] == ["P1"]

    def test_drops_incomplete_rows(self):
        rows = [
            ["P1", "31", "05:10", "", "10:00:00", "01.01.2024 10:00:00"],
            ["", "31", "05:10", "A", "10:00:00", "01.01.2024 10:00:00"],
        ]
        assert filter_todays_sightings(rows, TODAY) == []

    def test_trailing_locale_dot_ignored(self):
        rows = [["P1", "31", "05:10", "A", "10:00:00", "01.01.2024. 10:00:00"]]
        assert len(filter_todays_sightings(rows, "01.01.2024")) == 1
        assert len(filter_todays_sightings(rows[:], "01.01.2024.")) == 1


# ---------------------------------------------------------------------------
# reconcile: scenarios
# ---------------------------------------------------------------------------

class TestReconcileScenarios:
    def test_single_sighting_into_empty_log(self):
        merged, stats = reconcile(DepartureLog(), [_sighting()], TODAY)

        assert list(merged.routes) == ["31"]
        assert list(merged.routes["31"].directions) == ["Zeleni Venac"]
        assert merged.routes["31"].directions["Zeleni Venac"].departures == [
            Departure("05:10", "P1234", "10:00:00")
        ]
        assert (stats.new_count, stats.updated_count) == (1, 0)

    def test_second_identical_run_updates_only(self):
        log, _ = reconcile(DepartureLog(), [_sighting()], TODAY)
        merged, stats = reconcile(log, [_sighting(observed="10:05:00")], TODAY)

        departures = merged.routes["31"].directions["Zeleni Venac"].departures
        assert (stats.new_count, stats.updated_count) == (0, 1)
        assert len(departures) == 1
        assert departures[0].last_seen == "10:05:00"

    def test_foreign_date_is_excluded(self):
        merged, stats = reconcile(DepartureLog(), [_sighting(date="02.01.2024")], TODAY)
        assert merged.routes == {}
        assert (stats.new_count, stats.updated_count) == (0, 0)

    def test_repeat_within_one_batch_is_an_update(self):
        sightings = [_sighting(observed="10:00:00"), _sighting(observed="10:01:00")]
        merged, stats = reconcile(DepartureLog(), sightings, TODAY)
        departures = merged.routes["31"].directions["Zeleni Venac"].departures
        assert (stats.new_count, stats.updated_count) == (1, 1)
        assert departures == [Departure("05:10", "P1234", "10:01:00")]

    def test_same_start_different_vehicle_is_new(self):
        sightings = [_sighting(vehicle="P1"), _sighting(vehicle="P2")]
        merged, stats = reconcile(DepartureLog(), sightings, TODAY)
        assert stats.new_count == 2
        assert len(merged.routes["31"].directions["Zeleni Venac"].departures) == 2

    def test_existing_entries_untouched_by_other_groups(self):
        log, _ = reconcile(DepartureLog(), [_sighting(route="9", direction="Banjica")], TODAY)
        merged, _ = reconcile(log, [_sighting()], TODAY)
        assert merged.routes["9"].directions["Banjica"].departures == [
            Departure("05:10", "P1234", "10:00:00")
        ]

    def test_new_direction_created_lazily_on_existing_route(self):
        log, _ = reconcile(DepartureLog(), [_sighting(direction="A")], TODAY)
        merged, stats = reconcile(log, [_sighting(direction="B")], TODAY)
        assert set(merged.routes["31"].directions) == {"A", "B"}
        assert stats.new_count == 1

    def test_returns_the_same_log_object(self):
        log = DepartureLog()
        merged, _ = reconcile(log, [_sighting()], TODAY)
        assert merged is log

    def test_non_time_departure_ignored(self):
        merged, stats = reconcile(DepartureLog(), [_sighting(start="soon")], TODAY)
        assert merged.routes == {}
        assert (stats.new_count, stats.updated_count) == (0, 0)


# ---------------------------------------------------------------------------
# reconcile: properties
# ---------------------------------------------------------------------------

_MIXED = [
    _sighting(start="07:30", vehicle="P3"),
    _sighting(start="05:10", vehicle="P1"),
    _sighting(start="06:45", vehicle="P2"),
    _sighting(start="05:10", vehicle="P1", observed="10:02:00"),
    _sighting(route="9", direction="Banjica", start="12:00", vehicle="P7"),
    _sighting(route="9", direction="Banjica", start="11:00", vehicle="P8"),
    _sighting(route="2A", direction="Dorćol", start="08:00", vehicle="P9", date="31.12.2023"),
]


class TestReconcileProperties:
    def test_idempotent(self):
        first, _ = reconcile(DepartureLog(), _MIXED, TODAY)
        snapshot = copy.deepcopy(first)
        second, stats = reconcile(first, _MIXED, TODAY)

        assert stats.new_count == 0
        assert _identities(second) == _identities(snapshot)

    def test_no_duplicate_identity(self):
        merged, _ = reconcile(DepartureLog(), _MIXED + _MIXED, TODAY)
        identities = _identities(merged)
        assert len(identities) == len(set(identities))

    def test_directions_sorted_by_start_time(self):
        merged, _ = reconcile(DepartureLog(), _MIXED, TODAY)
        for route in merged.routes.values():
            for direction in route.directions.values():
                starts = [d.start_time for d in direction.departures]
                assert starts == sorted(starts)

    def test_foreign_date_never_appears(self):
        merged, stats = reconcile(DepartureLog(), _MIXED, TODAY)
        assert "2A" not in merged.routes
        assert stats.new_count + stats.updated_count == len(_MIXED) - 1

    def test_unpadded_hour_sorts_by_clock_time(self):
        sightings = [_sighting(start="10:00", vehicle="P1"), _sighting(start="9:05", vehicle="P2")]
        merged, _ = reconcile(DepartureLog(), sightings, TODAY)
        starts = [d.start_time for d in merged.routes["31"].directions["Zeleni Venac"].departures]
        assert starts == ["9:05", "10:00"]


# ---------------------------------------------------------------------------
# Ordering helpers
# ---------------------------------------------------------------------------

class TestOrderingHelpers:
    def test_minutes_of_day(self):
        assert minutes_of_day("05:10") == 310
        assert minutes_of_day("9:05") == 545
        assert minutes_of_day("23:59:30") == 23 * 60 + 59

    def test_minutes_of_day_invalid(self):
        assert minutes_of_day("soon") is None
        assert minutes_of_day("") is None

    def test_route_order_by_number(self):
        assert sorted(["9", "31", "2A"], key=route_sort_key) == ["2A", "9", "31"]

    def test_non_numeric_route_sorts_as_zero(self):
        assert sorted(["3", "Noćna", "1"], key=route_sort_key) == ["Noćna", "1", "3"]
