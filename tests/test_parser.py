"""
Unit tests for the departures sheet vocabulary and parser.

departures.rows    — classify_row, pad_row
departures.parser  — parse, including its leniency towards malformed rows
"""

import pytest

from departures.models import Departure
from departures.parser import parse
from departures.rows import ClassifiedRow, RowKind, classify_row, pad_row


# ---------------------------------------------------------------------------
# classify_row
# ---------------------------------------------------------------------------

class TestClassifyRow:
    def test_route_header(self):
        assert classify_row(["Linija 31"]) == ClassifiedRow(RowKind.ROUTE_HEADER, "31")

    def test_route_header_name_is_trimmed(self):
        assert classify_row(["Linija  2A  ", ""]).text == "2A"

    def test_direction_header(self):
        assert classify_row(["Smer: Zeleni Venac"]) == ClassifiedRow(RowKind.DIRECTION_HEADER, "Zeleni Venac")

    def test_column_header(self):
        assert classify_row(["Polazak", "Vozilo", "Poslednji put viđen"]).kind is RowKind.COLUMN_HEADER

    @pytest.mark.parametrize("first", ["05:10", "5:10", "23:59", "05:10:00"])
    def test_data_row(self, first):
        assert classify_row([first, "P1234", "10:00:00"]).kind is RowKind.DATA

    def test_empty_row_is_blank(self):
        assert classify_row([]).kind is RowKind.BLANK

    def test_empty_first_cell_is_blank(self):
        assert classify_row(["", "P1234"]).kind is RowKind.BLANK

    def test_reset_marker_is_blank(self):
        assert classify_row(["Reset at 01.01.2024 00:00:05"]).kind is RowKind.BLANK

    def test_legacy_reset_marker_is_blank(self):
        assert classify_row(["Podaci resetovani u ponoć"]).kind is RowKind.BLANK

    def test_anything_else_is_unknown(self):
        assert classify_row(["Napomena"]).kind is RowKind.UNKNOWN

    def test_route_marker_needs_trailing_space(self):
        assert classify_row(["Linija"]).kind is RowKind.UNKNOWN


class TestPadRow:
    def test_pads_to_sheet_width(self):
        assert pad_row(["a"]) == ["a"] + [""] * 9

    def test_full_row_unchanged(self):
        row = [str(i) for i in range(10)]
        assert pad_row(row) == row


# ---------------------------------------------------------------------------
# parse
# ---------------------------------------------------------------------------

_SHEET = [
    ["Linija 31"],
    ["Smer: Zeleni Venac"],
    ["Polazak", "Vozilo", "Poslednji put viđen"],
    ["05:10", "P1234", "10:00:00"],
    ["05:25", "P5678", "10:05:00"],
    [],
    ["Smer: Konjarnik"],
    ["Polazak", "Vozilo", "Poslednji put viđen"],
    ["06:00", "P9999", "10:01:00"],
    [],
    [],
    ["Linija 9"],
    ["Smer: Banjica"],
    ["Polazak", "Vozilo", "Poslednji put viđen"],
    ["07:00", "P1111", "11:00:00"],
    [],
    [],
]


class TestParse:
    def test_empty_rows_give_empty_log(self):
        assert parse([]).routes == {}

    def test_routes_and_directions_found(self):
        log = parse(_SHEET)
        assert set(log.routes) == {"31", "9"}
        assert set(log.routes["31"].directions) == {"Zeleni Venac", "Konjarnik"}
        assert set(log.routes["9"].directions) == {"Banjica"}

    def test_departures_mapped_from_first_three_columns(self):
        log = parse(_SHEET)
        assert log.routes["31"].directions["Zeleni Venac"].departures == [
            Departure("05:10", "P1234", "10:00:00"),
            Departure("05:25", "P5678", "10:05:00"),
        ]

    def test_blank_rows_do_not_close_direction(self):
        rows = [["Linija 31"], ["Smer: A"], ["05:10", "P1"], [], ["05:20", "P2"]]
        departures = parse(rows).routes["31"].directions["A"].departures
        assert [d.start_time for d in departures] == ["05:10", "05:20"]

    def test_direction_without_route_is_ignored(self):
        rows = [["Smer: A"], ["05:10", "P1", "x"], ["Linija 31"]]
        log = parse(rows)
        assert log.routes["31"].directions == {}

    def test_data_without_direction_is_ignored(self):
        rows = [["Linija 31"], ["05:10", "P1", "x"]]
        assert parse(rows).departure_count() == 0

    def test_route_header_resets_direction(self):
        rows = [["Linija 31"], ["Smer: A"], ["Linija 9"], ["05:10", "P1", "x"]]
        log = parse(rows)
        assert log.departure_count() == 0

    def test_missing_cells_read_as_empty(self):
        rows = [["Linija 31"], ["Smer: A"], ["05:10"]]
        departure = parse(rows).routes["31"].directions["A"].departures[0]
        assert departure == Departure("05:10", "", "")

    def test_extra_columns_ignored(self):
        rows = [["Linija 31"], ["Smer: A"], ["05:10", "P1", "x", "extra", "more"]]
        departure = parse(rows).routes["31"].directions["A"].departures[0]
        assert departure == Departure("05:10", "P1", "x")

    def test_unknown_rows_dropped(self):
        rows = [["Linija 31"], ["Smer: A"], ["garbage", "row"], ["05:10", "P1", "x"]]
        assert parse(rows).departure_count() == 1

    def test_reset_marker_sheet_parses_empty(self):
        assert parse([["Reset at 01.01.2024 00:00:05"]]).routes == {}

    def test_repeated_route_header_merges(self):
        rows = [
            ["Linija 31"], ["Smer: A"], ["05:10", "P1", "x"],
            ["Linija 31"], ["Smer: B"], ["06:10", "P2", "y"],
        ]
        log = parse(rows)
        assert set(log.routes["31"].directions) == {"A", "B"}

    def test_duplicate_departure_rows_collapse(self):
        rows = [["Linija 31"], ["Smer: A"], ["05:10", "P1", "10:00:00"], ["05:10", "P1", "11:00:00"]]
        departures = parse(rows).routes["31"].directions["A"].departures
        assert departures == [Departure("05:10", "P1", "11:00:00")]
