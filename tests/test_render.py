"""
Unit tests for departures.render.

Layout, row padding and format spans are checked against hand-built logs;
parse(render(log)) must give back the same log.
"""

from departures.models import Departure, DepartureLog
from departures.parser import parse
from departures.render import DARK_BLUE, STYLE_PRESETS, FormatSpan, StyleKind, render
from departures.rows import COLUMN_HEADER, SHEET_WIDTH


def _log(*entries: tuple[str, str, str, str, str]) -> DepartureLog:
    log = DepartureLog()
    for route, direction, start, vehicle, seen in entries:
        log.route(route).direction(direction).upsert(Departure(start, vehicle, seen))
    return log


def _first_cells(rows: list[list[str]]) -> list[str]:
    return [row[0] for row in rows]


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

class TestLayout:
    def test_empty_log_renders_nothing(self):
        sheet = render(DepartureLog())
        assert sheet.rows == []
        assert sheet.spans == []

    def test_single_departure_block(self):
        sheet = render(_log(("31", "Zeleni Venac", "05:10", "P1234", "10:00:00")))
        assert [row[:3] for row in sheet.rows] == [
            ["Linija 31", "", ""],
            ["Smer: Zeleni Venac", "", ""],
            COLUMN_HEADER,
            ["05:10", "P1234", "10:00:00"],
            ["", "", ""],
            ["", "", ""],
        ]

    def test_every_row_padded_to_sheet_width(self):
        sheet = render(_log(("31", "A", "05:10", "P1", "x"), ("9", "B", "06:00", "P2", "y")))
        assert all(len(row) == SHEET_WIDTH for row in sheet.rows)

    def test_routes_in_numeric_order(self):
        sheet = render(_log(
            ("31", "A", "05:10", "P1", "x"),
            ("9", "A", "05:10", "P2", "x"),
            ("2A", "A", "05:10", "P3", "x"),
        ))
        headers = [cell for cell in _first_cells(sheet.rows) if cell.startswith("Linija ")]
        assert headers == ["Linija 2A", "Linija 9", "Linija 31"]

    def test_directions_alphabetical(self):
        sheet = render(_log(("31", "Konjarnik", "05:10", "P1", "x"), ("31", "Banjica", "05:10", "P2", "x")))
        headers = [cell for cell in _first_cells(sheet.rows) if cell.startswith("Smer: ")]
        assert headers == ["Smer: Banjica", "Smer: Konjarnik"]

    def test_departures_by_clock_time(self):
        sheet = render(_log(
            ("31", "A", "10:00", "P1", "x"),
            ("31", "A", "9:05", "P2", "x"),
            ("31", "A", "05:10", "P3", "x"),
        ))
        starts = [row[0] for row in sheet.rows[3:6]]
        assert starts == ["05:10", "9:05", "10:00"]

    def test_render_does_not_reorder_input(self):
        log = _log(("31", "A", "10:00", "P1", "x"), ("31", "A", "05:10", "P2", "x"))
        render(log)
        assert [d.start_time for d in log.routes["31"].directions["A"].departures] == ["10:00", "05:10"]


# ---------------------------------------------------------------------------
# Format spans
# ---------------------------------------------------------------------------

class TestSpans:
    def test_span_rows_point_at_styled_rows(self):
        sheet = render(_log(
            ("31", "A", "05:10", "P1", "x"),
            ("31", "B", "06:10", "P2", "y"),
            ("9", "C", "07:10", "P3", "z"),
        ))
        for span in sheet.spans:
            first = sheet.rows[span.start_row][0]
            if span.style is StyleKind.ROUTE_HEADER:
                assert first.startswith("Linija ")
            elif span.style is StyleKind.DIRECTION_HEADER:
                assert first.startswith("Smer: ")
            else:
                assert sheet.rows[span.start_row][:3] == COLUMN_HEADER

    def test_span_indices_for_one_route(self):
        sheet = render(_log(("31", "A", "05:10", "P1", "x"), ("31", "B", "06:10", "P2", "y")))
        assert sheet.spans == [
            FormatSpan(0, 1, StyleKind.ROUTE_HEADER),
            FormatSpan(1, 2, StyleKind.DIRECTION_HEADER),
            FormatSpan(2, 3, StyleKind.COLUMN_HEADER),
            FormatSpan(5, 6, StyleKind.DIRECTION_HEADER),
            FormatSpan(6, 7, StyleKind.COLUMN_HEADER),
        ]

    def test_span_count(self):
        sheet = render(_log(
            ("31", "A", "05:10", "P1", "x"),
            ("31", "B", "06:10", "P2", "y"),
            ("9", "C", "07:10", "P3", "z"),
        ))
        # one per route, two per direction
        assert len(sheet.spans) == 2 + 2 * 3

    def test_cell_formats_carry_presets(self):
        sheet = render(_log(("31", "A", "05:10", "P1", "x")))
        route_fmt, direction_fmt, column_fmt = sheet.cell_formats()

        assert route_fmt.background_color == DARK_BLUE
        assert route_fmt.text_format["bold"] is True
        assert route_fmt.text_format["fontSize"] == 14
        assert (route_fmt.start_column, route_fmt.end_column) == (0, SHEET_WIDTH)

        assert direction_fmt.text_format["foregroundColor"] == DARK_BLUE
        assert direction_fmt.text_format["fontSize"] == 12

        assert column_fmt.end_column == len(COLUMN_HEADER)
        assert column_fmt.background_color == STYLE_PRESETS[StyleKind.COLUMN_HEADER].background_color

    def test_user_entered_format_shape(self):
        fmt = render(_log(("31", "A", "05:10", "P1", "x"))).cell_formats()[0]
        assert fmt.user_entered_format() == {
            "backgroundColor": DARK_BLUE,
            "textFormat": STYLE_PRESETS[StyleKind.ROUTE_HEADER].text_format,
        }


# ---------------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------------

class TestRoundTrip:
    def test_parse_of_render_restores_log(self):
        log = _log(
            ("31", "Zeleni Venac", "05:10", "P1234", "10:00:00"),
            ("31", "Zeleni Venac", "05:25", "P5678", "10:05:00"),
            ("31", "Konjarnik", "06:00", "P9999", "10:01:00"),
            ("2A", "Dorćol", "9:05", "P1111", "11:00:00"),
        )
        for route in log.routes.values():
            for direction in route.directions.values():
                direction.sort()

        restored = parse(render(log).rows)
        assert restored.to_dicts() == log.to_dicts()

    def test_render_of_parse_is_stable(self):
        log = _log(("31", "A", "05:10", "P1", "x"), ("9", "B", "06:00", "P2", "y"))
        rows = render(log).rows
        assert render(parse(rows)).rows == rows
