"""
Tabular store backed by a Google Sheets spreadsheet (gspread).

Credentials come from a service-account JSON payload held in the
GOOGLE_SERVICE_ACCOUNT_JSON environment variable.  All values are written
with valueInputOption=RAW so times such as "05:10" stay plain strings.
"""

import json
import logging
from functools import wraps
from typing import Any

import gspread
import requests
from google.oauth2.service_account import Credentials
from gspread.exceptions import APIError, GSpreadException

from store.base import CellFormatSpan, Rows, SheetInfo, TabularStore
from store.exceptions import SheetNotFound, StoreUnavailable
from store.ranges import parse_a1

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# Error text the Sheets API returns when a range names an unknown sheet.
_MISSING_SHEET_MARKER = "Unable to parse range"


def _api_errors(func):
    """Translate gspread / transport failures into store exceptions.

    Only the first positional argument is inspected for a range, so every
    range-taking method must accept the A1 string first.
    """
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except APIError as exc:
            if _MISSING_SHEET_MARKER in str(exc) and args and isinstance(args[0], str):
                raise SheetNotFound(parse_a1(args[0]).sheet) from exc
            logger.error("Sheets API %s failed: %s", func.__name__, exc)
            raise StoreUnavailable(str(exc), operation=func.__name__) from exc
        except (GSpreadException, requests.RequestException) as exc:
            logger.error("Sheets API %s failed: %s", func.__name__, exc)
            raise StoreUnavailable(str(exc), operation=func.__name__) from exc
    return wrapper


def repeat_cell_requests(sheet_id: int, spans: list[CellFormatSpan]) -> list[dict[str, Any]]:
    """Build one repeatCell batchUpdate request per span."""
    return [
        {
            "repeatCell": {
                "range": {
                    "sheetId": sheet_id,
                    "startRowIndex": span.start_row,
                    "endRowIndex": span.end_row,
                    "startColumnIndex": span.start_column,
                    "endColumnIndex": span.end_column,
                },
                "cell": {"userEnteredFormat": span.user_entered_format()},
                "fields": "userEnteredFormat(backgroundColor,textFormat)",
            }
        }
        for span in spans
    ]


class GoogleSheetStore(TabularStore):

    def __init__(self, spreadsheet: gspread.Spreadsheet):
        self._spreadsheet = spreadsheet

    @classmethod
    def from_service_account(cls, spreadsheet_id: str, service_account_json: str) -> "GoogleSheetStore":
        if not spreadsheet_id:
            raise StoreUnavailable("GOOGLE_SPREADSHEET_ID is not configured.", operation="connect")
        if not service_account_json:
            raise StoreUnavailable("GOOGLE_SERVICE_ACCOUNT_JSON is not configured.", operation="connect")
        try:
            info = json.loads(service_account_json)
        except json.JSONDecodeError as exc:
            raise StoreUnavailable("Invalid service account JSON payload.", operation="connect") from exc

        logger.debug("Opening spreadsheet %s", spreadsheet_id)
        try:
            credentials = Credentials.from_service_account_info(info, scopes=SCOPES)
            client = gspread.authorize(credentials)
            return cls(client.open_by_key(spreadsheet_id))
        except (ValueError, GSpreadException, requests.RequestException) as exc:
            raise StoreUnavailable(str(exc), operation="connect") from exc

    @_api_errors
    def read_range(self, a1_range: str) -> Rows:
        response = self._spreadsheet.values_get(a1_range)
        return [["" if v is None else str(v) for v in row] for row in response.get("values", [])]

    @_api_errors
    def write_range(self, a1_range: str, rows: Rows) -> None:
        self._spreadsheet.values_update(
            a1_range,
            params={"valueInputOption": "RAW"},
            body={"values": rows},
        )

    @_api_errors
    def append_rows(self, a1_range: str, rows: Rows) -> None:
        self._spreadsheet.values_append(
            a1_range,
            params={"valueInputOption": "RAW"},
            body={"values": rows},
        )

    @_api_errors
    def clear_range(self, a1_range: str) -> None:
        self._spreadsheet.values_clear(a1_range)

    @_api_errors
    def apply_cell_formatting(self, sheet_id: int, spans: list[CellFormatSpan]) -> None:
        if not spans:
            return
        self._spreadsheet.batch_update({"requests": repeat_cell_requests(sheet_id, spans)})
        logger.debug("Applied %d format rules to sheet %d", len(spans), sheet_id)

    @_api_errors
    def list_sheets(self) -> list[SheetInfo]:
        metadata = self._spreadsheet.fetch_sheet_metadata()
        return [
            SheetInfo(title=s["properties"]["title"], sheet_id=s["properties"]["sheetId"])
            for s in metadata.get("sheets", [])
        ]

    @_api_errors
    def create_sheet(self, title: str, row_count: int = 1000, column_count: int = 26) -> int:
        response = self._spreadsheet.batch_update({
            "requests": [{
                "addSheet": {
                    "properties": {
                        "title": title,
                        "gridProperties": {"rowCount": row_count, "columnCount": column_count},
                    }
                }
            }]
        })
        sheet_id = response["replies"][0]["addSheet"]["properties"]["sheetId"]
        logger.info("Created sheet '%s' (id=%d).", title, sheet_id)
        return sheet_id
