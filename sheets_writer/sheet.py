"""Synchronisation of one source table into one spreadsheet tab.

:class:`SheetWriter` reconciles a tab with a CSV table in four steps:

1. Fetch the tab properties and run the pre-flight checks (the tab must
   exist, the table must fit into the spreadsheet cell limit).
2. Align the grid column count with the table while keeping the current
   row count.
3. Upload the table page by page, either replacing the tab content
   (``update``) or appending to it (``append``).
4. Sum the written rows reported by the API so that the caller can check
   them against the table with :func:`validate_row_count`.

For ``update`` the old values are cleared and the row count is set only
after the columns have been resized.  Shrinking rows first makes the Sheets
UI show a truncated, frozen header for a while.

Writes are not transactional: when the row count check fails the uploaded
pages stay on the sheet.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from googleapiclient.errors import HttpError

from sheets_writer.a1 import build_range
from sheets_writer.errors import ApplicationError, RemoteCallError, UserError
from sheets_writer.input_table import Paginator, Table
from sheets_writer.settings import DEFAULT_CELL_LIMIT, DEFAULT_PAGE_SIZE, SheetAction, SheetTarget
from sheets_writer.sheets_client import GoogleSheetsClient, http_body, http_reason, http_status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GridProperties:
    column_count: int
    row_count: int

    def as_dict(self) -> Dict[str, int]:
        return {"columnCount": self.column_count, "rowCount": self.row_count}


@dataclass(frozen=True)
class SheetProperties:
    """Snapshot of the remote tab metadata."""

    sheet_id: int
    title: str
    row_count: int
    column_count: int

    @classmethod
    def from_api(cls, properties: Mapping[str, Any]) -> "SheetProperties":
        grid = properties.get("gridProperties") or {}
        return cls(
            sheet_id=int(properties["sheetId"]),
            title=str(properties.get("title", "")),
            row_count=int(grid.get("rowCount", 0)),
            column_count=int(grid.get("columnCount", 0)),
        )


def find_sheet_properties(sheets: Iterable[Mapping[str, Any]], sheet_id: Optional[int]) -> Optional[SheetProperties]:
    if sheet_id is None:
        return None
    for sheet in sheets:
        properties = sheet.get("properties") or {}
        if "sheetId" in properties and int(properties["sheetId"]) == sheet_id:
            return SheetProperties.from_api(properties)
    return None


def updated_rows(response: Any) -> int:
    """Normalise the written row count of an update or append response."""

    if not isinstance(response, Mapping):
        raise ApplicationError("Unexpected response from Google Sheets API", {"response": response})
    updates = response.get("updates")
    if isinstance(updates, Mapping):
        return int(updates.get("updatedRows", 0))
    return int(response.get("updatedRows", 0))


def count_updated_rows(responses: Iterable[Any]) -> int:
    return sum(updated_rows(response) for response in responses)


def validate_row_count(row_count_src: int, row_count_updated: int, target: SheetTarget) -> None:
    """Check the written row count against the source table.

    Appending to a tab which already has a header drops the header of the
    table, so one row less is accepted for ``append``.
    """

    matches = row_count_src == row_count_updated
    if target.action is SheetAction.APPEND:
        matches = matches or row_count_src - 1 == row_count_updated
    if matches:
        return
    raise UserError(
        f"Number of written rows ({row_count_updated}) in the sheet does not match with source table "
        f"({row_count_src}). File \"{target.file_label}\" ({target.file_id}), sheet \"{target.sheet_title}\" "
        f"({target.sheet_id}). Try disabling all filters in the sheet and run the writer again.",
        {"sheet": target.describe()},
    )


class SheetWriter:
    """Write one :class:`Table` into one spreadsheet tab."""

    def __init__(
        self,
        client: GoogleSheetsClient,
        table: Table,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        cell_limit: int = DEFAULT_CELL_LIMIT,
    ) -> None:
        self.client = client
        self.table = table
        self.page_size = page_size
        self.cell_limit = cell_limit

    def process(self, target: SheetTarget) -> List[Dict[str, Any]]:
        """Upload the table into ``target`` and return the API responses."""

        try:
            properties = self.fetch_sheet_properties(target.file_id, target.sheet_id)
            column_count = self.table.column_count
            row_count = self.table.row_count
            self.pre_flight_checks(target, properties, column_count, row_count)

            row_count_dst = max(1, properties.row_count)
            self.update_metadata(target, GridProperties(column_count, row_count_dst))

            if target.action is SheetAction.UPDATE:
                self.client.clear_spreadsheet_values(
                    target.file_id,
                    build_range(target.sheet_title, column_count, 1, row_count_dst),
                )
                self.update_metadata(target, GridProperties(column_count, max(1, row_count)))
                return self.update_action(target)
            if target.action is SheetAction.APPEND:
                return self.append_action(target)
            raise ApplicationError(f'Unknown action "{target.action.value}"', {"sheet": target.describe()})
        except HttpError as exc:
            raise RemoteCallError(
                str(exc),
                status=http_status(exc),
                reason=http_reason(exc),
                response=http_body(exc),
            ) from exc

    def pre_flight_checks(
        self,
        target: SheetTarget,
        properties: Optional[SheetProperties],
        column_count: int,
        row_count: int,
    ) -> None:
        if properties is None:
            raise UserError(
                f'Sheet "{target.sheet_title}" ({target.sheet_id}) not found in file '
                f'"{target.file_label}" ({target.file_id})',
                {"sheet": target.describe()},
            )
        if column_count < 1:
            raise UserError(f'Input table "{self.table.table_id}" is empty', {"sheet": target.describe()})
        if column_count * row_count > self.cell_limit:
            raise UserError(f"CSV file exceeds the limit of {self.cell_limit} cells", {"sheet": target.describe()})

    def fetch_sheet_properties(self, file_id: str, sheet_id: Optional[int]) -> Optional[SheetProperties]:
        spreadsheet = self.client.get_spreadsheet(file_id)
        return find_sheet_properties(spreadsheet.get("sheets", []), sheet_id)

    def update_metadata(self, target: SheetTarget, grid: Optional[GridProperties] = None) -> Dict[str, Any]:
        """Set the tab title and, when given, its grid size."""

        properties: Dict[str, Any] = {"sheetId": target.sheet_id, "title": target.sheet_title}
        fields = "title"
        if grid is not None:
            properties["gridProperties"] = grid.as_dict()
            fields = "title,gridProperties"

        request = {"updateSheetProperties": {"properties": properties, "fields": fields}}
        logger.debug("Updating sheet metadata", extra={"context": {"sheet": target.describe(), "request": request}})
        return self.client.batch_update_spreadsheet(target.file_id, {"requests": [request]})

    def has_header(self, target: SheetTarget) -> bool:
        response = self.client.get_spreadsheet_values(
            target.file_id,
            build_range(target.sheet_title, self.table.column_count, 1, 1),
        )
        return bool(response.get("values"))

    def update_action(self, target: SheetTarget) -> List[Dict[str, Any]]:
        logger.info("Updating values", extra={"context": {"sheet": target.describe()}})

        responses: List[Dict[str, Any]] = []
        for page in Paginator(self.table, self.page_size).pages():
            range_spec = build_range(target.sheet_title, self.table.column_count, page.offset, page.limit)
            response = self.client.update_spreadsheet_values(target.file_id, range_spec, page.values)
            logger.info(
                'Updating data in sheet "%s" in file "%s"',
                target.sheet_title,
                target.file_id,
                extra={
                    "context": {
                        "sheet": target.describe(),
                        "offset": page.offset,
                        "range": range_spec,
                        "response": response,
                    }
                },
            )
            responses.append(response)
        return responses

    def append_action(self, target: SheetTarget) -> List[Dict[str, Any]]:
        logger.info("Appending values", extra={"context": {"sheet": target.describe()}})

        responses: List[Dict[str, Any]] = []
        sheet_has_header = self.has_header(target)
        for page in Paginator(self.table, self.page_size).pages():
            values = page.values
            if page.is_first and sheet_has_header:
                values = values[1:]
            if not values:
                continue

            response = self.client.append_spreadsheet_values(target.file_id, target.sheet_title, values)
            logger.info(
                'Appending data to sheet "%s" in file "%s"',
                target.sheet_title,
                target.file_id,
                extra={
                    "context": {
                        "sheet": target.describe(),
                        "offset": page.offset,
                        "response": response,
                    }
                },
            )
            responses.append(response)
        return responses


__all__ = [
    "GridProperties",
    "SheetProperties",
    "SheetWriter",
    "count_updated_rows",
    "find_sheet_properties",
    "updated_rows",
    "validate_row_count",
]
