"""Run the configured sheet targets one after another."""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, Iterable, List

from sheets_writer.errors import UserError
from sheets_writer.input_table import TableFactory
from sheets_writer.settings import (
    DEFAULT_CELL_LIMIT,
    DEFAULT_PAGE_SIZE,
    TAB_COUNT_LIMIT,
    TAB_COUNT_WARNING,
    SheetAction,
    SheetTarget,
)
from sheets_writer.sheet import SheetWriter, count_updated_rows, validate_row_count
from sheets_writer.sheets_client import GoogleSheetsClient

logger = logging.getLogger(__name__)


class Writer:
    def __init__(
        self,
        client: GoogleSheetsClient,
        tables: TableFactory,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        cell_limit: int = DEFAULT_CELL_LIMIT,
    ) -> None:
        self.client = client
        self.tables = tables
        self.page_size = page_size
        self.cell_limit = cell_limit

    def process(self, targets: Iterable[SheetTarget]) -> None:
        """Write every enabled target, in the configured order."""

        for target in targets:
            if not target.enabled:
                logger.debug("Skipping disabled sheet %s", target.id)
                continue
            if target.action is SheetAction.CREATE:
                target = self.resolve_create_action(target)

            logger.info('Processing sheet "%s" in file "%s"', target.sheet_title, target.file_label)

            table = self.tables.get_table(target.table_id)
            sheet_writer = SheetWriter(self.client, table, page_size=self.page_size, cell_limit=self.cell_limit)
            responses = sheet_writer.process(target)
            validate_row_count(table.row_count, count_updated_rows(responses), target)

    def resolve_create_action(self, target: SheetTarget) -> SheetTarget:
        """Turn ``create`` into ``append`` to an existing tab or ``update`` of a new one."""

        spreadsheet = self.client.get_spreadsheet(target.file_id)
        sheets = spreadsheet.get("sheets", [])

        for sheet in sheets:
            properties = sheet.get("properties", {})
            if properties.get("title") == target.sheet_title:
                logger.info('Sheet "%s" found in spreadsheet, appending data', target.sheet_title)
                return dataclasses.replace(
                    target,
                    sheet_id=int(properties["sheetId"]),
                    action=SheetAction.APPEND,
                )

        response = self.client.add_sheet(target.file_id, {"properties": {"title": target.sheet_title}})
        sheet_id = int(response["replies"][0]["addSheet"]["properties"]["sheetId"])
        logger.info('Sheet "%s" not found in spreadsheet, creating new tab', target.sheet_title)

        tab_count = len(sheets) + 1
        if tab_count > TAB_COUNT_WARNING:
            logger.warning("Spreadsheet has %d tabs. Google Sheets limit is %d.", tab_count, TAB_COUNT_LIMIT)

        return dataclasses.replace(target, sheet_id=sheet_id, action=SheetAction.UPDATE)

    # ------------------------------------------------------------------
    # Single target actions
    # ------------------------------------------------------------------
    def get_spreadsheet(self, file_id: str) -> Dict[str, Any]:
        return self.client.get_spreadsheet(file_id)

    def create_file_metadata(self, target: SheetTarget) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if target.folder is not None and target.folder.id:
            params["parents"] = [target.folder.id]
        return self.client.create_file_metadata(target.title or "", params)

    def create_spreadsheet(self, target: SheetTarget) -> Dict[str, Any]:
        gd_file = self.create_file_metadata(target)
        return self.client.get_spreadsheet(gd_file["id"])

    def add_sheet(self, target: SheetTarget) -> Dict[str, Any]:
        logger.debug("Add Sheet action")
        spreadsheet = self.client.get_spreadsheet(target.file_id)
        logger.debug("get spreadsheet", extra={"context": {"response": {"spreadsheet": spreadsheet}}})
        for sheet in spreadsheet.get("sheets", []):
            properties = sheet.get("properties", {})
            if properties.get("title") == target.sheet_title:
                return properties

        response = self.client.add_sheet(target.file_id, {"properties": {"title": target.sheet_title}})
        logger.debug("add sheet", extra={"context": {"response": response}})
        return response["replies"][0]["addSheet"]["properties"]

    def delete_sheet(self, target: SheetTarget) -> Dict[str, Any]:
        if target.sheet_id is None:
            raise UserError(f'Sheet id of "{target.sheet_title}" must be configured to delete it')
        return self.client.delete_sheet(target.file_id, target.sheet_id)


__all__: List[str] = ["Writer"]
