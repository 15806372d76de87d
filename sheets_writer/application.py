"""Top level action dispatch and Google API error translation."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from googleapiclient.errors import HttpError

from sheets_writer.errors import ApplicationError, RemoteCallError, UserError, WriterError
from sheets_writer.google_credentials import resolve_credentials
from sheets_writer.input_table import TableFactory
from sheets_writer.settings import DEFAULT_PAGE_SIZE, Config, RunAction, SheetTarget
from sheets_writer.sheets_client import GoogleSheetsClient, build_client, http_body, http_reason, http_status
from sheets_writer.writer import Writer

logger = logging.getLogger(__name__)


def is_forbidden(status: int, reason: str) -> bool:
    return status == 403 and reason.lower() == "forbidden"


def error_for_status(status: int, reason: str, message: str, data: Mapping[str, Any]) -> Optional[WriterError]:
    """Map a rejected Google API call to the writer error reported to the user.

    ``None`` means access to the resource is simply forbidden, which is
    reported as a warning only.
    """

    if status == 401:
        return UserError("Expired or wrong credentials, please reauthorize.", data)
    if status == 403:
        if is_forbidden(status, reason):
            return None
        return UserError(f"Reason: {reason}", data)
    if status == 404:
        return UserError(f"File or folder not found. {message}", data)
    if status == 400:
        return UserError(message, data)
    if 500 <= status < 600:
        return UserError(f"Google API error: {message}", data)
    return ApplicationError(message, data)


def _raise_translated(
    status: int, reason: str, message: str, data: Mapping[str, Any], cause: Exception
) -> Dict[str, Any]:
    error = error_for_status(status, reason, message, data)
    if error is None:
        logger.warning("You don't have access to Google Drive resource.")
        return {}
    raise error from cause


def translate_http_error(exc: HttpError) -> Dict[str, Any]:
    """Raise the writer error matching ``exc``, or return ``{}`` when forbidden."""

    return _raise_translated(http_status(exc), http_reason(exc), str(exc), {"response": http_body(exc)}, exc)


class Application:
    def __init__(self, config: Config, *, client: Optional[GoogleSheetsClient] = None) -> None:
        self.config = config
        self.action = config.action
        self.parameters = config.parameters
        if client is None:
            credentials = resolve_credentials(config.authorization, self.parameters.service_account_json)
            client = build_client(credentials, max_attempts=self.action.max_attempts)
        self.writer = Writer(
            client,
            TableFactory(self.parameters.data_dir),
            page_size=DEFAULT_PAGE_SIZE,
            cell_limit=self.parameters.cell_limit,
        )
        self._handlers: Mapping[RunAction, Callable[[], Dict[str, Any]]] = {
            RunAction.RUN: self.run_action,
            RunAction.GET_SPREADSHEET: self.get_spreadsheet_action,
            RunAction.CREATE_SPREADSHEET: self.create_spreadsheet_action,
            RunAction.ADD_SHEET: self.add_sheet_action,
            RunAction.DELETE_SHEET: self.delete_sheet_action,
        }

    def run(self) -> Dict[str, Any]:
        handler = self._handlers[self.action]
        try:
            return handler()
        except HttpError as exc:
            return translate_http_error(exc)
        except RemoteCallError as exc:
            return _raise_translated(exc.status, exc.reason, str(exc), exc.data, exc)

    def _first_target(self) -> SheetTarget:
        if not self.parameters.tables:
            raise UserError(f"Action '{self.action.value}' requires one configured table")
        return self.parameters.tables[0]

    def run_action(self) -> Dict[str, Any]:
        self.writer.process(self.parameters.tables)
        return {"status": "ok"}

    def get_spreadsheet_action(self) -> Dict[str, Any]:
        spreadsheet = self.writer.get_spreadsheet(self._first_target().file_id)
        return {"status": "ok", "spreadsheet": spreadsheet}

    def create_spreadsheet_action(self) -> Dict[str, Any]:
        spreadsheet = self.writer.create_spreadsheet(self._first_target())
        return {"status": "ok", "spreadsheet": spreadsheet}

    def add_sheet_action(self) -> Dict[str, Any]:
        sheet = self.writer.add_sheet(self._first_target())
        return {"status": "ok", "sheet": sheet}

    def delete_sheet_action(self) -> Dict[str, Any]:
        self.writer.delete_sheet(self._first_target())
        return {"status": "ok"}


__all__ = ["Application", "error_for_status", "is_forbidden", "translate_http_error"]
