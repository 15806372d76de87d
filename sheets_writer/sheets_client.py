"""Google Sheets and Drive client used by the writer.

This module centralises all direct interactions with the Google APIs.  It
provides a small, well defined surface area that the sheet writer relies on
without needing to know about googleapiclient internals:

* Every request is executed through :meth:`GoogleSheetsClient._execute`
  which retries rate limit and server errors with exponential backoff.  The
  attempt budget is chosen by the caller: the batch run is patient, the
  interactive actions fail fast.
* Errors are raised as :class:`googleapiclient.errors.HttpError`.  The
  ``http_*`` helpers extract the status, Google error reason and body from
  such an error for translation into user facing messages.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from sheets_writer.a1 import quote_title
from sheets_writer.google_credentials import WriterCredentials, build_google_credentials
from sheets_writer.settings import RUN_MAX_ATTEMPTS

logger = logging.getLogger(__name__)

MIME_TYPE_SPREADSHEET = "application/vnd.google-apps.spreadsheet"
VALUE_INPUT_OPTION = "USER_ENTERED"
INSERT_DATA_OPTION = "INSERT_ROWS"

RETRIABLE_STATUSES = {429, 500, 502, 503, 504}
RETRIABLE_403_REASONS = {"rateLimitExceeded", "userRateLimitExceeded"}
BACKOFF_SCHEDULE = (1, 2, 4, 8, 16, 32, 64)


def http_status(exc: HttpError) -> int:
    status = getattr(exc, "status_code", None)
    if status is None:
        resp = getattr(exc, "resp", None)
        status = getattr(resp, "status", None)
    try:
        return int(status)
    except (TypeError, ValueError):
        return 0


def http_body(exc: HttpError) -> str:
    content = getattr(exc, "content", b"")
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return str(content or "")


def http_reason(exc: HttpError) -> str:
    """Return the Google error reason, falling back to the HTTP reason phrase."""

    try:
        payload = json.loads(http_body(exc))
        errors = payload["error"]["errors"]
        reason = errors[0]["reason"]
    except (ValueError, KeyError, IndexError, TypeError):
        reason = None
    if reason:
        return str(reason)
    resp = getattr(exc, "resp", None)
    return str(getattr(resp, "reason", "") or "")


def is_retriable(exc: HttpError) -> bool:
    status = http_status(exc)
    if status in RETRIABLE_STATUSES:
        return True
    return status == 403 and http_reason(exc) in RETRIABLE_403_REASONS


class GoogleSheetsClient:
    """Thin wrapper around the Sheets v4 and Drive v3 discovery services."""

    def __init__(
        self,
        sheets_service,
        drive_service=None,
        *,
        max_attempts: int = RUN_MAX_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._sheets = sheets_service
        self._drive = drive_service
        self._max_attempts = max(1, max_attempts)
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Request execution
    # ------------------------------------------------------------------
    def _execute(self, request, description: str) -> Dict[str, Any]:
        attempt = 0
        while True:
            try:
                result = request.execute()
            except HttpError as exc:
                if not is_retriable(exc) or attempt >= self._max_attempts - 1:
                    raise
                delay = BACKOFF_SCHEDULE[min(attempt, len(BACKOFF_SCHEDULE) - 1)]
                attempt += 1
                logger.warning(
                    "Google API %s error (%s %s). Retrying in %ss (%d/%d)",
                    description,
                    http_status(exc),
                    http_reason(exc),
                    delay,
                    attempt,
                    self._max_attempts - 1,
                )
                self._sleep(delay)
                continue
            return result if result is not None else {}

    # ------------------------------------------------------------------
    # Spreadsheets
    # ------------------------------------------------------------------
    def get_spreadsheet(self, file_id: str) -> Dict[str, Any]:
        request = self._sheets.spreadsheets().get(spreadsheetId=file_id, includeGridData=False)
        return self._execute(request, "spreadsheets.get")

    def batch_update_spreadsheet(self, file_id: str, body: Mapping[str, Any]) -> Dict[str, Any]:
        request = self._sheets.spreadsheets().batchUpdate(spreadsheetId=file_id, body=dict(body))
        return self._execute(request, "spreadsheets.batchUpdate")

    def add_sheet(self, file_id: str, sheet: Mapping[str, Any]) -> Dict[str, Any]:
        return self.batch_update_spreadsheet(file_id, {"requests": [{"addSheet": dict(sheet)}]})

    def delete_sheet(self, file_id: str, sheet_id: int) -> Dict[str, Any]:
        return self.batch_update_spreadsheet(
            file_id, {"requests": [{"deleteSheet": {"sheetId": int(sheet_id)}}]}
        )

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------
    def get_spreadsheet_values(self, file_id: str, range_spec: str) -> Dict[str, Any]:
        request = self._sheets.spreadsheets().values().get(
            spreadsheetId=file_id,
            range=range_spec,
            majorDimension="ROWS",
        )
        return self._execute(request, "values.get")

    def clear_spreadsheet_values(self, file_id: str, range_spec: str) -> Dict[str, Any]:
        request = self._sheets.spreadsheets().values().clear(
            spreadsheetId=file_id,
            range=range_spec,
            body={},
        )
        return self._execute(request, "values.clear")

    def update_spreadsheet_values(
        self, file_id: str, range_spec: str, values: Sequence[Sequence[Any]]
    ) -> Dict[str, Any]:
        request = self._sheets.spreadsheets().values().update(
            spreadsheetId=file_id,
            range=range_spec,
            valueInputOption=VALUE_INPUT_OPTION,
            body={"range": range_spec, "majorDimension": "ROWS", "values": [list(row) for row in values]},
        )
        return self._execute(request, "values.update")

    def append_spreadsheet_values(
        self, file_id: str, sheet_title: str, values: Sequence[Sequence[Any]]
    ) -> Dict[str, Any]:
        request = self._sheets.spreadsheets().values().append(
            spreadsheetId=file_id,
            range=quote_title(sheet_title),
            valueInputOption=VALUE_INPUT_OPTION,
            insertDataOption=INSERT_DATA_OPTION,
            body={"majorDimension": "ROWS", "values": [list(row) for row in values]},
        )
        return self._execute(request, "values.append")

    # ------------------------------------------------------------------
    # Drive
    # ------------------------------------------------------------------
    def create_file_metadata(self, title: str, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        if self._drive is None:
            raise RuntimeError("Drive service is not configured")
        metadata: Dict[str, Any] = {"name": title, "mimeType": MIME_TYPE_SPREADSHEET}
        metadata.update(params or {})
        request = self._drive.files().create(
            body=metadata,
            fields="id, name, mimeType, parents",
            supportsAllDrives=True,
        )
        return self._execute(request, "files.create")


def build_client(creds: WriterCredentials, *, max_attempts: int = RUN_MAX_ATTEMPTS) -> GoogleSheetsClient:
    """Factory helper used by the application to construct a client."""

    credentials = build_google_credentials(creds)
    sheets = build("sheets", "v4", credentials=credentials, cache_discovery=False)
    drive = build("drive", "v3", credentials=credentials, cache_discovery=False)
    return GoogleSheetsClient(sheets, drive, max_attempts=max_attempts)


__all__: List[str] = [
    "GoogleSheetsClient",
    "MIME_TYPE_SPREADSHEET",
    "build_client",
    "http_body",
    "http_reason",
    "http_status",
    "is_retriable",
]
