"""Configuration helpers for the Google Sheets writer."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from sheets_writer.errors import UserError

logger = logging.getLogger(__name__)


APP_NAME = "wr-google-sheets"
CONFIG_FILENAME = "config.json"

DEFAULT_PAGE_SIZE = 5000
DEFAULT_CELL_LIMIT = 10_000_000
TAB_COUNT_WARNING = 150
TAB_COUNT_LIMIT = 200

# Attempts per request, first try included.
RUN_MAX_ATTEMPTS = 8
SYNC_ACTION_MAX_ATTEMPTS = 2


class SheetAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    APPEND = "append"


class RunAction(str, Enum):
    RUN = "run"
    GET_SPREADSHEET = "getSpreadsheet"
    CREATE_SPREADSHEET = "createSpreadsheet"
    ADD_SHEET = "addSheet"
    DELETE_SHEET = "deleteSheet"

    @property
    def max_attempts(self) -> int:
        if self is RunAction.RUN:
            return RUN_MAX_ATTEMPTS
        return SYNC_ACTION_MAX_ATTEMPTS


@dataclass(frozen=True)
class Folder:
    id: Optional[str] = None
    title: Optional[str] = None


@dataclass(frozen=True)
class SheetTarget:
    """One configured table → spreadsheet tab job."""

    id: int
    file_id: str = ""
    title: Optional[str] = None
    sheet_id: Optional[int] = None
    sheet_title: str = ""
    table_id: str = ""
    action: SheetAction = SheetAction.UPDATE
    enabled: bool = True
    folder: Optional[Folder] = None

    @property
    def file_label(self) -> str:
        return self.title or self.file_id or "(unknown)"

    def describe(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "fileId": self.file_id,
            "title": self.title,
            "sheetId": self.sheet_id,
            "sheetTitle": self.sheet_title,
            "tableId": self.table_id,
            "action": self.action.value,
            "enabled": self.enabled,
        }


@dataclass
class Parameters:
    data_dir: str
    tables: List[SheetTarget] = field(default_factory=list)
    service_account_json: Any = None
    cell_limit: int = DEFAULT_CELL_LIMIT


@dataclass
class Config:
    parameters: Parameters
    action: RunAction = RunAction.RUN
    authorization: Mapping[str, Any] = field(default_factory=dict)
    app_name: str = APP_NAME


def _invalid(path: str, message: str) -> UserError:
    return UserError(f'Invalid configuration for path "{path}": {message}')


def _parse_int(value: Any, path: str) -> int:
    if isinstance(value, bool):
        raise _invalid(path, f"expected integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise _invalid(path, f"expected integer, got {value!r}")


def _parse_str(value: Any, path: str) -> str:
    if value is None:
        return ""
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return str(value)
    raise _invalid(path, f"expected scalar, got {value!r}")


def _parse_folder(value: Any, path: str) -> Optional[Folder]:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise _invalid(path, "expected an object")
    unknown = set(value) - {"id", "title"}
    if unknown:
        raise _invalid(path, f"unrecognized options {', '.join(sorted(unknown))}")
    folder_id = value.get("id")
    title = value.get("title")
    return Folder(
        id=None if folder_id is None else _parse_str(folder_id, f"{path}.id"),
        title=None if title is None else _parse_str(title, f"{path}.title"),
    )


def parse_target(data: Mapping[str, Any], index: int = 0) -> SheetTarget:
    path = f"parameters.tables.{index}"
    if not isinstance(data, Mapping):
        raise _invalid(path, "expected an object")
    if "id" not in data:
        raise _invalid(path, 'the child node "id" must be configured')
    target_id = _parse_int(data["id"], f"{path}.id")
    if target_id < 0:
        raise _invalid(f"{path}.id", "should be greater than or equal to 0")

    raw_action = data.get("action", SheetAction.UPDATE.value)
    try:
        action = SheetAction(raw_action)
    except ValueError:
        allowed = ", ".join(f'"{item.value}"' for item in SheetAction)
        raise _invalid(f"{path}.action", f"the value {raw_action!r} is not allowed, permissible values: {allowed}")

    enabled = data.get("enabled", True)
    if not isinstance(enabled, bool):
        raise _invalid(f"{path}.enabled", f"expected boolean, got {enabled!r}")

    sheet_id = data.get("sheetId")
    title = data.get("title")
    return SheetTarget(
        id=target_id,
        file_id=_parse_str(data.get("fileId"), f"{path}.fileId"),
        title=None if title is None else _parse_str(title, f"{path}.title"),
        sheet_id=None if sheet_id in (None, "") else _parse_int(sheet_id, f"{path}.sheetId"),
        sheet_title=_parse_str(data.get("sheetTitle"), f"{path}.sheetTitle"),
        table_id=_parse_str(data.get("tableId"), f"{path}.tableId"),
        action=action,
        enabled=enabled,
        folder=_parse_folder(data.get("folder"), f"{path}.folder"),
    )


def parse_parameters(data: Any) -> Parameters:
    if not isinstance(data, Mapping):
        raise _invalid("parameters", "expected an object")

    data_dir = data.get("data_dir")
    if not isinstance(data_dir, str) or not data_dir.strip():
        raise _invalid("parameters.data_dir", "the path cannot contain an empty value")

    if "tables" not in data:
        raise _invalid("parameters", 'the child node "tables" must be configured')
    tables = data["tables"]
    if not isinstance(tables, list):
        raise _invalid("parameters.tables", "expected an array")

    cell_limit = data.get("cellLimit", DEFAULT_CELL_LIMIT)
    cell_limit = _parse_int(cell_limit, "parameters.cellLimit")
    if cell_limit < 1:
        raise _invalid("parameters.cellLimit", "should be greater than 0")

    return Parameters(
        data_dir=data_dir,
        tables=[parse_target(item, index) for index, item in enumerate(tables)],
        service_account_json=data.get("#serviceAccountJson"),
        cell_limit=cell_limit,
    )


def parse_config(payload: Mapping[str, Any], data_dir: Optional[str] = None) -> Config:
    """Return a validated :class:`Config` built from the raw JSON payload."""

    if not isinstance(payload, Mapping):
        raise UserError("Configuration must be a JSON object.")

    raw_action = payload.get("action") or RunAction.RUN.value
    try:
        action = RunAction(raw_action)
    except ValueError:
        raise UserError(f"Action '{raw_action}' does not exist.")

    parameters = dict(payload.get("parameters") or {})
    if data_dir is not None:
        parameters["data_dir"] = data_dir

    authorization = payload.get("authorization") or {}
    if not isinstance(authorization, Mapping):
        raise _invalid("authorization", "expected an object")

    return Config(
        parameters=parse_parameters(parameters),
        action=action,
        authorization=authorization,
        app_name=str(payload.get("app_name") or APP_NAME),
    )


def load_config(data_dir: str) -> Config:
    """Read ``config.json`` from ``data_dir`` and validate it."""

    path = os.path.join(data_dir, CONFIG_FILENAME)
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except FileNotFoundError:
        raise UserError(f"Configuration file not found: {path}")
    except json.JSONDecodeError as exc:
        raise UserError(f"Configuration file is not valid JSON: {exc.msg}") from exc
    logger.debug("Loaded configuration from %s", path)
    return parse_config(payload, data_dir=data_dir)


__all__ = [
    "APP_NAME",
    "Config",
    "DEFAULT_CELL_LIMIT",
    "DEFAULT_PAGE_SIZE",
    "Folder",
    "Parameters",
    "RunAction",
    "SheetAction",
    "SheetTarget",
    "TAB_COUNT_WARNING",
    "load_config",
    "parse_config",
    "parse_parameters",
    "parse_target",
]
