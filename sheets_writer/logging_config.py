"""Logging configuration for the writer process."""
from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any, Dict, Mapping, Optional

from sheets_writer.input_table import Table

RUN_INFO_VARIABLES: Mapping[str, str] = {
    "kbc_run_id": "KBC_RUNID",
    "kbc_project_id": "KBC_PROJECTID",
    "kbc_config_id": "KBC_CONFIGID",
    "kbc_component_id": "KBC_COMPONENTID",
}

_CONFIGURED = False
_INFO_HANDLER: Optional[logging.StreamHandler] = None


class RunInfoFilter(logging.Filter):
    """Attach the platform run identifiers to debug records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno == logging.DEBUG:
            context: Dict[str, Any] = dict(getattr(record, "context", None) or {})
            for key, variable in RUN_INFO_VARIABLES.items():
                context[key] = os.environ.get(variable)
            record.context = context
        return True


class _MaxLevelFilter(logging.Filter):
    def __init__(self, level: int) -> None:
        super().__init__()
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.level


def _json_default(value: Any) -> str:
    if isinstance(value, Table):
        return repr(value)
    return str(value)


class ContextFormatter(logging.Formatter):
    """Append the structured ``context`` of a record as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = getattr(record, "context", None)
        if context:
            message = f"{message} {json.dumps(context, default=_json_default, sort_keys=True)}"
        return message


def configure_logging(level: int = logging.INFO, *, debug: Optional[bool] = None) -> logging.Logger:
    """Configure stream logging for the writer.

    Informational messages go to stdout as plain lines, warnings and errors
    go to stderr with a timestamp.  With ``debug`` enabled the structured
    context of each record is printed as well.
    """

    global _CONFIGURED, _INFO_HANDLER

    if debug is None:
        debug = level <= logging.DEBUG
    if debug:
        level = logging.DEBUG

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if not _CONFIGURED:
        info_handler = logging.StreamHandler(sys.stdout)
        info_handler.setLevel(level)
        info_handler.addFilter(_MaxLevelFilter(logging.WARNING))
        info_handler.addFilter(RunInfoFilter())

        error_handler = logging.StreamHandler(sys.stderr)
        error_handler.setLevel(logging.WARNING)

        if debug:
            info_handler.setFormatter(ContextFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
            error_handler.setFormatter(ContextFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        else:
            info_handler.setFormatter(logging.Formatter("%(message)s"))
            error_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

        root_logger.addHandler(info_handler)
        root_logger.addHandler(error_handler)
        _INFO_HANDLER = info_handler
        _CONFIGURED = True

    # googleapiclient logs every retry and discovery fetch at INFO.
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)
    root_logger.debug("Starting up")
    return root_logger


def send_info_to_stderr() -> None:
    """Move informational records off stdout, which then carries only the action result."""

    if _INFO_HANDLER is not None:
        _INFO_HANDLER.setStream(sys.stderr)
