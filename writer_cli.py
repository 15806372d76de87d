"""Command line entry point for the Google Sheets writer."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Optional

from sheets_writer.application import Application
from sheets_writer.errors import ApplicationError, UserError
from sheets_writer.logging_config import configure_logging, send_info_to_stderr
from sheets_writer.settings import APP_NAME, Config, RunAction, load_config

logger = logging.getLogger(APP_NAME)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Write CSV tables into Google Sheets")
    parser.add_argument(
        "-d",
        "--data",
        default=os.environ.get("KBC_DATADIR"),
        help="Data folder containing config.json and in/tables (defaults to $KBC_DATADIR)",
    )
    parser.add_argument("--debug", action="store_true", help="Log debug messages with their context")
    return parser


def _print_json(payload: object) -> None:
    print(json.dumps(payload))


def _reports_json(config: Optional[Config]) -> bool:
    return config is not None and config.action is not RunAction.RUN


def _print_error(error: str, exc: BaseException) -> None:
    _print_json({"status": "error", "error": error, "message": str(exc)})


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(debug=args.debug)

    config: Optional[Config] = None
    try:
        if not args.data:
            raise UserError("Data folder not set.")
        config = load_config(args.data)
        if _reports_json(config):
            send_info_to_stderr()
        result = Application(config).run()
    except UserError as exc:
        if _reports_json(config):
            _print_error("User Error", exc)
        else:
            logger.error("%s", exc, extra={"context": exc.data})
        return exc.exit_code
    except ApplicationError as exc:
        logger.error("%s", exc, exc_info=True, extra={"context": exc.data})
        if _reports_json(config):
            _print_error("Application Error", exc)
        return exc.exit_code
    except Exception as exc:
        logger.error("%s", exc, exc_info=True)
        if _reports_json(config):
            _print_error("Application Error", exc)
        return 2

    if config.action is not RunAction.RUN:
        _print_json(result)
        return 0

    logger.info("Writer finished successfully.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
