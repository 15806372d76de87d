import json
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

from sheets_writer.errors import UserError
from sheets_writer.settings import (
    DEFAULT_CELL_LIMIT,
    RUN_MAX_ATTEMPTS,
    SYNC_ACTION_MAX_ATTEMPTS,
    RunAction,
    SheetAction,
    load_config,
    parse_config,
)


def _payload(**parameters):
    data = {
        "data_dir": "/data",
        "tables": [
            {
                "id": 0,
                "fileId": "1abc",
                "title": "titanic",
                "folder": {"id": "folder-1", "title": "exports"},
                "sheetId": "42",
                "sheetTitle": "casualties",
                "tableId": "in.c-main.titanic",
                "action": "append",
            }
        ],
    }
    data.update(parameters)
    return {"parameters": data}


def test_parse_config_builds_targets():
    config = parse_config(_payload())

    assert config.action is RunAction.RUN
    assert config.parameters.cell_limit == DEFAULT_CELL_LIMIT
    target = config.parameters.tables[0]
    assert target.sheet_id == 42
    assert target.action is SheetAction.APPEND
    assert target.enabled is True
    assert target.folder is not None and target.folder.id == "folder-1"
    assert target.file_label == "titanic"


def test_data_dir_argument_overrides_configuration():
    config = parse_config(_payload(data_dir=""), data_dir="/tmp/run")

    assert config.parameters.data_dir == "/tmp/run"


@pytest.mark.parametrize(
    "parameters, message",
    [
        ({"data_dir": ""}, "parameters.data_dir"),
        ({"tables": "nope"}, "parameters.tables"),
        ({"tables": [{"fileId": "x"}]}, '"id" must be configured'),
        ({"tables": [{"id": -1}]}, "greater than or equal to 0"),
        ({"tables": [{"id": 0, "action": "replace"}]}, "is not allowed"),
        ({"tables": [{"id": 0, "enabled": "yes"}]}, "expected boolean"),
        ({"tables": [{"id": 0, "sheetId": "abc"}]}, "expected integer"),
        ({"tables": [{"id": 0, "folder": {"name": "x"}}]}, "unrecognized options"),
        ({"cellLimit": 0}, "parameters.cellLimit"),
    ],
)
def test_invalid_parameters_are_user_errors(parameters, message):
    with pytest.raises(UserError) as excinfo:
        parse_config(_payload(**parameters))

    assert message in str(excinfo.value)


def test_missing_tables_is_rejected():
    with pytest.raises(UserError, match='"tables" must be configured'):
        parse_config({"parameters": {"data_dir": "/data"}})


def test_unknown_action_name():
    payload = _payload()
    payload["action"] = "explode"

    with pytest.raises(UserError, match="Action 'explode' does not exist."):
        parse_config(payload)


def test_retry_budget_depends_on_action():
    assert RunAction.RUN.max_attempts == RUN_MAX_ATTEMPTS
    assert RunAction.GET_SPREADSHEET.max_attempts == SYNC_ACTION_MAX_ATTEMPTS
    assert RUN_MAX_ATTEMPTS > SYNC_ACTION_MAX_ATTEMPTS


def test_load_config_reads_data_dir(tmp_path: Path):
    payload = _payload()
    payload["action"] = "getSpreadsheet"
    payload["parameters"]["cellLimit"] = "2000000"
    (tmp_path / "config.json").write_text(json.dumps(payload), encoding="utf-8")

    config = load_config(str(tmp_path))

    assert config.action is RunAction.GET_SPREADSHEET
    assert config.parameters.data_dir == str(tmp_path)
    assert config.parameters.cell_limit == 2_000_000


def test_load_config_missing_or_broken_file(tmp_path: Path):
    with pytest.raises(UserError, match="not found"):
        load_config(str(tmp_path))

    (tmp_path / "config.json").write_text("{broken", encoding="utf-8")
    with pytest.raises(UserError, match="not valid JSON"):
        load_config(str(tmp_path))
