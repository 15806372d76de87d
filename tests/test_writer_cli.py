import json
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pytest

import writer_cli
from sheets_writer.errors import ApplicationError, UserError


@pytest.fixture(autouse=True)
def _no_stream_handlers(monkeypatch):
    monkeypatch.setattr(writer_cli, "configure_logging", lambda **kwargs: logging.getLogger())
    monkeypatch.setattr(writer_cli, "send_info_to_stderr", lambda: None)


def _write_config(data_dir: Path, action: str = "run") -> None:
    payload = {
        "action": action,
        "parameters": {"tables": [{"id": 0, "fileId": "file-1", "sheetTitle": "data", "tableId": "t"}]},
    }
    (data_dir / "config.json").write_text(json.dumps(payload), encoding="utf-8")


def _fake_application(result=None, error=None):
    class _FakeApplication:
        def __init__(self, config):
            self.config = config

        def run(self):
            if error is not None:
                raise error
            return result

    return _FakeApplication


def test_run_success_exits_zero(tmp_path, monkeypatch, caplog):
    caplog.set_level(logging.INFO)
    _write_config(tmp_path)
    monkeypatch.setattr(writer_cli, "Application", _fake_application({"status": "ok"}))

    assert writer_cli.main(["--data", str(tmp_path)]) == 0
    assert "Writer finished successfully." in caplog.text


def test_sync_action_prints_json_result(tmp_path, monkeypatch, capsys):
    _write_config(tmp_path, "getSpreadsheet")
    monkeypatch.setattr(writer_cli, "Application", _fake_application({"status": "ok", "spreadsheet": {"id": 1}}))

    assert writer_cli.main(["--data", str(tmp_path)]) == 0
    assert json.loads(capsys.readouterr().out.strip().splitlines()[-1]) == {"status": "ok", "spreadsheet": {"id": 1}}


def test_sync_action_user_error_prints_json(tmp_path, monkeypatch, capsys):
    _write_config(tmp_path, "addSheet")
    monkeypatch.setattr(writer_cli, "Application", _fake_application(error=UserError("Sheet is gone")))

    assert writer_cli.main(["--data", str(tmp_path)]) == 1
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload == {"status": "error", "error": "User Error", "message": "Sheet is gone"}


@pytest.mark.parametrize(
    "error, code, message",
    [
        (ApplicationError("bad response"), 2, "bad response"),
        (RuntimeError("boom"), 2, "boom"),
    ],
)
def test_sync_action_failure_prints_application_error_json(tmp_path, monkeypatch, capsys, error, code, message):
    _write_config(tmp_path, "getSpreadsheet")
    monkeypatch.setattr(writer_cli, "Application", _fake_application(error=error))

    assert writer_cli.main(["--data", str(tmp_path)]) == code
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload == {"status": "error", "error": "Application Error", "message": message}


def test_sync_action_keeps_logs_off_stdout(tmp_path, monkeypatch):
    moved = []
    monkeypatch.setattr(writer_cli, "send_info_to_stderr", lambda: moved.append(True))
    _write_config(tmp_path, "deleteSheet")
    monkeypatch.setattr(writer_cli, "Application", _fake_application({"status": "ok"}))

    assert writer_cli.main(["--data", str(tmp_path)]) == 0
    assert moved == [True]


def test_run_action_logs_to_stdout(tmp_path, monkeypatch):
    moved = []
    monkeypatch.setattr(writer_cli, "send_info_to_stderr", lambda: moved.append(True))
    _write_config(tmp_path)
    monkeypatch.setattr(writer_cli, "Application", _fake_application({"status": "ok"}))

    assert writer_cli.main(["--data", str(tmp_path)]) == 0
    assert moved == []


@pytest.mark.parametrize(
    "error, code",
    [
        (UserError("bad config"), 1),
        (ApplicationError("bug"), 2),
        (ApplicationError("bug", exit_code=5), 5),
        (RuntimeError("boom"), 2),
    ],
)
def test_run_errors_map_to_exit_codes(tmp_path, monkeypatch, error, code):
    _write_config(tmp_path)
    monkeypatch.setattr(writer_cli, "Application", _fake_application(error=error))

    assert writer_cli.main(["--data", str(tmp_path)]) == code


def test_missing_data_folder(monkeypatch):
    monkeypatch.delenv("KBC_DATADIR", raising=False)

    assert writer_cli.main([]) == 1
