from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterator

import pytest

from lphash.cli import app


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    yield
    app.configure_logging()


def test_json_formatter_with_exc_and_stack() -> None:
    formatter = app.JsonFormatter()
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.getLogger("test").makeRecord(
            "test", logging.ERROR, __file__, 0, "failure", (), sys.exc_info(), func="func"
        )
    record.stack_info = "trace info"
    payload = json.loads(formatter.format(record))
    assert payload["level"] == "ERROR"
    assert payload["msg"] == "failure"
    assert "exc_info" in payload
    assert payload["stack"]


def test_configure_logging_json_and_file(tmp_path: Path) -> None:
    log_file = tmp_path / "app.log"
    app.configure_logging(use_json=True, log_file=str(log_file))
    logger = logging.getLogger("lphash")
    logger.error("error message")
    # handlers should include stream + rotating file
    assert any(isinstance(handler, RotatingFileHandler) for handler in logger.handlers)
    assert log_file.exists()
    first_line = log_file.read_text(encoding="utf-8").splitlines()[0]
    assert json.loads(first_line)["msg"] == "error message"


def test_configure_logging_replaces_handlers_and_sets_level(tmp_path: Path) -> None:
    app.configure_logging(log_file=str(tmp_path / "one.log"), level=logging.DEBUG)
    app.configure_logging(level=logging.WARNING)
    logger = logging.getLogger("lphash")
    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING


def test_rotating_handler_honours_limits(tmp_path: Path) -> None:
    app.configure_logging(log_file=str(tmp_path / "r.log"), max_bytes=1234, backup_count=2)
    handler = next(h for h in logging.getLogger("lphash").handlers if isinstance(h, RotatingFileHandler))
    assert handler.maxBytes == 1234
    assert handler.backupCount == 2


def test_emit_success_json(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(app, "OUTPUT_JSON", True)
    app.emit_success("demo", text="done", data={"value": 5})
    out = capsys.readouterr().out.strip()
    payload = json.loads(out)
    assert payload["ok"] is True
    assert payload["command"] == "demo"
    assert payload["value"] == 5
    assert payload["result"] == "done"


def test_emit_success_text(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setattr(app, "OUTPUT_JSON", False)
    app.emit_success("demo", text="plain", data={"ignored": True})
    assert capsys.readouterr().out == "plain\n"
