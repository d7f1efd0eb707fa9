from __future__ import annotations

import logging
from typing import List

import pytest

from lphash.contracts.error import KeyNotFoundError
from lphash.core.reporter import LoggingReporter, NullReporter, RecordingReporter, Reporter
from lphash.core.table import HashTable


class ExplodingReporter:
    def __init__(self) -> None:
        self.calls = 0

    def report(self, message: str) -> None:
        self.calls += 1
        raise RuntimeError(f"cannot report {message}")


def test_default_reporter_is_null() -> None:
    table: HashTable[str, int] = HashTable()
    assert isinstance(table.reporter, NullReporter)
    assert isinstance(table.reporter, Reporter)
    assert table.reports_basic_calls is False


def test_only_expansions_and_failed_gets_reported_by_default() -> None:
    reporter = RecordingReporter()
    table: HashTable[int, str] = HashTable(reporter, growth_jitter=0)
    for i in range(21):
        table.set(i, str(i))
    assert table.get(1) == "1"
    table.remove(1)
    with pytest.raises(KeyNotFoundError):
        table.get(1)
    assert reporter.messages == ["Expanding to 82 elements.", "get(1) failed"]


def test_basic_calls_report_each_operation() -> None:
    reporter = RecordingReporter()
    table: HashTable[int, str] = HashTable(reporter)
    table.report_basic_calls(True)
    assert table.reports_basic_calls is True

    table.set(3, "x")
    table.set(3, "y")
    assert table.get(3) == "y"
    assert table.remove(3) is True
    assert table.remove(3) is False
    assert reporter.messages == [
        "pairs[3] = 3:x",
        "pairs[3] = 3:y",
        "get(3) => y",
        "remove(3)",
    ]

    table.report_basic_calls(False)
    reporter.clear()
    table.set(4, "z")
    assert len(reporter) == 0


def test_expansion_is_reported_before_the_write() -> None:
    reporter = RecordingReporter()
    table: HashTable[int, int] = HashTable(reporter, growth_jitter=0)
    for i in range(20):
        table.set(i, i)
    table.report_basic_calls(True)
    table.set(20, 20)
    assert reporter.messages == ["Expanding to 82 elements.", "pairs[20] = 20:20"]


def test_reporter_failure_does_not_break_table(lphash_records: List[logging.LogRecord]) -> None:
    reporter = ExplodingReporter()
    table: HashTable[str, int] = HashTable(reporter)
    table.report_basic_calls(True)
    table.set("k", 1)
    assert table.get("k") == 1
    assert reporter.calls == 2
    failures = [record for record in lphash_records if "Reporter failed" in record.getMessage()]
    assert len(failures) == 2
    assert failures[0].exc_info is not None


def test_failed_get_still_raises_when_reporter_fails() -> None:
    table: HashTable[str, int] = HashTable(ExplodingReporter())
    with pytest.raises(KeyNotFoundError):
        table.get("nope")


def test_logging_reporter_forwards_messages(lphash_records: List[logging.LogRecord]) -> None:
    reporter = LoggingReporter(level=logging.WARNING)
    table: HashTable[str, int] = HashTable(reporter)
    with pytest.raises(KeyNotFoundError):
        table.get("ghost")
    matches = [record for record in lphash_records if record.getMessage() == "get(ghost) failed"]
    assert len(matches) == 1
    assert matches[0].levelno == logging.WARNING


def test_logging_reporter_uses_given_logger() -> None:
    custom = logging.getLogger("lphash.test.reporter")
    reporter = LoggingReporter(custom)
    assert reporter.logger is custom
    assert reporter.level == logging.INFO


def test_null_reporter_swallows_messages() -> None:
    reporter = NullReporter()
    assert reporter.report("anything") is None
