"""Tests for connection observability sinks."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from src.core.observability import (
    FanOutQueryLogger,
    JSONLQueryLogger,
    LoggingQuerySink,
    Verbosity,
    describe_query_event,
)


def _load_events(path: Path) -> list[dict[str, str]]:
    with path.open("r", encoding="utf-8") as handle:
        return [json.loads(line) for line in handle]


def test_jsonl_query_logger_appends_events(tmp_path: Path) -> None:
    logger = JSONLQueryLogger(base_dir=tmp_path, verbosity=Verbosity.QUERIES)

    logger.log_event("db1", "query_dispatched", {"query": "SELECT 1"})
    logger.log_event("db1", "query_result", {"num_rows": 1, "rows_affected": 0})

    files = sorted(tmp_path.glob("*.jsonl"))
    assert len(files) == 1
    target = files[0]
    assert target.name.endswith("-db1.queries.jsonl")
    events = _load_events(target)
    assert [event["event"] for event in events] == ["query_dispatched", "query_result"]
    assert events[0]["query"] == "SELECT 1"
    assert events[0]["server"] == "db1"
    assert "timestamp" in events[0]


def test_jsonl_query_logger_filters_by_verbosity(tmp_path: Path) -> None:
    logger = JSONLQueryLogger(base_dir=tmp_path, verbosity=Verbosity.QUIET)

    logger.log_event("db2", "query_dispatched", {"query": "SELECT 1"})
    logger.log_event("db2", "query_result", {"num_rows": 1})
    logger.log_event("db2", "query_failed", {"error_type": "SQLParseError", "message": "bad"})

    files = sorted(tmp_path.glob("*-db2.quiet.jsonl"))
    assert len(files) == 1
    events = _load_events(files[0])
    assert [event["event"] for event in events] == ["query_failed"]


def test_logging_sink_uses_levels(caplog: pytest.LogCaptureFixture) -> None:
    sink = LoggingQuerySink(verbosity=Verbosity.QUERIES)

    with caplog.at_level(logging.DEBUG, logger="src.core.observability"):
        sink.log_event("db1", "query_dispatched", {"query": "SELECT 1"})
        sink.log_event("db1", "query_failed", {"error_type": "SQLParseError", "message": "bad", "query": "X"})

    levels = [record.levelno for record in caplog.records]
    assert levels == [logging.DEBUG, logging.ERROR]
    assert "SQLParseError: bad in SQL query: X" in caplog.records[1].getMessage()


def test_fan_out_forwards_to_every_sink(tmp_path: Path) -> None:
    first = JSONLQueryLogger(base_dir=tmp_path / "a")
    second = JSONLQueryLogger(base_dir=tmp_path / "b")
    logger = FanOutQueryLogger(sinks=(first, second))

    logger.log_event("db3", "query_result", {"num_rows": 2, "rows_affected": 0})

    assert len(list((tmp_path / "a").glob("*.jsonl"))) == 1
    assert len(list((tmp_path / "b").glob("*.jsonl"))) == 1


def test_verbosity_parse() -> None:
    assert Verbosity.parse("queries") is Verbosity.QUERIES
    assert Verbosity.parse(None) is Verbosity.RESULTS
    assert Verbosity.parse(0) is Verbosity.QUIET
    with pytest.raises(ValueError):
        Verbosity.parse("loud")


def test_describe_failure_includes_location() -> None:
    message = describe_query_event(
        "query_failed",
        {"error_type": "SQLRuntimeError", "message": "nope", "location": "x.py 3", "query": "SELECT"},
    )

    assert message == "x.py 3: SQLRuntimeError: nope in SQL query: SELECT"


def test_jsonl_loggers_with_different_verbosity_use_separate_files(tmp_path: Path) -> None:
    quiet = JSONLQueryLogger(base_dir=tmp_path, verbosity=Verbosity.QUIET)
    chatty = JSONLQueryLogger(base_dir=tmp_path, verbosity=Verbosity.QUERIES)

    for sink in (quiet, chatty):
        sink.log_event("db/4", "query_failed", {"error_type": "SQLParseError", "message": "bad"})

    names = sorted(path.name.split("-", 1)[1] for path in tmp_path.glob("*.jsonl"))
    assert names == ["db_4.queries.jsonl", "db_4.quiet.jsonl"]
