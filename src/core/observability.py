"""Observability sinks for query dispatches, results and failures."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Any, Protocol

from src.core.logging_utils import resolve_log_path, truncate_for_log, utc_now_iso

LOGGER = logging.getLogger(__name__)


class Verbosity(IntEnum):
    QUIET = 0
    RESULTS = 1
    QUERIES = 2

    @classmethod
    def parse(cls, raw: str | int | None) -> Verbosity:
        if raw is None or raw == "":
            return cls.RESULTS
        if isinstance(raw, int):
            return cls(raw)
        try:
            return cls[str(raw).strip().upper()]
        except KeyError as exc:
            raise ValueError(f"Unknown verbosity '{raw}'") from exc


# Minimum verbosity at which each event is recorded.
EVENT_VERBOSITY: dict[str, Verbosity] = {
    "query_dispatched": Verbosity.QUERIES,
    "query_result": Verbosity.RESULTS,
    "query_failed": Verbosity.QUIET,
}


class QueryObservationSink(Protocol):
    """Records lifecycle events emitted by emulated connections."""

    def log_event(self, server: str, event: str, payload: dict[str, Any]) -> None:  # pragma: no cover - interface
        ...


def should_record(event: str, verbosity: Verbosity) -> bool:
    return verbosity >= EVENT_VERBOSITY.get(event, Verbosity.RESULTS)


def _build_event(server: str, event: str, payload: dict[str, Any]) -> dict[str, Any]:
    enriched = {key: value for key, value in payload.items() if value is not None}
    enriched.setdefault("event", event)
    enriched.setdefault("server", server)
    enriched.setdefault("timestamp", utc_now_iso())
    return enriched


@dataclass(slots=True)
class JSONLQueryLogger(QueryObservationSink):
    """Persists connection events under a dedicated logs directory."""

    base_dir: Path
    verbosity: Verbosity = Verbosity.RESULTS

    def log_event(self, server: str, event: str, payload: dict[str, Any]) -> None:  # type: ignore[override]
        if not should_record(event, self.verbosity):
            return
        target = resolve_log_path(self.base_dir, server, self.verbosity.name)
        with target.open("a", encoding="utf-8") as handle:
            json.dump(_build_event(server, event, payload), handle, ensure_ascii=False, default=str)
            handle.write("\n")


@dataclass(slots=True)
class LoggingQuerySink(QueryObservationSink):
    """Forwards connection events to the standard `logging` module."""

    verbosity: Verbosity = Verbosity.RESULTS
    logger: logging.Logger = LOGGER

    def log_event(self, server: str, event: str, payload: dict[str, Any]) -> None:  # type: ignore[override]
        if not should_record(event, self.verbosity):
            return
        message = describe_query_event(event, payload)
        if event == "query_failed":
            self.logger.error("SQLFake [%s] %s", server, message)
        elif event == "query_dispatched":
            self.logger.debug("SQLFake [%s] %s", server, message)
        else:
            self.logger.info("SQLFake [%s] %s", server, message)


@dataclass(slots=True)
class FanOutQueryLogger(QueryObservationSink):
    """Sends every event to each of the wrapped sinks."""

    sinks: tuple[QueryObservationSink, ...]

    def log_event(self, server: str, event: str, payload: dict[str, Any]) -> None:  # type: ignore[override]
        for sink in self.sinks:
            sink.log_event(server, event, payload)


def describe_query_event(event: str, payload: dict[str, Any]) -> str:
    if event == "query_dispatched":
        return f"verbose: {truncate_for_log(str(payload.get('query', '')))}"
    if event == "query_result":
        rows = payload.get("num_rows", 0)
        affected = payload.get("rows_affected", 0)
        return f"returned {rows} row(s), {affected} affected"
    if event == "query_failed":
        location = payload.get("location")
        prefix = f"{location}: " if location else ""
        return (
            f"{prefix}{payload.get('error_type')}: {payload.get('message')}"
            f" in SQL query: {truncate_for_log(str(payload.get('query', '')))}"
        )
    return f"Query event: {event}"
