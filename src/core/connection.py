"""Emulated asynchronous database connection.

`FakeAsyncConnection` exposes the call surface of an async MySQL-style client
while routing every statement to an injected `CommandProcessor` instead of a
socket. It is responsible for:
- Deriving the per-call `SessionContext` from the caller's ambient defaults and
  the configuration of the server behind the connection's host.
- Applying the server's schema inheritance to the connection itself.
- Shaping processor output into `QueryResult` values and reporting each
  dispatch, result and failure to the configured observation sink.

Callers should depend on the `DatabaseConnection` protocol so a real client and
this emulator can be swapped at construction time.
"""

from __future__ import annotations

import asyncio
import inspect
import time
import traceback
from collections.abc import Awaitable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from src.core.errors import ConnectionClosedError, ProcessorError, UsageError
from src.core.observability import QueryObservationSink
from src.core.result import QueryResult
from src.core.session_context import SessionContext, current_defaults
from src.integrations.query_formatter import QueryFormatter, SQLQuery, TypesafeQueryFormatter
from src.integrations.server_registry import DEFAULT_REGISTRY, Server, ServerRegistry

SERVER_INFO = "5.6.24-fb-log-sqlfake"
# Seconds subtracted from "now" to report recent activity.
LAST_ACTIVITY_OFFSET_S = 0.05

ProcessorOutcome = tuple[list[dict[str, Any]], int]


class CommandProcessor(Protocol):
    """Executes literal SQL text against the backend of a connection."""

    def execute(
        self, statement: str, connection: DatabaseConnection, context: SessionContext
    ) -> ProcessorOutcome | Awaitable[ProcessorOutcome]:  # pragma: no cover - interface
        """Return `(rows, rows_affected)` or an awaitable resolving to it."""


@runtime_checkable
class DatabaseConnection(Protocol):
    """Client surface shared by real and emulated async connections."""

    async def query(
        self,
        statement: str,
        timeout_micros: int = -1,
        query_attributes: Mapping[str, str] | None = None,
    ) -> QueryResult:  # pragma: no cover - interface
        ...

    async def query_structured(self, query: SQLQuery) -> QueryResult:  # pragma: no cover - interface
        ...

    async def query_template(self, template: str, *args: Any) -> QueryResult:  # pragma: no cover - interface
        ...

    async def multi_query(
        self,
        statements: Iterable[str],
        timeout_micros: int = -1,
        query_attributes: Mapping[str, str] | None = None,
    ) -> list[QueryResult]:  # pragma: no cover - interface
        ...

    def escape_string(self, data: str) -> str:  # pragma: no cover - interface
        ...

    def close(self) -> None:  # pragma: no cover - interface
        ...

    def release_connection(self) -> None:  # pragma: no cover - interface
        ...

    def is_valid(self) -> bool:  # pragma: no cover - interface
        ...

    def set_reusable(self, reusable: bool) -> None:  # pragma: no cover - interface
        ...

    def is_reusable(self) -> bool:  # pragma: no cover - interface
        ...

    def host(self) -> str:  # pragma: no cover - interface
        ...

    def port(self) -> int:  # pragma: no cover - interface
        ...

    def server_info(self) -> str:  # pragma: no cover - interface
        ...

    def warning_count(self) -> int:  # pragma: no cover - interface
        ...

    def last_activity_time(self) -> float:  # pragma: no cover - interface
        ...

    def connect_result(self) -> ConnectResult:  # pragma: no cover - interface
        ...

    def get_database(self) -> str:  # pragma: no cover - interface
        ...

    def set_database(self, dbname: str) -> None:  # pragma: no cover - interface
        ...


@dataclass(frozen=True, slots=True)
class ConnectResult:
    """Timing information about how the connection was established."""

    elapsed_micros: int = 0
    start_time: float = 0.0
    end_time: float = 0.0
    client_side_cached: bool = False


class FakeAsyncConnection(DatabaseConnection):
    """In-process stand-in for an async database connection."""

    def __init__(
        self,
        host: str,
        port: int,
        dbname: str,
        *,
        processor: CommandProcessor,
        registry: ServerRegistry | None = None,
        formatter: QueryFormatter | None = None,
        query_logger: QueryObservationSink | None = None,
        connect_result: ConnectResult | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._dbname = dbname
        self._open = True
        self._reusable = True
        self._processor = processor
        self._server = (registry or DEFAULT_REGISTRY).get_or_create(host)
        self._formatter = formatter or TypesafeQueryFormatter()
        self._query_logger = query_logger
        if connect_result is None:
            now = time.time()
            connect_result = ConnectResult(start_time=now, end_time=now)
        self._connect_result = connect_result

    def __repr__(self) -> str:
        state = "open" if self._open else "closed"
        return f"<FakeAsyncConnection {self._host}:{self._port}/{self._dbname} {state}>"

    async def query(
        self,
        statement: str,
        timeout_micros: int = -1,
        query_attributes: Mapping[str, str] | None = None,
    ) -> QueryResult:
        """Execute *statement* and return its result.

        `timeout_micros` and `query_attributes` are accepted for signature
        compatibility and ignored. Processor errors are logged and re-raised
        unchanged.
        """

        if not self._open:
            raise ConnectionClosedError(f"Connection to {self._host}:{self._port} is closed")

        config = self._server.config
        context = current_defaults().for_query(
            statement,
            strict_sql_mode=config.strict_sql_mode,
            strict_schema_mode=config.strict_schema_mode,
        )
        if config.inherit_schema_from:
            self._dbname = config.inherit_schema_from

        self._log("query_dispatched", {"query": statement, "database": self._dbname})

        try:
            outcome = self._processor.execute(statement, self, context)
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except Exception as exc:
            self._log(
                "query_failed",
                {
                    "error_type": _classify(exc),
                    "message": str(exc),
                    "location": _error_location(exc),
                    "query": statement,
                },
            )
            raise

        rows, rows_affected = outcome
        result = QueryResult.from_rows(rows, rows_affected)
        self._log(
            "query_result",
            {"num_rows": result.num_rows(), "rows_affected": result.num_rows_affected()},
        )
        return result

    async def query_structured(self, query: SQLQuery) -> QueryResult:
        return await self.query(self._formatter.format_query(query))

    async def query_template(self, template: str, *args: Any) -> QueryResult:
        if not isinstance(template, str):
            raise UsageError(
                f"Query template must be a str, got {type(template).__name__}"
            )
        return await self.query(self._formatter.format_string(template, args))

    async def multi_query(
        self,
        statements: Iterable[str],
        timeout_micros: int = -1,
        query_attributes: Mapping[str, str] | None = None,
    ) -> list[QueryResult]:
        """Run *statements* concurrently, returning results in input order.

        Dispatch is serialized in submission order so a stateful processor
        sees the same sequence as consecutive `query` calls. The first failure
        propagates and statements queued behind it are never dispatched; every
        pending task has settled by the time the error reaches the caller.
        """

        lock = asyncio.Lock()
        failed = False

        async def _run(statement: str) -> QueryResult:
            nonlocal failed
            async with lock:
                if failed:
                    raise asyncio.CancelledError()
                try:
                    return await self.query(statement, timeout_micros, query_attributes)
                except BaseException:
                    failed = True
                    raise

        tasks = [asyncio.ensure_future(_run(statement)) for statement in statements]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    def escape_string(self, data: str) -> str:
        # Statements never leave the process, so there is nothing to escape.
        return data

    def close(self) -> None:
        self._open = False

    def release_connection(self) -> None:
        pass

    def is_valid(self) -> bool:
        return self._open

    def set_reusable(self, reusable: bool) -> None:
        self._reusable = reusable

    def is_reusable(self) -> bool:
        return self._reusable

    def host(self) -> str:
        return self._host

    def port(self) -> int:
        return self._port

    def server_info(self) -> str:
        return SERVER_INFO

    def warning_count(self) -> int:
        return 0

    def last_activity_time(self) -> float:
        return time.time() - LAST_ACTIVITY_OFFSET_S

    def connect_result(self) -> ConnectResult:
        return self._connect_result

    def get_server(self) -> Server:
        return self._server

    def get_database(self) -> str:
        return self._dbname

    def set_database(self, dbname: str) -> None:
        self._dbname = dbname

    def _log(self, event: str, payload: dict[str, Any]) -> None:
        if self._query_logger is None:
            return
        self._query_logger.log_event(self._server.name, event, payload)


def _error_location(exc: BaseException) -> str | None:
    location = getattr(exc, "location", None)
    if location:
        return str(location)
    frames = traceback.extract_tb(exc.__traceback__)
    if not frames:
        return None
    frame = frames[-1]
    return f"{frame.filename} {frame.lineno}"


def _classify(exc: BaseException) -> str:
    if isinstance(exc, ProcessorError):
        return exc.classification
    return type(exc).__name__
