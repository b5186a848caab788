"""Async client factory handing out emulated connections."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from src.core.connection import CommandProcessor, ConnectResult, FakeAsyncConnection
from src.core.observability import QueryObservationSink
from src.integrations.query_formatter import QueryFormatter, TypesafeQueryFormatter
from src.integrations.server_registry import DEFAULT_REGISTRY, ServerRegistry


@dataclass(slots=True)
class FakeAsyncClient:
    """Creates connections that share one processor, registry and sink."""

    processor: CommandProcessor
    registry: ServerRegistry = field(default_factory=lambda: DEFAULT_REGISTRY)
    formatter: QueryFormatter = field(default_factory=TypesafeQueryFormatter)
    query_logger: QueryObservationSink | None = None

    async def connect(
        self,
        host: str,
        port: int,
        dbname: str,
        user: str = "",
        password: str = "",
        timeout_micros: int = -1,
    ) -> FakeAsyncConnection:
        """Open a connection; credentials and timeout are accepted but unused."""

        return self._open(host, port, dbname)

    def connect_sync(self, host: str, port: int, dbname: str) -> FakeAsyncConnection:
        """Open a connection outside of an event loop, e.g. in fixtures."""

        return self._open(host, port, dbname)

    def _open(self, host: str, port: int, dbname: str) -> FakeAsyncConnection:
        started = time.time()
        connection = FakeAsyncConnection(
            host,
            port,
            dbname,
            processor=self.processor,
            registry=self.registry,
            formatter=self.formatter,
            query_logger=self.query_logger,
            connect_result=ConnectResult(
                elapsed_micros=int((time.time() - started) * 1_000_000),
                start_time=started,
                end_time=time.time(),
            ),
        )
        return connection
