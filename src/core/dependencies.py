"""Factory helpers for constructing emulator collaborators from settings."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from src.core.client import FakeAsyncClient
from src.core.config import Settings
from src.core.connection import CommandProcessor
from src.core.observability import (
    FanOutQueryLogger,
    JSONLQueryLogger,
    LoggingQuerySink,
    QueryObservationSink,
)
from src.integrations.csv_processor import CsvCommandProcessor, CsvTable
from src.integrations.in_memory_processor import InMemoryCommandProcessor
from src.integrations.query_formatter import QueryFormatter, TypesafeQueryFormatter
from src.integrations.server_registry import ServerRegistry


@dataclass(slots=True)
class EmulatorDependencies:
    """Collaborators shared by every connection opened from one configuration."""

    registry: ServerRegistry
    processor: CommandProcessor
    formatter: QueryFormatter
    query_logger: QueryObservationSink | None = None

    def client(self) -> FakeAsyncClient:
        return FakeAsyncClient(
            processor=self.processor,
            registry=self.registry,
            formatter=self.formatter,
            query_logger=self.query_logger,
        )


def build_dependencies(
    settings: Settings, registry: ServerRegistry | None = None
) -> EmulatorDependencies:
    """Create dependency instances based on *settings*.

    Server configuration is applied to *registry* (a fresh one by default) so
    every connection to the same host shares one `Server`.
    """

    registry = registry or ServerRegistry()
    for host, config in settings.servers.items():
        registry.configure(host, config)

    processor: CommandProcessor
    if settings.csv_sources:
        processor = CsvCommandProcessor.from_tables(
            CsvTable(csv_path=source.resolve_path(), table_name=source.table_name)
            for source in settings.csv_sources
        )
    else:
        processor = InMemoryCommandProcessor()

    return EmulatorDependencies(
        registry=registry,
        processor=processor,
        formatter=TypesafeQueryFormatter(),
        query_logger=_build_query_logger(settings),
    )


def _build_query_logger(settings: Settings) -> QueryObservationSink:
    verbosity = settings.logging.verbosity
    stdlib_sink = LoggingQuerySink(verbosity=verbosity)
    if not settings.logging.query_logs_dir:
        return stdlib_sink
    path = Path(settings.logging.query_logs_dir).expanduser()
    path.mkdir(parents=True, exist_ok=True)
    return FanOutQueryLogger(sinks=(stdlib_sink, JSONLQueryLogger(base_dir=path, verbosity=verbosity)))
