"""Interactive SQL shell for running statements against an emulated server."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable

from src.core.config import load_settings
from src.core.connection import FakeAsyncConnection
from src.core.dependencies import EmulatorDependencies, build_dependencies
from src.core.errors import SQLFakeError
from src.core.observability import QueryObservationSink, describe_query_event
from src.core.result import QueryResult

_exit_commands = {"/exit", "exit", "quit", ":q"}


@dataclass
class SQLShell:
    """Simple terminal REPL built on top of a `FakeAsyncConnection`."""

    dependencies: EmulatorDependencies
    host: str = "localhost"
    port: int = 3306
    input_func: Callable[[str], str] = field(default=input)
    output_func: Callable[[str], None] = field(default=print)
    echo_events: bool = False

    def start(self, database: str | None = None) -> None:
        """Launch an interactive shell session."""

        dbname = database or self._ask_non_empty("Enter database name: ")
        connection = self._connect(dbname)

        self.output_func(
            "Type SQL statements to run them. Use '/use <database>' to switch schema,"
            " and '/exit' to leave."
        )

        while True:
            try:
                raw = self.input_func(f"[{connection.host()}/{connection.get_database()}]> ")
            except EOFError:
                self.output_func("\nSession ended.")
                break

            statement = raw.strip()
            if not statement:
                continue
            if statement.lower() in _exit_commands:
                self.output_func("Session ended.")
                break
            if statement.startswith("/use"):
                self._handle_use_command(statement, connection)
                continue

            try:
                result = asyncio.run(connection.query(statement))
            except SQLFakeError as exc:
                self.output_func(f"Error ({type(exc).__name__}): {exc}")
                continue
            self._render_result(result)

        connection.close()

    def _connect(self, dbname: str) -> FakeAsyncConnection:
        client = self.dependencies.client()
        if self.echo_events:
            client.query_logger = ShellQueryLogger(
                downstream=client.query_logger, emit=self.output_func
            )
        return client.connect_sync(self.host, self.port, dbname)

    def _handle_use_command(self, command: str, connection: FakeAsyncConnection) -> None:
        parts = command.split(maxsplit=1)
        if len(parts) == 2 and parts[1].strip():
            connection.set_database(parts[1].strip())
            self.output_func(f"Active database set to {connection.get_database()}.")
            return
        self.output_func("Usage: /use <database>")

    def _render_result(self, result: QueryResult) -> None:
        columns = result.column_names()
        if columns:
            self.output_func(" | ".join(columns))
            for values in result.vector_rows():
                self.output_func(" | ".join("NULL" if value is None else str(value) for value in values))
        self.output_func(
            f"{result.num_rows()} row(s) in set, {result.num_rows_affected()} row(s) affected"
        )
        self.output_func("")

    def _ask_non_empty(self, prompt: str) -> str:
        while True:
            value = self.input_func(prompt).strip()
            if value:
                return value
            self.output_func("Value cannot be empty.")


@dataclass(slots=True)
class ShellQueryLogger(QueryObservationSink):
    downstream: QueryObservationSink | None
    emit: Callable[[str], None]

    def log_event(self, server: str, event: str, payload: dict[str, Any]) -> None:  # type: ignore[override]
        if self.downstream is not None:
            self.downstream.log_event(server, event, payload)
        self.emit(f"  ↳ {describe_query_event(event, payload)}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Interactive shell for the SQL emulator")
    parser.add_argument("--config", default="configs/dev.yaml", help="Path to the YAML config file")
    parser.add_argument("--host", default="localhost", help="Server host to connect to")
    parser.add_argument("--port", type=int, default=3306, help="Server port to report")
    parser.add_argument("--database", help="Initial database name")
    parser.add_argument(
        "--echo-events",
        action="store_true",
        help="Print connection events below each statement",
    )
    args = parser.parse_args()

    settings = load_settings(args.config)
    dependencies = build_dependencies(settings)

    shell = SQLShell(
        dependencies=dependencies,
        host=args.host,
        port=args.port,
        echo_events=args.echo_events,
    )
    shell.start(database=args.database)


if __name__ == "__main__":
    main()
