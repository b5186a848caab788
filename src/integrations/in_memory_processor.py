"""Lightweight, in-memory command processor for tests and prototypes.

This processor does not parse SQL. It returns canned responses registered per
statement and records every dispatch (statement, active schema and session
context) so tests can assert on what the connection handed over.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from src.core.connection import CommandProcessor, DatabaseConnection
from src.core.errors import ProcessorError, SQLParseError
from src.core.session_context import SessionContext


@dataclass(frozen=True, slots=True)
class ProcessedCall:
    statement: str
    database: str
    context: SessionContext


@dataclass(slots=True)
class InMemoryCommandProcessor(CommandProcessor):
    """Mapping-based processor that satisfies the `CommandProcessor` protocol."""

    canned_results: dict[str, tuple[list[dict[str, Any]], int]] = field(default_factory=dict)
    canned_errors: dict[str, ProcessorError] = field(default_factory=dict)
    calls: list[ProcessedCall] = field(default_factory=list)

    def execute(  # type: ignore[override]
        self, statement: str, connection: DatabaseConnection, context: SessionContext
    ) -> tuple[list[dict[str, Any]], int]:
        """Return the canned result for *statement*.

        Unknown statements produce an empty result, or `SQLParseError` when the
        context runs in strict SQL mode.
        """

        self.calls.append(
            ProcessedCall(statement=statement, database=connection.get_database(), context=context)
        )

        error = self.canned_errors.get(statement)
        if error is not None:
            raise error

        canned = self.canned_results.get(statement)
        if canned is None:
            if context.strict_sql_mode:
                raise SQLParseError(f"Unsupported statement in strict SQL mode: {statement}")
            return [], 0

        rows, rows_affected = canned
        return [dict(row) for row in rows], rows_affected

    def prime(self, statement: str, rows: list[dict[str, Any]], rows_affected: int = 0) -> None:
        """Register a canned response for a future `execute` call."""

        self.canned_results[statement] = ([dict(row) for row in rows], rows_affected)

    def prime_error(self, statement: str, error: ProcessorError) -> None:
        """Make a future `execute` call for *statement* raise *error*."""

        self.canned_errors[statement] = error
