"""CSV-backed command processor supporting simple equality statements.

Each configured table is a CSV file loaded into memory. Supported statements:

    SELECT <columns> FROM <table> [WHERE <column> = '<value>'] [LIMIT <n>];
    UPDATE <table> SET <column> = '<value>'[, ...] WHERE <column> = '<value>';

- `<columns>` can be `*` or a comma-separated list of column names.
- Identifiers may be backquoted; `<table>` may be qualified as `schema.table`.
- Table and column names are matched case-insensitively against the CSV header.

Strict schema mode turns unknown columns and foreign schema qualifiers into
`SQLRuntimeError`; otherwise unknown columns read as `NULL`, never match a
`WHERE` clause and are skipped by `SET`. Other statements raise `SQLParseError`.

Literals follow the query formatter's quoting, so backslash-escaped quotes and
backslashes are understood. `SET` assignments are split on commas, so a value
containing a comma cannot be assigned.
"""

from __future__ import annotations

import csv
import re
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from src.core.connection import CommandProcessor, DatabaseConnection
from src.core.errors import SQLParseError, SQLRuntimeError
from src.core.session_context import SessionContext

_IDENT = r"`?\w+`?"
# Single-quoted literal; backslash escapes match what the query formatter emits.
_LITERAL = r"(?:[^'\\]|\\.)*"

_SELECT_RE = re.compile(
    rf"^\s*select\s+(?P<columns>\*|[\w\s,`]+?)\s+from\s+(?P<table>{_IDENT}(?:\.{_IDENT})?)"
    rf"(?:\s+where\s+(?P<where_col>{_IDENT})\s*=\s*'(?P<where_val>{_LITERAL})')?"
    r"(?:\s+limit\s+(?P<limit>\d+))?\s*;?\s*$",
    flags=re.IGNORECASE,
)

_UPDATE_RE = re.compile(
    rf"^\s*update\s+(?P<table>{_IDENT}(?:\.{_IDENT})?)\s+set\s+(?P<assignments>.+?)\s+"
    rf"where\s+(?P<where_col>{_IDENT})\s*=\s*'(?P<where_val>{_LITERAL})'\s*;?\s*$",
    flags=re.IGNORECASE,
)

_ASSIGNMENT_RE = re.compile(rf"^\s*(?P<column>{_IDENT})\s*=\s*'(?P<value>{_LITERAL})'\s*$")


def _unquote(name: str) -> str:
    return name.strip().strip("`")


def _unescape(value: str | None) -> str | None:
    if value is None:
        return None
    return re.sub(r"\\(.)", r"\1", value, flags=re.DOTALL)


@dataclass(slots=True)
class CsvTable:
    """One CSV file exposed as a table."""

    csv_path: str | Path
    table_name: str
    _rows: list[dict[str, Any]] = field(init=False, default_factory=list)
    _field_map: dict[str, str] = field(init=False, default_factory=dict)
    _fieldnames: list[str] = field(init=False, default_factory=list)
    _path: Path = field(init=False)

    def __post_init__(self) -> None:
        self._path = Path(self.csv_path).expanduser()
        self.refresh()

    @property
    def columns(self) -> list[str]:
        """Return the original CSV column names."""

        return list(self._fieldnames)

    @property
    def rows(self) -> list[dict[str, Any]]:
        return self._rows

    def resolve_column(self, name: str) -> str | None:
        """Return the canonical column name for *name*, if it exists."""

        return self._field_map.get(_unquote(name).lower())

    def refresh(self) -> None:
        """Reload the CSV contents from disk."""

        path = self._path
        if not path.exists():
            raise FileNotFoundError(f"CSV file not found: {path}")

        with path.open("r", encoding="utf-8", newline="") as handle:
            reader = csv.DictReader(handle)
            if reader.fieldnames is None:
                raise ValueError("CSV file must include a header row")
            fieldnames = list(reader.fieldnames)
            self._fieldnames = fieldnames
            self._field_map = {name.lower(): name for name in fieldnames}
            self._rows = [dict(row) for row in reader]

    def write_rows(self) -> None:
        with self._path.open("w", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=self._fieldnames)
            writer.writeheader()
            for row in self._rows:
                writer.writerow(
                    {
                        name: "" if row.get(name) is None else str(row.get(name))
                        for name in self._fieldnames
                    }
                )


@dataclass(slots=True)
class CsvCommandProcessor(CommandProcessor):
    """Execute simple statements against in-memory CSV tables."""

    tables: dict[str, CsvTable] = field(default_factory=dict)
    _lock: threading.Lock = field(init=False, repr=False, default_factory=threading.Lock)

    @classmethod
    def from_tables(cls, tables: Iterable[CsvTable]) -> CsvCommandProcessor:
        return cls(tables={table.table_name.lower(): table for table in tables})

    def add_table(self, table: CsvTable) -> None:
        self.tables[table.table_name.lower()] = table

    def execute(  # type: ignore[override]
        self, statement: str, connection: DatabaseConnection, context: SessionContext
    ) -> tuple[list[dict[str, Any]], int]:
        match = _SELECT_RE.match(statement)
        if match:
            return self._select(match, connection, context), 0

        match = _UPDATE_RE.match(statement)
        if match:
            with self._lock:
                return [], self._update(match, connection, context)

        raise SQLParseError("Only simple SELECT and UPDATE equality statements are supported")

    def _select(
        self, match: re.Match[str], connection: DatabaseConnection, context: SessionContext
    ) -> list[dict[str, Any]]:
        table = self._resolve_table(match.group("table"), connection, context)
        rows = self._filter(
            table, match.group("where_col"), _unescape(match.group("where_val")), context
        )

        limit = match.group("limit")
        if limit is not None:
            rows = rows[: int(limit)]

        column_spec = match.group("columns").strip()
        if column_spec == "*":
            return [dict(row) for row in rows]

        selected: list[tuple[str, str | None]] = []
        for part in column_spec.split(","):
            requested = _unquote(part)
            if not requested:
                continue
            selected.append((requested, self._resolve_column(table, requested, context)))
        if not selected:
            raise SQLParseError("No valid columns specified in SELECT clause")

        return [
            {
                (resolved or requested): (row.get(resolved) if resolved else None)
                for requested, resolved in selected
            }
            for row in rows
        ]

    def _update(
        self, match: re.Match[str], connection: DatabaseConnection, context: SessionContext
    ) -> int:
        table = self._resolve_table(match.group("table"), connection, context)

        updates: dict[str, str] = {}
        for part in match.group("assignments").split(","):
            assignment = _ASSIGNMENT_RE.match(part)
            if assignment is None:
                raise SQLParseError(f"Unsupported SET clause: {part.strip()}")
            column = self._resolve_column(table, assignment.group("column"), context)
            if column is not None:
                updates[column] = _unescape(assignment.group("value")) or ""

        targets = self._filter(
            table, match.group("where_col"), _unescape(match.group("where_val")), context
        )
        if not updates or not targets:
            return 0

        for row in targets:
            row.update(updates)
        table.write_rows()
        return len(targets)

    def _filter(
        self,
        table: CsvTable,
        where_col: str | None,
        where_val: str | None,
        context: SessionContext,
    ) -> list[dict[str, Any]]:
        if where_col is None:
            return list(table.rows)
        column = self._resolve_column(table, where_col, context)
        if column is None:
            return []
        return [row for row in table.rows if row.get(column) == where_val]

    def _resolve_table(
        self, raw_name: str, connection: DatabaseConnection, context: SessionContext
    ) -> CsvTable:
        schema, _, name = raw_name.rpartition(".")
        schema = _unquote(schema)
        name = _unquote(name)
        if schema and context.strict_schema_mode and schema != connection.get_database():
            raise SQLRuntimeError(
                f"Schema '{schema}' does not match active schema '{connection.get_database()}'"
            )
        table = self.tables.get(name.lower())
        if table is None:
            raise SQLRuntimeError(f"Table '{name}' doesn't exist")
        return table

    @staticmethod
    def _resolve_column(table: CsvTable, name: str, context: SessionContext) -> str | None:
        resolved = table.resolve_column(name)
        if resolved is None and context.strict_schema_mode:
            raise SQLRuntimeError(
                f"Unknown column '{_unquote(name)}' in table '{table.table_name}'"
            )
        return resolved
