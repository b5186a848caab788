"""Client-facing query result value."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Rows returned by a statement plus the number of rows it affected."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    rows_affected: int = 0

    @classmethod
    def from_rows(cls, rows: Iterable[dict[str, Any]], rows_affected: int) -> QueryResult:
        return cls(rows=[dict(row) for row in rows], rows_affected=int(rows_affected))

    def num_rows(self) -> int:
        return len(self.rows)

    def num_rows_affected(self) -> int:
        return self.rows_affected

    def map_rows(self) -> list[dict[str, Any]]:
        """Return copies of the rows keyed by column name."""

        return [dict(row) for row in self.rows]

    def column_names(self) -> list[str]:
        if not self.rows:
            return []
        return list(self.rows[0].keys())

    def vector_rows(self) -> list[list[Any]]:
        """Return row values ordered by the first row's columns."""

        columns = self.column_names()
        return [[row.get(column) for column in columns] for row in self.rows]
