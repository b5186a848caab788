"""Render structured queries and format strings into literal SQL text.

The formatter understands the typed directives used by query builders:

- `%T` table name and `%C` column name, rendered as backquoted identifiers.
- `%s` string, `%d` integer and `%f` float literals. `None` renders as `NULL`.
- `%=s`, `%=d` and `%=f` render a comparison: `= <value>` or `IS NULL`.
- `%Ls`, `%Ld`, `%Lf` and `%LC` render comma-separated lists.
- `%K` wraps the argument in a SQL comment and `%Q` embeds another `SQLQuery`.
- `%%` emits a literal percent sign.

Any mismatch between directives and arguments raises `UsageError`.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from src.core.errors import UsageError


@dataclass(frozen=True, slots=True)
class SQLQuery:
    """A format string paired with the arguments it consumes."""

    template: str
    args: tuple[Any, ...] = ()

    @classmethod
    def of(cls, template: str, *args: Any) -> SQLQuery:
        return cls(template=template, args=tuple(args))


class QueryFormatter(Protocol):
    """Converts structured queries into literal SQL text."""

    def format_query(self, query: SQLQuery) -> str:  # pragma: no cover - interface
        ...

    def format_string(self, template: str, args: Sequence[Any]) -> str:  # pragma: no cover - interface
        ...


class TypesafeQueryFormatter(QueryFormatter):
    """Formatter implementing the typed `%` directives listed above."""

    def format_query(self, query: SQLQuery) -> str:  # type: ignore[override]
        if not isinstance(query, SQLQuery):
            raise UsageError(f"Expected SQLQuery, got {type(query).__name__}")
        return self.format_string(query.template, query.args)

    def format_string(self, template: str, args: Sequence[Any]) -> str:  # type: ignore[override]
        pieces: list[str] = []
        remaining = list(args)
        index = 0
        length = len(template)

        while index < length:
            char = template[index]
            if char != "%":
                pieces.append(char)
                index += 1
                continue

            index += 1
            if index >= length:
                raise UsageError("Format string ends with a dangling '%'")
            directive = template[index]
            if directive == "%":
                pieces.append("%")
                index += 1
                continue
            if directive in ("=", "L"):
                index += 1
                if index >= length:
                    raise UsageError(f"Incomplete directive '%{directive}'")
                directive += template[index]
            index += 1

            if not remaining:
                raise UsageError(f"Not enough arguments for directive '%{directive}'")
            pieces.append(self._render(directive, remaining.pop(0)))

        if remaining:
            raise UsageError(f"Too many arguments for format string: {len(remaining)} unused")
        return "".join(pieces)

    def _render(self, directive: str, value: Any) -> str:
        if directive == "T" or directive == "C":
            return _identifier(value)
        if directive in ("s", "d", "f"):
            return _scalar(directive, value)
        if directive in ("=s", "=d", "=f"):
            if value is None:
                return "IS NULL"
            return "= " + _scalar(directive[1], value)
        if directive in ("Ls", "Ld", "Lf", "LC"):
            if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
                raise UsageError(f"Directive '%{directive}' expects a list, got {type(value).__name__}")
            if directive == "LC":
                return ", ".join(_identifier(item) for item in value)
            return ", ".join(_scalar(directive[1], item) for item in value)
        if directive == "K":
            text = _require_str(directive, value)
            return "/*" + text.replace("*/", "") + "*/"
        if directive == "Q":
            if not isinstance(value, SQLQuery):
                raise UsageError(f"Directive '%Q' expects SQLQuery, got {type(value).__name__}")
            return self.format_query(value)
        raise UsageError(f"Unknown directive '%{directive}'")


def _require_str(directive: str, value: Any) -> str:
    if not isinstance(value, str):
        raise UsageError(f"Directive '%{directive}' expects str, got {type(value).__name__}")
    return value


def _identifier(value: Any) -> str:
    name = _require_str("T/C", value)
    return "`" + name.replace("`", "``") + "`"


def _scalar(kind: str, value: Any) -> str:
    if value is None:
        return "NULL"
    if kind == "s":
        text = _require_str("s", value)
        return "'" + text.replace("\\", "\\\\").replace("'", "\\'") + "'"
    if kind == "d":
        if isinstance(value, bool) or not isinstance(value, int):
            raise UsageError(f"Directive '%d' expects int, got {type(value).__name__}")
        return str(value)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise UsageError(f"Directive '%f' expects float, got {type(value).__name__}")
    return repr(float(value))
