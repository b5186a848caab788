"""Per-call session state read by command processors.

Each query dispatch receives its own immutable `SessionContext`. Callers that
want to run a block of work with stricter defaults (for example a test that
asserts on strict-mode failures) use `session_defaults`, which scopes the
override to the enclosing `with` block and the tasks spawned from it.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace


@dataclass(frozen=True, slots=True)
class SessionContext:
    query: str = ""
    strict_sql_mode: bool = False
    strict_schema_mode: bool = False

    def for_query(
        self,
        query: str,
        *,
        strict_sql_mode: bool = False,
        strict_schema_mode: bool = False,
    ) -> SessionContext:
        """Derive the context for one dispatch; server flags only ever tighten."""

        return replace(
            self,
            query=query,
            strict_sql_mode=self.strict_sql_mode or strict_sql_mode,
            strict_schema_mode=self.strict_schema_mode or strict_schema_mode,
        )


_DEFAULTS: ContextVar[SessionContext] = ContextVar("sqlfake_session_defaults", default=SessionContext())


def current_defaults() -> SessionContext:
    """Return the ambient defaults visible to the running task."""

    return _DEFAULTS.get()


@contextmanager
def session_defaults(
    *,
    strict_sql_mode: bool | None = None,
    strict_schema_mode: bool | None = None,
) -> Iterator[SessionContext]:
    """Override the ambient defaults for the duration of the block."""

    base = _DEFAULTS.get()
    updated = replace(
        base,
        strict_sql_mode=base.strict_sql_mode if strict_sql_mode is None else strict_sql_mode,
        strict_schema_mode=(
            base.strict_schema_mode if strict_schema_mode is None else strict_schema_mode
        ),
    )
    token = _DEFAULTS.set(updated)
    try:
        yield updated
    finally:
        _DEFAULTS.reset(token)
