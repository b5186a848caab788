"""Tests for the typed query formatter."""

from __future__ import annotations

import pytest

from src.core.errors import UsageError
from src.integrations.query_formatter import SQLQuery, TypesafeQueryFormatter


@pytest.fixture()
def formatter() -> TypesafeQueryFormatter:
    return TypesafeQueryFormatter()


def test_scalars_and_identifiers(formatter: TypesafeQueryFormatter) -> None:
    text = formatter.format_string(
        "SELECT %C FROM %T WHERE name = %s AND age = %d AND score > %f",
        ["name", "users", "O'Brien", 42, 1.5],
    )

    assert text == (
        "SELECT `name` FROM `users` WHERE name = 'O\\'Brien' AND age = 42 AND score > 1.5"
    )


def test_equality_directive_handles_null(formatter: TypesafeQueryFormatter) -> None:
    assert formatter.format_string("WHERE a %=s", [None]) == "WHERE a IS NULL"
    assert formatter.format_string("WHERE a %=d", [3]) == "WHERE a = 3"


def test_list_directives(formatter: TypesafeQueryFormatter) -> None:
    text = formatter.format_string(
        "SELECT %LC FROM t WHERE id IN (%Ld) AND tag IN (%Ls)",
        [["id", "tag"], [1, 2], ["a", "b"]],
    )

    assert text == "SELECT `id`, `tag` FROM t WHERE id IN (1, 2) AND tag IN ('a', 'b')"


def test_comment_nested_query_and_percent(formatter: TypesafeQueryFormatter) -> None:
    inner = SQLQuery.of("SELECT id FROM %T", "users")

    text = formatter.format_query(
        SQLQuery.of("%K SELECT * FROM (%Q) AS sub WHERE pct LIKE '10%%'", "trace */ id", inner)
    )

    assert text == "/*trace  id*/ SELECT * FROM (SELECT id FROM `users`) AS sub WHERE pct LIKE '10%'"


@pytest.mark.parametrize(
    ("template", "args"),
    [
        ("SELECT %d", ["1"]),
        ("SELECT %d", [True]),
        ("SELECT %s", [1]),
        ("SELECT %s", []),
        ("SELECT 1", ["extra"]),
        ("SELECT %Ls", ["abc"]),
        ("SELECT %X", [1]),
        ("SELECT %", []),
    ],
)
def test_mismatched_arguments_raise(
    formatter: TypesafeQueryFormatter, template: str, args: list[object]
) -> None:
    with pytest.raises(UsageError):
        formatter.format_string(template, args)


def test_format_query_requires_sql_query(formatter: TypesafeQueryFormatter) -> None:
    with pytest.raises(UsageError):
        formatter.format_query("SELECT 1")  # type: ignore[arg-type]
