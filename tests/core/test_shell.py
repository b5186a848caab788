"""Tests for the interactive SQL shell."""

from __future__ import annotations

from typing import Callable, Iterator

from src.core.dependencies import EmulatorDependencies
from src.core.errors import SQLRuntimeError
from src.core.shell import SQLShell
from src.integrations.in_memory_processor import InMemoryCommandProcessor
from src.integrations.query_formatter import TypesafeQueryFormatter
from src.integrations.server_registry import ServerConfig, ServerRegistry


def _make_dependencies(processor: InMemoryCommandProcessor) -> EmulatorDependencies:
    return EmulatorDependencies(
        registry=ServerRegistry(),
        processor=processor,
        formatter=TypesafeQueryFormatter(),
        query_logger=None,
    )


def _input_factory(responses: list[str]) -> tuple[Callable[[str], str], list[str]]:
    iterator: Iterator[str] = iter(responses)
    prompts: list[str] = []

    def _input(prompt: str) -> str:
        prompts.append(prompt)
        try:
            return next(iterator)
        except StopIteration:
            raise EOFError

    return _input, prompts


def test_shell_renders_rows() -> None:
    processor = InMemoryCommandProcessor()
    processor.prime("SELECT id, name FROM users", [{"id": 1, "name": "Ada"}, {"id": 2, "name": None}])
    input_stub, _ = _input_factory(["SELECT id, name FROM users", "/exit"])
    outputs: list[str] = []

    shell = SQLShell(
        dependencies=_make_dependencies(processor),
        input_func=input_stub,
        output_func=outputs.append,
    )
    shell.start(database="main")

    assert "id | name" in outputs
    assert "1 | Ada" in outputs
    assert "2 | NULL" in outputs
    assert "2 row(s) in set, 0 row(s) affected" in outputs
    assert outputs[-1] == "Session ended."


def test_shell_reports_errors_and_continues() -> None:
    processor = InMemoryCommandProcessor()
    processor.prime_error("SELECT * FROM missing", SQLRuntimeError("Table 'missing' doesn't exist"))
    input_stub, _ = _input_factory(["SELECT * FROM missing", "SELECT 1"])
    outputs: list[str] = []

    shell = SQLShell(
        dependencies=_make_dependencies(processor),
        input_func=input_stub,
        output_func=outputs.append,
    )
    shell.start(database="main")

    assert "Error (SQLRuntimeError): Table 'missing' doesn't exist" in outputs
    assert "0 row(s) in set, 0 row(s) affected" in outputs
    assert outputs[-1] == "\nSession ended."


def test_shell_supports_database_switch_and_inheritance() -> None:
    processor = InMemoryCommandProcessor()
    dependencies = _make_dependencies(processor)
    dependencies.registry.configure("localhost", ServerConfig(inherit_schema_from="shard_2"))
    input_stub, prompts = _input_factory(["/use analytics", "SELECT 1", "/exit"])
    outputs: list[str] = []

    shell = SQLShell(
        dependencies=dependencies,
        input_func=input_stub,
        output_func=outputs.append,
        echo_events=True,
    )
    shell.start(database="main")

    assert "Active database set to analytics." in outputs
    assert prompts[0] == "[localhost/main]> "
    assert prompts[1] == "[localhost/analytics]> "
    assert prompts[2] == "[localhost/shard_2]> "
    assert processor.calls[0].database == "shard_2"
    assert any(line.startswith("  ↳ returned 0 row(s)") for line in outputs)


def test_shell_prompts_for_database() -> None:
    processor = InMemoryCommandProcessor()
    input_stub, prompts = _input_factory(["", "main", "/exit"])
    outputs: list[str] = []

    shell = SQLShell(
        dependencies=_make_dependencies(processor),
        input_func=input_stub,
        output_func=outputs.append,
    )
    shell.start()

    assert "Value cannot be empty." in outputs
    assert prompts[2] == "[localhost/main]> "
