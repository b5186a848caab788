"""Tests for the simulated server registry."""

from __future__ import annotations

from src.integrations.server_registry import ServerConfig, ServerRegistry


def test_get_or_create_returns_shared_instance() -> None:
    registry = ServerRegistry()

    first = registry.get_or_create("db1")
    second = registry.get_or_create("db1")

    assert first is second
    assert first.name == "db1"
    assert first.config == ServerConfig()


def test_configure_updates_existing_server() -> None:
    registry = ServerRegistry()
    server = registry.get_or_create("db1")

    registry.configure("db1", ServerConfig(strict_sql_mode=True))

    assert server.config.strict_sql_mode is True
    assert registry.hosts() == ["db1"]


def test_reset_forgets_servers() -> None:
    registry = ServerRegistry()
    original = registry.get_or_create("db1")

    registry.reset()

    assert registry.hosts() == []
    assert registry.get_or_create("db1") is not original


def test_config_from_mapping_defaults() -> None:
    config = ServerConfig.from_mapping({"strict_schema_mode": 1, "inherit_schema_from": None})

    assert config == ServerConfig(strict_schema_mode=True, inherit_schema_from="")
    assert ServerConfig.from_mapping(None) == ServerConfig()
