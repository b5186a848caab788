"""Utilities for loading emulator settings from YAML configuration files."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from src.core.observability import Verbosity
from src.integrations.server_registry import ServerConfig


@dataclass(slots=True)
class CSVSourceSettings:
    path_env: str
    table_name: str

    def resolve_path(self) -> Path:
        value = os.getenv(self.path_env)
        if not value:
            raise OSError(f"Environment variable '{self.path_env}' is required for CSV table '{self.table_name}'")
        path = Path(value).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"CSV data source not found at '{path}'")
        return path


@dataclass(slots=True)
class LoggingSettings:
    verbosity: Verbosity = Verbosity.RESULTS
    query_logs_dir: str | None = None


@dataclass(slots=True)
class Settings:
    servers: dict[str, ServerConfig] = field(default_factory=dict)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    csv_sources: list[CSVSourceSettings] = field(default_factory=list)


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def load_settings(path: str | Path) -> Settings:
    """Read configuration from *path* and return structured settings."""

    config_path = Path(path)
    raw = _load_yaml(config_path)

    servers_raw = raw.get("servers") or {}
    if not isinstance(servers_raw, dict):
        raise ValueError("'servers' must be a mapping of host to server settings")
    servers = {
        str(host): ServerConfig.from_mapping(values if isinstance(values, dict) else {})
        for host, values in servers_raw.items()
    }

    logging_raw = raw.get("logging") or {}
    logs_dir = logging_raw.get("query_logs_dir")
    logging_settings = LoggingSettings(
        verbosity=Verbosity.parse(logging_raw.get("verbosity")),
        query_logs_dir=str(logs_dir) if logs_dir else None,
    )

    data_sources = raw.get("data_sources") or {}
    csv_raw = data_sources.get("csv") or []
    if isinstance(csv_raw, dict):
        csv_raw = [csv_raw]
    csv_sources = [
        CSVSourceSettings(
            path_env=str(entry.get("path_env")),
            table_name=str(entry.get("table_name", "dataset")),
        )
        for entry in csv_raw
    ]

    return Settings(servers=servers, logging=logging_settings, csv_sources=csv_sources)
