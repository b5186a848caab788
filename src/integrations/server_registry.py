"""Registry of simulated database servers, one per host."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """Execution defaults applied to every query sent to a server."""

    strict_sql_mode: bool = False
    strict_schema_mode: bool = False
    inherit_schema_from: str = ""

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> ServerConfig:
        raw = raw or {}
        return cls(
            strict_sql_mode=bool(raw.get("strict_sql_mode", False)),
            strict_schema_mode=bool(raw.get("strict_schema_mode", False)),
            inherit_schema_from=str(raw.get("inherit_schema_from") or ""),
        )


@dataclass(slots=True)
class Server:
    name: str
    config: ServerConfig = field(default_factory=ServerConfig)


@dataclass(slots=True)
class ServerRegistry:
    """Hands out the shared `Server` for a host, creating it on first use."""

    _servers: dict[str, Server] = field(init=False, default_factory=dict)
    _lock: threading.Lock = field(init=False, repr=False, default_factory=threading.Lock)

    def get_or_create(self, host: str) -> Server:
        with self._lock:
            server = self._servers.get(host)
            if server is None:
                server = Server(name=host)
                self._servers[host] = server
            return server

    def configure(self, host: str, config: ServerConfig) -> Server:
        """Replace the configuration of the server for *host*."""

        server = self.get_or_create(host)
        server.config = config
        return server

    def hosts(self) -> list[str]:
        with self._lock:
            return sorted(self._servers)

    def reset(self) -> None:
        with self._lock:
            self._servers.clear()


DEFAULT_REGISTRY = ServerRegistry()
