"""Shared helpers for the JSONL query logs."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from functools import lru_cache
from pathlib import Path


def sanitize_server_name(name: str) -> str:
    """Make a server host safe to embed in a filename."""

    cleaned = re.sub(r"[^A-Za-z0-9_.-]+", "_", name.strip()).strip("._")
    return cleaned or "server"


def resolve_log_path(base_dir: Path, server: str, level: str) -> Path:
    """Return the log file that receives *server* events recorded at *level*.

    One file per (directory, server, level) is opened per process. The name
    starts with the UTC time of the first event so runs sort chronologically.
    """

    return _log_path(str(base_dir.expanduser().resolve()), server, level.lower())


@lru_cache(maxsize=None)
def _log_path(base: str, server: str, level: str) -> Path:
    started = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%f")[:-3]
    target = Path(base) / f"{started}-{sanitize_server_name(server)}.{level}.jsonl"
    target.parent.mkdir(parents=True, exist_ok=True)
    return target


def utc_now_iso() -> str:
    """Return the current UTC time in ISO-8601 with millisecond precision."""

    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def truncate_for_log(value: str, limit: int = 200) -> str:
    text = value.strip()
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
