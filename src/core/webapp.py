"""FastAPI console for issuing statements against emulated servers."""

from __future__ import annotations

import argparse
import logging
from typing import Any

from fastapi import FastAPI, HTTPException, status
from pydantic import BaseModel, Field

from src.core.config import load_settings
from src.core.dependencies import build_dependencies
from src.core.errors import ProcessorError, UsageError
from src.core.logging_utils import truncate_for_log

LOGGER = logging.getLogger(__name__)


class QueryRequest(BaseModel):
    host: str = Field(..., min_length=1)
    port: int = 3306
    database: str = Field(..., min_length=1)
    statements: list[str] = Field(..., min_length=1)


class QueryResultPayload(BaseModel):
    rows: list[dict[str, Any]]
    rows_affected: int


class QueryResponse(BaseModel):
    host: str
    database: str
    results: list[QueryResultPayload]


class ServerResponse(BaseModel):
    name: str
    strict_sql_mode: bool
    strict_schema_mode: bool
    inherit_schema_from: str


def create_app(config_path: str = "configs/dev.yaml") -> FastAPI:
    LOGGER.info("Initialising SQL emulator console with config '%s'", config_path)
    settings = load_settings(config_path)
    dependencies = build_dependencies(settings)
    client = dependencies.client()

    app = FastAPI(title="SQL Emulator Console", version="0.1.0")

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/servers/{host}", response_model=ServerResponse)
    def get_server(host: str) -> ServerResponse:
        if host not in dependencies.registry.hosts():
            raise HTTPException(status_code=404, detail=f"Unknown server '{host}'")
        server = dependencies.registry.get_or_create(host)
        return ServerResponse(
            name=server.name,
            strict_sql_mode=server.config.strict_sql_mode,
            strict_schema_mode=server.config.strict_schema_mode,
            inherit_schema_from=server.config.inherit_schema_from,
        )

    @app.post("/api/query", response_model=QueryResponse)
    async def run_query(request: QueryRequest) -> QueryResponse:
        LOGGER.info(
            "Running %d statement(s) on %s/%s: %s",
            len(request.statements),
            request.host,
            request.database,
            truncate_for_log(request.statements[0]),
        )
        connection = await client.connect(request.host, request.port, request.database)
        try:
            results = await connection.multi_query(request.statements)
        except (ProcessorError, UsageError) as exc:
            LOGGER.info("Statement on %s failed: %s", request.host, exc)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"error_type": type(exc).__name__, "message": str(exc)},
            ) from exc
        finally:
            connection.close()

        return QueryResponse(
            host=request.host,
            database=connection.get_database(),
            results=[
                QueryResultPayload(rows=result.map_rows(), rows_affected=result.num_rows_affected())
                for result in results
            ],
        )

    return app


def _configure_logging(debug: bool) -> None:
    root_logger = logging.getLogger()
    if root_logger.handlers:
        if debug:
            root_logger.setLevel(logging.DEBUG)
        return
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Launch the SQL emulator console")
    parser.add_argument("--config", default="configs/dev.yaml", help="Path to configuration file")
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind the server")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind the server")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    _configure_logging(debug=args.debug)
    app = create_app(config_path=args.config)

    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - defensive
        raise SystemExit("uvicorn must be installed to run the console") from exc

    LOGGER.info("Starting uvicorn on %s:%s", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
