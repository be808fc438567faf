from __future__ import annotations

import logging
from typing import Optional

import typer
import uvicorn
from dotenv import load_dotenv
from starlette.config import Config

from query_watch.api.rendering import DashboardRenderer
from query_watch.api.settings import ServerSettings, load_server_settings
from query_watch.errors import StartupError
from query_watch.logger.logging_setup import setup_logging
from query_watch.main import create_app
from query_watch.startup import WarehouseSession, bootstrap
from query_watch.warehouse.failed_queries import FailedQueryRepository

_LOG = logging.getLogger("query_watch.cli")

app = typer.Typer(help="Dashboard of failed Snowflake queries from the last 24 hours.")


def _prepare() -> Config:
    # .env may carry LOG_CFG, LOG_DIR and LOG_LEVEL
    found = load_dotenv()
    setup_logging()
    if not found:
        _LOG.info("No .env file found, using environment variables")
    return Config()


def _server_settings(config: Config) -> ServerSettings:
    try:
        return load_server_settings(config)
    except RuntimeError as exc:
        _LOG.error("Invalid server settings: %s", exc)
        raise typer.Exit(code=1)


def _connect(config: Config) -> WarehouseSession:
    try:
        return bootstrap(config)
    except StartupError as exc:
        _LOG.error("Startup failed [%s]: %s", exc.kind.value, exc.args[0])
        raise typer.Exit(code=1)


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (default: HOST)."),
    port: Optional[int] = typer.Option(
        None, min=1, max=65535, help="Bind port (default: PORT)."
    ),
) -> None:
    """Connect to Snowflake, scrub credentials and serve the dashboard."""
    config = _prepare()
    settings = _server_settings(config)
    session = _connect(config)

    web_app = create_app(
        FailedQueryRepository(session.engine),
        DashboardRenderer(refresh_seconds=settings.refresh_seconds),
        engine=session.engine,
        max_body_bytes=settings.max_body_bytes,
    )
    bind_host = host or settings.host
    bind_port = port or settings.port
    _LOG.info("Starting server on %s:%d", bind_host, bind_port)
    uvicorn.run(
        web_app,
        host=bind_host,
        port=bind_port,
        timeout_keep_alive=60,
        log_config=None,
    )


@app.command("check")
def check() -> None:
    """Run the startup sequence once, print a summary and disconnect."""
    session = _connect(_prepare())
    try:
        typer.echo(f"Connected ({session.auth_mode.value}): {session.summary}")
    finally:
        session.engine.dispose()


def run() -> None:
    app()


if __name__ == "__main__":
    run()
