"""
dynacrud serve - run the API under uvicorn.

Entity routes are mounted by the application lifespan from the remote
config, so besides the usual bind options this command decides where that
config comes from and whether it is loaded at all.

Usage:
    dynacrud serve --config-url https://config.example.com/entities.json
    dynacrud serve --no-load                  # health and /api/models only
    dynacrud serve --port 8080 --workers 4
"""

import os

import click
from loguru import logger

from ...settings import settings

APP_PATH = "dynacrud.api.main:app"


def apply_config_overrides(config_url: str | None = None, load: bool | None = None) -> dict[str, str]:
    """
    Override the remote-config settings for this server run.

    The live settings object is updated for the in-process server and the
    same values are exported as environment variables, which is what reload
    and worker subprocesses read when they import the app.

    Returns:
        Environment variables that were set
    """
    overrides: dict[str, str] = {}
    if config_url:
        settings.remote_config.url = config_url
        overrides["REMOTE_CONFIG__URL"] = config_url
    if load is not None:
        settings.remote_config.load_on_startup = load
        overrides["REMOTE_CONFIG__LOAD_ON_STARTUP"] = "true" if load else "false"

    os.environ.update(overrides)
    return overrides


def build_uvicorn_config(
    host: str | None = None,
    port: int | None = None,
    reload: bool | None = None,
    workers: int | None = None,
    log_level: str | None = None,
) -> dict:
    """uvicorn.run() keyword arguments; explicit options win over API__* settings."""
    config = {
        "app": APP_PATH,
        "host": host or settings.api.host,
        "port": port or settings.api.port,
        "log_level": log_level or settings.api.log_level,
    }

    # uvicorn rejects reload together with workers
    if reload:
        config["reload"] = True
    elif workers:
        config["workers"] = workers
    elif reload is None and settings.api.reload:
        config["reload"] = True
    else:
        config["workers"] = settings.api.workers
    return config


@click.command("serve")
@click.option("--host", default=None, help="Host to bind to (default: API__HOST)")
@click.option("--port", default=None, type=int, help="Port to listen on (default: API__PORT)")
@click.option("--reload/--no-reload", default=None, help="Auto-reload on code changes (default: API__RELOAD)")
@click.option("--workers", default=None, type=int, help="Worker processes (ignored with --reload)")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["critical", "error", "warning", "info", "debug", "trace"]),
    help="uvicorn log level (default: API__LOG_LEVEL)",
)
@click.option("--config-url", default=None, help="Remote entity config URL (overrides REMOTE_CONFIG__URL)")
@click.option("--no-load", is_flag=True, help="Start without loading entities from the remote config")
def serve_command(
    host: str | None,
    port: int | None,
    reload: bool | None,
    workers: int | None,
    log_level: str | None,
    config_url: str | None,
    no_load: bool,
):
    """
    Start the dynacrud API server.

    On startup every entity of the remote config is registered and gets
    CRUD routes under API__PREFIX.
    """
    import uvicorn

    apply_config_overrides(config_url, load=False if no_load else None)

    if not settings.remote_config.load_on_startup:
        logger.info("Entity loading disabled - only built-in routes will be served")
    elif not settings.remote_config.url:
        logger.warning("REMOTE_CONFIG__URL is not set - no entity routes will be mounted")

    uvicorn_config = build_uvicorn_config(host, port, reload, workers, log_level)
    logger.info(
        f"Starting dynacrud API at http://{uvicorn_config['host']}:{uvicorn_config['port']} "
        f"(config: {settings.remote_config.url or 'none'})"
    )
    uvicorn.run(**uvicorn_config)


def register_command(cli_group):
    """Register the serve command."""
    cli_group.add_command(serve_command)
