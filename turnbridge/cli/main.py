"""Main entry point for the turnbridge server."""

import os
from typing import Any

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from turnbridge._version import __version__
from turnbridge.config.settings import ConfigurationError, Settings, get_settings
from turnbridge.core.logging import get_logger, setup_logging


console = Console()
logger = get_logger(__name__)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"turnbridge {__version__}")
        raise typer.Exit()


app = typer.Typer(
    rich_markup_mode="rich",
    add_completion=False,
    no_args_is_help=False,
    pretty_exceptions_enable=False,
)


@app.callback()
def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """turnbridge - serve the turn-based Responses API from a chat upstream."""


def apply_cli_overrides(**overrides: Any) -> dict[str, str]:
    """Export CLI options as nested environment variables.

    The server is started from an import string, so settings reach the
    application factory (and any reloader subprocess) through the
    environment.
    """
    env_names = {
        "host": "SERVER__HOST",
        "port": "SERVER__PORT",
        "reload": "SERVER__RELOAD",
        "upstream_host": "UPSTREAM__HOST",
        "upstream_port": "UPSTREAM__PORT",
        "native_tools": "UPSTREAM__NATIVE_TOOLS",
        "log_level": "LOGGING__LEVEL",
        "log_format": "LOGGING__FORMAT",
    }
    exported: dict[str, str] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        exported[env_names[key]] = str(value)
    os.environ.update(exported)
    get_settings.cache_clear()
    return exported


def load_settings() -> Settings:
    try:
        return get_settings()
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(1) from e


@app.command()
def serve(
    host: str | None = typer.Option(
        None, "--host", help="Host to bind the server to"
    ),
    port: int | None = typer.Option(
        None, "--port", "-p", help="Port to listen on"
    ),
    upstream_host: str | None = typer.Option(
        None, "--upstream-host", help="Upstream chat service host"
    ),
    upstream_port: int | None = typer.Option(
        None, "--upstream-port", help="Upstream chat service port"
    ),
    text_tools: bool = typer.Option(
        False,
        "--text-tools",
        help="Describe tools in the prompt and parse calls from the model's text",
    ),
    reload: bool | None = typer.Option(
        None, "--reload/--no-reload", help="Enable auto-reload for development"
    ),
    log_level: str | None = typer.Option(
        None, "--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    ),
    json_logs: bool | None = typer.Option(
        None, "--json-logs/--console-logs", help="Render logs as JSON lines"
    ),
) -> None:
    """Start the bridge server."""
    apply_cli_overrides(
        host=host,
        port=port,
        reload=reload,
        upstream_host=upstream_host,
        upstream_port=upstream_port,
        native_tools=False if text_tools else None,
        log_level=log_level,
        log_format=None if json_logs is None else ("json" if json_logs else "console"),
    )
    settings = load_settings()

    setup_logging(
        json_logs=settings.logging.format == "json",
        log_level_name=settings.logging.level,
    )
    logger.info(
        "server_starting",
        host=settings.server.host,
        port=settings.server.port,
        url=settings.server_url,
        upstream=settings.upstream.url,
        native_tools=settings.upstream.native_tools,
    )

    uvicorn.run(
        app="turnbridge.api.app:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.reload,
        reload_dirs=["turnbridge"] if settings.server.reload else None,
        log_config=None,
        access_log=False,
        server_header=False,
    )


@app.command()
def config() -> None:
    """Show the effective configuration."""
    settings = load_settings()
    table = Table(title="turnbridge configuration", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for group, values in settings.model_dump_safe().items():
        if isinstance(values, dict):
            for key, value in values.items():
                table.add_row(f"{group}.{key}", repr(value))
        else:
            table.add_row(group, repr(values))
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
