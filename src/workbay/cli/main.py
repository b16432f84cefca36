"""
Workbay CLI main entry point.

Usage:
    workbay serve                      # Start the HTTP API
    workbay serve --port 8080
    workbay run "pytest -q"            # Run one command in the workspace
    workbay version
"""

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console

from .. import __version__
from ..config.schema import WorkbaySettings
from ..errors import SpawnFailureError
from ..execution import ExecOptions, run_sync
from ..logging_config import configure_logging

app = typer.Typer(
    name="workbay",
    help="Workspace command execution sidecar",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)


def load_settings() -> WorkbaySettings:
    """
    Load settings from WORKBAY_* env vars and .env.

    Returns:
        WorkbaySettings instance
    """
    try:
        return WorkbaySettings()
    except ValidationError as e:
        err_console.print(f"[red]Invalid configuration:[/red]\n{e}")
        raise typer.Exit(2) from e


@app.command()
def serve(
    host: Annotated[str | None, typer.Option("--host", help="Bind address")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Bind port")] = None,
) -> None:
    """Start the Workbay HTTP API."""
    from ..api.server import start_server

    settings = load_settings()
    configure_logging(settings.logging.level)

    start_server(host=host, port=port)


@app.command()
def run(
    command: Annotated[str, typer.Argument(help="Shell command to run")],
    cwd: Annotated[Path | None, typer.Option("--cwd", help="Working directory")] = None,
    timeout: Annotated[float | None, typer.Option("--timeout", "-t", help="Timeout in seconds")] = None,
) -> None:
    """Run one command and exit with its exit code."""
    settings = load_settings()
    configure_logging(settings.logging.level)

    options = ExecOptions(
        cwd=cwd,
        timeout=timeout if timeout is not None else settings.execution.default_timeout_seconds,
    )

    try:
        result = asyncio.run(
            run_sync(
                command,
                options,
                shell=settings.execution.shell,
                drain_timeout=settings.execution.drain_timeout_seconds,
            )
        )
    except SpawnFailureError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(127) from e

    if result.stdout:
        console.print(result.stdout, end="", markup=False, highlight=False, soft_wrap=True)
    if result.stderr:
        err_console.print(result.stderr, end="", markup=False, highlight=False, soft_wrap=True)

    if result.timed_out:
        err_console.print(f"[yellow]Timed out after {options.timeout}s[/yellow]")

    raise typer.Exit(result.exit_code)


@app.command()
def version() -> None:
    """Show version."""
    console.print(f"Workbay {__version__}")


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
