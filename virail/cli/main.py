"""Main entry point for the Virail command line client."""

import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from virail.core._version import __version__

from .commands.auth import app as auth_app


console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"virail {__version__}")
        raise typer.Exit()


app = typer.Typer(
    rich_markup_mode="rich",
    add_completion=True,
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)


@app.callback()
def app_main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML configuration file",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
) -> None:
    """Virail Studio client - sign in and talk to the Virail API."""
    # Store config path for commands to use
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


@app.command(name="version")
def version_command() -> None:
    """Show the client version."""
    console.print(f"virail {__version__}")


# Register auth command
app.add_typer(auth_app)


def main() -> None:
    """Entry point for the CLI application."""
    app()


if __name__ == "__main__":
    sys.exit(app())
