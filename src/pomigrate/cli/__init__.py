"""
pomigrate CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import typer

from pomigrate import __version__
from pomigrate.cli import load as load_cmd
from pomigrate.core.config import load_layered_env

app = typer.Typer(
    name="pomigrate",
    help="Migrate Project Online projects into Smartsheet workspaces",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"pomigrate {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
) -> None:
    """
    pomigrate - Project Online to Smartsheet migration.

    Settings are read from the environment, a project .env / .env.local
    and ~/.config/pomigrate/.env, in that order of precedence.

    Quick Start:
        1. pomigrate config                          # Check settings
        2. pomigrate validate --from-file export.json
        3. pomigrate load --project-id <GUID>
    """
    load_layered_env()
    ctx.obj = {"debug": debug}


app.command(name="load")(load_cmd.load)
app.command(name="validate")(load_cmd.validate)
app.command(name="config")(load_cmd.show_config)


def cli_main() -> None:
    """Console script entry point."""
    app()


__all__ = ["app", "cli_main"]
