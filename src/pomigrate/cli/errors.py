"""
Error rendering and exit codes for the pomigrate CLI.

Every command reports failures the same way: a red panel with the message,
the resolution hint and any error context, then a non-zero exit code.
"""

import traceback
from enum import IntEnum

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from pomigrate.core.exceptions import ConfigurationError, MigrationError, resolution_hint

console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for pomigrate commands."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Load failed or an unexpected error occurred."""

    USER_ERROR = 2
    """Configuration or input error (actionable by user)."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a one-off error with actionable guidance.

    Example:
        >>> print_error(
        ...     "Missing source",
        ...     reason="A load needs a project to read",
        ...     solution="pomigrate load --project-id <GUID>",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")
    if reason:
        console.print(f"[dim]{reason}[/dim]")
    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def exit_code_for(error: BaseException) -> ExitCode:
    if isinstance(error, KeyboardInterrupt):
        return ExitCode.SIGINT
    if isinstance(error, ConfigurationError):
        return ExitCode.USER_ERROR
    return ExitCode.GENERAL_ERROR


def handle_error(error: BaseException, command_name: str, debug: bool = False) -> ExitCode:
    """
    Display an error panel and return the exit code to use.

    Args:
        error: The exception that was raised
        command_name: Name of the command that failed
        debug: If True, also print the full traceback

    Returns:
        Exit code matching the error kind
    """
    error_text = Text()
    if isinstance(error, MigrationError):
        title = "[bold red]Error[/bold red]"
        error_text.append("Error: ", style="bold red")
        error_text.append(str(error))
    else:
        title = "[bold red]Unexpected Error[/bold red]"
        error_text.append("Unexpected error in ", style="bold red")
        error_text.append(command_name, style="bold yellow")
        error_text.append(": ", style="bold red")
        error_text.append(str(error) or type(error).__name__)

    hint = resolution_hint(error)
    if hint:
        error_text.append("\n\nHint: ", style="cyan")
        error_text.append(hint)

    if isinstance(error, MigrationError) and error.context:
        error_text.append("\n\nContext:\n", style="dim")
        for key, value in error.context.items():
            if value is None:
                continue
            error_text.append(f"  {key}: ", style="cyan")
            error_text.append(f"{value}\n", style="white")

    console.print()
    console.print(Panel(error_text, title=title, border_style="red", expand=False))

    if debug:
        console.print("\n[dim]Full traceback:[/dim]")
        console.print(
            "".join(traceback.format_exception(type(error), error, error.__traceback__))
        )
    else:
        console.print("[dim]Run with --debug for full traceback[/dim]")
    console.print()
    return exit_code_for(error)


__all__ = [
    "ExitCode",
    "console",
    "print_error",
    "exit_code_for",
    "handle_error",
]
