"""
pomigrate CLI - load, validate and config commands.

Each command wires the pipeline from configuration: one shared rate
limiter, the target client, a source (OData or exported JSON file), the
retry executor, reconciler, reference catalog, strategy registry and the
load orchestrator.
"""

import asyncio
import logging
import re
import sys
import time
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text

from pomigrate.cli.errors import ExitCode, handle_error, print_error
from pomigrate.core.catalog import ReferenceCatalogManager
from pomigrate.core.config import MigrationConfig, load_config
from pomigrate.core.exceptions import ConfigurationError, MigrationError
from pomigrate.core.orchestrator import (
    ImportResult,
    LoadOrchestrator,
    LoadStage,
    ProgressCallback,
)
from pomigrate.core.ratelimit import SlidingWindowRateLimiter
from pomigrate.core.reconcile import ResourceReconciler
from pomigrate.core.retry import RetryExecutor
from pomigrate.core.source import JsonFileSource, ODataSourceClient, SourceClient
from pomigrate.core.source.models import ProjectData
from pomigrate.core.strategy import PollingTemplateAcquirer, StrategyRegistry
from pomigrate.core.target import HttpTargetClient, TargetClient
from pomigrate.core.transform.project import validate_project
from pomigrate.core.transform.resource import validate_resource
from pomigrate.core.transform.task import validate_task

logger = logging.getLogger(__name__)

console = Console()

GUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Longer warning lists are cut off in the summary panel
MAX_WARNINGS_SHOWN = 20


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """
    Configure root logging on stderr, plus an optional log file.

    Args:
        level: Log level name (DEBUG, INFO, ...)
        log_file: Optional path that receives the same records
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def is_guid(value: str) -> bool:
    return bool(GUID_PATTERN.match(value.strip()))


def open_source(
    config: MigrationConfig | None,
    *,
    from_file: Path | None,
    limiter: SlidingWindowRateLimiter | None = None,
) -> SourceClient:
    """An exported file when given, otherwise the OData API."""
    if from_file is not None:
        return JsonFileSource(from_file)
    if config is None or not config.project_online_url:
        raise ConfigurationError.for_setting(
            "PROJECT_ONLINE_URL", "is required to read projects from the API"
        )
    return ODataSourceClient(
        config.project_online_url,
        config.project_online_access_token or "",
        limiter=limiter,
        executor=RetryExecutor(config.retry_policy()),
    )


async def extract(source: SourceClient, project_id: str | None) -> ProjectData:
    try:
        return await source.extract_project_data(project_id)  # type: ignore[arg-type]
    finally:
        if isinstance(source, ODataSourceClient):
            await source.aclose()


def build_orchestrator(
    config: MigrationConfig,
    target: TargetClient,
    progress: ProgressCallback | None = None,
) -> LoadOrchestrator:
    """Assemble the load pipeline around a target client."""
    reconciler = ResourceReconciler(target, RetryExecutor(config.retry_policy()))
    catalog_manager = ReferenceCatalogManager(reconciler)
    acquirer = PollingTemplateAcquirer(
        reconciler,
        config.template_workspace_name,
        config.template_distribution_url,
    )
    registry = StrategyRegistry.default(
        reconciler,
        catalog_manager,
        template_workspace_id=config.template_workspace_id,
        acquirer=acquirer,
    )
    return LoadOrchestrator(
        reconciler,
        registry,
        solution_type=config.solution_type,
        standards_workspace_id=config.pmo_standards_workspace_id,
        batch_size=config.batch_size,
        progress=progress,
    )


async def run_load(
    config: MigrationConfig,
    *,
    project_id: str | None,
    from_file: Path | None,
    workspace_id: int | None = None,
    dry_run: bool = False,
    progress: ProgressCallback | None = None,
) -> ImportResult:
    """Extract one project and load it into the target."""
    limiter = SlidingWindowRateLimiter(config.rate_limit_per_minute)
    source = open_source(config, from_file=from_file, limiter=limiter)
    data = await extract(source, project_id)
    logger.info(
        f"Extracted '{data.project.name}': "
        + ", ".join(f"{count} {name}" for name, count in data.summary().items())
    )

    async with HttpTargetClient(config.smartsheet_api_token, limiter=limiter) as target:
        orchestrator = build_orchestrator(config, target, progress)
        return await orchestrator.run(
            data, existing_workspace_id=workspace_id, dry_run=dry_run
        )


def _print_result(result: ImportResult, elapsed: float) -> None:
    console.print()
    if result.success:
        title = Text("✓", style="bold green")
        verb = "Dry run" if result.dry_run else "Load"
        summary = Text.from_markup(
            f"{verb} of [bold]{result.project_name}[/bold] complete in {elapsed:.2f}s"
        )
        if result.workspace_name:
            summary.append(f"\nWorkspace: {result.workspace_name}")
        if result.workspace_permalink:
            summary.append(f"\n{result.workspace_permalink}", style="blue underline")
        border = "green"
    else:
        title = Text("✗", style="bold red")
        stage = result.failed_stage.label if result.failed_stage else "Load"
        summary = Text.from_markup(
            f"{stage} failed for [bold]{result.project_name}[/bold] after {elapsed:.2f}s"
        )
        for error in result.errors:
            summary.append(f"\n• {error}", style="red")
        border = "red"
    console.print(Panel(summary, title=title, border_style=border, expand=False))
    console.print()

    stats_table = Table(title="Load Statistics", show_header=False, box=None)
    stats_table.add_column("Metric", style="cyan", no_wrap=True, width=30)
    stats_table.add_column("Count", justify="right", style="bold")
    for metric, count in result.stats().items():
        stats_table.add_row(metric, str(count))
    stats_table.add_row(
        "Stages completed",
        Text(f"{len(result.completed_stages)}/{len(LoadStage)}", style="bold cyan"),
    )
    console.print(stats_table)
    console.print()

    if result.warnings:
        content = Text()
        for i, warning in enumerate(result.warnings[:MAX_WARNINGS_SHOWN]):
            if i > 0:
                content.append("\n")
            content.append(f"• {warning}")
        hidden = len(result.warnings) - MAX_WARNINGS_SHOWN
        if hidden > 0:
            content.append(f"\n… and {hidden} more (see log)", style="dim")
        console.print(
            Panel(
                content,
                title="[bold yellow]Warnings[/bold yellow]",
                border_style="yellow",
                expand=False,
            )
        )
        console.print()


def load(
    ctx: typer.Context,
    project_id: Annotated[
        str | None,
        typer.Option("--project-id", "-p", help="Project Online project GUID"),
    ] = None,
    from_file: Annotated[
        Path | None,
        typer.Option(
            "--from-file",
            "-f",
            help="Read the project from an exported JSON file instead of the API",
            exists=False,
            dir_okay=False,
        ),
    ] = None,
    workspace_id: Annotated[
        int | None,
        typer.Option("--workspace-id", help="Load into this existing workspace"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Validate and transform without writing anything"),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", "--verbose", help="Enable debug logging and tracebacks"),
    ] = False,
) -> None:
    """
    Load one project into the target workspace.

    Running the same load again is safe: existing workspaces, sheets,
    columns and rows are found and reused rather than duplicated.

    Examples:
        pomigrate load --project-id 5f3b6a0e-1c2d-4e5f-8a9b-0c1d2e3f4a5b
        pomigrate load --from-file export.json --dry-run
    """
    debug = debug or bool(ctx.obj and ctx.obj.get("debug"))

    if project_id is None and from_file is None:
        print_error(
            "No project to load",
            reason="A load needs either a project id or an exported file",
            solution="pomigrate load --project-id <GUID>  # or --from-file export.json",
        )
        raise typer.Exit(ExitCode.USER_ERROR)
    if project_id is not None and not is_guid(project_id):
        print_error(
            f"Invalid project id: {project_id}",
            reason="Project ids are GUIDs like 5f3b6a0e-1c2d-4e5f-8a9b-0c1d2e3f4a5b",
        )
        raise typer.Exit(ExitCode.USER_ERROR)

    try:
        config = load_config()
        setup_logging("DEBUG" if debug else config.log_level, config.log_file)
        dry_run = dry_run or config.dry_run

        start_time = time.time()
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task_id = progress.add_task("Extracting project...", total=None)

            def report(stage: LoadStage, detail: str) -> None:
                progress.update(task_id, description=f"{stage.label}: {detail}")

            result = asyncio.run(
                run_load(
                    config,
                    project_id=project_id,
                    from_file=from_file,
                    workspace_id=workspace_id,
                    dry_run=dry_run,
                    progress=report,
                )
            )
        elapsed = time.time() - start_time
    except (Exception, KeyboardInterrupt) as e:
        raise typer.Exit(handle_error(e, "load", debug)) from None

    _print_result(result, elapsed)
    if not result.success:
        raise typer.Exit(ExitCode.GENERAL_ERROR)


def _validation_rows(data: ProjectData) -> list[tuple[str, str, str]]:
    """(entity, level, message) for every problem in the extracted data."""
    rows: list[tuple[str, str, str]] = []
    project = data.project
    checks = [(f"Project '{project.name or project.id}'", validate_project(project))]
    checks += [(f"Task '{t.task_name or t.id}'", validate_task(t)) for t in data.tasks]
    checks += [(f"Resource '{r.name or r.id}'", validate_resource(r)) for r in data.resources]
    for entity, result in checks:
        rows.extend((entity, "error", message) for message in result.errors)
        rows.extend((entity, "warning", message) for message in result.warnings)

    resource_ids = set(data.resources_by_id)
    task_ids = {t.id for t in data.tasks}
    for assignment in data.assignments:
        entity = f"Assignment '{assignment.id}'"
        if assignment.resource_id not in resource_ids:
            rows.append((entity, "warning", f"unknown resource {assignment.resource_id}"))
        if assignment.task_id not in task_ids:
            rows.append((entity, "warning", f"unknown task {assignment.task_id}"))
    return rows


def validate(
    project_id: Annotated[
        str | None,
        typer.Option("--project-id", "-p", help="Project Online project GUID"),
    ] = None,
    from_file: Annotated[
        Path | None,
        typer.Option("--from-file", "-f", help="Exported JSON file to check"),
    ] = None,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug logging and tracebacks"),
    ] = False,
) -> None:
    """
    Check configuration and source data without touching the target.

    Examples:
        pomigrate validate
        pomigrate validate --from-file export.json
    """
    if project_id is not None and not is_guid(project_id):
        print_error(
            f"Invalid project id: {project_id}",
            reason="Project ids are GUIDs like 5f3b6a0e-1c2d-4e5f-8a9b-0c1d2e3f4a5b",
        )
        raise typer.Exit(ExitCode.USER_ERROR)

    setup_logging("DEBUG" if debug else "WARNING")
    failed = False

    config: MigrationConfig | None = None
    try:
        config = load_config()
        console.print("[green]✓[/green] Configuration is valid")
    except ConfigurationError as e:
        failed = True
        console.print(f"[red]✗[/red] Configuration: {e}")
        if e.hint:
            console.print(f"  [cyan]→ Try:[/cyan] {e.hint}")

    if project_id is None and from_file is None:
        raise typer.Exit(ExitCode.GENERAL_ERROR if failed else ExitCode.SUCCESS)

    try:
        source = open_source(config, from_file=from_file)
        data = asyncio.run(extract(source, project_id))
    except MigrationError as e:
        raise typer.Exit(handle_error(e, "validate", debug)) from None

    counts = ", ".join(f"{count} {name}" for name, count in data.summary().items())
    console.print(f"[green]✓[/green] Read project '{data.project.name}' ({counts})")

    rows = _validation_rows(data)
    if rows:
        table = Table(title="Validation Results", border_style="cyan")
        table.add_column("Entity", style="cyan")
        table.add_column("Level", no_wrap=True)
        table.add_column("Message", style="white")
        for entity, level, message in rows:
            style = "red" if level == "error" else "yellow"
            table.add_row(entity, Text(level, style=style), message)
        console.print()
        console.print(table)

    errors = sum(1 for _, level, _ in rows if level == "error")
    warnings = len(rows) - errors
    console.print()
    console.print(f"{errors} error(s), {warnings} warning(s)")
    if errors or failed:
        raise typer.Exit(ExitCode.GENERAL_ERROR)


def show_config(
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug logging and tracebacks"),
    ] = False,
) -> None:
    """Show the effective configuration (the API token is masked)."""
    try:
        config = load_config()
    except ConfigurationError as e:
        raise typer.Exit(handle_error(e, "config", debug)) from None

    table = Table(title="Configuration", show_header=False, box=None)
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="bold")

    values = config.model_dump()
    values["smartsheet_api_token"] = config.masked_token()
    values["solution_type"] = config.solution_type.value
    for key, value in values.items():
        shown = "[dim]not set[/dim]" if value is None else str(value)
        table.add_row(key, shown)

    console.print()
    console.print(table)
    console.print()


__all__ = [
    "setup_logging",
    "is_guid",
    "open_source",
    "build_orchestrator",
    "run_load",
    "load",
    "validate",
    "show_config",
]
