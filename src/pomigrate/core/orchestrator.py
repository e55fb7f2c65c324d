"""
Load orchestration.

Runs one project load as a linear sequence of stages:

    ENSURE_CATALOG -> ENSURE_PROJECT_CONTAINER -> ENSURE_SHEETS
        -> TRANSFORM_AND_WRITE_ROWS -> BIND_PICKLIST_COLUMNS -> DONE

Nothing about progress is persisted. Every stage is idempotent on its own,
so running the whole load again converges on the same workspace: containers
are found instead of created, and rows whose source id is already present
are skipped.

A failing stage stops the run. Completed stages are left as they are and
the failure is recorded on the ImportResult; ``run`` itself does not raise.

Example:
    >>> orchestrator = LoadOrchestrator(reconciler, registry, batch_size=100)
    >>> result = await orchestrator.run(project_data)
    >>> result.success, result.tasks_imported
    (True, 42)
"""

import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from pomigrate.core.catalog import ReferenceCatalog
from pomigrate.core.exceptions import TargetAPIError, describe_error, resolution_hint
from pomigrate.core.reconcile import DEFAULT_BATCH_SIZE, ResourceReconciler
from pomigrate.core.source.models import Assignment, ProjectData, Resource, Task
from pomigrate.core.strategy import SolutionType, StrategyRegistry, WorkspaceStrategy
from pomigrate.core.target.models import CellLinkRef, Column, ColumnType, Row, Sheet, Workspace
from pomigrate.core.transform.assignment import (
    assignment_column_sources,
    group_assignments_by_task,
    render_assignment_cells,
)
from pomigrate.core.transform.project import (
    PROJECT_SOURCE_ID_COLUMN,
    PROJECT_SUMMARY_COLUMNS,
    SUMMARY_PICKLIST_BINDINGS,
    SUMMARY_PRIMARY_COLUMN,
    SUMMARY_SHEET_SUFFIX,
    build_summary_row,
    summary_columns_to_add,
    validate_project,
)
from pomigrate.core.transform.resource import (
    RESOURCE_COLUMNS,
    RESOURCE_PICKLIST_BINDINGS,
    RESOURCE_PRIMARY_COLUMN,
    RESOURCE_SOURCE_ID_COLUMN,
    RESOURCES_SHEET_SUFFIX,
    build_resource_row,
    discover_departments,
    resource_columns,
    validate_resource,
)
from pomigrate.core.transform.task import (
    TASK_COLUMNS,
    TASK_PICKLIST_BINDINGS,
    TASK_PRIMARY_COLUMN,
    TASK_SOURCE_ID_COLUMN,
    TASKS_SHEET_SUFFIX,
    build_task_cells,
    order_tasks,
    plan_task_levels,
    validate_task,
)
from pomigrate.core.transform.utils import create_sheet_name

logger = logging.getLogger(__name__)


class LoadStage(str, Enum):
    """Pipeline stages, in execution order."""

    ENSURE_CATALOG = "ensure_catalog"
    ENSURE_PROJECT_CONTAINER = "ensure_project_container"
    ENSURE_SHEETS = "ensure_sheets"
    TRANSFORM_AND_WRITE_ROWS = "transform_and_write_rows"
    BIND_PICKLIST_COLUMNS = "bind_picklist_columns"
    DONE = "done"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").capitalize()


ProgressCallback = Callable[[LoadStage, str], None]


class ImportResult(BaseModel):
    """Outcome of one load."""

    success: bool = False
    dry_run: bool = False
    project_name: str | None = None
    workspace_id: int | None = None
    workspace_name: str | None = None
    workspace_permalink: str | None = None
    completed_stages: list[LoadStage] = Field(default_factory=list)
    failed_stage: LoadStage | None = None
    tasks_imported: int = 0
    resources_imported: int = 0
    assignments_imported: int = 0
    columns_created: int = 0
    rows_skipped: int = 0
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def stats(self) -> dict[str, int]:
        return {
            "Tasks imported": self.tasks_imported,
            "Resources imported": self.resources_imported,
            "Assignments imported": self.assignments_imported,
            "Columns created": self.columns_created,
            "Rows skipped (already present)": self.rows_skipped,
        }


class SheetState(BaseModel):
    """A project sheet as seen after its columns were ensured."""

    sheet: Sheet
    columns: dict[str, Column] = Field(default_factory=dict)
    # Source id -> target row id, for rows already in the sheet
    existing_rows: dict[str, int] = Field(default_factory=dict)

    @property
    def column_ids(self) -> dict[str, int]:
        return {title: c.id for title, c in self.columns.items() if c.id is not None}


class LoadContext(BaseModel):
    """Working state of a single run."""

    data: ProjectData
    existing_workspace_id: int | None = None
    catalog: ReferenceCatalog | None = None
    workspace: Workspace | None = None
    summary: SheetState | None = None
    tasks: SheetState | None = None
    resources: SheetState | None = None
    valid_tasks: list[Task] = Field(default_factory=list)
    valid_resources: list[Resource] = Field(default_factory=list)


class LoadOrchestrator:
    """Sequences one project load through the stages."""

    def __init__(
        self,
        reconciler: ResourceReconciler,
        registry: StrategyRegistry,
        *,
        solution_type: SolutionType | str = SolutionType.STANDALONE,
        standards_workspace_id: int | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        progress: ProgressCallback | None = None,
    ) -> None:
        self.reconciler = reconciler
        self.registry = registry
        self.solution_type = solution_type
        self.standards_workspace_id = standards_workspace_id
        self.batch_size = batch_size
        self._progress = progress

    def _report(self, stage: LoadStage, detail: str) -> None:
        if self._progress is not None:
            self._progress(stage, detail)

    @property
    def strategy(self) -> WorkspaceStrategy:
        return self.registry.get(self.solution_type)

    async def run(
        self,
        data: ProjectData,
        *,
        existing_workspace_id: int | None = None,
        dry_run: bool = False,
    ) -> ImportResult:
        """
        Load one project.

        Args:
            data: Extracted project data
            existing_workspace_id: Load into this workspace instead of
                resolving one by name
            dry_run: Validate and transform only; make no target calls

        Returns:
            ImportResult describing what happened
        """
        result = ImportResult(project_name=data.project.name, dry_run=dry_run)
        if dry_run:
            return self.dry_run(data, result)

        ctx = LoadContext(data=data, existing_workspace_id=existing_workspace_id)
        stages: list[tuple[LoadStage, Callable[[LoadContext, ImportResult], Any]]] = [
            (LoadStage.ENSURE_CATALOG, self._ensure_catalog),
            (LoadStage.ENSURE_PROJECT_CONTAINER, self._ensure_project_container),
            (LoadStage.ENSURE_SHEETS, self._ensure_sheets),
            (LoadStage.TRANSFORM_AND_WRITE_ROWS, self._write_rows),
            (LoadStage.BIND_PICKLIST_COLUMNS, self._bind_picklists),
        ]

        for stage, step in stages:
            logger.info(f"Stage: {stage.label}")
            self._report(stage, "started")
            try:
                await step(ctx, result)
            except Exception as e:
                result.failed_stage = stage
                result.errors.append(f"{stage.label} failed: {describe_error(e)}")
                logger.error(f"{stage.label} failed: {e}")
                hint = resolution_hint(e)
                if hint:
                    logger.error(f"Hint: {hint}")
                logger.debug("Stage failure details", exc_info=True)
                self._report(stage, f"failed: {e}")
                return result

            result.completed_stages.append(stage)
            self._report(stage, "completed")

        result.completed_stages.append(LoadStage.DONE)
        result.success = True
        self._report(LoadStage.DONE, "completed")
        logger.info(f"Load complete: {result.workspace_name} ({result.workspace_permalink})")
        return result

    # Dry run

    def dry_run(self, data: ProjectData, result: ImportResult | None = None) -> ImportResult:
        """Run validation and all transforms with placeholder column ids."""
        result = result or ImportResult(project_name=data.project.name, dry_run=True)

        project_check = validate_project(data.project)
        result.warnings.extend(project_check.warnings)
        if not project_check.is_valid:
            result.failed_stage = LoadStage.ENSURE_PROJECT_CONTAINER
            result.errors.append(
                f"Invalid project '{data.project.name}': {', '.join(project_check.errors)}"
            )
            return result

        tasks, resources = self._validate_entities(data, result)

        def placeholder_ids(columns: list[Column]) -> dict[str, int]:
            return {c.title: i for i, c in enumerate(columns, start=1)}

        build_summary_row(data.project, placeholder_ids(PROJECT_SUMMARY_COLUMNS))
        resource_ids = placeholder_ids(RESOURCE_COLUMNS)
        for resource in resources:
            build_resource_row(resource, resource_ids)
        result.resources_imported = len(resources)

        task_ids = placeholder_ids(TASK_COLUMNS)
        ordered = order_tasks(tasks)
        row_numbers = {t.id: i for i, t in enumerate(ordered, start=1)}
        by_task = group_assignments_by_task(data.assignments)
        resources_by_id = {r.id: r for r in resources if r.id}
        for task in ordered:
            task_assignments = by_task.get(task.id, [])
            cells = render_assignment_cells(task_assignments, resources_by_id, task_ids)
            build_task_cells(task, task_ids, row_numbers, cells)
            result.assignments_imported += self._count_assigned(task_assignments, resources_by_id)
        result.tasks_imported = len(ordered)

        result.success = True
        self._report(LoadStage.DONE, "dry run completed")
        return result

    # Stages

    async def _ensure_catalog(self, ctx: LoadContext, result: ImportResult) -> None:
        ctx.catalog = await self.strategy.create_standards_workspace(self.standards_workspace_id)
        for sheet_name, values in ctx.catalog.failed_values.items():
            result.warnings.append(
                f"Reference sheet '{sheet_name}' is missing values: {', '.join(values)}"
            )

    async def _ensure_project_container(self, ctx: LoadContext, result: ImportResult) -> None:
        project = ctx.data.project
        check = validate_project(project)
        result.warnings.extend(check.warnings)
        check.raise_if_invalid(f"project '{project.name or project.id}'")

        project_workspace = await self.strategy.create_project_workspace(
            project, ctx.existing_workspace_id
        )
        ctx.workspace = project_workspace.workspace
        result.workspace_id = ctx.workspace.id
        result.workspace_name = ctx.workspace.name
        result.workspace_permalink = ctx.workspace.permalink

    async def _ensure_sheet(
        self,
        workspace: Workspace,
        suffix: str,
        primary_title: str,
        source_id_title: str,
        columns: list[Column],
        result: ImportResult,
    ) -> SheetState:
        name = create_sheet_name(workspace.name, suffix)
        primary = next(c for c in columns if c.title == primary_title)

        reconciled = await self.reconciler.get_or_create_sheet(
            workspace.id, name, [primary]
        )
        added = await self.reconciler.add_columns_if_not_exist(reconciled.item.id, columns)
        result.columns_created += sum(1 for c in added if c.was_created)

        sheet = await self.reconciler.get_sheet(reconciled.item.id)
        state = SheetState(sheet=sheet, columns={c.title: c for c in sheet.columns})

        source_column = state.columns.get(source_id_title)
        if source_column is not None and source_column.id is not None:
            for row in sheet.rows:
                value = row.cell_value(source_column.id)
                if value and row.id is not None:
                    state.existing_rows[str(value)] = row.id
        return state

    async def _ensure_sheets(self, ctx: LoadContext, result: ImportResult) -> None:
        workspace = ctx.workspace
        if workspace is None:
            raise TargetAPIError("No project workspace to create sheets in")

        ctx.summary = await self._ensure_sheet(
            workspace,
            SUMMARY_SHEET_SUFFIX,
            SUMMARY_PRIMARY_COLUMN,
            PROJECT_SOURCE_ID_COLUMN,
            summary_columns_to_add(),
            result,
        )
        ctx.tasks = await self._ensure_sheet(
            workspace,
            TASKS_SHEET_SUFFIX,
            TASK_PRIMARY_COLUMN,
            TASK_SOURCE_ID_COLUMN,
            TASK_COLUMNS,
            result,
        )
        ctx.resources = await self._ensure_sheet(
            workspace,
            RESOURCES_SHEET_SUFFIX,
            RESOURCE_PRIMARY_COLUMN,
            RESOURCE_SOURCE_ID_COLUMN,
            resource_columns(discover_departments(ctx.data.resources)),
            result,
        )

    def _validate_entities(
        self, data: ProjectData, result: ImportResult
    ) -> tuple[list[Task], list[Resource]]:
        tasks: list[Task] = []
        for task in data.tasks:
            check = validate_task(task)
            label = f"Task '{task.task_name or task.id}'"
            result.warnings.extend(f"{label}: {w}" for w in check.warnings)
            if check.is_valid:
                tasks.append(task)
            else:
                result.warnings.append(f"{label} skipped: {', '.join(check.errors)}")

        resources: list[Resource] = []
        for resource in data.resources:
            check = validate_resource(resource)
            label = f"Resource '{resource.name or resource.id}'"
            result.warnings.extend(f"{label}: {w}" for w in check.warnings)
            if check.is_valid:
                resources.append(resource)
            else:
                result.warnings.append(f"{label} skipped: {', '.join(check.errors)}")
        return tasks, resources

    @staticmethod
    def _count_assigned(
        assignments: list[Assignment], resources_by_id: dict[str, Resource]
    ) -> int:
        return sum(1 for a in assignments if a.resource_id in resources_by_id)

    async def _write_rows(self, ctx: LoadContext, result: ImportResult) -> None:
        if ctx.summary is None or ctx.tasks is None or ctx.resources is None:
            raise TargetAPIError("Project sheets are not ready")

        ctx.valid_tasks, ctx.valid_resources = self._validate_entities(ctx.data, result)
        project = ctx.data.project

        # Summary
        if project.id in ctx.summary.existing_rows:
            result.rows_skipped += 1
        else:
            row = build_summary_row(project, ctx.summary.column_ids)
            await self.reconciler.add_rows(ctx.summary.sheet.id, [row])

        # Resources
        resource_ids = ctx.resources.column_ids
        pending = [r for r in ctx.valid_resources if r.id not in ctx.resources.existing_rows]
        result.rows_skipped += len(ctx.valid_resources) - len(pending)
        if pending:
            rows = [build_resource_row(r, resource_ids) for r in pending]
            await self.reconciler.add_rows(ctx.resources.sheet.id, rows, self.batch_size)
        result.resources_imported = len(pending)
        logger.info(
            f"Resources: {len(pending)} written, "
            f"{len(ctx.valid_resources) - len(pending)} already present"
        )

        await self._write_task_rows(ctx, result)

    async def _write_task_rows(self, ctx: LoadContext, result: ImportResult) -> None:
        assert ctx.tasks is not None
        sheet_id = ctx.tasks.sheet.id
        column_ids = ctx.tasks.column_ids

        ordered = order_tasks(ctx.valid_tasks)
        row_numbers = {t.id: i for i, t in enumerate(ordered, start=1)}
        by_task = group_assignments_by_task(ctx.data.assignments)
        resources_by_id = {r.id: r for r in ctx.valid_resources if r.id}

        row_ids: dict[str, int] = dict(ctx.tasks.existing_rows)

        for group in plan_task_levels(ctx.valid_tasks):
            pending = [t for t in group.tasks if t.id not in ctx.tasks.existing_rows]
            result.rows_skipped += len(group.tasks) - len(pending)
            if not pending:
                continue

            parent_row_id = row_ids.get(group.parent_task_id) if group.parent_task_id else None
            if group.parent_task_id and parent_row_id is None:
                raise TargetAPIError(
                    f"Parent row for task {group.parent_task_id} was not written"
                )

            rows = []
            for task in pending:
                task_assignments = by_task.get(task.id, [])
                assignment_cells = render_assignment_cells(
                    task_assignments, resources_by_id, column_ids
                )
                cells = build_task_cells(task, column_ids, row_numbers, assignment_cells)
                rows.append(Row(to_bottom=True, parent_id=parent_row_id, cells=cells))
                result.assignments_imported += self._count_assigned(
                    task_assignments, resources_by_id
                )

            written = await self.reconciler.add_rows(sheet_id, rows, self.batch_size)
            if len(written) != len(pending):
                raise TargetAPIError(
                    f"Expected {len(pending)} task rows from sheet {sheet_id}, "
                    f"API returned {len(written)}"
                )
            for task, row in zip(pending, written):
                if row.id is not None:
                    row_ids[task.id] = row.id
            result.tasks_imported += len(pending)

        logger.info(f"Tasks: {result.tasks_imported} written")

    async def _bind(
        self, state: SheetState, bindings: dict[str, str], catalog: ReferenceCatalog
    ) -> int:
        changed = 0
        for title, sheet_name in bindings.items():
            column = state.columns.get(title)
            if column is None:
                continue
            if await self.reconciler.bind_picklist(
                state.sheet.id, column, catalog.ref(sheet_name)
            ):
                changed += 1
        return changed

    async def _bind_picklists(self, ctx: LoadContext, result: ImportResult) -> None:
        catalog = ctx.catalog
        if catalog is None or ctx.summary is None or ctx.tasks is None or ctx.resources is None:
            raise TargetAPIError("Catalog and project sheets must exist before binding")

        changed = await self._bind(ctx.summary, SUMMARY_PICKLIST_BINDINGS, catalog)
        changed += await self._bind(ctx.tasks, TASK_PICKLIST_BINDINGS, catalog)
        changed += await self._bind(ctx.resources, RESOURCE_PICKLIST_BINDINGS, catalog)

        for title, (source_title, family) in assignment_column_sources().items():
            column = ctx.tasks.columns.get(title)
            source = ctx.resources.columns.get(source_title)
            if column is None or source is None or source.id is None:
                continue
            ref = CellLinkRef(sheet_id=ctx.resources.sheet.id, column_id=source.id)
            if family == ColumnType.MULTI_CONTACT_LIST:
                updated = await self.reconciler.bind_contact_source(
                    ctx.tasks.sheet.id, column, ref
                )
            else:
                updated = await self.reconciler.bind_picklist(
                    ctx.tasks.sheet.id, column, ref, column_type=family
                )
            changed += int(updated)

        logger.info(f"Picklist bindings: {changed} column(s) updated")


__all__ = [
    "LoadStage",
    "ImportResult",
    "ProgressCallback",
    "LoadOrchestrator",
]
