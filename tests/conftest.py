"""
Pytest configuration and shared fixtures.

Provides an in-memory target (FakeTargetClient), sample Project Online
data, and the wiring of reconciler, catalog manager and strategy registry
used across the test suite.
"""

import json
from collections import Counter
from pathlib import Path
from typing import Any

import pytest

from pomigrate.core.catalog import ReferenceCatalogManager
from pomigrate.core.config import ENV_VARS, clear_cache
from pomigrate.core.exceptions import NotFoundError
from pomigrate.core.reconcile import ResourceReconciler
from pomigrate.core.retry import RetryExecutor, RetryPolicy
from pomigrate.core.source.models import Assignment, Project, ProjectData, Resource, Task
from pomigrate.core.strategy import StrategyRegistry
from pomigrate.core.target.models import Column, ColumnType, Row, Sheet, SheetRef, Workspace

# ==============================================================================
# In-memory target
# ==============================================================================


class FakeTargetClient:
    """
    In-memory implementation of the TargetClient protocol.

    Ids auto-increment from 1000. Every call is counted in ``calls``, and
    exceptions queued in ``failures[method]`` are raised (one per call)
    before the method does anything.
    """

    def __init__(self) -> None:
        self._next_id = 1000
        self.workspaces: dict[int, Workspace] = {}
        self.workspace_sheets: dict[int, list[int]] = {}
        self.sheets: dict[int, Sheet] = {}
        self.calls: Counter[str] = Counter()
        self.failures: dict[str, list[Exception]] = {}
        self.row_batches: list[tuple[int, list[Row]]] = []
        self.column_updates: list[tuple[int, int, dict[str, Any]]] = []

    async def __aenter__(self) -> "FakeTargetClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def _record(self, method: str) -> None:
        self.calls[method] += 1
        queued = self.failures.get(method)
        if queued:
            raise queued.pop(0)

    def _sheet(self, sheet_id: int) -> Sheet:
        if sheet_id not in self.sheets:
            raise NotFoundError(f"Sheet {sheet_id} not found", status_code=404)
        return self.sheets[sheet_id]

    # Helpers for arranging state

    def add_workspace(self, name: str) -> Workspace:
        workspace = Workspace(
            id=self._new_id(), name=name, permalink=f"https://app.example.com/w/{name}"
        )
        self.workspaces[workspace.id] = workspace
        self.workspace_sheets[workspace.id] = []
        return workspace

    def add_sheet(
        self, workspace_id: int, name: str, columns: list[Column], values: list[str] | None = None
    ) -> Sheet:
        sheet = Sheet(
            id=self._new_id(),
            name=name,
            columns=[
                c.model_copy(update={"id": self._new_id(), "index": i})
                for i, c in enumerate(columns)
            ],
        )
        first = sheet.columns[0].id
        for value in values or []:
            sheet.rows.append(
                Row(id=self._new_id(), cells=[{"columnId": first, "value": value}])
            )
        self.sheets[sheet.id] = sheet
        self.workspace_sheets[workspace_id].append(sheet.id)
        return sheet

    def sheet_named(self, name: str) -> Sheet:
        return next(s for s in self.sheets.values() if s.name == name)

    def workspace_named(self, name: str) -> Workspace | None:
        return next((w for w in self.workspaces.values() if w.name == name), None)

    # TargetClient protocol

    async def get_workspace(self, workspace_id: int) -> Workspace:
        self._record("get_workspace")
        if workspace_id not in self.workspaces:
            raise NotFoundError(f"Workspace {workspace_id} not found", status_code=404)
        return self.workspaces[workspace_id].model_copy()

    async def list_workspaces(self) -> list[Workspace]:
        self._record("list_workspaces")
        return [w.model_copy() for w in self.workspaces.values()]

    async def create_workspace(self, name: str) -> Workspace:
        self._record("create_workspace")
        return self.add_workspace(name).model_copy()

    async def copy_workspace(self, workspace_id: int, new_name: str) -> Workspace:
        self._record("copy_workspace")
        if workspace_id not in self.workspaces:
            raise NotFoundError(f"Workspace {workspace_id} not found", status_code=404)
        copy = self.add_workspace(new_name)
        for sheet_id in self.workspace_sheets[workspace_id]:
            source = self.sheets[sheet_id]
            self.add_sheet(copy.id, source.name, source.columns)
        return copy.model_copy()

    async def list_workspace_sheets(self, workspace_id: int) -> list[SheetRef]:
        self._record("list_workspace_sheets")
        if workspace_id not in self.workspaces:
            raise NotFoundError(f"Workspace {workspace_id} not found", status_code=404)
        return [
            SheetRef(id=s.id, name=s.name)
            for s in (self.sheets[i] for i in self.workspace_sheets[workspace_id])
        ]

    async def get_sheet(self, sheet_id: int) -> Sheet:
        self._record("get_sheet")
        return self._sheet(sheet_id).model_copy(deep=True)

    async def create_sheet_in_workspace(
        self, workspace_id: int, name: str, columns: list[Column]
    ) -> Sheet:
        self._record("create_sheet_in_workspace")
        if workspace_id not in self.workspaces:
            raise NotFoundError(f"Workspace {workspace_id} not found", status_code=404)
        return self.add_sheet(workspace_id, name, columns).model_copy(deep=True)

    async def add_columns(self, sheet_id: int, columns: list[dict[str, Any]]) -> list[Column]:
        self._record("add_columns")
        sheet = self._sheet(sheet_id)
        added = []
        for body in columns:
            column = Column.model_validate({**body, "id": self._new_id()})
            sheet.columns.insert(body.get("index", len(sheet.columns)), column)
            added.append(column.model_copy())
        for i, column in enumerate(sheet.columns):
            column.index = i
        return added

    async def update_column(
        self, sheet_id: int, column_id: int, changes: dict[str, Any]
    ) -> Column:
        self._record("update_column")
        sheet = self._sheet(sheet_id)
        column = next((c for c in sheet.columns if c.id == column_id), None)
        if column is None:
            raise NotFoundError(f"Column {column_id} not found", status_code=404)
        self.column_updates.append((sheet_id, column_id, changes))
        if "type" in changes:
            column.type = ColumnType(changes["type"])
        if "options" in changes:
            column.options = changes["options"]
        if "contactOptions" in changes:
            column.contact_options = changes["contactOptions"]
        return column.model_copy()

    async def add_rows(self, sheet_id: int, rows: list[Row]) -> list[Row]:
        self._record("add_rows")
        sheet = self._sheet(sheet_id)
        self.row_batches.append((sheet_id, rows))
        added = []
        for row in rows:
            stored = row.model_copy(deep=True, update={"id": self._new_id()})
            if row.parent_id is not None:
                # Last position among the parent's existing descendants
                position = max(
                    (i for i, r in enumerate(sheet.rows) if r.id == row.parent_id or
                     self._is_descendant(sheet, r, row.parent_id)),
                    default=len(sheet.rows) - 1,
                )
                sheet.rows.insert(position + 1, stored)
            else:
                sheet.rows.append(stored)
            added.append(stored.model_copy(deep=True))
        for i, r in enumerate(sheet.rows, start=1):
            r.row_number = i
        return added

    @staticmethod
    def _is_descendant(sheet: Sheet, row: Row, ancestor_id: int) -> bool:
        by_id = {r.id: r for r in sheet.rows}
        parent = row.parent_id
        while parent is not None:
            if parent == ancestor_id:
                return True
            parent = by_id[parent].parent_id if parent in by_id else None
        return False


async def _no_sleep(_: float) -> None:
    return None


# ==============================================================================
# Pipeline Fixtures
# ==============================================================================


@pytest.fixture(autouse=True)
def reset_config_cache():
    """Never leak a cached config between tests."""
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def fake_target():
    """Provide an empty in-memory target."""
    return FakeTargetClient()


@pytest.fixture
def executor():
    """Retry executor that never actually sleeps."""
    return RetryExecutor(RetryPolicy(max_attempts=3, initial_delay=0.01), sleep=_no_sleep)


@pytest.fixture
def reconciler(fake_target, executor):
    """Reconciler over the in-memory target."""
    return ResourceReconciler(fake_target, executor)


@pytest.fixture
def catalog_manager(reconciler):
    return ReferenceCatalogManager(reconciler)


@pytest.fixture
def registry(reconciler, catalog_manager):
    """Strategy registry that creates blank project workspaces."""
    return StrategyRegistry.default(reconciler, catalog_manager, template_workspace_id=0)


# ==============================================================================
# Source Data Fixtures
# ==============================================================================

PROJECT_ID = "5f3b6a0e-1c2d-4e5f-8a9b-0c1d2e3f4a5b"


@pytest.fixture
def sample_project():
    """Provide a valid project."""
    return Project(
        id=PROJECT_ID,
        name="Apollo Program",
        description="Lunar landing",
        owner="Gene Kranz",
        owner_email="gene@example.com",
        start_date="2024-01-08T08:00:00",
        finish_date="2024-06-28T17:00:00",
        created_date="2023-12-01T10:00:00Z",
        modified_date="2024-01-05T09:30:00Z",
        project_status="Active",
        priority=500,
        percent_complete=25,
    )


@pytest.fixture
def sample_resources():
    """One resource of each type."""
    return [
        Resource(
            id="r-work",
            name="Alice Chen",
            email="alice@example.com",
            resource_type="Work",
            max_units=1.0,
            standard_rate=85.0,
            department="Engineering",
        ),
        Resource(id="r-mat", name="Concrete", resource_type="Material", material_label="tons"),
        Resource(id="r-cost", name="Travel", resource_type="Cost"),
    ]


@pytest.fixture
def sample_tasks():
    """A summary task with two children, listed child-first."""
    return [
        Task(
            id="t-design",
            task_name="Design",
            parent_task_id="t-phase",
            task_index=2,
            outline_level=2,
            start="2024-01-08T08:00:00",
            finish="2024-01-12T17:00:00",
            duration="PT40H",
            work="PT40H",
            percent_complete=100,
            priority=500,
        ),
        Task(
            id="t-phase",
            task_name="Phase 1",
            task_index=1,
            outline_level=1,
            duration="P10D",
        ),
        Task(
            id="t-build",
            task_name="Build",
            parent_task_id="t-phase",
            task_index=3,
            outline_level=2,
            duration="P5D",
            predecessors=[{"PredecessorTaskId": "t-design", "DependencyType": 1}],
        ),
    ]


@pytest.fixture
def sample_assignments():
    return [
        Assignment(id="a-1", task_id="t-design", resource_id="r-work"),
    ]


@pytest.fixture
def project_data(sample_project, sample_tasks, sample_resources, sample_assignments):
    """Provide a complete, valid project extract."""
    return ProjectData(
        project=sample_project,
        tasks=sample_tasks,
        resources=sample_resources,
        assignments=sample_assignments,
    )


@pytest.fixture
def export_file(tmp_path: Path, project_data) -> Path:
    """Write project_data as an exported JSON document in OData casing."""
    document = {
        "project": project_data.project.model_dump(by_alias=True, exclude_none=True),
        "tasks": [t.model_dump(by_alias=True, exclude_none=True) for t in project_data.tasks],
        "resources": [
            r.model_dump(by_alias=True, exclude_none=True, mode="json")
            for r in project_data.resources
        ],
        "assignments": [
            a.model_dump(by_alias=True, exclude_none=True) for a in project_data.assignments
        ],
    }
    path = tmp_path / "export.json"
    path.write_text(json.dumps(document, indent=2))
    return path


# ==============================================================================
# Environment Fixtures
# ==============================================================================


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch):
    """
    Run with none of the recognized variables set and no .env files in reach.

    Variables are set then deleted so monkeypatch removes anything that
    load_layered_env writes during the test.
    """
    for key in [*ENV_VARS, "XDG_CONFIG_HOME"]:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)
    return tmp_path
