"""
Task -> Tasks sheet.

Covers the Tasks sheet schema, task validation, outline ordering, the plan
for hierarchical row writes, and predecessor rendering.

Ordering guarantees a parent is always emitted before its children, even
when the source lists a child first or the parent is missing from the
export (such a task is promoted to the top level).
"""

import logging
import re
from typing import Any

from pydantic import BaseModel, Field

from pomigrate.core.source.models import DependencyType, PredecessorLink, Task
from pomigrate.core.target.models import Cell, Column, ColumnType
from pomigrate.core.transform.utils import (
    HOURS_PER_DAY,
    ValidationResult,
    derive_status,
    duration_to_hours_string,
    format_number,
    format_percent,
    map_priority,
    parse_duration_hours,
    safe_convert_date,
    safe_duration_to_days,
)

logger = logging.getLogger(__name__)

TASKS_SHEET_SUFFIX = "Tasks"
TASK_PRIMARY_COLUMN = "Task Name"
TASK_SOURCE_ID_COLUMN = "Project Online Task ID"

TASK_COLUMNS: list[Column] = [
    Column(title=TASK_PRIMARY_COLUMN, type=ColumnType.TEXT_NUMBER, primary=True, width=300),
    Column(
        title=TASK_SOURCE_ID_COLUMN,
        type=ColumnType.TEXT_NUMBER,
        hidden=True,
        locked=True,
        width=150,
    ),
    Column(title="Start Date", type=ColumnType.DATE, width=120),
    Column(title="End Date", type=ColumnType.DATE, width=120),
    # Decimal working days
    Column(title="Duration", type=ColumnType.TEXT_NUMBER, width=80),
    Column(title="% Complete", type=ColumnType.TEXT_NUMBER, width=100),
    Column(title="Status", type=ColumnType.PICKLIST, width=120),
    Column(title="Priority", type=ColumnType.PICKLIST, width=120),
    Column(title="Work (hrs)", type=ColumnType.TEXT_NUMBER, width=100),
    Column(title="Actual Work (hrs)", type=ColumnType.TEXT_NUMBER, width=100),
    Column(title="Milestone", type=ColumnType.CHECKBOX, width=80),
    Column(title="Notes", type=ColumnType.TEXT_NUMBER, width=250),
    Column(title="Predecessors", type=ColumnType.PREDECESSOR, width=150),
    Column(title="Constraint Type", type=ColumnType.PICKLIST, width=120),
    Column(title="Constraint Date", type=ColumnType.DATE, width=120),
    Column(title="Deadline", type=ColumnType.DATE, width=120),
    Column(title="Late Start", type=ColumnType.DATE, width=120),
    Column(title="Late Finish", type=ColumnType.DATE, width=120),
    Column(title="Total Slack (days)", type=ColumnType.TEXT_NUMBER, width=120),
    Column(title="Free Slack (days)", type=ColumnType.TEXT_NUMBER, width=120),
    Column(title="Project Online Created Date", type=ColumnType.DATE, width=120),
    Column(title="Project Online Modified Date", type=ColumnType.DATE, width=120),
    Column(title="Work Resource", type=ColumnType.MULTI_CONTACT_LIST, width=200),
    Column(title="Material Resource", type=ColumnType.MULTI_PICKLIST, width=200),
    Column(title="Cost Resource", type=ColumnType.MULTI_PICKLIST, width=200),
]

# Task picklist column -> reference sheet
TASK_PICKLIST_BINDINGS: dict[str, str] = {
    "Status": "Task - Status",
    "Priority": "Task - Priority",
    "Constraint Type": "Task - Constraint Type",
}

_PREDECESSOR_PART = re.compile(
    r"^(?P<row>\d+)(?P<type>FS|SS|FF|SF)?(?P<lag>[+-]\d+(?:\.\d+)?[dwhm])?$",
    re.IGNORECASE,
)


class PredecessorSpec(BaseModel):
    """One parsed entry of a predecessor string such as ``"5FS+2d"``."""

    row_number: int
    type: DependencyType = DependencyType.FS
    lag: str | None = None


class TaskGroup(BaseModel):
    """Tasks written together: same depth, same parent."""

    depth: int
    parent_task_id: str | None = None
    tasks: list[Task] = Field(default_factory=list)


def validate_task(task: Task) -> ValidationResult:
    """A name is required; out-of-range priority or percent only warns."""
    result = ValidationResult()

    if not task.task_name or not task.task_name.strip():
        result.errors.append("Task Name is required")

    if task.priority is not None and not 0 <= task.priority <= 1000:
        result.warnings.append(f"Priority value {task.priority} is outside normal range (0-1000)")

    if task.percent_complete is not None and not 0 <= task.percent_complete <= 100:
        result.warnings.append(
            f"Percent Complete {task.percent_complete} is outside valid range (0-100)"
        )
    return result


def _children_by_parent(tasks: list[Task]) -> tuple[list[Task], dict[str, list[Task]]]:
    """Split sorted tasks into roots and a parent -> children index."""
    ids = {t.id for t in tasks}
    roots: list[Task] = []
    children: dict[str, list[Task]] = {}
    for task in tasks:
        parent = task.parent_task_id
        if parent and parent in ids and parent != task.id:
            children.setdefault(parent, []).append(task)
        else:
            if parent and parent not in ids:
                logger.debug(f"Task {task.id}: parent {parent} not found, placing at top level")
            roots.append(task)
    return roots, children


def order_tasks(tasks: list[Task]) -> list[Task]:
    """
    Flatten tasks into row order.

    Tasks are sorted by (TaskIndex, original position) and then walked
    depth-first from the roots, so every parent precedes its children and
    siblings keep their outline order.
    """
    ranked = sorted(enumerate(tasks), key=lambda pair: (pair[1].task_index, pair[0]))
    ordered_input = [task for _, task in ranked]
    roots, children = _children_by_parent(ordered_input)

    ordered: list[Task] = []
    visited: set[str] = set()

    def walk(task: Task) -> None:
        stack = [task]
        while stack:
            current = stack.pop()
            if current.id in visited:
                continue
            visited.add(current.id)
            ordered.append(current)
            stack.extend(reversed(children.get(current.id, [])))

    for root in roots:
        walk(root)

    # Parent cycles never reach a root; emit them at the top level
    for task in ordered_input:
        if task.id not in visited:
            logger.warning(f"Task {task.id} is part of a parent cycle, placing at top level")
            walk(task)

    return ordered


def plan_task_levels(tasks: list[Task]) -> list[TaskGroup]:
    """
    Group ordered tasks for hierarchical batch writes.

    Groups come out by depth (top level first), then in row order. Each
    group shares one parent, so it can be written with a single location.
    Tasks whose parent is not in the list count as top level.
    """
    ordered = order_tasks(tasks)
    ids = {t.id for t in ordered}
    depth: dict[str, int] = {}
    groups: dict[tuple[int, str | None], TaskGroup] = {}

    for task in ordered:
        parent = task.parent_task_id if task.parent_task_id in ids else None
        # Cycle members were emitted as roots
        if parent is not None and parent not in depth:
            parent = None
        level = depth[parent] + 1 if parent is not None else 0
        depth[task.id] = level

        key = (level, parent)
        if key not in groups:
            groups[key] = TaskGroup(depth=level, parent_task_id=parent)
        groups[key].tasks.append(task)

    return sorted(groups.values(), key=lambda g: g.depth)


def _lag_string(link: PredecessorLink) -> str | None:
    if not link.link_lag_duration:
        return None
    text = link.link_lag_duration.strip()
    negative = text.startswith("-") or (link.link_lag is not None and link.link_lag < 0)
    try:
        hours = parse_duration_hours(text.lstrip("-+"))
    except ValueError:
        logger.debug(f"Ignoring unparseable lag {link.link_lag_duration!r}")
        return None
    if hours == 0:
        return None

    if hours % HOURS_PER_DAY == 0:
        amount = f"{format_number(hours / HOURS_PER_DAY)}d"
    else:
        amount = f"{format_number(hours)}h"
    return f"{'-' if negative else '+'}{amount}"


def map_predecessors(links: list[PredecessorLink], row_numbers: dict[str, int]) -> str | None:
    """
    Render predecessor links in the target's syntax, e.g. ``"2FS+1d,3SS"``.

    Args:
        links: The task's predecessor links
        row_numbers: Task id -> 1-based row number in the flattened order

    Returns:
        The predecessor string, or None when no link resolves to a row
    """
    parts = []
    for link in links:
        row = row_numbers.get(link.predecessor_task_id)
        if row is None:
            logger.debug(f"Predecessor {link.predecessor_task_id} not in this project, skipping")
            continue
        lag = _lag_string(link) or ""
        parts.append(f"{row}{link.link_type.value}{lag}")
    return ",".join(parts) if parts else None


def parse_predecessor_string(value: str | None) -> list[PredecessorSpec]:
    """Parse ``"5FS+2d,8SS-1d,3"``. Unrecognized entries are skipped."""
    if not value or not value.strip():
        return []

    specs = []
    for part in value.split(","):
        match = _PREDECESSOR_PART.match(part.strip())
        if not match:
            logger.debug(f"Skipping unrecognized predecessor entry {part!r}")
            continue
        specs.append(
            PredecessorSpec(
                row_number=int(match.group("row")),
                type=DependencyType((match.group("type") or "FS").upper()),
                lag=match.group("lag"),
            )
        )
    return specs


def build_task_cells(
    task: Task,
    column_ids: dict[str, int],
    row_numbers: dict[str, int] | None = None,
    assignment_cells: list[Cell] | None = None,
) -> list[Cell]:
    """
    Build the cells of one task row.

    Args:
        task: Source task
        column_ids: Column title -> column id on the Tasks sheet
        row_numbers: Task id -> flattened row number, for predecessors
        assignment_cells: Pre-rendered Work/Material/Cost Resource cells
    """
    cells: list[Cell] = []

    def put(title: str, value: Any) -> None:
        if title in column_ids and value is not None and value != "":
            cells.append(Cell(column_id=column_ids[title], value=value))

    def hours(value: str | None) -> str | None:
        if not value:
            return None
        try:
            return duration_to_hours_string(value)
        except ValueError:
            logger.debug(f"Task {task.id}: unparseable work value {value!r}")
            return None

    put(TASK_PRIMARY_COLUMN, task.task_name)
    put(TASK_SOURCE_ID_COLUMN, task.id)
    put("Start Date", safe_convert_date(task.start))
    put("End Date", safe_convert_date(task.finish))
    put("Duration", safe_duration_to_days(task.duration))

    if task.percent_complete is not None:
        put("% Complete", format_percent(task.percent_complete))
        put("Status", derive_status(task.percent_complete))
    if task.priority is not None:
        put("Priority", map_priority(task.priority))

    put("Work (hrs)", hours(task.work))
    put("Actual Work (hrs)", hours(task.actual_work))
    put("Milestone", task.is_milestone)
    put("Notes", task.task_notes)

    if task.predecessors and row_numbers:
        put("Predecessors", map_predecessors(task.predecessors, row_numbers))

    put("Constraint Type", task.constraint_type)
    put("Constraint Date", safe_convert_date(task.constraint_date))
    put("Deadline", safe_convert_date(task.deadline))
    put("Late Start", safe_convert_date(task.latest_start))
    put("Late Finish", safe_convert_date(task.latest_finish))
    put("Total Slack (days)", safe_duration_to_days(task.total_slack))
    put("Free Slack (days)", safe_duration_to_days(task.free_slack))
    put("Project Online Created Date", safe_convert_date(task.created))
    put("Project Online Modified Date", safe_convert_date(task.modified))

    if assignment_cells:
        cells.extend(assignment_cells)
    return cells


__all__ = [
    "TASKS_SHEET_SUFFIX",
    "TASK_PRIMARY_COLUMN",
    "TASK_SOURCE_ID_COLUMN",
    "TASK_COLUMNS",
    "TASK_PICKLIST_BINDINGS",
    "PredecessorSpec",
    "TaskGroup",
    "validate_task",
    "order_tasks",
    "plan_task_levels",
    "map_predecessors",
    "parse_predecessor_string",
    "build_task_cells",
]
