"""
Entity transformers: pure mappings from source entities to target rows.

Modules:
    utils: Name, date, duration, priority and contact conversions
    project: Project -> Summary sheet
    task: Task -> Tasks sheet, ordering and predecessors
    resource: Resource -> Resources sheet
    assignment: Assignment -> task assignment cells
"""

from pomigrate.core.transform.assignment import (
    ASSIGNMENT_COLUMNS,
    column_family,
    render_assignment_cells,
)
from pomigrate.core.transform.resource import infer_resource_type
from pomigrate.core.transform.task import order_tasks, plan_task_levels
from pomigrate.core.transform.utils import (
    ValidationResult,
    convert_date,
    derive_status,
    duration_to_days,
    duration_to_hours_string,
    map_priority,
    sanitize_workspace_name,
)

__all__ = [
    "ASSIGNMENT_COLUMNS",
    "column_family",
    "render_assignment_cells",
    "infer_resource_type",
    "order_tasks",
    "plan_task_levels",
    "ValidationResult",
    "convert_date",
    "derive_status",
    "duration_to_days",
    "duration_to_hours_string",
    "map_priority",
    "sanitize_workspace_name",
]
