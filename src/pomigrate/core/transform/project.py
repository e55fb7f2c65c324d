"""
Project -> Summary sheet.

The summary sheet holds one row per project. Its last four columns are
system columns that the target fills in itself.
"""

from pomigrate.core.source.models import Project
from pomigrate.core.target.models import SYSTEM_COLUMN_TYPES, Cell, Column, ColumnType, Row
from pomigrate.core.transform.utils import (
    ValidationResult,
    create_contact,
    format_percent,
    map_priority,
    safe_convert_date,
)

SUMMARY_SHEET_SUFFIX = "Summary"
SUMMARY_PRIMARY_COLUMN = "Project Name"
PROJECT_SOURCE_ID_COLUMN = "Project Online Project ID"

PROJECT_SUMMARY_COLUMNS: list[Column] = [
    Column(
        title=PROJECT_SOURCE_ID_COLUMN,
        type=ColumnType.TEXT_NUMBER,
        width=150,
        hidden=True,
        locked=True,
    ),
    Column(title=SUMMARY_PRIMARY_COLUMN, type=ColumnType.TEXT_NUMBER, primary=True, width=200),
    Column(title="Description", type=ColumnType.TEXT_NUMBER, width=300),
    Column(title="Owner", type=ColumnType.CONTACT_LIST, width=150),
    Column(title="Start Date", type=ColumnType.DATE, width=120),
    Column(title="Finish Date", type=ColumnType.DATE, width=120),
    Column(title="Status", type=ColumnType.PICKLIST, width=120),
    Column(title="Priority", type=ColumnType.PICKLIST, width=120),
    Column(title="% Complete", type=ColumnType.TEXT_NUMBER, width=100),
    Column(title="Project Online Created Date", type=ColumnType.DATE, width=120),
    Column(title="Project Online Modified Date", type=ColumnType.DATE, width=120),
    Column(title="Created Date", type=ColumnType.CREATED_DATE, width=120),
    Column(title="Modified Date", type=ColumnType.MODIFIED_DATE, width=120),
    Column(title="Created By", type=ColumnType.CREATED_BY, width=150),
    Column(title="Modified By", type=ColumnType.MODIFIED_BY, width=150),
]

# Not added through the column API
SUMMARY_SYSTEM_TYPES = SYSTEM_COLUMN_TYPES

# Summary picklist column -> reference sheet
SUMMARY_PICKLIST_BINDINGS: dict[str, str] = {
    "Status": "Project - Status",
    "Priority": "Project - Priority",
}


def summary_columns_to_add() -> list[Column]:
    """Summary columns other than the system-generated ones."""
    return [c for c in PROJECT_SUMMARY_COLUMNS if c.type not in SUMMARY_SYSTEM_TYPES]


def validate_project(project: Project) -> ValidationResult:
    """
    Check a project has what the load needs.

    Id, Name, CreatedDate and ModifiedDate are required. A missing owner or
    date range only warns.
    """
    result = ValidationResult()

    if not project.id or not project.id.strip():
        result.errors.append("Project Id is required")
    if not project.name or not project.name.strip():
        result.errors.append("Project Name is required")
    if not project.created_date:
        result.errors.append("Project CreatedDate is required")
    if not project.modified_date:
        result.errors.append("Project ModifiedDate is required")

    if not project.owner and not project.owner_email:
        result.warnings.append("Project has no owner")
    if not project.start_date:
        result.warnings.append("Project has no start date")
    if not project.finish_date:
        result.warnings.append("Project has no finish date")

    if project.priority is not None and not 0 <= project.priority <= 1000:
        result.warnings.append(
            f"Priority value {project.priority} is outside normal range (0-1000)"
        )
    if project.percent_complete is not None and not 0 <= project.percent_complete <= 100:
        result.warnings.append(
            f"Percent Complete {project.percent_complete} is outside valid range (0-100)"
        )
    return result


def build_summary_row(project: Project, column_ids: dict[str, int]) -> Row:
    """Build the single summary row for a project."""
    cells: list[Cell] = []

    def put(title: str, value: object) -> None:
        if title in column_ids and value is not None and value != "":
            cells.append(Cell(column_id=column_ids[title], value=value))

    put(PROJECT_SOURCE_ID_COLUMN, project.id)
    put(SUMMARY_PRIMARY_COLUMN, project.name)
    put("Description", project.description)

    owner = create_contact(project.owner, project.owner_email)
    if owner is not None and "Owner" in column_ids:
        cells.append(Cell(column_id=column_ids["Owner"], object_value=owner.to_api()))

    put("Start Date", safe_convert_date(project.start_date))
    put("Finish Date", safe_convert_date(project.finish_date))
    put("Status", project.project_status)
    if project.priority is not None:
        put("Priority", map_priority(project.priority))
    if project.percent_complete is not None:
        put("% Complete", format_percent(project.percent_complete))
    put("Project Online Created Date", safe_convert_date(project.created_date))
    put("Project Online Modified Date", safe_convert_date(project.modified_date))

    return Row(to_bottom=True, cells=cells)


__all__ = [
    "SUMMARY_SHEET_SUFFIX",
    "SUMMARY_PRIMARY_COLUMN",
    "PROJECT_SOURCE_ID_COLUMN",
    "PROJECT_SUMMARY_COLUMNS",
    "SUMMARY_SYSTEM_TYPES",
    "SUMMARY_PICKLIST_BINDINGS",
    "summary_columns_to_add",
    "validate_project",
    "build_summary_row",
]
