"""
Resource -> Resources sheet.

Each resource type lands in its own column: Work resources as a contact in
"Team Members", Material resources as text in "Materials", Cost resources
as text in "Cost Resources". Task assignment columns draw their options
from these three columns.
"""

from pomigrate.core.source.models import Resource, ResourceType
from pomigrate.core.target.models import Cell, Column, ColumnType, Row
from pomigrate.core.transform.utils import (
    ValidationResult,
    convert_max_units,
    create_contact,
    safe_convert_date,
)

RESOURCES_SHEET_SUFFIX = "Resources"
RESOURCE_PRIMARY_COLUMN = "Resource Name"
RESOURCE_SOURCE_ID_COLUMN = "Project Online Resource ID"
RESOURCE_TYPE_COLUMN = "Resource Type"

# Resource type -> Resources sheet column holding that kind of resource
RESOURCE_TYPE_COLUMNS: dict[ResourceType, str] = {
    ResourceType.WORK: "Team Members",
    ResourceType.MATERIAL: "Materials",
    ResourceType.COST: "Cost Resources",
}

RESOURCE_COLUMNS: list[Column] = [
    Column(title=RESOURCE_PRIMARY_COLUMN, type=ColumnType.TEXT_NUMBER, primary=True, width=200),
    Column(
        title=RESOURCE_SOURCE_ID_COLUMN,
        type=ColumnType.TEXT_NUMBER,
        width=150,
        hidden=True,
        locked=True,
    ),
    Column(title="Team Members", type=ColumnType.CONTACT_LIST, width=200),
    Column(title="Materials", type=ColumnType.TEXT_NUMBER, width=200),
    Column(title="Cost Resources", type=ColumnType.TEXT_NUMBER, width=200),
    Column(title=RESOURCE_TYPE_COLUMN, type=ColumnType.PICKLIST, width=120),
    Column(title="Max Units", type=ColumnType.TEXT_NUMBER, width=100),
    Column(title="Standard Rate", type=ColumnType.TEXT_NUMBER, width=120),
    Column(title="Overtime Rate", type=ColumnType.TEXT_NUMBER, width=120),
    Column(title="Cost Per Use", type=ColumnType.TEXT_NUMBER, width=120),
    Column(title="Department", type=ColumnType.PICKLIST, width=150),
    Column(title="Code", type=ColumnType.TEXT_NUMBER, width=100),
    Column(title="Is Active", type=ColumnType.CHECKBOX, width=80),
    Column(title="Is Generic", type=ColumnType.CHECKBOX, width=80),
    Column(title="Project Online Created Date", type=ColumnType.DATE, width=120),
    Column(title="Project Online Modified Date", type=ColumnType.DATE, width=120),
]

RESOURCE_PICKLIST_BINDINGS: dict[str, str] = {
    RESOURCE_TYPE_COLUMN: "Resource - Type",
}


def resource_columns(departments: list[str] | None = None) -> list[Column]:
    """RESOURCE_COLUMNS, with Department options filled in when known."""
    if not departments:
        return list(RESOURCE_COLUMNS)
    return [
        c.model_copy(update={"options": list(departments)}) if c.title == "Department" else c
        for c in RESOURCE_COLUMNS
    ]


def infer_resource_type(resource: Resource) -> ResourceType:
    """
    Resolve a resource's type.

    In order: the explicit ResourceType; a non-blank MaterialLabel means
    Material; no Email and no CanLevel means Cost; otherwise Work.
    """
    if resource.resource_type is not None:
        return resource.resource_type
    if resource.material_label and resource.material_label.strip():
        return ResourceType.MATERIAL
    if not resource.email and not resource.can_level:
        return ResourceType.COST
    return ResourceType.WORK


def validate_resource(resource: Resource) -> ValidationResult:
    result = ValidationResult()

    if not resource.id or not resource.id.strip():
        result.errors.append("Resource Id is required")
    if not resource.name or not resource.name.strip():
        result.errors.append("Resource Name is required")

    if infer_resource_type(resource) == ResourceType.WORK and not resource.email:
        result.warnings.append(f"Work resource '{resource.name}' has no email address")
    if resource.max_units is not None and resource.max_units > 1:
        result.warnings.append(
            f"Max Units {convert_max_units(resource.max_units)} exceeds 100% for '{resource.name}'"
        )
    for label, rate in (
        ("Standard Rate", resource.standard_rate),
        ("Overtime Rate", resource.overtime_rate),
        ("Cost Per Use", resource.cost_per_use),
    ):
        if rate is not None and rate < 0:
            result.warnings.append(f"{label} {rate} is negative for '{resource.name}'")
    return result


def build_resource_cells(resource: Resource, column_ids: dict[str, int]) -> list[Cell]:
    """Build the cells of one Resources sheet row."""
    cells: list[Cell] = []
    resource_type = infer_resource_type(resource)

    def put(title: str, value: object) -> None:
        if title in column_ids and value is not None and value != "":
            cells.append(Cell(column_id=column_ids[title], value=value))

    put(RESOURCE_PRIMARY_COLUMN, resource.name)
    put(RESOURCE_SOURCE_ID_COLUMN, resource.id)

    type_column = RESOURCE_TYPE_COLUMNS[resource_type]
    if resource_type == ResourceType.WORK:
        contact = create_contact(resource.name, resource.email)
        if contact is not None and type_column in column_ids:
            cells.append(Cell(column_id=column_ids[type_column], object_value=contact.to_api()))
    else:
        put(type_column, resource.name)

    put(RESOURCE_TYPE_COLUMN, resource_type.value)
    if resource.max_units is not None:
        put("Max Units", convert_max_units(resource.max_units))
    put("Standard Rate", resource.standard_rate)
    put("Overtime Rate", resource.overtime_rate)
    put("Cost Per Use", resource.cost_per_use)
    put("Department", resource.department)
    put("Code", resource.code)
    put("Is Active", resource.is_active)
    put("Is Generic", resource.is_generic)
    put("Project Online Created Date", safe_convert_date(resource.created))
    put("Project Online Modified Date", safe_convert_date(resource.modified))
    return cells


def build_resource_row(resource: Resource, column_ids: dict[str, int]) -> Row:
    return Row(to_bottom=True, cells=build_resource_cells(resource, column_ids))


def discover_departments(resources: list[Resource]) -> list[str]:
    """Distinct non-blank departments, sorted."""
    return sorted({r.department.strip() for r in resources if (r.department or "").strip()})


__all__ = [
    "RESOURCES_SHEET_SUFFIX",
    "RESOURCE_PRIMARY_COLUMN",
    "RESOURCE_SOURCE_ID_COLUMN",
    "RESOURCE_TYPE_COLUMN",
    "RESOURCE_TYPE_COLUMNS",
    "RESOURCE_COLUMNS",
    "RESOURCE_PICKLIST_BINDINGS",
    "resource_columns",
    "infer_resource_type",
    "validate_resource",
    "build_resource_cells",
    "build_resource_row",
    "discover_departments",
]
