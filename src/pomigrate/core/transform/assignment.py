"""
Assignment -> task row cells.

A task's assignments are split by resource type into three columns:

- Work Resource: MULTI_CONTACT_LIST cell with one contact per person
- Material Resource: MULTI_PICKLIST cell with resource names
- Cost Resource: MULTI_PICKLIST cell with resource names

``column_family`` is the only place that decides which shape a resource
type gets. Everything that renders or configures assignment columns goes
through it.
"""

import logging
from typing import Any

from pomigrate.core.source.models import Assignment, Resource, ResourceType
from pomigrate.core.target.models import Cell, ColumnType
from pomigrate.core.transform.resource import RESOURCE_TYPE_COLUMNS, infer_resource_type
from pomigrate.core.transform.utils import create_contact

logger = logging.getLogger(__name__)

ASSIGNMENT_COLUMNS: dict[ResourceType, str] = {
    ResourceType.WORK: "Work Resource",
    ResourceType.MATERIAL: "Material Resource",
    ResourceType.COST: "Cost Resource",
}


def column_family(resource_type: ResourceType) -> ColumnType:
    """Work -> MULTI_CONTACT_LIST; Material and Cost -> MULTI_PICKLIST."""
    if resource_type == ResourceType.WORK:
        return ColumnType.MULTI_CONTACT_LIST
    return ColumnType.MULTI_PICKLIST


def assignment_column_sources() -> dict[str, tuple[str, ColumnType]]:
    """
    Which Resources sheet column feeds each Tasks assignment column.

    Returns:
        Assignment column title -> (Resources column title, column family)
    """
    return {
        ASSIGNMENT_COLUMNS[rt]: (RESOURCE_TYPE_COLUMNS[rt], column_family(rt))
        for rt in ResourceType
    }


def _render_values(family: ColumnType, resources: list[Resource]) -> dict[str, Any] | None:
    if family == ColumnType.MULTI_CONTACT_LIST:
        contacts: list[dict[str, Any]] = []
        seen: set[tuple[str | None, str | None]] = set()
        for resource in resources:
            contact = create_contact(resource.name, resource.email)
            if contact is None:
                continue
            key = (contact.name, (contact.email or "").lower() or None)
            if key in seen:
                continue
            seen.add(key)
            contacts.append(contact.to_api())
        if not contacts:
            return None
        return {"objectType": "MULTI_CONTACT", "values": contacts}

    names: list[str] = []
    for resource in resources:
        name = (resource.name or "").strip()
        if name and name not in names:
            names.append(name)
    if not names:
        return None
    return {"objectType": "MULTI_PICKLIST", "values": names}


def render_assignment_cells(
    assignments: list[Assignment],
    resources_by_id: dict[str, Resource],
    column_ids: dict[str, int],
) -> list[Cell]:
    """
    Render one task's assignments into its assignment cells.

    Duplicates are dropped and first-seen order is kept. Assignments whose
    resource is unknown are skipped. A column with nothing to show gets no
    cell at all.

    Args:
        assignments: Assignments of a single task
        resources_by_id: Resource lookup
        column_ids: Column title -> column id on the Tasks sheet

    Returns:
        At most one cell per assignment column
    """
    by_type: dict[ResourceType, list[Resource]] = {rt: [] for rt in ResourceType}
    for assignment in assignments:
        resource = resources_by_id.get(assignment.resource_id)
        if resource is None:
            logger.debug(
                f"Assignment {assignment.id}: resource {assignment.resource_id} not found"
            )
            continue
        by_type[infer_resource_type(resource)].append(resource)

    cells: list[Cell] = []
    for resource_type, resources in by_type.items():
        title = ASSIGNMENT_COLUMNS[resource_type]
        if not resources or title not in column_ids:
            continue
        value = _render_values(column_family(resource_type), resources)
        if value is not None:
            cells.append(Cell(column_id=column_ids[title], object_value=value))
    return cells


def group_assignments_by_task(assignments: list[Assignment]) -> dict[str, list[Assignment]]:
    grouped: dict[str, list[Assignment]] = {}
    for assignment in assignments:
        grouped.setdefault(assignment.task_id, []).append(assignment)
    return grouped


__all__ = [
    "ASSIGNMENT_COLUMNS",
    "column_family",
    "assignment_column_sources",
    "render_assignment_cells",
    "group_assignments_by_task",
]
