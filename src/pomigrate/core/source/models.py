"""
Source system models.

Pydantic models for Project Online entities. Fields accept the OData
PascalCase names as aliases as well as the Python names, and unknown
fields (``__metadata``, navigation links, custom fields) are ignored.

Dates and durations are kept as the raw ISO 8601 strings the source
returns; conversion happens in the transform layer.
"""

from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
)


class ResourceType(str, Enum):
    """Resource type tag. Decides which assignment column family is used."""

    WORK = "Work"
    MATERIAL = "Material"
    COST = "Cost"


class DependencyType(str, Enum):
    """Predecessor link type, as written in the target's predecessor syntax."""

    FF = "FF"
    FS = "FS"
    SF = "SF"
    SS = "SS"

    @classmethod
    def from_code(cls, code: int | None) -> "DependencyType":
        """Map the source's numeric DependencyType (0-3). Unknown codes are FS."""
        return _DEPENDENCY_CODES.get(code, cls.FS) if code is not None else cls.FS


_DEPENDENCY_CODES = {
    0: DependencyType.FF,
    1: DependencyType.FS,
    2: DependencyType.SF,
    3: DependencyType.SS,
}


class SourceModel(BaseModel):
    """Base for source models."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _unwrap_results(value: Any) -> Any:
    # Verbose OData nests collections as {"results": [...]}
    if isinstance(value, dict):
        return value.get("results", [])
    return value if value is not None else []


class Project(SourceModel):
    """A Project Online project."""

    id: str | None = Field(default=None, alias="Id")
    name: str | None = Field(default=None, alias="Name")
    description: str | None = Field(default=None, alias="Description")
    owner: str | None = Field(default=None, alias="Owner")
    owner_email: str | None = Field(default=None, alias="OwnerEmail")
    start_date: str | None = Field(default=None, alias="StartDate")
    finish_date: str | None = Field(default=None, alias="FinishDate")
    created_date: str | None = Field(default=None, alias="CreatedDate")
    modified_date: str | None = Field(default=None, alias="ModifiedDate")
    project_status: str | None = Field(default=None, alias="ProjectStatus")
    priority: int | None = Field(default=None, alias="Priority")
    percent_complete: float | None = Field(default=None, alias="PercentComplete")


class PredecessorLink(SourceModel):
    """A dependency on another task of the same project."""

    predecessor_task_id: str = Field(alias="PredecessorTaskId")
    dependency_type: int | None = Field(default=None, alias="DependencyType")
    link_lag: float | None = Field(default=None, alias="LinkLag")
    link_lag_duration: str | None = Field(default=None, alias="LinkLagDuration")

    @property
    def link_type(self) -> DependencyType:
        return DependencyType.from_code(self.dependency_type)


class Task(SourceModel):
    """
    A Project Online task.

    ``outline_level`` 1 is the top level. ``task_index`` is the task's
    position in the project outline.
    """

    id: str = Field(alias="Id")
    project_id: str | None = Field(default=None, alias="ProjectId")
    task_name: str | None = Field(
        default=None, validation_alias=AliasChoices("TaskName", "Name", "task_name")
    )
    parent_task_id: str | None = Field(default=None, alias="ParentTaskId")
    task_index: int = Field(default=0, alias="TaskIndex")
    outline_level: int = Field(default=1, alias="OutlineLevel")
    start: str | None = Field(default=None, alias="Start")
    finish: str | None = Field(default=None, alias="Finish")
    duration: str | None = Field(default=None, alias="Duration")
    work: str | None = Field(default=None, alias="Work")
    actual_work: str | None = Field(default=None, alias="ActualWork")
    percent_complete: float | None = Field(default=None, alias="PercentComplete")
    priority: int | None = Field(default=None, alias="Priority")
    is_milestone: bool = Field(default=False, alias="IsMilestone")
    task_notes: str | None = Field(default=None, alias="TaskNotes")
    constraint_type: str | None = Field(default=None, alias="ConstraintType")
    constraint_date: str | None = Field(default=None, alias="ConstraintDate")
    deadline: str | None = Field(default=None, alias="Deadline")
    latest_start: str | None = Field(default=None, alias="LatestStart")
    latest_finish: str | None = Field(default=None, alias="LatestFinish")
    total_slack: str | None = Field(default=None, alias="TotalSlack")
    free_slack: str | None = Field(default=None, alias="FreeSlack")
    created: str | None = Field(
        default=None, validation_alias=AliasChoices("Created", "CreatedDate", "created")
    )
    modified: str | None = Field(
        default=None, validation_alias=AliasChoices("Modified", "ModifiedDate", "modified")
    )
    predecessors: list[PredecessorLink] = Field(default_factory=list, alias="Predecessors")

    @field_validator("predecessors", mode="before")
    @classmethod
    def unwrap_predecessors(cls, v: Any) -> Any:
        return _unwrap_results(v)

    @field_validator("is_milestone", mode="before")
    @classmethod
    def none_is_false(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("outline_level", mode="before")
    @classmethod
    def default_outline_level(cls, v: Any) -> Any:
        # Some exports use 0 for the root; both mean top level
        if v is None or v == 0:
            return 1
        return v

    @field_validator("task_index", mode="before")
    @classmethod
    def default_task_index(cls, v: Any) -> Any:
        return 0 if v is None else v


class Resource(SourceModel):
    """A Project Online enterprise resource."""

    id: str | None = Field(default=None, alias="Id")
    name: str | None = Field(default=None, alias="Name")
    email: str | None = Field(default=None, alias="Email")
    resource_type: ResourceType | None = Field(default=None, alias="ResourceType")
    material_label: str | None = Field(default=None, alias="MaterialLabel")
    can_level: bool | None = Field(default=None, alias="CanLevel")
    max_units: float | None = Field(default=None, alias="MaxUnits")
    standard_rate: float | None = Field(default=None, alias="StandardRate")
    overtime_rate: float | None = Field(default=None, alias="OvertimeRate")
    cost_per_use: float | None = Field(default=None, alias="CostPerUse")
    department: str | None = Field(
        default=None, validation_alias=AliasChoices("Department", "Group", "department")
    )
    code: str | None = Field(default=None, alias="Code")
    is_active: bool = Field(default=True, alias="IsActive")
    is_generic: bool = Field(default=False, alias="IsGeneric")
    created: str | None = Field(
        default=None, validation_alias=AliasChoices("Created", "CreatedDate", "created")
    )
    modified: str | None = Field(
        default=None, validation_alias=AliasChoices("Modified", "ModifiedDate", "modified")
    )

    @field_validator("resource_type", mode="before")
    @classmethod
    def normalize_resource_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
            for member in ResourceType:
                if member.value.lower() == v.lower():
                    return member
        return v

    @field_validator("is_active", "is_generic", mode="before")
    @classmethod
    def none_is_default(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return info.field_name == "is_active"
        return v


class Assignment(SourceModel):
    """Links one task to one resource."""

    id: str | None = Field(default=None, alias="Id")
    task_id: str = Field(alias="TaskId")
    resource_id: str = Field(alias="ResourceId")
    project_id: str | None = Field(default=None, alias="ProjectId")
    work: str | None = Field(default=None, alias="Work")
    units: float | None = Field(default=None, alias="Units")
    cost: float | None = Field(default=None, alias="Cost")


class ProjectData(BaseModel):
    """Everything extracted for one project."""

    project: Project
    tasks: list[Task] = Field(default_factory=list)
    resources: list[Resource] = Field(default_factory=list)
    assignments: list[Assignment] = Field(default_factory=list)

    @property
    def resources_by_id(self) -> dict[str, Resource]:
        return {r.id: r for r in self.resources if r.id}

    def summary(self) -> dict[str, int]:
        """Entity counts, for display."""
        return {
            "tasks": len(self.tasks),
            "resources": len(self.resources),
            "assignments": len(self.assignments),
        }


__all__ = [
    "ResourceType",
    "DependencyType",
    "Project",
    "PredecessorLink",
    "Task",
    "Resource",
    "Assignment",
    "ProjectData",
]
