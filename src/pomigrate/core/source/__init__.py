"""
Source system: Project Online models and readers.
"""

from pomigrate.core.source.client import JsonFileSource, ODataSourceClient, SourceClient
from pomigrate.core.source.models import (
    Assignment,
    DependencyType,
    PredecessorLink,
    Project,
    ProjectData,
    Resource,
    ResourceType,
    Task,
)

__all__ = [
    "SourceClient",
    "ODataSourceClient",
    "JsonFileSource",
    "Assignment",
    "DependencyType",
    "PredecessorLink",
    "Project",
    "ProjectData",
    "Resource",
    "ResourceType",
    "Task",
]
