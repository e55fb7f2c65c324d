"""
Target system: data models and the API client.
"""

from pomigrate.core.target.client import HttpTargetClient, TargetClient
from pomigrate.core.target.models import (
    Cell,
    CellLinkRef,
    Column,
    ColumnResult,
    ColumnType,
    Contact,
    Reconciled,
    ReconcileStatus,
    Row,
    Sheet,
    SheetRef,
    Workspace,
)

__all__ = [
    "TargetClient",
    "HttpTargetClient",
    "Cell",
    "CellLinkRef",
    "Column",
    "ColumnResult",
    "ColumnType",
    "Contact",
    "Reconciled",
    "ReconcileStatus",
    "Row",
    "Sheet",
    "SheetRef",
    "Workspace",
]
