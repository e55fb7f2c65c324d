"""
Reference catalog: the shared "PMO Standards" workspace.

The catalog holds one sheet per enumeration (status, priority, constraint
type, resource type). Project workspaces bind their picklist columns to
these sheets, so every project draws values from the same place.

The catalog is additive: values are appended when missing and are never
removed or reordered.

Example:
    >>> manager = ReferenceCatalogManager(reconciler)
    >>> catalog = await manager.ensure_catalog()
    >>> catalog.ref("Task - Status")
    CellLinkRef(sheet_id=..., column_id=...)
"""

import logging

from pydantic import BaseModel, Field

from pomigrate.core.exceptions import ConfigurationError, MigrationError, TargetAPIError
from pomigrate.core.reconcile import ResourceReconciler
from pomigrate.core.target.models import Cell, CellLinkRef, Column, ColumnType, Row

logger = logging.getLogger(__name__)

STANDARDS_WORKSPACE_NAME = "PMO Standards"

PRIORITY_LABELS = ["Lowest", "Very Low", "Lower", "Medium", "Higher", "Very High", "Highest"]

STANDARD_REFERENCE_SHEETS: dict[str, list[str]] = {
    "Project - Status": ["Active", "Planning", "Completed", "On Hold", "Cancelled"],
    "Project - Priority": PRIORITY_LABELS,
    "Task - Status": ["Not Started", "In Progress", "Complete"],
    "Task - Priority": PRIORITY_LABELS,
    "Task - Constraint Type": ["ASAP", "ALAP", "SNET", "SNLT", "FNET", "FNLT", "MSO", "MFO"],
    "Resource - Type": ["Work", "Material", "Cost"],
}

NAME_COLUMN = "Name"


class ReferenceSheet(BaseModel):
    """Identity and sync outcome of one reference sheet."""

    sheet_name: str
    sheet_id: int
    column_id: int
    values: list[str] = Field(default_factory=list)
    added_values: list[str] = Field(default_factory=list)
    failed_values: list[str] = Field(default_factory=list)
    created: bool = False

    @property
    def ref(self) -> CellLinkRef:
        return CellLinkRef(sheet_id=self.sheet_id, column_id=self.column_id)


class ReferenceCatalog(BaseModel):
    """The standards workspace and its reference sheets, by name."""

    workspace_id: int
    workspace_name: str
    permalink: str | None = None
    sheets: dict[str, ReferenceSheet] = Field(default_factory=dict)

    def ref(self, sheet_name: str) -> CellLinkRef:
        """
        Binding target for a reference sheet.

        Raises:
            ConfigurationError: If the catalog has no sheet with that name
        """
        sheet = self.sheets.get(sheet_name)
        if sheet is None:
            raise ConfigurationError(
                f"Unknown reference sheet: {sheet_name}",
                hint=f"Available: {', '.join(sorted(self.sheets)) or '(none)'}",
            )
        return sheet.ref

    @property
    def failed_values(self) -> dict[str, list[str]]:
        """Values that could not be written, per sheet."""
        return {name: s.failed_values for name, s in self.sheets.items() if s.failed_values}


class ReferenceCatalogManager:
    """Creates and tops up the reference catalog."""

    def __init__(
        self,
        reconciler: ResourceReconciler,
        sheets: dict[str, list[str]] | None = None,
        workspace_name: str = STANDARDS_WORKSPACE_NAME,
    ) -> None:
        self.reconciler = reconciler
        self.sheets = sheets if sheets is not None else STANDARD_REFERENCE_SHEETS
        self.workspace_name = workspace_name

    async def _add_values(
        self, sheet_id: int, column_id: int, values: list[str]
    ) -> tuple[list[str], list[str]]:
        """Append values as rows. Returns (added, failed)."""
        if not values:
            return [], []

        def row(value: str) -> Row:
            return Row(to_bottom=True, cells=[Cell(column_id=column_id, value=value)])

        try:
            await self.reconciler.add_rows(
                sheet_id, [row(v) for v in values], batch_size=len(values)
            )
            return list(values), []
        except MigrationError as e:
            logger.warning(
                f"Batch add to sheet {sheet_id} failed, falling back to row-by-row: {e}"
            )

        added: list[str] = []
        failed: list[str] = []
        for value in values:
            try:
                await self.reconciler.add_rows(sheet_id, [row(value)])
                added.append(value)
            except MigrationError as e:
                logger.error(f"Could not add value '{value}' to sheet {sheet_id}: {e}")
                failed.append(value)
        return added, failed

    async def ensure_standard_sheet(
        self, workspace_id: int, name: str, values: list[str]
    ) -> ReferenceSheet:
        """
        Make sure a reference sheet exists and holds every value.

        An existing sheet only gets the values it is missing, appended in
        the given order. A new sheet is created with a single primary
        "Name" column and all values.
        """
        ref = await self.reconciler.find_sheet_in_workspace(workspace_id, name)

        if ref is not None:
            sheet = await self.reconciler.get_sheet(ref.id)
            column = sheet.column(NAME_COLUMN) or sheet.primary_column
            if column is None or column.id is None:
                raise TargetAPIError(
                    f"Name column not found in existing sheet: {name}",
                    hint=f"Restore the primary '{NAME_COLUMN}' column or delete the sheet",
                )

            present = {str(v) for v in sheet.column_values(column.id)}
            missing = [v for v in values if v not in present]
            if missing:
                logger.info(f"Adding {len(missing)} missing value(s) to {name}")
            else:
                logger.debug(f"All values already present in {name}")

            added, failed = await self._add_values(sheet.id, column.id, missing)
            return ReferenceSheet(
                sheet_name=sheet.name,
                sheet_id=sheet.id,
                column_id=column.id,
                values=list(values),
                added_values=added,
                failed_values=failed,
            )

        logger.info(f"Creating reference sheet: {name}")
        result = await self.reconciler.get_or_create_sheet(
            workspace_id,
            name,
            [Column(title=NAME_COLUMN, type=ColumnType.TEXT_NUMBER, primary=True)],
        )
        sheet = result.item
        column = sheet.column(NAME_COLUMN) or sheet.primary_column
        if column is None or column.id is None:
            raise TargetAPIError(f"Created sheet {name} has no primary column")

        added, failed = await self._add_values(sheet.id, column.id, list(values))
        return ReferenceSheet(
            sheet_name=sheet.name,
            sheet_id=sheet.id,
            column_id=column.id,
            values=list(values),
            added_values=added,
            failed_values=failed,
            created=True,
        )

    async def ensure_catalog(self, existing_workspace_id: int | None = None) -> ReferenceCatalog:
        """
        Ensure the standards workspace and every standard sheet.

        Args:
            existing_workspace_id: Reuse this workspace instead of looking
                one up by name

        Raises:
            ConfigurationError: If ``existing_workspace_id`` does not exist
        """
        if existing_workspace_id:
            workspace = await self.reconciler.get_workspace(existing_workspace_id)
            if workspace is None:
                raise ConfigurationError.for_setting(
                    "PMO_STANDARDS_WORKSPACE_ID",
                    f"points to workspace {existing_workspace_id}, which does not exist",
                )
            logger.info(f"Using configured standards workspace: {workspace.name}")
        else:
            workspace = (await self.reconciler.get_or_create_workspace(self.workspace_name)).item

        catalog = ReferenceCatalog(
            workspace_id=workspace.id,
            workspace_name=workspace.name,
            permalink=workspace.permalink,
        )
        for name, values in self.sheets.items():
            catalog.sheets[name] = await self.ensure_standard_sheet(workspace.id, name, values)

        if catalog.failed_values:
            logger.warning(f"Some catalog values could not be written: {catalog.failed_values}")
        return catalog


__all__ = [
    "STANDARDS_WORKSPACE_NAME",
    "STANDARD_REFERENCE_SHEETS",
    "PRIORITY_LABELS",
    "ReferenceSheet",
    "ReferenceCatalog",
    "ReferenceCatalogManager",
]
