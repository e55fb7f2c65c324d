"""
Idempotent get-or-create primitives for target containers.

Every method looks a container up by exact name before creating it, so a
re-run finds what an earlier (possibly partial) run left behind. All remote
calls go through the RetryExecutor; lookups of just-created containers also
retry a transient 404.

Example:
    >>> reconciler = ResourceReconciler(client, RetryExecutor())
    >>> result = await reconciler.get_or_create_sheet(ws_id, "Apollo - Tasks", columns)
    >>> result.created
    False
"""

import logging
from typing import Any

from pomigrate.core.exceptions import NotFoundError, TargetAPIError
from pomigrate.core.retry import RetryExecutor, retry_not_found
from pomigrate.core.target.client import TargetClient
from pomigrate.core.target.models import (
    CellLinkRef,
    Column,
    ColumnResult,
    ColumnType,
    Reconciled,
    Row,
    Sheet,
    SheetRef,
    Workspace,
)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


class ResourceReconciler:
    """
    Find-or-create operations for workspaces, sheets, columns and rows.

    Name matching is exact. Create races are not handled here: a conflict
    from the API propagates, and the next run finds the container.
    """

    def __init__(self, client: TargetClient, executor: RetryExecutor) -> None:
        self.client = client
        self.executor = executor

    # Workspaces

    async def get_workspace(self, workspace_id: int) -> Workspace | None:
        """Fetch a workspace by id, or None if it does not exist."""
        try:
            return await self.executor.execute(
                lambda: self.client.get_workspace(workspace_id),
                description=f"get workspace {workspace_id}",
            )
        except NotFoundError:
            logger.debug(f"Workspace {workspace_id} not found")
            return None

    async def find_workspace(self, name: str) -> Workspace | None:
        """Find a workspace by exact name."""
        workspaces = await self.executor.execute(
            self.client.list_workspaces, description="list workspaces"
        )
        return next((ws for ws in workspaces if ws.name == name), None)

    async def create_workspace(self, name: str) -> Workspace:
        workspace = await self.executor.execute(
            lambda: self.client.create_workspace(name),
            description=f"create workspace '{name}'",
        )
        logger.info(f"Created workspace: {workspace.name} (ID: {workspace.id})")
        return workspace

    async def get_or_create_workspace(self, name: str) -> Reconciled[Workspace]:
        existing = await self.find_workspace(name)
        if existing is not None:
            logger.info(f"Using existing workspace: {existing.name} (ID: {existing.id})")
            return Reconciled.existing(existing)
        return Reconciled.new(await self.create_workspace(name))

    async def copy_workspace(self, template_id: int, name: str) -> Workspace:
        """Copy a template workspace with all of its sheets."""
        workspace = await self.executor.execute(
            lambda: self.client.copy_workspace(template_id, name),
            description=f"copy workspace {template_id}",
        )
        logger.info(f"Copied template {template_id} to workspace: {workspace.name}")
        return workspace

    # Sheets

    async def find_sheet_in_workspace(self, workspace_id: int, name: str) -> SheetRef | None:
        """
        Find a sheet in a workspace by exact name.

        A workspace created moments ago may briefly answer 404, so the
        listing retries not-found as well.
        """
        sheets = await self.executor.execute(
            lambda: self.client.list_workspace_sheets(workspace_id),
            description=f"list sheets in workspace {workspace_id}",
            retry_if=retry_not_found,
        )
        return next((s for s in sheets if s.name == name), None)

    async def get_sheet(self, sheet_id: int) -> Sheet:
        return await self.executor.execute(
            lambda: self.client.get_sheet(sheet_id),
            description=f"get sheet {sheet_id}",
            retry_if=retry_not_found,
        )

    async def get_or_create_sheet(
        self, workspace_id: int, name: str, columns: list[Column]
    ) -> Reconciled[Sheet]:
        """
        Return the named sheet, creating it with ``columns`` if absent.

        An existing sheet is returned as-is; its columns are not compared
        against ``columns``.
        """
        ref = await self.find_sheet_in_workspace(workspace_id, name)
        if ref is not None:
            logger.debug(f"Sheet '{name}' already exists (ID: {ref.id})")
            return Reconciled.existing(await self.get_sheet(ref.id))

        sheet = await self.executor.execute(
            lambda: self.client.create_sheet_in_workspace(workspace_id, name, columns),
            description=f"create sheet '{name}'",
        )
        logger.info(f"Created sheet: {name} (ID: {sheet.id})")
        return Reconciled.new(sheet)

    # Columns

    async def get_column_map(self, sheet_id: int) -> dict[str, Column]:
        """Map column title to column for a sheet."""
        sheet = await self.get_sheet(sheet_id)
        return {column.title: column for column in sheet.columns}

    async def find_column(self, sheet_id: int, title: str) -> Column | None:
        return (await self.get_column_map(sheet_id)).get(title)

    async def get_or_add_column(self, sheet_id: int, column: Column) -> Reconciled[Column]:
        sheet = await self.get_sheet(sheet_id)
        found = sheet.column(column.title)
        if found is not None:
            return Reconciled.existing(found)

        body = [column.for_insert(len(sheet.columns))]
        added = await self.executor.execute(
            lambda: self.client.add_columns(sheet_id, body),
            description=f"add column '{column.title}' to sheet {sheet_id}",
        )
        if len(added) != 1:
            raise TargetAPIError(
                f"Expected 1 column from sheet {sheet_id}, API returned {len(added)}"
            )
        logger.info(f"Added column '{column.title}' to sheet {sheet_id}")
        return Reconciled.new(added[0])

    async def add_columns_if_not_exist(
        self, sheet_id: int, columns: list[Column]
    ) -> list[ColumnResult]:
        """
        Add the columns that are missing from a sheet, in one batch.

        Returns one result per requested column, in request order, telling
        whether it already existed. Callers use ``was_created`` to avoid
        re-applying configuration to columns that already carry it.

        Raises:
            TargetAPIError: If the API returns a different number of columns
                than were requested
        """
        sheet = await self.get_sheet(sheet_id)
        existing = {c.title: c for c in sheet.columns}

        missing: list[Column] = []
        seen: set[str] = set()
        for column in columns:
            if column.title not in existing and column.title not in seen:
                missing.append(column)
                seen.add(column.title)

        created: dict[str, Column] = {}
        if missing:
            start = len(sheet.columns)
            body = [column.for_insert(start + i) for i, column in enumerate(missing)]
            added = await self.executor.execute(
                lambda: self.client.add_columns(sheet_id, body),
                description=f"add {len(body)} column(s) to sheet {sheet_id}",
            )
            if len(added) != len(body):
                raise TargetAPIError(
                    f"Expected {len(body)} columns from sheet {sheet_id}, "
                    f"API returned {len(added)}"
                )
            for spec, column in zip(missing, added):
                created[spec.title] = column
            logger.info(f"Added {len(added)} column(s) to sheet {sheet_id}")

        results = []
        for column in columns:
            if column.title in existing:
                results.append(
                    ColumnResult(
                        title=column.title, id=existing[column.title].id, was_created=False
                    )
                )
            else:
                results.append(
                    ColumnResult(
                        title=column.title, id=created[column.title].id, was_created=True
                    )
                )
        return results

    async def update_column(
        self, sheet_id: int, column_id: int, changes: dict[str, Any]
    ) -> Column:
        return await self.executor.execute(
            lambda: self.client.update_column(sheet_id, column_id, changes),
            description=f"update column {column_id}",
        )

    async def bind_picklist(
        self,
        sheet_id: int,
        column: Column,
        ref: CellLinkRef,
        column_type: ColumnType = ColumnType.PICKLIST,
    ) -> bool:
        """
        Source a picklist column's values from another sheet's column.

        Returns:
            True if the column was updated, False if it already carried
            this binding
        """
        if column.id is None:
            raise TargetAPIError(f"Column '{column.title}' has no id; fetch it before binding")
        if column.type == column_type and ref.is_bound_in(column.options):
            logger.debug(f"Column '{column.title}' already bound to {ref.sheet_id}")
            return False

        await self.update_column(
            sheet_id,
            column.id,
            {"type": column_type.value, "options": ref.to_picklist_options()},
        )
        logger.debug(f"Bound '{column.title}' to sheet {ref.sheet_id} column {ref.column_id}")
        return True

    async def bind_contact_source(self, sheet_id: int, column: Column, ref: CellLinkRef) -> bool:
        """
        Source a multi-contact column's suggestions from a contact column.

        Returns:
            True if the column was updated, False if it already had this source
        """
        if column.id is None:
            raise TargetAPIError(f"Column '{column.title}' has no id; fetch it before binding")
        if ref.is_contact_source_in(column.contact_options):
            return False

        await self.update_column(
            sheet_id,
            column.id,
            {
                "type": ColumnType.MULTI_CONTACT_LIST.value,
                "contactOptions": [ref.to_contact_option()],
            },
        )
        return True

    # Rows

    async def add_rows(
        self, sheet_id: int, rows: list[Row], batch_size: int = DEFAULT_BATCH_SIZE
    ) -> list[Row]:
        """
        Add rows in batches of ``batch_size``, preserving order.

        All rows in one call should share a location kind (all ``to_bottom``
        or all under the same ``parent_id``).
        """
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")

        written: list[Row] = []
        for start in range(0, len(rows), batch_size):
            batch = rows[start : start + batch_size]
            added = await self.executor.execute(
                lambda batch=batch: self.client.add_rows(sheet_id, batch),
                description=f"add {len(batch)} row(s) to sheet {sheet_id}",
            )
            written.extend(added)
        return written


__all__ = ["ResourceReconciler", "DEFAULT_BATCH_SIZE"]
