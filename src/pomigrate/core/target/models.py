"""
Target system models.

Pydantic models for the spreadsheet-style target: workspaces, sheets,
columns, rows and cells. Field aliases follow the API's camelCase wire
format, so ``model_dump(by_alias=True, exclude_none=True)`` produces a
request body and ``model_validate`` accepts a response payload.

Example:
    >>> from pomigrate.core.target.models import CellLinkRef, Column, ColumnType
    >>>
    >>> ref = CellLinkRef(sheet_id=11, column_id=22)
    >>> column = Column(title="Status", type=ColumnType.PICKLIST)
    >>> ref.to_option()
    {'value': {'objectType': 'CELL_LINK', 'sheetId': 11, 'columnId': 22}}
"""

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ColumnType(str, Enum):
    """Column type enumeration."""

    TEXT_NUMBER = "TEXT_NUMBER"
    CONTACT_LIST = "CONTACT_LIST"
    MULTI_CONTACT_LIST = "MULTI_CONTACT_LIST"
    DATE = "DATE"
    DATETIME = "DATETIME"
    ABSTRACT_DATETIME = "ABSTRACT_DATETIME"
    PICKLIST = "PICKLIST"
    MULTI_PICKLIST = "MULTI_PICKLIST"
    CHECKBOX = "CHECKBOX"
    PREDECESSOR = "PREDECESSOR"
    DURATION = "DURATION"
    AUTO_NUMBER = "AUTO_NUMBER"
    CREATED_DATE = "CREATED_DATE"
    MODIFIED_DATE = "MODIFIED_DATE"
    CREATED_BY = "CREATED_BY"
    MODIFIED_BY = "MODIFIED_BY"


SYSTEM_COLUMN_TYPES = frozenset(
    {
        ColumnType.AUTO_NUMBER,
        ColumnType.CREATED_DATE,
        ColumnType.MODIFIED_DATE,
        ColumnType.CREATED_BY,
        ColumnType.MODIFIED_BY,
    }
)


class TargetModel(BaseModel):
    """Base for target models: camelCase aliases, unknown fields ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_api(self) -> dict[str, Any]:
        """Serialize to the API wire format."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class CellLinkRef(TargetModel):
    """
    Reference to a column in another sheet.

    Used to bind a picklist column to a reference catalog sheet. Frozen so
    two bindings to the same catalog column compare (and hash) equal.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    sheet_id: int = Field(alias="sheetId")
    column_id: int = Field(alias="columnId")

    def to_option(self) -> dict[str, Any]:
        """Render as a single CELL_LINK picklist option."""
        return {
            "value": {
                "objectType": "CELL_LINK",
                "sheetId": self.sheet_id,
                "columnId": self.column_id,
            }
        }

    def to_picklist_options(self) -> dict[str, Any]:
        """Render the strict options block for a PICKLIST column."""
        return {"strict": True, "options": [self.to_option()]}

    def is_bound_in(self, options: Any) -> bool:
        """Check whether a column's current options already carry this link."""
        if isinstance(options, dict):
            options = options.get("options")
        if not isinstance(options, list):
            return False
        for option in options:
            value = option.get("value") if isinstance(option, dict) else None
            if (
                isinstance(value, dict)
                and value.get("objectType") == "CELL_LINK"
                and value.get("sheetId") == self.sheet_id
                and value.get("columnId") == self.column_id
            ):
                return True
        return False

    def to_contact_option(self) -> dict[str, int]:
        """Render as a contact-list source (contactOptions entry)."""
        return {"sheetId": self.sheet_id, "columnId": self.column_id}

    def is_contact_source_in(self, contact_options: Any) -> bool:
        """Check whether a column's contactOptions already point at this column."""
        if not isinstance(contact_options, list):
            return False
        return any(
            isinstance(option, dict)
            and option.get("sheetId") == self.sheet_id
            and option.get("columnId") == self.column_id
            for option in contact_options
        )


class Contact(TargetModel):
    """A person reference: name and/or email."""

    object_type: str = Field(default="CONTACT", alias="objectType")
    name: str | None = None
    email: str | None = None


class Column(TargetModel):
    """A sheet column, either as returned by the API or as a definition to add."""

    id: int | None = None
    title: str
    type: ColumnType = ColumnType.TEXT_NUMBER
    primary: bool | None = None
    index: int | None = None
    width: int | None = None
    hidden: bool | None = None
    locked: bool | None = None
    options: Any = None
    contact_options: list[dict[str, Any]] | None = Field(default=None, alias="contactOptions")

    @property
    def is_system(self) -> bool:
        """True for system-generated columns (created/modified date/by, auto-number)."""
        return self.type in SYSTEM_COLUMN_TYPES

    def for_insert(self, index: int) -> dict[str, Any]:
        """
        Render an add-column body.

        Width, hidden and locked are not accepted by the bulk add endpoint
        and are stripped. Literal string options are kept.
        """
        body: dict[str, Any] = {"title": self.title, "type": self.type.value, "index": index}
        if self.primary:
            body["primary"] = True
        if isinstance(self.options, list) and all(isinstance(o, str) for o in self.options):
            body["options"] = self.options
        return body


class Cell(TargetModel):
    """A cell: either a plain value or a structured object value."""

    column_id: int = Field(alias="columnId")
    value: Any = None
    object_value: dict[str, Any] | None = Field(default=None, alias="objectValue")


class Row(TargetModel):
    """
    A sheet row.

    Location attributes: ``to_bottom`` for top-level rows, ``parent_id`` for
    children. All rows in one add batch must share the same location kind.
    """

    id: int | None = None
    row_number: int | None = Field(default=None, alias="rowNumber")
    parent_id: int | None = Field(default=None, alias="parentId")
    to_bottom: bool | None = Field(default=None, alias="toBottom")
    cells: list[Cell] = Field(default_factory=list)

    def cell_value(self, column_id: int) -> Any:
        """Return the value in a column, or None."""
        for cell in self.cells:
            if cell.column_id == column_id:
                return cell.value
        return None


class SheetRef(TargetModel):
    """Lightweight sheet reference, as listed in a workspace."""

    id: int
    name: str
    permalink: str | None = None


class Sheet(TargetModel):
    """A sheet with its columns and rows."""

    id: int
    name: str
    permalink: str | None = None
    columns: list[Column] = Field(default_factory=list)
    rows: list[Row] = Field(default_factory=list)

    def column(self, title: str) -> Column | None:
        """Find a column by exact title."""
        return next((c for c in self.columns if c.title == title), None)

    @property
    def primary_column(self) -> Column | None:
        """The primary column, if the sheet has one."""
        return next((c for c in self.columns if c.primary), None)

    def column_values(self, column_id: int) -> list[Any]:
        """All non-empty values in a column, in row order."""
        values = []
        for row in self.rows:
            value = row.cell_value(column_id)
            if value is not None and value != "":
                values.append(value)
        return values


class Workspace(TargetModel):
    """A named container of sheets."""

    id: int
    name: str
    permalink: str | None = None


class ReconcileStatus(str, Enum):
    """Outcome of a get-or-create operation."""

    EXISTING = "existing"
    CREATED = "created"


class Reconciled(BaseModel, Generic[T]):
    """
    Result of a reconcile call: the item plus whether it was just created.

    ``reconcile(name, spec) -> Existing | Created``
    """

    item: T
    status: ReconcileStatus

    @property
    def created(self) -> bool:
        """True when this call created the item."""
        return self.status == ReconcileStatus.CREATED

    @classmethod
    def existing(cls, item: T) -> "Reconciled[T]":
        return cls(item=item, status=ReconcileStatus.EXISTING)

    @classmethod
    def new(cls, item: T) -> "Reconciled[T]":
        return cls(item=item, status=ReconcileStatus.CREATED)


class ColumnResult(BaseModel):
    """Per-column outcome of add_columns_if_not_exist."""

    title: str
    id: int
    was_created: bool


__all__ = [
    "ColumnType",
    "SYSTEM_COLUMN_TYPES",
    "CellLinkRef",
    "Contact",
    "Column",
    "Cell",
    "Row",
    "SheetRef",
    "Sheet",
    "Workspace",
    "ReconcileStatus",
    "Reconciled",
    "ColumnResult",
]
