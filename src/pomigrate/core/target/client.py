"""
Target API client.

``TargetClient`` is the protocol the reconciler depends on. ``HttpTargetClient``
implements it against the Smartsheet REST 2.0 API with httpx.

Responses come in three shapes: a bare object (GET /sheets/{id}), a
``{"result": ...}`` envelope for writes, and a ``{"data": [...]}`` envelope
for listings. ``_unwrap`` accepts all of them.

Example:
    >>> from pomigrate.core.ratelimit import SlidingWindowRateLimiter
    >>> from pomigrate.core.target.client import HttpTargetClient
    >>>
    >>> async with HttpTargetClient(token, limiter=SlidingWindowRateLimiter()) as client:
    ...     sheet = await client.get_sheet(4583173393803140)
"""

import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from pomigrate.core.exceptions import TargetAPIError
from pomigrate.core.http import (
    DEFAULT_TIMEOUT,
    decode_json,
    raise_for_api_error,
    transport_failure,
)
from pomigrate.core.ratelimit import SlidingWindowRateLimiter
from pomigrate.core.target.models import Column, Row, Sheet, SheetRef, Workspace

logger = logging.getLogger(__name__)

SMARTSHEET_API_URL = "https://api.smartsheet.com/2.0"


@runtime_checkable
class TargetClient(Protocol):
    """
    Protocol for the spreadsheet-style target API.

    Every method is a single remote call. Retrying is the caller's job.
    Missing containers raise NotFoundError.
    """

    async def get_workspace(self, workspace_id: int) -> Workspace:
        """Fetch a workspace by id."""
        ...

    async def list_workspaces(self) -> list[Workspace]:
        """List every workspace visible to the token."""
        ...

    async def create_workspace(self, name: str) -> Workspace:
        """Create an empty workspace."""
        ...

    async def copy_workspace(self, workspace_id: int, new_name: str) -> Workspace:
        """Copy a workspace with all of its contents under a new name."""
        ...

    async def list_workspace_sheets(self, workspace_id: int) -> list[SheetRef]:
        """List the sheets directly inside a workspace."""
        ...

    async def get_sheet(self, sheet_id: int) -> Sheet:
        """Fetch a sheet with its columns and rows."""
        ...

    async def create_sheet_in_workspace(
        self, workspace_id: int, name: str, columns: list[Column]
    ) -> Sheet:
        """Create a sheet with its initial columns."""
        ...

    async def add_columns(self, sheet_id: int, columns: list[dict[str, Any]]) -> list[Column]:
        """Add a batch of columns. Returns the created columns in request order."""
        ...

    async def update_column(
        self, sheet_id: int, column_id: int, changes: dict[str, Any]
    ) -> Column:
        """Update attributes of one column."""
        ...

    async def add_rows(self, sheet_id: int, rows: list[Row]) -> list[Row]:
        """Add a batch of rows sharing one location kind."""
        ...


class HttpTargetClient:
    """
    httpx implementation of TargetClient for Smartsheet.

    Every request waits on the shared rate limiter first. HTTP failures are
    mapped to the exception taxonomy; transport failures become
    TransientAPIError so the retry executor treats them as transient.
    """

    def __init__(
        self,
        token: str,
        *,
        base_url: str = SMARTSHEET_API_URL,
        limiter: SlidingWindowRateLimiter | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._limiter = limiter
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "HttpTargetClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        action = f"{method} {path}"
        if self._limiter is not None:
            await self._limiter.acquire()

        logger.debug(f"Target request: {action}")
        try:
            response = await self._http.request(method, path, json=json, params=params)
        except httpx.TransportError as e:
            raise transport_failure(e, action) from e

        raise_for_api_error(response, action)
        return self._unwrap(decode_json(response, action))

    @staticmethod
    def _unwrap(payload: Any) -> Any:
        if isinstance(payload, dict):
            if "result" in payload:
                return payload["result"]
            if "data" in payload:
                return payload["data"]
        return payload

    async def get_workspace(self, workspace_id: int) -> Workspace:
        data = await self._request("GET", f"/workspaces/{workspace_id}")
        return Workspace.model_validate(data)

    async def list_workspaces(self) -> list[Workspace]:
        data = await self._request("GET", "/workspaces", params={"includeAll": "true"})
        return [Workspace.model_validate(item) for item in data]

    async def create_workspace(self, name: str) -> Workspace:
        data = await self._request("POST", "/workspaces", json={"name": name})
        return Workspace.model_validate(data)

    async def copy_workspace(self, workspace_id: int, new_name: str) -> Workspace:
        data = await self._request(
            "POST",
            f"/workspaces/{workspace_id}/copy",
            json={"newName": new_name},
            params={"include": "all"},
        )
        return Workspace.model_validate(data)

    async def list_workspace_sheets(self, workspace_id: int) -> list[SheetRef]:
        data = await self._request(
            "GET",
            f"/workspaces/{workspace_id}/children",
            params={"childrenResourceTypes": "sheets", "includeAll": "true"},
        )
        return [
            SheetRef.model_validate(item)
            for item in data
            if item.get("resourceType", "sheet") == "sheet"
        ]

    async def get_sheet(self, sheet_id: int) -> Sheet:
        data = await self._request("GET", f"/sheets/{sheet_id}")
        return Sheet.model_validate(data)

    async def create_sheet_in_workspace(
        self, workspace_id: int, name: str, columns: list[Column]
    ) -> Sheet:
        body = {
            "name": name,
            "columns": [
                {k: v for k, v in column.to_api().items() if k not in ("id", "index")}
                for column in columns
            ],
        }
        data = await self._request("POST", f"/workspaces/{workspace_id}/sheets", json=body)
        return Sheet.model_validate(data)

    async def add_columns(self, sheet_id: int, columns: list[dict[str, Any]]) -> list[Column]:
        data = await self._request("POST", f"/sheets/{sheet_id}/columns", json=columns)
        # A single added column comes back as an object, not a list
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise TargetAPIError(f"Unexpected add-columns response for sheet {sheet_id}")
        return [Column.model_validate(item) for item in data]

    async def update_column(
        self, sheet_id: int, column_id: int, changes: dict[str, Any]
    ) -> Column:
        data = await self._request(
            "PUT", f"/sheets/{sheet_id}/columns/{column_id}", json=changes
        )
        return Column.model_validate(data)

    async def add_rows(self, sheet_id: int, rows: list[Row]) -> list[Row]:
        body = [row.to_api() for row in rows]
        data = await self._request("POST", f"/sheets/{sheet_id}/rows", json=body)
        if isinstance(data, dict):
            data = [data]
        return [Row.model_validate(item) for item in data]


__all__ = ["SMARTSHEET_API_URL", "TargetClient", "HttpTargetClient"]
