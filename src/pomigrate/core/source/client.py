"""
Source data clients.

``SourceClient`` is the read-only protocol the load pipeline consumes.
Two implementations:

- ``ODataSourceClient`` reads the Project Online ProjectData OData feed
  over httpx, following ``@odata.nextLink`` pagination.
- ``JsonFileSource`` reads a previously exported JSON document, for
  offline loads and tests.

Example:
    >>> async with ODataSourceClient(url, token, limiter=limiter) as source:
    ...     data = await source.extract_project_data(project_id)
    >>> data.summary()
    {'tasks': 42, 'resources': 7, 'assignments': 55}
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import httpx
from pydantic import ValidationError as PydanticValidationError

from pomigrate.core.exceptions import ConfigurationError, TargetAPIError
from pomigrate.core.http import (
    DEFAULT_TIMEOUT,
    decode_json,
    raise_for_api_error,
    transport_failure,
)
from pomigrate.core.ratelimit import SlidingWindowRateLimiter
from pomigrate.core.retry import RetryExecutor
from pomigrate.core.source.models import (
    Assignment,
    Project,
    ProjectData,
    Resource,
    Task,
)

logger = logging.getLogger(__name__)

PROJECT_DATA_PATH = "/_api/ProjectData"


@runtime_checkable
class SourceClient(Protocol):
    """Read-only access to one Project Online instance."""

    async def get_project(self, project_id: str) -> Project:
        """Fetch one project by id."""
        ...

    async def get_tasks(self, project_id: str) -> list[Task]:
        """Fetch every task of a project."""
        ...

    async def get_resources(self) -> list[Resource]:
        """Fetch the enterprise resource pool."""
        ...

    async def get_assignments(self, project_id: str) -> list[Assignment]:
        """Fetch every assignment of a project."""
        ...

    async def extract_project_data(self, project_id: str) -> ProjectData:
        """Fetch a project together with its tasks, resources and assignments."""
        ...


def _project_filter(project_id: str) -> str:
    return f"ProjectId eq guid'{project_id}'"


class ODataSourceClient:
    """
    Project Online OData client.

    Handles both JSON light (``{"value": [...]}``) and verbose
    (``{"d": {"results": [...]}}``) response formats. Every request waits
    on the shared rate limiter first and goes through the retry executor, so
    one throttled or failed page does not abort an extraction.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        *,
        limiter: SlidingWindowRateLimiter | None = None,
        executor: RetryExecutor | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ConfigurationError.for_setting("PROJECT_ONLINE_URL", "is required")
        self.base_url = base_url.rstrip("/")
        self._limiter = limiter
        self._executor = executor or RetryExecutor()
        self._http = httpx.AsyncClient(
            base_url=f"{self.base_url}{PROJECT_DATA_PATH}",
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    async def __aenter__(self) -> "ODataSourceClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _get(self, url: str, params: dict[str, str] | None = None) -> Any:
        action = f"GET {url}"
        return await self._executor.execute(
            lambda: self._request(url, params, action), description=action
        )

    async def _request(self, url: str, params: dict[str, str] | None, action: str) -> Any:
        if self._limiter is not None:
            await self._limiter.acquire()

        logger.debug(f"Source request: {action}")
        try:
            response = await self._http.get(url, params=params)
        except httpx.TransportError as e:
            raise transport_failure(e, action) from e

        raise_for_api_error(response, action)
        return decode_json(response, action)

    def _absolute(self, link: str) -> str:
        # Relative next links resolve against the ProjectData root
        return str(self._http.base_url.join(link))

    async def _fetch_all(
        self, entity: str, params: dict[str, str] | None = None
    ) -> list[dict[str, Any]]:
        """Fetch every page of an entity set."""
        items: list[dict[str, Any]] = []
        next_url: str | None = f"/{entity}"
        page = 0

        while next_url:
            page += 1
            logger.debug(f"Fetching {entity} page {page}...")
            # The next link already carries the query string
            payload = await self._get(next_url, params if page == 1 else None)

            values, next_link = self._page(payload)
            items.extend(values)
            logger.debug(f"  Retrieved {len(values)} items (total: {len(items)})")

            next_url = self._absolute(next_link) if next_link else None

        logger.debug(f"Completed fetching {len(items)} {entity} items in {page} page(s)")
        return items

    @staticmethod
    def _page(payload: Any) -> tuple[list[dict[str, Any]], str | None]:
        if not isinstance(payload, dict):
            raise TargetAPIError(f"Unexpected OData payload: {type(payload).__name__}")

        if "d" in payload:
            body = payload["d"]
            if isinstance(body, dict):
                return body.get("results", []), body.get("__next")
            return body, None

        return payload.get("value", []), payload.get("@odata.nextLink")

    @staticmethod
    def _parse(model: type, items: list[dict[str, Any]], entity: str) -> list[Any]:
        try:
            return [model.model_validate(item) for item in items]
        except PydanticValidationError as e:
            raise TargetAPIError(f"Malformed {entity} data from source: {e}") from e

    async def get_project(self, project_id: str) -> Project:
        payload = await self._get(f"/Projects(guid'{project_id}')")
        # Verbose OData wraps the entity in "d"
        if isinstance(payload, dict) and isinstance(payload.get("d"), dict):
            payload = payload["d"]
        return Project.model_validate(payload)

    async def get_tasks(self, project_id: str) -> list[Task]:
        items = await self._fetch_all("Tasks", {"$filter": _project_filter(project_id)})
        return self._parse(Task, items, "Tasks")

    async def get_resources(self) -> list[Resource]:
        items = await self._fetch_all("Resources")
        return self._parse(Resource, items, "Resources")

    async def get_assignments(self, project_id: str) -> list[Assignment]:
        items = await self._fetch_all("Assignments", {"$filter": _project_filter(project_id)})
        return self._parse(Assignment, items, "Assignments")

    async def extract_project_data(self, project_id: str) -> ProjectData:
        logger.info(f"Extracting data for project: {project_id}")

        project = await self.get_project(project_id)
        logger.debug(f"Project: {project.name}")

        tasks, resources, assignments = await asyncio.gather(
            self.get_tasks(project_id),
            self.get_resources(),
            self.get_assignments(project_id),
        )
        logger.debug(
            f"Tasks: {len(tasks)}, Resources: {len(resources)}, Assignments: {len(assignments)}"
        )

        return ProjectData(
            project=project, tasks=tasks, resources=resources, assignments=assignments
        )


class JsonFileSource:
    """
    Source backed by an exported JSON document.

    The document holds ``project``, ``tasks``, ``resources`` and
    ``assignments`` keys using the OData field names. The project id
    argument is checked against the document when both are present.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._data: ProjectData | None = None

    def load(self) -> ProjectData:
        """Read and parse the document (cached after the first call)."""
        if self._data is not None:
            return self._data

        if not self.path.exists():
            raise ConfigurationError(
                f"Source file not found: {self.path}",
                hint="Check the --from-file path",
            )

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Source file is not valid JSON: {self.path}: {e}",
                hint="Export the project data again",
            ) from e

        if not isinstance(raw, dict) or "project" not in raw:
            raise ConfigurationError(
                f"Source file has no 'project' key: {self.path}",
                hint="Expected keys: project, tasks, resources, assignments",
            )

        try:
            self._data = ProjectData.model_validate(raw)
        except PydanticValidationError as e:
            raise ConfigurationError(
                f"Source file has malformed entities: {e}",
                hint="Check field names match the Project Online export format",
            ) from e

        logger.debug(f"Loaded {self._data.summary()} from {self.path}")
        return self._data

    def _check_project(self, project_id: str | None) -> None:
        data = self.load()
        if project_id and data.project.id and project_id.lower() != data.project.id.lower():
            raise ConfigurationError(
                f"Project {project_id} not found in {self.path}",
                hint=f"The file contains project {data.project.id}",
            )

    async def get_project(self, project_id: str) -> Project:
        self._check_project(project_id)
        return self.load().project

    async def get_tasks(self, project_id: str) -> list[Task]:
        self._check_project(project_id)
        return self.load().tasks

    async def get_resources(self) -> list[Resource]:
        return self.load().resources

    async def get_assignments(self, project_id: str) -> list[Assignment]:
        self._check_project(project_id)
        return self.load().assignments

    async def extract_project_data(self, project_id: str | None = None) -> ProjectData:
        self._check_project(project_id)
        return self.load()


__all__ = ["SourceClient", "ODataSourceClient", "JsonFileSource", "PROJECT_DATA_PATH"]
