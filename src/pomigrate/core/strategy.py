"""
Workspace organization strategies.

A strategy decides where a project's sheets live. Two solution types exist:

- StandaloneWorkspaces: one independent workspace per project, plus the
  shared standards workspace. This is the production strategy.
- Portfolio: projects grouped under a parent container. Not implemented;
  every call fails before doing any I/O.

Strategies are looked up through a StrategyRegistry, which builds one
instance per solution type on first use. The registry is an ordinary
object handed to the orchestrator, so tests can hold several side by side.

Example:
    >>> registry = StrategyRegistry.default(reconciler, catalog_manager)
    >>> strategy = registry.get("StandaloneWorkspaces")
    >>> result = await strategy.create_project_workspace(project)
    >>> result.workspace.name
    'Apollo Program'
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from pomigrate.core.catalog import ReferenceCatalog, ReferenceCatalogManager
from pomigrate.core.exceptions import (
    ConfigurationError,
    MigrationError,
    TargetAPIError,
    ValidationError,
)
from pomigrate.core.reconcile import ResourceReconciler
from pomigrate.core.source.models import Project
from pomigrate.core.target.models import Workspace
from pomigrate.core.transform.utils import sanitize_workspace_name

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_NAME = "Project Online Migration"
TEMPLATE_COPY_HINT = "Ensure the template workspace exists and is accessible"


class SolutionType(str, Enum):
    """How project workspaces are organized."""

    STANDALONE = "StandaloneWorkspaces"
    PORTFOLIO = "Portfolio"

    @classmethod
    def parse(cls, value: "SolutionType | str") -> "SolutionType":
        """
        Resolve a configured value (enum value or name, any case).

        Raises:
            ConfigurationError: For unknown values, listing the valid ones
        """
        if isinstance(value, SolutionType):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if text in (member.value.lower(), member.name.lower()):
                return member
        raise ConfigurationError(
            f"Unknown solution type: {value}",
            hint=f"Valid options: {', '.join(m.value for m in cls)}",
            setting="SOLUTION_TYPE",
        )


class WorkspaceOrigin(str, Enum):
    """Where a project workspace came from."""

    EXISTING = "existing"
    REUSED = "reused"
    TEMPLATE = "template"
    BLANK = "blank"


class ProjectWorkspace(BaseModel):
    """Result of create_project_workspace."""

    workspace: Workspace
    origin: WorkspaceOrigin

    @property
    def created(self) -> bool:
        return self.origin in (WorkspaceOrigin.TEMPLATE, WorkspaceOrigin.BLANK)


@runtime_checkable
class WorkspaceStrategy(Protocol):
    """The two operations every solution type provides."""

    async def create_standards_workspace(
        self, existing_id: int | None = None
    ) -> ReferenceCatalog:
        """Ensure the shared standards workspace and its reference sheets."""
        ...

    async def create_project_workspace(
        self, project: Project, existing_workspace_id: int | None = None
    ) -> ProjectWorkspace:
        """Find or create the workspace that holds one project's sheets."""
        ...


@runtime_checkable
class TemplateAcquirer(Protocol):
    """Obtains a template workspace when none is configured."""

    async def acquire(self) -> int | None:
        """Return the template workspace id, or None if it was not obtained."""
        ...


class PollingTemplateAcquirer:
    """
    Wait for the user to accept a template distribution link.

    Logs the link, then polls for a workspace with the template's name
    until it appears or the attempts run out.
    """

    def __init__(
        self,
        reconciler: ResourceReconciler,
        template_name: str = DEFAULT_TEMPLATE_NAME,
        distribution_url: str | None = None,
        *,
        max_attempts: int = 10,
        interval: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.reconciler = reconciler
        self.template_name = template_name
        self.distribution_url = distribution_url
        self.max_attempts = max_attempts
        self.interval = interval
        self._sleep = sleep

    async def acquire(self) -> int | None:
        if not self.distribution_url:
            logger.info("No template distribution URL configured")
            return None

        logger.info(
            f"Open this link to add the '{self.template_name}' template "
            f"to your account: {self.distribution_url}"
        )

        for attempt in range(1, self.max_attempts + 1):
            logger.debug(f"Polling attempt {attempt}/{self.max_attempts}")
            workspace = await self.reconciler.find_workspace(self.template_name)
            if workspace is not None:
                logger.info(f"Template workspace found: {workspace.name} (ID: {workspace.id})")
                return workspace.id

            if attempt < self.max_attempts:
                remaining = (self.max_attempts - attempt) * self.interval
                logger.info(
                    f"Attempt {attempt}/{self.max_attempts}: Workspace not found yet. "
                    f"Checking again in {self.interval:.0f}s ({remaining:.0f}s remaining)"
                )
                await self._sleep(self.interval)

        logger.warning(f"Workspace '{self.template_name}' not found after polling timeout")
        return None


class StandaloneStrategy:
    """
    One independent workspace per project.

    Project workspace resolution, first match wins:

    1. An explicit existing workspace id
    2. A workspace already named after the project
    3. The template policy: copy the configured template (id > 0), create
       a blank workspace (id == 0), or acquire a template (no id) and fall
       back to blank if that does not work out
    """

    def __init__(
        self,
        reconciler: ResourceReconciler,
        catalog_manager: ReferenceCatalogManager,
        *,
        template_workspace_id: int | None = None,
        acquirer: TemplateAcquirer | None = None,
    ) -> None:
        self.reconciler = reconciler
        self.catalog_manager = catalog_manager
        self.template_workspace_id = template_workspace_id
        self.acquirer = acquirer

    async def create_standards_workspace(
        self, existing_id: int | None = None
    ) -> ReferenceCatalog:
        return await self.catalog_manager.ensure_catalog(existing_id)

    async def create_project_workspace(
        self, project: Project, existing_workspace_id: int | None = None
    ) -> ProjectWorkspace:
        name = sanitize_workspace_name(project.name or "")
        if not name:
            raise ValidationError(f"project '{project.id}'", ["Project Name is required"])

        if existing_workspace_id:
            workspace = await self.reconciler.get_workspace(existing_workspace_id)
            if workspace is None:
                raise ConfigurationError(
                    f"Workspace {existing_workspace_id} not found",
                    hint="Check the workspace ID or omit it to create a new workspace",
                )
            logger.info(f"Using existing workspace: {workspace.name} (ID: {workspace.id})")
            return ProjectWorkspace(workspace=workspace, origin=WorkspaceOrigin.EXISTING)

        workspace = await self.reconciler.find_workspace(name)
        if workspace is not None:
            logger.info(f"Reusing workspace: {workspace.name} (ID: {workspace.id})")
            return ProjectWorkspace(workspace=workspace, origin=WorkspaceOrigin.REUSED)

        template_id = self.template_workspace_id
        if template_id is not None and template_id > 0:
            workspace = await self._copy_template(template_id, name)
            return ProjectWorkspace(workspace=workspace, origin=WorkspaceOrigin.TEMPLATE)

        if template_id == 0:
            logger.debug("Template disabled, creating blank workspace")
            return await self._blank(name)

        return await self._acquire_template_or_blank(name)

    async def _copy_template(self, template_id: int, name: str) -> Workspace:
        try:
            return await self.reconciler.copy_workspace(template_id, name)
        except MigrationError as e:
            raise TargetAPIError(
                f"Failed to copy template workspace {template_id}: {e}",
                status_code=getattr(e, "status_code", None),
                hint=TEMPLATE_COPY_HINT,
            ) from e

    async def _blank(self, name: str) -> ProjectWorkspace:
        workspace = await self.reconciler.create_workspace(name)
        return ProjectWorkspace(workspace=workspace, origin=WorkspaceOrigin.BLANK)

    async def _acquire_template_or_blank(self, name: str) -> ProjectWorkspace:
        if self.acquirer is None:
            logger.info("No template configured - creating blank workspace")
            return await self._blank(name)

        try:
            template_id = await self.acquirer.acquire()
        except KeyboardInterrupt:
            logger.warning("Template acquisition cancelled - creating blank workspace instead")
            return await self._blank(name)
        except MigrationError as e:
            logger.warning(f"Template acquisition failed - creating blank workspace instead: {e}")
            return await self._blank(name)

        if template_id is None:
            logger.warning("Template not acquired - creating blank workspace instead")
            return await self._blank(name)

        try:
            workspace = await self.reconciler.copy_workspace(template_id, name)
        except MigrationError as e:
            logger.warning(f"Template copy failed - creating blank workspace instead: {e}")
            return await self._blank(name)
        return ProjectWorkspace(workspace=workspace, origin=WorkspaceOrigin.TEMPLATE)


class PortfolioStrategy:
    """Placeholder for grouped workspaces. Every call fails fast."""

    def _unsupported(self) -> ConfigurationError:
        return ConfigurationError(
            "Portfolio solution type is not yet implemented",
            hint="use SOLUTION_TYPE=StandaloneWorkspaces",
        )

    async def create_standards_workspace(
        self, existing_id: int | None = None
    ) -> ReferenceCatalog:
        raise self._unsupported()

    async def create_project_workspace(
        self, project: Project, existing_workspace_id: int | None = None
    ) -> ProjectWorkspace:
        raise self._unsupported()


StrategyFactory = Callable[[], WorkspaceStrategy]


class StrategyRegistry:
    """
    Solution type -> strategy, built lazily and memoized per type.

    Example:
        >>> registry = StrategyRegistry({SolutionType.PORTFOLIO: PortfolioStrategy})
        >>> registry.get("Portfolio") is registry.get(SolutionType.PORTFOLIO)
        True
    """

    def __init__(self, factories: dict[SolutionType, StrategyFactory] | None = None) -> None:
        self._factories: dict[SolutionType, StrategyFactory] = dict(factories or {})
        self._instances: dict[SolutionType, WorkspaceStrategy] = {}

    def register(self, solution_type: SolutionType, factory: StrategyFactory) -> None:
        self._factories[solution_type] = factory
        self._instances.pop(solution_type, None)

    @property
    def available(self) -> list[SolutionType]:
        return list(self._factories)

    def get(self, value: SolutionType | str) -> WorkspaceStrategy:
        """
        Return the strategy for a solution type.

        Raises:
            ConfigurationError: For unknown or unregistered solution types
        """
        solution_type = SolutionType.parse(value)
        if solution_type not in self._instances:
            factory = self._factories.get(solution_type)
            if factory is None:
                raise ConfigurationError(
                    f"No strategy registered for solution type: {solution_type.value}",
                    hint=f"Valid options: {', '.join(t.value for t in self._factories)}",
                )
            self._instances[solution_type] = factory()
        return self._instances[solution_type]

    @classmethod
    def default(
        cls,
        reconciler: ResourceReconciler,
        catalog_manager: ReferenceCatalogManager,
        *,
        template_workspace_id: int | None = None,
        acquirer: TemplateAcquirer | None = None,
    ) -> "StrategyRegistry":
        """Registry with both built-in solution types."""
        return cls(
            {
                SolutionType.STANDALONE: lambda: StandaloneStrategy(
                    reconciler,
                    catalog_manager,
                    template_workspace_id=template_workspace_id,
                    acquirer=acquirer,
                ),
                SolutionType.PORTFOLIO: PortfolioStrategy,
            }
        )


__all__ = [
    "DEFAULT_TEMPLATE_NAME",
    "SolutionType",
    "WorkspaceOrigin",
    "ProjectWorkspace",
    "WorkspaceStrategy",
    "TemplateAcquirer",
    "PollingTemplateAcquirer",
    "StandaloneStrategy",
    "PortfolioStrategy",
    "StrategyRegistry",
]
