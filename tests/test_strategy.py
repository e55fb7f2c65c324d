"""Tests for workspace strategies and the strategy registry."""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from pomigrate.core.exceptions import (
    ConfigurationError,
    TargetAPIError,
    TransientAPIError,
    ValidationError,
)
from pomigrate.core.source.models import Project
from pomigrate.core.strategy import (
    TEMPLATE_COPY_HINT,
    PollingTemplateAcquirer,
    PortfolioStrategy,
    SolutionType,
    StandaloneStrategy,
    StrategyRegistry,
    WorkspaceOrigin,
)
from pomigrate.core.target.models import Column, Workspace


def _acquirer(**kwargs) -> Mock:
    return Mock(acquire=AsyncMock(**kwargs))


class TestSolutionType:
    """Test suite for SolutionType.parse."""

    @pytest.mark.parametrize(
        "value", ["StandaloneWorkspaces", "standaloneworkspaces", "STANDALONE", " standalone "]
    )
    def test_parse_standalone(self, value: str) -> None:
        """Test values and names parse case-insensitively."""
        assert SolutionType.parse(value) == SolutionType.STANDALONE

    def test_parse_unknown(self) -> None:
        """Test unknown values list the valid options."""
        with pytest.raises(ConfigurationError) as exc_info:
            SolutionType.parse("Galaxy")

        assert "StandaloneWorkspaces" in exc_info.value.hint


class TestStandaloneStrategy:
    """Test suite for project workspace resolution."""

    @pytest.mark.asyncio
    async def test_explicit_workspace(self, reconciler, catalog_manager, fake_target) -> None:
        """Test an explicit workspace id wins."""
        workspace = fake_target.add_workspace("Somewhere Else")
        strategy = StandaloneStrategy(reconciler, catalog_manager, template_workspace_id=0)

        result = await strategy.create_project_workspace(
            Project(id="p1", name="Apollo Program"), workspace.id
        )

        assert result.origin == WorkspaceOrigin.EXISTING
        assert result.workspace.id == workspace.id
        assert not result.created

    @pytest.mark.asyncio
    async def test_explicit_workspace_missing(self, reconciler, catalog_manager) -> None:
        """Test an explicit id that does not exist is a configuration error."""
        strategy = StandaloneStrategy(reconciler, catalog_manager)

        with pytest.raises(ConfigurationError, match="not found"):
            await strategy.create_project_workspace(Project(id="p1", name="Apollo"), 31337)

    @pytest.mark.asyncio
    async def test_reuses_workspace_by_name(
        self, reconciler, catalog_manager, fake_target
    ) -> None:
        """Test a workspace named after the project is reused."""
        existing = fake_target.add_workspace("Q1-Q2 Plan")
        strategy = StandaloneStrategy(reconciler, catalog_manager, template_workspace_id=0)

        result = await strategy.create_project_workspace(Project(id="p1", name="Q1/Q2 Plan"))

        assert result.origin == WorkspaceOrigin.REUSED
        assert result.workspace.id == existing.id
        assert fake_target.calls["create_workspace"] == 0

    @pytest.mark.asyncio
    async def test_copies_template(self, reconciler, catalog_manager, fake_target) -> None:
        """Test a configured template is copied under the project name."""
        template = fake_target.add_workspace("Template")
        fake_target.add_sheet(template.id, "Tasks", [Column(title="Task Name", primary=True)])
        strategy = StandaloneStrategy(
            reconciler, catalog_manager, template_workspace_id=template.id
        )

        result = await strategy.create_project_workspace(Project(id="p1", name="Apollo"))

        assert result.origin == WorkspaceOrigin.TEMPLATE
        assert result.workspace.name == "Apollo"
        assert result.created

    @pytest.mark.asyncio
    async def test_template_copy_failure(self, reconciler, catalog_manager) -> None:
        """Test a failed copy of a configured template is fatal."""
        strategy = StandaloneStrategy(reconciler, catalog_manager, template_workspace_id=404)

        with pytest.raises(TargetAPIError) as exc_info:
            await strategy.create_project_workspace(Project(id="p1", name="Apollo"))

        assert exc_info.value.hint == TEMPLATE_COPY_HINT
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_blank_when_template_disabled(
        self, reconciler, catalog_manager, fake_target
    ) -> None:
        """Test template id 0 creates a blank workspace without acquiring."""
        acquirer = _acquirer(return_value=1)
        strategy = StandaloneStrategy(
            reconciler, catalog_manager, template_workspace_id=0, acquirer=acquirer
        )

        result = await strategy.create_project_workspace(Project(id="p1", name="Apollo"))

        assert result.origin == WorkspaceOrigin.BLANK
        acquirer.acquire.assert_not_awaited()
        assert fake_target.workspace_named("Apollo") is not None

    @pytest.mark.asyncio
    async def test_acquired_template_is_copied(
        self, reconciler, catalog_manager, fake_target
    ) -> None:
        """Test an acquired template is copied."""
        template = fake_target.add_workspace("Project Online Migration")
        strategy = StandaloneStrategy(
            reconciler, catalog_manager, acquirer=_acquirer(return_value=template.id)
        )

        result = await strategy.create_project_workspace(Project(id="p1", name="Apollo"))

        assert result.origin == WorkspaceOrigin.TEMPLATE
        assert fake_target.calls["copy_workspace"] == 1

    @pytest.mark.parametrize(
        "outcome",
        [
            {"return_value": None},
            {"side_effect": TransientAPIError("down", status_code=503)},
            {"side_effect": KeyboardInterrupt()},
        ],
    )
    @pytest.mark.asyncio
    async def test_acquisition_falls_back_to_blank(
        self, reconciler, catalog_manager, outcome
    ) -> None:
        """Test every acquisition failure ends in a blank workspace."""
        strategy = StandaloneStrategy(reconciler, catalog_manager, acquirer=_acquirer(**outcome))

        result = await strategy.create_project_workspace(Project(id="p1", name="Apollo"))

        assert result.origin == WorkspaceOrigin.BLANK

    @pytest.mark.asyncio
    async def test_acquired_copy_failure_falls_back(
        self, reconciler, catalog_manager
    ) -> None:
        """Test a failed copy of an acquired template falls back to blank."""
        strategy = StandaloneStrategy(
            reconciler, catalog_manager, acquirer=_acquirer(return_value=987654)
        )

        result = await strategy.create_project_workspace(Project(id="p1", name="Apollo"))

        assert result.origin == WorkspaceOrigin.BLANK

    @pytest.mark.asyncio
    async def test_project_without_name(self, reconciler, catalog_manager) -> None:
        """Test a project whose name sanitizes to nothing is invalid."""
        strategy = StandaloneStrategy(reconciler, catalog_manager, template_workspace_id=0)

        with pytest.raises(ValidationError):
            await strategy.create_project_workspace(Project(id="p1", name="///"))


class TestPollingTemplateAcquirer:
    """Test suite for PollingTemplateAcquirer."""

    @pytest.mark.asyncio
    async def test_no_url(self, reconciler) -> None:
        """Test nothing is polled without a distribution URL."""
        assert await PollingTemplateAcquirer(reconciler).acquire() is None

    @pytest.mark.asyncio
    async def test_found_after_polling(self, reconciler) -> None:
        """Test polling stops once the template workspace appears."""
        sleep = AsyncMock()
        found = Workspace(id=55, name="Project Online Migration")
        acquirer = PollingTemplateAcquirer(
            reconciler, distribution_url="https://example.com/t", interval=5.0, sleep=sleep
        )

        with patch.object(
            reconciler, "find_workspace", AsyncMock(side_effect=[None, None, found])
        ):
            assert await acquirer.acquire() == 55

        assert [c.args[0] for c in sleep.await_args_list] == [5.0, 5.0]

    @pytest.mark.asyncio
    async def test_gives_up(self, reconciler) -> None:
        """Test None is returned once the attempts run out."""
        sleep = AsyncMock()
        acquirer = PollingTemplateAcquirer(
            reconciler, distribution_url="https://example.com/t", max_attempts=3, sleep=sleep
        )

        assert await acquirer.acquire() is None
        assert sleep.await_count == 2


class TestRegistry:
    """Test suite for StrategyRegistry and the portfolio placeholder."""

    def test_memoized_per_type(self, registry) -> None:
        """Test one instance per solution type, however it is spelled."""
        first = registry.get("standaloneworkspaces")

        assert first is registry.get(SolutionType.STANDALONE)
        assert isinstance(first, StandaloneStrategy)
        assert set(registry.available) == set(SolutionType)

    def test_unregistered_type(self) -> None:
        """Test asking an empty registry is a configuration error."""
        with pytest.raises(ConfigurationError, match="No strategy registered"):
            StrategyRegistry().get(SolutionType.STANDALONE)

    def test_register_replaces_instance(self, registry) -> None:
        """Test re-registering a type drops the memoized instance."""
        portfolio = registry.get(SolutionType.PORTFOLIO)
        registry.register(SolutionType.PORTFOLIO, PortfolioStrategy)

        assert registry.get(SolutionType.PORTFOLIO) is not portfolio

    @pytest.mark.asyncio
    async def test_portfolio_fails_fast(self, registry, fake_target) -> None:
        """Test the portfolio strategy refuses both operations without I/O."""
        strategy = registry.get("Portfolio")

        with pytest.raises(ConfigurationError, match="not yet implemented"):
            await strategy.create_standards_workspace()
        with pytest.raises(ConfigurationError, match="not yet implemented"):
            await strategy.create_project_workspace(Project(id="p1", name="Apollo"))
        assert sum(fake_target.calls.values()) == 0
