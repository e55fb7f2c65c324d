"""
pomigrate - Project Online to Smartsheet migration.

Extracts a project with its tasks, resources and assignments, and loads it
into a workspace of linked sheets. Re-running a load is idempotent.
"""

__version__ = "0.4.0"

# Re-export the main entry points for convenience
from pomigrate.core.config.models import MigrationConfig
from pomigrate.core.orchestrator import ImportResult, LoadOrchestrator, LoadStage

__all__ = ["MigrationConfig", "ImportResult", "LoadOrchestrator", "LoadStage", "__version__"]
