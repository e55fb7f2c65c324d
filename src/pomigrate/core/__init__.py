"""Core migration pipeline: sources, transforms, target reconciliation and load orchestration."""
