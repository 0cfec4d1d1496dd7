"""Workspace-level indexing services."""

from .orchestrator import IndexOrchestrator
from .registry import IndexRegistry, normalize_workspace_path

__all__ = ["IndexOrchestrator", "IndexRegistry", "normalize_workspace_path"]
