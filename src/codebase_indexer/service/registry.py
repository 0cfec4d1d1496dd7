"""Registry of per-workspace orchestrators."""

from collections.abc import Callable
from pathlib import Path

from loguru import logger

from .orchestrator import IndexOrchestrator

OrchestratorFactory = Callable[[str], IndexOrchestrator]


def normalize_workspace_path(workspace_path: str | Path) -> str:
    """Registry key for a workspace: forward slashes, lower case."""
    return str(workspace_path).replace("\\", "/").lower()


class IndexRegistry:
    """Owns one :class:`IndexOrchestrator` per workspace.

    Instances are created lazily on first access and live until
    :meth:`destroy` is called for their workspace (or for all of them).
    """

    def __init__(self, factory: OrchestratorFactory = IndexOrchestrator) -> None:
        self._factory = factory
        self._instances: dict[str, IndexOrchestrator] = {}

    def __len__(self) -> int:
        return len(self._instances)

    def __contains__(self, workspace_path: object) -> bool:
        if not isinstance(workspace_path, str | Path):
            return False
        return normalize_workspace_path(workspace_path) in self._instances

    def get(self, workspace_path: str | Path) -> IndexOrchestrator:
        """Return the orchestrator for a workspace, creating it if needed."""
        key = normalize_workspace_path(workspace_path)
        instance = self._instances.get(key)
        if instance is None:
            instance = self._factory(str(workspace_path))
            self._instances[key] = instance
            logger.info(f"Created index orchestrator for: {workspace_path}")
        return instance

    async def destroy(self, workspace_path: str | Path | None = None) -> None:
        """Destroy one workspace's orchestrator, or all of them."""
        if workspace_path is not None:
            instance = self._instances.pop(normalize_workspace_path(workspace_path), None)
            if instance is not None:
                await instance.destroy()
                logger.info(f"Orchestrator destroyed for: {workspace_path}")
            return

        instances, self._instances = self._instances, {}
        for key, instance in instances.items():
            await instance.destroy()
            logger.debug(f"Orchestrator destroyed for: {key}")
        logger.info("All orchestrators destroyed")
