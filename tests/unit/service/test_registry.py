"""Tests for the per-workspace orchestrator registry."""

import pytest

from codebase_indexer.service.registry import IndexRegistry, normalize_workspace_path


class StubOrchestrator:
    def __init__(self, workspace_path: str) -> None:
        self.workspace_path = workspace_path
        self.destroyed = False

    async def destroy(self) -> None:
        self.destroyed = True


@pytest.fixture
def registry():
    return IndexRegistry(factory=StubOrchestrator)


class TestNormalizeWorkspacePath:
    def test_backslashes_and_case(self):
        assert normalize_workspace_path("C:\\Work\\Repo") == "c:/work/repo"

    def test_posix_path_lowercased(self):
        assert normalize_workspace_path("/Home/Dev/Project") == "/home/dev/project"


class TestIndexRegistry:
    def test_get_creates_once_per_workspace(self, registry):
        first = registry.get("C:\\Work\\Repo")
        second = registry.get("c:/work/repo")

        assert first is second
        assert len(registry) == 1
        assert first.workspace_path == "C:\\Work\\Repo"

    def test_distinct_workspaces(self, registry):
        assert registry.get("/ws/one") is not registry.get("/ws/two")
        assert len(registry) == 2

    def test_contains(self, registry):
        registry.get("/WS/One")

        assert "/ws/one" in registry
        assert "/ws/two" not in registry
        assert 42 not in registry

    @pytest.mark.asyncio
    async def test_destroy_single_workspace(self, registry):
        one = registry.get("/ws/one")
        two = registry.get("/ws/two")

        await registry.destroy("/WS/ONE")

        assert one.destroyed
        assert not two.destroyed
        assert "/ws/one" not in registry
        assert registry.get("/ws/one") is not one

    @pytest.mark.asyncio
    async def test_destroy_unknown_workspace_is_noop(self, registry):
        registry.get("/ws/one")
        await registry.destroy("/ws/missing")
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_destroy_all(self, registry):
        instances = [registry.get(f"/ws/{name}") for name in ("a", "b", "c")]

        await registry.destroy()

        assert all(instance.destroyed for instance in instances)
        assert len(registry) == 0
