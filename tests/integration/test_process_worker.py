"""Integration tests for the process-hosted indexing worker.

These spawn a real child process, so they are slower than the unit tests.
"""

import asyncio
from pathlib import Path

import pytest

from codebase_indexer.config.settings import IndexConfig
from codebase_indexer.core.vector_store import InMemoryVectorStore
from codebase_indexer.service.orchestrator import IndexOrchestrator
from codebase_indexer.worker.handles import ProcessWorker
from codebase_indexer.worker.protocol import (
    CompleteResponse,
    ErrorResponse,
    IndexCommand,
    ProgressResponse,
)

pytestmark = [pytest.mark.integration, pytest.mark.asyncio]

RECEIVE_TIMEOUT = 60.0


async def test_empty_workspace_round_trip(tmp_path: Path):
    worker = ProcessWorker()
    worker.start()
    try:
        worker.post(IndexCommand(workspace_path=str(tmp_path), config=IndexConfig()))

        first = await asyncio.wait_for(worker.receive(), RECEIVE_TIMEOUT)
        second = await asyncio.wait_for(worker.receive(), RECEIVE_TIMEOUT)
    finally:
        await worker.terminate()

    assert first == ProgressResponse(processed=0, total=0)
    assert second == CompleteResponse(total_chunks=0)
    assert not worker.is_running


async def test_receive_returns_none_after_terminate():
    worker = ProcessWorker()
    worker.start()
    await worker.terminate()

    assert await asyncio.wait_for(worker.receive(), RECEIVE_TIMEOUT) is None


async def test_orchestrator_with_process_worker(tmp_path: Path):
    """An empty workspace completes through the real process boundary."""
    orchestrator = IndexOrchestrator(
        tmp_path,
        config=IndexConfig(),
        vector_store=InMemoryVectorStore(),
        embedder_factory=lambda config: None,
    )
    async with orchestrator:
        await orchestrator.index_workspace()
        await asyncio.wait_for(orchestrator.wait_until_idle(), RECEIVE_TIMEOUT)
        status = orchestrator.get_status()

    assert status.error is None
    assert not status.is_indexing
    assert status.total_chunks == 0
    assert status.last_indexed_at is not None


async def test_killed_process_surfaces_error_response():
    worker = ProcessWorker()
    worker.start()
    try:
        worker._process.kill()

        response = await asyncio.wait_for(worker.receive(), RECEIVE_TIMEOUT)
    finally:
        await worker.terminate()

    assert response == ErrorResponse(error="Indexing worker exited unexpectedly")
    assert not worker.is_running


async def test_orchestrator_recovers_from_worker_crash(tmp_path: Path):
    """A crash fails the run; the next run starts a fresh worker."""
    orchestrator = IndexOrchestrator(
        tmp_path,
        config=IndexConfig(),
        vector_store=InMemoryVectorStore(),
        embedder_factory=lambda config: None,
    )
    async with orchestrator:
        await orchestrator.index_workspace()
        crashed = orchestrator._worker
        crashed._process.kill()
        await asyncio.wait_for(orchestrator.wait_until_idle(), RECEIVE_TIMEOUT)
        failed = orchestrator.get_status()

        await orchestrator.index_workspace()
        await asyncio.wait_for(orchestrator.wait_until_idle(), RECEIVE_TIMEOUT)
        recovered = orchestrator.get_status()
        replacement = orchestrator._worker

    assert failed.error == "Indexing worker exited unexpectedly"
    assert not failed.is_indexing
    assert replacement is not crashed
    assert recovered.error is None
    assert recovered.last_indexed_at is not None
