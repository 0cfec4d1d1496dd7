"""Per-workspace orchestration of the indexing worker and the vector store."""

import asyncio
import time
from collections import deque
from collections.abc import Callable
from pathlib import Path
from typing import Any

from loguru import logger

from ..config.defaults import INDEX_DIR_NAME, PROGRESS_THROTTLE_MS
from ..config.settings import (
    IndexConfig,
    load_index_config,
    merge_embedding_config,
    merge_index_config,
)
from ..core.embeddings import ConnectionTestResult, EmbeddingClient, create_embedding_client
from ..core.exceptions import IndexNotInitializedError
from ..core.lancedb_store import LanceVectorStore
from ..core.models import IndexedChunk, IndexStatus, SearchResult
from ..core.vector_store import VectorStore
from ..worker.executor import EmbedderFactory
from ..worker.handles import ProcessWorker, WorkerHandle
from ..worker.protocol import (
    BatchUpdateCommand,
    BatchUpdateResultResponse,
    CompleteResponse,
    ErrorResponse,
    IndexCommand,
    ProgressResponse,
    ResultResponse,
    UpdateCommand,
    UpdateResultResponse,
    WorkerCommand,
    WorkerResponse,
    is_terminal,
)

ProgressCallback = Callable[[IndexStatus], Any]


class IndexOrchestrator:
    """Drives indexing of one workspace.

    Commands are posted to a worker running in an isolated execution
    context; its responses are applied to the vector store by a single
    consumer task, strictly in arrival order. All status mutation happens in
    those handlers, so no locking is needed.

    Example:
        async with IndexOrchestrator(workspace) as orchestrator:
            await orchestrator.index_workspace()
            await orchestrator.wait_until_idle()
            results = await orchestrator.search("parse config file")
    """

    def __init__(
        self,
        workspace_path: str | Path,
        config: IndexConfig | None = None,
        vector_store: VectorStore | None = None,
        embedder_factory: EmbedderFactory = create_embedding_client,
        worker_factory: Callable[[], WorkerHandle] = ProcessWorker,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            workspace_path: Root directory of the workspace
            config: Index configuration (defaults plus environment if omitted)
            vector_store: Store for indexed chunks (LanceDB under the
                workspace if omitted)
            embedder_factory: Builds the query-side embedding client
            worker_factory: Creates the worker execution context
            progress_callback: Receives a copy of the status on progress
        """
        self.workspace_path = Path(workspace_path).absolute()
        self.config = config or load_index_config()
        self.vector_store: VectorStore = vector_store or LanceVectorStore(
            self.workspace_path / INDEX_DIR_NAME / "lance"
        )
        self.progress_callback = progress_callback

        self._embedder_factory = embedder_factory
        self._embedder: EmbeddingClient = embedder_factory(self.config.embedding)
        self._worker_factory = worker_factory
        self._worker: WorkerHandle | None = None
        self._consumer: asyncio.Task | None = None

        self._status = IndexStatus()
        self._last_progress_emit = float("-inf")
        self._pending: deque[str] = deque()
        self._idle = asyncio.Event()
        self._idle.set()

    async def __aenter__(self) -> "IndexOrchestrator":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.destroy()

    # ── Lifecycle ───────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Open the vector store and seed the status from an existing index."""
        await self.vector_store.initialize()

        has_existing_index = await self.vector_store.has_index()
        if has_existing_index:
            stats = await self.vector_store.get_stats()
            self._status.total_chunks = stats.chunk_count
            self._status.total_files = stats.file_count

        logger.info(
            f"Initialized index for {self.workspace_path} "
            + (
                f"({self._status.total_chunks} chunks)"
                if has_existing_index
                else "(no index)"
            )
        )

    async def destroy(self) -> None:
        """Terminate the worker; commands still in flight are abandoned."""
        worker, self._worker = self._worker, None
        if worker is not None:
            await worker.terminate()
        if self._consumer is not None:
            try:
                await asyncio.wait_for(self._consumer, timeout=1.0)
            except (asyncio.TimeoutError, asyncio.CancelledError):
                self._consumer.cancel()
            self._consumer = None
        self._pending.clear()
        self._idle.set()
        logger.debug(f"Destroyed orchestrator for {self.workspace_path}")

    def _ensure_worker(self) -> WorkerHandle:
        if self._worker is None or not self._worker.is_running:
            self._worker = self._worker_factory()
            self._worker.start()
            self._consumer = asyncio.create_task(self._consume(self._worker))
        return self._worker

    def _post(self, command: WorkerCommand) -> None:
        worker = self._ensure_worker()
        self._pending.append(command.type)
        self._idle.clear()
        worker.post(command)

    async def wait_until_idle(self) -> None:
        """Wait until every posted command has finished and been applied."""
        await self._idle.wait()

    # ── Response handling ───────────────────────────────────────────────

    async def _consume(self, worker: WorkerHandle) -> None:
        while True:
            response = await worker.receive()
            if response is None:
                break

            try:
                await self._apply(response)
            except Exception as e:
                logger.error(f"Failed to apply worker {response.type} response: {e}")
                self._status.error = str(e)

            if self._pending and is_terminal(self._pending[0], response):
                self._pending.popleft()
            if not worker.is_running:
                # Crashed: nothing else will answer the remaining commands
                self._pending.clear()
            if not self._pending:
                self._idle.set()

        if worker is self._worker or self._worker is None:
            self._pending.clear()
            self._idle.set()

    async def _apply(self, response: WorkerResponse) -> None:
        if isinstance(response, ProgressResponse):
            self._status.indexed_files = response.processed
            if response.total:
                self._status.total_files = response.total
            self._emit_progress()

        elif isinstance(response, ResultResponse):
            if response.chunks:
                await self.vector_store.add_batch(response.chunks)
                self._status.total_chunks += len(response.chunks)
            self._status.indexed_files = response.processed
            if response.total:
                self._status.total_files = response.total
            self._emit_progress()

        elif isinstance(response, UpdateResultResponse):
            await self._apply_file_result(
                response.file_path, response.chunks, response.deleted
            )
            logger.info(f"Updated index for: {response.file_path}")

        elif isinstance(response, BatchUpdateResultResponse):
            for result in response.results:
                await self._apply_file_result(
                    result.file_path, result.chunks, result.deleted
                )
            logger.info(f"Batch updated {len(response.results)} files")

        elif isinstance(response, CompleteResponse):
            self._status.is_indexing = False
            self._status.indexed_files = self._status.total_files
            self._status.last_indexed_at = time.time()
            logger.info(
                f"Indexing complete. Total chunks: {self._status.total_chunks}"
            )
            self._emit_progress(force=True)

        elif isinstance(response, ErrorResponse):
            logger.error(f"Worker error: {response.error}")
            self._status.error = response.error
            self._status.is_indexing = False
            self._emit_progress(force=True)

    async def _apply_file_result(
        self, file_path: str, chunks: list[IndexedChunk], deleted: bool
    ) -> None:
        if deleted:
            await self.vector_store.delete_file(file_path)
        elif chunks:
            await self.vector_store.upsert_file(file_path, chunks)

    def _emit_progress(self, force: bool = False) -> None:
        """Notify the progress callback, at most once per throttle interval."""
        now = time.monotonic()
        if not force and (now - self._last_progress_emit) * 1000 < PROGRESS_THROTTLE_MS:
            return
        self._last_progress_emit = now

        if self.progress_callback is not None:
            try:
                self.progress_callback(self._status.copy())
            except Exception as e:
                logger.debug(f"Progress callback failed: {e}")

    # ── Indexing ────────────────────────────────────────────────────────

    def _resolve(self, file_path: str | Path) -> str:
        path = Path(file_path)
        if not path.is_absolute():
            path = self.workspace_path / path
        return str(path)

    async def index_workspace(self) -> None:
        """Start a full (incremental) index run.

        A call while a run is in progress is ignored. The run continues in
        the worker; use :meth:`wait_until_idle` to wait for it.
        """
        if self._status.is_indexing:
            logger.info("Already indexing, skipping...")
            return

        self._status = IndexStatus(is_indexing=True)
        self._emit_progress(force=True)

        try:
            if not self.vector_store.is_initialized():
                await self.vector_store.initialize()
            existing_hashes = await self.vector_store.get_file_hashes()
            logger.info(
                f"Starting indexing for {self.workspace_path} "
                f"({len(existing_hashes)} existing files)..."
            )
            self._post(
                IndexCommand(
                    workspace_path=str(self.workspace_path),
                    config=self.config,
                    existing_hashes=list(existing_hashes.items()),
                )
            )
        except Exception as e:
            logger.error(f"Indexing failed: {e}")
            self._status.error = str(e)
            self._status.is_indexing = False
            self._emit_progress(force=True)

    async def update_file(self, file_path: str | Path) -> None:
        """Re-index one file in the background."""
        if not self.vector_store.is_initialized():
            return
        if not self.config.includes(Path(file_path).name):
            return

        self._post(
            UpdateCommand(
                workspace_path=str(self.workspace_path),
                file=self._resolve(file_path),
                config=self.config,
            )
        )

    async def update_files(self, file_paths: list[str | Path]) -> None:
        """Re-index several files in one background batch."""
        if not self.vector_store.is_initialized() or not file_paths:
            return

        valid_files = [
            self._resolve(path)
            for path in file_paths
            if self.config.includes(Path(path).name)
        ]
        if not valid_files:
            return

        logger.info(f"Batch updating {len(valid_files)} files")
        self._post(
            BatchUpdateCommand(
                workspace_path=str(self.workspace_path),
                files=valid_files,
                config=self.config,
            )
        )

    async def delete_file_index(self, file_path: str | Path) -> None:
        """Remove a file's chunks from the store."""
        if not self.vector_store.is_initialized():
            return
        resolved = self._resolve(file_path)
        await self.vector_store.delete_file(resolved)
        logger.info(f"Deleted index for: {resolved}")

    async def clear_index(self) -> None:
        await self.vector_store.clear()
        self._status = IndexStatus()
        logger.info("Index cleared")

    # ── Queries ─────────────────────────────────────────────────────────

    async def search(self, query: str, top_k: int = 10) -> list[SearchResult]:
        """Semantic search; the query is embedded here, not in the worker.

        Raises:
            IndexNotInitializedError: If the vector store is not initialized
        """
        if not self.vector_store.is_initialized():
            raise IndexNotInitializedError("Index not initialized")

        query_vector = await self._embedder.embed(query)
        return await self.vector_store.search(query_vector, top_k)

    async def hybrid_search(self, query: str, top_k: int = 10) -> list[SearchResult]:
        """Vector search over twice the candidates, truncated to ``top_k``."""
        results = await self.search(query, top_k * 2)
        return results[:top_k]

    async def has_index(self) -> bool:
        return await self.vector_store.has_index()

    def get_status(self) -> IndexStatus:
        return self._status.copy()

    async def test_embedding_connection(self) -> ConnectionTestResult:
        return await self._embedder.test_connection()

    # ── Configuration ───────────────────────────────────────────────────

    def update_config(self, partial: dict[str, Any]) -> None:
        """Apply a partial config; takes effect with the next command."""
        self.config = merge_index_config(self.config, partial)
        if "embedding" in partial:
            self._embedder = self._embedder_factory(self.config.embedding)

    def update_embedding_config(self, partial: dict[str, Any]) -> None:
        """Apply partial embedding settings and rebuild the query-side client."""
        embedding = merge_embedding_config(self.config.embedding, partial)
        self.config = self.config.model_copy(update={"embedding": embedding})
        self._embedder = self._embedder_factory(embedding)
