"""Command handlers of the indexing worker.

The worker scans, chunks and embeds files and streams the results back
through an ``emit`` callback. It never touches the vector store; the
orchestrator applies every response on its side of the boundary.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import aiofiles
from loguru import logger

from ..config.defaults import (
    BATCH_CONCURRENCY,
    INDEX_CONCURRENCY,
    PROGRESS_EVERY_FILES,
    RESULT_BATCH_SIZE,
)
from ..config.settings import EmbeddingConfig, IndexConfig
from ..core.chunk_processor import ChunkProcessor, prepare_text_for_embedding
from ..core.embeddings import EmbeddingClient, create_embedding_client
from ..core.file_discovery import FileDiscovery
from ..core.file_hash import FileChange, FileHashTracker, compute_content_hash
from ..core.models import CodeChunk, FileUpdateResult, IndexedChunk
from .protocol import (
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
)

Emit = Callable[[WorkerResponse], None]
EmbedderFactory = Callable[[EmbeddingConfig], EmbeddingClient]


async def read_text_file(file_path: Path) -> str | None:
    """Read a file as UTF-8 text; None if it no longer exists."""
    try:
        async with aiofiles.open(file_path, encoding="utf-8", errors="replace") as f:
            return await f.read()
    except FileNotFoundError:
        return None


@dataclass
class _IndexRun:
    """Mutable bookkeeping of one ``index`` command."""

    emit: Emit
    total_files: int
    processed_files: int = 0
    total_chunks: int = 0
    skipped_files: int = 0
    failed_files: int = 0
    dropped_vectors: int = 0
    pending: list[IndexedChunk] = field(default_factory=list)

    def flush(self) -> None:
        if self.pending:
            self.emit(
                ResultResponse(
                    chunks=self.pending,
                    processed=self.processed_files,
                    total=self.total_files,
                )
            )
            self.pending = []

    def ping(self) -> None:
        if self.processed_files % PROGRESS_EVERY_FILES == 0:
            self.emit(
                ProgressResponse(processed=self.processed_files, total=self.total_files)
            )


class IndexWorker:
    """Executes worker commands one at a time.

    Chunkers persist across commands so grammar load failures are only
    reported once; the embedding client is rebuilt when its config changes.
    """

    def __init__(
        self,
        embedder_factory: EmbedderFactory = create_embedding_client,
        index_concurrency: int = INDEX_CONCURRENCY,
        batch_concurrency: int = BATCH_CONCURRENCY,
    ) -> None:
        """Initialize the worker.

        Args:
            embedder_factory: Builds an embedding client from config
            index_concurrency: Files processed concurrently by ``index``
            batch_concurrency: Files processed concurrently by ``batch_update``
        """
        self._embedder_factory = embedder_factory
        self._index_concurrency = index_concurrency
        self._batch_concurrency = batch_concurrency
        self._processor: ChunkProcessor | None = None
        self._embedder: EmbeddingClient | None = None
        self._embedder_config: EmbeddingConfig | None = None

    def _get_processor(self, config: IndexConfig) -> ChunkProcessor:
        if self._processor is None:
            self._processor = ChunkProcessor(config)
        else:
            self._processor = self._processor.with_config(config)
        return self._processor

    def _get_embedder(self, config: IndexConfig) -> EmbeddingClient:
        if self._embedder is None or self._embedder_config != config.embedding:
            self._embedder = self._embedder_factory(config.embedding)
            self._embedder_config = config.embedding
        return self._embedder

    async def handle(self, command: WorkerCommand, emit: Emit) -> None:
        """Run one command; any escaping exception becomes an error response."""
        try:
            if isinstance(command, IndexCommand):
                await self.handle_index(command, emit)
            elif isinstance(command, UpdateCommand):
                await self.handle_update(command, emit)
            elif isinstance(command, BatchUpdateCommand):
                await self.handle_batch_update(command, emit)
            else:
                raise TypeError(f"Unsupported command: {command!r}")
        except Exception as e:
            command_type = getattr(command, "type", type(command).__name__)
            logger.error(f"Worker command {command_type} failed: {e}")
            emit(ErrorResponse(error=str(e)))

    async def _embed_chunks(
        self, chunks: list[CodeChunk], embedder: EmbeddingClient
    ) -> tuple[list[IndexedChunk], int]:
        """Embed all chunks of one file in a single batched call.

        Returns:
            Chunks that received a vector, and how many were dropped
        """
        if not chunks:
            return [], 0
        texts = [prepare_text_for_embedding(chunk) for chunk in chunks]
        vectors = await embedder.embed_batch(texts)

        indexed: list[IndexedChunk] = []
        for i, chunk in enumerate(chunks):
            vector = vectors[i] if i < len(vectors) else None
            if vector:
                indexed.append(IndexedChunk.from_chunk(chunk, vector))
        return indexed, len(chunks) - len(indexed)

    # ── index ───────────────────────────────────────────────────────────

    async def handle_index(self, command: IndexCommand, emit: Emit) -> None:
        """Full scan of a workspace.

        Emits one deleted ``update_result`` per vanished path, then
        ``progress{0,total}``, streamed ``result`` batches with interleaved
        ``progress`` pings and finally ``complete``.
        """
        config = command.config
        workspace_root = Path(command.workspace_path).absolute()
        discovery = FileDiscovery(workspace_root, config)
        files = [str(path) for path in await discovery.find_indexable_files()]
        total_files = len(files)

        tracker = FileHashTracker(dict(command.existing_hashes or []))
        if command.existing_hashes is not None:
            for deleted_path in tracker.deleted_paths(files):
                emit(UpdateResultResponse(file_path=deleted_path, deleted=True))

        emit(ProgressResponse(processed=0, total=total_files))
        if total_files == 0:
            emit(CompleteResponse(total_chunks=0))
            return

        logger.info(f"Indexing {total_files} files in {workspace_root}")
        processor = self._get_processor(config)
        embedder = self._get_embedder(config)
        semaphore = asyncio.Semaphore(self._index_concurrency)
        run = _IndexRun(emit=emit, total_files=total_files)

        async def process_file(file_path: str) -> None:
            async with semaphore:
                try:
                    content = await read_text_file(Path(file_path))
                    if content is None:
                        logger.debug(f"File vanished before indexing: {file_path}")
                        run.skipped_files += 1
                        run.processed_files += 1
                        return

                    if len(content) > config.max_file_size:
                        logger.debug(f"Skipping oversized file: {file_path}")
                        run.skipped_files += 1
                        run.processed_files += 1
                        return

                    change = tracker.classify(file_path, compute_content_hash(content))
                    if not change.needs_reindex:
                        run.skipped_files += 1
                        run.processed_files += 1
                        run.ping()
                        return

                    chunks = await processor.parse_content(
                        file_path, content, workspace_root
                    )
                    if not chunks and change is FileChange.CHANGED:
                        # Emptied file: drop what the previous run stored
                        emit(UpdateResultResponse(file_path=file_path, deleted=True))
                    indexed, dropped = await self._embed_chunks(chunks, embedder)
                    run.pending.extend(indexed)
                    run.total_chunks += len(chunks)
                    run.dropped_vectors += dropped
                    run.processed_files += 1

                    if len(run.pending) >= RESULT_BATCH_SIZE:
                        run.flush()
                    else:
                        run.ping()
                except Exception as e:
                    logger.error(f"Error processing file {file_path}: {e}")
                    run.failed_files += 1
                    run.processed_files += 1

        await asyncio.gather(*(process_file(path) for path in files))
        run.flush()

        logger.info(
            f"Indexing complete. Total: {total_files}, Skipped: {run.skipped_files}, "
            f"Failed: {run.failed_files}, Chunks: {run.total_chunks}, "
            f"Dropped vectors: {run.dropped_vectors}"
        )
        emit(CompleteResponse(total_chunks=run.total_chunks))

    # ── update / batch_update ───────────────────────────────────────────

    async def _update_one(
        self,
        file_path: str,
        config: IndexConfig,
        workspace_root: Path,
        processor: ChunkProcessor,
        embedder: EmbeddingClient,
    ) -> FileUpdateResult:
        """Re-chunk and re-embed one file.

        A vanished, oversized or chunkless file is reported deleted so the
        caller drops its stale entries.
        """
        content = await read_text_file(Path(file_path))
        if content is None:
            logger.debug(f"File no longer exists: {file_path}")
            return FileUpdateResult(file_path=file_path, deleted=True)

        if len(content) > config.max_file_size:
            logger.debug(f"File exceeds size limit, removing from index: {file_path}")
            return FileUpdateResult(file_path=file_path, deleted=True)

        chunks = await processor.parse_content(file_path, content, workspace_root)
        if not chunks:
            return FileUpdateResult(file_path=file_path, deleted=True)

        indexed, dropped = await self._embed_chunks(chunks, embedder)
        if dropped:
            logger.debug(f"Dropped {dropped} chunks without vectors for {file_path}")
        return FileUpdateResult(file_path=file_path, chunks=indexed)

    async def handle_update(self, command: UpdateCommand, emit: Emit) -> None:
        config = command.config
        result = await self._update_one(
            command.file,
            config,
            Path(command.workspace_path).absolute(),
            self._get_processor(config),
            self._get_embedder(config),
        )
        emit(
            UpdateResultResponse(
                file_path=result.file_path, chunks=result.chunks, deleted=result.deleted
            )
        )

    async def handle_batch_update(self, command: BatchUpdateCommand, emit: Emit) -> None:
        """Re-index several files; a failing file is left out of the result."""
        config = command.config
        workspace_root = Path(command.workspace_path).absolute()
        processor = self._get_processor(config)
        embedder = self._get_embedder(config)
        semaphore = asyncio.Semaphore(self._batch_concurrency)

        async def process_file(file_path: str) -> FileUpdateResult | None:
            async with semaphore:
                try:
                    return await self._update_one(
                        file_path, config, workspace_root, processor, embedder
                    )
                except Exception as e:
                    logger.error(f"Error updating file {file_path}: {e}")
                    return None

        outcomes = await asyncio.gather(*(process_file(f) for f in command.files))
        results = [outcome for outcome in outcomes if outcome is not None]
        logger.debug(
            f"Batch update: {len(results)}/{len(command.files)} files processed"
        )
        emit(BatchUpdateResultResponse(results=results))
