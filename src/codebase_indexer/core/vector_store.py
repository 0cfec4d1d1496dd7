"""Vector store interface and an in-memory implementation."""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import numpy as np
from loguru import logger

from .exceptions import IndexNotInitializedError, SearchError
from .models import IndexedChunk, SearchResult, VectorStoreStats


@runtime_checkable
class VectorStore(Protocol):
    """Persistence for indexed chunks with nearest-neighbour search.

    The store owns the ``{file_path -> file_hash}`` map used for incremental
    indexing. ``add_batch`` and ``upsert_file`` both replace every chunk
    previously stored for the files they receive; all chunks of one file
    always arrive together.
    """

    async def initialize(self) -> None: ...

    def is_initialized(self) -> bool: ...

    async def has_index(self) -> bool: ...

    async def get_stats(self) -> VectorStoreStats: ...

    async def get_file_hashes(self) -> dict[str, str]: ...

    async def add_batch(self, chunks: Sequence[IndexedChunk]) -> None: ...

    async def upsert_file(self, file_path: str, chunks: Sequence[IndexedChunk]) -> None: ...

    async def delete_file(self, file_path: str) -> None: ...

    async def search(self, vector: Sequence[float], top_k: int) -> list[SearchResult]: ...

    async def clear(self) -> None: ...

    async def close(self) -> None: ...


def group_by_file(chunks: Sequence[IndexedChunk]) -> dict[str, list[IndexedChunk]]:
    """Group chunks by file path, preserving order within each file."""
    grouped: dict[str, list[IndexedChunk]] = {}
    for chunk in chunks:
        grouped.setdefault(chunk.file_path, []).append(chunk)
    return grouped


class InMemoryVectorStore:
    """Vector store kept entirely in process memory.

    Search is exact cosine similarity over all stored vectors.
    """

    def __init__(self) -> None:
        self._files: dict[str, list[IndexedChunk]] = {}
        self._initialized = False

    async def initialize(self) -> None:
        self._initialized = True

    def is_initialized(self) -> bool:
        return self._initialized

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise IndexNotInitializedError("Vector store not initialized")

    async def has_index(self) -> bool:
        return any(self._files.values())

    async def get_stats(self) -> VectorStoreStats:
        return VectorStoreStats(
            chunk_count=sum(len(chunks) for chunks in self._files.values()),
            file_count=sum(1 for chunks in self._files.values() if chunks),
        )

    async def get_file_hashes(self) -> dict[str, str]:
        return {
            path: chunks[0].file_hash for path, chunks in self._files.items() if chunks
        }

    async def add_batch(self, chunks: Sequence[IndexedChunk]) -> None:
        self._require_initialized()
        for file_path, file_chunks in group_by_file(chunks).items():
            self._files[file_path] = file_chunks
        logger.trace(f"Stored {len(chunks)} chunks in memory")

    async def upsert_file(self, file_path: str, chunks: Sequence[IndexedChunk]) -> None:
        self._require_initialized()
        if chunks:
            self._files[file_path] = list(chunks)
        else:
            self._files.pop(file_path, None)

    async def delete_file(self, file_path: str) -> None:
        self._require_initialized()
        self._files.pop(file_path, None)

    async def search(self, vector: Sequence[float], top_k: int) -> list[SearchResult]:
        self._require_initialized()
        candidates = [chunk for chunks in self._files.values() for chunk in chunks]
        if not candidates or top_k <= 0:
            return []

        query = np.asarray(vector, dtype=np.float32)
        matrix = np.asarray([chunk.vector for chunk in candidates], dtype=np.float32)
        if matrix.shape[1] != query.shape[0]:
            raise SearchError(
                f"Invalid query vector dimension: expected {matrix.shape[1]}, "
                f"got {query.shape[0]}"
            )

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        scores = np.divide(
            matrix @ query, norms, out=np.zeros(len(candidates)), where=norms > 0
        )
        order = np.argsort(-scores, kind="stable")[:top_k]
        return [
            SearchResult(chunk=candidates[i].to_chunk(), score=float(scores[i]))
            for i in order
        ]

    async def clear(self) -> None:
        self._files.clear()

    async def close(self) -> None:
        self._initialized = False
