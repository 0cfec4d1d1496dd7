"""LanceDB-backed persistent vector store.

One ``chunks`` table holds every indexed chunk with its vector. The table
is created on the first write, once the vector dimension is known.
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Any

import lancedb
import pyarrow as pa
import pyarrow.compute as pc
from loguru import logger

from .exceptions import IndexNotInitializedError, SearchError, VectorStoreError
from .models import CodeChunk, IndexedChunk, SearchResult, VectorStoreStats
from .vector_store import group_by_file

# Maximum number of file paths per SQL IN clause; very long predicates
# overflow the DataFusion parser.
DELETE_BATCH_LIMIT = 500


def _create_chunks_schema(vector_dim: int) -> pa.Schema:
    """PyArrow schema for the chunks table (fixed-size vector column)."""
    return pa.schema(
        [
            pa.field("id", pa.string()),
            pa.field("vector", pa.list_(pa.float32(), vector_dim)),
            pa.field("file_path", pa.string()),
            pa.field("relative_path", pa.string()),
            pa.field("file_hash", pa.string()),
            pa.field("content", pa.string()),
            pa.field("start_line", pa.int32()),
            pa.field("end_line", pa.int32()),
            pa.field("chunk_type", pa.string()),
            pa.field("language", pa.string()),
            pa.field("symbols", pa.list_(pa.string())),
        ]
    )


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _row_to_chunk(row: dict[str, Any]) -> CodeChunk:
    return CodeChunk(
        id=row["id"],
        file_path=row["file_path"],
        relative_path=row["relative_path"],
        file_hash=row["file_hash"],
        content=row["content"],
        start_line=int(row["start_line"]),
        end_line=int(row["end_line"]),
        type=row["chunk_type"],
        language=row["language"],
        symbols=tuple(row.get("symbols") or ()),
    )


class LanceVectorStore:
    """Vector store persisted with LanceDB.

    Example:
        store = LanceVectorStore(workspace / ".codebase-indexer" / "lance")
        await store.initialize()
        await store.add_batch(indexed_chunks)
        results = await store.search(query_vector, top_k=10)
    """

    TABLE_NAME = "chunks"

    def __init__(self, db_path: Path, vector_dim: int | None = None) -> None:
        """Initialize the store.

        Args:
            db_path: Directory of the LanceDB database
            vector_dim: Expected vector dimension (detected from the first batch
                if not provided)
        """
        self.db_path = Path(db_path)
        self.vector_dim = vector_dim
        self._db: Any = None
        self._table: Any = None

    def _table_names(self) -> list[str]:
        # list_tables() returns a response object with .tables in newer releases
        response = self._db.list_tables()
        return list(response.tables if hasattr(response, "tables") else response)

    async def initialize(self) -> None:
        """Connect to the database and open the chunks table if it exists.

        Raises:
            VectorStoreError: If the database cannot be opened
        """
        try:
            self.db_path.mkdir(parents=True, exist_ok=True)
            logger.info(f"Connecting to LanceDB at: {self.db_path}")
            self._db = lancedb.connect(str(self.db_path))

            if self.TABLE_NAME in self._table_names():
                self._table = self._db.open_table(self.TABLE_NAME)
                vector_type = self._table.schema.field("vector").type
                if hasattr(vector_type, "list_size"):
                    self.vector_dim = vector_type.list_size
                logger.debug(
                    f"Opened chunks table ({self._table.count_rows()} rows, "
                    f"dimension: {self.vector_dim})"
                )
            else:
                self._table = None
                logger.debug("Chunks table will be created on first write")
        except Exception as e:
            logger.error(f"Failed to initialize LanceDB store: {e}")
            raise VectorStoreError(f"Vector store initialization failed: {e}") from e

    def is_initialized(self) -> bool:
        return self._db is not None

    def _require_initialized(self) -> None:
        if self._db is None:
            raise IndexNotInitializedError("Vector store not initialized")

    async def has_index(self) -> bool:
        return self._table is not None and self._table.count_rows() > 0

    async def get_stats(self) -> VectorStoreStats:
        if self._table is None:
            return VectorStoreStats(chunk_count=0, file_count=0)
        try:
            paths = self._table.to_arrow().column("file_path")
            return VectorStoreStats(
                chunk_count=len(paths), file_count=len(pc.unique(paths))
            )
        except Exception as e:
            logger.error(f"Failed to get vector store stats: {e}")
            return VectorStoreStats(chunk_count=0, file_count=0)

    async def get_file_hashes(self) -> dict[str, str]:
        """Map of file path to the content hash it was indexed with."""
        if self._table is None:
            return {}
        try:
            rows = self._table.to_arrow().select(["file_path", "file_hash"]).to_pylist()
        except Exception as e:
            raise VectorStoreError(f"Failed to read file hashes: {e}") from e
        return {row["file_path"]: row["file_hash"] for row in rows}

    def _to_arrow(self, chunks: Sequence[IndexedChunk]) -> pa.Table:
        rows = []
        for chunk in chunks:
            if self.vector_dim is None:
                self.vector_dim = len(chunk.vector)
                logger.info(f"Auto-detected vector dimension: {self.vector_dim}D")
            if len(chunk.vector) != self.vector_dim:
                raise VectorStoreError(
                    f"Invalid vector dimension for chunk {chunk.id}: "
                    f"expected {self.vector_dim}, got {len(chunk.vector)}"
                )
            rows.append(
                {
                    "id": chunk.id,
                    "vector": chunk.vector,
                    "file_path": chunk.file_path,
                    "relative_path": chunk.relative_path,
                    "file_hash": chunk.file_hash,
                    "content": chunk.content,
                    "start_line": chunk.start_line,
                    "end_line": chunk.end_line,
                    "chunk_type": chunk.type,
                    "language": chunk.language,
                    "symbols": list(chunk.symbols),
                }
            )
        return pa.Table.from_pylist(rows, schema=_create_chunks_schema(self.vector_dim))

    def _delete_files(self, file_paths: list[str]) -> None:
        """Delete every row of the given files, in bounded IN batches."""
        if self._table is None or not file_paths:
            return
        for i in range(0, len(file_paths), DELETE_BATCH_LIMIT):
            batch = file_paths[i : i + DELETE_BATCH_LIMIT]
            values_sql = ", ".join(_quote(fp) for fp in batch)
            self._table.delete(f"file_path IN ({values_sql})")

    async def add_batch(self, chunks: Sequence[IndexedChunk]) -> None:
        """Store chunks, replacing whatever was stored for their files.

        Raises:
            IndexNotInitializedError: If the store is not initialized
            VectorStoreError: If the write fails
        """
        self._require_initialized()
        if not chunks:
            return

        try:
            data = self._to_arrow(chunks)
            if self._table is None:
                self._table = self._db.create_table(
                    self.TABLE_NAME, data, schema=data.schema
                )
                logger.debug(
                    f"Created chunks table with {len(chunks)} rows "
                    f"(dimension: {self.vector_dim})"
                )
                return

            self._delete_files(list(group_by_file(chunks)))
            self._table.add(data)
            logger.trace(f"Appended {len(chunks)} chunks to LanceDB")
        except VectorStoreError:
            raise
        except Exception as e:
            logger.error(f"Failed to add chunks: {e}")
            raise VectorStoreError(f"Failed to add chunks: {e}") from e

    async def upsert_file(self, file_path: str, chunks: Sequence[IndexedChunk]) -> None:
        """Replace all chunks of one file."""
        self._require_initialized()
        if not chunks:
            await self.delete_file(file_path)
            return
        await self.add_batch([c for c in chunks if c.file_path == file_path])

    async def delete_file(self, file_path: str) -> None:
        self._require_initialized()
        try:
            self._delete_files([file_path])
        except Exception as e:
            logger.error(f"Failed to delete chunks for {file_path}: {e}")
            raise VectorStoreError(f"Failed to delete chunks: {e}") from e
        logger.debug(f"Deleted chunks for file: {file_path}")

    async def search(self, vector: Sequence[float], top_k: int) -> list[SearchResult]:
        """Cosine-similarity search over all chunks.

        Raises:
            IndexNotInitializedError: If the store is not initialized
            SearchError: If the query fails
        """
        self._require_initialized()
        if self._table is None or top_k <= 0:
            return []

        if self.vector_dim is not None and len(vector) != self.vector_dim:
            raise SearchError(
                f"Invalid query vector dimension: "
                f"expected {self.vector_dim}, got {len(vector)}"
            )

        try:
            rows = (
                self._table.search(list(vector))
                .distance_type("cosine")
                .limit(top_k)
                .to_list()
            )
        except Exception as e:
            logger.error(f"Vector search failed: {e}")
            raise SearchError(f"Vector search failed: {e}") from e

        results = [
            SearchResult(chunk=_row_to_chunk(row), score=1.0 - float(row["_distance"]))
            for row in rows
        ]
        logger.debug(f"Vector search returned {len(results)} results (limit: {top_k})")
        return results

    async def clear(self) -> None:
        """Drop the chunks table; it is recreated on the next write."""
        self._require_initialized()
        if self.TABLE_NAME in self._table_names():
            self._db.drop_table(self.TABLE_NAME)
        self._table = None
        self.vector_dim = None
        logger.info("Cleared chunks table")

    async def close(self) -> None:
        """Drop references; LanceDB needs no explicit close."""
        self._table = None
        self._db = None
        logger.debug("LanceDB store closed")
