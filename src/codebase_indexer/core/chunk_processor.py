"""Chunk parsing and processing for semantic indexing."""

import asyncio
from pathlib import Path

from loguru import logger

from ..config.defaults import MAX_EMBEDDING_TEXT_LENGTH
from ..config.settings import IndexConfig
from ..parsers.lexical import LexicalChunker
from ..parsers.semantic import SemanticChunker
from .models import CodeChunk


def _deduplicate_chunks(chunks: list[CodeChunk]) -> list[CodeChunk]:
    """Remove chunks sharing an id, keeping the first occurrence.

    Two captures starting on the same row (e.g. several definitions on one
    line of minified code) would otherwise produce colliding ids.
    """
    if not chunks:
        return chunks

    seen_ids: set[str] = set()
    unique_chunks: list[CodeChunk] = []
    for chunk in chunks:
        if chunk.id not in seen_ids:
            seen_ids.add(chunk.id)
            unique_chunks.append(chunk)

    removed_count = len(chunks) - len(unique_chunks)
    if removed_count > 0:
        logger.trace(
            f"Removed {removed_count} duplicate chunks (kept {len(unique_chunks)})"
        )
    return unique_chunks


def prepare_text_for_embedding(chunk: CodeChunk) -> str:
    """Build the text sent to the embedding model for a chunk.

    The relative path and symbol names are prepended so that queries naming
    a file or a function match even when the body does not mention them.
    """
    text = f"File: {chunk.relative_path}\n"
    if chunk.symbols:
        text += f"Symbols: {', '.join(chunk.symbols)}\n"
    text += f"\n{chunk.content}"
    return text[:MAX_EMBEDDING_TEXT_LENGTH]


class ChunkProcessor:
    """Turns file content into chunks: semantic first, lexical as fallback.

    One processor is shared by every file of a worker command, so grammar
    load failures are cached for the lifetime of the worker.
    """

    def __init__(
        self,
        config: IndexConfig,
        semantic_chunker: SemanticChunker | None = None,
    ) -> None:
        """Initialize chunk processor.

        Args:
            config: Index configuration (chunk_size drives the fallback)
            semantic_chunker: Shared semantic chunker, created if omitted
        """
        self.semantic_chunker = semantic_chunker or SemanticChunker()
        self.lexical_chunker = LexicalChunker(chunk_size=config.chunk_size)

    def with_config(self, config: IndexConfig) -> "ChunkProcessor":
        """Processor for a new config that keeps the grammar cache."""
        if config.chunk_size == self.lexical_chunker.chunk_size:
            return self
        return ChunkProcessor(config, semantic_chunker=self.semantic_chunker)

    def chunk_content(
        self, file_path: str | Path, content: str, workspace_root: str | Path
    ) -> list[CodeChunk]:
        """Chunk one file synchronously.

        Args:
            file_path: Absolute path of the file
            content: Decoded file text
            workspace_root: Workspace root

        Returns:
            Semantic chunks, or lexical chunks when the semantic pass yields
            nothing; empty only for empty content
        """
        try:
            chunks = self.semantic_chunker.chunk(file_path, content, workspace_root)
        except Exception as e:
            logger.debug(f"Semantic chunking failed for {file_path}: {e}")
            chunks = []

        if not chunks:
            chunks = self.lexical_chunker.chunk(file_path, content, workspace_root)
            logger.trace(f"Lexical fallback produced {len(chunks)} chunks for {file_path}")

        return _deduplicate_chunks(chunks)

    async def parse_content(
        self, file_path: str | Path, content: str, workspace_root: str | Path
    ) -> list[CodeChunk]:
        """Chunk one file without blocking the event loop.

        Tree-sitter parsing is CPU-bound and synchronous, so it runs in a
        worker thread.
        """
        return await asyncio.to_thread(
            self.chunk_content, file_path, content, workspace_root
        )
