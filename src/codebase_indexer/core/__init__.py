"""Core functionality for codebase-indexer."""

from .exceptions import (
    CodebaseIndexerError,
    ConfigError,
    EmbeddingError,
    GrammarLoadError,
    IndexingError,
    IndexNotInitializedError,
    ProtocolError,
    SearchError,
    VectorStoreError,
    WorkerError,
)
from .models import (
    CodeChunk,
    FileUpdateResult,
    IndexedChunk,
    IndexStatus,
    SearchResult,
    VectorStoreStats,
)

__all__ = [
    # Exceptions
    "CodebaseIndexerError",
    "ConfigError",
    "EmbeddingError",
    "GrammarLoadError",
    "IndexingError",
    "IndexNotInitializedError",
    "ProtocolError",
    "SearchError",
    "VectorStoreError",
    "WorkerError",
    # Models
    "CodeChunk",
    "FileUpdateResult",
    "IndexedChunk",
    "IndexStatus",
    "SearchResult",
    "VectorStoreStats",
]
