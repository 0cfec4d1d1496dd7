"""Typed exception hierarchy for codebase-indexer.

Hierarchy
---------
CodebaseIndexerError (base)
├── ConfigError            – configuration / validation errors
├── IndexingError          – indexing-time failures (named to avoid shadowing built-in IndexError)
│   └── GrammarLoadError   – tree-sitter grammar or query could not be loaded
├── EmbeddingError         – embedding generation / provider errors
├── VectorStoreError       – storage layer errors
│   └── IndexNotInitializedError
├── SearchError            – search-time failures
└── WorkerError            – worker lifecycle / transport errors
    └── ProtocolError      – malformed message on the worker boundary
"""

from typing import Any


class CodebaseIndexerError(Exception):
    """Base exception for codebase-indexer."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.context = context or {}


# ── Configuration layer ─────────────────────────────────────────────────


class ConfigError(CodebaseIndexerError):
    """Configuration / validation errors."""

    pass


# ── Indexing layer ──────────────────────────────────────────────────────


class IndexingError(CodebaseIndexerError):
    """Indexing operation failed.

    Named ``IndexingError`` (not ``IndexError``) to avoid shadowing
    the Python built-in ``IndexError``.
    """

    pass


class GrammarLoadError(IndexingError):
    """A tree-sitter grammar or its structural query could not be loaded."""

    def __init__(self, language: str, reason: str) -> None:
        super().__init__(
            f"Failed to load grammar for {language}: {reason}",
            context={"language": language},
        )
        self.language = language


# ── Embedding layer ─────────────────────────────────────────────────────


class EmbeddingError(CodebaseIndexerError):
    """Embedding generation errors."""

    pass


# ── Storage layer ───────────────────────────────────────────────────────


class VectorStoreError(CodebaseIndexerError):
    """Vector store errors (LanceDB / in-memory storage layer)."""

    pass


class IndexNotInitializedError(VectorStoreError):
    """Operation attempted on an uninitialized index."""

    pass


# ── Search layer ────────────────────────────────────────────────────────


class SearchError(CodebaseIndexerError):
    """Search operation failed."""

    pass


# ── Worker layer ────────────────────────────────────────────────────────


class WorkerError(CodebaseIndexerError):
    """Worker start-up, crash or transport failure."""

    pass


class ProtocolError(WorkerError):
    """A message crossing the worker boundary could not be decoded."""

    pass
