"""Codebase Indexer - semantic chunking, embedding and incremental indexing of workspaces."""

__version__ = "0.3.1"

from .core.exceptions import CodebaseIndexerError

__all__ = ["CodebaseIndexerError", "__version__"]
