"""Configuration for codebase-indexer."""

from .settings import (
    EmbeddingConfig,
    IndexConfig,
    load_index_config,
    merge_embedding_config,
    merge_index_config,
)

__all__ = [
    "EmbeddingConfig",
    "IndexConfig",
    "load_index_config",
    "merge_embedding_config",
    "merge_index_config",
]
