"""Semantic and lexical chunkers."""

from .lexical import LexicalChunker
from .semantic import SemanticChunker

__all__ = ["LexicalChunker", "SemanticChunker"]
