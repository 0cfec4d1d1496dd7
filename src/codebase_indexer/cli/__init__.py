"""Command-line interface for codebase-indexer."""
