"""File discovery and filtering for semantic indexing."""

import asyncio
import os
from pathlib import Path

from loguru import logger

from ..config.settings import IndexConfig


class FileDiscovery:
    """Finds the files of a workspace that should be indexed.

    Directories named in ``config.ignored_dirs`` and every dot-directory are
    pruned during the walk; files are kept when their lower-cased extension
    is in ``config.included_exts``.
    """

    def __init__(self, workspace_root: Path, config: IndexConfig) -> None:
        """Initialize file discovery.

        Args:
            workspace_root: Workspace root directory
            config: Index configuration supplying extension and directory filters
        """
        self.workspace_root = workspace_root.absolute()
        self.config = config

    def should_ignore_dir(self, name: str) -> bool:
        """Check if a directory should be skipped during traversal."""
        return name.startswith(".") or name in self.config.ignored_dirs

    def should_index_file(self, file_path: Path) -> bool:
        """Check if a file has an included extension."""
        return file_path.suffix.lower() in self.config.included_exts

    def scan_files_sync(self) -> list[Path]:
        """Walk the workspace synchronously.

        Uses os.walk with in-place directory filtering so ignored trees are
        never traversed. Unreadable directories are skipped.

        Returns:
            Sorted list of absolute file paths
        """
        indexable_files: list[Path] = []
        dir_count = 0

        def _on_error(error: OSError) -> None:
            logger.debug(f"Skipping unreadable directory {error.filename}: {error}")

        for root, dirs, files in os.walk(self.workspace_root, onerror=_on_error):
            root_path = Path(root)
            dir_count += 1

            # Filter IN-PLACE to prevent os.walk from descending
            dirs[:] = [d for d in dirs if not self.should_ignore_dir(d)]

            for filename in files:
                file_path = root_path / filename
                if self.should_index_file(file_path):
                    indexable_files.append(file_path.absolute())

        logger.debug(
            f"File scan complete: {dir_count} directories, "
            f"{len(indexable_files)} indexable files"
        )
        return sorted(indexable_files)

    async def find_indexable_files(self) -> list[Path]:
        """Find all files without blocking the event loop."""
        return await asyncio.to_thread(self.scan_files_sync)
