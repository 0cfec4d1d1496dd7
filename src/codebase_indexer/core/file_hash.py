"""Content-hash tracking for incremental indexing."""

import hashlib
from collections.abc import Iterable, Mapping
from enum import Enum

from loguru import logger


def compute_content_hash(content: str) -> str:
    """Compute the SHA-256 hex digest of a file's text.

    Args:
        content: Decoded file text

    Returns:
        Hex digest, stable across runs and platforms
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class FileChange(str, Enum):
    """Outcome of comparing a file's current hash with the last indexed one."""

    UNCHANGED = "unchanged"
    CHANGED = "changed"
    NEW = "new"

    @property
    def needs_reindex(self) -> bool:
        return self is not FileChange.UNCHANGED


class FileHashTracker:
    """Decides which files need re-indexing based on their content hashes.

    The tracker holds the ``{path -> hash}`` map the vector store had at the
    start of a run. It never mutates that map; the store is updated through
    the chunks produced for changed files.
    """

    def __init__(self, known_hashes: Mapping[str, str] | None = None) -> None:
        # Plain dict keeps the prior map's insertion order for deletion reports
        self._known: dict[str, str] = dict(known_hashes or {})

    def __len__(self) -> int:
        return len(self._known)

    def classify(self, file_path: str, content_hash: str) -> FileChange:
        """Classify a file against the prior hash map.

        Args:
            file_path: Absolute file path (key of the prior map)
            content_hash: Hash of the file's current content

        Returns:
            UNCHANGED when the hashes match, NEW when there is no prior entry,
            CHANGED otherwise
        """
        previous = self._known.get(file_path)
        if previous is None:
            return FileChange.NEW
        if previous == content_hash:
            return FileChange.UNCHANGED
        return FileChange.CHANGED

    def deleted_paths(self, current_paths: Iterable[str]) -> list[str]:
        """Return previously indexed paths missing from the current listing.

        Paths are reported in the prior map's order, each exactly once.
        """
        current = set(current_paths)
        deleted = [path for path in self._known if path not in current]
        if deleted:
            logger.debug(f"Detected {len(deleted)} deleted files since last index")
        return deleted
