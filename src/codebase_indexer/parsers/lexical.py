"""Line-window fallback chunker.

Used whenever the semantic chunker returns nothing. Small files become a
single ``file`` chunk; larger ones are cut into overlapping line windows
that together cover the whole file.
"""

import re
from pathlib import Path

from ..config.defaults import DEFAULT_CHUNK_SIZE, LEXICAL_OVERLAP_LINES
from ..core.file_hash import compute_content_hash
from ..core.models import CodeChunk
from .semantic import language_for_path, relative_posix_path

# Declarations recognised without a grammar, across common languages
_SYMBOL_PATTERNS = [
    re.compile(r"^\s*(?:async\s+)?def\s+([A-Za-z_]\w*)", re.MULTILINE),
    re.compile(
        r"^\s*(?:export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+([A-Za-z_$][\w$]*)",
        re.MULTILINE,
    ),
    re.compile(
        r"^\s*(?:export\s+)?(?:default\s+)?(?:async\s+)?function\*?\s+([A-Za-z_$][\w$]*)",
        re.MULTILINE,
    ),
    re.compile(r"^\s*func\s+(?:\([^)]*\)\s*)?([A-Za-z_]\w*)", re.MULTILINE),
    re.compile(r"^\s*(?:pub(?:\([^)]*\))?\s+)?fn\s+([A-Za-z_]\w*)", re.MULTILINE),
    re.compile(
        r"^\s*(?:pub\s+)?(?:typedef\s+)?struct\s+([A-Za-z_]\w*)", re.MULTILINE
    ),
    re.compile(r"^\s*(?:export\s+)?interface\s+([A-Za-z_$][\w$]*)", re.MULTILINE),
]


def extract_symbols(text: str) -> tuple[str, ...]:
    """Scan text for declaration names, in order of appearance, without duplicates."""
    found: list[tuple[int, str]] = []
    for pattern in _SYMBOL_PATTERNS:
        found.extend((match.start(1), match.group(1)) for match in pattern.finditer(text))
    found.sort()

    symbols: list[str] = []
    for _, name in found:
        if name not in symbols:
            symbols.append(name)
    return tuple(symbols)


class LexicalChunker:
    """Splits text into line windows; never returns empty for non-blank input."""

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap_lines: int = LEXICAL_OVERLAP_LINES,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self.chunk_size = chunk_size
        self.overlap_lines = max(0, min(overlap_lines, chunk_size - 1))

    def chunk(
        self, file_path: str | Path, content: str, workspace_root: str | Path
    ) -> list[CodeChunk]:
        """Split a file into line-window chunks.

        Args:
            file_path: Absolute path of the file
            content: Decoded file text
            workspace_root: Workspace root, used for the relative path

        Returns:
            One ``file`` chunk for short files, otherwise overlapping
            ``block`` chunks; empty only for empty content
        """
        if not content:
            return []

        path = str(file_path)
        lines = content.splitlines()
        file_hash = compute_content_hash(content)
        relative_path = relative_posix_path(path, workspace_root)
        language = language_for_path(path) or Path(path).suffix[1:].lower() or "text"

        if len(lines) <= self.chunk_size:
            return [
                CodeChunk(
                    id=f"{path}:0",
                    file_path=path,
                    relative_path=relative_path,
                    file_hash=file_hash,
                    content=content,
                    start_line=1,
                    end_line=max(len(lines), 1),
                    type="file",
                    language=language,
                    symbols=extract_symbols(content),
                )
            ]

        chunks: list[CodeChunk] = []
        step = self.chunk_size - self.overlap_lines
        start_index = 0
        while start_index < len(lines):
            end_index = min(start_index + self.chunk_size, len(lines))
            window = "\n".join(lines[start_index:end_index])
            chunks.append(
                CodeChunk(
                    id=f"{path}:{start_index}",
                    file_path=path,
                    relative_path=relative_path,
                    file_hash=file_hash,
                    content=window,
                    start_line=start_index + 1,
                    end_line=end_index,
                    type="block",
                    language=language,
                    symbols=extract_symbols(window),
                )
            )
            if end_index == len(lines):
                break
            start_index += step
        return chunks
