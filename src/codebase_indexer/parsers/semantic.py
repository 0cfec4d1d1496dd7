"""Tree-sitter based semantic chunker.

Parses a file with the grammar mapped from its extension, runs the
language's structural query and turns every sufficiently large capture
into a typed chunk. Anything the grammar cannot handle yields an empty
list so the caller can fall back to the lexical chunker.
"""

import os
import threading
from pathlib import Path
from typing import Any

from loguru import logger

from ..config.defaults import LANGUAGE_MAP, MIN_CAPTURE_ROW_SPAN
from ..core.exceptions import GrammarLoadError
from ..core.file_hash import compute_content_hash
from ..core.models import CodeChunk
from .queries import STRUCTURAL_QUERIES, capture_to_chunk_type

_IDENTIFIER_TYPES = frozenset({"identifier", "type_identifier", "name"})
_CHILD_IDENTIFIER_TYPES = frozenset({"identifier", "name"})


def language_for_path(file_path: str | Path) -> str | None:
    """Return the grammar id for a file's extension, or None."""
    ext = Path(file_path).suffix[1:].lower()
    return LANGUAGE_MAP.get(ext)


def relative_posix_path(file_path: str | Path, workspace_root: str | Path) -> str:
    """Workspace-relative path with forward slashes."""
    try:
        relative = Path(file_path).relative_to(workspace_root)
    except ValueError:
        relative = Path(os.path.relpath(file_path, workspace_root))
    return relative.as_posix()


def extract_name(node: Any) -> str | None:
    """Best-effort symbol name for a captured definition node.

    The node itself counts when it is an identifier; otherwise the first
    identifier-like direct child wins, looking one level into a
    ``function_declarator`` (C/C++ functions).
    """
    if node.type in _IDENTIFIER_TYPES:
        return _node_text(node)
    for child in node.children:
        if child.type in _CHILD_IDENTIFIER_TYPES:
            return _node_text(child)
        if child.type == "function_declarator":
            return extract_name(child)
    return None


def _node_text(node: Any) -> str:
    text = node.text
    if isinstance(text, bytes):
        return text.decode("utf-8", errors="replace")
    return text or ""


class _LoadedGrammar:
    """A grammar together with its compiled structural query (if any)."""

    def __init__(self, language: Any, query: Any | None) -> None:
        self.language = language
        self.query = query


class SemanticChunker:
    """Chunks source files along their syntactic definitions.

    Grammars are loaded lazily from ``tree-sitter-language-pack``. A grammar
    (or query) that fails to load is remembered and the language is routed
    to the fallback from then on, with a single warning.

    The chunker is safe to share between threads: grammars are cached under
    a lock and every call parses with its own ``Parser``.
    """

    def __init__(self) -> None:
        self._grammars: dict[str, _LoadedGrammar] = {}
        self._failed_languages: set[str] = set()
        self._lock = threading.Lock()

    def supports(self, file_path: str | Path) -> bool:
        """Check whether a file maps to a usable grammar with a query."""
        language = language_for_path(file_path)
        return (
            language is not None
            and language in STRUCTURAL_QUERIES
            and language not in self._failed_languages
        )

    def _load_grammar(self, language: str) -> _LoadedGrammar:
        """Load (or fetch from cache) a grammar and compile its query.

        Raises:
            GrammarLoadError: If the grammar or its query cannot be loaded
        """
        cached = self._grammars.get(language)
        if cached is not None:
            return cached

        with self._lock:
            cached = self._grammars.get(language)
            if cached is not None:
                return cached

            try:
                from tree_sitter import Query
                from tree_sitter_language_pack import get_language

                ts_language = get_language(language)
                query_src = STRUCTURAL_QUERIES.get(language)
                query = Query(ts_language, query_src) if query_src else None
            except Exception as e:
                raise GrammarLoadError(language, str(e)) from e

            loaded = _LoadedGrammar(ts_language, query)
            self._grammars[language] = loaded
            logger.debug(f"Loaded tree-sitter grammar for {language}")
            return loaded

    def _grammar_for(self, language: str) -> _LoadedGrammar | None:
        if language in self._failed_languages:
            return None
        try:
            return self._load_grammar(language)
        except GrammarLoadError as e:
            with self._lock:
                first_failure = language not in self._failed_languages
                self._failed_languages.add(language)
            if first_failure:
                logger.warning(f"{e} (will use fallback chunker)")
            return None

    def chunk(
        self, file_path: str | Path, content: str, workspace_root: str | Path
    ) -> list[CodeChunk]:
        """Split a file into semantic chunks.

        Never raises: any parser or query failure yields an empty list.

        Args:
            file_path: Absolute path of the file
            content: Decoded file text
            workspace_root: Workspace root, used for the relative path

        Returns:
            Chunks ordered by their start offset, or an empty list when the
            caller should fall back
        """
        if not self.supports(file_path):
            return []

        language = language_for_path(file_path)
        grammar = self._grammar_for(language)
        if grammar is None or grammar.query is None:
            return []

        try:
            return self._chunk_with_grammar(
                grammar, language, str(file_path), content, workspace_root
            )
        except Exception as e:
            logger.error(f"Error querying {file_path}: {e}")
            return []

    def _chunk_with_grammar(
        self,
        grammar: _LoadedGrammar,
        language: str,
        file_path: str,
        content: str,
        workspace_root: str | Path,
    ) -> list[CodeChunk]:
        from tree_sitter import Parser, QueryCursor

        source = content.encode("utf-8")
        tree = Parser(grammar.language).parse(source)

        captures_by_name = QueryCursor(grammar.query).captures(tree.root_node)
        captures = [
            (node, name) for name, nodes in captures_by_name.items() for node in nodes
        ]
        if not captures:
            return []

        # Deterministic file order; outer definitions precede nested ones
        captures.sort(key=lambda item: (item[0].start_byte, -item[0].end_byte))

        file_hash = compute_content_hash(content)
        relative_path = relative_posix_path(file_path, workspace_root)
        chunks: list[CodeChunk] = []

        for node, capture_name in captures:
            start_row = node.start_point[0]
            end_row = node.end_point[0]
            if end_row - start_row < MIN_CAPTURE_ROW_SPAN:
                continue

            name = extract_name(node)
            chunks.append(
                CodeChunk(
                    id=f"{file_path}:{start_row}",
                    file_path=file_path,
                    relative_path=relative_path,
                    file_hash=file_hash,
                    content=source[node.start_byte : node.end_byte].decode(
                        "utf-8", errors="replace"
                    ),
                    start_line=start_row + 1,
                    end_line=end_row + 1,
                    type=capture_to_chunk_type(capture_name),
                    language=language,
                    symbols=(name,) if name else (),
                )
            )

        logger.trace(f"{file_path}: {len(captures)} captures, {len(chunks)} chunks")
        return chunks
