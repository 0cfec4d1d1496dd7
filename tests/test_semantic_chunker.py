"""Tests for the tree-sitter semantic chunker."""

from pathlib import Path

import pytest
from loguru import logger

from codebase_indexer.core.file_hash import compute_content_hash
from codebase_indexer.parsers import queries
from codebase_indexer.parsers.semantic import (
    SemanticChunker,
    language_for_path,
    relative_posix_path,
)

WORKSPACE = Path("/ws")

TWO_FUNCTIONS_PY = """def first(a):
    b = a + 1
    c = b * 2
    return c


def second(x):
    if x:
        return 1
    return 0
"""

NESTED_PY = """class Service:
    def run(self):
        x = 1
        y = 2
        return x + y
"""

TINY_PY = """def tiny():
    a = 1
    return a
"""

ARROW_JS = """const add = (a, b) => {
  const sum = a + b;
  console.log(sum);
  return sum;
};
"""


@pytest.fixture
def chunker():
    return SemanticChunker()


class TestLanguageMapping:
    def test_known_extensions(self):
        assert language_for_path("src/app.ts") == "typescript"
        assert language_for_path("src/App.TSX") == "tsx"
        assert language_for_path("lib/util.mjs") == "javascript"
        assert language_for_path("main.rs") == "rust"

    def test_unknown_extension(self):
        assert language_for_path("notes.txt") is None
        assert language_for_path("Makefile") is None

    def test_relative_posix_path(self):
        assert relative_posix_path("/ws/src/a.py", "/ws") == "src/a.py"


class TestPythonChunking:
    def test_functions_in_file_order(self, chunker):
        chunks = chunker.chunk("/ws/two.py", TWO_FUNCTIONS_PY, WORKSPACE)

        assert [c.symbols for c in chunks] == [("first",), ("second",)]
        assert [c.start_line for c in chunks] == [1, 7]
        assert [c.end_line for c in chunks] == [4, 10]
        assert all(c.type == "function" for c in chunks)
        assert all(c.language == "python" for c in chunks)

    def test_chunk_identity_and_hash(self, chunker):
        chunks = chunker.chunk("/ws/two.py", TWO_FUNCTIONS_PY, WORKSPACE)

        assert [c.id for c in chunks] == ["/ws/two.py:0", "/ws/two.py:6"]
        assert all(c.file_hash == compute_content_hash(TWO_FUNCTIONS_PY) for c in chunks)
        assert all(c.relative_path == "two.py" for c in chunks)

    def test_content_is_exact_source_slice(self, chunker):
        chunks = chunker.chunk("/ws/two.py", TWO_FUNCTIONS_PY, WORKSPACE)

        assert chunks[0].content == "def first(a):\n    b = a + 1\n    c = b * 2\n    return c"
        for chunk in chunks:
            assert chunk.content in TWO_FUNCTIONS_PY

    def test_nested_definitions_outer_first(self, chunker):
        chunks = chunker.chunk("/ws/nested.py", NESTED_PY, WORKSPACE)

        assert [(c.type, c.symbols) for c in chunks] == [
            ("class", ("Service",)),
            ("function", ("run",)),
        ]
        assert chunks[0].start_line == 1
        assert chunks[1].start_line == 2

    def test_short_definitions_are_skipped(self, chunker):
        assert chunker.chunk("/ws/tiny.py", TINY_PY, WORKSPACE) == []

    def test_class_with_short_methods(self, chunker, b_py_source):
        chunks = chunker.chunk("/ws/b.py", b_py_source, WORKSPACE)

        assert len(chunks) == 1
        assert chunks[0].type == "class"
        assert chunks[0].symbols == ("Greeter",)
        assert chunks[0].start_line == 1


class TestJavaScriptFamily:
    def test_exported_typescript_function_captured_once(self, chunker, a_ts_source):
        chunks = chunker.chunk("/ws/a.ts", a_ts_source, WORKSPACE)

        assert len(chunks) == 1
        chunk = chunks[0]
        assert chunk.type == "function"
        assert chunk.symbols == ("greet",)
        assert chunk.language == "typescript"
        assert (chunk.start_line, chunk.end_line) == (1, 7)
        assert chunk.content.startswith("function greet")

    def test_arrow_function_named_by_declarator(self, chunker):
        chunks = chunker.chunk("/ws/add.js", ARROW_JS, WORKSPACE)

        assert len(chunks) == 1
        assert chunks[0].type == "function"
        assert chunks[0].symbols == ("add",)


class TestFallbackSignals:
    def test_unknown_extension_returns_empty(self, chunker):
        assert chunker.chunk("/ws/notes.txt", TWO_FUNCTIONS_PY, WORKSPACE) == []
        assert not chunker.supports("/ws/notes.txt")

    def test_grammar_without_query_returns_empty(self, chunker):
        content = '{\n  "name": "demo",\n  "version": "1.0.0",\n  "private": true\n}\n'
        assert chunker.chunk("/ws/package.json", content, WORKSPACE) == []
        assert not chunker.supports("/ws/package.json")

    def test_supports_python(self, chunker):
        assert chunker.supports("/ws/main.py")

    def test_broken_query_is_cached_and_warned_once(self, chunker, monkeypatch):
        monkeypatch.setitem(
            queries.STRUCTURAL_QUERIES, "python", "(no_such_node_type) @function"
        )
        warnings: list[str] = []
        handler_id = logger.add(lambda message: warnings.append(str(message)), level="WARNING")
        try:
            first = chunker.chunk("/ws/two.py", TWO_FUNCTIONS_PY, WORKSPACE)
            second = chunker.chunk("/ws/other.py", TWO_FUNCTIONS_PY, WORKSPACE)
        finally:
            logger.remove(handler_id)

        assert first == []
        assert second == []
        assert not chunker.supports("/ws/two.py")
        assert len([w for w in warnings if "python" in w]) == 1

    def test_grammar_load_failure_does_not_affect_other_languages(
        self, chunker, monkeypatch, a_ts_source
    ):
        monkeypatch.setitem(
            queries.STRUCTURAL_QUERIES, "python", "(no_such_node_type) @function"
        )
        chunker.chunk("/ws/two.py", TWO_FUNCTIONS_PY, WORKSPACE)

        assert len(chunker.chunk("/ws/a.ts", a_ts_source, WORKSPACE)) == 1
