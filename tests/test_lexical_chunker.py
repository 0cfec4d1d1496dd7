"""Tests for the line-window fallback chunker."""

from pathlib import Path

import pytest

from codebase_indexer.parsers.lexical import LexicalChunker, extract_symbols

WORKSPACE = Path("/ws")


def numbered_lines(count: int) -> str:
    return "\n".join(f"line {i}" for i in range(1, count + 1)) + "\n"


class TestExtractSymbols:
    def test_common_declarations(self):
        text = (
            "def load(path):\n"
            "class Loader:\n"
            "export async function fetchAll() {}\n"
            "func (s *Server) Serve() {}\n"
            "pub fn parse() {}\n"
            "type Foo struct {}\n"
            "struct Point {};\n"
            "interface Shape {}\n"
        )
        assert extract_symbols(text) == (
            "load",
            "Loader",
            "fetchAll",
            "Serve",
            "parse",
            "Point",
            "Shape",
        )

    def test_duplicates_removed_in_order(self):
        assert extract_symbols("def a():\ndef b():\ndef a():\n") == ("a", "b")

    def test_no_symbols(self):
        assert extract_symbols("just some prose\n") == ()


class TestLexicalChunker:
    def test_short_file_is_single_file_chunk(self):
        content = "def helper():\n    return 1\n"
        chunks = LexicalChunker(chunk_size=80).chunk("/ws/src/h.py", content, WORKSPACE)

        assert len(chunks) == 1
        chunk = chunks[0]
        assert chunk.id == "/ws/src/h.py:0"
        assert chunk.type == "file"
        assert chunk.content == content
        assert (chunk.start_line, chunk.end_line) == (1, 2)
        assert chunk.relative_path == "src/h.py"
        assert chunk.language == "python"
        assert chunk.symbols == ("helper",)

    def test_long_file_is_covered_by_overlapping_windows(self):
        content = numbered_lines(200)
        chunks = LexicalChunker(chunk_size=80, overlap_lines=10).chunk(
            "/ws/big.md", content, WORKSPACE
        )

        assert [(c.start_line, c.end_line) for c in chunks] == [
            (1, 80),
            (71, 150),
            (141, 200),
        ]
        assert all(c.type == "block" for c in chunks)
        assert [c.id for c in chunks] == ["/ws/big.md:0", "/ws/big.md:70", "/ws/big.md:140"]
        assert chunks[0].content.splitlines()[0] == "line 1"
        assert chunks[-1].content.splitlines()[-1] == "line 200"

    def test_windows_cover_every_line(self):
        content = numbered_lines(173)
        chunks = LexicalChunker(chunk_size=50, overlap_lines=10).chunk(
            "/ws/f.txt", content, WORKSPACE
        )

        covered = set()
        for chunk in chunks:
            covered.update(range(chunk.start_line, chunk.end_line + 1))
        assert covered == set(range(1, 174))

    def test_whitespace_only_content_is_one_file_chunk(self):
        chunks = LexicalChunker().chunk("/ws/notes.md", "   \n\n  \n", WORKSPACE)

        assert len(chunks) == 1
        assert chunks[0].type == "file"
        assert (chunks[0].start_line, chunks[0].end_line) == (1, 3)

    def test_empty_content_yields_nothing(self):
        assert LexicalChunker().chunk("/ws/empty.py", "", WORKSPACE) == []

    def test_language_falls_back_to_extension_then_text(self):
        chunker = LexicalChunker()
        assert chunker.chunk("/ws/a.vue", "<template/>", WORKSPACE)[0].language == "vue"
        assert chunker.chunk("/ws/README", "hello", WORKSPACE)[0].language == "text"

    def test_overlap_is_clamped(self):
        chunker = LexicalChunker(chunk_size=5, overlap_lines=50)
        assert chunker.overlap_lines == 4

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            LexicalChunker(chunk_size=0)
