"""Data models for codebase-indexer."""

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Literal

ChunkType = Literal["file", "function", "class", "block"]

CHUNK_TYPES: frozenset[str] = frozenset({"file", "function", "class", "block"})


@dataclass(frozen=True, kw_only=True)
class CodeChunk:
    """A contiguous, source-accurate slice of one file.

    Chunks are immutable; re-indexing a file produces new chunks that
    supersede the old ones in the vector store.
    """

    id: str
    file_path: str
    relative_path: str
    file_hash: str
    content: str
    start_line: int
    end_line: int
    type: ChunkType
    language: str
    symbols: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.end_line < self.start_line:
            raise ValueError(
                f"Chunk {self.id} ends before it starts "
                f"({self.start_line}-{self.end_line})"
            )
        if self.type not in CHUNK_TYPES:
            raise ValueError(f"Unknown chunk type: {self.type}")
        if not isinstance(self.symbols, tuple):
            object.__setattr__(self, "symbols", tuple(self.symbols))

    def to_wire(self) -> dict[str, Any]:
        """Plain dict with camelCase keys for the worker boundary."""
        return {
            "id": self.id,
            "filePath": self.file_path,
            "relativePath": self.relative_path,
            "fileHash": self.file_hash,
            "content": self.content,
            "startLine": self.start_line,
            "endLine": self.end_line,
            "type": self.type,
            "language": self.language,
            "symbols": list(self.symbols),
        }

    @staticmethod
    def _wire_fields(data: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": data["id"],
            "file_path": data["filePath"],
            "relative_path": data["relativePath"],
            "file_hash": data["fileHash"],
            "content": data["content"],
            "start_line": int(data["startLine"]),
            "end_line": int(data["endLine"]),
            "type": data["type"],
            "language": data["language"],
            "symbols": tuple(data.get("symbols") or ()),
        }

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "CodeChunk":
        return cls(**cls._wire_fields(data))


@dataclass(frozen=True, kw_only=True)
class IndexedChunk(CodeChunk):
    """A chunk paired with its embedding vector."""

    vector: list[float]

    @classmethod
    def from_chunk(cls, chunk: CodeChunk, vector: list[float]) -> "IndexedChunk":
        fields = {
            name: value
            for name, value in asdict(chunk).items()
            if name != "vector"
        }
        return cls(**fields, vector=[float(v) for v in vector])

    def to_chunk(self) -> CodeChunk:
        fields = {name: value for name, value in asdict(self).items() if name != "vector"}
        return CodeChunk(**fields)

    def to_wire(self) -> dict[str, Any]:
        data = super().to_wire()
        data["vector"] = list(self.vector)
        return data

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "IndexedChunk":
        return cls(**cls._wire_fields(data), vector=list(data["vector"]))


@dataclass
class IndexStatus:
    """Progress and outcome of the current (or last) indexing run."""

    is_indexing: bool = False
    total_files: int = 0
    indexed_files: int = 0
    total_chunks: int = 0
    last_indexed_at: float | None = None
    error: str | None = None

    def copy(self) -> "IndexStatus":
        return replace(self)


@dataclass(frozen=True)
class FileUpdateResult:
    """Outcome of re-indexing one file."""

    file_path: str
    chunks: list[IndexedChunk] = field(default_factory=list)
    deleted: bool = False

    def to_wire(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "chunks": [chunk.to_wire() for chunk in self.chunks],
            "deleted": self.deleted,
        }

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "FileUpdateResult":
        return cls(
            file_path=data["filePath"],
            chunks=[IndexedChunk.from_wire(c) for c in data.get("chunks") or []],
            deleted=bool(data.get("deleted", False)),
        )


@dataclass(frozen=True)
class SearchResult:
    """One vector search hit."""

    chunk: CodeChunk
    score: float


@dataclass(frozen=True)
class VectorStoreStats:
    """Size of the persisted index."""

    chunk_count: int
    file_count: int
