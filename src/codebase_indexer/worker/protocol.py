"""Messages exchanged between the orchestrator and the indexing worker.

Every message is a frozen dataclass with a ``type`` tag. On the wire a
message is a plain dict with camelCase keys, encoded as orjson bytes:

Commands:
    {type: 'index', workspacePath, config, existingHashes?}
    {type: 'update', workspacePath, file, config}
    {type: 'batch_update', workspacePath, files, config}

Responses:
    {type: 'progress', processed, total}
    {type: 'result', chunks, processed, total}
    {type: 'update_result', filePath, chunks, deleted}
    {type: 'batch_update_result', results: [{filePath, chunks, deleted}]}
    {type: 'complete', totalChunks}
    {type: 'error', error}

``existingHashes`` is an ordered list of ``[path, hash]`` pairs.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar

import orjson

from ..config.settings import IndexConfig
from ..core.exceptions import ProtocolError
from ..core.models import FileUpdateResult, IndexedChunk


def _config_to_wire(config: IndexConfig) -> dict[str, Any]:
    data = config.model_dump(mode="json")
    # Sets have no stable JSON order
    data["included_exts"] = sorted(data["included_exts"])
    data["ignored_dirs"] = sorted(data["ignored_dirs"])
    return data


# ── Commands ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class IndexCommand:
    """Full workspace scan with optional incremental skip."""

    type: ClassVar[str] = "index"

    workspace_path: str
    config: IndexConfig
    existing_hashes: list[tuple[str, str]] | None = None

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type,
            "workspacePath": self.workspace_path,
            "config": _config_to_wire(self.config),
        }
        if self.existing_hashes is not None:
            data["existingHashes"] = [list(pair) for pair in self.existing_hashes]
        return data

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "IndexCommand":
        hashes = data.get("existingHashes")
        return cls(
            workspace_path=data["workspacePath"],
            config=IndexConfig.model_validate(data["config"]),
            existing_hashes=(
                [(str(path), str(digest)) for path, digest in hashes]
                if hashes is not None
                else None
            ),
        )


@dataclass(frozen=True)
class UpdateCommand:
    """Re-index a single file."""

    type: ClassVar[str] = "update"

    workspace_path: str
    file: str
    config: IndexConfig

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "workspacePath": self.workspace_path,
            "file": self.file,
            "config": _config_to_wire(self.config),
        }

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "UpdateCommand":
        return cls(
            workspace_path=data["workspacePath"],
            file=data["file"],
            config=IndexConfig.model_validate(data["config"]),
        )


@dataclass(frozen=True)
class BatchUpdateCommand:
    """Re-index a list of files."""

    type: ClassVar[str] = "batch_update"

    workspace_path: str
    files: list[str]
    config: IndexConfig

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "workspacePath": self.workspace_path,
            "files": list(self.files),
            "config": _config_to_wire(self.config),
        }

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "BatchUpdateCommand":
        return cls(
            workspace_path=data["workspacePath"],
            files=list(data["files"]),
            config=IndexConfig.model_validate(data["config"]),
        )


WorkerCommand = IndexCommand | UpdateCommand | BatchUpdateCommand


# ── Responses ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProgressResponse:
    type: ClassVar[str] = "progress"

    processed: int
    total: int

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.type, "processed": self.processed, "total": self.total}

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "ProgressResponse":
        return cls(processed=int(data["processed"]), total=int(data["total"]))


@dataclass(frozen=True)
class ResultResponse:
    """A flushed batch of indexed chunks plus the progress at flush time."""

    type: ClassVar[str] = "result"

    chunks: list[IndexedChunk]
    processed: int
    total: int

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "chunks": [chunk.to_wire() for chunk in self.chunks],
            "processed": self.processed,
            "total": self.total,
        }

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "ResultResponse":
        return cls(
            chunks=[IndexedChunk.from_wire(c) for c in data["chunks"]],
            processed=int(data["processed"]),
            total=int(data["total"]),
        )


@dataclass(frozen=True)
class UpdateResultResponse:
    """Outcome for one file; ``deleted`` tells the store to drop it."""

    type: ClassVar[str] = "update_result"

    file_path: str
    chunks: list[IndexedChunk] = field(default_factory=list)
    deleted: bool = False

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "filePath": self.file_path,
            "chunks": [chunk.to_wire() for chunk in self.chunks],
            "deleted": self.deleted,
        }

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "UpdateResultResponse":
        return cls(
            file_path=data["filePath"],
            chunks=[IndexedChunk.from_wire(c) for c in data.get("chunks") or []],
            deleted=bool(data.get("deleted", False)),
        )

    def as_file_result(self) -> FileUpdateResult:
        return FileUpdateResult(
            file_path=self.file_path, chunks=list(self.chunks), deleted=self.deleted
        )


@dataclass(frozen=True)
class BatchUpdateResultResponse:
    type: ClassVar[str] = "batch_update_result"

    results: list[FileUpdateResult]

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "results": [result.to_wire() for result in self.results],
        }

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "BatchUpdateResultResponse":
        return cls(results=[FileUpdateResult.from_wire(r) for r in data["results"]])


@dataclass(frozen=True)
class CompleteResponse:
    type: ClassVar[str] = "complete"

    total_chunks: int

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.type, "totalChunks": self.total_chunks}

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "CompleteResponse":
        return cls(total_chunks=int(data["totalChunks"]))


@dataclass(frozen=True)
class ErrorResponse:
    type: ClassVar[str] = "error"

    error: str

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.type, "error": self.error}

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "ErrorResponse":
        return cls(error=str(data["error"]))


WorkerResponse = (
    ProgressResponse
    | ResultResponse
    | UpdateResultResponse
    | BatchUpdateResultResponse
    | CompleteResponse
    | ErrorResponse
)
WorkerMessage = WorkerCommand | WorkerResponse

_MESSAGE_TYPES: dict[str, Any] = {
    cls.type: cls
    for cls in (
        IndexCommand,
        UpdateCommand,
        BatchUpdateCommand,
        ProgressResponse,
        ResultResponse,
        UpdateResultResponse,
        BatchUpdateResultResponse,
        CompleteResponse,
        ErrorResponse,
    )
}

# Response types that end a command; every command gets exactly one
TERMINAL_RESPONSE_TYPES: dict[str, frozenset[str]] = {
    IndexCommand.type: frozenset({CompleteResponse.type, ErrorResponse.type}),
    UpdateCommand.type: frozenset({UpdateResultResponse.type, ErrorResponse.type}),
    BatchUpdateCommand.type: frozenset(
        {BatchUpdateResultResponse.type, ErrorResponse.type}
    ),
}


def is_terminal(command_type: str, response: WorkerResponse) -> bool:
    """Check whether ``response`` ends a command of ``command_type``."""
    return response.type in TERMINAL_RESPONSE_TYPES[command_type]


def message_from_wire(data: dict[str, Any]) -> WorkerMessage:
    """Rebuild a message from its wire dict.

    Raises:
        ProtocolError: If the dict is not a known, well-formed message
    """
    if not isinstance(data, dict):
        raise ProtocolError(f"Expected a message object, got {type(data).__name__}")
    message_type = data.get("type")
    message_cls = _MESSAGE_TYPES.get(message_type)
    if message_cls is None:
        raise ProtocolError(
            f"Unknown message type: {message_type!r}", context={"type": message_type}
        )
    try:
        return message_cls.from_wire(data)
    except (KeyError, TypeError, ValueError) as e:
        raise ProtocolError(
            f"Malformed {message_type} message: {e}", context={"type": message_type}
        ) from e


def encode_message(message: WorkerMessage) -> bytes:
    """Serialize a message for the worker boundary."""
    return orjson.dumps(message.to_wire())


def decode_message(payload: bytes) -> WorkerMessage:
    """Deserialize a message received across the worker boundary.

    Raises:
        ProtocolError: If the payload is not valid JSON or not a known message
    """
    try:
        data = orjson.loads(payload)
    except orjson.JSONDecodeError as e:
        raise ProtocolError(f"Invalid message payload: {e}") from e
    return message_from_wire(data)
