"""Isolated indexing worker and its message protocol."""

from .executor import IndexWorker
from .handles import ProcessWorker, ThreadWorker, WorkerHandle
from .protocol import decode_message, encode_message

__all__ = [
    "IndexWorker",
    "ProcessWorker",
    "ThreadWorker",
    "WorkerHandle",
    "decode_message",
    "encode_message",
]
