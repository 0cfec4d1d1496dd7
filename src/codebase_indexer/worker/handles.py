"""Execution contexts hosting an :class:`IndexWorker`.

Both handles exchange only orjson-encoded bytes through a pair of queues,
so nothing is shared by reference with the orchestrator:

- :class:`ProcessWorker` runs the worker in a spawned process; the
  embedding client is rebuilt from config inside the child.
- :class:`ThreadWorker` runs it on a dedicated thread with its own event
  loop and accepts an injected embedding client factory.
"""

import asyncio
import multiprocessing
from abc import ABC, abstractmethod
import queue
import sys
import threading
from typing import Any

from loguru import logger

from ..core.embeddings import create_embedding_client
from ..core.exceptions import ProtocolError, WorkerError
from .executor import EmbedderFactory, IndexWorker
from .protocol import (
    ErrorResponse,
    WorkerCommand,
    WorkerResponse,
    decode_message,
    encode_message,
)

# Seconds between liveness checks while waiting for a response
POLL_INTERVAL = 0.25
# Seconds to wait for a graceful shutdown before killing the process
SHUTDOWN_TIMEOUT = 5.0

_COMMAND_TYPES = frozenset({"index", "update", "batch_update"})


async def serve(inbox: Any, outbox: Any, worker: IndexWorker) -> None:
    """Worker main loop: decode commands, run them in order, post responses.

    A ``None`` item on the inbox stops the loop.
    """

    def emit(response: WorkerResponse) -> None:
        outbox.put(encode_message(response))

    while True:
        payload = await asyncio.to_thread(inbox.get)
        if payload is None:
            break
        try:
            command = decode_message(payload)
            if command.type not in _COMMAND_TYPES:
                raise ProtocolError(f"Not a worker command: {command.type}")
        except ProtocolError as e:
            logger.error(f"Rejected worker message: {e}")
            emit(ErrorResponse(error=str(e)))
            continue
        await worker.handle(command, emit)


def _process_main(inbox: Any, outbox: Any, log_level: str) -> None:
    """Entry point of the worker process."""
    logger.remove()
    logger.add(sys.stderr, level=log_level)
    asyncio.run(serve(inbox, outbox, IndexWorker(create_embedding_client)))


class WorkerHandle(ABC):
    """Common queue plumbing of the worker execution contexts."""

    def __init__(self) -> None:
        self._inbox: Any = None
        self._outbox: Any = None
        self._started = False
        self._closed = False

    @abstractmethod
    def start(self) -> None:
        """Launch the worker and open its queues."""

    @abstractmethod
    def is_alive(self) -> bool:
        """Whether the underlying process or thread is still running."""

    @abstractmethod
    def _stop(self) -> None:
        """Block until the worker has shut down."""

    @property
    def is_running(self) -> bool:
        return self._started and not self._closed and self.is_alive()

    def post(self, command: WorkerCommand) -> None:
        """Send a command to the worker.

        Raises:
            WorkerError: If the worker is not running
        """
        if not self.is_running:
            raise WorkerError("Worker is not running")
        self._inbox.put(encode_message(command))

    async def receive(self) -> WorkerResponse | None:
        """Wait for the next response.

        Returns:
            The next response, a synthesized ``error`` response if the worker
            died unexpectedly, or None once the handle is closed
        """
        while True:
            try:
                payload = await asyncio.to_thread(self._outbox.get, True, POLL_INTERVAL)
            except queue.Empty:
                if self._closed:
                    return None
                if not self.is_alive():
                    self._closed = True
                    logger.error("Indexing worker exited unexpectedly")
                    return ErrorResponse(error="Indexing worker exited unexpectedly")
                continue

            if payload is None:
                return None
            try:
                return decode_message(payload)
            except ProtocolError as e:
                logger.error(f"Undecodable worker response: {e}")
                return ErrorResponse(error=str(e))

    async def terminate(self) -> None:
        """Stop the worker and release any pending ``receive`` call."""
        if self._closed or not self._started:
            self._closed = True
            return
        self._closed = True
        self._inbox.put(None)
        await asyncio.to_thread(self._stop)
        self._outbox.put(None)


class ProcessWorker(WorkerHandle):
    """Worker running in a separate ``spawn`` process."""

    def __init__(self, log_level: str = "WARNING") -> None:
        super().__init__()
        self.log_level = log_level
        self._ctx = multiprocessing.get_context("spawn")
        self._process: Any = None

    def start(self) -> None:
        if self._started:
            return
        self._inbox = self._ctx.Queue()
        self._outbox = self._ctx.Queue()
        self._process = self._ctx.Process(
            target=_process_main,
            args=(self._inbox, self._outbox, self.log_level),
            name="codebase-indexer-worker",
            daemon=True,
        )
        self._process.start()
        self._started = True
        logger.debug(f"Started indexing worker process (pid {self._process.pid})")

    def is_alive(self) -> bool:
        return self._process is not None and self._process.is_alive()

    def _stop(self) -> None:
        self._process.join(SHUTDOWN_TIMEOUT)
        if self._process.is_alive():
            logger.warning("Indexing worker did not stop in time, terminating")
            self._process.terminate()
            self._process.join()


class ThreadWorker(WorkerHandle):
    """Worker running on a dedicated thread with its own event loop."""

    def __init__(self, embedder_factory: EmbedderFactory = create_embedding_client) -> None:
        super().__init__()
        self._embedder_factory = embedder_factory
        self._thread: threading.Thread | None = None

    def _run(self) -> None:
        asyncio.run(serve(self._inbox, self._outbox, IndexWorker(self._embedder_factory)))

    def start(self) -> None:
        if self._started:
            return
        self._inbox = queue.Queue()
        self._outbox = queue.Queue()
        self._thread = threading.Thread(
            target=self._run, name="codebase-indexer-worker", daemon=True
        )
        self._thread.start()
        self._started = True
        logger.debug("Started indexing worker thread")

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _stop(self) -> None:
        self._thread.join(SHUTDOWN_TIMEOUT)
        if self._thread.is_alive():
            logger.warning("Indexing worker thread did not stop in time")
