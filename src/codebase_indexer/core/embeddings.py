"""Embedding clients: batched text-to-vector conversion.

Two adapters implement :class:`EmbeddingClient`:

- :class:`HTTPEmbeddingClient` talks to a remote provider over ``httpx``
  (OpenAI-compatible APIs, Cohere, Hugging Face inference, Ollama).
- :class:`SentenceTransformerEmbeddingClient` runs a local
  ``sentence-transformers`` model in a worker thread.

``embed_batch`` returns one entry per input; an entry the provider did not
return (or returned malformed) is ``None`` and callers drop that chunk.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import httpx
from loguru import logger

from ..config.settings import EmbeddingConfig
from .exceptions import EmbeddingError

Vector = list[float]

# Providers speaking the OpenAI ``/embeddings`` request/response shape
OPENAI_COMPATIBLE_PROVIDERS = frozenset({"openai", "jina", "voyage"})


@dataclass(frozen=True)
class ConnectionTestResult:
    """Outcome of probing an embedding provider."""

    success: bool
    error: str | None = None
    latency: float | None = None  # milliseconds


@runtime_checkable
class EmbeddingClient(Protocol):
    """Batched text-to-vector capability."""

    async def embed(self, text: str) -> Vector: ...

    async def embed_batch(self, texts: list[str]) -> list[Vector | None]: ...

    async def test_connection(self) -> ConnectionTestResult: ...


def _as_vector(value: Any) -> Vector | None:
    """Validate a provider value as a flat, non-empty list of numbers."""
    if not isinstance(value, list) or not value:
        return None
    if not all(isinstance(v, int | float) and not isinstance(v, bool) for v in value):
        return None
    return [float(v) for v in value]


class _BaseEmbeddingClient:
    """Shared ``embed`` / ``test_connection`` on top of ``embed_batch``."""

    provider_name = "embedding"

    async def embed_batch(self, texts: list[str]) -> list[Vector | None]:
        raise NotImplementedError

    async def embed(self, text: str) -> Vector:
        """Embed a single text.

        Raises:
            EmbeddingError: If the provider returned no usable vector
        """
        vectors = await self.embed_batch([text])
        if not vectors or vectors[0] is None:
            raise EmbeddingError(f"{self.provider_name} returned no embedding")
        return vectors[0]

    async def test_connection(self) -> ConnectionTestResult:
        """Embed a probe text and report success and latency."""
        start = time.perf_counter()
        try:
            await self.embed("connection test")
        except Exception as e:
            logger.warning(f"Embedding connection test failed: {e}")
            return ConnectionTestResult(success=False, error=str(e))
        latency = (time.perf_counter() - start) * 1000
        return ConnectionTestResult(success=True, latency=latency)


class HTTPEmbeddingClient(_BaseEmbeddingClient):
    """Embedding client for remote providers."""

    def __init__(
        self,
        config: EmbeddingConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize HTTP embedding client.

        Args:
            config: Embedding configuration (provider, model, key, endpoint)
            transport: Optional httpx transport, used to stub the network in tests
        """
        if config.provider == "local":
            raise EmbeddingError("The local provider does not use HTTP")
        self.config = config
        self.provider = config.provider
        self.provider_name = config.provider.capitalize()
        self.model = config.resolved_model
        self.base_url = config.resolved_base_url
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _build_request(self, texts: list[str]) -> tuple[str, dict[str, Any]]:
        """Return the endpoint URL and JSON payload for a batch."""
        if self.provider in OPENAI_COMPATIBLE_PROVIDERS:
            payload: dict[str, Any] = {"model": self.model, "input": texts}
            if self.config.dimensions and self.provider == "openai":
                payload["dimensions"] = self.config.dimensions
            return f"{self.base_url}/embeddings", payload
        if self.provider == "cohere":
            return f"{self.base_url}/embed", {
                "model": self.model,
                "texts": texts,
                "input_type": "search_document",
            }
        if self.provider == "huggingface":
            return f"{self.base_url}/{self.model}", {"inputs": texts}
        if self.provider == "ollama":
            return f"{self.base_url}/api/embed", {"model": self.model, "input": texts}
        raise EmbeddingError(f"Unsupported embedding provider: {self.provider}")

    def _parse_response(self, data: Any, count: int) -> list[Vector | None]:
        """Extract one vector (or None) per input from a provider response."""
        vectors: list[Vector | None] = [None] * count

        if self.provider in OPENAI_COMPATIBLE_PROVIDERS:
            items = data.get("data") if isinstance(data, dict) else None
            for position, item in enumerate(items or []):
                if not isinstance(item, dict):
                    continue
                index = item.get("index", position)
                if isinstance(index, int) and 0 <= index < count:
                    vectors[index] = _as_vector(item.get("embedding"))
            return vectors

        if self.provider == "huggingface":
            raw = data if isinstance(data, list) else []
        else:
            raw = data.get("embeddings") if isinstance(data, dict) else None
            if isinstance(raw, dict):
                # Cohere v2 groups vectors by embedding type
                raw = raw.get("float")

        for index, value in enumerate((raw or [])[:count]):
            vectors[index] = _as_vector(value)
        return vectors

    async def _post(self, url: str, payload: dict[str, Any]) -> Any:
        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout, transport=self._transport
            ) as client:
                response = await client.post(url, headers=self._headers(), json=payload)
                response.raise_for_status()
                return response.json()

        except httpx.TimeoutException as e:
            logger.error(f"{self.provider_name} API timeout after {self.config.timeout}s")
            raise EmbeddingError(
                f"Embedding request timed out after {self.config.timeout} seconds"
            ) from e

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            error_msg = f"{self.provider_name} API error (HTTP {status_code})"

            if status_code == 401:
                error_msg = f"Invalid {self.provider_name} API key"
            elif status_code == 429:
                error_msg = f"{self.provider_name} API rate limit exceeded. Please wait and try again."
            elif status_code >= 500:
                error_msg = f"{self.provider_name} API server error. Please try again later."

            logger.error(error_msg)
            raise EmbeddingError(error_msg, context={"status_code": status_code}) from e

        except httpx.HTTPError as e:
            logger.error(f"{self.provider_name} API request failed: {e}")
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        except ValueError as e:
            raise EmbeddingError(f"{self.provider_name} returned invalid JSON") from e

    async def embed_batch(self, texts: list[str]) -> list[Vector | None]:
        """Embed texts, splitting them into provider-sized batches.

        Raises:
            EmbeddingError: If a request fails as a whole
        """
        if not texts:
            return []

        results: list[Vector | None] = []
        batch_size = self.config.batch_size
        for start in range(0, len(texts), batch_size):
            batch = texts[start : start + batch_size]
            url, payload = self._build_request(batch)
            data = await self._post(url, payload)
            results.extend(self._parse_response(data, len(batch)))

        missing = sum(1 for v in results if v is None)
        if missing:
            logger.debug(f"{self.provider_name} returned {missing} empty embeddings")
        return results


class SentenceTransformerEmbeddingClient(_BaseEmbeddingClient):
    """Local embedding client backed by ``sentence-transformers``.

    The model is loaded lazily on first use, inside a worker thread.
    """

    provider_name = "Local"

    def __init__(self, config: EmbeddingConfig) -> None:
        self.config = config
        self.model_name = config.resolved_model
        self._model: Any = None
        self._load_lock = asyncio.Lock()

    def _load_model(self) -> Any:
        try:
            from sentence_transformers import SentenceTransformer

            model = SentenceTransformer(self.model_name)
        except Exception as e:
            logger.error(f"Failed to load embedding model {self.model_name}: {e}")
            raise EmbeddingError(f"Failed to load embedding model: {e}") from e
        logger.info(f"Loaded local embedding model {self.model_name}")
        return model

    async def _ensure_model(self) -> Any:
        if self._model is None:
            async with self._load_lock:
                if self._model is None:
                    self._model = await asyncio.to_thread(self._load_model)
        return self._model

    def _encode(self, model: Any, texts: list[str]) -> list[Vector]:
        embeddings = model.encode(
            texts,
            batch_size=self.config.batch_size,
            show_progress_bar=False,
            convert_to_numpy=True,
        )
        return [[float(v) for v in row] for row in embeddings.tolist()]

    async def embed_batch(self, texts: list[str]) -> list[Vector | None]:
        if not texts:
            return []
        model = await self._ensure_model()
        try:
            vectors = await asyncio.to_thread(self._encode, model, texts)
        except Exception as e:
            logger.error(f"Failed to generate embeddings: {e}")
            raise EmbeddingError(f"Failed to generate embeddings: {e}") from e
        return list(vectors)


def create_embedding_client(
    config: EmbeddingConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> EmbeddingClient:
    """Create the embedding client for a configuration.

    Args:
        config: Embedding configuration
        transport: Optional httpx transport for remote providers

    Returns:
        A local client for the ``local`` provider, an HTTP client otherwise
    """
    if config.provider == "local":
        return SentenceTransformerEmbeddingClient(config)
    return HTTPEmbeddingClient(config, transport=transport)
