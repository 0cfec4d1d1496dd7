"""Shared fixtures for codebase-indexer tests."""

import hashlib
from pathlib import Path

import pytest

from codebase_indexer.config.settings import EmbeddingConfig, IndexConfig
from codebase_indexer.core.embeddings import ConnectionTestResult
from codebase_indexer.core.exceptions import EmbeddingError
from codebase_indexer.core.vector_store import InMemoryVectorStore

VECTOR_DIM = 8

# Words that get their own vector component, so queries naming them rank
# the chunks that mention them first
VOCABULARY = ("greet", "hello", "greeter", "version", "parse", "config", "alpha")

A_TS = """export function greet(name: string): string {
  const greeting = `Hello, ${name}`;
  if (name.length > 10) {
    return greeting.toUpperCase();
  }
  return greeting;
}

export const VERSION = "1.0";
// end
"""

B_PY = '''class Greeter:
    """Says hello."""

    prefix = "Hello"

    def greet(self, name):
        return f"{self.prefix}, {name}"
# trailing comment
'''


class FakeEmbeddingClient:
    """Deterministic embedding client that never touches the network.

    Texts containing ``skip_marker`` get no vector; texts containing
    ``fail_marker`` make the whole batch fail.
    """

    def __init__(self, skip_marker: str = "SKIP_EMBEDDING", fail_marker: str = "FAIL_EMBEDDING"):
        self.skip_marker = skip_marker
        self.fail_marker = fail_marker
        self.calls: list[list[str]] = []

    @staticmethod
    def vector_for(text: str) -> list[float]:
        lowered = text.lower()
        vector = [float(lowered.count(word)) for word in VOCABULARY]
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        vector.append(0.1 + digest[0] / 2550.0)
        return vector

    @property
    def embedded_texts(self) -> list[str]:
        return [text for batch in self.calls for text in batch]

    async def embed(self, text: str) -> list[float]:
        return self.vector_for(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float] | None]:
        self.calls.append(list(texts))
        if any(self.fail_marker in text for text in texts):
            raise EmbeddingError("Simulated provider failure")
        return [
            None if self.skip_marker in text else self.vector_for(text)
            for text in texts
        ]

    async def test_connection(self) -> ConnectionTestResult:
        return ConnectionTestResult(success=True, latency=1.0)


@pytest.fixture
def fake_embedder() -> FakeEmbeddingClient:
    return FakeEmbeddingClient()


@pytest.fixture
def embedder_factory(fake_embedder):
    """Factory returning the shared fake client for any embedding config."""
    configs: list[EmbeddingConfig] = []

    def factory(config: EmbeddingConfig) -> FakeEmbeddingClient:
        configs.append(config)
        return fake_embedder

    factory.configs = configs
    return factory


@pytest.fixture
def index_config() -> IndexConfig:
    return IndexConfig(embedding=EmbeddingConfig(provider="openai", api_key="test-key"))


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Workspace with one TypeScript function, one Python class and a binary file."""
    root = tmp_path / "workspace"
    root.mkdir()
    (root / "a.ts").write_text(A_TS, encoding="utf-8")
    (root / "b.py").write_text(B_PY, encoding="utf-8")
    (root / "c.bin").write_bytes(b"\x00\x01\x02\x03")
    return root


@pytest.fixture
async def memory_store():
    store = InMemoryVectorStore()
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def a_ts_source() -> str:
    return A_TS


@pytest.fixture
def b_py_source() -> str:
    return B_PY
