"""Index and embedding configuration models."""

import os
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.exceptions import ConfigError
from .defaults import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_EMBEDDING_BATCH_SIZE,
    DEFAULT_EMBEDDING_PROVIDER,
    DEFAULT_EMBEDDING_TIMEOUT,
    DEFAULT_FILE_EXTENSIONS,
    DEFAULT_IGNORED_DIRS,
    DEFAULT_MAX_FILE_SIZE,
    EMBEDDING_PROVIDER_DEFAULTS,
)

ENV_PREFIX = "CODEBASE_INDEXER_"

EmbeddingProvider = Literal[
    "openai", "jina", "voyage", "cohere", "huggingface", "ollama", "local"
]


class EmbeddingConfig(BaseModel):
    """Settings for the embedding provider."""

    model_config = ConfigDict(frozen=True)

    provider: EmbeddingProvider = DEFAULT_EMBEDDING_PROVIDER
    api_key: str | None = None
    base_url: str | None = None
    model: str | None = None
    dimensions: int | None = Field(default=None, gt=0)
    timeout: float = Field(default=DEFAULT_EMBEDDING_TIMEOUT, gt=0)
    batch_size: int = Field(default=DEFAULT_EMBEDDING_BATCH_SIZE, gt=0)

    @property
    def resolved_model(self) -> str:
        """Model name, falling back to the provider default."""
        return self.model or EMBEDDING_PROVIDER_DEFAULTS[self.provider]["model"]

    @property
    def resolved_base_url(self) -> str:
        """Endpoint base URL, falling back to the provider default."""
        base = self.base_url or EMBEDDING_PROVIDER_DEFAULTS[self.provider]["base_url"]
        return base.rstrip("/")


class IndexConfig(BaseModel):
    """Configuration for one indexing run.

    Immutable: updates produce a new instance via :func:`merge_index_config`.
    """

    model_config = ConfigDict(frozen=True)

    max_file_size: int = Field(default=DEFAULT_MAX_FILE_SIZE, gt=0)
    included_exts: frozenset[str] = frozenset(DEFAULT_FILE_EXTENSIONS)
    ignored_dirs: frozenset[str] = frozenset(DEFAULT_IGNORED_DIRS)
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, gt=0)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)

    @field_validator("included_exts", mode="before")
    @classmethod
    def _normalize_extensions(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [value]
        if isinstance(value, list | tuple | set | frozenset):
            return frozenset(
                (ext if ext.startswith(".") else f".{ext}").lower() for ext in value
            )
        return value

    def includes(self, file_name: str) -> bool:
        """Check whether a file name has an included extension."""
        _, dot, ext = file_name.rpartition(".")
        return bool(dot) and f".{ext.lower()}" in self.included_exts


def _env_overrides() -> dict[str, Any]:
    """Collect index settings overridden through environment variables."""
    overrides: dict[str, Any] = {}

    env_max_size = os.environ.get(f"{ENV_PREFIX}MAX_FILE_SIZE")
    if env_max_size:
        try:
            overrides["max_file_size"] = int(env_max_size)
        except ValueError:
            logger.warning(
                f"Invalid {ENV_PREFIX}MAX_FILE_SIZE value: {env_max_size}, using default"
            )

    embedding: dict[str, Any] = {}
    for field_name in ("provider", "model", "base_url", "api_key"):
        value = os.environ.get(f"{ENV_PREFIX}EMBEDDING_{field_name.upper()}")
        if value:
            embedding[field_name] = value
    if embedding:
        overrides["embedding"] = embedding

    return overrides


def _validate(model: type[BaseModel], data: dict[str, Any]) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid {model.__name__}: {e}") from e


def load_index_config(**overrides: Any) -> IndexConfig:
    """Build an index config from defaults, environment and explicit overrides.

    Priority: explicit overrides > environment variables > defaults.

    Environment Variables:
        CODEBASE_INDEXER_MAX_FILE_SIZE: Override the size guard
        CODEBASE_INDEXER_EMBEDDING_PROVIDER: Embedding provider id
        CODEBASE_INDEXER_EMBEDDING_MODEL: Embedding model name
        CODEBASE_INDEXER_EMBEDDING_BASE_URL: Provider endpoint
        CODEBASE_INDEXER_EMBEDDING_API_KEY: Provider API key
    """
    data = _env_overrides()
    embedding_overrides = overrides.pop("embedding", None)
    data.update(overrides)
    if embedding_overrides is not None:
        if isinstance(embedding_overrides, EmbeddingConfig):
            embedding_overrides = embedding_overrides.model_dump()
        data["embedding"] = {**data.get("embedding", {}), **embedding_overrides}
    return _validate(IndexConfig, data)


def merge_index_config(config: IndexConfig, partial: dict[str, Any]) -> IndexConfig:
    """Return a new config with ``partial`` applied on top of ``config``."""
    data = config.model_dump()
    for key, value in partial.items():
        if key == "embedding" and isinstance(value, dict):
            data["embedding"] = {**data["embedding"], **value}
        elif isinstance(value, BaseModel):
            data[key] = value.model_dump()
        else:
            data[key] = value
    return _validate(IndexConfig, data)


def merge_embedding_config(
    config: EmbeddingConfig, partial: dict[str, Any]
) -> EmbeddingConfig:
    """Return a new embedding config with ``partial`` applied."""
    return _validate(EmbeddingConfig, {**config.model_dump(), **partial})
