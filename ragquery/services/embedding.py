"""
Query embedders.

Two backends share one contract, ``await embed(text) -> list[float]``:

  - OpenAIEmbedder: embeddings endpoint of the OpenAI-compatible
    provider, asking for exactly ``dimension`` components.
  - SentenceTransformerEmbedder: local model truncated to ``dimension``,
    optional query prompt for asymmetric (query vs. document) models.

Both raise EmbeddingError when no usable vector of the expected size
comes back.
"""

from __future__ import annotations

import asyncio
import numbers
import threading
from typing import Any, Protocol

import openai

from ragquery.core.config import Settings
from ragquery.core.errors import EmbeddingError
from ragquery.services.llm import get_openai_client, is_transient
from ragquery.utils.logging import get_logger

logger = get_logger("ragquery.services.embedding")


class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


def _to_vector(raw: Any, dimension: int) -> list[float]:
    """Validate a raw embedding and return it as a list of floats."""
    if raw is None:
        raise EmbeddingError("Embedding service returned no vector.")
    if hasattr(raw, "tolist"):
        raw = raw.tolist()
    if not isinstance(raw, (list, tuple)) or not raw:
        raise EmbeddingError("Embedding service returned an empty or malformed vector.")
    if not all(isinstance(v, numbers.Real) and not isinstance(v, bool) for v in raw):
        raise EmbeddingError("Embedding vector contains non-numeric values.")
    if len(raw) != dimension:
        raise EmbeddingError(
            f"Embedding has {len(raw)} dimensions, expected {dimension}."
        )
    return [float(v) for v in raw]


def _require_text(text: str) -> None:
    if not text or not text.strip():
        raise EmbeddingError("Cannot embed empty text.")


class OpenAIEmbedder:
    def __init__(self, client: Any, model: str, dimension: int):
        self.client = client
        self.model = model
        self.dimension = dimension

    async def embed(self, text: str) -> list[float]:
        _require_text(text)
        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=text,
                dimensions=self.dimension,
            )
        except openai.APIError as e:
            raise EmbeddingError(
                f"Embedding request failed: {e}", transient=is_transient(e),
            ) from e

        data = getattr(response, "data", None)
        if not data:
            raise EmbeddingError("Embedding service returned no data.")
        return _to_vector(getattr(data[0], "embedding", None), self.dimension)


class SentenceTransformerEmbedder:
    """
    Local sentence-transformers model truncated to ``dimension``.

    ``load()`` runs once at startup so no request pays for the model
    download under the embedding timeout.
    """

    def __init__(self, model_name: str, dimension: int, query_prompt: str | None = None):
        self.model_name = model_name
        self.dimension = dimension
        self.query_prompt = query_prompt
        self._model: Any | None = None
        self._lock = threading.Lock()

    def load(self) -> Any:
        if self._model is not None:
            return self._model
        with self._lock:
            if self._model is None:
                from sentence_transformers import SentenceTransformer

                self._model = SentenceTransformer(self.model_name, truncate_dim=self.dimension)
                logger.info(
                    "SentenceTransformer model loaded: %s (dim=%d)",
                    self.model_name, self.dimension,
                )
        return self._model

    def _encode(self, text: str) -> Any:
        # show_progress_bar=False keeps tqdm off stderr
        return self.load().encode(
            text, prompt=self.query_prompt, show_progress_bar=False,
        )

    async def embed(self, text: str) -> list[float]:
        _require_text(text)
        loop = asyncio.get_event_loop()
        try:
            raw = await loop.run_in_executor(None, self._encode, text)
        except Exception as e:
            raise EmbeddingError(f"Local embedding model failed: {e}") from e
        return _to_vector(raw, self.dimension)


def build_embedder(settings: Settings) -> Embedder:
    if settings.embedding_provider == "sentence_transformers":
        embedder = SentenceTransformerEmbedder(
            settings.embedding_model,
            settings.embedding_dimension,
            settings.embedding_query_prompt,
        )
        embedder.load()
        return embedder
    return OpenAIEmbedder(
        get_openai_client(settings),
        settings.embedding_model,
        settings.embedding_dimension,
    )
