"""
ChromaDB access and the Retriever.

The knowledge base is populated by a separate ingestion job using the
same embedding model and dimension as query time; this module only
reads from it.  Chunk text lives in the Chroma document field and is
exposed as ``payload["content"]`` next to the stored metadata
(``title``, ``url``, ``source_file``, ...).
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

import chromadb
import httpx

from ragquery.core.config import Settings
from ragquery.core.errors import RetrievalError
from ragquery.schemas.retrieval import RetrievedRecord
from ragquery.utils.logging import get_logger

logger = get_logger("ragquery.services.vector_store")

_TRANSIENT_ERRORS = (ConnectionError, TimeoutError, httpx.TransportError)


def build_chroma_client(settings: Settings) -> chromadb.ClientAPI:
    """HTTP client for a remote server when configured, else embedded store."""
    chroma_settings = chromadb.Settings(anonymized_telemetry=False)
    if settings.chroma_host:
        headers = {}
        if settings.chroma_api_key is not None:
            headers["Authorization"] = f"Bearer {settings.chroma_api_key.get_secret_value()}"
        logger.info(
            "Connecting to ChromaDB at %s:%s (ssl=%s)",
            settings.chroma_host, settings.chroma_port, settings.chroma_ssl,
        )
        return chromadb.HttpClient(
            host=settings.chroma_host,
            port=settings.chroma_port,
            ssl=settings.chroma_ssl,
            headers=headers,
            settings=chroma_settings,
        )
    logger.info("Opening embedded ChromaDB at %s", settings.chroma_persist_directory)
    return chromadb.PersistentClient(
        path=settings.chroma_persist_directory,
        settings=chroma_settings,
    )


class Retriever(Protocol):
    async def search(self, vector: list[float], top_k: int) -> list[RetrievedRecord]: ...


class ChromaRetriever:
    """
    Top-K similarity search against one Chroma collection.

    Scores are derived from the collection's distance space (see
    ``similarity``), so records come back in descending score order.
    With ``min_score`` set, weaker matches are dropped; with it unset
    every hit is returned.
    """

    def __init__(
        self,
        client: Any,
        collection_name: str,
        dimension: int,
        *,
        min_score: float | None = None,
    ):
        self.client = client
        self.collection_name = collection_name
        self.dimension = dimension
        self.min_score = min_score

    def _query(self, vector: list[float], top_k: int) -> tuple[dict[str, Any], str]:
        try:
            collection = self.client.get_collection(name=self.collection_name)
            results = collection.query(
                query_embeddings=[vector],
                n_results=top_k,
                include=["documents", "metadatas", "distances"],
            )
            return results, _distance_space(collection)
        except Exception as e:
            raise RetrievalError(
                f"Vector search on '{self.collection_name}' failed: {e}",
                transient=isinstance(e, _TRANSIENT_ERRORS),
            ) from e

    async def search(self, vector: list[float], top_k: int) -> list[RetrievedRecord]:
        if len(vector) != self.dimension:
            raise RetrievalError(
                f"Query vector has {len(vector)} dimensions, "
                f"collection expects {self.dimension}."
            )

        loop = asyncio.get_event_loop()
        results, space = await loop.run_in_executor(None, self._query, vector, top_k)
        if space not in _SIMILARITY:
            raise RetrievalError(
                f"Collection '{self.collection_name}' uses unsupported distance '{space}'."
            )

        records = _to_records(results, space)
        if self.min_score is not None:
            kept = [r for r in records if r.score >= self.min_score]
            logger.info(
                "Score threshold %.3f kept %d of %d record(s)",
                self.min_score, len(kept), len(records),
            )
            records = kept
        return records


_SIMILARITY = {
    "cosine": lambda d: 1.0 - d,
    "ip": lambda d: 1.0 - d,  # Chroma reports ip distance as 1 - dot
    "l2": lambda d: 1.0 / (1.0 + d),  # squared L2, the Chroma default
}


def _distance_space(collection: Any) -> str:
    """hnsw space from collection metadata, then configuration; default l2."""
    metadata = collection.metadata
    if isinstance(metadata, dict) and metadata.get("hnsw:space"):
        return metadata["hnsw:space"]
    configuration = getattr(collection, "configuration", None)
    if isinstance(configuration, dict):
        hnsw = configuration.get("hnsw")
        if isinstance(hnsw, dict) and hnsw.get("space"):
            return hnsw["space"]
    return "l2"


def similarity(distance: float, space: str) -> float:
    """Higher-is-better score for a Chroma distance in ``space``."""
    return _SIMILARITY[space](distance)


def _to_records(results: dict[str, Any], space: str) -> list[RetrievedRecord]:
    """Flatten a single-query Chroma result into RetrievedRecords."""
    ids = (results.get("ids") or [[]])[0]
    if not ids:
        return []
    documents = (results.get("documents") or [[]])[0] or []
    metadatas = (results.get("metadatas") or [[]])[0] or []
    distances = (results.get("distances") or [[]])[0] or []

    records: list[RetrievedRecord] = []
    for idx, record_id in enumerate(ids):
        payload = dict(metadatas[idx] or {}) if idx < len(metadatas) else {}
        document = documents[idx] if idx < len(documents) else None
        if isinstance(document, str) and not payload.get("content"):
            payload["content"] = document
        score = similarity(float(distances[idx]), space) if idx < len(distances) else 0.0
        records.append(RetrievedRecord(id=str(record_id), score=score, payload=payload))
    return records


def build_retriever(settings: Settings) -> ChromaRetriever:
    return ChromaRetriever(
        build_chroma_client(settings),
        settings.collection_name,
        settings.embedding_dimension,
        min_score=settings.min_score if settings.score_threshold_enabled else None,
    )
