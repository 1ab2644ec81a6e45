"""
Unit tests for the service adapters with mocked client libraries.
"""
import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import chromadb
import httpx
import numpy as np
import openai
import pytest

from ragquery.core.config import Settings
from ragquery.core.errors import EmbeddingError, GenerationError, RetrievalError
from ragquery.schemas.prompt import Prompt, PromptBranch
from ragquery.services.embedding import OpenAIEmbedder, SentenceTransformerEmbedder, build_embedder
from ragquery.services.llm import OpenAIGenerator
from ragquery.services.vector_store import ChromaRetriever, similarity

_REQUEST = httpx.Request("POST", "https://api.example.test/v1")


def _connection_error():
    return openai.APIConnectionError(request=_REQUEST)


def _bad_request():
    response = httpx.Response(400, request=_REQUEST)
    return openai.BadRequestError("bad request", response=response, body=None)


def _embedding_client(response=None, error=None):
    client = MagicMock()
    client.embeddings.create = AsyncMock(return_value=response, side_effect=error)
    return client


def _chat_client(content=None, error=None):
    client = MagicMock()
    response = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))] if content is not None else [],
    )
    client.chat.completions.create = AsyncMock(return_value=response, side_effect=error)
    return client


class TestOpenAIEmbedder:
    @pytest.mark.asyncio
    async def test_requests_configured_dimension(self):
        client = _embedding_client(SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2, 0.3])]))
        embedder = OpenAIEmbedder(client, "text-embedding-3-small", 3)

        vector = await embedder.embed("What programs?")

        assert vector == [0.1, 0.2, 0.3]
        kwargs = client.embeddings.create.await_args.kwargs
        assert kwargs["dimensions"] == 3
        assert kwargs["input"] == "What programs?"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        SimpleNamespace(data=[]),
        SimpleNamespace(data=[SimpleNamespace(embedding=None)]),
        SimpleNamespace(data=[SimpleNamespace(embedding=[])]),
        SimpleNamespace(data=[SimpleNamespace(embedding=["a", "b"])]),
    ])
    async def test_malformed_response(self, response):
        embedder = OpenAIEmbedder(_embedding_client(response), "m", 2)

        with pytest.raises(EmbeddingError) as exc_info:
            await embedder.embed("hello")

        assert not exc_info.value.transient

    @pytest.mark.asyncio
    async def test_wrong_size_vector_rejected(self):
        response = SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2])])
        embedder = OpenAIEmbedder(_embedding_client(response), "m", 3)

        with pytest.raises(EmbeddingError, match="2 dimensions, expected 3"):
            await embedder.embed("hello")

    @pytest.mark.asyncio
    async def test_network_failure_is_transient(self):
        embedder = OpenAIEmbedder(_embedding_client(error=_connection_error()), "m", 2)

        with pytest.raises(EmbeddingError) as exc_info:
            await embedder.embed("hello")

        assert exc_info.value.transient

    @pytest.mark.asyncio
    async def test_empty_text_rejected_without_call(self):
        client = _embedding_client()
        embedder = OpenAIEmbedder(client, "m", 2)

        with pytest.raises(EmbeddingError):
            await embedder.embed("  ")

        assert client.embeddings.create.await_count == 0


class TestSentenceTransformerEmbedder:
    @pytest.mark.asyncio
    async def test_query_prompt_passed_to_model(self):
        embedder = SentenceTransformerEmbedder("intfloat/e5-base-v2", 2, query_prompt="query: ")
        model = MagicMock()
        model.encode.return_value = np.array([0.5, 0.25])
        embedder._model = model

        vector = await embedder.embed("fees")

        assert vector == [0.5, 0.25]
        model.encode.assert_called_once_with("fees", prompt="query: ", show_progress_bar=False)

    @pytest.mark.asyncio
    async def test_model_failure(self):
        embedder = SentenceTransformerEmbedder("m", 2)
        embedder._model = MagicMock()
        embedder._model.encode.side_effect = RuntimeError("CUDA out of memory")

        with pytest.raises(EmbeddingError):
            await embedder.embed("fees")

    @pytest.mark.asyncio
    async def test_native_width_vector_rejected(self):
        # e.g. a 1024-wide model against a 768-dimension collection
        embedder = SentenceTransformerEmbedder("BAAI/bge-large-en-v1.5", 768)
        embedder._model = MagicMock()
        embedder._model.encode.return_value = np.ones(1024)

        with pytest.raises(EmbeddingError, match="1024 dimensions, expected 768"):
            await embedder.embed("fees")

    @pytest.mark.asyncio
    async def test_model_truncated_to_configured_dimension(self, fake_sentence_transformer):
        embedder = SentenceTransformerEmbedder("BAAI/bge-large-en-v1.5", 768)

        vector = await embedder.embed("fees")

        (model,) = fake_sentence_transformer.instances
        assert model.model_name == "BAAI/bge-large-en-v1.5"
        assert model.truncate_dim == 768
        assert len(vector) == 768

    def test_build_loads_model_before_first_query(self, fake_sentence_transformer):
        settings = Settings(
            _env_file=None,
            embedding_provider="sentence_transformers",
            embedding_model="intfloat/e5-base-v2",
            embedding_dimension=768,
        )

        embedder = build_embedder(settings)

        assert len(fake_sentence_transformer.instances) == 1
        assert embedder._model is fake_sentence_transformer.instances[0]

    @pytest.mark.asyncio
    async def test_loaded_model_reused_across_queries(self, fake_sentence_transformer):
        embedder = SentenceTransformerEmbedder("m", 4)
        embedder.load()

        await embedder.embed("fees")
        await embedder.embed("hostels")

        (model,) = fake_sentence_transformer.instances
        assert len(model.encode_calls) == 2


class TestOpenAIGenerator:
    PROMPT = Prompt(branch=PromptBranch.GROUNDED, system="persona", user="question")

    @pytest.mark.asyncio
    async def test_persona_sent_as_system_message(self):
        client = _chat_client("  <p>Answer</p>  ")
        generator = OpenAIGenerator(client, "gpt-4o-mini", temperature=0.7, max_output_tokens=2048)

        answer = await generator.generate(self.PROMPT)

        assert answer == "<p>Answer</p>"
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["messages"] == [
            {"role": "system", "content": "persona"},
            {"role": "user", "content": "question"},
        ]
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 2048

    @pytest.mark.asyncio
    async def test_persona_prepended_without_roles(self):
        client = _chat_client("ok")
        generator = OpenAIGenerator(client, "gemini-2.5-flash", split_roles=False)

        await generator.generate(self.PROMPT)

        messages = client.chat.completions.create.await_args.kwargs["messages"]
        assert messages == [{"role": "user", "content": "persona\n\nquestion"}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", [None, "", "   "])
    async def test_empty_completion(self, content):
        generator = OpenAIGenerator(_chat_client(content), "m")

        with pytest.raises(GenerationError):
            await generator.generate(self.PROMPT)

    @pytest.mark.asyncio
    async def test_api_errors_classified(self):
        transient = OpenAIGenerator(_chat_client(error=_connection_error()), "m")
        permanent = OpenAIGenerator(_chat_client(error=_bad_request()), "m")

        with pytest.raises(GenerationError) as exc_info:
            await transient.generate(self.PROMPT)
        assert exc_info.value.transient

        with pytest.raises(GenerationError) as exc_info:
            await permanent.generate(self.PROMPT)
        assert not exc_info.value.transient


def _chroma_client(result=None, error=None, space="cosine"):
    collection = MagicMock()
    collection.metadata = {"hnsw:space": space}
    if error is not None:
        collection.query.side_effect = error
    else:
        collection.query.return_value = result
    client = MagicMock()
    client.get_collection.return_value = collection
    return client, collection


CHROMA_RESULT = {
    "ids": [["a", "b", "c"]],
    "documents": [["BS CS", "BS EE", "BS CE"]],
    "metadatas": [[
        {"title": "CS", "url": "https://gutech.edu.pk/cs"},
        {"title": "EE", "url": "https://gutech.edu.pk/ee", "content": "EE from metadata"},
        None,
    ]],
    "distances": [[0.1, 0.3, 0.6]],
}


class TestChromaRetriever:
    @pytest.mark.asyncio
    async def test_returns_scored_records_with_payload(self):
        client, collection = _chroma_client(CHROMA_RESULT)
        retriever = ChromaRetriever(client, "gutech_knowledge_base", 3)

        records = await retriever.search([0.1, 0.2, 0.3], 3)

        client.get_collection.assert_called_once_with(name="gutech_knowledge_base")
        kwargs = collection.query.call_args.kwargs
        assert kwargs["n_results"] == 3
        assert "documents" in kwargs["include"] and "metadatas" in kwargs["include"]
        assert [r.score for r in records] == pytest.approx([0.9, 0.7, 0.4])
        assert records[0].payload == {"title": "CS", "url": "https://gutech.edu.pk/cs", "content": "BS CS"}
        assert records[1].content == "EE from metadata"
        assert records[2].payload == {"content": "BS CE"}

    @pytest.mark.asyncio
    async def test_threshold_drops_weak_matches(self):
        client, _ = _chroma_client(CHROMA_RESULT)
        retriever = ChromaRetriever(client, "kb", 3, min_score=0.5)

        records = await retriever.search([0.1, 0.2, 0.3], 3)

        assert [r.id for r in records] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_no_threshold_keeps_weak_matches(self):
        client, _ = _chroma_client(CHROMA_RESULT)

        records = await ChromaRetriever(client, "kb", 3).search([0.1, 0.2, 0.3], 3)

        assert len(records) == 3

    @pytest.mark.asyncio
    async def test_empty_result(self):
        client, _ = _chroma_client({"ids": [[]], "documents": [[]], "metadatas": [[]], "distances": [[]]})

        assert await ChromaRetriever(client, "kb", 2).search([0.1, 0.2], 5) == []

    @pytest.mark.asyncio
    async def test_wrong_dimension_rejected_before_query(self):
        client, collection = _chroma_client(CHROMA_RESULT)

        with pytest.raises(RetrievalError):
            await ChromaRetriever(client, "kb", 768).search([0.1, 0.2], 5)

        assert collection.query.call_count == 0

    @pytest.mark.asyncio
    async def test_store_unavailable(self):
        client, _ = _chroma_client(error=httpx.ConnectError("connection refused"))

        with pytest.raises(RetrievalError) as exc_info:
            await ChromaRetriever(client, "kb", 2).search([0.1, 0.2], 5)

        assert exc_info.value.transient

    @pytest.mark.asyncio
    async def test_missing_collection(self):
        client = MagicMock()
        client.get_collection.side_effect = ValueError("Collection kb does not exist")

        with pytest.raises(RetrievalError) as exc_info:
            await ChromaRetriever(client, "kb", 2).search([0.1, 0.2], 5)

        assert not exc_info.value.transient


class TestSimilarity:
    @pytest.mark.parametrize("space, distance, expected", [
        ("cosine", 0.25, 0.75),
        ("ip", 0.25, 0.75),
        ("l2", 0.0, 1.0),
        ("l2", 3.0, 0.25),
    ])
    def test_distance_to_score(self, space, distance, expected):
        assert similarity(distance, space) == pytest.approx(expected)

    @pytest.mark.asyncio
    async def test_l2_collection_scores_stay_positive(self):
        result = {
            "ids": [["a", "b"]],
            "documents": [["near", "far"]],
            "metadatas": [[{}, {}]],
            "distances": [[1.0, 13.0]],
        }
        client, _ = _chroma_client(result, space="l2")

        records = await ChromaRetriever(client, "kb", 2, min_score=0.0).search([2.0, 0.0], 2)

        assert [r.id for r in records] == ["a", "b"]
        assert [r.score for r in records] == pytest.approx([0.5, 1.0 / 14.0])

    @pytest.mark.asyncio
    async def test_unsupported_space(self):
        client, _ = _chroma_client(CHROMA_RESULT, space="manhattan")

        with pytest.raises(RetrievalError, match="manhattan"):
            await ChromaRetriever(client, "kb", 3).search([0.1, 0.2, 0.3], 3)


class TestChromaRetrieverDefaultSpace:
    """Against a real in-memory collection created with Chroma's defaults."""

    @pytest.fixture
    def client(self):
        client = chromadb.EphemeralClient()
        name = f"kb_{uuid.uuid4().hex[:8]}"
        collection = client.create_collection(name=name, embedding_function=None)
        collection.add(
            ids=["east", "north"],
            embeddings=[[3.0, 0.0], [0.0, 3.0]],
            documents=["Admissions open in June", "Hostel fees"],
            metadatas=[{"url": "https://gutech.edu.pk/admissions"}, {"url": "https://gutech.edu.pk/hostel"}],
        )
        yield client, name
        client.delete_collection(name=name)

    @pytest.mark.asyncio
    async def test_zero_threshold_keeps_every_hit(self, client):
        chroma, name = client

        records = await ChromaRetriever(chroma, name, 2, min_score=0.0).search([2.0, 0.0], 2)

        assert [r.id for r in records] == ["east", "north"]
        assert [r.score for r in records] == pytest.approx([0.5, 1.0 / 14.0])
        assert records[0].content == "Admissions open in June"

    @pytest.mark.asyncio
    async def test_threshold_applies_to_similarity(self, client):
        chroma, name = client

        records = await ChromaRetriever(chroma, name, 2, min_score=0.3).search([2.0, 0.0], 2)

        assert [r.id for r in records] == ["east"]
