"""
Shared fixtures: fake collaborators for the three network services.
"""
import logging
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest
from fastapi.testclient import TestClient

from ragquery.pipeline.context_assembler import ContextAssembler
from ragquery.pipeline.orchestrator import QueryPipeline
from ragquery.prompts.answer_generator import PromptBuilder
from ragquery.schemas.retrieval import RetrievedRecord

FAKE_VECTOR = [0.1, 0.2, 0.3, 0.4]
FAKE_ANSWER = "<p>GUTech offers undergraduate engineering programs.</p>"


def make_record(score, content="", url=None, title=None, source_file=None):
    payload = {"content": content}
    if url is not None:
        payload["url"] = url
    if title is not None:
        payload["title"] = title
    if source_file is not None:
        payload["source_file"] = source_file
    return RetrievedRecord(score=score, payload=payload)


@pytest.fixture
def program_records():
    """Three hits with content and distinct URLs, highest score first."""
    return [
        make_record(0.91, "BS Computer Science, 4 years.", "https://gutech.edu.pk/cs", "Computer Science"),
        make_record(0.84, "BS Electrical Engineering, 4 years.", "https://gutech.edu.pk/ee", "Electrical Engineering"),
        make_record(0.77, "BS Civil Engineering, 4 years.", "https://gutech.edu.pk/ce", "Civil Engineering"),
    ]


@pytest.fixture
def embedder():
    mock = MagicMock()
    mock.embed = AsyncMock(return_value=list(FAKE_VECTOR))
    return mock


@pytest.fixture
def retriever():
    mock = MagicMock()
    mock.search = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def generator():
    mock = MagicMock()
    mock.generate = AsyncMock(return_value=FAKE_ANSWER)
    return mock


@pytest.fixture
def pipeline(embedder, retriever, generator):
    return QueryPipeline(
        embedder,
        retriever,
        generator,
        assembler=ContextAssembler(),
        prompt_builder=PromptBuilder("GU TECH Karachi", "html"),
        top_k=5,
        backoff_seconds=0,
    )


@pytest.fixture
def client(pipeline):
    from ragquery.api.query import get_pipeline
    from ragquery.main import app

    app.dependency_overrides[get_pipeline] = lambda: pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def ragquery_logs(caplog):
    """caplog wired to the ``ragquery`` logger, which does not propagate."""
    logger = logging.getLogger("ragquery")
    logger.addHandler(caplog.handler)
    caplog.set_level(logging.INFO, logger="ragquery")
    yield caplog
    logger.removeHandler(caplog.handler)


class FakeSentenceTransformer:
    """Stands in for sentence_transformers.SentenceTransformer."""

    instances = []

    def __init__(self, model_name, truncate_dim=None):
        self.model_name = model_name
        self.truncate_dim = truncate_dim
        self.encode_calls = []
        FakeSentenceTransformer.instances.append(self)

    def encode(self, text, **kwargs):
        self.encode_calls.append((text, kwargs))
        return np.ones(self.truncate_dim or 1024)


@pytest.fixture
def fake_sentence_transformer(monkeypatch):
    import sentence_transformers

    FakeSentenceTransformer.instances = []
    monkeypatch.setattr(sentence_transformers, "SentenceTransformer", FakeSentenceTransformer)
    return FakeSentenceTransformer
