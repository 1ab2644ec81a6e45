"""
Pydantic schemas for every pipeline boundary and the HTTP API.
"""

from ragquery.schemas.retrieval import RetrievedRecord, Context
from ragquery.schemas.prompt import Prompt, PromptBranch
from ragquery.schemas.pipeline import PipelineContext, PipelineStage
from ragquery.schemas.response import (
    AnswerResult,
    QueryRequest,
    QueryResponse,
    ErrorResponse,
    HealthResponse,
)

__all__ = [
    # Retrieval
    "RetrievedRecord",
    "Context",
    # Prompt
    "Prompt",
    "PromptBranch",
    # Pipeline
    "PipelineContext",
    "PipelineStage",
    # Response
    "AnswerResult",
    "QueryRequest",
    "QueryResponse",
    "ErrorResponse",
    "HealthResponse",
]
