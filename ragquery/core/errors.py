"""
Error taxonomy for the query pipeline.

QueryValidationError is raised before any external call and maps to
HTTP 400.  The three stage errors wrap an underlying service failure
and map to a generic HTTP 500; their detail stays in server logs.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for every failure the pipeline reports."""

    stage: str = "pipeline"

    def __init__(self, message: str, *, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class QueryValidationError(PipelineError):
    """Missing, empty or oversized user query."""

    stage = "validation"


class EmbeddingError(PipelineError):
    """Embedding service failed or returned no usable vector."""

    stage = "embedding"


class RetrievalError(PipelineError):
    """Vector store unavailable or rejected the query vector."""

    stage = "retrieval"


class GenerationError(PipelineError):
    """Language model errored, timed out or returned an empty completion."""

    stage = "generation"
