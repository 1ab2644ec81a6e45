"""
Thin API route for /query.

No business logic: hands the request body to the pipeline and shapes
the result.  Errors are mapped to HTTP responses by the exception
handlers registered in ragquery.main.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ragquery.core.config import settings
from ragquery.pipeline.orchestrator import QueryPipeline
from ragquery.schemas.response import ErrorResponse, QueryRequest, QueryResponse
from ragquery.utils.logging import get_logger

logger = get_logger("ragquery.api.query")

router = APIRouter(tags=["Query"])


def get_pipeline(request: Request) -> QueryPipeline:
    """The process-wide pipeline built at startup."""
    return request.app.state.pipeline


@router.post(
    "/query",
    response_model=QueryResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def query(
    request: QueryRequest,
    pipeline: QueryPipeline = Depends(get_pipeline),
):
    """Answer a user's question from the knowledge base."""
    result = await pipeline.handle_query(request.user_query)
    logger.info(
        "[QUERY] Answered in %.0fms | chunks=%d, branch=%s",
        result.latency_ms, result.chunks_found, result.prompt_branch.value,
    )
    return QueryResponse.from_result(result, diagnostics=settings.include_diagnostics)
