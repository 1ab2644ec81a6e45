"""
Pipeline result and HTTP API schemas.

AnswerResult is the pipeline-internal result.  QueryRequest and
QueryResponse are the external contract of ``POST /query``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ragquery.schemas.prompt import PromptBranch


class AnswerResult(BaseModel):
    answer: str
    latency_ms: float = 0.0
    chunks_found: int = 0
    citations: list[str] = Field(default_factory=list)
    prompt_branch: PromptBranch = PromptBranch.FALLBACK


# ── External API schemas ────────────────────────────────────────────
class QueryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Optional so that a missing field reaches the pipeline's own
    # validation and is reported as a 400, not a 422.
    user_query: str | None = Field(default=None, alias="userQuery")


class QueryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    answer: str
    response_time: str | None = Field(default=None, alias="responseTime")
    relevant_urls: list[str] | None = Field(default=None, alias="relevantUrls")
    chunks_found: int | None = Field(default=None, alias="chunksFound")

    @classmethod
    def from_result(cls, result: AnswerResult, *, diagnostics: bool) -> "QueryResponse":
        if not diagnostics:
            return cls(answer=result.answer)
        return cls(
            answer=result.answer,
            response_time=f"{round(result.latency_ms)}ms",
            relevant_urls=result.citations,
            chunks_found=result.chunks_found,
        )


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str = "OK"
    server_time: str = Field(alias="serverTime")
