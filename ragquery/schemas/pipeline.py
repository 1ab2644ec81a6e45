"""
Per-request pipeline state.

Created when a query is received and discarded once the response is
sent.  Nothing in here is shared between requests.
"""

from __future__ import annotations

import time
from enum import Enum

from pydantic import BaseModel, Field

from ragquery.schemas.prompt import Prompt
from ragquery.schemas.retrieval import Context, RetrievedRecord


class PipelineStage(str, Enum):
    RECEIVED = "received"
    EMBEDDING = "embedding"
    RETRIEVING = "retrieving"
    ASSEMBLING = "assembling"
    PROMPTING = "prompting"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class PipelineContext(BaseModel):
    query: str
    stage: PipelineStage = PipelineStage.RECEIVED

    # ── Stage outputs ───────────────────────────────────────────────
    vector: list[float] | None = None
    records: list[RetrievedRecord] = Field(default_factory=list)
    context: Context | None = None
    citations: list[str] = Field(default_factory=list)
    prompt: Prompt | None = None
    answer: str | None = None

    # ── Timing ──────────────────────────────────────────────────────
    start_time: float = Field(default_factory=time.perf_counter)
    stage_timings: dict[str, float] = Field(default_factory=dict)

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.start_time) * 1000
