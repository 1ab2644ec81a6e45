"""
Pipeline Orchestrator — top-level entry point.

Received → Embedding → Retrieving → Assembling → Prompting
         → Generating → Completed | Failed

Stages run strictly in sequence; each depends on the previous one's
output.  Any stage failure aborts the request; no partial answer is
produced.  An empty retrieval is not a failure: it selects the
fallback prompt.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

from ragquery.core.config import Settings
from ragquery.core.errors import (
    EmbeddingError,
    GenerationError,
    PipelineError,
    QueryValidationError,
    RetrievalError,
)
from ragquery.pipeline.context_assembler import ContextAssembler
from ragquery.prompts.answer_generator import PromptBuilder
from ragquery.schemas.pipeline import PipelineContext, PipelineStage
from ragquery.schemas.response import AnswerResult
from ragquery.services.embedding import Embedder, build_embedder
from ragquery.services.llm import Generator, build_generator
from ragquery.services.vector_store import Retriever, build_retriever
from ragquery.utils.logging import get_logger
from ragquery.utils.retry import call_with_timeout, retry_async
from ragquery.utils.timing import Timer

logger = get_logger("ragquery.pipeline.orchestrator")

T = TypeVar("T")


def validate_query(raw_input: Any, max_chars: int) -> str:
    """Return the trimmed query or raise QueryValidationError."""
    if not isinstance(raw_input, str) or not raw_input.strip():
        raise QueryValidationError("Query required")
    query = raw_input.strip()
    if len(query) > max_chars:
        raise QueryValidationError(f"Query too long (max {max_chars} characters)")
    return query


class QueryPipeline:
    """
    Sequences the five stages for one query at a time.

    Holds only long-lived, stateless collaborators; all per-request
    state lives in a fresh PipelineContext, so one instance serves any
    number of concurrent requests.
    """

    def __init__(
        self,
        embedder: Embedder,
        retriever: Retriever,
        generator: Generator,
        *,
        assembler: ContextAssembler | None = None,
        prompt_builder: PromptBuilder | None = None,
        top_k: int = 5,
        embedding_timeout: float = 15.0,
        retrieval_timeout: float = 10.0,
        generation_timeout: float = 60.0,
        max_attempts: int = 1,
        backoff_seconds: float = 0.5,
        max_query_chars: int = 2000,
    ):
        self.embedder = embedder
        self.retriever = retriever
        self.generator = generator
        self.assembler = assembler or ContextAssembler()
        self.prompt_builder = prompt_builder or PromptBuilder("our institution")
        self.top_k = top_k
        self.embedding_timeout = embedding_timeout
        self.retrieval_timeout = retrieval_timeout
        self.generation_timeout = generation_timeout
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.max_query_chars = max_query_chars

    async def handle_query(self, raw_input: Any) -> AnswerResult:
        """
        Answer one query.

        Raises QueryValidationError before any external call when the
        input is missing or blank; raises the failing stage's
        PipelineError subclass otherwise.
        """
        query = validate_query(raw_input, self.max_query_chars)
        ctx = PipelineContext(query=query)
        logger.info(
            "[PIPELINE] Received | query: %s%s",
            query[:80], "..." if len(query) > 80 else "",
        )

        try:
            ctx.vector = await self._network_stage(
                ctx, PipelineStage.EMBEDDING,
                lambda: self.embedder.embed(query),
                self.embedding_timeout, EmbeddingError,
            )
            logger.info("[PIPELINE] Embedding done | dim=%d", len(ctx.vector))

            ctx.records = await self._network_stage(
                ctx, PipelineStage.RETRIEVING,
                lambda: self.retriever.search(ctx.vector, self.top_k),
                self.retrieval_timeout, RetrievalError,
            )
            logger.info("[PIPELINE] Retrieval done | matched %d record(s)", len(ctx.records))

            ctx.stage = PipelineStage.ASSEMBLING
            with Timer() as t:
                ctx.context, ctx.citations = self.assembler.assemble(ctx.records)
            ctx.stage_timings[ctx.stage.value] = t.elapsed_ms
            logger.info(
                "[PIPELINE] Assembly done | segments=%d, urls=%d",
                len(ctx.context.segments), len(ctx.citations),
            )

            ctx.stage = PipelineStage.PROMPTING
            with Timer() as t:
                ctx.prompt = self.prompt_builder.build(ctx.context, query, ctx.citations)
            ctx.stage_timings[ctx.stage.value] = t.elapsed_ms
            logger.info(
                "[PIPELINE] Prompt built | branch=%s, %d chars",
                ctx.prompt.branch.value, len(ctx.prompt.user),
            )

            ctx.answer = await self._network_stage(
                ctx, PipelineStage.GENERATING,
                lambda: self.generator.generate(ctx.prompt),
                self.generation_timeout, GenerationError,
            )
        except PipelineError as e:
            logger.error(
                "[PIPELINE] Failed at %s after %.0fms: %s",
                ctx.stage.value, ctx.elapsed_ms, e, exc_info=True,
            )
            ctx.stage = PipelineStage.FAILED
            raise
        except Exception as e:
            logger.error(
                "[PIPELINE] Unexpected failure at %s: %s",
                ctx.stage.value, e, exc_info=True,
            )
            ctx.stage = PipelineStage.FAILED
            raise PipelineError(f"Unexpected failure: {e}") from e

        ctx.stage = PipelineStage.COMPLETED
        latency = ctx.elapsed_ms
        logger.info(
            "[PIPELINE] Completed in %.0fms | %s",
            latency,
            ", ".join(f"{k}={v:.0f}ms" for k, v in ctx.stage_timings.items()),
        )

        return AnswerResult(
            answer=ctx.answer,
            latency_ms=latency,
            chunks_found=len(ctx.records),
            citations=ctx.citations,
            prompt_branch=ctx.prompt.branch,
        )

    async def _network_stage(
        self,
        ctx: PipelineContext,
        stage: PipelineStage,
        call: Callable[[], Awaitable[T]],
        timeout: float,
        error_cls: type[PipelineError],
    ) -> T:
        """Run one network call with timeout, bounded retry and timing."""
        ctx.stage = stage

        async def attempt() -> T:
            try:
                return await call_with_timeout(call, timeout, error_cls)
            except PipelineError:
                raise
            except Exception as e:
                raise error_cls(f"{stage.value} failed: {e}") from e

        with Timer() as t:
            result = await retry_async(
                attempt,
                attempts=self.max_attempts,
                backoff_seconds=self.backoff_seconds,
                label=stage.value,
            )
        ctx.stage_timings[stage.value] = t.elapsed_ms
        return result


def build_pipeline(settings: Settings) -> QueryPipeline:
    """Create the process-wide pipeline and its service clients."""
    return QueryPipeline(
        build_embedder(settings),
        build_retriever(settings),
        build_generator(settings),
        assembler=ContextAssembler(
            settings.context_separator,
            include_metadata=settings.include_segment_metadata,
            max_chars=settings.max_context_chars,
        ),
        prompt_builder=PromptBuilder(
            settings.knowledge_base_name,
            settings.response_format,
            include_citations=settings.include_citation_block,
        ),
        top_k=settings.top_k,
        embedding_timeout=settings.embedding_timeout_seconds,
        retrieval_timeout=settings.retrieval_timeout_seconds,
        generation_timeout=settings.generation_timeout_seconds,
        max_attempts=settings.stage_max_attempts,
        backoff_seconds=settings.retry_backoff_seconds,
        max_query_chars=settings.max_query_chars,
    )
