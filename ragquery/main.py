from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ragquery.api.health import router as health_router
from ragquery.api.query import router as query_router
from ragquery.core.config import settings
from ragquery.core.errors import PipelineError, QueryValidationError
from ragquery.utils.logging import get_logger

logger = get_logger("ragquery.main")

GENERIC_ERROR = "Server error occurred. Please try again later."

app = FastAPI(
    title=settings.app_name,
    description="Retrieval-augmented question answering over the knowledge base",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(query_router)
app.include_router(health_router)


# ── Error mapping ───────────────────────────────────────────────────
@app.exception_handler(QueryValidationError)
async def on_validation_error(request: Request, exc: QueryValidationError):
    logger.warning("[API] Rejected request: %s", exc)
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(RequestValidationError)
async def on_malformed_body(request: Request, exc: RequestValidationError):
    logger.warning("[API] Malformed request body: %s", exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


@app.exception_handler(PipelineError)
async def on_pipeline_error(request: Request, exc: PipelineError):
    # Detail was logged by the orchestrator; the client gets a fixed message.
    logger.error("[API] %s stage failed; returning 500", exc.stage)
    return JSONResponse(status_code=500, content={"error": GENERIC_ERROR})


@app.exception_handler(Exception)
async def on_unexpected_error(request: Request, exc: Exception):
    logger.error("[API] Unhandled error: %s", exc, exc_info=True)
    return JSONResponse(status_code=500, content={"error": GENERIC_ERROR})


@app.on_event("startup")
async def on_startup():
    """Build the service clients and the pipeline once per process."""
    from ragquery.pipeline.orchestrator import build_pipeline

    logger.info("Starting %s...", settings.app_name)
    app.state.pipeline = build_pipeline(settings)
    logger.info(
        "[OK] Pipeline ready | collection=%s, top_k=%d, format=%s, threshold=%s",
        settings.collection_name,
        settings.top_k,
        settings.response_format,
        settings.min_score if settings.score_threshold_enabled else "off",
    )
