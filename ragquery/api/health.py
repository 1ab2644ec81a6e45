"""
Health check endpoint for monitoring.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from ragquery.schemas.response import HealthResponse

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Liveness plus server clock."""
    return HealthResponse(server_time=datetime.now(timezone.utc).isoformat())
