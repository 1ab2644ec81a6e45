"""
Schemas for the retrieval and context-assembly stages.

RetrievedRecord is one scored hit from the vector store.  Context is
the assembled text block handed to the prompt builder; it keeps its
segments so the block can be inspected and tested segment by segment.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class RetrievedRecord(BaseModel):
    """One similarity-search hit.  Payload keys are all optional."""
    id: str | None = None
    score: float
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def content(self) -> str:
        value = self.payload.get("content")
        return value.strip() if isinstance(value, str) else ""

    @property
    def url(self) -> str:
        value = self.payload.get("url")
        return value.strip() if isinstance(value, str) else ""


class Context(BaseModel):
    """Rendered segments in retrieval order, joined by ``separator``."""
    segments: list[str] = Field(default_factory=list)
    separator: str = "\n\n---\n\n"
    truncated: bool = False

    @property
    def text(self) -> str:
        return self.separator.join(self.segments)

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()
