"""
Context assembly: retrieved records → (Context, citations).

NO network calls.  Records are rendered in the order the retriever
returned them (highest score first); records without content are
skipped entirely.
"""

from __future__ import annotations

from ragquery.schemas.retrieval import Context, RetrievedRecord
from ragquery.utils.logging import get_logger

logger = get_logger("ragquery.pipeline.context_assembler")


class ContextAssembler:
    def __init__(
        self,
        separator: str = "\n\n---\n\n",
        *,
        include_metadata: bool = True,
        max_chars: int | None = None,
    ):
        self.separator = separator
        self.include_metadata = include_metadata
        self.max_chars = max_chars

    def assemble(self, records: list[RetrievedRecord]) -> tuple[Context, list[str]]:
        segments: list[str] = []
        truncated = False
        length = 0

        for record in records:
            segment = self.render(record)
            if not segment:
                continue

            if self.max_chars is not None:
                added = len(segment) + (len(self.separator) if segments else 0)
                if length + added > self.max_chars:
                    truncated = True
                    # The top-scored segment is never lost entirely.
                    if not segments:
                        segments.append(segment[: self.max_chars])
                    break
                length += added

            segments.append(segment)

        context = Context(segments=segments, separator=self.separator, truncated=truncated)
        citations = [] if context.is_empty else extract_urls(records)

        if truncated:
            logger.info(
                "Context capped at %d chars: kept %d segment(s)",
                self.max_chars, len(segments),
            )
        return context, citations

    def render(self, record: RetrievedRecord) -> str:
        """Segment text for one record, or "" when it has no content."""
        content = record.content
        if not content:
            return ""
        if not self.include_metadata:
            return content

        title = str(record.payload.get("title") or "").strip()
        source = str(record.payload.get("source_file") or "").strip()
        if title and source:
            return f"{content}\n(Source: {title}, {source})"
        if title or source:
            return f"{content}\n(Source: {title or source})"
        return content


def extract_urls(records: list[RetrievedRecord]) -> list[str]:
    """Unique payload URLs, in order of first appearance."""
    seen: dict[str, None] = {}
    for record in records:
        if record.url:
            seen.setdefault(record.url, None)
    return list(seen)
