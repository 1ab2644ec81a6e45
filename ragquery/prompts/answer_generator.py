"""
Prompt builder for answer generation.

Two templates, selected by a single predicate (is the context empty?):

  GROUNDED  — answer only from the retrieved context, included verbatim
  FALLBACK  — no usable context; answer from general knowledge

Both embed the literal query, the output-format directive and, when
enabled, the rendered citation block.
"""

from __future__ import annotations

from typing import Callable

from ragquery.prompts.constants import (
    FORMAT_DIRECTIVES,
    branch_instructions,
    build_persona,
    render_citation_block,
)
from ragquery.schemas.prompt import Prompt, PromptBranch
from ragquery.schemas.retrieval import Context


def select_branch(context: Context) -> PromptBranch:
    return PromptBranch.FALLBACK if context.is_empty else PromptBranch.GROUNDED


class PromptBuilder:
    def __init__(
        self,
        knowledge_base_name: str,
        response_format: str = "html",
        *,
        include_citations: bool = True,
    ):
        if response_format not in FORMAT_DIRECTIVES:
            raise ValueError(f"Unknown response format: {response_format!r}")
        self.knowledge_base_name = knowledge_base_name
        self.response_format = response_format
        self.include_citations = include_citations
        self._templates: dict[PromptBranch, Callable[[Context], list[str]]] = {
            PromptBranch.GROUNDED: self._grounded_sections,
            PromptBranch.FALLBACK: self._fallback_sections,
        }

    def build(self, context: Context, query: str, citations: list[str]) -> Prompt:
        branch = select_branch(context)
        parts = self._templates[branch](context)
        parts.append(f"## USER QUERY\n{query}")

        if self.include_citations:
            block = render_citation_block(citations, self.response_format)
            if block:
                parts.append(
                    "## SOURCE LINKS\n"
                    "End your answer with this block, unchanged:\n"
                    f"{block}"
                )

        return Prompt(
            branch=branch,
            system=build_persona(self.knowledge_base_name),
            user="\n\n".join(parts),
        )

    # ── Templates ───────────────────────────────────────────────────
    def _header(self, branch: PromptBranch) -> list[str]:
        rules = branch_instructions(branch, self.knowledge_base_name)
        return [
            "## INSTRUCTIONS\n" + "\n".join(f"- {r}" for r in rules),
            f"## OUTPUT FORMAT\n{FORMAT_DIRECTIVES[self.response_format]}",
        ]

    def _grounded_sections(self, context: Context) -> list[str]:
        return self._header(PromptBranch.GROUNDED) + [f"## CONTEXT DATA\n{context.text}"]

    def _fallback_sections(self, context: Context) -> list[str]:
        return self._header(PromptBranch.FALLBACK)
