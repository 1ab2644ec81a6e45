"""
Centralized prompt constants: persona, per-branch instructions,
output-format directives and citation-block rendering.
"""

from __future__ import annotations

import html

from ragquery.schemas.prompt import PromptBranch


def build_persona(knowledge_base_name: str) -> str:
    """Static system message."""
    return (
        f"You are an expert assistant for {knowledge_base_name}. "
        "You answer questions from students, applicants and visitors "
        "accurately and in a friendly, professional voice."
    )


# ── Branch instructions ─────────────────────────────────────────────
def branch_instructions(branch: PromptBranch, knowledge_base_name: str) -> list[str]:
    if branch is PromptBranch.GROUNDED:
        return [
            "Answer the user query using ONLY the context data below.",
            "If several entries could match the query, list all plausible matches "
            "instead of asking the user to clarify.",
            "Do not state that information is missing, unavailable or not provided.",
            "Keep the tone concise and professional.",
        ]
    return [
        "No specific data was found in the knowledge base for this query.",
        f"Provide a general, helpful response about {knowledge_base_name} "
        "based on your general knowledge.",
        "Answer confidently. Never say that data is missing or that nothing was found.",
        "Keep the tone concise and professional.",
    ]


# ── Output format ───────────────────────────────────────────────────
FORMAT_DIRECTIVES: dict[str, str] = {
    "html": (
        "Respond ONLY in HTML format. Use <h2> for titles, <ul>/<li> for lists, "
        "and <p> for paragraphs. No Markdown."
    ),
    "markdown": (
        "Respond in Markdown. Use ## for titles, bullet lists for lists, "
        "and short paragraphs. No HTML."
    ),
    "plain": "Respond in plain text only. No HTML or Markdown markup.",
}


def render_citation_block(urls: list[str], response_format: str) -> str:
    """Source links in the configured output format ("" when none)."""
    if not urls:
        return ""
    if response_format == "html":
        links = "<br>".join(
            f'<a href="{html.escape(u, quote=True)}" target="_blank">{html.escape(u)}</a>'
            for u in urls
        )
        return f"<p><strong>Source Links:</strong><br>{links}</p>"
    if response_format == "markdown":
        return "**Source Links:**\n" + "\n".join(f"- [{u}]({u})" for u in urls)
    return "Source Links:\n" + "\n".join(f"- {u}" for u in urls)
