"""
Prompt schema.

The two prompt templates are selected by ``PromptBranch``; the branch
travels with the prompt so callers and tests can tell which template
produced it.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class PromptBranch(str, Enum):
    GROUNDED = "grounded"
    FALLBACK = "fallback"


class Prompt(BaseModel):
    branch: PromptBranch
    system: str  # persona
    user: str  # instructions + context + query + citations

    def as_single_input(self) -> str:
        """Persona prepended, for providers without a system role."""
        return f"{self.system}\n\n{self.user}"
