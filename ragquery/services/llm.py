"""
OpenAI-compatible client singleton and the answer Generator.

One ``AsyncOpenAI`` client is shared by the embedder and the
generator.  Pointing ``openai_base_url`` at another OpenAI-compatible
endpoint (e.g. Gemini's) switches provider without code changes.
"""

from __future__ import annotations

import threading
from typing import Any, Protocol

import openai
from openai import AsyncOpenAI

from ragquery.core.config import Settings
from ragquery.core.errors import GenerationError
from ragquery.schemas.prompt import Prompt
from ragquery.utils.logging import get_logger

logger = get_logger("ragquery.services.llm")

_TRANSIENT_ERRORS = (
    openai.APIConnectionError,  # includes APITimeoutError
    openai.RateLimitError,
    openai.InternalServerError,
)


def is_transient(exc: BaseException) -> bool:
    """Network-level failures worth a retry."""
    return isinstance(exc, _TRANSIENT_ERRORS)


# ── Singleton client ────────────────────────────────────────────────
_client_lock = threading.Lock()
_client_instance: AsyncOpenAI | None = None


def get_openai_client(settings: Settings) -> AsyncOpenAI:
    """
    Return the process-wide AsyncOpenAI client.

    Raises RuntimeError when the API key is missing.  Built-in client
    retries are disabled; the pipeline's own retry policy applies.
    """
    global _client_instance
    if _client_instance is not None:
        return _client_instance

    with _client_lock:
        if _client_instance is not None:
            return _client_instance

        if settings.openai_api_key is None:
            raise RuntimeError("Model provider API key not configured (OPENAI_API_KEY).")

        _client_instance = AsyncOpenAI(
            api_key=settings.openai_api_key.get_secret_value(),
            base_url=settings.openai_base_url,
            max_retries=0,
        )
        logger.info(
            "Model client initialized (base_url=%s)",
            settings.openai_base_url or "default",
        )
        return _client_instance


# ── Generator ───────────────────────────────────────────────────────
class Generator(Protocol):
    async def generate(self, prompt: Prompt) -> str: ...


class OpenAIGenerator:
    """Chat-completions generator."""

    def __init__(
        self,
        client: Any,
        model: str,
        *,
        temperature: float = 0.7,
        max_output_tokens: int = 2048,
        split_roles: bool = True,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.split_roles = split_roles

    def _messages(self, prompt: Prompt) -> list[dict]:
        if self.split_roles:
            return [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.user},
            ]
        return [{"role": "user", "content": prompt.as_single_input()}]

    async def generate(self, prompt: Prompt) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=self._messages(prompt),
                temperature=self.temperature,
                max_tokens=self.max_output_tokens,
            )
        except openai.APIError as e:
            raise GenerationError(
                f"Generation request failed: {e}", transient=is_transient(e),
            ) from e

        if not response.choices or not response.choices[0].message.content:
            raise GenerationError("Generation service returned an empty completion.")

        answer = response.choices[0].message.content.strip()
        if not answer:
            raise GenerationError("Generation service returned a blank completion.")

        logger.info("Answer generated: %d chars, model=%s", len(answer), self.model)
        return answer


def build_generator(settings: Settings) -> OpenAIGenerator:
    return OpenAIGenerator(
        get_openai_client(settings),
        settings.generation_model,
        temperature=settings.generation_temperature,
        max_output_tokens=settings.generation_max_output_tokens,
        split_roles=settings.generation_split_roles,
    )
