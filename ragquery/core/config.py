from typing import Literal

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "RAG Query Service"
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 3001
    cors_allow_origins: list[str] = ["*"]

    # Model provider (any OpenAI-compatible API; set base_url for Gemini etc.)
    openai_api_key: SecretStr | None = None
    openai_base_url: str | None = None
    generation_model: str = "gpt-4o-mini"
    generation_temperature: float = 0.7
    generation_max_output_tokens: int = 2048
    # False = provider has no system role, persona is prepended to the user turn
    generation_split_roles: bool = True

    # Embeddings — must match the model/dimension the knowledge base was indexed with
    embedding_provider: Literal["openai", "sentence_transformers"] = "openai"
    embedding_model: str | None = None  # defaults to text-embedding-3-small for openai
    embedding_dimension: int = 768
    embedding_query_prompt: str | None = None  # e.g. "query: " for e5-style models

    # ChromaDB: remote server when chroma_host is set, embedded persistent store otherwise
    chroma_host: str | None = None
    chroma_port: int = 8000
    chroma_ssl: bool = False
    chroma_api_key: SecretStr | None = None
    chroma_persist_directory: str = "./chroma_db"
    collection_name: str = "gutech_knowledge_base"

    # Retrieval policy
    top_k: int = Field(default=5, ge=1, le=50)
    score_threshold_enabled: bool = False
    min_score: float = 0.0

    # Context assembly
    context_separator: str = "\n\n---\n\n"
    include_segment_metadata: bool = True
    max_context_chars: int | None = Field(default=None, gt=0)

    # Prompt
    knowledge_base_name: str = "GU TECH Karachi"
    response_format: Literal["html", "markdown", "plain"] = "html"
    include_citation_block: bool = True

    # Per-stage timeouts (seconds)
    embedding_timeout_seconds: float = 15.0
    retrieval_timeout_seconds: float = 10.0
    generation_timeout_seconds: float = 60.0

    # Bounded retry for transient failures (1 = no retry)
    stage_max_attempts: int = Field(default=1, ge=1, le=3)
    retry_backoff_seconds: float = 0.5

    max_query_chars: int = 2000
    include_diagnostics: bool = True

    @model_validator(mode="after")
    def _resolve_embedding_model(self) -> "Settings":
        if self.embedding_model:
            return self
        if self.embedding_provider == "sentence_transformers":
            raise ValueError(
                "EMBEDDING_MODEL must name a sentence-transformers model "
                "when EMBEDDING_PROVIDER=sentence_transformers"
            )
        self.embedding_model = "text-embedding-3-small"
        return self


settings = Settings()
