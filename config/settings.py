"""
Configuration management using pydantic-settings.
Loads environment variables and provides typed settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Literal


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # LLM Provider Configuration
    llm_provider: Literal["openai", "anthropic", "google"] = Field(
        default="openai",
        description="LLM provider used for answer generation"
    )
    llm_model: str = Field(
        default="gpt-4o-mini",
        description="Model name/ID"
    )
    llm_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="LLM temperature"
    )
    llm_max_tokens: int = Field(
        default=2000,
        gt=0,
        description="Maximum tokens in a generated answer"
    )

    # API Keys
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None
    google_api_key: str | None = None
    cohere_api_key: str | None = None

    # Embeddings
    embedding_provider: Literal["openai"] = Field(
        default="openai",
        description="Embedding provider"
    )
    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="Embedding model name"
    )

    # Vector index
    chroma_host: str = Field(default="localhost", description="ChromaDB server host")
    chroma_port: int = Field(default=8000, description="ChromaDB server port")
    chroma_collection_name: str = Field(
        default="jmlr_papers",
        description="Collection holding the paper chunks"
    )

    # RAG Configuration
    vector_search_k: int = Field(
        default=20,
        gt=0,
        description="Candidate width: chunks requested from vector search"
    )
    rerank_top_k: int = Field(
        default=5,
        gt=0,
        description="Final width: sources kept after reranking"
    )
    enable_reranking: bool = Field(
        default=True,
        description="Default for withReranking when the caller does not set it"
    )
    rerank_model: str = Field(
        default="rerank-english-v3.0",
        description="Cohere rerank model"
    )
    max_batch_queries: int = Field(
        default=10,
        gt=0,
        description="Maximum number of queries accepted in one batch"
    )
    context_excerpt_chars: int = Field(
        default=500,
        gt=0,
        description="Characters of matched text placed in the LLM context per source"
    )
    source_excerpt_chars: int = Field(
        default=200,
        gt=0,
        description="Maximum length of the excerpt returned with each source"
    )

    # Timeouts (seconds)
    embedding_timeout_seconds: float = Field(default=30.0, gt=0)
    vector_search_timeout_seconds: float = Field(default=30.0, gt=0)
    rerank_timeout_seconds: float = Field(default=30.0, gt=0)
    generation_timeout_seconds: float = Field(default=60.0, gt=0)

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=3000, description="API port")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Allowed CORS origins"
    )

    # Observability
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )
    log_file: str | None = Field(
        default=None,
        description="Optional JSON log file path"
    )
    enable_trace_logging: bool = Field(
        default=True,
        description="Enable detailed per-stage trace logging"
    )

    @property
    def cohere_enabled(self) -> bool:
        """Whether a Cohere key is configured for Stage 2 reranking."""
        return bool(self.cohere_api_key)

    def validate_api_keys(self) -> None:
        """Validate that required API keys are present based on provider."""
        if self.llm_provider == "openai" and not self.openai_api_key:
            raise ValueError("OPENAI_API_KEY required when LLM_PROVIDER=openai")
        elif self.llm_provider == "anthropic" and not self.anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY required when LLM_PROVIDER=anthropic")
        elif self.llm_provider == "google" and not self.google_api_key:
            raise ValueError("GOOGLE_API_KEY required when LLM_PROVIDER=google")

        if self.embedding_provider == "openai" and not self.openai_api_key:
            raise ValueError("OPENAI_API_KEY required when EMBEDDING_PROVIDER=openai")


# Global settings instance
settings = Settings()
