"""LLM, embedding and rerank provider integrations."""

from integrations.errors import (
    ProviderError, MalformedResponseError, RateLimitError, AuthenticationError
)
from integrations.llm_provider import (
    LLMProvider, EmbeddingProvider,
    get_llm_provider, get_embedding_provider
)
from integrations.rerank_provider import (
    RerankHit, RerankProvider, CohereRerankProvider, get_rerank_provider
)

__all__ = [
    "ProviderError", "MalformedResponseError", "RateLimitError", "AuthenticationError",
    "LLMProvider", "EmbeddingProvider",
    "get_llm_provider", "get_embedding_provider",
    "RerankHit", "RerankProvider", "CohereRerankProvider", "get_rerank_provider"
]
