"""
Query embedding for vector search.
"""

from typing import List

from integrations import EmbeddingProvider
from integrations.errors import MalformedResponseError
from observability import trace_logger


class EmbeddingGenerator:
    """Turns query text into vectors using the configured provider."""

    def __init__(self, provider: EmbeddingProvider):
        self.provider = provider

    async def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for texts.

        Args:
            texts: List of texts to embed

        Returns:
            List of embeddings, aligned with texts
        """
        if not texts:
            return []

        try:
            embeddings = await self.provider.embed(texts)
        except Exception as e:
            trace_logger.error_occurred(
                error_type="embedding_generation_failed",
                error_message=str(e),
                context={"num_texts": len(texts)}
            )
            raise

        if len(embeddings) != len(texts):
            raise MalformedResponseError(
                f"Expected {len(texts)} embeddings, got {len(embeddings)}"
            )
        for embedding in embeddings:
            if not embedding:
                raise MalformedResponseError("Provider returned an empty embedding")

        return embeddings

    async def embed_single(self, text: str) -> List[float]:
        """Embed a single text."""
        return (await self.embed([text]))[0]
