"""
Relevance reranking provider backed by Cohere's rerank endpoint.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import cohere
from cohere.core.api_error import ApiError

from config import Settings, settings as default_settings
from integrations.errors import (
    AuthenticationError, MalformedResponseError, RateLimitError
)


@dataclass(frozen=True)
class RerankHit:
    """One scored document, addressed by its position in the submitted batch."""

    index: int
    relevance_score: float


class RerankProvider(ABC):
    """Abstract base class for relevance rerankers."""

    model_name: str

    @abstractmethod
    async def rerank(
        self,
        query: str,
        documents: List[str],
        top_n: int
    ) -> List[RerankHit]:
        """Score documents against query. Result order is not guaranteed."""
        pass


class CohereRerankProvider(RerankProvider):
    """Cohere v2 rerank API."""

    def __init__(self, settings: Settings = default_settings):
        if not settings.cohere_api_key:
            raise ValueError("COHERE_API_KEY not configured")
        self.client = cohere.AsyncClientV2(
            api_key=settings.cohere_api_key,
            timeout=settings.rerank_timeout_seconds
        )
        self.model_name = settings.rerank_model

    async def rerank(
        self,
        query: str,
        documents: List[str],
        top_n: int
    ) -> List[RerankHit]:
        try:
            response = await self.client.rerank(
                model=self.model_name,
                query=query,
                documents=documents,
                top_n=top_n
            )
        except ApiError as e:
            if e.status_code == 429:
                raise RateLimitError(f"Cohere rate limit reached: {e.body}") from e
            if e.status_code in (401, 403):
                raise AuthenticationError(f"Cohere rejected the API key: {e.body}") from e
            raise

        return [self._parse_hit(result) for result in (response.results or [])]

    @staticmethod
    def _parse_hit(result) -> RerankHit:
        index = getattr(result, "index", None)
        score = getattr(result, "relevance_score", None)

        if not isinstance(index, int) or isinstance(index, bool):
            raise MalformedResponseError(f"Rerank result has no integer index: {result!r}")
        if not isinstance(score, (int, float)) or isinstance(score, bool) or math.isnan(score):
            raise MalformedResponseError(f"Rerank result has no numeric score: {result!r}")
        if not 0.0 <= score <= 1.0:
            raise MalformedResponseError(f"Rerank score {score} outside [0, 1]")

        return RerankHit(index=index, relevance_score=float(score))


def get_rerank_provider(settings: Settings = default_settings) -> Optional[RerankProvider]:
    """Return the configured reranker, or None when no key is set."""
    if not settings.cohere_enabled:
        return None
    return CohereRerankProvider(settings)
