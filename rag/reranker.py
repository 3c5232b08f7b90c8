"""
Stage 2: precision reranking of retrieved candidates.
Re-scores candidates with a cross-encoder relevance model. Optional: any
failure degrades to vector search ordering instead of failing the query.
"""

import asyncio
from typing import List, Optional

import httpx

from rag.candidates import Candidate, RankedCandidate
from rag.errors import RerankError, RerankIndexError
from integrations import RerankProvider
from integrations.errors import (
    AuthenticationError, MalformedResponseError, RateLimitError
)
from observability import trace_logger


class PrecisionReranker:
    """Re-ranks candidates with an external relevance scorer."""

    def __init__(
        self,
        provider: Optional[RerankProvider] = None,
        default_top_k: int = 5,
        timeout: float = 30.0
    ):
        """
        Initialize reranker.

        Args:
            provider: Relevance scorer; None disables reranking
            default_top_k: Final width used when rerank() gets no top_k
            timeout: Seconds allowed for the scoring call
        """
        self.provider = provider
        self.default_top_k = default_top_k
        self.timeout = timeout

    @property
    def is_enabled(self) -> bool:
        """Whether a relevance scorer is configured."""
        return self.provider is not None

    async def rerank(
        self,
        query: str,
        candidates: List[Candidate],
        top_k: Optional[int] = None
    ) -> List[RankedCandidate]:
        """
        Re-rank candidates for a query.

        Never raises for scorer failures: rate limits, auth failures,
        timeouts and malformed responses all return the fallback projection.

        Args:
            query: User query
            candidates: Stage 1 candidates, nearest first
            top_k: Number of results to keep (default: final width)

        Returns:
            Ranked candidates, best first
        """
        top_k = top_k or self.default_top_k

        if not candidates:
            return []

        if not self.is_enabled:
            trace_logger.rerank_degraded(
                reason="disabled",
                detail="Reranker not configured, keeping vector search order",
                candidate_count=len(candidates)
            )
            return self.fallback(candidates, top_k)

        try:
            return await self.score(query, candidates, top_k)
        except RateLimitError as e:
            reason, detail = "rate_limited", f"Rerank rate limit reached, falling back to vector search scores: {e}"
        except AuthenticationError as e:
            reason, detail = "auth_failed", f"Rerank authentication failed, check COHERE_API_KEY: {e}"
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            reason, detail = "timeout", f"Rerank call timed out after {self.timeout}s: {e}"
        except (MalformedResponseError, RerankError) as e:
            reason, detail = "invalid_response", f"Rerank response rejected: {e}"
        except Exception as e:
            reason, detail = "error", f"Rerank call failed: {e}"

        trace_logger.rerank_degraded(
            reason=reason,
            detail=detail,
            candidate_count=len(candidates)
        )
        return self.fallback(candidates, top_k)

    async def score(
        self,
        query: str,
        candidates: List[Candidate],
        top_k: int
    ) -> List[RankedCandidate]:
        """
        Score candidates with the external reranker, without fallback.

        Raises:
            RerankIndexError: a result points outside the candidate list
            RerankError: a candidate index is returned more than once, or
                no result comes back for a non-empty candidate list
        """
        # Paper title + matched chunk gives the scorer the most signal
        documents = [
            f"{c.paper.title}\n\n{c.matched_text}"
            for c in candidates
        ]

        hits = await asyncio.wait_for(
            self.provider.rerank(query, documents, top_n=top_k),
            timeout=self.timeout
        )
        if candidates and not hits:
            raise RerankError(f"Rerank returned no results for {len(candidates)} candidates")

        seen = set()
        ranked = []
        for hit in hits:
            if not 0 <= hit.index < len(candidates):
                raise RerankIndexError(hit.index, len(candidates))
            if hit.index in seen:
                raise RerankError(f"Duplicate rerank result index {hit.index}")
            seen.add(hit.index)
            ranked.append(RankedCandidate.scored(candidates[hit.index], hit.relevance_score))

        # Provider ordering is not trusted
        ranked.sort(key=lambda r: r.rerank_score, reverse=True)
        ranked = ranked[:top_k]

        if ranked:
            trace_logger.rerank_performed(
                query=query,
                input_count=len(candidates),
                output_count=len(ranked),
                avg_original_score=sum(r.original_score for r in ranked) / len(ranked),
                avg_rerank_score=sum(r.rerank_score for r in ranked) / len(ranked)
            )
        return ranked

    @staticmethod
    def fallback(candidates: List[Candidate], top_k: int) -> List[RankedCandidate]:
        """First top_k candidates in input order, relevance = vector score."""
        return [RankedCandidate.unranked(c) for c in candidates[:top_k]]

    async def health_check(self) -> bool:
        """Verify the scorer answers a minimal request."""
        if not self.is_enabled:
            return False

        try:
            await asyncio.wait_for(
                self.provider.rerank("test", ["test document"], top_n=1),
                timeout=self.timeout
            )
            return True
        except Exception as e:
            trace_logger.error_occurred(
                error_type="reranker_health_check_failed",
                error_message=str(e)
            )
            return False
