"""
Stage 1: candidate retrieval from the paper vector index.
Embeds the query and returns distance-normalized candidates.
"""

import asyncio
from typing import Awaitable, Callable, List, Dict, Any, Optional

from rag.candidates import Candidate, Paper
from rag.embeddings import EmbeddingGenerator
from rag.errors import RetrievalError
from rag.index import IndexHit, VectorIndex
from observability import trace_logger


IndexConnector = Callable[[], Awaitable[VectorIndex]]

# Generic query used to sample the corpus for year lookups
YEAR_RANGE_QUERY = "machine learning research"


class CandidateRetriever:
    """Retrieves candidate paper chunks from the vector index."""

    def __init__(
        self,
        embedding_generator: EmbeddingGenerator,
        connector: IndexConnector,
        default_k: int = 20,
        embedding_timeout: float = 30.0,
        search_timeout: float = 30.0
    ):
        """
        Initialize retriever.

        Args:
            embedding_generator: Query embedder
            connector: Coroutine factory that opens the vector index
            default_k: Candidate width used when search() gets no k
            embedding_timeout: Seconds allowed for the embedding call
            search_timeout: Seconds allowed for the index query
        """
        self.embedding_generator = embedding_generator
        self.default_k = default_k
        self.embedding_timeout = embedding_timeout
        self.search_timeout = search_timeout
        self._connector = connector
        self._index: Optional[VectorIndex] = None
        self._connect_lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._index is not None

    async def connect(self) -> VectorIndex:
        """
        Return the index handle, opening it on first use.

        Concurrent first callers share one connection attempt. A failed
        attempt is not cached, so the next query tries again.

        Raises:
            RetrievalError: the index could not be reached
        """
        if self._index is not None:
            return self._index

        async with self._connect_lock:
            if self._index is None:
                try:
                    self._index = await self._connector()
                except Exception as e:
                    raise RetrievalError(f"Vector index connection failed: {e}") from e
        return self._index

    async def search(
        self,
        query: str,
        k: Optional[int] = None,
        where: Optional[Dict[str, Any]] = None
    ) -> List[Candidate]:
        """
        Retrieve candidates for a query.

        Args:
            query: Search query
            k: Number of results (default: candidate width)
            where: Exact-match metadata filter

        Returns:
            Candidates in index order (nearest first)

        Raises:
            RetrievalError: embedding, connection or index failure
        """
        k = k or self.default_k
        index = await self.connect()

        try:
            vector = await asyncio.wait_for(
                self.embedding_generator.embed_single(query),
                timeout=self.embedding_timeout
            )
            hits = await asyncio.wait_for(
                index.search(vector, k, where),
                timeout=self.search_timeout
            )
            candidates = [self._to_candidate(hit) for hit in hits]
        except asyncio.TimeoutError as e:
            trace_logger.error_occurred(
                error_type="retrieval_timeout",
                error_message="Vector search timed out",
                context={"query": query, "k": k}
            )
            raise RetrievalError("Vector search timed out") from e
        except Exception as e:
            trace_logger.error_occurred(
                error_type="retrieval_error",
                error_message=str(e),
                context={"query": query, "k": k}
            )
            raise RetrievalError(f"Vector search failed: {e}") from e

        trace_logger.retrieval_performed(
            query=query,
            candidates=[c.to_dict() for c in candidates],
            k=k,
            where=where
        )
        return candidates

    async def search_with_filter(
        self,
        query: str,
        where: Dict[str, Any],
        k: Optional[int] = None
    ) -> List[Candidate]:
        """Search restricted to chunks whose metadata matches `where` exactly."""
        return await self.search(query, k=k, where=where)

    async def find_similar_papers(self, paper_title: str, k: int = 5) -> List[Candidate]:
        """
        Find papers related to a given title.

        Searches for the title itself with one extra slot, then drops the
        paper's own chunks by case-insensitive title match.
        """
        results = await self.search(paper_title, k=k + 1)
        own_title = paper_title.lower()
        return [
            c for c in results
            if c.paper.title.lower() != own_title
        ][:k]

    async def papers_by_year_range(
        self,
        start_year: int,
        end_year: int,
        limit: int = 100
    ) -> List[Candidate]:
        """
        Get papers published between start_year and end_year, inclusive.

        The index has no range filter here, so this samples the top `limit`
        chunks for a generic query and filters by year client-side. Papers
        outside that window are missed.
        """
        results = await self.search(YEAR_RANGE_QUERY, k=limit)
        return [
            c for c in results
            if start_year <= c.paper.year <= end_year
        ]

    async def health_check(self) -> bool:
        """Healthy when the index answers a minimal query with at least one hit."""
        try:
            results = await self.search("test", k=1)
            return len(results) > 0
        except RetrievalError as e:
            trace_logger.error_occurred(
                error_type="vector_search_health_check_failed",
                error_message=str(e)
            )
            return False

    @staticmethod
    def normalize_score(distance: float) -> float:
        """
        Convert cosine distance to similarity in [0, 1].

        Clamped because float error can push distances slightly outside [0, 2].
        """
        return max(0.0, min(1.0, 1.0 - distance))

    def _to_candidate(self, hit: IndexHit) -> Candidate:
        return Candidate(
            paper=Paper.from_metadata(hit.metadata),
            score=self.normalize_score(hit.distance),
            matched_text=hit.document
        )
