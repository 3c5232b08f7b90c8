"""
LangGraph orchestrator for the two-stage RAG pipeline:
vector search -> reranking (optional) -> answer generation.
"""

import asyncio
import time
from typing import Any, Awaitable, Dict, List, Optional

from langgraph.graph import StateGraph, END

from config import Settings, settings as default_settings
from integrations import get_embedding_provider, get_llm_provider, get_rerank_provider
from models.schemas import (
    BatchResponse, ComparisonImprovement, ComparisonResponse,
    HealthStatus, QueryMetadata, QueryResponse
)
from observability import trace_logger
from rag.embeddings import EmbeddingGenerator
from rag.errors import BatchTooLargeError, PipelineError
from rag.index import ChromaVectorIndex
from rag.reranker import PrecisionReranker
from rag.retriever import CandidateRetriever
from rag.state import PipelineState
from rag.synthesizer import AnswerSynthesizer, NO_RESULTS_ANSWER


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


async def _run_all(awaitables: List[Awaitable[Any]]) -> List[Any]:
    """
    Run awaitables concurrently and return results in submission order.

    If any fails, the others are cancelled and the first error propagates.
    """
    tasks = [asyncio.ensure_future(a) for a in awaitables]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def route_after_retrieval(state: PipelineState) -> str:
    """Conditional edge: early exit, rerank, or straight to generation."""
    if not state["candidates"]:
        return "no_candidates"
    if state["with_reranking"]:
        return "rerank"
    return "skip_rerank"


class RAGPipeline:
    """
    Orchestrates one query through the RAG stages using LangGraph.

    Graph structure:
    1. retrieve -> [no_candidates OR rerank OR skip_rerank]
    2. no_candidates -> END
    3. rerank -> synthesize
    4. skip_rerank -> synthesize
    5. synthesize -> END

    The compiled graph is shared; every query invokes it with its own
    state dict, so concurrent queries share no mutable state.
    """

    def __init__(
        self,
        retriever: CandidateRetriever,
        reranker: PrecisionReranker,
        synthesizer: AnswerSynthesizer,
        candidates_k: int = 20,
        final_k: int = 5,
        enable_reranking: bool = True,
        max_batch_queries: int = 10
    ):
        self.retriever = retriever
        self.reranker = reranker
        self.synthesizer = synthesizer
        self.candidates_k = candidates_k
        self.final_k = final_k
        self.enable_reranking = enable_reranking
        self.max_batch_queries = max_batch_queries

        self.graph = self._build_graph()
        self.compiled_graph = self.graph.compile()

        trace_logger.info(
            "RAGPipeline initialized",
            candidates_k=candidates_k,
            final_k=final_k,
            reranking="ENABLED" if reranker.is_enabled else "DISABLED"
        )

    @classmethod
    def from_settings(cls, settings: Settings = default_settings) -> "RAGPipeline":
        """Construct every stage once from configuration."""
        retriever = CandidateRetriever(
            embedding_generator=EmbeddingGenerator(get_embedding_provider(settings)),
            connector=lambda: ChromaVectorIndex.connect(settings),
            default_k=settings.vector_search_k,
            embedding_timeout=settings.embedding_timeout_seconds,
            search_timeout=settings.vector_search_timeout_seconds
        )
        reranker = PrecisionReranker(
            provider=get_rerank_provider(settings),
            default_top_k=settings.rerank_top_k,
            timeout=settings.rerank_timeout_seconds
        )
        synthesizer = AnswerSynthesizer(
            llm_provider=get_llm_provider(settings),
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            timeout=settings.generation_timeout_seconds,
            context_excerpt_chars=settings.context_excerpt_chars,
            source_excerpt_chars=settings.source_excerpt_chars
        )
        return cls(
            retriever=retriever,
            reranker=reranker,
            synthesizer=synthesizer,
            candidates_k=settings.vector_search_k,
            final_k=settings.rerank_top_k,
            enable_reranking=settings.enable_reranking,
            max_batch_queries=settings.max_batch_queries
        )

    def _build_graph(self) -> StateGraph:
        """Build the LangGraph state machine."""
        workflow = StateGraph(PipelineState)

        workflow.add_node("retrieve", self._retrieve)
        workflow.add_node("no_candidates", self._no_candidates)
        workflow.add_node("rerank", self._rerank)
        workflow.add_node("skip_rerank", self._skip_rerank)
        workflow.add_node("synthesize", self._synthesize)

        workflow.set_entry_point("retrieve")

        workflow.add_conditional_edges(
            "retrieve",
            route_after_retrieval,
            {
                "no_candidates": "no_candidates",
                "rerank": "rerank",
                "skip_rerank": "skip_rerank"
            }
        )

        workflow.add_edge("no_candidates", END)
        workflow.add_edge("rerank", "synthesize")
        workflow.add_edge("skip_rerank", "synthesize")
        workflow.add_edge("synthesize", END)

        return workflow

    async def _retrieve(self, state: PipelineState) -> Dict[str, Any]:
        """Node 1: vector similarity search."""
        start = time.perf_counter()
        candidates = await self.retriever.search(state["query"], k=state["candidates_k"])
        elapsed = _elapsed_ms(start)

        trace_logger.stage_timed("retrieval", elapsed, candidate_count=len(candidates))
        return {"candidates": candidates, "retrieval_time_ms": elapsed}

    async def _no_candidates(self, state: PipelineState) -> Dict[str, Any]:
        """Node 2a: nothing retrieved, answer with the canned response."""
        trace_logger.warning("No candidates found in vector search", query=state["query"])
        return {"ranked": [], "answer": NO_RESULTS_ANSWER, "sources": []}

    async def _rerank(self, state: PipelineState) -> Dict[str, Any]:
        """
        Node 2b: precision reranking.

        The reranker handles its own fallback. Rerank time is recorded only
        when a scoring call was actually attempted.
        """
        start = time.perf_counter()
        ranked = await self.reranker.rerank(
            state["query"], state["candidates"], top_k=state["final_k"]
        )
        elapsed = _elapsed_ms(start)

        update: Dict[str, Any] = {"ranked": ranked}
        if self.reranker.is_enabled:
            update["rerank_time_ms"] = elapsed
            trace_logger.stage_timed("rerank", elapsed, final_count=len(ranked))
        return update

    async def _skip_rerank(self, state: PipelineState) -> Dict[str, Any]:
        """Node 2c: reranking turned off for this query."""
        trace_logger.info("Stage 2 skipped: reranking disabled for this query")
        return {"ranked": PrecisionReranker.fallback(state["candidates"], state["final_k"])}

    async def _synthesize(self, state: PipelineState) -> Dict[str, Any]:
        """Node 3: answer generation with citations."""
        start = time.perf_counter()
        generated = await self.synthesizer.generate(state["query"], state["ranked"])
        elapsed = _elapsed_ms(start)

        trace_logger.stage_timed("generation", elapsed, model=generated.model_used)
        return {
            "answer": generated.answer,
            "sources": generated.sources,
            "model_used": generated.model_used,
            "generation_time_ms": elapsed
        }

    async def query(
        self,
        query: str,
        k: Optional[int] = None,
        candidates_k: Optional[int] = None,
        with_reranking: Optional[bool] = None,
        trace_id: Optional[str] = None
    ) -> QueryResponse:
        """
        Run the pipeline for one question.

        Args:
            query: Natural language question
            k: Final number of sources (default: final width)
            candidates_k: Stage 1 width (default: candidate width)
            with_reranking: Run Stage 2 (default: configured)
            trace_id: Optional trace ID for logging

        Returns:
            QueryResponse with answer, sources and timing metadata

        Raises:
            PipelineError: retrieval or generation failed
        """
        start = time.perf_counter()

        initial_state: PipelineState = {
            "query": query,
            "candidates_k": candidates_k or self.candidates_k,
            "final_k": k or self.final_k,
            "with_reranking": self.enable_reranking if with_reranking is None else with_reranking,
            "candidates": [],
            "retrieval_time_ms": 0.0,
            "ranked": [],
            "rerank_time_ms": None,
            "answer": "",
            "sources": [],
            "model_used": self.synthesizer.model_name,
            "generation_time_ms": 0.0
        }

        with trace_logger.trace(trace_id):
            try:
                final_state = await self.compiled_graph.ainvoke(initial_state)
            except PipelineError as e:
                trace_logger.error_occurred(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    context={"query": query}
                )
                raise
            except Exception as e:
                trace_logger.error_occurred(
                    error_type="pipeline_orchestration_error",
                    error_message=str(e),
                    context={"query": query}
                )
                raise PipelineError(f"RAG pipeline failed: {e}") from e

            metadata = QueryMetadata(
                retrieval_time_ms=final_state["retrieval_time_ms"],
                rerank_time_ms=final_state.get("rerank_time_ms"),
                generation_time_ms=final_state["generation_time_ms"],
                total_time_ms=_elapsed_ms(start),
                candidate_count=len(final_state["candidates"]),
                final_count=len(final_state["ranked"]),
                model_used=final_state["model_used"]
            )

            trace_logger.pipeline_completed(
                query=query,
                total_time_ms=metadata.total_time_ms,
                candidate_count=metadata.candidate_count,
                final_count=metadata.final_count,
                reranked=metadata.rerank_time_ms is not None
            )

        return QueryResponse(
            answer=final_state["answer"],
            sources=final_state["sources"],
            metadata=metadata
        )

    async def query_with_comparison(self, query: str) -> ComparisonResponse:
        """
        Run the same query with and without reranking, concurrently.

        The two runs are independent. If either fails the whole
        comparison fails.
        """
        trace_logger.info("Running comparison: with vs without reranking", query=query)

        with_reranking, without_reranking = await _run_all([
            self.query(query, with_reranking=True),
            self.query(query, with_reranking=False)
        ])

        top_with = with_reranking.sources[0].title if with_reranking.sources else None
        top_without = without_reranking.sources[0].title if without_reranking.sources else None

        improvement = ComparisonImprovement(
            latency_diff=with_reranking.metadata.total_time_ms - without_reranking.metadata.total_time_ms,
            sources_changed=top_with != top_without,
            avg_score_improvement=(
                _mean([s.relevance_score for s in with_reranking.sources])
                - _mean([s.relevance_score for s in without_reranking.sources])
            )
        )

        trace_logger.info(
            "Comparison complete",
            latency_diff_ms=round(improvement.latency_diff, 2),
            sources_changed=improvement.sources_changed,
            avg_score_improvement=round(improvement.avg_score_improvement, 4)
        )

        return ComparisonResponse(
            with_reranking=with_reranking,
            without_reranking=without_reranking,
            improvement=improvement
        )

    async def query_batch(
        self,
        queries: List[str],
        k: Optional[int] = None,
        with_reranking: Optional[bool] = None
    ) -> BatchResponse:
        """
        Run independent queries concurrently.

        total_time_ms is the sum of each response's own total, i.e. the
        compute spent; wall_time_ms is how long the caller waited, which is
        bounded by the slowest query.

        Raises:
            BatchTooLargeError: more than max_batch_queries queries
        """
        if len(queries) > self.max_batch_queries:
            raise BatchTooLargeError(len(queries), self.max_batch_queries)

        start = time.perf_counter()
        results = await _run_all([
            self.query(q, k=k, with_reranking=with_reranking)
            for q in queries
        ])

        return BatchResponse(
            queries=len(queries),
            results=results,
            total_time_ms=sum(r.metadata.total_time_ms for r in results),
            wall_time_ms=_elapsed_ms(start)
        )

    async def health_check(self) -> HealthStatus:
        """
        Check pipeline components.

        Vector search is load-bearing; the reranker is informational only.
        """
        vector_search_ok, reranker_ok = await asyncio.gather(
            self.retriever.health_check(),
            self.reranker.health_check()
        )

        trace_logger.info(
            "Health check results",
            vector_search=vector_search_ok,
            reranker=reranker_ok
        )

        return HealthStatus(
            vector_search=vector_search_ok,
            reranker=reranker_ok,
            overall=vector_search_ok
        )
