import pytest

from integrations import RerankHit
from integrations.errors import AuthenticationError, MalformedResponseError, RateLimitError
from observability import trace_logger
from rag import PrecisionReranker, RerankError, RerankIndexError
from tests.conftest import FakeRerankProvider


@pytest.fixture
def degraded(monkeypatch):
    """Capture rerank_degraded events."""
    events = []

    def record(reason, detail, candidate_count, **kwargs):
        events.append({"reason": reason, "detail": detail, "candidate_count": candidate_count})

    monkeypatch.setattr(trace_logger, "rerank_degraded", record)
    return events


async def test_empty_input_returns_empty(degraded):
    reranker = PrecisionReranker(FakeRerankProvider())
    assert await reranker.rerank("q", []) == []
    assert degraded == []


async def test_disabled_reranker_returns_fallback(candidates, degraded):
    reranker = PrecisionReranker(provider=None, default_top_k=2)

    ranked = await reranker.rerank("q", candidates)

    assert not reranker.is_enabled
    assert [r.paper.title for r in ranked] == ["Sparse Coding", "Kernel Methods"]
    assert [r.rerank_score for r in ranked] == [0.9, 0.8]
    assert [r.original_score for r in ranked] == [0.9, 0.8]
    assert degraded[0]["reason"] == "disabled"


async def test_results_sorted_by_relevance(candidates):
    provider = FakeRerankProvider(hits=[
        RerankHit(index=2, relevance_score=0.42),
        RerankHit(index=3, relevance_score=0.97),
        RerankHit(index=0, relevance_score=0.61),
    ])
    reranker = PrecisionReranker(provider, default_top_k=3)

    ranked = await reranker.rerank("multi-armed bandits", candidates)

    assert [r.paper.title for r in ranked] == ["Gaussian Processes", "Sparse Coding", "Bandits"]
    assert [r.rerank_score for r in ranked] == [0.97, 0.61, 0.42]
    assert [r.original_score for r in ranked] == [0.6, 0.9, 0.7]

    call = provider.calls[0]
    assert call["query"] == "multi-armed bandits"
    assert call["top_n"] == 3
    assert call["documents"][0] == "Sparse Coding\n\nChunk text from Sparse Coding."
    assert len(call["documents"]) == 4


async def test_output_truncated_to_top_k(candidates):
    provider = FakeRerankProvider(hits=[
        RerankHit(index=i, relevance_score=0.5 + i / 10) for i in range(4)
    ])
    ranked = await PrecisionReranker(provider).rerank("q", candidates, top_k=2)

    assert [r.paper.title for r in ranked] == ["Gaussian Processes", "Bandits"]


@pytest.mark.parametrize("bad_index", [4, 17, -1])
async def test_out_of_range_index_is_rejected(candidates, degraded, bad_index):
    provider = FakeRerankProvider(hits=[
        RerankHit(index=0, relevance_score=0.9),
        RerankHit(index=bad_index, relevance_score=0.8),
    ])
    reranker = PrecisionReranker(provider, default_top_k=2)

    with pytest.raises(RerankIndexError):
        await reranker.score("q", candidates, top_k=2)

    ranked = await reranker.rerank("q", candidates)
    assert [r.paper.title for r in ranked] == ["Sparse Coding", "Kernel Methods"]
    assert degraded[-1]["reason"] == "invalid_response"


async def test_duplicate_index_falls_back(candidates, degraded):
    provider = FakeRerankProvider(hits=[
        RerankHit(index=1, relevance_score=0.9),
        RerankHit(index=1, relevance_score=0.8),
    ])
    ranked = await PrecisionReranker(provider, default_top_k=2).rerank("q", candidates)

    assert [r.rerank_score for r in ranked] == [0.9, 0.8]
    assert degraded[0]["reason"] == "invalid_response"


async def test_empty_rerank_result_falls_back(candidates, degraded):
    reranker = PrecisionReranker(FakeRerankProvider(hits=[]), default_top_k=3)

    with pytest.raises(RerankError, match="no results for 4 candidates"):
        await reranker.score("q", candidates, top_k=3)

    ranked = await reranker.rerank("q", candidates)

    assert [r.paper.title for r in ranked] == ["Sparse Coding", "Kernel Methods", "Bandits"]
    assert all(r.rerank_score == r.original_score for r in ranked)
    assert degraded[-1]["reason"] == "invalid_response"


@pytest.mark.parametrize("error,reason", [
    (RateLimitError("429"), "rate_limited"),
    (AuthenticationError("401"), "auth_failed"),
    (MalformedResponseError("bad payload"), "invalid_response"),
    (RuntimeError("connection reset"), "error"),
])
async def test_provider_failures_fall_back_with_reason(candidates, degraded, error, reason):
    reranker = PrecisionReranker(FakeRerankProvider(error=error), default_top_k=3)

    ranked = await reranker.rerank("q", candidates)

    assert [r.paper.title for r in ranked] == ["Sparse Coding", "Kernel Methods", "Bandits"]
    assert all(r.rerank_score == r.original_score for r in ranked)
    assert degraded == [{"reason": reason, "detail": degraded[0]["detail"], "candidate_count": 4}]


async def test_timeout_falls_back(candidates, degraded):
    reranker = PrecisionReranker(FakeRerankProvider(delay=0.5), default_top_k=2, timeout=0.01)

    ranked = await reranker.rerank("q", candidates)

    assert [r.paper.title for r in ranked] == ["Sparse Coding", "Kernel Methods"]
    assert degraded[0]["reason"] == "timeout"


async def test_health_check():
    assert await PrecisionReranker(FakeRerankProvider()).health_check() is True
    assert await PrecisionReranker(None).health_check() is False
    assert await PrecisionReranker(FakeRerankProvider(error=AuthenticationError("401"))).health_check() is False
