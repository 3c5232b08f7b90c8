import asyncio

import pytest

from rag import EmbeddingGenerator, RetrievalError
from rag.index import IndexHit
from rag.retriever import CandidateRetriever, YEAR_RANGE_QUERY
from tests.conftest import FakeEmbeddingProvider, FakeIndex, build_retriever, make_hit, make_metadata


@pytest.mark.parametrize("distance,expected", [
    (0.0, 1.0),
    (0.25, 0.75),
    (1.0, 0.0),
    (-0.05, 1.0),
    (2.02, 0.0),
])
def test_normalize_score_is_clamped(distance, expected):
    assert CandidateRetriever.normalize_score(distance) == pytest.approx(expected)


async def test_search_returns_candidates_in_index_order():
    index = FakeIndex([
        make_hit("Sparse Coding", 0.1, text="Dictionary learning."),
        make_hit("Kernel Methods", 0.3),
    ])
    retriever = build_retriever(index)

    candidates = await retriever.search("sparse representations", k=2)

    assert [c.paper.title for c in candidates] == ["Sparse Coding", "Kernel Methods"]
    assert candidates[0].score == pytest.approx(0.9)
    assert candidates[0].matched_text == "Dictionary learning."
    assert candidates[0].paper.year == 2015
    assert candidates[0].paper.pages == 30
    assert index.calls[0]["k"] == 2


async def test_search_uses_default_width():
    index = FakeIndex([make_hit(f"Paper {i}", 0.1) for i in range(30)])
    retriever = build_retriever(index, default_k=20)

    candidates = await retriever.search("anything")

    assert len(candidates) == 20
    assert index.calls[0]["k"] == 20


async def test_search_on_empty_index_returns_nothing():
    retriever = build_retriever(FakeIndex([]))
    assert await retriever.search("anything") == []


async def test_connects_lazily_and_once():
    retriever = build_retriever(FakeIndex([make_hit("A", 0.1)]))
    assert not retriever.connected

    await asyncio.gather(*(retriever.search("q") for _ in range(5)))
    await retriever.search("q")

    assert retriever.connected
    assert len(retriever.connections) == 1


async def test_failed_connection_is_retried_on_next_query():
    index = FakeIndex([make_hit("A", 0.1)])
    attempts = []

    async def flaky_connector():
        attempts.append(1)
        if len(attempts) == 1:
            raise ConnectionError("chroma unreachable")
        return index

    retriever = CandidateRetriever(EmbeddingGenerator(FakeEmbeddingProvider()), flaky_connector)

    with pytest.raises(RetrievalError, match="connection failed"):
        await retriever.search("q")
    assert not retriever.connected

    candidates = await retriever.search("q")
    assert len(candidates) == 1
    assert len(attempts) == 2


async def test_embedding_failure_raises_retrieval_error():
    retriever = build_retriever(
        FakeIndex([make_hit("A", 0.1)]),
        embedder=FakeEmbeddingProvider(error=RuntimeError("openai down"))
    )
    with pytest.raises(RetrievalError, match="openai down"):
        await retriever.search("q")


async def test_embedding_timeout_raises_retrieval_error():
    retriever = build_retriever(
        FakeIndex([make_hit("A", 0.1)]),
        embedder=FakeEmbeddingProvider(delay=0.5),
        embedding_timeout=0.01
    )
    with pytest.raises(RetrievalError, match="timed out"):
        await retriever.search("q")


async def test_index_failure_raises_retrieval_error():
    retriever = build_retriever(FakeIndex(error=RuntimeError("query failed")))
    with pytest.raises(RetrievalError, match="query failed"):
        await retriever.search("q")


async def test_malformed_metadata_raises_retrieval_error():
    metadata = make_metadata("Untitled")
    metadata["title"] = None
    bad = IndexHit(document="text", metadata=metadata, distance=0.1)
    retriever = build_retriever(FakeIndex([bad]))
    with pytest.raises(RetrievalError, match="no title"):
        await retriever.search("q")


async def test_search_with_filter_passes_where_clause():
    index = FakeIndex([make_hit("A", 0.1)])
    retriever = build_retriever(index)

    await retriever.search_with_filter("q", where={"year": 2010}, k=3)

    assert index.calls[0]["where"] == {"year": 2010}
    assert index.calls[0]["k"] == 3


async def test_find_similar_papers_excludes_the_paper_itself():
    index = FakeIndex([
        make_hit("Random Forests", 0.0),
        make_hit("Boosting", 0.2),
        make_hit("Bagging", 0.3),
        make_hit("Decision Trees", 0.4),
    ])
    retriever = build_retriever(index)

    similar = await retriever.find_similar_papers("random forests", k=2)

    assert index.calls[0]["k"] == 3
    assert [c.paper.title for c in similar] == ["Boosting", "Bagging"]


async def test_papers_by_year_range_filters_inclusively():
    index = FakeIndex([
        make_hit("Old", 0.1, year=2001),
        make_hit("Start", 0.2, year=2005),
        make_hit("Middle", 0.3, year=2007),
        make_hit("End", 0.4, year=2010),
        make_hit("New", 0.5, year=2015),
    ])
    retriever = build_retriever(index)

    papers = await retriever.papers_by_year_range(2005, 2010, limit=50)

    assert [c.paper.title for c in papers] == ["Start", "Middle", "End"]
    assert index.calls[0]["k"] == 50
    assert index.calls[0]["where"] is None
    assert YEAR_RANGE_QUERY == "machine learning research"


async def test_health_check():
    assert await build_retriever(FakeIndex([make_hit("A", 0.1)])).health_check() is True
    assert await build_retriever(FakeIndex([])).health_check() is False
    assert await build_retriever(FakeIndex(error=RuntimeError("down"))).health_check() is False
