from unittest.mock import AsyncMock, MagicMock

import pytest

from integrations.errors import MalformedResponseError
from rag.index import ChromaVectorIndex


def chroma_result(documents, metadatas, distances):
    return {
        "ids": [[f"chunk-{i}" for i in range(len(documents))]],
        "documents": [documents],
        "metadatas": [metadatas],
        "distances": [distances],
    }


def test_parse_results_builds_hits_in_order():
    hits = ChromaVectorIndex._parse_results(chroma_result(
        ["first", "second"],
        [{"title": "A", "year": 2010}, {"title": "B", "year": 2011}],
        [0.1, 0.4],
    ))

    assert [h.document for h in hits] == ["first", "second"]
    assert hits[1].metadata["title"] == "B"
    assert hits[0].distance == pytest.approx(0.1)


def test_parse_results_empty_payload():
    assert ChromaVectorIndex._parse_results({"ids": []}) == []
    assert ChromaVectorIndex._parse_results({}) == []


def test_parse_results_rejects_missing_columns():
    with pytest.raises(MalformedResponseError, match="missing columns"):
        ChromaVectorIndex._parse_results({"ids": [["chunk-0"]], "documents": [["text"]]})


def test_parse_results_rejects_mismatched_columns():
    result = chroma_result(["a", "b"], [{"title": "A"}], [0.1, 0.2])
    with pytest.raises(MalformedResponseError, match="mismatched"):
        ChromaVectorIndex._parse_results(result)


def test_parse_results_rejects_non_numeric_distance():
    result = chroma_result(["a"], [{"title": "A"}], ["near"])
    with pytest.raises(MalformedResponseError, match="Non-numeric"):
        ChromaVectorIndex._parse_results(result)


async def test_search_skips_query_on_empty_collection():
    collection = MagicMock()
    collection.count = AsyncMock(return_value=0)
    collection.query = AsyncMock()
    index = ChromaVectorIndex(client=None, collection=collection)

    assert await index.search([0.1, 0.2], k=20) == []
    collection.query.assert_not_called()


async def test_search_caps_results_at_collection_size():
    collection = MagicMock()
    collection.count = AsyncMock(return_value=3)
    collection.query = AsyncMock(return_value=chroma_result(
        ["a", "b", "c"],
        [{"title": "A"}, {"title": "B"}, {"title": "C"}],
        [0.1, 0.2, 0.3],
    ))
    index = ChromaVectorIndex(client=None, collection=collection)

    hits = await index.search([0.1, 0.2], k=20, where={"year": 2012})

    assert len(hits) == 3
    kwargs = collection.query.call_args.kwargs
    assert kwargs["n_results"] == 3
    assert kwargs["where"] == {"year": 2012}
    assert kwargs["query_embeddings"] == [[0.1, 0.2]]
