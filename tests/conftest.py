"""Shared fixtures: in-memory index and fake providers."""

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from integrations import EmbeddingProvider, LLMProvider, RerankHit, RerankProvider
from rag import (
    AnswerSynthesizer, Candidate, CandidateRetriever, EmbeddingGenerator,
    IndexHit, Paper, PrecisionReranker, RAGPipeline, VectorIndex
)


def make_metadata(title: str, year: int = 2015, **overrides) -> Dict[str, Any]:
    metadata = {
        "title": title,
        "authors": "Ada Lovelace, Alan Turing",
        "year": year,
        "pages": 30,
        "link": f"https://jmlr.org/papers/{title.replace(' ', '-').lower()}",
        "code": ""
    }
    metadata.update(overrides)
    return metadata


def make_hit(title: str, distance: float, text: str = None, year: int = 2015) -> IndexHit:
    return IndexHit(
        document=text if text is not None else f"Chunk text from {title}.",
        metadata=make_metadata(title, year),
        distance=distance
    )


def make_candidate(title: str, score: float, text: str = None, year: int = 2015) -> Candidate:
    return Candidate(
        paper=Paper.from_metadata(make_metadata(title, year)),
        score=score,
        matched_text=text if text is not None else f"Chunk text from {title}."
    )


class FakeIndex(VectorIndex):
    """Vector index over a fixed, pre-ordered hit list."""

    def __init__(self, hits: Optional[List[IndexHit]] = None, error: Exception = None):
        self.hits = hits or []
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def search(self, vector, k, where=None):
        self.calls.append({"vector": vector, "k": k, "where": where})
        if self.error:
            raise self.error
        return self.hits[:k]

    async def count(self):
        return len(self.hits)


class FakeEmbeddingProvider(EmbeddingProvider):

    def __init__(self, delay: float = 0.0, error: Exception = None):
        self.delay = delay
        self.error = error
        self.calls = 0

    async def embed(self, texts):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return [[0.1, 0.2, 0.3] for _ in texts]


class FakeRerankProvider(RerankProvider):
    """Returns scripted hits, or raises, and records every request."""

    model_name = "fake-rerank"

    def __init__(self, hits: List[RerankHit] = None, error: Exception = None, delay: float = 0.0):
        self.hits = hits
        self.error = error
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def rerank(self, query, documents, top_n):
        self.calls.append({"query": query, "documents": documents, "top_n": top_n})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        if self.hits is not None:
            return self.hits
        # Default: reverse the input order with descending scores
        count = min(top_n, len(documents))
        return [
            RerankHit(index=len(documents) - 1 - i, relevance_score=0.99 - i * 0.01)
            for i in range(count)
        ]


class FakeLLM(LLMProvider):
    """Echoes the question line of the prompt back as the answer."""

    model_name = "fake-llm"

    def __init__(self, error: Exception = None, delay: float = 0.0):
        self.error = error
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, prompt, system_prompt=None, temperature=0.7, max_tokens=2000):
        self.calls.append({
            "prompt": prompt,
            "system_prompt": system_prompt,
            "temperature": temperature,
            "max_tokens": max_tokens
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return f"Answer to {prompt.splitlines()[0]} [1]"


def build_retriever(index: VectorIndex, embedder: EmbeddingProvider = None, **kwargs) -> CandidateRetriever:
    connections = []

    async def connector():
        connections.append(index)
        return index

    retriever = CandidateRetriever(
        embedding_generator=EmbeddingGenerator(embedder or FakeEmbeddingProvider()),
        connector=connector,
        **kwargs
    )
    retriever.connections = connections
    return retriever


def build_pipeline(
    hits: List[IndexHit],
    rerank_provider: Optional[RerankProvider] = None,
    llm: Optional[LLMProvider] = None,
    index: Optional[VectorIndex] = None,
    rerank_timeout: float = 5.0,
    **kwargs
) -> RAGPipeline:
    index = index or FakeIndex(hits)
    return RAGPipeline(
        retriever=build_retriever(index),
        reranker=PrecisionReranker(rerank_provider, default_top_k=5, timeout=rerank_timeout),
        synthesizer=AnswerSynthesizer(llm or FakeLLM()),
        **kwargs
    )


@pytest.fixture
def twenty_hits() -> List[IndexHit]:
    """Twenty hits with similarity scores 0.91 down to 0.40."""
    scores = [round(0.91 - i * (0.51 / 19), 4) for i in range(20)]
    return [make_hit(f"Paper {i}", 1.0 - score) for i, score in enumerate(scores)]


@pytest.fixture
def candidates() -> List[Candidate]:
    return [
        make_candidate("Sparse Coding", 0.9),
        make_candidate("Kernel Methods", 0.8),
        make_candidate("Bandits", 0.7),
        make_candidate("Gaussian Processes", 0.6),
    ]
