"""RAG pipeline components."""

from rag.candidates import Paper, Candidate, RankedCandidate
from rag.errors import (
    PipelineError, RetrievalError, SynthesisError, BatchTooLargeError,
    RerankError, RerankIndexError
)
from rag.embeddings import EmbeddingGenerator
from rag.index import IndexHit, VectorIndex, ChromaVectorIndex
from rag.retriever import CandidateRetriever
from rag.reranker import PrecisionReranker
from rag.synthesizer import AnswerSynthesizer, GeneratedAnswer, NO_RESULTS_ANSWER
from rag.pipeline import RAGPipeline

__all__ = [
    "Paper", "Candidate", "RankedCandidate",
    "PipelineError", "RetrievalError", "SynthesisError", "BatchTooLargeError",
    "RerankError", "RerankIndexError",
    "EmbeddingGenerator", "IndexHit", "VectorIndex", "ChromaVectorIndex",
    "CandidateRetriever", "PrecisionReranker",
    "AnswerSynthesizer", "GeneratedAnswer", "NO_RESULTS_ANSWER",
    "RAGPipeline"
]
