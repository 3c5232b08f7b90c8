"""
Pipeline state definition for LangGraph.
Represents everything flowing through one query execution.
"""

from typing import TypedDict, List, Optional

from rag.candidates import Candidate, RankedCandidate
from models.schemas import SourceReference


class PipelineState(TypedDict):
    """State object passed through LangGraph nodes. Built fresh per query."""

    # Input
    query: str
    candidates_k: int
    final_k: int
    with_reranking: bool

    # Stage 1
    candidates: List[Candidate]
    retrieval_time_ms: float

    # Stage 2
    ranked: List[RankedCandidate]
    rerank_time_ms: Optional[float]

    # Stage 3
    answer: str
    sources: List[SourceReference]
    model_used: str
    generation_time_ms: float
