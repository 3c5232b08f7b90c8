"""
Pydantic schemas for pipeline responses and API requests.
Serialized with camelCase aliases.
"""

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel
from typing import Annotated, Dict, Optional, List, Literal
from datetime import datetime, timezone


class APIModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SourceReference(APIModel):
    """User-facing reference to a source paper."""
    title: str
    authors: str
    year: int
    link: str
    pages: Optional[int] = None
    relevance_score: float = Field(..., ge=0.0, le=1.0, description="Rerank score (0-1)")
    excerpt: Optional[str] = Field(None, description="Short excerpt of the matched text")


class QueryMetadata(APIModel):
    """Timing and counts for one pipeline run."""
    retrieval_time_ms: float = 0.0
    rerank_time_ms: Optional[float] = Field(
        None, description="Present only when a rerank call was attempted"
    )
    generation_time_ms: float = 0.0
    total_time_ms: float = 0.0
    candidate_count: int = 0
    final_count: int = 0
    model_used: str


class QueryResponse(APIModel):
    """Answer with citations and performance metadata."""
    answer: str
    sources: List[SourceReference] = Field(default_factory=list)
    metadata: QueryMetadata


class ComparisonImprovement(APIModel):
    """Delta between the reranked and non-reranked runs."""
    latency_diff: float = Field(..., description="Reranked minus plain total time (ms)")
    sources_changed: bool = Field(..., description="Whether the top source differs")
    avg_score_improvement: float


class ComparisonResponse(APIModel):
    """Same query run with and without Stage 2."""
    with_reranking: QueryResponse
    without_reranking: QueryResponse
    improvement: ComparisonImprovement


class BatchResponse(APIModel):
    """Results of independent queries, in submission order."""
    queries: int
    results: List[QueryResponse]
    total_time_ms: float = Field(
        ..., description="Sum of per-query totalTimeMs, not batch wall clock"
    )
    wall_time_ms: float = Field(
        ..., description="Wall clock of the whole batch (bounded by the slowest query)"
    )


class HealthStatus(APIModel):
    """Component health as seen by the pipeline."""
    vector_search: bool
    reranker: bool
    overall: bool


QueryText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=500)]


class QueryRequest(APIModel):
    """Request body for a RAG query."""
    query: QueryText
    k: Optional[int] = Field(None, gt=0, le=20, description="Number of sources to return")
    with_reranking: Optional[bool] = Field(None, description="Enable Stage 2 reranking")


class CompareRequest(APIModel):
    """Request body for a with/without reranking comparison."""
    query: QueryText


class BatchQueryRequest(APIModel):
    """Request body for a batch of queries."""
    queries: List[QueryText]
    k: Optional[int] = Field(None, gt=0, le=20)
    with_reranking: Optional[bool] = None


class HealthResponse(APIModel):
    """Health check response."""
    status: Literal["healthy", "unhealthy"]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    services: Dict[str, Literal["connected", "disconnected", "unavailable"]]
    version: str = Field(default="1.0.0")


class ErrorResponse(APIModel):
    """Error body returned by the API."""
    error: str
    message: str
    status_code: int
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    path: Optional[str] = None
