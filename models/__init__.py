"""Data models and schemas."""

from models.schemas import (
    SourceReference, QueryMetadata, QueryResponse,
    ComparisonImprovement, ComparisonResponse, BatchResponse, HealthStatus,
    QueryRequest, CompareRequest, BatchQueryRequest,
    HealthResponse, ErrorResponse
)

__all__ = [
    "SourceReference", "QueryMetadata", "QueryResponse",
    "ComparisonImprovement", "ComparisonResponse", "BatchResponse", "HealthStatus",
    "QueryRequest", "CompareRequest", "BatchQueryRequest",
    "HealthResponse", "ErrorResponse"
]
