"""
API routes for RAG queries and health.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from models.schemas import (
    BatchQueryRequest, BatchResponse, CompareRequest, ComparisonResponse,
    HealthResponse, QueryRequest, QueryResponse
)
from observability import trace_logger
from rag import RAGPipeline


VERSION = "1.0.0"

router = APIRouter(prefix="/api")


def get_pipeline(request: Request) -> RAGPipeline:
    """Pipeline constructed once at startup."""
    return request.app.state.pipeline


@router.post("/query", response_model=QueryResponse, response_model_exclude_none=True)
async def query(
    body: QueryRequest,
    pipeline: RAGPipeline = Depends(get_pipeline)
) -> QueryResponse:
    """Execute a RAG query."""
    trace_logger.info("Received query request")
    return await pipeline.query(
        body.query,
        k=body.k,
        with_reranking=body.with_reranking
    )


@router.post(
    "/query/compare",
    response_model=ComparisonResponse,
    response_model_exclude_none=True
)
async def query_compare(
    body: CompareRequest,
    pipeline: RAGPipeline = Depends(get_pipeline)
) -> ComparisonResponse:
    """Compare results with and without reranking."""
    trace_logger.info("Received comparison query request")
    return await pipeline.query_with_comparison(body.query)


@router.post(
    "/query/batch",
    response_model=BatchResponse,
    response_model_exclude_none=True
)
async def query_batch(
    body: BatchQueryRequest,
    pipeline: RAGPipeline = Depends(get_pipeline)
) -> BatchResponse:
    """Execute several queries concurrently."""
    trace_logger.info("Received batch query request", num_queries=len(body.queries))
    return await pipeline.query_batch(
        body.queries,
        k=body.k,
        with_reranking=body.with_reranking
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(pipeline: RAGPipeline = Depends(get_pipeline)):
    """Health check endpoint. 503 when vector search is down."""
    health = await pipeline.health_check()

    response = HealthResponse(
        status="healthy" if health.overall else "unhealthy",
        services={
            "chromadb": "connected" if health.vector_search else "disconnected",
            # Embedding calls go to OpenAI, so vector search covers it
            "openai": "connected" if health.vector_search else "disconnected",
            "cohere": "connected" if health.reranker else "unavailable"
        },
        version=VERSION
    )
    return JSONResponse(
        status_code=200 if health.overall else 503,
        content=response.model_dump(mode="json", by_alias=True)
    )


@router.get("/ping")
async def ping():
    """Liveness probe."""
    return {"message": "pong", "timestamp": datetime.now(timezone.utc).isoformat()}
