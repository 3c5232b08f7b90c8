"""
Error taxonomy for the RAG pipeline.

Fatal errors derive from PipelineError and reach the caller. Rerank errors
never leave the reranker: they resolve to the fallback projection.
"""


class PipelineError(Exception):
    """Fatal query failure surfaced to the caller."""
    pass


class RetrievalError(PipelineError):
    """Embedding call or vector index failed (Stage 1)."""
    pass


class SynthesisError(PipelineError):
    """Answer generation failed (Stage 3)."""
    pass


class BatchTooLargeError(PipelineError):
    """Batch request exceeds the configured maximum number of queries."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Batch of {size} queries exceeds the maximum of {limit}")


class RerankError(Exception):
    """Stage 2 failure. Always recovered locally by the reranker."""
    pass


class RerankIndexError(RerankError):
    """Scoring call referenced a candidate index outside the input list."""

    def __init__(self, index: int, size: int):
        self.index = index
        self.size = size
        super().__init__(
            f"Invalid rerank result index {index} for {size} candidates"
        )
