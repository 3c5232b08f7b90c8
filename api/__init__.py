"""HTTP layer for the RAG pipeline."""
