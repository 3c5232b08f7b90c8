"""
Vector index over the paper corpus using ChromaDB.
Read-only: the collection is populated by the ingestion tooling.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Dict, Any, Optional

import chromadb
from chromadb.config import Settings as ChromaSettings

from config import Settings
from integrations.errors import MalformedResponseError
from observability import trace_logger


@dataclass(frozen=True)
class IndexHit:
    """Raw nearest-neighbour match: chunk text, its metadata, and distance."""

    document: str
    metadata: Dict[str, Any]
    distance: float


class VectorIndex(ABC):
    """Nearest-neighbour search over pre-computed chunk embeddings."""

    @abstractmethod
    async def search(
        self,
        vector: List[float],
        k: int,
        where: Optional[Dict[str, Any]] = None
    ) -> List[IndexHit]:
        """Return up to k hits ordered by ascending distance."""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Number of chunks in the index."""
        pass


class ChromaVectorIndex(VectorIndex):
    """Chroma collection reached through the async HTTP client."""

    def __init__(self, client, collection):
        self.client = client
        self.collection = collection

    @classmethod
    async def connect(cls, settings: Settings) -> "ChromaVectorIndex":
        """
        Open a client session and load the paper collection.

        Args:
            settings: Application settings with Chroma host, port, collection

        Returns:
            Connected index handle
        """
        try:
            client = await chromadb.AsyncHttpClient(
                host=settings.chroma_host,
                port=settings.chroma_port,
                settings=ChromaSettings(anonymized_telemetry=False)
            )
            await client.heartbeat()
            collection = await client.get_collection(name=settings.chroma_collection_name)
        except Exception as e:
            trace_logger.error_occurred(
                error_type="vector_index_connect_error",
                error_message=str(e),
                context={
                    "host": settings.chroma_host,
                    "port": settings.chroma_port,
                    "collection": settings.chroma_collection_name
                }
            )
            raise

        trace_logger.info(
            "Connected to vector index",
            collection=settings.chroma_collection_name
        )
        return cls(client, collection)

    async def count(self) -> int:
        return await self.collection.count()

    async def search(
        self,
        vector: List[float],
        k: int,
        where: Optional[Dict[str, Any]] = None
    ) -> List[IndexHit]:
        """
        Query the collection.

        Args:
            vector: Query embedding
            k: Number of results
            where: Exact-match metadata filter

        Returns:
            List of IndexHit, nearest first
        """
        size = await self.count()
        if size == 0:
            return []

        results = await self.collection.query(
            query_embeddings=[vector],
            n_results=min(k, size),
            where=where or None,
            include=["documents", "metadatas", "distances"]
        )
        return self._parse_results(results)

    @staticmethod
    def _parse_results(results: Dict[str, Any]) -> List[IndexHit]:
        """Validate the column-oriented Chroma payload for a single query."""
        if not results or not results.get("ids"):
            return []

        ids = results["ids"][0]
        try:
            documents = results["documents"][0]
            metadatas = results["metadatas"][0]
            distances = results["distances"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedResponseError("Vector index result is missing columns") from e

        if not (len(ids) == len(documents) == len(metadatas) == len(distances)):
            raise MalformedResponseError(
                "Vector index result columns have mismatched lengths"
            )

        hits = []
        for document, metadata, distance in zip(documents, metadatas, distances):
            if not isinstance(distance, (int, float)) or isinstance(distance, bool):
                raise MalformedResponseError(f"Non-numeric distance: {distance!r}")
            hits.append(IndexHit(
                document=document or "",
                metadata=dict(metadata or {}),
                distance=float(distance)
            ))
        return hits
