"""
Candidate objects for RAG retrieval.
Represents retrieved paper chunks with metadata and scores.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Any, Mapping

from integrations.errors import MalformedResponseError


@dataclass(frozen=True)
class Paper:
    """Bibliographic record attached to every indexed chunk."""

    title: str
    authors: str  # Comma-separated author names
    year: int
    pages: int | None = None
    link: str = ""
    code: str = ""  # Code repository URL, empty if none

    @classmethod
    def from_metadata(cls, metadata: Mapping[str, Any]) -> "Paper":
        """
        Build a Paper from vector index chunk metadata.

        Raises:
            MalformedResponseError: title or year missing or not coercible
        """
        title = metadata.get("title")
        if not isinstance(title, str) or not title.strip():
            raise MalformedResponseError(f"Chunk metadata has no title: {dict(metadata)!r}")

        try:
            year = int(metadata["year"])
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponseError(
                f"Chunk metadata for {title!r} has no valid year"
            ) from e

        pages = metadata.get("pages")
        try:
            pages = int(pages) if pages not in (None, "") else None
        except (TypeError, ValueError):
            pages = None

        return cls(
            title=title,
            authors=str(metadata.get("authors") or ""),
            year=year,
            pages=pages,
            link=str(metadata.get("link") or ""),
            code=str(metadata.get("code") or ""),
        )


@dataclass(frozen=True)
class Candidate:
    """Paper chunk returned by vector search, before reranking."""

    paper: Paper
    score: float  # Normalized similarity (0-1)
    matched_text: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "paper": asdict(self.paper),
            "score": self.score,
            "matched_text": self.matched_text
        }


@dataclass(frozen=True)
class RankedCandidate(Candidate):
    """Candidate after Stage 2; rerank_score is the authoritative relevance."""

    rerank_score: float
    original_score: float

    @classmethod
    def unranked(cls, candidate: Candidate) -> "RankedCandidate":
        """Fallback projection: keep the vector search score as relevance."""
        return cls(
            paper=candidate.paper,
            score=candidate.score,
            matched_text=candidate.matched_text,
            rerank_score=candidate.score,
            original_score=candidate.score
        )

    @classmethod
    def scored(cls, candidate: Candidate, relevance: float) -> "RankedCandidate":
        """Attach a relevance score from the reranker."""
        return cls(
            paper=candidate.paper,
            score=candidate.score,
            matched_text=candidate.matched_text,
            rerank_score=relevance,
            original_score=candidate.score
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            **super().to_dict(),
            "rerank_score": self.rerank_score,
            "original_score": self.original_score
        }
