"""
Stage 3: grounded answer synthesis with citations.
"""

import asyncio
from dataclasses import dataclass
from typing import List

from rag.candidates import RankedCandidate
from rag.errors import SynthesisError
from integrations import LLMProvider
from models.schemas import SourceReference
from observability import trace_logger


NO_RESULTS_ANSWER = (
    "I could not find any relevant papers to answer your question. "
    "Please try rephrasing or asking about a different topic."
)

SYSTEM_PROMPT = """You are an expert research assistant specializing in machine learning and artificial intelligence research. Your task is to answer questions about academic papers from the Journal of Machine Learning Research (JMLR).

Guidelines:
1. Base your answer ONLY on the provided paper contexts
2. Cite sources using [1], [2] format in your answer
3. Be concise but informative (2-3 paragraphs)
4. If multiple papers discuss the topic, synthesize their contributions
5. If the provided papers don't contain relevant information, say so clearly
6. Use technical terminology appropriately
7. Highlight key contributions and findings

Answer format:
- Start with a direct answer to the question
- Support claims with citations [1], [2]
- End with a brief summary if multiple papers are cited"""

ANSWER_TEMPLATE = """Question: {query}

Relevant Papers:

{context}

Please provide a comprehensive answer to the question, citing the papers using [1], [2] format. Focus on the key findings and contributions from these papers."""


@dataclass
class GeneratedAnswer:
    """Answer text plus the sources it was grounded on."""
    answer: str
    sources: List[SourceReference]
    model_used: str


class AnswerSynthesizer:
    """Composes a cited answer from ranked sources using an LLM."""

    def __init__(
        self,
        llm_provider: LLMProvider,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        timeout: float = 60.0,
        context_excerpt_chars: int = 500,
        source_excerpt_chars: int = 200
    ):
        self.llm_provider = llm_provider
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.context_excerpt_chars = context_excerpt_chars
        self.source_excerpt_chars = source_excerpt_chars

    @property
    def model_name(self) -> str:
        return self.llm_provider.model_name

    async def generate(
        self,
        query: str,
        sources: List[RankedCandidate]
    ) -> GeneratedAnswer:
        """
        Generate an answer citing sources as [1], [2], ...

        Citation numbers follow the order of `sources`. Whether the answer
        actually cites every source is not checked.

        Args:
            query: User question
            sources: Final ranked sources

        Returns:
            GeneratedAnswer with one SourceReference per source, same order

        Raises:
            SynthesisError: the generation call failed or timed out
        """
        if not sources:
            return GeneratedAnswer(
                answer=NO_RESULTS_ANSWER,
                sources=[],
                model_used=self.model_name
            )

        prompt = ANSWER_TEMPLATE.format(
            query=query,
            context=self.build_context(sources)
        )

        try:
            answer = await asyncio.wait_for(
                self.llm_provider.generate(
                    prompt=prompt,
                    system_prompt=SYSTEM_PROMPT,
                    temperature=self.temperature,
                    max_tokens=self.max_tokens
                ),
                timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise SynthesisError(
                f"Response generation timed out after {self.timeout}s"
            ) from e
        except Exception as e:
            raise SynthesisError(f"Response generation failed: {e}") from e

        references = [self.to_source_reference(source) for source in sources]

        trace_logger.response_composed(
            response_text=answer,
            num_sources=len(references),
            model=self.model_name
        )

        return GeneratedAnswer(
            answer=answer,
            sources=references,
            model_used=self.model_name
        )

    def build_context(self, sources: List[RankedCandidate]) -> str:
        """Enumerate sources as 1-based citation blocks for the prompt."""
        blocks = []
        for number, source in enumerate(sources, start=1):
            content = source.matched_text[:self.context_excerpt_chars]
            if len(source.matched_text) > self.context_excerpt_chars:
                content += "..."
            blocks.append("\n".join([
                f"[{number}] Title: {source.paper.title}",
                f"    Authors: {source.paper.authors}",
                f"    Year: {source.paper.year}",
                f"    Relevant content: {content}",
                ""
            ]))
        return "\n".join(blocks)

    def to_source_reference(self, source: RankedCandidate) -> SourceReference:
        return SourceReference(
            title=source.paper.title,
            authors=source.paper.authors,
            year=source.paper.year,
            link=source.paper.link,
            pages=source.paper.pages,
            relevance_score=source.rerank_score,
            excerpt=self.extract_excerpt(source.matched_text, self.source_excerpt_chars)
        )

    @staticmethod
    def extract_excerpt(content: str, max_length: int = 200) -> str:
        """
        Shorten content for display.

        Cuts at the last sentence end if it falls in the final 30% of the
        window, otherwise hard-truncates and appends an ellipsis.
        """
        if len(content) <= max_length:
            return content

        excerpt = content[:max_length]
        last_period = excerpt.rfind(".")

        if last_period > max_length * 0.7:
            return excerpt[:last_period + 1]

        return excerpt + "..."
